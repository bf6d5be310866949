"""Venue configuration from environment variables.

Variables:
- DATABASE_URL: SQLAlchemy URL of the durable store (unset -> in-memory)
- TRADE_LOG_PATH: append-only trade log for the in-memory store
- PRICE_UPDATE_INTERVAL_SECONDS: price updater interval (default 2)
- PRICE_MAX_CHANGE_PCT: max fractional price move per tick (default 0.01)
- PRICE_FLOOR: lowest price the updater will set (default 0.01)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from tradecore.market_data.price_updater import PriceUpdaterConfig
from tradecore.types import Instrument

DEFAULT_INSTRUMENTS: tuple[Instrument, ...] = (
    Instrument(symbol="ABC", name="ABC Corporation", price=Decimal("120.00")),
    Instrument(symbol="XYZ", name="XYZ Limited", price=Decimal("45.50")),
    Instrument(symbol="TCS", name="TCS Ltd", price=Decimal("3500.00")),
)

DEFAULT_ACCOUNTS: Mapping[int, Decimal] = {
    1: Decimal("100000"),
    2: Decimal("50000"),
}


def _env_decimal(env: Mapping[str, str], name: str, default: Decimal) -> Decimal:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return Decimal(raw.strip())
    except InvalidOperation as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class VenueConfig:
    """Process-level configuration for a venue."""

    database_url: Optional[str] = None
    trade_log_path: Optional[str] = None
    ensure_schema: bool = True
    price_updater: PriceUpdaterConfig = field(default_factory=PriceUpdaterConfig)
    instruments: tuple[Instrument, ...] = DEFAULT_INSTRUMENTS
    accounts: Mapping[int, Decimal] = field(default_factory=lambda: dict(DEFAULT_ACCOUNTS))

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> VenueConfig:
        """Build a config from environment variables.

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        env = os.environ if env is None else env
        updater = PriceUpdaterConfig(
            interval_seconds=float(_env_decimal(env, "PRICE_UPDATE_INTERVAL_SECONDS", Decimal("2"))),
            max_change_pct=_env_decimal(env, "PRICE_MAX_CHANGE_PCT", Decimal("0.01")),
            floor=_env_decimal(env, "PRICE_FLOOR", Decimal("0.01")),
        )
        return cls(
            database_url=env.get("DATABASE_URL") or None,
            trade_log_path=env.get("TRADE_LOG_PATH") or None,
            price_updater=updater,
        )
