"""Process-owned wiring of the execution core.

A `Venue` owns the selected persistence backend, the execution engine, the
query service and the price updater. Build one per process, seed it, then
`start()` / `stop()` it (or use it as a context manager).
"""

from __future__ import annotations

import logging
import random
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from tradecore.config import VenueConfig
from tradecore.execution.audit import AuditLogger
from tradecore.execution.engine import ExecutionEngine
from tradecore.market_data.price_updater import PriceUpdater
from tradecore.persistence.interfaces import PersistenceGateway
from tradecore.persistence.selector import PersistenceMode, SelectedBackend, select_backend
from tradecore.portfolio.service import PortfolioService
from tradecore.types import Instrument

logger = logging.getLogger(__name__)


class Venue:
    """Execution engine, query API and price updater over one backend."""

    def __init__(
        self,
        *,
        config: VenueConfig,
        backend: Optional[SelectedBackend] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config
        self.backend = backend or select_backend(
            database_url=config.database_url,
            trade_log_path=config.trade_log_path,
            ensure_schema=config.ensure_schema,
        )
        self.audit = AuditLogger()
        self.engine = ExecutionEngine(gateway=self.backend.gateway, audit_logger=self.audit)
        self.portfolio = PortfolioService(gateway=self.backend.gateway)
        self.price_updater = PriceUpdater(gateway=self.backend.gateway, config=config.price_updater, rng=rng)

    @property
    def mode(self) -> PersistenceMode:
        return self.backend.mode

    @property
    def gateway(self) -> PersistenceGateway:
        return self.backend.gateway

    def seed(
        self,
        instruments: Optional[Iterable[Instrument]] = None,
        accounts: Optional[Mapping[int, Decimal]] = None,
    ) -> None:
        """Load the initial catalog and accounts.

        Must run before any trade is accepted. Instruments are upserted, so
        seeding a durable store that already has prices resets them.
        Existing accounts keep their balance.
        """
        instruments = list(self.config.instruments if instruments is None else instruments)
        accounts = self.config.accounts if accounts is None else accounts
        for instrument in instruments:
            self.gateway.upsert_instrument(instrument)
        for account_id, balance in accounts.items():
            self.gateway.provision_account(account_id, balance)
        logger.info(f"Seeded {len(instruments)} instruments and {len(accounts)} accounts ({self.mode.value})")

    def start(self) -> None:
        self.price_updater.start()

    def stop(self) -> None:
        self.price_updater.stop()

    def __enter__(self) -> Venue:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
