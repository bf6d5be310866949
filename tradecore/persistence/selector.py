"""Backend selection.

The durable backend is probed exactly once, when the process builds its
venue. If the probe fails the in-memory fallback is used for the rest of the
process lifetime; nothing re-probes or switches back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from tradecore.persistence.interfaces import PersistenceGateway
from tradecore.storage.memory import InMemoryStores
from tradecore.storage.sql import DatabaseConfig, SqlStores

logger = logging.getLogger(__name__)


class PersistenceMode(str, Enum):
    DURABLE = "DURABLE"
    FALLBACK = "FALLBACK"


@dataclass(frozen=True)
class SelectedBackend:
    """The backend chosen at startup. Immutable for the process lifetime."""

    mode: PersistenceMode
    gateway: PersistenceGateway
    reason: str = ""

    @property
    def is_durable(self) -> bool:
        return self.mode is PersistenceMode.DURABLE


def select_backend(
    *,
    database_url: Optional[str],
    trade_log_path: str | Path | None = None,
    ensure_schema: bool = True,
) -> SelectedBackend:
    """Probe the durable backend once and pick a persistence mode.

    Args:
        database_url: SQLAlchemy URL of the durable store (None skips the probe)
        trade_log_path: Optional append-only mirror file for the fallback backend
        ensure_schema: Create missing tables during the probe

    Returns:
        SelectedBackend with the chosen gateway
    """
    if database_url:
        stores = SqlStores(config=DatabaseConfig(database_url=database_url, ensure_schema=ensure_schema))
        try:
            stores.probe()
        except Exception as exc:
            stores.dispose()
            reason = f"durable backend unavailable: {type(exc).__name__}: {exc}"
            logger.warning(f"Persistence: falling back to in-memory store ({type(exc).__name__})")
        else:
            logger.info("Persistence: using durable SQL backend")
            return SelectedBackend(mode=PersistenceMode.DURABLE, gateway=stores, reason="probe succeeded")
    else:
        reason = "no database configured"
        logger.info("Persistence: no DATABASE_URL configured, using in-memory store")

    return SelectedBackend(
        mode=PersistenceMode.FALLBACK,
        gateway=InMemoryStores(trade_log_path=trade_log_path),
        reason=reason,
    )
