"""Persistence boundary.

The protocols here are implemented by the backends in `tradecore.storage`.
Backend selection lives in `tradecore.persistence.selector`.
"""

from .interfaces import (
    AccountStore,
    InstrumentStore,
    PersistenceGateway,
    TradeJournalStore,
)
