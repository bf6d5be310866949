"""SQLAlchemy models for the tradecore database."""

from db.models.trading import (
    AccountRow,
    Base,
    InstrumentRow,
    PositionRow,
    TradeRow,
    TradeSequenceRow,
)

__all__ = ["AccountRow", "Base", "InstrumentRow", "PositionRow", "TradeRow", "TradeSequenceRow"]
