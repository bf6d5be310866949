"""SQLAlchemy models for the trading tables.

- instruments
- accounts
- positions
- trades
- trade_sequence (backs gap-free trade sequence ids)
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    TypeDecorator,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase

MONEY_SCALE = 4
MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_SCALE)

TRADE_SEQUENCE_NAME = "trades"


class Money(TypeDecorator):
    """Exact fixed-point amount with 4 decimal places.

    Stored as NUMERIC(18, 4) on dialects with native decimals (PostgreSQL).
    Elsewhere (SQLite, where NUMERIC is a float) it is stored as an integer
    count of 1/10000 units, so sums and comparisons in SQL stay exact.
    """

    impl = Numeric(18, MONEY_SCALE)
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> Any:
        if dialect.supports_native_decimal:
            return dialect.type_descriptor(Numeric(18, MONEY_SCALE))
        return dialect.type_descriptor(BigInteger())

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        amount = Decimal(str(value)).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)
        if dialect.supports_native_decimal:
            return amount
        return int(amount.scaleb(MONEY_SCALE))

    def process_result_value(self, value: Any, dialect: Dialect) -> Optional[Decimal]:
        if value is None:
            return None
        if dialect.supports_native_decimal:
            return Decimal(str(value))
        return Decimal(int(value)).scaleb(-MONEY_SCALE)


MONEY = Money()


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class InstrumentRow(Base):
    """Table: instruments"""

    __tablename__ = "instruments"

    symbol = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    price = Column(MONEY, nullable=False)

    __table_args__ = (CheckConstraint("price > 0", name="ck_instruments_price_positive"),)

    def __repr__(self) -> str:
        return f"<InstrumentRow(symbol={self.symbol}, price={self.price})>"


class AccountRow(Base):
    """Table: accounts"""

    __tablename__ = "accounts"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=False)
    balance = Column(MONEY, nullable=False)

    __table_args__ = (CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),)

    def __repr__(self) -> str:
        return f"<AccountRow(id={self.id}, balance={self.balance})>"


class PositionRow(Base):
    """Table: positions

    Zero quantities are deleted, never stored.
    """

    __tablename__ = "positions"

    account_id = Column(
        BigInteger().with_variant(Integer, "sqlite"), ForeignKey("accounts.id"), primary_key=True
    )
    symbol = Column(Text, ForeignKey("instruments.symbol"), primary_key=True)
    qty = Column(Integer, nullable=False)

    __table_args__ = (CheckConstraint("qty > 0", name="ck_positions_qty_positive"),)

    def __repr__(self) -> str:
        return f"<PositionRow(account_id={self.account_id}, symbol={self.symbol}, qty={self.qty})>"


class TradeRow(Base):
    """Table: trades (append-only)"""

    __tablename__ = "trades"

    seq_id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=False)
    account_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("accounts.id"), nullable=False)
    symbol = Column(Text, nullable=False)
    qty = Column(Integer, nullable=False)
    price = Column(MONEY, nullable=False)
    side = Column(Text, nullable=False)  # BUY|SELL
    timestamp = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("qty > 0", name="ck_trades_qty_positive"),
        CheckConstraint("side IN ('BUY', 'SELL')", name="ck_trades_side"),
        Index("idx_trades_account", "account_id", "seq_id"),
    )

    def __repr__(self) -> str:
        return f"<TradeRow(seq_id={self.seq_id}, account_id={self.account_id}, side={self.side})>"


class TradeSequenceRow(Base):
    """Table: trade_sequence

    One row per named sequence. Incremented inside the trade transaction, so
    a rolled-back commit also rolls back the id.
    """

    __tablename__ = "trade_sequence"

    name = Column(Text, primary_key=True)
    last_value = Column(BigInteger().with_variant(Integer, "sqlite"), nullable=False, default=0)
