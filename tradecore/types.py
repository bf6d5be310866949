from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal, Mapping

TradeSide = Literal["BUY", "SELL"]

TRADE_SIDES: tuple[TradeSide, ...] = ("BUY", "SELL")


@dataclass(frozen=True)
class Instrument:
    symbol: str
    name: str
    price: Decimal

    def with_price(self, price: Decimal) -> Instrument:
        return replace(self, price=price)


@dataclass(frozen=True)
class AccountState:
    """Snapshot of one account: cash balance and non-zero positions."""

    account_id: int
    balance: Decimal
    positions: Mapping[str, int] = field(default_factory=dict)

    def position(self, symbol: str) -> int:
        """Quantity held for a symbol (0 when absent)."""
        return self.positions.get(symbol, 0)


@dataclass(frozen=True)
class TradeTicket:
    """A trade that passed validation but has not been journaled yet."""

    account_id: int
    symbol: str
    quantity: int
    price: Decimal
    side: TradeSide
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def notional(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class Trade:
    seq_id: int
    account_id: int
    symbol: str
    quantity: int
    price: Decimal
    side: TradeSide
    timestamp: datetime

    @property
    def notional(self) -> Decimal:
        return self.price * self.quantity

    @classmethod
    def from_ticket(cls, ticket: TradeTicket, seq_id: int) -> Trade:
        return cls(
            seq_id=seq_id,
            account_id=ticket.account_id,
            symbol=ticket.symbol,
            quantity=ticket.quantity,
            price=ticket.price,
            side=ticket.side,
            timestamp=ticket.timestamp,
        )


@dataclass(frozen=True)
class Valuation:
    """Mark-to-market view of an account at current catalog prices."""

    account_id: int
    cash: Decimal
    holdings_value: Decimal
    positions: Mapping[str, int]

    @property
    def equity(self) -> Decimal:
        return self.cash + self.holdings_value
