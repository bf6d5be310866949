"""Error taxonomy for trade execution.

Validation errors (`TradeRejected` and subclasses) are raised before any
state is touched and always recur for the same input and state.

`PersistenceFailure` means the gateway could not record a trade. The
underlying cause is chained (`raise ... from exc`). Nothing is retried.
"""

from __future__ import annotations

from decimal import Decimal


class TradeRejected(Exception):
    """Base class for validation failures."""

    kind = "TradeRejected"


class InvalidQuantity(TradeRejected):
    kind = "InvalidQuantity"

    def __init__(self, quantity: object) -> None:
        super().__init__(f"Quantity must be a positive integer, got {quantity!r}")
        self.quantity = quantity


class InvalidSide(TradeRejected):
    kind = "InvalidSide"

    def __init__(self, side: object) -> None:
        super().__init__(f"Side must be BUY or SELL, got {side!r}")
        self.side = side


class UnknownInstrument(TradeRejected):
    kind = "UnknownInstrument"

    def __init__(self, symbol: str) -> None:
        super().__init__(f"Instrument not found: {symbol}")
        self.symbol = symbol


class InsufficientFunds(TradeRejected):
    kind = "InsufficientFunds"

    def __init__(self, account_id: int, required: Decimal, available: Decimal) -> None:
        super().__init__(
            f"Insufficient funds for account {account_id}: required {required}, available {available}"
        )
        self.account_id = account_id
        self.required = required
        self.available = available


class InsufficientHoldings(TradeRejected):
    kind = "InsufficientHoldings"

    def __init__(self, account_id: int, symbol: str, requested: int, held: int) -> None:
        super().__init__(
            f"Not enough holdings of {symbol} for account {account_id}: requested {requested}, held {held}"
        )
        self.account_id = account_id
        self.symbol = symbol
        self.requested = requested
        self.held = held


class PersistenceFailure(Exception):
    """The persistence gateway could not durably record a trade."""

    kind = "PersistenceFailure"
