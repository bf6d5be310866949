"""Execution engine: immediate market buys and sells against one account.

Every call for a given account runs its read-validate-commit sequence inside
that account's exclusive region, so calls for the same account are
linearizable while different accounts proceed in parallel.

The instrument price is read once, after the instrument lookup, and the same
value is used for the cash movement and the journal entry.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from tradecore.errors import (
    InsufficientFunds,
    InsufficientHoldings,
    InvalidQuantity,
    InvalidSide,
    PersistenceFailure,
    TradeRejected,
    UnknownInstrument,
)
from tradecore.execution.audit import AuditLogger
from tradecore.locks import KeyedLocks
from tradecore.persistence.interfaces import PersistenceGateway
from tradecore.types import TRADE_SIDES, Trade, TradeSide, TradeTicket

logger = logging.getLogger(__name__)


def _normalize_side(side: object) -> TradeSide:
    if isinstance(side, str) and side.upper() in TRADE_SIDES:
        return side.upper()  # type: ignore[return-value]
    raise InvalidSide(side)


def _check_quantity(quantity: object) -> int:
    # bool is an int subclass; True is not a quantity.
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(quantity)
    return quantity


class ExecutionEngine:
    """Validates and applies market trades through a persistence gateway.

    Errors:
    - TradeRejected subclasses: request rejected before any mutation
    - PersistenceFailure: the gateway could not record the trade; no state
      was changed

    Nothing is retried here. Retrying is the caller's decision.
    """

    def __init__(
        self,
        *,
        gateway: PersistenceGateway,
        audit_logger: Optional[AuditLogger] = None,
    ) -> None:
        self._gateway = gateway
        self._audit = audit_logger
        self._account_locks: KeyedLocks[int] = KeyedLocks()

    @property
    def gateway(self) -> PersistenceGateway:
        return self._gateway

    def buy(self, account_id: int, symbol: str, quantity: int) -> Trade:
        return self.execute(account_id, symbol, quantity, "BUY")

    def sell(self, account_id: int, symbol: str, quantity: int) -> Trade:
        return self.execute(account_id, symbol, quantity, "SELL")

    def execute(self, account_id: int, symbol: str, quantity: int, side: str) -> Trade:
        """Execute an immediate market trade.

        Args:
            account_id: Pre-provisioned account
            symbol: Instrument symbol
            quantity: Number of units (positive integer)
            side: 'BUY' or 'SELL'

        Returns:
            The journaled Trade

        Raises:
            InvalidQuantity, InvalidSide, UnknownInstrument,
            InsufficientFunds, InsufficientHoldings, PersistenceFailure
        """
        try:
            qty = _check_quantity(quantity)
            trade_side = _normalize_side(side)
            with self._account_locks.hold(account_id):
                trade = self._execute_locked(account_id, symbol, qty, trade_side)
        except TradeRejected as exc:
            logger.info(f"Rejected {side} {quantity} {symbol} for account {account_id}: {exc.kind}: {exc}")
            if self._audit is not None:
                self._audit.log_trade_rejected(account_id, symbol, exc.kind, str(exc))
            raise
        except PersistenceFailure as exc:
            logger.error(f"Persistence failure on {side} {quantity} {symbol} for account {account_id}: {exc}")
            if self._audit is not None:
                cause = exc.__cause__
                self._audit.log_persistence_failure(
                    account_id,
                    symbol,
                    str(exc),
                    context={"cause": repr(cause)} if cause is not None else None,
                )
            raise

        logger.info(
            f"Executed {trade.side} {trade.quantity} {trade.symbol} @ {trade.price} "
            f"for account {account_id} (seq {trade.seq_id})"
        )
        if self._audit is not None:
            self._audit.log_trade_executed(
                account_id, trade.symbol, trade.side, trade.quantity, str(trade.price), trade.seq_id
            )
        return trade

    def _execute_locked(self, account_id: int, symbol: str, quantity: int, side: TradeSide) -> Trade:
        instrument = self._gateway.load_instrument(symbol)
        if instrument is None:
            raise UnknownInstrument(symbol)

        price = instrument.price
        notional = price * quantity
        state = self._gateway.load_account_state(account_id)

        if side == "BUY":
            if state.balance < notional:
                raise InsufficientFunds(account_id, required=notional, available=state.balance)
            balance_delta, position_delta = -notional, quantity
        else:
            held = state.position(symbol)
            if held < quantity:
                raise InsufficientHoldings(account_id, symbol, requested=quantity, held=held)
            balance_delta, position_delta = notional, -quantity

        ticket = TradeTicket(account_id=account_id, symbol=symbol, quantity=quantity, price=price, side=side)
        seq_id = self._commit(account_id, balance_delta, position_delta, ticket)
        return Trade.from_ticket(ticket, seq_id)

    def _commit(self, account_id: int, balance_delta: Decimal, position_delta: int, ticket: TradeTicket) -> int:
        try:
            return self._gateway.commit_trade(account_id, balance_delta, position_delta, ticket)
        except PersistenceFailure:
            raise
        except Exception as exc:
            raise PersistenceFailure(f"Commit failed: {type(exc).__name__}: {exc}") from exc
