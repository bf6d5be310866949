"""Read-side queries over accounts, positions, trades and the catalog.

Safe to call concurrently with the execution engine and the price updater:
every answer comes from a single gateway read, so an account's balance and
positions are always observed together.
"""

from __future__ import annotations

from decimal import Decimal

from tradecore.persistence.interfaces import PersistenceGateway
from tradecore.types import Instrument, Trade, Valuation


class PortfolioService:
    """Query API exposed to presentation layers."""

    def __init__(self, *, gateway: PersistenceGateway) -> None:
        self._gateway = gateway

    def get_portfolio(self, account_id: int) -> dict[str, int]:
        """Get non-zero positions for an account.

        Returns:
            Mapping of symbol -> quantity, ordered by symbol
        """
        state = self._gateway.load_account_state(account_id)
        return dict(sorted(state.positions.items()))

    def get_balance(self, account_id: int) -> Decimal:
        return self._gateway.load_account_state(account_id).balance

    def get_trade_history(self, account_id: int) -> list[Trade]:
        """Get the account's trades, oldest first (by sequence id)."""
        return sorted(self._gateway.load_trades(account_id), key=lambda t: t.seq_id)

    def list_instruments(self) -> list[Instrument]:
        return sorted(self._gateway.list_instruments(), key=lambda i: i.symbol)

    def get_valuation(self, account_id: int) -> Valuation:
        """Mark the account to market at current catalog prices.

        Positions whose instrument has disappeared from the catalog are
        valued at zero.
        """
        state = self._gateway.load_account_state(account_id)
        holdings_value = Decimal("0")
        for symbol, qty in state.positions.items():
            instrument = self._gateway.load_instrument(symbol)
            if instrument is not None:
                holdings_value += instrument.price * qty

        return Valuation(
            account_id=account_id,
            cash=state.balance,
            holdings_value=holdings_value,
            positions=dict(sorted(state.positions.items())),
        )
