from __future__ import annotations

from decimal import Decimal
from typing import Optional, Protocol, Sequence

from tradecore.types import AccountState, Instrument, Trade, TradeTicket


class InstrumentStore(Protocol):
    def load_instrument(self, symbol: str) -> Optional[Instrument]:
        """Fetch a single instrument by symbol."""

    def list_instruments(self) -> Sequence[Instrument]:
        """Fetch every instrument in the catalog, ordered by symbol."""

    def upsert_instrument(self, instrument: Instrument) -> None:
        """Insert an instrument or replace its name and price."""


class AccountStore(Protocol):
    def provision_account(self, account_id: int, balance: Decimal) -> None:
        """Create an account with an opening balance (no-op if it exists)."""

    def account_exists(self, account_id: int) -> bool:
        """Whether the account has been provisioned."""

    def load_account_state(self, account_id: int) -> AccountState:
        """Fetch balance and non-zero positions as one consistent snapshot.

        Unknown accounts read as a zero balance with no positions.
        """


class TradeJournalStore(Protocol):
    def commit_trade(
        self,
        account_id: int,
        balance_delta: Decimal,
        position_delta: int,
        ticket: TradeTicket,
    ) -> int:
        """Apply the balance and position deltas and append the trade.

        All three writes succeed together or none is visible. Returns the
        journal sequence id. Raises PersistenceFailure on any error.
        """

    def load_trades(self, account_id: int) -> Sequence[Trade]:
        """Fetch the account's trades ordered by sequence id."""


class PersistenceGateway(InstrumentStore, AccountStore, TradeJournalStore, Protocol):
    """Everything the execution core needs from a storage backend."""
