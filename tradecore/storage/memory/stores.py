"""In-memory fallback backend.

Used when the durable database cannot be reached at startup. State lives in
process memory and is lost on restart; sequence ids are strictly increasing
within the process only.

Locking:
- one lock per account guards its balance, positions and trade list
- one lock per instrument serializes writes to its catalog entry; the
  catalog lock covers only adding the entry and snapshotting the symbols
- the journal lock covers only sequence assignment, the optional mirror
  write and the append
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Optional, Sequence

from tradecore.errors import PersistenceFailure
from tradecore.locks import KeyedLocks
from tradecore.persistence.interfaces import PersistenceGateway
from tradecore.storage.memory.trade_log import TradeLogMirror
from tradecore.types import AccountState, Instrument, Trade, TradeTicket

logger = logging.getLogger(__name__)


@dataclass
class _AccountRecord:
    balance: Decimal
    positions: dict[str, int] = field(default_factory=dict)
    trades: list[Trade] = field(default_factory=list)


def _check_price(price: Decimal) -> None:
    if not price.is_finite() or price <= 0:
        raise ValueError(f"Instrument price must be positive, got {price}")


class InMemoryStores(PersistenceGateway):
    """Process-memory implementation of the persistence gateway."""

    def __init__(self, *, trade_log_path: str | Path | None = None) -> None:
        self._instruments: dict[str, Instrument] = {}
        self._instrument_locks: KeyedLocks[str] = KeyedLocks()
        self._catalog_lock = threading.Lock()
        self._accounts: dict[int, _AccountRecord] = {}
        self._account_locks: KeyedLocks[int] = KeyedLocks()
        self._journal: list[Trade] = []
        self._journal_lock = threading.Lock()
        self._last_seq_id = 0
        self._mirror = TradeLogMirror(trade_log_path) if trade_log_path else None

    # ---- InstrumentStore

    def load_instrument(self, symbol: str) -> Optional[Instrument]:
        with self._instrument_locks.hold(symbol):
            return self._instruments.get(symbol)

    def list_instruments(self) -> Sequence[Instrument]:
        instruments = []
        with self._catalog_lock:
            symbols = sorted(self._instruments)
        for symbol in symbols:
            instrument = self.load_instrument(symbol)
            if instrument is not None:
                instruments.append(instrument)
        return instruments

    def upsert_instrument(self, instrument: Instrument) -> None:
        _check_price(instrument.price)
        with self._instrument_locks.hold(instrument.symbol):
            with self._catalog_lock:
                self._instruments[instrument.symbol] = instrument

    # ---- AccountStore

    def provision_account(self, account_id: int, balance: Decimal) -> None:
        if balance < 0:
            raise ValueError(f"Opening balance must be non-negative, got {balance}")
        with self._account_locks.hold(account_id):
            self._accounts.setdefault(account_id, _AccountRecord(balance=balance))

    def account_exists(self, account_id: int) -> bool:
        with self._account_locks.hold(account_id):
            return account_id in self._accounts

    def load_account_state(self, account_id: int) -> AccountState:
        with self._account_locks.hold(account_id):
            record = self._accounts.get(account_id)
            if record is None:
                return AccountState(account_id=account_id, balance=Decimal("0"), positions={})
            return AccountState(
                account_id=account_id,
                balance=record.balance,
                positions=dict(sorted(record.positions.items())),
            )

    # ---- TradeJournalStore

    def commit_trade(
        self,
        account_id: int,
        balance_delta: Decimal,
        position_delta: int,
        ticket: TradeTicket,
    ) -> int:
        with self._account_locks.hold(account_id):
            record = self._accounts.get(account_id)
            if record is None:
                raise PersistenceFailure(f"Account {account_id} is not provisioned")

            new_balance = record.balance + balance_delta
            new_qty = record.positions.get(ticket.symbol, 0) + position_delta
            if new_balance < 0:
                raise PersistenceFailure(f"Commit would overdraw account {account_id}: balance {new_balance}")
            if new_qty < 0:
                raise PersistenceFailure(
                    f"Commit would leave a negative position for account {account_id} in {ticket.symbol}"
                )

            with self._journal_lock:
                trade = Trade.from_ticket(ticket, self._last_seq_id + 1)
                if self._mirror is not None:
                    try:
                        self._mirror.append(trade)
                    except OSError as exc:
                        raise PersistenceFailure(f"Trade log write failed: {exc}") from exc
                self._journal.append(trade)
                self._last_seq_id = trade.seq_id

            record.balance = new_balance
            if new_qty == 0:
                record.positions.pop(ticket.symbol, None)
            else:
                record.positions[ticket.symbol] = new_qty
            record.trades.append(trade)
            return trade.seq_id

    def load_trades(self, account_id: int) -> Sequence[Trade]:
        with self._account_locks.hold(account_id):
            record = self._accounts.get(account_id)
            return list(record.trades) if record is not None else []

    # ---- Inspection helpers (not part of the gateway Protocols)

    def all_trades(self) -> list[Trade]:
        with self._journal_lock:
            return list(self._journal)

    @property
    def last_seq_id(self) -> int:
        with self._journal_lock:
            return self._last_seq_id
