from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import create_engine, delete, insert, select, text, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from db.models.trading import (
    TRADE_SEQUENCE_NAME,
    AccountRow,
    Base,
    InstrumentRow,
    PositionRow,
    TradeRow,
    TradeSequenceRow,
)
from tradecore.errors import PersistenceFailure
from tradecore.persistence.interfaces import PersistenceGateway
from tradecore.storage.sql.config import DatabaseConfig
from tradecore.types import AccountState, Instrument, Trade, TradeTicket

logger = logging.getLogger(__name__)

instruments = InstrumentRow.__table__
accounts = AccountRow.__table__
positions = PositionRow.__table__
trades = TradeRow.__table__
trade_sequence = TradeSequenceRow.__table__


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; Postgres returns aware ones.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_trade(row: Any) -> Trade:
    return Trade(
        seq_id=int(row.seq_id),
        account_id=int(row.account_id),
        symbol=row.symbol,
        quantity=int(row.qty),
        price=Decimal(row.price),
        side=row.side,
        timestamp=_as_utc(row.timestamp),
    )


class SqlStores(PersistenceGateway):
    """Durable persistence gateway over SQLAlchemy.

    Every trade is committed in a single transaction covering the balance
    update, the position change, the sequence increment and the journal
    insert. Any SQLAlchemy error is re-raised as PersistenceFailure with the
    original exception chained.
    """

    def __init__(self, *, config: DatabaseConfig) -> None:
        self._config = config
        self._engine: Engine | None = None

    def _get_engine(self) -> Engine:
        if self._engine is None:
            # Do not log the URL (it may contain secrets).
            self._engine = create_engine(self._config.database_url, echo=False, pool_pre_ping=True)
        return self._engine

    # ---- Lifecycle

    def probe(self) -> None:
        """Open a connection and make sure the schema is usable.

        Raises whatever the driver raises; callers decide what a failed
        probe means.
        """
        engine = self._get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        if self._config.ensure_schema:
            self.ensure_schema()

    def ensure_schema(self) -> None:
        engine = self._get_engine()
        Base.metadata.create_all(engine)
        with engine.begin() as conn:
            exists = conn.execute(
                select(trade_sequence.c.name).where(trade_sequence.c.name == TRADE_SEQUENCE_NAME)
            ).first()
            if exists is None:
                conn.execute(insert(trade_sequence).values(name=TRADE_SEQUENCE_NAME, last_value=0))

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    # ---- InstrumentStore

    def load_instrument(self, symbol: str) -> Optional[Instrument]:
        stmt = select(instruments.c.symbol, instruments.c.name, instruments.c.price).where(
            instruments.c.symbol == symbol
        )
        try:
            with self._get_engine().connect() as conn:
                row = conn.execute(stmt).first()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Load instrument {symbol} failed") from exc

        return None if row is None else Instrument(symbol=row.symbol, name=row.name, price=Decimal(row.price))

    def list_instruments(self) -> Sequence[Instrument]:
        stmt = select(instruments.c.symbol, instruments.c.name, instruments.c.price).order_by(
            instruments.c.symbol
        )
        try:
            with self._get_engine().connect() as conn:
                rows = conn.execute(stmt).fetchall()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("List instruments failed") from exc

        return [Instrument(symbol=r.symbol, name=r.name, price=Decimal(r.price)) for r in rows]

    def upsert_instrument(self, instrument: Instrument) -> None:
        if not instrument.price.is_finite() or instrument.price <= 0:
            raise ValueError(f"Instrument price must be positive, got {instrument.price}")

        try:
            with self._get_engine().begin() as conn:
                result = conn.execute(
                    update(instruments)
                    .where(instruments.c.symbol == instrument.symbol)
                    .values(name=instrument.name, price=instrument.price)
                )
                if result.rowcount == 0:
                    conn.execute(
                        insert(instruments).values(
                            symbol=instrument.symbol,
                            name=instrument.name,
                            price=instrument.price,
                        )
                    )
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Upsert instrument {instrument.symbol} failed") from exc

    # ---- AccountStore

    def provision_account(self, account_id: int, balance: Decimal) -> None:
        if balance < 0:
            raise ValueError(f"Opening balance must be non-negative, got {balance}")

        try:
            with self._get_engine().begin() as conn:
                exists = conn.execute(select(accounts.c.id).where(accounts.c.id == account_id)).first()
                if exists is None:
                    conn.execute(insert(accounts).values(id=account_id, balance=balance))
        except IntegrityError:
            # Provisioned concurrently by someone else.
            logger.debug(f"Account {account_id} already provisioned")
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Provision account {account_id} failed") from exc

    def account_exists(self, account_id: int) -> bool:
        try:
            with self._get_engine().connect() as conn:
                row = conn.execute(select(accounts.c.id).where(accounts.c.id == account_id)).first()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Lookup of account {account_id} failed") from exc
        return row is not None

    def load_account_state(self, account_id: int) -> AccountState:
        # One statement, so balance and positions come from the same snapshot.
        stmt = (
            select(accounts.c.balance, positions.c.symbol, positions.c.qty)
            .select_from(accounts.outerjoin(positions, positions.c.account_id == accounts.c.id))
            .where(accounts.c.id == account_id)
            .order_by(positions.c.symbol)
        )
        try:
            with self._get_engine().connect() as conn:
                rows = conn.execute(stmt).fetchall()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Load account {account_id} failed") from exc

        if not rows:
            return AccountState(account_id=account_id, balance=Decimal("0"), positions={})

        held = {r.symbol: int(r.qty) for r in rows if r.symbol is not None}
        return AccountState(account_id=account_id, balance=Decimal(rows[0].balance), positions=held)

    # ---- TradeJournalStore

    def commit_trade(
        self,
        account_id: int,
        balance_delta: Decimal,
        position_delta: int,
        ticket: TradeTicket,
    ) -> int:
        try:
            with self._get_engine().begin() as conn:
                self._apply_balance(conn, account_id, balance_delta)
                self._apply_position(conn, account_id, ticket.symbol, position_delta)
                seq_id = self._next_seq_id(conn)
                conn.execute(
                    insert(trades).values(
                        seq_id=seq_id,
                        account_id=ticket.account_id,
                        symbol=ticket.symbol,
                        qty=ticket.quantity,
                        price=ticket.price,
                        side=ticket.side,
                        timestamp=ticket.timestamp,
                    )
                )
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Commit of {ticket.side} {ticket.symbol} for account {account_id} failed") from exc

        return seq_id

    def _apply_balance(self, conn: Connection, account_id: int, balance_delta: Decimal) -> None:
        result = conn.execute(
            update(accounts)
            .where(accounts.c.id == account_id)
            .where(accounts.c.balance + balance_delta >= 0)
            .values(balance=accounts.c.balance + balance_delta)
        )
        if result.rowcount != 1:
            raise PersistenceFailure(f"Balance update rejected for account {account_id} (missing or overdrawn)")

    def _apply_position(self, conn: Connection, account_id: int, symbol: str, position_delta: int) -> None:
        key = (positions.c.account_id == account_id) & (positions.c.symbol == symbol)
        current = conn.execute(select(positions.c.qty).where(key).with_for_update()).scalar_one_or_none()
        held = int(current) if current is not None else 0
        new_qty = held + position_delta

        if new_qty < 0:
            raise PersistenceFailure(f"Commit would leave a negative position for account {account_id} in {symbol}")
        if new_qty == 0:
            if current is not None:
                conn.execute(delete(positions).where(key))
        elif current is None:
            conn.execute(insert(positions).values(account_id=account_id, symbol=symbol, qty=new_qty))
        else:
            conn.execute(update(positions).where(key).values(qty=new_qty))

    def _next_seq_id(self, conn: Connection) -> int:
        result = conn.execute(
            update(trade_sequence)
            .where(trade_sequence.c.name == TRADE_SEQUENCE_NAME)
            .values(last_value=trade_sequence.c.last_value + 1)
        )
        if result.rowcount != 1:
            raise PersistenceFailure("Trade sequence row is missing; run ensure_schema()")
        return int(
            conn.execute(
                select(trade_sequence.c.last_value).where(trade_sequence.c.name == TRADE_SEQUENCE_NAME)
            ).scalar_one()
        )

    def load_trades(self, account_id: int) -> Sequence[Trade]:
        stmt = select(trades).where(trades.c.account_id == account_id).order_by(trades.c.seq_id)
        try:
            with self._get_engine().connect() as conn:
                rows = conn.execute(stmt).fetchall()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Load trades for account {account_id} failed") from exc
        return [_row_to_trade(r) for r in rows]

    # ---- Inspection helpers (not part of the gateway Protocols)

    def all_trades(self) -> list[Trade]:
        stmt = select(trades).order_by(trades.c.seq_id)
        try:
            with self._get_engine().connect() as conn:
                rows = conn.execute(stmt).fetchall()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Load journal failed") from exc
        return [_row_to_trade(r) for r in rows]
