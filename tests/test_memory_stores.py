"""Tests for the in-memory fallback backend and its trade log mirror."""

import threading
from decimal import Decimal

import pytest
from helpers import ACCOUNT_ID, X, seed_gateway

from tradecore.errors import PersistenceFailure
from tradecore.storage.memory import InMemoryStores, TradeLogMirror, replay_trade_log
from tradecore.types import Instrument, TradeTicket


def _ticket(side: str = "BUY", quantity: int = 1, price: Decimal = Decimal("100")) -> TradeTicket:
    return TradeTicket(account_id=ACCOUNT_ID, symbol="X", quantity=quantity, price=price, side=side)


# ========== Catalog and Accounts ==========


class TestInMemoryCatalog:
    """Tests for instrument storage."""

    def test_upsert_replaces_price(self) -> None:
        stores = InMemoryStores()
        stores.upsert_instrument(X)
        stores.upsert_instrument(X.with_price(Decimal("101.25")))
        assert stores.load_instrument("X").price == Decimal("101.25")

    def test_unknown_symbol_is_none(self) -> None:
        assert InMemoryStores().load_instrument("NOPE") is None

    @pytest.mark.parametrize("price", [Decimal("0"), Decimal("-1"), Decimal("NaN"), Decimal("Infinity")])
    def test_rejects_non_positive_price(self, price) -> None:
        stores = InMemoryStores()
        with pytest.raises(ValueError, match="positive"):
            stores.upsert_instrument(Instrument(symbol="X", name="X Corp", price=price))

    def test_list_instruments_sorted(self) -> None:
        stores = InMemoryStores()
        for symbol in ("ZZZ", "AAA", "MMM"):
            stores.upsert_instrument(Instrument(symbol=symbol, name=symbol, price=Decimal("1")))
        assert [i.symbol for i in stores.list_instruments()] == ["AAA", "MMM", "ZZZ"]


class TestInMemoryAccounts:
    """Tests for account provisioning and reads."""

    def test_provision_keeps_existing_balance(self) -> None:
        stores = InMemoryStores()
        stores.provision_account(ACCOUNT_ID, Decimal("1000"))
        stores.provision_account(ACCOUNT_ID, Decimal("5"))
        assert stores.load_account_state(ACCOUNT_ID).balance == Decimal("1000")

    def test_provision_rejects_negative_balance(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            InMemoryStores().provision_account(ACCOUNT_ID, Decimal("-1"))

    def test_unknown_account_reads_as_empty(self) -> None:
        stores = InMemoryStores()
        state = stores.load_account_state(42)
        assert not stores.account_exists(42)
        assert state.balance == Decimal("0")
        assert state.positions == {}
        assert stores.load_trades(42) == []


# ========== Commits ==========


class TestInMemoryCommit:
    """Tests for commit_trade."""

    def test_commit_applies_everything(self, memory_gateway) -> None:
        seq_id = memory_gateway.commit_trade(ACCOUNT_ID, Decimal("-300"), 3, _ticket(quantity=3))

        state = memory_gateway.load_account_state(ACCOUNT_ID)
        assert seq_id == 1
        assert state.balance == Decimal("700")
        assert state.positions == {"X": 3}
        assert [t.seq_id for t in memory_gateway.load_trades(ACCOUNT_ID)] == [1]
        assert memory_gateway.last_seq_id == 1

    def test_zero_position_is_removed(self, memory_gateway) -> None:
        memory_gateway.commit_trade(ACCOUNT_ID, Decimal("-200"), 2, _ticket(quantity=2))
        memory_gateway.commit_trade(ACCOUNT_ID, Decimal("200"), -2, _ticket(side="SELL", quantity=2))

        assert "X" not in memory_gateway.load_account_state(ACCOUNT_ID).positions

    def test_overdraw_refused(self, memory_gateway) -> None:
        with pytest.raises(PersistenceFailure, match="overdraw"):
            memory_gateway.commit_trade(ACCOUNT_ID, Decimal("-1000.01"), 1, _ticket())
        assert memory_gateway.last_seq_id == 0

    def test_negative_position_refused(self, memory_gateway) -> None:
        with pytest.raises(PersistenceFailure, match="negative position"):
            memory_gateway.commit_trade(ACCOUNT_ID, Decimal("100"), -1, _ticket(side="SELL"))
        assert memory_gateway.load_account_state(ACCOUNT_ID).balance == Decimal("1000")

    def test_unprovisioned_account_refused(self, memory_gateway) -> None:
        ticket = TradeTicket(account_id=7, symbol="X", quantity=1, price=Decimal("100"), side="BUY")
        with pytest.raises(PersistenceFailure, match="not provisioned"):
            memory_gateway.commit_trade(7, Decimal("-100"), 1, ticket)

    def test_all_trades_spans_accounts(self, memory_gateway) -> None:
        memory_gateway.provision_account(2, Decimal("1000"))
        memory_gateway.commit_trade(ACCOUNT_ID, Decimal("-100"), 1, _ticket())
        other = TradeTicket(account_id=2, symbol="X", quantity=1, price=Decimal("100"), side="BUY")
        memory_gateway.commit_trade(2, Decimal("-100"), 1, other)

        assert [(t.seq_id, t.account_id) for t in memory_gateway.all_trades()] == [(1, 1), (2, 2)]


# ========== Trade Log Mirror ==========


class TestTradeLogMirror:
    """Tests for the optional append-only trade log."""

    def test_mirror_and_replay(self, tmp_path) -> None:
        path = tmp_path / "trades.jsonl"
        stores = seed_gateway(InMemoryStores(trade_log_path=path))

        stores.commit_trade(ACCOUNT_ID, Decimal("-250.50"), 3, _ticket(quantity=3, price=Decimal("83.50")))
        stores.commit_trade(ACCOUNT_ID, Decimal("83.50"), -1, _ticket(side="SELL", price=Decimal("83.50")))

        replayed = list(replay_trade_log(path))
        assert replayed == stores.all_trades()
        assert [t.side for t in replayed] == ["BUY", "SELL"]
        assert replayed[0].price == Decimal("83.50")
        assert replayed[0].timestamp.tzinfo is not None

    def test_write_failure_leaves_state_untouched(self, tmp_path) -> None:
        """Test a mirror that cannot be written fails the commit before any mutation."""
        stores = seed_gateway(InMemoryStores(trade_log_path=tmp_path / "missing" / "trades.jsonl"))

        with pytest.raises(PersistenceFailure, match="Trade log write failed") as exc_info:
            stores.commit_trade(ACCOUNT_ID, Decimal("-100"), 1, _ticket())

        assert isinstance(exc_info.value.__cause__, OSError)
        state = stores.load_account_state(ACCOUNT_ID)
        assert state.balance == Decimal("1000")
        assert state.positions == {}
        assert stores.load_trades(ACCOUNT_ID) == []
        assert stores.last_seq_id == 0

    def test_replay_skips_blank_lines(self, tmp_path) -> None:
        path = tmp_path / "trades.jsonl"
        stores = seed_gateway(InMemoryStores())
        seq_id = stores.commit_trade(ACCOUNT_ID, Decimal("-100"), 1, _ticket())
        TradeLogMirror(path).append(stores.all_trades()[0])
        with path.open("a", encoding="utf-8") as fh:
            fh.write("\n\n")

        assert [t.seq_id for t in replay_trade_log(path)] == [seq_id]

    def test_replay_accepts_trailing_z(self, tmp_path) -> None:
        path = tmp_path / "trades.jsonl"
        path.write_text(
            '{"seq_id":1,"account_id":1,"symbol":"X","quantity":2,"price":"10.00",'
            '"side":"BUY","timestamp":"2025-01-02T03:04:05Z"}\n',
            encoding="utf-8",
        )

        (trade,) = list(replay_trade_log(path))
        assert trade.timestamp.utcoffset().total_seconds() == 0
        assert trade.notional == Decimal("20.00")

    def test_replay_reports_malformed_line(self, tmp_path) -> None:
        path = tmp_path / "trades.jsonl"
        path.write_text(
            '{"seq_id":1,"account_id":1,"symbol":"X","quantity":2,"price":"10.00",'
            '"side":"BUY","timestamp":"2025-01-02T03:04:05+00:00"}\n'
            "not json\n",
            encoding="utf-8",
        )

        with pytest.raises(ValueError, match="line 2"):
            list(replay_trade_log(path))


class TestInMemoryCatalogConcurrency:
    """Catalog listing while new symbols are being added."""

    def test_list_while_seeding(self) -> None:
        stores = InMemoryStores()
        done = threading.Event()
        errors: list[Exception] = []

        def seed() -> None:
            for n in range(2000):
                stores.upsert_instrument(Instrument(symbol=f"S{n:04d}", name="S", price=Decimal("1")))
            done.set()

        def scan() -> None:
            try:
                while not done.is_set():
                    listed = [i.symbol for i in stores.list_instruments()]
                    assert listed == sorted(listed)
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=seed), threading.Thread(target=scan)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        assert len(stores.list_instruments()) == 2000
