"""Tests for the execution audit trail."""

from datetime import datetime, timezone

from tradecore.execution.audit import AuditEvent, AuditLogger


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_filters_by_type_account_and_symbol(self) -> None:
        audit = AuditLogger()
        audit.log_trade_executed(1, "X", "BUY", 5, "100", 1)
        audit.log_trade_rejected(1, "Y", "InsufficientFunds", "not enough cash")
        audit.log_trade_executed(2, "X", "SELL", 1, "101", 2)

        assert len(audit.get_events()) == 3
        assert len(audit.get_events(event_type="trade_executed")) == 2
        assert len(audit.get_events(account_id=1)) == 2
        assert len(audit.get_events(event_type="trade_executed", symbol="X", account_id=2)) == 1

    def test_rejection_carries_extra_context(self) -> None:
        audit = AuditLogger()
        audit.log_trade_rejected(1, "X", "InvalidQuantity", "bad", context={"quantity": 0})

        (event,) = audit.events
        assert event.context["kind"] == "InvalidQuantity"
        assert event.context["quantity"] == 0

    def test_persistence_failure_is_error(self) -> None:
        audit = AuditLogger()
        audit.log_persistence_failure(1, "X", "db down")
        assert audit.events[0].severity == "error"
        assert "db down" in audit.events[0].message

    def test_json_export_and_clear(self) -> None:
        audit = AuditLogger()
        audit.log_trade_executed(1, "X", "BUY", 5, "100", 1)

        (exported,) = audit.to_json_list()
        assert exported["event_type"] == "trade_executed"
        assert isinstance(exported["timestamp"], str)

        audit.clear()
        assert audit.events == []


class TestAuditEvent:
    """Tests for AuditEvent serialization."""

    def test_from_dict_accepts_trailing_z(self) -> None:
        event = AuditEvent.from_dict(
            {"event_type": "trade_rejected", "message": "m", "timestamp": "2025-03-01T10:00:00Z"}
        )
        assert event.timestamp == datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_from_dict_drops_bad_timestamp(self) -> None:
        event = AuditEvent.from_dict({"event_type": "trade_rejected", "message": "m", "timestamp": "yesterday"})
        assert event.timestamp.tzinfo is not None

    def test_round_trip(self) -> None:
        event = AuditEvent(event_type="trade_executed", message="ok", context={"seq_id": 3})
        assert AuditEvent.from_dict(event.to_dict()) == event
