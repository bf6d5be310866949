"""Audit trail for trade execution.

Structured record of every execution attempt: accepted trades, validation
rejections and persistence failures, with enough context to reconstruct
what the engine saw.

All timestamps use timezone-aware UTC datetimes for consistency.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional

EventType = Literal[
    "trade_executed",
    "trade_rejected",
    "persistence_failure",
]

Severity = Literal["debug", "info", "warning", "error"]


@dataclass
class AuditEvent:
    """Structured audit event for one execution attempt."""

    event_type: EventType
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    severity: Severity = "info"
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        result = asdict(self)
        result["timestamp"] = self.timestamp.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEvent:
        """Create from dictionary."""
        data = dict(data)
        timestamp_value = data.get("timestamp")
        if isinstance(timestamp_value, str):
            ts = timestamp_value
            # Normalize common ISO 8601 variant with trailing 'Z' (UTC)
            if ts.endswith("Z"):
                ts = ts[:-1] + "+00:00"
            try:
                data["timestamp"] = datetime.fromisoformat(ts)
            except ValueError:
                data.pop("timestamp", None)
        return cls(**data)


class AuditLogger:
    """In-memory, thread-safe audit log for execution events."""

    def __init__(self) -> None:
        self._events: list[AuditEvent] = []
        self._lock = threading.Lock()

    @property
    def events(self) -> list[AuditEvent]:
        with self._lock:
            return list(self._events)

    def log(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.append(event)

    def log_trade_executed(
        self,
        account_id: int,
        symbol: str,
        side: str,
        quantity: int,
        price: str,
        seq_id: int,
    ) -> None:
        event = AuditEvent(
            event_type="trade_executed",
            message=f"{side} {quantity} {symbol} @ {price} for account {account_id} (seq {seq_id})",
            severity="info",
            context={
                "account_id": account_id,
                "symbol": symbol,
                "side": side,
                "quantity": quantity,
                "price": price,
                "seq_id": seq_id,
            },
        )
        self.log(event)

    def log_trade_rejected(
        self,
        account_id: int,
        symbol: str,
        kind: str,
        reason: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        # Rejections are the caller's problem, not a system failure.
        event = AuditEvent(
            event_type="trade_rejected",
            message=f"Trade rejected for account {account_id} on {symbol}: {reason}",
            severity="info",
            context={"account_id": account_id, "symbol": symbol, "kind": kind, "reason": reason, **(context or {})},
        )
        self.log(event)

    def log_persistence_failure(
        self,
        account_id: int,
        symbol: str,
        error: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        event = AuditEvent(
            event_type="persistence_failure",
            message=f"Persistence failure for account {account_id} on {symbol}: {error}",
            severity="error",
            context={"account_id": account_id, "symbol": symbol, "error": error, **(context or {})},
        )
        self.log(event)

    def get_events(
        self,
        event_type: Optional[EventType] = None,
        account_id: Optional[int] = None,
        symbol: Optional[str] = None,
    ) -> list[AuditEvent]:
        """Get filtered audit events."""
        return [
            e
            for e in self.events
            if (event_type is None or e.event_type == event_type)
            and (account_id is None or e.context.get("account_id") == account_id)
            and (symbol is None or e.context.get("symbol") == symbol)
        ]

    def clear(self) -> None:
        """Clear all events (for testing)."""
        with self._lock:
            self._events.clear()

    def to_json_list(self) -> list[dict[str, Any]]:
        """Export all events as JSON-serializable list."""
        return [event.to_dict() for event in self.events]
