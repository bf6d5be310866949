"""Trade execution: the engine and its audit trail."""

from .audit import AuditEvent, AuditLogger
from .engine import ExecutionEngine

__all__ = ["AuditEvent", "AuditLogger", "ExecutionEngine"]
