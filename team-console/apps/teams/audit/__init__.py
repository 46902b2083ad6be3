"""Audit trail for committed team mutations."""

from .factory import get_audit_sink, reset_audit_sink
from .interface import AuditEvent, AuditSink
from .query import AuditLogQuery
from .sinks import CeleryAuditSink, DatabaseAuditSink, InMemoryAuditSink, LoggingAuditSink

__all__ = [
    "AuditEvent",
    "AuditSink",
    "AuditLogQuery",
    "CeleryAuditSink",
    "DatabaseAuditSink",
    "InMemoryAuditSink",
    "LoggingAuditSink",
    "get_audit_sink",
    "reset_audit_sink",
]
