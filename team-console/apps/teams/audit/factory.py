from __future__ import annotations

from threading import RLock
from typing import Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .interface import AuditSink
from .sinks import CeleryAuditSink, DatabaseAuditSink, InMemoryAuditSink, LoggingAuditSink

_SINKS = {
    DatabaseAuditSink.name: DatabaseAuditSink,
    CeleryAuditSink.name: CeleryAuditSink,
    LoggingAuditSink.name: LoggingAuditSink,
    InMemoryAuditSink.name: InMemoryAuditSink,
}

# Thread-safe singleton for the audit sink
_sink_instance: Optional[AuditSink] = None
_lock = RLock()


def get_audit_sink() -> AuditSink:
    """Return the audit sink selected by `TEAMS_AUDIT_SINK`.

    The instance is rebuilt when the setting changes, so settings
    overrides in tests take effect without a manual reset.
    """
    global _sink_instance
    choice = str(getattr(settings, 'TEAMS_AUDIT_SINK', DatabaseAuditSink.name)).lower()

    sink = _sink_instance
    if sink is not None and sink.name == choice:
        return sink

    with _lock:
        if _sink_instance is not None and _sink_instance.name == choice:
            return _sink_instance

        sink_class = _SINKS.get(choice)
        if sink_class is None:
            raise ImproperlyConfigured(
                f"TEAMS_AUDIT_SINK must be one of {sorted(_SINKS)}, got {choice!r}"
            )
        _sink_instance = sink_class()
        return _sink_instance


def reset_audit_sink() -> None:
    """Drop the cached sink instance."""
    global _sink_instance
    with _lock:
        _sink_instance = None
