from __future__ import annotations

from threading import RLock
from typing import List, Optional

from django.db import router

from ..logging_config import get_logger
from .interface import AuditEvent, AuditSink

logger = get_logger(__name__)


class DatabaseAuditSink(AuditSink):
    """Writes each event as an immutable TeamAuditLog row."""

    name = "database"

    def __init__(self, using: Optional[str] = None):
        self.using = using

    def record(self, event: AuditEvent) -> None:
        from ..models import TeamAuditLog

        # Routed like the team tables
        using = self.using or router.db_for_write(TeamAuditLog)
        TeamAuditLog.objects.using(using).create(
            team_id=event.team_id,
            company_id=event.company_id,
            operation=event.operation,
            affected_user_ids=list(event.affected_user_ids),
            actor_id=event.actor_id,
            correlation_id=event.correlation_id,
            metadata=event.metadata,
            timestamp=event.timestamp,
        )


class CeleryAuditSink(AuditSink):
    """Hands events to a Celery worker, which persists them."""

    name = "celery"

    def record(self, event: AuditEvent) -> None:
        from ..tasks import record_audit_event

        # Publishing must not retry against an unreachable broker
        record_audit_event.apply_async(args=[event.to_payload()], retry=False)


class LoggingAuditSink(AuditSink):
    """Emits events as structured log entries only."""

    name = "logging"

    def record(self, event: AuditEvent) -> None:
        logger.info('Team audit event', **event.to_payload())


class InMemoryAuditSink(AuditSink):
    """Keeps events in process memory. For tests and local development."""

    name = "memory"

    def __init__(self):
        self._lock = RLock()
        self._events: List[AuditEvent] = []

    def record(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[AuditEvent]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
