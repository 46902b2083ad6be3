"""
Celery tasks for the team service.

Audit events published by the celery audit sink are persisted here, off the
request path.
"""

from typing import Any, Dict

from celery import shared_task
from celery.utils.log import get_task_logger
from django.db import DatabaseError

logger = get_task_logger(__name__)


@shared_task(
    name='teams.record_audit_event',
    ignore_result=True,
    autoretry_for=(DatabaseError,),
    retry_backoff=True,
    max_retries=3,
)
def record_audit_event(payload: Dict[str, Any]) -> None:
    """
    Persist one team audit event.

    Args:
        payload: Output of AuditEvent.to_payload()
    """
    from .audit.interface import AuditEvent
    from .audit.sinks import DatabaseAuditSink

    event = AuditEvent.from_payload(payload)
    DatabaseAuditSink().record(event)

    logger.info(
        f"Recorded audit event {event.operation} for team {event.team_id} "
        f"(correlation {event.correlation_id})"
    )
