from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Protocol, Tuple

from django.utils.dateparse import parse_datetime


@dataclass(frozen=True)
class AuditEvent:
    """Record of one committed team mutation."""
    team_id: str
    operation: str
    affected_user_ids: Tuple[str, ...]
    actor_id: str
    timestamp: datetime
    company_id: Optional[str] = None
    correlation_id: str = ''
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe form, used when the event crosses a process boundary."""
        return {
            'team_id': self.team_id,
            'operation': self.operation,
            'affected_user_ids': list(self.affected_user_ids),
            'actor_id': self.actor_id,
            'timestamp': self.timestamp.isoformat(),
            'company_id': self.company_id,
            'correlation_id': self.correlation_id,
            'metadata': dict(self.metadata),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'AuditEvent':
        timestamp = payload['timestamp']
        if isinstance(timestamp, str):
            timestamp = parse_datetime(timestamp)
        return cls(
            team_id=payload['team_id'],
            operation=payload['operation'],
            affected_user_ids=tuple(payload.get('affected_user_ids') or ()),
            actor_id=payload['actor_id'],
            timestamp=timestamp,
            company_id=payload.get('company_id'),
            correlation_id=payload.get('correlation_id') or '',
            metadata=dict(payload.get('metadata') or {}),
        )


class AuditSink(Protocol):
    """Destination for committed-operation audit events.

    Called after the transaction commits. Implementations may raise; the
    caller logs the failure and carries on.
    """

    name: str

    def record(self, event: AuditEvent) -> None:
        ...
