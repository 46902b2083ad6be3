"""
Transaction scope for team operations.

A UnitOfWork wraps one `transaction.atomic()` block. Repository and
validator calls take it as their first argument so every read and write of
an operation runs on the same connection and inside the same transaction.
"""

from typing import Callable, Optional

from django.conf import settings
from django.db import connections, router, transaction

from .interface import Actor
from .models import Team, TeamOperation


class UnitOfWork:
    """
    Usage:
        with UnitOfWork(actor, TeamOperation.ADD_MEMBERS) as uow:
            team = team_repository.find_team(uow, team_id, for_update=True)
            ...
            uow.on_commit(lambda: sink.record(event))
    """

    def __init__(self, actor: Actor, operation: Optional[str] = None, using: Optional[str] = None):
        self.actor = actor
        self.operation = TeamOperation(operation) if operation else None
        self.using = using or router.db_for_write(Team)
        self._atomic = None

    def __enter__(self) -> 'UnitOfWork':
        if self._atomic is not None:
            raise RuntimeError("UnitOfWork is not re-entrant")
        self._atomic = transaction.atomic(using=self.using)
        self._atomic.__enter__()
        try:
            self._apply_lock_timeout()
        except BaseException as exc:
            self._close(type(exc), exc, exc.__traceback__)
            raise
        return self

    def __exit__(self, exc_type, exc, tb):
        return self._close(exc_type, exc, tb)

    def _close(self, exc_type, exc, tb):
        atomic, self._atomic = self._atomic, None
        return atomic.__exit__(exc_type, exc, tb)

    def _apply_lock_timeout(self):
        timeout_ms = int(getattr(settings, 'TEAMS_LOCK_TIMEOUT_MS', 0) or 0)
        connection = connections[self.using]
        if timeout_ms <= 0 or connection.vendor != 'postgresql':
            return
        with connection.cursor() as cursor:
            cursor.execute(f"SET LOCAL lock_timeout = {timeout_ms}")

    def on_commit(self, func: Callable[[], None]):
        """Run `func` once the outermost transaction commits."""
        transaction.on_commit(func, using=self.using)
