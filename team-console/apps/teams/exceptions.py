"""
Error taxonomy for team composition operations.

Validators raise these directly; the orchestrator lets them propagate
unchanged after rolling back. Only unexpected storage failures are wrapped
into `Internal`.
"""

from typing import Any, Dict, Optional


class TeamServiceError(Exception):
    """Base class for all team service errors."""

    status_code = 400
    error_type = 'Bad Request'

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary suitable for a JSON error body."""
        return {
            'error': True,
            'status': self.status_code,
            'type': self.error_type,
            'message': self.message,
            'details': self.details,
        }


class NotFound(TeamServiceError):
    """
    Referenced team, user or company does not exist, or lies outside the
    actor's visibility scope.
    """

    status_code = 404
    error_type = 'Not Found'


class Conflict(TeamServiceError):
    """Duplicate team name or membership."""

    status_code = 409
    error_type = 'Conflict'


class InvalidState(TeamServiceError):
    """Request is well formed but would break a composition invariant."""

    status_code = 400
    error_type = 'Invalid State'


class Forbidden(TeamServiceError):
    """Actor may not perform the requested operation on this team."""

    status_code = 403
    error_type = 'Forbidden'


class Internal(TeamServiceError):
    """Unexpected storage or transport failure."""

    status_code = 500
    error_type = 'Internal Error'

    def __init__(self, message: str = 'An unexpected error occurred.', details=None):
        super().__init__(message, details)

    def to_dict(self) -> Dict[str, Any]:
        # Never expose internals to the caller
        return {
            'error': True,
            'status': self.status_code,
            'type': self.error_type,
            'message': 'An unexpected error occurred.',
            'details': {},
        }
