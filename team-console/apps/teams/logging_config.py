"""
Structured logging configuration for the team service.

Provides JSON log entries with correlation IDs and operation timing.
"""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================================
# Correlation ID Management
# ============================================================================

_correlation_id: ContextVar[Optional[str]] = ContextVar('teams_correlation_id', default=None)


class CorrelationIDManager:
    """
    Manages correlation IDs for request tracking.

    The ID lives in a context variable, so concurrent requests served by
    different threads or tasks never see each other's value.
    """

    @staticmethod
    def get_correlation_id() -> str:
        """Get current correlation ID or generate a new one."""
        correlation_id = _correlation_id.get()
        if correlation_id is None:
            correlation_id = str(uuid.uuid4())
            _correlation_id.set(correlation_id)
        return correlation_id

    @staticmethod
    def set_correlation_id(correlation_id: str):
        """Set correlation ID for current context."""
        _correlation_id.set(correlation_id)

    @staticmethod
    def clear_correlation_id():
        """Clear current correlation ID."""
        _correlation_id.set(None)


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None):
    """
    Run a block under a correlation ID, restoring the previous one after.

    Example:
        with correlation_scope(request.headers.get('X-Correlation-ID')):
            team_orchestrator.add_members(...)
    """
    token = _correlation_id.set(correlation_id or str(uuid.uuid4()))
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


# ============================================================================
# Structured Logger
# ============================================================================

class StructuredLogger:
    """
    Structured logger with JSON formatting and bound context.

    Context is fixed at construction; `bind()` returns a new logger instead
    of mutating this one.
    """

    def __init__(self, name: str, **context: Any):
        self.logger = logging.getLogger(name)
        self.context: Dict[str, Any] = dict(context)

    def bind(self, **kwargs: Any) -> 'StructuredLogger':
        """Return a logger carrying additional context fields."""
        return StructuredLogger(self.logger.name, **{**self.context, **kwargs})

    def _build_log_entry(
        self,
        level: str,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> Dict[str, Any]:
        entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': level,
            'message': message,
            'correlation_id': CorrelationIDManager.get_correlation_id(),
            'logger': self.logger.name,
        }

        if self.context:
            entry['context'] = self.context.copy()

        if extra:
            entry['extra'] = extra

        if exc_info:
            entry['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info),
            }

        return entry

    def _log(
        self,
        level: int,
        level_name: str,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ):
        if self.logger.isEnabledFor(level):
            log_entry = self._build_log_entry(level_name, message, extra, exc_info)
            self.logger.log(level, json.dumps(log_entry, default=str), exc_info=exc_info)

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self._log(logging.DEBUG, 'DEBUG', message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self._log(logging.INFO, 'INFO', message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self._log(logging.WARNING, 'WARNING', message, kwargs)

    def error(self, message: str, exc_info: Optional[BaseException] = None, **kwargs):
        """Log error message."""
        self._log(logging.ERROR, 'ERROR', message, kwargs, exc_info)

    def critical(self, message: str, exc_info: Optional[BaseException] = None, **kwargs):
        """Log critical message."""
        self._log(logging.CRITICAL, 'CRITICAL', message, kwargs, exc_info)


# ============================================================================
# Context Managers
# ============================================================================

@contextmanager
def log_operation_context(operation: str, logger: Optional[StructuredLogger] = None, **kwargs):
    """
    Context manager for logging an operation with automatic start/end.

    Expected business errors are logged at warning level; anything else is
    logged as a failure with the exception attached.

    Example:
        with log_operation_context('add_members', team_id=str(team_id)):
            ...
    """
    from .exceptions import Internal, TeamServiceError

    logger = (logger or StructuredLogger(__name__)).bind(operation=operation, **kwargs)

    logger.info(f'Starting {operation}')

    start_time = time.monotonic()
    try:
        yield logger
    except TeamServiceError as e:
        duration = time.monotonic() - start_time
        if isinstance(e, Internal):
            logger.error(
                f'Failed {operation}',
                exc_info=e,
                duration_seconds=duration,
                status='failure'
            )
        else:
            logger.warning(
                f'Rejected {operation}',
                error_type=e.error_type,
                error_message=e.message,
                duration_seconds=duration,
                status='rejected'
            )
        raise
    except Exception as e:
        duration = time.monotonic() - start_time
        logger.error(
            f'Failed {operation}',
            exc_info=e,
            duration_seconds=duration,
            status='failure'
        )
        raise
    else:
        duration = time.monotonic() - start_time
        logger.info(
            f'Completed {operation}',
            duration_seconds=duration,
            status='success'
        )


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name)
