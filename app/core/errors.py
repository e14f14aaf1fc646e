"""
Domain errors for job discovery and CRM tracking.

Services raise these; routes translate them into HTTP responses through the
exception handlers registered in app.main.
"""
import logging
from functools import wraps

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

logger = logging.getLogger(__name__)


class JobTrackerError(Exception):
    """Base class for all job tracker domain errors."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(JobTrackerError):
    """Referenced job, company or application does not exist for the caller."""
    status_code = 404


class ConflictError(JobTrackerError):
    """Duplicate tracking attempt."""
    status_code = 409


class ValidationError(JobTrackerError):
    """Missing or malformed descriptive fields (e.g. on manual import)."""
    status_code = 422


class TransientStoreError(JobTrackerError):
    """
    Store unreachable.

    Safe to retry for ensure_stored, set_state and remove. Not safe to retry
    track_in_crm blindly: check the tracking outcome log first.
    """
    status_code = 503


class MirrorWriteWarning(JobTrackerError):
    """
    Legacy mirror write failed.

    Raised by the mirror and caught by the tracker, which logs it and records
    the divergence. Never surfaced to API callers.
    """


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def store_operation(func):
    """
    Translate store connectivity failures into TransientStoreError.

    The wrapped function must take the SQLAlchemy session as its first
    argument; the session is rolled back before the error is raised.
    """
    @wraps(func)
    def wrapper(db, *args, **kwargs):
        try:
            return func(db, *args, **kwargs)
        except DBAPIError as e:
            if not _is_transient(e):
                raise
            try:
                db.rollback()
            except DBAPIError:
                logger.debug("Rollback failed after store error", exc_info=True)
            logger.error(f"Store unavailable in {func.__name__}: {e}")
            raise TransientStoreError("Store temporarily unavailable, please retry") from e

    return wrapper
