"""
Booking engine error taxonomy and severity-aware error logging.
"""
import functools
from enum import Enum
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError

logger = structlog.get_logger(__name__)

class ErrorSeverity(Enum):
    """Error severity levels for alerting."""
    LOW = "low"           # rejected input, slot conflicts, expected failures
    MEDIUM = "medium"     # recovered locally (timezone fallback, default schedule)
    HIGH = "high"         # storage failures, service degradation
    CRITICAL = "critical" # data loss

class BookingError(Exception):
    """Base class for every error the engine surfaces to callers."""

    status_code: int = 400
    code: str = "booking_error"
    severity: ErrorSeverity = ErrorSeverity.LOW
    retryable: bool = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.code, "detail": self.message}
        payload.update({k: v for k, v in self.context.items() if v is not None})
        if self.retryable:
            payload["retryable"] = True
        return payload

class InvalidTimeFormat(BookingError):
    """Malformed local datetime, date or HH:MM string."""
    status_code = 422
    code = "invalid_time_format"

class UnknownTimezone(BookingError):
    """IANA zone name not present in the timezone database."""
    status_code = 422
    code = "unknown_timezone"
    severity = ErrorSeverity.MEDIUM

class SlotUnavailable(BookingError):
    """Requested interval collides with an active appointment."""
    status_code = 409
    code = "slot_unavailable"

class ConfigurationMissing(BookingError):
    """No schedule or timezone configured; recovered by self-healing defaults."""
    status_code = 500
    code = "configuration_missing"
    severity = ErrorSeverity.MEDIUM

class StorageFailure(BookingError):
    """Repository call failed. Callers may retry; the engine never does."""
    status_code = 503
    code = "storage_failure"
    severity = ErrorSeverity.HIGH
    retryable = True

class AccountNotFound(BookingError):
    status_code = 404
    code = "account_not_found"

class AppointmentNotFound(BookingError):
    status_code = 404
    code = "appointment_not_found"

class ServiceNotFound(BookingError):
    status_code = 404
    code = "service_not_found"

class InvalidStatusTransition(BookingError):
    status_code = 409
    code = "invalid_status_transition"

class InvalidBookingRequest(BookingError):
    status_code = 422
    code = "invalid_booking_request"

def log_error(error: Exception, context: Optional[Dict[str, Any]] = None,
              severity: Optional[ErrorSeverity] = None) -> None:
    """Log an error once, at a level derived from its severity."""
    context = dict(context or {})
    if severity is None:
        severity = getattr(error, "severity", ErrorSeverity.MEDIUM)
    if isinstance(error, BookingError):
        for key, value in error.context.items():
            context.setdefault(key, value)

    log = logger.warning if severity in (ErrorSeverity.LOW, ErrorSeverity.MEDIUM) else logger.error
    log(
        "booking_error",
        error_type=type(error).__name__,
        error=str(error),
        severity=severity.value,
        **context
    )

def translate_storage_errors(func):
    """Re-raise SQLAlchemy errors from a repository coroutine as StorageFailure."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as exc:
            failure = StorageFailure(f"{func.__name__} failed: {type(exc).__name__}", operation=func.__name__)
            log_error(failure)
            raise failure from exc

    return wrapper
