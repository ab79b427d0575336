"""
Error types and helpers for floorlink.

Every error raised by the repositories and services derives from AppError,
so callers (an HTTP layer, the CLI) can map them to responses in one place.
Messages always name the entity kind and id that failed.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ErrorSeverity(Enum):
    """How serious an error is, used for logging and reporting."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AppError(Exception):
    """Base class for all floorlink errors."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        cause: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.cause = cause
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a dictionary for structured reporting."""
        result = {
            "error_type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
        }
        if self.details:
            result["details"] = self.details
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message} (caused by {type(self.cause).__name__}: {self.cause})"
        return self.message


class NotFoundError(AppError):
    """A Map, Feature or Store does not exist or fails an ownership filter.

    The two cases are deliberately indistinguishable so that the existence
    of other users' maps is not leaked.
    """

    def __init__(self, entity: str, entity_id: Optional[str], parent: Optional[str] = None):
        if parent:
            message = f"{entity} with ID {entity_id} not found in {parent}"
        else:
            message = f"{entity} with ID {entity_id} not found"
        super().__init__(
            message,
            severity=ErrorSeverity.WARNING,
            details={"entity": entity, "id": entity_id, "parent": parent}
        )
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(AppError):
    """A feature is already linked to a different store."""

    def __init__(self, feature_id: str, map_id: str, claimed_by: Optional[str] = None):
        super().__init__(
            f"Feature {feature_id} in map {map_id} is already linked to another store",
            severity=ErrorSeverity.WARNING,
            details={"entity": "Feature", "id": feature_id, "map_id": map_id, "claimed_by": claimed_by}
        )
        self.feature_id = feature_id
        self.map_id = map_id
        self.claimed_by = claimed_by


class ForbiddenError(AppError):
    """The entity exists but belongs to another owner."""

    def __init__(self, entity: str, entity_id: str, action: str = "access"):
        super().__init__(
            f"You do not have permission to {action} {entity.lower()} {entity_id}",
            severity=ErrorSeverity.WARNING,
            details={"entity": entity, "id": entity_id, "action": action}
        )
        self.entity = entity
        self.entity_id = entity_id


class ValidationFailure(AppError):
    """Malformed input."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(
            message,
            severity=ErrorSeverity.WARNING,
            details={"errors": errors or []}
        )
        self.errors = errors or []


class StorageError(AppError):
    """The storage backend failed to complete an operation."""

    def __init__(self, operation: str, cause: Optional[Exception] = None, entity_id: Optional[str] = None):
        message = f"Storage operation '{operation}' failed"
        if entity_id:
            message += f" for {entity_id}"
        super().__init__(
            message,
            severity=ErrorSeverity.ERROR,
            cause=cause,
            details={"operation": operation, "id": entity_id}
        )
        self.operation = operation


async def safe_execute(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    error_message: str = "Operation failed",
    default: Optional[T] = None,
    absorb: Tuple[Type[BaseException], ...] = (AppError,),
    **kwargs: Any
) -> Optional[T]:
    """Await ``func(*args, **kwargs)`` and absorb the listed error types.

    Absorbed errors are logged with ``error_message`` and ``default`` is
    returned. Anything not listed in ``absorb`` propagates.

    Args:
        func: Coroutine function to run
        error_message: Prefix for the log line when an error is absorbed
        default: Value returned when an error is absorbed
        absorb: Exception types to absorb

    Returns:
        The coroutine's result, or ``default`` if an error was absorbed
    """
    try:
        return await func(*args, **kwargs)
    except absorb as e:
        severity = getattr(e, "severity", ErrorSeverity.ERROR)
        level = logging.WARNING if severity in (ErrorSeverity.INFO, ErrorSeverity.WARNING) else logging.ERROR
        logger.log(level, f"{error_message}: {e}")
        return default
