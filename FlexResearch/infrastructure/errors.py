"""
FlexResearch Error Handling Framework.

Categorizes errors for consistent handling:
- FATAL: Stop the current call, the caller must act
- DEGRADED: Continue with reduced output, warn user
- OPTIONAL: Silent skip, log for debugging
- RECOVERABLE: Retry after backoff

Work unit failures are recorded on the unit as data; only session misuse,
unknown ids and exhausted completion retries surface as exceptions.
"""

from enum import Enum
from typing import Optional, Any

from ..utils import console


class ErrorCategory(Enum):
    """Classifies errors for handling decisions."""
    FATAL = "fatal"
    DEGRADED = "degraded"
    OPTIONAL = "optional"
    RECOVERABLE = "recoverable"


class FlexResearchError(Exception):
    """Base exception for FlexResearch errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.category = category
        self.context = context or {}
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        parts = [f"[{self.category.value.upper()}] {self.message}"]
        if self.original_error:
            parts.append(f"Cause: {str(self.original_error)}")
        return "\n".join(parts)


class SessionNotFoundError(FlexResearchError):
    """No session is registered under the given id."""

    def __init__(self, session_id: str):
        super().__init__(
            f"Invalid or expired session: {session_id}",
            ErrorCategory.FATAL,
            context={"session_id": session_id},
        )
        self.session_id = session_id


class SessionNotActiveError(FlexResearchError):
    """A session that is completed or abandoned was asked to do more work."""

    def __init__(self, session_id: str, status: str):
        super().__init__(
            f"Session {session_id} is {status}",
            ErrorCategory.FATAL,
            context={"session_id": session_id, "status": status},
        )
        self.session_id = session_id
        self.status = status


class ConfigNotFoundError(FlexResearchError):
    """No finalized research configuration exists under the given id."""

    def __init__(self, config_id: str):
        super().__init__(
            f"Research configuration not found: {config_id}",
            ErrorCategory.FATAL,
            context={"config_id": config_id},
        )
        self.config_id = config_id


class RunNotFoundError(FlexResearchError):
    """No finished batch run exists under the given batch id."""

    def __init__(self, batch_id: str):
        super().__init__(
            f"Research run not found: {batch_id}",
            ErrorCategory.FATAL,
            context={"batch_id": batch_id},
        )
        self.batch_id = batch_id


class CompletionErrorKind(str, Enum):
    """Failure kinds reported by a completion service."""
    RATE_LIMITED = "rate_limited"
    OTHER = "other"


class CompletionError(FlexResearchError):
    """
    A completion call failed.

    Rate-limited failures are recoverable (the gateway backs off and retries
    once); every other kind is fatal to the call.
    """

    def __init__(
        self,
        message: str,
        kind: CompletionErrorKind = CompletionErrorKind.OTHER,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        kind = CompletionErrorKind(kind)
        category = (
            ErrorCategory.RECOVERABLE
            if kind == CompletionErrorKind.RATE_LIMITED
            else ErrorCategory.FATAL
        )
        super().__init__(message, category, context, original_error)
        self.kind = kind

    @property
    def rate_limited(self) -> bool:
        return self.kind == CompletionErrorKind.RATE_LIMITED


class OperationCancelledError(FlexResearchError):
    """A cancellation token fired or a deadline passed."""

    def __init__(self, message: str = "Operation cancelled", reason: str = "cancelled"):
        super().__init__(message, ErrorCategory.FATAL, context={"reason": reason})
        self.reason = reason


class InvalidTransitionError(FlexResearchError):
    """A status change that the lifecycle does not permit."""

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            f"{entity} cannot move from {current} to {target}",
            ErrorCategory.FATAL,
            context={"entity": entity, "current": current, "target": target},
        )
        self.current = current
        self.target = target


async def handle_error(error: FlexResearchError, action_name: str = "operation") -> bool:
    """
    Handle an error based on its category.

    Args:
        error: FlexResearchError to handle
        action_name: Name of action that failed (for logging)

    Returns:
        True if execution should continue, False if should stop
    """
    if error.category == ErrorCategory.FATAL:
        console.error(f"FATAL ERROR in {action_name}:")
        console.error(str(error))
        return False

    elif error.category == ErrorCategory.DEGRADED:
        console.warning(f"DEGRADED MODE in {action_name}:")
        console.warning(str(error))
        console.warning("Continuing with reduced output...")
        return True

    elif error.category == ErrorCategory.OPTIONAL:
        console.debug(f"Optional feature unavailable ({action_name}): {error.message}")
        return True

    elif error.category == ErrorCategory.RECOVERABLE:
        console.warning(f"Recoverable error in {action_name}: {error.message}")
        # Caller responsible for retry logic
        return False

    return False
