"""
FlexResearch infrastructure: categorized errors and cooperative cancellation.
"""

from .errors import (
    ErrorCategory,
    FlexResearchError,
    SessionNotFoundError,
    SessionNotActiveError,
    ConfigNotFoundError,
    RunNotFoundError,
    CompletionErrorKind,
    CompletionError,
    OperationCancelledError,
    InvalidTransitionError,
    handle_error,
)
from .cancellation import (
    CancellationToken,
    Deadline,
    raise_if_cancelled,
    interruptible_sleep,
)

__all__ = [
    "ErrorCategory",
    "FlexResearchError",
    "SessionNotFoundError",
    "SessionNotActiveError",
    "ConfigNotFoundError",
    "RunNotFoundError",
    "CompletionErrorKind",
    "CompletionError",
    "OperationCancelledError",
    "InvalidTransitionError",
    "handle_error",
    "CancellationToken",
    "Deadline",
    "raise_if_cancelled",
    "interruptible_sleep",
]
