"""Tests for the error taxonomy and category handling."""

import asyncio

from FlexResearch.infrastructure import (
    CompletionError,
    CompletionErrorKind,
    ErrorCategory,
    FlexResearchError,
    SessionNotActiveError,
    handle_error,
)


def test_completion_error_category_follows_kind():
    assert CompletionError("x", CompletionErrorKind.RATE_LIMITED).category == ErrorCategory.RECOVERABLE
    assert CompletionError("x", "rate_limited").rate_limited
    assert CompletionError("x").category == ErrorCategory.FATAL


def test_str_includes_category_and_cause():
    error = FlexResearchError("bad", ErrorCategory.DEGRADED, original_error=ValueError("root"))

    assert str(error) == "[DEGRADED] bad\nCause: root"


def test_session_not_active_context():
    error = SessionNotActiveError("s-1", "completed")

    assert error.context == {"session_id": "s-1", "status": "completed"}
    assert "completed" in error.message


def test_handle_error_by_category():
    def handled(category):
        return asyncio.run(handle_error(FlexResearchError("x", category), "test"))

    assert handled(ErrorCategory.FATAL) is False
    assert handled(ErrorCategory.DEGRADED) is True
    assert handled(ErrorCategory.OPTIONAL) is True
    assert handled(ErrorCategory.RECOVERABLE) is False
