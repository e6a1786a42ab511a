"""Exceptions raised by the generation layer.

``FatalRequestError`` is never retried. Everything under
``RetryableTransientError`` is retried with backoff until the budget is spent,
at which point the caller sees ``PhaseExhaustedError``.
"""

from __future__ import annotations

from focusgroup.exceptions import FocusGroupError


class LLMError(FocusGroupError):
    """Base exception for generation-related errors."""


class GenerationServiceError(LLMError):
    """Raised by a generation backend, tagged with an HTTP-like status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        prefix = f"[{status}] " if status is not None else ""
        super().__init__(f"{prefix}{message}")


class FatalRequestError(LLMError):
    """The request itself is malformed; retrying cannot fix it."""

    def __init__(self, context: str, cause: BaseException) -> None:
        self.context = context
        self.cause = cause
        super().__init__(f"Fatal API error (400) in {context}: {cause}")


class RetryableTransientError(LLMError):
    """A failure that a fresh attempt may not repeat."""


class RequestTimeoutError(RetryableTransientError):
    """The generation call did not finish within its timeout."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Request timed out after {timeout:.1f}s")


class EmptyResponseError(RetryableTransientError):
    """The backend answered without any text."""

    def __init__(self) -> None:
        super().__init__("Empty response text from API")


class ResponseValidationError(RetryableTransientError):
    """The response text was rejected by the caller's validator."""


class ResponseParseError(RetryableTransientError):
    """No structured value could be recovered from the response text."""

    def __init__(self, context: str, reason: str) -> None:
        self.context = context
        self.reason = reason
        super().__init__(f"Failed to parse JSON in {context}: {reason}")


class PhaseExhaustedError(LLMError):
    """All retry attempts for one unit of work failed."""

    def __init__(self, context: str, attempts: int, last_error: BaseException | None) -> None:
        self.context = context
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed after {attempts} attempts in {context}. Last error: {last_error}")
