"""
MindCanvas Error Handling Framework.

Categorizes errors for consistent handling:
- FATAL: Stop the operation, user action required
- DEGRADED: Continue with fallback content, warn user
- OPTIONAL: Silent skip, log for debugging
- RECOVERABLE: Retry with backoff

Remote-model failures map onto the taxonomy as:
- TransportError: network failure or non-success HTTP status (recoverable)
- EmptyPayloadError: response carried no textual content (degraded)
- ResponseParseError: content is not the expected JSON (degraded)
- SchemaValidationError: JSON is missing or mistyping required fields (degraded)
- RateLimitError: governor gate tripped on the execution path (recoverable)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional, Callable, Any
import asyncio

from ..utils import console


class ErrorCategory(Enum):
    """Classifies errors for handling decisions."""
    FATAL = "fatal"
    DEGRADED = "degraded"
    OPTIONAL = "optional"
    RECOVERABLE = "recoverable"


class MindCanvasError(Exception):
    """Base exception for MindCanvas errors."""

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
        return self.message

    def describe(self) -> str:
        """Category-tagged description including the underlying cause."""
        parts = [f"[{self.category.value.upper()}] {self.message}"]
        if self.original_error:
            parts.append(f"Cause: {str(self.original_error)}")
        return "\n".join(parts)


class FatalError(MindCanvasError):
    """Stop the operation - requires user intervention."""

    def __init__(
        self,
        message: str,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, ErrorCategory.FATAL, context, original_error)


class DegradedError(MindCanvasError):
    """Continue with reduced functionality and warning."""

    def __init__(
        self,
        message: str,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, ErrorCategory.DEGRADED, context, original_error)


class OptionalError(MindCanvasError):
    """Skip silently - feature not available."""

    def __init__(
        self,
        message: str,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, ErrorCategory.OPTIONAL, context, original_error)


class RecoverableError(MindCanvasError):
    """Retry with exponential backoff."""

    def __init__(
        self,
        message: str,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
        retryable: bool = True,
    ):
        super().__init__(message, ErrorCategory.RECOVERABLE, context, original_error)
        self.retryable = retryable


# === Remote model failures ===

class TransportError(RecoverableError):
    """Network failure or non-success status from the model service."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        # Client errors other than 429 will not succeed on a second attempt
        retryable = status_code is None or status_code == 429 or status_code >= 500
        super().__init__(
            message,
            context={"status_code": status_code},
            original_error=original_error,
            retryable=retryable,
        )
        self.status_code = status_code


class EmptyPayloadError(DegradedError):
    """The model response carried no textual content."""

    def __init__(self, message: str = "No content received from model API"):
        super().__init__(message)


class ResponseParseError(DegradedError):
    """The textual payload could not be parsed as JSON."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, original_error=original_error)


class SchemaValidationError(DegradedError):
    """Parsed payload is missing required fields or has the wrong shape."""

    def __init__(self, schema: str, original_error: Optional[Exception] = None):
        super().__init__(
            f"Invalid AI response format for {schema}",
            context={"schema": schema},
            original_error=original_error,
        )
        self.schema = schema


class RateLimitError(RecoverableError):
    """The resource governor reports the request budget is exhausted."""

    def __init__(self, reset_time: Optional[datetime] = None):
        if reset_time is not None:
            message = f"Rate limit reached; retry after {reset_time.strftime('%H:%M:%S')}"
        else:
            message = "Rate limit reached"
        super().__init__(message, context={"reset_time": reset_time})
        self.reset_time = reset_time


class ClientUnavailableError(FatalError):
    """No model client is configured for this session."""

    def __init__(self, message: str = "AI service not initialized"):
        super().__init__(message)


class NotFoundError(FatalError):
    """An intention or task id does not exist in the store."""

    def __init__(self, kind: str, item_id: str):
        super().__init__(f"{kind.capitalize()} not found: {item_id}", context={kind: item_id})
        self.kind = kind
        self.item_id = item_id


class TaskAlreadyRunningError(FatalError):
    """An execution is already in flight for this task."""

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} is already executing", context={"task": task_id})
        self.task_id = task_id


REMOTE_FAILURES = (TransportError, EmptyPayloadError, ResponseParseError, SchemaValidationError)


async def handle_error(error: MindCanvasError, action_name: str = "operation") -> bool:
    """
    Report an error based on its category.

    Args:
        error: MindCanvasError to handle
        action_name: Name of action that failed (for logging)

    Returns:
        True if execution should continue, False if it should stop
    """
    if error.category == ErrorCategory.FATAL:
        console.error(f"{action_name} failed:", error.message)
        return False

    elif error.category == ErrorCategory.DEGRADED:
        console.warning(f"Degraded result in {action_name}:", error.message)
        return True

    elif error.category == ErrorCategory.OPTIONAL:
        console.debug(f"Optional feature unavailable ({action_name}): {error.message}")
        return True

    elif error.category == ErrorCategory.RECOVERABLE:
        console.warning(f"Recoverable error in {action_name}: {error.message}")
        # Caller responsible for retry logic
        return False

    return False


async def retry_with_backoff(
    func: Callable,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    action_name: str = "operation",
    sleep: Callable[[float], Any] = asyncio.sleep,
) -> Any:
    """
    Retry an async function with exponential backoff.

    Only RecoverableError instances flagged retryable are retried; anything
    else propagates on the first occurrence. After the last attempt the final
    error is re-raised unchanged.

    Args:
        func: Async function to call
        max_retries: Maximum number of attempts
        initial_delay: Initial delay in seconds
        backoff_factor: Multiplier for delay (exponential backoff)
        action_name: Name of action (for logging)
        sleep: Awaitable sleep used between attempts

    Returns:
        Result of function call
    """
    delay = initial_delay
    attempts = max(1, max_retries)

    for attempt in range(attempts):
        try:
            return await func()
        except RecoverableError as e:
            if not e.retryable or attempt >= attempts - 1:
                raise
            console.warning(
                f"{action_name} failed (attempt {attempt + 1}/{attempts}), "
                f"retrying in {delay:.1f}s..."
            )
            await sleep(delay)
            delay *= backoff_factor
