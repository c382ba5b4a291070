"""
MindCanvas Infrastructure Layer.

Error taxonomy and retry policy shared by the model client, the
orchestrator and the execution engine.
"""

from .errors import (
    ErrorCategory,
    MindCanvasError,
    FatalError,
    DegradedError,
    OptionalError,
    RecoverableError,
    TransportError,
    EmptyPayloadError,
    ResponseParseError,
    SchemaValidationError,
    RateLimitError,
    ClientUnavailableError,
    NotFoundError,
    TaskAlreadyRunningError,
    REMOTE_FAILURES,
    handle_error,
    retry_with_backoff,
)

__all__ = [
    "ErrorCategory",
    "MindCanvasError",
    "FatalError",
    "DegradedError",
    "OptionalError",
    "RecoverableError",
    "TransportError",
    "EmptyPayloadError",
    "ResponseParseError",
    "SchemaValidationError",
    "RateLimitError",
    "ClientUnavailableError",
    "NotFoundError",
    "TaskAlreadyRunningError",
    "REMOTE_FAILURES",
    "handle_error",
    "retry_with_backoff",
]
