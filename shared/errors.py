"""
Shared error handling for the PoP Access service.

Exceptions in this module belong to the transport layer. The verification
and replay components return typed results; only the request handlers turn
a rejection into one of these exceptions, and the base service renders them.
"""

from typing import Dict, Any, Optional

from opentelemetry import trace


def current_trace_id() -> Optional[str]:
    """Return the active trace id as hex, if a recording span is present."""
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        span_context = current_span.get_span_context()
        if span_context.trace_id != 0:
            return f"{span_context.trace_id:032x}"
    return None


class AccessLayerException(Exception):
    """Base exception for PoP Access services."""

    status_code: int = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.headers = headers or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def response_headers(self) -> Dict[str, str]:
        """Headers to attach when rendering this error."""
        headers = {"X-Error-Code": self.code, **self.headers}
        trace_id = current_trace_id()
        if trace_id:
            headers["X-Trace-Id"] = trace_id
        return headers


class AuthenticationError(AccessLayerException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            "AUTHENTICATION_ERROR",
            message,
            details,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ReplayDetectedError(AccessLayerException):
    """A previously accepted token was presented again."""

    status_code = 400

    def __init__(self, message: str = "Replay detected!", details: Optional[Dict[str, Any]] = None):
        super().__init__("REPLAY_DETECTED", message, details)


class ValidationError(AccessLayerException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ServiceError(AccessLayerException):
    """Service-related errors."""

    status_code = 500

    def __init__(self, message: str = "Service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("SERVICE_ERROR", message, details)
