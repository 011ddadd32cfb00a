"""
NoteGenius Backend — Custom Exception Hierarchy
=================================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Each failure class maps to one HTTP status and one user-facing message,
       so the note, auth and summarization paths share a single failure policy.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services, dependencies and middleware; caught by global handlers.

Exception Hierarchy:
    NoteGeniusError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── AuthenticationError      → 401 Unauthorized
    ├── NotFoundError            → 404 Not Found (missing or not owned)
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── ConfigurationError       → 500 Internal Server Error (descriptive)
    ├── DatabaseError            → 500 Internal Server Error (generic)
    ├── AuthProviderError        → 503 Service Unavailable
    └── SummarizationError       → 503 (500 {"error"} on /api/summarize)
        └── CircuitBreakerOpenError
"""

from typing import Any, Dict, Optional


class NoteGeniusError(Exception):
    """
    Base exception for all NoteGenius application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NoteGeniusError):
    """
    Raised when client input fails a business rule.

    When:    Empty note title/content, update without any field.
    HTTP:    400 Bad Request

    Also raised by the json_body() dependency when a request body fails its
    schema, which happens before any network or database call. Schema
    failures FastAPI detects itself (RequestValidationError) are mapped to
    the same 400 response.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(NoteGeniusError):
    """
    Raised when a request needs a signed-in user and has none, or when the
    identity provider rejects credentials (wrong password, bad OAuth code).

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Authentication required. Please sign in.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(NoteGeniusError):
    """
    Raised when a requested resource does not exist.

    Notes owned by another user are reported the same way: row-level
    security hides them, so from the caller's side they do not exist.

    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConfigurationError(NoteGeniusError):
    """
    Raised when a required setting (API key, provider URL) is missing.

    HTTP:    500 Internal Server Error
    Unlike DatabaseError, the message IS returned to the caller: it names
    the missing setting and nothing secret.
    """

    def __init__(
        self,
        message: str = "The service is not configured correctly",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(NoteGeniusError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic.
        Detailed error info (SQL, constraint names) is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthProviderError(NoteGeniusError):
    """
    Raised when the identity provider cannot be reached or answers with a
    server error.

    HTTP:    503 Service Unavailable
    """

    def __init__(
        self,
        message: str = "The sign-in service is temporarily unavailable. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class SummarizationError(NoteGeniusError):
    """
    Raised when Gemini fails to produce a summary.

    What:    Transport error, API error, blocked or unexpected response shape.
    HTTP:    503 Service Unavailable; `/api/summarize` answers
             500 {"error": "Failed to summarize text"} to keep its contract.
    No retry is attempted.
    """

    def __init__(
        self,
        message: str = "Failed to summarize text. Please try again later.",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(SummarizationError):
    """
    Raised when the summarization circuit breaker is OPEN.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After threshold failures → OPEN (reject all calls for recovery_time seconds)
        → After recovery_time → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED
        → If test fails → OPEN again
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI summarization is temporarily unavailable due to repeated failures. "
            f"The service will automatically retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, retry_after=recovery_time, context=ctx)
        self.recovery_time = recovery_time


class RateLimitExceededError(NoteGeniusError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:    429 Too Many Requests
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
