"""Application error taxonomy.

Every failure the API reports maps to exactly one ``ErrorKind``; the kind
carries the stable string code and HTTP status used in the error envelope.
Subclasses of ``AppError`` only pick a kind and a default message, the
formatting boundary looks at ``exc.kind`` alone.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Closed set of error kinds, each carrying ``(code, http_status)``."""

    VALIDATION_ERROR = ("VALIDATION_ERROR", 400)
    FILE_PROCESSING_ERROR = ("FILE_PROCESSING_ERROR", 400)
    INVALID_REQUEST = ("INVALID_REQUEST", 400)
    AUTHENTICATION_ERROR = ("AUTHENTICATION_ERROR", 401)
    AUTHENTICATION_REQUIRED = ("AUTHENTICATION_REQUIRED", 401)
    INVALID_TOKEN = ("INVALID_TOKEN", 401)
    AUTHORIZATION_ERROR = ("AUTHORIZATION_ERROR", 403)
    FORBIDDEN = ("FORBIDDEN", 403)
    NOT_FOUND = ("NOT_FOUND", 404)
    CONFLICT = ("CONFLICT", 409)
    PAYLOAD_TOO_LARGE = ("PAYLOAD_TOO_LARGE", 413)
    RATE_LIMIT_EXCEEDED = ("RATE_LIMIT_EXCEEDED", 429)
    DATABASE_ERROR = ("DATABASE_ERROR", 500)
    INTERNAL_ERROR = ("INTERNAL_ERROR", 500)
    EXTERNAL_SERVICE_ERROR = ("EXTERNAL_SERVICE_ERROR", 502)

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def status_code(self) -> int:
        return self.value[1]

    @property
    def is_authentication(self) -> bool:
        return self in _AUTHENTICATION_KINDS


_AUTHENTICATION_KINDS = frozenset(
    {
        ErrorKind.AUTHENTICATION_ERROR,
        ErrorKind.AUTHENTICATION_REQUIRED,
        ErrorKind.INVALID_TOKEN,
    }
)


class PipelineError(Exception):
    """Base for all pipeline exceptions."""


class AppError(PipelineError):
    """Known failure with a stable code, HTTP status and optional details."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    @property
    def code(self) -> str:
        return self.kind.code

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    """Request failed validation (400)."""

    def __init__(
        self, message: str = "Validation failed", *, details: Any | None = None
    ) -> None:
        super().__init__(ErrorKind.VALIDATION_ERROR, message, details=details)


class FileProcessingError(AppError):
    """Uploaded file could not be processed (400)."""

    def __init__(
        self, message: str = "File processing failed", *, details: Any | None = None
    ) -> None:
        super().__init__(ErrorKind.FILE_PROCESSING_ERROR, message, details=details)


class AuthenticationError(AppError):
    """Authentication check failed (401)."""

    def __init__(
        self,
        message: str = "Authentication failed",
        *,
        kind: ErrorKind = ErrorKind.AUTHENTICATION_ERROR,
        details: Any | None = None,
    ) -> None:
        super().__init__(kind, message, details=details)


class AuthorizationError(AppError):
    """Caller is authenticated but not allowed (403)."""

    def __init__(
        self, message: str = "Access denied", *, details: Any | None = None
    ) -> None:
        super().__init__(ErrorKind.AUTHORIZATION_ERROR, message, details=details)


class NotFoundError(AppError):
    """Resource does not exist (404)."""

    def __init__(self, resource: str = "Resource", *, details: Any | None = None) -> None:
        super().__init__(ErrorKind.NOT_FOUND, f"{resource} not found", details=details)


class ConflictError(AppError):
    """Resource conflict (409)."""

    def __init__(
        self, message: str = "Resource conflict", *, details: Any | None = None
    ) -> None:
        super().__init__(ErrorKind.CONFLICT, message, details=details)


class RateLimitExceeded(AppError):
    """Rate limit exceeded (429)."""

    def __init__(self, retry_after: int) -> None:
        super().__init__(
            ErrorKind.RATE_LIMIT_EXCEEDED,
            f"Rate limit exceeded. Retry after {retry_after} seconds",
            details={"retryAfter": retry_after},
        )
        self.retry_after = retry_after


class DatabaseError(AppError):
    """Persistence layer failure (500)."""

    def __init__(
        self, message: str = "Database operation failed", *, details: Any | None = None
    ) -> None:
        super().__init__(ErrorKind.DATABASE_ERROR, message, details=details)


class ExternalServiceError(AppError):
    """Downstream service failure (502)."""

    def __init__(
        self,
        service: str,
        message: str = "External service error",
        *,
        details: Any | None = None,
    ) -> None:
        super().__init__(
            ErrorKind.EXTERNAL_SERVICE_ERROR, f"{service}: {message}", details=details
        )
        self.service = service


class InternalError(AppError):
    """Unexpected internal failure (500)."""

    def __init__(
        self, message: str = "An unexpected error occurred", *, details: Any | None = None
    ) -> None:
        super().__init__(ErrorKind.INTERNAL_ERROR, message, details=details)
