"""
Error types for the document Q&A system.

USER-FACING ERRORS (AppError subclasses):
Each carries an HTTP-style status and a stable error code so the UI (or any
API layer put in front of the pipeline) can report failures consistently:

    raise ValidationError("Question is required")
    raise NotFoundError("Document")
    raise ExternalServiceError("Embedding service", original_error)

DATA-INTEGRITY ERRORS:
VectorLengthMismatchError is raised by the similarity ranker when two
vectors of different dimensionality are compared. It is a programming or
storage error, not something the user can fix.
"""

from typing import Any, Dict, Optional, Tuple

import structlog

logger = structlog.get_logger()


class AppError(Exception):
    """Base class for all application errors with a status and error code."""

    def __init__(self, message: str, status: int, code: str):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code

    def to_dict(self) -> Dict[str, str]:
        """Consistent JSON-ready shape for error responses."""
        return {"error": self.message, "code": self.code}


class ValidationError(AppError):
    """400 - invalid input from the client."""

    def __init__(self, message: str):
        super().__init__(message, 400, "VALIDATION_ERROR")


class NotFoundError(AppError):
    """404 - requested resource does not exist."""

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", 404, "NOT_FOUND")


class RateLimitError(AppError):
    """429 - client has sent too many requests."""

    def __init__(self):
        super().__init__(
            "Too many requests. Please try again later.", 429, "RATE_LIMIT_EXCEEDED"
        )


class ExternalServiceError(AppError):
    """500 - a remote model call (embeddings, answers) failed for good."""

    def __init__(self, service: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"{service} is currently unavailable. Please try again.",
            500,
            "EXTERNAL_SERVICE_ERROR",
        )
        self.service = service
        self.cause = cause


class VectorLengthMismatchError(ValueError):
    """Two vectors of different length were compared."""

    def __init__(self, left: int, right: int):
        super().__init__(f"Vector length mismatch: {left} vs {right}")
        self.left = left
        self.right = right


def to_error_response(error: Any) -> Tuple[Dict[str, str], int]:
    """
    Convert any raised value into (body, status).

    Known AppErrors keep their status; everything else becomes a generic 500
    and is logged, since it indicates a bug rather than bad input.
    """
    if isinstance(error, AppError):
        return error.to_dict(), error.status

    logger.error(
        "unhandled_error",
        error=str(error),
        error_type=type(error).__name__,
    )
    return (
        {
            "error": "An unexpected error occurred. Please try again.",
            "code": "INTERNAL_ERROR",
        },
        500,
    )
