"""Classified errors shared by every InternQuest operation.

Core operations raise ServiceError; the API layer is the only place that
turns it into an HTTP status or a callable error envelope.
"""
from __future__ import annotations
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Fixed error taxonomy for administrative operations."""

    UNAUTHENTICATED = "UNAUTHENTICATED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    NOT_FOUND = "NOT_FOUND"
    FAILED_PRECONDITION = "FAILED_PRECONDITION"
    INTERNAL = "INTERNAL"


HTTP_STATUS = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.FAILED_PRECONDITION: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.INTERNAL: 500,
}


class ServiceError(Exception):
    """Operation failure with an error kind and a human-readable message."""

    def __init__(self, kind: ErrorKind, message: str, details: Optional[dict[str, Any]] = None):
        self.kind = ErrorKind(kind)
        self.message = message
        self.details = details
        super().__init__(message)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.kind]

    def to_dict(self) -> dict:
        """Convert to the callable error envelope body."""
        error = {"status": self.kind.value, "message": self.message}
        if self.details:
            error["details"] = self.details
        return error

    def __repr__(self) -> str:
        return f"ServiceError({self.kind.value}, {self.message!r})"


def wrap_internal(prefix: str, exc: BaseException) -> ServiceError:
    """Wrap an unclassified collaborator failure as INTERNAL.

    The collaborator's code and message are embedded for operator diagnosis.
    Callers must never pass exceptions whose message carries secret material.
    """
    code = getattr(exc, "code", None) or "unknown"
    message = str(exc) or "Unknown error occurred"
    return ServiceError(ErrorKind.INTERNAL, f"{prefix}: {message} ({code})")
