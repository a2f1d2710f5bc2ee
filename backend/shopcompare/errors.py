"""
Error taxonomy shared by services and the HTTP layer.

Every error carries a machine-readable ``code`` and the HTTP status it maps
to; ``main.py`` renders them as ``{"error": {"code", "message", "details"}}``.
"""
from contextlib import contextmanager
from typing import Any, Optional

from fastapi import status

from .store.base import StoreError


class ServiceError(Exception):
    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_body(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"error": error}


class ValidationError(ServiceError):
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(ServiceError):
    code = "AUTH_ERROR"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str, status_code: int = status.HTTP_401_UNAUTHORIZED, details=None):
        super().__init__(message, details)
        self.status_code = status_code


class NotFoundError(ServiceError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    code = "CONFLICT"
    status_code = status.HTTP_400_BAD_REQUEST


class UpstreamError(ServiceError):
    """External provider failure (network, rate limit, bad status)."""

    code = "UPSTREAM_ERROR"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, retryable: bool = True, rate_limited: bool = False, details=None):
        super().__init__(message, details)
        self.retryable = retryable
        self.rate_limited = rate_limited
        if rate_limited:
            self.code = "RATE_LIMITED"
            self.status_code = status.HTTP_429_TOO_MANY_REQUESTS


class InternalError(ServiceError):
    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


@contextmanager
def store_errors(action: str):
    """Convert store-level failures raised inside the block to InternalError."""
    try:
        yield
    except StoreError as exc:
        raise InternalError(f"Failed to {action}") from exc
