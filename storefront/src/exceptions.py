"""
Domain exceptions for the storefront API.

Services raise these instead of HTTP exceptions. The handlers registered in
``storefront.src.middleware.errors`` turn them into JSON error responses
with the status code carried by the exception.
"""

from typing import Any, Dict, Optional

from fastapi import status


class StorefrontError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the error response body."""
        body: Dict[str, Any] = {"detail": self.message}
        if self.error_code:
            body["error_code"] = self.error_code
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(StorefrontError):
    """Malformed or inconsistent input (400)."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(StorefrontError):
    """Missing or invalid credentials (401)."""

    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(StorefrontError):
    """Authenticated but not allowed (403)."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(StorefrontError):
    """Referenced record does not exist (404)."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(StorefrontError):
    """Uniqueness or state conflict (409)."""

    status_code = status.HTTP_409_CONFLICT


class PaymentError(StorefrontError):
    """Payment provider rejected or failed the operation."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED


class ServiceUnavailableError(StorefrontError):
    """A required backing service is not configured or reachable (503)."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
