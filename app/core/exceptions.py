"""
Base exception classes for application-wide error handling.

Every domain error carries a human message, a machine-readable
error_code and an optional details dict, so views can turn any of them
into a consistent JSON body.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed or out-of-range input
    ├── NotFoundError - Resource not found
    ├── PermissionDeniedError - Caller may not perform the action
    ├── ConflictError - Operation conflicts with current state
    └── ExternalServiceError - Third-party service failures

Usage:
    from core.exceptions import ValidationError

    raise ValidationError(
        "Refund exceeds refundable amount",
        error_code="INVALID_AMOUNT",
        details={"refundable": "400.00", "requested": "500.00"},
    )

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=400)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, amounts, ids)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Payment order not found",
                "error_code": "PAYMENT_NOT_FOUND",
                "details": {"payment_order_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when service-layer input validation fails.

    Serializer-level validation stays with DRF; this covers rules that
    need domain context (refundable amount, installment count range).
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """Raised when a single expected resource does not exist."""

    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller lacks permission for an operation.

    Authentication failures stay with DRF (AuthenticationFailed); this is
    for authorization decided inside a service, e.g. a teacher trying to
    cancel another teacher's payout.
    """

    default_error_code: str = "PERMISSION_DENIED"


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Typical causes are invalid state transitions and unique constraint
    collisions. Maps to HTTP 409.
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Log the original error; do not expose raw provider responses to
    clients. Maps to HTTP 502.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
