"""
Payment-specific exceptions.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Order / payout / plan lookup failures
    ├── PaymentValidationError - Malformed or out-of-range input
    ├── InstallmentNotFoundError - No installment with that number
    ├── InstallmentAlreadyPaidError - Installment was already settled
    ├── RetryLimitExceededError - Order retried too many times
    ├── InsufficientBalanceError - Payout exceeds withdrawable balance
    ├── BelowMinimumPayoutError - Payout below configured minimum
    ├── SignatureInvalidError - Gateway signature mismatch (fail closed)
    ├── DuplicateDeliveryError - Webhook already reconciled
    ├── PayoutSettlementError - Gateway payout failed after PROCESSING
    ├── EnrollmentFailedError - Enrollment collaborator refused a paid order
    └── BatchNotAvailableError - Batch unknown or closed for purchase

    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)
    AlreadyEnrolledError - Student already owns the batch (inherits ConflictError)

    GatewayError - Base for gateway HTTP failures (inherits ExternalServiceError)
    ├── GatewayRequestError - Gateway rejected the request (4xx, permanent)
    └── GatewayUnavailableError - Timeout, connection error or 5xx (transient)

Usage:
    from payments.exceptions import (
        InvalidStateTransitionError,
        PaymentValidationError,
    )

    raise PaymentValidationError(
        "Refund amount exceeds refundable balance",
        error_code="INVALID_AMOUNT",
        details={"refundable": "400.00", "requested": "500.00"},
    )

    raise InvalidStateTransitionError(
        "Cannot refund order in 'created' state",
        details={"current_state": "created", "target_state": "refunded"},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    PermissionDeniedError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Example:
        try:
            PaymentService.refund(order_id, amount, reason)
        except PaymentError as e:
            return Response(e.to_dict(), status=400)
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError):
    """
    Raised when a payment entity cannot be found.

    Use for PaymentOrder, PayoutRequest and InstallmentPlan lookups.
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class PaymentValidationError(PaymentError):
    """
    Raised when payment input validation fails.

    Use for:
    - Non-positive or over-limit amounts (error_code INVALID_AMOUNT)
    - Installment count outside 2..24
    - Unknown commission source
    - Missing required webhook fields
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class InstallmentNotFoundError(PaymentError):
    """Raised when a plan has no installment with the requested number."""

    default_error_code: str = "INSTALLMENT_NOT_FOUND"


class InstallmentAlreadyPaidError(PaymentError):
    """Raised when marking an already-paid installment as paid."""

    default_error_code: str = "INSTALLMENT_ALREADY_PAID"


class RetryLimitExceededError(PaymentError):
    """Raised when a failed/cancelled order has used all of its retries."""

    default_error_code: str = "RETRY_LIMIT_EXCEEDED"


class InsufficientBalanceError(PaymentError):
    """
    Raised when a payout request exceeds the teacher's withdrawable balance.

    details carries "available" and "requested" as decimal strings.
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"


class BelowMinimumPayoutError(PaymentError):
    """Raised when a payout request is below PAYMENTS_MIN_PAYOUT_AMOUNT."""

    default_error_code: str = "BELOW_MINIMUM_PAYOUT"


class SignatureInvalidError(PaymentError):
    """
    Raised when a gateway signature does not match.

    Always fail closed: nothing from the payload may be processed.
    """

    default_error_code: str = "SIGNATURE_INVALID"


class DuplicateDeliveryError(PaymentError):
    """
    Raised internally when a webhook for an already-reconciled gateway
    order arrives again.

    Callers acknowledge it as a success; it is never surfaced to the
    gateway as a failure.
    """

    default_error_code: str = "DUPLICATE_DELIVERY"


class PayoutSettlementError(PaymentError):
    """
    Raised when the gateway payout call fails after the request entered
    PROCESSING.

    The request is left in PROCESSING because money may already have
    moved. Never retried automatically.
    """

    default_error_code: str = "PAYOUT_SETTLEMENT_FAILED"


# =============================================================================
# State Exceptions
# =============================================================================


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed with the current and
    attempted states so the API can explain the conflict.

    Example:
        try:
            order.refund_full()
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot refund order in '{order.state}' state",
                details={"current_state": order.state, "target_state": "refunded"},
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


class AlreadyEnrolledError(ConflictError):
    """Raised when a student tries to buy a batch they are already enrolled in."""

    default_error_code: str = "ALREADY_ENROLLED"


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(ExternalServiceError):
    """
    Base exception for payment gateway failures.

    Attributes:
        status_code: HTTP status returned by the gateway, if any
        is_retryable: Whether repeating the same call may succeed
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code


class GatewayRequestError(GatewayError):
    """
    The gateway rejected the request (HTTP 4xx).

    Permanent: repeating the same request will fail the same way.
    """

    default_error_code: str = "GATEWAY_REQUEST_REJECTED"
    is_retryable: bool = False


class GatewayUnavailableError(GatewayError):
    """
    The gateway timed out, refused the connection or returned 5xx.

    Transient for order creation. For payouts the outcome is unknown,
    so it is still surfaced for manual reconciliation.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class EnrollmentFailedError(PaymentError):
    """
    Raised when the enrollment collaborator refuses a paid order.

    Rolls back the payment confirmation so the gateway redelivers it.
    """

    default_error_code: str = "ENROLLMENT_FAILED"


class BatchNotAvailableError(PaymentError):
    """Raised when a batch is unknown to the catalogue or closed for purchase."""

    default_error_code: str = "BATCH_NOT_AVAILABLE"


# Errors services report as ServiceResult failures instead of raising.
# GatewayError and PayoutSettlementError always propagate.
BUSINESS_ERRORS: tuple[type[BaseApplicationError], ...] = (
    PaymentNotFoundError,
    PaymentValidationError,
    InstallmentNotFoundError,
    InstallmentAlreadyPaidError,
    RetryLimitExceededError,
    InsufficientBalanceError,
    BelowMinimumPayoutError,
    SignatureInvalidError,
    EnrollmentFailedError,
    BatchNotAvailableError,
    AlreadyEnrolledError,
    InvalidStateTransitionError,
    PermissionDeniedError,
)
