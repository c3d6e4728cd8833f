"""
HTTP status mapping for payment error codes.

Services report failures as ServiceResult (or raise BaseApplicationError)
with a machine-readable error_code. Views translate that code to an HTTP
status here so every endpoint answers the same way.

Usage:
    from payments.api_errors import error_response

    result = PayoutService.request(...)
    if not result.success:
        return error_response(result)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import status
from rest_framework.response import Response

if TYPE_CHECKING:
    from core.exceptions import BaseApplicationError
    from core.services import ServiceResult


ERROR_STATUS_CODES: dict[str, int] = {
    # Lookups
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PAYMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INSTALLMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "BATCH_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    # Access
    "PERMISSION_DENIED": status.HTTP_403_FORBIDDEN,
    # State conflicts
    "CONFLICT": status.HTTP_409_CONFLICT,
    "INVALID_STATE_TRANSITION": status.HTTP_409_CONFLICT,
    "INSTALLMENT_ALREADY_PAID": status.HTTP_409_CONFLICT,
    "RETRY_LIMIT_EXCEEDED": status.HTTP_409_CONFLICT,
    "DUPLICATE_DELIVERY": status.HTTP_409_CONFLICT,
    "ALREADY_ENROLLED": status.HTTP_409_CONFLICT,
    "BATCH_NOT_AVAILABLE": status.HTTP_409_CONFLICT,
    # Balance preconditions
    "INSUFFICIENT_BALANCE": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "BELOW_MINIMUM_PAYOUT": status.HTTP_422_UNPROCESSABLE_ENTITY,
    # Upstream
    "EXTERNAL_SERVICE_ERROR": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_ERROR": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_REQUEST_REJECTED": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_UNAVAILABLE": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_MALFORMED_RESPONSE": status.HTTP_502_BAD_GATEWAY,
    "PAYOUT_SETTLEMENT_FAILED": status.HTTP_502_BAD_GATEWAY,
    "ENROLLMENT_FAILED": status.HTTP_502_BAD_GATEWAY,
}


def status_for(error_code: str | None) -> int:
    """HTTP status for an error code; anything unlisted is a 400."""
    return ERROR_STATUS_CODES.get(error_code or "", status.HTTP_400_BAD_REQUEST)


def error_response(result: ServiceResult) -> Response:
    return Response(result.to_response(), status=status_for(result.error_code))


def exception_response(exc: BaseApplicationError) -> Response:
    return Response(
        {"success": False, **exc.to_dict()},
        status=status_for(exc.error_code),
    )
