"""
Webhook endpoint view for the payment gateway.

The view authenticates and reconciles the delivery synchronously, inside
one database transaction, and answers the gateway with the outcome:

- 200 processed / duplicate / ignored
- 200 rejected: signature invalid (logged and acknowledged, never processed)
- 400: malformed payload
- 404: unknown gateway order id (redelivery lets it race order creation)
- 409 / 502: the order could not take the transition
- 500: unexpected error

Usage:
    # In urls.py
    from payments.webhooks.views import gateway_webhook

    urlpatterns = [
        path("webhooks/gateway/", gateway_webhook, name="gateway_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.exceptions import BaseApplicationError

from payments.api_errors import status_for
from payments.exceptions import SignatureInvalidError
from payments.webhooks.handlers import WebhookReconciler


logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"


@csrf_exempt
@require_POST
def gateway_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and reconcile a gateway webhook delivery.

    Security:
    - HMAC signature over timestamp + raw body, constant-time compare
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Idempotency:
    - GatewayTransaction.gateway_order_id is unique
    - Redeliveries of a reconciled order return 200 "duplicate"
    """
    signature = request.headers.get(SIGNATURE_HEADER, "")
    timestamp = request.headers.get(TIMESTAMP_HEADER, "")

    try:
        outcome = WebhookReconciler.handle_webhook(request.body, signature, timestamp)
    except SignatureInvalidError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error_code": e.error_code, "error": e.message},
        )
        return JsonResponse({"status": "rejected", "error_code": e.error_code}, status=200)
    except BaseApplicationError as e:
        response_status = status_for(e.error_code)
        logger.warning(
            "Webhook not reconciled",
            extra={"error_code": e.error_code, "error": e.message, "status": response_status},
        )
        return JsonResponse(e.to_dict(), status=response_status)
    except Exception as e:
        logger.error(
            f"Unexpected error reconciling webhook: {type(e).__name__}",
            exc_info=True,
        )
        return JsonResponse({"error": "Internal error", "error_code": "INTERNAL_ERROR"}, status=500)

    return JsonResponse(outcome.to_dict(), status=200)
