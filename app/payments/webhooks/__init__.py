"""
Webhook handling for payment events from the gateway.

This module provides the view and the reconciler that apply gateway
webhooks. Deliveries are verified, deduplicated on the gateway order id
and applied synchronously in one transaction.

Usage:
    # In urls.py
    from payments.webhooks.views import gateway_webhook

    urlpatterns = [
        path("webhooks/gateway/", gateway_webhook, name="gateway_webhook"),
    ]
"""

from payments.webhooks.handlers import WebhookOutcome, WebhookReconciler, register_handler
from payments.webhooks.views import gateway_webhook

__all__ = [
    "WebhookOutcome",
    "WebhookReconciler",
    "gateway_webhook",
    "register_handler",
]
