"""
Payments app configuration.

This app provides the money side of the LMS:
- Payment orders with a frozen platform/teacher commission split
- Installment (EMI) plans with overdue tracking
- Revenue ledger and teacher balances
- Teacher payouts settled through the payment gateway
- Webhook reconciliation of gateway payment events
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
