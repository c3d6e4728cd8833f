"""
Tests for payments app.

This package contains test modules for:
- test_commission.py: Commission split and rounding
- test_models.py: Order, installment and payout transition tests
- test_payment_service.py / test_installment_service.py / test_payout_service.py
- test_ledger.py: Revenue entries and teacher balance counters
- test_gateway_adapter.py: Gateway HTTP calls and signatures
- test_webhooks.py: Webhook reconciliation
- test_workers.py: Celery tasks
- test_views.py: API endpoint tests
- test_integration.py: Payment to payout journey

Usage:
    pytest payments/tests/
    pytest payments/tests/test_payout_service.py
"""
