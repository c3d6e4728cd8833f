"""
Payments app for course purchases, revenue sharing and teacher payouts.

This app handles:
- Checkout through the payment gateway (orders, retries, refunds)
- Installment plans and their scheduled payments
- Commission split between platform and teacher
- Revenue clearance and teacher payout settlement
- Gateway webhook reconciliation

Related apps:
    - authentication: User model and roles (student, teacher, admin)
    - enrollments: Batch catalogue (price, teacher) and the access granted
      once money is collected

Usage:
    from payments.services import PaymentService

    # Start a checkout
    result = PaymentService.create_order_for_batch(payer=student, batch_id="batch-42")
    payment_link = result.data.payment_link

    # Handle a webhook
    WebhookReconciler.handle_webhook(raw_body, signature, timestamp)
"""
