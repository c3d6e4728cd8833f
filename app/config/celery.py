"""
Celery configuration for the Django application.

Celery runs the payment background jobs:
- sweep_overdue_installments: marks installments past their grace period
- clear_pending_revenue: makes cleared teacher revenue withdrawable

Schedules live in the database (django-celery-beat) and are created by
the payments data migrations. Redis is both broker and result backend.
Tasks are auto-discovered from the tasks.py module of each installed app.

Usage:
    # Run worker and scheduler
    celery -A config worker -l info
    celery -A config beat -l info

    # Trigger a job by hand
    from payments.tasks import sweep_overdue_installments
    sweep_overdue_installments.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
