"""
Enrollments app configuration.
"""

from django.apps import AppConfig


class EnrollmentsConfig(AppConfig):
    """Configuration for the enrollments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "enrollments"
    verbose_name = "Enrollments"
