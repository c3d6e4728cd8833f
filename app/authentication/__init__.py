"""
Authentication application.

Provides the email-based User model with a platform role (student,
teacher, admin) and the DRF permission classes that gate money-moving
endpoints on that role.

Usage:
    from authentication.models import User, UserRole
    from authentication.permissions import IsPlatformAdmin, IsTeacher
"""
