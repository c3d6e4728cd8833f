"""
Tests for authentication app.

This package contains test modules for:
- test_managers.py: UserManager tests
- test_permissions.py: Role permission classes
- test_views.py: Login, token refresh and current user endpoints

Usage:
    pytest authentication/tests/
"""
