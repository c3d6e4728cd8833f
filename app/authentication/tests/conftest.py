"""
Test configuration and fixtures for authentication tests.
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import AdminFactory, StudentFactory, TeacherFactory


@pytest.fixture
def student(db):
    """Create a student."""
    return StudentFactory()


@pytest.fixture
def teacher(db):
    """Create a teacher."""
    return TeacherFactory()


@pytest.fixture
def platform_admin(db):
    """Create a platform admin."""
    return AdminFactory()


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    return APIClient()
