"""
Tests for UserManager and role helpers on User.

Related files:
    - managers.py: Implementation under test
    - models.py: User model that uses this manager
"""

import pytest

from authentication.models import User, UserRole


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        """
        Given valid email and password
        When create_user is called
        Then a user is created with those credentials
        """
        user = User.objects.create_user(email="mgr@example.com", password="SecurePass123!")

        assert user.pk is not None
        assert user.email == "mgr@example.com"
        assert user.check_password("SecurePass123!") is True

    def test_defaults_to_student_role(self, db):
        """New users are students unless a role is passed."""
        user = User.objects.create_user(email="role@example.com", password="pw")

        assert user.role == UserRole.STUDENT
        assert user.is_student is True
        assert user.is_teacher is False

    def test_normalizes_email_domain_to_lowercase(self, db):
        """The domain part of the email is lowercased."""
        user = User.objects.create_user(email="Test.User@EXAMPLE.COM", password="pw")

        assert user.email == "Test.User@example.com"

    def test_raises_valueerror_when_email_is_empty(self, db):
        """An empty email is rejected."""
        with pytest.raises(ValueError) as exc_info:
            User.objects.create_user(email="", password="pw")

        assert "Email field must be set" in str(exc_info.value)

    def test_user_without_password_has_unusable_password(self, db):
        """Omitting the password leaves an unusable password hash."""
        user = User.objects.create_user(email="nopw@example.com")

        assert user.has_usable_password() is False


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_superuser_gets_admin_role(self, db):
        """Superusers are platform admins."""
        admin = User.objects.create_superuser(email="root@example.com", password="pw")

        assert admin.is_staff is True
        assert admin.is_superuser is True
        assert admin.role == UserRole.ADMIN
        assert admin.is_platform_admin is True

    def test_rejects_superuser_without_staff_flag(self, db):
        """is_staff=False is not allowed for superusers."""
        with pytest.raises(ValueError):
            User.objects.create_superuser(
                email="bad@example.com", password="pw", is_staff=False
            )
