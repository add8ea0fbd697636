"""
Tests for UserManager.

Covers email-based creation, superuser flags and the admins() query used
to address dispute alerts.
"""

import pytest

from authentication.models import User
from authentication.tests.factories import AdminUserFactory, UserFactory


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        """
        Given valid email and password
        When create_user is called
        Then a user is created with a UUID id and usable password
        """
        user = User.objects.create_user(email="mgr@example.com", password="SecurePass123!")

        assert user.pk is not None
        assert user.check_password("SecurePass123!") is True
        assert user.is_staff is False

    def test_normalizes_email_domain(self, db):
        """Domain part of the email is lower-cased."""
        user = User.objects.create_user(email="Seller@EXAMPLE.COM", password="x")

        assert user.email == "Seller@example.com"

    def test_missing_email_raises(self, db):
        """An empty email is rejected."""
        with pytest.raises(ValueError, match="Email"):
            User.objects.create_user(email="", password="x")

    def test_without_password_sets_unusable_password(self, db):
        """Users created without a password cannot log in with one."""
        user = User.objects.create_user(email="nopw@example.com")

        assert user.has_usable_password() is False

    def test_stores_payout_phone_number(self, db):
        """Extra fields such as the payout phone are persisted."""
        user = User.objects.create_user(
            email="phone@example.com", payout_phone_number="0712345678"
        )

        user.refresh_from_db()
        assert user.payout_phone_number == "0712345678"


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_superuser_is_staff(self, db):
        admin = User.objects.create_superuser(email="root@example.com", password="x")

        assert admin.is_staff is True
        assert admin.is_superuser is True

    def test_superuser_rejects_is_staff_false(self, db):
        with pytest.raises(ValueError, match="is_staff"):
            User.objects.create_superuser(
                email="bad@example.com", password="x", is_staff=False
            )


class TestUserManagerAdmins:
    """Tests for UserManager.admins()."""

    def test_returns_only_active_staff(self, db):
        active_admin = AdminUserFactory()
        AdminUserFactory(is_active=False)
        UserFactory()

        assert list(User.objects.admins()) == [active_admin]
