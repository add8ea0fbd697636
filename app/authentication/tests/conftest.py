"""
Test configuration and fixtures for authentication tests.

Usage:
    def test_example(user, admin_user):
        assert require_admin(admin_user).user == admin_user
"""

import pytest

from authentication.tests.factories import AdminUserFactory, UserFactory


@pytest.fixture
def user(db):
    """Create a regular marketplace user."""
    return UserFactory()


@pytest.fixture
def admin_user(db):
    """Create an active platform admin."""
    return AdminUserFactory()


@pytest.fixture
def inactive_admin(db):
    """Create a deactivated admin (is_staff but not is_active)."""
    return AdminUserFactory(is_active=False)
