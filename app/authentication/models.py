"""
Authentication models.

This module defines the marketplace user:
- User: Custom user model with email-based authentication

The admin role is the ``is_staff`` flag. Admin-only operations check it
through authentication.capabilities.require_admin rather than reading the
flag directly.

Related files:
    - managers.py: Custom user manager for email-based creation
    - capabilities.py: Admin capability check
"""

from __future__ import annotations

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from authentication.managers import UserManager


class User(UUIDPrimaryKeyMixin, AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Every marketplace participant (buyer, seller, platform admin) is a User.
    A UUID primary key lets ledger accounts reference users by owner_id.

    Fields:
        email: Primary identifier, unique, used for login
        display_name: Name shown to counterparties in notifications
        payout_phone_number: Default M-Pesa number for seller withdrawals
        is_active: Whether the user account is active
        is_staff: Platform admin role
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        seller = User.objects.create_user(
            email="seller@example.com",
            password="securepassword",
            payout_phone_number="0712345678",
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )

    display_name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Name shown to other marketplace users",
    )

    payout_phone_number = models.CharField(
        max_length=20,
        blank=True,
        default="",
        help_text="Default M-Pesa phone number used for seller withdrawals",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Platform admin: may resolve disputes and withdraw platform fees.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.display_name or self.email

    def get_short_name(self):
        return self.display_name or self.email.split("@")[0]
