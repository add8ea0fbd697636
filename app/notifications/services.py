"""
Notification service layer.

This module provides the business logic for the notification system.

Services:
    NotificationService: Notification creation and read status management

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Payment flows notify after their transaction commits, and a failed
      notification never undoes a committed payment change

Usage:
    from notifications.services import NotificationService

    # Create a notification
    result = NotificationService.create_notification(
        recipient=seller,
        type_key=NotificationType.PAYMENT_RELEASED,
        title="Payment released",
        body="KES 900.00 was added to your balance.",
        payment_id=payment.id,
    )

    # Notify every admin once the surrounding transaction commits
    NotificationService.notify_admins_on_commit(
        type_key=NotificationType.DISPUTE_FILED,
        title="New dispute",
        body="A dispute was filed.",
        payment_id=payment.id,
    )
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult

from notifications.models import Notification

if TYPE_CHECKING:
    from authentication.models import User


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        create_notification: Create a new notification
        notify_on_commit: Create a notification after the current transaction commits
        notify_admins: Create one notification per active admin
        notify_admins_on_commit: notify_admins after commit
        mark_as_read: Mark a single notification as read
        mark_all_as_read: Mark all user's unread notifications as read
    """

    @classmethod
    def create_notification(
        cls,
        recipient: User,
        type_key: str,
        title: str,
        body: str = "",
        data: dict | None = None,
        actor: User | None = None,
        payment_id: uuid.UUID | None = None,
        dispute_id: uuid.UUID | None = None,
        withdrawal_id: uuid.UUID | None = None,
        idempotency_key: str | None = None,
    ) -> ServiceResult[Notification]:
        """
        Create a new notification for a user.

        Returns:
            ServiceResult with created Notification if successful

        Error codes:
            DUPLICATE: Notification with this idempotency_key already exists
        """
        if idempotency_key and Notification.objects.filter(
            idempotency_key=idempotency_key
        ).exists():
            cls.get_logger().info(
                "Duplicate notification prevented",
                extra={"idempotency_key": idempotency_key},
            )
            return ServiceResult.failure(
                f"Notification with idempotency_key already exists: {idempotency_key}",
                error_code="DUPLICATE",
            )

        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    recipient=recipient,
                    actor=actor,
                    type_key=type_key,
                    title=title,
                    body=body,
                    data=data or {},
                    payment_id=payment_id,
                    dispute_id=dispute_id,
                    withdrawal_id=withdrawal_id,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            # Concurrent creator won the unique idempotency key
            return ServiceResult.failure(
                f"Notification with idempotency_key already exists: {idempotency_key}",
                error_code="DUPLICATE",
            )

        cls.get_logger().info(
            f"Created notification {notification.id} of type {type_key} "
            f"for user {recipient.id}"
        )
        return ServiceResult.success(notification)

    @classmethod
    def notify_admins(cls, type_key: str, title: str, body: str = "", **kwargs) -> int:
        """
        Create the same notification for every active admin.

        Returns:
            Number of notifications created
        """
        created = 0
        for admin in get_user_model().objects.admins():
            admin_kwargs = dict(kwargs)
            key = admin_kwargs.pop("idempotency_key", None)
            result = cls.create_notification(
                recipient=admin,
                type_key=type_key,
                title=title,
                body=body,
                idempotency_key=f"{key}:{admin.id}" if key else None,
                **admin_kwargs,
            )
            if result.success:
                created += 1
        return created

    @classmethod
    def notify_on_commit(cls, recipient: User, type_key: str, title: str, **kwargs) -> None:
        """Queue create_notification to run after the current transaction commits."""
        transaction.on_commit(
            lambda: cls._deliver_best_effort(
                cls.create_notification,
                recipient=recipient,
                type_key=type_key,
                title=title,
                **kwargs,
            )
        )

    @classmethod
    def notify_admins_on_commit(cls, type_key: str, title: str, **kwargs) -> None:
        """Queue notify_admins to run after the current transaction commits."""
        transaction.on_commit(
            lambda: cls._deliver_best_effort(
                cls.notify_admins, type_key=type_key, title=title, **kwargs
            )
        )

    @classmethod
    def _deliver_best_effort(cls, func, **kwargs) -> None:
        try:
            func(**kwargs)
        except Exception:
            cls.get_logger().error(
                "Failed to create notification",
                extra={"type_key": kwargs.get("type_key")},
                exc_info=True,
            )

    @classmethod
    def mark_as_read(
        cls,
        notification: Notification,
        user: User,
    ) -> ServiceResult[Notification]:
        """
        Mark a single notification as read.

        Validates that the user owns the notification before marking.
        Operation is idempotent - marking an already-read notification succeeds.

        Error codes:
            NOT_OWNER: User doesn't own the notification
        """
        if notification.recipient_id != user.id:
            cls.get_logger().warning(
                f"User {user.id} attempted to mark notification {notification.id} "
                f"owned by user {notification.recipient_id}"
            )
            return ServiceResult.failure(
                "Cannot mark notification you don't own",
                error_code="NOT_OWNER",
            )

        if not notification.is_read:
            notification.mark_read()
            notification.save(update_fields=["is_read", "read_at", "updated_at"])

        return ServiceResult.success(notification)

    @classmethod
    def mark_all_as_read(cls, user: User) -> ServiceResult[int]:
        """
        Mark all user's unread notifications as read.

        Returns:
            ServiceResult with count of notifications marked as read
        """
        count = Notification.objects.filter(
            recipient=user,
            is_read=False,
        ).update(is_read=True, read_at=timezone.now())

        cls.get_logger().info(
            f"Marked {count} notifications as read for user {user.id}"
        )

        return ServiceResult.success(count)
