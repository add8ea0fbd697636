"""
Notifications app for in-app notifications.

This app provides:
- Notification model for storing user notifications
- NotificationService for centralized notification creation
- REST API for listing and managing notifications

Related apps:
    - payments: notifies buyers, sellers and admins on payment, dispute
      and withdrawal changes

Usage:
    from notifications.services import NotificationService

    result = NotificationService.create_notification(
        recipient=user,
        type_key=NotificationType.PAYMENT_RELEASED,
        title="Payment released",
    )

    if result.success:
        notification = result.data
"""
