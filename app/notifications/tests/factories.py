"""
Factory Boy factories for notification models.

Usage:
    from notifications.tests.factories import NotificationFactory

    notification = NotificationFactory(recipient=user)
    read = NotificationFactory(recipient=user, read=True)
"""

import factory
from django.utils import timezone

from authentication.tests.factories import UserFactory
from notifications.models import Notification, NotificationType


class NotificationFactory(factory.django.DjangoModelFactory):
    """
    Factory for Notification model.

    Creates unread payment-released notifications by default.
    Use the `read` trait for already-read notifications.
    """

    class Meta:
        model = Notification

    recipient = factory.SubFactory(UserFactory)
    type_key = NotificationType.PAYMENT_RELEASED
    title = factory.Sequence(lambda n: f"Notification {n}")
    body = "KES 900.00 was added to your balance."
    data = factory.LazyFunction(dict)
    is_read = False
    read_at = None

    class Params:
        read = factory.Trait(
            is_read=True,
            read_at=factory.LazyFunction(timezone.now),
        )
