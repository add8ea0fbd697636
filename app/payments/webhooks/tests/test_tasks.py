"""
Tests for payment Celery tasks.

Tests cover:
- process_webhook_event task
- retry_failed_webhooks task
- scan_overdue_payments task
"""

from datetime import timedelta
from unittest.mock import patch
from uuid import uuid4

import pytest
from django.utils import timezone
from freezegun import freeze_time

from core.services import ServiceResult
from notifications.models import Notification, NotificationType
from payments.models import Payment, WebhookEvent
from payments.models.webhook_event import MAX_WEBHOOK_RETRIES
from payments.state_machines import PaymentStatus, WebhookEventStatus
from payments.tasks import (
    process_webhook_event,
    retry_failed_webhooks,
    scan_overdue_payments,
)
from payments.tests.factories import PaymentFactory, WebhookEventFactory


# =============================================================================
# process_webhook_event Tests
# =============================================================================


class TestProcessWebhookEvent:
    def test_process_pending_event_success(self, pending_webhook_event):
        with patch("payments.webhooks.handlers.dispatch_webhook") as mock_dispatch:
            mock_dispatch.return_value = ServiceResult.success(None)

            result = process_webhook_event(str(pending_webhook_event.id))

        assert result["status"] == "processed"
        assert result["event_key"] == pending_webhook_event.event_key

        pending_webhook_event.refresh_from_db()
        assert pending_webhook_event.status == WebhookEventStatus.PROCESSED
        assert pending_webhook_event.processed_at is not None
        assert pending_webhook_event.retry_count == 1

    def test_skip_already_processed_event(self, processed_webhook_event):
        with patch("payments.webhooks.handlers.dispatch_webhook") as mock_dispatch:
            result = process_webhook_event(str(processed_webhook_event.id))

        assert result["status"] == "already_processed"
        mock_dispatch.assert_not_called()

    def test_missing_event(self, db):
        result = process_webhook_event(str(uuid4()))

        assert result["status"] == "not_found"

    def test_handler_failure_marks_failed(self, pending_webhook_event):
        with patch("payments.webhooks.handlers.dispatch_webhook") as mock_dispatch:
            mock_dispatch.return_value = ServiceResult.failure(
                "Payment not found", error_code="PAYMENT_NOT_FOUND"
            )

            result = process_webhook_event(str(pending_webhook_event.id))

        assert result["status"] == "handler_failed"
        assert result["error_code"] == "PAYMENT_NOT_FOUND"
        pending_webhook_event.refresh_from_db()
        assert pending_webhook_event.status == WebhookEventStatus.FAILED
        assert pending_webhook_event.error_message == "Payment not found"

    def test_exception_marks_failed_and_reraises(self, pending_webhook_event):
        with patch("payments.webhooks.handlers.dispatch_webhook") as mock_dispatch:
            mock_dispatch.side_effect = RuntimeError("database unavailable")

            with pytest.raises(RuntimeError):
                process_webhook_event(str(pending_webhook_event.id))

        pending_webhook_event.refresh_from_db()
        assert pending_webhook_event.status == WebhookEventStatus.FAILED
        assert "RuntimeError" in pending_webhook_event.error_message

    def test_charge_success_end_to_end(self, charge_success_payload, initiated_payment):
        webhook_event = WebhookEventFactory(
            event_type="charge.success", payload=charge_success_payload
        )

        result = process_webhook_event(str(webhook_event.id))

        assert result["status"] == "processed"
        assert (
            Payment.objects.get(pk=initiated_payment.pk).status
            == PaymentStatus.PAID_TO_PLATFORM
        )


# =============================================================================
# retry_failed_webhooks Tests
# =============================================================================


class TestRetryFailedWebhooks:
    def test_queues_retryable_failures(self, failed_webhook_event):
        exhausted = WebhookEventFactory(
            status=WebhookEventStatus.FAILED, retry_count=MAX_WEBHOOK_RETRIES
        )

        with patch("payments.tasks.process_webhook_event.delay") as mock_delay:
            result = retry_failed_webhooks()

        assert result["queued_count"] == 1
        mock_delay.assert_called_once_with(str(failed_webhook_event.id))
        assert str(exhausted.id) not in [call.args[0] for call in mock_delay.call_args_list]

    def test_queues_pending_events_never_picked_up(self, db):
        with freeze_time(timezone.now() - timedelta(hours=1)):
            stale = WebhookEventFactory()
        WebhookEventFactory()  # just arrived, its task is still queued

        with patch("payments.tasks.process_webhook_event.delay") as mock_delay:
            result = retry_failed_webhooks()

        assert result["queued_count"] == 1
        mock_delay.assert_called_once_with(str(stale.id))

    def test_nothing_to_retry(self, processed_webhook_event):
        with patch("payments.tasks.process_webhook_event.delay") as mock_delay:
            assert retry_failed_webhooks() == {"queued_count": 0}

        mock_delay.assert_not_called()


# =============================================================================
# scan_overdue_payments Tests
# =============================================================================


class TestScanOverduePayments:
    @pytest.fixture(autouse=True)
    def overdue_days(self, settings):
        settings.PAYMENTS_OVERDUE_DAYS = 7

    def test_notifies_admins_once_per_day(self, admin_user):
        with freeze_time("2024-05-01 09:00:00"):
            PaymentFactory(paid=True)

        with freeze_time("2024-05-10 09:00:00"):
            first = scan_overdue_payments()
            second = scan_overdue_payments()

        assert first == {"payment_count": 1, "notified": 1}
        assert second == {"payment_count": 1, "notified": 0}
        notification = Notification.objects.get(recipient=admin_user)
        assert notification.type_key == NotificationType.PAYMENTS_NEED_REVIEW
        assert len(notification.data["payment_ids"]) == 1

    def test_includes_disputed_payments(self, admin_user):
        PaymentFactory(paid=True, is_disputed=True)

        result = scan_overdue_payments()

        assert result["payment_count"] == 1

    def test_no_notification_when_nothing_needs_review(self, admin_user):
        PaymentFactory(paid=True)

        assert scan_overdue_payments() == {"payment_count": 0, "notified": 0}
        assert not Notification.objects.exists()
