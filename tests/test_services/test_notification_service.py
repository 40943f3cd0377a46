import json
import unittest
from unittest.mock import MagicMock, patch
from datetime import datetime, timezone, timedelta
from decimal import Decimal

from booking_core.models.bookings import Booking, BookingStatus, CategorySnapshot
from booking_core.models.notifications import NotificationType
from booking_core.services.notification_service import NotificationService


class TestNotificationService(unittest.TestCase):

    @patch("booking_core.services.notification_service.boto3.client")
    def setUp(self, mock_boto_client):
        self.mock_client = MagicMock()
        mock_boto_client.return_value = self.mock_client
        self.mock_boto_client = mock_boto_client

        self.queue_url = "https://sqs.ap-south-1.amazonaws.com/123/notifications"
        self.service = NotificationService(queue_url=self.queue_url)

        start = datetime(2030, 6, 1, 14, 0, tzinfo=timezone.utc)
        self.booking = Booking(
            booking_id="b1",
            service_id="s1",
            provider_id="p1",
            consumer_id="c1",
            date="2030-06-01",
            start_time=start,
            end_time=start + timedelta(hours=2),
            categories=[CategorySnapshot("cat1", "Cleaning", Decimal("40"))],
            total_price=Decimal("40"),
        )

    def _sent(self):
        _, kwargs = self.mock_client.send_message.call_args
        self.assertEqual(kwargs["QueueUrl"], self.queue_url)
        return json.loads(kwargs["MessageBody"])

    def test_uses_sqs_client(self):
        self.mock_boto_client.assert_called_once_with("sqs", region_name="ap-south-1")

    def test_enqueue_sends_message(self):
        self.service.enqueue("u1", NotificationType.BOOKING_ACCEPTED, {"booking_id": "b1"})

        message = self._sent()
        self.assertEqual(message["target_user_id"], "u1")
        self.assertEqual(message["type"], "booking_accepted")
        self.assertEqual(message["title"], "Booking Accepted")
        self.assertEqual(message["data"], {"booking_id": "b1"})
        self.assertIn("created_at", message)

    def test_enqueue_accepts_raw_template_name(self):
        self.service.enqueue("u1", "booking_rejected", {})

        self.assertEqual(self._sent()["type"], "booking_rejected")

    def test_booking_created_goes_to_provider(self):
        self.service.notify_booking_created(self.booking)

        message = self._sent()
        self.assertEqual(message["target_user_id"], "p1")
        self.assertEqual(message["type"], "booking_created")
        self.assertEqual(message["data"]["consumer_id"], "c1")

    def test_provider_decisions_go_to_consumer(self):
        for status in (
            BookingStatus.ACCEPTED,
            BookingStatus.REJECTED,
            BookingStatus.COMPLETED,
        ):
            with self.subTest(status=status):
                self.service.notify_status_change(self.booking, status)
                message = self._sent()
                self.assertEqual(message["target_user_id"], "c1")
                self.assertEqual(message["data"]["status"], status.value)

    def test_cancellation_goes_to_provider(self):
        self.service.notify_status_change(self.booking, BookingStatus.CANCELLED)

        message = self._sent()
        self.assertEqual(message["target_user_id"], "p1")
        self.assertEqual(message["type"], "booking_cancelled")

    def test_status_change_carries_committed_timestamp(self):
        self.booking.updated_at = datetime(2030, 5, 2, 8, 30, tzinfo=timezone.utc)

        self.service.notify_status_change(self.booking, BookingStatus.ACCEPTED)

        self.assertEqual(
            self._sent()["data"]["changed_at"], "2030-05-02T08:30:00+00:00"
        )

    def test_send_failure_propagates(self):
        self.mock_client.send_message.side_effect = Exception("SQS failure")

        with self.assertRaises(Exception):
            self.service.enqueue("u1", NotificationType.BOOKING_CREATED, {})

    @patch("booking_core.services.notification_service.boto3.client")
    def test_without_queue_nothing_is_sent(self, mock_boto_client):
        service = NotificationService(queue_url=None)

        service.enqueue("u1", NotificationType.BOOKING_CREATED, {})

        mock_boto_client.assert_not_called()
        self.assertIsNone(service.client)


if __name__ == "__main__":
    unittest.main()
