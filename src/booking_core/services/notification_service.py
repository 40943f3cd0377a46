import boto3
from datetime import timezone
import json
import logging
from typing import Optional
from booking_core.models.bookings import Booking, BookingStatus
from booking_core.models.notifications import Notification, NotificationType

logger = logging.getLogger(__name__)

STATUS_TEMPLATES = {
    BookingStatus.ACCEPTED: NotificationType.BOOKING_ACCEPTED,
    BookingStatus.REJECTED: NotificationType.BOOKING_REJECTED,
    BookingStatus.COMPLETED: NotificationType.BOOKING_COMPLETED,
    BookingStatus.CANCELLED: NotificationType.BOOKING_CANCELLED,
}

TITLES = {
    NotificationType.BOOKING_CREATED: "New Booking Request",
    NotificationType.BOOKING_ACCEPTED: "Booking Accepted",
    NotificationType.BOOKING_REJECTED: "Booking Update",
    NotificationType.BOOKING_COMPLETED: "Booking Completed",
    NotificationType.BOOKING_CANCELLED: "Booking Cancelled",
}

BODIES = {
    NotificationType.BOOKING_CREATED: "Someone requested your service",
    NotificationType.BOOKING_ACCEPTED: "Provider accepted your booking request!",
    NotificationType.BOOKING_REJECTED: "Provider declined your booking request.",
    NotificationType.BOOKING_COMPLETED: "Provider marked your booking as completed.",
    NotificationType.BOOKING_CANCELLED: "The customer cancelled their booking request.",
}


class NotificationService:
    def __init__(self, queue_url: Optional[str], region="ap-south-1"):
        self.queue_url = queue_url
        self.client = boto3.client("sqs", region_name=region) if queue_url else None

    def enqueue(self, target_user_id: str, template_type: NotificationType, payload: dict):
        template_type = NotificationType(template_type)
        notification = Notification(
            target_user_id=target_user_id,
            type=template_type,
            title=TITLES[template_type],
            body=BODIES[template_type],
            data=payload,
        )
        if self.client is None:
            logger.info(
                f"No notification queue configured, dropping {template_type.value} "
                f"for {target_user_id}"
            )
            return

        message = {
            "target_user_id": notification.target_user_id,
            "type": notification.type.value,
            "title": notification.title,
            "body": notification.body,
            "data": notification.data,
            "created_at": notification.created_at.astimezone(timezone.utc).isoformat(),
        }
        self.client.send_message(QueueUrl=self.queue_url, MessageBody=json.dumps(message))
        logger.info(f"Queued {template_type.value} notification for {target_user_id}")

    def notify_booking_created(self, booking: Booking):
        self.enqueue(
            booking.provider_id,
            NotificationType.BOOKING_CREATED,
            {
                "booking_id": booking.booking_id,
                "service_id": booking.service_id,
                "consumer_id": booking.consumer_id,
                "start_time": booking.start_time.isoformat(),
            },
        )

    def notify_status_change(self, booking: Booking, status: BookingStatus):
        # cancellations come from the consumer, every other change from the provider
        target = (
            booking.provider_id
            if status == BookingStatus.CANCELLED
            else booking.consumer_id
        )
        self.enqueue(
            target,
            STATUS_TEMPLATES[status],
            {
                "booking_id": booking.booking_id,
                "status": status.value,
                "changed_at": booking.updated_at.astimezone(timezone.utc).isoformat(),
            },
        )
