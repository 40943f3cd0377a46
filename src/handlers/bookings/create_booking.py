import logging
import os
from boto3 import resource

from booking_core.repository.booking_repo import BookingRepository
from booking_core.services.booking_service import BookingService
from booking_core.services.conflict_detector import ConflictDetector
from booking_core.services.notification_service import NotificationService
from booking_core.schemas.bookings import BookingRequest
from booking_core.utils.constants import DEFAULT_REFERENCE_TIMEZONE
from booking_core.utils.custom_response import send_custom_response
from booking_core.utils.custom_exceptions import (
    PermissionDenied,
    SlotConflict,
    StoreUnavailable,
)
from pydantic import ValidationError

logger = logging.getLogger(__name__)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION", "ap-south-1")
NOTIFICATION_QUEUE_URL = os.environ.get("NOTIFICATION_QUEUE_URL")
REFERENCE_TIMEZONE = os.environ.get("REFERENCE_TIMEZONE", DEFAULT_REFERENCE_TIMEZONE)

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_repo = BookingRepository(table)
booking_service = BookingService(
    booking_repo=booking_repo,
    conflict_detector=ConflictDetector(booking_repo, REFERENCE_TIMEZONE),
    notification_service=NotificationService(NOTIFICATION_QUEUE_URL, region=REGION),
)


def create_booking(event, context):
    if not event.get("body"):
        return send_custom_response(400, "Request body is required")

    try:
        request_body = BookingRequest.model_validate_json(event["body"])
    except ValidationError as e:
        formatted = "; ".join(f"{err['msg']}" for err in e.errors())
        return send_custom_response(400, formatted)

    except ValueError as e:
        return send_custom_response(400, str(e))
    try:
        user_id = event["requestContext"]["authorizer"]["user_id"]
    except KeyError:
        return send_custom_response(401, "Unauthorized")

    try:
        booking_id = booking_service.create_booking(request_body, user_id)

        return send_custom_response(
            201, "Booking created successfully", {"booking_id": booking_id}
        )

    except SlotConflict as err:
        return send_custom_response(409, str(err))

    except PermissionDenied as err:
        return send_custom_response(403, str(err))

    except StoreUnavailable as err:
        logger.warning(f"Booking store unavailable: {err}")
        return send_custom_response(503, "Service temporarily unavailable, please retry")

    except Exception:
        logger.exception("Unhandled error while creating booking")
        return send_custom_response(500, "Internal server error")
