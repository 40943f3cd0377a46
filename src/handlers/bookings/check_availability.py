import logging
import os
from datetime import datetime, timezone
from boto3 import resource

from booking_core.repository.booking_repo import BookingRepository
from booking_core.services.booking_service import BookingService
from booking_core.services.conflict_detector import ConflictDetector
from booking_core.utils.constants import DEFAULT_REFERENCE_TIMEZONE
from booking_core.utils.custom_exceptions import StoreUnavailable
from booking_core.utils.custom_response import send_custom_response

logger = logging.getLogger(__name__)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION", "ap-south-1")
REFERENCE_TIMEZONE = os.environ.get("REFERENCE_TIMEZONE", DEFAULT_REFERENCE_TIMEZONE)

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_repo = BookingRepository(table)
booking_service = BookingService(
    booking_repo=booking_repo,
    conflict_detector=ConflictDetector(booking_repo, REFERENCE_TIMEZONE),
)


def _parse_iso_datetime(value: str) -> datetime:
    if not isinstance(value, str):
        raise ValueError("Datetime must be a string")

    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        raise ValueError("Datetime must include timezone offset")
    return dt.astimezone(timezone.utc)


def check_availability(event, context):
    params = event.get("queryStringParameters") or {}

    provider_id = params.get("provider_id")
    start_raw = params.get("start_time")
    end_raw = params.get("end_time")
    day = params.get("date")

    if not provider_id or not start_raw or not end_raw:
        return send_custom_response(
            400, "provider_id, start_time and end_time are required"
        )

    try:
        start_time = _parse_iso_datetime(start_raw)
        end_time = _parse_iso_datetime(end_raw)
        available = booking_service.check_availability(
            provider_id, day, start_time, end_time
        )
    except ValueError as err:
        return send_custom_response(400, str(err))
    except StoreUnavailable as err:
        logger.warning(f"Booking store unavailable: {err}")
        return send_custom_response(503, "Service temporarily unavailable, please retry")
    except Exception:
        logger.exception("Unhandled error while checking availability")
        return send_custom_response(500, "Internal server error")

    return send_custom_response(
        200,
        "Availability checked",
        {
            "provider_id": provider_id,
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "available": available,
        },
    )
