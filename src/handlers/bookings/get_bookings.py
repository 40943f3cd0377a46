import logging
import os
from boto3 import resource

from booking_core.repository.booking_repo import BookingRepository
from booking_core.services.reconciler import filter_by_tab, snapshot_bookings
from booking_core.utils.custom_response import send_custom_response
from booking_core.utils.custom_exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION", "ap-south-1")

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_repo = BookingRepository(table)


def _serialize(tagged):
    b = tagged.booking
    return {
        "booking_id": b.booking_id,
        "service_id": b.service_id,
        "provider_id": b.provider_id,
        "consumer_id": b.consumer_id,
        "date": b.date,
        "start_time": b.start_time.isoformat(),
        "end_time": b.end_time.isoformat(),
        "categories": [
            {"category_id": c.category_id, "name": c.name, "price": str(c.price)}
            for c in b.categories
        ],
        "total_price": str(b.total_price),
        "status": b.status.value,
        "created_at": b.created_at.isoformat(),
        "updated_at": b.updated_at.isoformat(),
        "is_incoming": tagged.is_incoming,
    }


def get_user_bookings(event, context):
    try:
        user_id = event["requestContext"]["authorizer"]["user_id"]
    except (KeyError, TypeError):
        return send_custom_response(401, "Unauthorized")

    params = event.get("queryStringParameters") or {}
    tab = params.get("tab")

    try:
        view = snapshot_bookings(booking_repo, user_id)
        bookings = filter_by_tab(view.bookings, tab) if tab else view.bookings
    except ValueError as err:
        return send_custom_response(400, str(err))
    except StoreUnavailable as err:
        logger.warning(f"Booking store unavailable: {err}")
        return send_custom_response(503, "Service temporarily unavailable, please retry")
    except Exception:
        logger.exception(f"Unhandled error while listing bookings for {user_id}")
        return send_custom_response(500, "Internal server error")

    return send_custom_response(
        200,
        "Bookings retrieved successfully",
        {
            "count": len(bookings),
            "bookings": [_serialize(t) for t in bookings],
            "stats": {
                "pending": view.stats.pending,
                "upcoming": view.stats.upcoming,
                "completed": view.stats.completed,
                "history": view.stats.history,
                "total": view.stats.total,
            },
        },
    )
