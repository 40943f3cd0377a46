import json
import logging
import os
from boto3 import resource
from pydantic import ValidationError

from booking_core.repository.booking_repo import BookingRepository
from booking_core.services.notification_service import NotificationService
from booking_core.services.status_service import BookingStatusService
from booking_core.models.bookings import ActorRole
from booking_core.schemas.bookings import TransitionRequest
from booking_core.utils.custom_response import send_custom_response
from booking_core.utils.custom_exceptions import (
    InvalidTransition,
    NotFoundException,
    PermissionDenied,
    StoreUnavailable,
)

logger = logging.getLogger(__name__)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION", "ap-south-1")
NOTIFICATION_QUEUE_URL = os.environ.get("NOTIFICATION_QUEUE_URL")

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_repo = BookingRepository(table)
status_service = BookingStatusService(
    booking_repo=booking_repo,
    notification_service=NotificationService(NOTIFICATION_QUEUE_URL, region=REGION),
)


def _granted_roles(authorizer: dict) -> list:
    raw = authorizer.get("roles") or ActorRole.CONSUMER.value
    return [ActorRole(value.strip().lower()) for value in raw.split(",") if value.strip()]


def update_booking_status(event, context):
    try:
        authorizer = event["requestContext"]["authorizer"]
        user_id = authorizer["user_id"]
        granted = _granted_roles(authorizer)
    except (KeyError, TypeError, ValueError):
        return send_custom_response(401, "Unauthorized")

    path_params = event.get("pathParameters") or {}
    booking_id = path_params.get("booking_id")
    if not booking_id:
        return send_custom_response(400, "booking_id is required in the path")

    if not event.get("body"):
        return send_custom_response(400, "Request body is required")

    try:
        body = json.loads(event["body"])
    except json.JSONDecodeError:
        return send_custom_response(400, "Invalid JSON body")

    if not isinstance(body, dict):
        return send_custom_response(400, "Invalid JSON body")

    fields = {
        k: str(v).lower() for k, v in body.items() if k in ("status", "actor_role")
    }
    if "actor_role" not in fields:
        if len(granted) != 1:
            return send_custom_response(
                400, "actor_role is required when the caller holds several roles"
            )
        fields["actor_role"] = granted[0].value

    try:
        request = TransitionRequest.model_validate(fields)
    except ValidationError as e:
        formatted = "; ".join(
            f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()
        )
        return send_custom_response(400, formatted)

    if request.actor_role not in granted:
        return send_custom_response(
            403, f"caller does not hold the {request.actor_role.value} role"
        )

    try:
        booking = status_service.transition(
            booking_id=booking_id,
            target_status=request.status,
            actor_role=request.actor_role,
            actor_id=user_id,
        )
    except NotFoundException as err:
        return send_custom_response(err.status_code, str(err))
    except InvalidTransition as err:
        return send_custom_response(409, str(err))
    except PermissionDenied as err:
        return send_custom_response(403, str(err))
    except StoreUnavailable as err:
        logger.warning(f"Booking store unavailable: {err}")
        return send_custom_response(503, "Service temporarily unavailable, please retry")
    except Exception:
        logger.exception(f"Unhandled error while updating booking {booking_id}")
        return send_custom_response(500, "Internal server error")

    return send_custom_response(
        200,
        "Booking status updated successfully",
        {
            "booking_id": booking_id,
            "new_status": booking.status.value,
            "updated_at": booking.updated_at.isoformat(),
        },
    )
