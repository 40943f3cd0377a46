from booking_core.repository.booking_repo import BookingRepository
from booking_core.models.bookings import ActorRole, Booking, BookingStatus
from booking_core.services.notification_service import NotificationService
from booking_core.utils.constants import MAX_TRANSITION_ATTEMPTS
from booking_core.utils.custom_exceptions import (
    InvalidTransition,
    NotFoundException,
    PermissionDenied,
    TransactionAborted,
    WriteConflict,
)
from datetime import datetime, timezone
from typing import Callable, Optional
import logging

logger = logging.getLogger(__name__)

# (current, target) -> role allowed to make the move
TRANSITIONS = {
    (BookingStatus.PENDING, BookingStatus.ACCEPTED): ActorRole.PROVIDER,
    (BookingStatus.PENDING, BookingStatus.REJECTED): ActorRole.PROVIDER,
    (BookingStatus.ACCEPTED, BookingStatus.COMPLETED): ActorRole.PROVIDER,
    (BookingStatus.PENDING, BookingStatus.CANCELLED): ActorRole.CONSUMER,
}


def allowed_targets(current: BookingStatus) -> set:
    return {target for (source, target) in TRANSITIONS if source == current}


class BookingStatusService:
    def __init__(
        self,
        booking_repo: BookingRepository,
        notification_service: Optional[NotificationService] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.booking_repo = booking_repo
        self.notification_service = notification_service
        self.clock = clock

    def transition(
        self,
        booking_id: str,
        target_status: BookingStatus,
        actor_role: ActorRole,
        actor_id: str,
    ) -> Booking:
        target_status = BookingStatus(target_status)
        actor_role = ActorRole(actor_role)

        for attempt in range(1, MAX_TRANSITION_ATTEMPTS + 1):
            booking = self.booking_repo.get_booking_by_id(booking_id)
            if booking is None:
                raise NotFoundException("booking", booking_id, 404)

            self._authorize(booking, actor_role, actor_id)
            self._validate(booking, target_status, actor_role)

            updated_at = max(self.clock(), booking.updated_at)
            try:
                self.booking_repo.update_booking_status(
                    booking, target_status, updated_at
                )
            except WriteConflict:
                # someone else moved the booking; re-read and validate again
                logger.warning(
                    f"Booking {booking_id} changed during transition to "
                    f"{target_status.value} ({attempt}/{MAX_TRANSITION_ATTEMPTS})"
                )
                continue

            previous = booking.status
            booking.status = target_status
            booking.updated_at = updated_at
            logger.info(
                f"Booking {booking_id} moved {previous.value} -> {target_status.value} "
                f"by {actor_role.value}"
            )
            self._notify(booking, target_status)
            return booking

        raise TransactionAborted(
            f"booking {booking_id} kept changing while moving to {target_status.value}"
        )

    @staticmethod
    def _authorize(booking: Booking, actor_role: ActorRole, actor_id: str):
        owner = (
            booking.provider_id
            if actor_role == ActorRole.PROVIDER
            else booking.consumer_id
        )
        if actor_id != owner:
            raise PermissionDenied(
                f"user '{actor_id}' is not the {actor_role.value} of booking "
                f"'{booking.booking_id}'"
            )

    @staticmethod
    def _validate(booking: Booking, target: BookingStatus, actor_role: ActorRole):
        required_role = TRANSITIONS.get((booking.status, target))
        if required_role is None:
            raise InvalidTransition(booking.booking_id, booking.status, target)
        if required_role != actor_role:
            raise PermissionDenied(
                f"only the {required_role.value} can move a booking to {target.value}"
            )

    def _notify(self, booking: Booking, status: BookingStatus):
        if not self.notification_service:
            return
        try:
            self.notification_service.notify_status_change(booking, status)
        except Exception:
            logger.exception(
                f"Failed to enqueue status notification for booking {booking.booking_id}"
            )
