from booking_core.repository.booking_repo import BookingRepository
from booking_core.models.bookings import Booking, BookingStatus
from booking_core.schemas.bookings import BookingRequest
from booking_core.services.conflict_detector import ConflictDetector
from booking_core.services.notification_service import NotificationService
from booking_core.utils.constants import (
    MAX_TRANSACTION_ATTEMPTS,
    RETRY_BASE_DELAY_SECONDS,
)
from booking_core.utils.custom_exceptions import (
    PermissionDenied,
    SlotConflict,
    TransactionAborted,
    WriteConflict,
)
from datetime import date, datetime, timezone
from typing import Callable, Optional
from uuid import uuid4
import logging
import random
import time

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BookingService:
    def __init__(
        self,
        booking_repo: BookingRepository,
        conflict_detector: Optional[ConflictDetector] = None,
        notification_service: Optional[NotificationService] = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.booking_repo = booking_repo
        self.conflict_detector = conflict_detector or ConflictDetector(booking_repo)
        self.notification_service = notification_service
        self.clock = clock
        self.sleep = sleep

    def check_availability(
        self,
        provider_id: str,
        day: Optional[date | str],
        start_time: datetime,
        end_time: datetime,
    ) -> bool:
        if end_time <= start_time:
            raise ValueError("end_time must be after start_time")
        return not self.conflict_detector.has_conflict(
            provider_id, day, start_time, end_time
        )

    def create_booking(self, req: BookingRequest, consumer_id: str) -> str:
        """Commit a pending booking unless an active one overlaps it.

        The conflict check and the insert form one optimistic transaction: the
        insert is conditioned on the provider's slot ledgers still holding the
        versions seen by the check, and the whole attempt is re-run when another
        booking commits in between.
        """
        if consumer_id == req.provider_id:
            raise PermissionDenied("providers cannot book their own services")

        day = self.conflict_detector.day_key(req.start_time)
        booking_id = str(uuid4())
        categories = req.category_snapshots()

        for attempt in range(1, MAX_TRANSACTION_ATTEMPTS + 1):
            window = self.conflict_detector.read_window(
                req.provider_id, req.start_time, req.end_time
            )
            conflicts = self.conflict_detector.find_conflicts(
                window.slots, req.start_time, req.end_time
            )
            if conflicts:
                raise SlotConflict(
                    req.provider_id, [slot.booking_id for slot in conflicts]
                )

            committed_at = self.clock()
            booking = Booking(
                booking_id=booking_id,
                service_id=req.service_id,
                provider_id=req.provider_id,
                consumer_id=consumer_id,
                date=day,
                start_time=req.start_time,
                end_time=req.end_time,
                categories=categories,
                total_price=req.total_price,
                status=BookingStatus.PENDING,
                created_at=committed_at,
                updated_at=committed_at,
            )
            try:
                self.booking_repo.add_booking(booking, window.ledger_versions)
            except WriteConflict:
                logger.warning(
                    f"Booking {booking_id} lost a commit race on provider "
                    f"{req.provider_id} ({attempt}/{MAX_TRANSACTION_ATTEMPTS})"
                )
                if attempt < MAX_TRANSACTION_ATTEMPTS:
                    self._backoff(attempt)
                continue

            logger.info(f"Booking {booking_id} created for provider {req.provider_id}")
            self._notify_created(booking)
            return booking_id

        raise TransactionAborted(
            f"could not commit booking for provider {req.provider_id} "
            f"after {MAX_TRANSACTION_ATTEMPTS} attempts"
        )

    def _backoff(self, attempt: int):
        ceiling = RETRY_BASE_DELAY_SECONDS * (2 ** (attempt - 1))
        self.sleep(random.uniform(0, ceiling))

    def _notify_created(self, booking: Booking):
        if not self.notification_service:
            return
        try:
            self.notification_service.notify_booking_created(booking)
        except Exception:
            logger.exception(
                f"Failed to enqueue new booking notification for {booking.booking_id}"
            )
