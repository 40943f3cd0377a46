from datetime import date, datetime
from typing import List, Optional
from booking_core.models.bookings import ACTIVE_STATUSES, DaySlots, SlotRecord
from booking_core.repository.booking_repo import BookingRepository
from booking_core.utils.time_range import date_key, overlaps, window_date_keys


class ConflictDetector:
    def __init__(self, booking_repo: BookingRepository, reference_timezone=None):
        self.booking_repo = booking_repo
        self.reference_timezone = reference_timezone

    def day_key(self, start_time: datetime) -> str:
        return date_key(start_time, self.reference_timezone)

    def window_keys(self, start_time: datetime, end_time: datetime) -> List[str]:
        return window_date_keys(start_time, end_time, self.reference_timezone)

    def read_window(
        self, provider_id: str, start_time: datetime, end_time: datetime
    ) -> DaySlots:
        return self.booking_repo.get_day_slots(
            provider_id, self.window_keys(start_time, end_time)
        )

    @staticmethod
    def find_conflicts(
        slots: List[SlotRecord], start_time: datetime, end_time: datetime
    ) -> List[SlotRecord]:
        return [
            slot
            for slot in slots
            if slot.status in ACTIVE_STATUSES
            and overlaps(slot.start_time, slot.end_time, start_time, end_time)
        ]

    def has_conflict(
        self,
        provider_id: str,
        day: Optional[date | str],
        start_time: datetime,
        end_time: datetime,
    ) -> bool:
        if day is not None and date_key(day) != self.day_key(start_time):
            raise ValueError(
                f"date {date_key(day)} does not match start_time "
                f"(day {self.day_key(start_time)})"
            )
        window = self.read_window(provider_id, start_time, end_time)
        return bool(self.find_conflicts(window.slots, start_time, end_time))
