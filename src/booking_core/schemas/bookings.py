from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator
from booking_core.models.bookings import ActorRole, BookingStatus, CategorySnapshot
from booking_core.utils.constants import MAX_BOOKING_HOURS


class CategoryInput(BaseModel):
    category_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0)

    def to_snapshot(self) -> CategorySnapshot:
        return CategorySnapshot(
            category_id=self.category_id, name=self.name, price=self.price
        )


class BookingRequest(BaseModel):
    service_id: str = Field(min_length=1)
    provider_id: str = Field(min_length=1)
    categories: List[CategoryInput] = Field(min_length=1)
    total_price: Optional[Decimal] = None
    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def validate_and_normalize(self):
        if self.start_time.tzinfo is None or self.end_time.tzinfo is None:
            raise ValueError("start_time and end_time must include timezone info")

        start_utc = self.start_time.astimezone(timezone.utc)
        end_utc = self.end_time.astimezone(timezone.utc)
        now_utc = datetime.now(timezone.utc)

        if start_utc <= now_utc:
            raise ValueError("start_time must be in the future")

        if end_utc <= start_utc:
            raise ValueError("end_time must be after start_time")
        max_duration = timedelta(hours=MAX_BOOKING_HOURS)
        if end_utc - start_utc > max_duration:
            raise ValueError(f"Maximum booking length is {MAX_BOOKING_HOURS} hours")

        computed_total = sum((c.price for c in self.categories), Decimal("0"))
        if self.total_price is None:
            self.total_price = computed_total
        elif self.total_price != computed_total:
            raise ValueError("total_price does not match the selected categories")

        self.start_time = start_utc
        self.end_time = end_utc

        return self

    def category_snapshots(self) -> List[CategorySnapshot]:
        return [c.to_snapshot() for c in self.categories]


class TransitionRequest(BaseModel):
    status: BookingStatus
    actor_role: ActorRole
