import logging
import threading
from enum import Enum
from typing import Callable, Iterable, List, Optional
from boto3.dynamodb.types import TypeDeserializer
from booking_core.models.bookings import Booking
from booking_core.repository.booking_repo import BookingRepository
from booking_core.utils.custom_exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

OnUpdate = Callable[[List[Booking]], None]
OnError = Callable[[Exception], None]


class FeedSide(str, Enum):
    CONSUMER = "consumer"
    PROVIDER = "provider"


class BookingFeed:
    """Push-based query subscriptions over the bookings table.

    A subscriber gets the current result of its query straight away and a
    fresh result every time a DynamoDB stream record touches one of its
    bookings.
    """

    def __init__(self, booking_repo: BookingRepository):
        self.booking_repo = booking_repo
        self._listeners: dict = {}
        self._lock = threading.Lock()
        self._deserializer = TypeDeserializer()

    def subscribe(
        self,
        side: FeedSide,
        user_id: str,
        on_update: OnUpdate,
        on_error: Optional[OnError] = None,
    ) -> Callable[[], None]:
        token = object()
        key = (FeedSide(side), user_id)
        with self._lock:
            self._listeners.setdefault(key, {})[token] = (on_update, on_error)

        def unsubscribe():
            with self._lock:
                listeners = self._listeners.get(key)
                if listeners is None:
                    return
                listeners.pop(token, None)
                if not listeners:
                    del self._listeners[key]

        self._deliver(key, [(on_update, on_error)])
        return unsubscribe

    def listener_count(self, side: FeedSide, user_id: str) -> int:
        with self._lock:
            return len(self._listeners.get((FeedSide(side), user_id), {}))

    def apply_stream_records(self, records: Iterable[dict]):
        affected = set()
        for record in records:
            stream = record.get("dynamodb", {})
            for image_name in ("NewImage", "OldImage"):
                image = stream.get(image_name)
                if not image:
                    continue
                item = {k: self._deserializer.deserialize(v) for k, v in image.items()}
                if not str(item.get("pk", "")).startswith("BOOKING#"):
                    continue
                if item.get("sk") != "DETAILS":
                    continue
                if item.get("consumer_id"):
                    affected.add((FeedSide.CONSUMER, item["consumer_id"]))
                if item.get("provider_id"):
                    affected.add((FeedSide.PROVIDER, item["provider_id"]))

        for key in affected:
            with self._lock:
                listeners = list(self._listeners.get(key, {}).values())
            if listeners:
                self._deliver(key, listeners)

    def _fetch(self, side: FeedSide, user_id: str) -> List[Booking]:
        if side == FeedSide.CONSUMER:
            bookings = self.booking_repo.get_consumer_bookings(user_id)
        else:
            bookings = self.booking_repo.get_provider_bookings(user_id)
        return sorted(bookings, key=lambda b: b.created_at, reverse=True)

    def _deliver(self, key: tuple, listeners: list):
        side, user_id = key
        try:
            bookings = self._fetch(side, user_id)
        except StoreUnavailable as err:
            logger.error(f"Error refreshing {side.value} bookings for {user_id}: {err}")
            for _, on_error in listeners:
                if on_error:
                    self._notify_listener(on_error, err, side, user_id)
            return

        for on_update, _ in listeners:
            self._notify_listener(on_update, list(bookings), side, user_id)

    @staticmethod
    def _notify_listener(callback: Callable, payload, side: FeedSide, user_id: str):
        try:
            callback(payload)
        except Exception:
            logger.exception(
                f"Subscriber callback failed for {side.value} bookings of {user_id}"
            )
