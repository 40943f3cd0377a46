import logging
import threading
from typing import Callable, Iterable, List, Optional
from booking_core.models.bookings import (
    Booking,
    BookingStats,
    BookingStatus,
    BookingView,
    TaggedBooking,
)
from booking_core.repository.booking_feed import BookingFeed, FeedSide
from booking_core.repository.booking_repo import BookingRepository

logger = logging.getLogger(__name__)

TAB_STATUSES = {
    "pending": {BookingStatus.PENDING},
    "upcoming": {BookingStatus.ACCEPTED},
    "history": {
        BookingStatus.REJECTED,
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
    },
}


def tag(bookings: Iterable[Booking], is_incoming: bool) -> List[TaggedBooking]:
    return [TaggedBooking(booking=b, is_incoming=is_incoming) for b in bookings]


def merge_tagged(
    outgoing: Iterable[TaggedBooking], incoming: Iterable[TaggedBooking]
) -> List[TaggedBooking]:
    """Union of both sides, newest first.

    A booking seen on both sides (the user booked their own service) keeps its
    incoming copy, whichever side arrived first.
    """
    by_id = {}
    for tagged in outgoing:
        by_id[tagged.booking.booking_id] = tagged
    for tagged in incoming:
        by_id[tagged.booking.booking_id] = tagged
    return sorted(
        by_id.values(),
        key=lambda t: (t.booking.created_at, t.booking.booking_id),
        reverse=True,
    )


def compute_stats(bookings: List[TaggedBooking]) -> BookingStats:
    pending = sum(1 for t in bookings if t.booking.status == BookingStatus.PENDING)
    upcoming = sum(1 for t in bookings if t.booking.status == BookingStatus.ACCEPTED)
    completed = sum(
        1 for t in bookings if t.booking.status == BookingStatus.COMPLETED
    )
    total = len(bookings)
    return BookingStats(
        pending=pending,
        upcoming=upcoming,
        completed=completed,
        history=total - pending - upcoming,
        total=total,
    )


def filter_by_tab(bookings: List[TaggedBooking], tab: str) -> List[TaggedBooking]:
    statuses = TAB_STATUSES.get(tab)
    if statuses is None:
        raise ValueError(f"Invalid tab. Allowed: {', '.join(TAB_STATUSES)}")
    return [t for t in bookings if t.booking.status in statuses]


def snapshot_bookings(booking_repo: BookingRepository, user_id: str) -> BookingView:
    merged = merge_tagged(
        tag(booking_repo.get_consumer_bookings(user_id), is_incoming=False),
        tag(booking_repo.get_provider_bookings(user_id), is_incoming=True),
    )
    return BookingView(bookings=merged, stats=compute_stats(merged))


class BookingReconciler:
    """Keeps one ordered view over a user's consumer and provider bookings."""

    def __init__(
        self,
        feed: BookingFeed,
        user_id: str,
        on_change: Callable[[BookingView], None],
    ):
        self.feed = feed
        self.user_id = user_id
        self.on_change = on_change
        self.view: Optional[BookingView] = None
        self._sides = {FeedSide.CONSUMER: [], FeedSide.PROVIDER: []}
        self._ready = set()
        self._closed = False
        self._unsubscribers = []
        self._lock = threading.RLock()

    def open(self) -> "BookingReconciler":
        for side in (FeedSide.CONSUMER, FeedSide.PROVIDER):
            unsubscribe = self.feed.subscribe(
                side,
                self.user_id,
                on_update=lambda bookings, side=side: self._on_update(side, bookings),
                on_error=lambda err, side=side: self._on_error(side, err),
            )
            self._unsubscribers.append(unsubscribe)
        return self

    def close(self):
        with self._lock:
            self._closed = True
            unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()

    @property
    def ready(self) -> bool:
        return len(self._ready) == len(self._sides)

    def _on_update(self, side: FeedSide, bookings: List[Booking]):
        with self._lock:
            if self._closed:
                return
            self._sides[side] = tag(bookings, is_incoming=side == FeedSide.PROVIDER)
            self._ready.add(side)
            self._emit()

    def _on_error(self, side: FeedSide, err: Exception):
        with self._lock:
            if self._closed:
                return
            logger.warning(
                f"{side.value} bookings stream failed for {self.user_id}, "
                f"showing it as empty: {err}"
            )
            self._sides[side] = []
            self._ready.add(side)
            self._emit()

    def _emit(self):
        if not self.ready:
            return
        merged = merge_tagged(
            self._sides[FeedSide.CONSUMER], self._sides[FeedSide.PROVIDER]
        )
        self.view = BookingView(bookings=merged, stats=compute_stats(merged))
        self.on_change(self.view)


def subscribe_bookings(
    feed: BookingFeed, user_id: str, on_change: Callable[[BookingView], None]
) -> BookingReconciler:
    return BookingReconciler(feed, user_id, on_change).open()
