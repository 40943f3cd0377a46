from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from booking_core.utils.constants import DEFAULT_REFERENCE_TIMEZONE, MAX_BOOKING_HOURS

DATE_KEY_FORMAT = "%Y-%m-%d"


def overlaps(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    # half-open: [a_start, a_end) against [b_start, b_end)
    return a_start < b_end and a_end > b_start


def _resolve_timezone(reference_timezone: str | tzinfo | None) -> tzinfo:
    if reference_timezone is None:
        return ZoneInfo(DEFAULT_REFERENCE_TIMEZONE)
    if isinstance(reference_timezone, str):
        return ZoneInfo(reference_timezone)
    return reference_timezone


def date_key(
    instant: datetime | date | str, reference_timezone: str | tzinfo | None = None
) -> str:
    """Calendar-day label of ``instant`` in the reference timezone.

    Strings already in ``YYYY-MM-DD`` form and plain ``date`` values are
    returned as-is, so callers can pass through a stored day key.
    """
    if isinstance(instant, str):
        return datetime.strptime(instant, DATE_KEY_FORMAT).strftime(DATE_KEY_FORMAT)
    if not isinstance(instant, datetime):
        return instant.strftime(DATE_KEY_FORMAT)
    if instant.tzinfo is None:
        raise ValueError("Datetime must be timezone-aware")
    local = instant.astimezone(_resolve_timezone(reference_timezone))
    return local.strftime(DATE_KEY_FORMAT)


def window_date_keys(
    start_time: datetime,
    end_time: datetime,
    reference_timezone: str | tzinfo | None = None,
    max_hours: int = MAX_BOOKING_HOURS,
) -> list[str]:
    """Day keys that can hold a booking overlapping ``[start_time, end_time)``.

    A booking lasts at most ``max_hours``, so any overlapping one starts after
    ``start_time - max_hours`` and before ``end_time``. The keys are every
    calendar day between those two instants in the reference timezone, however
    long DST makes each day.
    """
    if start_time.tzinfo is None or end_time.tzinfo is None:
        raise ValueError("Datetime must be timezone-aware")
    earliest = start_time.astimezone(timezone.utc) - timedelta(hours=max_hours)
    first = date_key(earliest, reference_timezone)
    last = date_key(end_time, reference_timezone)
    day = datetime.strptime(first, DATE_KEY_FORMAT).date()
    stop = datetime.strptime(last, DATE_KEY_FORMAT).date()
    keys = []
    while day <= stop:
        keys.append(day.strftime(DATE_KEY_FORMAT))
        day += timedelta(days=1)
    return keys
