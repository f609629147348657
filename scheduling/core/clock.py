"""Time utilities and the injectable clock used by the scheduling service."""

from datetime import UTC, date, datetime, time, timedelta
from typing import Protocol


class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        """Return the current timezone-aware instant."""
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Clock pinned to a given instant until moved explicitly."""

    def __init__(self, current: datetime):
        self.current = ensure_aware(current)

    def now(self) -> datetime:
        return self.current

    def set(self, current: datetime) -> None:
        self.current = ensure_aware(current)

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


def ensure_aware(value: datetime) -> datetime:
    """
    Reject naive datetimes.

    Raises:
        ValueError: If the value carries no timezone
    """
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError("Datetime must be timezone-aware")
    return value


def is_before(a: datetime, b: datetime) -> bool:
    return a < b


def is_after(a: datetime, b: datetime) -> bool:
    return a > b


def is_valid_range(starts_at: datetime, ends_at: datetime) -> bool:
    """A range is valid only when it has positive length."""
    return is_before(starts_at, ends_at)


def overlaps(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> bool:
    """
    Check whether two half-open ranges [start, end) intersect.

    Ranges that only touch (one ends exactly when the other starts) do not
    overlap.
    """
    return is_before(a_start, b_end) and is_before(b_start, a_end)


def has_started(starts_at: datetime, now: datetime) -> bool:
    """An appointment starting exactly now counts as started."""
    return not is_after(starts_at, now)


def parse_filter_bound(value: str, *, end: bool) -> datetime:
    """
    Parse a list filter bound.

    A date-only value covers the whole day in UTC: as a lower bound it is
    midnight, as an upper bound it is the last instant of that day. Datetime
    values must carry a timezone.

    Args:
        value: ISO date or datetime string
        end: True when the value is an upper bound

    Returns:
        Timezone-aware bound, inclusive

    Raises:
        ValueError: If the value is not ISO formatted or lacks a timezone
    """
    value = value.strip()
    if len(value) == 10:
        day = date.fromisoformat(value)
        return datetime.combine(day, time.max if end else time.min, tzinfo=UTC)
    return ensure_aware(datetime.fromisoformat(value))
