"""Same-day time windows and the overlap rules shared by bookings,
coach time-off and club opening hours.

Times of day are "HH:MM" strings on the wire and minutes since midnight
internally. Windows are half-open ``[start, end)``; a window with neither
bound is a full day and overlaps everything on its date. Windows never cross
midnight.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Optional

from courtbook.datetime_utils import to_local
from courtbook.errors import BadRequest

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^\d{2}:\d{2}$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class InvalidTimeWindow(BadRequest):
    pass


class InvalidHours(BadRequest):
    pass


def is_valid_time_format(value) -> bool:
    if not isinstance(value, str) or not _TIME_RE.match(value):
        return False
    hours, minutes = (int(part) for part in value.split(":"))
    return 0 <= hours <= 23 and 0 <= minutes <= 59


def is_valid_date_format(value) -> bool:
    if not isinstance(value, str) or not _DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_valid_day_of_week(value) -> bool:
    """0 = Sunday ... 6 = Saturday."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 6


def parse_time(value: str) -> int:
    if not is_valid_time_format(value):
        raise InvalidTimeWindow("Invalid time format. Use HH:mm")
    hours, minutes = (int(part) for part in value.split(":"))
    return hours * 60 + minutes


def format_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_date(value: str) -> date:
    if not is_valid_date_format(value):
        raise InvalidTimeWindow("Invalid date format. Use YYYY-MM-DD")
    return date.fromisoformat(value)


def is_valid_time_range(start: str, end: str) -> bool:
    return parse_time(start) < parse_time(end)


def day_of_week(day: date) -> int:
    # date.weekday() is Monday = 0; hours are keyed Sunday = 0
    return (day.weekday() + 1) % 7


@dataclass(frozen=True)
class TimeWindow:
    start: Optional[int] = None
    end: Optional[int] = None

    def __post_init__(self):
        if (self.start is None) != (self.end is None):
            raise InvalidTimeWindow(
                "Both start and end times are required for a partial-day window"
            )
        if self.start is None:
            return
        if not (0 <= self.start < MINUTES_PER_DAY and 0 < self.end <= MINUTES_PER_DAY):
            raise InvalidTimeWindow("Time window must fall within a single day")
        if self.start >= self.end:
            raise InvalidTimeWindow("Start time must be before end time")

    @classmethod
    def full_day(cls) -> "TimeWindow":
        return cls()

    @classmethod
    def from_strings(cls, start: Optional[str], end: Optional[str]) -> "TimeWindow":
        if start is None and end is None:
            return cls()
        if not start or not end:
            raise InvalidTimeWindow(
                "Both start and end times are required for a partial-day window"
            )
        return cls(parse_time(start), parse_time(end))

    @property
    def is_full_day(self) -> bool:
        return self.start is None

    def overlaps(self, other: "TimeWindow") -> bool:
        return windows_overlap(self, other)

    def contains(self, other: "TimeWindow") -> bool:
        if self.is_full_day:
            return True
        if other.is_full_day:
            return False
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        if self.is_full_day:
            return "full day"
        return f"{format_time(self.start)}-{format_time(self.end)}"


def windows_overlap(a: TimeWindow, b: TimeWindow) -> bool:
    if a.is_full_day or b.is_full_day:
        return True
    return a.start < b.end and b.start < a.end


def times_overlap(start1: str, end1: str, start2: str, end2: str) -> bool:
    return windows_overlap(
        TimeWindow.from_strings(start1, end1), TimeWindow.from_strings(start2, end2)
    )


def ranges_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and start_b < end_a


def local_window(start: datetime, end: datetime, tz: tzinfo) -> tuple[date, TimeWindow]:
    """
    Club-local date and window of a booking given in naive UTC.
    Bookings must start and end on the same local day; ending exactly at
    the following midnight counts as the end of that day.
    """
    if end <= start:
        raise InvalidTimeWindow("Start time must be before end time")
    local_start = to_local(start, tz)
    local_end = to_local(end, tz)
    day = local_start.date()
    if local_end.date() == day:
        end_minute = local_end.hour * 60 + local_end.minute
    elif local_end.date() == day + timedelta(days=1) and local_end.time() == time.min:
        end_minute = MINUTES_PER_DAY
    else:
        raise InvalidTimeWindow("Bookings cannot span midnight")
    return day, TimeWindow(local_start.hour * 60 + local_start.minute, end_minute)


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Naive UTC ``[start, end)`` covering the local calendar day."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


def _hours_window(hours, label: str) -> Optional[TimeWindow]:
    if hours.is_closed:
        return None
    if not hours.open_time or not hours.close_time:
        raise InvalidHours(f"Opening and closing times are required for {label}")
    if not is_valid_time_format(hours.open_time) or not is_valid_time_format(hours.close_time):
        raise InvalidHours(f"Invalid time format for {label}. Use HH:mm")
    if parse_time(hours.open_time) >= parse_time(hours.close_time):
        raise InvalidHours(
            f"Invalid hours for {label}: opening time must be before closing time"
        )
    return TimeWindow(parse_time(hours.open_time), parse_time(hours.close_time))


def validate_business_hours(hours: Iterable) -> None:
    seen = set()
    for entry in hours:
        if not is_valid_day_of_week(entry.day_of_week):
            raise InvalidHours(f"Invalid day of week: {entry.day_of_week}")
        if entry.day_of_week in seen:
            raise InvalidHours(f"Duplicate day {entry.day_of_week} in business hours")
        seen.add(entry.day_of_week)
        _hours_window(entry, f"day {entry.day_of_week}")


def validate_special_hours(hours: Iterable) -> None:
    hours = list(hours)
    dates = [entry.date for entry in hours]
    if len(dates) != len(set(dates)):
        raise InvalidHours("Duplicate dates in special hours")
    for entry in hours:
        _hours_window(entry, f"special date {entry.date}")


def opening_window(
    business_hours: Iterable,
    special_hours: Iterable,
    day: date,
    default: Optional[TimeWindow] = None,
) -> Optional[TimeWindow]:
    """
    Open window of a club on ``day``, or None when closed.

    A special-hours entry for the date wins over the weekly hours. ``default``
    applies when the club has no weekly hours configured at all.
    """
    for entry in special_hours:
        if entry.date == day:
            return _hours_window(entry, f"special date {entry.date}")

    business_hours = list(business_hours)
    if not business_hours:
        return default

    weekday = day_of_week(day)
    for entry in business_hours:
        if entry.day_of_week == weekday:
            return _hours_window(entry, f"day {entry.day_of_week}")
    return None
