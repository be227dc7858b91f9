"""Database-backed availability checks for courts and coaches.

Checks are read-then-write inside the caller's transaction with no locking,
so two concurrent requests for the same slot can both pass.
"""

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from courtbook import booking_state
from courtbook.booking_state import BookingStatus
from courtbook.config import get_settings
from courtbook.errors import Conflict
from courtbook.logging import get_logger
from courtbook.models import Booking, Club, Coach, CoachTimeOff, Court
from courtbook.scheduling import (
    TimeWindow,
    day_bounds,
    local_window,
    opening_window,
    ranges_overlap,
    windows_overlap,
)

logger = get_logger(__name__)


def club_tz(club: Club) -> ZoneInfo:
    try:
        return ZoneInfo(club.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r for club %s, using default", club.timezone, club.id)
        return ZoneInfo(get_settings().DEFAULT_CLUB_TIMEZONE)


def club_opening_window(club: Club, day: date) -> Optional[TimeWindow]:
    # Clubs without configured weekly hours are open all day
    return opening_window(
        club.business_hours, club.special_hours, day, default=TimeWindow.full_day()
    )


def release_expired_reservations(db: Session, now: datetime, court_id: Optional[str] = None) -> int:
    query = db.query(Booking).filter(
        Booking.booking_status == BookingStatus.PENDING.value,
        Booking.reservation_expires_at.isnot(None),
        Booking.reservation_expires_at <= now,
    )
    if court_id is not None:
        query = query.filter(Booking.court_id == court_id)

    released = 0
    for booking in query.all():
        if booking_state.release_if_expired(booking, now):
            released += 1
    if released:
        db.flush()
        logger.info("Released %d expired reservation(s)", released)
    return released


def find_conflicting_booking(
    db: Session,
    court_id: str,
    start: datetime,
    end: datetime,
    now: datetime,
    exclude_id: Optional[str] = None,
) -> Optional[Booking]:
    query = db.query(Booking).filter(
        Booking.court_id == court_id,
        Booking.start < end,
        Booking.end > start,
        Booking.booking_status != BookingStatus.CANCELLED.value,
    )
    if exclude_id is not None:
        query = query.filter(Booking.id != exclude_id)
    for booking in query.order_by(Booking.start).all():
        if booking_state.is_blocking(booking, now):
            return booking
    return None


def coach_bookings_on(
    db: Session,
    coach: Coach,
    day: date,
    now: datetime,
) -> list[Booking]:
    """Bookings with the coach that still hold their slot on the club-local ``day``."""
    day_start, day_end = day_bounds(day, club_tz(coach.club))
    bookings = db.query(Booking).filter(
        Booking.coach_id == coach.id,
        Booking.start < day_end,
        Booking.end > day_start,
        Booking.booking_status != BookingStatus.CANCELLED.value,
    ).all()
    return [b for b in bookings if booking_state.is_blocking(b, now)]


def coach_time_off_on(
    db: Session,
    coach_id: str,
    day: date,
    exclude_id: Optional[str] = None,
) -> list[CoachTimeOff]:
    query = db.query(CoachTimeOff).filter(
        CoachTimeOff.coach_id == coach_id,
        CoachTimeOff.date == day,
    )
    if exclude_id is not None:
        query = query.filter(CoachTimeOff.id != exclude_id)
    return query.all()


def ensure_slot_available(
    db: Session,
    court: Court,
    start: datetime,
    end: datetime,
    now: datetime,
    coach: Optional[Coach] = None,
    exclude_id: Optional[str] = None,
) -> None:
    """
    Raise unless ``[start, end)`` on ``court`` is inside the club's opening
    hours, free of other bookings and, with a coach, clear of their time-off.
    """
    day, window = local_window(start, end, club_tz(court.club))

    open_window = club_opening_window(court.club, day)
    if open_window is None:
        raise Conflict("Club is closed on the selected date")
    if not open_window.contains(window):
        raise Conflict("Selected time is outside club opening hours")

    if find_conflicting_booking(db, court.id, start, end, now, exclude_id=exclude_id):
        raise Conflict("Selected time slot is already booked or reserved")

    if coach is not None:
        for entry in coach_time_off_on(db, coach.id, day):
            entry_window = TimeWindow.from_strings(entry.start_time, entry.end_time)
            if windows_overlap(window, entry_window):
                raise Conflict("Coach is unavailable at the selected time")
        for booking in coach_bookings_on(db, coach, day, now):
            if booking.id != exclude_id and ranges_overlap(booking.start, booking.end, start, end):
                raise Conflict("Coach already has a booking at the selected time")
