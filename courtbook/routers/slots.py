from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from courtbook import booking_state
from courtbook.auth import get_optional_user
from courtbook.booking_state import BookingStatus, PaymentStatus
from courtbook.config import get_settings
from courtbook.conflicts import club_opening_window, club_tz
from courtbook.datetime_utils import as_utc_iso, utc_now
from courtbook.db import get_db
from courtbook.errors import BadRequest, NotFound
from courtbook.models import Booking, Court, User
from courtbook.scheduling import MINUTES_PER_DAY, day_bounds, parse_date, ranges_overlap

router = APIRouter()


@router.get("/{court_id}/slots")
def list_slots(
    court_id: str,
    date: str = Query(...),
    duration: Optional[int] = Query(default=None),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    List bookable slots of a court on a club-local date with user-aware status:
      - BOOKED_BY_ME / BOOKED_BY_OTHER: a confirmed or paid booking overlaps the slot
      - HELD_BY_ME / HELD_BY_OTHER: a pending reservation inside its expiry overlaps it
      - AVAILABLE: otherwise

    Without a session the statuses collapse to BOOKED / HELD / AVAILABLE.
    Slots that already started are left out; a closed day has no slots.
    """
    if duration is None:
        duration = get_settings().SLOT_DURATION_MINUTES
    if duration <= 0 or duration > MINUTES_PER_DAY:
        raise BadRequest("duration must be between 1 and 1440 minutes")

    court = db.get(Court, court_id)
    if court is None:
        raise NotFound("Court not found")

    day = parse_date(date)
    tz = club_tz(court.club)
    window = club_opening_window(court.club, day)
    if window is None:
        return []
    open_from = 0 if window.is_full_day else window.start
    open_until = MINUTES_PER_DAY if window.is_full_day else window.end

    now = utc_now()
    day_start, day_end = day_bounds(day, tz)
    bookings = [
        b for b in db.query(Booking).filter(
            Booking.court_id == court.id,
            Booking.start < day_end,
            Booking.end > day_start,
            Booking.booking_status != BookingStatus.CANCELLED.value,
        ).all()
        if booking_state.is_blocking(b, now)
    ]

    local_midnight = datetime.combine(day, datetime.min.time(), tzinfo=tz)
    results = []
    minute = open_from
    while minute + duration <= open_until:
        start = _to_utc(local_midnight + timedelta(minutes=minute))
        end = _to_utc(local_midnight + timedelta(minutes=minute + duration))
        minute += duration
        if start <= now:
            continue

        overlapping = [b for b in bookings if ranges_overlap(b.start, b.end, start, end)]
        results.append({
            "court_id": court.id,
            "start": as_utc_iso(start),
            "end": as_utc_iso(end),
            "status": _slot_status(overlapping, user),
        })
    return results


def _to_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _slot_status(overlapping: list[Booking], user: Optional[User]) -> str:
    booked = [
        b for b in overlapping
        if b.booking_status == BookingStatus.CONFIRMED or b.payment_status == PaymentStatus.PAID
    ]
    if booked:
        if user is None:
            return "BOOKED"
        return "BOOKED_BY_ME" if any(b.user_id == user.id for b in booked) else "BOOKED_BY_OTHER"
    if overlapping:
        if user is None:
            return "HELD"
        return "HELD_BY_ME" if any(b.user_id == user.id for b in overlapping) else "HELD_BY_OTHER"
    return "AVAILABLE"
