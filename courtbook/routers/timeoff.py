from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from courtbook.auth import require_roles
from courtbook.conflicts import club_tz, coach_bookings_on, coach_time_off_on
from courtbook.datetime_utils import as_utc_iso, utc_now
from courtbook.db import get_db
from courtbook.errors import BadRequest, Conflict, Forbidden, NotFound
from courtbook.logging import get_logger
from courtbook.models import Coach, CoachTimeOff, User
from courtbook.scheduling import (
    TimeWindow,
    is_valid_date_format,
    is_valid_time_format,
    local_window,
    windows_overlap,
)

logger = get_logger(__name__)

router = APIRouter()

require_coach = require_roles("coach", "root_admin")


class TimeOffBody(BaseModel):
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None


def serialize_time_off(entry: CoachTimeOff) -> dict:
    return {
        "id": entry.id,
        "coach_id": entry.coach_id,
        "date": entry.date.isoformat(),
        "start_time": entry.start_time,
        "end_time": entry.end_time,
        "reason": entry.reason,
        "created_at": as_utc_iso(entry.created_at),
        "updated_at": as_utc_iso(entry.updated_at),
    }


def coach_for(db: Session, user: User, coach_id: Optional[str] = None) -> Coach:
    if coach_id is not None and user.role == "root_admin":
        coach = db.get(Coach, coach_id)
    else:
        coach = db.query(Coach).filter(Coach.user_id == user.id).first()
    if coach is None:
        raise NotFound("Coach profile not found")
    return coach


def load_owned_entry(db: Session, entry_id: str, user: User, action: str) -> CoachTimeOff:
    entry = db.get(CoachTimeOff, entry_id)
    if entry is None:
        raise NotFound("Time off entry not found")
    if user.role == "root_admin":
        return entry
    coach = coach_for(db, user)
    if entry.coach_id != coach.id:
        raise Forbidden(f"Forbidden: You can only {action} your own time off entries")
    return entry


def validate_window(start_time: Optional[str], end_time: Optional[str]) -> TimeWindow:
    if start_time is None and end_time is None:
        return TimeWindow.full_day()
    if not start_time or not end_time:
        raise BadRequest("Both start_time and end_time are required for partial-day time off")
    if not is_valid_time_format(start_time) or not is_valid_time_format(end_time):
        raise BadRequest("Invalid time format. Use HH:mm")
    return TimeWindow.from_strings(start_time, end_time)


def ensure_no_conflicts(
    db: Session,
    coach: Coach,
    day: date_type,
    window: TimeWindow,
    verb: str,
    exclude_id: Optional[str] = None,
) -> None:
    now = utc_now()
    tz = club_tz(coach.club)
    for booking in coach_bookings_on(db, coach, day, now):
        _, booking_window = local_window(booking.start, booking.end, tz)
        if windows_overlap(window, booking_window):
            raise Conflict(f"Cannot {verb} time off: conflicts with existing booking")

    for existing in coach_time_off_on(db, coach.id, day, exclude_id=exclude_id):
        existing_window = TimeWindow.from_strings(existing.start_time, existing.end_time)
        if existing_window.is_full_day or window.is_full_day:
            raise Conflict("Time off entry already exists for this date")
        if windows_overlap(window, existing_window):
            raise Conflict("This time off overlaps with an existing time off entry")


@router.get("")
def list_time_off(
    coach_id: Optional[str] = Query(default=None),
    user: User = Depends(require_coach),
    db: Session = Depends(get_db),
):
    coach = coach_for(db, user, coach_id)
    entries = (
        db.query(CoachTimeOff)
        .filter(CoachTimeOff.coach_id == coach.id)
        .order_by(CoachTimeOff.date.asc(), CoachTimeOff.start_time.asc())
        .all()
    )
    return {"time_offs": [serialize_time_off(e) for e in entries]}


@router.post("", status_code=201)
def create_time_off(
    body: TimeOffBody,
    coach_id: Optional[str] = Query(default=None),
    user: User = Depends(require_coach),
    db: Session = Depends(get_db),
):
    """
    Block out a full day (no times) or part of a day for the coach.
    Rejected when it overlaps the coach's bookings or other time off that day.
    """
    coach = coach_for(db, user, coach_id)

    if not body.date:
        raise BadRequest("Missing required field: date")
    if not is_valid_date_format(body.date):
        raise BadRequest("Invalid date format. Use YYYY-MM-DD")
    window = validate_window(body.start_time, body.end_time)
    day = date_type.fromisoformat(body.date)

    ensure_no_conflicts(db, coach, day, window, "create")

    entry = CoachTimeOff(
        coach_id=coach.id,
        date=day,
        start_time=body.start_time or None,
        end_time=body.end_time or None,
        reason=body.reason or None,
    )
    db.add(entry)
    db.commit()
    logger.info("Coach %s took time off on %s (%s)", coach.id, day, window)
    return serialize_time_off(entry)


@router.put("/{entry_id}")
def update_time_off(
    entry_id: str,
    body: TimeOffBody,
    user: User = Depends(require_coach),
    db: Session = Depends(get_db),
):
    entry = load_owned_entry(db, entry_id, user, "modify")
    provided = body.model_fields_set

    if "date" in provided and (body.date is None or not is_valid_date_format(body.date)):
        raise BadRequest("Invalid date format. Use YYYY-MM-DD")

    day = date_type.fromisoformat(body.date) if "date" in provided else entry.date
    start_time = body.start_time if "start_time" in provided else entry.start_time
    end_time = body.end_time if "end_time" in provided else entry.end_time
    reason = body.reason if "reason" in provided else entry.reason

    window = validate_window(start_time, end_time)
    coach = db.get(Coach, entry.coach_id)
    ensure_no_conflicts(db, coach, day, window, "update", exclude_id=entry.id)

    entry.date = day
    entry.start_time = start_time
    entry.end_time = end_time
    entry.reason = reason
    db.commit()
    return serialize_time_off(entry)


@router.delete("/{entry_id}")
def delete_time_off(entry_id: str, user: User = Depends(require_coach), db: Session = Depends(get_db)):
    entry = load_owned_entry(db, entry_id, user, "delete")
    db.delete(entry)
    db.commit()
    return {"success": True}
