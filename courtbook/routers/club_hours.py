from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from courtbook.auth import ADMIN_ROLES, ensure_can_manage_club, require_roles
from courtbook.db import get_db
from courtbook.errors import NotFound
from courtbook.logging import get_logger
from courtbook.models import Club, ClubBusinessHours, ClubSpecialHours, User
from courtbook.scheduling import validate_business_hours, validate_special_hours

logger = get_logger(__name__)

router = APIRouter()


class BusinessHour(BaseModel):
    day_of_week: int
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    is_closed: bool = False


class SpecialHour(BaseModel):
    date: date_type
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    is_closed: bool = False
    reason: Optional[str] = None


class HoursBody(BaseModel):
    business_hours: list[BusinessHour] = []
    special_hours: list[SpecialHour] = []


def serialize_hours(club: Club) -> dict:
    return {
        "club_id": club.id,
        "timezone": club.timezone,
        "business_hours": [
            {
                "day_of_week": h.day_of_week,
                "open_time": h.open_time,
                "close_time": h.close_time,
                "is_closed": h.is_closed,
            }
            for h in club.business_hours
        ],
        "special_hours": [
            {
                "date": h.date.isoformat(),
                "open_time": h.open_time,
                "close_time": h.close_time,
                "is_closed": h.is_closed,
                "reason": h.reason,
            }
            for h in club.special_hours
        ],
    }


def load_club(db: Session, club_id: str) -> Club:
    club = db.get(Club, club_id)
    if club is None:
        raise NotFound("Club not found")
    return club


@router.get("/{club_id}/hours")
def get_hours(club_id: str, db: Session = Depends(get_db)):
    return serialize_hours(load_club(db, club_id))


@router.put("/{club_id}/hours")
def replace_hours(
    club_id: str,
    body: HoursBody,
    admin: User = Depends(require_roles(*ADMIN_ROLES)),
    db: Session = Depends(get_db),
):
    """Replace the club's weekly and special hours in one go."""
    club = load_club(db, club_id)
    ensure_can_manage_club(db, admin, club)

    validate_business_hours(body.business_hours)
    validate_special_hours(body.special_hours)

    # Delete before insert so the per-day unique constraints never see both rows
    db.query(ClubBusinessHours).filter(ClubBusinessHours.club_id == club.id).delete()
    db.query(ClubSpecialHours).filter(ClubSpecialHours.club_id == club.id).delete()
    db.flush()

    db.add_all(
        ClubBusinessHours(
            club_id=club.id,
            day_of_week=h.day_of_week,
            open_time=None if h.is_closed else h.open_time,
            close_time=None if h.is_closed else h.close_time,
            is_closed=h.is_closed,
        )
        for h in body.business_hours
    )
    db.add_all(
        ClubSpecialHours(
            club_id=club.id,
            date=h.date,
            open_time=None if h.is_closed else h.open_time,
            close_time=None if h.is_closed else h.close_time,
            is_closed=h.is_closed,
            reason=h.reason or None,
        )
        for h in body.special_hours
    )
    db.commit()
    db.refresh(club)
    logger.info("Hours replaced for club %s by %s", club.id, admin.id)
    return serialize_hours(club)
