from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from courtbook.auth import ADMIN_ROLES, ensure_can_manage_club, require_roles
from courtbook.booking_state import BookingStatus, PaymentStatus
from courtbook.conflicts import ensure_slot_available, release_expired_reservations
from courtbook.datetime_utils import utc_now
from courtbook.db import get_db
from courtbook.errors import BadRequest, Forbidden, NotFound
from courtbook.logging import get_logger
from courtbook.models import Booking, Club, Court, User
from courtbook.routers.bookings import (
    load_coach,
    load_court,
    price_for,
    serialize_booking,
    validate_range,
)

logger = get_logger(__name__)

router = APIRouter()


class AdminCreateBody(BaseModel):
    user_id: str
    court_id: str
    start: datetime
    end: datetime
    club_id: Optional[str] = None
    coach_id: Optional[str] = None


@router.post("", status_code=201)
def create_booking(
    body: AdminCreateBody,
    admin: User = Depends(require_roles(*ADMIN_ROLES)),
    db: Session = Depends(get_db),
):
    """
    Book a court on behalf of a player. Admin bookings are confirmed straight
    away and carry no reservation expiry; payment stays unpaid.
    """
    now = utc_now()
    start, end = validate_range(body.start, body.end, now)

    court = load_court(db, body.court_id)
    if body.club_id and court.club_id != body.club_id:
        raise BadRequest("Court does not belong to the specified club")
    ensure_can_manage_club(db, admin, court.club)

    player = db.get(User, body.user_id)
    if player is None:
        raise NotFound("User not found")
    if player.blocked:
        raise Forbidden("User is blocked and cannot make bookings")

    coach = load_coach(db, body.coach_id, court)

    release_expired_reservations(db, now, court_id=court.id)
    ensure_slot_available(db, court, start, end, now, coach=coach)

    booking = Booking(
        court_id=court.id,
        user_id=player.id,
        coach_id=coach.id if coach else None,
        start=start,
        end=end,
        price_cents=price_for(court, start, end),
        booking_status=BookingStatus.CONFIRMED.value,
        payment_status=PaymentStatus.UNPAID.value,
        reserved_at=now,
    )
    db.add(booking)
    db.commit()
    logger.info("Admin %s booked court %s for user %s (%s)", admin.id, court.id, player.id, booking.id)

    return serialize_booking(booking, now, admin_view=True)


@router.post("/release-expired")
def release_expired(
    club_id: Optional[str] = None,
    admin: User = Depends(require_roles(*ADMIN_ROLES)),
    db: Session = Depends(get_db),
):
    """Release lapsed reservations, everywhere (root admin) or in one club."""
    now = utc_now()
    if club_id is None:
        if admin.role != "root_admin":
            raise Forbidden("club_id is required")
        released = release_expired_reservations(db, now)
    else:
        club = db.get(Club, club_id)
        if club is None:
            raise NotFound("Club not found")
        ensure_can_manage_club(db, admin, club)
        released = sum(
            release_expired_reservations(db, now, court_id=court_id)
            for court_id in _court_ids(db, club.id)
        )
    db.commit()
    return {"released": released}


def _court_ids(db: Session, club_id: str) -> list[str]:
    return [row.id for row in db.query(Court.id).filter(Court.club_id == club_id).all()]
