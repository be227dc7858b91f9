from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from courtbook import booking_state
from courtbook.auth import can_manage_club, ensure_can_manage_club, get_current_user
from courtbook.booking_state import BookingStatus, CancelReason, PaymentStatus
from courtbook.config import get_settings
from courtbook.conflicts import ensure_slot_available, release_expired_reservations
from courtbook.datetime_utils import as_utc_iso, to_utc_naive, utc_now
from courtbook.db import get_db
from courtbook.errors import BadRequest, Forbidden, NotFound
from courtbook.logging import get_logger
from courtbook.models import Booking, Coach, Court, User

logger = get_logger(__name__)

router = APIRouter()


class ReserveBody(BaseModel):
    court_id: str
    start: datetime
    end: datetime
    coach_id: Optional[str] = None


def price_for(court: Court, start: datetime, end: datetime) -> int:
    minutes = round((end - start).total_seconds() / 60)
    return round(court.default_price_cents * minutes / 60)


def serialize_booking(booking: Booking, now: datetime, admin_view: bool = False) -> dict:
    if admin_view:
        display_status = booking_state.admin_display_status(booking, now)
    else:
        display_status = booking_state.player_display_status(booking, now)
    return {
        "id": booking.id,
        "court_id": booking.court_id,
        "user_id": booking.user_id,
        "coach_id": booking.coach_id,
        "start": as_utc_iso(booking.start),
        "end": as_utc_iso(booking.end),
        "price_cents": booking.price_cents,
        "booking_status": booking.booking_status,
        "payment_status": booking.payment_status,
        "cancel_reason": booking.cancel_reason,
        "reservation_expires_at": as_utc_iso(booking.reservation_expires_at),
        "display_status": display_status,
    }


def load_booking_for(db: Session, booking_id: str, user: User) -> tuple[Booking, bool]:
    """
    Fetch a booking the user may act on. Returns the booking and whether the
    user is acting as an administrator of its club rather than as its owner.
    """
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    if booking.user_id == user.id:
        return booking, False
    if can_manage_club(db, user, booking.court.club):
        return booking, True
    raise Forbidden("You do not have permission to access this booking")


def validate_range(start: datetime, end: datetime, now: datetime) -> tuple[datetime, datetime]:
    start, end = to_utc_naive(start), to_utc_naive(end)
    if start >= end:
        raise BadRequest("Start time must be before end time")
    if start <= now:
        raise BadRequest("Cannot book in the past")
    return start, end


def load_court(db: Session, court_id: str) -> Court:
    court = db.get(Court, court_id)
    if court is None:
        raise NotFound("Court not found")
    return court


def load_coach(db: Session, coach_id: Optional[str], court: Court) -> Optional[Coach]:
    if coach_id is None:
        return None
    coach = db.get(Coach, coach_id)
    if coach is None:
        raise NotFound("Coach not found")
    if coach.club_id != court.club_id:
        raise BadRequest("Coach does not belong to the court's club")
    return coach


@router.post("/reserve", status_code=201)
def reserve(body: ReserveBody, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Hold a court slot for the player while they pay.

    The reservation is pending/unpaid and blocks the slot until
    ``reservation_expires_at``; lapsed reservations on the court are released
    first so they never block a new one.
    """
    settings = get_settings()
    now = utc_now()
    start, end = validate_range(body.start, body.end, now)

    if user.blocked:
        raise Forbidden("User is blocked and cannot make bookings")

    court = load_court(db, body.court_id)
    coach = load_coach(db, body.coach_id, court)

    release_expired_reservations(db, now, court_id=court.id)
    ensure_slot_available(db, court, start, end, now, coach=coach)

    booking = Booking(
        court_id=court.id,
        user_id=user.id,
        coach_id=coach.id if coach else None,
        start=start,
        end=end,
        price_cents=price_for(court, start, end),
        booking_status=BookingStatus.PENDING.value,
        payment_status=PaymentStatus.UNPAID.value,
        reserved_at=now,
        reservation_expires_at=booking_state.reservation_expiry(now, settings.RESERVATION_TTL_MINUTES),
    )
    db.add(booking)
    db.commit()
    logger.info("Reservation %s created on court %s for user %s", booking.id, court.id, user.id)

    return {
        "booking_id": booking.id,
        "court_id": booking.court_id,
        "start": as_utc_iso(booking.start),
        "end": as_utc_iso(booking.end),
        "price_cents": booking.price_cents,
        "expires_at": as_utc_iso(booking.reservation_expires_at),
    }


@router.get("")
def list_my_bookings(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    now = utc_now()
    bookings = (
        db.query(Booking)
        .filter(Booking.user_id == user.id)
        .order_by(Booking.start.asc())
        .all()
    )
    return [serialize_booking(b, now) for b in bookings]


@router.get("/{booking_id}")
def get_booking(booking_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    booking, as_admin = load_booking_for(db, booking_id, user)
    return serialize_booking(booking, utc_now(), admin_view=as_admin)


@router.post("/{booking_id}/cancel")
def cancel_booking(booking_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Cancel an unpaid booking that has not started yet."""
    now = utc_now()
    booking, as_admin = load_booking_for(db, booking_id, user)

    reason = CancelReason.ADMIN_CANCELLED if as_admin else CancelReason.USER_CANCELLED
    booking_state.cancel(booking, now, reason)
    db.commit()
    logger.info("Booking %s cancelled by %s (%s)", booking.id, user.id, reason.value)

    return {
        "success": True,
        "message": "Booking cancelled successfully",
        "booking": serialize_booking(booking, now, admin_view=as_admin),
    }


@router.post("/{booking_id}/resume-payment")
def resume_payment(booking_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Re-open payment for the owner's unpaid booking and extend its reservation.
    A reservation that already lapsed is revived only if its slot is still free.
    """
    settings = get_settings()
    now = utc_now()
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    if booking.user_id != user.id:
        raise Forbidden("You do not have permission to access this booking")

    booking_state.ensure_payable(booking, now)
    if booking_state.is_reservation_expired(booking, now):
        ensure_slot_available(
            db, booking.court, booking.start, booking.end, now,
            coach=booking.coach, exclude_id=booking.id,
        )

    booking_state.extend_reservation(booking, now, settings.RESERVATION_TTL_MINUTES)
    db.commit()
    logger.info("Reservation %s extended until %s", booking.id, booking.reservation_expires_at)

    result = serialize_booking(booking, now)
    result["club_id"] = booking.court.club_id
    return result


@router.post("/{booking_id}/confirm-payment")
def confirm_payment(booking_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Record a completed payment. Club administrators only."""
    now = utc_now()
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    ensure_can_manage_club(db, user, booking.court.club)

    booking_state.confirm_payment(booking, now)
    db.commit()
    logger.info("Payment confirmed for booking %s", booking.id)
    return serialize_booking(booking, now, admin_view=True)
