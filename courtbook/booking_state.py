"""Booking lifecycle.

A booking moves along two coupled axes: ``booking_status``
(pending -> confirmed | cancelled) and ``payment_status``
(unpaid -> paid | refunded). Pending reservations hold their slot only until
``reservation_expires_at``.

Functions here take any object with the Booking attributes and the current
time, mutate it in place and raise ``courtbook.errors`` exceptions when a
transition is not allowed. Persistence is the caller's job.
"""

import enum
from datetime import datetime, timedelta

from courtbook.errors import BadRequest, Conflict


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


class CancelReason(str, enum.Enum):
    USER_CANCELLED = "USER_CANCELLED"
    ADMIN_CANCELLED = "ADMIN_CANCELLED"
    RESERVATION_EXPIRED = "RESERVATION_EXPIRED"


class DynamicStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"


def reservation_expiry(now: datetime, ttl_minutes: int) -> datetime:
    return now + timedelta(minutes=ttl_minutes)


def is_reservation_expired(booking, now: datetime) -> bool:
    return (
        booking.booking_status == BookingStatus.PENDING
        and booking.payment_status == PaymentStatus.UNPAID
        and booking.reservation_expires_at is not None
        and booking.reservation_expires_at <= now
    )


def is_blocking(booking, now: datetime) -> bool:
    """Whether the booking still occupies its slot."""
    if booking.booking_status == BookingStatus.CANCELLED:
        return False
    return not is_reservation_expired(booking, now)


def ensure_cancellable(booking, now: datetime) -> None:
    if booking.booking_status == BookingStatus.CANCELLED:
        raise Conflict("This booking has already been cancelled")
    if booking.payment_status != PaymentStatus.UNPAID:
        # TODO: route paid bookings through a refund flow once payments support refunds
        raise BadRequest("Cannot cancel a paid booking. Please contact support for refunds.")
    if booking.start <= now:
        raise BadRequest("Cannot cancel a booking that has already started or passed")


def cancel(booking, now: datetime, reason: CancelReason = CancelReason.USER_CANCELLED):
    ensure_cancellable(booking, now)
    booking.booking_status = BookingStatus.CANCELLED.value
    booking.cancel_reason = reason.value
    booking.reservation_expires_at = None
    return booking


def release_if_expired(booking, now: datetime) -> bool:
    """Cancel a lapsed reservation. Returns True when the booking was released."""
    if not is_reservation_expired(booking, now):
        return False
    booking.booking_status = BookingStatus.CANCELLED.value
    booking.cancel_reason = CancelReason.RESERVATION_EXPIRED.value
    booking.reservation_expires_at = None
    return True


def ensure_payable(booking, now: datetime) -> None:
    if booking.booking_status == BookingStatus.CANCELLED:
        raise Conflict("This booking has been cancelled")
    if booking.payment_status == PaymentStatus.PAID:
        raise BadRequest("This booking has already been paid")
    if booking.payment_status == PaymentStatus.REFUNDED:
        raise BadRequest("This booking has been refunded")
    if booking.start <= now:
        raise BadRequest("This booking slot has already passed")


def extend_reservation(booking, now: datetime, ttl_minutes: int):
    """
    Give a pending reservation a fresh expiry window so the player can
    finish paying. Confirmed bookings hold their slot without an expiry.
    """
    ensure_payable(booking, now)
    if booking.booking_status == BookingStatus.PENDING:
        booking.reservation_expires_at = reservation_expiry(now, ttl_minutes)
    return booking


def confirm_payment(booking, now: datetime):
    if booking.booking_status == BookingStatus.CANCELLED:
        raise Conflict("This booking has been cancelled")
    if booking.payment_status != PaymentStatus.UNPAID:
        raise BadRequest("This booking has already been paid")
    if is_reservation_expired(booking, now):
        raise Conflict("Reservation has expired")
    booking.booking_status = BookingStatus.CONFIRMED.value
    booking.payment_status = PaymentStatus.PAID.value
    booking.reservation_expires_at = None
    return booking


def dynamic_status(start: datetime, end: datetime, now: datetime) -> DynamicStatus:
    if now < start:
        return DynamicStatus.UPCOMING
    if now < end:
        return DynamicStatus.ONGOING
    return DynamicStatus.COMPLETED


_CANCELLED_LABELS = {
    PaymentStatus.REFUNDED: "Cancelled (Refunded)",
}

_PLAYER_LABELS = {
    (BookingStatus.PENDING, PaymentStatus.UNPAID): "Reserved, payment pending",
    (BookingStatus.PENDING, PaymentStatus.PAID): "Booked",
    (BookingStatus.CONFIRMED, PaymentStatus.UNPAID): "Confirmed, awaiting payment",
    (BookingStatus.CONFIRMED, PaymentStatus.PAID): "Confirmed",
}

_ADMIN_LABELS = {
    (BookingStatus.PENDING, PaymentStatus.UNPAID): "Reserved, pending payment",
    (BookingStatus.PENDING, PaymentStatus.PAID): "Paid",
    (BookingStatus.CONFIRMED, PaymentStatus.UNPAID): "Reserved, pending payment",
    (BookingStatus.CONFIRMED, PaymentStatus.PAID): "Reserved (paid)",
}

_COMPLETED_PLAYER_LABELS = {
    PaymentStatus.PAID: "Completed",
    PaymentStatus.UNPAID: "Missed / Not paid",
    PaymentStatus.REFUNDED: "Refunded",
}

_COMPLETED_ADMIN_LABELS = {
    PaymentStatus.PAID: "Completed",
    PaymentStatus.UNPAID: "Missed / Not paid",
    PaymentStatus.REFUNDED: "Completed (Refunded)",
}


def _display_status(booking, now, labels, completed_labels) -> str:
    booking_status = BookingStatus(booking.booking_status)
    payment_status = PaymentStatus(booking.payment_status)

    if booking_status == BookingStatus.CANCELLED:
        return _CANCELLED_LABELS.get(payment_status, "Cancelled")
    if dynamic_status(booking.start, booking.end, now) == DynamicStatus.COMPLETED:
        return completed_labels[payment_status]
    if payment_status == PaymentStatus.REFUNDED:
        return "Refunded"
    return labels[(booking_status, payment_status)]


def player_display_status(booking, now: datetime) -> str:
    return _display_status(booking, now, _PLAYER_LABELS, _COMPLETED_PLAYER_LABELS)


def admin_display_status(booking, now: datetime) -> str:
    return _display_status(booking, now, _ADMIN_LABELS, _COMPLETED_ADMIN_LABELS)
