from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from courtbook import booking_state
from courtbook.booking_state import CancelReason, DynamicStatus
from courtbook.errors import BadRequest, Conflict

NOW = datetime(2026, 1, 15, 12, 0)


def booking(booking_status="pending", payment_status="unpaid", start=None, end=None,
            expires=None, cancel_reason=None):
    start = start or NOW + timedelta(days=1)
    return SimpleNamespace(
        booking_status=booking_status,
        payment_status=payment_status,
        start=start,
        end=end or start + timedelta(hours=1),
        reservation_expires_at=expires,
        cancel_reason=cancel_reason,
    )


# cancellation
@pytest.mark.parametrize("status", ["pending", "confirmed"])
def test_unpaid_future_booking_is_cancelled(status):
    b = booking(status, expires=NOW + timedelta(minutes=3))
    booking_state.cancel(b, NOW)
    assert b.booking_status == "cancelled"
    assert b.cancel_reason == "USER_CANCELLED"
    assert b.reservation_expires_at is None


def test_admin_cancellation_reason():
    b = booking("confirmed")
    booking_state.cancel(b, NOW, CancelReason.ADMIN_CANCELLED)
    assert b.cancel_reason == "ADMIN_CANCELLED"


@pytest.mark.parametrize("status", ["pending", "confirmed"])
def test_paid_booking_cannot_be_cancelled(status):
    b = booking(status, "paid")
    with pytest.raises(BadRequest, match="Cannot cancel a paid booking"):
        booking_state.cancel(b, NOW)
    assert b.booking_status == status


def test_refunded_booking_cannot_be_cancelled():
    with pytest.raises(BadRequest):
        booking_state.cancel(booking("confirmed", "refunded"), NOW)


def test_started_or_past_booking_cannot_be_cancelled():
    with pytest.raises(BadRequest, match="already started or passed"):
        booking_state.cancel(booking(start=NOW - timedelta(hours=1)), NOW)
    with pytest.raises(BadRequest):
        booking_state.cancel(booking(start=NOW), NOW)


def test_cancelled_is_terminal():
    b = booking("cancelled", cancel_reason="USER_CANCELLED")
    with pytest.raises(Conflict, match="already been cancelled"):
        booking_state.cancel(b, NOW)


def test_cancelled_check_wins_over_paid():
    with pytest.raises(Conflict):
        booking_state.cancel(booking("cancelled", "paid"), NOW)


# expiry
def test_reservation_blocks_until_expiry():
    b = booking(expires=NOW + timedelta(seconds=1))
    assert booking_state.is_blocking(b, NOW)
    assert not booking_state.is_reservation_expired(b, NOW)

    b.reservation_expires_at = NOW
    assert booking_state.is_reservation_expired(b, NOW)
    assert not booking_state.is_blocking(b, NOW)


def test_confirmed_and_paid_bookings_never_expire():
    past = NOW - timedelta(minutes=1)
    assert booking_state.is_blocking(booking("confirmed", expires=past), NOW)
    assert booking_state.is_blocking(booking("pending", "paid", expires=past), NOW)
    assert not booking_state.is_blocking(booking("cancelled"), NOW)


def test_release_if_expired():
    b = booking(expires=NOW - timedelta(minutes=1))
    assert booking_state.release_if_expired(b, NOW) is True
    assert b.booking_status == "cancelled"
    assert b.cancel_reason == "RESERVATION_EXPIRED"
    assert b.reservation_expires_at is None

    live = booking(expires=NOW + timedelta(minutes=1))
    assert booking_state.release_if_expired(live, NOW) is False
    assert live.booking_status == "pending"


def test_extend_reservation():
    b = booking(expires=NOW + timedelta(minutes=1))
    booking_state.extend_reservation(b, NOW, ttl_minutes=5)
    assert b.reservation_expires_at == NOW + timedelta(minutes=5)


def test_extend_leaves_confirmed_booking_without_expiry():
    b = booking("confirmed")
    booking_state.extend_reservation(b, NOW, ttl_minutes=5)
    assert b.reservation_expires_at is None


@pytest.mark.parametrize("kwargs,error", [
    ({"booking_status": "cancelled"}, Conflict),
    ({"payment_status": "paid"}, BadRequest),
    ({"payment_status": "refunded"}, BadRequest),
    ({"start": NOW - timedelta(minutes=5)}, BadRequest),
])
def test_extend_reservation_rejections(kwargs, error):
    with pytest.raises(error):
        booking_state.extend_reservation(booking(**kwargs), NOW, ttl_minutes=5)


# payment
def test_confirm_payment():
    b = booking(expires=NOW + timedelta(minutes=2))
    booking_state.confirm_payment(b, NOW)
    assert (b.booking_status, b.payment_status) == ("confirmed", "paid")
    assert b.reservation_expires_at is None


def test_confirm_payment_rejections():
    with pytest.raises(Conflict, match="expired"):
        booking_state.confirm_payment(booking(expires=NOW - timedelta(seconds=1)), NOW)
    with pytest.raises(BadRequest):
        booking_state.confirm_payment(booking("confirmed", "paid"), NOW)
    with pytest.raises(Conflict):
        booking_state.confirm_payment(booking("cancelled"), NOW)


# status
def test_dynamic_status_boundaries():
    start, end = NOW, NOW + timedelta(hours=1)
    assert booking_state.dynamic_status(start, end, NOW - timedelta(minutes=1)) == DynamicStatus.UPCOMING
    assert booking_state.dynamic_status(start, end, start) == DynamicStatus.ONGOING
    assert booking_state.dynamic_status(start, end, end) == DynamicStatus.COMPLETED


@pytest.mark.parametrize("status,payment,player,admin", [
    ("pending", "unpaid", "Reserved, payment pending", "Reserved, pending payment"),
    ("confirmed", "unpaid", "Confirmed, awaiting payment", "Reserved, pending payment"),
    ("confirmed", "paid", "Confirmed", "Reserved (paid)"),
    ("cancelled", "unpaid", "Cancelled", "Cancelled"),
    ("cancelled", "paid", "Cancelled", "Cancelled"),
    ("cancelled", "refunded", "Cancelled (Refunded)", "Cancelled (Refunded)"),
])
def test_display_status_upcoming(status, payment, player, admin):
    b = booking(status, payment)
    assert booking_state.player_display_status(b, NOW) == player
    assert booking_state.admin_display_status(b, NOW) == admin


@pytest.mark.parametrize("payment,player,admin", [
    ("paid", "Completed", "Completed"),
    ("unpaid", "Missed / Not paid", "Missed / Not paid"),
    ("refunded", "Refunded", "Completed (Refunded)"),
])
def test_display_status_completed(payment, player, admin):
    b = booking("confirmed", payment, start=NOW - timedelta(hours=2))
    assert booking_state.player_display_status(b, NOW) == player
    assert booking_state.admin_display_status(b, NOW) == admin
