# tests/conftest.py
import os
import tempfile
import uuid
from datetime import date, datetime, timedelta

os.environ["SKIP_DB_INIT"] = "1"
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from courtbook.datetime_utils import utc_now
from courtbook.db import get_db
from courtbook.models import (
    Base,
    Booking,
    Club,
    ClubAdmin,
    ClubBusinessHours,
    ClubSpecialHours,
    Coach,
    CoachTimeOff,
    Court,
    Organization,
    OrganizationAdmin,
    User,
    UserSession,
)
from courtbook.main import app

CLUB_TZ = "UTC"


@pytest.fixture(scope="function")
def test_db_session():
    # temp DB
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    db_url = f"sqlite:///{tmp.name}"

    # test engine / Session
    engine = create_engine(db_url, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
        tmp.close()
        os.unlink(tmp.name)


@pytest.fixture(scope="function")
def client(test_db_session):
    def override_get_db():
        try:
            yield test_db_session
        finally:
            # drop whatever a rejected request flushed but never committed
            test_db_session.rollback()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


def tomorrow_at(hour, minute=0):
    """Naive UTC datetime tomorrow at the given wall-clock time (clubs in tests are UTC)."""
    day = utc_now().date() + timedelta(days=1)
    return datetime(day.year, day.month, day.day, hour, minute)


def iso(value: datetime) -> str:
    return value.isoformat() + "Z"


# Factories
@pytest.fixture
def make_user(test_db_session):
    def _make_user(user_id=None, name="Player", email=None, role="player", blocked=False):
        user_id = user_id or f"u-{uuid.uuid4().hex[:8]}"
        u = User(
            id=user_id,
            name=name,
            email=email or f"{user_id}@example.com",
            role=role,
            blocked=blocked,
        )
        test_db_session.add(u)
        test_db_session.commit()
        return u
    return _make_user


@pytest.fixture
def login(test_db_session):
    """Create a session for the user and return request headers carrying its cookie."""
    def _login(user, expires_at=None):
        token = uuid.uuid4().hex
        test_db_session.add(UserSession(
            token=token,
            user_id=user.id,
            expires_at=expires_at or utc_now() + timedelta(hours=1),
        ))
        test_db_session.commit()
        return {"Cookie": f"session_token={token}"}
    return _login


@pytest.fixture
def make_club(test_db_session):
    def _make_club(club_id=None, name="Club 1", timezone=CLUB_TZ, organization_id=None):
        if organization_id is None:
            org = Organization(id=f"org-{uuid.uuid4().hex[:8]}", name="Org")
            test_db_session.add(org)
            test_db_session.flush()
            organization_id = org.id
        club = Club(
            id=club_id or f"club-{uuid.uuid4().hex[:8]}",
            organization_id=organization_id,
            name=name,
            timezone=timezone,
        )
        test_db_session.add(club)
        test_db_session.commit()
        return club
    return _make_club


@pytest.fixture
def make_court(test_db_session, make_club):
    def _make_court(court_id=None, club=None, price_per_hour=60000):
        club = club or make_club()
        court = Court(
            id=court_id or f"court-{uuid.uuid4().hex[:8]}",
            club_id=club.id,
            name="Court",
            sport_type="PADEL",
            default_price_cents=price_per_hour,
        )
        test_db_session.add(court)
        test_db_session.commit()
        return court
    return _make_court


@pytest.fixture
def make_club_admin(test_db_session, make_user):
    def _make_club_admin(club, role="club_admin"):
        admin = make_user(role=role, name="Admin")
        if role == "club_admin":
            test_db_session.add(ClubAdmin(club_id=club.id, user_id=admin.id))
        elif role == "organization_admin":
            test_db_session.add(OrganizationAdmin(organization_id=club.organization_id, user_id=admin.id))
        test_db_session.commit()
        return admin
    return _make_club_admin


@pytest.fixture
def make_coach(test_db_session, make_user, make_club):
    def _make_coach(club=None, user=None):
        club = club or make_club()
        user = user or make_user(role="coach", name="Coach")
        coach = Coach(id=f"coach-{uuid.uuid4().hex[:8]}", user_id=user.id, club_id=club.id)
        test_db_session.add(coach)
        test_db_session.commit()
        return coach
    return _make_coach


@pytest.fixture
def make_booking(test_db_session):
    def _make_booking(court, user, start, end, booking_status="confirmed",
                      payment_status="unpaid", reservation_expires_at=None, coach=None):
        b = Booking(
            court_id=court.id,
            user_id=user.id,
            coach_id=coach.id if coach else None,
            start=start,
            end=end,
            price_cents=1000,
            booking_status=booking_status,
            payment_status=payment_status,
            reservation_expires_at=reservation_expires_at,
        )
        test_db_session.add(b)
        test_db_session.commit()
        return b
    return _make_booking


@pytest.fixture
def make_time_off(test_db_session):
    def _make_time_off(coach, day: date, start_time=None, end_time=None, reason=None):
        entry = CoachTimeOff(
            coach_id=coach.id, date=day, start_time=start_time, end_time=end_time, reason=reason
        )
        test_db_session.add(entry)
        test_db_session.commit()
        return entry
    return _make_time_off


@pytest.fixture
def set_hours(test_db_session):
    def _set_hours(club, weekly=None, special=None):
        """weekly: {day_of_week: (open, close) or None}; special: {date: (open, close) or None}"""
        for day, hours in (weekly or {}).items():
            test_db_session.add(ClubBusinessHours(
                club_id=club.id,
                day_of_week=day,
                open_time=hours[0] if hours else None,
                close_time=hours[1] if hours else None,
                is_closed=hours is None,
            ))
        for day, hours in (special or {}).items():
            test_db_session.add(ClubSpecialHours(
                club_id=club.id,
                date=day,
                open_time=hours[0] if hours else None,
                close_time=hours[1] if hours else None,
                is_closed=hours is None,
            ))
        test_db_session.commit()
        test_db_session.expire(club)
    return _set_hours
