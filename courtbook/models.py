import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship, validates

from courtbook.datetime_utils import utc_now
from courtbook.db import Base
from courtbook.emails import normalize_email


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False)
    role = Column(String, nullable=False, default="player")
    blocked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utc_now)

    __table_args__ = (
        CheckConstraint(
            "role in ('player','coach','club_admin','organization_admin','root_admin')",
            name="user_role_valid",
        ),
    )

    @validates("email")
    def _normalize_email(self, key, value):
        return normalize_email(value)


class UserSession(Base):
    __tablename__ = "sessions"
    token = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utc_now)
    expires_at = Column(DateTime)

    user = relationship("User")


class Organization(Base):
    __tablename__ = "organizations"
    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=utc_now)


class OrganizationAdmin(Base):
    __tablename__ = "organization_admins"
    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uniq_org_admin"),
    )


class Club(Base):
    __tablename__ = "clubs"
    id = Column(String, primary_key=True, default=new_id)
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    timezone = Column(String, nullable=False, default="Europe/Kyiv")
    created_at = Column(DateTime, default=utc_now)

    organization = relationship("Organization")
    business_hours = relationship(
        "ClubBusinessHours",
        order_by="ClubBusinessHours.day_of_week",
        cascade="all, delete-orphan",
    )
    special_hours = relationship(
        "ClubSpecialHours",
        order_by="ClubSpecialHours.date",
        cascade="all, delete-orphan",
    )


class ClubAdmin(Base):
    __tablename__ = "club_admins"
    id = Column(Integer, primary_key=True, autoincrement=True)
    club_id = Column(String, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("club_id", "user_id", name="uniq_club_admin"),
    )


class Court(Base):
    __tablename__ = "courts"
    id = Column(String, primary_key=True, default=new_id)
    club_id = Column(String, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    sport_type = Column(String, nullable=False, default="PADEL")
    default_price_cents = Column(Integer, nullable=False, default=0)  # per hour
    created_at = Column(DateTime, default=utc_now)

    club = relationship("Club")


class Coach(Base):
    __tablename__ = "coaches"
    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    club_id = Column(String, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False)

    user = relationship("User")
    club = relationship("Club")


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(String, primary_key=True, default=new_id)
    court_id = Column(String, ForeignKey("courts.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    coach_id = Column(String, ForeignKey("coaches.id", ondelete="SET NULL"))
    start = Column(DateTime, nullable=False)
    end = Column(DateTime, nullable=False)
    price_cents = Column(Integer, nullable=False, default=0)
    booking_status = Column(String, nullable=False, default="pending")
    payment_status = Column(String, nullable=False, default="unpaid")
    cancel_reason = Column(String)
    reserved_at = Column(DateTime)
    reservation_expires_at = Column(DateTime)
    created_at = Column(DateTime, default=utc_now)

    court = relationship("Court")
    user = relationship("User")
    coach = relationship("Coach")

    __table_args__ = (
        CheckConstraint('"end" > start', name="booking_time_valid"),
        CheckConstraint(
            "booking_status in ('pending','confirmed','cancelled')", name="booking_status_valid"
        ),
        CheckConstraint(
            "payment_status in ('unpaid','paid','refunded')", name="payment_status_valid"
        ),
        Index("ix_bookings_court_start", "court_id", "start"),
    )


class CoachTimeOff(Base):
    __tablename__ = "coach_time_off"
    id = Column(String, primary_key=True, default=new_id)
    coach_id = Column(String, ForeignKey("coaches.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(String)  # HH:MM, null with end_time = full day
    end_time = Column(String)
    reason = Column(String)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index("ix_coach_time_off_coach_date", "coach_id", "date"),
    )


class ClubBusinessHours(Base):
    __tablename__ = "club_business_hours"
    id = Column(Integer, primary_key=True, autoincrement=True)
    club_id = Column(String, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday
    open_time = Column(String)
    close_time = Column(String)
    is_closed = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("day_of_week between 0 and 6", name="business_day_valid"),
        UniqueConstraint("club_id", "day_of_week", name="uniq_club_day"),
    )


class ClubSpecialHours(Base):
    __tablename__ = "club_special_hours"
    id = Column(Integer, primary_key=True, autoincrement=True)
    club_id = Column(String, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    open_time = Column(String)
    close_time = Column(String)
    is_closed = Column(Boolean, nullable=False, default=False)
    reason = Column(String)

    __table_args__ = (
        UniqueConstraint("club_id", "date", name="uniq_club_special_date"),
    )
