from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from courtbook.config import get_settings
from courtbook.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    # Import models here to create tables
    from courtbook import models

    Base.metadata.create_all(bind=engine)

    if settings.ENVIRONMENT != "local":
        return

    # Seed a demo club for local development if empty
    db = SessionLocal()
    try:
        if not db.query(models.Organization).first():
            _seed_demo_club(db, models)
            db.commit()
            logger.info("Seeded demo organization, club and courts")
    finally:
        db.close()


def _seed_demo_club(db, models):
    from datetime import timedelta

    from courtbook.datetime_utils import utc_now

    org = models.Organization(id="org-demo", name="Demo Sports")
    club = models.Club(
        id="club-demo",
        organization=org,
        name="Demo Padel Club",
        timezone=settings.DEFAULT_CLUB_TIMEZONE,
    )
    db.add_all([org, club])
    for i in range(2):
        db.add(models.Court(
            id=f"court-{i + 1}",
            club=club,
            name=f"Court {i + 1}",
            sport_type="PADEL",
            default_price_cents=40000,
        ))
    for day in range(7):
        db.add(models.ClubBusinessHours(
            club=club, day_of_week=day, open_time="08:00", close_time="22:00", is_closed=False
        ))

    player = models.User(id="u-demo", name="Demo Player", email="demo@example.com", role="player")
    db.add(player)
    db.add(models.UserSession(
        token="demo-session",
        user=player,
        expires_at=utc_now() + timedelta(days=30),
    ))
