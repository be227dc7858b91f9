from typing import Optional

from fastapi import Cookie, Depends
from sqlalchemy.orm import Session

from courtbook.datetime_utils import utc_now
from courtbook.db import get_db
from courtbook.errors import Forbidden, Unauthorized
from courtbook.models import Club, ClubAdmin, OrganizationAdmin, User, UserSession

SESSION_COOKIE = "session_token"

ADMIN_ROLES = ("club_admin", "organization_admin", "root_admin")


def _user_for_token(db: Session, token: Optional[str]) -> Optional[User]:
    if not token:
        return None
    session = db.get(UserSession, token)
    if session is None:
        return None
    if session.expires_at is not None and session.expires_at <= utc_now():
        return None
    return session.user


def get_current_user(
    session_token: Optional[str] = Cookie(default=None),
    db: Session = Depends(get_db),
) -> User:
    user = _user_for_token(db, session_token)
    if user is None:
        raise Unauthorized("Unauthorized")
    return user


def get_optional_user(
    session_token: Optional[str] = Cookie(default=None),
    db: Session = Depends(get_db),
) -> Optional[User]:
    return _user_for_token(db, session_token)


def require_roles(*roles: str):
    """Dependency factory: the current user must hold one of ``roles``."""

    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise Forbidden("Forbidden: insufficient permissions")
        return user

    return dependency


def can_manage_club(db: Session, user: User, club: Club) -> bool:
    if user.role == "root_admin":
        return True
    if user.role == "club_admin":
        return db.query(ClubAdmin).filter(
            ClubAdmin.club_id == club.id, ClubAdmin.user_id == user.id
        ).first() is not None
    if user.role == "organization_admin":
        return db.query(OrganizationAdmin).filter(
            OrganizationAdmin.organization_id == club.organization_id,
            OrganizationAdmin.user_id == user.id,
        ).first() is not None
    return False


def ensure_can_manage_club(db: Session, user: User, club: Club) -> None:
    if not can_manage_club(db, user, club):
        raise Forbidden("You don't have permission to manage this club")
