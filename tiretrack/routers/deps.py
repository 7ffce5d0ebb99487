# tiretrack/routers/deps.py
"""
Auth dependencies. A session token is read from `Authorization: Bearer <token>`
or, for browser clients, from the session cookie.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from tiretrack.config import settings
from tiretrack.constants import SessionKind
from tiretrack.database import get_db
from tiretrack.models.admin_user import AdminUser
from tiretrack.models.owner import Owner
from tiretrack.services.auth_service import validate_session


def read_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def get_current_owner(request: Request, db: Session = Depends(get_db)) -> Owner:
    session = validate_session(db, read_token(request), SessionKind.OWNER)
    return session.owner


def require_admin(request: Request, db: Session = Depends(get_db)) -> AdminUser:
    session = validate_session(db, read_token(request), SessionKind.ADMIN)
    return session.admin_user
