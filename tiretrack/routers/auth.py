# tiretrack/routers/auth.py
"""Owner OTP login, admin login and logout."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from tiretrack.config import settings
from tiretrack.database import get_db
from tiretrack.routers.deps import read_token
from tiretrack.schemas.auth import AdminLogin, OtpRequest, OtpRequested, OtpVerify, SessionOut
from tiretrack.services import auth_service

router = APIRouter()


def _set_cookie(response: Response, token: str, max_age: int):
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=max_age,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


@router.post("/auth/otp/request", response_model=OtpRequested, summary="Send a login code by SMS")
async def request_otp(body: OtpRequest, db: Session = Depends(get_db)):
    return await auth_service.request_otp(db, body.phone)


@router.post("/auth/otp/verify", response_model=SessionOut, summary="Exchange a login code for a session")
def verify_otp(body: OtpVerify, response: Response, db: Session = Depends(get_db)):
    session, _ = auth_service.verify_otp(db, body.phone, body.code)
    _set_cookie(response, session.token, settings.SESSION_EXPIRY_DAYS * 24 * 3600)
    return session


@router.post("/admin/login", response_model=SessionOut, summary="Admin username/password login")
def admin_login(body: AdminLogin, response: Response, db: Session = Depends(get_db)):
    session = auth_service.admin_login(db, body.username, body.password)
    _set_cookie(response, session.token, settings.ADMIN_SESSION_EXPIRY_HOURS * 3600)
    return session


@router.post("/auth/logout", summary="Expire the current session")
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    token = read_token(request)
    expired = auth_service.expire_session(db, token) if token else False
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"success": True, "expired": expired}
