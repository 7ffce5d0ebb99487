# tiretrack/services/auth_service.py
"""
Authentication contract: issue, validate and expire opaque session tokens.

Owners log in with a one-time SMS code; admins with username + password
(PBKDF2-SHA256, salted). Sessions are rows in auth_sessions keyed by a random
token and rejected once expired.
"""

import hashlib
import hmac
import secrets
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from tiretrack.config import settings
from tiretrack.constants import AdminRole, SessionKind
from tiretrack.exceptions import AuthError, RateLimitError
from tiretrack.models.admin_user import AdminUser
from tiretrack.models.auth_session import AuthSession
from tiretrack.models.otp_token import OtpToken
from tiretrack.models.owner import Owner
from tiretrack.services import sms_service
from tiretrack.services.vehicle_service import find_or_create_owner
from tiretrack.utils.logger import get_logger
from tiretrack.utils.normalize import mask_phone, normalize_phone, utc_now

logger = get_logger(__name__)

PBKDF2_ALGORITHM = "pbkdf2_sha256"
PBKDF2_ITERATIONS = 260000


# ── Passwords & tokens ───────────────────────────────────────────────────────

def hash_password(password: str, salt: Optional[str] = None, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Encoded as "pbkdf2_sha256$<iterations>$<salt>$<hex digest>"."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return f"{PBKDF2_ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, _ = encoded.split("$", 3)
        iterations = int(iterations)
    except ValueError:
        return False
    if algorithm != PBKDF2_ALGORITHM:
        return False
    return hmac.compare_digest(hash_password(password, salt, iterations), encoded)


def generate_otp_code(length: Optional[int] = None) -> str:
    length = length or settings.OTP_CODE_LENGTH
    return "".join(secrets.choice("0123456789") for _ in range(length))


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def create_session(
    db: Session,
    kind: SessionKind,
    expires_in: timedelta,
    owner_id: Optional[int] = None,
    admin_user_id: Optional[int] = None,
) -> AuthSession:
    session = AuthSession(
        token=generate_session_token(),
        kind=kind.value,
        owner_id=owner_id,
        admin_user_id=admin_user_id,
        expires_at=utc_now() + expires_in,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def validate_session(db: Session, token: Optional[str], kind: SessionKind) -> AuthSession:
    if not token:
        raise AuthError("Not authenticated")
    session = db.query(AuthSession).filter(AuthSession.token == token).first()
    if session is None or session.kind != kind.value:
        raise AuthError("Invalid session")
    if session.expires_at <= utc_now():
        db.delete(session)
        db.commit()
        raise AuthError("Session expired")
    return session


def expire_session(db: Session, token: str) -> bool:
    deleted = db.query(AuthSession).filter(AuthSession.token == token).delete()
    db.commit()
    return deleted > 0


# ── Owner OTP login ──────────────────────────────────────────────────────────

async def request_otp(db: Session, phone: str) -> dict:
    """
    Create the owner if needed and text them a fresh code. Raises RateLimitError
    while the previous code's cooldown is running.
    """
    phone = normalize_phone(phone)
    now = utc_now()
    find_or_create_owner(db, phone)

    pending = (
        db.query(OtpToken)
        .filter(OtpToken.phone == phone, OtpToken.is_verified.is_(False), OtpToken.expires_at > now)
        .order_by(OtpToken.created_at.desc(), OtpToken.id.desc())
        .first()
    )
    if pending is not None and pending.cooldown_until and now < pending.cooldown_until:
        remaining = int((pending.cooldown_until - now).total_seconds()) + 1
        logger.info(f"[Auth] OTP cooldown active for {mask_phone(phone)} ({remaining}s)")
        raise RateLimitError("Please wait before requesting another OTP", retry_after=remaining)

    db.query(OtpToken).filter(OtpToken.phone == phone, OtpToken.is_verified.is_(False)).delete()
    code = generate_otp_code()
    db.add(OtpToken(
        phone=phone,
        code=code,
        expires_at=now + timedelta(minutes=settings.OTP_EXPIRY_MINUTES),
        cooldown_until=now + timedelta(seconds=settings.OTP_COOLDOWN_SECONDS),
    ))
    db.commit()

    sent = await sms_service.send_otp(phone, code)
    if not sent:
        # The code stays valid; the owner can ask again after the cooldown
        logger.warning(f"[Auth] OTP for {mask_phone(phone)} was not delivered")
    logger.info(f"[Auth] OTP issued for {mask_phone(phone)}")
    return {
        "success": True,
        "phone_masked": mask_phone(phone),
        "expires_in_seconds": settings.OTP_EXPIRY_MINUTES * 60,
        "cooldown_seconds": settings.OTP_COOLDOWN_SECONDS,
    }


def verify_otp(db: Session, phone: str, code: str) -> Tuple[AuthSession, Owner]:
    """Check the latest pending code and open an owner session."""
    phone = normalize_phone(phone)
    now = utc_now()
    dev_bypass = not settings.is_production and code == settings.OTP_DEV_BYPASS_CODE

    owner = db.query(Owner).filter(Owner.phone == phone).first()
    if owner is None and dev_bypass:
        owner = find_or_create_owner(db, phone)
    if owner is None:
        raise AuthError("Unknown phone number. Please request an OTP first.")

    token = (
        db.query(OtpToken)
        .filter(OtpToken.phone == phone, OtpToken.is_verified.is_(False))
        .order_by(OtpToken.created_at.desc(), OtpToken.id.desc())
        .first()
    )

    if dev_bypass:
        logger.warning(f"[Auth] Development bypass code used for {mask_phone(phone)}")
    else:
        if token is None:
            raise AuthError("No OTP found. Please request a new OTP.")
        if token.expires_at <= now:
            raise AuthError("OTP has expired. Please request a new OTP.")
        if token.attempts >= settings.OTP_MAX_ATTEMPTS:
            raise RateLimitError("Too many failed attempts. Please request a new OTP.")
        if not hmac.compare_digest(token.code, code):
            token.attempts += 1
            db.commit()
            remaining = max(0, settings.OTP_MAX_ATTEMPTS - token.attempts)
            logger.info(f"[Auth] Wrong OTP for {mask_phone(phone)}, {remaining} attempt(s) left")
            raise AuthError(f"Invalid OTP code ({remaining} attempts remaining)")

    if token is not None:
        token.is_verified = True
    session = create_session(
        db, SessionKind.OWNER, timedelta(days=settings.SESSION_EXPIRY_DAYS), owner_id=owner.id,
    )
    logger.info(f"[Auth] Owner {owner.id} logged in")
    return session, owner


# ── Admin login ──────────────────────────────────────────────────────────────

def admin_login(db: Session, username: str, password: str) -> AuthSession:
    admin = db.query(AdminUser).filter(AdminUser.username == username).first()
    if admin is None or not admin.is_active or not verify_password(password, admin.password_hash):
        logger.warning(f"[Auth] Failed admin login for '{username}'")
        raise AuthError("Invalid credentials")
    session = create_session(
        db, SessionKind.ADMIN, timedelta(hours=settings.ADMIN_SESSION_EXPIRY_HOURS), admin_user_id=admin.id,
    )
    logger.info(f"[Auth] Admin '{username}' logged in")
    return session


def create_admin_user(db: Session, username: str, password: str, role: AdminRole = AdminRole.ADMIN) -> AdminUser:
    admin = AdminUser(username=username, password_hash=hash_password(password), role=role.value)
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def ensure_bootstrap_admin(db: Session) -> Optional[AdminUser]:
    """Create the first admin from ADMIN_USERNAME / ADMIN_PASSWORD when the table is empty."""
    if not settings.ADMIN_PASSWORD:
        return None
    if db.query(AdminUser).count() > 0:
        return None
    admin = create_admin_user(db, settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD, AdminRole.SUPER_ADMIN)
    logger.info(f"[Auth] Bootstrap admin '{admin.username}' created")
    return admin
