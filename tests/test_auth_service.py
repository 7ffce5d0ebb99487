# tests/test_auth_service.py
"""Tests for password hashing, OTP login, admin login and session validation."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, patch
from tiretrack.config import settings
from tiretrack.constants import AdminRole, SessionKind
from tiretrack.exceptions import AuthError, RateLimitError
from tiretrack.models import AdminUser, AuthSession, Owner, OtpToken
from tiretrack.services import auth_service
from tiretrack.utils.normalize import utc_now


def issued_code(db, phone="0811111111"):
    return db.query(OtpToken).filter(OtpToken.phone == phone).one().code


async def request(db, phone="081-111-1111"):
    with patch("tiretrack.services.sms_service.send_otp", new_callable=AsyncMock) as mock_send:
        mock_send.return_value = True
        result = await auth_service.request_otp(db, phone)
    return result, mock_send


class TestPasswords:
    def test_hash_round_trip(self):
        encoded = auth_service.hash_password("s3cret")
        assert encoded.startswith("pbkdf2_sha256$260000$")
        assert auth_service.verify_password("s3cret", encoded)
        assert not auth_service.verify_password("wrong", encoded)

    def test_salts_differ(self):
        assert auth_service.hash_password("s3cret") != auth_service.hash_password("s3cret")

    def test_malformed_hash_never_verifies(self):
        assert not auth_service.verify_password("s3cret", "plain-text")
        assert not auth_service.verify_password("s3cret", "md5$1$salt$abc")


class TestRequestOtp:
    @pytest.mark.asyncio
    async def test_creates_owner_and_sends_code(self, db):
        result, mock_send = await request(db)

        assert result["success"] is True
        assert result["phone_masked"] == "081xxxx111"
        assert result["expires_in_seconds"] == settings.OTP_EXPIRY_MINUTES * 60
        assert db.query(Owner).one().phone == "0811111111"
        code = issued_code(db)
        assert len(code) == settings.OTP_CODE_LENGTH
        mock_send.assert_awaited_once_with("0811111111", code)

    @pytest.mark.asyncio
    async def test_cooldown_blocks_second_request(self, db):
        await request(db)
        with pytest.raises(RateLimitError) as exc_info:
            await request(db)
        assert exc_info.value.retry_after > 0
        assert db.query(OtpToken).count() == 1

    @pytest.mark.asyncio
    async def test_new_code_replaces_pending_one_after_cooldown(self, db):
        await request(db)
        pending = db.query(OtpToken).one()
        pending.cooldown_until = utc_now() - timedelta(seconds=1)
        db.commit()

        await request(db)
        assert db.query(OtpToken).count() == 1
        assert db.query(OtpToken).one().cooldown_until > utc_now()

    @pytest.mark.asyncio
    async def test_undelivered_sms_still_issues_code(self, db):
        with patch("tiretrack.services.sms_service.send_otp", new_callable=AsyncMock) as mock_send:
            mock_send.return_value = False
            result = await auth_service.request_otp(db, "0811111111")
        assert result["success"] is True
        assert db.query(OtpToken).count() == 1


class TestVerifyOtp:
    @pytest.mark.asyncio
    async def test_correct_code_opens_owner_session(self, db):
        await request(db)
        session, owner = auth_service.verify_otp(db, "0811111111", issued_code(db))

        assert session.kind == SessionKind.OWNER.value
        assert session.owner_id == owner.id
        assert db.query(OtpToken).one().is_verified is True
        assert auth_service.validate_session(db, session.token, SessionKind.OWNER).id == session.id

    @pytest.mark.asyncio
    async def test_wrong_code_counts_attempts(self, db):
        await request(db)
        with pytest.raises(AuthError, match=r"4 attempts remaining"):
            auth_service.verify_otp(db, "0811111111", "not-it")
        assert db.query(OtpToken).one().attempts == 1

    @pytest.mark.asyncio
    async def test_too_many_attempts_locks_the_code(self, db):
        await request(db)
        code = issued_code(db)
        for _ in range(settings.OTP_MAX_ATTEMPTS):
            with pytest.raises(AuthError):
                auth_service.verify_otp(db, "0811111111", "not-it")
        with pytest.raises(RateLimitError):
            auth_service.verify_otp(db, "0811111111", code)

    @pytest.mark.asyncio
    async def test_expired_code(self, db):
        await request(db)
        token = db.query(OtpToken).one()
        token.expires_at = utc_now() - timedelta(seconds=1)
        db.commit()
        with pytest.raises(AuthError, match="expired"):
            auth_service.verify_otp(db, "0811111111", token.code)

    def test_unknown_phone(self, db):
        with pytest.raises(AuthError, match="Unknown phone"):
            auth_service.verify_otp(db, "0899999999", "123456")

    def test_dev_bypass_outside_production(self, db):
        session, owner = auth_service.verify_otp(db, "0899999999", settings.OTP_DEV_BYPASS_CODE)
        assert owner.phone == "0899999999"
        assert session.owner_id == owner.id

    def test_dev_bypass_refused_in_production(self, db):
        with patch.object(settings, "ENVIRONMENT", "production"):
            with pytest.raises(AuthError):
                auth_service.verify_otp(db, "0899999999", settings.OTP_DEV_BYPASS_CODE)


class TestSessions:
    def test_missing_token(self, db):
        with pytest.raises(AuthError, match="Not authenticated"):
            auth_service.validate_session(db, None, SessionKind.ADMIN)

    def test_wrong_kind_is_rejected(self, db):
        admin = auth_service.create_admin_user(db, "ops", "pw")
        session = auth_service.create_session(db, SessionKind.ADMIN, timedelta(hours=1), admin_user_id=admin.id)
        with pytest.raises(AuthError, match="Invalid session"):
            auth_service.validate_session(db, session.token, SessionKind.OWNER)

    def test_expired_session_is_removed(self, db):
        admin = auth_service.create_admin_user(db, "ops", "pw")
        session = auth_service.create_session(db, SessionKind.ADMIN, timedelta(seconds=-1), admin_user_id=admin.id)
        with pytest.raises(AuthError, match="expired"):
            auth_service.validate_session(db, session.token, SessionKind.ADMIN)
        assert db.query(AuthSession).count() == 0

    def test_logout(self, db):
        admin = auth_service.create_admin_user(db, "ops", "pw")
        session = auth_service.create_session(db, SessionKind.ADMIN, timedelta(hours=1), admin_user_id=admin.id)
        token = session.token
        assert auth_service.expire_session(db, token) is True
        assert auth_service.expire_session(db, token) is False
        with pytest.raises(AuthError):
            auth_service.validate_session(db, token, SessionKind.ADMIN)


class TestAdminLogin:
    def test_valid_credentials(self, db):
        admin = auth_service.create_admin_user(db, "ops", "pw")
        session = auth_service.admin_login(db, "ops", "pw")
        assert session.admin_user_id == admin.id
        assert session.kind == SessionKind.ADMIN.value

    def test_wrong_password_and_inactive_account(self, db):
        admin = auth_service.create_admin_user(db, "ops", "pw")
        with pytest.raises(AuthError, match="Invalid credentials"):
            auth_service.admin_login(db, "ops", "nope")
        admin.is_active = False
        db.commit()
        with pytest.raises(AuthError, match="Invalid credentials"):
            auth_service.admin_login(db, "ops", "pw")

    def test_bootstrap_admin_only_when_empty(self, db):
        with patch.object(settings, "ADMIN_PASSWORD", None):
            assert auth_service.ensure_bootstrap_admin(db) is None

        with patch.object(settings, "ADMIN_PASSWORD", "boot-pw"):
            admin = auth_service.ensure_bootstrap_admin(db)
            assert admin.role == AdminRole.SUPER_ADMIN.value
            assert auth_service.ensure_bootstrap_admin(db) is None
        assert db.query(AdminUser).count() == 1
        assert auth_service.admin_login(db, settings.ADMIN_USERNAME, "boot-pw")
