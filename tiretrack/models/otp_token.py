# tiretrack/models/otp_token.py
"""One-time login codes sent by SMS to portal owners."""

from sqlalchemy import Boolean, Column, Integer, String, DateTime
from tiretrack.database import Base
from tiretrack.utils.normalize import utc_now


class OtpToken(Base):
    __tablename__ = "otp_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(String(20), nullable=False, index=True)
    code = Column(String(10), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    cooldown_until = Column(DateTime)
    attempts = Column(Integer, default=0, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    def __repr__(self):
        return f"<OtpToken {self.id} phone={self.phone} verified={self.is_verified}>"
