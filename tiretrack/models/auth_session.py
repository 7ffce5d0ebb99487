# tiretrack/models/auth_session.py
"""Opaque bearer tokens for portal owners and admins. Expired rows are rejected on lookup."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from tiretrack.database import Base
from tiretrack.utils.normalize import utc_now


class AuthSession(Base):
    __tablename__ = "auth_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(128), unique=True, nullable=False, index=True)
    kind = Column(String(10), nullable=False)                   # owner | admin
    owner_id = Column(Integer, ForeignKey("owners.id"))
    admin_user_id = Column(Integer, ForeignKey("admin_users.id"))
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    owner = relationship("Owner")
    admin_user = relationship("AdminUser")

    def __repr__(self):
        return f"<AuthSession {self.id} kind={self.kind} expires={self.expires_at}>"
