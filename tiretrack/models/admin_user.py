# tiretrack/models/admin_user.py
"""Back-office accounts. Passwords are stored as salted PBKDF2 hashes."""

from sqlalchemy import Boolean, Column, Integer, String, DateTime
from tiretrack.constants import AdminRole
from tiretrack.database import Base
from tiretrack.utils.normalize import utc_now


class AdminUser(Base):
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default=AdminRole.ADMIN.value, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    def __repr__(self):
        return f"<AdminUser {self.username} role={self.role}>"
