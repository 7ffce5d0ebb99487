# tiretrack/models/branch.py
"""Shop branches. Imports look branches up (and create them) by exact name."""

from sqlalchemy import Boolean, Column, Integer, String, DateTime
from tiretrack.database import Base
from tiretrack.utils.normalize import utc_now


class Branch(Base):
    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False, index=True)
    code = Column(String(50))
    address = Column(String(500))
    phone = Column(String(20))
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    def __repr__(self):
        return f"<Branch {self.id} name={self.name}>"
