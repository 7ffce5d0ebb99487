# tiretrack/models/owner.py
"""
Vehicle owners (portal customers). Keyed by canonical phone number.
Created lazily the first time a phone appears in manual entry, import or OTP login.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from tiretrack.database import Base
from tiretrack.utils.normalize import utc_now


class Owner(Base):
    __tablename__ = "owners"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(200))
    phone_masked = Column(String(20))
    created_at = Column(DateTime, default=utc_now, nullable=False)

    vehicles = relationship("Vehicle", back_populates="owner")

    def __repr__(self):
        return f"<Owner {self.id} phone={self.phone_masked}>"
