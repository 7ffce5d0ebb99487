# tiretrack/models/service_visit.py
"""
One shop visit by one vehicle. Aggregate root for tire changes, tire switches
and oil changes; deleting a visit deletes its children.
"""

from sqlalchemy import Column, Integer, Float, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from tiretrack.database import Base
from tiretrack.utils.normalize import utc_now


class ServiceVisit(Base):
    __tablename__ = "service_visits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False)
    visit_date = Column(DateTime, nullable=False, index=True)   # naive UTC
    odometer_km = Column(Integer, nullable=False, default=0)
    total_price = Column(Float)
    services_note = Column(Text)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    vehicle = relationship("Vehicle", back_populates="service_visits")
    branch = relationship("Branch")
    tire_changes = relationship("TireChange", back_populates="service_visit", cascade="all, delete-orphan")
    tire_switches = relationship("TireSwitch", back_populates="service_visit", cascade="all, delete-orphan")
    oil_changes = relationship("OilChange", back_populates="service_visit", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<ServiceVisit {self.id} vehicle={self.vehicle_id} date={self.visit_date:%Y-%m-%d} odo={self.odometer_km}>"
