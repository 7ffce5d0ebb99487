# tiretrack/models/vehicle.py
"""
Vehicles by normalized license plate.
The plate column is unique across live and soft-deleted rows; a soft-deleted
vehicle is restored (not re-created) when its plate shows up again.
"""

from sqlalchemy import Boolean, Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from tiretrack.constants import VehicleState
from tiretrack.database import Base
from tiretrack.utils.normalize import utc_now


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    license_plate = Column(String(50), unique=True, nullable=False, index=True)
    car_model = Column(String(100))
    car_year = Column(String(10))
    car_color = Column(String(50))
    car_vin = Column(String(50))
    owner_id = Column(Integer, ForeignKey("owners.id"), nullable=False, index=True)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    owner = relationship("Owner", back_populates="vehicles")
    service_visits = relationship(
        "ServiceVisit",
        back_populates="vehicle",
        cascade="all, delete-orphan",
        order_by="desc(ServiceVisit.visit_date)",
    )

    @property
    def state(self) -> VehicleState:
        return VehicleState.SOFT_DELETED if self.is_deleted else VehicleState.ACTIVE

    def __repr__(self):
        return f"<Vehicle {self.license_plate} owner={self.owner_id} state={self.state.value}>"
