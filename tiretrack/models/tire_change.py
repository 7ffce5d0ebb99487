# tiretrack/models/tire_change.py
"""A tire installed at one wheel position during a visit."""

from sqlalchemy import Column, Integer, Float, String, ForeignKey
from sqlalchemy.orm import relationship
from tiretrack.database import Base


class TireChange(Base):
    __tablename__ = "tire_changes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    service_visit_id = Column(Integer, ForeignKey("service_visits.id"), nullable=False, index=True)
    position = Column(String(2), nullable=False, index=True)   # FL | FR | RL | RR | SP
    tire_size = Column(String(50))
    brand = Column(String(100))
    tire_model = Column(String(100))
    production_week = Column(String(4))                         # WWYY
    price_per_tire = Column(Float)

    service_visit = relationship("ServiceVisit", back_populates="tire_changes")

    def __repr__(self):
        return f"<TireChange {self.id} visit={self.service_visit_id} pos={self.position} size={self.tire_size}>"
