# tiretrack/models/oil_change.py
"""An engine oil change during a visit. interval_km overrides the oil-type default."""

from sqlalchemy import Column, Integer, Float, String, ForeignKey
from sqlalchemy.orm import relationship
from tiretrack.database import Base


class OilChange(Base):
    __tablename__ = "oil_changes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    service_visit_id = Column(Integer, ForeignKey("service_visits.id"), nullable=False, index=True)
    oil_model = Column(String(100))
    viscosity = Column(String(20))
    engine_type = Column(String(50))
    oil_type = Column(String(50))
    interval_km = Column(Integer)
    price = Column(Float)

    service_visit = relationship("ServiceVisit", back_populates="oil_changes")

    def __repr__(self):
        return f"<OilChange {self.id} visit={self.service_visit_id} {self.oil_model} {self.viscosity}>"
