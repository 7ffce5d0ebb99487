# tiretrack/models/tire_switch.py
"""
A tire rotation during a visit. Imported rotations carry only free-text notes;
manual entries name the wheel pair.
"""

from sqlalchemy import Column, Integer, String, Text, ForeignKey
from sqlalchemy.orm import relationship
from tiretrack.database import Base


class TireSwitch(Base):
    __tablename__ = "tire_switches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    service_visit_id = Column(Integer, ForeignKey("service_visits.id"), nullable=False, index=True)
    from_position = Column(String(2))
    to_position = Column(String(2))
    notes = Column(Text)

    service_visit = relationship("ServiceVisit", back_populates="tire_switches")

    def __repr__(self):
        return f"<TireSwitch {self.id} visit={self.service_visit_id} {self.from_position}->{self.to_position}>"
