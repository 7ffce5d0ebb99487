# tiretrack/schemas/visit.py
"""Manual service entry (admin "add service") and visit detail payloads."""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import List, Optional

from tiretrack.constants import TirePosition
from tiretrack.exceptions import InvalidPositionError
from tiretrack.utils.normalize import normalize_position


def _position(value):
    if value is None:
        return value
    try:
        return normalize_position(value)
    except InvalidPositionError as e:
        raise ValueError(e.detail)


class TireChangeIn(BaseModel):
    position: TirePosition
    tire_size: Optional[str] = None
    brand: Optional[str] = None
    tire_model: Optional[str] = None
    production_week: Optional[str] = None
    price_per_tire: Optional[float] = None

    @field_validator("position", mode="before")
    @classmethod
    def parse_position(cls, value):
        return _position(value)


class TireSwitchIn(BaseModel):
    from_position: TirePosition
    to_position: TirePosition
    notes: Optional[str] = None

    @field_validator("from_position", "to_position", mode="before")
    @classmethod
    def parse_positions(cls, value):
        return _position(value)


class OilChangeIn(BaseModel):
    oil_model: Optional[str] = None
    viscosity: Optional[str] = None
    engine_type: Optional[str] = None
    oil_type: Optional[str] = None
    interval_km: Optional[int] = Field(default=None, gt=0)
    price: Optional[float] = None


class VisitCreate(BaseModel):
    license_plate: str = Field(min_length=1)
    phone: str = Field(min_length=9)
    car_model: Optional[str] = None
    branch_id: int
    visit_date: datetime
    odometer_km: int = Field(gt=0)
    total_price: Optional[float] = None
    services_note: Optional[str] = None
    tire_changes: List[TireChangeIn] = []
    tire_switches: List[TireSwitchIn] = []
    oil_change: Optional[OilChangeIn] = None


class VisitUpdate(BaseModel):
    visit_date: Optional[datetime] = None
    odometer_km: Optional[int] = Field(default=None, gt=0)
    total_price: Optional[float] = None
    services_note: Optional[str] = None
    branch_id: Optional[int] = None


class TireChangeOut(BaseModel):
    id: int
    position: str
    tire_size: Optional[str]
    brand: Optional[str]
    tire_model: Optional[str]
    production_week: Optional[str]
    price_per_tire: Optional[float]

    class Config:
        from_attributes = True


class TireSwitchOut(BaseModel):
    id: int
    from_position: Optional[str]
    to_position: Optional[str]
    notes: Optional[str]

    class Config:
        from_attributes = True


class OilChangeOut(BaseModel):
    id: int
    oil_model: Optional[str]
    viscosity: Optional[str]
    engine_type: Optional[str]
    oil_type: Optional[str]
    interval_km: Optional[int]
    price: Optional[float]

    class Config:
        from_attributes = True
