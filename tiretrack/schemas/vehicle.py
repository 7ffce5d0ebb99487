# tiretrack/schemas/vehicle.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class VehicleCreate(BaseModel):
    """Customer adding a car to their own account."""
    license_plate: str = Field(min_length=1)
    car_model: Optional[str] = None
    car_year: Optional[str] = None
    car_color: Optional[str] = None
    car_vin: Optional[str] = None


class VehicleUpdate(BaseModel):
    car_model: Optional[str] = None
    car_year: Optional[str] = None
    car_color: Optional[str] = None
    car_vin: Optional[str] = None


class AdminVehicleCreate(VehicleCreate):
    phone: str = Field(min_length=9)
    owner_name: Optional[str] = None


class AdminVehicleUpdate(VehicleUpdate):
    owner_name: Optional[str] = None


class OwnerOut(BaseModel):
    id: int
    phone: str
    name: Optional[str]

    class Config:
        from_attributes = True


class VehicleOut(BaseModel):
    id: int
    license_plate: str
    car_model: Optional[str]
    car_year: Optional[str]
    car_color: Optional[str]
    car_vin: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class AdminVehicleOut(VehicleOut):
    owner: OwnerOut


class VehicleAdded(VehicleOut):
    restored: bool = False
