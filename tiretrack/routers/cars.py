# tiretrack/routers/cars.py
"""Customer portal: the signed-in owner's cars, their service history and status."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tiretrack.database import get_db
from tiretrack.models.owner import Owner
from tiretrack.routers.deps import get_current_owner
from tiretrack.schemas.vehicle import VehicleAdded, VehicleCreate, VehicleOut, VehicleUpdate
from tiretrack.services import projection_service, vehicle_service, visit_service
from tiretrack.utils.pagination import DEFAULT_LIMIT, MAX_LIMIT

router = APIRouter()


@router.get("/cars", summary="List my cars")
def list_cars(
    search: Optional[str] = None,
    owner: Owner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    return vehicle_service.list_owner_vehicles(db, owner.id, search)


@router.post("/cars", response_model=VehicleAdded, status_code=201, summary="Add a car")
def add_car(body: VehicleCreate, owner: Owner = Depends(get_current_owner), db: Session = Depends(get_db)):
    vehicle, restored = vehicle_service.add_owner_vehicle(db, owner, body)
    return VehicleAdded.model_validate(vehicle).model_copy(update={"restored": restored})


@router.get("/cars/by-plate/{plate}", summary="Find one of my cars by plate, in any spelling")
def get_car_by_plate(plate: str, owner: Owner = Depends(get_current_owner), db: Session = Depends(get_db)):
    return vehicle_service.get_owner_vehicle_by_plate(db, owner.id, plate)


@router.get("/cars/{car_id}", summary="Car detail with service stats")
def get_car(car_id: int, owner: Owner = Depends(get_current_owner), db: Session = Depends(get_db)):
    return vehicle_service.get_owner_vehicle_detail(db, owner.id, car_id)


@router.patch("/cars/{car_id}", response_model=VehicleOut, summary="Update model, year, color or VIN")
def update_car(
    car_id: int,
    body: VehicleUpdate,
    owner: Owner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    return vehicle_service.update_owner_vehicle(db, owner.id, car_id, body)


@router.delete("/cars/{car_id}", summary="Remove a car from my account")
def remove_car(car_id: int, owner: Owner = Depends(get_current_owner), db: Session = Depends(get_db)):
    vehicle_service.remove_owner_vehicle(db, owner.id, car_id)
    return {"success": True}


@router.get("/cars/{car_id}/tire-changes", summary="Tire change history")
def tire_changes(
    car_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    owner: Owner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    vehicle = vehicle_service.get_owner_vehicle(db, owner.id, car_id)
    return visit_service.list_tire_changes(db, vehicle.id, page, limit)


@router.get("/cars/{car_id}/tire-switches", summary="Tire rotation history")
def tire_switches(
    car_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    owner: Owner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    vehicle = vehicle_service.get_owner_vehicle(db, owner.id, car_id)
    return visit_service.list_tire_switches(db, vehicle.id, page, limit)


@router.get("/cars/{car_id}/oil-changes", summary="Oil change history")
def oil_changes(
    car_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    owner: Owner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    vehicle = vehicle_service.get_owner_vehicle(db, owner.id, car_id)
    return visit_service.list_oil_changes(db, vehicle.id, page, limit)


@router.get("/cars/{car_id}/status", summary="Tire wear and next services")
def car_status(
    car_id: int,
    current_odometer_km: Optional[int] = Query(None, ge=0),
    owner: Owner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    vehicle = vehicle_service.get_owner_vehicle(db, owner.id, car_id)
    return projection_service.get_vehicle_status(db, vehicle.id, current_odometer_km).to_dict()


@router.get("/visits/{visit_id}", summary="One service visit with everything done in it")
def visit_detail(visit_id: int, owner: Owner = Depends(get_current_owner), db: Session = Depends(get_db)):
    return visit_service.get_owner_visit(db, owner.id, visit_id)


@router.get("/history", summary="Service timeline across all my cars")
def history(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    owner: Owner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    return visit_service.get_owner_history(db, owner.id, page, limit)
