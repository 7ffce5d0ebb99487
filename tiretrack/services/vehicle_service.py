# tiretrack/services/vehicle_service.py
"""
Owner, branch and vehicle management.

Find-or-create helpers are shared by manual entry and spreadsheet import.
The vehicle lifecycle is ACTIVE -> SOFT_DELETED -> ACTIVE; restoring can purge
the visit history so a re-sold plate does not inherit the previous owner's services.
"""

from typing import Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from tiretrack.exceptions import ConflictError, NotFoundError
from tiretrack.models.branch import Branch
from tiretrack.models.owner import Owner
from tiretrack.models.service_visit import ServiceVisit
from tiretrack.models.vehicle import Vehicle
from tiretrack.schemas.branch import BranchCreate, BranchUpdate
from tiretrack.schemas.vehicle import AdminVehicleCreate, AdminVehicleUpdate, VehicleCreate, VehicleUpdate
from tiretrack.utils.logger import get_logger
from tiretrack.utils.normalize import mask_phone, normalize_for_search, normalize_phone, normalize_plate, utc_now
from tiretrack.utils.pagination import DEFAULT_LIMIT, calculate_skip, paginate

logger = get_logger(__name__)

_DESCRIPTIVE_FIELDS = ("car_model", "car_year", "car_color", "car_vin")


# ── Find-or-create ───────────────────────────────────────────────────────────

def find_or_create_owner(db: Session, phone: str, name: Optional[str] = None) -> Owner:
    """Owner by canonical phone. Fills a missing name but never overwrites one."""
    phone = normalize_phone(phone)
    owner = db.query(Owner).filter(Owner.phone == phone).first()
    if owner is None:
        owner = Owner(phone=phone, name=name, phone_masked=mask_phone(phone))
        db.add(owner)
        db.flush()
        logger.info(f"[Vehicle] Created owner {owner.phone_masked}")
    elif name and not owner.name:
        owner.name = name
    return owner


def find_or_create_branch(db: Session, name: str) -> Branch:
    branch = db.query(Branch).filter(Branch.name == name).order_by(Branch.id).first()
    if branch is None:
        branch = Branch(name=name)
        db.add(branch)
        db.flush()
        logger.info(f"[Vehicle] Created branch '{name}'")
    return branch


def find_vehicle_by_plate(db: Session, plate: str) -> Optional[Vehicle]:
    """Looks up live and soft-deleted vehicles alike."""
    return db.query(Vehicle).filter(Vehicle.license_plate == normalize_plate(plate)).first()


def find_or_create_vehicle(
    db: Session,
    plate: str,
    owner: Owner,
    car_model: Optional[str] = None,
    purge_on_restore: bool = True,
) -> Vehicle:
    """
    Vehicle by normalized plate. A soft-deleted vehicle is restored and handed
    to `owner`; a live vehicle keeps whoever owns it.
    """
    plate = normalize_plate(plate)
    vehicle = db.query(Vehicle).filter(Vehicle.license_plate == plate).first()
    if vehicle is None:
        vehicle = Vehicle(license_plate=plate, car_model=car_model, owner=owner)
        db.add(vehicle)
        db.flush()
        logger.info(f"[Vehicle] Created vehicle {plate}")
    elif vehicle.is_deleted:
        restore_vehicle(db, vehicle, purge_history=purge_on_restore, owner=owner)
    if car_model and not vehicle.car_model:
        vehicle.car_model = car_model
    return vehicle


# ── Lifecycle ────────────────────────────────────────────────────────────────

def soft_delete_vehicle(db: Session, vehicle: Vehicle) -> Vehicle:
    if vehicle.is_deleted:
        raise ConflictError(f"Vehicle {vehicle.license_plate} is already deleted")
    vehicle.is_deleted = True
    vehicle.updated_at = utc_now()
    db.flush()
    logger.info(f"[Vehicle] Soft-deleted {vehicle.license_plate}")
    return vehicle


def restore_vehicle(
    db: Session,
    vehicle: Vehicle,
    purge_history: bool = False,
    owner: Optional[Owner] = None,
) -> Vehicle:
    """SOFT_DELETED -> ACTIVE. With purge_history every visit (and its children) is hard-deleted first."""
    if not vehicle.is_deleted:
        raise ConflictError(f"Vehicle {vehicle.license_plate} is not deleted")
    if purge_history:
        purged = len(vehicle.service_visits)
        vehicle.service_visits.clear()
        db.flush()
        logger.info(f"[Vehicle] Purged {purged} visit(s) from {vehicle.license_plate}")
    vehicle.is_deleted = False
    if owner is not None and vehicle.owner_id != owner.id:
        vehicle.owner = owner
    vehicle.updated_at = utc_now()
    db.flush()
    logger.info(f"[Vehicle] Restored {vehicle.license_plate} (purge={purge_history})")
    return vehicle


def _fill_descriptive(vehicle: Vehicle, data, overwrite: bool) -> None:
    for field in _DESCRIPTIVE_FIELDS:
        value = getattr(data, field, None)
        if value is None:
            continue
        if overwrite or not getattr(vehicle, field):
            setattr(vehicle, field, value)


def _plate_filter(search: str, include_owner_name: bool = False):
    terms = normalize_for_search(search)
    clauses = [
        Vehicle.license_plate.ilike(f"%{terms.normalized}%"),
        func.replace(Vehicle.license_plate, " ", "").ilike(f"%{terms.stripped}%"),
        Owner.phone.contains(search.strip()),
    ]
    if include_owner_name:
        clauses.append(Owner.name.ilike(f"%{search.strip()}%"))
    return or_(*clauses)


def _last_service(db: Session, vehicle_id: int) -> Optional[dict]:
    visit = (
        db.query(ServiceVisit)
        .filter(ServiceVisit.vehicle_id == vehicle_id)
        .order_by(ServiceVisit.visit_date.desc(), ServiceVisit.id.desc())
        .first()
    )
    if visit is None:
        return None
    return {
        "date": visit.visit_date,
        "branch": visit.branch.name,
        "odometer_km": visit.odometer_km,
        "has_tire_changes": len(visit.tire_changes) > 0,
        "has_oil_changes": len(visit.oil_changes) > 0,
    }


def vehicle_summary(db: Session, vehicle: Vehicle) -> dict:
    return {
        "id": vehicle.id,
        "license_plate": vehicle.license_plate,
        "car_model": vehicle.car_model,
        "car_year": vehicle.car_year,
        "car_color": vehicle.car_color,
        "car_vin": vehicle.car_vin,
        "created_at": vehicle.created_at,
        "last_service": _last_service(db, vehicle.id),
    }


# ── Customer operations (scoped to one owner) ────────────────────────────────

def get_owner_vehicle(db: Session, owner_id: int, vehicle_id: int) -> Vehicle:
    vehicle = db.query(Vehicle).filter(
        Vehicle.id == vehicle_id,
        Vehicle.owner_id == owner_id,
        Vehicle.is_deleted.is_(False),
    ).first()
    if vehicle is None:
        raise NotFoundError("Car not found")
    return vehicle


def list_owner_vehicles(db: Session, owner_id: int, search: Optional[str] = None) -> list:
    q = db.query(Vehicle).join(Owner).filter(Vehicle.owner_id == owner_id, Vehicle.is_deleted.is_(False))
    if search:
        q = q.filter(_plate_filter(search))
    vehicles = q.order_by(Vehicle.created_at.desc(), Vehicle.id.desc()).all()
    return [vehicle_summary(db, v) for v in vehicles]


def get_owner_vehicle_detail(db: Session, owner_id: int, vehicle_id: int) -> dict:
    vehicle = get_owner_vehicle(db, owner_id, vehicle_id)
    visits = vehicle.service_visits    # newest first
    last_tire = next((v for v in visits if v.tire_changes), None)
    last_oil = next((v for v in visits if v.oil_changes), None)
    detail = vehicle_summary(db, vehicle)
    detail["stats"] = {
        "total_visits": len(visits),
        "tire_change_count": sum(len(v.tire_changes) for v in visits),
        "tire_switch_count": sum(len(v.tire_switches) for v in visits),
        "oil_change_count": sum(len(v.oil_changes) for v in visits),
        "last_tire_change": last_tire.visit_date if last_tire else None,
        "last_oil_change": last_oil.visit_date if last_oil else None,
        "last_odometer": visits[0].odometer_km if visits else None,
    }
    detail["recent_visits"] = [
        {
            "id": v.id,
            "date": v.visit_date,
            "branch": v.branch.name,
            "odometer_km": v.odometer_km,
            "total_price": v.total_price,
            "services": {
                "tire_changes": len(v.tire_changes),
                "tire_switches": len(v.tire_switches),
                "oil_changes": len(v.oil_changes),
            },
        }
        for v in visits[:5]
    ]
    return detail


def get_owner_vehicle_by_plate(db: Session, owner_id: int, plate: str) -> dict:
    vehicle = find_vehicle_by_plate(db, plate)
    if vehicle is None or vehicle.is_deleted or vehicle.owner_id != owner_id:
        raise NotFoundError("Car not found")
    return vehicle_summary(db, vehicle)


def add_owner_vehicle(db: Session, owner: Owner, data: VehicleCreate) -> Tuple[Vehicle, bool]:
    """
    Returns (vehicle, restored). An active plate conflicts whoever owns it.
    The owner's own soft-deleted car comes back with its history; another
    owner's soft-deleted car comes back empty.
    """
    plate = normalize_plate(data.license_plate)
    existing = db.query(Vehicle).filter(Vehicle.license_plate == plate).first()

    if existing is not None and not existing.is_deleted:
        if existing.owner_id == owner.id:
            raise ConflictError("You already have this car registered.")
        raise ConflictError("This license plate is already registered to another account.")

    if existing is not None:
        own_car = existing.owner_id == owner.id
        restore_vehicle(db, existing, purge_history=not own_car, owner=owner)
        _fill_descriptive(existing, data, overwrite=True)
        db.commit()
        db.refresh(existing)
        return existing, True

    vehicle = Vehicle(license_plate=plate, owner=owner)
    _fill_descriptive(vehicle, data, overwrite=True)
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    logger.info(f"[Vehicle] Owner {owner.id} added {plate}")
    return vehicle, False


def update_owner_vehicle(db: Session, owner_id: int, vehicle_id: int, data: VehicleUpdate) -> Vehicle:
    vehicle = get_owner_vehicle(db, owner_id, vehicle_id)
    _fill_descriptive(vehicle, data, overwrite=True)
    vehicle.updated_at = utc_now()
    db.commit()
    db.refresh(vehicle)
    return vehicle


def remove_owner_vehicle(db: Session, owner_id: int, vehicle_id: int) -> None:
    vehicle = get_owner_vehicle(db, owner_id, vehicle_id)
    soft_delete_vehicle(db, vehicle)
    db.commit()


# ── Admin operations ─────────────────────────────────────────────────────────

def get_vehicle(db: Session, vehicle_id: int) -> Vehicle:
    vehicle = db.get(Vehicle, vehicle_id)
    if vehicle is None or vehicle.is_deleted:
        raise NotFoundError("Car not found")
    return vehicle


def list_vehicles(db: Session, search: Optional[str] = None, page: int = 1, limit: int = DEFAULT_LIMIT) -> dict:
    skip = calculate_skip(page, limit)
    q = db.query(Vehicle).join(Owner).filter(Vehicle.is_deleted.is_(False))
    if search:
        q = q.filter(_plate_filter(search, include_owner_name=True))
    total = q.count()
    vehicles = q.order_by(Vehicle.created_at.desc(), Vehicle.id.desc()).offset(skip).limit(limit).all()
    data = [
        {
            "id": v.id,
            "license_plate": v.license_plate,
            "car_model": v.car_model,
            "car_year": v.car_year,
            "car_color": v.car_color,
            "car_vin": v.car_vin,
            "owner": {"id": v.owner.id, "phone": v.owner.phone, "name": v.owner.name},
            "service_count": len(v.service_visits),
            "created_at": v.created_at,
        }
        for v in vehicles
    ]
    return paginate(data, total, page, limit)


def search_vehicles(db: Session, query: str, limit: int = 10) -> list:
    """Autocomplete for the add-service form. Needs at least two characters."""
    if not query or len(query.strip()) < 2:
        return []
    vehicles = (
        db.query(Vehicle).join(Owner)
        .filter(Vehicle.is_deleted.is_(False), _plate_filter(query))
        .order_by(Vehicle.created_at.desc(), Vehicle.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": v.id,
            "license_plate": v.license_plate,
            "car_model": v.car_model,
            "owner_phone": v.owner.phone,
            "owner_name": v.owner.name,
        }
        for v in vehicles
    ]


def get_vehicle_admin(db: Session, vehicle_id: int) -> dict:
    vehicle = get_vehicle(db, vehicle_id)
    return {
        "id": vehicle.id,
        "license_plate": vehicle.license_plate,
        "car_model": vehicle.car_model,
        "car_year": vehicle.car_year,
        "car_color": vehicle.car_color,
        "car_vin": vehicle.car_vin,
        "created_at": vehicle.created_at,
        "owner": {"id": vehicle.owner.id, "phone": vehicle.owner.phone, "name": vehicle.owner.name},
        "recent_visits": [
            {
                "id": v.id,
                "visit_date": v.visit_date,
                "branch": v.branch.name,
                "odometer_km": v.odometer_km,
                "total_price": v.total_price,
                "tire_change_count": len(v.tire_changes),
                "oil_change_count": len(v.oil_changes),
            }
            for v in vehicle.service_visits[:10]
        ],
    }


def create_vehicle_admin(db: Session, data: AdminVehicleCreate) -> Tuple[Vehicle, bool]:
    plate = normalize_plate(data.license_plate)
    existing = db.query(Vehicle).filter(Vehicle.license_plate == plate).first()
    if existing is not None and not existing.is_deleted:
        raise ConflictError("Car with this license plate already exists")

    owner = find_or_create_owner(db, data.phone, name=data.owner_name)

    if existing is not None:
        restore_vehicle(db, existing, purge_history=True, owner=owner)
        _fill_descriptive(existing, data, overwrite=True)
        db.commit()
        db.refresh(existing)
        return existing, True

    vehicle = Vehicle(license_plate=plate, owner=owner)
    _fill_descriptive(vehicle, data, overwrite=True)
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    logger.info(f"[Vehicle] Admin created {plate}")
    return vehicle, False


def update_vehicle_admin(db: Session, vehicle_id: int, data: AdminVehicleUpdate) -> Vehicle:
    vehicle = get_vehicle(db, vehicle_id)
    _fill_descriptive(vehicle, data, overwrite=True)
    if data.owner_name:
        vehicle.owner.name = data.owner_name
    vehicle.updated_at = utc_now()
    db.commit()
    db.refresh(vehicle)
    return vehicle


def delete_vehicle_admin(db: Session, vehicle_id: int) -> None:
    vehicle = get_vehicle(db, vehicle_id)
    soft_delete_vehicle(db, vehicle)
    db.commit()


# ── Branches ─────────────────────────────────────────────────────────────────

def list_branches(db: Session, active_only: bool = False) -> list:
    q = db.query(Branch)
    if active_only:
        q = q.filter(Branch.is_active.is_(True))
    return q.order_by(Branch.name.asc()).all()


def create_branch(db: Session, data: BranchCreate) -> Branch:
    branch = Branch(**data.model_dump())
    db.add(branch)
    db.commit()
    db.refresh(branch)
    logger.info(f"[Vehicle] Admin created branch '{branch.name}'")
    return branch


def update_branch(db: Session, branch_id: int, data: BranchUpdate) -> Branch:
    branch = db.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError("Branch not found")
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(branch, field, value)
    db.commit()
    db.refresh(branch)
    return branch
