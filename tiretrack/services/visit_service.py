# tiretrack/services/visit_service.py
"""
Service visits and their children (tire changes, tire switches, oil changes).

Both manual entry and spreadsheet import reconcile against the vehicle's visit
for the same UTC day: the visit is created once and patched afterwards, and each
child is only added when no equal child (by its dedup key) already exists.
"""

from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from tiretrack.constants import TirePosition
from tiretrack.exceptions import NotFoundError
from tiretrack.models.branch import Branch
from tiretrack.models.oil_change import OilChange
from tiretrack.models.owner import Owner
from tiretrack.models.service_visit import ServiceVisit
from tiretrack.models.tire_change import TireChange
from tiretrack.models.tire_switch import TireSwitch
from tiretrack.models.vehicle import Vehicle
from tiretrack.schemas.visit import VisitCreate, VisitUpdate
from tiretrack.services import vehicle_service
from tiretrack.utils.logger import get_logger
from tiretrack.utils.normalize import day_bounds, normalize_for_search, to_naive_utc, to_title_case
from tiretrack.utils.pagination import DEFAULT_LIMIT, calculate_skip, paginate

logger = get_logger(__name__)


# ── Same-day reconciliation ──────────────────────────────────────────────────

def find_visit_for_day(db: Session, vehicle_id: int, when: datetime) -> Optional[ServiceVisit]:
    start, end = day_bounds(when)
    return (
        db.query(ServiceVisit)
        .filter(
            ServiceVisit.vehicle_id == vehicle_id,
            ServiceVisit.visit_date >= start,
            ServiceVisit.visit_date < end,
        )
        .order_by(ServiceVisit.id.asc())
        .first()
    )


def find_or_create_visit(
    db: Session,
    vehicle: Vehicle,
    branch: Branch,
    visit_date: datetime,
    odometer_km: Optional[int] = None,
    total_price: Optional[float] = None,
    services_note: Optional[str] = None,
) -> Tuple[ServiceVisit, bool]:
    """
    Returns (visit, created). An existing visit is only ever raised in odometer,
    and only gets price/note when it has none.
    """
    visit = find_visit_for_day(db, vehicle.id, visit_date)
    if visit is None:
        start, _ = day_bounds(visit_date)
        visit = ServiceVisit(
            vehicle=vehicle,
            branch=branch,
            visit_date=start,
            odometer_km=odometer_km or 0,
            total_price=total_price,
            services_note=services_note,
        )
        db.add(visit)
        db.flush()
        logger.info(f"[Visit] Created visit {visit.id} for {vehicle.license_plate} on {start:%Y-%m-%d}")
        return visit, True

    if odometer_km is not None and odometer_km > visit.odometer_km:
        visit.odometer_km = odometer_km
    if total_price is not None and visit.total_price is None:
        visit.total_price = total_price
    if services_note and not visit.services_note:
        visit.services_note = services_note
    db.flush()
    return visit, False


def add_tire_change(
    db: Session,
    visit: ServiceVisit,
    position: TirePosition,
    tire_size: Optional[str] = None,
    brand: Optional[str] = None,
    tire_model: Optional[str] = None,
    production_week: Optional[str] = None,
    price_per_tire: Optional[float] = None,
) -> bool:
    """Dedup key: (position, size, brand). Returns True when a row was added."""
    for existing in visit.tire_changes:
        if (existing.position, existing.tire_size, existing.brand) == (position.value, tire_size, brand):
            logger.debug(f"[Visit] Duplicate tire change {position.value} on visit {visit.id}")
            return False
    visit.tire_changes.append(TireChange(
        position=position.value,
        tire_size=tire_size,
        brand=brand,
        tire_model=tire_model,
        production_week=production_week,
        price_per_tire=price_per_tire,
    ))
    db.flush()
    return True


def add_tire_switch(
    db: Session,
    visit: ServiceVisit,
    notes: Optional[str] = None,
    from_position: Optional[TirePosition] = None,
    to_position: Optional[TirePosition] = None,
) -> bool:
    """
    Imported rotations carry only notes and dedup on them; manual rotations
    name both wheels and dedup on the position pair.
    """
    from_value = from_position.value if from_position else None
    to_value = to_position.value if to_position else None
    for existing in visit.tire_switches:
        if from_value or to_value:
            duplicate = (existing.from_position, existing.to_position) == (from_value, to_value)
        else:
            duplicate = existing.notes == notes
        if duplicate:
            logger.debug(f"[Visit] Duplicate tire switch on visit {visit.id}")
            return False
    visit.tire_switches.append(TireSwitch(from_position=from_value, to_position=to_value, notes=notes))
    db.flush()
    return True


def add_oil_change(
    db: Session,
    visit: ServiceVisit,
    oil_model: Optional[str] = None,
    viscosity: Optional[str] = None,
    oil_type: Optional[str] = None,
    engine_type: Optional[str] = None,
    interval_km: Optional[int] = None,
    price: Optional[float] = None,
) -> bool:
    """Dedup key: (viscosity, oil model, oil type)."""
    for existing in visit.oil_changes:
        if (existing.viscosity, existing.oil_model, existing.oil_type) == (viscosity, oil_model, oil_type):
            logger.debug(f"[Visit] Duplicate oil change on visit {visit.id}")
            return False
    visit.oil_changes.append(OilChange(
        oil_model=oil_model,
        viscosity=viscosity,
        oil_type=oil_type,
        engine_type=engine_type,
        interval_km=interval_km,
        price=price,
    ))
    db.flush()
    return True


# ── Serialization ────────────────────────────────────────────────────────────

def serialize_visit(visit: ServiceVisit) -> dict:
    return {
        "id": visit.id,
        "visit_date": visit.visit_date,
        "odometer_km": visit.odometer_km,
        "total_price": visit.total_price,
        "services_note": visit.services_note,
        "branch": {"id": visit.branch.id, "name": visit.branch.name, "address": visit.branch.address},
        "car": {
            "id": visit.vehicle.id,
            "license_plate": visit.vehicle.license_plate,
            "car_model": visit.vehicle.car_model,
        },
        "tire_changes": [
            {
                "id": t.id,
                "position": t.position,
                "tire_size": t.tire_size,
                "brand": t.brand,
                "tire_model": t.tire_model,
                "production_week": t.production_week,
                "price_per_tire": t.price_per_tire,
            }
            for t in visit.tire_changes
        ],
        "tire_switches": [
            {"id": s.id, "from_position": s.from_position, "to_position": s.to_position, "notes": s.notes}
            for s in visit.tire_switches
        ],
        "oil_changes": [
            {
                "id": o.id,
                "oil_model": o.oil_model,
                "viscosity": o.viscosity,
                "engine_type": o.engine_type,
                "oil_type": o.oil_type,
                "interval_km": o.interval_km,
                "price": o.price,
            }
            for o in visit.oil_changes
        ],
        "created_at": visit.created_at,
    }


# ── Customer history ─────────────────────────────────────────────────────────

def _child_page(db: Session, model, vehicle_id: int, page: int, limit: int):
    skip = calculate_skip(page, limit)
    q = (
        db.query(model)
        .join(ServiceVisit, model.service_visit_id == ServiceVisit.id)
        .filter(ServiceVisit.vehicle_id == vehicle_id)
    )
    total = q.count()
    records = q.order_by(ServiceVisit.visit_date.desc(), model.id.desc()).offset(skip).limit(limit).all()
    return records, total


def _visit_fields(visit: ServiceVisit) -> dict:
    return {
        "visit_id": visit.id,
        "visit_date": visit.visit_date,
        "branch_name": visit.branch.name,
        "odometer_km": visit.odometer_km,
    }


def list_tire_changes(db: Session, vehicle_id: int, page: int = 1, limit: int = DEFAULT_LIMIT) -> dict:
    records, total = _child_page(db, TireChange, vehicle_id, page, limit)
    data = [
        {
            "id": r.id,
            **_visit_fields(r.service_visit),
            "position": r.position,
            "tire_size": r.tire_size,
            "brand": r.brand,
            "tire_model": r.tire_model,
            "production_week": r.production_week,
            "price_per_tire": r.price_per_tire,
        }
        for r in records
    ]
    return paginate(data, total, page, limit)


def list_tire_switches(db: Session, vehicle_id: int, page: int = 1, limit: int = DEFAULT_LIMIT) -> dict:
    records, total = _child_page(db, TireSwitch, vehicle_id, page, limit)
    data = [
        {
            "id": r.id,
            **_visit_fields(r.service_visit),
            "from_position": r.from_position,
            "to_position": r.to_position,
            "notes": r.notes,
        }
        for r in records
    ]
    return paginate(data, total, page, limit)


def list_oil_changes(db: Session, vehicle_id: int, page: int = 1, limit: int = DEFAULT_LIMIT) -> dict:
    records, total = _child_page(db, OilChange, vehicle_id, page, limit)
    data = [
        {
            "id": r.id,
            **_visit_fields(r.service_visit),
            "oil_model": r.oil_model,
            "viscosity": r.viscosity,
            "engine_type": r.engine_type,
            "oil_type": r.oil_type,
            "interval_km": r.interval_km,
            "price": r.price,
        }
        for r in records
    ]
    return paginate(data, total, page, limit)


def get_owner_visit(db: Session, owner_id: int, visit_id: int) -> dict:
    visit = (
        db.query(ServiceVisit)
        .join(Vehicle)
        .filter(
            ServiceVisit.id == visit_id,
            Vehicle.owner_id == owner_id,
            Vehicle.is_deleted.is_(False),
        )
        .first()
    )
    if visit is None:
        raise NotFoundError("Service visit not found")
    return serialize_visit(visit)


def get_owner_history(db: Session, owner_id: int, page: int = 1, limit: int = DEFAULT_LIMIT) -> dict:
    """
    Timeline of every service across the owner's active cars.
    Pages over visits; each visit expands to one entry per child record.
    """
    skip = calculate_skip(page, limit)
    q = (
        db.query(ServiceVisit)
        .join(Vehicle)
        .filter(Vehicle.owner_id == owner_id, Vehicle.is_deleted.is_(False))
    )
    total = q.count()
    visits = q.order_by(ServiceVisit.visit_date.desc(), ServiceVisit.id.desc()).offset(skip).limit(limit).all()

    entries = []
    for visit in visits:
        common = {
            "visit_date": visit.visit_date,
            "license_plate": visit.vehicle.license_plate,
            "car_model": visit.vehicle.car_model,
            "car_id": visit.vehicle_id,
            "branch_name": visit.branch.name,
            "odometer_km": visit.odometer_km,
        }
        for tc in visit.tire_changes:
            entries.append({"id": tc.id, "type": "tire_change", **common, "details": {
                "position": tc.position, "brand": tc.brand, "tire_model": tc.tire_model,
                "tire_size": tc.tire_size, "price_per_tire": tc.price_per_tire,
            }})
        for ts in visit.tire_switches:
            entries.append({"id": ts.id, "type": "tire_switch", **common, "details": {
                "from_position": ts.from_position, "to_position": ts.to_position, "notes": ts.notes,
            }})
        for oc in visit.oil_changes:
            entries.append({"id": oc.id, "type": "oil_change", **common, "details": {
                "oil_model": oc.oil_model, "viscosity": oc.viscosity,
                "oil_type": oc.oil_type, "price": oc.price,
            }})
    return paginate(entries, total, page, limit)


# ── Admin ────────────────────────────────────────────────────────────────────

def _get_visit(db: Session, visit_id: int) -> ServiceVisit:
    visit = db.get(ServiceVisit, visit_id)
    if visit is None:
        raise NotFoundError("Service visit not found")
    return visit


def _get_branch(db: Session, branch_id: int) -> Branch:
    branch = db.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError("Branch not found")
    return branch


def list_visits(
    db: Session,
    search: Optional[str] = None,
    branch_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = 1,
    limit: int = DEFAULT_LIMIT,
) -> dict:
    skip = calculate_skip(page, limit)
    q = db.query(ServiceVisit).join(Vehicle).join(Owner)
    if search:
        terms = normalize_for_search(search)
        q = q.filter(or_(
            Vehicle.license_plate.ilike(f"%{terms.normalized}%"),
            func.replace(Vehicle.license_plate, " ", "").ilike(f"%{terms.stripped}%"),
            Owner.phone.contains(search.strip()),
        ))
    if branch_id is not None:
        q = q.filter(ServiceVisit.branch_id == branch_id)
    if date_from is not None:
        q = q.filter(ServiceVisit.visit_date >= to_naive_utc(date_from))
    if date_to is not None:
        q = q.filter(ServiceVisit.visit_date <= to_naive_utc(date_to))

    total = q.count()
    visits = q.order_by(ServiceVisit.visit_date.desc(), ServiceVisit.id.desc()).offset(skip).limit(limit).all()
    data = [
        {
            "id": v.id,
            "visit_date": v.visit_date,
            "car": {
                "id": v.vehicle.id,
                "license_plate": v.vehicle.license_plate,
                "car_model": v.vehicle.car_model,
                "owner_phone": v.vehicle.owner.phone,
            },
            "branch": {"id": v.branch.id, "name": v.branch.name},
            "odometer_km": v.odometer_km,
            "total_price": v.total_price,
            "tire_change_count": len(v.tire_changes),
            "tire_switch_count": len(v.tire_switches),
            "oil_change_count": len(v.oil_changes),
            "created_at": v.created_at,
        }
        for v in visits
    ]
    return paginate(data, total, page, limit)


def get_visit(db: Session, visit_id: int) -> dict:
    visit = _get_visit(db, visit_id)
    detail = serialize_visit(visit)
    detail["car"]["owner_phone"] = visit.vehicle.owner.phone
    return detail


def create_visit(db: Session, data: VisitCreate) -> Tuple[ServiceVisit, bool]:
    """
    Manual add-service. Merges into the vehicle's visit for the same day with
    the same dedup rules as the import. Returns (visit, created).
    """
    branch = _get_branch(db, data.branch_id)
    owner = vehicle_service.find_or_create_owner(db, data.phone)
    vehicle = vehicle_service.find_or_create_vehicle(
        db, data.license_plate, owner, car_model=data.car_model, purge_on_restore=False,
    )
    visit, created = find_or_create_visit(
        db, vehicle, branch, data.visit_date,
        odometer_km=data.odometer_km,
        total_price=data.total_price,
        services_note=data.services_note,
    )
    for tire in data.tire_changes:
        add_tire_change(db, visit, tire.position, tire.tire_size, tire.brand,
                        tire.tire_model, tire.production_week, tire.price_per_tire)
    for switch in data.tire_switches:
        add_tire_switch(db, visit, switch.notes, switch.from_position, switch.to_position)
    if data.oil_change is not None:
        oil = data.oil_change
        add_oil_change(db, visit, oil.oil_model, oil.viscosity, oil.oil_type,
                       oil.engine_type, oil.interval_km, oil.price)
    db.commit()
    db.refresh(visit)
    logger.info(f"[Visit] Admin {'created' if created else 'merged into'} visit {visit.id} for {vehicle.license_plate}")
    return visit, created


def update_visit(db: Session, visit_id: int, data: VisitUpdate) -> ServiceVisit:
    visit = _get_visit(db, visit_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("branch_id") is not None:
        visit.branch = _get_branch(db, changes.pop("branch_id"))
    if changes.get("visit_date") is not None:
        visit.visit_date = to_naive_utc(changes.pop("visit_date"))
    for field, value in changes.items():
        if value is not None:
            setattr(visit, field, value)
    db.commit()
    db.refresh(visit)
    return visit


def delete_visit(db: Session, visit_id: int) -> None:
    visit = _get_visit(db, visit_id)
    db.delete(visit)
    db.commit()
    logger.info(f"[Visit] Deleted visit {visit_id}")


def _catalog(db: Session, column, display) -> list:
    """Distinct non-empty values, display-normalized so case variants collapse."""
    values = db.query(column).filter(column.isnot(None), column != "").distinct().all()
    return sorted({display(v) for (v,) in values} - {""})


def list_oil_models(db: Session) -> list:
    return _catalog(db, OilChange.oil_model, to_title_case)


def list_oil_viscosities(db: Session) -> list:
    # "5w-30" and "5W-30 " are the same grade
    return _catalog(db, OilChange.viscosity, lambda v: v.strip().upper())


def get_dashboard_stats(db: Session) -> dict:
    recent = db.query(ServiceVisit).order_by(ServiceVisit.created_at.desc(), ServiceVisit.id.desc()).limit(5).all()
    return {
        "total_users": db.query(Owner).count(),
        "total_cars": db.query(Vehicle).filter(Vehicle.is_deleted.is_(False)).count(),
        "total_visits": db.query(ServiceVisit).count(),
        "total_branches": db.query(Branch).filter(Branch.is_active.is_(True)).count(),
        "recent_visits": [
            {
                "id": v.id,
                "car_plate": v.vehicle.license_plate,
                "branch": v.branch.name,
                "date": v.visit_date,
                "odometer": v.odometer_km,
            }
            for v in recent
        ],
    }
