# tiretrack/services/projection_service.py
"""
Service projection: tire wear and next-due dates derived from visit history.

Pure calculators (calculate_tire_usage, calculate_next_service) take `now`
explicitly; get_vehicle_status reads the history once and assembles the
per-wheel view, the rotation schedule and the oil schedule.
"""

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from tiretrack.constants import ALL_POSITIONS, ROAD_WHEELS, TirePosition
from tiretrack.exceptions import NotFoundError
from tiretrack.models.service_visit import ServiceVisit
from tiretrack.models.tire_change import TireChange
from tiretrack.models.tire_switch import TireSwitch
from tiretrack.models.vehicle import Vehicle
from tiretrack.utils.logger import get_logger
from tiretrack.utils.normalize import parse_production_week, to_naive_utc, utc_now

logger = get_logger(__name__)

TIRE_LIFESPAN_KM = 50000
TIRE_SWITCH_INTERVAL_KM = 10000
TIRE_SWITCH_INTERVAL_MONTHS = 6
OIL_CHANGE_INTERVAL_MONTHS = 6

OIL_INTERVAL_SYNTHETIC_KM = 10000
OIL_INTERVAL_SEMI_SYNTHETIC_KM = 7000
OIL_INTERVAL_CONVENTIONAL_KM = 5000

# Upper bounds (inclusive) of each wear band, in percent of lifespan
USAGE_GOOD_MAX = 50
USAGE_WARNING_MAX = 80
USAGE_CRITICAL_MAX = 100

_SEMI_SYNTHETIC_MARKERS = ("semi", "กึ่ง")
_SYNTHETIC_MARKERS = ("synthetic", "fully", "สังเคราะห์")


@dataclass
class TireUsage:
    usage_percent: int
    status: str                 # good | warning | critical | overdue
    distance_traveled_km: int
    remaining_km: int
    days_since_install: int


@dataclass
class NextService:
    next_odometer_km: int
    next_date: datetime
    days_until: int             # negative once the date has passed
    km_until: int               # negative once the odometer has passed
    is_overdue: bool
    months_until: int
    use_months: bool


@dataclass
class WheelRotation(NextService):
    position: str
    baseline_source: str        # tire_switch | tire_change
    last_service_date: datetime
    last_service_km: int


@dataclass
class NextTireSwitch(NextService):
    last_service_date: datetime
    last_service_km: int
    positions: List[WheelRotation] = field(default_factory=list)


@dataclass
class NextOilChange(NextService):
    last_service_date: datetime
    last_service_km: int
    oil_model: Optional[str]
    oil_type: Optional[str]
    viscosity: Optional[str]
    interval_km: int


@dataclass
class TireInfo:
    brand: Optional[str]
    tire_model: Optional[str]
    tire_size: Optional[str]
    production_week: Optional[str]
    production_year: Optional[int]
    price_per_tire: Optional[float]


@dataclass
class TireStatus:
    position: str
    has_data: bool
    tire: Optional[TireInfo] = None
    install_date: Optional[datetime] = None
    install_odometer_km: Optional[int] = None
    branch_name: Optional[str] = None
    usage: Optional[TireUsage] = None


@dataclass
class VehicleStatus:
    vehicle_id: int
    license_plate: str
    car_model: Optional[str]
    current_odometer_km: int
    tires: List[TireStatus]
    next_tire_switch: Optional[NextTireSwitch]
    next_oil_change: Optional[NextOilChange]

    def to_dict(self) -> dict:
        return asdict(self)


def round_half_up(value: float) -> int:
    """2.5 -> 3 and -2.5 -> -2, unlike Python's banker's round()."""
    return int(math.floor(value + 0.5))


# ── Calculators ──────────────────────────────────────────────────────────────

def calculate_tire_usage(
    install_odometer_km: int,
    current_odometer_km: int,
    install_date: datetime,
    now: Optional[datetime] = None,
    tire_lifespan_km: int = TIRE_LIFESPAN_KM,
) -> TireUsage:
    """
    Wear of a tire from the distance driven since it was fitted.
    The band is picked from the exact ratio, so 40001 km is already critical
    even though it displays as 80%.
    """
    now = to_naive_utc(now or utc_now())
    distance = current_odometer_km - install_odometer_km
    ratio = distance / tire_lifespan_km * 100

    if ratio > USAGE_CRITICAL_MAX:
        status = "overdue"
    elif ratio > USAGE_WARNING_MAX:
        status = "critical"
    elif ratio > USAGE_GOOD_MAX:
        status = "warning"
    else:
        status = "good"

    return TireUsage(
        usage_percent=max(0, round_half_up(ratio)),
        status=status,
        distance_traveled_km=max(0, distance),
        remaining_km=max(0, tire_lifespan_km - distance),
        days_since_install=(now - to_naive_utc(install_date)).days,
    )


def calculate_next_service(
    last_odometer_km: int,
    last_date: datetime,
    current_odometer_km: int,
    interval_km: int,
    interval_months: int,
    now: Optional[datetime] = None,
) -> NextService:
    """Next due point is whichever of interval_km / interval_months comes first."""
    now = to_naive_utc(now or utc_now())
    next_odometer_km = last_odometer_km + interval_km
    next_date = to_naive_utc(last_date) + relativedelta(months=interval_months)
    days_until = (next_date - now).days
    km_until = next_odometer_km - current_odometer_km
    return NextService(
        next_odometer_km=next_odometer_km,
        next_date=next_date,
        days_until=days_until,
        km_until=km_until,
        is_overdue=days_until < 0 or km_until < 0,
        months_until=max(0, round_half_up(days_until / 30)),
        use_months=days_until > 30,
    )


def get_oil_interval_km(oil_type: Optional[str]) -> int:
    """Default change interval by oil type; semi-synthetic is checked before synthetic."""
    if not oil_type:
        return OIL_INTERVAL_CONVENTIONAL_KM
    kind = oil_type.lower()
    if any(marker in kind for marker in _SEMI_SYNTHETIC_MARKERS):
        return OIL_INTERVAL_SEMI_SYNTHETIC_KM
    if any(marker in kind for marker in _SYNTHETIC_MARKERS):
        return OIL_INTERVAL_SYNTHETIC_KM
    return OIL_INTERVAL_CONVENTIONAL_KM


# ── History lookups ──────────────────────────────────────────────────────────

def _switch_affects(switch: TireSwitch) -> Tuple[str, ...]:
    """A rotation without explicit wheels moves all four road wheels."""
    if switch.from_position or switch.to_position:
        return tuple(p for p in (switch.from_position, switch.to_position) if p)
    return tuple(p.value for p in ROAD_WHEELS)


def _latest_changes(visits: List[ServiceVisit]) -> Dict[str, Tuple[ServiceVisit, TireChange]]:
    """Newest TireChange per position. `visits` is newest first."""
    latest = {}
    for visit in visits:
        for change in sorted(visit.tire_changes, key=lambda c: c.id, reverse=True):
            latest.setdefault(change.position, (visit, change))
    return latest


def _latest_switches(visits: List[ServiceVisit]) -> Dict[str, ServiceVisit]:
    """Visit of the newest TireSwitch touching each position."""
    latest = {}
    for visit in visits:
        for switch in visit.tire_switches:
            for position in _switch_affects(switch):
                latest.setdefault(position, visit)
    return latest


# ── Vehicle status ───────────────────────────────────────────────────────────

def _tire_status(
    position: TirePosition,
    latest_changes: Dict[str, Tuple[ServiceVisit, TireChange]],
    current_odometer_km: Optional[int],
    now: datetime,
) -> TireStatus:
    found = latest_changes.get(position.value)
    if found is None:
        return TireStatus(position=position.value, has_data=False)

    visit, change = found
    week = parse_production_week(change.production_week)
    current = current_odometer_km if current_odometer_km is not None else visit.odometer_km
    return TireStatus(
        position=position.value,
        has_data=True,
        tire=TireInfo(
            brand=change.brand,
            tire_model=change.tire_model,
            tire_size=change.tire_size,
            production_week=change.production_week,
            production_year=week[1] if week else None,
            price_per_tire=change.price_per_tire,
        ),
        install_date=visit.visit_date,
        install_odometer_km=visit.odometer_km,
        branch_name=visit.branch.name,
        usage=calculate_tire_usage(visit.odometer_km, current, visit.visit_date, now),
    )


def _rotation_schedule(
    visits: List[ServiceVisit],
    latest_changes: Dict[str, Tuple[ServiceVisit, TireChange]],
    current_km: int,
    now: datetime,
) -> Optional[NextTireSwitch]:
    latest_switch_visit = next((v for v in visits if v.tire_switches), None)
    if latest_switch_visit is None:
        return None

    schedule = calculate_next_service(
        latest_switch_visit.odometer_km, latest_switch_visit.visit_date, current_km,
        TIRE_SWITCH_INTERVAL_KM, TIRE_SWITCH_INTERVAL_MONTHS, now,
    )

    # Fitting a new tire restarts that wheel's rotation clock
    switches = _latest_switches(visits)
    positions = []
    for position in ALL_POSITIONS:
        switch_visit = switches.get(position.value)
        change = latest_changes.get(position.value)
        change_visit = change[0] if change else None
        if switch_visit is None and change_visit is None:
            continue
        if change_visit is not None and (switch_visit is None or change_visit.visit_date >= switch_visit.visit_date):
            baseline, source = change_visit, "tire_change"
        else:
            baseline, source = switch_visit, "tire_switch"
        wheel = calculate_next_service(
            baseline.odometer_km, baseline.visit_date, current_km,
            TIRE_SWITCH_INTERVAL_KM, TIRE_SWITCH_INTERVAL_MONTHS, now,
        )
        positions.append(WheelRotation(
            **asdict(wheel),
            position=position.value,
            baseline_source=source,
            last_service_date=baseline.visit_date,
            last_service_km=baseline.odometer_km,
        ))

    return NextTireSwitch(
        **asdict(schedule),
        last_service_date=latest_switch_visit.visit_date,
        last_service_km=latest_switch_visit.odometer_km,
        positions=positions,
    )


def _oil_schedule(visits: List[ServiceVisit], current_km: int, now: datetime) -> Optional[NextOilChange]:
    oil_visit = next((v for v in visits if v.oil_changes), None)
    if oil_visit is None:
        return None
    oil = max(oil_visit.oil_changes, key=lambda o: o.id)
    interval_km = oil.interval_km or get_oil_interval_km(oil.oil_type)
    schedule = calculate_next_service(
        oil_visit.odometer_km, oil_visit.visit_date, current_km,
        interval_km, OIL_CHANGE_INTERVAL_MONTHS, now,
    )
    return NextOilChange(
        **asdict(schedule),
        last_service_date=oil_visit.visit_date,
        last_service_km=oil_visit.odometer_km,
        oil_model=oil.oil_model,
        oil_type=oil.oil_type,
        viscosity=oil.viscosity,
        interval_km=interval_km,
    )


def get_vehicle_status(
    db: Session,
    vehicle_id: int,
    current_odometer_km: Optional[int] = None,
    now: Optional[datetime] = None,
) -> VehicleStatus:
    """
    Tire wear per position plus next rotation and next oil change.
    Without an explicit current odometer the newest visit's reading is used.
    """
    vehicle = db.get(Vehicle, vehicle_id)
    if vehicle is None or vehicle.is_deleted:
        raise NotFoundError("Car not found")
    now = to_naive_utc(now or utc_now())

    visits = (
        db.query(ServiceVisit)
        .filter(ServiceVisit.vehicle_id == vehicle_id)
        .order_by(ServiceVisit.visit_date.desc(), ServiceVisit.id.desc())
        .all()
    )
    latest_odometer = visits[0].odometer_km if visits else None
    tire_odometer = current_odometer_km if current_odometer_km is not None else latest_odometer
    current_km = tire_odometer if tire_odometer is not None else 0

    latest_changes = _latest_changes(visits)
    tires = [_tire_status(p, latest_changes, tire_odometer, now) for p in ALL_POSITIONS]

    status = VehicleStatus(
        vehicle_id=vehicle.id,
        license_plate=vehicle.license_plate,
        car_model=vehicle.car_model,
        current_odometer_km=current_km,
        tires=tires,
        next_tire_switch=_rotation_schedule(visits, latest_changes, current_km, now),
        next_oil_change=_oil_schedule(visits, current_km, now),
    )
    logger.info(
        f"[Projection] Status for {vehicle.license_plate}: "
        f"{sum(1 for t in tires if t.has_data)} tire position(s) with data, odometer {current_km}"
    )
    return status
