# tiretrack/services/import_service.py
"""
Spreadsheet import: reconciles loosely-typed rows into owners, vehicles,
branches, visits and visit children without creating duplicates.

Every row is classified once into the service records it carries, then applied
inside its own transaction. A failing row is rolled back and reported; the
batch keeps going. Re-importing the same file is a no-op (all duplicates).
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from tiretrack.config import settings
from tiretrack.constants import TirePosition
from tiretrack.exceptions import TireTrackError
from tiretrack.schemas.import_row import ImportResult, ImportRow
from tiretrack.services import vehicle_service, visit_service
from tiretrack.utils.logger import get_logger
from tiretrack.utils.normalize import normalize_phone, normalize_plate, normalize_position

logger = get_logger(__name__)

TIRE_FIELDS = ("tire_position", "tire_size", "tire_brand", "tire_model", "tire_production_week", "tire_price")
OIL_FIELDS = ("oil_model", "oil_viscosity", "oil_type", "engine_type", "oil_interval", "oil_price")


@dataclass(frozen=True)
class TireChangeRow:
    position: TirePosition
    tire_size: str
    brand: Optional[str] = None
    tire_model: Optional[str] = None
    production_week: Optional[str] = None
    price_per_tire: Optional[float] = None


@dataclass(frozen=True)
class OilChangeRow:
    oil_model: Optional[str] = None
    viscosity: Optional[str] = None
    oil_type: Optional[str] = None
    engine_type: Optional[str] = None
    interval_km: Optional[int] = None
    price: Optional[float] = None


@dataclass(frozen=True)
class SwitchRow:
    notes: str


@dataclass(frozen=True)
class Unclassified:
    """The row names a vehicle and a day but no service record."""


RowVariant = Union[TireChangeRow, OilChangeRow, SwitchRow, Unclassified]


def _has_any(row: ImportRow, fields: Tuple[str, ...]) -> bool:
    return any(getattr(row, f) not in (None, "") for f in fields)


def classify_row(row: ImportRow) -> Tuple[RowVariant, ...]:
    """
    Service records carried by one row. A row can be a tire change and an oil
    change at once; a free-text note alone (no tire or oil cells) is a rotation.
    Raises InvalidPositionError for an unknown wheel position.
    """
    variants: List[RowVariant] = []
    has_tire = _has_any(row, TIRE_FIELDS)
    has_oil = _has_any(row, OIL_FIELDS)

    if row.tire_position and row.tire_size:
        variants.append(TireChangeRow(
            position=normalize_position(row.tire_position),
            tire_size=row.tire_size,
            brand=row.tire_brand,
            tire_model=row.tire_model,
            production_week=row.tire_production_week,
            price_per_tire=row.tire_price,
        ))
    if has_oil:
        variants.append(OilChangeRow(
            oil_model=row.oil_model,
            viscosity=row.oil_viscosity,
            oil_type=row.oil_type,
            engine_type=row.engine_type,
            interval_km=row.oil_interval,
            price=row.oil_price,
        ))
    if row.services_note and not has_tire and not has_oil:
        variants.append(SwitchRow(notes=row.services_note))

    return tuple(variants) or (Unclassified(),)


def _apply(db: Session, visit, variant: RowVariant) -> bool:
    if isinstance(variant, TireChangeRow):
        return visit_service.add_tire_change(
            db, visit, variant.position, variant.tire_size, variant.brand,
            variant.tire_model, variant.production_week, variant.price_per_tire,
        )
    if isinstance(variant, OilChangeRow):
        return visit_service.add_oil_change(
            db, visit, variant.oil_model, variant.viscosity, variant.oil_type,
            variant.engine_type, variant.interval_km, variant.price,
        )
    if isinstance(variant, SwitchRow):
        return visit_service.add_tire_switch(db, visit, notes=variant.notes)
    return False


def import_row(db: Session, row: ImportRow) -> bool:
    """
    Apply one row. Returns True when it created a visit or added a child,
    False when everything it carries was already recorded.
    Writes are flushed, not committed.
    """
    variants = classify_row(row)

    plate = normalize_plate(row.license_plate)
    owner = vehicle_service.find_or_create_owner(db, normalize_phone(row.phone))
    vehicle = vehicle_service.find_or_create_vehicle(db, plate, owner, car_model=row.car_model)
    branch = vehicle_service.find_or_create_branch(db, row.branch_name)

    visit, created = visit_service.find_or_create_visit(
        db, vehicle, branch, row.visit_date,
        odometer_km=row.odometer_km,
        total_price=row.total_price,
        services_note=row.services_note,
    )
    added = False
    for variant in variants:
        added = _apply(db, visit, variant) or added
    return created or added


def _plate_of(raw) -> str:
    plate = raw.license_plate if isinstance(raw, ImportRow) else (raw or {}).get("license_plate")
    return str(plate).strip() if plate not in (None, "") else "(no plate)"


def _describe(exc: Exception) -> str:
    if isinstance(exc, PydanticValidationError):
        return "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'row'}: {err['msg']}" for err in exc.errors()
        )
    if isinstance(exc, TireTrackError):
        return exc.detail
    return str(exc) or exc.__class__.__name__


def import_records(
    db: Session,
    rows: Iterable[Union[ImportRow, dict]],
    max_errors: Optional[int] = None,
) -> ImportResult:
    """
    Import rows strictly in order. Each row commits on its own; a failing row
    is rolled back, counted and described, and the next row is processed.
    """
    max_errors = settings.IMPORT_MAX_ERRORS if max_errors is None else max_errors
    result = ImportResult()
    errors: List[str] = []

    for index, raw in enumerate(rows, start=1):
        plate = _plate_of(raw)
        try:
            row = raw if isinstance(raw, ImportRow) else ImportRow.model_validate(raw)
            if import_row(db, row):
                result.success_count += 1
            else:
                result.duplicate_count += 1
                logger.debug(f"[Import] Row {index} ({plate}) is a duplicate")
            db.commit()
        except Exception as e:
            # Rows are atomic: owner, vehicle and visit writes of a failed row are discarded too
            db.rollback()
            result.error_count += 1
            errors.append(f"Error for {plate}: {_describe(e)}")
            if isinstance(e, (PydanticValidationError, TireTrackError)):
                logger.warning(f"[Import] Row {index} ({plate}) rejected: {_describe(e)}")
            else:
                logger.error(f"[Import] Row {index} ({plate}) failed: {e}", exc_info=True)

    result.errors = errors[:max_errors]
    logger.info(
        f"[Import] Completed: {result.success_count} imported, "
        f"{result.duplicate_count} duplicate, {result.error_count} error(s)"
    )
    return result
