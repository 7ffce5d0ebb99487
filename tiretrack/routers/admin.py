# tiretrack/routers/admin.py
"""
Back office: dashboard, visits (manual add-service), branches, cars, oil
catalogs and spreadsheet import. Every route requires an admin session.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from tiretrack.database import get_db
from tiretrack.routers.deps import require_admin
from tiretrack.schemas.branch import BranchCreate, BranchOut, BranchUpdate
from tiretrack.schemas.import_row import ImportFileResult, ImportResult
from tiretrack.schemas.vehicle import AdminVehicleCreate, AdminVehicleOut, AdminVehicleUpdate
from tiretrack.schemas.visit import VisitCreate, VisitUpdate
from tiretrack.services import import_service, spreadsheet_parser, vehicle_service, visit_service
from tiretrack.utils.logger import get_logger
from tiretrack.utils.pagination import DEFAULT_LIMIT, MAX_LIMIT

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


@router.get("/stats", summary="Dashboard counters and latest visits")
def stats(db: Session = Depends(get_db)):
    return visit_service.get_dashboard_stats(db)


# ── Visits ───────────────────────────────────────────────────────────────────

@router.get("/visits", summary="Search visits by plate or phone, filter by branch and date")
def list_visits(
    search: Optional[str] = None,
    branch_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
):
    return visit_service.list_visits(db, search, branch_id, date_from, date_to, page, limit)


@router.post("/visits", status_code=201, summary="Add a service (merges into the same-day visit)")
def create_visit(body: VisitCreate, db: Session = Depends(get_db)):
    visit, created = visit_service.create_visit(db, body)
    return {**visit_service.serialize_visit(visit), "merged": not created}


@router.get("/visits/{visit_id}", summary="Visit detail")
def get_visit(visit_id: int, db: Session = Depends(get_db)):
    return visit_service.get_visit(db, visit_id)


@router.patch("/visits/{visit_id}", summary="Edit visit date, odometer, price, note or branch")
def update_visit(visit_id: int, body: VisitUpdate, db: Session = Depends(get_db)):
    return visit_service.serialize_visit(visit_service.update_visit(db, visit_id, body))


@router.delete("/visits/{visit_id}", summary="Delete a visit and everything recorded in it")
def delete_visit(visit_id: int, db: Session = Depends(get_db)):
    visit_service.delete_visit(db, visit_id)
    return {"success": True}


# ── Branches ─────────────────────────────────────────────────────────────────

@router.get("/branches", response_model=list[BranchOut], summary="All branches")
def list_branches(db: Session = Depends(get_db)):
    return vehicle_service.list_branches(db)


@router.post("/branches", response_model=BranchOut, status_code=201, summary="Create a branch")
def create_branch(body: BranchCreate, db: Session = Depends(get_db)):
    return vehicle_service.create_branch(db, body)


@router.patch("/branches/{branch_id}", response_model=BranchOut, summary="Update a branch")
def update_branch(branch_id: int, body: BranchUpdate, db: Session = Depends(get_db)):
    return vehicle_service.update_branch(db, branch_id, body)


# ── Cars ─────────────────────────────────────────────────────────────────────

@router.get("/cars", summary="List cars with owner and service count")
def list_cars(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
):
    return vehicle_service.list_vehicles(db, search, page, limit)


@router.get("/cars/search", summary="Plate/phone autocomplete")
def search_cars(query: str = "", db: Session = Depends(get_db)):
    return vehicle_service.search_vehicles(db, query)


@router.post("/cars", status_code=201, summary="Register a car for an owner")
def create_car(body: AdminVehicleCreate, db: Session = Depends(get_db)):
    vehicle, restored = vehicle_service.create_vehicle_admin(db, body)
    return {**AdminVehicleOut.model_validate(vehicle).model_dump(), "restored": restored}


@router.get("/cars/{car_id}", summary="Car with owner and latest visits")
def get_car(car_id: int, db: Session = Depends(get_db)):
    return vehicle_service.get_vehicle_admin(db, car_id)


@router.patch("/cars/{car_id}", response_model=AdminVehicleOut, summary="Update car details or owner name")
def update_car(car_id: int, body: AdminVehicleUpdate, db: Session = Depends(get_db)):
    return vehicle_service.update_vehicle_admin(db, car_id, body)


@router.delete("/cars/{car_id}", summary="Soft-delete a car")
def delete_car(car_id: int, db: Session = Depends(get_db)):
    vehicle_service.delete_vehicle_admin(db, car_id)
    return {"success": True}


# ── Oil catalogs ─────────────────────────────────────────────────────────────

@router.get("/oil-models", response_model=list[str], summary="Known oil models")
def oil_models(db: Session = Depends(get_db)):
    return visit_service.list_oil_models(db)


@router.get("/oil-viscosities", response_model=list[str], summary="Known oil viscosities")
def oil_viscosities(db: Session = Depends(get_db)):
    return visit_service.list_oil_viscosities(db)


# ── Import ───────────────────────────────────────────────────────────────────

@router.post("/import", response_model=ImportResult, summary="Import parsed spreadsheet rows")
def import_rows(rows: List[dict], db: Session = Depends(get_db)):
    """Rows are validated one by one so a bad row is reported instead of failing the batch."""
    logger.info(f"[Import] JSON batch of {len(rows)} row(s)")
    return import_service.import_records(db, rows)


@router.post("/import/file", response_model=ImportFileResult, summary="Upload an .xlsx/.xls/.csv service sheet")
async def import_file(file: UploadFile = File(...), db: Session = Depends(get_db)):
    content = await file.read()
    sheet = spreadsheet_parser.parse_spreadsheet(content, file.filename)
    logger.info(f"[Import] File '{file.filename}': {len(sheet.rows)} row(s)")
    result = import_service.import_records(db, sheet.rows)
    return ImportFileResult(
        **result.model_dump(),
        parsed_rows=len(sheet.rows),
        skipped_rows=sheet.skipped_rows,
    )
