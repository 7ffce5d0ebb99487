# tiretrack/routers/branches.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tiretrack.database import get_db
from tiretrack.schemas.branch import BranchOut
from tiretrack.services import vehicle_service

router = APIRouter()


@router.get("/branches", response_model=list[BranchOut], summary="Active branches")
def list_branches(db: Session = Depends(get_db)):
    return vehicle_service.list_branches(db, active_only=True)
