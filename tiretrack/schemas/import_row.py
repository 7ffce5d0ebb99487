# tiretrack/schemas/import_row.py
"""
One spreadsheet row as accepted by the import engine, and the batch summary.
Cells arrive loosely typed (Excel numbers for phones and plates, blank strings
for empty cells), so rows are cleaned before field validation.
"""

import math
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, model_validator

# Columns that are text even when the spreadsheet stored a number
_TEXT_FIELDS = {
    "license_plate", "phone", "car_model", "branch_name", "services_note",
    "tire_size", "tire_brand", "tire_model", "tire_position", "tire_production_week",
    "oil_model", "oil_viscosity", "oil_type", "engine_type",
}

DEFAULT_BRANCH_NAME = "-"


def _as_text(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class ImportRow(BaseModel):
    license_plate: str
    phone: str
    car_model: Optional[str] = None
    branch_name: str = DEFAULT_BRANCH_NAME
    visit_date: datetime
    odometer_km: Optional[int] = None
    total_price: Optional[float] = None
    services_note: Optional[str] = None
    # Tire change
    tire_size: Optional[str] = None
    tire_brand: Optional[str] = None
    tire_model: Optional[str] = None
    tire_position: Optional[str] = None
    tire_production_week: Optional[str] = None
    tire_price: Optional[float] = None
    # Oil change
    oil_model: Optional[str] = None
    oil_viscosity: Optional[str] = None
    oil_type: Optional[str] = None
    engine_type: Optional[str] = None
    oil_interval: Optional[int] = None
    oil_price: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def clean_cells(cls, data):
        if not isinstance(data, dict):
            return data
        cleaned = {}
        for key, value in data.items():
            if isinstance(value, str):
                value = value.strip() or None
            elif isinstance(value, float) and math.isnan(value):
                value = None
            if value is not None and key in _TEXT_FIELDS and not isinstance(value, str):
                value = _as_text(value)
            cleaned[key] = value
        if not cleaned.get("branch_name"):
            cleaned["branch_name"] = DEFAULT_BRANCH_NAME
        return cleaned


class ImportResult(BaseModel):
    success_count: int = 0
    duplicate_count: int = 0
    error_count: int = 0
    errors: List[str] = []


class ImportFileResult(ImportResult):
    parsed_rows: int = 0
    skipped_rows: int = 0
