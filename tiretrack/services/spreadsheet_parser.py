# tiretrack/services/spreadsheet_parser.py
"""
Reads the shop's service spreadsheet (.xlsx / .xls / .csv) into import rows.

The business sheet has Thai headers, repeats the "service visit" column group,
only fills the car columns on the first row of each car, and stores dates in
several shapes (Excel serials, DD/MM/YYYY in Buddhist era, ISO text). This
module turns it into plain dicts that ImportRow validates.
"""

import io
import math
import re
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional

import pandas as pd

from tiretrack.exceptions import ValidationError
from tiretrack.schemas.import_row import DEFAULT_BRANCH_NAME
from tiretrack.utils.logger import get_logger
from tiretrack.utils.normalize import normalize_phone

logger = get_logger(__name__)

COLUMN_MAP = {
    # Car
    "ทะเบียนรถ": "license_plate",
    "เบอร์โทรศัพท์": "phone",
    "รถรุ่น": "car_model",
    # Visit (tire-change and service header variants)
    "สาขาที่เปลื่ยนยาง": "branch_name",
    "สาขาที่เข้ารับบริการ": "branch_name",
    "วันที่เปลื่ยนยาง": "visit_date",
    "วันที่เข้ารับบริการ": "visit_date",
    "ระยะที่เปลื่ยนยาง (กม.)": "odometer_km",
    "ระยะที่เข้ารับบริการ": "odometer_km",
    "ระยะที่เข้ารับบริการ (กม.)": "odometer_km",
    "ราคาทั้งหมด": "total_price",
    "บริการที่เข้ารับ": "services_note",
    # Tire
    "ไซส์ยาง": "tire_size",
    "ยี่ห้อ": "tire_brand",
    "รุ่นยาง": "tire_model",
    "ตำแหน่ง": "tire_position",
    "สัปดาห์ผลิต": "tire_production_week",
    "ราคาเส้นละ": "tire_price",
    # Oil
    "ชื่อรุ่น": "oil_model",
    "ความหนืด": "oil_viscosity",
    "เครื่องยนต์": "engine_type",
    "ประเภทน้ำมันเครื่อง": "oil_type",
    "ระยะเปลี่ยนถ่าย (กม.)": "oil_interval",
    "ราคาน้ำมันเครื่อง": "oil_price",
}

IMPORT_FIELDS = (
    "license_plate", "phone", "car_model", "branch_name", "visit_date", "odometer_km",
    "total_price", "services_note", "tire_size", "tire_brand", "tire_model", "tire_position",
    "tire_production_week", "tire_price", "oil_model", "oil_viscosity", "oil_type",
    "engine_type", "oil_interval", "oil_price",
)

NUMERIC_FIELDS = {"odometer_km", "total_price", "tire_price", "oil_interval", "oil_price"}
INTEGER_FIELDS = {"odometer_km", "oil_interval"}
CARRY_FORWARD_FIELDS = ("license_plate", "phone", "car_model")

EXCEL_EPOCH = datetime(1899, 12, 30)
BUDDHIST_ERA_OFFSET = 543

_DMY = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})$")
_NUMBER_TEXT = re.compile(r"^-?\d+(\.\d+)?$")


@dataclass
class ParsedSheet:
    rows: List[dict] = field(default_factory=list)
    skipped_rows: int = 0


# ── Cell parsing ─────────────────────────────────────────────────────────────

def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    return isinstance(value, str) and not value.strip()


def _from_serial(serial: float) -> Optional[datetime]:
    """Excel day number (1900 date system) to a date. 2958465 is 9999-12-31."""
    if serial < 1 or serial > 2958465:
        return None
    return EXCEL_EPOCH + timedelta(days=int(serial))


def parse_date(value) -> Optional[datetime]:
    """Excel serials, datetime cells, DD/MM/YYYY (Buddhist era or 2-digit year) and ISO text."""
    if _is_blank(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime().replace(tzinfo=None)
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _from_serial(value)

    text = str(value).strip()
    match = _DMY.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        if year > 2400:
            year -= BUDDHIST_ERA_OFFSET
        if year < 100:
            year += 2000 if year < 50 else 1900
        try:
            return datetime(year, month, day)
        except ValueError:
            return None
    if _NUMBER_TEXT.match(text):
        return _from_serial(float(text))
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def parse_number(value) -> Optional[float]:
    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", "")
    if _NUMBER_TEXT.match(text):
        return float(text)
    return None


def _as_text(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _convert(field_name: str, value):
    if field_name == "visit_date":
        return parse_date(value)
    if field_name in NUMERIC_FIELDS:
        number = parse_number(value)
        if number is not None and field_name in INTEGER_FIELDS:
            return int(round(number))
        return number
    if field_name == "phone":
        return normalize_phone(value)
    return _as_text(value)


# ── Sheet parsing ────────────────────────────────────────────────────────────

def _header_fields(headers) -> List[Optional[str]]:
    fields = []
    for header in headers:
        name = "" if _is_blank(header) else str(header).strip()
        if name in COLUMN_MAP:
            fields.append(COLUMN_MAP[name])
        elif name.lower() in IMPORT_FIELDS:
            fields.append(name.lower())
        else:
            fields.append(None)
    return fields


def read_frame(content: bytes, filename: str) -> pd.DataFrame:
    """Raw cell grid of the first sheet, headers included as row 0."""
    name = (filename or "").lower()
    buffer = io.BytesIO(content)
    try:
        if name.endswith(".csv"):
            return pd.read_csv(buffer, header=None, dtype=object, keep_default_na=False)
        if name.endswith(".xlsx") or name.endswith(".xls"):
            return pd.read_excel(buffer, header=None, dtype=object, sheet_name=0)
    except (ValueError, OSError, zipfile.BadZipFile, pd.errors.ParserError) as e:
        raise ValidationError(f"Could not read {filename!r}: {e}") from e
    raise ValidationError(f"Unsupported file type: {filename!r} (expected .xlsx, .xls or .csv)")


def parse_frame(frame: pd.DataFrame) -> ParsedSheet:
    """
    Map a header + data grid to row dicts. When a field appears in several
    columns (the repeated service group) the right-most non-empty cell wins.
    """
    sheet = ParsedSheet()
    if len(frame.index) < 2:
        return sheet

    fields = _header_fields(frame.iloc[0].tolist())
    previous = {}

    for cells in frame.iloc[1:].itertuples(index=False, name=None):
        if all(_is_blank(c) for c in cells):
            continue

        record = {}
        for field_name, value in zip(fields, cells):
            if field_name is None or _is_blank(value):
                continue
            converted = _convert(field_name, value)
            if converted is not None and converted != "":
                record[field_name] = converted

        # Car columns are only filled on the first row of each car
        for key in CARRY_FORWARD_FIELDS:
            if not record.get(key) and previous.get(key):
                record[key] = previous[key]
            if record.get(key):
                previous[key] = record[key]

        if not (record.get("license_plate") and record.get("phone") and record.get("visit_date")):
            sheet.skipped_rows += 1
            continue
        record.setdefault("branch_name", DEFAULT_BRANCH_NAME)
        sheet.rows.append(record)

    logger.info(f"[Import] Parsed {len(sheet.rows)} row(s), skipped {sheet.skipped_rows}")
    return sheet


def parse_spreadsheet(content: bytes, filename: str) -> ParsedSheet:
    return parse_frame(read_frame(content, filename))
