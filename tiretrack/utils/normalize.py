# tiretrack/utils/normalize.py
"""
Normalization helpers shared by manual entry, search and spreadsheet import.

Plates, phones and wheel positions arrive in many spellings (dashes vs spaces,
Excel-mangled phone numbers, Thai or English position names). Everything that
keys a lookup goes through one of these functions first.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple, Union

from tiretrack.exceptions import InvalidPositionError
from tiretrack.constants import TirePosition

_WHITESPACE = re.compile(r"\s+")
_LETTER_THEN_DIGIT = re.compile(r"(?<=[^\W\d_])(?=\d)")
_SEPARATORS = re.compile(r"[-\s]")


# ── License plates ───────────────────────────────────────────────────────────

def normalize_plate(raw: str) -> str:
    """
    Canonical plate form: uppercase, single-space separated, no dashes.

    "AB-1234", "ab  1234" and "ab1234" all become "AB 1234";
    "1กข1234" becomes "1กข 1234".
    """
    plate = str(raw).replace("-", " ")
    plate = _LETTER_THEN_DIGIT.sub(" ", plate)
    return _WHITESPACE.sub(" ", plate).strip().upper()


@dataclass(frozen=True)
class PlateSearch:
    normalized: str
    stripped: str


def normalize_for_search(raw: str) -> PlateSearch:
    """Canonical form plus a separator-free form for "contains" matching."""
    stripped = _SEPARATORS.sub("", str(raw)).strip().upper()
    return PlateSearch(normalized=normalize_plate(raw), stripped=stripped)


# ── Phones ───────────────────────────────────────────────────────────────────

def normalize_phone(raw: Union[str, int, float]) -> str:
    """
    Owner phone key. Spreadsheet tools store phones as numbers and drop the
    leading zero of Thai mobiles, so a bare 9-digit number gets it back.
    """
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    phone = _SEPARATORS.sub("", str(raw).strip())
    if re.fullmatch(r"\d{9}", phone):
        phone = "0" + phone
    return phone


def mask_phone(phone: str) -> str:
    """081xxxx678 style display form. Non 10-digit input is returned as is."""
    clean = _SEPARATORS.sub("", phone)
    if len(clean) != 10:
        return phone
    return f"{clean[:3]}xxxx{clean[-3:]}"


# ── Tire positions ───────────────────────────────────────────────────────────

_POSITION_ALIASES = {
    TirePosition.FL: ("fl", "front left", "left front", "หน้าซ้าย", "ซ้ายหน้า"),
    TirePosition.FR: ("fr", "front right", "right front", "หน้าขวา", "ขวาหน้า"),
    TirePosition.RL: ("rl", "rear left", "left rear", "back left", "หลังซ้าย", "ซ้ายหลัง"),
    TirePosition.RR: ("rr", "rear right", "right rear", "back right", "หลังขวา", "ขวาหลัง"),
    TirePosition.SP: ("sp", "spare", "spare tire", "spare tyre", "อะไหล่", "ยางอะไหล่"),
}

_POSITION_LOOKUP = {
    alias.replace(" ", ""): position
    for position, aliases in _POSITION_ALIASES.items()
    for alias in aliases
}


def _position_key(raw: str) -> str:
    return re.sub(r"[\s\-_./]", "", raw).lower()


def normalize_position(raw: Union[str, TirePosition]) -> TirePosition:
    """Map a Thai, English or short-code position to its canonical code."""
    if isinstance(raw, TirePosition):
        return raw
    position = _POSITION_LOOKUP.get(_position_key(str(raw)))
    if position is None:
        raise InvalidPositionError(str(raw))
    return position


# ── Dates ────────────────────────────────────────────────────────────────────

def utc_now() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def day_bounds(value: datetime) -> Tuple[datetime, datetime]:
    """[start, end) of the UTC calendar day containing value."""
    start = to_naive_utc(value).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


# ── Display helpers ──────────────────────────────────────────────────────────

_TITLE_SPECIAL_CASES = {
    "castrol": "Castrol",
    "mobil": "Mobil",
    "shell": "Shell",
    "valvoline": "Valvoline",
    "petronas": "Petronas",
    "motul": "Motul",
    "elf": "ELF",
    "total": "TOTAL",
    "bp": "BP",
    "caltex": "Caltex",
    "gtx": "GTX",
    "magnatec": "Magnatec",
    "helix": "Helix",
    "ultron": "Ultron",
    "fs": "FS",
    "gt": "GT",
}


def to_title_case(text: Optional[str]) -> str:
    """Consistent casing for oil catalog lists ("castrol  gtx" -> "Castrol GTX")."""
    if not text:
        return ""
    words = [w for w in re.split(r"[\s\-]+", text.lower()) if w]
    return " ".join(_TITLE_SPECIAL_CASES.get(w, w[:1].upper() + w[1:]) for w in words)


def parse_production_week(production_week: Optional[str]) -> Optional[Tuple[int, int]]:
    """DOT week code "WWYY" -> (week, year), e.g. "2523" -> (25, 2023)."""
    if not production_week or not re.fullmatch(r"\d{4}", production_week):
        return None
    week = int(production_week[:2])
    if week < 1 or week > 53:
        return None
    return week, 2000 + int(production_week[2:])
