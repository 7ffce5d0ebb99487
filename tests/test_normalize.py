# tests/test_normalize.py
"""Unit tests for plate, phone, position and date normalization."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime, timedelta, timezone
from tiretrack.constants import TirePosition
from tiretrack.exceptions import InvalidPositionError, ValidationError
from tiretrack.utils.normalize import (
    day_bounds,
    mask_phone,
    normalize_for_search,
    normalize_phone,
    normalize_plate,
    normalize_position,
    parse_production_week,
    to_title_case,
)


class TestNormalizePlate:
    def test_dash_space_and_joined_forms_are_equal(self):
        assert normalize_plate("AB-1234") == normalize_plate("AB  1234") == normalize_plate("ab1234") == "AB 1234"

    def test_thai_plate_variants(self):
        assert normalize_plate("กข-1234") == normalize_plate("กข 1234") == normalize_plate("กข1234") == "กข 1234"
        assert normalize_plate("1กข1234") == "1กข 1234"

    @pytest.mark.parametrize("raw", ["AB-1234", "  ab 1234 ", "1กข-1234", "กท-99-01", "xyz"])
    def test_idempotent(self, raw):
        once = normalize_plate(raw)
        assert normalize_plate(once) == once

    def test_trims_and_collapses_whitespace(self):
        assert normalize_plate("  ab \t 1234  ") == "AB 1234"

    def test_search_forms(self):
        terms = normalize_for_search("ab-12 34")
        assert terms.normalized == "AB 12 34"
        assert terms.stripped == "AB1234"


class TestNormalizePhone:
    def test_strips_dashes_and_spaces(self):
        assert normalize_phone("081-234 5678") == "0812345678"

    def test_restores_leading_zero_dropped_by_spreadsheets(self):
        assert normalize_phone("812345678") == "0812345678"
        assert normalize_phone(812345678) == "0812345678"
        assert normalize_phone(812345678.0) == "0812345678"

    def test_leaves_other_lengths_alone(self):
        assert normalize_phone("0812345678") == "0812345678"
        assert normalize_phone("+66812345678") == "+66812345678"

    def test_mask_phone(self):
        assert mask_phone("0812345678") == "081xxxx678"
        assert mask_phone("12345") == "12345"


class TestNormalizePosition:
    @pytest.mark.parametrize("raw,expected", [
        ("FL", TirePosition.FL),
        ("fr", TirePosition.FR),
        ("หน้าซ้าย", TirePosition.FL),
        ("หน้า-ขวา", TirePosition.FR),
        ("หลังซ้าย", TirePosition.RL),
        ("หลัง ขวา", TirePosition.RR),
        ("ยางอะไหล่", TirePosition.SP),
        ("front left", TirePosition.FL),
        ("Front-Right", TirePosition.FR),
        ("REAR_LEFT", TirePosition.RL),
        ("rear right", TirePosition.RR),
        ("Spare", TirePosition.SP),
    ])
    def test_known_spellings(self, raw, expected):
        assert normalize_position(raw) == expected

    def test_enum_passes_through(self):
        assert normalize_position(TirePosition.RR) is TirePosition.RR

    def test_unknown_position_raises_validation_error(self):
        with pytest.raises(InvalidPositionError) as exc:
            normalize_position("XX")
        assert isinstance(exc.value, ValidationError)
        assert "XX" in exc.value.detail


class TestDates:
    def test_day_bounds_naive(self):
        start, end = day_bounds(datetime(2024, 3, 15, 17, 45))
        assert start == datetime(2024, 3, 15)
        assert end == datetime(2024, 3, 16)

    def test_day_bounds_uses_utc_day_for_aware_values(self):
        # 06:30 in Bangkok is still the previous day in UTC
        bangkok = timezone(timedelta(hours=7))
        start, end = day_bounds(datetime(2024, 3, 15, 6, 30, tzinfo=bangkok))
        assert start == datetime(2024, 3, 14)
        assert end == datetime(2024, 3, 15)


class TestDisplayHelpers:
    def test_title_case_with_brand_special_cases(self):
        assert to_title_case("castrol  gtx") == "Castrol GTX"
        assert to_title_case("ELF evolution") == "ELF Evolution"
        assert to_title_case(None) == ""

    def test_title_case_keeps_plain_product_words_capitalized(self):
        assert to_title_case("castrol edge") == "Castrol Edge"
        assert to_title_case("CASTROL EDGE") == "Castrol Edge"

    def test_parse_production_week(self):
        assert parse_production_week("2523") == (25, 2023)
        assert parse_production_week("5899") is None
        assert parse_production_week("25") is None
        assert parse_production_week(None) is None
