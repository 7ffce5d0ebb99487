# tests/test_logger.py
"""Tests for per-logger level overrides."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import logging
import pytest
from tiretrack.utils.logger import apply_level_overrides, get_logger, parse_level_overrides


class TestLevelOverrides:
    def test_parses_names_and_levels(self):
        overrides = parse_level_overrides(" tiretrack.services.import_service=debug , httpx=WARNING")
        assert overrides == {"tiretrack.services.import_service": "DEBUG", "httpx": "WARNING"}

    def test_empty_setting_has_no_overrides(self):
        assert parse_level_overrides("") == {}
        assert parse_level_overrides(" , ") == {}

    @pytest.mark.parametrize("raw", ["httpx", "httpx=LOUD", "=DEBUG"])
    def test_malformed_entry_raises(self, raw):
        with pytest.raises(ValueError):
            parse_level_overrides(raw)

    def test_override_applies_to_one_logger_only(self):
        target = get_logger("tiretrack.tests.override_target")
        sibling = get_logger("tiretrack.tests.override_sibling")
        try:
            apply_level_overrides({"tiretrack.tests.override_target": "DEBUG"})
            assert target.isEnabledFor(logging.DEBUG)
            assert sibling.getEffectiveLevel() == logging.getLogger().level
        finally:
            target.setLevel(logging.NOTSET)
