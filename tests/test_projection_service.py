# tests/test_projection_service.py
"""Unit tests for tire wear, next-service projection and per-wheel rotation tracking."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime
from dateutil.relativedelta import relativedelta
from tiretrack.constants import TirePosition
from tiretrack.exceptions import NotFoundError
from tiretrack.services import projection_service, vehicle_service, visit_service
from tiretrack.services.projection_service import (
    calculate_next_service,
    calculate_tire_usage,
    get_oil_interval_km,
    get_vehicle_status,
    round_half_up,
)

NOW = datetime(2024, 6, 15, 12, 0)


def make_vehicle(db, plate="AB 1234"):
    owner = vehicle_service.find_or_create_owner(db, "0812345678")
    return vehicle_service.find_or_create_vehicle(db, plate, owner, car_model="Civic")


def make_visit(db, vehicle, when, odometer_km, branch="Central"):
    branch = vehicle_service.find_or_create_branch(db, branch)
    visit, _ = visit_service.find_or_create_visit(db, vehicle, branch, when, odometer_km=odometer_km)
    return visit


class TestTireUsage:
    def test_half_life_is_still_good(self):
        usage = calculate_tire_usage(10000, 35000, datetime(2024, 1, 1), NOW)
        assert usage.usage_percent == 50
        assert usage.status == "good"
        assert usage.distance_traveled_km == 25000
        assert usage.remaining_km == 25000

    def test_exact_warning_boundary(self):
        assert calculate_tire_usage(0, 40000, NOW, NOW).status == "warning"

    def test_just_past_eighty_percent_is_critical(self):
        usage = calculate_tire_usage(0, 40001, NOW, NOW)
        assert usage.usage_percent == 80
        assert usage.status == "critical"

    def test_exact_lifespan_is_critical(self):
        assert calculate_tire_usage(0, 50000, NOW, NOW).status == "critical"

    def test_past_lifespan_is_overdue(self):
        usage = calculate_tire_usage(0, 50001, NOW, NOW)
        assert usage.usage_percent == 100
        assert usage.status == "overdue"
        assert usage.remaining_km == 0

    def test_odometer_below_install_is_clamped(self):
        usage = calculate_tire_usage(30000, 29000, NOW, NOW)
        assert usage.usage_percent == 0
        assert usage.distance_traveled_km == 0
        assert usage.status == "good"

    def test_days_since_install(self):
        usage = calculate_tire_usage(0, 100, datetime(2024, 6, 5, 13, 0), NOW)
        assert usage.days_since_install == 9

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(-2.5) == -2
        assert round_half_up(80.002) == 80


class TestNextService:
    def test_calendar_month_add_and_display_fields(self):
        result = calculate_next_service(20000, datetime(2024, 1, 31), 25000, 10000, 6, datetime(2024, 6, 1))
        assert result.next_date == datetime(2024, 7, 31)
        assert result.next_odometer_km == 30000
        assert result.days_until == 60
        assert result.km_until == 5000
        assert result.months_until == 2
        assert result.use_months is True
        assert result.is_overdue is False

    def test_overdue_by_distance(self):
        result = calculate_next_service(20000, NOW, 31000, 10000, 6, NOW)
        assert result.km_until == -1000
        assert result.is_overdue is True

    def test_overdue_by_date_keeps_negative_days(self):
        result = calculate_next_service(20000, NOW - relativedelta(months=7), 21000, 10000, 6, NOW)
        assert result.days_until < 0
        assert result.is_overdue is True
        assert result.months_until == 0
        assert result.use_months is False


class TestOilInterval:
    @pytest.mark.parametrize("oil_type,expected", [
        ("สังเคราะห์แท้", 10000),
        ("Fully Synthetic", 10000),
        ("synthetic", 10000),
        ("กึ่งสังเคราะห์", 7000),
        ("Semi-Synthetic", 7000),
        ("ธรรมดา", 5000),
        ("Mineral", 5000),
        ("something else", 5000),
        (None, 5000),
        ("", 5000),
    ])
    def test_interval_by_type(self, oil_type, expected):
        assert get_oil_interval_km(oil_type) == expected


class TestVehicleStatus:
    def test_new_tire_resets_rotation_clock_for_that_wheel(self, db):
        vehicle = make_vehicle(db)
        switch_visit = make_visit(db, vehicle, NOW - relativedelta(months=3), 30000)
        visit_service.add_tire_switch(db, switch_visit, notes="สลับยาง")
        change_visit = make_visit(db, vehicle, NOW - relativedelta(months=1), 35000)
        visit_service.add_tire_change(db, change_visit, TirePosition.FL, "205/55R16", "Michelin")
        db.commit()

        status = get_vehicle_status(db, vehicle.id, now=NOW)

        rotation = status.next_tire_switch
        assert rotation is not None
        assert rotation.last_service_km == 30000
        assert rotation.next_odometer_km == 40000
        wheels = {w.position: w for w in rotation.positions}
        assert set(wheels) == {"FL", "FR", "RL", "RR"}
        assert wheels["FL"].baseline_source == "tire_change"
        assert wheels["FL"].last_service_km == 35000
        assert wheels["FL"].next_odometer_km == 45000
        for position in ("FR", "RL", "RR"):
            assert wheels[position].baseline_source == "tire_switch"
            assert wheels[position].last_service_km == 30000

    def test_change_wins_a_same_day_tie(self, db):
        vehicle = make_vehicle(db)
        visit = make_visit(db, vehicle, NOW - relativedelta(months=2), 30000)
        visit_service.add_tire_switch(db, visit, from_position=TirePosition.FL, to_position=TirePosition.RR)
        visit_service.add_tire_change(db, visit, TirePosition.FL, "205/55R16", "Michelin")
        db.commit()

        rotation = get_vehicle_status(db, vehicle.id, now=NOW).next_tire_switch
        wheels = {w.position: w for w in rotation.positions}
        assert wheels["FL"].baseline_source == "tire_change"
        assert wheels["RR"].baseline_source == "tire_switch"
        assert "FR" not in wheels

    def test_tire_status_for_every_position(self, db):
        vehicle = make_vehicle(db)
        visit = make_visit(db, vehicle, datetime(2024, 1, 10), 10000)
        visit_service.add_tire_change(db, visit, TirePosition.RR, "205/55R16", "Bridgestone", production_week="2523")
        make_visit(db, vehicle, datetime(2024, 5, 10), 35000)
        db.commit()

        status = get_vehicle_status(db, vehicle.id, now=NOW)

        assert [t.position for t in status.tires] == ["FL", "FR", "RL", "RR", "SP"]
        assert status.current_odometer_km == 35000
        rr = status.tires[3]
        assert rr.has_data is True
        assert rr.tire.brand == "Bridgestone"
        assert rr.tire.production_year == 2023
        assert rr.install_odometer_km == 10000
        assert rr.branch_name == "Central"
        assert rr.usage.usage_percent == 50
        assert rr.usage.status == "good"
        assert all(not t.has_data for t in status.tires if t.position != "RR")

    def test_explicit_current_odometer_overrides_history(self, db):
        vehicle = make_vehicle(db)
        visit = make_visit(db, vehicle, datetime(2024, 1, 10), 10000)
        visit_service.add_tire_change(db, visit, TirePosition.FL, "205/55R16", "Bridgestone")
        db.commit()

        status = get_vehicle_status(db, vehicle.id, current_odometer_km=50001, now=NOW)
        assert status.current_odometer_km == 50001
        assert status.tires[0].usage.status == "critical"

    def test_no_history_means_no_schedules(self, db):
        vehicle = make_vehicle(db)
        make_visit(db, vehicle, datetime(2024, 1, 10), 10000)
        db.commit()

        status = get_vehicle_status(db, vehicle.id, now=NOW)
        assert status.next_tire_switch is None
        assert status.next_oil_change is None

    def test_oil_schedule_uses_record_interval_then_type(self, db):
        vehicle = make_vehicle(db)
        first = make_visit(db, vehicle, datetime(2024, 1, 10), 10000)
        visit_service.add_oil_change(db, first, "Castrol Edge", "5W-30", "สังเคราะห์แท้")
        db.commit()

        oil = get_vehicle_status(db, vehicle.id, now=NOW).next_oil_change
        assert oil.interval_km == 10000
        assert oil.next_odometer_km == 20000
        assert oil.next_date == datetime(2024, 7, 10)

        second = make_visit(db, vehicle, datetime(2024, 3, 1), 15000)
        visit_service.add_oil_change(db, second, "Shell Helix", "10W-40", "ธรรมดา", interval_km=8000)
        db.commit()

        oil = get_vehicle_status(db, vehicle.id, now=NOW).next_oil_change
        assert oil.oil_model == "Shell Helix"
        assert oil.interval_km == 8000
        assert oil.next_odometer_km == 23000

    def test_status_serializes_to_plain_dict(self, db):
        vehicle = make_vehicle(db)
        db.commit()
        data = get_vehicle_status(db, vehicle.id, now=NOW).to_dict()
        assert data["license_plate"] == "AB 1234"
        assert data["current_odometer_km"] == 0
        assert len(data["tires"]) == 5

    def test_deleted_vehicle_is_not_found(self, db):
        vehicle = make_vehicle(db)
        vehicle_service.soft_delete_vehicle(db, vehicle)
        db.commit()
        with pytest.raises(NotFoundError):
            projection_service.get_vehicle_status(db, vehicle.id, now=NOW)
