from datetime import datetime, timezone

import pytest

from app.services.currency import (
    RepairComplexity,
    calculate_repair_cost,
    determine_complexity,
    estimate_savings,
    format_price,
    format_price_range,
    get_currency_symbol,
)
from app.services.maintenance import adjust_frequency, get_schedules, upcoming_maintenance


def test_format_price():
    assert format_price(25000, "NGN") == "₦25,000"
    assert format_price(1234.6, "USD") == "$1,235"
    assert format_price_range(100, 250, "GBP") == "£100 - £250"


@pytest.mark.parametrize("code", [None, "", "XYZ"])
def test_unknown_currency_defaults_to_naira(code):
    assert get_currency_symbol(code) == "₦"


def test_repair_cost_for_nigeria():
    estimate = calculate_repair_cost(RepairComplexity.MINOR, "ng")
    assert (estimate.min, estimate.max) == (12000, 29000)
    assert estimate.currency == "₦"
    assert estimate.is_default_pricing is False


def test_repair_cost_for_high_value_country():
    estimate = calculate_repair_cost(RepairComplexity.MINOR, "US")
    assert (estimate.min, estimate.max) == (30, 70)


def test_unknown_country_uses_default_pricing():
    estimate = calculate_repair_cost(RepairComplexity.MAJOR, "ZZ")
    assert estimate.is_default_pricing is True
    assert estimate.country_name == "Global Average"


def test_complexity_from_keywords():
    assert determine_complexity("Replace the compressor motor") == RepairComplexity.MAJOR
    assert determine_complexity("Clean the filter", ["dust buildup"]) == RepairComplexity.MINOR
    assert determine_complexity("Strange noise") == RepairComplexity.MODERATE


def test_savings_estimate():
    savings = estimate_savings("NG", 3)
    assert savings["total"] == 75000
    assert savings["formatted"] == "₦75,000"
    assert estimate_savings(None, -2)["total"] == 0


def test_general_schedule_for_unknown_appliance():
    schedules = get_schedules("Blender")
    assert len(schedules) == 1
    assert schedules[0].frequency_days == 180


def test_adjust_frequency_follows_history_within_bounds():
    history = [
        {"maintenance_date": "2025-01-01"},
        {"maintenance_date": "2025-03-02"},
        {"maintenance_date": "2025-05-01"},
    ]
    assert adjust_frequency(90, history) == 60
    assert adjust_frequency(200, history) == 100
    assert adjust_frequency(90, history[:1]) == 90


def test_upcoming_maintenance_from_last_service():
    upcoming = upcoming_maintenance("HVAC", "2024-01-01", "2025-01-01")
    assert [(s.type, due.date().isoformat()) for s, due in upcoming] == [
        ("Filter Change", "2025-04-01"),
        ("Professional Service", "2025-06-30"),
    ]


def test_upcoming_maintenance_without_dates_starts_now():
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    (schedule, due) = upcoming_maintenance("Dryer", None, None, now=now)[0]
    assert schedule.type == "Lint Removal"
    assert due.date().isoformat() == "2025-01-31"
