"""Maintenance schedules per appliance type."""
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from app.core.features import parse_timestamp


@dataclass(frozen=True)
class MaintenanceSchedule:
    frequency_days: int
    type: str
    description: str


DEFAULT_SCHEDULES: dict[str, list[MaintenanceSchedule]] = {
    "HVAC": [
        MaintenanceSchedule(90, "Filter Change", "Replace HVAC filters"),
        MaintenanceSchedule(180, "Professional Service", "Professional HVAC inspection and service"),
    ],
    "Refrigerator": [
        MaintenanceSchedule(180, "Coil Cleaning", "Clean condenser coils"),
        MaintenanceSchedule(365, "Seal Inspection", "Check door seals and gaskets"),
    ],
    "Washing Machine": [
        MaintenanceSchedule(90, "Filter Cleaning", "Clean lint filter and drain pump"),
        MaintenanceSchedule(180, "Deep Clean", "Run cleaning cycle and check hoses"),
    ],
    "Dishwasher": [
        MaintenanceSchedule(90, "Filter Cleaning", "Clean filter and spray arms"),
        MaintenanceSchedule(180, "Seal Inspection", "Check door seal and gasket"),
    ],
    "Water Heater": [
        MaintenanceSchedule(180, "Tank Flush", "Flush sediment from tank"),
        MaintenanceSchedule(365, "Professional Service", "Professional inspection"),
    ],
    "Dryer": [
        MaintenanceSchedule(30, "Lint Removal", "Clean lint trap and exhaust vent"),
        MaintenanceSchedule(180, "Vent Inspection", "Inspect and clean dryer vent system"),
    ],
    "Oven": [
        MaintenanceSchedule(90, "Cleaning", "Deep clean oven interior"),
        MaintenanceSchedule(365, "Seal Inspection", "Check door seals and gaskets"),
    ],
    "Microwave": [
        MaintenanceSchedule(30, "Cleaning", "Clean interior and exterior"),
        MaintenanceSchedule(180, "Inspection", "Check door seal and magnetron"),
    ],
}

GENERAL_SCHEDULE = [MaintenanceSchedule(180, "General Maintenance", "Regular inspection and maintenance")]


def get_schedules(appliance_type: str | None) -> list[MaintenanceSchedule]:
    return DEFAULT_SCHEDULES.get(appliance_type or "", GENERAL_SCHEDULE)


def adjust_frequency(base_frequency: int, history: list[dict]) -> int:
    """Adapt a schedule to how often the owner actually does the maintenance.

    Only intervals longer than a week and shorter than twice the base
    frequency count. The result stays within 50%-150% of the base.
    """
    if len(history) < 2:
        return base_frequency

    dates = sorted(parse_timestamp(h["maintenance_date"]) for h in history if h.get("maintenance_date"))
    intervals = []
    for previous, current in zip(dates, dates[1:]):
        days = (current - previous).days
        if 7 < days < base_frequency * 2:
            intervals.append(days)

    if not intervals:
        return base_frequency

    average = round(sum(intervals) / len(intervals))
    lower = base_frequency // 2
    upper = -(-base_frequency * 3 // 2)
    return max(lower, min(upper, average))


def upcoming_maintenance(
    appliance_type: str | None,
    purchase_date: str | datetime | None,
    last_maintenance_date: str | datetime | None,
    history: list[dict] | None = None,
    now: datetime | None = None,
) -> list[tuple[MaintenanceSchedule, datetime]]:
    """Next due date for each of the appliance's schedules."""
    base = parse_timestamp(last_maintenance_date) or parse_timestamp(purchase_date) or parse_timestamp(now or datetime.now())
    results = []
    for schedule in get_schedules(appliance_type):
        if history:
            schedule = replace(schedule, frequency_days=adjust_frequency(schedule.frequency_days, history))
        results.append((schedule, base + timedelta(days=schedule.frequency_days)))
    return results
