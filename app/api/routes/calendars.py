from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.core.guards import SessionContext
from app.core.permissions import require_onboarded_for
from app.repositories.appliance import ApplianceRepository
from app.repositories.property import PropertyRepository
from app.services.exports import CalendarEvent, generate_ical
from app.services.maintenance import upcoming_maintenance

router = APIRouter()

# Maintenance slots are booked as one-hour events at 09:00 UTC
EVENT_HOUR = 9
EVENT_DURATION = timedelta(hours=1)


def build_maintenance_events(appliances: list[dict], histories: dict[str, list[dict]]) -> list[CalendarEvent]:
    events = []
    for appliance in appliances:
        location = (appliance.get("properties") or {}).get("address") or ""
        upcoming = upcoming_maintenance(
            appliance.get("type"),
            appliance.get("purchase_date"),
            appliance.get("last_maintenance_date"),
            histories.get(appliance["id"]),
        )
        for index, (schedule, due) in enumerate(upcoming):
            start = due.astimezone(timezone.utc).replace(hour=EVENT_HOUR, minute=0, second=0, microsecond=0)
            events.append(CalendarEvent(
                id=f"{appliance['id']}-{index}",
                title=f"{schedule.type}: {appliance.get('name', 'Appliance')}",
                description=schedule.description,
                location=location,
                start=start,
                end=start + EVENT_DURATION,
            ))
    return sorted(events, key=lambda e: e.start)


@router.get("/maintenance.ics")
def maintenance_calendar(ctx: SessionContext = Depends(require_onboarded_for("/calendar"))):
    """Download the user's upcoming appliance maintenance as an iCalendar file."""
    property_ids = PropertyRepository.get_ids(ctx.user_id)
    appliances = ApplianceRepository.list_for_properties(property_ids)
    histories = {a["id"]: ApplianceRepository.get_maintenance_history(a["id"]) for a in appliances}
    content = generate_ical(build_maintenance_events(appliances, histories), now=datetime.now(timezone.utc))
    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="maintenance-schedule.ics"'},
    )
