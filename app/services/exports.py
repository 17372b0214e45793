"""
CSV and iCalendar exports.

CSV values are quoted only when they contain a comma, a quote or a newline,
with embedded quotes doubled. iCalendar output uses UTC timestamps and CRLF
line endings.
"""
import csv
import io
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable
from urllib.parse import urlencode

from app.core.features import parse_timestamp

logger = logging.getLogger(__name__)

Accessor = str | Callable[[dict], Any]

ICAL_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
GOOGLE_DATE_FORMAT = "%Y%m%dT%H%M%S"
CALENDAR_DOMAIN = "fixsense.app"


@dataclass(frozen=True)
class ExportColumn:
    header: str
    accessor: Accessor


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def to_csv(rows: Iterable[dict], columns: list[ExportColumn]) -> str:
    """Render rows as CSV text with a header row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow([column.header for column in columns])
    count = 0
    for row in rows:
        values = []
        for column in columns:
            if callable(column.accessor):
                value = column.accessor(row)
            else:
                value = row.get(column.accessor)
            values.append(_cell(value))
        writer.writerow(values)
        count += 1
    if count == 0:
        logger.warning("No data to export")
    # No trailing newline after the last row
    return buffer.getvalue().rstrip("\n")


def csv_filename(prefix: str, today: date | None = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return f"{prefix}_{today.isoformat()}.csv"


def _created_date(row: dict) -> str:
    created = parse_timestamp(row.get("created_at"))
    return created.date().isoformat() if created else ""


USER_EXPORT_COLUMNS = [
    ExportColumn("Name", "full_name"),
    ExportColumn("Email", "email"),
    ExportColumn("Phone", "phone"),
    ExportColumn("Country", "country"),
    ExportColumn("Currency", "currency"),
    ExportColumn("Plan", "subscription_tier"),
    ExportColumn("Status", "subscription_status"),
    ExportColumn("Role", "role"),
    ExportColumn("Signup Date", _created_date),
]

TRANSACTION_EXPORT_COLUMNS = [
    ExportColumn("Reference", "reference"),
    ExportColumn("User Email", "user_email"),
    ExportColumn("Amount (NGN)", "amount_naira"),
    ExportColumn("Plan", "plan"),
    ExportColumn("Status", "status"),
    ExportColumn("Payment Method", "payment_method"),
    ExportColumn("Date", _created_date),
]


@dataclass
class CalendarEvent:
    id: str
    title: str
    description: str
    location: str
    start: datetime
    end: datetime


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _escape_text(value: str) -> str:
    """Escape a TEXT property value (RFC 5545 section 3.3.11)."""
    return (
        (value or "")
        .replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def generate_ical(events: list[CalendarEvent], now: datetime | None = None) -> str:
    """Render events as a VCALENDAR document."""
    stamp = _utc(now or datetime.now(timezone.utc)).strftime(ICAL_DATE_FORMAT)
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//FixSense//Maintenance Calendar//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "X-WR-CALNAME:FixSense Maintenance",
        "X-WR-TIMEZONE:UTC",
    ]
    for event in events:
        lines.extend([
            "BEGIN:VEVENT",
            f"UID:{event.id}@{CALENDAR_DOMAIN}",
            f"DTSTAMP:{stamp}",
            f"DTSTART:{_utc(event.start).strftime(ICAL_DATE_FORMAT)}",
            f"DTEND:{_utc(event.end).strftime(ICAL_DATE_FORMAT)}",
            f"SUMMARY:{_escape_text(event.title)}",
            f"DESCRIPTION:{_escape_text(event.description)}",
            f"LOCATION:{_escape_text(event.location)}",
            "STATUS:CONFIRMED",
            "SEQUENCE:0",
            "END:VEVENT",
        ])
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines)


def google_calendar_url(event: CalendarEvent) -> str:
    """Build an "add to Google Calendar" template link for one event."""
    params = {
        "action": "TEMPLATE",
        "text": event.title,
        "details": event.description,
        "location": event.location,
        "dates": f"{_utc(event.start).strftime(GOOGLE_DATE_FORMAT)}/{_utc(event.end).strftime(GOOGLE_DATE_FORMAT)}",
    }
    return f"https://calendar.google.com/calendar/render?{urlencode(params)}"
