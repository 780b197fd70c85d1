"""Utilities for exporting trips to common formats."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from itinero.schemas import Trip, TripDay


def _format_dt(dt: datetime) -> str:
    return dt.strftime("%Y%m%dT%H%M%S")


def _escape_ics_text(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,")
    escaped = escaped.replace("\n", "\\n")
    return escaped


def _day_date(trip: Trip, day: TripDay) -> Optional[date]:
    if day.date:
        return day.date
    if trip.preferences.start_date:
        return trip.preferences.start_date + timedelta(days=day.day_number - 1)
    return None


def trip_to_ics(trip: Trip, *, calendar_name: Optional[str] = None) -> str:
    """Serialise the trip to the iCalendar format.

    Days without a date (and no trip start date to derive one) are skipped.
    Times are floating local times at the destination.
    """

    lines: List[str] = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Itinero//Trip Scheduler//EN",
    ]
    name = calendar_name or trip.preferences.destination
    if name:
        lines.append(f"X-WR-CALNAME:{_escape_ics_text(name)}")
    dtstamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    for day in trip.days:
        base_date = _day_date(trip, day)
        if base_date is None:
            continue
        midnight = datetime.combine(base_date, datetime.min.time())
        for index, item in enumerate(day.sorted_items()):
            start_dt = midnight + timedelta(minutes=item.start_time)
            end_dt = midnight + timedelta(minutes=item.end_time)
            lines.append("BEGIN:VEVENT")
            lines.append(f"UID:{trip.id}-{day.day_number}-{index}-{item.id}@itinero")
            lines.append(f"DTSTAMP:{dtstamp}")
            lines.append(f"DTSTART:{_format_dt(start_dt)}")
            lines.append(f"DTEND:{_format_dt(end_dt)}")
            lines.append(f"SUMMARY:{_escape_ics_text(item.title)}")
            lines.append(f"CATEGORIES:{item.category.value.upper()}")
            if day.theme:
                lines.append(f"DESCRIPTION:{_escape_ics_text(f'Day {day.day_number}: {day.theme}')}")
            if item.location_name:
                lines.append(f"LOCATION:{_escape_ics_text(item.location_name)}")
            if item.latitude or item.longitude:
                lines.append(f"GEO:{item.latitude:.6f};{item.longitude:.6f}")
            lines.append("END:VEVENT")

    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


__all__ = ["trip_to_ics"]
