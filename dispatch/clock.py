"""
dispatch/clock.py
Resolves "now" into the calendar date and minute-resolution time of day
for the configured prayer-time zone.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class TimeWindow:
    date: str       # YYYY-MM-DD
    time: str       # HH:MM
    time_zone: str


def resolve_time_window(time_zone: str, now: Optional[datetime] = None) -> TimeWindow:
    """
    Render an instant in `time_zone`, truncated to the minute.
    Naive datetimes are taken as UTC. Any two calls inside the same wall-clock
    minute return equal windows, which dedupe keys rely on.
    """
    instant = now or datetime.now(timezone.utc)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    local = instant.astimezone(ZoneInfo(time_zone))
    return TimeWindow(
        date=local.strftime("%Y-%m-%d"),
        time=local.strftime("%H:%M"),
        time_zone=time_zone,
    )
