# yoga_scheduler/recurrence.py
"""
Weekly recurrence: expand one class template into N standalone weekly
instances anchored on a weekday and a wall-clock time.

Weekdays here follow the admin form convention: 0 = Sunday … 6 = Saturday.
"""
from __future__ import annotations

from typing import List, Optional
from datetime import date, datetime, time, timedelta
import logging
import re

from .errors import InvalidRecurrence, InvalidTimeFormat
from .logic_models import ClassDraft, ClassTemplate, RecurrenceSpec
from .settings import MAX_WEEKLY_REPEAT

log = logging.getLogger(__name__)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

_HHMM = re.compile(r"(\d{1,2}):(\d{2})")

# ──────────────────────────────────────────────────────────────────────────────
# Utilities
# ──────────────────────────────────────────────────────────────────────────────

def day_of_week_name(day_of_week: int) -> Optional[str]:
    if 0 <= day_of_week < len(DAY_NAMES):
        return DAY_NAMES[day_of_week]
    return None

def day_of_week_number(day_name: str) -> int:
    """Sunday-based index of a day name, -1 when unknown."""
    try:
        return [d.lower() for d in DAY_NAMES].index((day_name or "").strip().lower())
    except ValueError:
        return -1

def sunday_based_weekday(d: date) -> int:
    # date.weekday() is Monday = 0
    return (d.weekday() + 1) % 7

def parse_time_hhmm(s: str) -> time:
    """
    Strict 24-hour 'HH:MM' (single-digit hour allowed) → time(HH, MM).
    """
    m = _HHMM.fullmatch((s or "").strip()) if isinstance(s, str) else None
    if not m:
        raise InvalidTimeFormat(f"Unrecognised time: {s!r}", value=s)
    hh, mm = int(m.group(1)), int(m.group(2))
    if hh > 23 or mm > 59:
        raise InvalidTimeFormat(f"Time out of range: {s!r}", value=s)
    return time(hh, mm)

def format_time_for_input(dt: datetime) -> str:
    return f"{dt.hour:02d}:{dt.minute:02d}"

def next_day_of_week(target: int, from_date: Optional[date] = None) -> date:
    """First date on or after from_date falling on `target` (never backwards)."""
    start = from_date or date.today()
    if isinstance(start, datetime):
        start = start.date()
    delta = (target - sunday_based_weekday(start)) % 7
    return start + timedelta(days=delta)

def validate_weekly_repeat(weeks: int) -> Optional[str]:
    if weeks < 0:
        return "Weekly repeat cannot be negative"
    if weeks > MAX_WEEKLY_REPEAT:
        return f"Weekly repeat cannot exceed {MAX_WEEKLY_REPEAT} weeks"
    return None

# ──────────────────────────────────────────────────────────────────────────────
# Generator
# ──────────────────────────────────────────────────────────────────────────────

def generate(template: ClassTemplate, spec: RecurrenceSpec) -> List[ClassDraft]:
    """
    Returns `spec.weeks` drafts, one per week, starting on the first
    `spec.day_of_week` on or after `spec.start_date`, each at `spec.time`.

    Stepping is done on calendar dates and recombined with the wall-clock
    time in start_date's zone, so an 08:00 class stays 08:00 local across
    daylight-saving changes. Everything is validated before any draft is
    built.
    """
    template.validate()
    if not isinstance(spec.weeks, int) or spec.weeks < 0 or spec.weeks > MAX_WEEKLY_REPEAT:
        raise InvalidRecurrence(
            validate_weekly_repeat(spec.weeks) if isinstance(spec.weeks, int) else "weeks must be an integer",
            weeks=spec.weeks,
        )
    if not isinstance(spec.day_of_week, int) or not 0 <= spec.day_of_week <= 6:
        raise InvalidRecurrence("day_of_week must be 0 (Sunday) to 6 (Saturday)", day_of_week=spec.day_of_week)
    at = parse_time_hhmm(spec.time)

    if spec.weeks == 0:
        return []

    tz = spec.start_date.tzinfo
    first = next_day_of_week(spec.day_of_week, spec.start_date.date())
    drafts = [
        ClassDraft(
            name=template.name,
            brief_description=template.brief_description,
            full_description=template.full_description,
            instructor=template.instructor,
            price=template.price,
            start_time=datetime.combine(first + timedelta(weeks=i), at, tzinfo=tz),
            weekly_repeat=0,
        )
        for i in range(spec.weeks)
    ]
    log.debug(f"[RECUR] {template.name!r} → {len(drafts)} x {DAY_NAMES[spec.day_of_week]} {spec.time}")
    return drafts

def recurrence_from_start(start_time: datetime, weeks: int) -> RecurrenceSpec:
    """
    Admin form flow: the entered start timestamp supplies both the weekday
    and the time of day for the series.
    """
    return RecurrenceSpec(
        start_date=start_time,
        weeks=weeks,
        day_of_week=sunday_based_weekday(start_time.date()),
        time=format_time_for_input(start_time),
    )
