# yoga_scheduler/formatters.py
from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo


def local_zone(tz_name: Optional[str]) -> tzinfo:
    return ZoneInfo(tz_name or "UTC")

def to_local(dt: datetime, tz_name: Optional[str] = None) -> datetime:
    return dt.astimezone(local_zone(tz_name)) if dt.tzinfo else dt

# ── Class display ─────────────────────────────────────────────────────────────

def format_class_date(dt: datetime, tz_name: Optional[str] = None) -> str:
    """'Mon, Jan 1, 2024'"""
    d = to_local(dt, tz_name)
    return f"{d.strftime('%a')}, {d.strftime('%b')} {d.day}, {d.year}"

def format_class_time(dt: datetime, tz_name: Optional[str] = None) -> str:
    """'8:00 AM'"""
    d = to_local(dt, tz_name)
    hour = d.hour % 12 or 12
    return f"{hour}:{d.minute:02d} {'AM' if d.hour < 12 else 'PM'}"

def format_price(amount: float) -> str:
    return f"${amount:,.2f}"

def format_agreement_date(dt: datetime, tz_name: Optional[str] = None) -> str:
    """'January 1, 2024'"""
    d = to_local(dt, tz_name)
    return f"{d.strftime('%B')} {d.day}, {d.year}"
