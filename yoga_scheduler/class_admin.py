# yoga_scheduler/class_admin.py
"""
Admin class management: create (single or weekly series), edit,
duplicate, delete, plus the sort / filter helpers used by the class
listing and the admin "enrolled" view.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .errors import NotFound, PartialBatchFailure, StorageError, ValidationError
from .formatters import local_zone
from .logic_models import CLASS_FIELDS, ClassDraft, ClassTemplate, RecurrenceSpec, YogaClass, iso
from .recurrence import generate, recurrence_from_start, validate_weekly_repeat
from .reconciler import start_of_day
from .settings import CLASS_DURATION, DATE_RANGES, ENROLLED_WINDOW, PRICE_RANGES, SORT_FIELDS
from .store import Store

log = logging.getLogger(__name__)

_TEXT_FIELDS = ("name", "brief_description", "full_description", "instructor")


# ── Form parsing ──────────────────────────────────────────────────────────────

def parse_form_datetime(value: Any, tz_name: Optional[str] = None) -> datetime:
    """
    Admin forms send 'YYYY-MM-DDTHH:MM' wall-clock values; those are read in
    the studio's zone. Values carrying an offset are converted into that
    zone, so a weekly series anchors on the studio's weekday and wall clock.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value or "").strip()
        if not s:
            raise ValidationError("start_time is required", field="start_time")
        try:
            dt = datetime.fromisoformat(s[:-1] + "+00:00" if s.endswith("Z") else s)
        except ValueError:
            raise ValidationError(f"Invalid start_time: {s!r}", field="start_time")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=local_zone(tz_name))
    return dt.astimezone(local_zone(tz_name))


def _price(value: Any) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValidationError("price must be a number", field="price")
    if not math.isfinite(price):
        raise ValidationError("price must be a finite number", field="price")
    if price < 0:
        raise ValidationError("price cannot be negative", field="price")
    return price


def _form_weeks(value: Any) -> int:
    """weekly_repeat from a form: an int or a digit string; blank means 0."""
    if value is None or value == "":
        return 0
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError("weekly_repeat must be a whole number", field="weekly_repeat")


def _template(data: Dict[str, Any]) -> ClassTemplate:
    template = ClassTemplate(
        name=(data.get("name") or "").strip(),
        brief_description=(data.get("brief_description") or "").strip(),
        full_description=(data.get("full_description") or "").strip(),
        instructor=(data.get("instructor") or "").strip(),
        price=_price(data.get("price")),
    )
    template.validate()
    return template


# ── Create ────────────────────────────────────────────────────────────────────

def create_class(store: Store, data: Dict[str, Any], tz_name: Optional[str] = None) -> Optional[YogaClass]:
    """Single, non-repeating class. end_time is always start + one hour."""
    template = _template(data)
    draft = ClassDraft(
        name=template.name,
        brief_description=template.brief_description,
        full_description=template.full_description,
        instructor=template.instructor,
        price=template.price,
        start_time=parse_form_datetime(data.get("start_time"), tz_name),
    )
    created = store.create_class(draft.to_row())
    log.info(f"[ADMIN] created class {getattr(created, 'id', None)} {draft.name!r} at {iso(draft.start_time)}")
    return created


def create_weekly_classes(store: Store, template: ClassTemplate, spec: RecurrenceSpec) -> List[Optional[YogaClass]]:
    """
    Persists one instance per week, in order. There is no batch rollback:
    when instance k fails, instances 1..k-1 stay stored and the failure
    says which ones exist.
    """
    drafts = generate(template, spec)
    created: List[Optional[YogaClass]] = []
    for index, draft in enumerate(drafts, start=1):
        try:
            created.append(store.create_class(draft.to_row()))
        except StorageError as e:
            if not created:
                raise
            log.error(f"[ADMIN] weekly batch {template.name!r} stopped at {index}/{len(drafts)}: {e.message}")
            raise PartialBatchFailure(created, index, e) from e
    log.info(f"[ADMIN] created {len(created)} weekly instances of {template.name!r}")
    return created


def create_from_form(store: Store, data: Dict[str, Any], tz_name: Optional[str] = None) -> List[Optional[YogaClass]]:
    """
    The admin create form: weekly_repeat > 0 expands into a series on the
    entered start time's weekday and time of day, otherwise one class.
    """
    weeks = _form_weeks(data.get("weekly_repeat"))
    problem = validate_weekly_repeat(weeks)
    if problem:
        raise ValidationError(problem, field="weekly_repeat")

    if weeks > 0:
        start = parse_form_datetime(data.get("start_time"), tz_name)
        return create_weekly_classes(store, _template(data), recurrence_from_start(start, weeks))
    return [create_class(store, data, tz_name)]


# ── Edit / duplicate / delete ─────────────────────────────────────────────────

def update_class(store: Store, class_id: str, fields: Dict[str, Any], tz_name: Optional[str] = None) -> YogaClass:
    if not fields:
        raise ValidationError("Nothing to update")
    if "end_time" in fields:
        raise ValidationError("end_time is derived from start_time", field="end_time")
    unknown = sorted(set(fields) - set(CLASS_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(unknown)}", fields=unknown)

    changes: Dict[str, Any] = {}
    for name in _TEXT_FIELDS:
        if name in fields:
            value = (fields[name] or "").strip() if isinstance(fields[name], str) else ""
            if not value:
                raise ValidationError(f"{name} is required", field=name)
            changes[name] = value
    if "price" in fields:
        changes["price"] = _price(fields["price"])
    if "weekly_repeat" in fields:
        weeks = fields["weekly_repeat"]
        problem = validate_weekly_repeat(weeks) if isinstance(weeks, int) else "weekly_repeat must be a whole number"
        if problem:
            raise ValidationError(problem, field="weekly_repeat")
        changes["weekly_repeat"] = weeks
    if "start_time" in fields:
        start = parse_form_datetime(fields["start_time"], tz_name)
        changes["start_time"] = iso(start)
        changes["end_time"] = iso(start + CLASS_DURATION)

    if store.get_class(class_id) is None:
        raise NotFound("Class not found", class_id=class_id)
    updated = store.update_class(class_id, changes) or store.get_class(class_id)
    if updated is None:
        raise NotFound("Class not found", class_id=class_id)
    log.info(f"[ADMIN] updated class {class_id}: {sorted(changes)}")
    return updated


def duplicate_class(yoga_class: YogaClass) -> Dict[str, Any]:
    """Form pre-fill copied from an existing class; start_time left for the admin to set."""
    return {
        "name": yoga_class.name,
        "brief_description": yoga_class.brief_description,
        "full_description": yoga_class.full_description,
        "instructor": yoga_class.instructor,
        "start_time": None,
        "price": yoga_class.price,
        "weekly_repeat": yoga_class.weekly_repeat,
    }


def delete_class(store: Store, class_id: str) -> bool:
    removed = store.delete_class(class_id)
    log.info(f"[ADMIN] delete class {class_id} removed={removed}")
    return removed


# ── Listing helpers ───────────────────────────────────────────────────────────

def sort_classes(classes: Iterable[YogaClass], by: str = "date", order: str = "asc") -> List[YogaClass]:
    if by not in SORT_FIELDS:
        raise ValidationError(f"Cannot sort by {by!r}", sort=by)
    if order not in ("asc", "desc"):
        raise ValidationError(f"Invalid sort order {order!r}", order=order)
    keys = {
        "date": lambda c: c.start_time,
        "name": lambda c: c.name.casefold(),
        "instructor": lambda c: c.instructor.casefold(),
        "price": lambda c: c.price,
    }
    return sorted(classes, key=keys[by], reverse=(order == "desc"))


def _in_price_range(price: float, bucket: str) -> bool:
    above, upto = PRICE_RANGES[bucket]
    return (above is None or price > above) and (upto is None or price <= upto)


def filter_classes(
    classes: Iterable[YogaClass],
    *,
    instructor: Optional[str] = None,
    price_range: Optional[str] = None,
    date_range: Optional[str] = None,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> List[YogaClass]:
    """'all' (or None) disables a filter. Date ranges run from the start of today."""
    if price_range not in (None, "all") and price_range not in PRICE_RANGES:
        raise ValidationError(f"Unknown price range {price_range!r}", price_range=price_range)
    if date_range not in (None, "all") and date_range not in DATE_RANGES:
        raise ValidationError(f"Unknown date range {date_range!r}", date_range=date_range)

    out = list(classes)
    if instructor and instructor != "all":
        out = [c for c in out if c.instructor == instructor]
    if price_range in PRICE_RANGES:
        out = [c for c in out if _in_price_range(c.price, price_range)]
    if date_range in DATE_RANGES:
        if now is None:
            raise ValidationError("now is required for date filtering")
        lo = start_of_day(now, tz_name)
        hi = lo + DATE_RANGES[date_range]
        out = [c for c in out if lo <= c.start_time < hi]
    return out


def enrolled_window(classes: Iterable[YogaClass], now: datetime, show_all: bool = False) -> List[YogaClass]:
    ordered = sorted(classes, key=lambda c: c.start_time)
    if show_all:
        return ordered
    lo, hi = now - ENROLLED_WINDOW, now + ENROLLED_WINDOW
    return [c for c in ordered if lo <= c.start_time <= hi]


def instructors(classes: Iterable[YogaClass]) -> List[str]:
    return sorted({c.instructor for c in classes if c.instructor})
