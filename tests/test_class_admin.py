from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from yoga_scheduler import class_admin
from yoga_scheduler.errors import NotFound, PartialBatchFailure, StorageError, ValidationError
from yoga_scheduler.logic_models import ClassTemplate, RecurrenceSpec
from tests.helpers import NOW, TZ, FakeStore, class_row

FORM = {
    "name": "Morning Flow",
    "brief_description": "Gentle start",
    "full_description": "A gentle vinyasa flow to start the day.",
    "instructor": "Sarah",
    "price": 12,
    "start_time": "2024-03-04T08:00",
    "weekly_repeat": 0,
}


def test_create_single_class_reads_form_time_in_studio_zone():
    store = FakeStore()
    (created,) = class_admin.create_from_form(store, FORM, TZ)
    assert created.start_time == datetime(2024, 3, 4, 13, 0, tzinfo=timezone.utc)
    assert created.end_time - created.start_time == timedelta(hours=1)
    assert created.weekly_repeat == 0


def test_create_from_form_with_weekly_repeat_builds_series_on_same_weekday():
    store = FakeStore()
    created = class_admin.create_from_form(store, {**FORM, "weekly_repeat": 4}, TZ)
    assert len(created) == 4
    # Monday 08:00 local each week, DST change on 2024-03-10 included
    local = [c.start_time.astimezone(ZoneInfo(TZ)) for c in created]
    assert [d.date() for d in local] == [date(2024, 3, 4), date(2024, 3, 11), date(2024, 3, 18), date(2024, 3, 25)]
    assert all((d.hour, d.minute) == (8, 0) for d in local)
    assert all(c.weekly_repeat == 0 for c in created)


@pytest.mark.parametrize("start", ["2024-03-04T13:00:00Z", "2024-03-04T08:00:00-05:00"])
def test_weekly_series_from_offset_start_keeps_studio_wall_clock(start):
    store = FakeStore()
    created = class_admin.create_from_form(store, {**FORM, "start_time": start, "weekly_repeat": 2}, TZ)
    local = [c.start_time.astimezone(ZoneInfo(TZ)) for c in created]
    assert [d.date() for d in local] == [date(2024, 3, 4), date(2024, 3, 11)]
    assert [(d.hour, d.minute) for d in local] == [(8, 0), (8, 0)]


def test_parse_form_datetime_converts_offsets_into_studio_zone():
    dt = class_admin.parse_form_datetime("2024-03-04T13:00:00Z", TZ)
    assert dt.tzinfo == ZoneInfo(TZ)
    assert (dt.hour, dt.minute) == (8, 0)
    assert dt == datetime(2024, 3, 4, 13, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("weeks", [-1, 27, "lots", 1.5, "1.5", True])
def test_create_from_form_rejects_bad_weekly_repeat(weeks):
    with pytest.raises(ValidationError):
        class_admin.create_from_form(FakeStore(), {**FORM, "weekly_repeat": weeks}, TZ)


@pytest.mark.parametrize("weeks,count", [("3", 3), ("", 1), (None, 1)])
def test_create_from_form_accepts_form_strings_for_weekly_repeat(weeks, count):
    assert len(class_admin.create_from_form(FakeStore(), {**FORM, "weekly_repeat": weeks}, TZ)) == count


@pytest.mark.parametrize("price", ["nan", "inf", float("-inf")])
def test_create_rejects_non_finite_price(price):
    store = FakeStore()
    with pytest.raises(ValidationError):
        class_admin.create_from_form(store, {**FORM, "price": price}, TZ)
    assert store.classes == {}


def test_template_rejects_non_finite_price():
    template = ClassTemplate("Yin", "b", "f", "Sarah", float("nan"))
    with pytest.raises(ValidationError):
        template.validate()


@pytest.mark.parametrize("field,value", [("name", ""), ("instructor", "  "), ("price", -5), ("price", "abc"), ("start_time", "")])
def test_create_validates_fields(field, value):
    with pytest.raises(ValidationError):
        class_admin.create_class(FakeStore(), {**FORM, field: value}, TZ)


def test_weekly_batch_failure_reports_what_was_created():
    store = FakeStore()
    store.fail_class_create_at = 3
    template = ClassTemplate("Flow", "b", "f", "Sarah", 10)
    spec = RecurrenceSpec(start_date=datetime(2024, 3, 4, tzinfo=timezone.utc), weeks=5, day_of_week=1, time="08:00")

    with pytest.raises(PartialBatchFailure) as info:
        class_admin.create_weekly_classes(store, template, spec)

    err = info.value
    assert err.failed_index == 3
    assert len(err.created) == 2
    assert len(store.classes) == 2  # no rollback
    body = err.to_dict()
    assert body["created"] == [c.id for c in err.created]
    assert err.status_code == 207


def test_weekly_batch_failing_on_first_instance_raises_storage_error():
    store = FakeStore()
    store.fail_class_create_at = 1
    template = ClassTemplate("Flow", "b", "f", "Sarah", 10)
    spec = RecurrenceSpec(start_date=datetime(2024, 3, 4, tzinfo=timezone.utc), weeks=2, day_of_week=1, time="08:00")
    with pytest.raises(StorageError):
        class_admin.create_weekly_classes(store, template, spec)


def test_update_recomputes_end_time_and_rejects_bad_fields():
    store = FakeStore()
    c = store.create_class(class_row())

    updated = class_admin.update_class(store, c.id, {"start_time": "2024-03-05T18:30", "price": 20}, TZ)
    assert updated.start_time == datetime(2024, 3, 5, 23, 30, tzinfo=timezone.utc)
    assert updated.end_time == updated.start_time + timedelta(hours=1)
    assert updated.price == 20

    with pytest.raises(ValidationError):
        class_admin.update_class(store, c.id, {"end_time": "2024-03-05T20:00"}, TZ)
    with pytest.raises(ValidationError):
        class_admin.update_class(store, c.id, {"is_cancelled": False}, TZ)
    with pytest.raises(ValidationError):
        class_admin.update_class(store, c.id, {"name": ""}, TZ)
    with pytest.raises(ValidationError):
        class_admin.update_class(store, c.id, {}, TZ)
    with pytest.raises(NotFound):
        class_admin.update_class(store, "missing", {"price": 5}, TZ)


def test_duplicate_copies_fields_and_clears_start_time():
    store = FakeStore()
    c = store.create_class(class_row(name="Yin", price=8))
    form = class_admin.duplicate_class(c)
    assert form["name"] == "Yin" and form["price"] == 8
    assert form["start_time"] is None
    assert "id" not in form


def test_delete_class():
    store = FakeStore()
    c = store.create_class(class_row())
    assert class_admin.delete_class(store, c.id) is True
    assert class_admin.delete_class(store, c.id) is False


def _classes():
    store = FakeStore()
    rows = [
        class_row(name="Beta", instructor="Bob", price=10, start=datetime(2024, 3, 2, 15, tzinfo=timezone.utc)),
        class_row(name="alpha", instructor="Alice", price=5, start=datetime(2024, 3, 1, 20, tzinfo=timezone.utc)),
        class_row(name="Charlie", instructor="Carol", price=20, start=datetime(2024, 3, 20, 15, tzinfo=timezone.utc)),
        class_row(name="Delta", instructor="Alice", price=6, start=datetime(2024, 3, 6, 15, tzinfo=timezone.utc)),
    ]
    return [store.create_class(r) for r in rows]


@pytest.mark.parametrize("by,order,expected", [
    ("date", "asc", ["alpha", "Beta", "Delta", "Charlie"]),
    ("date", "desc", ["Charlie", "Delta", "Beta", "alpha"]),
    ("name", "asc", ["alpha", "Beta", "Charlie", "Delta"]),
    ("instructor", "asc", ["alpha", "Delta", "Beta", "Charlie"]),
    ("price", "desc", ["Charlie", "Beta", "Delta", "alpha"]),
])
def test_sort_classes(by, order, expected):
    assert [c.name for c in class_admin.sort_classes(_classes(), by, order)] == expected


def test_sort_rejects_unknown_field():
    with pytest.raises(ValidationError):
        class_admin.sort_classes(_classes(), "colour")


def test_filter_by_price_range_buckets():
    classes = _classes()
    names = lambda bucket: {c.name for c in class_admin.filter_classes(classes, price_range=bucket)}
    assert names("low") == {"alpha"}
    assert names("medium") == {"Beta", "Delta"}
    assert names("high") == {"Charlie"}
    assert len(names("all")) == 4


def test_filter_by_instructor_and_date_range():
    classes = _classes()
    assert {c.name for c in class_admin.filter_classes(classes, instructor="Alice")} == {"alpha", "Delta"}
    today = class_admin.filter_classes(classes, date_range="today", now=NOW, tz_name=TZ)
    week = class_admin.filter_classes(classes, date_range="week", now=NOW, tz_name=TZ)
    month = class_admin.filter_classes(classes, date_range="month", now=NOW, tz_name=TZ)
    assert [c.name for c in today] == ["alpha"]
    assert {c.name for c in week} == {"alpha", "Beta", "Delta"}
    assert len(month) == 4


def test_filter_rejects_unknown_bucket():
    with pytest.raises(ValidationError):
        class_admin.filter_classes(_classes(), price_range="free")


def test_enrolled_window_and_instructors():
    classes = _classes()
    far_past = FakeStore().create_class(class_row(name="Old", start=NOW - timedelta(days=30)))
    window = class_admin.enrolled_window(classes + [far_past], NOW)
    assert "Old" not in {c.name for c in window}
    assert "Charlie" not in {c.name for c in window}
    assert len(class_admin.enrolled_window(classes + [far_past], NOW, show_all=True)) == 5
    assert class_admin.instructors(classes) == ["Alice", "Bob", "Carol"]
