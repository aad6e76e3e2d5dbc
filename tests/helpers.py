"""Shared fakes and utilities for unit tests."""

from __future__ import annotations

import itertools
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import requests

from yoga_scheduler.auth import AuthSession
from yoga_scheduler.errors import AlreadyRegistered, AuthError, StorageError
from yoga_scheduler.logic_models import Profile, Registration, UserWaiver, Waiver, YogaClass, iso
from yoga_scheduler.store import Store

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

# Friday 2024-03-01 10:00 in New York
NOW = datetime(2024, 3, 1, 15, 0, tzinfo=timezone.utc)
TZ = "America/New_York"


def class_row(name="Morning Flow", start=None, price=12.0, instructor="Sarah", **extra) -> Dict[str, Any]:
    start = start or datetime(2024, 3, 4, 13, 0, tzinfo=timezone.utc)
    row = {
        "name": name,
        "brief_description": "Gentle start",
        "full_description": "A gentle vinyasa flow to start the day.",
        "instructor": instructor,
        "start_time": iso(start),
        "end_time": iso(start + timedelta(hours=1)),
        "price": price,
        "weekly_repeat": 0,
    }
    row.update(extra)
    return row


class FakeStore(Store):
    """
    In-memory Store. ``echo=False`` makes writes return None the way a
    gateway does when it is not asked to return the row. ``fail_class_create_at``
    makes the n-th create_class call (1-based) raise StorageError.
    """

    def __init__(self, echo: bool = True, unique_registrations: bool = True):
        self.echo = echo
        self.unique_registrations = unique_registrations
        self.classes: Dict[str, Dict[str, Any]] = {}
        self.registrations: Dict[str, Dict[str, Any]] = {}
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.waivers: Dict[str, Dict[str, Any]] = {}
        self.user_waivers: Dict[str, Dict[str, Any]] = {}
        self.fail_class_create_at: Optional[int] = None
        self.fail_registration_list = False
        self.calls: List[Tuple[str, Any]] = []
        self._class_creates = 0
        self._clock = itertools.count()

    def _stamp(self) -> str:
        return iso(BASE_TIME + timedelta(seconds=next(self._clock)))

    def _new(self, table: Dict[str, Dict[str, Any]], row: Dict[str, Any]) -> Dict[str, Any]:
        stored = dict(row)
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", self._stamp())
        table[stored["id"]] = stored
        return stored

    # ── Classes ──
    def list_classes(self) -> List[YogaClass]:
        return sorted((YogaClass.from_row(r) for r in self.classes.values()), key=lambda c: c.start_time)

    def get_class(self, class_id):
        row = self.classes.get(str(class_id))
        return YogaClass.from_row(row) if row else None

    def create_class(self, row):
        self._class_creates += 1
        self.calls.append(("create_class", row))
        if self.fail_class_create_at == self._class_creates:
            raise StorageError("HTTP error! status: 500", status=500)
        stored = self._new(self.classes, {"is_cancelled": False, **row})
        return YogaClass.from_row(stored) if self.echo else None

    def update_class(self, class_id, fields):
        self.calls.append(("update_class", (class_id, fields)))
        row = self.classes.get(str(class_id))
        if row is None:
            return None
        row.update(fields)
        return YogaClass.from_row(row) if self.echo else None

    def delete_class(self, class_id):
        return self.classes.pop(str(class_id), None) is not None

    # ── Registrations ──
    def list_registrations_for_user(self, user_id):
        if self.fail_registration_list:
            raise StorageError("HTTP error! status: 503", status=503)
        rows = [r for r in self.registrations.values() if r["user_id"] == str(user_id)]
        return [Registration.from_row(r) for r in sorted(rows, key=lambda r: r["created_at"], reverse=True)]

    def list_registrations_for_class(self, class_id):
        if self.fail_registration_list:
            raise StorageError("HTTP error! status: 503", status=503)
        out = []
        for r in self.registrations.values():
            if r["class_id"] == str(class_id):
                out.append(Registration.from_row({**r, "profiles": self.profiles.get(r["user_id"])}))
        return out

    def get_registration(self, registration_id):
        row = self.registrations.get(str(registration_id))
        return Registration.from_row(row) if row else None

    def create_registration(self, row):
        self.calls.append(("create_registration", row))
        if self.unique_registrations and any(
            r["class_id"] == row["class_id"] and r["user_id"] == row["user_id"]
            for r in self.registrations.values()
        ):
            raise AlreadyRegistered("Already registered for this class", status=409)
        stored = self._new(self.registrations, row)
        return Registration.from_row(stored) if self.echo else None

    def update_registration(self, registration_id, fields):
        self.calls.append(("update_registration", (registration_id, fields)))
        row = self.registrations.get(str(registration_id))
        if row is None:
            return None
        row.update(fields)
        return Registration.from_row(row)

    def delete_registration(self, registration_id):
        self.calls.append(("delete_registration", registration_id))
        return self.registrations.pop(str(registration_id), None) is not None

    def add_registration(self, user_id, class_id, **extra) -> Registration:
        """Seed a row directly, skipping the uniqueness check."""
        row = {
            "class_id": str(class_id),
            "user_id": str(user_id),
            "payment_amount": 12.0,
            "payment_status": "completed",
            "payment_link_clicked": False,
            **extra,
        }
        return Registration.from_row(self._new(self.registrations, row))

    # ── Profiles ──
    def get_profile(self, user_id):
        row = self.profiles.get(str(user_id))
        return Profile.from_row(row) if row else None

    def list_profiles(self, user_ids=None):
        rows = self.profiles.values()
        if user_ids is not None:
            rows = [r for r in rows if r["id"] in set(user_ids)]
        return [Profile.from_row(r) for r in sorted(rows, key=lambda r: r.get("email") or "")]

    def upsert_profile(self, row):
        stored = self.profiles.setdefault(str(row["id"]), {"id": str(row["id"])})
        stored.update(row)
        return Profile.from_row(stored)

    # ── Waivers ──
    def list_waivers(self):
        rows = sorted(self.waivers.values(), key=lambda r: r["created_at"], reverse=True)
        return [Waiver.from_row(r) for r in rows]

    def get_active_waiver(self):
        active = [r for r in self.waivers.values() if r.get("is_active")]
        if not active:
            return None
        return Waiver.from_row(max(active, key=lambda r: r.get("version") or 1))

    def create_waiver(self, row):
        return Waiver.from_row(self._new(self.waivers, row))

    def update_waiver(self, waiver_id, fields):
        row = self.waivers.get(str(waiver_id))
        if row is None:
            return None
        row.update(fields)
        return Waiver.from_row(row)

    def delete_waiver(self, waiver_id):
        return self.waivers.pop(str(waiver_id), None) is not None

    def create_user_waiver(self, row):
        return UserWaiver.from_row(self._new(self.user_waivers, {"agreed_at": self._stamp(), **row}))

    def list_user_waivers(self, user_id):
        return [UserWaiver.from_row(r) for r in self.user_waivers.values() if r["user_id"] == str(user_id)]


class RecordingNotifier:
    """Stand-in for Notifier that keeps what would have been sent."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, Any]] = []

    def registration_confirmed(self, profile, yoga_class, amount):
        self.sent.append(("registration", (profile.email, yoga_class.id, amount)))

    def class_cancelled(self, yoga_class, registrations):
        regs = list(registrations)
        self.sent.append(("cancelled", (yoga_class.id, [r.user_id for r in regs])))
        return len([r for r in regs if r.profile and r.profile.email])

    def waiver_agreed(self, profile, waiver):
        self.sent.append(("waiver", (profile.email, waiver.id)))

    def welcome(self, email, phone):
        self.sent.append(("welcome", (email, phone)))

    def kinds(self) -> List[str]:
        return [kind for kind, _ in self.sent]


class FakeAuth:
    """AuthClient stand-in: accounts live in a dict keyed by email."""

    def __init__(self) -> None:
        self.accounts: Dict[str, Tuple[str, str]] = {}
        self.signed_out: List[str] = []

    def sign_up(self, email, password, phone=None):
        if email in self.accounts:
            raise AuthError("User already registered", status=422)
        user_id = str(uuid.uuid4())
        self.accounts[email] = (user_id, password)
        return AuthSession(user_id=user_id, email=email, access_token=f"token-{user_id}")

    def sign_in(self, email, password):
        account = self.accounts.get(email)
        if not account or account[1] != password:
            raise AuthError("Invalid login credentials", status=400)
        return AuthSession(user_id=account[0], email=email, access_token=f"token-{account[0]}")

    def sign_out(self, access_token):
        self.signed_out.append(access_token)


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None):
        self.status_code = status_code
        self._body = body
        self.content = b"" if body is None else b"x"
        self.text = "" if body is None else str(body)

    def json(self):
        return self._body


class FakeSession:
    """
    requests.Session stand-in. Queue responses (or exceptions) with
    ``queue``; every call is recorded in ``requests``.
    """

    def __init__(self) -> None:
        self.responses: List[Any] = []
        self.requests: List[Dict[str, Any]] = []

    def queue(self, *items: Any) -> "FakeSession":
        self.responses.extend(items)
        return self

    def _next(self, record: Dict[str, Any]):
        self.requests.append(record)
        if not self.responses:
            raise AssertionError(f"unexpected request {record['method']} {record['url']}")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def request(self, method, url, headers=None, params=None, json=None, timeout=None):
        return self._next({"method": method, "url": url, "headers": headers, "params": params,
                           "json": json, "timeout": timeout})

    def post(self, url, headers=None, params=None, json=None, timeout=None):
        return self.request("POST", url, headers=headers, params=params, json=json, timeout=timeout)


def timeout_error() -> requests.exceptions.Timeout:
    return requests.exceptions.Timeout("read timed out")


def connection_error() -> requests.exceptions.ConnectionError:
    return requests.exceptions.ConnectionError("connection refused")


def sign_in(client, fake_auth, store, email="student@example.com", is_admin=False, **profile) -> str:
    """Create an account and its profile row, then log in through the API."""
    session = fake_auth.sign_up(email, "pw-123456")
    store.upsert_profile({"id": session.user_id, "email": email, "is_admin": is_admin, **profile})
    resp = client.post("/auth/login", json={"email": email, "password": "pw-123456"})
    assert resp.status_code == 200, resp.get_json()
    return session.user_id
