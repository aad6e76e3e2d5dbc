"""
sql_store.py
────────────
Storage collaborator backed by a SQL database through SQLAlchemy.
Used for local development (STORAGE_BACKEND=sql) and the test-suite.

The (class_id, user_id) unique constraint on class_registrations is the
authoritative duplicate-registration guard: an IntegrityError on insert
is reported as AlreadyRegistered.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import models as m
from .db import init_db, make_engine, make_session_factory, session_scope
from .errors import AlreadyRegistered, StorageError
from .logic_models import Profile, Registration, UserWaiver, Waiver, YogaClass, parse_ts, utcnow
from .store import Store

log = logging.getLogger(__name__)

_TS_COLUMNS = {"start_time", "end_time", "created_at", "updated_at", "agreed_at"}


def _row(obj) -> Dict[str, Any]:
    return {c.name: getattr(obj, c.name) for c in obj.__table__.columns}


class SqlStore(Store):
    def __init__(self, database_url: str = "sqlite://", engine=None):
        self.engine = engine or make_engine(database_url)
        self._naive_ts = self.engine.dialect.name == "sqlite"
        self._session_factory = make_session_factory(self.engine)

    def init_schema(self) -> None:
        init_db(self.engine)

    # ── Helpers ─────────────────────────────────────────
    def _db_ts(self, value: Any) -> Optional[datetime]:
        dt = parse_ts(value)
        if dt is None:
            return None
        dt = dt.astimezone(timezone.utc)
        return dt.replace(tzinfo=None) if self._naive_ts else dt

    def _clean(self, model, row: Dict[str, Any]) -> Dict[str, Any]:
        allowed = {c.name for c in model.__table__.columns}
        out = {}
        for k, v in row.items():
            if k not in allowed:
                continue
            out[k] = self._db_ts(v) if k in _TS_COLUMNS else v
        return out

    def _run(self, label: str, fn):
        try:
            with session_scope(self._session_factory) as s:
                return fn(s)
        except (AlreadyRegistered, StorageError):
            raise
        except IntegrityError as e:
            log.warning(f"[SQL] {label} constraint violation: {e.orig}")
            raise StorageError(f"{label} failed: constraint violation", status=409) from e
        except SQLAlchemyError as e:
            log.exception(f"[SQL] {label} failed")
            raise StorageError(f"{label} failed: {e.__class__.__name__}") from e

    def _create(self, label: str, model, row: Dict[str, Any]):
        now = self._db_ts(utcnow())
        values = self._clean(model, row)
        if "created_at" in model.__table__.columns:
            values.setdefault("created_at", now)
        if "updated_at" in model.__table__.columns:
            values.setdefault("updated_at", now)

        def _do(s):
            obj = model(**values)
            s.add(obj)
            s.flush()
            return _row(obj)
        return self._run(label, _do)

    def _update(self, label: str, model, obj_id: str, fields: Dict[str, Any]):
        values = self._clean(model, fields)
        values.pop("id", None)
        if "updated_at" in model.__table__.columns:
            values["updated_at"] = self._db_ts(utcnow())

        def _do(s):
            obj = s.get(model, obj_id)
            if obj is None:
                return None
            for k, v in values.items():
                setattr(obj, k, v)
            s.flush()
            return _row(obj)
        return self._run(label, _do)

    def _delete(self, label: str, model, obj_id: str) -> bool:
        def _do(s):
            obj = s.get(model, obj_id)
            if obj is None:
                return False
            s.delete(obj)
            return True
        return self._run(label, _do)

    # ── Classes ──────────────────────────────────────────
    def list_classes(self) -> List[YogaClass]:
        rows = self._run("list_classes", lambda s: [
            _row(o) for o in s.query(m.YogaClass).order_by(m.YogaClass.start_time.asc()).all()
        ])
        return [YogaClass.from_row(r) for r in rows]

    def get_class(self, class_id: str) -> Optional[YogaClass]:
        row = self._run("get_class", lambda s: (lambda o: _row(o) if o else None)(s.get(m.YogaClass, str(class_id))))
        return YogaClass.from_row(row) if row else None

    def create_class(self, row: Dict[str, Any]) -> Optional[YogaClass]:
        return YogaClass.from_row(self._create("create_class", m.YogaClass, row))

    def update_class(self, class_id: str, fields: Dict[str, Any]) -> Optional[YogaClass]:
        row = self._update("update_class", m.YogaClass, str(class_id), fields)
        return YogaClass.from_row(row) if row else None

    def delete_class(self, class_id: str) -> bool:
        return self._delete("delete_class", m.YogaClass, str(class_id))

    # ── Registrations ────────────────────────────────────
    def list_registrations_for_user(self, user_id: str) -> List[Registration]:
        rows = self._run("list_registrations_for_user", lambda s: [
            _row(o) for o in s.query(m.ClassRegistration)
            .filter(m.ClassRegistration.user_id == str(user_id))
            .order_by(m.ClassRegistration.created_at.desc())
            .all()
        ])
        return [Registration.from_row(r) for r in rows]

    def list_registrations_for_class(self, class_id: str) -> List[Registration]:
        def _do(s):
            regs = [
                _row(o) for o in s.query(m.ClassRegistration)
                .filter(m.ClassRegistration.class_id == str(class_id))
                .order_by(m.ClassRegistration.created_at.desc())
                .all()
            ]
            user_ids = {r["user_id"] for r in regs}
            profiles = {}
            if user_ids:
                profiles = {
                    p.id: _row(p)
                    for p in s.query(m.Profile).filter(m.Profile.id.in_(user_ids)).all()
                }
            for r in regs:
                r["profiles"] = profiles.get(r["user_id"])
            return regs
        return [Registration.from_row(r) for r in self._run("list_registrations_for_class", _do)]

    def get_registration(self, registration_id: str) -> Optional[Registration]:
        row = self._run("get_registration", lambda s: (lambda o: _row(o) if o else None)(
            s.get(m.ClassRegistration, str(registration_id))
        ))
        return Registration.from_row(row) if row else None

    def create_registration(self, row: Dict[str, Any]) -> Optional[Registration]:
        try:
            created = self._create("create_registration", m.ClassRegistration, row)
        except StorageError as e:
            if isinstance(e.__cause__, IntegrityError):
                raise AlreadyRegistered(
                    "Already registered for this class",
                    class_id=row.get("class_id"),
                    user_id=row.get("user_id"),
                ) from e
            raise
        return Registration.from_row(created)

    def update_registration(self, registration_id: str, fields: Dict[str, Any]) -> Optional[Registration]:
        row = self._update("update_registration", m.ClassRegistration, str(registration_id), fields)
        return Registration.from_row(row) if row else None

    def delete_registration(self, registration_id: str) -> bool:
        return self._delete("delete_registration", m.ClassRegistration, str(registration_id))

    # ── Profiles ─────────────────────────────────────────
    def get_profile(self, user_id: str) -> Optional[Profile]:
        row = self._run("get_profile", lambda s: (lambda o: _row(o) if o else None)(s.get(m.Profile, str(user_id))))
        return Profile.from_row(row) if row else None

    def list_profiles(self, user_ids: Optional[List[str]] = None) -> List[Profile]:
        def _do(s):
            q = s.query(m.Profile)
            if user_ids is not None:
                q = q.filter(m.Profile.id.in_([str(u) for u in user_ids]))
            return [_row(o) for o in q.order_by(m.Profile.email.asc()).all()]
        return [Profile.from_row(r) for r in self._run("list_profiles", _do)]

    def upsert_profile(self, row: Dict[str, Any]) -> Optional[Profile]:
        values = self._clean(m.Profile, row)

        def _do(s):
            obj = s.get(m.Profile, str(values["id"]))
            if obj is None:
                obj = m.Profile(**values)
                s.add(obj)
            else:
                for k, v in values.items():
                    setattr(obj, k, v)
            s.flush()
            return _row(obj)
        return Profile.from_row(self._run("upsert_profile", _do))

    # ── Waivers ──────────────────────────────────────────
    def list_waivers(self) -> List[Waiver]:
        rows = self._run("list_waivers", lambda s: [
            _row(o) for o in s.query(m.Waiver).order_by(m.Waiver.created_at.desc(), m.Waiver.version.desc()).all()
        ])
        return [Waiver.from_row(r) for r in rows]

    def get_active_waiver(self) -> Optional[Waiver]:
        row = self._run("get_active_waiver", lambda s: (lambda o: _row(o) if o else None)(
            s.query(m.Waiver).filter(m.Waiver.is_active.is_(True)).order_by(m.Waiver.version.desc()).first()
        ))
        return Waiver.from_row(row) if row else None

    def create_waiver(self, row: Dict[str, Any]) -> Optional[Waiver]:
        return Waiver.from_row(self._create("create_waiver", m.Waiver, row))

    def update_waiver(self, waiver_id: str, fields: Dict[str, Any]) -> Optional[Waiver]:
        row = self._update("update_waiver", m.Waiver, str(waiver_id), fields)
        return Waiver.from_row(row) if row else None

    def delete_waiver(self, waiver_id: str) -> bool:
        return self._delete("delete_waiver", m.Waiver, str(waiver_id))

    def create_user_waiver(self, row: Dict[str, Any]) -> Optional[UserWaiver]:
        values = dict(row)
        values.setdefault("agreed_at", utcnow())
        return UserWaiver.from_row(self._create("create_user_waiver", m.UserWaiver, values))

    def list_user_waivers(self, user_id: str) -> List[UserWaiver]:
        rows = self._run("list_user_waivers", lambda s: [
            _row(o) for o in s.query(m.UserWaiver).filter(m.UserWaiver.user_id == str(user_id)).all()
        ])
        return [UserWaiver.from_row(r) for r in rows]
