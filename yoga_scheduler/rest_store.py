"""
rest_store.py
─────────────
Storage collaborator for the hosted backend's PostgREST gateway.

 • every call carries a bounded timeout (REQUEST_TIMEOUT)
 • list/read calls retry once on network failure or 5xx; writes never retry
 • requests.Timeout → StorageTimeout, other transport errors → NetworkError,
   HTTP ≥ 400 → StorageError(status)
 • a 409 / Postgres 23505 on class_registrations → AlreadyRegistered
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from .errors import AlreadyRegistered, NetworkError, StorageError, StorageTimeout
from .logic_models import Profile, Registration, UserWaiver, Waiver, YogaClass, iso, utcnow
from .store import Store

log = logging.getLogger(__name__)

TABLES = {
    "classes": "yoga_classes",
    "registrations": "class_registrations",
    "profiles": "profiles",
    "waivers": "waivers",
    "user_waivers": "user_waivers",
}

UNIQUE_VIOLATION = "23505"


class RestStore(Store):
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        access_token: Optional[str] = None,
        timeout: float = 10.0,
        retry_delay: float = 1.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.rest_url = f"{self.base_url}/rest/v1"
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.session = session or requests.Session()
        self._sleep = sleep

    def with_token(self, access_token: Optional[str]) -> "RestStore":
        """Same connection pool, requests made as the signed-in user (row-level security)."""
        return RestStore(
            self.base_url,
            self.api_key,
            access_token=access_token,
            timeout=self.timeout,
            retry_delay=self.retry_delay,
            session=self.session,
            sleep=self._sleep,
        )

    # ── Transport ───────────────────────────────────────
    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _send(self, method: str, table: str, *, params=None, payload=None, prefer=None):
        url = f"{self.rest_url}/{table}"
        try:
            resp = self.session.request(
                method,
                url,
                headers=self._headers(prefer),
                params=params,
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            log.error(f"[REST] {method} {table} timed out after {self.timeout}s")
            raise StorageTimeout(f"{method} {table} timed out") from e
        except requests.exceptions.RequestException as e:
            log.error(f"[REST] {method} {table} network error: {e}")
            raise NetworkError(f"{method} {table} failed: {e}") from e

        try:
            body = resp.json() if resp.content else None
        except ValueError:
            body = resp.text

        if resp.status_code >= 400:
            log.error(f"[REST FAIL] {method} {table} status={resp.status_code} body={body}")
            code = body.get("code") if isinstance(body, dict) else None
            if table == TABLES["registrations"] and (resp.status_code == 409 or code == UNIQUE_VIOLATION):
                raise AlreadyRegistered("Already registered for this class", status=resp.status_code)
            message = body.get("message") if isinstance(body, dict) else None
            raise StorageError(message or f"HTTP error! status: {resp.status_code}", status=resp.status_code)
        return body

    def _read(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        """GET with at most one retry."""
        try:
            body = self._send("GET", table, params=params)
        except StorageError as e:
            if e.status is not None and e.status < 500:
                raise
            log.warning(f"[REST] GET {table} failed ({e.message}); retrying once in {self.retry_delay}s")
            self._sleep(self.retry_delay)
            body = self._send("GET", table, params=params)
        return body or []

    def _first(self, rows) -> Optional[Dict[str, Any]]:
        if isinstance(rows, list):
            return rows[0] if rows else None
        return rows or None

    def _insert(self, table: str, row: Dict[str, Any]):
        return self._first(self._send("POST", table, payload=row, prefer="return=representation"))

    def _patch(self, table: str, obj_id: str, fields: Dict[str, Any]):
        return self._first(self._send(
            "PATCH", table, params={"id": f"eq.{obj_id}"}, payload=fields, prefer="return=representation",
        ))

    def _remove(self, table: str, obj_id: str) -> bool:
        self._send("DELETE", table, params={"id": f"eq.{obj_id}"})
        return True

    @staticmethod
    def _stamp(row: Dict[str, Any], created: bool = False) -> Dict[str, Any]:
        out = dict(row)
        now = iso(utcnow())
        if created:
            out.setdefault("created_at", now)
        out["updated_at"] = now
        return out

    # ── Classes ──────────────────────────────────────────
    def list_classes(self) -> List[YogaClass]:
        rows = self._read(TABLES["classes"], {"select": "*", "order": "start_time.asc"})
        classes = [YogaClass.from_row(r) for r in rows]
        cancelled = [c.id for c in classes if c.is_cancelled]
        if cancelled:
            log.debug(f"[REST] list_classes: {len(cancelled)} cancelled → {cancelled}")
        return classes

    def get_class(self, class_id: str) -> Optional[YogaClass]:
        row = self._first(self._read(TABLES["classes"], {"id": f"eq.{class_id}", "select": "*"}))
        return YogaClass.from_row(row) if row else None

    def create_class(self, row: Dict[str, Any]) -> Optional[YogaClass]:
        created = self._insert(TABLES["classes"], self._stamp(row, created=True))
        return YogaClass.from_row(created) if created else None

    def update_class(self, class_id: str, fields: Dict[str, Any]) -> Optional[YogaClass]:
        row = self._patch(TABLES["classes"], class_id, self._stamp(fields))
        return YogaClass.from_row(row) if row else None

    def delete_class(self, class_id: str) -> bool:
        return self._remove(TABLES["classes"], class_id)

    # ── Registrations ────────────────────────────────────
    def list_registrations_for_user(self, user_id: str) -> List[Registration]:
        rows = self._read(TABLES["registrations"], {
            "user_id": f"eq.{user_id}", "select": "*", "order": "created_at.desc",
        })
        return [Registration.from_row(r) for r in rows]

    def list_registrations_for_class(self, class_id: str) -> List[Registration]:
        rows = self._read(TABLES["registrations"], {
            "class_id": f"eq.{class_id}", "select": "*", "order": "created_at.desc",
        })
        if rows:
            # Enrichment is best effort; bare registrations are still useful
            try:
                profiles = {p.id: p for p in self.list_profiles(sorted({str(r["user_id"]) for r in rows}))}
            except StorageError as e:
                log.warning(f"[REST] profile enrichment for class {class_id} failed: {e.message}")
                profiles = {}
            out = []
            for r in rows:
                reg = Registration.from_row(r)
                reg.profile = profiles.get(reg.user_id)
                out.append(reg)
            return out
        return []

    def get_registration(self, registration_id: str) -> Optional[Registration]:
        row = self._first(self._read(TABLES["registrations"], {"id": f"eq.{registration_id}", "select": "*"}))
        return Registration.from_row(row) if row else None

    def create_registration(self, row: Dict[str, Any]) -> Optional[Registration]:
        created = self._insert(TABLES["registrations"], self._stamp(row, created=True))
        return Registration.from_row(created) if created else None

    def update_registration(self, registration_id: str, fields: Dict[str, Any]) -> Optional[Registration]:
        row = self._patch(TABLES["registrations"], registration_id, self._stamp(fields))
        return Registration.from_row(row) if row else None

    def delete_registration(self, registration_id: str) -> bool:
        return self._remove(TABLES["registrations"], registration_id)

    # ── Profiles ─────────────────────────────────────────
    def get_profile(self, user_id: str) -> Optional[Profile]:
        row = self._first(self._read(TABLES["profiles"], {"id": f"eq.{user_id}", "select": "*"}))
        return Profile.from_row(row) if row else None

    def list_profiles(self, user_ids: Optional[List[str]] = None) -> List[Profile]:
        params = {"select": "*", "order": "email.asc"}
        if user_ids is not None:
            if not user_ids:
                return []
            params["id"] = f"in.({','.join(user_ids)})"
        return [Profile.from_row(r) for r in self._read(TABLES["profiles"], params)]

    def upsert_profile(self, row: Dict[str, Any]) -> Optional[Profile]:
        created = self._first(self._send(
            "POST", TABLES["profiles"], payload=self._stamp(row),
            prefer="resolution=merge-duplicates,return=representation",
        ))
        return Profile.from_row(created) if created else None

    # ── Waivers ──────────────────────────────────────────
    def list_waivers(self) -> List[Waiver]:
        rows = self._read(TABLES["waivers"], {"select": "*", "order": "created_at.desc"})
        return [Waiver.from_row(r) for r in rows]

    def get_active_waiver(self) -> Optional[Waiver]:
        row = self._first(self._read(TABLES["waivers"], {
            "is_active": "eq.true", "select": "*", "order": "version.desc", "limit": "1",
        }))
        return Waiver.from_row(row) if row else None

    def create_waiver(self, row: Dict[str, Any]) -> Optional[Waiver]:
        created = self._insert(TABLES["waivers"], self._stamp(row, created=True))
        return Waiver.from_row(created) if created else None

    def update_waiver(self, waiver_id: str, fields: Dict[str, Any]) -> Optional[Waiver]:
        row = self._patch(TABLES["waivers"], waiver_id, self._stamp(fields))
        return Waiver.from_row(row) if row else None

    def delete_waiver(self, waiver_id: str) -> bool:
        return self._remove(TABLES["waivers"], waiver_id)

    def create_user_waiver(self, row: Dict[str, Any]) -> Optional[UserWaiver]:
        values = dict(row)
        values.setdefault("agreed_at", iso(utcnow()))
        created = self._insert(TABLES["user_waivers"], values)
        return UserWaiver.from_row(created) if created else None

    def list_user_waivers(self, user_id: str) -> List[UserWaiver]:
        rows = self._read(TABLES["user_waivers"], {"user_id": f"eq.{user_id}", "select": "*"})
        return [UserWaiver.from_row(r) for r in rows]
