"""
auth.py
───────
Sign-up / sign-in against the hosted auth service (GoTrue REST), the
signed session cookie that remembers who is logged in, and the
login_required / admin_required route guards.

Admin is a capability on the user's profile row (is_admin), looked up per
request; there is no hard-coded admin account.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Dict, Optional

import requests
from flask import g, session

from .errors import AuthError, Forbidden, NetworkError, StorageError, StorageTimeout
from .logic_models import Profile
from .services import get_services

log = logging.getLogger(__name__)

_AUTH_FAILURES = {400, 401, 403, 422}


@dataclass(frozen=True)
class AuthSession:
    user_id: str
    email: str
    access_token: Optional[str] = None


class AuthClient:
    def __init__(self, base_url: str, api_key: str, *, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.auth_url = f"{base_url.rstrip('/')}/auth/v1"
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path: str, payload: Optional[Dict[str, Any]] = None,
              token: Optional[str] = None, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token or self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = self.session.post(f"{self.auth_url}/{path}", headers=headers, params=params,
                                     json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            log.error(f"[AUTH] {path} timed out after {self.timeout}s")
            raise StorageTimeout(f"auth {path} timed out") from e
        except requests.exceptions.RequestException as e:
            log.error(f"[AUTH] {path} network error: {e}")
            raise NetworkError(f"auth {path} failed: {e}") from e

        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {}
        if resp.status_code in _AUTH_FAILURES:
            message = body.get("error_description") or body.get("msg") or body.get("message") or "Authentication failed"
            log.warning(f"[AUTH] {path} rejected status={resp.status_code}: {message}")
            raise AuthError(message, status=resp.status_code)
        if resp.status_code >= 400:
            log.error(f"[AUTH FAIL] {path} status={resp.status_code} body={body}")
            raise StorageError(f"auth {path} failed", status=resp.status_code)
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _session_from(body: Dict[str, Any]) -> AuthSession:
        # signup echoes a bare user when email confirmation is pending
        user = body.get("user") or body
        if not user.get("id"):
            raise AuthError("Auth service returned no user")
        return AuthSession(
            user_id=str(user["id"]),
            email=user.get("email") or "",
            access_token=body.get("access_token"),
        )

    def sign_up(self, email: str, password: str, phone: Optional[str] = None) -> AuthSession:
        payload: Dict[str, Any] = {"email": email, "password": password}
        if phone:
            payload["data"] = {"phone": phone}
        result = self._session_from(self._post("signup", payload))
        log.info(f"[AUTH] signed up {email} → {result.user_id}")
        return result

    def sign_in(self, email: str, password: str) -> AuthSession:
        result = self._session_from(self._post("token", {"email": email, "password": password},
                                               params={"grant_type": "password"}))
        log.info(f"[AUTH] signed in {email}")
        return result

    def sign_out(self, access_token: str) -> None:
        self._post("logout", token=access_token)


# ── Session cookie ────────────────────────────────────────────────────────────

def remember(auth_session: AuthSession) -> None:
    session.clear()
    session["user_id"] = auth_session.user_id
    session["email"] = auth_session.email
    session["access_token"] = auth_session.access_token


def forget() -> None:
    session.clear()
    g.pop("current_user", None)


def access_token() -> Optional[str]:
    return session.get("access_token")


def current_user() -> Optional[Profile]:
    """Profile of the signed-in user; a bare profile when the row is missing."""
    user_id = session.get("user_id")
    if not user_id:
        return None
    if "current_user" in g:
        return g.current_user
    profile = get_services().user_store().get_profile(user_id)
    if profile is None:
        log.warning(f"[AUTH] no profile row for user {user_id}; using session email")
        profile = Profile(id=user_id, email=session.get("email") or "")
    g.current_user = profile
    return profile


# ── Guards ────────────────────────────────────────────────────────────────────

def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if current_user() is None:
            raise AuthError("Please sign in first")
        return view(*args, **kwargs)
    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        user = current_user()
        if user is None:
            raise AuthError("Please sign in first")
        if not user.is_admin:
            log.warning(f"[AUTH] non-admin {user.id} tried {view.__name__}")
            raise Forbidden("Admin access required")
        return view(*args, **kwargs)
    return wrapper
