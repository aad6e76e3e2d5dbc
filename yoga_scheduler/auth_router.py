# yoga_scheduler/auth_router.py
"""
auth_router.py
──────────────
Sign-up, sign-in, sign-out and the signed-in user's own profile.
"""

import logging
from flask import Blueprint, g, jsonify

from .auth import access_token, current_user, forget, login_required, remember
from .errors import ValidationError
from .services import get_services
from .utils import json_body, normalize_phone, safe_execute

log = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

_PROFILE_FIELDS = ("full_name", "avatar_url", "phone")


def _credentials(data):
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or "@" not in email:
        raise ValidationError("A valid email is required", field="email")
    if not password:
        raise ValidationError("Password is required", field="password")
    return email, password


@auth_bp.post("/signup")
def signup():
    data = json_body()
    email, password = _credentials(data)
    phone = normalize_phone(data.get("phone")) or None
    svc = get_services()

    result = svc.auth.sign_up(email, password, phone)
    if result.access_token:
        remember(result)

    profile = svc.user_store().upsert_profile({
        "id": result.user_id,
        "email": result.email or email,
        "full_name": (data.get("full_name") or "").strip() or None,
        "phone": phone,
    })
    if svc.notifier:
        svc.notifier.welcome(email, phone)
    log.info(f"[AUTH] new account {email} ({result.user_id}) signed_in={bool(result.access_token)}")
    return jsonify({
        "ok": True,
        "user": profile.to_dict() if profile else {"id": result.user_id, "email": email},
        "signed_in": bool(result.access_token),
    }), 201


@auth_bp.post("/login")
def login():
    email, password = _credentials(json_body())
    remember(get_services().auth.sign_in(email, password))
    return jsonify({"ok": True, "user": current_user().to_dict()})


@auth_bp.post("/logout")
def logout():
    token = access_token()
    if token:
        safe_execute(get_services().auth.sign_out, token, label="auth_sign_out")
    forget()
    return jsonify({"ok": True})


@auth_bp.get("/me")
@login_required
def me():
    return jsonify({"ok": True, "user": current_user().to_dict()})


@auth_bp.patch("/me")
@login_required
def update_me():
    data = json_body()
    unknown = sorted(set(data) - set(_PROFILE_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(unknown)}", fields=unknown)
    if not data:
        raise ValidationError("Nothing to update")
    if "phone" in data:
        data["phone"] = normalize_phone(data["phone"]) or None

    user = current_user()
    profile = get_services().user_store().upsert_profile({"id": user.id, "email": user.email, **data})
    g.pop("current_user", None)
    return jsonify({"ok": True, "user": (profile or current_user()).to_dict()})
