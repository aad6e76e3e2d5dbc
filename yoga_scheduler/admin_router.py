# yoga_scheduler/admin_router.py
"""
admin_router.py
────────────────
Studio admin: class CRUD and cancellation, the enrolled view, attendee
lists, payment status, users and waiver texts. Every route needs a
profile with is_admin set.
"""

import logging
from flask import Blueprint, jsonify, request

from . import class_admin, waivers
from .auth import admin_required
from .errors import NotFound
from .services import get_services
from .utils import arg_flag, json_body

log = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _dump(items):
    return [i.to_dict() if i is not None else None for i in items]


# ─────────────────────────────────────────────────────────────
# Classes
# ─────────────────────────────────────────────────────────────
@admin_bp.get("/classes")
@admin_required
def list_classes():
    classes = get_services().user_store().list_classes()
    classes = class_admin.sort_classes(classes, request.args.get("sort", "date"), request.args.get("order", "asc"))
    return jsonify({"ok": True, "classes": _dump(classes)})


@admin_bp.post("/classes")
@admin_required
def create_classes():
    svc = get_services()
    created = class_admin.create_from_form(svc.user_store(), json_body(), svc.tz_name)
    return jsonify({"ok": True, "created": _dump(created)}), 201


@admin_bp.patch("/classes/<class_id>")
@admin_required
def update_class(class_id):
    svc = get_services()
    updated = class_admin.update_class(svc.user_store(), class_id, json_body(), svc.tz_name)
    return jsonify({"ok": True, "class": updated.to_dict()})


@admin_bp.post("/classes/<class_id>/cancel")
@admin_required
def cancel_class(class_id):
    cancelled = get_services().reconciler().cancel_class_and_notify(class_id)
    return jsonify({"ok": True, "class": cancelled.to_dict()})


@admin_bp.delete("/classes/<class_id>")
@admin_required
def delete_class(class_id):
    removed = class_admin.delete_class(get_services().user_store(), class_id)
    return jsonify({"ok": True, "removed": removed})


@admin_bp.post("/classes/<class_id>/duplicate")
@admin_required
def duplicate_class(class_id):
    yoga_class = get_services().user_store().get_class(class_id)
    if yoga_class is None:
        raise NotFound("Class not found", class_id=class_id)
    return jsonify({
        "ok": True,
        "form": class_admin.duplicate_class(yoga_class),
        "message": "Class data copied to form. Please set a new start time and save.",
    })


# ─────────────────────────────────────────────────────────────
# Enrolment
# ─────────────────────────────────────────────────────────────
@admin_bp.get("/enrolled")
@admin_required
def enrolled():
    svc = get_services()
    store = svc.user_store()
    classes = class_admin.enrolled_window(store.list_classes(), svc.clock(), show_all=arg_flag("show_all"))
    out = []
    for c in classes:
        row = c.to_dict()
        row["registration_count"] = len(store.list_registrations_for_class(c.id))
        out.append(row)
    return jsonify({"ok": True, "classes": out})


@admin_bp.get("/classes/<class_id>/registrations")
@admin_required
def class_registrations(class_id):
    regs = get_services().user_store().list_registrations_for_class(class_id)
    return jsonify({"ok": True, "registrations": _dump(regs)})


@admin_bp.patch("/registrations/<registration_id>/status")
@admin_required
def registration_status(registration_id):
    status = (json_body().get("status") or "").strip().lower()
    updated = get_services().reconciler().update_payment_status(registration_id, status)
    return jsonify({"ok": True, "registration": updated.to_dict()})


@admin_bp.get("/users")
@admin_required
def users():
    return jsonify({"ok": True, "users": _dump(get_services().user_store().list_profiles())})


# ─────────────────────────────────────────────────────────────
# Waivers
# ─────────────────────────────────────────────────────────────
@admin_bp.get("/waivers")
@admin_required
def list_waivers():
    return jsonify({"ok": True, "waivers": _dump(waivers.list_waivers(get_services().user_store()))})


@admin_bp.post("/waivers")
@admin_required
def create_waiver():
    data = json_body()
    created = waivers.create_waiver(
        get_services().user_store(),
        data.get("title"),
        data.get("content"),
        is_active=bool(data.get("is_active", True)),
    )
    return jsonify({"ok": True, "waiver": created.to_dict() if created else None}), 201


@admin_bp.patch("/waivers/<waiver_id>")
@admin_required
def update_waiver(waiver_id):
    updated = waivers.update_waiver(get_services().user_store(), waiver_id, json_body())
    return jsonify({"ok": True, "waiver": updated.to_dict()})


@admin_bp.delete("/waivers/<waiver_id>")
@admin_required
def delete_waiver(waiver_id):
    removed = waivers.delete_waiver(get_services().user_store(), waiver_id)
    return jsonify({"ok": True, "removed": removed})
