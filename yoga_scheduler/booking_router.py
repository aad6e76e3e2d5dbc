# yoga_scheduler/booking_router.py
"""
booking_router.py
─────────────────
Student actions: register / unregister, payment-link clicks, own
registrations and waiver agreement.
"""

import logging
import math
from flask import Blueprint, current_app, jsonify, redirect, request

from .auth import current_user, login_required
from .errors import NotFound, ValidationError
from .payment_links import destination_url, payment_links, verify_payment_link
from .services import get_services
from .store import PLACEHOLDER_ID
from .utils import json_body
from .waivers import active_waiver, agree_to_waiver

log = logging.getLogger(__name__)

booking_bp = Blueprint("booking", __name__)


def _amount(value):
    if value is None or value == "":
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError("payment_amount must be a number", field="payment_amount")
    if not math.isfinite(amount):
        raise ValidationError("payment_amount must be a finite number", field="payment_amount")
    return amount


@booking_bp.post("/classes/<class_id>/register")
@login_required
def register(class_id):
    data = json_body()
    user = current_user()
    reg_id = get_services().reconciler().register(
        user.id,
        class_id,
        _amount(data.get("payment_amount")),
        external_payment_id=data.get("external_payment_id"),
        profile=user,
    )
    links = {}
    if reg_id != PLACEHOLDER_ID:
        links = payment_links(current_app.config["SECRET_KEY"], reg_id, request.url_root)
    return jsonify({"ok": True, "registration_id": reg_id, "payment_links": links}), 201


@booking_bp.delete("/registrations/<registration_id>")
@login_required
def unregister(registration_id):
    removed = get_services().reconciler().unregister(registration_id, user_id=current_user().id)
    return jsonify({"ok": True, "removed": removed})


@booking_bp.delete("/classes/<class_id>/register")
@login_required
def unregister_class(class_id):
    removed = get_services().reconciler().unregister_class(current_user().id, class_id)
    return jsonify({"ok": True, "removed": removed})


@booking_bp.post("/registrations/<registration_id>/payment-click")
@login_required
def payment_click(registration_id):
    method = (json_body().get("method") or "").strip().lower()
    updated = get_services().reconciler().mark_payment_link_clicked(
        registration_id, method, user_id=current_user().id,
    )
    return jsonify({"ok": True, "registration": updated.to_dict()})


@booking_bp.get("/me/registrations")
@login_required
def my_registrations():
    svc = get_services()
    store = svc.user_store()
    regs = store.list_registrations_for_user(current_user().id)
    classes = {c.id: c for c in store.list_classes()}
    out = []
    for r in regs:
        row = r.to_dict()
        yoga_class = classes.get(r.class_id)
        row["class"] = yoga_class.to_dict() if yoga_class else None
        out.append(row)
    return jsonify({"ok": True, "registrations": out})


@booking_bp.get("/pay/<token>")
def pay(token):
    """Signed link from the registration screen: record the click, then go to the payment page."""
    data = verify_payment_link(
        current_app.config["SECRET_KEY"], token, current_app.config["PAYMENT_LINK_MAX_AGE"],
    )
    updated = get_services().reconciler().mark_payment_link_clicked(data["registration"], data["method"])
    log.info(f"[PAY] redirecting registration {updated.id} to {data['method']}")
    return redirect(destination_url(data["method"], updated), code=302)


@booking_bp.post("/waiver/agree")
@login_required
def agree_waiver():
    svc = get_services()
    store = svc.user_store()
    waiver_id = json_body().get("waiver_id")
    if waiver_id:
        waiver = next((w for w in store.list_waivers() if w.id == str(waiver_id)), None)
    else:
        waiver = active_waiver(store)
    if waiver is None:
        raise NotFound("Waiver not found", waiver_id=waiver_id)
    record = agree_to_waiver(store, current_user(), waiver, svc.notifier)
    return jsonify({
        "ok": True,
        "waiver_id": waiver.id,
        "agreed_at": record.agreed_at.isoformat() if record and record.agreed_at else None,
    }), 201
