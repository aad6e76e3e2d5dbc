# yoga_scheduler/public_router.py
"""
public_router.py
────────────────
Class listing and the active waiver. Anyone can read these; a signed-in
user additionally sees their own booked / payment state per class.
"""

import logging
from flask import Blueprint, jsonify, request

from .auth import current_user
from .class_admin import filter_classes, instructors, sort_classes
from .errors import NotFound
from .reconciler import class_view_state, upcoming_classes
from .services import get_services
from .waivers import active_waiver

log = logging.getLogger(__name__)

public_bp = Blueprint("public", __name__)


@public_bp.get("/classes")
def list_classes():
    """
    Query params: instructor, price_range (low|medium|high|all),
    date_range (today|week|month|all), sort (date|name|instructor|price),
    order (asc|desc), scope (upcoming|all; default upcoming).
    """
    svc = get_services()
    user = current_user()
    store = svc.user_store()
    now = svc.clock()

    classes = store.list_classes()
    if request.args.get("scope", "upcoming") != "all":
        classes = upcoming_classes(classes, now, svc.tz_name)
    names = instructors(classes)
    classes = filter_classes(
        classes,
        instructor=request.args.get("instructor"),
        price_range=request.args.get("price_range"),
        date_range=request.args.get("date_range"),
        now=now,
        tz_name=svc.tz_name,
    )
    classes = sort_classes(classes, request.args.get("sort", "date"), request.args.get("order", "asc"))

    registrations = store.list_registrations_for_user(user.id) if user else []
    states = class_view_state(classes, registrations, now, svc.tz_name)
    return jsonify({
        "ok": True,
        "classes": [s.to_dict() for s in states],
        "instructors": names,
    })


@public_bp.get("/classes/<class_id>")
def get_class(class_id):
    svc = get_services()
    user = current_user()
    store = svc.user_store()
    yoga_class = store.get_class(class_id)
    if yoga_class is None:
        raise NotFound("Class not found", class_id=class_id)
    registrations = store.list_registrations_for_user(user.id) if user else []
    state = class_view_state([yoga_class], registrations, svc.clock(), svc.tz_name)[0]
    return jsonify({"ok": True, "class": state.to_dict()})


@public_bp.get("/waiver")
def get_waiver():
    waiver = active_waiver(get_services().user_store())
    if waiver is None:
        raise NotFound("No active waiver")
    return jsonify({"ok": True, "waiver": waiver.to_dict()})
