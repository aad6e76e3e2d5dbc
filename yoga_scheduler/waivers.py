# yoga_scheduler/waivers.py
"""
Liability waivers: the admin keeps versioned waiver texts, exactly one of
which is active; students agree to the active one and get a copy by email.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .errors import NotFound, ValidationError
from .logic_models import Profile, UserWaiver, Waiver
from .notifications import Notifier
from .store import Store

log = logging.getLogger(__name__)

_WAIVER_FIELDS = ("title", "content", "is_active")


def active_waiver(store: Store) -> Optional[Waiver]:
    return store.get_active_waiver()


def list_waivers(store: Store) -> List[Waiver]:
    return store.list_waivers()


def _deactivate_others(store: Store, keep_id: Optional[str]) -> None:
    for w in store.list_waivers():
        if w.is_active and w.id != keep_id:
            store.update_waiver(w.id, {"is_active": False})
            log.info(f"[WAIVER] deactivated v{w.version} ({w.id})")


def create_waiver(store: Store, title: str, content: str, is_active: bool = True) -> Optional[Waiver]:
    """New version = highest existing version + 1."""
    title, content = (title or "").strip(), (content or "").strip()
    if not title or not content:
        raise ValidationError("Waiver title and content are required")

    version = max((w.version for w in store.list_waivers()), default=0) + 1
    if is_active:
        _deactivate_others(store, None)
    created = store.create_waiver({"title": title, "content": content, "is_active": bool(is_active), "version": version})
    log.info(f"[WAIVER] created v{version} active={is_active}")
    return created


def update_waiver(store: Store, waiver_id: str, fields: Dict[str, Any]) -> Waiver:
    unknown = sorted(set(fields) - set(_WAIVER_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(unknown)}", fields=unknown)
    for name in ("title", "content"):
        if name in fields and not (fields[name] or "").strip():
            raise ValidationError(f"{name} cannot be empty", field=name)
    if fields.get("is_active"):
        _deactivate_others(store, waiver_id)

    updated = store.update_waiver(waiver_id, dict(fields))
    if updated is None:
        raise NotFound("Waiver not found", waiver_id=waiver_id)
    return updated


def delete_waiver(store: Store, waiver_id: str) -> bool:
    return store.delete_waiver(waiver_id)


def has_agreed(store: Store, user_id: str, waiver_id: str) -> bool:
    return any(uw.waiver_id == str(waiver_id) for uw in store.list_user_waivers(user_id))


def agree_to_waiver(store: Store, user: Profile, waiver: Waiver,
                    notifier: Optional[Notifier] = None) -> Optional[UserWaiver]:
    if has_agreed(store, user.id, waiver.id):
        log.info(f"[WAIVER] {user.id} already agreed to v{waiver.version}")
        return next(uw for uw in store.list_user_waivers(user.id) if uw.waiver_id == waiver.id)

    record = store.create_user_waiver({"user_id": user.id, "waiver_id": waiver.id})
    log.info(f"[WAIVER] {user.id} agreed to v{waiver.version} ({waiver.id})")
    if notifier:
        notifier.waiver_agreed(user, waiver)
    return record
