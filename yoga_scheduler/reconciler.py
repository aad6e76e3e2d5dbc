# yoga_scheduler/reconciler.py
"""
Registration / booking state.

Pure lookups derive per-class view state from the class list and one
user's registrations; BookingReconciler shapes the writes for register,
unregister, payment-link clicks and class cancellation and interprets
what storage hands back.

Per (user, class):  NotRegistered → Registered(completed, clicked=False)
                    → Registered(*, clicked=True) → NotRegistered
Per class:          Active → Cancelled (one way)
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Set

from .errors import AlreadyRegistered, NotFound, StorageError, ValidationError
from .formatters import local_zone
from .logic_models import ClassViewState, Profile, Registration, YogaClass, utcnow
from .notifications import Notifier
from .settings import DEFAULT_PAYMENT_STATUS, PAYMENT_METHODS, PAYMENT_STATUSES
from .store import PLACEHOLDER_ID, Store
from .utils import safe_execute

log = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


# ──────────────────────────────────────────────────────────────────────────────
# Derived lookups
# ──────────────────────────────────────────────────────────────────────────────

def booked_class_ids(registrations: Iterable[Registration]) -> Set[str]:
    return {r.class_id for r in registrations}


def _registration_for_class(registrations: Iterable[Registration], class_id: str) -> Optional[Registration]:
    matches = [r for r in registrations if r.class_id == str(class_id)]
    if not matches:
        return None
    chosen = max(matches, key=lambda r: r.created_at or _EPOCH)
    if len(matches) > 1:
        log.warning(
            f"[BOOKING] {len(matches)} registrations for class {class_id} "
            f"user {chosen.user_id}: {[r.id for r in matches]}; using newest {chosen.id}"
        )
    return chosen


def registration_id_for_class(registrations: Iterable[Registration], class_id: str) -> Optional[str]:
    """Registration id for the class, newest one if storage returned duplicates."""
    reg = _registration_for_class(registrations, class_id)
    return reg.id if reg else None


def payment_clicked(registrations: Iterable[Registration], class_id: str) -> bool:
    reg = _registration_for_class(registrations, class_id)
    return bool(reg and reg.payment_link_clicked)


def start_of_day(now: datetime, tz_name: Optional[str] = None) -> datetime:
    """Midnight of `now`'s local calendar day (TZ_NAME when given)."""
    if now.tzinfo is None:
        now = now.astimezone()
    local = now.astimezone(local_zone(tz_name)) if tz_name else now
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def upcoming_classes(classes: Iterable[YogaClass], now: datetime, tz_name: Optional[str] = None) -> List[YogaClass]:
    """Classes starting today (local day, not a rolling 24h) or later, soonest first."""
    cutoff = start_of_day(now, tz_name)
    return sorted((c for c in classes if c.start_time >= cutoff), key=lambda c: c.start_time)


def registerable_classes(classes: Iterable[YogaClass], now: datetime, tz_name: Optional[str] = None) -> List[YogaClass]:
    return [c for c in upcoming_classes(classes, now, tz_name) if not c.is_cancelled]


def class_view_state(
    classes: Iterable[YogaClass],
    registrations: List[Registration],
    now: datetime,
    tz_name: Optional[str] = None,
) -> List[ClassViewState]:
    classes = list(classes)
    open_ids = {c.id for c in registerable_classes(classes, now, tz_name)}
    out = []
    for c in classes:
        reg = _registration_for_class(registrations, c.id)
        out.append(ClassViewState(
            yoga_class=c,
            booked=reg is not None,
            registration_id=reg.id if reg else None,
            payment_clicked=bool(reg and reg.payment_link_clicked),
            payment_method=reg.payment_method if reg else None,
            registerable=c.id in open_ids,
        ))
    return out


# ──────────────────────────────────────────────────────────────────────────────
# Mutations
# ──────────────────────────────────────────────────────────────────────────────

class BookingReconciler:
    def __init__(
        self,
        store: Store,
        notifier: Optional[Notifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
        tz_name: Optional[str] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock or utcnow
        self.tz_name = tz_name

    # ── Reads ───────────────────────────────────────────
    def _get_class(self, class_id: str) -> YogaClass:
        yoga_class = self.store.get_class(class_id)
        if yoga_class is None:
            raise NotFound("Class not found", class_id=class_id)
        return yoga_class

    def _owned_registration(self, registration_id: str, user_id: Optional[str]) -> Optional[Registration]:
        reg = self.store.get_registration(registration_id)
        if reg is not None and user_id is not None and reg.user_id != str(user_id):
            # Someone else's row looks the same as a missing one
            raise NotFound("Registration not found", registration_id=registration_id)
        return reg

    # ── Register ────────────────────────────────────────
    def register(
        self,
        user_id: str,
        class_id: str,
        amount: Optional[float] = None,
        *,
        external_payment_id: Optional[str] = None,
        profile: Optional[Profile] = None,
    ) -> str:
        """
        Returns the new registration id, or PLACEHOLDER_ID when storage
        neither echoed the row nor shows it on read-back. amount defaults
        to the class price.
        The duplicate pre-check runs on a possibly stale read; the storage
        unique constraint is what actually settles a double submit.
        """
        yoga_class = self._get_class(class_id)
        if amount is None:
            amount = yoga_class.price
        if not math.isfinite(amount) or amount < 0:
            raise ValidationError("payment amount must be a finite, non-negative number", field="payment_amount")
        if yoga_class.is_cancelled:
            raise ValidationError("This class has been cancelled.", class_id=class_id)
        if not registerable_classes([yoga_class], self.clock(), self.tz_name):
            raise ValidationError("This class has already taken place.", class_id=class_id)

        existing = self.store.list_registrations_for_user(user_id)
        if registration_id_for_class(existing, class_id):
            raise AlreadyRegistered("Already registered for this class", class_id=class_id, user_id=user_id)

        created = self.store.create_registration({
            "class_id": str(class_id),
            "user_id": str(user_id),
            "payment_amount": amount,
            "payment_status": DEFAULT_PAYMENT_STATUS,
            "payment_link_clicked": False,
            "external_payment_id": external_payment_id,
        })

        if created is not None:
            reg_id = created.id
        else:
            log.info(f"[BOOKING] create echoed nothing for user {user_id} class {class_id}; reading back")
            reg_id = registration_id_for_class(self.store.list_registrations_for_user(user_id), class_id) or PLACEHOLDER_ID

        log.info(f"[BOOKING] user {user_id} registered for class {class_id} ({yoga_class.name}) → {reg_id}")

        if self.notifier:
            who = profile or safe_execute(self.store.get_profile, user_id, label="registration_profile")
            if who:
                safe_execute(self.notifier.registration_confirmed, who, yoga_class, amount, label="registration_notice")
        return reg_id

    # ── Unregister ──────────────────────────────────────
    def unregister(self, registration_id: str, *, user_id: Optional[str] = None) -> bool:
        """
        Idempotent: an id that no longer exists counts as success.
        With user_id (the normal self-service flow) the row must belong to
        that user and its class must not be cancelled.
        Returns True when a row was actually removed.
        """
        if user_id is not None:
            reg = self._owned_registration(registration_id, user_id)
            if reg is None:
                log.info(f"[BOOKING] unregister {registration_id}: already gone")
                return False
            yoga_class = self.store.get_class(reg.class_id)
            if yoga_class is not None and yoga_class.is_cancelled:
                raise ValidationError("This class has been cancelled; contact the studio.", class_id=reg.class_id)

        try:
            removed = self.store.delete_registration(registration_id)
        except StorageError as e:
            if e.status == 404:
                log.info(f"[BOOKING] unregister {registration_id}: storage says not found; treating as done")
                return False
            raise
        log.info(f"[BOOKING] unregister {registration_id} removed={removed}")
        return removed

    def unregister_class(self, user_id: str, class_id: str) -> bool:
        """Unregister by class, the way the class list's button does it."""
        reg_id = registration_id_for_class(self.store.list_registrations_for_user(user_id), class_id)
        if reg_id is None:
            return False
        return self.unregister(reg_id, user_id=user_id)

    # ── Payment bookkeeping ─────────────────────────────
    def mark_payment_link_clicked(self, registration_id: str, method: str, *, user_id: Optional[str] = None) -> Registration:
        """Advisory only: records the click, leaves payment_status alone. Last click wins."""
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"Unknown payment method: {method}", method=method)
        if self._owned_registration(registration_id, user_id) is None:
            raise NotFound("Registration not found", registration_id=registration_id)

        updated = self.store.update_registration(registration_id, {
            "payment_link_clicked": True,
            "payment_method": method,
        })
        if updated is None:
            raise NotFound("Registration not found", registration_id=registration_id)
        log.info(f"[BOOKING] registration {registration_id} payment link clicked via {method}")
        return updated

    def update_payment_status(self, registration_id: str, status: str) -> Registration:
        if status not in PAYMENT_STATUSES:
            raise ValidationError(f"Invalid payment status: {status}", status=status)
        updated = self.store.update_registration(registration_id, {"payment_status": status})
        if updated is None:
            raise NotFound("Registration not found", registration_id=registration_id)
        log.info(f"[ADMIN] registration {registration_id} payment_status → {status}")
        return updated

    # ── Class cancellation ──────────────────────────────
    def cancel_class_and_notify(self, class_id: str) -> YogaClass:
        """
        Flags the class cancelled and tells its registrants. Registrations
        are kept so refunds and follow-ups can still find them.
        """
        yoga_class = self._get_class(class_id)
        if yoga_class.is_cancelled:
            log.info(f"[ADMIN] class {class_id} already cancelled; nothing to do")
            return yoga_class

        try:
            registrations = self.store.list_registrations_for_class(class_id)
        except StorageError as e:
            log.error(f"[ADMIN] could not load registrants for class {class_id}: {e.message}")
            registrations = []

        updated = self.store.cancel_class(class_id) or self.store.get_class(class_id)
        if updated is None:
            raise NotFound("Class not found", class_id=class_id)

        log.info(f"[ADMIN] class {class_id} ({updated.name}) cancelled; {len(registrations)} registrants")
        if self.notifier and registrations:
            sent = safe_execute(self.notifier.class_cancelled, updated, registrations, label="cancellation_notices")
            log.info(f"[ADMIN] cancellation notices sent={sent}/{len(registrations)}")
        return updated
