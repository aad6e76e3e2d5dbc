# yoga_scheduler/services.py
"""
Collaborators built once by create_app and kept on
app.extensions["yoga_scheduler"]; routes reach them through get_services().
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from flask import current_app, session

from .logic_models import utcnow
from .notifications import Notifier
from .reconciler import BookingReconciler
from .store import Store

EXTENSION_KEY = "yoga_scheduler"


@dataclass
class Services:
    store: Store
    auth: Any
    notifier: Optional[Notifier] = None
    tz_name: Optional[str] = None
    clock: Callable[[], datetime] = field(default=utcnow)

    def user_store(self) -> Store:
        """The store as the signed-in user, so row-level security applies."""
        token = session.get("access_token")
        with_token = getattr(self.store, "with_token", None)
        if token and with_token is not None:
            return with_token(token)
        return self.store

    def reconciler(self) -> BookingReconciler:
        return BookingReconciler(self.user_store(), notifier=self.notifier, clock=self.clock, tz_name=self.tz_name)


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
