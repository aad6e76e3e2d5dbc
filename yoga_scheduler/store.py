"""
store.py
────────
Storage collaborator contract. Two implementations ship with the service:

 • RestStore → hosted PostgREST tables (rest_store.py)
 • SqlStore  → local database through SQLAlchemy (sql_store.py)

Stores are constructed by the app factory and passed in; nothing holds a
module-level client.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .logic_models import Profile, Registration, UserWaiver, Waiver, YogaClass

# Returned by create_registration when storage does not echo the new row
PLACEHOLDER_ID = "pending"


class Store(ABC):

    # ── Classes ──────────────────────────────────────────
    @abstractmethod
    def list_classes(self) -> List[YogaClass]:
        """All classes, ascending by start_time."""

    @abstractmethod
    def get_class(self, class_id: str) -> Optional[YogaClass]:
        ...

    @abstractmethod
    def create_class(self, row: Dict[str, Any]) -> Optional[YogaClass]:
        ...

    @abstractmethod
    def update_class(self, class_id: str, fields: Dict[str, Any]) -> Optional[YogaClass]:
        ...

    @abstractmethod
    def delete_class(self, class_id: str) -> bool:
        ...

    def cancel_class(self, class_id: str) -> Optional[YogaClass]:
        return self.update_class(class_id, {"is_cancelled": True})

    # ── Registrations ────────────────────────────────────
    @abstractmethod
    def list_registrations_for_user(self, user_id: str) -> List[Registration]:
        """Newest first."""

    @abstractmethod
    def list_registrations_for_class(self, class_id: str) -> List[Registration]:
        """Newest first, profiles embedded where available."""

    @abstractmethod
    def get_registration(self, registration_id: str) -> Optional[Registration]:
        ...

    @abstractmethod
    def create_registration(self, row: Dict[str, Any]) -> Optional[Registration]:
        """Raises AlreadyRegistered when (class_id, user_id) already exists."""

    @abstractmethod
    def update_registration(self, registration_id: str, fields: Dict[str, Any]) -> Optional[Registration]:
        ...

    @abstractmethod
    def delete_registration(self, registration_id: str) -> bool:
        """Deleting a missing row is not an error."""

    # ── Profiles ─────────────────────────────────────────
    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[Profile]:
        ...

    @abstractmethod
    def list_profiles(self, user_ids: Optional[List[str]] = None) -> List[Profile]:
        ...

    @abstractmethod
    def upsert_profile(self, row: Dict[str, Any]) -> Optional[Profile]:
        ...

    # ── Waivers ──────────────────────────────────────────
    @abstractmethod
    def list_waivers(self) -> List[Waiver]:
        """Newest first."""

    @abstractmethod
    def get_active_waiver(self) -> Optional[Waiver]:
        ...

    @abstractmethod
    def create_waiver(self, row: Dict[str, Any]) -> Optional[Waiver]:
        ...

    @abstractmethod
    def update_waiver(self, waiver_id: str, fields: Dict[str, Any]) -> Optional[Waiver]:
        ...

    @abstractmethod
    def delete_waiver(self, waiver_id: str) -> bool:
        ...

    @abstractmethod
    def create_user_waiver(self, row: Dict[str, Any]) -> Optional[UserWaiver]:
        ...

    @abstractmethod
    def list_user_waivers(self, user_id: str) -> List[UserWaiver]:
        ...
