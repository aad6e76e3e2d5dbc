# yoga_scheduler/logic_models.py
from __future__ import annotations
import math
from dataclasses import dataclass, asdict, fields
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Literal

from .errors import ValidationError
from .settings import CLASS_DURATION

PaymentStatus = Literal["pending", "completed", "failed"]

# Editable on the admin form; everything else is derived or owned by storage
CLASS_FIELDS = ("name", "brief_description", "full_description", "instructor", "start_time", "price", "weekly_repeat")


# --- Timestamp helpers ---

def parse_ts(value: Any) -> Optional[datetime]:
    """
    Accept a datetime or an ISO-8601 string ('...Z' allowed).
    Naive values are taken as UTC, which is how storage hands them back.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value).strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Generator inputs / outputs ---

@dataclass(frozen=True)
class ClassTemplate:
    name: str
    brief_description: str
    full_description: str
    instructor: str
    price: float

    def validate(self) -> None:
        for name in ("name", "brief_description", "full_description", "instructor"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"{name} is required", field=name)
        if self.price is None or not math.isfinite(self.price):
            raise ValidationError("price must be a finite number", field="price")
        if self.price < 0:
            raise ValidationError("price cannot be negative", field="price")


@dataclass(frozen=True)
class RecurrenceSpec:
    start_date: datetime
    weeks: int
    day_of_week: int  # 0 = Sunday … 6 = Saturday
    time: str         # "HH:MM"


@dataclass(frozen=True)
class ClassDraft:
    name: str
    brief_description: str
    full_description: str
    instructor: str
    price: float
    start_time: datetime
    weekly_repeat: int = 0

    @property
    def end_time(self) -> datetime:
        return self.start_time + CLASS_DURATION

    def to_row(self) -> Dict[str, Any]:
        row = asdict(self)
        row["start_time"] = iso(self.start_time)
        row["end_time"] = iso(self.end_time)
        return row


# --- Stored entities ---

@dataclass
class YogaClass:
    id: str
    name: str
    brief_description: str
    full_description: str
    instructor: str
    start_time: datetime
    end_time: datetime
    price: float
    weekly_repeat: int = 0
    is_cancelled: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "YogaClass":
        start = parse_ts(row["start_time"])
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            brief_description=row.get("brief_description") or "",
            full_description=row.get("full_description") or "",
            instructor=row.get("instructor") or "",
            start_time=start,
            end_time=parse_ts(row.get("end_time")) or start + CLASS_DURATION,
            price=float(row.get("price") or 0),
            weekly_repeat=int(row.get("weekly_repeat") or 0),
            is_cancelled=bool(row.get("is_cancelled")),
            created_at=parse_ts(row.get("created_at")),
            updated_at=parse_ts(row.get("updated_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        for k in ("start_time", "end_time", "created_at", "updated_at"):
            out[k] = iso(getattr(self, k))
        return out


@dataclass
class Profile:
    id: str
    email: str = ""
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    is_admin: bool = False

    @property
    def display_name(self) -> str:
        return self.full_name or (self.email.split("@")[0] if self.email else "Valued Customer")

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Profile":
        return cls(
            id=str(row["id"]),
            email=row.get("email") or "",
            full_name=row.get("full_name") or row.get("username"),
            avatar_url=row.get("avatar_url"),
            phone=row.get("phone"),
            is_admin=bool(row.get("is_admin")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Registration:
    id: str
    class_id: str
    user_id: str
    payment_amount: float
    payment_status: PaymentStatus = "completed"
    payment_link_clicked: bool = False
    payment_method: Optional[str] = None
    external_payment_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    profile: Optional[Profile] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Registration":
        profile_row = row.get("profiles") or row.get("profile")
        return cls(
            id=str(row["id"]),
            class_id=str(row["class_id"]),
            user_id=str(row["user_id"]),
            payment_amount=float(row.get("payment_amount") or 0),
            payment_status=row.get("payment_status") or "completed",
            payment_link_clicked=bool(row.get("payment_link_clicked")),
            payment_method=row.get("payment_method"),
            external_payment_id=row.get("external_payment_id") or row.get("square_payment_id"),
            created_at=parse_ts(row.get("created_at")),
            updated_at=parse_ts(row.get("updated_at")),
            profile=Profile.from_row(profile_row) if profile_row else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "profile"}
        out["created_at"] = iso(self.created_at)
        out["updated_at"] = iso(self.updated_at)
        out["profile"] = self.profile.to_dict() if self.profile else None
        return out


@dataclass
class Waiver:
    id: str
    title: str
    content: str
    is_active: bool = False
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Waiver":
        return cls(
            id=str(row["id"]),
            title=row.get("title") or "",
            content=row.get("content") or "",
            is_active=bool(row.get("is_active")),
            version=int(row.get("version") or 1),
            created_at=parse_ts(row.get("created_at")),
            updated_at=parse_ts(row.get("updated_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["created_at"] = iso(self.created_at)
        out["updated_at"] = iso(self.updated_at)
        return out


@dataclass
class UserWaiver:
    id: str
    user_id: str
    waiver_id: str
    agreed_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "UserWaiver":
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            waiver_id=str(row["waiver_id"]),
            agreed_at=parse_ts(row.get("agreed_at")),
        )


# --- View state ---

@dataclass
class ClassViewState:
    yoga_class: YogaClass
    booked: bool = False
    registration_id: Optional[str] = None
    payment_clicked: bool = False
    payment_method: Optional[str] = None
    registerable: bool = True

    def to_dict(self) -> Dict[str, Any]:
        out = self.yoga_class.to_dict()
        out.update({
            "booked": self.booked,
            "registration_id": self.registration_id,
            "payment_clicked": self.payment_clicked,
            "payment_method": self.payment_method,
            "registerable": self.registerable,
        })
        return out
