# yoga_scheduler/models.py
import uuid

from sqlalchemy import Column, String, Text, Integer, Numeric, Boolean, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String, index=True)
    full_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())


class YogaClass(Base):
    __tablename__ = "yoga_classes"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    brief_description = Column(String, nullable=False, default="")
    full_description = Column(Text, nullable=False, default="")
    instructor = Column(String, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    weekly_repeat = Column(Integer, nullable=False, default=0)
    is_cancelled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))

    registrations = relationship("ClassRegistration", back_populates="yoga_class", cascade="all, delete-orphan")


class ClassRegistration(Base):
    __tablename__ = "class_registrations"
    __table_args__ = (UniqueConstraint("class_id", "user_id", name="uq_registration_class_user"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    class_id = Column(String(36), ForeignKey("yoga_classes.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    payment_amount = Column(Numeric(10, 2), nullable=False, default=0)
    payment_status = Column(String, nullable=False, default="completed")  # pending | completed | failed
    payment_link_clicked = Column(Boolean, nullable=False, default=False)
    payment_method = Column(String, nullable=True)
    external_payment_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))

    yoga_class = relationship("YogaClass", back_populates="registrations")


class Waiver(Base):
    __tablename__ = "waivers"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))


class UserWaiver(Base):
    __tablename__ = "user_waivers"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    waiver_id = Column(String(36), ForeignKey("waivers.id", ondelete="CASCADE"), nullable=False)
    agreed_at = Column(DateTime(timezone=True))
