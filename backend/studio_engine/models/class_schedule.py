# backend/studio_engine/models/class_schedule.py
"""
Group class models.

ClassTemplate describes a recurring class; ClassOccurrence is one dated
instance holding capacity and, once priced, the captured fees;
ClassRegistration is one client's claim on an occurrence.
"""

from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.constants import DEFAULT_CREDITS_REQUIRED, UNTITLED_CLASS_LABEL
from ..core.enums import OccurrenceStatus, PaymentStatus, RegistrationStatus
from ..core.time_window import TimeWindow
from ..database import Base

_ACTIVE_REGISTRATION_CLAUSE = "status IN ('booked', 'waitlist')"


class ClassTemplate(Base):
    __tablename__ = "class_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    weekday = Column(Integer, nullable=True)
    start_time = Column(Time, nullable=True)
    duration_minutes = Column(Integer, nullable=False, default=60)
    default_capacity = Column(Integer, nullable=False, default=10)
    credits_required = Column(Integer, nullable=False, default=DEFAULT_CREDITS_REQUIRED)
    base_price_huf = Column(Integer, nullable=True)
    default_room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)
    default_trainer_id = Column(Integer, ForeignKey("staff_members.id"), nullable=True)
    status = Column(String(20), nullable=False, default="active")

    occurrences = relationship("ClassOccurrence", back_populates="template")

    __table_args__ = (
        CheckConstraint("weekday IS NULL OR weekday BETWEEN 0 AND 6", name="ck_class_templates_weekday"),
        CheckConstraint("status IN ('active', 'inactive')", name="ck_class_templates_status"),
    )

    def __repr__(self) -> str:
        return f"<ClassTemplate {self.id} {self.title!r}>"


class ClassOccurrence(Base):
    __tablename__ = "class_occurrences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    template_id = Column(Integer, ForeignKey("class_templates.id"), nullable=True)
    title = Column(String(255), nullable=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    trainer_id = Column(Integer, ForeignKey("staff_members.id"), nullable=False)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)
    capacity = Column(Integer, nullable=False)
    credits_required = Column(Integer, nullable=True)

    # Captured pricing, filled when the occurrence is priced for settlement
    entry_fee = Column(Integer, nullable=True)
    trainer_fee = Column(Integer, nullable=True)
    currency = Column(String(3), nullable=True)
    price_source = Column(String(50), nullable=True)

    status = Column(String(20), nullable=False, default=OccurrenceStatus.SCHEDULED.value)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    template = relationship("ClassTemplate", back_populates="occurrences")
    room = relationship("Room")
    trainer = relationship("StaffMember")
    registrations = relationship(
        "ClassRegistration", back_populates="occurrence", order_by="ClassRegistration.id"
    )

    __table_args__ = (
        Index("ix_class_occurrences_room_window", "room_id", "starts_at", "ends_at"),
        Index("ix_class_occurrences_trainer_window", "trainer_id", "starts_at", "ends_at"),
        CheckConstraint("ends_at > starts_at", name="ck_class_occurrences_window"),
        CheckConstraint("capacity >= 0", name="ck_class_occurrences_capacity"),
        CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled')",
            name="ck_class_occurrences_status",
        ),
    )

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.starts_at, self.ends_at)

    @property
    def display_title(self) -> str:
        if self.title:
            return self.title
        if self.template is not None:
            return self.template.title
        return UNTITLED_CLASS_LABEL

    @property
    def is_cancelled(self) -> bool:
        return self.status == OccurrenceStatus.CANCELLED.value

    @property
    def effective_credits_required(self) -> int:
        if self.credits_required is not None:
            return self.credits_required
        if self.template is not None and self.template.credits_required is not None:
            return self.template.credits_required
        return DEFAULT_CREDITS_REQUIRED

    @property
    def base_price_huf(self) -> Optional[int]:
        return self.template.base_price_huf if self.template is not None else None

    def __repr__(self) -> str:
        return (
            f"<ClassOccurrence {self.id} room={self.room_id} trainer={self.trainer_id} "
            f"{self.starts_at}-{self.ends_at} cap={self.capacity} {self.status}>"
        )


class ClassRegistration(Base):
    __tablename__ = "class_registrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    occurrence_id = Column(Integer, ForeignKey("class_occurrences.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    status = Column(String(20), nullable=False, default=RegistrationStatus.BOOKED.value)
    booked_at = Column(DateTime, nullable=False)
    cancelled_at = Column(DateTime, nullable=True)
    checked_in_at = Column(DateTime, nullable=True)
    credits_used = Column(Integer, nullable=False, default=0)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    # HUF added to the client's unpaid balance for this registration
    amount_charged = Column(Integer, nullable=False, default=0)
    pass_id = Column(Integer, ForeignKey("passes.id"), nullable=True)

    occurrence = relationship("ClassOccurrence", back_populates="registrations")
    client = relationship("Client")
    pass_ = relationship("Pass")

    __table_args__ = (
        Index("ix_class_registrations_lookup", "occurrence_id", "client_id", "status"),
        Index(
            "uq_class_registrations_active",
            "occurrence_id",
            "client_id",
            unique=True,
            sqlite_where=text(_ACTIVE_REGISTRATION_CLAUSE),
            postgresql_where=text(_ACTIVE_REGISTRATION_CLAUSE),
        ),
        CheckConstraint(
            "status IN ('booked', 'waitlist', 'cancelled', 'no_show', 'attended')",
            name="ck_class_registrations_status",
        ),
        CheckConstraint(
            "payment_status IN ('paid', 'unpaid', 'pending', 'comped')",
            name="ck_class_registrations_payment_status",
        ),
    )

    @property
    def registration_status(self) -> RegistrationStatus:
        return RegistrationStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.registration_status in RegistrationStatus.active()

    def __repr__(self) -> str:
        return (
            f"<ClassRegistration {self.id} occ={self.occurrence_id} client={self.client_id} "
            f"{self.status}/{self.payment_status}>"
        )
