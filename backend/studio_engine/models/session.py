# backend/studio_engine/models/session.py
"""
Individual session models.

An individual session books one staff member and one room for a client
(``INDIVIDUAL``) or for nobody (``BLOCK``, a time reservation). Fees are
captured on the row when the session is priced so later price changes never
rewrite history.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import AttendanceStatus, SessionStatus, SessionType
from ..core.time_window import TimeWindow
from ..database import Base


class IndividualSession(Base):
    __tablename__ = "individual_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_type = Column(String(20), nullable=False, default=SessionType.INDIVIDUAL.value)
    staff_id = Column(Integer, ForeignKey("staff_members.id"), nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED.value)
    attendance_status = Column(String(20), nullable=True)
    checked_in_at = Column(DateTime, nullable=True)

    # Captured pricing
    service_type_id = Column(Integer, ForeignKey("service_types.id"), nullable=True)
    entry_fee = Column(Integer, nullable=True)
    trainer_fee = Column(Integer, nullable=True)
    currency = Column(String(3), nullable=True)
    price_source = Column(String(50), nullable=True)

    notes = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    client = relationship("Client")
    staff = relationship("StaffMember")
    room = relationship("Room")
    service_type = relationship("ServiceType")
    guests = relationship(
        "AdditionalGuest",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="AdditionalGuest.id",
    )

    __table_args__ = (
        Index("ix_individual_sessions_room_window", "room_id", "starts_at", "ends_at"),
        Index("ix_individual_sessions_staff_window", "staff_id", "starts_at", "ends_at"),
        CheckConstraint("ends_at > starts_at", name="ck_individual_sessions_window"),
        CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled', 'no_show')",
            name="ck_individual_sessions_status",
        ),
        CheckConstraint(
            "session_type IN ('INDIVIDUAL', 'BLOCK')", name="ck_individual_sessions_type"
        ),
    )

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.starts_at, self.ends_at)

    @property
    def is_block(self) -> bool:
        return self.session_type == SessionType.BLOCK.value

    @property
    def is_cancelled(self) -> bool:
        return self.status == SessionStatus.CANCELLED.value

    def cancel(self, at) -> None:
        self.status = SessionStatus.CANCELLED.value
        self.cancelled_at = at

    def mark_attendance(self, attended: bool, at) -> None:
        if attended:
            self.attendance_status = AttendanceStatus.ATTENDED.value
            self.status = SessionStatus.COMPLETED.value
            self.checked_in_at = at
        else:
            self.attendance_status = AttendanceStatus.NO_SHOW.value
            self.status = SessionStatus.NO_SHOW.value

    def __repr__(self) -> str:
        return (
            f"<IndividualSession {self.id} {self.session_type} room={self.room_id} "
            f"staff={self.staff_id} {self.starts_at}-{self.ends_at} {self.status}>"
        )


class AdditionalGuest(Base):
    """
    Extra participant on an individual session.

    Repeated assignments of the same client collapse into one row with a
    higher ``quantity``; fees are per head.
    """

    __tablename__ = "additional_guests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("individual_sessions.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    guest_index = Column(Integer, nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=1)
    entry_fee = Column(Integer, nullable=True)
    trainer_fee = Column(Integer, nullable=True)
    currency = Column(String(3), nullable=True)
    price_source = Column(String(50), nullable=True)
    attendance_status = Column(String(20), nullable=True)
    checked_in_at = Column(DateTime, nullable=True)

    session = relationship("IndividualSession", back_populates="guests")
    client = relationship("Client")

    __table_args__ = (
        UniqueConstraint("session_id", "client_id", "guest_index", name="uq_additional_guests_slot"),
        CheckConstraint("quantity >= 1", name="ck_additional_guests_quantity"),
    )
