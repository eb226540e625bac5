# backend/studio_engine/models/settlement.py
"""
Trainer settlement models.

A settlement is an append-only snapshot of what a trainer earned over a
period. Status moves forward (draft, finalized, paid) without touching the
totals or the items.
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
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.constants import DEFAULT_CURRENCY
from ..core.enums import SettlementStatus
from ..database import Base


class Settlement(Base):
    __tablename__ = "settlements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trainer_id = Column(Integer, ForeignKey("staff_members.id"), nullable=False)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    total_trainer_fee = Column(Integer, nullable=False, default=0)
    total_entry_fee = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    status = Column(String(20), nullable=False, default=SettlementStatus.DRAFT.value)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    trainer = relationship("StaffMember")
    items = relationship(
        "SettlementItem",
        back_populates="settlement",
        cascade="all, delete-orphan",
        order_by="SettlementItem.id",
    )

    __table_args__ = (
        Index("ix_settlements_trainer_period", "trainer_id", "period_start", "period_end"),
        CheckConstraint(
            "status IN ('draft', 'finalized', 'paid')", name="ck_settlements_status"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Settlement {self.id} trainer={self.trainer_id} "
            f"{self.period_start}-{self.period_end} {self.status}>"
        )


class SettlementItem(Base):
    __tablename__ = "settlement_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    settlement_id = Column(Integer, ForeignKey("settlements.id"), nullable=False, index=True)
    source_type = Column(String(20), nullable=False)
    session_id = Column(Integer, ForeignKey("individual_sessions.id"), nullable=True)
    class_occurrence_id = Column(Integer, ForeignKey("class_occurrences.id"), nullable=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    registration_id = Column(Integer, ForeignKey("class_registrations.id"), nullable=True)
    additional_guest_id = Column(Integer, ForeignKey("additional_guests.id"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    entry_fee = Column(Integer, nullable=False, default=0)
    trainer_fee = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    # Attendance status of the billed participant
    status = Column(String(20), nullable=False)
    price_source = Column(String(50), nullable=True)

    settlement = relationship("Settlement", back_populates="items")

    __table_args__ = (
        CheckConstraint(
            "source_type IN ('individual', 'class')", name="ck_settlement_items_source_type"
        ),
    )
