# backend/studio_engine/models/client.py
"""
Client and pass models.

A client pays for a class either with a credit from an active pass or by
accruing an unpaid balance in HUF. The technical guest is an ordinary client
row flagged with ``is_technical_guest`` that stands in for anonymous walk-ins.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import PassStatus
from ..database import Base


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    unpaid_balance = Column(Integer, nullable=False, default=0)
    is_technical_guest = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())

    passes = relationship("Pass", back_populates="client", order_by="Pass.valid_until")

    __table_args__ = (CheckConstraint("unpaid_balance >= 0", name="ck_clients_unpaid_balance"),)

    def __repr__(self) -> str:
        return f"<Client {self.id} {self.full_name!r} balance={self.unpaid_balance}>"


class Pass(Base):
    """Prepaid bundle of class credits."""

    __tablename__ = "passes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    pass_type = Column(String(100), nullable=False, default="standard")
    total_credits = Column(Integer, nullable=False)
    credits_left = Column(Integer, nullable=False)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default=PassStatus.ACTIVE.value)
    created_at = Column(DateTime, server_default=func.now())

    client = relationship("Client", back_populates="passes")

    __table_args__ = (
        Index("ix_passes_client_status_valid_until", "client_id", "status", "valid_until"),
        CheckConstraint("credits_left >= 0", name="ck_passes_credits_left"),
        CheckConstraint(
            "status IN ('active', 'expired', 'depleted', 'suspended')",
            name="ck_passes_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Pass {self.id} client={self.client_id} credits={self.credits_left}/{self.total_credits}>"
