# backend/studio_engine/models/service_type.py
"""
Individual-session pricing models.

A service type carries default fees; client and staff price codes override
them for a validity period. Rows are never edited in place when prices change:
a new row with a later ``valid_from`` supersedes the old one.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from ..core.constants import DEFAULT_CURRENCY
from ..database import Base


class ServiceType(Base):
    __tablename__ = "service_types"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    default_entry_fee = Column(Integer, nullable=False, default=0)
    default_trainer_fee = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<ServiceType {self.id} {self.code}>"


class _PriceCodeMixin:
    price_code = Column(String(50), nullable=True)
    entry_fee = Column(Integer, nullable=False, default=0)
    trainer_fee = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class ClientPriceCode(_PriceCodeMixin, Base):
    __tablename__ = "client_price_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    service_type_id = Column(Integer, ForeignKey("service_types.id"), nullable=False)

    service_type = relationship("ServiceType")

    __table_args__ = (
        Index("ix_client_price_codes_lookup", "client_id", "service_type_id", "is_active"),
        Index("ix_client_price_codes_validity", "valid_from", "valid_until"),
    )


class StaffPriceCode(_PriceCodeMixin, Base):
    __tablename__ = "staff_price_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    staff_id = Column(Integer, ForeignKey("staff_members.id"), nullable=False)
    service_type_id = Column(Integer, ForeignKey("service_types.id"), nullable=False)

    service_type = relationship("ServiceType")

    __table_args__ = (
        Index("ix_staff_price_codes_lookup", "staff_id", "service_type_id", "is_active"),
        Index("ix_staff_price_codes_validity", "valid_from", "valid_until"),
    )
