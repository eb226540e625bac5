# backend/studio_engine/models/class_pricing.py
"""
Class pricing models.

ClassPricingDefault is the per-template price with a validity period;
ClientClassPricing overrides it for one client, either for a whole template
or for a single occurrence.
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

from ..core.constants import DEFAULT_CURRENCY
from ..core.enums import ClassPricingSource
from ..database import Base


class ClassPricingDefault(Base):
    __tablename__ = "class_pricing_defaults"

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_template_id = Column(Integer, ForeignKey("class_templates.id"), nullable=False)
    entry_fee = Column(Integer, nullable=False, default=0)
    trainer_fee = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    template = relationship("ClassTemplate")

    __table_args__ = (
        Index("ix_class_pricing_defaults_template_from", "class_template_id", "valid_from"),
    )


class ClientClassPricing(Base):
    __tablename__ = "client_class_pricing"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    class_template_id = Column(Integer, ForeignKey("class_templates.id"), nullable=True)
    class_occurrence_id = Column(Integer, ForeignKey("class_occurrences.id"), nullable=True)
    entry_fee = Column(Integer, nullable=False, default=0)
    trainer_fee = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=True)
    source = Column(String(20), nullable=False, default=ClassPricingSource.MANUAL.value)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_client_class_pricing_client_template", "client_id", "class_template_id"),
        Index("ix_client_class_pricing_client_occurrence", "client_id", "class_occurrence_id"),
        CheckConstraint(
            "class_template_id IS NOT NULL OR class_occurrence_id IS NOT NULL",
            name="ck_client_class_pricing_target",
        ),
    )
