# backend/studio_engine/schemas/settlement.py
"""
Settlement schemas.

A ``SettlementCalculation`` is the pure result of aggregating a trainer's
billable participants over a period; persisting it produces a Settlement row
with one item per line.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Literal, Optional

from pydantic import Field

from ..core.constants import DEFAULT_CURRENCY
from ..core.enums import PriceSource
from ._strict_base import ResultModel

if TYPE_CHECKING:
    from ..core.config import Settings


class SettlementPolicy(ResultModel):
    """Which non-attendance outcomes are billed."""

    bill_no_show_entry_fee: bool = False
    bill_no_show_trainer_fee: bool = False
    bill_late_cancellation: bool = False
    late_cancellation_hours: int = Field(default=24, ge=0)

    @classmethod
    def from_settings(cls, config: "Settings") -> "SettlementPolicy":
        return cls(
            bill_no_show_entry_fee=config.bill_no_show_entry_fee,
            bill_no_show_trainer_fee=config.bill_no_show_trainer_fee,
            bill_late_cancellation=config.bill_late_cancellation,
            late_cancellation_hours=config.late_cancellation_hours,
        )

    @property
    def bills_no_shows(self) -> bool:
        return self.bill_no_show_entry_fee or self.bill_no_show_trainer_fee


class SettlementLine(ResultModel):
    source_type: Literal["individual", "class"]
    session_id: Optional[int] = None
    class_occurrence_id: Optional[int] = None
    client_id: Optional[int] = None
    registration_id: Optional[int] = None
    additional_guest_id: Optional[int] = None
    quantity: int = Field(default=1, ge=1)
    entry_fee: int = Field(ge=0)
    trainer_fee: int = Field(ge=0)
    currency: str = DEFAULT_CURRENCY
    status: str
    price_source: Optional[PriceSource] = None
    starts_at: Optional[datetime] = None


class SettlementCalculation(ResultModel):
    trainer_id: int
    period_start: datetime
    period_end: datetime
    items: List[SettlementLine] = Field(default_factory=list)
    currency: str = DEFAULT_CURRENCY

    @property
    def total_entry_fee(self) -> int:
        return sum(item.entry_fee for item in self.items)

    @property
    def total_trainer_fee(self) -> int:
        return sum(item.trainer_fee for item in self.items)
