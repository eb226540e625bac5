# backend/studio_engine/schemas/booking.py
"""Result types returned by the booking ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from ..models.class_schedule import ClassRegistration


@dataclass(frozen=True)
class ChargeResult:
    """How a booked registration was paid for."""

    payment_status: str
    credits_used: int = 0
    pass_id: Optional[int] = None
    amount_charged: int = 0


@dataclass(frozen=True)
class CancellationResult:
    registration: "ClassRegistration"
    credits_refunded: int = 0
    unpaid_balance_reduced: int = 0
    promoted: Optional["ClassRegistration"] = None


@dataclass(frozen=True)
class OccurrenceCancellationResult:
    occurrence_id: int
    cancellations: List[CancellationResult] = field(default_factory=list)

    @property
    def cancelled_count(self) -> int:
        return len(self.cancellations)
