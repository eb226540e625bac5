# backend/studio_engine/schemas/__init__.py
"""
Pydantic schemas and result types for the studio booking engine.
"""

from .booking import CancellationResult, ChargeResult, OccurrenceCancellationResult
from .conflict import Bookable, ConflictEntry
from .pricing import GuestAssignment, PriceQuote
from .scheduling import (
    OccurrenceCreate,
    OccurrenceUpdate,
    RecurrenceResult,
    RecurringOccurrenceCreate,
    RecurringSessionCreate,
    SessionCreate,
    SessionUpdate,
    SkippedDate,
)
from .settlement import SettlementCalculation, SettlementLine, SettlementPolicy

__all__ = [
    "Bookable",
    "CancellationResult",
    "ChargeResult",
    "ConflictEntry",
    "GuestAssignment",
    "OccurrenceCancellationResult",
    "OccurrenceCreate",
    "OccurrenceUpdate",
    "PriceQuote",
    "RecurrenceResult",
    "RecurringOccurrenceCreate",
    "RecurringSessionCreate",
    "SessionCreate",
    "SessionUpdate",
    "SettlementCalculation",
    "SettlementLine",
    "SettlementPolicy",
    "SkippedDate",
]
