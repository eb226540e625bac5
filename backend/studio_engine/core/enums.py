# backend/studio_engine/core/enums.py
"""
Core enums for the studio booking engine.

Status values are stored as plain strings in the database; these enums give
services a typed vocabulary for them and fix the allowed transitions.
"""

from enum import Enum, IntEnum
from typing import Dict, FrozenSet


class Weekday(IntEnum):
    """Day of week, numbered like ``date.weekday()``."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class BookingKind(str, Enum):
    """The two tables a room or trainer can be booked through."""

    INDIVIDUAL = "individual"
    CLASS = "class"


class SessionType(str, Enum):
    INDIVIDUAL = "INDIVIDUAL"
    BLOCK = "BLOCK"


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class AttendanceStatus(str, Enum):
    ATTENDED = "attended"
    NO_SHOW = "no_show"


class OccurrenceStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RegistrationStatus(str, Enum):
    """Class registration lifecycle."""

    BOOKED = "booked"
    WAITLIST = "waitlist"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    ATTENDED = "attended"

    @classmethod
    def active(cls) -> FrozenSet["RegistrationStatus"]:
        """Statuses that hold a claim on the occurrence."""
        return frozenset({cls.BOOKED, cls.WAITLIST})

    @classmethod
    def confirmed(cls) -> FrozenSet["RegistrationStatus"]:
        """Statuses that occupy a capacity slot."""
        return frozenset({cls.BOOKED, cls.ATTENDED})

    @classmethod
    def terminal(cls) -> FrozenSet["RegistrationStatus"]:
        return frozenset({cls.CANCELLED, cls.ATTENDED, cls.NO_SHOW})

    def can_transition_to(self, target: "RegistrationStatus") -> bool:
        return target in REGISTRATION_TRANSITIONS.get(self, frozenset())


REGISTRATION_TRANSITIONS: Dict[RegistrationStatus, FrozenSet[RegistrationStatus]] = {
    RegistrationStatus.BOOKED: frozenset(
        {RegistrationStatus.CANCELLED, RegistrationStatus.ATTENDED, RegistrationStatus.NO_SHOW}
    ),
    RegistrationStatus.WAITLIST: frozenset(
        {RegistrationStatus.BOOKED, RegistrationStatus.CANCELLED}
    ),
}


class PaymentStatus(str, Enum):
    PAID = "paid"
    UNPAID = "unpaid"
    PENDING = "pending"
    COMPED = "comped"


class PassStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    DEPLETED = "depleted"
    SUSPENDED = "suspended"


class PriceSource(str, Enum):
    """Which rung of the pricing chain produced a fee."""

    CLIENT_PRICE_CODE = "client_price_code"
    STAFF_PRICE_CODE = "staff_price_code"
    SERVICE_TYPE_DEFAULT = "service_type_default"
    CLIENT_OCCURRENCE_SPECIFIC = "client_occurrence_specific"
    CLIENT_TEMPLATE_SPECIFIC = "client_template_specific"
    TEMPLATE_DEFAULT = "template_default"
    TEMPLATE_BASE_PRICE = "template_base_price"
    OCCURRENCE_CAPTURED = "occurrence_captured"


class ClassPricingSource(str, Enum):
    MANUAL = "manual"
    IMPORT = "import"
    PROMOTION = "promotion"


class SettlementStatus(str, Enum):
    DRAFT = "draft"
    FINALIZED = "finalized"
    PAID = "paid"

    def can_transition_to(self, target: "SettlementStatus") -> bool:
        order = [SettlementStatus.DRAFT, SettlementStatus.FINALIZED, SettlementStatus.PAID]
        return order.index(target) == order.index(self) + 1


class GuestKind(str, Enum):
    CLIENT = "client"
    TECHNICAL_GUEST = "technical_guest"
