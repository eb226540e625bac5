"""
Database models for the studio booking engine.

The models are organized by functionality:
- Sites, rooms and staff (the bookable resources)
- Clients and passes (who pays, and with what)
- Individual sessions with additional guests
- Class templates, occurrences and registrations
- Pricing (service types, price codes, class pricing)
- Trainer settlements
"""

from .class_pricing import ClassPricingDefault, ClientClassPricing
from .class_schedule import ClassOccurrence, ClassRegistration, ClassTemplate
from .client import Client, Pass
from .room import Room, Site
from .service_type import ClientPriceCode, ServiceType, StaffPriceCode
from .session import AdditionalGuest, IndividualSession
from .settlement import Settlement, SettlementItem
from .staff import StaffMember

__all__ = [
    "AdditionalGuest",
    "ClassOccurrence",
    "ClassPricingDefault",
    "ClassRegistration",
    "ClassTemplate",
    "Client",
    "ClientClassPricing",
    "ClientPriceCode",
    "IndividualSession",
    "Pass",
    "Room",
    "ServiceType",
    "Settlement",
    "SettlementItem",
    "Site",
    "StaffMember",
    "StaffPriceCode",
]
