# backend/studio_engine/services/dependencies.py
"""
Service dependencies for callers built on FastAPI.

Each provider builds a service on the request's database session so a host
application can write ``ledger: BookingLedger = Depends(get_booking_ledger)``.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ..core.config import Settings, settings
from ..database import get_db
from .booking_ledger import BookingLedger
from .conflict_detector import ConflictDetector
from .notification_service import LoggingNotificationDispatcher, NotificationDispatcher
from .price_resolver import PriceResolver
from .scheduling_service import SchedulingService
from .settlement_service import SettlementService

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    return settings


@lru_cache(maxsize=1)
def get_notification_dispatcher() -> NotificationDispatcher:
    """Process-wide dispatcher; override in the host app to deliver events."""
    return LoggingNotificationDispatcher()


def get_conflict_detector(
    db: Session = Depends(get_db), config: Settings = Depends(get_settings)
) -> ConflictDetector:
    return ConflictDetector(db, config=config)


def get_price_resolver(
    db: Session = Depends(get_db), config: Settings = Depends(get_settings)
) -> PriceResolver:
    return PriceResolver(db, config=config)


def get_booking_ledger(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> BookingLedger:
    """
    Get BookingLedger instance.

    Args:
        db: Database session
        config: Engine settings
        dispatcher: Post-commit notification sink

    Returns:
        BookingLedger backed by the database pass store
    """
    return BookingLedger(db, config=config, dispatcher=dispatcher)


def get_scheduling_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> SchedulingService:
    return SchedulingService(db, config=config, dispatcher=dispatcher)


def get_settlement_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> SettlementService:
    return SettlementService(db, config=config, dispatcher=dispatcher)
