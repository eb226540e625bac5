# backend/tests/conftest.py
"""
Pytest configuration for the studio booking engine.

Every test gets a fresh in-memory SQLite database built from the model
metadata, a session that behaves like ``SessionLocal`` and a recording
notification dispatcher instead of the logging one.
"""

from datetime import datetime, time, timedelta
import os
from typing import Any, Generator, Optional

os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from studio_engine import models  # noqa: F401  registers every table on Base
from studio_engine.core.config import Settings
from studio_engine.database import Base
from studio_engine.models import (
    ClassOccurrence,
    ClassPricingDefault,
    ClassTemplate,
    Client,
    ClientClassPricing,
    ClientPriceCode,
    IndividualSession,
    Pass,
    Room,
    ServiceType,
    Site,
    StaffMember,
)
from studio_engine.services.notification_service import RecordingNotificationDispatcher

# Monday
BASE_DAY = datetime(2025, 1, 6)


def at(hour: int, minute: int = 0, days: int = 0) -> datetime:
    """Studio-local timestamp on BASE_DAY (+ ``days``)."""
    return BASE_DAY + timedelta(days=days, hours=hour, minutes=minute)


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(test_engine, "connect")
    def _enable_fks(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine: Engine) -> Generator[Session, None, None]:
    """Database session configured like the production SessionLocal."""
    TestingSessionLocal = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="test",
        database_url="sqlite://",
        credit_price_huf=1000,
        cancellation_window_hours=24,
        slow_operation_threshold_s=30.0,
    )


@pytest.fixture
def dispatcher() -> RecordingNotificationDispatcher:
    return RecordingNotificationDispatcher()


class StudioBuilder:
    """Creates committed reference data with sensible defaults."""

    def __init__(self, db: Session):
        self.db = db
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def _save(self, entity: Any) -> Any:
        self.db.add(entity)
        self.db.commit()
        return entity

    def site(self, name: str = "Main studio") -> Site:
        return self._save(Site(name=name))

    def room(self, name: Optional[str] = None, site: Optional[Site] = None, capacity: int = 12) -> Room:
        site = site or self.site()
        return self._save(Room(site_id=site.id, name=name or f"Room {self._next()}", capacity=capacity))

    def staff(self, name: Optional[str] = None) -> StaffMember:
        n = self._next()
        return self._save(StaffMember(name=name or f"Trainer {n}", email=f"trainer{n}@example.com"))

    def client(self, full_name: Optional[str] = None, technical: bool = False) -> Client:
        n = self._next()
        return self._save(
            Client(
                full_name=full_name or f"Client {n}",
                email=f"client{n}@example.com",
                unpaid_balance=0,
                is_technical_guest=technical,
            )
        )

    def pass_(
        self,
        client: Client,
        credits: int = 10,
        credits_left: Optional[int] = None,
        valid_from: Optional[datetime] = None,
        valid_until: Optional[datetime] = None,
        status: str = "active",
    ) -> Pass:
        return self._save(
            Pass(
                client_id=client.id,
                pass_type="10-class",
                total_credits=credits,
                credits_left=credits if credits_left is None else credits_left,
                valid_from=valid_from or at(0, days=-30),
                valid_until=valid_until or at(0, days=60),
                status=status,
            )
        )

    def service_type(
        self, code: Optional[str] = None, entry_fee: int = 8000, trainer_fee: int = 5000
    ) -> ServiceType:
        n = self._next()
        return self._save(
            ServiceType(
                code=code or f"PT{n}",
                name=f"Personal training {n}",
                default_entry_fee=entry_fee,
                default_trainer_fee=trainer_fee,
            )
        )

    def client_price_code(
        self,
        client: Client,
        service_type: ServiceType,
        entry_fee: int,
        trainer_fee: int,
        valid_from: Optional[datetime] = None,
        valid_until: Optional[datetime] = None,
        price_code: str = "VIP",
    ) -> ClientPriceCode:
        return self._save(
            ClientPriceCode(
                client_id=client.id,
                service_type_id=service_type.id,
                price_code=price_code,
                entry_fee=entry_fee,
                trainer_fee=trainer_fee,
                valid_from=valid_from or at(0, days=-365),
                valid_until=valid_until,
            )
        )

    def template(
        self,
        title: str = "Pilates",
        room: Optional[Room] = None,
        trainer: Optional[StaffMember] = None,
        base_price_huf: Optional[int] = None,
        credits_required: int = 1,
        capacity: int = 10,
        duration_minutes: int = 60,
        weekday: Optional[int] = 0,
        start_time: Optional[time] = time(18, 0),
    ) -> ClassTemplate:
        return self._save(
            ClassTemplate(
                title=title,
                weekday=weekday,
                start_time=start_time,
                duration_minutes=duration_minutes,
                default_capacity=capacity,
                credits_required=credits_required,
                base_price_huf=base_price_huf,
                default_room_id=room.id if room else None,
                default_trainer_id=trainer.id if trainer else None,
            )
        )

    def class_pricing_default(
        self,
        template: ClassTemplate,
        entry_fee: int,
        trainer_fee: int,
        valid_from: Optional[datetime] = None,
        valid_until: Optional[datetime] = None,
    ) -> ClassPricingDefault:
        return self._save(
            ClassPricingDefault(
                class_template_id=template.id,
                entry_fee=entry_fee,
                trainer_fee=trainer_fee,
                valid_from=valid_from or at(0, days=-365),
                valid_until=valid_until,
            )
        )

    def client_class_pricing(
        self,
        client: Client,
        entry_fee: int,
        trainer_fee: int,
        template: Optional[ClassTemplate] = None,
        occurrence: Optional[ClassOccurrence] = None,
        valid_from: Optional[datetime] = None,
    ) -> ClientClassPricing:
        return self._save(
            ClientClassPricing(
                client_id=client.id,
                class_template_id=template.id if template else None,
                class_occurrence_id=occurrence.id if occurrence else None,
                entry_fee=entry_fee,
                trainer_fee=trainer_fee,
                valid_from=valid_from or at(0, days=-365),
            )
        )

    def occurrence(
        self,
        room: Room,
        trainer: StaffMember,
        starts_at: Optional[datetime] = None,
        minutes: int = 60,
        capacity: int = 10,
        template: Optional[ClassTemplate] = None,
        title: Optional[str] = None,
        credits_required: Optional[int] = None,
        status: str = "scheduled",
    ) -> ClassOccurrence:
        start = starts_at or at(18, days=7)
        return self._save(
            ClassOccurrence(
                template_id=template.id if template else None,
                title=title,
                room_id=room.id,
                trainer_id=trainer.id,
                starts_at=start,
                ends_at=start + timedelta(minutes=minutes),
                capacity=capacity,
                credits_required=credits_required,
                status=status,
            )
        )

    def session(
        self,
        room: Room,
        staff: StaffMember,
        starts_at: datetime,
        minutes: int = 60,
        client: Optional[Client] = None,
        session_type: str = "INDIVIDUAL",
        status: str = "scheduled",
        **fields: Any,
    ) -> IndividualSession:
        return self._save(
            IndividualSession(
                session_type=session_type,
                staff_id=staff.id,
                room_id=room.id,
                client_id=client.id if client else None,
                starts_at=starts_at,
                ends_at=starts_at + timedelta(minutes=minutes),
                status=status,
                **fields,
            )
        )


@pytest.fixture
def build(db: Session) -> StudioBuilder:
    return StudioBuilder(db)


@pytest.fixture
def room(build: StudioBuilder) -> Room:
    return build.room("Studio A")


@pytest.fixture
def trainer(build: StudioBuilder) -> StaffMember:
    return build.staff("Anna Trainer")
