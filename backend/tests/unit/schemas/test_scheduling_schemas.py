# backend/tests/unit/schemas/test_scheduling_schemas.py
"""
Unit tests for scheduling and pricing input schemas.
"""

from datetime import date, datetime

from pydantic import ValidationError
import pytest

from studio_engine.core.enums import GuestKind, PriceSource, SessionType
from studio_engine.schemas.pricing import GuestAssignment, PriceQuote
from studio_engine.schemas.scheduling import (
    OccurrenceCreate,
    RecurrenceResult,
    SessionCreate,
    SkippedDate,
)


class TestSessionCreate:
    def test_individual_session_requires_client(self):
        with pytest.raises(ValidationError):
            SessionCreate(
                staff_id=1,
                room_id=1,
                starts_at=datetime(2025, 1, 6, 10),
                ends_at=datetime(2025, 1, 6, 11),
            )

    def test_block_session_without_client(self):
        data = SessionCreate(
            session_type=SessionType.BLOCK,
            staff_id=1,
            room_id=1,
            starts_at=datetime(2025, 1, 6, 10),
            ends_at=datetime(2025, 1, 6, 11),
        )
        assert data.client_id is None

    def test_block_session_cannot_have_guests(self):
        with pytest.raises(ValidationError):
            SessionCreate(
                session_type=SessionType.BLOCK,
                staff_id=1,
                room_id=1,
                starts_at=datetime(2025, 1, 6, 10),
                ends_at=datetime(2025, 1, 6, 11),
                guests=[GuestAssignment.technical()],
            )

    def test_window_must_be_positive(self):
        with pytest.raises(ValidationError):
            SessionCreate(
                staff_id=1,
                room_id=1,
                client_id=1,
                starts_at=datetime(2025, 1, 6, 11),
                ends_at=datetime(2025, 1, 6, 10),
            )

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            SessionCreate(
                staff_id=1,
                room_id=1,
                client_id=1,
                starts_at=datetime(2025, 1, 6, 10),
                ends_at=datetime(2025, 1, 6, 11),
                colour="red",
            )


class TestOccurrenceCreate:
    def test_without_template_everything_is_required(self):
        with pytest.raises(ValidationError):
            OccurrenceCreate(starts_at=datetime(2025, 1, 6, 18), room_id=1)

    def test_template_fills_the_rest(self):
        data = OccurrenceCreate(template_id=3, starts_at=datetime(2025, 1, 6, 18))
        assert data.room_id is None
        assert data.capacity is None


class TestGuestAssignment:
    def test_client_guest_needs_client_id(self):
        with pytest.raises(ValidationError):
            GuestAssignment(kind=GuestKind.CLIENT)

    def test_technical_guest(self):
        guest = GuestAssignment.technical(quantity=3)
        assert guest.kind == GuestKind.TECHNICAL_GUEST
        assert guest.client_id is None
        assert guest.quantity == 3

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            GuestAssignment(client_id=1, quantity=0)


class TestResults:
    def test_price_quote_scaled(self):
        quote = PriceQuote(entry_fee=3000, trainer_fee=2000, source=PriceSource.SERVICE_TYPE_DEFAULT)
        scaled = quote.scaled(3)
        assert (scaled.entry_fee, scaled.trainer_fee) == (9000, 6000)
        assert quote.entry_fee == 3000

    def test_recurrence_result_counts(self):
        result = RecurrenceResult(
            created_ids=[1, 2],
            skipped=[SkippedDate(skipped_on=date(2025, 1, 13))],
        )
        assert result.created_count == 2
        assert result.skipped_count == 1
        assert result.skipped_dates == [date(2025, 1, 13)]
