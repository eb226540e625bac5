# backend/tests/integration/services/test_booking_ledger.py
"""
Integration tests for the BookingLedger.

Capacity and waitlist behaviour, payment with pass credits or unpaid balance,
exact reversal on cancellation and the registration state machine.
"""

from datetime import timedelta
from unittest.mock import Mock

from conftest import at
import pytest

from studio_engine.core.constants import (
    EVENT_BOOKING_CANCELLED,
    EVENT_BOOKING_CONFIRMED,
    EVENT_BOOKING_WAITLISTED,
    EVENT_CLASS_CANCELLED,
    EVENT_WAITLIST_PROMOTED,
)
from studio_engine.core.enums import RegistrationStatus
from studio_engine.core.exceptions import (
    CancellationWindowClosed,
    DuplicateBookingError,
    InvalidStateTransition,
    NotFoundException,
    OccurrenceCancelledError,
    ValidationException,
)
from studio_engine.models import ClassRegistration
from studio_engine.services.booking_ledger import BookingLedger


@pytest.fixture
def ledger(db, test_settings, dispatcher) -> BookingLedger:
    return BookingLedger(db, config=test_settings, dispatcher=dispatcher)


@pytest.fixture
def occurrence(build, room, trainer):
    return build.occurrence(room, trainer, starts_at=at(18, days=7), capacity=2)


def confirmed_count(db, occurrence_id: int) -> int:
    return (
        db.query(ClassRegistration)
        .filter(
            ClassRegistration.occurrence_id == occurrence_id,
            ClassRegistration.status.in_(["booked", "attended"]),
        )
        .count()
    )


class TestCapacityAndWaitlist:
    def test_capacity_two_with_waitlist_promotion(self, db, build, ledger, occurrence, dispatcher):
        """A and B get seats, C waits; cancelling A hands the seat to C."""
        a, b, c = build.client("A"), build.client("B"), build.client("C")

        reg_a = ledger.create(occurrence.id, a.id, now=at(9))
        reg_b = ledger.create(occurrence.id, b.id, now=at(9, 1))
        reg_c = ledger.create(occurrence.id, c.id, now=at(9, 2))

        assert reg_a.status == "booked"
        assert reg_b.status == "booked"
        assert reg_c.status == "waitlist"
        assert reg_c.payment_status == "pending"

        dispatcher.clear()
        result = ledger.cancel(reg_a.id, now=at(10))

        assert result.registration.status == "cancelled"
        assert result.promoted is not None
        assert result.promoted.id == reg_c.id
        db.refresh(reg_c)
        assert reg_c.status == "booked"
        assert confirmed_count(db, occurrence.id) == 2
        assert dispatcher.names() == [EVENT_BOOKING_CANCELLED, EVENT_WAITLIST_PROMOTED]

    def test_notifications_on_create(self, build, ledger, occurrence, dispatcher):
        ledger.create(occurrence.id, build.client().id, now=at(9))
        ledger.create(occurrence.id, build.client().id, now=at(9))
        ledger.create(occurrence.id, build.client().id, now=at(9))

        assert dispatcher.names() == [
            EVENT_BOOKING_CONFIRMED,
            EVENT_BOOKING_CONFIRMED,
            EVENT_BOOKING_WAITLISTED,
        ]

    def test_waitlist_is_fifo_by_booking_time(self, db, build, ledger, occurrence):
        ledger.create(occurrence.id, build.client().id, now=at(8))
        holder = ledger.create(occurrence.id, build.client().id, now=at(8))
        late = ledger.create(occurrence.id, build.client().id, now=at(9, 30))
        early = ledger.create(occurrence.id, build.client().id, now=at(9))

        result = ledger.cancel(holder.id, now=at(10))

        assert result.promoted.id == early.id
        db.refresh(late)
        assert late.status == "waitlist"

    def test_cancelling_waitlisted_promotes_nobody(self, build, ledger, occurrence, dispatcher):
        for _ in range(2):
            ledger.create(occurrence.id, build.client().id, now=at(8))
        waiting = ledger.create(occurrence.id, build.client().id, now=at(8))
        ledger.create(occurrence.id, build.client().id, now=at(8, 5))

        dispatcher.clear()
        result = ledger.cancel(waiting.id, now=at(9))

        assert result.promoted is None
        assert result.credits_refunded == 0
        assert dispatcher.names() == [EVENT_BOOKING_CANCELLED]

    def test_requested_waitlist_even_with_free_seats(self, build, ledger, occurrence):
        reg = ledger.create(
            occurrence.id, build.client().id, requested_status=RegistrationStatus.WAITLIST, now=at(9)
        )
        assert reg.status == "waitlist"

    def test_admin_override_can_exceed_capacity(self, db, build, ledger, occurrence):
        for _ in range(2):
            ledger.create(occurrence.id, build.client().id, now=at(9))

        forced = ledger.create(
            occurrence.id, build.client().id, requested_status=RegistrationStatus.BOOKED, now=at(9)
        )

        assert forced.status == "booked"
        assert confirmed_count(db, occurrence.id) == 3

    def test_requested_terminal_status_rejected(self, build, ledger, occurrence):
        with pytest.raises(ValidationException):
            ledger.create(
                occurrence.id, build.client().id, requested_status=RegistrationStatus.ATTENDED
            )

    def test_promote_after_capacity_raised(self, db, build, ledger, occurrence, dispatcher):
        for _ in range(3):
            ledger.create(occurrence.id, build.client().id, now=at(9))
        occurrence.capacity = 3
        db.commit()

        promoted = ledger.promote_from_waitlist(occurrence.id, now=at(10))

        assert promoted is not None
        assert promoted.status == "booked"
        assert dispatcher.names()[-1] == EVENT_WAITLIST_PROMOTED
        assert ledger.promote_from_waitlist(occurrence.id, now=at(10)) is None


class TestPayment:
    def test_no_pass_adds_price_to_unpaid_balance(self, db, build, ledger, occurrence):
        client = build.client()

        reg = ledger.create(occurrence.id, client.id, now=at(9))

        db.refresh(client)
        assert reg.payment_status == "unpaid"
        assert reg.amount_charged == 1000
        assert reg.credits_used == 0
        assert client.unpaid_balance == 1000

    def test_template_base_price_and_credits(self, db, build, ledger, room, trainer):
        template = build.template(base_price_huf=2500, credits_required=2)
        occ = build.occurrence(room, trainer, starts_at=at(18, days=7), template=template)
        client = build.client()

        reg = ledger.create(occ.id, client.id, now=at(9))

        db.refresh(client)
        assert reg.amount_charged == 5000
        assert client.unpaid_balance == 5000

    def test_pass_credit_pays(self, db, build, ledger, occurrence):
        client = build.client()
        pass_ = build.pass_(client, credits=10)

        reg = ledger.create(occurrence.id, client.id, now=at(9))

        db.refresh(pass_)
        db.refresh(client)
        assert reg.payment_status == "paid"
        assert reg.credits_used == 1
        assert reg.pass_id == pass_.id
        assert pass_.credits_left == 9
        assert client.unpaid_balance == 0

    def test_expired_pass_is_not_used(self, db, build, ledger, occurrence):
        client = build.client()
        build.pass_(client, valid_until=at(0, days=-1))

        reg = ledger.create(occurrence.id, client.id, now=at(9))

        assert reg.payment_status == "unpaid"

    def test_comped_booking_charges_nothing(self, db, build, ledger, occurrence):
        client = build.client()
        pass_ = build.pass_(client, credits=5)

        reg = ledger.create(occurrence.id, client.id, skip_payment=True, now=at(9))

        db.refresh(pass_)
        db.refresh(client)
        assert reg.payment_status == "comped"
        assert pass_.credits_left == 5
        assert client.unpaid_balance == 0

    def test_promotion_charges_the_promoted_client(self, db, build, ledger, occurrence):
        holder = ledger.create(occurrence.id, build.client().id, now=at(8))
        ledger.create(occurrence.id, build.client().id, now=at(8))
        waiting_client = build.client()
        waiting = ledger.create(occurrence.id, waiting_client.id, now=at(9))

        ledger.cancel(holder.id, now=at(10))

        db.refresh(waiting)
        db.refresh(waiting_client)
        assert waiting.payment_status == "unpaid"
        assert waiting_client.unpaid_balance == 1000

    @pytest.mark.parametrize("with_pass", [True, False])
    def test_free_class_is_paid_without_credits(
        self, db, build, ledger, room, trainer, with_pass
    ):
        occ = build.occurrence(room, trainer, starts_at=at(18, days=7), credits_required=0)
        client = build.client()
        pass_ = build.pass_(client, credits=5) if with_pass else None

        reg = ledger.create(occ.id, client.id, now=at(9))

        db.refresh(client)
        assert reg.status == "booked"
        assert reg.payment_status == "paid"
        assert (reg.credits_used, reg.amount_charged, reg.pass_id) == (0, 0, None)
        assert client.unpaid_balance == 0
        if pass_ is not None:
            db.refresh(pass_)
            assert pass_.credits_left == 5

    def test_free_class_cancellation_refunds_nothing(self, db, build, ledger, room, trainer):
        occ = build.occurrence(room, trainer, starts_at=at(18, days=7), credits_required=0)
        reg = ledger.create(occ.id, build.client().id, now=at(9))

        result = ledger.cancel(reg.id, now=at(10))

        assert result.credits_refunded == 0
        assert result.unpaid_balance_reduced == 0

    def test_free_class_waitlist_promotion(self, db, build, ledger, room, trainer, dispatcher):
        occ = build.occurrence(
            room, trainer, starts_at=at(18, days=7), capacity=1, credits_required=0
        )
        holder = ledger.create(occ.id, build.client().id, now=at(8))
        waiting_client = build.client()
        waiting = ledger.create(occ.id, waiting_client.id, now=at(9))
        assert waiting.status == "waitlist"

        result = ledger.cancel(holder.id, now=at(10))

        db.refresh(waiting)
        db.refresh(waiting_client)
        assert result.promoted.id == waiting.id
        assert waiting.status == "booked"
        assert waiting.payment_status == "paid"
        assert waiting.amount_charged == 0
        assert waiting_client.unpaid_balance == 0
        assert dispatcher.names()[-1] == EVENT_WAITLIST_PROMOTED


class TestCancellationRefunds:
    def test_unpaid_cancellation_reduces_balance(self, db, build, ledger, occurrence):
        client = build.client()
        reg = ledger.create(occurrence.id, client.id, now=at(9))

        result = ledger.cancel(reg.id, now=at(10))

        db.refresh(client)
        assert result.unpaid_balance_reduced == 1000
        assert client.unpaid_balance == 0

    def test_balance_never_goes_negative(self, db, build, ledger, occurrence):
        client = build.client()
        reg = ledger.create(occurrence.id, client.id, now=at(9))
        client.unpaid_balance = 300  # partly settled at the desk
        db.commit()

        result = ledger.cancel(reg.id, now=at(10))

        db.refresh(client)
        assert result.unpaid_balance_reduced == 300
        assert client.unpaid_balance == 0

    def test_paid_cancellation_refunds_credit(self, db, build, ledger, occurrence):
        client = build.client()
        pass_ = build.pass_(client, credits=10, credits_left=1)
        reg = ledger.create(occurrence.id, client.id, now=at(9))
        db.refresh(pass_)
        assert pass_.status == "depleted"

        result = ledger.cancel(reg.id, now=at(10))

        db.refresh(pass_)
        assert result.credits_refunded == 1
        assert pass_.credits_left == 1
        assert pass_.status == "active"

    def test_cancel_without_refund(self, db, build, ledger, occurrence):
        client = build.client()
        reg = ledger.create(occurrence.id, client.id, now=at(9))

        result = ledger.cancel(reg.id, refund=False, now=at(10))

        db.refresh(client)
        assert result.unpaid_balance_reduced == 0
        assert client.unpaid_balance == 1000

    def test_cancellation_window(self, db, build, ledger, occurrence):
        reg = ledger.create(occurrence.id, build.client().id, now=at(9))
        too_late = occurrence.starts_at - timedelta(hours=2)

        with pytest.raises(CancellationWindowClosed):
            ledger.cancel(reg.id, enforce_window=True, now=too_late)

        db.refresh(reg)
        assert reg.status == "booked"
        # Staff cancellations ignore the window
        assert ledger.cancel(reg.id, now=too_late).registration.status == "cancelled"


class TestStateMachine:
    def test_duplicate_booking_rejected(self, build, ledger, occurrence):
        client = build.client()
        first = ledger.create(occurrence.id, client.id, now=at(9))

        with pytest.raises(DuplicateBookingError) as exc_info:
            ledger.create(occurrence.id, client.id, now=at(9, 5))
        assert exc_info.value.details["registration_id"] == first.id

    def test_rebooking_after_cancellation(self, build, ledger, occurrence):
        client = build.client()
        first = ledger.create(occurrence.id, client.id, now=at(9))
        ledger.cancel(first.id, now=at(9, 30))

        second = ledger.create(occurrence.id, client.id, now=at(10))

        assert second.id != first.id
        assert second.status == "booked"

    def test_cancelled_occurrence_rejects_bookings(self, build, ledger, room, trainer):
        occ = build.occurrence(room, trainer, status="cancelled")
        with pytest.raises(OccurrenceCancelledError):
            ledger.create(occ.id, build.client().id, now=at(9))

    def test_unknown_occurrence_and_client(self, build, ledger, occurrence):
        with pytest.raises(NotFoundException):
            ledger.create(9999, build.client().id)
        with pytest.raises(NotFoundException):
            ledger.create(occurrence.id, 9999)
        with pytest.raises(NotFoundException):
            ledger.cancel(9999)

    def test_cancelled_is_terminal(self, build, ledger, occurrence):
        reg = ledger.create(occurrence.id, build.client().id, now=at(9))
        ledger.cancel(reg.id, now=at(10))

        with pytest.raises(InvalidStateTransition):
            ledger.cancel(reg.id, now=at(11))

    def test_attendance(self, build, ledger, occurrence):
        reg = ledger.create(occurrence.id, build.client().id, now=at(9))

        attended = ledger.mark_attendance(reg.id, attended=True, now=occurrence.starts_at)

        assert attended.status == "attended"
        assert attended.checked_in_at == occurrence.starts_at
        with pytest.raises(InvalidStateTransition):
            ledger.cancel(reg.id, now=at(11))

    def test_no_show(self, build, ledger, occurrence):
        reg = ledger.create(occurrence.id, build.client().id, now=at(9))
        assert ledger.mark_attendance(reg.id, attended=False).status == "no_show"

    def test_waitlisted_cannot_attend(self, build, ledger, occurrence):
        reg = ledger.create(
            occurrence.id, build.client().id, requested_status=RegistrationStatus.WAITLIST
        )
        with pytest.raises(InvalidStateTransition):
            ledger.mark_attendance(reg.id, attended=True)

    def test_list_participants(self, build, ledger, occurrence):
        kept = ledger.create(occurrence.id, build.client().id, now=at(9))
        dropped = ledger.create(occurrence.id, build.client().id, now=at(9, 1))
        ledger.cancel(dropped.id, now=at(10))

        assert [r.id for r in ledger.list_participants(occurrence.id)] == [kept.id]
        assert [r.id for r in ledger.list_participants(occurrence.id, include_cancelled=True)] == [
            kept.id,
            dropped.id,
        ]


class TestCancelOccurrence:
    def test_cancels_every_active_registration(self, db, build, ledger, occurrence, dispatcher):
        paying = build.client()
        pass_ = build.pass_(paying, credits=10)
        unpaid = build.client()
        ledger.create(occurrence.id, paying.id, now=at(9))
        ledger.create(occurrence.id, unpaid.id, now=at(9))
        ledger.create(occurrence.id, build.client().id, now=at(9))
        dispatcher.clear()

        result = ledger.cancel_occurrence(occurrence.id, now=at(12))

        db.refresh(occurrence)
        db.refresh(pass_)
        db.refresh(unpaid)
        assert occurrence.status == "cancelled"
        assert result.cancelled_count == 3
        assert pass_.credits_left == 10
        assert unpaid.unpaid_balance == 0
        assert dispatcher.names() == [EVENT_CLASS_CANCELLED] * 3
        assert confirmed_count(db, occurrence.id) == 0

    def test_cancelling_twice_fails(self, build, ledger, occurrence):
        ledger.cancel_occurrence(occurrence.id, now=at(12))
        with pytest.raises(InvalidStateTransition):
            ledger.cancel_occurrence(occurrence.id, now=at(13))


class TestNotificationIsolation:
    def test_dispatcher_failure_keeps_the_booking(self, db, build, test_settings, occurrence):
        failing = Mock()
        failing.dispatch.side_effect = RuntimeError("push service down")
        ledger = BookingLedger(db, config=test_settings, dispatcher=failing)

        reg = ledger.create(occurrence.id, build.client().id, now=at(9))

        stored = db.query(ClassRegistration).filter(ClassRegistration.id == reg.id).one()
        assert stored.status == "booked"
        failing.dispatch.assert_called_once()
