# backend/studio_engine/services/booking_ledger.py
"""
Booking Ledger Service for the studio booking engine.

Owns the class registration lifecycle:

    booked   -> cancelled | attended | no_show
    waitlist -> booked | cancelled

and the money that moves with it. A booked registration is paid with pass
credits when the client has them, otherwise the price is added to the
client's unpaid balance. Cancelling reverses exactly what was charged and
frees the seat for the head of the waitlist.

Every capacity decision runs while holding the occurrence row lock, so the
number of booked and attended registrations never exceeds capacity except
through an explicit admin override.
"""

from datetime import datetime
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.constants import (
    EVENT_BOOKING_CANCELLED,
    EVENT_BOOKING_CONFIRMED,
    EVENT_BOOKING_WAITLISTED,
    EVENT_CLASS_CANCELLED,
    EVENT_WAITLIST_PROMOTED,
)
from ..core.enums import OccurrenceStatus, PaymentStatus, RegistrationStatus
from ..core.exceptions import (
    CancellationWindowClosed,
    DuplicateBookingError,
    InsufficientCreditsError,
    InvalidStateTransition,
    NotFoundException,
    OccurrenceCancelledError,
    ValidationException,
)
from ..core.timezone_utils import get_studio_now
from ..models.class_schedule import ClassOccurrence, ClassRegistration
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..schemas.booking import CancellationResult, ChargeResult, OccurrenceCancellationResult
from .base import BaseService
from .notification_service import NotificationDispatcher, NotificationService, PendingNotification
from .pass_credit_service import CreditLedger, PassCreditService

logger = logging.getLogger(__name__)


class BookingLedger(BaseService):
    """
    Service for class bookings, cancellations and waitlist promotion.
    """

    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        credit_ledger: Optional[CreditLedger] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        """
        Initialize booking ledger.

        Args:
            db: Database session
            config: Optional Settings instance
            credit_ledger: Pass credit store; database-backed by default
            dispatcher: Notification collaborator; logs by default
        """
        super().__init__(db, config)
        self.occurrence_repository = RepositoryFactory.create_occurrence_repository(db)
        self.registration_repository = RepositoryFactory.create_registration_repository(db)
        self.client_repository = RepositoryFactory.create_client_repository(db)
        self.credit_ledger: CreditLedger = credit_ledger or PassCreditService(db, self.settings)
        self.notifications = NotificationService(dispatcher)

    # Locking helpers

    def _lock_occurrence(self, occurrence_id: int) -> ClassOccurrence:
        occurrence = self.occurrence_repository.lock(occurrence_id)
        if occurrence is None:
            raise NotFoundException(
                f"Class occurrence {occurrence_id} not found",
                details={"occurrence_id": occurrence_id},
            )
        return occurrence

    def _lock_registration(
        self, registration_id: int
    ) -> Tuple[ClassRegistration, ClassOccurrence]:
        """Lock the parent occurrence first, then reload the registration under it."""
        registration = self.registration_repository.get_by_id(
            registration_id, load_relationships=False
        )
        if registration is None:
            raise NotFoundException(
                f"Registration {registration_id} not found",
                details={"registration_id": registration_id},
            )
        occurrence = self._lock_occurrence(registration.occurrence_id)
        locked = self.registration_repository.get_for_update(registration_id)
        return (locked if locked is not None else registration), occurrence

    # Money

    def _unit_price(self, occurrence: ClassOccurrence) -> int:
        if occurrence.base_price_huf is not None:
            return occurrence.base_price_huf
        return self.settings.credit_price_huf

    def _charge(
        self,
        registration: ClassRegistration,
        occurrence: ClassOccurrence,
        skip_payment: bool,
        moment: datetime,
    ) -> ChargeResult:
        """
        Pay for a registration entering the booked state.

        Pass credits first; without a usable pass the price goes on the
        client's unpaid balance. A class that costs no credits is paid outright.
        """
        credits = occurrence.effective_credits_required

        if skip_payment:
            charge = ChargeResult(payment_status=PaymentStatus.COMPED.value)
        elif credits == 0:
            charge = ChargeResult(payment_status=PaymentStatus.PAID.value)
        else:
            try:
                source = self.credit_ledger.deduct_credit(registration.client_id, credits, moment)
                charge = ChargeResult(
                    payment_status=PaymentStatus.PAID.value,
                    credits_used=credits,
                    pass_id=source.id,
                )
            except InsufficientCreditsError:
                amount = credits * self._unit_price(occurrence)
                client = self.client_repository.lock(registration.client_id)
                if client is None:
                    raise NotFoundException(f"Client {registration.client_id} not found")
                client.unpaid_balance = (client.unpaid_balance or 0) + amount
                charge = ChargeResult(
                    payment_status=PaymentStatus.UNPAID.value, amount_charged=amount
                )

        registration.payment_status = charge.payment_status
        registration.credits_used = charge.credits_used
        registration.pass_id = charge.pass_id
        registration.amount_charged = charge.amount_charged
        self.registration_repository.flush()
        return charge

    def _reverse_charge(self, registration: ClassRegistration) -> CancellationResult:
        """Undo what ``_charge`` did for this registration."""
        credits_refunded = 0
        balance_reduced = 0

        if registration.payment_status == PaymentStatus.PAID.value and registration.credits_used:
            self.credit_ledger.refund_credit(
                registration.client_id, registration.credits_used, registration.pass_id
            )
            credits_refunded = registration.credits_used
        elif registration.payment_status == PaymentStatus.UNPAID.value and registration.amount_charged:
            client = self.client_repository.lock(registration.client_id)
            if client is not None:
                balance_reduced = min(registration.amount_charged, client.unpaid_balance or 0)
                client.unpaid_balance = (client.unpaid_balance or 0) - balance_reduced

        return CancellationResult(
            registration=registration,
            credits_refunded=credits_refunded,
            unpaid_balance_reduced=balance_reduced,
        )

    # Operations

    @BaseService.measure_operation("create_registration")
    def create(
        self,
        occurrence_id: int,
        client_id: int,
        requested_status: Optional[RegistrationStatus] = None,
        skip_payment: bool = False,
        now: Optional[datetime] = None,
    ) -> ClassRegistration:
        """
        Register a client for a class occurrence.

        Without ``requested_status`` the client gets a seat while one is free
        and joins the waitlist otherwise. An explicit status is an admin
        override and is honoured even when the class is full.

        Args:
            occurrence_id: Class occurrence to join
            client_id: Client booking the seat
            requested_status: Optional BOOKED or WAITLIST override
            skip_payment: Book without charging (comped)
            now: Booking timestamp, studio-local; defaults to the current time

        Returns:
            The new registration

        Raises:
            NotFoundException: If the occurrence or client does not exist
            DuplicateBookingError: If the client already holds a seat or waitlist spot
            OccurrenceCancelledError: If the class has been cancelled
        """
        if requested_status is not None and requested_status not in RegistrationStatus.active():
            raise ValidationException(
                "A new registration can only be booked or waitlisted",
                details={"requested_status": str(requested_status)},
            )
        moment = now or get_studio_now()
        pending: List[PendingNotification] = []

        with self.transaction():
            occurrence = self._lock_occurrence(occurrence_id)
            if self.client_repository.get_by_id(client_id, load_relationships=False) is None:
                raise NotFoundException(
                    f"Client {client_id} not found", details={"client_id": client_id}
                )

            existing = self.registration_repository.find_active(occurrence_id, client_id)
            if existing is not None:
                raise DuplicateBookingError(occurrence_id, client_id, existing.id)

            if occurrence.is_cancelled:
                raise OccurrenceCancelledError(occurrence_id)

            confirmed = self.registration_repository.count_confirmed(occurrence_id)
            if requested_status is not None:
                status = requested_status
            elif confirmed < occurrence.capacity:
                status = RegistrationStatus.BOOKED
            else:
                status = RegistrationStatus.WAITLIST

            registration = self.registration_repository.create(
                occurrence_id=occurrence_id,
                client_id=client_id,
                status=status.value,
                booked_at=moment,
                credits_used=0,
                payment_status=PaymentStatus.PENDING.value,
                amount_charged=0,
            )

            if status == RegistrationStatus.BOOKED:
                self._charge(registration, occurrence, skip_payment, moment)
                pending.append((EVENT_BOOKING_CONFIRMED, registration))
            else:
                pending.append((EVENT_BOOKING_WAITLISTED, registration))

            self.log_operation(
                "create_registration",
                registration_id=registration.id,
                occurrence_id=occurrence_id,
                client_id=client_id,
                status=registration.status,
                payment_status=registration.payment_status,
                seats_taken=confirmed,
                capacity=occurrence.capacity,
            )

        prometheus_metrics.inc_booking(status.value)
        self.notifications.notify_all(pending)
        return registration

    def _cancel_locked(
        self,
        registration: ClassRegistration,
        occurrence: ClassOccurrence,
        refund: bool,
        enforce_window: bool,
        moment: datetime,
    ) -> CancellationResult:
        current = registration.registration_status
        if not current.can_transition_to(RegistrationStatus.CANCELLED):
            raise InvalidStateTransition(
                "registration", registration.id, current.value, RegistrationStatus.CANCELLED.value
            )

        if enforce_window:
            hours_until_start = (occurrence.starts_at - moment).total_seconds() / 3600
            if hours_until_start < self.settings.cancellation_window_hours:
                raise CancellationWindowClosed(
                    self.settings.cancellation_window_hours, hours_until_start
                )

        if current == RegistrationStatus.BOOKED and refund:
            result = self._reverse_charge(registration)
        else:
            result = CancellationResult(registration=registration)

        registration.status = RegistrationStatus.CANCELLED.value
        registration.cancelled_at = moment
        self.registration_repository.flush()
        return result

    def _promote_locked(
        self, occurrence: ClassOccurrence, moment: datetime
    ) -> Optional[ClassRegistration]:
        """Move the head of the waitlist into a free seat, charging like a booking."""
        if occurrence.is_cancelled:
            return None
        if self.registration_repository.count_confirmed(occurrence.id) >= occurrence.capacity:
            return None

        head = self.registration_repository.next_waitlisted(occurrence.id)
        if head is None:
            return None

        self._charge(head, occurrence, skip_payment=False, moment=moment)
        head.status = RegistrationStatus.BOOKED.value
        self.registration_repository.flush()

        prometheus_metrics.inc_waitlist_promotion()
        self.log_operation(
            "promote_from_waitlist",
            registration_id=head.id,
            occurrence_id=occurrence.id,
            client_id=head.client_id,
            payment_status=head.payment_status,
        )
        return head

    @BaseService.measure_operation("cancel_registration")
    def cancel(
        self,
        registration_id: int,
        refund: bool = True,
        enforce_window: bool = False,
        now: Optional[datetime] = None,
    ) -> CancellationResult:
        """
        Cancel a registration and hand its seat to the waitlist.

        Args:
            registration_id: Registration to cancel
            refund: Reverse the charge of a booked registration
            enforce_window: Apply the self-service cancellation window
            now: Cancellation timestamp; defaults to the current time

        Returns:
            What was refunded and who, if anyone, was promoted

        Raises:
            InvalidStateTransition: If the registration is already terminal
            CancellationWindowClosed: If enforcing the window and the class starts too soon
        """
        moment = now or get_studio_now()
        pending: List[PendingNotification] = []

        with self.transaction():
            registration, occurrence = self._lock_registration(registration_id)
            was_booked = registration.registration_status == RegistrationStatus.BOOKED

            result = self._cancel_locked(registration, occurrence, refund, enforce_window, moment)
            pending.append((EVENT_BOOKING_CANCELLED, registration))

            promoted = self._promote_locked(occurrence, moment) if was_booked else None
            if promoted is not None:
                pending.append((EVENT_WAITLIST_PROMOTED, promoted))

            self.log_operation(
                "cancel_registration",
                registration_id=registration_id,
                occurrence_id=occurrence.id,
                credits_refunded=result.credits_refunded,
                unpaid_balance_reduced=result.unpaid_balance_reduced,
                promoted_registration_id=promoted.id if promoted else None,
            )

        self.notifications.notify_all(pending)
        return CancellationResult(
            registration=result.registration,
            credits_refunded=result.credits_refunded,
            unpaid_balance_reduced=result.unpaid_balance_reduced,
            promoted=promoted,
        )

    @BaseService.measure_operation("promote_from_waitlist")
    def promote_from_waitlist(
        self, occurrence_id: int, now: Optional[datetime] = None
    ) -> Optional[ClassRegistration]:
        """
        Fill a free seat from the waitlist with its head.

        Returns:
            The promoted registration, or None when nobody waits or no seat is free
        """
        moment = now or get_studio_now()
        with self.transaction():
            occurrence = self._lock_occurrence(occurrence_id)
            promoted = self._promote_locked(occurrence, moment)

        if promoted is not None:
            self.notifications.notify(EVENT_WAITLIST_PROMOTED, promoted)
        return promoted

    @BaseService.measure_operation("mark_attendance")
    def mark_attendance(
        self, registration_id: int, attended: bool, now: Optional[datetime] = None
    ) -> ClassRegistration:
        """
        Record whether a booked client showed up.

        Raises:
            InvalidStateTransition: If the registration is not booked
        """
        moment = now or get_studio_now()
        target = RegistrationStatus.ATTENDED if attended else RegistrationStatus.NO_SHOW

        with self.transaction():
            registration, _ = self._lock_registration(registration_id)
            current = registration.registration_status
            if not current.can_transition_to(target):
                raise InvalidStateTransition(
                    "registration", registration.id, current.value, target.value
                )
            registration.status = target.value
            if attended:
                registration.checked_in_at = moment
            self.registration_repository.flush()

        return registration

    def list_participants(
        self, occurrence_id: int, include_cancelled: bool = False
    ) -> List[ClassRegistration]:
        """Registrations for an occurrence in booking order."""
        if self.occurrence_repository.get_by_id(occurrence_id, load_relationships=False) is None:
            raise NotFoundException(f"Class occurrence {occurrence_id} not found")
        statuses = None if include_cancelled else (
            set(RegistrationStatus) - {RegistrationStatus.CANCELLED}
        )
        return self.registration_repository.list_for_occurrence(occurrence_id, statuses)

    @BaseService.measure_operation("cancel_occurrence")
    def cancel_occurrence(
        self, occurrence_id: int, refund: bool = True, now: Optional[datetime] = None
    ) -> OccurrenceCancellationResult:
        """
        Cancel a whole class and every booked or waitlisted registration on it.

        Raises:
            InvalidStateTransition: If the occurrence is already cancelled
        """
        moment = now or get_studio_now()
        pending: List[PendingNotification] = []
        cancellations: List[CancellationResult] = []

        with self.transaction():
            occurrence = self._lock_occurrence(occurrence_id)
            if occurrence.is_cancelled:
                raise InvalidStateTransition(
                    "occurrence",
                    occurrence_id,
                    occurrence.status,
                    OccurrenceStatus.CANCELLED.value,
                )

            occurrence.status = OccurrenceStatus.CANCELLED.value
            occurrence.cancelled_at = moment

            for registration in self.registration_repository.list_for_occurrence(
                occurrence_id, RegistrationStatus.active()
            ):
                cancellations.append(
                    self._cancel_locked(registration, occurrence, refund, False, moment)
                )
                pending.append((EVENT_CLASS_CANCELLED, registration))

            self.log_operation(
                "cancel_occurrence",
                occurrence_id=occurrence_id,
                cancelled_registrations=len(cancellations),
            )

        self.notifications.notify_all(pending)
        return OccurrenceCancellationResult(occurrence_id=occurrence_id, cancellations=cancellations)
