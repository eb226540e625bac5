# backend/studio_engine/services/settlement_service.py
"""
Trainer settlement for the studio booking engine.

``SettlementCalculator`` aggregates what a trainer delivered in a period into
billable lines; it only reads. ``SettlementService`` persists a calculation
as a settlement header with its items and moves settlements through
draft -> finalized -> paid without touching the amounts.
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.constants import EVENT_SETTLEMENT_GENERATED
from ..core.enums import (
    AttendanceStatus,
    PriceSource,
    RegistrationStatus,
    SessionStatus,
    SettlementStatus,
)
from ..core.exceptions import (
    InvalidStateTransition,
    MissingPricingError,
    NotFoundException,
    ValidationException,
)
from ..models.class_schedule import ClassOccurrence, ClassRegistration
from ..models.session import IndividualSession
from ..models.settlement import Settlement
from ..models.staff import StaffMember
from ..repositories import RepositoryFactory
from ..schemas.pricing import PriceQuote
from ..schemas.settlement import SettlementCalculation, SettlementLine, SettlementPolicy
from .base import BaseService
from .notification_service import NotificationDispatcher, NotificationService
from .price_resolver import PriceResolver

logger = logging.getLogger(__name__)

LATE_CANCELLATION_STATUS = "late_cancellation"


class SettlementCalculator(BaseService):
    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        price_resolver: Optional[PriceResolver] = None,
    ):
        super().__init__(db, config)
        self.price_resolver = price_resolver or PriceResolver(db, config=self.settings)
        self.session_repository = RepositoryFactory.create_session_repository(db)
        self.occurrence_repository = RepositoryFactory.create_occurrence_repository(db)

    @staticmethod
    def _apply_policy(quote: PriceQuote, status: str, policy: SettlementPolicy) -> PriceQuote:
        """Zero out the fee parts a no-show is not billed for."""
        if status != AttendanceStatus.NO_SHOW.value:
            return quote
        return quote.model_copy(
            update={
                "entry_fee": quote.entry_fee if policy.bill_no_show_entry_fee else 0,
                "trainer_fee": quote.trainer_fee if policy.bill_no_show_trainer_fee else 0,
            }
        )

    def _billable_attendance(self, status: Optional[str], policy: SettlementPolicy) -> bool:
        if status == AttendanceStatus.ATTENDED.value:
            return True
        return status == AttendanceStatus.NO_SHOW.value and policy.bills_no_shows

    # Individual sessions

    def _session_quote(self, session: IndividualSession) -> Optional[PriceQuote]:
        if session.entry_fee is not None or session.trainer_fee is not None:
            return PriceQuote(
                entry_fee=session.entry_fee or 0,
                trainer_fee=session.trainer_fee or 0,
                currency=session.currency or self.settings.default_currency,
                source=PriceSource(session.price_source)
                if session.price_source
                else PriceSource.SERVICE_TYPE_DEFAULT,
            )
        if session.service_type_id is None or session.client_id is None:
            return None
        try:
            return self.price_resolver.resolve_for_client(
                session.client_id, session.service_type_id, session.starts_at
            )
        except MissingPricingError as e:
            self.logger.warning(f"Skipping session {session.id} in settlement: {e.message}")
            return None

    def _session_lines(
        self, session: IndividualSession, policy: SettlementPolicy
    ) -> List[SettlementLine]:
        if session.is_block or not self._billable_attendance(session.attendance_status, policy):
            return []

        lines: List[SettlementLine] = []
        quote = self._session_quote(session)
        if quote is not None:
            quote = self._apply_policy(quote, session.attendance_status, policy)
            lines.append(
                SettlementLine(
                    source_type="individual",
                    session_id=session.id,
                    client_id=session.client_id,
                    entry_fee=quote.entry_fee,
                    trainer_fee=quote.trainer_fee,
                    currency=quote.currency,
                    status=session.attendance_status,
                    price_source=quote.source,
                    starts_at=session.starts_at,
                )
            )

        for guest in session.guests:
            status = guest.attendance_status or session.attendance_status
            if not self._billable_attendance(status, policy):
                continue
            if guest.entry_fee is None and guest.trainer_fee is None:
                self.logger.warning(
                    f"Skipping unpriced guest {guest.id} on session {session.id} in settlement"
                )
                continue
            per_head = PriceQuote(
                entry_fee=guest.entry_fee or 0,
                trainer_fee=guest.trainer_fee or 0,
                currency=guest.currency or self.settings.default_currency,
                source=PriceSource(guest.price_source)
                if guest.price_source
                else PriceSource.SERVICE_TYPE_DEFAULT,
            )
            total = self._apply_policy(per_head.scaled(guest.quantity), status, policy)
            lines.append(
                SettlementLine(
                    source_type="individual",
                    session_id=session.id,
                    client_id=guest.client_id,
                    additional_guest_id=guest.id,
                    quantity=guest.quantity,
                    entry_fee=total.entry_fee,
                    trainer_fee=total.trainer_fee,
                    currency=total.currency,
                    status=status,
                    price_source=total.source,
                    starts_at=session.starts_at,
                )
            )
        return lines

    # Classes

    def _registration_status(
        self,
        registration: ClassRegistration,
        occurrence: ClassOccurrence,
        policy: SettlementPolicy,
    ) -> Optional[str]:
        """Settlement status of a registration, or None when it is not billed."""
        status = registration.status
        if status == RegistrationStatus.ATTENDED.value:
            return status
        if status == RegistrationStatus.NO_SHOW.value and policy.bills_no_shows:
            return status
        if (
            status == RegistrationStatus.CANCELLED.value
            and policy.bill_late_cancellation
            and registration.cancelled_at is not None
            and occurrence.starts_at - registration.cancelled_at
            < timedelta(hours=policy.late_cancellation_hours)
        ):
            return LATE_CANCELLATION_STATUS
        return None

    def _class_quote(
        self, registration: ClassRegistration, occurrence: ClassOccurrence
    ) -> Optional[PriceQuote]:
        if occurrence.entry_fee is not None or occurrence.trainer_fee is not None:
            return PriceQuote(
                entry_fee=occurrence.entry_fee or 0,
                trainer_fee=occurrence.trainer_fee or 0,
                currency=occurrence.currency or self.settings.default_currency,
                source=PriceSource.OCCURRENCE_CAPTURED,
            )
        try:
            return self.price_resolver.resolve_for_class(
                registration.client_id, occurrence, occurrence.starts_at
            )
        except MissingPricingError as e:
            self.logger.warning(
                f"Skipping registration {registration.id} in settlement: {e.message}",
                extra={"details": e.details},
            )
            return None

    def _occurrence_lines(
        self, occurrence: ClassOccurrence, policy: SettlementPolicy
    ) -> List[SettlementLine]:
        lines: List[SettlementLine] = []
        for registration in sorted(occurrence.registrations, key=lambda r: r.id):
            status = self._registration_status(registration, occurrence, policy)
            if status is None:
                continue
            quote = self._class_quote(registration, occurrence)
            if quote is None:
                continue
            quote = self._apply_policy(quote, status, policy)
            lines.append(
                SettlementLine(
                    source_type="class",
                    class_occurrence_id=occurrence.id,
                    client_id=registration.client_id,
                    registration_id=registration.id,
                    entry_fee=quote.entry_fee,
                    trainer_fee=quote.trainer_fee,
                    currency=quote.currency,
                    status=status,
                    price_source=quote.source,
                    starts_at=occurrence.starts_at,
                )
            )
        return lines

    @BaseService.measure_operation("calculate_settlement")
    def calculate(
        self,
        staff_id: int,
        period_start: datetime,
        period_end: datetime,
        policy: Optional[SettlementPolicy] = None,
    ) -> SettlementCalculation:
        """
        Aggregate a trainer's billable participants over an inclusive period.

        Args:
            staff_id: Trainer being settled
            period_start: First moment included
            period_end: Last moment included
            policy: No-show and late cancellation billing; from settings when omitted

        Returns:
            Lines for sessions first, then classes, each in start order
        """
        if period_end < period_start:
            raise ValidationException(
                "Settlement period ends before it starts",
                code="INVALID_PERIOD",
                details={"period_start": period_start.isoformat(), "period_end": period_end.isoformat()},
            )
        policy = policy or SettlementPolicy.from_settings(self.settings)

        items: List[SettlementLine] = []
        sessions = self.session_repository.get_for_staff_in_period(
            staff_id,
            period_start,
            period_end,
            statuses=[SessionStatus.COMPLETED.value, SessionStatus.NO_SHOW.value],
        )
        for session in sessions:
            items.extend(self._session_lines(session, policy))

        for occurrence in self.occurrence_repository.get_for_trainer_in_period(
            staff_id, period_start, period_end
        ):
            items.extend(self._occurrence_lines(occurrence, policy))

        calculation = SettlementCalculation(
            trainer_id=staff_id,
            period_start=period_start,
            period_end=period_end,
            items=items,
            currency=self.settings.default_currency,
        )
        self.logger.info(
            f"Settlement for staff {staff_id}: {len(items)} item(s), "
            f"trainer fee {calculation.total_trainer_fee} {calculation.currency}"
        )
        return calculation


class SettlementService(BaseService):
    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        calculator: Optional[SettlementCalculator] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        super().__init__(db, config)
        self.calculator = calculator or SettlementCalculator(db, config=self.settings)
        self.repository = RepositoryFactory.create_settlement_repository(db)
        self.staff_repository = RepositoryFactory.create_base_repository(db, StaffMember)
        self.notifications = NotificationService(dispatcher)

    @BaseService.measure_operation("generate_settlement")
    def generate(
        self,
        staff_id: int,
        period_start: datetime,
        period_end: datetime,
        created_by: Optional[int] = None,
        notes: Optional[str] = None,
        policy: Optional[SettlementPolicy] = None,
    ) -> Settlement:
        """
        Calculate and store a draft settlement.

        Header and items are written in one transaction. Overlapping periods
        for the same trainer are allowed.

        Raises:
            NotFoundException: If the trainer does not exist
        """
        with self.transaction():
            if self.staff_repository.get_by_id(staff_id, load_relationships=False) is None:
                raise NotFoundException(f"Staff member {staff_id} not found")

            calculation = self.calculator.calculate(staff_id, period_start, period_end, policy)
            header = {
                "trainer_id": staff_id,
                "period_start": period_start,
                "period_end": period_end,
                "total_entry_fee": calculation.total_entry_fee,
                "total_trainer_fee": calculation.total_trainer_fee,
                "currency": calculation.currency,
                "status": SettlementStatus.DRAFT.value,
                "notes": notes,
                "created_by": created_by,
            }
            items = [
                {
                    **line.model_dump(exclude={"starts_at", "price_source"}),
                    "price_source": line.price_source.value if line.price_source else None,
                }
                for line in calculation.items
            ]
            settlement = self.repository.create_with_items(header, items)
            self.log_operation(
                "generate_settlement",
                settlement_id=settlement.id,
                trainer_id=staff_id,
                items=len(items),
                total_trainer_fee=calculation.total_trainer_fee,
            )

        self.notifications.notify(EVENT_SETTLEMENT_GENERATED, settlement)
        return settlement

    @BaseService.measure_operation("update_settlement_status")
    def update_status(
        self,
        settlement_id: int,
        status: Union[SettlementStatus, str],
        notes: Optional[str] = None,
    ) -> Settlement:
        """
        Move a settlement one step forward (draft -> finalized -> paid).

        Totals and items are never modified.

        Raises:
            NotFoundException: If the settlement does not exist
            InvalidStateTransition: For backward, repeated or skipped steps
        """
        target = SettlementStatus(status)
        with self.transaction():
            settlement = self.repository.get_for_update(settlement_id)
            if settlement is None:
                raise NotFoundException(f"Settlement {settlement_id} not found")

            current = SettlementStatus(settlement.status)
            if not current.can_transition_to(target):
                raise InvalidStateTransition("settlement", settlement_id, current.value, target.value)

            settlement.status = target.value
            if notes is not None:
                settlement.notes = notes
            self.repository.flush()
            self.log_operation(
                "update_settlement_status",
                settlement_id=settlement_id,
                from_status=current.value,
                to_status=target.value,
            )
        return settlement

    def get_settlement(self, settlement_id: int) -> Settlement:
        settlement = self.repository.get_by_id(settlement_id)
        if settlement is None:
            raise NotFoundException(f"Settlement {settlement_id} not found")
        return settlement

    def list_settlements(
        self,
        trainer_id: Optional[int] = None,
        status: Optional[Union[SettlementStatus, str]] = None,
    ) -> List[Settlement]:
        status_value = SettlementStatus(status).value if status is not None else None
        return self.repository.list_settlements(trainer_id=trainer_id, status=status_value)
