# backend/studio_engine/services/scheduling_service.py
"""
Scheduling Service for the studio booking engine.

Creates, moves and cancels individual sessions and class occurrences, one
at a time or as weekly batches. Every write runs the conflict detector in
the same transaction as the insert unless the caller explicitly forces an
override.

Recurring batches commit each date on its own. A conflicting date is
skipped and reported, except the very first one: if the first date already
collides the request is rejected outright.
"""

from datetime import date, datetime, timedelta
import logging
from typing import Any, Callable, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.constants import (
    EVENT_CLASS_RESCHEDULED,
    EVENT_CLASS_SCHEDULED,
    EVENT_SESSION_CANCELLED,
    EVENT_SESSION_CREATED,
    EVENT_SESSION_RESCHEDULED,
    EVENT_WAITLIST_PROMOTED,
)
from ..core.enums import GuestKind, RegistrationStatus, SessionStatus, SessionType
from ..core.exceptions import (
    CapacityBelowBookedError,
    ConflictError,
    InvalidStateTransition,
    NotFoundException,
    RecurrenceFailure,
    ValidationException,
)
from ..core.time_window import TimeWindow
from ..core.timezone_utils import get_studio_now
from ..models.class_schedule import ClassOccurrence, ClassRegistration, ClassTemplate
from ..models.client import Client
from ..models.room import Room
from ..models.session import IndividualSession
from ..models.staff import StaffMember
from ..repositories import RepositoryFactory
from ..schemas.pricing import GuestAssignment, PriceQuote
from ..schemas.scheduling import (
    OccurrenceCreate,
    OccurrenceUpdate,
    RecurrenceResult,
    RecurringOccurrenceCreate,
    RecurringSessionCreate,
    SessionCreate,
    SessionUpdate,
    SkippedDate,
)
from .base import BaseService
from .booking_ledger import BookingLedger
from .conflict_detector import ConflictDetector
from .notification_service import NotificationDispatcher, NotificationService, PendingNotification
from .price_resolver import PriceResolver
from .recurrence import RecurrenceExpander

logger = logging.getLogger(__name__)


class SchedulingService(BaseService):
    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        conflict_detector: Optional[ConflictDetector] = None,
        price_resolver: Optional[PriceResolver] = None,
        expander: Optional[RecurrenceExpander] = None,
        booking_ledger: Optional[BookingLedger] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        super().__init__(db, config)
        self.conflict_detector = conflict_detector or ConflictDetector(db, config=self.settings)
        self.price_resolver = price_resolver or PriceResolver(db, config=self.settings)
        self.expander = expander or RecurrenceExpander()
        self.notifications = NotificationService(dispatcher)
        self.booking_ledger = booking_ledger or BookingLedger(
            db, config=self.settings, dispatcher=dispatcher
        )

        self.session_repository = RepositoryFactory.create_session_repository(db)
        self.occurrence_repository = RepositoryFactory.create_occurrence_repository(db)
        self.registration_repository = RepositoryFactory.create_registration_repository(db)
        self.client_repository = RepositoryFactory.create_client_repository(db)
        self.room_repository = RepositoryFactory.create_base_repository(db, Room)
        self.staff_repository = RepositoryFactory.create_base_repository(db, StaffMember)
        self.template_repository = RepositoryFactory.create_base_repository(db, ClassTemplate)

    # Lookups

    def _require(self, repository: Any, entity_id: int, label: str) -> Any:
        entity = repository.get_by_id(entity_id, load_relationships=False)
        if entity is None:
            raise NotFoundException(f"{label} {entity_id} not found", details={"id": entity_id})
        return entity

    def _require_session(self, session_id: int) -> IndividualSession:
        return self._require(self.session_repository, session_id, "Session")

    def _check_slot(
        self,
        room_id: int,
        window: TimeWindow,
        staff_id: int,
        force_override: bool,
        exclude_session_id: Optional[int] = None,
        exclude_occurrence_id: Optional[int] = None,
    ) -> None:
        if force_override:
            conflicts = self.conflict_detector.find_conflicts(
                room_id,
                window,
                staff_id=staff_id,
                exclude_session_id=exclude_session_id,
                exclude_occurrence_id=exclude_occurrence_id,
            )
            if conflicts:
                described = "; ".join(c.describe() for c in conflicts)
                self.logger.warning(
                    f"Conflict override: booking room {room_id} / staff {staff_id} at {window} "
                    f"despite {described}"
                )
            return
        self.conflict_detector.assert_no_conflict(
            room_id,
            window,
            staff_id=staff_id,
            exclude_session_id=exclude_session_id,
            exclude_occurrence_id=exclude_occurrence_id,
        )

    # Pricing

    def _price_main_client(
        self,
        session_type: SessionType,
        client_id: Optional[int],
        service_type_id: Optional[int],
        at: datetime,
    ) -> Optional[PriceQuote]:
        if session_type != SessionType.INDIVIDUAL or client_id is None or service_type_id is None:
            return None
        client: Client = self._require(self.client_repository, client_id, "Client")
        if client.is_technical_guest:
            return self.price_resolver.resolve_for_technical_guest(service_type_id)
        return self.price_resolver.resolve_for_client(client_id, service_type_id, at)

    @staticmethod
    def _price_fields(quote: Optional[PriceQuote]) -> dict:
        if quote is None:
            return {"entry_fee": None, "trainer_fee": None, "currency": None, "price_source": None}
        return {
            "entry_fee": quote.entry_fee,
            "trainer_fee": quote.trainer_fee,
            "currency": quote.currency,
            "price_source": quote.source.value,
        }

    def _technical_guest_id(self) -> int:
        guest = self.client_repository.get_technical_guest(self.settings.technical_guest_client_id)
        if guest is None:
            raise ValidationException(
                "No technical guest client is configured",
                code="TECHNICAL_GUEST_MISSING",
            )
        return guest.id

    def _attach_guests(
        self,
        session: IndividualSession,
        assignments: Iterable[GuestAssignment],
    ) -> None:
        """
        Add guests to a session.

        Assigning the same client twice raises the quantity on the existing
        row instead of adding a second one.
        """
        for assignment in assignments:
            if assignment.kind == GuestKind.TECHNICAL_GUEST:
                client_id = self._technical_guest_id()
            else:
                client_id = self._require(self.client_repository, assignment.client_id, "Client").id

            existing = self.session_repository.find_guest(session.id, client_id)
            if existing is not None:
                existing.quantity += assignment.quantity
                self.session_repository.flush()
                continue

            quote = None
            if session.service_type_id is not None:
                quote = self.price_resolver.resolve_for_guest(
                    assignment, session.service_type_id, session.starts_at
                )
            self.session_repository.add_guest(
                session_id=session.id,
                client_id=client_id,
                guest_index=self.session_repository.next_guest_index(session.id),
                quantity=assignment.quantity,
                **self._price_fields(quote),
            )
        self.db.refresh(session, attribute_names=["guests"])

    # Individual sessions

    def _insert_session(
        self,
        session_type: SessionType,
        staff_id: int,
        room_id: int,
        client_id: Optional[int],
        window: TimeWindow,
        service_type_id: Optional[int],
        notes: Optional[str],
        force_override: bool,
    ) -> IndividualSession:
        self._require(self.room_repository, room_id, "Room")
        self._require(self.staff_repository, staff_id, "Staff member")
        self._check_slot(room_id, window, staff_id, force_override)

        quote = self._price_main_client(session_type, client_id, service_type_id, window.start)
        return self.session_repository.create(
            session_type=session_type.value,
            staff_id=staff_id,
            room_id=room_id,
            client_id=client_id,
            starts_at=window.start,
            ends_at=window.end,
            status=SessionStatus.SCHEDULED.value,
            service_type_id=service_type_id,
            notes=notes,
            **self._price_fields(quote),
        )

    @BaseService.measure_operation("create_session")
    def create_session(
        self, data: SessionCreate, force_override: bool = False
    ) -> IndividualSession:
        """
        Book an individual or block session.

        Args:
            data: Session details including optional guests
            force_override: Insert even if the slot is taken (logged)

        Returns:
            The new session with captured prices

        Raises:
            ConflictError: If the room or staff member is taken and not forced
            MissingPricingError: If the service type does not exist
        """
        with self.transaction():
            session = self._insert_session(
                data.session_type,
                data.staff_id,
                data.room_id,
                data.client_id,
                TimeWindow(data.starts_at, data.ends_at),
                data.service_type_id,
                data.notes,
                force_override,
            )
            self._attach_guests(session, data.guests)
            self.log_operation(
                "create_session",
                session_id=session.id,
                room_id=session.room_id,
                staff_id=session.staff_id,
                guests=len(data.guests),
                forced=force_override,
            )

        self.notifications.notify(EVENT_SESSION_CREATED, session)
        return session

    @BaseService.measure_operation("move_session")
    def move_session(
        self, session_id: int, data: SessionUpdate, force_override: bool = False
    ) -> IndividualSession:
        """
        Move or edit a session.

        Changing only ``starts_at`` keeps the duration. The main client's price
        is re-resolved when the client or service type changes.

        Raises:
            InvalidStateTransition: If the session is cancelled
            ConflictError: If the new slot is taken and not forced
        """
        with self.transaction():
            session = self._require_session(session_id)
            if session.is_cancelled:
                raise InvalidStateTransition(
                    "session", session_id, session.status, "rescheduled"
                )

            starts_at = data.starts_at or session.starts_at
            if data.ends_at is not None:
                ends_at = data.ends_at
            elif data.starts_at is not None:
                ends_at = session.window.shifted(starts_at - session.starts_at).end
            else:
                ends_at = session.ends_at
            window = TimeWindow(starts_at, ends_at)
            room_id = data.room_id or session.room_id
            staff_id = data.staff_id or session.staff_id

            if room_id != session.room_id:
                self._require(self.room_repository, room_id, "Room")
            if staff_id != session.staff_id:
                self._require(self.staff_repository, staff_id, "Staff member")
            self._check_slot(
                room_id, window, staff_id, force_override, exclude_session_id=session.id
            )

            client_id = data.client_id if data.client_id is not None else session.client_id
            service_type_id = (
                data.service_type_id
                if data.service_type_id is not None
                else session.service_type_id
            )
            if client_id != session.client_id or service_type_id != session.service_type_id:
                quote = self._price_main_client(
                    SessionType(session.session_type), client_id, service_type_id, starts_at
                )
                for field, value in self._price_fields(quote).items():
                    setattr(session, field, value)

            session.starts_at = window.start
            session.ends_at = window.end
            session.room_id = room_id
            session.staff_id = staff_id
            session.client_id = client_id
            session.service_type_id = service_type_id
            if data.notes is not None:
                session.notes = data.notes
            self.session_repository.flush()

            self.log_operation(
                "move_session", session_id=session_id, room_id=room_id, staff_id=staff_id
            )

        self.notifications.notify(EVENT_SESSION_RESCHEDULED, session)
        return session

    @BaseService.measure_operation("cancel_session")
    def cancel_session(self, session_id: int, now: Optional[datetime] = None) -> IndividualSession:
        with self.transaction():
            session = self._require_session(session_id)
            if session.is_cancelled:
                raise InvalidStateTransition(
                    "session", session_id, session.status, SessionStatus.CANCELLED.value
                )
            session.cancel(now or get_studio_now())
            self.session_repository.flush()

        self.notifications.notify(EVENT_SESSION_CANCELLED, session)
        return session

    @BaseService.measure_operation("mark_session_attendance")
    def mark_session_attendance(
        self, session_id: int, attended: bool, now: Optional[datetime] = None
    ) -> IndividualSession:
        """
        Record attendance for the session and every guest on it.

        Raises:
            InvalidStateTransition: If the session is not scheduled
        """
        moment = now or get_studio_now()
        with self.transaction():
            session = self._require_session(session_id)
            if session.status != SessionStatus.SCHEDULED.value:
                target = SessionStatus.COMPLETED if attended else SessionStatus.NO_SHOW
                raise InvalidStateTransition("session", session_id, session.status, target.value)

            session.mark_attendance(attended, moment)
            for guest in session.guests:
                guest.attendance_status = session.attendance_status
                guest.checked_in_at = session.checked_in_at
            self.session_repository.flush()

        return session

    # Class occurrences

    def _insert_occurrence(
        self,
        template: Optional[ClassTemplate],
        title: Optional[str],
        room_id: int,
        trainer_id: int,
        window: TimeWindow,
        capacity: int,
        credits_required: Optional[int],
        force_override: bool,
    ) -> ClassOccurrence:
        self._require(self.room_repository, room_id, "Room")
        self._require(self.staff_repository, trainer_id, "Staff member")
        self._check_slot(room_id, window, trainer_id, force_override)
        return self.occurrence_repository.create(
            template_id=template.id if template is not None else None,
            title=title,
            room_id=room_id,
            trainer_id=trainer_id,
            starts_at=window.start,
            ends_at=window.end,
            capacity=capacity,
            credits_required=credits_required,
        )

    @staticmethod
    def _pick(value: Any, template: Optional[ClassTemplate], attribute: str) -> Any:
        if value is not None:
            return value
        return getattr(template, attribute) if template is not None else None

    def _load_template(self, template_id: Optional[int]) -> Optional[ClassTemplate]:
        if template_id is None:
            return None
        return self._require(self.template_repository, template_id, "Class template")

    @BaseService.measure_operation("create_occurrence")
    def create_occurrence(
        self, data: OccurrenceCreate, force_override: bool = False
    ) -> ClassOccurrence:
        """
        Schedule one class occurrence; template values fill unset fields.

        Raises:
            ConflictError: If the room or trainer is taken and not forced
        """
        with self.transaction():
            template = self._load_template(data.template_id)
            room_id = self._pick(data.room_id, template, "default_room_id")
            trainer_id = self._pick(data.trainer_id, template, "default_trainer_id")
            capacity = self._pick(data.capacity, template, "default_capacity")
            if data.ends_at is not None:
                ends_at = data.ends_at
            else:
                ends_at = data.starts_at + timedelta(minutes=template.duration_minutes)
            if room_id is None or trainer_id is None:
                raise ValidationException(
                    "Room and trainer are required",
                    details={"template_id": data.template_id},
                )

            occurrence = self._insert_occurrence(
                template,
                data.title,
                room_id,
                trainer_id,
                TimeWindow(data.starts_at, ends_at),
                capacity,
                data.credits_required,
                force_override,
            )
            self.log_operation(
                "create_occurrence",
                occurrence_id=occurrence.id,
                room_id=room_id,
                trainer_id=trainer_id,
                forced=force_override,
            )

        self.notifications.notify(EVENT_CLASS_SCHEDULED, occurrence)
        return occurrence

    @BaseService.measure_operation("move_occurrence")
    def move_occurrence(
        self,
        occurrence_id: int,
        data: OccurrenceUpdate,
        force_override: bool = False,
        now: Optional[datetime] = None,
    ) -> ClassOccurrence:
        """
        Move or edit a class occurrence and tell every registered client.

        Raising the capacity fills the new seats from the waitlist, oldest
        request first, charging each promoted client like a booking.

        Raises:
            InvalidStateTransition: If the occurrence is cancelled
            CapacityBelowBookedError: If the new capacity is below the confirmed seats
            ConflictError: If the new slot is taken and not forced
        """
        moment = now or get_studio_now()
        pending: List[PendingNotification] = []
        promoted: List[ClassRegistration] = []
        with self.transaction():
            occurrence = self.occurrence_repository.lock(occurrence_id)
            if occurrence is None:
                raise NotFoundException(f"Class occurrence {occurrence_id} not found")
            if occurrence.is_cancelled:
                raise InvalidStateTransition(
                    "occurrence", occurrence_id, occurrence.status, "rescheduled"
                )

            starts_at = data.starts_at or occurrence.starts_at
            if data.ends_at is not None:
                ends_at = data.ends_at
            elif data.starts_at is not None:
                ends_at = occurrence.window.shifted(starts_at - occurrence.starts_at).end
            else:
                ends_at = occurrence.ends_at
            window = TimeWindow(starts_at, ends_at)
            room_id = data.room_id or occurrence.room_id
            trainer_id = data.trainer_id or occurrence.trainer_id

            if data.capacity is not None:
                confirmed = self.registration_repository.count_confirmed(occurrence_id)
                if data.capacity < confirmed:
                    raise CapacityBelowBookedError(occurrence_id, data.capacity, confirmed)

            self._check_slot(
                room_id, window, trainer_id, force_override, exclude_occurrence_id=occurrence.id
            )

            occurrence.starts_at = window.start
            occurrence.ends_at = window.end
            occurrence.room_id = room_id
            occurrence.trainer_id = trainer_id
            if data.capacity is not None:
                occurrence.capacity = data.capacity
            if data.title is not None:
                occurrence.title = data.title
            self.occurrence_repository.flush()

            while True:
                registration = self.booking_ledger._promote_locked(occurrence, moment)
                if registration is None:
                    break
                promoted.append(registration)

            for registration in self.registration_repository.list_for_occurrence(
                occurrence_id, RegistrationStatus.active()
            ):
                pending.append((EVENT_CLASS_RESCHEDULED, registration))
            pending.extend((EVENT_WAITLIST_PROMOTED, registration) for registration in promoted)

            self.log_operation(
                "move_occurrence",
                occurrence_id=occurrence_id,
                room_id=room_id,
                trainer_id=trainer_id,
                capacity=occurrence.capacity,
                promoted=len(promoted),
                notified=len(pending),
            )

        self.notifications.notify_all(pending)
        return occurrence

    # Recurring batches

    def _run_batch(
        self, windows: List[TimeWindow], insert: Callable[[TimeWindow], Any], event: str
    ) -> RecurrenceResult:
        """Insert one record per window, committing and announcing each on its own."""
        created_ids: List[int] = []
        skipped: List[SkippedDate] = []

        for index, window in enumerate(windows):
            try:
                with self.transaction():
                    record = insert(window)
            except ConflictError as exc:
                if index == 0:
                    self.logger.warning(
                        f"Recurring request rejected: first date {window.start.date()} conflicts"
                    )
                    raise
                skipped.append(SkippedDate(skipped_on=window.start.date(), conflicts=exc.conflicts))
                continue

            created_ids.append(record.id)
            self.notifications.notify(event, record)

        if not created_ids:
            raise RecurrenceFailure([s.skipped_on for s in skipped])

        self.log_operation(
            "recurring_batch", created_count=len(created_ids), skipped_count=len(skipped)
        )
        return RecurrenceResult(created_ids=created_ids, skipped=skipped)

    @BaseService.measure_operation("create_recurring_sessions")
    def create_recurring_sessions(
        self,
        data: RecurringSessionCreate,
        repeat_from: date,
        repeat_until: date,
        skip_dates: Iterable[date] = (),
        force_override: bool = False,
    ) -> RecurrenceResult:
        """
        Create one session per week between two dates.

        Raises:
            ConflictError: If the first date conflicts
            RecurrenceFailure: If no session could be created
        """
        windows = self.expander.build_windows(
            data.start_time,
            data.duration_minutes,
            data.weekday,
            repeat_from,
            repeat_until,
            skip_dates,
        )

        def insert(window: TimeWindow) -> IndividualSession:
            return self._insert_session(
                data.session_type,
                data.staff_id,
                data.room_id,
                data.client_id,
                window,
                data.service_type_id,
                data.notes,
                force_override,
            )

        return self._run_batch(windows, insert, EVENT_SESSION_CREATED)

    @BaseService.measure_operation("create_recurring_occurrences")
    def create_recurring_occurrences(
        self,
        data: RecurringOccurrenceCreate,
        repeat_from: date,
        repeat_until: date,
        skip_dates: Iterable[date] = (),
        force_override: bool = False,
    ) -> RecurrenceResult:
        """
        Create one class occurrence per week between two dates.

        Unset fields come from the template (weekday, start time, duration,
        room, trainer, capacity).

        Raises:
            ValidationException: If the rule is incomplete
            ConflictError: If the first date conflicts
            RecurrenceFailure: If no occurrence could be created
        """
        template = self._load_template(data.template_id)
        weekday = self._pick(data.weekday, template, "weekday")
        start_time = self._pick(data.start_time, template, "start_time")
        duration = self._pick(data.duration_minutes, template, "duration_minutes")
        room_id = self._pick(data.room_id, template, "default_room_id")
        trainer_id = self._pick(data.trainer_id, template, "default_trainer_id")
        capacity = self._pick(data.capacity, template, "default_capacity")

        missing = [
            name
            for name, value in (
                ("weekday", weekday),
                ("start_time", start_time),
                ("duration_minutes", duration),
                ("room_id", room_id),
                ("trainer_id", trainer_id),
                ("capacity", capacity),
            )
            if value is None
        ]
        if missing:
            raise ValidationException(
                f"Recurring class is missing: {', '.join(missing)}",
                details={"missing": missing},
            )

        windows = self.expander.build_windows(
            start_time, duration, weekday, repeat_from, repeat_until, skip_dates
        )

        def insert(window: TimeWindow) -> ClassOccurrence:
            return self._insert_occurrence(
                template,
                data.title,
                room_id,
                trainer_id,
                window,
                capacity,
                data.credits_required,
                force_override,
            )

        return self._run_batch(windows, insert, EVENT_CLASS_SCHEDULED)
