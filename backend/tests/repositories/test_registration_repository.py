# backend/tests/repositories/test_registration_repository.py
from datetime import timedelta
from unittest.mock import MagicMock

from conftest import at
import pytest
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from studio_engine.core.enums import RegistrationStatus
from studio_engine.core.exceptions import RepositoryException
from studio_engine.models import ClassRegistration
from studio_engine.repositories import RepositoryFactory


def _add(db, occurrence, client, status, booked_at=None):
    registration = ClassRegistration(
        occurrence_id=occurrence.id,
        client_id=client.id,
        status=status,
        booked_at=booked_at or at(9),
    )
    db.add(registration)
    db.flush()
    return registration


class TestRegistrationRepository:
    def test_count_confirmed_ignores_waitlist_and_cancelled(self, db, build, room, trainer):
        occurrence = build.occurrence(room, trainer)
        repo = RepositoryFactory.create_registration_repository(db)
        _add(db, occurrence, build.client(), "booked")
        _add(db, occurrence, build.client(), "attended")
        _add(db, occurrence, build.client(), "waitlist")
        _add(db, occurrence, build.client(), "cancelled")
        _add(db, occurrence, build.client(), "no_show")

        assert repo.count_confirmed(occurrence.id) == 2

    def test_next_waitlisted_is_fifo(self, db, build, room, trainer):
        occurrence = build.occurrence(room, trainer)
        repo = RepositoryFactory.create_registration_repository(db)
        _add(db, occurrence, build.client(), "waitlist", booked_at=at(11))
        first_tie = _add(db, occurrence, build.client(), "waitlist", booked_at=at(10))
        second_tie = _add(db, occurrence, build.client(), "waitlist", booked_at=at(10))

        assert repo.next_waitlisted(occurrence.id).id == first_tie.id
        first_tie.status = "cancelled"
        db.flush()
        assert repo.next_waitlisted(occurrence.id).id == second_tie.id

    def test_next_waitlisted_empty(self, db, build, room, trainer):
        occurrence = build.occurrence(room, trainer)
        repo = RepositoryFactory.create_registration_repository(db)

        assert repo.next_waitlisted(occurrence.id) is None

    def test_find_active_skips_closed_registrations(self, db, build, room, trainer):
        occurrence = build.occurrence(room, trainer)
        client = build.client()
        repo = RepositoryFactory.create_registration_repository(db)
        _add(db, occurrence, client, "cancelled")

        assert repo.find_active(occurrence.id, client.id) is None
        active = _add(db, occurrence, client, "waitlist")
        assert repo.find_active(occurrence.id, client.id).id == active.id

    def test_one_active_registration_per_client(self, db, build, room, trainer):
        occurrence = build.occurrence(room, trainer)
        client = build.client()
        _add(db, occurrence, client, "cancelled")
        _add(db, occurrence, client, "cancelled")
        _add(db, occurrence, client, "booked")

        with pytest.raises(IntegrityError):
            _add(db, occurrence, client, "waitlist")
        db.rollback()

    def test_list_for_occurrence_filters_and_orders(self, db, build, room, trainer):
        occurrence = build.occurrence(room, trainer)
        repo = RepositoryFactory.create_registration_repository(db)
        second = _add(db, occurrence, build.client(), "booked", booked_at=at(9) + timedelta(minutes=5))
        first = _add(db, occurrence, build.client(), "booked", booked_at=at(9))
        _add(db, occurrence, build.client(), "cancelled")

        everyone = repo.list_for_occurrence(occurrence.id)
        booked = repo.list_for_occurrence(occurrence.id, statuses=[RegistrationStatus.BOOKED])

        assert len(everyone) == 3
        assert [r.id for r in booked] == [first.id, second.id]
        assert booked[0].client is not None

    def test_database_errors_are_wrapped(self):
        db = MagicMock()
        db.query.side_effect = SQLAlchemyError("boom")
        repo = RepositoryFactory.create_registration_repository(db)

        with pytest.raises(RepositoryException):
            repo.count_confirmed(1)
        with pytest.raises(RepositoryException):
            repo.next_waitlisted(1)
        with pytest.raises(RepositoryException):
            repo.list_for_occurrence(1)
