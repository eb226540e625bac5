# backend/tests/integration/services/test_conflict_detector.py
"""
Integration tests for ConflictDetector against a real database.

Covers room exclusivity, staff exclusivity across both booking tables,
self-exclusion when moving and the cancelled-booking filter.
"""

from datetime import date, timedelta

from conftest import at
import pytest

from studio_engine.core.enums import BookingKind
from studio_engine.core.exceptions import ConflictError
from studio_engine.core.time_window import TimeWindow
from studio_engine.services.conflict_detector import ConflictDetector


@pytest.fixture
def detector(db, test_settings) -> ConflictDetector:
    return ConflictDetector(db, config=test_settings)


class TestRoomExclusivity:
    def test_overlapping_session_in_same_room(self, db, build, room, trainer, detector):
        client = build.client("Jane Doe")
        existing = build.session(room, trainer, at(10), minutes=60, client=client)

        conflicts = detector.find_conflicts(room.id, TimeWindow.from_duration(at(10, 30), 60))

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.kind == BookingKind.INDIVIDUAL
        assert conflict.id == existing.id
        assert conflict.label == "Jane Doe"
        assert conflict.scope == "room"
        assert conflict.overlap_minutes == 30

    def test_back_to_back_is_allowed(self, db, build, room, trainer, detector):
        build.session(room, trainer, at(10), minutes=60, client=build.client())
        assert detector.find_conflicts(room.id, TimeWindow.from_duration(at(11), 60)) == []

    def test_other_room_and_other_staff_do_not_conflict(self, db, build, room, trainer, detector):
        other_room = build.room("Studio B")
        build.session(other_room, trainer, at(10), client=build.client())
        other_staff = build.staff()

        window = TimeWindow.from_duration(at(10), 60)
        assert detector.find_conflicts(room.id, window, staff_id=other_staff.id) == []

    def test_class_occurrence_blocks_the_room(self, db, build, room, trainer, detector):
        occurrence = build.occurrence(room, trainer, starts_at=at(18), title="Yoga")

        conflicts = detector.find_conflicts(room.id, TimeWindow.from_duration(at(18, 30), 60))

        assert [(c.kind, c.id, c.label) for c in conflicts] == [
            (BookingKind.CLASS, occurrence.id, "Yoga")
        ]

    def test_block_session_label(self, db, build, room, trainer, detector):
        build.session(room, trainer, at(8), session_type="BLOCK")
        conflicts = detector.find_conflicts(room.id, TimeWindow.from_duration(at(8), 30))
        assert conflicts[0].label == "Block"

    def test_cancelled_bookings_are_ignored(self, db, build, room, trainer, detector):
        build.session(room, trainer, at(10), client=build.client(), status="cancelled")
        build.occurrence(room, trainer, starts_at=at(10), status="cancelled")
        assert not detector.has_conflict(room.id, TimeWindow.from_duration(at(10), 60))


class TestStaffExclusivity:
    def test_staff_busy_in_another_room_with_a_class(self, db, build, room, trainer, detector):
        other_room = build.room("Studio B")
        occurrence = build.occurrence(other_room, trainer, starts_at=at(10))

        conflicts = detector.find_conflicts(
            room.id, TimeWindow.from_duration(at(10, 15), 30), staff_id=trainer.id
        )

        assert len(conflicts) == 1
        assert conflicts[0].id == occurrence.id
        assert conflicts[0].scope == "staff"

    def test_room_and_staff_hit_reported_once(self, db, build, room, trainer, detector):
        build.session(room, trainer, at(10), client=build.client())

        conflicts = detector.find_conflicts(
            room.id, TimeWindow.from_duration(at(10), 60), staff_id=trainer.id
        )

        assert len(conflicts) == 1
        assert conflicts[0].scope == "room+staff"

    def test_conflicts_from_both_tables_sorted_by_start(self, db, build, room, trainer, detector):
        other_room = build.room("Studio B")
        later = build.occurrence(other_room, trainer, starts_at=at(10, 30))
        earlier = build.session(room, build.staff(), at(9, 30), client=build.client())

        conflicts = detector.find_conflicts(
            room.id, TimeWindow(at(9), at(12)), staff_id=trainer.id
        )

        assert [(c.kind, c.id) for c in conflicts] == [
            (BookingKind.INDIVIDUAL, earlier.id),
            (BookingKind.CLASS, later.id),
        ]


class TestSelfExclusion:
    def test_moving_session_ignores_itself(self, db, build, room, trainer, detector):
        session = build.session(room, trainer, at(10), client=build.client())

        window = TimeWindow.from_duration(at(10, 30), 60)
        assert detector.has_conflict(room.id, window, staff_id=trainer.id)
        assert not detector.has_conflict(
            room.id, window, staff_id=trainer.id, exclude_session_id=session.id
        )

    def test_moving_occurrence_ignores_itself(self, db, build, room, trainer, detector):
        occurrence = build.occurrence(room, trainer, starts_at=at(18))
        window = occurrence.window.shifted(timedelta(minutes=15))
        assert detector.find_conflicts(
            room.id, window, staff_id=trainer.id, exclude_occurrence_id=occurrence.id
        ) == []


class TestAssertAndDayView:
    def test_assert_no_conflict_raises_with_entries(self, db, build, room, trainer, detector):
        session = build.session(room, trainer, at(10), client=build.client())

        with pytest.raises(ConflictError) as exc_info:
            detector.assert_no_conflict(room.id, TimeWindow.from_duration(at(10, 30), 30))

        assert [c.id for c in exc_info.value.conflicts] == [session.id]

    def test_booked_windows_for_a_day(self, db, build, room, trainer, detector):
        build.occurrence(room, trainer, starts_at=at(18))
        build.session(room, trainer, at(9), client=build.client())
        build.session(room, trainer, at(9, days=1), client=build.client())

        booked = detector.get_booked_windows(room.id, date(2025, 1, 6))

        assert [b.window.start for b in booked] == [at(9), at(18)]
