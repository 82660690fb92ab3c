"""Unit tests for participation history, statistics and trends."""

import asyncio
import math
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from services.volunteer_service.errors import (
    EventNotFound,
    HistoryAlreadyExists,
    HistoryNotFound,
    InvalidHistoryUpdate,
    InvalidHoursWorked,
    InvalidRating,
    ParticipationNotEligible,
)
from services.volunteer_service.models import (
    AssignmentStatus,
    AttendanceType,
    EventStatus,
    ParticipationStatus,
    VolunteerHistory,
)
from services.volunteer_service.services import (
    build_monthly_trend,
    compute_volunteer_statistics,
    list_history,
    monthly_trend,
    purge_history,
    record_event_attendance,
    record_no_shows,
    record_participation,
    summarize_history,
    update_history,
)
from services.volunteer_service.services.history import (
    AttendanceEntry,
    round_half_up,
    validate_hours,
    validate_rating,
)
from sqlalchemy import select
from tests.factories import (
    AssignmentFactory,
    EventFactory,
    UserFactory,
    VolunteerHistoryFactory,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _record(status, attendance, hours=0.0, rating=None, when=None):
    return SimpleNamespace(
        status=status,
        attendance=attendance,
        hours_worked=hours,
        performance_rating=rating,
        participation_date=when or datetime(2026, 3, 1, tzinfo=timezone.utc),
    )


async def _setup(db, *, assignment_status, past=False, event_status=None, volunteers=1):
    admin = UserFactory.admin()
    people = [UserFactory.create() for _ in range(volunteers)]
    db.add(admin)
    db.add_all(people)
    await db.commit()

    overrides = {"max_volunteers": 5}
    if event_status:
        overrides["status"] = event_status
    factory = EventFactory.past if past else EventFactory.create
    event = factory(admin.id, **overrides)
    db.add(event)
    await db.commit()

    assignments = [
        AssignmentFactory.create(event.id, person.id, status=assignment_status)
        for person in people
    ]
    db.add_all(assignments)
    await db.commit()
    # Detached copies survive the rollback of a rejected operation
    db.expunge_all()
    return event, people, assignments


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize("hours", [0, 0.5, 8, 24])
def test_hours_within_range(hours):
    assert validate_hours(hours) == float(hours)


@pytest.mark.unit
@pytest.mark.parametrize("hours", [-1, 24.01, math.nan, math.inf, "eight", None, True])
def test_hours_out_of_range(hours):
    with pytest.raises(InvalidHoursWorked):
        validate_hours(hours)


@pytest.mark.unit
def test_rating_accepts_integral_values():
    assert validate_rating(None) is None
    assert validate_rating(1) == 1
    assert validate_rating(4.0) == 4


@pytest.mark.unit
@pytest.mark.parametrize("rating", [0, 6, 3.5, "5", True])
def test_rating_rejects_everything_else(rating):
    with pytest.raises(InvalidRating):
        validate_rating(rating)


# ---------------------------------------------------------------------------
# record_participation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_record_completed_participation(db_session):
    event, (v,), (assignment,) = await _setup(
        db_session, assignment_status=AssignmentStatus.COMPLETED
    )
    admin_id = event.created_by

    record = await record_participation(
        db_session,
        assignment_id=assignment.id,
        attendance="present",
        hours_worked=4.5,
        performance_rating=5,
        feedback="Great energy",
        recorded_by=admin_id,
    )

    assert record.status == ParticipationStatus.COMPLETED
    assert record.attendance == AttendanceType.PRESENT
    assert record.hours_worked == 4.5
    assert record.performance_rating == 5
    assert record.volunteer_id == v.id
    assert record.assignment_id == assignment.id
    assert record.completion_date is not None
    assert record.participation_date == event.start_date
    assert record.recorded_by == admin_id


@pytest.mark.asyncio
@pytest.mark.unit
async def test_second_record_for_same_event_is_rejected(db_session, session_factory):
    _, (v,), (assignment,) = await _setup(
        db_session, assignment_status=AssignmentStatus.COMPLETED
    )
    await record_participation(
        db_session, assignment_id=assignment.id, attendance="present", hours_worked=3
    )

    with pytest.raises(HistoryAlreadyExists):
        await record_participation(
            db_session, assignment_id=assignment.id, attendance="late", hours_worked=2
        )

    async with session_factory() as session:
        rows = (
            await session.execute(
                select(VolunteerHistory).where(VolunteerHistory.volunteer_id == v.id)
            )
        ).scalars().all()
    assert len(rows) == 1
    assert rows[0].hours_worked == 3


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "attendance,expected",
    [
        (AttendanceType.LATE, ParticipationStatus.COMPLETED),
        (AttendanceType.ABSENT, ParticipationStatus.NO_SHOW),
        (AttendanceType.EXCUSED, ParticipationStatus.CANCELLED),
    ],
)
async def test_status_follows_attendance(db_session, attendance, expected):
    _, _, (assignment,) = await _setup(
        db_session, assignment_status=AssignmentStatus.COMPLETED
    )
    record = await record_participation(
        db_session, assignment_id=assignment.id, attendance=attendance, hours_worked=0
    )
    assert record.status == expected


@pytest.mark.asyncio
@pytest.mark.unit
async def test_open_assignment_cannot_record_attendance(db_session):
    _, _, (assignment,) = await _setup(
        db_session, assignment_status=AssignmentStatus.CONFIRMED, past=True
    )
    with pytest.raises(ParticipationNotEligible):
        await record_participation(
            db_session, assignment_id=assignment.id, attendance="present", hours_worked=2
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_absence_before_event_ends_is_refused(db_session):
    _, _, (assignment,) = await _setup(
        db_session, assignment_status=AssignmentStatus.PENDING
    )
    with pytest.raises(ParticipationNotEligible):
        await record_participation(
            db_session, assignment_id=assignment.id, attendance="absent", hours_worked=0
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_absence_after_event_ends_is_recorded(db_session):
    _, _, (assignment,) = await _setup(
        db_session, assignment_status=AssignmentStatus.PENDING, past=True
    )
    record = await record_participation(
        db_session, assignment_id=assignment.id, attendance="absent", hours_worked=0
    )
    assert record.status == ParticipationStatus.NO_SHOW
    assert record.completion_date is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancelled_assignment_is_not_eligible(db_session):
    _, _, (assignment,) = await _setup(
        db_session, assignment_status=AssignmentStatus.CANCELLED, past=True
    )
    with pytest.raises(ParticipationNotEligible):
        await record_participation(
            db_session, assignment_id=assignment.id, attendance="absent", hours_worked=0
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_invalid_input_writes_nothing(db_session, session_factory):
    _, _, (assignment,) = await _setup(
        db_session, assignment_status=AssignmentStatus.COMPLETED
    )
    with pytest.raises(InvalidHoursWorked):
        await record_participation(
            db_session, assignment_id=assignment.id, attendance="present", hours_worked=30
        )
    with pytest.raises(InvalidRating):
        await record_participation(
            db_session,
            assignment_id=assignment.id,
            attendance="present",
            hours_worked=3,
            performance_rating=9,
        )
    async with session_factory() as session:
        assert (await session.execute(select(VolunteerHistory))).first() is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_records_for_same_assignment(db_session, session_factory):
    """Three recorders race for one (volunteer, event): exactly one record is written."""
    _, (v,), (assignment,) = await _setup(
        db_session, assignment_status=AssignmentStatus.COMPLETED
    )

    async def attempt():
        async with session_factory() as session:
            try:
                await record_participation(
                    session,
                    assignment_id=assignment.id,
                    attendance="present",
                    hours_worked=3,
                )
                return "recorded"
            except HistoryAlreadyExists:
                return "duplicate"

    results = await asyncio.gather(attempt(), attempt(), attempt())

    assert sorted(results) == ["duplicate", "duplicate", "recorded"]
    async with session_factory() as session:
        rows = (
            await session.execute(
                select(VolunteerHistory).where(VolunteerHistory.volunteer_id == v.id)
            )
        ).scalars().all()
    assert len(rows) == 1


# ---------------------------------------------------------------------------
# record_event_attendance
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_event_attendance_records_valid_entries_and_reports_the_rest(
    db_session, session_factory
):
    event, (first, second, third), _ = await _setup(
        db_session,
        assignment_status=AssignmentStatus.COMPLETED,
        past=True,
        volunteers=3,
    )
    stranger = uuid.uuid4()

    batch = await record_event_attendance(
        db_session,
        event.id,
        [
            AttendanceEntry(first.id, "present", 4, performance_rating=5),
            AttendanceEntry(second.id, "absent", 0),
            AttendanceEntry(third.id, "present", 30),
            AttendanceEntry(stranger, "present", 2),
            AttendanceEntry(first.id, "late", 1),
        ],
        recorded_by=event.created_by,
    )

    assert [r.volunteer_id for r in batch.recorded] == [first.id, second.id]
    assert batch.recorded[0].status == ParticipationStatus.COMPLETED
    assert batch.recorded[0].performance_rating == 5
    assert batch.recorded[1].status == ParticipationStatus.NO_SHOW
    assert all(r.recorded_by == event.created_by for r in batch.recorded)
    assert [(f.volunteer_id, f.code) for f in batch.failed] == [
        (third.id, "invalid_hours_worked"),
        (stranger, "participation_not_eligible"),
        (first.id, "history_already_exists"),
    ]

    async with session_factory() as session:
        stored = (
            await session.execute(
                select(VolunteerHistory).where(VolunteerHistory.event_id == event.id)
            )
        ).scalars().all()
    assert sorted(r.volunteer_id for r in stored) == sorted([first.id, second.id])


@pytest.mark.asyncio
@pytest.mark.unit
async def test_event_attendance_applies_eligibility_rules(db_session):
    event, (v,), _ = await _setup(db_session, assignment_status=AssignmentStatus.CONFIRMED)

    batch = await record_event_attendance(
        db_session, event.id, [AttendanceEntry(v.id, "present", 3)]
    )

    assert batch.recorded == []
    assert [f.code for f in batch.failed] == ["participation_not_eligible"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_event_attendance_for_unknown_event(db_session):
    with pytest.raises(EventNotFound):
        await record_event_attendance(
            db_session, uuid.uuid4(), [AttendanceEntry(uuid.uuid4(), "present", 1)]
        )


# ---------------------------------------------------------------------------
# record_no_shows
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_no_shows_cover_open_assignments_once(db_session):
    event, people, assignments = await _setup(
        db_session,
        assignment_status=AssignmentStatus.CONFIRMED,
        past=True,
        volunteers=3,
    )
    # The third volunteer already has a record
    db_session.add(VolunteerHistoryFactory.create(people[2].id, event.id))
    await db_session.commit()

    created = await record_no_shows(db_session, event.id)

    assert sorted(r.volunteer_id for r in created) == sorted(p.id for p in people[:2])
    assert all(r.status == ParticipationStatus.NO_SHOW for r in created)
    assert all(r.attendance == AttendanceType.ABSENT for r in created)
    assert all(r.hours_worked == 0 for r in created)

    assert await record_no_shows(db_session, event.id) == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_no_shows_wait_until_event_is_over(db_session):
    event, _, _ = await _setup(db_session, assignment_status=AssignmentStatus.PENDING)
    with pytest.raises(ParticipationNotEligible):
        await record_no_shows(db_session, event.id)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_no_shows_allowed_for_completed_event(db_session):
    event, (v,), _ = await _setup(
        db_session,
        assignment_status=AssignmentStatus.PENDING,
        event_status=EventStatus.COMPLETED,
    )
    created = await record_no_shows(db_session, event.id)
    assert [r.volunteer_id for r in created] == [v.id]


# ---------------------------------------------------------------------------
# Corrections
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_history_applies_coerced_changes(db_session):
    event, (v,), _ = await _setup(db_session, assignment_status=AssignmentStatus.COMPLETED)
    record = VolunteerHistoryFactory.create(v.id, event.id, hours_worked=2.0)
    db_session.add(record)
    await db_session.commit()

    updated = await update_history(
        db_session,
        record.id,
        {"hours_worked": 4.5, "performance_rating": 4, "status": "no-show"},
        updated_by=event.created_by,
    )

    assert updated.hours_worked == 4.5
    assert updated.performance_rating == 4
    assert updated.status == ParticipationStatus.NO_SHOW
    assert updated.volunteer_id == v.id


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "changes,error",
    [
        ({"volunteer_id": str(uuid.uuid4())}, InvalidHistoryUpdate),
        ({"status": "maybe"}, InvalidHistoryUpdate),
        ({"participation_date": "yesterday"}, InvalidHistoryUpdate),
        ({"hours_worked": -2}, InvalidHoursWorked),
        ({"performance_rating": 7}, InvalidRating),
    ],
)
async def test_update_history_rejects_bad_changes(db_session, changes, error):
    event, (v,), _ = await _setup(db_session, assignment_status=AssignmentStatus.COMPLETED)
    record = VolunteerHistoryFactory.create(v.id, event.id)
    db_session.add(record)
    await db_session.commit()

    with pytest.raises(error):
        await update_history(db_session, record.id, changes)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_and_purge_unknown_history(db_session):
    with pytest.raises(HistoryNotFound):
        await update_history(db_session, uuid.uuid4(), {"feedback": "n/a"})
    with pytest.raises(HistoryNotFound):
        await purge_history(db_session, uuid.uuid4())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_purge_history_removes_record(db_session, session_factory):
    event, (v,), _ = await _setup(db_session, assignment_status=AssignmentStatus.COMPLETED)
    record = VolunteerHistoryFactory.create(v.id, event.id)
    db_session.add(record)
    await db_session.commit()

    await purge_history(db_session, record.id)

    async with session_factory() as session:
        assert await session.get(VolunteerHistory, record.id) is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_history_newest_first_with_filters(db_session):
    admin = UserFactory.admin()
    v = UserFactory.create()
    db_session.add_all([admin, v])
    await db_session.commit()
    older = EventFactory.create(admin.id)
    newer = EventFactory.create(admin.id)
    db_session.add_all([older, newer])
    await db_session.commit()
    db_session.add_all(
        [
            VolunteerHistoryFactory.create(
                v.id, older.id, participation_date=datetime(2026, 1, 10, tzinfo=timezone.utc)
            ),
            VolunteerHistoryFactory.create(
                v.id,
                newer.id,
                status=ParticipationStatus.NO_SHOW,
                attendance=AttendanceType.ABSENT,
                participation_date=datetime(2026, 2, 10, tzinfo=timezone.utc),
            ),
        ]
    )
    await db_session.commit()

    rows = await list_history(db_session, volunteer_id=v.id)
    assert [r.event_id for r in rows] == [newer.id, older.id]

    no_shows = await list_history(db_session, volunteer_id=v.id, status="no-show")
    assert [r.event_id for r in no_shows] == [newer.id]

    january = await list_history(
        db_session,
        volunteer_id=v.id,
        end_date=datetime(2026, 1, 31, tzinfo=timezone.utc),
    )
    assert [r.event_id for r in january] == [older.id]


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize(
    "value,places,expected",
    [(2.5, 0, 3), (3.5, 0, 4), (66.665, 2, 66.67), (0.125, 2, 0.13), (4.0, 0, 4)],
)
def test_round_half_up(value, places, expected):
    assert round_half_up(value, places) == expected


@pytest.mark.unit
def test_statistics_for_empty_history():
    stats = summarize_history([])
    assert stats.total_events == 0
    assert stats.total_hours == 0
    assert stats.attendance_rate == 0
    assert stats.reliability_score == 0


@pytest.mark.unit
def test_statistics_scenario():
    stats = summarize_history(
        [
            _record(ParticipationStatus.COMPLETED, AttendanceType.PRESENT, 5, 5),
            _record(ParticipationStatus.COMPLETED, AttendanceType.PRESENT, 3, 4),
            _record(ParticipationStatus.NO_SHOW, AttendanceType.ABSENT, 0),
        ]
    )
    assert stats.total_events == 3
    assert stats.completed_events == 2
    assert stats.total_hours == 8
    assert stats.average_rating == 4.5
    assert stats.attendance_rate == 66.67
    assert stats.reliability_score == 67


@pytest.mark.unit
def test_late_attendance_counts_hours_but_not_attendance():
    stats = summarize_history(
        [
            _record(ParticipationStatus.COMPLETED, AttendanceType.LATE, 2, 3),
            _record(ParticipationStatus.COMPLETED, AttendanceType.PRESENT, 2),
        ]
    )
    assert stats.total_hours == 4
    assert stats.average_rating == 3
    assert stats.attendance_rate == 50
    assert stats.reliability_score == 50


@pytest.mark.asyncio
@pytest.mark.unit
async def test_compute_statistics_from_store(db_session):
    admin = UserFactory.admin()
    v = UserFactory.create()
    db_session.add_all([admin, v])
    await db_session.commit()
    events = [EventFactory.create(admin.id) for _ in range(3)]
    db_session.add_all(events)
    await db_session.commit()
    db_session.add_all(
        [
            VolunteerHistoryFactory.create(
                v.id, events[0].id, hours_worked=5, performance_rating=5
            ),
            VolunteerHistoryFactory.create(
                v.id, events[1].id, hours_worked=3, performance_rating=4
            ),
            VolunteerHistoryFactory.create(
                v.id,
                events[2].id,
                status=ParticipationStatus.NO_SHOW,
                attendance=AttendanceType.ABSENT,
                hours_worked=0,
            ),
        ]
    )
    await db_session.commit()

    stats = await compute_volunteer_statistics(db_session, v.id)

    assert (stats.total_events, stats.completed_events) == (3, 2)
    assert stats.total_hours == 8
    assert stats.average_rating == 4.5
    assert stats.reliability_score == 67


# ---------------------------------------------------------------------------
# Trends
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_monthly_trend_groups_by_month_oldest_first():
    trend = build_monthly_trend(
        [
            _record(
                ParticipationStatus.COMPLETED,
                AttendanceType.PRESENT,
                2,
                4,
                when=datetime(2026, 5, 20, tzinfo=timezone.utc),
            ),
            _record(
                ParticipationStatus.COMPLETED,
                AttendanceType.PRESENT,
                3,
                5,
                when=datetime(2026, 4, 2, tzinfo=timezone.utc),
            ),
            _record(
                ParticipationStatus.COMPLETED,
                AttendanceType.PRESENT,
                1.5,
                None,
                when=datetime(2026, 5, 1, tzinfo=timezone.utc),
            ),
        ]
    )
    assert [m.month for m in trend] == ["2026-04", "2026-05"]
    assert trend[1].events == 2
    assert trend[1].hours_worked == 3.5
    assert trend[1].average_rating == 4


@pytest.mark.asyncio
@pytest.mark.unit
async def test_monthly_trend_window(db_session):
    admin = UserFactory.admin()
    v = UserFactory.create()
    db_session.add_all([admin, v])
    await db_session.commit()
    events = [EventFactory.create(admin.id) for _ in range(4)]
    db_session.add_all(events)
    await db_session.commit()
    dates = [
        datetime(2026, 1, 5, tzinfo=timezone.utc),
        datetime(2026, 4, 5, tzinfo=timezone.utc),
        datetime(2026, 5, 5, tzinfo=timezone.utc),
        # after "now": not part of a trailing window
        datetime(2026, 7, 1, tzinfo=timezone.utc),
    ]
    db_session.add_all(
        [
            VolunteerHistoryFactory.create(v.id, e.id, participation_date=d)
            for e, d in zip(events, dates)
        ]
    )
    await db_session.commit()

    trend = await monthly_trend(
        db_session, v.id, months=3, now=datetime(2026, 6, 15, tzinfo=timezone.utc)
    )

    assert [m.month for m in trend] == ["2026-04", "2026-05"]
    assert all(m.events == 1 for m in trend)
