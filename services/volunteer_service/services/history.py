"""Participation history: the permanent record of what happened at an event.

Records are written once per (volunteer, event). Statistics and trends are
derived from the records on demand; nothing here keeps cached counters.
"""

import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta
from libs.common.config import get_settings
from libs.common.datetime_utils import as_utc, utc_now
from libs.common.logging import get_logger
from services.volunteer_service.errors import (
    AssignmentNotFound,
    EventNotFound,
    HistoryAlreadyExists,
    HistoryNotFound,
    InvalidHistoryUpdate,
    InvalidHoursWorked,
    InvalidRating,
    LedgerError,
    ParticipationNotEligible,
)
from services.volunteer_service.models import (
    Assignment,
    AssignmentStatus,
    AttendanceType,
    Event,
    EventStatus,
    ParticipationStatus,
    VolunteerHistory,
)
from services.volunteer_service.services.assignments import load_event
from services.volunteer_service.services.store import store_operation
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

MAX_HOURS_PER_RECORD = 24

PARTICIPATION_STATUS_BY_ATTENDANCE = {
    AttendanceType.PRESENT: ParticipationStatus.COMPLETED,
    AttendanceType.LATE: ParticipationStatus.COMPLETED,
    AttendanceType.ABSENT: ParticipationStatus.NO_SHOW,
    AttendanceType.EXCUSED: ParticipationStatus.CANCELLED,
}

ATTENDED = (AttendanceType.PRESENT, AttendanceType.LATE)
NOT_ATTENDED = (AttendanceType.ABSENT, AttendanceType.EXCUSED)
OPEN_ASSIGNMENT_STATUSES = (AssignmentStatus.PENDING, AssignmentStatus.CONFIRMED)

UPDATABLE_HISTORY_FIELDS = frozenset(
    {
        "status",
        "attendance",
        "hours_worked",
        "performance_rating",
        "feedback",
        "admin_notes",
        "participation_date",
        "completion_date",
    }
)


# ── Validation ──────────────────────────────────────────────────────


def validate_hours(hours) -> float:
    if isinstance(hours, bool):
        raise InvalidHoursWorked(hours_worked=hours)
    try:
        value = float(hours)
    except (TypeError, ValueError) as exc:
        raise InvalidHoursWorked(hours_worked=hours) from exc
    if not math.isfinite(value) or value < 0 or value > MAX_HOURS_PER_RECORD:
        raise InvalidHoursWorked(hours_worked=hours)
    return value


def validate_rating(rating) -> Optional[int]:
    if rating is None:
        return None
    if isinstance(rating, bool):
        raise InvalidRating(performance_rating=rating)
    if isinstance(rating, float) and rating.is_integer():
        rating = int(rating)
    if not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidRating(performance_rating=rating)
    return rating


def _check_eligibility(
    assignment: Assignment, event: Event, attendance: AttendanceType
) -> None:
    if assignment.status == AssignmentStatus.COMPLETED:
        return
    event_over = (
        event.status == EventStatus.COMPLETED or as_utc(event.end_date) <= utc_now()
    )
    if (
        assignment.status in OPEN_ASSIGNMENT_STATUSES
        and attendance in NOT_ATTENDED
        and event_over
    ):
        return
    raise ParticipationNotEligible(
        f"Assignment is {assignment.status.wire}; record participation for completed "
        "assignments or for absences once the event is over",
        assignment_id=assignment.id,
    )


# ── Recording ───────────────────────────────────────────────────────


def _build_record(
    assignment: Assignment,
    event: Event,
    attendance: AttendanceType,
    hours: float,
    rating: Optional[int],
    *,
    feedback: Optional[str],
    admin_notes: Optional[str],
    recorded_by: Optional[uuid.UUID],
) -> VolunteerHistory:
    now = utc_now()
    return VolunteerHistory(
        volunteer_id=assignment.volunteer_id,
        event_id=assignment.event_id,
        assignment_id=assignment.id,
        status=PARTICIPATION_STATUS_BY_ATTENDANCE[attendance],
        hours_worked=hours,
        performance_rating=rating,
        attendance=attendance,
        participation_date=event.start_date,
        completion_date=now if attendance in ATTENDED else None,
        feedback=feedback,
        admin_notes=admin_notes,
        recorded_by=recorded_by,
        created_at=now,
        updated_at=now,
    )


@store_operation
async def record_participation(
    db: AsyncSession,
    *,
    assignment_id: uuid.UUID,
    attendance: AttendanceType,
    hours_worked: float,
    performance_rating: Optional[int] = None,
    feedback: Optional[str] = None,
    admin_notes: Optional[str] = None,
    recorded_by: Optional[uuid.UUID] = None,
) -> VolunteerHistory:
    """Write the one participation record for an assignment's (volunteer, event)."""
    attendance = AttendanceType.parse(attendance)
    hours = validate_hours(hours_worked)
    rating = validate_rating(performance_rating)

    assignment = (
        await db.execute(
            select(Assignment)
            .where(Assignment.id == assignment_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not assignment:
        raise AssignmentNotFound(assignment_id=assignment_id)
    event = await load_event(db, assignment.event_id)
    if event is None:
        raise EventNotFound(event_id=assignment.event_id)

    _check_eligibility(assignment, event, attendance)

    existing = (
        await db.execute(
            select(VolunteerHistory.id).where(
                VolunteerHistory.volunteer_id == assignment.volunteer_id,
                VolunteerHistory.event_id == assignment.event_id,
            )
        )
    ).scalar_one_or_none()
    if existing:
        raise HistoryAlreadyExists(
            volunteer_id=assignment.volunteer_id, event_id=assignment.event_id
        )

    record = _build_record(
        assignment,
        event,
        attendance,
        hours,
        rating,
        feedback=feedback,
        admin_notes=admin_notes,
        recorded_by=recorded_by,
    )
    db.add(record)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise HistoryAlreadyExists(
            volunteer_id=assignment.volunteer_id, event_id=assignment.event_id
        ) from exc

    await db.commit()

    logger.info(
        "Recorded %s participation for volunteer %s on event %s (%.2fh)",
        record.status.value,
        record.volunteer_id,
        record.event_id,
        record.hours_worked,
    )
    return record


@dataclass(frozen=True)
class AttendanceEntry:
    volunteer_id: uuid.UUID
    attendance: AttendanceType
    hours_worked: float
    performance_rating: Optional[int] = None
    feedback: Optional[str] = None
    admin_notes: Optional[str] = None


@dataclass(frozen=True)
class AttendanceFailure:
    volunteer_id: uuid.UUID
    code: str
    detail: str


@dataclass
class AttendanceBatch:
    event_id: uuid.UUID
    recorded: list[VolunteerHistory]
    failed: list[AttendanceFailure]


async def _record_entry(
    db: AsyncSession,
    event: Event,
    assignment: Optional[Assignment],
    entry: AttendanceEntry,
    recorded_by: Optional[uuid.UUID],
) -> VolunteerHistory:
    if assignment is None:
        raise ParticipationNotEligible(
            "Volunteer is not assigned to this event",
            event_id=event.id,
            volunteer_id=entry.volunteer_id,
        )
    attendance = AttendanceType.parse(entry.attendance)
    hours = validate_hours(entry.hours_worked)
    rating = validate_rating(entry.performance_rating)
    _check_eligibility(assignment, event, attendance)

    record = _build_record(
        assignment,
        event,
        attendance,
        hours,
        rating,
        feedback=entry.feedback,
        admin_notes=entry.admin_notes,
        recorded_by=recorded_by,
    )
    try:
        async with db.begin_nested():
            db.add(record)
    except IntegrityError as exc:
        raise HistoryAlreadyExists(
            volunteer_id=assignment.volunteer_id, event_id=event.id
        ) from exc
    return record


@store_operation
async def record_event_attendance(
    db: AsyncSession,
    event_id: uuid.UUID,
    entries: Iterable[AttendanceEntry],
    *,
    recorded_by: Optional[uuid.UUID] = None,
) -> AttendanceBatch:
    """Record attendance for several volunteers of one event in one call.

    Entries are checked with the same rules as ``record_participation`` and
    written one savepoint at a time. A rejected entry is reported in
    ``failed`` with its error code and does not stop the others.
    """
    event = await load_event(db, event_id, for_update=True)
    if event is None:
        raise EventNotFound(event_id=event_id)

    assignments = {
        assignment.volunteer_id: assignment
        for assignment in (
            await db.execute(
                select(Assignment)
                .where(Assignment.event_id == event_id)
                .execution_options(populate_existing=True)
            )
        ).scalars()
    }

    batch = AttendanceBatch(event_id=event_id, recorded=[], failed=[])
    for entry in entries:
        try:
            record = await _record_entry(
                db, event, assignments.get(entry.volunteer_id), entry, recorded_by
            )
        except LedgerError as exc:
            batch.failed.append(
                AttendanceFailure(
                    volunteer_id=entry.volunteer_id, code=exc.code, detail=exc.detail
                )
            )
            continue
        batch.recorded.append(record)

    await db.commit()
    logger.info(
        "Recorded attendance for event %s: %d recorded, %d rejected",
        event_id,
        len(batch.recorded),
        len(batch.failed),
    )
    return batch


async def add_no_show_records(
    db: AsyncSession, event: Event, *, recorded_by: Optional[uuid.UUID] = None
) -> list[VolunteerHistory]:
    """Write NO_SHOW records for open assignments that have none yet.

    Runs inside the caller's transaction; each insert gets its own savepoint
    so a record written concurrently is skipped instead of failing the batch.
    """
    recorded = select(VolunteerHistory.volunteer_id).where(
        VolunteerHistory.event_id == event.id
    )
    open_assignments = (
        await db.execute(
            select(Assignment).where(
                Assignment.event_id == event.id,
                Assignment.status.in_(OPEN_ASSIGNMENT_STATUSES),
                Assignment.volunteer_id.not_in(recorded),
            )
        )
    ).scalars().all()

    created = []
    now = utc_now()
    for assignment in open_assignments:
        record = VolunteerHistory(
            volunteer_id=assignment.volunteer_id,
            event_id=event.id,
            assignment_id=assignment.id,
            status=ParticipationStatus.NO_SHOW,
            hours_worked=0.0,
            attendance=AttendanceType.ABSENT,
            participation_date=event.start_date,
            recorded_by=recorded_by,
            created_at=now,
            updated_at=now,
        )
        try:
            async with db.begin_nested():
                db.add(record)
        except IntegrityError:
            logger.info(
                "Volunteer %s already has a record for event %s; skipping no-show",
                assignment.volunteer_id,
                event.id,
            )
            continue
        created.append(record)

    if created:
        logger.info("Recorded %d no-show(s) for event %s", len(created), event.id)
    return created


@store_operation
async def record_no_shows(
    db: AsyncSession, event_id: uuid.UUID, *, recorded_by: Optional[uuid.UUID] = None
) -> list[VolunteerHistory]:
    """Finalize attendance for an event that is over."""
    event = await load_event(db, event_id, for_update=True)
    if event is None:
        raise EventNotFound(event_id=event_id)
    if event.status != EventStatus.COMPLETED and as_utc(event.end_date) > utc_now():
        raise ParticipationNotEligible(
            "Attendance can only be finalized once the event is over",
            event_id=event_id,
        )
    created = await add_no_show_records(db, event, recorded_by=recorded_by)
    await db.commit()
    return created


# ── Corrections ─────────────────────────────────────────────────────


def _coerce_change(field: str, value):
    if field == "hours_worked":
        return validate_hours(value)
    if field == "performance_rating":
        return validate_rating(value)
    try:
        if field == "status":
            return ParticipationStatus.parse(value)
        if field == "attendance":
            return AttendanceType.parse(value)
    except ValueError as exc:
        raise InvalidHistoryUpdate(f"Invalid {field}: {value!r}") from exc
    if field == "participation_date":
        if not isinstance(value, datetime):
            raise InvalidHistoryUpdate("participation_date must be a datetime")
        return as_utc(value)
    if field == "completion_date":
        if value is not None and not isinstance(value, datetime):
            raise InvalidHistoryUpdate("completion_date must be a datetime")
        return as_utc(value)
    return value


@store_operation
async def update_history(
    db: AsyncSession,
    history_id: uuid.UUID,
    changes: dict,
    *,
    updated_by: Optional[uuid.UUID] = None,
) -> VolunteerHistory:
    """Apply an administrative correction to an existing record."""
    unknown = set(changes) - UPDATABLE_HISTORY_FIELDS
    if unknown:
        raise InvalidHistoryUpdate(
            f"Cannot update field(s): {', '.join(sorted(unknown))}"
        )
    coerced = {field: _coerce_change(field, value) for field, value in changes.items()}

    record = (
        await db.execute(
            select(VolunteerHistory)
            .where(VolunteerHistory.id == history_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not record:
        raise HistoryNotFound(history_id=history_id)

    for field, value in coerced.items():
        setattr(record, field, value)
    record.updated_at = utc_now()
    await db.flush()
    await db.refresh(record)
    await db.commit()

    logger.info(
        "History %s updated by %s: %s",
        history_id,
        updated_by or "system",
        ", ".join(sorted(coerced)),
    )
    return record


@store_operation
async def purge_history(db: AsyncSession, history_id: uuid.UUID) -> None:
    record = await db.get(VolunteerHistory, history_id)
    if not record:
        raise HistoryNotFound(history_id=history_id)
    await db.delete(record)
    await db.commit()
    logger.warning(
        "Purged history %s (volunteer %s, event %s)",
        history_id,
        record.volunteer_id,
        record.event_id,
    )


@store_operation
async def list_history(
    db: AsyncSession,
    *,
    volunteer_id: Optional[uuid.UUID] = None,
    event_id: Optional[uuid.UUID] = None,
    status: Optional[ParticipationStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[VolunteerHistory]:
    q = select(VolunteerHistory)
    if volunteer_id:
        q = q.where(VolunteerHistory.volunteer_id == volunteer_id)
    if event_id:
        q = q.where(VolunteerHistory.event_id == event_id)
    if status:
        q = q.where(VolunteerHistory.status == ParticipationStatus.parse(status))
    if start_date:
        q = q.where(VolunteerHistory.participation_date >= start_date)
    if end_date:
        q = q.where(VolunteerHistory.participation_date <= end_date)
    q = q.order_by(VolunteerHistory.participation_date.desc()).offset(skip).limit(limit)
    return list((await db.execute(q)).scalars().all())


# ── Statistics ──────────────────────────────────────────────────────


def round_half_up(value: float, places: int = 0):
    """Round like a spreadsheet does (2.5 -> 3), not banker's rounding."""
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if places == 0 else float(rounded)


def _mean_rating(ratings: list) -> float:
    if not ratings:
        return 0.0
    return round_half_up(sum(ratings) / len(ratings), 2)


@dataclass(frozen=True)
class VolunteerStatistics:
    total_events: int = 0
    completed_events: int = 0
    total_hours: float = 0.0
    average_rating: float = 0.0
    attendance_rate: float = 0.0
    reliability_score: int = 0


def summarize_history(records: Iterable) -> VolunteerStatistics:
    """Derive statistics from participation records.

    - total_hours counts COMPLETED records only
    - average_rating is the mean of non-null ratings among COMPLETED records
    - attendance_rate is PRESENT records over all records, as a percentage
    - reliability_score is the attendance rate rounded half up
    """
    records = list(records)
    if not records:
        return VolunteerStatistics()

    completed = [r for r in records if r.status == ParticipationStatus.COMPLETED]
    present = sum(1 for r in records if r.attendance == AttendanceType.PRESENT)
    ratings = [r.performance_rating for r in completed if r.performance_rating is not None]
    attendance_rate = present / len(records) * 100

    return VolunteerStatistics(
        total_events=len(records),
        completed_events=len(completed),
        total_hours=round_half_up(sum(r.hours_worked or 0 for r in completed), 2),
        average_rating=_mean_rating(ratings),
        attendance_rate=round_half_up(attendance_rate, 2),
        reliability_score=round_half_up(attendance_rate),
    )


@store_operation
async def compute_volunteer_statistics(
    db: AsyncSession, volunteer_id: uuid.UUID
) -> VolunteerStatistics:
    records = (
        await db.execute(
            select(VolunteerHistory).where(VolunteerHistory.volunteer_id == volunteer_id)
        )
    ).scalars().all()
    return summarize_history(records)


@dataclass(frozen=True)
class MonthlyActivity:
    month: str
    events: int
    hours_worked: float
    average_rating: float


def build_monthly_trend(records: Iterable) -> list[MonthlyActivity]:
    """Group records by participation month (YYYY-MM), oldest first."""
    buckets: dict[str, list] = {}
    for record in records:
        when = as_utc(record.participation_date)
        buckets.setdefault(f"{when.year:04d}-{when.month:02d}", []).append(record)

    trend = []
    for month in sorted(buckets):
        rows = buckets[month]
        ratings = [r.performance_rating for r in rows if r.performance_rating is not None]
        trend.append(
            MonthlyActivity(
                month=month,
                events=len(rows),
                hours_worked=round_half_up(sum(r.hours_worked or 0 for r in rows), 2),
                average_rating=_mean_rating(ratings),
            )
        )
    return trend


@store_operation
async def monthly_trend(
    db: AsyncSession,
    volunteer_id: uuid.UUID,
    *,
    months: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[MonthlyActivity]:
    months = months or get_settings().HISTORY_TREND_DEFAULT_MONTHS
    now = now or utc_now()
    since = now - relativedelta(months=months)
    records = (
        await db.execute(
            select(VolunteerHistory).where(
                VolunteerHistory.volunteer_id == volunteer_id,
                VolunteerHistory.participation_date >= since,
                VolunteerHistory.participation_date <= now,
            )
        )
    ).scalars().all()
    return build_monthly_trend(records)
