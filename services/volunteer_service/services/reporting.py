"""Read-only reports over events, assignments and participation history."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import as_utc, utc_now
from services.volunteer_service.errors import EventNotFound
from services.volunteer_service.models import (
    Assignment,
    AttendanceType,
    Event,
    ParticipationStatus,
    User,
    UserRole,
    VolunteerHistory,
)
from services.volunteer_service.services.assignments import load_event
from services.volunteer_service.services.history import (
    VolunteerStatistics,
    round_half_up,
    summarize_history,
)
from services.volunteer_service.services.store import store_operation
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

TOP_PERFORMERS_LIMIT = 5


@dataclass
class EventParticipationSummary:
    event: Event
    records: list[VolunteerHistory]
    total_participants: int
    completed_participants: int
    total_hours: float
    average_rating: float
    attendance_rate: float
    spots_remaining: int
    fill_percentage: int


@dataclass
class VolunteerStatisticsRow:
    volunteer: User
    statistics: VolunteerStatistics


@dataclass
class DashboardSummary:
    total_volunteers: int
    active_volunteers: int
    total_participations: int
    total_hours: float
    average_reliability: float
    recent_days: int
    recent_participations: int
    recent_completed: int
    recent_hours: float
    top_performers: list[VolunteerStatisticsRow] = field(default_factory=list)


@store_operation
async def event_participation_summary(
    db: AsyncSession, event_id: uuid.UUID
) -> EventParticipationSummary:
    event = await load_event(db, event_id)
    if event is None:
        raise EventNotFound(event_id=event_id)

    records = list(
        (
            await db.execute(
                select(VolunteerHistory)
                .where(VolunteerHistory.event_id == event_id)
                .order_by(VolunteerHistory.created_at)
            )
        ).scalars()
    )
    stats = summarize_history(records)
    return EventParticipationSummary(
        event=event,
        records=records,
        total_participants=stats.total_events,
        completed_participants=stats.completed_events,
        total_hours=stats.total_hours,
        average_rating=stats.average_rating,
        attendance_rate=stats.attendance_rate,
        spots_remaining=event.spots_remaining,
        fill_percentage=round_half_up(event.current_volunteers / event.max_volunteers * 100),
    )


@dataclass
class RosterEntry:
    assignment: Assignment
    volunteer: User
    history: Optional[VolunteerHistory] = None

    @property
    def attendance(self) -> Optional[AttendanceType]:
        return self.history.attendance if self.history else None


@dataclass
class EventRoster:
    event: Event
    entries: list[RosterEntry]
    total: int
    recorded: int
    present: int
    late: int
    absent: int
    excused: int

    @property
    def awaiting_record(self) -> int:
        return self.total - self.recorded


@store_operation
async def event_roster(db: AsyncSession, event_id: uuid.UUID) -> EventRoster:
    """Every assignment of an event with the volunteer and their attendance so far."""
    event = await load_event(db, event_id)
    if event is None:
        raise EventNotFound(event_id=event_id)

    history = {
        record.volunteer_id: record
        for record in (
            await db.execute(
                select(VolunteerHistory).where(VolunteerHistory.event_id == event_id)
            )
        ).scalars()
    }
    rows = (
        await db.execute(
            select(Assignment, User)
            .join(User, User.id == Assignment.volunteer_id)
            .where(Assignment.event_id == event_id)
            .order_by(User.username)
        )
    ).all()
    entries = [
        RosterEntry(assignment=assignment, volunteer=volunteer, history=history.get(volunteer.id))
        for assignment, volunteer in rows
    ]

    def count(attendance: AttendanceType) -> int:
        return sum(1 for entry in entries if entry.attendance == attendance)

    return EventRoster(
        event=event,
        entries=entries,
        total=len(entries),
        recorded=sum(1 for entry in entries if entry.history is not None),
        present=count(AttendanceType.PRESENT),
        late=count(AttendanceType.LATE),
        absent=count(AttendanceType.ABSENT),
        excused=count(AttendanceType.EXCUSED),
    )


async def _volunteer_rows(db: AsyncSession) -> list[VolunteerStatisticsRow]:
    volunteers = (
        await db.execute(
            select(User).where(User.role == UserRole.VOLUNTEER).order_by(User.username)
        )
    ).scalars().all()
    by_volunteer: dict[uuid.UUID, list[VolunteerHistory]] = {}
    for record in (await db.execute(select(VolunteerHistory))).scalars():
        by_volunteer.setdefault(record.volunteer_id, []).append(record)
    return [
        VolunteerStatisticsRow(
            volunteer=v, statistics=summarize_history(by_volunteer.get(v.id, []))
        )
        for v in volunteers
    ]


@store_operation
async def all_volunteer_statistics(db: AsyncSession) -> list[VolunteerStatisticsRow]:
    return await _volunteer_rows(db)


@store_operation
async def dashboard_summary(
    db: AsyncSession, *, now: Optional[datetime] = None
) -> DashboardSummary:
    """Totals across all volunteers, recent activity and the most reliable volunteers."""
    now = now or utc_now()
    recent_days = get_settings().DASHBOARD_RECENT_DAYS
    since = now - timedelta(days=recent_days)

    rows = await _volunteer_rows(db)
    active = [row for row in rows if row.statistics.total_events]

    recent = [
        r
        for r in (
            await db.execute(
                select(VolunteerHistory).where(VolunteerHistory.participation_date >= since)
            )
        ).scalars()
        if as_utc(r.participation_date) <= now
    ]
    recent_completed = [r for r in recent if r.status == ParticipationStatus.COMPLETED]

    average_reliability = 0.0
    if active:
        average_reliability = round_half_up(
            sum(row.statistics.reliability_score for row in active) / len(active), 2
        )

    top = sorted(
        active,
        key=lambda row: (row.statistics.reliability_score, row.statistics.total_hours),
        reverse=True,
    )[:TOP_PERFORMERS_LIMIT]

    return DashboardSummary(
        total_volunteers=len(rows),
        active_volunteers=len(active),
        total_participations=sum(row.statistics.total_events for row in rows),
        total_hours=round_half_up(sum(row.statistics.total_hours for row in rows), 2),
        average_reliability=average_reliability,
        recent_days=recent_days,
        recent_participations=len(recent),
        recent_completed=len(recent_completed),
        recent_hours=round_half_up(sum(r.hours_worked or 0 for r in recent_completed), 2),
        top_performers=top,
    )
