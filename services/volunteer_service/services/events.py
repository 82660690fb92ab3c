"""Event lifecycle: creation, status changes, cancellation cascade and capacity."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import as_utc, utc_now
from libs.common.logging import get_logger
from services.volunteer_service.errors import (
    CapacityBelowAssigned,
    CreatorNotAdmin,
    EventNotFound,
    InvalidEventDetails,
    InvalidEventTransition,
)
from services.volunteer_service.models import (
    ALLOWED_EVENT_TRANSITIONS,
    Assignment,
    AssignmentStatus,
    Event,
    EventStatus,
    UrgencyLevel,
    User,
    UserRole,
    VolunteerHistory,
)
from services.volunteer_service.services.assignments import load_event, release_slots
from services.volunteer_service.services.history import add_no_show_records
from services.volunteer_service.services.notifications import (
    NotificationDispatcher,
    event_cancelled_intent,
    queue_notifications,
)
from services.volunteer_service.services.store import store_operation
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class EventCompletion:
    event: Event
    no_shows: list[VolunteerHistory] = field(default_factory=list)


@dataclass
class EventCancellation:
    event: Event
    cancelled_assignments: list[Assignment] = field(default_factory=list)


def _validate_details(
    title: str, start_date: datetime, end_date: datetime, max_volunteers: int
) -> None:
    if not title or not title.strip():
        raise InvalidEventDetails("Event title is required")
    if max_volunteers is None or max_volunteers < 1:
        raise InvalidEventDetails("max_volunteers must be at least 1")
    if as_utc(end_date) < as_utc(start_date):
        raise InvalidEventDetails("end_date must not be before start_date")


async def _transition_event(
    db: AsyncSession, event_id: uuid.UUID, target: EventStatus
) -> tuple[Event, EventStatus]:
    event = await load_event(db, event_id, for_update=True)
    if event is None:
        raise EventNotFound(event_id=event_id)

    old_status = event.status
    if target not in ALLOWED_EVENT_TRANSITIONS.get(old_status, frozenset()):
        raise InvalidEventTransition(
            f"Cannot move event from {old_status.wire} to {target.wire}",
            event_id=event_id,
        )

    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.status == old_status)
        .values(status=target, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidEventTransition("Event status changed concurrently", event_id=event_id)
    return event, old_status


async def _finish_transition(
    db: AsyncSession, event: Event, old_status: EventStatus
) -> Event:
    await db.refresh(event)
    await db.commit()
    logger.info(
        "Event %s moved %s -> %s", event.id, old_status.value, event.status.value
    )
    return event


# ── Creation and reads ──────────────────────────────────────────────


@store_operation
async def create_event(
    db: AsyncSession,
    *,
    created_by: uuid.UUID,
    title: str,
    start_date: datetime,
    end_date: datetime,
    max_volunteers: int,
    description: Optional[str] = None,
    category: Optional[str] = None,
    urgency: UrgencyLevel = UrgencyLevel.MEDIUM,
    location: Optional[str] = None,
) -> Event:
    creator = await db.get(User, created_by)
    if not creator or creator.role != UserRole.ADMIN:
        raise CreatorNotAdmin(user_id=created_by)
    _validate_details(title, start_date, end_date, max_volunteers)

    event = Event(
        title=title.strip(),
        description=description,
        category=category,
        urgency=UrgencyLevel.parse(urgency),
        status=EventStatus.DRAFT,
        start_date=start_date,
        end_date=end_date,
        location=location,
        max_volunteers=max_volunteers,
        current_volunteers=0,
        created_by=created_by,
    )
    db.add(event)
    await db.flush()
    await db.refresh(event)
    await db.commit()

    logger.info("Created event %s (%s) with %d slots", event.id, event.title, max_volunteers)
    return event


@store_operation
async def get_event(db: AsyncSession, event_id: uuid.UUID) -> Event:
    event = await load_event(db, event_id)
    if event is None:
        raise EventNotFound(event_id=event_id)
    return event


@store_operation
async def list_events(
    db: AsyncSession,
    *,
    status: Optional[EventStatus] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[Event]:
    q = select(Event)
    if status:
        q = q.where(Event.status == EventStatus.parse(status))
    q = q.order_by(Event.start_date.asc()).offset(skip).limit(limit)
    return list((await db.execute(q)).scalars().all())


# ── Status changes ──────────────────────────────────────────────────


@store_operation
async def publish_event(db: AsyncSession, event_id: uuid.UUID) -> Event:
    event, old_status = await _transition_event(db, event_id, EventStatus.PUBLISHED)
    return await _finish_transition(db, event, old_status)


@store_operation
async def start_event(db: AsyncSession, event_id: uuid.UUID) -> Event:
    event, old_status = await _transition_event(db, event_id, EventStatus.IN_PROGRESS)
    return await _finish_transition(db, event, old_status)


@store_operation
async def complete_event(
    db: AsyncSession, event_id: uuid.UUID, *, recorded_by: Optional[uuid.UUID] = None
) -> EventCompletion:
    """Close the event and record a no-show for every open assignment."""
    event, old_status = await _transition_event(db, event_id, EventStatus.COMPLETED)
    no_shows = await add_no_show_records(db, event, recorded_by=recorded_by)
    event = await _finish_transition(db, event, old_status)
    return EventCompletion(event=event, no_shows=no_shows)


@store_operation
async def cancel_event(
    db: AsyncSession,
    event_id: uuid.UUID,
    *,
    reason: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> EventCancellation:
    """Cancel the event and every open assignment on it, releasing their slots."""
    event, old_status = await _transition_event(db, event_id, EventStatus.CANCELLED)

    open_assignments = (
        await db.execute(
            select(Assignment)
            .where(
                Assignment.event_id == event_id,
                Assignment.status.in_(
                    [AssignmentStatus.PENDING, AssignmentStatus.CONFIRMED]
                ),
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalars().all()

    now = utc_now()
    for assignment in open_assignments:
        assignment.status = AssignmentStatus.CANCELLED
        assignment.updated_at = now
    await db.flush()

    # Pending and confirmed assignments both hold a slot
    await release_slots(db, event_id, len(open_assignments))

    queue_notifications(
        db,
        dispatcher,
        [event_cancelled_intent(a, event, reason) for a in open_assignments],
    )
    event = await _finish_transition(db, event, old_status)
    logger.info(
        "Cancelled %d assignment(s) with event %s", len(open_assignments), event_id
    )
    return EventCancellation(event=event, cancelled_assignments=list(open_assignments))


# ── Capacity ────────────────────────────────────────────────────────


@store_operation
async def change_capacity(
    db: AsyncSession, event_id: uuid.UUID, max_volunteers: int
) -> Event:
    """Resize an event without dropping below the volunteers already holding slots."""
    if max_volunteers is None or max_volunteers < 1:
        raise InvalidEventDetails("max_volunteers must be at least 1")

    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.current_volunteers <= max_volunteers)
        .values(max_volunteers=max_volunteers, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        event = await load_event(db, event_id)
        if event is None:
            raise EventNotFound(event_id=event_id)
        raise CapacityBelowAssigned(
            f"{event.current_volunteers} volunteers are assigned; "
            f"capacity cannot drop to {max_volunteers}",
            event_id=event_id,
        )

    event = await load_event(db, event_id)
    await db.commit()
    logger.info("Event %s capacity set to %d", event_id, max_volunteers)
    return event
