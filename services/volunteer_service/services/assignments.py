"""Assignment lifecycle: create, transition, delete, list and reconcile.

``Event.current_volunteers`` is only ever changed by single conditional UPDATE
statements issued here, in the same transaction as the assignment change that
justifies them. The counter therefore always equals the number of active
assignments and never exceeds ``max_volunteers``.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from libs.common.datetime_utils import as_utc, utc_now
from libs.common.logging import get_logger
from services.volunteer_service.errors import (
    AssignmentNotDeletable,
    AssignmentNotFound,
    DuplicateAssignment,
    EventFull,
    EventNotAcceptingVolunteers,
    EventNotFound,
    InvalidTransition,
    LedgerError,
    VolunteerNotFound,
)
from services.volunteer_service.models import (
    ACTIVE_ASSIGNMENT_STATUSES,
    ALLOWED_ASSIGNMENT_TRANSITIONS,
    EVENT_ACCEPTING_STATUSES,
    TERMINAL_ASSIGNMENT_STATUSES,
    Assignment,
    AssignmentStatus,
    Event,
    User,
    UserRole,
    VolunteerHistory,
)
from services.volunteer_service.services.notifications import (
    NotificationDispatcher,
    assignment_created_intent,
    queue_notifications,
    status_changed_intent,
)
from services.volunteer_service.services.store import store_operation
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

INITIAL_ASSIGNMENT_STATUSES = (AssignmentStatus.PENDING, AssignmentStatus.CONFIRMED)


@dataclass(frozen=True)
class CapacityReconciliation:
    event_id: uuid.UUID
    recorded: int
    actual: int
    corrected: bool

    @property
    def drift(self) -> int:
        return self.recorded - self.actual


# ---------------------------------------------------------------------------
# Counter updates
# ---------------------------------------------------------------------------


async def claim_slot(
    db: AsyncSession, event_id: uuid.UUID, *, require_accepting: bool = True
) -> bool:
    """Take one unit of capacity in a single conditional statement."""
    conditions = [
        Event.id == event_id,
        Event.current_volunteers < Event.max_volunteers,
    ]
    if require_accepting:
        conditions.append(Event.status.in_(list(EVENT_ACCEPTING_STATUSES)))
    result = await db.execute(
        update(Event)
        .where(*conditions)
        .values(current_volunteers=Event.current_volunteers + 1, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def release_slots(db: AsyncSession, event_id: uuid.UUID, count: int = 1) -> bool:
    """Give back ``count`` units; never drives the counter below zero.

    A refused release means the counter already disagrees with the assignment
    rows. It is logged for ``reconcile`` and not corrected here.
    """
    if count <= 0:
        return True
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.current_volunteers >= count)
        .values(current_volunteers=Event.current_volunteers - count, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(
            "Capacity drift on event %s: could not release %d slot(s); run reconcile",
            event_id,
            count,
        )
        return False
    return True


async def load_event(
    db: AsyncSession, event_id: uuid.UUID, *, for_update: bool = False
) -> Optional[Event]:
    """Fetch an event, overwriting any stale copy in the identity map."""
    q = select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    if for_update:
        q = q.with_for_update()
    return (await db.execute(q)).scalar_one_or_none()


async def _load_assignment(
    db: AsyncSession, assignment_id: uuid.UUID, *, for_update: bool = False
) -> Assignment:
    q = (
        select(Assignment)
        .where(Assignment.id == assignment_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        q = q.with_for_update()
    assignment = (await db.execute(q)).scalar_one_or_none()
    if not assignment:
        raise AssignmentNotFound(assignment_id=assignment_id)
    return assignment


async def _capacity_failure(db: AsyncSession, event_id: uuid.UUID) -> LedgerError:
    """Explain why a slot claim matched no row."""
    event = await load_event(db, event_id)
    if event is None:
        return EventNotFound(event_id=event_id)
    if event.status not in EVENT_ACCEPTING_STATUSES:
        return EventNotAcceptingVolunteers(
            f"Event is {event.status.wire} and not accepting volunteers",
            event_id=event_id,
        )
    return EventFull(
        f"Event is full ({event.current_volunteers}/{event.max_volunteers})",
        event_id=event_id,
    )


def check_transition(old_status: AssignmentStatus, new_status: AssignmentStatus) -> None:
    if new_status not in ALLOWED_ASSIGNMENT_TRANSITIONS.get(old_status, frozenset()):
        raise InvalidTransition(
            f"Cannot move assignment from {old_status.wire} to {new_status.wire}",
            from_status=old_status.wire,
            to_status=new_status.wire,
        )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


@store_operation
async def create_assignment(
    db: AsyncSession,
    *,
    event_id: uuid.UUID,
    volunteer_id: uuid.UUID,
    status: AssignmentStatus = AssignmentStatus.PENDING,
    match_score: float = 0.0,
    notes: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Assignment:
    """Assign a volunteer to an event, claiming one unit of its capacity."""
    status = AssignmentStatus.parse(status)
    if status not in INITIAL_ASSIGNMENT_STATUSES:
        raise InvalidTransition(
            f"Assignments start as pending or confirmed, not {status.wire}",
            to_status=status.wire,
        )

    volunteer = await db.get(User, volunteer_id)
    if not volunteer or volunteer.role != UserRole.VOLUNTEER:
        raise VolunteerNotFound(volunteer_id=volunteer_id)

    existing = (
        await db.execute(
            select(Assignment.id).where(
                Assignment.event_id == event_id,
                Assignment.volunteer_id == volunteer_id,
            )
        )
    ).scalar_one_or_none()
    if existing:
        raise DuplicateAssignment(event_id=event_id, volunteer_id=volunteer_id)

    if not await claim_slot(db, event_id):
        raise await _capacity_failure(db, event_id)

    now = utc_now()
    assignment = Assignment(
        event_id=event_id,
        volunteer_id=volunteer_id,
        status=status,
        match_score=match_score,
        notes=notes,
        assigned_at=now,
        confirmed_at=now if status == AssignmentStatus.CONFIRMED else None,
        updated_at=now,
    )
    db.add(assignment)
    try:
        await db.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent create for the same pair
        raise DuplicateAssignment(event_id=event_id, volunteer_id=volunteer_id) from exc

    event = await load_event(db, event_id)
    queue_notifications(db, dispatcher, [assignment_created_intent(assignment, event)])
    await db.commit()

    logger.info(
        "Assigned volunteer %s to event %s as %s (assignment %s)",
        volunteer_id,
        event_id,
        status.value,
        assignment.id,
    )
    return assignment


@store_operation
async def transition_status(
    db: AsyncSession,
    assignment_id: uuid.UUID,
    new_status: AssignmentStatus,
    *,
    notes: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Assignment:
    """Move an assignment along the transition table, keeping capacity in step."""
    new_status = AssignmentStatus.parse(new_status)
    assignment = await _load_assignment(db, assignment_id, for_update=True)
    old_status = assignment.status
    check_transition(old_status, new_status)

    now = utc_now()
    values = {"status": new_status, "updated_at": now}
    if new_status == AssignmentStatus.CONFIRMED:
        values["confirmed_at"] = now
    if notes is not None:
        values["notes"] = notes

    result = await db.execute(
        update(Assignment)
        .where(Assignment.id == assignment_id, Assignment.status == old_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidTransition(
            "Assignment status changed concurrently",
            from_status=old_status.wire,
            to_status=new_status.wire,
        )

    was_active = old_status in ACTIVE_ASSIGNMENT_STATUSES
    is_active = new_status in ACTIVE_ASSIGNMENT_STATUSES
    if was_active and not is_active:
        await release_slots(db, assignment.event_id)
    elif is_active and not was_active:
        if not await claim_slot(db, assignment.event_id, require_accepting=False):
            raise EventFull(event_id=assignment.event_id)

    await db.refresh(assignment)
    event = await load_event(db, assignment.event_id)
    queue_notifications(db, dispatcher, [status_changed_intent(assignment, event, old_status)])
    await db.commit()

    logger.info(
        "Assignment %s moved %s -> %s",
        assignment_id,
        old_status.value,
        new_status.value,
    )
    return assignment


@store_operation
async def delete_assignment(db: AsyncSession, assignment_id: uuid.UUID) -> None:
    """Remove an assignment that is still open or whose event has not started."""
    assignment = await _load_assignment(db, assignment_id, for_update=True)
    event = await load_event(db, assignment.event_id, for_update=True)

    started = event is not None and as_utc(event.start_date) <= utc_now()
    if assignment.status in TERMINAL_ASSIGNMENT_STATUSES and started:
        raise AssignmentNotDeletable(
            f"Assignment is {assignment.status.wire} and the event has started",
            assignment_id=assignment_id,
        )

    # Participation history outlives the assignment it came from
    await db.execute(
        update(VolunteerHistory)
        .where(VolunteerHistory.assignment_id == assignment.id)
        .values(assignment_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.delete(assignment)
    await db.flush()

    if assignment.status in ACTIVE_ASSIGNMENT_STATUSES:
        await release_slots(db, assignment.event_id)

    await db.commit()
    logger.info(
        "Deleted assignment %s (%s) for volunteer %s on event %s",
        assignment_id,
        assignment.status.value,
        assignment.volunteer_id,
        assignment.event_id,
    )


@store_operation
async def get_assignment(db: AsyncSession, assignment_id: uuid.UUID) -> Assignment:
    return await _load_assignment(db, assignment_id)


@store_operation
async def list_assignments(
    db: AsyncSession,
    *,
    event_id: Optional[uuid.UUID] = None,
    volunteer_id: Optional[uuid.UUID] = None,
    status: Optional[AssignmentStatus] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[Assignment]:
    q = select(Assignment)
    if event_id:
        q = q.where(Assignment.event_id == event_id)
    if volunteer_id:
        q = q.where(Assignment.volunteer_id == volunteer_id)
    if status:
        q = q.where(Assignment.status == AssignmentStatus.parse(status))
    q = q.order_by(Assignment.assigned_at.desc()).offset(skip).limit(limit)
    return list((await db.execute(q)).scalars().all())


# ---------------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------------


@store_operation
async def reconcile(
    db: AsyncSession, event_id: uuid.UUID, *, apply: bool = True
) -> CapacityReconciliation:
    """Recount active assignments for one event and optionally fix the counter."""
    event = await load_event(db, event_id, for_update=True)
    if event is None:
        raise EventNotFound(event_id=event_id)

    actual = (
        await db.execute(
            select(func.count(Assignment.id)).where(
                Assignment.event_id == event_id,
                Assignment.status.in_(list(ACTIVE_ASSIGNMENT_STATUSES)),
            )
        )
    ).scalar_one()
    recorded = event.current_volunteers

    corrected = False
    if recorded != actual:
        logger.warning(
            "Capacity drift on event %s: counter=%d active assignments=%d",
            event_id,
            recorded,
            actual,
        )
        if apply and actual > event.max_volunteers:
            logger.error(
                "Event %s has %d active assignments for %d slots; raise capacity first",
                event_id,
                actual,
                event.max_volunteers,
            )
        elif apply:
            event.current_volunteers = actual
            event.updated_at = utc_now()
            await db.commit()
            corrected = True

    return CapacityReconciliation(
        event_id=event_id, recorded=recorded, actual=actual, corrected=corrected
    )


async def reconcile_all(
    db: AsyncSession, *, apply: bool = True
) -> list[CapacityReconciliation]:
    """Reconcile every event, each in its own bounded transaction."""
    event_ids = await _all_event_ids(db)
    results = []
    for event_id in event_ids:
        results.append(await reconcile(db, event_id, apply=apply))
    drifted = [r for r in results if r.drift]
    logger.info(
        "Reconciled %d events: %d drifted, %d corrected",
        len(results),
        len(drifted),
        sum(1 for r in drifted if r.corrected),
    )
    return results


@store_operation
async def _all_event_ids(db: AsyncSession) -> list[uuid.UUID]:
    return list((await db.execute(select(Event.id).order_by(Event.created_at))).scalars())
