"""Notification intents emitted by the ledger and the dispatcher that stores them.

The ledger never waits on delivery inside its transaction: intents are queued
on the session and handed over only after the operation has committed and left
its timeout-bound section. A failing or slow dispatcher is logged without
undoing or failing the operation that produced the intent.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.volunteer_service.errors import NotificationNotFound
from services.volunteer_service.models import (
    Assignment,
    AssignmentStatus,
    Event,
    Notification,
    NotificationPriority,
    NotificationType,
)
from services.volunteer_service.services.store import after_commit, store_operation
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class NotificationIntent:
    target_user_id: uuid.UUID
    type: NotificationType
    priority: NotificationPriority
    title: str
    body: str
    related_event_id: Optional[uuid.UUID] = None
    related_assignment_id: Optional[uuid.UUID] = None
    metadata: dict = field(default_factory=dict)


class NotificationDispatcher(Protocol):
    async def dispatch(self, intent: NotificationIntent) -> None: ...


class DatabaseNotificationDispatcher:
    """Persists intents as in-app notifications, one short transaction each."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def dispatch(self, intent: NotificationIntent) -> None:
        notification = Notification(
            user_id=intent.target_user_id,
            type=intent.type,
            priority=intent.priority,
            title=intent.title[:200],
            message=intent.body,
            event_id=intent.related_event_id,
            related_id=intent.related_assignment_id,
            metadata_json=intent.metadata or None,
        )
        self.db.add(notification)
        try:
            await self.db.commit()
        except (SQLAlchemyError, asyncio.CancelledError):
            await self.db.rollback()
            raise


async def emit_notifications(
    dispatcher: NotificationDispatcher,
    intents: Iterable[NotificationIntent],
    *,
    timeout: Optional[float] = None,
) -> int:
    """Hand intents to the dispatcher. Returns how many were accepted.

    Each hand-over is bounded by ``timeout`` (the store timeout by default);
    failures and timeouts are logged and skipped.
    """
    if timeout is None:
        timeout = get_settings().STORE_TIMEOUT_SECONDS
    accepted = 0
    for intent in intents:
        try:
            await asyncio.wait_for(dispatcher.dispatch(intent), timeout=timeout)
            accepted += 1
        except asyncio.TimeoutError:
            logger.warning(
                "Gave up dispatching %s notification to user %s after %gs",
                intent.type.value,
                intent.target_user_id,
                timeout,
            )
        except Exception:
            logger.exception(
                "Failed to dispatch %s notification to user %s",
                intent.type.value,
                intent.target_user_id,
            )
    return accepted


def queue_notifications(
    db: AsyncSession,
    dispatcher: Optional[NotificationDispatcher],
    intents: Iterable[NotificationIntent],
) -> None:
    """Deliver ``intents`` once the surrounding ledger operation has committed."""
    intents = list(intents)
    if not intents:
        return
    target = dispatcher or DatabaseNotificationDispatcher(db)

    async def _deliver() -> None:
        await emit_notifications(target, intents)

    after_commit(db, _deliver)


# ── Intent builders ─────────────────────────────────────────────────


def assignment_created_intent(assignment: Assignment, event: Event) -> NotificationIntent:
    return NotificationIntent(
        target_user_id=assignment.volunteer_id,
        type=NotificationType.ASSIGNMENT,
        priority=NotificationPriority.HIGH,
        title=f"New Assignment: {event.title}",
        body=f"You have been assigned to {event.title}. Check your schedule for details.",
        related_event_id=event.id,
        related_assignment_id=assignment.id,
        metadata={"status": assignment.status.wire, "event_title": event.title},
    )


def status_changed_intent(
    assignment: Assignment,
    event: Event,
    old_status: AssignmentStatus,
) -> NotificationIntent:
    new_status = assignment.status
    priority = (
        NotificationPriority.HIGH
        if new_status == AssignmentStatus.CANCELLED
        else NotificationPriority.MEDIUM
    )
    return NotificationIntent(
        target_user_id=assignment.volunteer_id,
        type=NotificationType.ASSIGNMENT,
        priority=priority,
        title=f"Assignment {new_status.wire}: {event.title}",
        body=(
            f"Your assignment for {event.title} changed from "
            f"{old_status.wire} to {new_status.wire}."
        ),
        related_event_id=event.id,
        related_assignment_id=assignment.id,
        metadata={"from": old_status.wire, "to": new_status.wire},
    )


def event_cancelled_intent(
    assignment: Assignment, event: Event, reason: Optional[str] = None
) -> NotificationIntent:
    body = f"{event.title} has been cancelled."
    if reason:
        body = f"{body} {reason}"
    return NotificationIntent(
        target_user_id=assignment.volunteer_id,
        type=NotificationType.EVENT_UPDATE,
        priority=NotificationPriority.HIGH,
        title=f"Event Cancelled: {event.title}",
        body=body,
        related_event_id=event.id,
        related_assignment_id=assignment.id,
    )


# ── Reads ───────────────────────────────────────────────────────────


@store_operation
async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    unread_only: bool = False,
    skip: int = 0,
    limit: int = 50,
) -> list[Notification]:
    q = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        q = q.where(Notification.is_read.is_(False))
    q = q.order_by(Notification.created_at.desc()).offset(skip).limit(limit)
    return list((await db.execute(q)).scalars().all())


@store_operation
async def mark_notification_read(
    db: AsyncSession, notification_id: uuid.UUID, user_id: uuid.UUID
) -> Notification:
    notification = (
        await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
    ).scalar_one_or_none()
    if not notification:
        raise NotificationNotFound(notification_id=notification_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utc_now()
        await db.commit()
    return notification
