import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from libs.db.types import UTCDateTime
from services.volunteer_service.models.enums import (
    AssignmentStatus,
    AttendanceType,
    EventStatus,
    NotificationPriority,
    NotificationType,
    ParticipationStatus,
    UrgencyLevel,
    UserRole,
    enum_values,
)
from sqlalchemy import JSON, Boolean, CheckConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship


def _enum_column(enum_cls, name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=enum_values,
        validate_strings=True,
        create_constraint=False,
    )


# ============================================================================
# USERS
# ============================================================================


class User(Base):
    """An account: volunteers are assigned to events, admins create them."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        _enum_column(UserRole, "user_role"), default=UserRole.VOLUNTEER
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)

    def __repr__(self) -> str:
        return f"<User {self.username} role={self.role}>"


# ============================================================================
# EVENTS
# ============================================================================


class Event(Base):
    """A posted volunteering event with a bounded number of volunteer slots."""

    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("max_volunteers >= 1", name="max_volunteers_positive"),
        CheckConstraint("current_volunteers >= 0", name="current_volunteers_non_negative"),
        CheckConstraint(
            "current_volunteers <= max_volunteers", name="current_volunteers_within_capacity"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    urgency: Mapped[UrgencyLevel] = mapped_column(
        _enum_column(UrgencyLevel, "urgency_level"), default=UrgencyLevel.MEDIUM
    )
    status: Mapped[EventStatus] = mapped_column(
        _enum_column(EventStatus, "event_status"), default=EventStatus.DRAFT, index=True
    )
    start_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    max_volunteers: Mapped[int] = mapped_column(Integer, nullable=False)
    current_volunteers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now
    )

    # Relationships
    assignments: Mapped[list["Assignment"]] = relationship(
        back_populates="event", passive_deletes=True
    )

    @property
    def spots_remaining(self) -> int:
        return max(0, self.max_volunteers - self.current_volunteers)

    def __repr__(self) -> str:
        return f"<Event {self.title} {self.current_volunteers}/{self.max_volunteers}>"


# ============================================================================
# ASSIGNMENTS
# ============================================================================


class Assignment(Base):
    """A volunteer's place on an event."""

    __tablename__ = "assignments"
    __table_args__ = (
        # One assignment per volunteer per event
        UniqueConstraint("event_id", "volunteer_id", name="uq_assignments_event_volunteer"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), index=True
    )
    volunteer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    status: Mapped[AssignmentStatus] = mapped_column(
        _enum_column(AssignmentStatus, "assignment_status"),
        default=AssignmentStatus.PENDING,
        index=True,
    )
    match_score: Mapped[float] = mapped_column(Float, default=0.0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now, index=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now
    )

    # Relationships
    event: Mapped["Event"] = relationship(back_populates="assignments")

    def __repr__(self) -> str:
        return f"<Assignment volunteer={self.volunteer_id} status={self.status}>"


# ============================================================================
# PARTICIPATION HISTORY
# ============================================================================


class VolunteerHistory(Base):
    """Permanent record of what happened at an event for one volunteer."""

    __tablename__ = "volunteer_history"
    __table_args__ = (
        UniqueConstraint("volunteer_id", "event_id", name="uq_volunteer_history_volunteer_event"),
        CheckConstraint(
            "hours_worked >= 0 AND hours_worked <= 24", name="hours_worked_range"
        ),
        CheckConstraint(
            "performance_rating IS NULL OR (performance_rating >= 1 AND performance_rating <= 5)",
            name="performance_rating_range",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    volunteer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), index=True
    )
    # History outlives the assignment it came from
    assignment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("assignments.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[ParticipationStatus] = mapped_column(
        _enum_column(ParticipationStatus, "participation_status"), nullable=False
    )
    hours_worked: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    performance_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    attendance: Mapped[AttendanceType] = mapped_column(
        _enum_column(AttendanceType, "attendance_type"), nullable=False
    )
    participation_date: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, index=True
    )
    completion_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recorded_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now
    )

    def __repr__(self) -> str:
        return f"<VolunteerHistory volunteer={self.volunteer_id} status={self.status}>"


# ============================================================================
# NOTIFICATIONS
# ============================================================================


class Notification(Base):
    """In-app notification persisted by the database dispatcher."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    type: Mapped[NotificationType] = mapped_column(
        _enum_column(NotificationType, "notification_type"), nullable=False
    )
    priority: Mapped[NotificationPriority] = mapped_column(
        _enum_column(NotificationPriority, "notification_priority"),
        default=NotificationPriority.MEDIUM,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    event_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    related_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    metadata_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now, index=True)

    def __repr__(self) -> str:
        return f"<Notification {self.type} to {self.user_id}>"
