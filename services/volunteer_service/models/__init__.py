"""Volunteer Service models package."""

from services.volunteer_service.models.core import (
    Assignment,
    Event,
    Notification,
    User,
    VolunteerHistory,
)
from services.volunteer_service.models.enums import (
    ACTIVE_ASSIGNMENT_STATUSES,
    ALLOWED_ASSIGNMENT_TRANSITIONS,
    ALLOWED_EVENT_TRANSITIONS,
    EVENT_ACCEPTING_STATUSES,
    TERMINAL_ASSIGNMENT_STATUSES,
    AssignmentStatus,
    AttendanceType,
    EventStatus,
    NotificationPriority,
    NotificationType,
    ParticipationStatus,
    UrgencyLevel,
    UserRole,
)

__all__ = [
    "ACTIVE_ASSIGNMENT_STATUSES",
    "ALLOWED_ASSIGNMENT_TRANSITIONS",
    "ALLOWED_EVENT_TRANSITIONS",
    "EVENT_ACCEPTING_STATUSES",
    "TERMINAL_ASSIGNMENT_STATUSES",
    "Assignment",
    "AssignmentStatus",
    "AttendanceType",
    "Event",
    "EventStatus",
    "Notification",
    "NotificationPriority",
    "NotificationType",
    "ParticipationStatus",
    "UrgencyLevel",
    "User",
    "UserRole",
    "VolunteerHistory",
]
