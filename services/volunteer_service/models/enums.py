"""Enum definitions for volunteer service models.

Every status vocabulary is a closed ``LedgerEnum``: the stored value is the
canonical UPPER_SNAKE label, parsing is case- and separator-insensitive, and
``.wire`` gives the lowercase hyphenated form used in API payloads.
"""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


def _canonical(label: str) -> str:
    return label.strip().upper().replace("-", "_").replace(" ", "_")


class LedgerEnum(str, enum.Enum):
    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            canonical = _canonical(value)
            for member in cls:
                if member.value == canonical:
                    return member
        return None

    @classmethod
    def parse(cls, value):
        """Accept a member or any casing of its label; raise ValueError otherwise."""
        if isinstance(value, cls):
            return value
        return cls(value)

    @property
    def wire(self) -> str:
        return self.value.lower().replace("_", "-")

    def __str__(self) -> str:
        return self.value


class UserRole(LedgerEnum):
    VOLUNTEER = "VOLUNTEER"
    ADMIN = "ADMIN"


class EventStatus(LedgerEnum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class UrgencyLevel(LedgerEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AssignmentStatus(LedgerEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class ParticipationStatus(LedgerEnum):
    REGISTERED = "REGISTERED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"
    CANCELLED = "CANCELLED"


class AttendanceType(LedgerEnum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    EXCUSED = "EXCUSED"


class NotificationType(LedgerEnum):
    ASSIGNMENT = "ASSIGNMENT"
    REMINDER = "REMINDER"
    EVENT_UPDATE = "EVENT_UPDATE"
    MATCHING_SUGGESTION = "MATCHING_SUGGESTION"
    ANNOUNCEMENT = "ANNOUNCEMENT"
    SYSTEM = "SYSTEM"


class NotificationPriority(LedgerEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


# Assignments in these states hold one unit of event capacity.
ACTIVE_ASSIGNMENT_STATUSES = frozenset(
    {
        AssignmentStatus.PENDING,
        AssignmentStatus.CONFIRMED,
        AssignmentStatus.COMPLETED,
    }
)

TERMINAL_ASSIGNMENT_STATUSES = frozenset(
    {
        AssignmentStatus.DECLINED,
        AssignmentStatus.CANCELLED,
        AssignmentStatus.COMPLETED,
    }
)

ALLOWED_ASSIGNMENT_TRANSITIONS: dict[AssignmentStatus, frozenset[AssignmentStatus]] = {
    AssignmentStatus.PENDING: frozenset(
        {
            AssignmentStatus.CONFIRMED,
            AssignmentStatus.DECLINED,
            AssignmentStatus.CANCELLED,
        }
    ),
    AssignmentStatus.CONFIRMED: frozenset(
        {
            AssignmentStatus.CANCELLED,
            AssignmentStatus.COMPLETED,
        }
    ),
}

EVENT_ACCEPTING_STATUSES = frozenset({EventStatus.PUBLISHED, EventStatus.IN_PROGRESS})

ALLOWED_EVENT_TRANSITIONS: dict[EventStatus, frozenset[EventStatus]] = {
    EventStatus.DRAFT: frozenset({EventStatus.PUBLISHED, EventStatus.CANCELLED}),
    EventStatus.PUBLISHED: frozenset(
        {EventStatus.IN_PROGRESS, EventStatus.COMPLETED, EventStatus.CANCELLED}
    ),
    EventStatus.IN_PROGRESS: frozenset({EventStatus.COMPLETED, EventStatus.CANCELLED}),
}
