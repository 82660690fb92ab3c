"""Pydantic schemas for the Volunteer Service.

Status vocabularies are accepted in any casing and emitted in their lowercase
hyphenated wire form (``no-show``, ``in-progress``).
"""

import uuid
from datetime import datetime
from typing import Annotated, Optional

from fastapi import HTTPException
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer
from services.volunteer_service.models import (
    AssignmentStatus,
    AttendanceType,
    EventStatus,
    NotificationPriority,
    NotificationType,
    ParticipationStatus,
    UrgencyLevel,
    UserRole,
)


def _wire_enum(enum_cls):
    return Annotated[
        enum_cls,
        BeforeValidator(enum_cls.parse),
        PlainSerializer(lambda member: member.wire, return_type=str),
    ]


def parse_query_enum(enum_cls, value: Optional[str], name: str):
    """Parse an optional enum query parameter, rejecting unknown labels with 422."""
    if value is None:
        return None
    try:
        return enum_cls.parse(value)
    except ValueError as exc:
        allowed = ", ".join(member.wire for member in enum_cls)
        raise HTTPException(
            status_code=422, detail=f"Invalid {name} '{value}'. Use one of: {allowed}"
        ) from exc


AssignmentStatusField = _wire_enum(AssignmentStatus)
AttendanceField = _wire_enum(AttendanceType)
EventStatusField = _wire_enum(EventStatus)
NotificationPriorityField = _wire_enum(NotificationPriority)
NotificationTypeField = _wire_enum(NotificationType)
ParticipationStatusField = _wire_enum(ParticipationStatus)
UrgencyField = _wire_enum(UrgencyLevel)
UserRoleField = _wire_enum(UserRole)


# ============================================================================
# EVENT SCHEMAS
# ============================================================================


class EventBase(BaseModel):
    title: str = Field(..., max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    urgency: UrgencyField = UrgencyLevel.MEDIUM
    start_date: datetime
    end_date: datetime
    location: Optional[str] = Field(None, max_length=255)
    max_volunteers: int


class EventCreate(EventBase):
    pass


class EventResponse(EventBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    status: EventStatusField
    current_volunteers: int
    spots_remaining: int
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime


class EventCapacityUpdate(BaseModel):
    max_volunteers: int


class EventCancelRequest(BaseModel):
    reason: Optional[str] = None


class EventCompletionResponse(BaseModel):
    event: EventResponse
    no_shows_recorded: int


class EventCancellationResponse(BaseModel):
    event: EventResponse
    cancelled_assignments: int


class CapacityReconciliationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_id: uuid.UUID
    recorded: int
    actual: int
    drift: int
    corrected: bool


# ============================================================================
# ASSIGNMENT SCHEMAS
# ============================================================================


class AssignmentCreate(BaseModel):
    event_id: uuid.UUID
    volunteer_id: uuid.UUID
    status: AssignmentStatusField = AssignmentStatus.PENDING
    match_score: float = 0.0
    notes: Optional[str] = None


class AssignmentStatusUpdate(BaseModel):
    status: AssignmentStatusField
    notes: Optional[str] = None


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    event_id: uuid.UUID
    volunteer_id: uuid.UUID
    status: AssignmentStatusField
    match_score: float
    notes: Optional[str] = None
    assigned_at: datetime
    confirmed_at: Optional[datetime] = None
    updated_at: datetime


# ============================================================================
# HISTORY SCHEMAS
# ============================================================================


class ParticipationCreate(BaseModel):
    assignment_id: uuid.UUID
    attendance: AttendanceField
    hours_worked: float
    performance_rating: Optional[int] = None
    feedback: Optional[str] = None
    admin_notes: Optional[str] = None


class HistoryUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Optional[ParticipationStatusField] = None
    attendance: Optional[AttendanceField] = None
    hours_worked: Optional[float] = None
    performance_rating: Optional[int] = None
    feedback: Optional[str] = None
    admin_notes: Optional[str] = None
    participation_date: Optional[datetime] = None
    completion_date: Optional[datetime] = None


class HistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    volunteer_id: uuid.UUID
    event_id: uuid.UUID
    assignment_id: Optional[uuid.UUID] = None
    status: ParticipationStatusField
    hours_worked: float
    performance_rating: Optional[int] = None
    attendance: AttendanceField
    participation_date: datetime
    completion_date: Optional[datetime] = None
    feedback: Optional[str] = None
    admin_notes: Optional[str] = None
    recorded_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# STATISTICS SCHEMAS
# ============================================================================


class VolunteerStatisticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_events: int
    completed_events: int
    total_hours: float
    average_rating: float
    attendance_rate: float
    reliability_score: int


class MonthlyActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    month: str
    events: int
    hours_worked: float
    average_rating: float


class VolunteerSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    email: str
    role: UserRoleField


class VolunteerStatisticsRowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    volunteer: VolunteerSummary
    statistics: VolunteerStatisticsResponse


class EventParticipationSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event: EventResponse
    records: list[HistoryResponse]
    total_participants: int
    completed_participants: int
    total_hours: float
    average_rating: float
    attendance_rate: float
    spots_remaining: int
    fill_percentage: int


class RosterEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    assignment: AssignmentResponse
    volunteer: VolunteerSummary
    attendance: Optional[AttendanceField] = None
    history: Optional[HistoryResponse] = None


class EventRosterResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event: EventResponse
    entries: list[RosterEntryResponse]
    total: int
    recorded: int
    awaiting_record: int
    present: int
    late: int
    absent: int
    excused: int


class AttendanceEntryCreate(BaseModel):
    volunteer_id: uuid.UUID
    attendance: AttendanceField
    hours_worked: float
    performance_rating: Optional[int] = None
    feedback: Optional[str] = None
    admin_notes: Optional[str] = None


class AttendanceBatchCreate(BaseModel):
    entries: list[AttendanceEntryCreate] = Field(..., min_length=1, max_length=500)


class AttendanceFailureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    volunteer_id: uuid.UUID
    code: str
    detail: str


class AttendanceBatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_id: uuid.UUID
    recorded: list[HistoryResponse]
    failed: list[AttendanceFailureResponse]


class DashboardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_volunteers: int
    active_volunteers: int
    total_participations: int
    total_hours: float
    average_reliability: float
    recent_days: int
    recent_participations: int
    recent_completed: int
    recent_hours: float
    top_performers: list[VolunteerStatisticsRowResponse]


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: NotificationTypeField
    priority: NotificationPriorityField
    title: str
    message: str
    event_id: Optional[uuid.UUID] = None
    related_id: Optional[uuid.UUID] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
