"""Typed failures raised by the assignment and participation ledger."""

from libs.common.errors import AppError


class LedgerError(AppError):
    code = "ledger_error"


# ── Not found ───────────────────────────────────────────────────────


class AssignmentNotFound(LedgerError):
    status_code = 404
    code = "assignment_not_found"
    default_detail = "Assignment not found"


class EventNotFound(LedgerError):
    status_code = 404
    code = "event_not_found"
    default_detail = "Event not found"


class VolunteerNotFound(LedgerError):
    status_code = 404
    code = "volunteer_not_found"
    default_detail = "Volunteer not found"


class HistoryNotFound(LedgerError):
    status_code = 404
    code = "history_not_found"
    default_detail = "History record not found"


class NotificationNotFound(LedgerError):
    status_code = 404
    code = "notification_not_found"
    default_detail = "Notification not found"


# ── Assignment lifecycle ────────────────────────────────────────────


class DuplicateAssignment(LedgerError):
    status_code = 409
    code = "duplicate_assignment"
    default_detail = "Volunteer is already assigned to this event"


class EventFull(LedgerError):
    status_code = 409
    code = "event_full"
    default_detail = "Event is at capacity"


class EventNotAcceptingVolunteers(LedgerError):
    status_code = 409
    code = "event_not_accepting_volunteers"
    default_detail = "Event is not accepting volunteers"


class InvalidTransition(LedgerError):
    status_code = 409
    code = "invalid_transition"
    default_detail = "Status transition is not allowed"


class AssignmentNotDeletable(LedgerError):
    status_code = 409
    code = "assignment_not_deletable"
    default_detail = "Assignment can no longer be deleted"


# ── Events ──────────────────────────────────────────────────────────


class InvalidEventTransition(LedgerError):
    status_code = 409
    code = "invalid_event_transition"
    default_detail = "Event status transition is not allowed"


class CapacityBelowAssigned(LedgerError):
    status_code = 409
    code = "capacity_below_assigned"
    default_detail = "Capacity cannot be lowered below the number of assigned volunteers"


class InvalidEventDetails(LedgerError):
    status_code = 422
    code = "invalid_event_details"
    default_detail = "Event details are invalid"


class CreatorNotAdmin(LedgerError):
    status_code = 403
    code = "creator_not_admin"
    default_detail = "Only admins can create events"


# ── Participation history ───────────────────────────────────────────


class HistoryAlreadyExists(LedgerError):
    status_code = 409
    code = "history_already_exists"
    default_detail = "A participation record already exists for this volunteer and event"


class ParticipationNotEligible(LedgerError):
    status_code = 409
    code = "participation_not_eligible"
    default_detail = "Assignment is not eligible for a participation record"


class InvalidHoursWorked(LedgerError):
    status_code = 422
    code = "invalid_hours_worked"
    default_detail = "Hours worked must be between 0 and 24"


class InvalidRating(LedgerError):
    status_code = 422
    code = "invalid_rating"
    default_detail = "Performance rating must be an integer between 1 and 5"


class InvalidHistoryUpdate(LedgerError):
    status_code = 422
    code = "invalid_history_update"
    default_detail = "Field cannot be updated on a history record"


# ── Store ───────────────────────────────────────────────────────────


class StoreUnavailable(LedgerError):
    status_code = 503
    code = "store_unavailable"
    retryable = True
    default_detail = "Data store is unavailable, retry with backoff"
