"""Volunteer Service business logic package."""

from services.volunteer_service.services.assignments import (
    CapacityReconciliation,
    create_assignment,
    delete_assignment,
    get_assignment,
    list_assignments,
    reconcile,
    reconcile_all,
    transition_status,
)
from services.volunteer_service.services.events import (
    EventCancellation,
    EventCompletion,
    cancel_event,
    change_capacity,
    complete_event,
    create_event,
    get_event,
    list_events,
    publish_event,
    start_event,
)
from services.volunteer_service.services.history import (
    AttendanceBatch,
    AttendanceEntry,
    AttendanceFailure,
    MonthlyActivity,
    VolunteerStatistics,
    build_monthly_trend,
    compute_volunteer_statistics,
    list_history,
    monthly_trend,
    purge_history,
    record_event_attendance,
    record_no_shows,
    record_participation,
    summarize_history,
    update_history,
)
from services.volunteer_service.services.notifications import (
    DatabaseNotificationDispatcher,
    NotificationDispatcher,
    NotificationIntent,
    list_notifications,
    mark_notification_read,
)
from services.volunteer_service.services.reporting import (
    DashboardSummary,
    EventParticipationSummary,
    EventRoster,
    RosterEntry,
    VolunteerStatisticsRow,
    all_volunteer_statistics,
    dashboard_summary,
    event_participation_summary,
    event_roster,
)

__all__ = [
    "AttendanceBatch",
    "AttendanceEntry",
    "AttendanceFailure",
    "CapacityReconciliation",
    "DashboardSummary",
    "DatabaseNotificationDispatcher",
    "EventCancellation",
    "EventCompletion",
    "EventParticipationSummary",
    "EventRoster",
    "MonthlyActivity",
    "NotificationDispatcher",
    "NotificationIntent",
    "RosterEntry",
    "VolunteerStatistics",
    "VolunteerStatisticsRow",
    "all_volunteer_statistics",
    "build_monthly_trend",
    "cancel_event",
    "change_capacity",
    "complete_event",
    "compute_volunteer_statistics",
    "create_assignment",
    "create_event",
    "dashboard_summary",
    "delete_assignment",
    "event_participation_summary",
    "event_roster",
    "get_assignment",
    "get_event",
    "list_assignments",
    "list_events",
    "list_history",
    "list_notifications",
    "mark_notification_read",
    "monthly_trend",
    "publish_event",
    "purge_history",
    "reconcile",
    "reconcile_all",
    "record_event_attendance",
    "record_no_shows",
    "record_participation",
    "start_event",
    "summarize_history",
    "transition_status",
    "update_history",
]
