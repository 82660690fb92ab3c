"""Admin volunteer management endpoints."""

import uuid
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.volunteer_service.models import (
    AssignmentStatus,
    EventStatus,
    ParticipationStatus,
)
from services.volunteer_service.schemas import (
    AssignmentCreate,
    AssignmentResponse,
    AssignmentStatusUpdate,
    AttendanceBatchCreate,
    AttendanceBatchResponse,
    CapacityReconciliationResponse,
    DashboardResponse,
    EventCancellationResponse,
    EventCancelRequest,
    EventCapacityUpdate,
    EventCompletionResponse,
    EventCreate,
    EventParticipationSummaryResponse,
    EventResponse,
    EventRosterResponse,
    HistoryResponse,
    HistoryUpdate,
    MonthlyActivityResponse,
    ParticipationCreate,
    VolunteerStatisticsResponse,
    VolunteerStatisticsRowResponse,
    parse_query_enum,
)
from services.volunteer_service.services import (
    AttendanceEntry,
    all_volunteer_statistics,
    cancel_event,
    change_capacity,
    complete_event,
    compute_volunteer_statistics,
    create_assignment,
    create_event,
    dashboard_summary,
    delete_assignment,
    event_participation_summary,
    event_roster,
    get_event,
    list_assignments,
    list_events,
    list_history,
    monthly_trend,
    publish_event,
    purge_history,
    reconcile,
    record_event_attendance,
    record_participation,
    start_event,
    transition_status,
    update_history,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/admin/volunteers", tags=["admin-volunteers"])


# ── Helpers ─────────────────────────────────────────────────────────


def _admin_user_id(admin: AuthUser) -> Optional[uuid.UUID]:
    """Admin token subject → user UUID (None for service roles)."""
    try:
        return uuid.UUID(admin.user_id)
    except ValueError:
        return None


# ── Events ──────────────────────────────────────────────────────────


@router.post("/events", response_model=EventResponse, status_code=201)
async def admin_create_event(
    data: EventCreate,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    creator_id = _admin_user_id(admin)
    if creator_id is None:
        raise HTTPException(status_code=403, detail="Events must be created by an admin user")
    return await create_event(db, created_by=creator_id, **data.model_dump())


@router.get("/events", response_model=list[EventResponse])
async def admin_list_events(
    admin: Annotated[AuthUser, Depends(require_admin)],
    status: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_events(
        db,
        status=parse_query_enum(EventStatus, status, "status"),
        skip=skip,
        limit=limit,
    )


@router.get("/events/{event_id}", response_model=EventResponse)
async def admin_get_event(
    event_id: uuid.UUID,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    return await get_event(db, event_id)


@router.post("/events/{event_id}/publish", response_model=EventResponse)
async def admin_publish_event(
    event_id: uuid.UUID,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    return await publish_event(db, event_id)


@router.post("/events/{event_id}/start", response_model=EventResponse)
async def admin_start_event(
    event_id: uuid.UUID,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    return await start_event(db, event_id)


@router.post("/events/{event_id}/complete", response_model=EventCompletionResponse)
async def admin_complete_event(
    event_id: uuid.UUID,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    """Close the event; open assignments without a record become no-shows."""
    completion = await complete_event(db, event_id, recorded_by=_admin_user_id(admin))
    return {"event": completion.event, "no_shows_recorded": len(completion.no_shows)}


@router.post("/events/{event_id}/cancel", response_model=EventCancellationResponse)
async def admin_cancel_event(
    event_id: uuid.UUID,
    admin: Annotated[AuthUser, Depends(require_admin)],
    data: Optional[EventCancelRequest] = None,
    db: AsyncSession = Depends(get_async_db),
):
    """Cancel the event and every open assignment on it."""
    cancellation = await cancel_event(db, event_id, reason=data.reason if data else None)
    return {
        "event": cancellation.event,
        "cancelled_assignments": len(cancellation.cancelled_assignments),
    }


@router.patch("/events/{event_id}/capacity", response_model=EventResponse)
async def admin_change_capacity(
    event_id: uuid.UUID,
    data: EventCapacityUpdate,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    return await change_capacity(db, event_id, data.max_volunteers)


@router.post("/events/{event_id}/reconcile", response_model=CapacityReconciliationResponse)
async def admin_reconcile_event(
    event_id: uuid.UUID,
    admin: Annotated[AuthUser, Depends(require_admin)],
    apply: bool = True,
    db: AsyncSession = Depends(get_async_db),
):
    """Recount active assignments; with apply=false only report the drift."""
    return await reconcile(db, event_id, apply=apply)


@router.get(
    "/events/{event_id}/summary", response_model=EventParticipationSummaryResponse
)
async def admin_event_summary(
    event_id: uuid.UUID,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    return await event_participation_summary(db, event_id)


@router.get("/events/{event_id}/roster", response_model=EventRosterResponse)
async def admin_event_roster(
    event_id: uuid.UUID,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    """Assigned volunteers with the attendance recorded for them so far."""
    return await event_roster(db, event_id)


@router.post("/events/{event_id}/attendance", response_model=AttendanceBatchResponse)
async def admin_record_event_attendance(
    event_id: uuid.UUID,
    data: AttendanceBatchCreate,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    """Record attendance for many volunteers at once; rejected entries are listed."""
    entries = [AttendanceEntry(**entry.model_dump()) for entry in data.entries]
    return await record_event_attendance(
        db, event_id, entries, recorded_by=_admin_user_id(admin)
    )


# ── Assignments ─────────────────────────────────────────────────────


@router.post("/assignments", response_model=AssignmentResponse, status_code=201)
async def admin_create_assignment(
    data: AssignmentCreate,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    return await create_assignment(db, **data.model_dump())


@router.get("/assignments", response_model=list[AssignmentResponse])
async def admin_list_assignments(
    admin: Annotated[AuthUser, Depends(require_admin)],
    event_id: Optional[uuid.UUID] = None,
    volunteer_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_assignments(
        db,
        event_id=event_id,
        volunteer_id=volunteer_id,
        status=parse_query_enum(AssignmentStatus, status, "status"),
        skip=skip,
        limit=limit,
    )


@router.patch("/assignments/{assignment_id}/status", response_model=AssignmentResponse)
async def admin_update_assignment_status(
    assignment_id: uuid.UUID,
    data: AssignmentStatusUpdate,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    return await transition_status(db, assignment_id, data.status, notes=data.notes)


@router.delete("/assignments/{assignment_id}", status_code=204)
async def admin_delete_assignment(
    assignment_id: uuid.UUID,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    await delete_assignment(db, assignment_id)


# ── History ─────────────────────────────────────────────────────────


@router.post("/history", response_model=HistoryResponse, status_code=201)
async def admin_record_participation(
    data: ParticipationCreate,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    return await record_participation(
        db, recorded_by=_admin_user_id(admin), **data.model_dump()
    )


@router.get("/history", response_model=list[HistoryResponse])
async def admin_list_history(
    admin: Annotated[AuthUser, Depends(require_admin)],
    volunteer_id: Optional[uuid.UUID] = None,
    event_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_history(
        db,
        volunteer_id=volunteer_id,
        event_id=event_id,
        status=parse_query_enum(ParticipationStatus, status, "status"),
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )


@router.patch("/history/{history_id}", response_model=HistoryResponse)
async def admin_update_history(
    history_id: uuid.UUID,
    data: HistoryUpdate,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    return await update_history(
        db,
        history_id,
        data.model_dump(exclude_unset=True),
        updated_by=_admin_user_id(admin),
    )


@router.delete("/history/{history_id}", status_code=204)
async def admin_purge_history(
    history_id: uuid.UUID,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    await purge_history(db, history_id)


# ── Statistics ──────────────────────────────────────────────────────


@router.get("/volunteers/{volunteer_id}/stats", response_model=VolunteerStatisticsResponse)
async def admin_volunteer_stats(
    volunteer_id: uuid.UUID,
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    return await compute_volunteer_statistics(db, volunteer_id)


@router.get(
    "/volunteers/{volunteer_id}/trends", response_model=list[MonthlyActivityResponse]
)
async def admin_volunteer_trends(
    volunteer_id: uuid.UUID,
    admin: Annotated[AuthUser, Depends(require_admin)],
    months: Optional[int] = Query(None, ge=1, le=36),
    db: AsyncSession = Depends(get_async_db),
):
    return await monthly_trend(db, volunteer_id, months=months)


@router.get("/stats", response_model=list[VolunteerStatisticsRowResponse])
async def admin_all_volunteer_stats(
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    return await all_volunteer_statistics(db)


@router.get("/dashboard", response_model=DashboardResponse)
async def admin_dashboard(
    admin: Annotated[AuthUser, Depends(require_admin)],
    db: AsyncSession = Depends(get_async_db),
):
    """Totals, last-N-days activity and top volunteers by reliability."""
    return await dashboard_summary(db)
