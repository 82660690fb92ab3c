"""Member-facing volunteer endpoints."""

import uuid
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.volunteer_service.models import AssignmentStatus, ParticipationStatus
from services.volunteer_service.schemas import (
    AssignmentResponse,
    HistoryResponse,
    MonthlyActivityResponse,
    NotificationResponse,
    VolunteerStatisticsResponse,
    parse_query_enum,
)
from services.volunteer_service.services import (
    compute_volunteer_statistics,
    get_assignment,
    list_assignments,
    list_history,
    list_notifications,
    mark_notification_read,
    monthly_trend,
    transition_status,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/volunteers", tags=["volunteers"])


# ── Helpers ─────────────────────────────────────────────────────────


def _caller_id(user: AuthUser) -> uuid.UUID:
    """Token subject → user UUID."""
    try:
        return uuid.UUID(user.user_id)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Token subject is not a user id") from exc


async def _respond_to_assignment(
    assignment_id: uuid.UUID,
    new_status: AssignmentStatus,
    user: AuthUser,
    db: AsyncSession,
):
    volunteer_id = _caller_id(user)
    assignment = await get_assignment(db, assignment_id)
    if assignment.volunteer_id != volunteer_id:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return await transition_status(db, assignment_id, new_status)


# ── Assignments ─────────────────────────────────────────────────────


@router.get("/assignments/me", response_model=list[AssignmentResponse])
async def list_my_assignments(
    user: Annotated[AuthUser, Depends(get_current_user)],
    status: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_async_db),
):
    """List my assignments, newest first."""
    return await list_assignments(
        db,
        volunteer_id=_caller_id(user),
        status=parse_query_enum(AssignmentStatus, status, "status"),
        skip=skip,
        limit=limit,
    )


@router.post("/assignments/{assignment_id}/confirm", response_model=AssignmentResponse)
async def confirm_assignment(
    assignment_id: uuid.UUID,
    user: Annotated[AuthUser, Depends(get_current_user)],
    db: AsyncSession = Depends(get_async_db),
):
    """Accept a pending assignment."""
    return await _respond_to_assignment(
        assignment_id, AssignmentStatus.CONFIRMED, user, db
    )


@router.post("/assignments/{assignment_id}/decline", response_model=AssignmentResponse)
async def decline_assignment(
    assignment_id: uuid.UUID,
    user: Annotated[AuthUser, Depends(get_current_user)],
    db: AsyncSession = Depends(get_async_db),
):
    """Turn down a pending assignment, freeing its slot."""
    return await _respond_to_assignment(
        assignment_id, AssignmentStatus.DECLINED, user, db
    )


# ── History ─────────────────────────────────────────────────────────


@router.get("/history/me", response_model=list[HistoryResponse])
async def list_my_history(
    user: Annotated[AuthUser, Depends(get_current_user)],
    status: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_async_db),
):
    """My participation records, most recent first."""
    return await list_history(
        db,
        volunteer_id=_caller_id(user),
        status=parse_query_enum(ParticipationStatus, status, "status"),
        skip=skip,
        limit=limit,
    )


@router.get("/history/me/stats", response_model=VolunteerStatisticsResponse)
async def get_my_stats(
    user: Annotated[AuthUser, Depends(get_current_user)],
    db: AsyncSession = Depends(get_async_db),
):
    return await compute_volunteer_statistics(db, _caller_id(user))


@router.get("/history/me/trends", response_model=list[MonthlyActivityResponse])
async def get_my_trends(
    user: Annotated[AuthUser, Depends(get_current_user)],
    months: Optional[int] = Query(None, ge=1, le=36),
    db: AsyncSession = Depends(get_async_db),
):
    return await monthly_trend(db, _caller_id(user), months=months)


# ── Notifications ───────────────────────────────────────────────────


@router.get("/notifications/me", response_model=list[NotificationResponse])
async def list_my_notifications(
    user: Annotated[AuthUser, Depends(get_current_user)],
    unread_only: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_notifications(
        db, _caller_id(user), unread_only=unread_only, skip=skip, limit=limit
    )


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def read_notification(
    notification_id: uuid.UUID,
    user: Annotated[AuthUser, Depends(get_current_user)],
    db: AsyncSession = Depends(get_async_db),
):
    return await mark_notification_read(db, notification_id, _caller_id(user))
