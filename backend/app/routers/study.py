"""
Study Activity API Router

Endpoints for recording and browsing study activities.

Endpoints:
- POST /api/study - Record a study activity (merges into today's entry)
- GET /api/study - List activities, newest first
- GET /api/study/stats - Study statistics
- GET /api/study/daily-progress - Per-subject daily progress snapshots
- GET /api/study/{id} - Get an activity
- PUT /api/study/{id} - Update an activity
- DELETE /api/study/{id} - Delete an activity

Write responses carry a derived_state report: the activity is stored even
when a streak, progress or achievement update fails.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import get_db
from app.dependencies import AuthContext, get_auth_context, resolve_student_id
from app.middleware.error_handling import handle_endpoint_errors
from app.models.study import (
    ActivityCreate,
    ActivityDeleteResponse,
    ActivityResponse,
    ActivityUpdate,
    ActivityWriteResponse,
    DailyProgressResponse,
    StudyStatsResponse,
)
from app.services.study import ActivityLogService, DailyProgressTracker, StudyTrackingService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/study", tags=["study"])


# ===========================================
# Dependency Injection
# ===========================================


async def get_tracking_service(
    db: AsyncSession = Depends(get_db),
) -> StudyTrackingService:
    """Get study tracking service."""
    return StudyTrackingService(db)


async def get_activity_log(
    db: AsyncSession = Depends(get_db),
) -> ActivityLogService:
    """Get activity log service."""
    return ActivityLogService(db)


async def get_daily_progress_tracker(
    db: AsyncSession = Depends(get_db),
) -> DailyProgressTracker:
    """Get daily progress tracker."""
    return DailyProgressTracker(db)


# ===========================================
# Activity Endpoints
# ===========================================


@router.post("", response_model=ActivityWriteResponse, status_code=status.HTTP_201_CREATED)
@handle_endpoint_errors("Record study activity")
async def record_activity(
    request: ActivityCreate,
    student_id: str = Depends(resolve_student_id),
    service: StudyTrackingService = Depends(get_tracking_service),
) -> ActivityWriteResponse:
    """
    Record a study activity.

    A second submission for the same subject on the same study day is merged
    into the existing activity instead of creating a new one.
    """
    result = await service.record_activity(student_id, request)
    if not result.derived_state.ok:
        logger.warning(
            f"Activity {result.activity.id} stored with stale derived state: "
            f"{result.derived_state.errors}"
        )
    return result


@router.get("", response_model=list[ActivityResponse])
@handle_endpoint_errors("List study activities")
async def list_activities(
    subject_id: Optional[int] = Query(None, description="Filter by subject"),
    lesson_id: Optional[int] = Query(None, description="Filter by lesson"),
    date: Optional[str] = Query(
        None, pattern=r"^\d{4}-\d{2}-\d{2}$", description="Study day (YYYY-MM-DD)"
    ),
    limit: int = Query(100, ge=1, le=500, description="Maximum activities to return"),
    student_id: str = Depends(resolve_student_id),
    service: ActivityLogService = Depends(get_activity_log),
) -> list[ActivityResponse]:
    """List activities newest first."""
    activities = await service.list_activities(
        student_id,
        subject_id=subject_id,
        lesson_id=lesson_id,
        day_key=date,
        limit=limit,
    )
    return [ActivityResponse.model_validate(a) for a in activities]


@router.get("/stats", response_model=StudyStatsResponse)
@handle_endpoint_errors("Get study stats")
async def get_study_stats(
    student_id: str = Depends(resolve_student_id),
    service: ActivityLogService = Depends(get_activity_log),
) -> StudyStatsResponse:
    """Totals per subject and per sub-activity."""
    return await service.get_study_stats(student_id)


@router.get("/daily-progress", response_model=list[DailyProgressResponse])
@handle_endpoint_errors("Get daily progress")
async def get_daily_progress(
    subject_id: Optional[int] = Query(None, description="Filter by subject"),
    date: Optional[str] = Query(
        None, pattern=r"^\d{4}-\d{2}-\d{2}$", description="Study day (YYYY-MM-DD)"
    ),
    student_id: str = Depends(resolve_student_id),
    tracker: DailyProgressTracker = Depends(get_daily_progress_tracker),
) -> list[DailyProgressResponse]:
    """Minutes, entries and goal status per subject and study day, newest day first."""
    rows = await tracker.list_daily_progress(student_id, day_key=date, subject_id=subject_id)
    return [DailyProgressResponse.model_validate(row) for row in rows]


@router.get("/{activity_id}", response_model=ActivityResponse)
@handle_endpoint_errors("Get study activity")
async def get_activity(
    activity_id: int,
    auth: AuthContext = Depends(get_auth_context),
    service: ActivityLogService = Depends(get_activity_log),
) -> ActivityResponse:
    """Get an activity. Students only see their own."""
    activity = await service.get_activity(
        activity_id, None if auth.is_admin else auth.user_id
    )
    return ActivityResponse.model_validate(activity)


@router.put("/{activity_id}", response_model=ActivityWriteResponse)
@handle_endpoint_errors("Update study activity")
async def update_activity(
    activity_id: int,
    request: ActivityUpdate,
    student_id: str = Depends(resolve_student_id),
    service: StudyTrackingService = Depends(get_tracking_service),
) -> ActivityWriteResponse:
    """Overlay the provided fields onto an activity."""
    return await service.update_activity(activity_id, student_id, request)


@router.delete("/{activity_id}", response_model=ActivityDeleteResponse)
@handle_endpoint_errors("Delete study activity")
async def delete_activity(
    activity_id: int,
    auth: AuthContext = Depends(get_auth_context),
    service: StudyTrackingService = Depends(get_tracking_service),
) -> ActivityDeleteResponse:
    """Delete an activity. Admins may delete any activity."""
    return await service.delete_activity(
        activity_id, auth.user_id, require_owner=not auth.is_admin
    )
