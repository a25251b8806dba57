"""
Streak API Router

Endpoints for streaks, mastery progress and revision planning.

Endpoints:
- GET /api/streak - Streak data (recomputed best-effort before reading)
- POST /api/streak/refresh - Force a streak and achievement recompute
- GET /api/streak/revision-plan - Lessons to revise, most urgent first
- GET /api/streak/review-overview - Due reviews, stale subjects, weak areas
- GET /api/streak/progress - Per-lesson mastery progress
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import get_db
from app.dependencies import resolve_student_id
from app.middleware.error_handling import handle_endpoint_errors
from app.models.study import (
    ProgressResponse,
    ReviewOverviewResponse,
    RevisionPlanResponse,
    StreakResponse,
)
from app.services.study import ProgressTracker, RevisionPlanner, StudyTrackingService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/streak", tags=["streak"])


# ===========================================
# Dependency Injection
# ===========================================


async def get_tracking_service(
    db: AsyncSession = Depends(get_db),
) -> StudyTrackingService:
    """Get study tracking service."""
    return StudyTrackingService(db)


async def get_revision_planner(
    db: AsyncSession = Depends(get_db),
) -> RevisionPlanner:
    """Get revision planner."""
    return RevisionPlanner(db)


async def get_progress_tracker(
    db: AsyncSession = Depends(get_db),
) -> ProgressTracker:
    """Get progress tracker."""
    return ProgressTracker(db)


# ===========================================
# Streak Endpoints
# ===========================================


@router.get("", response_model=StreakResponse)
@handle_endpoint_errors("Get streak data")
async def get_streak(
    student_id: str = Depends(resolve_student_id),
    service: StudyTrackingService = Depends(get_tracking_service),
) -> StreakResponse:
    """
    Get streak information.

    Counters are recomputed first; if that fails the stored counters are
    returned unchanged.
    """
    return await service.refresh_streak(student_id)


@router.post("/refresh", response_model=StreakResponse)
@handle_endpoint_errors("Refresh streak")
async def refresh_streak(
    student_id: str = Depends(resolve_student_id),
    service: StudyTrackingService = Depends(get_tracking_service),
) -> StreakResponse:
    """Recompute streak counters, the study calendar and achievements."""
    return await service.force_refresh(student_id)


# ===========================================
# Revision Endpoints
# ===========================================


@router.get("/revision-plan", response_model=RevisionPlanResponse)
@handle_endpoint_errors("Get revision plan")
async def get_revision_plan(
    window_days: Optional[int] = Query(
        None, ge=1, le=365, description="History window in days (default 60)"
    ),
    student_id: str = Depends(resolve_student_id),
    planner: RevisionPlanner = Depends(get_revision_planner),
) -> RevisionPlanResponse:
    """
    Get the revision plan.

    Lessons studied in the window are scheduled from their average
    confidence and the days since they were last studied.
    """
    return await planner.get_revision_plan(student_id, window_days=window_days)


@router.get("/review-overview", response_model=ReviewOverviewResponse)
@handle_endpoint_errors("Get review overview")
async def get_review_overview(
    student_id: str = Depends(resolve_student_id),
    planner: RevisionPlanner = Depends(get_revision_planner),
) -> ReviewOverviewResponse:
    """Due reviews, stale subjects, weak areas and recommendations."""
    return await planner.get_review_overview(student_id)


@router.get("/progress", response_model=list[ProgressResponse])
@handle_endpoint_errors("List progress")
async def list_progress(
    subject_id: Optional[int] = Query(None, description="Filter by subject"),
    student_id: str = Depends(resolve_student_id),
    tracker: ProgressTracker = Depends(get_progress_tracker),
) -> list[ProgressResponse]:
    """Per-lesson mastery progress, most recently studied first."""
    records = await tracker.list_progress(student_id, subject_id)
    return [ProgressResponse.model_validate(r) for r in records]
