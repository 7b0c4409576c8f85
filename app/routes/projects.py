"""Project upload and progress routes.

This module provides FastAPI routes for the upload/observer surface:
- POST /api/v1/projects - Accept an upload, enforce plan limits, enqueue the run
- GET /api/v1/projects/{project_id} - Stored project state
- GET /api/v1/projects/{project_id}/progress - Estimated progress for one poll

Pattern:
- Validate limits (fast, one count query)
- Create the project row (short transaction)
- Enqueue the workflow job
- Return 202 immediately; the worker does the rest
"""

import uuid
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_progress_update_interval_ms
from app.database import get_session
from app.exceptions import UploadLimitExceeded
from app.models import PlanTier, Project
from app.queue import WorkflowQueue, get_workflow_queue
from app.schemas.project import ProgressResponse, ProjectCreate, ProjectResponse
from app.schemas.workflow import WorkflowRequest
from app.services.plan_policy import check_upload_limits
from app.services.progress_estimator import (
    JobStatusSnapshot,
    ProgressEstimator,
    estimate_transcription_time,
)

log = structlog.get_logger()
router = APIRouter(prefix="/api/v1/projects", tags=["projects"])


async def count_user_projects(db: AsyncSession, user_id: str, plan: PlanTier) -> int:
    """Projects counted against the plan limit.

    Free counts every project ever created, deleted ones included. Paid
    plans count active projects only.
    """
    query = select(func.count()).select_from(Project).where(Project.user_id == user_id)
    if plan != PlanTier.FREE:
        query = query.where(Project.is_deleted.is_(False))
    result = await db.execute(query)
    return int(result.scalar_one())


async def _get_project_or_404(db: AsyncSession, project_id: str) -> Project:
    project = await db.get(Project, project_id)
    if project is None or project.is_deleted:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _elapsed_seconds(created_at: datetime) -> float:
    if created_at.tzinfo is None:
        # SQLite drops tzinfo; stored values are UTC
        created_at = created_at.replace(tzinfo=timezone.utc)
    return max(0.0, (datetime.now(timezone.utc) - created_at).total_seconds())


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=ProjectResponse)
async def create_project(
    payload: ProjectCreate,
    db: AsyncSession = Depends(get_session),
    queue: WorkflowQueue = Depends(get_workflow_queue),
) -> Project:
    """Accept an upload and start its workflow run.

    Returns:
        202 Accepted: Project created and workflow enqueued
        403 Forbidden: Upload exceeds the plan's limits
    """
    project_count = await count_user_projects(db, payload.user_id, payload.plan)
    validation = check_upload_limits(
        payload.plan, payload.file_size, payload.file_duration, project_count
    )
    if not validation.allowed:
        log.warning(
            "upload_rejected",
            user_id=payload.user_id,
            plan=payload.plan.value,
            reason=validation.reason,
        )
        raise UploadLimitExceeded(
            validation.message or "Upload exceeds plan limits",
            reason=validation.reason or "unknown",
            current_count=validation.current_count,
            limit=validation.limit,
        )

    project = Project(
        user_id=payload.user_id,
        file_url=payload.file_url,
        file_name=payload.file_name,
        file_size=payload.file_size,
        file_duration=payload.file_duration,
        plan=payload.plan,
    )
    db.add(project)
    # Row must be visible to the worker before the job can be claimed
    await db.commit()
    await db.refresh(project)

    await queue.enqueue_workflow(
        WorkflowRequest(
            project_id=project.id,
            file_url=project.file_url,
            plan=project.plan,
            event_id=uuid.uuid4().hex,
        )
    )

    log.info(
        "project_accepted",
        project_id=project.id,
        user_id=payload.user_id,
        plan=payload.plan.value,
        file_size=payload.file_size,
    )
    return project


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, db: AsyncSession = Depends(get_session)) -> Project:
    """Return stored project state.

    Returns:
        200 OK: Project found
        404 Not Found: Unknown or deleted project
    """
    return await _get_project_or_404(db, project_id)


@router.get("/{project_id}/progress", response_model=ProgressResponse)
async def get_project_progress(
    project_id: str,
    current: float = Query(
        default=0.0, ge=0, le=100, description="Percent the observer currently shows"
    ),
    db: AsyncSession = Depends(get_session),
) -> ProgressResponse:
    """Estimate progress from the stored job status and elapsed time.

    Passing the currently displayed percent back keeps the estimate from
    moving backwards between polls.
    """
    project = await _get_project_or_404(db, project_id)

    snapshot = ProgressEstimator().estimate(
        JobStatusSnapshot.from_mapping(project.job_status),
        elapsed_seconds=_elapsed_seconds(project.created_at),
        time_estimate=estimate_transcription_time(project.file_duration),
        current_percent=current,
    )
    return ProgressResponse(
        project_id=project.id,
        percent=snapshot.percent,
        display_percent=snapshot.display_percent,
        label=snapshot.label,
        status=project.status,
        poll_interval_ms=get_progress_update_interval_ms(),
    )
