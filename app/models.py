"""SQLAlchemy 2.0 ORM models.

This module contains all SQLAlchemy models for the podcast processing service.
All models use the Mapped[type] annotation pattern required by SQLAlchemy 2.0.

Tables:
    projects: One row per uploaded file. Holds the status fields the workflow
        writes (status, job_status, job_errors, generated_content, error) and
        the upload metadata the progress estimator reads.
    workflow_step_checkpoints: Step-completion log used to resume a run
        without re-executing durable steps that already finished.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    Float,
    Index,
    PrimaryKeyConstraint,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.exceptions import InvalidStateTransitionError


def utcnow() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def new_project_id() -> str:
    """Generate an opaque project identifier."""
    return uuid.uuid4().hex


class PlanTier(enum.Enum):
    """Entitlement tiers, ordered from least to most entitled.

    Job selection is monotonic across tiers: everything free gets, pro gets,
    and everything pro gets, ultra gets.
    """

    FREE = "free"
    PRO = "pro"
    ULTRA = "ultra"

    @property
    def rank(self) -> int:
        """Position in the entitlement order (free=0, pro=1, ultra=2)."""
        return list(PlanTier).index(self)


class ProjectStatus(enum.Enum):
    """Overall project lifecycle status shown to observers."""

    UPLOADED = "uploaded"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobState(enum.Enum):
    """State of a workflow phase or a single generation step.

    Phase Flow:
        pending → running → completed | failed

    Resume Flow:
        failed → running | completed (a retried run picks up where it stopped)
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# Re-applying the current state is always allowed so replayed mutations are no-ops.
VALID_PHASE_TRANSITIONS: dict[JobState, list[JobState]] = {
    JobState.PENDING: [JobState.RUNNING],
    JobState.RUNNING: [JobState.COMPLETED, JobState.FAILED],
    JobState.FAILED: [JobState.RUNNING, JobState.COMPLETED],
    JobState.COMPLETED: [],
}


def validate_phase_transition(phase: str, current: JobState | None, target: JobState) -> JobState:
    """Validate a phase flag transition.

    Args:
        phase: Phase key, used in the error message ("transcription", ...).
        current: Current state, or None if the phase was never written.
        target: Requested state.

    Returns:
        The validated target state.

    Raises:
        InvalidStateTransitionError: If the transition is not allowed.

    Example:
        >>> validate_phase_transition("transcription", JobState.RUNNING, JobState.COMPLETED)
        <JobState.COMPLETED: 'completed'>
    """
    effective = current or JobState.PENDING
    if target == effective or target in VALID_PHASE_TRANSITIONS[effective]:
        return target
    raise InvalidStateTransitionError(
        f"Invalid {phase} transition",
        from_state=effective,
        to_state=target,
    )


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Project(Base):
    """Uploaded podcast file and everything the workflow records about it.

    Attributes:
        id: Opaque project identifier (hex UUID).
        user_id: Owner, used for plan project-count limits.
        file_url: Public URL of the uploaded audio file.
        file_name: Original upload file name (display only).
        file_size: Upload size in bytes.
        file_duration: Audio duration in seconds, if known at upload time.
            Drives the transcription time estimate.
        plan: Plan tier the run was triggered with.
        status: Overall lifecycle status.
        job_status: Phase and step states, e.g.
            {"transcription": "completed", "contentGeneration": "running",
             "summary": "completed", "titles": "running"}
        job_errors: Failed generation jobs, job name → error message.
        generated_content: Successful generation jobs, job name → result.
        transcript: Transcript result from the transcription step.
        error: Workflow failure record {message, step, details}.
        is_deleted: Soft-delete flag (free plan counts deleted projects).
        created_at: Upload time; start of the elapsed-time progress clock.
        updated_at: Last mutation time.
        completed_at: Time the generated content was persisted.
    """

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=new_project_id,
    )
    user_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        index=True,
    )
    file_url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    file_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    file_size: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
    file_duration: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
    )
    plan: Mapped[PlanTier] = mapped_column(
        Enum(PlanTier, name="plan_tier", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=PlanTier.FREE,
    )
    status: Mapped[ProjectStatus] = mapped_column(
        Enum(ProjectStatus, name="project_status", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=ProjectStatus.UPLOADED,
        index=True,
    )

    # Workflow outputs (JSON so partial updates stay schema-free)
    job_status: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    job_errors: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    generated_content: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    transcript: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    error: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return (
            f"<Project(id={self.id!s:.8}, plan={self.plan.value!r}, "
            f"status={self.status.value!r})>"
        )


class WorkflowStepCheckpoint(Base):
    """Completed durable step of a workflow run.

    A row exists only once a step succeeded. Its result is returned to the
    orchestrator on resume instead of executing the step again.

    Composite Primary Key:
        (run_id, step_name)

    Attributes:
        run_id: Run identifier (trigger event id, or project id).
        step_name: Durable step name, e.g. "transcribe-audio".
        result: JSON result returned by the step (None for status mutations).
        attempts: Attempts the step needed before it succeeded.
        completed_at: When the step finished.
    """

    __tablename__ = "workflow_step_checkpoints"

    run_id: Mapped[str] = mapped_column(String(100), nullable=False)
    step_name: Mapped[str] = mapped_column(String(100), nullable=False)
    result: Mapped[Any] = mapped_column(JSON, nullable=True)
    attempts: Mapped[int] = mapped_column(default=1, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        PrimaryKeyConstraint("run_id", "step_name", name="pk_workflow_step_checkpoints"),
        Index("ix_workflow_step_checkpoints_completed_at", "completed_at"),
    )

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return f"<WorkflowStepCheckpoint(run_id={self.run_id!r}, step={self.step_name!r})>"
