"""Status and persistence mutations for a project.

The orchestrator talks to the external status store only through the
StatusStore contract below. Every mutation is an overwrite or a keyed
merge, so replaying it with the same arguments leaves the stored state
identical to applying it once (durable-step retries may re-issue a
mutation that already landed).

Mutations:
    set_project_status(project_id, status)
    set_job_status(project_id, transcription=?, content_generation=?, steps=?)
    save_transcript(project_id, transcript)
    save_job_errors(project_id, {job_name: message})
    save_generated_content(project_id, {job_name: result})
    record_workflow_error(project_id, WorkflowErrorRecord)

SqlAlchemyStatusStore writes them to the projects table, one short
transaction per mutation.
"""

from collections.abc import Mapping
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.constants import PHASE_CONTENT_GENERATION, PHASE_TRANSCRIPTION
from app.exceptions import InvalidStateTransitionError, StatusStoreError
from app.models import JobState, Project, ProjectStatus, utcnow, validate_phase_transition
from app.schemas.workflow import WorkflowErrorRecord
from app.utils.logging import get_logger

log = get_logger(__name__)


class StatusStore(Protocol):
    """Contract for the status/persistence collaborator."""

    async def set_project_status(self, project_id: str, status: ProjectStatus) -> None: ...

    async def set_job_status(
        self,
        project_id: str,
        *,
        transcription: JobState | None = None,
        content_generation: JobState | None = None,
        steps: Mapping[str, JobState] | None = None,
    ) -> None: ...

    async def save_transcript(self, project_id: str, transcript: dict[str, Any]) -> None: ...

    async def save_job_errors(self, project_id: str, job_errors: Mapping[str, str]) -> None: ...

    async def save_generated_content(
        self, project_id: str, content: Mapping[str, Any]
    ) -> None: ...

    async def record_workflow_error(self, project_id: str, record: WorkflowErrorRecord) -> None: ...


def apply_job_status(
    job_status: Mapping[str, Any],
    *,
    transcription: JobState | None = None,
    content_generation: JobState | None = None,
    steps: Mapping[str, JobState] | None = None,
) -> dict[str, Any]:
    """Return a new job_status mapping with the requested states applied.

    Phase flags are validated: transcription moves pending → running →
    completed|failed, and content generation may only start running once
    transcription is completed. Step states are written as given.

    Raises:
        InvalidStateTransitionError: On an illegal phase transition.
    """
    updated = dict(job_status)

    def current(key: str) -> JobState | None:
        value = updated.get(key)
        return JobState(value) if value else None

    if transcription is not None:
        validate_phase_transition(PHASE_TRANSCRIPTION, current(PHASE_TRANSCRIPTION), transcription)
        updated[PHASE_TRANSCRIPTION] = transcription.value

    if content_generation is not None:
        previous = current(PHASE_CONTENT_GENERATION)
        validate_phase_transition(PHASE_CONTENT_GENERATION, previous, content_generation)
        if (
            content_generation == JobState.RUNNING
            and previous != JobState.RUNNING
            and current(PHASE_TRANSCRIPTION) != JobState.COMPLETED
        ):
            raise InvalidStateTransitionError(
                "Content generation cannot start before transcription completed",
                from_state=previous or JobState.PENDING,
                to_state=content_generation,
            )
        updated[PHASE_CONTENT_GENERATION] = content_generation.value

    for name, state in (steps or {}).items():
        updated[name] = state.value

    return updated


class SqlAlchemyStatusStore:
    """StatusStore backed by the projects table.

    Args:
        session_factory: Async session factory (app.database.async_session_factory)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    async def _load(db: AsyncSession, project_id: str) -> Project:
        # Row lock: concurrent generation jobs merge into the same job_status
        project = await db.get(Project, project_id, with_for_update=True)
        if project is None:
            raise StatusStoreError(f"Project not found: {project_id}", status_code=404)
        return project

    async def set_project_status(self, project_id: str, status: ProjectStatus) -> None:
        async with self._session_factory() as db, db.begin():
            project = await self._load(db, project_id)
            project.status = status
        log.info("project_status_updated", project_id=project_id, status=status.value)

    async def set_job_status(
        self,
        project_id: str,
        *,
        transcription: JobState | None = None,
        content_generation: JobState | None = None,
        steps: Mapping[str, JobState] | None = None,
    ) -> None:
        async with self._session_factory() as db, db.begin():
            project = await self._load(db, project_id)
            # Reassign: plain JSON columns do not track in-place mutation
            project.job_status = apply_job_status(
                project.job_status or {},
                transcription=transcription,
                content_generation=content_generation,
                steps=steps,
            )
        log.info(
            "job_status_updated",
            project_id=project_id,
            transcription=transcription.value if transcription else None,
            content_generation=content_generation.value if content_generation else None,
            steps={name: state.value for name, state in (steps or {}).items()},
        )

    async def save_transcript(self, project_id: str, transcript: dict[str, Any]) -> None:
        async with self._session_factory() as db, db.begin():
            project = await self._load(db, project_id)
            project.transcript = dict(transcript)

    async def save_job_errors(self, project_id: str, job_errors: Mapping[str, str]) -> None:
        """Merge job errors and mark the failed steps in job_status."""
        async with self._session_factory() as db, db.begin():
            project = await self._load(db, project_id)
            project.job_errors = {**(project.job_errors or {}), **job_errors}
            project.job_status = apply_job_status(
                project.job_status or {},
                steps={name: JobState.FAILED for name in job_errors},
            )
        log.warning("job_errors_saved", project_id=project_id, jobs=sorted(job_errors))

    async def save_generated_content(self, project_id: str, content: Mapping[str, Any]) -> None:
        """Merge generated content, mark the project completed and clear any earlier failure."""
        async with self._session_factory() as db, db.begin():
            project = await self._load(db, project_id)
            project.generated_content = {**(project.generated_content or {}), **content}
            # A job that succeeded on a resumed run is no longer an error
            project.job_errors = {
                name: message
                for name, message in (project.job_errors or {}).items()
                if name not in content
            }
            project.status = ProjectStatus.COMPLETED
            project.error = None
            if project.completed_at is None:
                project.completed_at = utcnow()
        log.info("generated_content_saved", project_id=project_id, jobs=sorted(content))

    async def record_workflow_error(self, project_id: str, record: WorkflowErrorRecord) -> None:
        """Store the failure record, mark the project failed and stop running phases."""
        async with self._session_factory() as db, db.begin():
            project = await self._load(db, project_id)
            project.error = {
                "message": record.message,
                "step": record.step,
                "details": {
                    "statusCode": record.status_code,
                    "stack": record.diagnostic,
                },
            }
            project.status = ProjectStatus.FAILED
            job_status = dict(project.job_status or {})
            for phase in (PHASE_TRANSCRIPTION, PHASE_CONTENT_GENERATION):
                if job_status.get(phase) == JobState.RUNNING.value:
                    job_status[phase] = JobState.FAILED.value
            project.job_status = job_status
        log.info("workflow_error_recorded", project_id=project_id, step=record.step)
