"""Workflow Orchestrator for podcast processing runs.

This module implements the top-level state machine for one run: transcribe
the uploaded audio, fan out the plan's content generation jobs, collect
their outcomes, and persist the results, keeping the project's status
fields current for observers throughout.

Stage Flow:
    Received → StatusProcessing → TranscriptionRunning → TranscriptionDone
    → GenerationRunning → GenerationDone → Persisted → Succeeded
    Any unrecovered error → Failed

Key Responsibilities:
- Run every unit of work as a named durable step (StepRunner), so a retried
  run resumes after the last completed step
- Select generation jobs from the plan (PlanPolicy) and run them with
  settle-all semantics (FanOutCoordinator)
- Tolerate individual job failures: a failed job lands in job_errors and
  the run still completes with partial content
- Treat transcription and every status/persistence mutation as fatal
- On a fatal error, make one best-effort failure record and re-raise the
  original error to the invoking platform

Architecture Pattern: "Explicit Collaborators"
- The status store, transcriber, producer factory and checkpoint store are
  passed in, never looked up globally, so tests run the whole state machine
  against in-memory fakes.

Usage:
    orchestrator = WorkflowOrchestrator(
        status_store=SqlAlchemyStatusStore(factory),
        transcriber=AssemblyAITranscriber(client),
        producer_factory=ContentGenerator(openai_client).producer_for,
        checkpoints=SqlAlchemyCheckpointStore(factory),
    )
    result = await orchestrator.run(WorkflowRequest(projectId="p1", fileUrl=url, plan="pro"))
"""

import enum
import time
import traceback
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from app.constants import (
    STEP_GENERATION_COMPLETED,
    STEP_GENERATION_RUNNING,
    STEP_SAVE_RESULTS,
    STEP_STATUS_PROCESSING,
    STEP_TRANSCRIBE,
    STEP_TRANSCRIPTION_COMPLETED,
    STEP_TRANSCRIPTION_RUNNING,
    WORKFLOW_ERROR_STEP,
    job_errors_step_name,
)
from app.models import JobState, PlanTier, ProjectStatus
from app.schemas.transcript import TranscriptResult
from app.schemas.workflow import WorkflowErrorRecord, WorkflowRequest, WorkflowResult
from app.services.checkpoint_store import CheckpointStore
from app.services.fan_out import FanOutCoordinator, JobSpec, describe_error
from app.services.plan_policy import select_jobs
from app.services.status_store import StatusStore
from app.services.step_runner import StepRunner
from app.services.transcription import Transcriber
from app.utils.logging import StructuredLogger, get_logger

ProducerFactory = Callable[[str, TranscriptResult], Callable[[], Awaitable[Any]]]


class WorkflowStage(enum.Enum):
    """Stages of one run, in execution order."""

    RECEIVED = "received"
    STATUS_PROCESSING = "status_processing"
    TRANSCRIPTION_RUNNING = "transcription_running"
    TRANSCRIPTION_DONE = "transcription_done"
    GENERATION_RUNNING = "generation_running"
    GENERATION_DONE = "generation_done"
    PERSISTED = "persisted"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class WorkflowRunState:
    """In-memory state of one run, owned and mutated only by the orchestrator.

    Discarded when the run ends; durable history lives in the status store
    and the checkpoint log.
    """

    stage: WorkflowStage = WorkflowStage.RECEIVED
    transcript: TranscriptResult | None = None
    generated_content: dict[str, Any] = field(default_factory=dict)
    job_errors: dict[str, str] = field(default_factory=dict)
    transcription: JobState = JobState.PENDING
    content_generation: JobState = JobState.PENDING


def extract_status_code(error: BaseException) -> int | None:
    """Numeric status code carried by an error, if any.

    Looks at ``statusCode``, ``status_code`` and ``status`` attributes, then
    at ``response.status_code`` (httpx.HTTPStatusError).
    """
    for attr in ("statusCode", "status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def build_error_record(error: BaseException, step: str = WORKFLOW_ERROR_STEP) -> WorkflowErrorRecord:
    """Failure record for the top-level handler."""
    return WorkflowErrorRecord(
        message=str(error) or "Unknown error occurred",
        step=step,
        status_code=extract_status_code(error),
        diagnostic="".join(traceback.format_exception(type(error), error, error.__traceback__)),
    )


class WorkflowOrchestrator:
    """Runs the podcast processing workflow for one trigger event at a time.

    Attributes:
        status_store: Status/persistence collaborator.
        transcriber: Transcription collaborator.
        producer_factory: Maps (job name, transcript) to a zero-argument producer.
        checkpoints: Step-completion log shared by every run.
    """

    def __init__(
        self,
        status_store: StatusStore,
        transcriber: Transcriber,
        producer_factory: ProducerFactory,
        checkpoints: CheckpointStore,
        *,
        max_attempts: int | None = None,
        job_max_attempts: int | None = None,
        max_concurrent: int | None = None,
        retry_wait_min: float | None = None,
        retry_wait_max: float | None = None,
    ):
        self.status_store = status_store
        self.transcriber = transcriber
        self.producer_factory = producer_factory
        self.checkpoints = checkpoints
        self.max_attempts = max_attempts
        self.job_max_attempts = job_max_attempts
        self.max_concurrent = max_concurrent
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max
        self.log = get_logger(__name__)

    async def run(self, request: WorkflowRequest) -> WorkflowResult:
        """Execute one run from trigger event to terminal state.

        Returns:
            WorkflowResult(success=True, project_id, plan) once results are persisted.

        Raises:
            Exception: The original error of any fatal step, after the
                best-effort failure record was attempted.
        """
        log = self.log.bind(project_id=request.project_id, plan=request.plan.value)
        runner = StepRunner(
            run_id=request.run_id,
            checkpoints=self.checkpoints,
            max_attempts=self.max_attempts,
            wait_min=self.retry_wait_min,
            wait_max=self.retry_wait_max,
        )
        state = WorkflowRunState()
        run_start = time.time()

        log.info("workflow_started", run_id=request.run_id)

        try:
            result = await self._execute(request, runner, state, log)
        except Exception as e:
            state.stage = WorkflowStage.FAILED
            log.exception("workflow_failed", e, duration_seconds=time.time() - run_start)
            await self._record_failure(request.project_id, e, log)
            raise

        log.info(
            "workflow_completed",
            duration_seconds=time.time() - run_start,
            generated=sorted(state.generated_content),
            failed_jobs=sorted(state.job_errors),
        )
        return result

    async def _execute(
        self,
        request: WorkflowRequest,
        runner: StepRunner,
        state: WorkflowRunState,
        log: StructuredLogger,
    ) -> WorkflowResult:
        project_id = request.project_id
        store = self.status_store

        await runner.run(
            STEP_STATUS_PROCESSING,
            lambda: store.set_project_status(project_id, ProjectStatus.PROCESSING),
        )
        state.stage = WorkflowStage.STATUS_PROCESSING

        await runner.run(
            STEP_TRANSCRIPTION_RUNNING,
            lambda: store.set_job_status(project_id, transcription=JobState.RUNNING),
        )
        state.transcription = JobState.RUNNING
        state.stage = WorkflowStage.TRANSCRIPTION_RUNNING

        try:
            transcript_data = await runner.run(
                STEP_TRANSCRIBE, lambda: self._transcribe(project_id, request.file_url, request.plan)
            )
        except Exception:
            state.transcription = JobState.FAILED
            raise
        state.transcript = TranscriptResult.model_validate(transcript_data)
        state.transcription = JobState.COMPLETED
        state.stage = WorkflowStage.TRANSCRIPTION_DONE

        await runner.run(
            STEP_TRANSCRIPTION_COMPLETED,
            lambda: store.set_job_status(project_id, transcription=JobState.COMPLETED),
        )

        job_names = select_jobs(request.plan)
        await runner.run(
            STEP_GENERATION_RUNNING,
            lambda: store.set_job_status(
                project_id,
                content_generation=JobState.RUNNING,
                steps={name: JobState.RUNNING for name in job_names},
            ),
        )
        state.content_generation = JobState.RUNNING
        state.stage = WorkflowStage.GENERATION_RUNNING

        await self._generate(project_id, job_names, state.transcript, runner, state, log)
        state.stage = WorkflowStage.GENERATION_DONE

        if state.job_errors:
            job_errors = dict(state.job_errors)
            await runner.run(
                job_errors_step_name(job_errors),
                lambda: store.save_job_errors(project_id, job_errors),
            )

        await runner.run(
            STEP_GENERATION_COMPLETED,
            lambda: store.set_job_status(project_id, content_generation=JobState.COMPLETED),
        )
        state.content_generation = JobState.COMPLETED

        generated_content = dict(state.generated_content)
        await runner.run(
            STEP_SAVE_RESULTS,
            lambda: store.save_generated_content(project_id, generated_content),
        )
        state.stage = WorkflowStage.PERSISTED

        state.stage = WorkflowStage.SUCCEEDED
        return WorkflowResult(success=True, project_id=project_id, plan=request.plan)

    async def _transcribe(self, project_id: str, file_url: str, plan: PlanTier) -> dict[str, Any]:
        """Transcription unit of work: vendor call plus transcript persistence."""
        transcript = await self.transcriber.transcribe(file_url, plan)
        data = transcript.model_dump(mode="json")
        await self.status_store.save_transcript(project_id, data)
        return data

    def _job_unit(
        self, project_id: str, job_name: str, transcript: TranscriptResult
    ) -> Callable[[], Awaitable[Any]]:
        """Unit of work for one generation job.

        The producer is built inside the unit so an unknown job name fails
        that job alone. The job's step is marked completed within the unit,
        which makes a replay of the unit harmless.
        """

        async def unit() -> Any:
            producer = self.producer_factory(job_name, transcript)
            value = await producer()
            await self.status_store.set_job_status(
                project_id, steps={job_name: JobState.COMPLETED}
            )
            return value

        return unit

    async def _generate(
        self,
        project_id: str,
        job_names: list[str],
        transcript: TranscriptResult,
        runner: StepRunner,
        state: WorkflowRunState,
        log: StructuredLogger,
    ) -> None:
        """Fan out the plan's jobs and fold outcomes into the run state.

        Never raises because of a job: each outcome lands in exactly one of
        generated_content or job_errors.
        """
        coordinator = FanOutCoordinator(
            runner,
            max_concurrent=self.max_concurrent,
            job_max_attempts=self.job_max_attempts,
        )
        jobs = [JobSpec(name, self._job_unit(project_id, name, transcript)) for name in job_names]
        outcomes = await coordinator.run_all(jobs)

        for outcome in outcomes:
            if outcome.ok:
                state.generated_content[outcome.name] = outcome.value
            else:
                state.job_errors[outcome.name] = describe_error(outcome.error)
                log.warning(
                    "generation_job_recorded_as_error",
                    job=outcome.name,
                    error_message=state.job_errors[outcome.name],
                )

    async def _record_failure(
        self, project_id: str, error: BaseException, log: StructuredLogger
    ) -> None:
        """Best-effort failure record. Never raises: it must not mask ``error``."""
        try:
            await self.status_store.record_workflow_error(project_id, build_error_record(error))
        except Exception as record_error:
            log.exception(
                "workflow_error_record_failed",
                record_error,
                original_error=str(error),
            )
