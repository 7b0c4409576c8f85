"""PgQueuer entrypoint definitions for podcast workflow runs.

Entrypoints:
    - process_upload: Run the podcast processing workflow for one upload

Each job payload is the trigger event JSON:

    {"projectId": "...", "fileUrl": "https://...", "plan": "pro", "eventId": "..."}

Any exception escaping the orchestrator propagates to PgQueuer, which marks
the job failed. The orchestrator has already made its best-effort failure
record by then, and a redelivered job resumes from its step checkpoints.
"""

from contextlib import AsyncExitStack

from pgqueuer import PgQueuer
from pgqueuer.models import Job
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.clients.assemblyai import AssemblyAIClient
from app.clients.openai import OpenAIClient
from app.config import (
    get_assemblyai_api_key,
    get_job_max_attempts,
    get_max_concurrent_generation,
    get_openai_api_key,
    get_openai_model,
    get_retry_wait_bounds,
    get_transcription_poll_interval,
    get_workflow_max_attempts,
)
from app.constants import PROCESS_UPLOAD_ENTRYPOINT
from app.database import require_session_factory
from app.exceptions import ConfigurationError
from app.schemas.workflow import WorkflowRequest, WorkflowResult
from app.services.checkpoint_store import SqlAlchemyCheckpointStore
from app.services.content_generation import ContentGenerator
from app.services.status_store import SqlAlchemyStatusStore
from app.services.transcription import AssemblyAITranscriber
from app.services.workflow_orchestrator import WorkflowOrchestrator
from app.utils.logging import get_logger

log = get_logger(__name__)


def parse_job_payload(job: Job) -> WorkflowRequest:
    """Decode and validate a job payload.

    Raises:
        ValueError: If the payload is missing or not a valid trigger event.
    """
    if job.payload is None:
        raise ValueError("Job payload is None")
    if not isinstance(job.payload, bytes):
        raise ValueError(f"Job payload must be bytes, got {type(job.payload)}")
    try:
        return WorkflowRequest.model_validate_json(job.payload)
    except ValidationError as e:
        raise ValueError(f"Invalid workflow payload: {e}") from e


async def run_workflow(
    request: WorkflowRequest,
    session_factory: async_sessionmaker[AsyncSession],
) -> WorkflowResult:
    """Build the production collaborators and run one workflow.

    Raises:
        ConfigurationError: If a vendor API key is missing.
        Exception: Whatever the orchestrator re-raises.
    """
    assemblyai_key = get_assemblyai_api_key()
    if not assemblyai_key:
        raise ConfigurationError("ASSEMBLYAI_API_KEY environment variable not set")
    openai_key = get_openai_api_key()
    if not openai_key:
        raise ConfigurationError("OPENAI_API_KEY environment variable not set")

    wait_min, wait_max = get_retry_wait_bounds()

    async with AsyncExitStack() as stack:
        assemblyai = AssemblyAIClient(api_key=assemblyai_key)
        stack.push_async_callback(assemblyai.close)
        openai = OpenAIClient(api_key=openai_key, model=get_openai_model())
        stack.push_async_callback(openai.close)

        orchestrator = WorkflowOrchestrator(
            status_store=SqlAlchemyStatusStore(session_factory),
            transcriber=AssemblyAITranscriber(
                assemblyai, poll_interval=get_transcription_poll_interval()
            ),
            producer_factory=ContentGenerator(openai).producer_for,
            checkpoints=SqlAlchemyCheckpointStore(session_factory),
            max_attempts=get_workflow_max_attempts(),
            job_max_attempts=get_job_max_attempts(),
            max_concurrent=get_max_concurrent_generation(),
            retry_wait_min=wait_min,
            retry_wait_max=wait_max,
        )
        return await orchestrator.run(request)


def register_entrypoints(pgq: PgQueuer) -> None:
    """Register all entrypoints with PgQueuer instance.

    Must be called after PgQueuer is initialized.

    Args:
        pgq: Initialized PgQueuer instance
    """

    @pgq.entrypoint(PROCESS_UPLOAD_ENTRYPOINT)
    async def process_upload(job: Job) -> None:
        """Run the workflow for one uploaded podcast.

        Args:
            job: PgQueuer Job whose payload is the trigger event JSON

        Raises:
            ValueError: If the payload is invalid
            Exception: Any workflow failure (job marked failed by PgQueuer)
        """
        request = parse_job_payload(job)
        log.info(
            "workflow_job_claimed",
            pgqueuer_job_id=str(job.id),
            project_id=request.project_id,
            plan=request.plan.value,
        )
        result = await run_workflow(request, require_session_factory())
        log.info(
            "workflow_job_completed",
            pgqueuer_job_id=str(job.id),
            project_id=result.project_id,
            plan=result.plan.value,
        )
