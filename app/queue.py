"""PgQueuer initialization and enqueueing for podcast workflow runs.

Workers claim jobs from the PgQueuer tables atomically (FOR UPDATE SKIP
LOCKED). The web service enqueues one ``process_upload`` job per accepted
upload; the worker process runs the registered entrypoint for it.

Pieces:
    - initialize_pgqueuer(): worker side, installs the queue tables on first run
    - WorkflowQueue: enqueue side used by the API, connects on first enqueue

Usage:
    # Worker
    from app.queue import initialize_pgqueuer

    pgq, pool = await initialize_pgqueuer()
    await pgq.run()

    # API
    queue = get_workflow_queue()
    await queue.enqueue_workflow(WorkflowRequest(projectId=..., fileUrl=..., plan="pro"))
"""

import asyncio
import os

import asyncpg
from pgqueuer import PgQueuer
from pgqueuer.db import AsyncpgPoolDriver
from pgqueuer.qm import QueueManager
from pgqueuer.queries import Queries

from app.constants import PROCESS_UPLOAD_ENTRYPOINT
from app.schemas.workflow import WorkflowRequest
from app.utils.logging import get_logger

log = get_logger(__name__)

# Set by initialize_pgqueuer() in the worker process
pgq: PgQueuer | None = None


def get_asyncpg_dsn() -> str:
    """DATABASE_URL in the plain form asyncpg accepts.

    Raises:
        ValueError: DATABASE_URL is missing.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable not set")
    return database_url.replace("postgresql+asyncpg://", "postgresql://", 1)


async def create_pool(min_size: int = 2, max_size: int = 10) -> asyncpg.Pool:
    """Create the asyncpg pool shared by PgQueuer."""
    log.info("initializing_asyncpg_pool", min_size=min_size, max_size=max_size, timeout=30)
    return await asyncpg.create_pool(
        dsn=get_asyncpg_dsn(),
        min_size=min_size,
        max_size=max_size,
        timeout=30,
        # A run polls transcription for minutes; stale claims release after 30 min
        command_timeout=1800,
    )


async def initialize_pgqueuer() -> tuple[PgQueuer, asyncpg.Pool]:
    """Initialize PgQueuer for the worker process.

    Creates the asyncpg pool, installs the PgQueuer schema if missing, and
    returns the configured PgQueuer instance.

    Returns:
        tuple[PgQueuer, asyncpg.Pool]: PgQueuer and the pool to close on shutdown

    Raises:
        ValueError: DATABASE_URL is missing.
        asyncpg.PostgresError: The database is unreachable.
    """
    pool = await create_pool()

    log.info("installing_pgqueuer_schema")
    qm = QueueManager(AsyncpgPoolDriver(pool))
    await qm.queries.install()
    log.info("pgqueuer_schema_installed")

    global pgq
    pgq = PgQueuer(AsyncpgPoolDriver(pool))
    log.info("pgqueuer_initialized", entrypoint=PROCESS_UPLOAD_ENTRYPOINT)
    return pgq, pool


class WorkflowQueue:
    """Enqueue side of the workflow queue, connected on first use.

    Attributes:
        pool: asyncpg pool, None until the first enqueue.
    """

    def __init__(self) -> None:
        self.pool: asyncpg.Pool | None = None
        self._lock = asyncio.Lock()

    async def _queries(self) -> Queries:
        async with self._lock:
            if self.pool is None:
                self.pool = await create_pool(min_size=1, max_size=4)
        return Queries(AsyncpgPoolDriver(self.pool))

    async def enqueue_workflow(self, request: WorkflowRequest) -> None:
        """Enqueue one workflow run; the payload is the trigger event JSON.

        Raises:
            ValueError: If DATABASE_URL not set
            asyncpg.PostgresError: If the insert fails
        """
        queries = await self._queries()
        payload = request.model_dump_json(by_alias=True).encode()
        await queries.enqueue(PROCESS_UPLOAD_ENTRYPOINT, payload)
        log.info(
            "workflow_enqueued",
            project_id=request.project_id,
            plan=request.plan.value,
            run_id=request.run_id,
        )

    async def close(self) -> None:
        """Close the pool if it was opened."""
        if self.pool is not None:
            await self.pool.close()
            self.pool = None


_workflow_queue: WorkflowQueue | None = None


def get_workflow_queue() -> WorkflowQueue:
    """FastAPI dependency returning the process-wide WorkflowQueue."""
    global _workflow_queue
    if _workflow_queue is None:
        _workflow_queue = WorkflowQueue()
    return _workflow_queue
