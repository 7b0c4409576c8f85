"""Step-completion log for durable workflow steps.

A checkpoint is written once a durable step succeeds and is keyed by
(run_id, step_name). On resume the step runner returns the stored result
instead of executing the step again.

Two implementations share the CheckpointStore contract:
    SqlAlchemyCheckpointStore: workflow_step_checkpoints table (production)
    InMemoryCheckpointStore: process-local dict (tests, single-shot CLI runs)

Short Transaction Pattern:
    Every read and write opens its own short session, so a long-running
    step never holds a database connection.
"""

from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import WorkflowStepCheckpoint
from app.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Checkpoint:
    """Completed step as read back from the store."""

    step_name: str
    result: Any
    attempts: int = 1


class CheckpointStore(Protocol):
    """Contract for step-completion storage."""

    async def get(self, run_id: str, step_name: str) -> Checkpoint | None: ...

    async def save(self, run_id: str, step_name: str, result: Any, attempts: int) -> None: ...

    async def clear(self, run_id: str) -> None: ...


class InMemoryCheckpointStore:
    """Process-local checkpoint store. Lost on restart."""

    def __init__(self) -> None:
        self._checkpoints: dict[tuple[str, str], Checkpoint] = {}

    async def get(self, run_id: str, step_name: str) -> Checkpoint | None:
        return self._checkpoints.get((run_id, step_name))

    async def save(self, run_id: str, step_name: str, result: Any, attempts: int) -> None:
        # First completion wins; a replayed save must not change the log
        self._checkpoints.setdefault(
            (run_id, step_name), Checkpoint(step_name=step_name, result=result, attempts=attempts)
        )

    async def clear(self, run_id: str) -> None:
        for key in [key for key in self._checkpoints if key[0] == run_id]:
            del self._checkpoints[key]

    def step_names(self, run_id: str) -> list[str]:
        """Names of completed steps for a run, in completion order."""
        return [step for (rid, step) in self._checkpoints if rid == run_id]


class SqlAlchemyCheckpointStore:
    """Checkpoint store backed by the workflow_step_checkpoints table.

    Args:
        session_factory: Async session factory (app.database.async_session_factory)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, run_id: str, step_name: str) -> Checkpoint | None:
        async with self._session_factory() as db:
            row = await db.get(WorkflowStepCheckpoint, (run_id, step_name))
            if row is None:
                return None
            return Checkpoint(step_name=row.step_name, result=row.result, attempts=row.attempts)

    async def save(self, run_id: str, step_name: str, result: Any, attempts: int) -> None:
        async with self._session_factory() as db, db.begin():
            existing = await db.get(WorkflowStepCheckpoint, (run_id, step_name))
            if existing is not None:
                log.debug("checkpoint_exists", run_id=run_id, step=step_name)
                return
            db.add(
                WorkflowStepCheckpoint(
                    run_id=run_id,
                    step_name=step_name,
                    result=result,
                    attempts=attempts,
                )
            )

    async def clear(self, run_id: str) -> None:
        """Delete every checkpoint of a run (forces a full re-run)."""
        async with self._session_factory() as db, db.begin():
            await db.execute(
                delete(WorkflowStepCheckpoint).where(WorkflowStepCheckpoint.run_id == run_id)
            )
        log.info("checkpoints_cleared", run_id=run_id)
