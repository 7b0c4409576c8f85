"""Durable step execution with checkpointing and bounded retry.

Every unit of work the orchestrator performs (status mutation, transcription,
each generation job, persistence) runs through StepRunner.run():

    1. Look up a checkpoint for (run_id, step name). If one exists the step
       already finished in an earlier attempt of this run: return its stored
       result without invoking the unit of work.
    2. Otherwise invoke the unit of work, retrying on any exception up to
       max_attempts total attempts with exponential backoff (tenacity).
    3. On success store the checkpoint and return the result.
    4. After the last failed attempt re-raise the unit's own exception,
       unaltered. Nothing is cached between attempts: each retry fully
       re-executes the unit of work.

Replay Safety:
    Re-invocation is the caller's concern. Units of work that mutate
    external state must be idempotent, since a retry may re-issue a
    mutation that already landed before the failure.

Usage:
    runner = StepRunner(run_id=project_id, checkpoints=SqlAlchemyCheckpointStore(factory))
    transcript = await runner.run("transcribe-audio", lambda: transcriber.transcribe(url, plan))
"""

import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.config import get_retry_wait_bounds, get_workflow_max_attempts
from app.services.checkpoint_store import CheckpointStore
from app.utils.logging import get_logger

T = TypeVar("T")

log = get_logger(__name__)


class StepRunner:
    """Executes named units of work with at-least-once durability.

    Attributes:
        run_id: Checkpoint namespace for the run.
        checkpoints: Step-completion log.
        max_attempts: Default attempt budget per step (including the first).
        wait_min: Shortest backoff between attempts, seconds.
        wait_max: Longest backoff between attempts, seconds.
    """

    def __init__(
        self,
        run_id: str,
        checkpoints: CheckpointStore,
        max_attempts: int | None = None,
        wait_min: float | None = None,
        wait_max: float | None = None,
    ):
        default_min, default_max = get_retry_wait_bounds()
        self.run_id = run_id
        self.checkpoints = checkpoints
        self.max_attempts = max_attempts if max_attempts is not None else get_workflow_max_attempts()
        self.wait_min = default_min if wait_min is None else wait_min
        self.wait_max = max(self.wait_min, default_max if wait_max is None else wait_max)
        self.log = log.bind(run_id=run_id)

        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    def _before_sleep(self, name: str) -> Callable[[RetryCallState], None]:
        def _log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            self.log.warning(
                "step_retry_scheduled",
                step=name,
                attempt=retry_state.attempt_number,
                next_wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
                error_type=type(error).__name__ if error else None,
                error_message=str(error) if error else None,
            )

        return _log_retry

    async def run(
        self,
        name: str,
        unit_of_work: Callable[[], Awaitable[T]],
        *,
        max_attempts: int | None = None,
    ) -> T:
        """Run one durable step.

        Args:
            name: Step name, unique within the run (checkpoint key).
            unit_of_work: Zero-argument coroutine function performing the step.
                Its result must be JSON-serialisable.
            max_attempts: Override for this step's attempt budget.

        Returns:
            The unit's result, or the checkpointed result on resume.

        Raises:
            Exception: The unit's last exception, once the budget is exhausted.
        """
        checkpoint = await self.checkpoints.get(self.run_id, name)
        if checkpoint is not None:
            self.log.info("step_skipped", step=name, reason="already_complete")
            return checkpoint.result

        attempts_allowed = max_attempts if max_attempts is not None else self.max_attempts
        step_start = time.time()
        self.log.info("step_started", step=name, max_attempts=attempts_allowed)

        result: Any = None
        attempt_number = 0
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(Exception),
                stop=stop_after_attempt(attempts_allowed),
                wait=wait_exponential(multiplier=1, min=self.wait_min, max=self.wait_max),
                before_sleep=self._before_sleep(name),
                reraise=True,
            ):
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    result = await unit_of_work()
        except Exception as e:
            self.log.error(
                "step_failed",
                step=name,
                attempts=attempt_number,
                error_type=type(e).__name__,
                error_message=str(e),
                duration_seconds=time.time() - step_start,
            )
            raise

        await self.checkpoints.save(self.run_id, name, result, attempt_number)
        self.log.info(
            "step_completed",
            step=name,
            attempts=attempt_number,
            duration_seconds=time.time() - step_start,
        )
        return result
