"""Fan-out/fan-in of independent content generation jobs.

FanOutCoordinator.run_all() launches every job concurrently through the
StepRunner and waits for all of them to settle. A failing job never cancels
or blocks its siblings: its exception is captured as a Failed outcome and
the remaining jobs keep running.

Ordering:
    Outcomes are index-aligned with the submitted jobs regardless of which
    job finished first. Completion order is not guaranteed.

Retries:
    The coordinator never retries. Each job's retry budget is applied by the
    StepRunner before its outcome reaches the coordinator.

Usage:
    coordinator = FanOutCoordinator(runner, max_concurrent=6)
    outcomes = await coordinator.run_all([JobSpec("summary", produce_summary)])
    for outcome in outcomes:
        if outcome.ok:
            print(outcome.name, outcome.value)
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from app.config import get_job_max_attempts, get_max_concurrent_generation
from app.constants import generation_step_name
from app.services.step_runner import StepRunner
from app.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class JobSpec:
    """One generation job of a run.

    Attributes:
        name: Job name, unique within the run.
        producer: Zero-argument coroutine function yielding the job result.
    """

    name: str
    producer: Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class Fulfilled:
    """Job finished with a value."""

    name: str
    value: Any

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed:
    """Job failed after its retry budget was exhausted."""

    name: str
    error: BaseException

    @property
    def ok(self) -> bool:
        return False


JobOutcome = Fulfilled | Failed


def describe_error(error: BaseException) -> str:
    """Human-readable message for a failed job (falls back to the type name)."""
    message = str(error)
    return message if message else type(error).__name__


class FanOutCoordinator:
    """Runs a set of independent jobs concurrently, settle-all semantics.

    Attributes:
        runner: Durable step runner used for every job.
        max_concurrent: Maximum jobs in flight at once.
        job_max_attempts: Attempt budget per job.
    """

    def __init__(
        self,
        runner: StepRunner,
        max_concurrent: int | None = None,
        job_max_attempts: int | None = None,
    ):
        self.runner = runner
        self.max_concurrent = max_concurrent or get_max_concurrent_generation()
        self.job_max_attempts = job_max_attempts or get_job_max_attempts()

    async def run_all(self, jobs: Sequence[JobSpec]) -> list[JobOutcome]:
        """Run every job and return one outcome per job, in input order.

        Args:
            jobs: Jobs to run. Names must be unique.

        Returns:
            List of Fulfilled/Failed outcomes, index-aligned with ``jobs``.

        Raises:
            ValueError: If two jobs share a name.
        """
        names = [job.name for job in jobs]
        if len(set(names)) != len(names):
            raise ValueError(f"Job names must be unique within a run: {names}")

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def settle(job: JobSpec) -> JobOutcome:
            async with semaphore:
                try:
                    value = await self.runner.run(
                        generation_step_name(job.name),
                        job.producer,
                        max_attempts=self.job_max_attempts,
                    )
                except Exception as e:
                    log.error(
                        "generation_job_failed",
                        job=job.name,
                        error_type=type(e).__name__,
                        error_message=str(e),
                    )
                    return Failed(name=job.name, error=e)
                return Fulfilled(name=job.name, value=value)

        outcomes = await asyncio.gather(*[settle(job) for job in jobs])

        log.info(
            "fan_out_settled",
            total=len(outcomes),
            fulfilled=sum(1 for outcome in outcomes if outcome.ok),
            failed=sum(1 for outcome in outcomes if not outcome.ok),
        )
        return list(outcomes)
