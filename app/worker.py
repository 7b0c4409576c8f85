"""Queue worker process: claims ``process_upload`` jobs and runs workflows.

Runs beside the web service as its own process (``python -m app.worker``).
Each claimed job drives one workflow run; step results are checkpointed so
a redelivered job resumes instead of repeating vendor calls. Every status
mutation uses its own short transaction, so a slow vendor call never holds
a connection open.

On SIGTERM/SIGINT the flag below is set, the loop is allowed to finish, and
both the PgQueuer pool and the SQLAlchemy engine are closed before exit.
"""

import asyncio
import os
import signal
import sys
from dataclasses import dataclass
from urllib.parse import urlsplit

import asyncpg

from app.config import (
    get_assemblyai_api_key,
    get_database_url,
    get_max_concurrent_generation,
    get_openai_api_key,
    get_workflow_max_attempts,
)
from app.database import engine
from app.exceptions import ConfigurationError
from app.utils.logging import get_logger

log = get_logger(__name__)

shutdown_requested = False

# Kept so shutdown_worker() can close it after the loop exits
asyncpg_pool: asyncpg.Pool | None = None


@dataclass
class WorkerConfig:
    """Settings the worker validates and logs before claiming jobs."""

    database_url: str
    max_attempts: int
    max_concurrent_generation: int

    @property
    def database_host(self) -> str:
        return urlsplit(self.database_url).hostname or "local"


def get_config() -> WorkerConfig:
    """Validate the environment a workflow run depends on.

    Raises:
        ValueError: DATABASE_URL is missing.
        ConfigurationError: A vendor API key is missing.
    """
    required_keys = {
        "ASSEMBLYAI_API_KEY": get_assemblyai_api_key(),
        "OPENAI_API_KEY": get_openai_api_key(),
    }
    for name, value in required_keys.items():
        if not value:
            raise ConfigurationError(f"{name} environment variable not set")

    return WorkerConfig(
        database_url=get_database_url(),
        max_attempts=get_workflow_max_attempts(),
        max_concurrent_generation=get_max_concurrent_generation(),
    )


def signal_handler(signum: int, frame: object) -> None:
    global shutdown_requested
    log.info("shutdown_signal_received", signal=signum, signal_name=signal.Signals(signum).name)
    shutdown_requested = True


async def worker_main_loop() -> None:
    """Connect PgQueuer, register job handlers and block on the claim loop."""
    global asyncpg_pool

    from app.entrypoints import register_entrypoints
    from app.queue import initialize_pgqueuer

    worker_log = log.bind(worker_id=os.getenv("WORKER_ID", "worker-local"))
    worker_log.info("worker_loop_starting")

    try:
        pgq, asyncpg_pool = await initialize_pgqueuer()
        register_entrypoints(pgq)
        await pgq.run()
    except asyncio.CancelledError:
        worker_log.info("worker_cancelled")
        raise
    except Exception as e:
        worker_log.exception("worker_loop_failed", e)
        raise
    finally:
        worker_log.info("worker_loop_stopped")


async def shutdown_worker() -> None:
    """Release the queue pool and the ORM engine, whichever exist."""
    if asyncpg_pool is not None:
        await asyncpg_pool.close()
        log.info("asyncpg_pool_closed")

    if engine is not None:
        await engine.dispose()
        log.info("sqlalchemy_engine_disposed")


def main() -> None:
    """Run the worker until shutdown.

    Exits 0 after a clean stop and 1 when configuration is invalid or the
    claim loop dies.
    """
    try:
        config = get_config()
    except Exception as e:
        log.exception("worker_configuration_invalid", e)
        sys.exit(1)

    log.info(
        "worker_configuration_loaded",
        database_host=config.database_host,
        max_attempts=config.max_attempts,
        max_concurrent_generation=config.max_concurrent_generation,
    )

    for signum in (signal.SIGTERM, signal.SIGINT):
        signal.signal(signum, signal_handler)

    exit_code = 0
    try:
        asyncio.run(worker_main_loop())
    except KeyboardInterrupt:
        log.info("worker_interrupted")
    except Exception:
        # Already logged with traceback inside the loop
        exit_code = 1
    finally:
        asyncio.run(shutdown_worker())
        log.info("worker_exited", exit_code=exit_code)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
