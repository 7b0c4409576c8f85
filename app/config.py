"""Configuration management for the podcast processing service.

This module provides centralized configuration loading from environment variables.
Required secrets are cached after first read; tunables are read on every call so
tests can override them with monkeypatch.

Environment Variables:
    DATABASE_URL: PostgreSQL connection URL (required for production)
    WORKFLOW_MAX_ATTEMPTS: Attempts per durable step (default: 3)
    JOB_MAX_ATTEMPTS: Attempts per content generation job (default: WORKFLOW_MAX_ATTEMPTS)
    MAX_CONCURRENT_GENERATION_JOBS: Fan-out concurrency bound (default: 6)
    PROGRESS_CAP_PERCENTAGE: Ceiling for time-based transcription progress (default: 95)
    ASSEMBLYAI_API_KEY: Transcription vendor key (optional)
    OPENAI_API_KEY: Content generation key (optional)

Usage:
    from app.config import get_workflow_max_attempts, get_database_url

    attempts = get_workflow_max_attempts()  # 3 unless overridden
    db_url = get_database_url()  # Raises if DATABASE_URL not set
"""

import os
from functools import lru_cache

import structlog

log = structlog.get_logger(__name__)

DEFAULT_WORKFLOW_MAX_ATTEMPTS = 3
DEFAULT_MAX_CONCURRENT_GENERATION = 6
DEFAULT_PROGRESS_CAP_PERCENTAGE = 95
DEFAULT_PROGRESS_UPDATE_INTERVAL_MS = 1000
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


def _get_int(name: str, default: int) -> int:
    """Read an integer env var, logging and falling back on garbage."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("invalid_config_value", name=name, value=raw, using_default=default)
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("invalid_config_value", name=name, value=raw, using_default=default)
        return default


@lru_cache
def get_database_url() -> str:
    """Get database URL from environment.

    Converts postgresql:// to postgresql+asyncpg:// for async SQLAlchemy.

    Environment Variable:
        DATABASE_URL: PostgreSQL connection URL

    Returns:
        Database URL with asyncpg driver.

    Raises:
        ValueError: If DATABASE_URL not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise ValueError("DATABASE_URL environment variable is required")

    # Railway provides postgresql:// but we need postgresql+asyncpg://
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def get_workflow_max_attempts() -> int:
    """Get the attempt budget for every durable workflow step.

    Environment Variable:
        WORKFLOW_MAX_ATTEMPTS: Total attempts per step, including the first (default: 3)

    Returns:
        Attempt count, never lower than 1.
    """
    return max(1, _get_int("WORKFLOW_MAX_ATTEMPTS", DEFAULT_WORKFLOW_MAX_ATTEMPTS))


def get_job_max_attempts() -> int:
    """Get the attempt budget for a single content generation job.

    Falls back to the workflow budget when JOB_MAX_ATTEMPTS is unset, so a
    generation job is never retried more often than any other durable step
    unless explicitly configured.

    Environment Variable:
        JOB_MAX_ATTEMPTS: Total attempts per generation job

    Returns:
        Attempt count, never lower than 1.
    """
    return max(1, _get_int("JOB_MAX_ATTEMPTS", get_workflow_max_attempts()))


def get_retry_wait_bounds() -> tuple[float, float]:
    """Get exponential backoff bounds (min, max) in seconds between attempts.

    Environment Variables:
        RETRY_WAIT_MIN_SECONDS: Shortest wait (default: 1)
        RETRY_WAIT_MAX_SECONDS: Longest wait (default: 10)
    """
    wait_min = max(0.0, _get_float("RETRY_WAIT_MIN_SECONDS", 1.0))
    wait_max = max(wait_min, _get_float("RETRY_WAIT_MAX_SECONDS", 10.0))
    return wait_min, wait_max


def get_max_concurrent_generation() -> int:
    """Get max concurrent content generation jobs per run.

    Environment Variable:
        MAX_CONCURRENT_GENERATION_JOBS: Maximum parallel jobs (default: 6)

    Returns:
        Concurrency bound clamped to 1..16.

    Note:
        Default of 6 runs every ultra job at once. Lower it when the
        LLM provider starts returning 429s.
    """
    value = _get_int("MAX_CONCURRENT_GENERATION_JOBS", DEFAULT_MAX_CONCURRENT_GENERATION)
    return max(1, min(16, value))


def get_progress_cap_percentage() -> float:
    """Get the ceiling for time-based transcription progress.

    Time-based progress must never show 100% before the transcript actually
    arrives, so the value is clamped below 100.

    Environment Variable:
        PROGRESS_CAP_PERCENTAGE: Ceiling in percent (default: 95)

    Returns:
        Cap clamped to 1..99.
    """
    value = _get_float("PROGRESS_CAP_PERCENTAGE", DEFAULT_PROGRESS_CAP_PERCENTAGE)
    return max(1.0, min(99.0, value))


def get_progress_update_interval_ms() -> int:
    """Get the polling interval hint handed to progress observers."""
    return max(100, _get_int("PROGRESS_UPDATE_INTERVAL_MS", DEFAULT_PROGRESS_UPDATE_INTERVAL_MS))


def get_assemblyai_api_key() -> str | None:
    """Get AssemblyAI API key from environment.

    Returns:
        API key string, or None if not set.

    Note:
        Returns None so the web service can start without transcription
        credentials. The worker raises ConfigurationError instead.
    """
    return os.getenv("ASSEMBLYAI_API_KEY")


def get_transcription_poll_interval() -> float:
    """Get transcription polling interval in seconds (default: 3, minimum 0.5)."""
    return max(0.5, _get_float("TRANSCRIPTION_POLL_INTERVAL_SECONDS", 3.0))


def get_openai_api_key() -> str | None:
    """Get OpenAI API key from environment, or None if not set."""
    return os.getenv("OPENAI_API_KEY")


def get_openai_model() -> str:
    """Get chat model used for content generation (default: gpt-4o-mini)."""
    return os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL)
