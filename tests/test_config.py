"""Tests for app/config.py configuration module.

This module tests:
- Environment variable loading functions
- Default value handling and clamping
- Error cases for missing required configuration

Priority: P1 - Configuration is critical for all services.
"""

import pytest

from app.config import (
    get_assemblyai_api_key,
    get_database_url,
    get_job_max_attempts,
    get_max_concurrent_generation,
    get_openai_model,
    get_progress_cap_percentage,
    get_progress_update_interval_ms,
    get_retry_wait_bounds,
    get_transcription_poll_interval,
    get_workflow_max_attempts,
)


class TestGetDatabaseUrl:
    """Tests for get_database_url function."""

    def test_p1_raises_when_not_set(self, monkeypatch: pytest.MonkeyPatch):
        """[P1] Should raise ValueError when DATABASE_URL is missing."""
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with pytest.raises(ValueError, match="DATABASE_URL environment variable is required"):
            get_database_url()

    def test_p1_converts_postgresql_to_asyncpg(self, monkeypatch: pytest.MonkeyPatch):
        """[P1] postgresql:// is rewritten for the async driver."""
        # GIVEN: A Railway-style URL
        monkeypatch.setenv("DATABASE_URL", "postgresql://user:pass@db:5432/podcasts")

        # WHEN: Reading the URL
        result = get_database_url()

        # THEN: The asyncpg driver is selected
        assert result == "postgresql+asyncpg://user:pass@db:5432/podcasts"

    def test_p2_asyncpg_url_unchanged(self, monkeypatch: pytest.MonkeyPatch):
        url = "postgresql+asyncpg://user:pass@db:5432/podcasts"
        monkeypatch.setenv("DATABASE_URL", url)

        assert get_database_url() == url


class TestAttemptBudgets:
    """Retry configuration."""

    def test_p1_workflow_default(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("WORKFLOW_MAX_ATTEMPTS", raising=False)

        assert get_workflow_max_attempts() == 3

    def test_p1_workflow_never_below_one(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WORKFLOW_MAX_ATTEMPTS", "0")

        assert get_workflow_max_attempts() == 1

    def test_p2_garbage_falls_back_to_default(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WORKFLOW_MAX_ATTEMPTS", "lots")

        assert get_workflow_max_attempts() == 3

    def test_p1_job_budget_follows_workflow_budget(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WORKFLOW_MAX_ATTEMPTS", "5")
        monkeypatch.delenv("JOB_MAX_ATTEMPTS", raising=False)

        assert get_job_max_attempts() == 5

    def test_p1_job_budget_override(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("JOB_MAX_ATTEMPTS", "2")

        assert get_job_max_attempts() == 2

    def test_p2_wait_bounds_ordered(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("RETRY_WAIT_MIN_SECONDS", "5")
        monkeypatch.setenv("RETRY_WAIT_MAX_SECONDS", "1")

        assert get_retry_wait_bounds() == (5.0, 5.0)


class TestTunables:
    """Concurrency, progress and vendor settings."""

    @pytest.mark.parametrize("raw,expected", [(None, 6), ("0", 1), ("3", 3), ("100", 16)])
    def test_p1_max_concurrent_generation(self, monkeypatch, raw, expected):
        if raw is None:
            monkeypatch.delenv("MAX_CONCURRENT_GENERATION_JOBS", raising=False)
        else:
            monkeypatch.setenv("MAX_CONCURRENT_GENERATION_JOBS", raw)

        assert get_max_concurrent_generation() == expected

    @pytest.mark.parametrize("raw,expected", [(None, 95.0), ("80", 80.0), ("100", 99.0)])
    def test_p1_progress_cap(self, monkeypatch, raw, expected):
        if raw is None:
            monkeypatch.delenv("PROGRESS_CAP_PERCENTAGE", raising=False)
        else:
            monkeypatch.setenv("PROGRESS_CAP_PERCENTAGE", raw)

        assert get_progress_cap_percentage() == expected

    def test_p2_poll_interval_minimums(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PROGRESS_UPDATE_INTERVAL_MS", "10")
        monkeypatch.setenv("TRANSCRIPTION_POLL_INTERVAL_SECONDS", "0")

        assert get_progress_update_interval_ms() == 100
        assert get_transcription_poll_interval() == 0.5

    def test_p2_vendor_settings(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("ASSEMBLYAI_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_MODEL", raising=False)

        assert get_assemblyai_api_key() is None
        assert get_openai_model() == "gpt-4o-mini"
