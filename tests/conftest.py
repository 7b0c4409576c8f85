"""Shared pytest fixtures.

This module provides the in-memory database fixtures, in-memory workflow
collaborators and a mocked workflow queue.
"""

from unittest.mock import AsyncMock

import pytest

from app.services.checkpoint_store import InMemoryCheckpointStore
from tests.support.fakes import FakeContentGenerator, FakeStatusStore, FakeTranscriber


@pytest.fixture(autouse=True)
def clear_config_cache():
    """Reset lru_cached config getters between tests."""
    from app.config import get_database_url

    get_database_url.cache_clear()
    yield
    get_database_url.cache_clear()


@pytest.fixture
def mock_workflow_queue():
    """Mock WorkflowQueue so routes never touch PgQueuer.

    Returns:
        AsyncMock: Mocked queue with enqueue_workflow method.
    """
    mock_queue = AsyncMock()
    mock_queue.enqueue_workflow = AsyncMock(return_value=None)
    return mock_queue


@pytest.fixture
def status_store() -> FakeStatusStore:
    """In-memory StatusStore recording every mutation."""
    return FakeStatusStore()


@pytest.fixture
def transcriber() -> FakeTranscriber:
    """Transcriber returning a small two-speaker transcript."""
    return FakeTranscriber()


@pytest.fixture
def content_generator() -> FakeContentGenerator:
    """Producer factory returning {"job": name} for every job."""
    return FakeContentGenerator()


@pytest.fixture
def checkpoints() -> InMemoryCheckpointStore:
    """Process-local checkpoint store."""
    return InMemoryCheckpointStore()


# Import additional fixtures from fixtures/ package
from tests.fixtures.database import (  # noqa: F401, E402
    async_test_engine,
    async_test_session,
    sample_project_data,
    stored_project,
    test_session_factory,
)
