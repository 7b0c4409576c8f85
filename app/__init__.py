"""Podcast Processor orchestration layer.

This package contains the FastAPI upload/progress service and the PgQueuer
worker that runs the podcast processing workflow: transcription, plan-gated
content generation fan-out, and persistence of results in PostgreSQL.
"""

from app.database import async_session_factory, get_session
from app.models import Base, Project, WorkflowStepCheckpoint

__all__ = [
    "Base",
    "Project",
    "WorkflowStepCheckpoint",
    "async_session_factory",
    "get_session",
]
