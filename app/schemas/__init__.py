"""Pydantic schemas for validation and serialization."""

from app.schemas.project import ProgressResponse, ProjectCreate, ProjectResponse
from app.schemas.transcript import TranscriptResult
from app.schemas.workflow import WorkflowErrorRecord, WorkflowRequest, WorkflowResult

__all__ = [
    "ProgressResponse",
    "ProjectCreate",
    "ProjectResponse",
    "TranscriptResult",
    "WorkflowErrorRecord",
    "WorkflowRequest",
    "WorkflowResult",
]
