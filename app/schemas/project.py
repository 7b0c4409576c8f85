"""Pydantic schemas for Project upload, read and progress endpoints.

Schema Naming Convention:
    - ProjectCreate: For POST requests (accepting an upload)
    - ProjectResponse: For API responses (serializing from database)
    - ProgressResponse: For progress polling responses
    - UploadRejection: Error detail when a plan limit rejects an upload

All schemas use Pydantic v2 syntax with model_config instead of class Config.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models import PlanTier, ProjectStatus
from app.services.plan_policy import normalize_plan


class ProjectCreate(BaseModel):
    """Schema for accepting a new upload.

    The file is already stored; the request carries its public URL and the
    metadata the plan limits are checked against.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(
        ...,
        alias="userId",
        min_length=1,
        max_length=100,
        description="Owner of the upload (plan project limits are per user)",
    )
    file_url: str = Field(
        ...,
        alias="fileUrl",
        min_length=1,
        description="Public URL of the uploaded audio file",
        examples=["https://files.example.com/uploads/episode-42.mp3"],
    )
    file_name: str | None = Field(default=None, alias="fileName", max_length=255)
    file_size: int = Field(
        ...,
        alias="fileSize",
        ge=0,
        description="Upload size in bytes",
    )
    file_duration: float | None = Field(
        default=None,
        alias="fileDuration",
        ge=0,
        description="Audio duration in seconds, if known",
    )
    plan: PlanTier = Field(
        default=PlanTier.FREE,
        description="Plan tier of the uploading user. Unknown values fall back to free.",
    )

    @field_validator("plan", mode="before")
    @classmethod
    def _fail_closed_plan(cls, value: Any) -> PlanTier:
        return normalize_plan(value)


class ProjectResponse(BaseModel):
    """Project as returned to observers."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str | None
    file_url: str
    file_name: str | None
    file_size: int
    file_duration: float | None
    plan: PlanTier
    status: ProjectStatus
    job_status: dict[str, Any]
    job_errors: dict[str, Any]
    generated_content: dict[str, Any]
    error: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None


class ProgressResponse(BaseModel):
    """Progress estimate for one poll.

    Attributes:
        percent: Estimated completion in [0, 100].
        display_percent: Percent rounded for display.
        label: Status label ("Transcribing...", "Complete", ...).
        status: Overall project status.
        poll_interval_ms: How long the observer should wait before polling again.
    """

    project_id: str
    percent: float = Field(..., ge=0, le=100)
    display_percent: int = Field(..., ge=0, le=100)
    label: str
    status: ProjectStatus
    poll_interval_ms: int


class UploadRejection(BaseModel):
    """403 detail when an upload exceeds the plan's limits."""

    reason: str
    message: str
    current_count: int | None = None
    limit: int | None = None
