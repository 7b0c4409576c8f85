"""Pydantic schemas for the workflow trigger event and run result.

The trigger event is the only input to a run:

    {"projectId": "...", "fileUrl": "https://...", "plan": "pro"}

Field aliases keep the event's camelCase wire names while the Python side
uses snake_case. An absent or unrecognized plan falls back to "free".
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models import PlanTier
from app.services.plan_policy import normalize_plan


class WorkflowRequest(BaseModel):
    """Trigger event payload for one workflow run. Immutable once accepted."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    project_id: str = Field(..., alias="projectId", min_length=1, max_length=64)
    file_url: str = Field(..., alias="fileUrl", min_length=1)
    plan: PlanTier = Field(default=PlanTier.FREE)
    event_id: str | None = Field(default=None, alias="eventId", max_length=100)

    @field_validator("plan", mode="before")
    @classmethod
    def _fail_closed_plan(cls, value: Any) -> PlanTier:
        return normalize_plan(value)

    @property
    def run_id(self) -> str:
        """Checkpoint namespace for this run (event id, else project id)."""
        return self.event_id or self.project_id


class WorkflowResult(BaseModel):
    """Value returned by a successful run."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    project_id: str = Field(..., alias="projectId")
    plan: PlanTier


class WorkflowErrorRecord(BaseModel):
    """Failure record written by the top-level failure handler.

    Attributes:
        message: Error message of the original exception.
        step: Originating step label ("workflow").
        status_code: Numeric status code extracted from the error, if any.
        diagnostic: Formatted traceback text.
    """

    message: str
    step: str
    status_code: int | None = None
    diagnostic: str = ""
