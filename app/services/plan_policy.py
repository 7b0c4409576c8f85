"""Plan-based job selection and plan limits.

PlanPolicy decides which content generation jobs a run executes:

    free  → summary
    pro   → summary, socialPosts, titles, hashtags
    ultra → summary, socialPosts, titles, hashtags, keyMoments, youtubeTimestamps

Selection is monotonic (free ⊆ pro ⊆ ultra) and pure. Unknown plan values
fail closed to free instead of raising.

This module also carries the upload-time plan limits and feature lookups
used by the project creation route.

Usage:
    from app.services.plan_policy import select_jobs, check_upload_limits

    select_jobs(PlanTier.PRO)
    # ["summary", "socialPosts", "titles", "hashtags"]
"""

from dataclasses import dataclass
from typing import Any

from app.constants import (
    JOB_HASHTAGS,
    JOB_KEY_MOMENTS,
    JOB_SOCIAL_POSTS,
    JOB_SUMMARY,
    JOB_TITLES,
    JOB_YOUTUBE_TIMESTAMPS,
)
from app.models import PlanTier
from app.utils.logging import get_logger

log = get_logger(__name__)

MB = 1024 * 1024

# Jobs each tier adds on top of the tier below it, in execution order
_TIER_JOBS: dict[PlanTier, list[str]] = {
    PlanTier.FREE: [JOB_SUMMARY],
    PlanTier.PRO: [JOB_SOCIAL_POSTS, JOB_TITLES, JOB_HASHTAGS],
    PlanTier.ULTRA: [JOB_KEY_MOMENTS, JOB_YOUTUBE_TIMESTAMPS],
}

# Feature names (superset of job names: transcript access is gated too)
FEATURE_SUMMARY = "summary"
FEATURE_SOCIAL_POSTS = "social_posts"
FEATURE_TITLES = "titles"
FEATURE_HASHTAGS = "hashtags"
FEATURE_KEY_MOMENTS = "key_moments"
FEATURE_YOUTUBE_TIMESTAMPS = "youtube_timestamps"
FEATURE_SPEAKER_DIARIZATION = "speaker_diarization"
FEATURE_FULL_TRANSCRIPT = "full_transcript"

PLAN_FEATURES: dict[PlanTier, list[str]] = {
    PlanTier.FREE: [FEATURE_SUMMARY],
    PlanTier.PRO: [FEATURE_SUMMARY, FEATURE_SOCIAL_POSTS, FEATURE_TITLES, FEATURE_HASHTAGS],
    PlanTier.ULTRA: [
        FEATURE_SUMMARY,
        FEATURE_SOCIAL_POSTS,
        FEATURE_TITLES,
        FEATURE_HASHTAGS,
        FEATURE_KEY_MOMENTS,
        FEATURE_YOUTUBE_TIMESTAMPS,
        FEATURE_SPEAKER_DIARIZATION,
        FEATURE_FULL_TRANSCRIPT,
    ],
}


@dataclass(frozen=True)
class PlanLimits:
    """Upload limits for a plan. None means unlimited."""

    max_file_size: int
    max_duration: int | None
    max_projects: int | None


PLAN_LIMITS: dict[PlanTier, PlanLimits] = {
    PlanTier.FREE: PlanLimits(max_file_size=10 * MB, max_duration=10 * 60, max_projects=3),
    PlanTier.PRO: PlanLimits(max_file_size=200 * MB, max_duration=2 * 60 * 60, max_projects=30),
    PlanTier.ULTRA: PlanLimits(max_file_size=3 * 1024 * MB, max_duration=None, max_projects=None),
}


def normalize_plan(value: Any) -> PlanTier:
    """Coerce a raw plan value to a PlanTier, failing closed to FREE.

    Args:
        value: PlanTier, plan name string (case-insensitive), or anything else.

    Returns:
        Matching PlanTier, or PlanTier.FREE for None / unknown values.

    Example:
        >>> normalize_plan("ULTRA")
        <PlanTier.ULTRA: 'ultra'>
        >>> normalize_plan("enterprise")
        <PlanTier.FREE: 'free'>
    """
    if isinstance(value, PlanTier):
        return value
    if isinstance(value, str):
        try:
            return PlanTier(value.strip().lower())
        except ValueError:
            pass
    if value is not None:
        log.warning("unknown_plan_defaulted", plan=str(value), using="free")
    return PlanTier.FREE


def select_jobs(plan: PlanTier | str | None) -> list[str]:
    """Return the ordered generation job names for a plan.

    Args:
        plan: Plan tier (raw values are normalized, failing closed to free)

    Returns:
        Ordered list of unique job names. Lower tiers' jobs come first.
    """
    tier = normalize_plan(plan)
    jobs: list[str] = []
    for candidate in PlanTier:
        if candidate.rank > tier.rank:
            break
        jobs.extend(_TIER_JOBS[candidate])
    return jobs


def get_plan_features(plan: PlanTier) -> list[str]:
    """Get list of features available to a plan."""
    return list(PLAN_FEATURES[plan])


def plan_has_feature(plan: PlanTier, feature: str) -> bool:
    """Check if a plan includes a feature."""
    return feature in PLAN_FEATURES[plan]


def get_minimum_plan_for_feature(feature: str) -> PlanTier:
    """Get the lowest plan that includes a feature (ultra if none lists it)."""
    for plan in PlanTier:
        if feature in PLAN_FEATURES[plan]:
            return plan
    return PlanTier.ULTRA


@dataclass
class UploadValidationResult:
    """Outcome of an upload limit check.

    Attributes:
        allowed: Whether the upload may proceed.
        reason: "file_size", "duration" or "project_limit" when rejected.
        message: Human-readable rejection message.
        current_count: Current project count (project_limit only).
        limit: Project limit (project_limit only).
    """

    allowed: bool
    reason: str | None = None
    message: str | None = None
    current_count: int | None = None
    limit: int | None = None


def check_upload_limits(
    plan: PlanTier,
    file_size: int,
    duration: float | None,
    project_count: int,
) -> UploadValidationResult:
    """Validate an upload against the plan's limits.

    Checks run in order: file size, duration (only when known and the plan
    has a limit), project count (skipped for unlimited plans). The caller
    supplies project_count; on the free plan that count should include
    deleted projects, on paid plans only active ones.

    Args:
        plan: Plan tier of the uploading user
        file_size: Upload size in bytes
        duration: Audio duration in seconds, or None if unknown
        project_count: Projects the user already has

    Returns:
        UploadValidationResult, allowed=True when every check passes.
    """
    limits = PLAN_LIMITS[plan]

    if file_size > limits.max_file_size:
        return UploadValidationResult(
            allowed=False,
            reason="file_size",
            message=(
                f"File size ({file_size / MB:.1f}MB) exceeds your plan limit of "
                f"{limits.max_file_size / MB:.0f}MB"
            ),
        )

    if duration is not None and limits.max_duration is not None:
        if duration > limits.max_duration:
            return UploadValidationResult(
                allowed=False,
                reason="duration",
                message=(
                    f"Duration ({int(duration // 60)} minutes) exceeds your plan limit of "
                    f"{limits.max_duration // 60} minutes"
                ),
            )

    if limits.max_projects is not None and project_count >= limits.max_projects:
        scope = "total" if plan == PlanTier.FREE else "active"
        return UploadValidationResult(
            allowed=False,
            reason="project_limit",
            message=f"You've reached your plan limit of {limits.max_projects} {scope} projects",
            current_count=project_count,
            limit=limits.max_projects,
        )

    return UploadValidationResult(allowed=True)
