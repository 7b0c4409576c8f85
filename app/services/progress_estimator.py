"""Elapsed-time progress estimation for a workflow run.

Maps raw execution state into a 0-100 percent and a status label for
observers polling a project. The estimator is pure: every call computes a
snapshot from its arguments, nothing is cached or persisted here.

Two-phase policy:
    Phase 1 (0 → 50): transcription running. Time based: elapsed seconds
        against a conservative transcription estimate, capped at
        PROGRESS_CAP_PERCENTAGE so the bar never looks finished before the
        transcript arrives, then rescaled into [0, 50].
    Phase 2 (50 → 100): transcription completed. Step based:
        completed generation steps over tracked generation steps, rescaled
        into [50, 100].

Any failed phase or tracked step freezes the bar at min(current, 95) with
the failure label, and the bar never reaches 100 while a failure is
recorded. Otherwise the returned percent never drops below ``current_percent``, so
an observer that feeds back its last value sees a monotonic bar.

Usage:
    from app.services.progress_estimator import ProgressEstimator, estimate_transcription_time

    estimator = ProgressEstimator()
    snapshot = estimator.estimate(
        JobStatusSnapshot.from_mapping(project.job_status),
        elapsed_seconds=42,
        time_estimate=estimate_transcription_time(project.file_duration),
    )
    print(snapshot.percent, snapshot.label)
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from app.config import get_progress_cap_percentage
from app.constants import (
    LABEL_COMPLETE,
    LABEL_FAILED,
    LABEL_GENERATING,
    LABEL_PROCESSING,
    LABEL_TRANSCRIBING,
    PHASE_CONTENT_GENERATION,
    PHASE_TRANSCRIPTION,
    PROGRESS_FAILURE_CEILING,
    PROGRESS_NOT_STARTED_PERCENT,
    PROGRESS_PHASE_SPLIT,
)
from app.models import JobState

# Transcription throughput assumptions (seconds of processing per second of audio)
TRANSCRIPTION_TYPICAL_RATIO = 0.15
TRANSCRIPTION_CONSERVATIVE_RATIO = 0.35
TRANSCRIPTION_OVERHEAD_SECONDS = 15.0
TRANSCRIPTION_MIN_CONSERVATIVE_SECONDS = 30.0
# Used when the upload did not report a duration
TRANSCRIPTION_UNKNOWN_DURATION_SECONDS = 180.0


@dataclass(frozen=True)
class TranscriptionTimeEstimate:
    """Duration-based estimate of how long transcription takes.

    Attributes:
        typical: Expected seconds for an average run.
        conservative: Pessimistic seconds; progress is measured against this
            so the bar rarely stalls at the cap.
    """

    typical: float
    conservative: float


def _parse_state(value: Any) -> JobState | None:
    if isinstance(value, JobState):
        return value
    try:
        return JobState(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class JobStatusSnapshot:
    """Phase flags plus per-step generation states read from the store.

    Attributes:
        transcription: Transcription phase state, None if never written.
        content_generation: Content generation phase state, None if never written.
        steps: Tracked generation step states, job name → state.
    """

    transcription: JobState | None = None
    content_generation: JobState | None = None
    steps: dict[str, JobState | None] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, job_status: Mapping[str, Any] | None) -> "JobStatusSnapshot":
        """Build a snapshot from a stored job_status mapping.

        Unrecognized state values are treated as absent.
        """
        job_status = job_status or {}
        steps = {
            name: _parse_state(value)
            for name, value in job_status.items()
            if name not in (PHASE_TRANSCRIPTION, PHASE_CONTENT_GENERATION)
        }
        return cls(
            transcription=_parse_state(job_status.get(PHASE_TRANSCRIPTION)),
            content_generation=_parse_state(job_status.get(PHASE_CONTENT_GENERATION)),
            steps=steps,
        )

    @property
    def completed_steps(self) -> int:
        return sum(1 for state in self.steps.values() if state == JobState.COMPLETED)

    @property
    def failed_steps(self) -> int:
        return sum(1 for state in self.steps.values() if state == JobState.FAILED)

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def any_failed(self) -> bool:
        """Whether a phase or any tracked generation step failed."""
        return self.failed_steps > 0 or JobState.FAILED in (
            self.transcription,
            self.content_generation,
        )


@dataclass(frozen=True)
class ProgressSnapshot:
    """Derived progress value. Recomputed on demand, never persisted here."""

    percent: float
    label: str

    @property
    def display_percent(self) -> int:
        """Percent rounded for display."""
        return int(round(self.percent))


def estimate_transcription_time(file_duration: float | None) -> TranscriptionTimeEstimate:
    """Estimate transcription time from the audio duration.

    Args:
        file_duration: Audio length in seconds, or None if unknown.

    Returns:
        TranscriptionTimeEstimate with typical and conservative seconds.

    Example:
        >>> estimate_transcription_time(600).conservative
        225.0
    """
    if file_duration is None or file_duration <= 0 or not math.isfinite(file_duration):
        file_duration = TRANSCRIPTION_UNKNOWN_DURATION_SECONDS

    typical = TRANSCRIPTION_OVERHEAD_SECONDS + file_duration * TRANSCRIPTION_TYPICAL_RATIO
    conservative = max(
        TRANSCRIPTION_MIN_CONSERVATIVE_SECONDS,
        TRANSCRIPTION_OVERHEAD_SECONDS + file_duration * TRANSCRIPTION_CONSERVATIVE_RATIO,
    )
    return TranscriptionTimeEstimate(typical=typical, conservative=conservative)


class ProgressEstimator:
    """Computes ProgressSnapshot values from run state.

    Attributes:
        cap_percent: Ceiling for the time-based transcription ratio (< 100).
    """

    def __init__(self, cap_percent: float | None = None):
        cap = get_progress_cap_percentage() if cap_percent is None else cap_percent
        if not 0 < cap < 100:
            raise ValueError(f"cap_percent must be between 0 and 100 (exclusive), got {cap}")
        self.cap_percent = cap

    def transcription_percent(self, elapsed_seconds: float, conservative_seconds: float) -> float:
        """Phase-1 percent in [0, 50] from elapsed time."""
        if conservative_seconds <= 0:
            return PROGRESS_PHASE_SPLIT
        raw = max(0.0, elapsed_seconds) / conservative_seconds * 100
        capped = min(self.cap_percent, raw)
        return min(PROGRESS_PHASE_SPLIT, capped / self.cap_percent * PROGRESS_PHASE_SPLIT)

    @staticmethod
    def generation_percent(completed_steps: int, total_steps: int) -> float:
        """Phase-2 percent in [50, 100] from step counts."""
        if total_steps <= 0:
            return PROGRESS_PHASE_SPLIT
        ratio = min(1.0, max(0, completed_steps) / total_steps)
        return PROGRESS_PHASE_SPLIT + ratio * (100 - PROGRESS_PHASE_SPLIT)

    def estimate(
        self,
        job_status: JobStatusSnapshot,
        elapsed_seconds: float,
        time_estimate: TranscriptionTimeEstimate,
        current_percent: float = 0.0,
    ) -> ProgressSnapshot:
        """Estimate progress for one poll.

        Args:
            job_status: Phase and step states.
            elapsed_seconds: Seconds since the upload was accepted.
            time_estimate: Transcription time estimate for the file.
            current_percent: Percent the observer is currently showing.

        Returns:
            ProgressSnapshot with percent in [0, 100] and a status label.
        """
        transcribed = job_status.transcription == JobState.COMPLETED
        if job_status.total_steps > 0:
            generated = job_status.completed_steps == job_status.total_steps
        else:
            # Nothing tracked per step: fall back to the phase flag
            generated = job_status.content_generation == JobState.COMPLETED

        if job_status.any_failed:
            return ProgressSnapshot(
                percent=max(0.0, min(current_percent, PROGRESS_FAILURE_CEILING)),
                label=LABEL_FAILED,
            )

        if transcribed and generated:
            return ProgressSnapshot(percent=100.0, label=LABEL_COMPLETE)

        if job_status.transcription == JobState.RUNNING:
            percent = self.transcription_percent(elapsed_seconds, time_estimate.conservative)
            label = LABEL_TRANSCRIBING
        elif transcribed:
            percent = self.generation_percent(job_status.completed_steps, job_status.total_steps)
            label = LABEL_GENERATING
        else:
            percent = PROGRESS_NOT_STARTED_PERCENT
            label = LABEL_PROCESSING

        return ProgressSnapshot(percent=min(100.0, max(current_percent, percent)), label=label)
