"""Tests for the elapsed-time progress estimator."""

import pytest

from app.constants import (
    LABEL_COMPLETE,
    LABEL_FAILED,
    LABEL_GENERATING,
    LABEL_PROCESSING,
    LABEL_TRANSCRIBING,
)
from app.models import JobState
from app.services.progress_estimator import (
    JobStatusSnapshot,
    ProgressEstimator,
    TranscriptionTimeEstimate,
    estimate_transcription_time,
)

ESTIMATE_100S = TranscriptionTimeEstimate(typical=50.0, conservative=100.0)


def transcribing() -> JobStatusSnapshot:
    return JobStatusSnapshot(transcription=JobState.RUNNING)


def generating(completed: int, total: int, failed: int = 0) -> JobStatusSnapshot:
    steps: dict[str, JobState | None] = {}
    for i in range(total):
        if i < completed:
            steps[f"job{i}"] = JobState.COMPLETED
        elif i < completed + failed:
            steps[f"job{i}"] = JobState.FAILED
        else:
            steps[f"job{i}"] = JobState.RUNNING
    return JobStatusSnapshot(
        transcription=JobState.COMPLETED,
        content_generation=JobState.RUNNING,
        steps=steps,
    )


class TestTranscriptionPhase:
    """Phase 1: time based, 0 to 50."""

    def test_zero_elapsed_is_zero_percent(self):
        """[P0] elapsed=0, conservative=100, cap=80 gives 0."""
        snapshot = ProgressEstimator(cap_percent=80).estimate(
            transcribing(), elapsed_seconds=0, time_estimate=ESTIMATE_100S
        )

        assert snapshot.percent == 0
        assert snapshot.label == LABEL_TRANSCRIBING

    def test_halfway_through_estimate(self):
        snapshot = ProgressEstimator(cap_percent=80).estimate(
            transcribing(), elapsed_seconds=40, time_estimate=ESTIMATE_100S
        )

        # 40% of the estimate, cap 80 → rescaled 40/80*50
        assert snapshot.percent == pytest.approx(25.0)

    def test_overrunning_estimate_stays_at_phase_boundary(self):
        snapshot = ProgressEstimator(cap_percent=80).estimate(
            transcribing(), elapsed_seconds=10_000, time_estimate=ESTIMATE_100S
        )

        assert snapshot.percent == pytest.approx(50.0)
        assert snapshot.label == LABEL_TRANSCRIBING

    def test_transcription_phase_never_exceeds_fifty(self):
        estimator = ProgressEstimator(cap_percent=95)

        for elapsed in (0, 10, 50, 95, 96, 500):
            percent = estimator.transcription_percent(elapsed, 100)
            assert 0 <= percent <= 50


class TestGenerationPhase:
    """Phase 2: step based, 50 to 100."""

    def test_two_of_four_steps_is_seventy_five(self):
        """[P0] Transcription completed and 2 of 4 steps completed gives 75."""
        snapshot = ProgressEstimator().estimate(
            generating(completed=2, total=4), elapsed_seconds=30, time_estimate=ESTIMATE_100S
        )

        assert snapshot.percent == pytest.approx(75.0)
        assert snapshot.label == LABEL_GENERATING

    def test_no_steps_completed_is_fifty(self):
        snapshot = ProgressEstimator().estimate(
            generating(completed=0, total=4), elapsed_seconds=30, time_estimate=ESTIMATE_100S
        )

        assert snapshot.percent == pytest.approx(50.0)

    def test_all_steps_completed_is_complete(self):
        snapshot = ProgressEstimator().estimate(
            generating(completed=4, total=4), elapsed_seconds=30, time_estimate=ESTIMATE_100S
        )

        assert snapshot.percent == 100.0
        assert snapshot.label == LABEL_COMPLETE

    def test_failed_step_freezes_below_complete(self):
        """One failed job with every phase flag completed still shows Failed."""
        status = JobStatusSnapshot(
            transcription=JobState.COMPLETED,
            content_generation=JobState.COMPLETED,
            steps={
                "summary": JobState.COMPLETED,
                "socialPosts": JobState.COMPLETED,
                "titles": JobState.FAILED,
                "hashtags": JobState.COMPLETED,
            },
        )

        snapshot = ProgressEstimator().estimate(status, 30, ESTIMATE_100S, current_percent=90.0)

        assert snapshot.percent == 90.0
        assert snapshot.label == LABEL_FAILED

    def test_failed_step_caps_current_at_ceiling(self):
        snapshot = ProgressEstimator().estimate(
            generating(completed=3, total=4, failed=1),
            elapsed_seconds=30,
            time_estimate=ESTIMATE_100S,
            current_percent=100.0,
        )

        assert snapshot.percent == 95.0
        assert snapshot.label == LABEL_FAILED

    def test_failed_steps_do_not_count_as_progress(self):
        status = generating(completed=1, total=4, failed=2)

        assert status.completed_steps == 1
        assert status.failed_steps == 2
        assert ProgressEstimator.generation_percent(status.completed_steps, 4) == 62.5

    def test_untracked_steps_fall_back_to_phase_flag(self):
        status = JobStatusSnapshot(
            transcription=JobState.COMPLETED, content_generation=JobState.COMPLETED
        )

        snapshot = ProgressEstimator().estimate(status, 30, ESTIMATE_100S)

        assert snapshot.percent == 100.0


class TestFailureAndMonotonicity:
    """Failure freezes the bar; otherwise it never moves backwards."""

    def test_failed_phase_freezes_at_current(self):
        status = JobStatusSnapshot(transcription=JobState.FAILED)

        snapshot = ProgressEstimator().estimate(status, 30, ESTIMATE_100S, current_percent=37.0)

        assert snapshot.percent == 37.0
        assert snapshot.label == LABEL_FAILED

    def test_failed_phase_never_shows_more_than_ceiling(self):
        status = JobStatusSnapshot(
            transcription=JobState.COMPLETED, content_generation=JobState.FAILED
        )

        snapshot = ProgressEstimator().estimate(status, 30, ESTIMATE_100S, current_percent=99.0)

        assert snapshot.percent == 95.0

    @pytest.mark.parametrize("cap", [50, 80, 95])
    @pytest.mark.parametrize("total", [1, 4, 6])
    def test_percent_is_monotonic_across_phases(self, cap, total):
        """Non-decreasing elapsed time and completed counts never lower the percent."""
        estimator = ProgressEstimator(cap_percent=cap)
        polls = [(JobStatusSnapshot(), 0)]
        polls += [(transcribing(), elapsed) for elapsed in range(0, 201, 5)]
        polls += [
            (generating(completed=completed, total=total), 200 + completed)
            for completed in range(total + 1)
        ]

        shown = 0.0
        for status, elapsed in polls:
            snapshot = estimator.estimate(status, elapsed, ESTIMATE_100S, current_percent=shown)
            assert snapshot.percent >= shown, (status, elapsed)
            assert 0 <= snapshot.percent <= 100
            shown = snapshot.percent

        assert shown == 100.0

    @pytest.mark.parametrize("cap", [50, 80, 95])
    def test_phase_percents_are_monotonic_without_feedback(self, cap):
        estimator = ProgressEstimator(cap_percent=cap)
        transcription = [estimator.transcription_percent(e, 100) for e in range(0, 301, 3)]
        generation = [estimator.generation_percent(c, 5) for c in range(6)]

        sequence = transcription + generation
        assert sequence == sorted(sequence)
        assert transcription[-1] <= generation[0]

    def test_not_started_shows_processing(self):
        snapshot = ProgressEstimator().estimate(JobStatusSnapshot(), 0, ESTIMATE_100S)

        assert snapshot.percent == 10.0
        assert snapshot.label == LABEL_PROCESSING


class TestEstimatorConfiguration:
    """Constructor validation and helpers."""

    @pytest.mark.parametrize("cap", [0, 100, -5, 150])
    def test_cap_must_be_strictly_between_0_and_100(self, cap):
        with pytest.raises(ValueError):
            ProgressEstimator(cap_percent=cap)

    def test_default_cap_from_environment(self, monkeypatch):
        monkeypatch.setenv("PROGRESS_CAP_PERCENTAGE", "80")

        assert ProgressEstimator().cap_percent == 80.0

    def test_transcription_time_estimate_for_ten_minutes(self):
        estimate = estimate_transcription_time(600)

        assert estimate.typical == pytest.approx(105.0)
        assert estimate.conservative == pytest.approx(225.0)

    def test_unknown_duration_uses_default(self):
        assert estimate_transcription_time(None) == estimate_transcription_time(180)

    def test_short_files_get_minimum_conservative_estimate(self):
        assert estimate_transcription_time(10).conservative == 30.0

    def test_snapshot_from_stored_mapping(self):
        status = JobStatusSnapshot.from_mapping(
            {
                "transcription": "completed",
                "contentGeneration": "running",
                "summary": "completed",
                "titles": "running",
                "hashtags": "bogus",
            }
        )

        assert status.transcription == JobState.COMPLETED
        assert status.completed_steps == 1
        assert status.total_steps == 3
        assert status.steps["hashtags"] is None

    def test_display_percent_rounds(self):
        snapshot = ProgressEstimator().estimate(
            generating(completed=1, total=3), 0, ESTIMATE_100S
        )

        assert snapshot.display_percent == 67
