"""Project-wide constants and mappings.

This module contains the generation job names, the project/job status
vocabularies shared with the external status store, and the labels shown
by the progress estimator.
"""

import hashlib
import json
from collections.abc import Mapping

# Generation job names. These are storage keys in generated_content,
# job_errors and job_status, read by external consumers, so they keep the
# camelCase spelling of the store schema.
JOB_SUMMARY = "summary"
JOB_SOCIAL_POSTS = "socialPosts"
JOB_TITLES = "titles"
JOB_HASHTAGS = "hashtags"
JOB_KEY_MOMENTS = "keyMoments"
JOB_YOUTUBE_TIMESTAMPS = "youtubeTimestamps"

ALL_GENERATION_JOBS = [
    JOB_SUMMARY,
    JOB_SOCIAL_POSTS,
    JOB_TITLES,
    JOB_HASHTAGS,
    JOB_KEY_MOMENTS,
    JOB_YOUTUBE_TIMESTAMPS,
]

# Phase keys in Project.job_status
PHASE_TRANSCRIPTION = "transcription"
PHASE_CONTENT_GENERATION = "contentGeneration"

# Step label written to the workflow error record by the top-level handler
WORKFLOW_ERROR_STEP = "workflow"

# Durable step names (checkpoint keys). Renaming one breaks resume for
# runs that were in flight during a deploy.
STEP_STATUS_PROCESSING = "update-status-processing"
STEP_TRANSCRIPTION_RUNNING = "update-job-status-transcription-running"
STEP_TRANSCRIBE = "transcribe-audio"
STEP_TRANSCRIPTION_COMPLETED = "update-job-status-transcription-completed"
STEP_GENERATION_RUNNING = "update-job-status-generation-running"
STEP_SAVE_JOB_ERRORS = "save-job-errors"
STEP_GENERATION_COMPLETED = "update-job-status-generation-completed"
STEP_SAVE_RESULTS = "save-results"


def generation_step_name(job_name: str) -> str:
    """Durable step name for one generation job (e.g. "generate-summary")."""
    return f"generate-{job_name}"


def job_errors_step_name(job_errors: Mapping[str, str]) -> str:
    """Durable step name for saving one particular set of job errors.

    Keyed by the errors themselves, so a resumed run whose jobs fail
    differently writes its own errors instead of replaying the earlier
    checkpoint.
    """
    digest = hashlib.sha1(
        json.dumps(dict(job_errors), sort_keys=True).encode("utf-8")
    ).hexdigest()[:12]
    return f"{STEP_SAVE_JOB_ERRORS}-{digest}"


# Progress estimator
PROGRESS_NOT_STARTED_PERCENT = 10.0
PROGRESS_FAILURE_CEILING = 95.0
PROGRESS_PHASE_SPLIT = 50.0

LABEL_FAILED = "Failed"
LABEL_TRANSCRIBING = "Transcribing..."
LABEL_GENERATING = "Generating content..."
LABEL_COMPLETE = "Complete"
LABEL_PROCESSING = "Processing..."

# PgQueuer
PROCESS_UPLOAD_ENTRYPOINT = "process_upload"
