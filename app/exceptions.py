"""Shared exceptions for the application.

This module contains exception classes used across multiple services
to avoid cross-domain dependencies between services.
"""


class ConfigurationError(Exception):
    """Raised when required configuration is missing.

    This error indicates a configuration problem that prevents
    the workflow from running (e.g., no ASSEMBLYAI_API_KEY for the
    transcription collaborator or no OPENAI_API_KEY for content generation).
    """

    pass


class WorkflowError(Exception):
    """Base class for errors raised by workflow collaborators.

    Attributes:
        status_code: Optional numeric status code from the upstream service
            (HTTP status for vendor APIs). Copied into the workflow error
            record for diagnosis.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class TranscriptionError(WorkflowError):
    """Raised when the transcription vendor reports a failed transcript."""


class ContentGenerationError(WorkflowError):
    """Raised when a content generation job cannot produce a result."""


class StatusStoreError(WorkflowError):
    """Raised when a status or persistence mutation cannot be applied.

    Example: the project row does not exist, so there is nothing to update.
    """


class UploadLimitExceeded(Exception):
    """Raised when an upload is rejected by the plan limits.

    Attributes:
        reason: Which limit was hit ("file_size", "duration", "project_limit").
        current_count: Current project count (project_limit only).
        limit: The limit that was exceeded (project_limit only).
    """

    def __init__(
        self,
        message: str,
        reason: str,
        current_count: int | None = None,
        limit: int | None = None,
    ):
        self.reason = reason
        self.current_count = current_count
        self.limit = limit
        super().__init__(message)


class InvalidStateTransitionError(Exception):
    """Raised when attempting an invalid phase state transition.

    The two phase flags (transcription, content generation) move
    pending -> running -> completed|failed, and content generation may only
    enter running once transcription is completed.

    Attributes:
        message: Human-readable error message describing the invalid transition.
        from_state: The current JobState before the attempted transition.
        to_state: The JobState that was attempted but is not valid.

    Example:
        >>> validate_phase_transition("transcription", JobState.PENDING, JobState.COMPLETED)
        InvalidStateTransitionError: Invalid transcription transition (from=pending, to=completed)
    """

    def __init__(self, message: str, from_state: "JobState", to_state: "JobState"):
        """Initialize InvalidStateTransitionError with transition details.

        Args:
            message: Human-readable error message.
            from_state: Current state before transition attempt.
            to_state: Target state that was attempted.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(message)

    def __str__(self) -> str:
        """Return detailed error message with transition context."""
        base_message = super().__str__()
        return f"{base_message} (from={self.from_state.value}, to={self.to_state.value})"
