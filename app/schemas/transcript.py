"""Pydantic schemas for transcription results.

TranscriptResult is what the transcription step returns and what every
content generation job consumes. It round-trips through JSON because the
step runner checkpoints it; times are in seconds.
"""

from pydantic import BaseModel, Field


class TranscriptSegment(BaseModel):
    """One utterance. ``speaker`` is set when speaker labels were requested."""

    start: float
    end: float
    text: str
    speaker: str | None = None


class TranscriptChapter(BaseModel):
    """Auto-detected chapter (ultra plan)."""

    start: float
    end: float
    headline: str
    summary: str = ""
    gist: str = ""


class TranscriptResult(BaseModel):
    """Completed transcript for one audio file."""

    transcript_id: str
    text: str
    audio_duration: float | None = None
    segments: list[TranscriptSegment] = Field(default_factory=list)
    chapters: list[TranscriptChapter] = Field(default_factory=list)
    highlights: list[str] = Field(default_factory=list)

    @property
    def speakers(self) -> list[str]:
        """Distinct speaker labels in order of first appearance."""
        seen: list[str] = []
        for segment in self.segments:
            if segment.speaker and segment.speaker not in seen:
                seen.append(segment.speaker)
        return seen
