"""Content generation producers, one per generation job.

Each producer is an opaque async callable taking no arguments and returning
a JSON-serialisable dict (or raising). The orchestrator wraps producers in
JobSpecs and hands them to the FanOutCoordinator; it never looks inside.

Jobs:
    summary, socialPosts, titles, hashtags, youtubeTimestamps
        JSON-mode chat completion over the transcript.
    keyMoments
        Derived locally from transcript chapters (falls back to evenly
        spaced segments when the transcript has no chapters).

Usage:
    generator = ContentGenerator(OpenAIClient(api_key, model))
    produce = generator.producer_for("summary", transcript)
    result = await produce()
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from app.constants import (
    JOB_HASHTAGS,
    JOB_KEY_MOMENTS,
    JOB_SOCIAL_POSTS,
    JOB_SUMMARY,
    JOB_TITLES,
    JOB_YOUTUBE_TIMESTAMPS,
)
from app.exceptions import ContentGenerationError
from app.schemas.transcript import TranscriptResult
from app.utils.logging import get_logger

log = get_logger(__name__)

MAX_KEY_MOMENTS = 8

JOB_INSTRUCTIONS: dict[str, str] = {
    JOB_SUMMARY: (
        "You summarize podcast episodes. Reply with a JSON object with keys "
        '"full" (2-3 paragraphs), "bullets" (5-7 strings), "insights" (3-5 strings) '
        'and "tldr" (one sentence).'
    ),
    JOB_SOCIAL_POSTS: (
        "You write social media posts promoting a podcast episode. Reply with a JSON "
        'object with one post per key: "twitter", "linkedin", "instagram", "tiktok", '
        '"youtube", "facebook".'
    ),
    JOB_TITLES: (
        "You write titles for a podcast episode. Reply with a JSON object with keys "
        '"youtubeShort", "youtubeLong", "podcastTitles" and "seoKeywords", each a list '
        "of strings."
    ),
    JOB_HASHTAGS: (
        "You pick hashtags for a podcast episode. Reply with a JSON object with keys "
        '"youtube", "instagram", "tiktok", "linkedin" and "twitter", each a list of '
        "hashtags including the leading #."
    ),
    JOB_YOUTUBE_TIMESTAMPS: (
        "You write YouTube chapter timestamps for a podcast episode. Lines start with "
        '[mm:ss]. Reply with a JSON object with key "timestamps": a list of objects with '
        '"timestamp" (mm:ss, first one 00:00) and "description".'
    ),
}


class JsonCompletionClient(Protocol):
    """What the generator needs from an LLM client."""

    async def generate_json(self, instructions: str, content: str) -> dict[str, Any]: ...


def format_timestamp(seconds: float) -> str:
    """Format seconds as mm:ss, or h:mm:ss past the hour."""
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def render_transcript(transcript: TranscriptResult, with_timestamps: bool = False) -> str:
    """Render the transcript as prompt text.

    With timestamps, every segment becomes "[mm:ss] Speaker A: text".
    """
    if not with_timestamps or not transcript.segments:
        return transcript.text
    lines = []
    for segment in transcript.segments:
        speaker = f"Speaker {segment.speaker}: " if segment.speaker else ""
        lines.append(f"[{format_timestamp(segment.start)}] {speaker}{segment.text}")
    return "\n".join(lines)


def extract_key_moments(transcript: TranscriptResult) -> dict[str, Any]:
    """Build key moments from chapters, or from evenly spaced segments.

    Raises:
        ContentGenerationError: If the transcript has nothing to point at.
    """
    moments: list[dict[str, Any]] = []
    if transcript.chapters:
        for chapter in transcript.chapters[:MAX_KEY_MOMENTS]:
            moments.append(
                {
                    "time": format_timestamp(chapter.start),
                    "timestamp": chapter.start,
                    "text": chapter.headline,
                    "description": chapter.summary or chapter.gist,
                }
            )
    elif transcript.segments:
        step = max(1, len(transcript.segments) // MAX_KEY_MOMENTS)
        for segment in transcript.segments[::step][:MAX_KEY_MOMENTS]:
            moments.append(
                {
                    "time": format_timestamp(segment.start),
                    "timestamp": segment.start,
                    "text": segment.text,
                    "description": "",
                }
            )

    if not moments:
        raise ContentGenerationError("Transcript has no chapters or segments for key moments")
    return {"moments": moments}


class ContentGenerator:
    """Builds zero-argument producers for each generation job.

    Attributes:
        client: JSON completion client used by the LLM-backed jobs.
    """

    def __init__(self, client: JsonCompletionClient):
        self.client = client

    def producer_for(
        self, job_name: str, transcript: TranscriptResult
    ) -> Callable[[], Awaitable[dict[str, Any]]]:
        """Return the producer for one job.

        Raises:
            ValueError: If the job name is unknown.
        """
        if job_name == JOB_KEY_MOMENTS:

            async def produce_key_moments() -> dict[str, Any]:
                return extract_key_moments(transcript)

            return produce_key_moments

        instructions = JOB_INSTRUCTIONS.get(job_name)
        if instructions is None:
            raise ValueError(f"Unknown generation job: {job_name}")

        content = render_transcript(
            transcript, with_timestamps=job_name == JOB_YOUTUBE_TIMESTAMPS
        )

        async def produce() -> dict[str, Any]:
            if not content.strip():
                raise ContentGenerationError(f"Empty transcript, cannot generate {job_name}")
            result = await self.client.generate_json(instructions, content)
            log.info("content_generated", job=job_name, keys=sorted(result))
            return result

        return produce
