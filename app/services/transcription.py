"""Plan-aware transcription of an uploaded audio file.

Transcription runs for every plan because all generation jobs read the
transcript. Feature depth scales with the plan:

    free  → speaker labels
    pro   → speaker labels, highlights
    ultra → speaker labels, highlights, chapters

Speaker labels are captured on every plan; only ultra users get to see
them (see plan_policy.FEATURE_SPEAKER_DIARIZATION).

The orchestrator depends only on the Transcriber protocol.
AssemblyAITranscriber is the production implementation.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Protocol

from app.clients.assemblyai import AssemblyAIClient
from app.exceptions import TranscriptionError
from app.models import PlanTier
from app.schemas.transcript import TranscriptChapter, TranscriptResult, TranscriptSegment
from app.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_TRANSCRIPTION_TIMEOUT_SECONDS = 3600.0


@dataclass(frozen=True)
class TranscriptionOptions:
    """Vendor feature switches for one transcription request."""

    speaker_labels: bool = True
    auto_highlights: bool = False
    auto_chapters: bool = False


def transcription_options_for_plan(plan: PlanTier) -> TranscriptionOptions:
    """Feature depth for a plan (higher tiers request more analysis)."""
    return TranscriptionOptions(
        speaker_labels=True,
        auto_highlights=plan.rank >= PlanTier.PRO.rank,
        auto_chapters=plan == PlanTier.ULTRA,
    )


class Transcriber(Protocol):
    """Contract for the transcription collaborator."""

    async def transcribe(self, file_url: str, plan: PlanTier) -> TranscriptResult: ...


def _ms_to_seconds(value: Any) -> float:
    return round(float(value or 0) / 1000, 3)


def parse_assemblyai_transcript(payload: dict[str, Any]) -> TranscriptResult:
    """Convert a completed AssemblyAI payload into a TranscriptResult."""
    segments = [
        TranscriptSegment(
            start=_ms_to_seconds(utterance.get("start")),
            end=_ms_to_seconds(utterance.get("end")),
            text=utterance.get("text", ""),
            speaker=utterance.get("speaker"),
        )
        for utterance in payload.get("utterances") or []
    ]
    chapters = [
        TranscriptChapter(
            start=_ms_to_seconds(chapter.get("start")),
            end=_ms_to_seconds(chapter.get("end")),
            headline=chapter.get("headline", ""),
            summary=chapter.get("summary", ""),
            gist=chapter.get("gist", ""),
        )
        for chapter in payload.get("chapters") or []
    ]
    highlights_result = payload.get("auto_highlights_result") or {}
    highlights = [item["text"] for item in highlights_result.get("results") or [] if item.get("text")]

    return TranscriptResult(
        transcript_id=str(payload.get("id", "")),
        text=payload.get("text") or "",
        audio_duration=payload.get("audio_duration"),
        segments=segments,
        chapters=chapters,
        highlights=highlights,
    )


class AssemblyAITranscriber:
    """Transcriber backed by AssemblyAI (submit, then poll until done).

    Attributes:
        client: AssemblyAI API client.
        poll_interval: Seconds between status polls.
        timeout: Seconds before giving up on a transcript.
    """

    def __init__(
        self,
        client: AssemblyAIClient,
        poll_interval: float = 3.0,
        timeout: float = DEFAULT_TRANSCRIPTION_TIMEOUT_SECONDS,
    ):
        self.client = client
        self.poll_interval = poll_interval
        self.timeout = timeout

    async def transcribe(self, file_url: str, plan: PlanTier) -> TranscriptResult:
        """Transcribe a file with the plan's feature depth.

        Raises:
            TranscriptionError: If the vendor reports the transcript failed.
            TimeoutError: If the transcript is not ready within ``timeout``.
            httpx.HTTPError: On transport or HTTP errors.
        """
        options = transcription_options_for_plan(plan)
        transcript_id = await self.client.submit_transcript(
            file_url,
            speaker_labels=options.speaker_labels,
            auto_highlights=options.auto_highlights,
            auto_chapters=options.auto_chapters,
        )

        deadline = time.monotonic() + self.timeout
        while True:
            payload = await self.client.get_transcript(transcript_id)
            status = payload.get("status")

            if status == "completed":
                log.info(
                    "transcription_completed",
                    transcript_id=transcript_id,
                    plan=plan.value,
                    audio_duration=payload.get("audio_duration"),
                )
                return parse_assemblyai_transcript(payload)

            if status == "error":
                raise TranscriptionError(
                    f"Transcription failed: {payload.get('error') or 'unknown error'}"
                )

            if time.monotonic() >= deadline:
                raise TimeoutError(
                    f"Transcript {transcript_id} not ready after {self.timeout:.0f}s"
                )

            await asyncio.sleep(self.poll_interval)
