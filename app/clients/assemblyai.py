"""AssemblyAI transcription API client.

This module provides a thin async client for the AssemblyAI v2 transcript
endpoints: submit an audio URL, then read the transcript back by id.

Architecture Pattern:
    Simple HTTP client wrapper - no retry logic (handled at service layer)
    Async-only interface using httpx.AsyncClient

Usage:
    from app.clients.assemblyai import AssemblyAIClient

    client = AssemblyAIClient(api_key="...")
    transcript_id = await client.submit_transcript("https://.../episode.mp3", speaker_labels=True)
    payload = await client.get_transcript(transcript_id)
    await client.close()
"""

from typing import Any

import httpx

from app.utils.logging import get_logger

log = get_logger(__name__)

ASSEMBLYAI_BASE_URL = "https://api.assemblyai.com/v2"


class AssemblyAIClient:
    """Client for the AssemblyAI transcript API.

    Attributes:
        base_url: API root.
        client: Async HTTP client carrying the authorization header.
    """

    def __init__(self, api_key: str, base_url: str = ASSEMBLYAI_BASE_URL, timeout: float = 30.0):
        """Initialize the client.

        Args:
            api_key: AssemblyAI API key.
            base_url: API root (overridable for tests).
            timeout: Per-request timeout in seconds.
        """
        if not api_key:
            raise ValueError("AssemblyAI api_key is required")
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            headers={"authorization": api_key},
            timeout=timeout,
        )

    async def submit_transcript(
        self,
        audio_url: str,
        *,
        speaker_labels: bool = True,
        auto_highlights: bool = False,
        auto_chapters: bool = False,
    ) -> str:
        """Submit an audio URL for transcription.

        Args:
            audio_url: Publicly reachable audio file URL.
            speaker_labels: Request speaker diarization.
            auto_highlights: Request key phrase highlights.
            auto_chapters: Request chapter detection.

        Returns:
            Transcript id to poll.

        Raises:
            httpx.HTTPStatusError: If the API returns an HTTP error.
        """
        response = await self.client.post(
            f"{self.base_url}/transcript",
            json={
                "audio_url": audio_url,
                "speaker_labels": speaker_labels,
                "auto_highlights": auto_highlights,
                "auto_chapters": auto_chapters,
            },
        )
        response.raise_for_status()
        transcript_id = response.json()["id"]
        log.info("assemblyai_transcript_submitted", transcript_id=transcript_id)
        return transcript_id

    async def get_transcript(self, transcript_id: str) -> dict[str, Any]:
        """Fetch a transcript by id.

        Returns:
            Raw transcript payload; ``status`` is one of queued, processing,
            completed, error.

        Raises:
            httpx.HTTPStatusError: If the API returns an HTTP error.
        """
        response = await self.client.get(f"{self.base_url}/transcript/{transcript_id}")
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close HTTP client connection."""
        await self.client.aclose()
