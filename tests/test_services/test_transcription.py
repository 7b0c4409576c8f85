"""Tests for plan-aware transcription."""

from unittest.mock import AsyncMock

import pytest

from app.exceptions import TranscriptionError
from app.models import PlanTier
from app.services.transcription import (
    AssemblyAITranscriber,
    TranscriptionOptions,
    parse_assemblyai_transcript,
    transcription_options_for_plan,
)

COMPLETED_PAYLOAD = {
    "id": "tr_abc",
    "status": "completed",
    "text": "Hello there. General Kenobi.",
    "audio_duration": 612.5,
    "utterances": [
        {"start": 0, "end": 1500, "text": "Hello there.", "speaker": "A"},
        {"start": 1500, "end": 3250, "text": "General Kenobi.", "speaker": "B"},
    ],
    "chapters": [
        {"start": 0, "end": 3250, "headline": "Greetings", "summary": "They meet.", "gist": "hi"}
    ],
    "auto_highlights_result": {"results": [{"text": "General Kenobi"}, {"rank": 0.1}]},
}


@pytest.fixture
def mock_client():
    client = AsyncMock()
    client.submit_transcript = AsyncMock(return_value="tr_abc")
    return client


class TestTranscriptionOptions:
    """Feature depth per plan."""

    def test_free(self):
        assert transcription_options_for_plan(PlanTier.FREE) == TranscriptionOptions(
            speaker_labels=True, auto_highlights=False, auto_chapters=False
        )

    def test_pro_adds_highlights(self):
        options = transcription_options_for_plan(PlanTier.PRO)

        assert options.auto_highlights is True
        assert options.auto_chapters is False

    def test_ultra_adds_chapters(self):
        options = transcription_options_for_plan(PlanTier.ULTRA)

        assert options.auto_highlights is True
        assert options.auto_chapters is True


class TestParseTranscript:
    """Vendor payload → TranscriptResult."""

    def test_parses_segments_chapters_and_highlights(self):
        result = parse_assemblyai_transcript(COMPLETED_PAYLOAD)

        assert result.transcript_id == "tr_abc"
        assert result.audio_duration == 612.5
        assert [segment.start for segment in result.segments] == [0.0, 1.5]
        assert result.segments[1].end == 3.25
        assert result.speakers == ["A", "B"]
        assert result.chapters[0].headline == "Greetings"
        assert result.highlights == ["General Kenobi"]

    def test_sparse_payload(self):
        result = parse_assemblyai_transcript({"id": "tr_x", "text": None, "utterances": None})

        assert result.text == ""
        assert result.segments == []
        assert result.chapters == []


class TestAssemblyAITranscriber:
    """Submit and poll loop."""

    @pytest.mark.asyncio
    async def test_polls_until_completed(self, mock_client):
        mock_client.get_transcript = AsyncMock(
            side_effect=[{"status": "queued"}, {"status": "processing"}, COMPLETED_PAYLOAD]
        )
        transcriber = AssemblyAITranscriber(mock_client, poll_interval=0)

        result = await transcriber.transcribe("https://files.example.com/ep.mp3", PlanTier.ULTRA)

        assert result.transcript_id == "tr_abc"
        assert mock_client.get_transcript.await_count == 3
        mock_client.submit_transcript.assert_awaited_once_with(
            "https://files.example.com/ep.mp3",
            speaker_labels=True,
            auto_highlights=True,
            auto_chapters=True,
        )

    @pytest.mark.asyncio
    async def test_vendor_error_raises_transcription_error(self, mock_client):
        mock_client.get_transcript = AsyncMock(
            return_value={"status": "error", "error": "Audio file could not be decoded"}
        )
        transcriber = AssemblyAITranscriber(mock_client, poll_interval=0)

        with pytest.raises(TranscriptionError, match="could not be decoded"):
            await transcriber.transcribe("https://files.example.com/ep.mp3", PlanTier.FREE)

    @pytest.mark.asyncio
    async def test_timeout(self, mock_client):
        mock_client.get_transcript = AsyncMock(return_value={"status": "processing"})
        transcriber = AssemblyAITranscriber(mock_client, poll_interval=0, timeout=0)

        with pytest.raises(TimeoutError, match="tr_abc"):
            await transcriber.transcribe("https://files.example.com/ep.mp3", PlanTier.FREE)
