"""Tests for content generation producers."""

from unittest.mock import AsyncMock

import pytest

from app.exceptions import ContentGenerationError
from app.schemas.transcript import TranscriptChapter, TranscriptResult
from app.services.content_generation import (
    JOB_INSTRUCTIONS,
    ContentGenerator,
    extract_key_moments,
    format_timestamp,
    render_transcript,
)
from tests.support.fakes import make_transcript


@pytest.fixture
def mock_llm():
    client = AsyncMock()
    client.generate_json = AsyncMock(return_value={"tldr": "A show about tests."})
    return client


class TestFormatting:
    """Prompt rendering helpers."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "00:00"), (4.2, "00:04"), (75, "01:15"), (3725, "1:02:05"), (-3, "00:00")],
    )
    def test_format_timestamp(self, seconds, expected):
        assert format_timestamp(seconds) == expected

    def test_render_plain_text(self):
        transcript = make_transcript()

        assert render_transcript(transcript) == transcript.text

    def test_render_with_timestamps(self):
        rendered = render_transcript(make_transcript(), with_timestamps=True)

        assert rendered.splitlines() == [
            "[00:00] Speaker A: Welcome to the show.",
            "[00:04] Speaker B: Today we talk about tests.",
        ]


class TestKeyMoments:
    """Locally derived key moments."""

    def test_prefers_chapters(self):
        transcript = make_transcript().model_copy(
            update={
                "chapters": [
                    TranscriptChapter(start=65.0, end=120.0, headline="Intro", summary="Hi")
                ]
            }
        )

        moments = extract_key_moments(transcript)["moments"]

        assert moments == [
            {"time": "01:05", "timestamp": 65.0, "text": "Intro", "description": "Hi"}
        ]

    def test_falls_back_to_segments(self):
        moments = extract_key_moments(make_transcript())["moments"]

        assert [moment["text"] for moment in moments] == [
            "Welcome to the show.",
            "Today we talk about tests.",
        ]

    def test_empty_transcript_raises(self):
        with pytest.raises(ContentGenerationError):
            extract_key_moments(TranscriptResult(transcript_id="tr", text=""))


class TestContentGenerator:
    """producer_for() wiring."""

    @pytest.mark.asyncio
    async def test_llm_job_calls_client_with_job_instructions(self, mock_llm):
        transcript = make_transcript()
        produce = ContentGenerator(mock_llm).producer_for("summary", transcript)

        result = await produce()

        assert result == {"tldr": "A show about tests."}
        mock_llm.generate_json.assert_awaited_once_with(
            JOB_INSTRUCTIONS["summary"], transcript.text
        )

    @pytest.mark.asyncio
    async def test_youtube_timestamps_get_timestamped_transcript(self, mock_llm):
        produce = ContentGenerator(mock_llm).producer_for("youtubeTimestamps", make_transcript())

        await produce()

        content = mock_llm.generate_json.await_args.args[1]
        assert content.startswith("[00:00] Speaker A:")

    @pytest.mark.asyncio
    async def test_key_moments_do_not_call_llm(self, mock_llm):
        produce = ContentGenerator(mock_llm).producer_for("keyMoments", make_transcript())

        result = await produce()

        assert len(result["moments"]) == 2
        mock_llm.generate_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_transcript_fails_the_job(self, mock_llm):
        produce = ContentGenerator(mock_llm).producer_for(
            "titles", TranscriptResult(transcript_id="tr", text="  ")
        )

        with pytest.raises(ContentGenerationError):
            await produce()

    def test_unknown_job_rejected(self, mock_llm):
        with pytest.raises(ValueError, match="Unknown generation job"):
            ContentGenerator(mock_llm).producer_for("podcastArt", make_transcript())

    @pytest.mark.asyncio
    async def test_producer_is_reinvocable(self, mock_llm):
        produce = ContentGenerator(mock_llm).producer_for("hashtags", make_transcript())

        await produce()
        await produce()

        assert mock_llm.generate_json.await_count == 2
