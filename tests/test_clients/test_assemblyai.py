"""Tests for AssemblyAIClient.

Test Coverage:
- Transcript submission payload and returned id
- Transcript fetch
- HTTP error propagation
"""

from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from app.clients.assemblyai import ASSEMBLYAI_BASE_URL, AssemblyAIClient


class TestAssemblyAIClient:
    """Test suite for AssemblyAIClient."""

    @pytest.fixture
    def client(self):
        """Create AssemblyAIClient instance."""
        return AssemblyAIClient(api_key="test-key")

    def test_requires_api_key(self):
        with pytest.raises(ValueError, match="api_key is required"):
            AssemblyAIClient(api_key="")

    def test_authorization_header(self, client):
        assert client.client.headers["authorization"] == "test-key"
        assert client.base_url == ASSEMBLYAI_BASE_URL

    @pytest.mark.asyncio
    async def test_submit_transcript(self, client):
        with patch.object(client.client, "post", new_callable=AsyncMock) as mock_post:
            mock_response = Mock()
            mock_response.json.return_value = {"id": "tr_abc", "status": "queued"}
            mock_response.raise_for_status = Mock()
            mock_post.return_value = mock_response

            transcript_id = await client.submit_transcript(
                "https://files.example.com/ep.mp3", auto_chapters=True
            )

            assert transcript_id == "tr_abc"
            url = mock_post.call_args.args[0]
            payload = mock_post.call_args.kwargs["json"]
            assert url == f"{ASSEMBLYAI_BASE_URL}/transcript"
            assert payload == {
                "audio_url": "https://files.example.com/ep.mp3",
                "speaker_labels": True,
                "auto_highlights": False,
                "auto_chapters": True,
            }

    @pytest.mark.asyncio
    async def test_get_transcript(self, client):
        with patch.object(client.client, "get", new_callable=AsyncMock) as mock_get:
            mock_response = Mock()
            mock_response.json.return_value = {"id": "tr_abc", "status": "processing"}
            mock_response.raise_for_status = Mock()
            mock_get.return_value = mock_response

            payload = await client.get_transcript("tr_abc")

            assert payload["status"] == "processing"
            mock_get.assert_called_once_with(f"{ASSEMBLYAI_BASE_URL}/transcript/tr_abc")

    @pytest.mark.asyncio
    async def test_http_error_propagates(self, client):
        with patch.object(client.client, "post", new_callable=AsyncMock) as mock_post:
            mock_response = Mock()
            mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
                "401 Unauthorized", request=Mock(), response=Mock(status_code=401)
            )
            mock_post.return_value = mock_response

            with pytest.raises(httpx.HTTPStatusError):
                await client.submit_transcript("https://files.example.com/ep.mp3")

    @pytest.mark.asyncio
    async def test_close(self, client):
        with patch.object(client.client, "aclose", new_callable=AsyncMock) as mock_close:
            await client.close()

            mock_close.assert_awaited_once()
