"""OpenAI chat completions client for JSON content generation.

Architecture Pattern:
    Simple HTTP client wrapper - no retry logic (handled by the step runner)
    Async-only interface using httpx.AsyncClient

Usage:
    from app.clients.openai import OpenAIClient

    client = OpenAIClient(api_key="...", model="gpt-4o-mini")
    data = await client.generate_json("Summarize this podcast.", transcript_text)
    await client.close()
"""

import json
from typing import Any

import httpx

from app.exceptions import ContentGenerationError
from app.utils.logging import get_logger

log = get_logger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAIClient:
    """Client for JSON-mode chat completions.

    Attributes:
        model: Chat model name.
        base_url: API root.
        client: Async HTTP client carrying the bearer token.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = OPENAI_BASE_URL,
        timeout: float = 120.0,
    ):
        if not api_key:
            raise ValueError("OpenAI api_key is required")
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
        )

    async def generate_json(self, instructions: str, content: str) -> dict[str, Any]:
        """Run one chat completion and parse the reply as a JSON object.

        Args:
            instructions: System prompt describing the expected JSON shape.
            content: User content (the transcript).

        Returns:
            Parsed JSON object from the first choice.

        Raises:
            httpx.HTTPStatusError: If the API returns an HTTP error.
            ContentGenerationError: If the reply is empty or not a JSON object.
        """
        response = await self.client.post(
            f"{self.base_url}/chat/completions",
            json={
                "model": self.model,
                "response_format": {"type": "json_object"},
                "messages": [
                    {"role": "system", "content": instructions},
                    {"role": "user", "content": content},
                ],
            },
        )
        response.raise_for_status()
        body = response.json()

        try:
            message = body["choices"][0]["message"]["content"]
            parsed = json.loads(message)
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as e:
            raise ContentGenerationError(f"Malformed completion from {self.model}: {e}") from e

        if not isinstance(parsed, dict):
            raise ContentGenerationError(f"Completion from {self.model} is not a JSON object")

        log.debug("openai_completion_parsed", model=self.model, keys=sorted(parsed))
        return parsed

    async def close(self) -> None:
        """Close HTTP client connection."""
        await self.client.aclose()
