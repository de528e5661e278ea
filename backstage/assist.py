"""
Generative-AI collaborator: note summaries and GIF search.

Thin client over the Gemini generateContent REST endpoint using httpx.

Invariants:
    - summarize_note() always returns a string, never raises
    - search_gifs() always returns a list, empty on any failure
    - The API key is sent as a header and never logged

How to change safely:
    - Keep the user-facing fallback messages stable; the UI shows them as-is
    - Test new prompts against the degraded paths too
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import AssistConfig
from .models import Gif

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "API Key not configured. Please set the API_KEY environment variable."
TOO_SHORT_MESSAGE = "Note content is too short to summarize."
FAILURE_MESSAGE = (
    "Could not generate summary. The content may be too sensitive or the API call failed."
)
MIN_SUMMARY_CHARS = 10

SUMMARY_PROMPT = (
    "Summarize the following note into a single, compelling sentence that captures its "
    "main point. The summary should be concise and engaging. Note:\n\n---\n\n{content}"
)

GIF_PROMPT = (
    "Act as a GIF search engine. Find 12 high-quality, publicly accessible GIFs related "
    'to the query: "{query}". Provide a short, descriptive alt text for each. IMPORTANT: '
    "The URLs must be direct links to GIF files (ending in .gif) from domains that "
    "explicitly allow hotlinking and have permissive CORS policies, like i.imgur.com. "
    "Do not provide links to pages like giphy.com or tenor.com, only direct image URLs."
)

GIF_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "gifs": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "url": {"type": "STRING", "description": "Direct URL to the GIF file."},
                    "alt": {
                        "type": "STRING",
                        "description": "A short, descriptive alt text for the GIF.",
                    },
                },
            },
        },
    },
}


class GenAiError(Exception):
    """A generateContent call failed or returned no text."""
    pass


class GenAiClient:
    """Async client for the generative-AI collaborator.

    Example:
        >>> client = GenAiClient(AssistConfig(api_key="..."))
        >>> await client.summarize_note("A long note about ...")
        'A single-sentence summary.'
        >>> await client.aclose()
    """

    def __init__(
        self,
        config: AssistConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: API key, model and endpoint settings
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            transport=transport,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.config.api_key)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _generate(self, prompt: str, generation_config: Dict[str, Any]) -> str:
        """Run one generateContent call and return the response text.

        Raises:
            GenAiError: On HTTP errors or a response without text
        """
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        try:
            response = await self._client.post(
                f"/models/{self.config.model}:generateContent",
                json=body,
                headers={"x-goog-api-key": self.config.api_key},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GenAiError(f"generateContent failed: {e}") from e

        try:
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise GenAiError(f"Unexpected generateContent response: {e}") from e
        if not text:
            raise GenAiError("generateContent returned no text")
        return text

    async def summarize_note(self, content: str) -> str:
        """One-sentence summary of a note, or a human-readable failure message."""
        if not self.enabled:
            return MISSING_KEY_MESSAGE
        if not content or len(content.strip()) < MIN_SUMMARY_CHARS:
            return TOO_SHORT_MESSAGE

        try:
            text = await self._generate(
                SUMMARY_PROMPT.format(content=content),
                {"temperature": self.config.temperature, "topP": 1, "topK": 32},
            )
        except GenAiError as e:
            logger.error(f"Error summarizing note: {e}")
            return FAILURE_MESSAGE
        return text.strip()

    async def search_gifs(self, query: str) -> List[Gif]:
        """GIFs matching a query; empty list on any failure."""
        if not self.enabled:
            logger.error("API Key not configured for GIF search.")
            return []
        if not query or not query.strip():
            return []

        try:
            text = await self._generate(
                GIF_PROMPT.format(query=query),
                {
                    "responseMimeType": "application/json",
                    "responseSchema": GIF_RESPONSE_SCHEMA,
                },
            )
            parsed = json.loads(text.strip())
        except (GenAiError, ValueError) as e:
            logger.error(f"Error searching for GIFs: {e}")
            return []

        gifs = []
        entries = parsed.get("gifs") if isinstance(parsed, dict) else None
        for entry in entries or []:
            if isinstance(entry, dict) and entry.get("url"):
                gifs.append(Gif(url=str(entry["url"]), alt=str(entry.get("alt") or "")))
        return gifs
