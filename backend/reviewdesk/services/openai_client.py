"""Async client for the OpenAI chat completions API."""

import logging
from typing import Any

import httpx

from reviewdesk.core.config import settings
from reviewdesk.core.errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAIClient:
    """Thin wrapper around ``/chat/completions`` with a lazily created client."""

    def __init__(self, api_key: str | None = None, timeout: float = 60.0):
        self.api_key = (api_key if api_key is not None else settings.OPENAI_API_KEY).strip()
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if not self.api_key:
            raise ConfigurationError("OpenAI API key not configured")
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=OPENAI_BASE_URL,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def chat(
        self,
        model: str,
        messages: list[dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """Send a chat completion request and return the decoded response."""
        client = await self._get_client()
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        try:
            response = await client.post("/chat/completions", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("OpenAI API error %d: %s", e.response.status_code, e.response.text[:500])
            raise ProviderError(
                f"OpenAI API error: {e.response.status_code}",
                status_code=e.response.status_code,
                body=e.response.text,
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(f"OpenAI request failed: {e}") from e
        result: dict[str, Any] = response.json()
        return result

    @staticmethod
    def extract_content(response: dict[str, Any]) -> str | None:
        """Return the first choice's text, or None when the model returned nothing."""
        choices = response.get("choices") or []
        if not choices:
            return None
        first = choices[0] or {}
        content = (first.get("message") or {}).get("content") or first.get("text")
        if not content or not str(content).strip():
            return None
        return str(content).strip()
