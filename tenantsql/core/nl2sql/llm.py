"""Language model client.

Speaks the OpenAI-compatible chat completions protocol over httpx. The rest
of the pipeline only depends on `LLMClient.complete(messages) -> str`, so tests
swap in a scripted client.
"""

import logging
from typing import Dict, List, Optional, Protocol

import httpx

from tenantsql.core.errors import LLMError, LLMTimeout

logger = logging.getLogger(__name__)

Message = Dict[str, str]


class LLMClient(Protocol):
    async def complete(self, messages: List[Message]) -> str:
        ...


class ChatCompletionsClient:
    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        # One client per instance for connection pooling
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def complete(self, messages: List[Message]) -> str:
        if not self.api_key:
            raise LLMError("LLM_API_KEY is required for language model calls")

        payload = {"model": self.model, "messages": messages}
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            response = await self._get_client().post(
                f"{self.base_url}/chat/completions", json=payload, headers=headers
            )
            response.raise_for_status()
        except httpx.TimeoutException as error:
            raise LLMTimeout(f"Language model timed out after {self.timeout}s") from error
        except httpx.HTTPStatusError as error:
            raise LLMError(
                f"Language model returned HTTP {error.response.status_code}"
            ) from error
        except httpx.HTTPError as error:
            raise LLMError(f"Language model request failed: {error}") from error

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as error:
            raise LLMError("Language model response has no completion text") from error

        return (content or "").strip()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
