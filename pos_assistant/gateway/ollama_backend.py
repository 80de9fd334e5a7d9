"""
Ollama backend for local models without native tool calling.

Uses POST /api/generate with streaming disabled. Tool calls are taught
through the prompt and recovered by the ToolCallExtractor.
"""

import logging
from typing import Optional

import httpx

from pos_assistant.config import ModelConfig, settings
from pos_assistant.errors import ProviderUnavailable
from pos_assistant.gateway.base import ModelBackend
from pos_assistant.schemas.tool_schema import ProviderInfo

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class OllamaBackend(ModelBackend):
    def __init__(
        self,
        config: Optional[ModelConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or settings.model
        self._base_url = (self._config.base_url or DEFAULT_OLLAMA_URL).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=self._config.request_timeout_sec)

    def provider_info(self) -> ProviderInfo:
        return ProviderInfo(
            name="ollama",
            model=self._config.llm_model,
            is_local=True,
            supports_native_tools=False,
            description=f"Ollama at {self._base_url}",
        )

    async def is_available(self) -> bool:
        try:
            response = await self._client.get(self._base_url, timeout=5.0)
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("Ollama availability probe failed: %s", e)
            return False

    async def generate(self, prompt: str) -> str:
        payload = {
            "model": self._config.llm_model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": self._config.llm_temperature},
        }
        try:
            response = await self._client.post(f"{self._base_url}/api/generate", json=payload)
        except httpx.TimeoutException as e:
            raise ProviderUnavailable(f"Ollama request timed out: {e}", transient=True) from e
        except httpx.TransportError as e:
            raise ProviderUnavailable(f"Cannot reach Ollama at {self._base_url}: {e}", transient=True) from e

        if response.status_code in (401, 403):
            raise ProviderUnavailable(f"Ollama refused the request (HTTP {response.status_code})", transient=False)
        if response.status_code == 429 or response.status_code >= 500:
            raise ProviderUnavailable(f"Ollama returned HTTP {response.status_code}", transient=True)
        if response.status_code != 200:
            raise ProviderUnavailable(
                f"Ollama returned HTTP {response.status_code}: {response.text[:200]}", transient=False
            )

        try:
            text = response.json().get("response", "")
        except ValueError as e:
            raise ProviderUnavailable(f"Ollama returned invalid JSON: {e}", transient=True) from e
        if not text or not text.strip():
            # Local models occasionally return nothing under load.
            raise ProviderUnavailable("Ollama returned an empty response", transient=True)
        return text

    async def aclose(self) -> None:
        await self._client.aclose()
