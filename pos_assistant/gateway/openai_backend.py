"""
OpenAI chat completions backend with native function calling.

Works with any OpenAI-compatible endpoint via LLM_BASE_URL. SDK-level
retries are disabled; retrying belongs to the ModelGateway.
"""

import json
import logging
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from pos_assistant.config import ModelConfig, settings
from pos_assistant.errors import ProviderUnavailable
from pos_assistant.gateway.base import ModelBackend
from pos_assistant.schemas.tool_schema import (
    GenerationResult,
    InvocationOrigin,
    MalformedToolCall,
    ProviderInfo,
    ToolInvocation,
    ToolSchema,
)

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)
_PERMANENT_ERRORS = (openai.AuthenticationError, openai.PermissionDeniedError)


def to_openai_tools(tools: list[ToolSchema]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters_schema,
            },
        }
        for tool in tools
    ]


def _map_error(error: openai.OpenAIError) -> ProviderUnavailable:
    if isinstance(error, _TRANSIENT_ERRORS):
        return ProviderUnavailable(f"OpenAI transient error: {error}", transient=True)
    if isinstance(error, _PERMANENT_ERRORS):
        return ProviderUnavailable(f"OpenAI rejected credentials: {error}", transient=False)
    if isinstance(error, openai.APIStatusError):
        return ProviderUnavailable(
            f"OpenAI returned HTTP {error.status_code}: {error}",
            transient=error.status_code >= 500,
        )
    return ProviderUnavailable(f"OpenAI error: {error}", transient=False)


class OpenAIBackend(ModelBackend):
    """Native tool-calling backend over the official async SDK."""

    def __init__(
        self,
        config: Optional[ModelConfig] = None,
        client: Optional[Any] = None,
    ) -> None:
        self._config = config or settings.model
        self._client = client or AsyncOpenAI(
            api_key=self._config.api_key or None,
            base_url=self._config.base_url or None,
            timeout=self._config.request_timeout_sec,
            max_retries=0,
        )

    def provider_info(self) -> ProviderInfo:
        return ProviderInfo(
            name="openai",
            model=self._config.llm_model,
            is_local=False,
            supports_native_tools=True,
            description="OpenAI chat completions with function calling",
        )

    async def is_available(self) -> bool:
        try:
            await self._client.models.retrieve(self._config.llm_model)
            return True
        except openai.OpenAIError as e:
            logger.warning("OpenAI availability probe failed: %s", e)
            return False

    async def generate(self, prompt: str) -> str:
        message = await self._complete(prompt)
        return message.content or ""

    async def generate_with_tools(self, prompt: str, tools: list[ToolSchema]) -> GenerationResult:
        message = await self._complete(prompt, tools)
        invocations: list[ToolInvocation] = []
        diagnostics: list[MalformedToolCall] = []

        for index, call in enumerate(message.tool_calls or [], start=1):
            raw = call.function.arguments or ""
            try:
                arguments = json.loads(raw) if raw.strip() else {}
            except json.JSONDecodeError as e:
                logger.warning("Native tool call %s had invalid JSON arguments: %s", call.function.name, e)
                diagnostics.append(MalformedToolCall(
                    fragment=f"{call.function.name}({raw})",
                    reason=f"invalid JSON arguments: {e.msg}",
                    origin=InvocationOrigin.NATIVE,
                ))
                continue
            if not isinstance(arguments, dict):
                diagnostics.append(MalformedToolCall(
                    fragment=f"{call.function.name}({raw})",
                    reason="arguments are not a JSON object",
                    origin=InvocationOrigin.NATIVE,
                ))
                continue
            invocations.append(ToolInvocation(
                call_id=call.id or f"native-{index}",
                name=call.function.name,
                raw_arguments=raw,
                arguments=arguments,
                confidence=1.0,
                origin=InvocationOrigin.NATIVE,
            ))

        logger.debug("OpenAI returned %d tool call(s)", len(invocations))
        return GenerationResult(
            text=message.content or "", invocations=invocations, diagnostics=diagnostics
        )

    async def aclose(self) -> None:
        await self._client.close()

    async def _complete(self, prompt: str, tools: Optional[list[ToolSchema]] = None) -> Any:
        request: dict[str, Any] = {
            "model": self._config.llm_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._config.llm_temperature,
        }
        if tools:
            request["tools"] = to_openai_tools(tools)
            request["tool_choice"] = "auto"
        try:
            response = await self._client.chat.completions.create(**request)
        except openai.OpenAIError as e:
            raise _map_error(e) from e
        if not response.choices:
            raise ProviderUnavailable("OpenAI returned no choices", transient=True)
        return response.choices[0].message
