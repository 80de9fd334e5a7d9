"""
Uniform model gateway over heterogeneous backends.

The tool-calling strategy is chosen once, at construction, from the
backend's capability report:

    NativeToolStrategy       backend decodes structured tool calls itself
    TextDirectiveStrategy    tool schemas are folded into the prompt as
                             directive instructions; the reply is prose only

Either way ``generate_with_tools`` returns prose plus a (possibly empty)
invocation list. Transient provider failures are retried here with
bounded exponential backoff, and nowhere else.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, TypeVar

from pos_assistant.config import ModelConfig, settings
from pos_assistant.errors import ProviderUnavailable
from pos_assistant.gateway.base import ModelBackend
from pos_assistant.prompts.system_prompts import render_tool_instructions
from pos_assistant.schemas.tool_schema import GenerationResult, ProviderInfo, ToolSchema

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Bounded exponential backoff: base * 2^(attempt-1), capped at max_delay."""

    def __init__(self, max_attempts: int = 3, base_delay: float = 0.5, max_delay: float = 4.0) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    @classmethod
    def from_config(cls, config: ModelConfig) -> "RetryPolicy":
        return cls(config.max_attempts, config.backoff_base_sec, config.backoff_max_sec)

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


class ToolStrategy(ABC):
    """How tool schemas reach the backend and invocations come back."""

    name = "base"

    @abstractmethod
    async def run(self, backend: ModelBackend, prompt: str, tools: list[ToolSchema]) -> GenerationResult:
        ...


class NativeToolStrategy(ToolStrategy):
    name = "native"

    async def run(self, backend: ModelBackend, prompt: str, tools: list[ToolSchema]) -> GenerationResult:
        return await backend.generate_with_tools(prompt, tools)


class TextDirectiveStrategy(ToolStrategy):
    name = "text_directive"

    async def run(self, backend: ModelBackend, prompt: str, tools: list[ToolSchema]) -> GenerationResult:
        if tools:
            prompt = f"{prompt}\n\n{render_tool_instructions(tools)}"
        text = await backend.generate(prompt)
        return GenerationResult(text=text)


class ModelGateway:
    """Capability-tagged facade the orchestrator talks to."""

    def __init__(
        self,
        backend: ModelBackend,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._retry = retry_policy or RetryPolicy.from_config(settings.model)
        self._sleep = sleep
        self._info = backend.provider_info()
        self._strategy: ToolStrategy = (
            NativeToolStrategy() if self._info.supports_native_tools else TextDirectiveStrategy()
        )
        logger.info(
            "Model gateway using %s/%s with %s tool strategy",
            self._info.name, self._info.model, self._strategy.name,
        )

    @property
    def backend(self) -> ModelBackend:
        return self._backend

    @property
    def strategy(self) -> ToolStrategy:
        return self._strategy

    @property
    def supports_native_tools(self) -> bool:
        return self._info.supports_native_tools

    def provider_info(self) -> ProviderInfo:
        return self._info

    async def is_available(self) -> bool:
        try:
            return await self._backend.is_available()
        except Exception:
            logger.exception("Availability probe for %s raised", self._info.name)
            return False

    async def generate(self, prompt: str) -> str:
        return await self._with_retry(lambda: self._backend.generate(prompt), "generate")

    async def generate_with_tools(self, prompt: str, tools: list[ToolSchema]) -> GenerationResult:
        return await self._with_retry(
            lambda: self._strategy.run(self._backend, prompt, tools), "generate_with_tools"
        )

    async def aclose(self) -> None:
        await self._backend.aclose()

    async def _with_retry(self, call: Callable[[], Awaitable[T]], operation: str) -> T:
        last_error: Optional[ProviderUnavailable] = None
        for attempt in range(1, self._retry.max_attempts + 1):
            try:
                return await call()
            except ProviderUnavailable as e:
                last_error = e
                if not e.transient:
                    logger.error("%s failed permanently on %s: %s", operation, self._info.name, e)
                    raise
                if attempt == self._retry.max_attempts:
                    break
                delay = self._retry.delay_for(attempt)
                logger.warning(
                    "%s attempt %d/%d failed on %s: %s (retrying in %.2fs)",
                    operation, attempt, self._retry.max_attempts, self._info.name, e, delay,
                )
                await self._sleep(delay)

        logger.error(
            "%s gave up on %s after %d attempts", operation, self._info.name, self._retry.max_attempts
        )
        raise ProviderUnavailable(
            f"{self._info.name} unavailable after {self._retry.max_attempts} attempts: {last_error}",
            transient=False,
        ) from last_error
