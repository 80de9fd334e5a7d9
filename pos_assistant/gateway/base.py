"""Backend contract every language model provider implements."""

from abc import ABC, abstractmethod

from pos_assistant.schemas.tool_schema import GenerationResult, ProviderInfo, ToolSchema


class ModelBackend(ABC):
    """
    One language model provider.

    ``generate`` and ``generate_with_tools`` raise ProviderUnavailable on
    failure, with ``transient`` set for failures worth retrying.
    ``is_available`` must never raise.
    """

    @abstractmethod
    def provider_info(self) -> ProviderInfo:
        ...

    @abstractmethod
    async def is_available(self) -> bool:
        ...

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        ...

    async def generate_with_tools(
        self, prompt: str, tools: list[ToolSchema]
    ) -> GenerationResult:
        """Native tool calling. Backends without it never have this called."""
        raise NotImplementedError(
            f"{self.provider_info().name} does not support native tool calls"
        )

    async def aclose(self) -> None:
        """Release network resources. No-op by default."""
