"""
Offline backend that replays canned replies.

Used by the console demo and the test suite so the full turn pipeline
runs without network access or API keys. Each reply is either a string
(prose, possibly with TOOL_CALL directives), a GenerationResult (native
tool calls), or an exception to raise.
"""

import logging
from collections import deque
from typing import Iterable, Union

from pos_assistant.errors import ProviderUnavailable
from pos_assistant.gateway.base import ModelBackend
from pos_assistant.schemas.tool_schema import GenerationResult, ProviderInfo, ToolSchema

logger = logging.getLogger(__name__)

ScriptedReply = Union[str, GenerationResult, Exception]


class ScriptedBackend(ModelBackend):
    def __init__(
        self,
        replies: Iterable[ScriptedReply] = (),
        native_tools: bool = False,
        available: bool = True,
        model: str = "scripted",
    ) -> None:
        self._replies: deque[ScriptedReply] = deque(replies)
        self._native = native_tools
        self._model = model
        self.available = available
        self.prompts: list[str] = []
        self.tool_batches: list[list[ToolSchema]] = []

    def queue(self, *replies: ScriptedReply) -> None:
        self._replies.extend(replies)

    @property
    def remaining(self) -> int:
        return len(self._replies)

    def provider_info(self) -> ProviderInfo:
        return ProviderInfo(
            name="scripted",
            model=self._model,
            is_local=True,
            supports_native_tools=self._native,
            description="Canned replies for demos and tests",
        )

    async def is_available(self) -> bool:
        return self.available

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self._next()
        if isinstance(reply, GenerationResult):
            return reply.text
        return reply

    async def generate_with_tools(self, prompt: str, tools: list[ToolSchema]) -> GenerationResult:
        self.prompts.append(prompt)
        self.tool_batches.append(list(tools))
        reply = self._next()
        if isinstance(reply, str):
            return GenerationResult(text=reply)
        return reply

    def _next(self) -> Union[str, GenerationResult]:
        if not self._replies:
            raise ProviderUnavailable("Scripted backend has no replies left", transient=False)
        reply = self._replies.popleft()
        if isinstance(reply, Exception):
            logger.debug("Scripted backend raising %r", reply)
            raise reply
        return reply
