"""Tool schemas, tool invocations, and model gateway result types."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class InvocationOrigin(str, Enum):
    NATIVE = "native"
    EXTRACTED = "extracted"


class ToolSchema(BaseModel):
    """A tool definition offered to the model."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    @property
    def required(self) -> tuple[str, ...]:
        return tuple(self.parameters_schema.get("required", ()))

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return tuple(self.parameters_schema.get("properties", {}).keys())


class ToolInvocation(BaseModel):
    """One detected command for the dispatcher.

    Immutable once created; the confidence assigned at creation is never
    adjusted afterwards.
    """

    model_config = ConfigDict(frozen=True)

    call_id: str
    name: str
    raw_arguments: str = ""
    arguments: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(ge=0.0, le=1.0)
    origin: InvocationOrigin


class MalformedToolCall(BaseModel):
    """Diagnostic for a tool call that could not be parsed at all."""

    model_config = ConfigDict(frozen=True)

    fragment: str
    reason: str
    origin: InvocationOrigin = InvocationOrigin.EXTRACTED


class ProviderInfo(BaseModel):
    """Capability report for a model backend."""

    model_config = ConfigDict(frozen=True)

    name: str
    model: str
    is_local: bool = False
    supports_native_tools: bool = False
    description: Optional[str] = None


class GenerationResult(BaseModel):
    """Prose plus any native tool invocations from one model call."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    invocations: list[ToolInvocation] = Field(default_factory=list)
    diagnostics: list[MalformedToolCall] = Field(default_factory=list)
