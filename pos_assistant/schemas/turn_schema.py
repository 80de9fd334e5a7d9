"""Dispatch outcomes and the per-turn result handed to the host application."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from pos_assistant.errors import ErrorKind
from pos_assistant.schemas.session_schema import Phase
from pos_assistant.schemas.tool_schema import MalformedToolCall


class OutcomeStatus(str, Enum):
    EXECUTED = "executed"
    CONFIRMING = "confirming"
    REJECTED = "rejected"


class DispatchStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    REJECTED = "rejected"
    EMPTY = "empty"


class DispatchOutcome(BaseModel):
    """What happened to one invocation."""

    call_id: str
    operation: str
    status: OutcomeStatus
    message: str = ""
    error_kind: Optional[ErrorKind] = None
    confidence: float = 1.0
    alternatives: list[str] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status != OutcomeStatus.REJECTED

    @property
    def needs_confirmation(self) -> bool:
        return self.status == OutcomeStatus.CONFIRMING


class DispatchResult(BaseModel):
    """All outcomes from one turn, in invocation order."""

    outcomes: list[DispatchOutcome] = Field(default_factory=list)

    @property
    def status(self) -> DispatchStatus:
        if not self.outcomes:
            return DispatchStatus.EMPTY
        succeeded = sum(1 for o in self.outcomes if o.succeeded)
        if succeeded == len(self.outcomes):
            return DispatchStatus.SUCCESS
        if succeeded == 0:
            return DispatchStatus.REJECTED
        return DispatchStatus.PARTIAL

    @property
    def failures(self) -> list[DispatchOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def confirmations(self) -> list[DispatchOutcome]:
        return [o for o in self.outcomes if o.needs_confirmation]

    def fatal_outcome(self) -> Optional[DispatchOutcome]:
        for outcome in self.outcomes:
            if outcome.error_kind == ErrorKind.CONFIGURATION_MISSING:
                return outcome
        return None


class TurnResult(BaseModel):
    """Produced surface for the presentation layer."""

    acknowledgment_text: str
    phase: Phase
    dispatch_outcomes: list[DispatchOutcome] = Field(default_factory=list)
    error_kind: Optional[ErrorKind] = None
    fatal: bool = False
    diagnostics: list[MalformedToolCall] = Field(default_factory=list)
