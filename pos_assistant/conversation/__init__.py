from pos_assistant.conversation.completion import CompletionAnalysis, CompletionDetector
from pos_assistant.conversation.dispatcher import CommandDispatcher
from pos_assistant.conversation.extractor import ConfidencePolicy, ToolCallExtractor
from pos_assistant.conversation.guardrails import InputGuardrail, ResponseGuardrail
from pos_assistant.conversation.state_machine import (
    ConversationStateMachine,
    InvalidTransitionError,
    TransitionTrigger,
)

__all__ = [
    "CommandDispatcher",
    "CompletionAnalysis",
    "CompletionDetector",
    "ConfidencePolicy",
    "ConversationStateMachine",
    "InputGuardrail",
    "InvalidTransitionError",
    "ResponseGuardrail",
    "ToolCallExtractor",
    "TransitionTrigger",
]
