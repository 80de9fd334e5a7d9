"""
Guardrails on both sides of the model call.

1. InputGuardrail     rejects empty or over-long utterances before any model call
2. ResponseGuardrail  strips tool directives from model prose and rejects
                      prose that breaks persona or leaks formatting

When the response guardrail rejects prose, the orchestrator falls back
to the persona's templated acknowledgment.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from pos_assistant.config import settings
from pos_assistant.conversation.extractor import ToolCallExtractor

logger = logging.getLogger(__name__)


@dataclass
class GuardrailResult:
    """Outcome of a single guardrail check."""
    passed: bool
    violation_type: Optional[str] = None
    message: Optional[str] = None
    severity: str = "warning"  # "warning" | "block"


class InputGuardrail:
    def __init__(self, max_chars: int = settings.dispatch.max_utterance_chars) -> None:
        self.max_chars = max_chars

    def check(self, utterance: str) -> GuardrailResult:
        if not utterance or not utterance.strip():
            return GuardrailResult(
                passed=False,
                violation_type="empty_input",
                message="Utterance is empty.",
                severity="block",
            )
        if len(utterance) > self.max_chars:
            return GuardrailResult(
                passed=False,
                violation_type="input_too_long",
                message=f"Utterance exceeds {self.max_chars} characters.",
                severity="block",
            )
        return GuardrailResult(passed=True)


class ResponseGuardrail:
    """Decides whether model prose can be shown to the customer as-is."""

    FORBIDDEN_PATTERNS = [
        "as an ai", "as a language model", "i'm just a computer",
        "i am an ai", "language model", "function call", "tool call",
    ]

    FORMATTING_VIOLATIONS = ["## ", "**", "```", "[SESSION CONTEXT]"]

    def __init__(self, extractor: ToolCallExtractor) -> None:
        self._extractor = extractor

    def clean(self, text: str) -> str:
        """Model prose with every tool directive removed."""
        return self._extractor.strip_directives(text or "")

    def check_persona(self, text: str) -> GuardrailResult:
        lower = text.lower()
        for pattern in self.FORBIDDEN_PATTERNS:
            if pattern in lower:
                return GuardrailResult(
                    passed=False,
                    violation_type="persona_break",
                    message=f"Response breaks persona with: '{pattern}'.",
                )
        return GuardrailResult(passed=True)

    def check_formatting(self, text: str) -> GuardrailResult:
        for fmt in self.FORMATTING_VIOLATIONS:
            if fmt in text:
                return GuardrailResult(
                    passed=False,
                    violation_type="formatting_violation",
                    message=f"Spoken response should not contain '{fmt}' formatting.",
                )
        return GuardrailResult(passed=True)

    def check_response(self, text: str) -> list[GuardrailResult]:
        """Return the failed checks for already-cleaned prose."""
        if not text.strip():
            return [GuardrailResult(passed=False, violation_type="empty_response", message="No prose left.")]
        results = [self.check_persona(text), self.check_formatting(text)]
        failures = [r for r in results if not r.passed]
        for failure in failures:
            logger.warning("Response guardrail: %s", failure.message)
        return failures

    def usable_prose(self, text: str) -> Optional[str]:
        """Cleaned prose if it passes every check, else None."""
        cleaned = self.clean(text)
        if self.check_response(cleaned):
            return None
        return cleaned
