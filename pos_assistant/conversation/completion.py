"""
Detection of "I'm done ordering" in the customer's own words.

Phrase sets are persona data, not code: every CompletionSignal in the
persona is checked regardless of locale, so a customer who switches
language mid-order is still understood. A completion phrase followed by
a new-item mention ("that's all, oh and a muffin") is not a completion,
unless the phrase is marked as finality wording.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from pos_assistant.schemas.persona_schema import CompletionSignal, PersonaTemplate
from pos_assistant.schemas.tool_schema import ToolInvocation
from pos_assistant.tools.operations import ADD_ITEM
from pos_assistant.utils import contains_phrase, normalize_phrase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionAnalysis:
    completed: bool
    signal: Optional[CompletionSignal] = None
    new_item_mentioned: bool = False
    trailing_text: str = ""


def _match_end(signal: CompletionSignal, text: str) -> int:
    phrase = signal.normalized
    if signal.match == "exact":
        return len(text) if text == phrase else -1
    if signal.match == "contains":
        index = text.find(phrase)
        return index + len(phrase) if index >= 0 and phrase else -1
    return contains_phrase(text, phrase)


class CompletionDetector:
    """Stateless; safe to share across sessions."""

    def analyze(
        self,
        persona: PersonaTemplate,
        utterance: str,
        invocations: Iterable[ToolInvocation] = (),
    ) -> CompletionAnalysis:
        text = normalize_phrase(utterance)
        matched = self._best_signal(persona, text)
        if matched is None:
            return CompletionAnalysis(
                completed=False,
                new_item_mentioned=self._mentions_new_item(persona, text, 0, invocations),
            )

        signal, end = matched
        trailing = text[end:].strip()
        new_item = self._mentions_new_item(persona, text, end, invocations)
        completed = signal.finality or not new_item
        logger.debug(
            "Completion phrase %r matched (finality=%s, new item=%s) -> completed=%s",
            signal.phrase, signal.finality, new_item, completed,
        )
        return CompletionAnalysis(
            completed=completed, signal=signal, new_item_mentioned=new_item, trailing_text=trailing,
        )

    def _best_signal(
        self, persona: PersonaTemplate, text: str
    ) -> Optional[tuple[CompletionSignal, int]]:
        first: Optional[tuple[CompletionSignal, int]] = None
        for signal in persona.completion_signals:
            end = _match_end(signal, text)
            if end < 0:
                continue
            if signal.finality:
                return signal, end
            if first is None:
                first = (signal, end)
        return first

    def _mentions_new_item(
        self,
        persona: PersonaTemplate,
        text: str,
        after: int,
        invocations: Iterable[ToolInvocation],
    ) -> bool:
        trailing = text[after:]
        for marker in persona.continuation_markers:
            if contains_phrase(trailing, normalize_phrase(marker.text)) >= 0:
                return True

        for invocation in invocations:
            if invocation.name != ADD_ITEM:
                continue
            item = normalize_phrase(str(invocation.arguments.get("item_description", "")))
            if not item:
                return True
            position = text.find(item)
            # An item the customer named before the completion phrase was part of the order.
            if position < 0 or position >= after:
                return True
        return False
