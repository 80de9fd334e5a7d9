"""Per-turn prompt construction from bounded session state."""

from typing import Optional

from pos_assistant.config import settings
from pos_assistant.prompts.persona_cache import PersonaTemplateCache
from pos_assistant.schemas.persona_schema import TemplateKind
from pos_assistant.schemas.session_schema import Phase, SessionContext, Speaker
from pos_assistant.utils import format_money

_SPEAKER_LABELS = {Speaker.CUSTOMER: "Customer", Speaker.ASSISTANT: "Assistant"}

_KIND_BY_PHASE = {
    Phase.GREETING: TemplateKind.GREETING,
    Phase.ORDERING: TemplateKind.ORDERING,
    Phase.COMPLETION_PENDING: TemplateKind.ORDERING,
    Phase.AWAITING_PAYMENT: TemplateKind.ACKNOWLEDGMENT,
    Phase.CLOSED: TemplateKind.ACKNOWLEDGMENT,
}


def template_kind_for(phase: Phase) -> TemplateKind:
    return _KIND_BY_PHASE[phase]


class PromptAssembler:
    """
    Builds the prompt for one turn.

    The dynamic header is rebuilt from the bounded turn window and the
    cart on every call, then prefixed to the cached persona body. Cost
    depends on the window size and the loaded menu, never on how long
    the session has run.
    """

    def __init__(
        self,
        cache: PersonaTemplateCache,
        store_name: str = settings.store.store_name,
        history_window: int = settings.dispatch.history_window,
    ) -> None:
        self._cache = cache
        self._store_name = store_name
        self._history_window = history_window

    def build(self, persona: str, session: SessionContext, utterance: str) -> str:
        body = self._cache.body(persona, template_kind_for(session.phase))
        return f"{self.build_header(session, utterance)}\n\n{body}"

    def build_header(self, session: SessionContext, utterance: str) -> str:
        parts: list[str] = [
            "[SESSION CONTEXT]",
            f"Store: {self._store_name} | Currency: {session.currency} | Phase: {session.phase.value}",
            "Recent conversation:",
        ]
        turns = session.recent_turns()[-self._history_window * 2:]
        if turns:
            parts.extend(f"{_SPEAKER_LABELS[t.speaker]}: {t.text}" for t in turns)
        else:
            parts.append("  (none yet)")

        if session.menu:
            parts.append("Menu:")
            parts.extend(_render_menu(session))

        parts.append("Current order:")
        if session.cart:
            parts.extend(f"  {line.render()}" for line in session.cart)
        else:
            parts.append("  (empty)")

        parts.append(f"Running total: {_render_total(session)}")
        parts.append(f'Customer just said: "{utterance}"')
        parts.append("[END SESSION CONTEXT]")
        return "\n".join(parts)


def _render_total(session: SessionContext) -> str:
    if session.running_total is None:
        return "(not yet calculated)"
    return format_money(session.running_total, session.currency)


def _render_menu(session: SessionContext) -> list[str]:
    """One line per category, in catalog order."""
    groups: dict[str, list[str]] = {}
    for product in session.menu or ():
        groups.setdefault(product.category or "other", []).append(
            f"{product.display_name} {format_money(product.base_price, session.currency)}"
        )
    return [f"  {category}: {', '.join(items)}" for category, items in groups.items()]


def build_clarification_text(
    unknown_item: str,
    alternatives: list[str],
    unknown_template: str,
    alternatives_template: str,
) -> str:
    """Build the clarification line for a product that could not be resolved."""
    text = unknown_template.format(item=unknown_item)
    if alternatives:
        text += " " + alternatives_template.format(options=join_options(alternatives[:3]))
    return text


def build_payment_prompt(template: str, total: Optional[str]) -> str:
    return template.format(total=total or "")


def join_options(options: list[str]) -> str:
    if len(options) == 1:
        return options[0]
    return ", ".join(options[:-1]) + f" or {options[-1]}"
