"""Persona templates: prompt bodies plus locale-tagged phrase sets."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from pos_assistant.utils import normalize_phrase


class TemplateKind(str, Enum):
    GREETING = "greeting"
    ORDERING = "ordering"
    ACKNOWLEDGMENT = "acknowledgment"


class LocalePhrase(BaseModel):
    model_config = ConfigDict(frozen=True)

    locale: str
    text: str


class CompletionSignal(BaseModel):
    """A phrase meaning "the customer is finished ordering".

    ``finality`` marks wording that ends the order even when an item is
    mentioned in the same breath ("I'm leaving now").

    ``match`` is "substring" (whole words anywhere), "exact" (the whole
    utterance), or "contains" (anywhere, ignoring word boundaries, for
    scripts written without spaces such as Japanese).
    """

    model_config = ConfigDict(frozen=True)

    locale: str
    phrase: str
    match: Literal["exact", "substring", "contains"] = "substring"
    finality: bool = False

    @property
    def normalized(self) -> str:
        return normalize_phrase(self.phrase)


class PersonaPhrases(BaseModel):
    """Templated fallback wording, used when model prose cannot be reused."""

    model_config = ConfigDict(frozen=True)

    apology: str = "Sorry, I'm having trouble right now. Please give me a moment and try again."
    service_unavailable: str = "Sorry, we can't take orders right now. Please see a staff member."
    clarification: str = "Sorry, could you say that again?"
    confirmation_prefix: str = "Just to confirm,"
    unknown_product: str = "Sorry, I couldn't find {item}."
    alternatives: str = "We do have {options}."
    added: str = "I've added {quantity} {item}."
    removed: str = "I've removed {item}."
    updated: str = "{item} is now {quantity}."
    total: str = "Your total is {total}."
    payment_done: str = "Paid {amount} by {method}. Thank you!"
    new_transaction: str = "Sure, starting a new order."
    anything_else: str = "Anything else?"
    greeting: str = "Hi! What can I get for you?"


class PersonaTemplate(BaseModel):
    """Immutable persona bundle shared read-only by every session using it."""

    model_config = ConfigDict(frozen=True)

    key: str
    display_name: str
    staff_title: str = "Cashier"
    venue_title: str = "Store"
    default_locale: str = "en-US"
    bodies: dict[TemplateKind, str] = Field(default_factory=dict)
    completion_signals: list[CompletionSignal] = Field(default_factory=list)
    continuation_markers: list[LocalePhrase] = Field(default_factory=list)
    new_transaction_phrases: list[LocalePhrase] = Field(default_factory=list)
    payment_prompts: list[LocalePhrase] = Field(default_factory=list)
    phrases: PersonaPhrases = Field(default_factory=PersonaPhrases)

    def body(self, kind: TemplateKind) -> str:
        return self.bodies.get(kind, "")

    def payment_prompt(self, locale: str) -> str:
        """First payment prompt for the locale, falling back to the language, then any."""
        if not self.payment_prompts:
            return "Your total is {total}. How would you like to pay?"
        language = locale.split("-")[0]
        for prompt in self.payment_prompts:
            if prompt.locale == locale:
                return prompt.text
        for prompt in self.payment_prompts:
            if prompt.locale.split("-")[0] == language:
                return prompt.text
        return self.payment_prompts[0].text
