"""Per-session conversation state: turns, cart lines, and phase."""

import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from pos_assistant.config import settings
from pos_assistant.schemas.store_schema import PaymentMethodDescriptor, PaymentReceipt, ProductInfo


class Phase(str, Enum):
    """Conversation phases, in the order a transaction moves through them."""

    GREETING = "greeting"
    ORDERING = "ordering"
    COMPLETION_PENDING = "completion_pending"
    AWAITING_PAYMENT = "awaiting_payment"
    CLOSED = "closed"


class Speaker(str, Enum):
    CUSTOMER = "customer"
    ASSISTANT = "assistant"


class ConversationTurn(BaseModel):
    """A single utterance in the session history."""

    model_config = ConfigDict(frozen=True)

    speaker: Speaker
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CartLine(BaseModel):
    """One line of the customer's order.

    Lines are never edited in place. A quantity change produces a new
    line via ``with_quantity`` that replaces the old one wholesale.
    """

    model_config = ConfigDict(frozen=True)

    line_id: str
    sku: str
    display_name: str
    quantity: int = Field(ge=1)
    unit_price: Decimal
    preparation_notes: str = ""

    def with_quantity(self, quantity: int, line_id: str) -> "CartLine":
        return self.model_copy(update={"quantity": quantity, "line_id": line_id})

    def render(self) -> str:
        """Render as ``sku xQuantity (notes)`` for prompts and summaries."""
        text = f"{self.sku} x{self.quantity}"
        if self.preparation_notes:
            text += f" ({self.preparation_notes})"
        return text


def _new_session_id() -> str:
    return f"SESS-{uuid.uuid4().hex[:8]}"


@dataclass
class SessionContext:
    """
    Mutable state for one customer interaction.

    Owned by a single turn worker. Only the dispatcher and the state
    machine change it; everything else reads.
    """

    session_id: str = field(default_factory=_new_session_id)
    persona: str = settings.store.persona
    locale: str = settings.store.locale
    currency: str = settings.store.currency
    history_window: int = settings.dispatch.history_window
    phase: Phase = Phase.GREETING
    cart: list[CartLine] = field(default_factory=list)
    running_total: Optional[Decimal] = None
    payment_methods: Optional[tuple[PaymentMethodDescriptor, ...]] = None
    last_receipt: Optional[PaymentReceipt] = None
    menu: Optional[tuple[ProductInfo, ...]] = None
    turns: deque = field(default_factory=deque)

    def __post_init__(self) -> None:
        # One exchange is a customer turn plus an assistant turn.
        self.turns = deque(self.turns, maxlen=self.history_window * 2)

    # ------------------------------------------------------------------ #
    # History
    # ------------------------------------------------------------------ #

    def record_turn(self, speaker: Speaker, text: str) -> None:
        self.turns.append(ConversationTurn(speaker=speaker, text=text))

    def recent_turns(self) -> list[ConversationTurn]:
        return list(self.turns)

    # ------------------------------------------------------------------ #
    # Cart
    # ------------------------------------------------------------------ #

    def append_line(self, line: CartLine) -> None:
        self.cart.append(line)

    def replace_line(self, old_line_id: str, new_line: CartLine) -> None:
        for index, line in enumerate(self.cart):
            if line.line_id == old_line_id:
                self.cart[index] = new_line
                return
        raise KeyError(old_line_id)

    def drop_line(self, line_id: str) -> CartLine:
        for index, line in enumerate(self.cart):
            if line.line_id == line_id:
                return self.cart.pop(index)
        raise KeyError(line_id)

    @property
    def payment_methods_loaded(self) -> bool:
        return self.payment_methods is not None

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.cart)

    def clear_transaction(self) -> None:
        """Forget the current transaction.

        The loaded menu survives. Phase is handled by the state machine.
        """
        self.cart.clear()
        self.running_total = None
        self.payment_methods = None
        self.last_receipt = None
