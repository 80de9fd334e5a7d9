"""
Finite state machine for the order/payment lifecycle.

The phase lives on the SessionContext; this machine is the only thing
that moves it. Every transition is listed in TRANSITIONS. Anything else
is rejected with the triggers that would have been valid.

    GREETING -> ORDERING -> COMPLETION_PENDING -> AWAITING_PAYMENT -> CLOSED
                   ^               |                    |               |
                   +---- resumed --+                    |               |
                   +-------------- new transaction -----+---------------+

Usage:
    sm = ConversationStateMachine(session)
    sm.transition(TransitionTrigger.CUSTOMER_SPOKE)
    assert session.phase == Phase.ORDERING
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pos_assistant.schemas.session_schema import Phase, SessionContext
from pos_assistant.tools.operations import OperationCategory

logger = logging.getLogger(__name__)


class TransitionTrigger(str, Enum):
    """Events that cause phase transitions."""
    CUSTOMER_SPOKE = "customer_spoke"
    COMPLETION_SIGNALLED = "completion_signalled"
    ORDERING_RESUMED = "ordering_resumed"
    PAYMENT_METHODS_LOADED = "payment_methods_loaded"
    PAYMENT_PROCESSED = "payment_processed"
    NEW_TRANSACTION = "new_transaction"


@dataclass
class Transition:
    """A single valid phase transition."""
    from_phase: Phase
    to_phase: Phase
    trigger: TransitionTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a phase visit."""
    phase: Phase
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current phase."""


class ConversationStateMachine:
    """
    Deterministic phase control on top of probabilistic model output.

    A NEW_TRANSACTION transition also clears the cart, the loaded payment
    methods, and the running total, so the session starts clean.
    """

    TRANSITIONS: list[Transition] = [
        Transition(Phase.GREETING, Phase.ORDERING, TransitionTrigger.CUSTOMER_SPOKE),

        # --- Ordering and completion ---
        Transition(Phase.ORDERING, Phase.COMPLETION_PENDING, TransitionTrigger.COMPLETION_SIGNALLED),
        Transition(Phase.COMPLETION_PENDING, Phase.ORDERING, TransitionTrigger.ORDERING_RESUMED),

        # --- Payment ---
        Transition(Phase.COMPLETION_PENDING, Phase.AWAITING_PAYMENT,
                   TransitionTrigger.PAYMENT_METHODS_LOADED),
        Transition(Phase.AWAITING_PAYMENT, Phase.CLOSED, TransitionTrigger.PAYMENT_PROCESSED),

        # --- Reset ---
        Transition(Phase.AWAITING_PAYMENT, Phase.ORDERING, TransitionTrigger.NEW_TRANSACTION),
        Transition(Phase.CLOSED, Phase.ORDERING, TransitionTrigger.NEW_TRANSACTION),
    ]

    # Which operation categories may run in each phase.
    ALLOWED_CATEGORIES: dict[Phase, frozenset[OperationCategory]] = {
        Phase.GREETING: frozenset(OperationCategory),
        Phase.ORDERING: frozenset(OperationCategory),
        Phase.COMPLETION_PENDING: frozenset(OperationCategory),
        Phase.AWAITING_PAYMENT: frozenset({
            OperationCategory.QUERY, OperationCategory.PAYMENT, OperationCategory.SESSION,
        }),
        Phase.CLOSED: frozenset({OperationCategory.QUERY, OperationCategory.SESSION}),
    }

    def __init__(self, session: SessionContext) -> None:
        self._session = session
        self._history: list[StateEntry] = [
            StateEntry(phase=session.phase, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_phase(self) -> Phase:
        return self._session.phase

    def can_transition(self, trigger: TransitionTrigger) -> bool:
        return trigger in self.get_valid_triggers()

    def transition(self, trigger: TransitionTrigger) -> Phase:
        """
        Execute a phase transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_phase == self._session.phase and t.trigger == trigger:
                old_phase = self._session.phase
                if trigger == TransitionTrigger.NEW_TRANSACTION:
                    self._session.clear_transaction()
                self._session.phase = t.to_phase
                self._history.append(StateEntry(
                    phase=t.to_phase,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Phase transition: %s -> %s (trigger: %s)",
                    old_phase.value, t.to_phase.value, trigger.value,
                )
                return t.to_phase

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._session.phase.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def category_allowed(self, category: OperationCategory) -> bool:
        return category in self.ALLOWED_CATEGORIES[self._session.phase]

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        """Return all triggers valid from the current phase."""
        return [t.trigger for t in self.TRANSITIONS if t.from_phase == self._session.phase]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of phase names visited."""
        return [entry.phase.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._session.phase == Phase.CLOSED
