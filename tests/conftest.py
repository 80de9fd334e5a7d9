"""Shared test fixtures and helpers."""

import itertools
from typing import Iterable, Optional

import pytest

from pos_assistant.conversation.dispatcher import CommandDispatcher
from pos_assistant.conversation.state_machine import ConversationStateMachine
from pos_assistant.gateway.gateway import ModelGateway, RetryPolicy
from pos_assistant.gateway.scripted import ScriptedBackend, ScriptedReply
from pos_assistant.orchestrator import TurnOrchestrator
from pos_assistant.prompts.persona_cache import PersonaTemplateCache
from pos_assistant.schemas.session_schema import Phase, SessionContext
from pos_assistant.schemas.store_schema import ProductInfo
from pos_assistant.schemas.tool_schema import InvocationOrigin, ToolInvocation
from pos_assistant.tools.catalog import InMemoryCatalog
from pos_assistant.tools.ledger import InMemoryLedger
from pos_assistant.tools.store import InMemoryStoreConfiguration

STORE_ID = "store-001"

_call_ids = itertools.count(1)


class RecordingCatalog(InMemoryCatalog):
    """InMemoryCatalog that remembers every search term it was given."""

    def __init__(self, products: Optional[Iterable[ProductInfo]] = None) -> None:
        super().__init__(products)
        self.searches: list[str] = []

    def search(self, term: str, max_results: int = 5) -> list[ProductInfo]:
        self.searches.append(term)
        return super().search(term, max_results)


@pytest.fixture
def persona_cache():
    return PersonaTemplateCache()


@pytest.fixture
def barista(persona_cache):
    return persona_cache.get("american_barista")


@pytest.fixture
def session():
    return make_session()


@pytest.fixture
def machine(session):
    return ConversationStateMachine(session)


@pytest.fixture
def catalog():
    return RecordingCatalog()


@pytest.fixture
def ledger():
    return InMemoryLedger(currency="USD")


@pytest.fixture
def store():
    return InMemoryStoreConfiguration(default_store_id=STORE_ID)


@pytest.fixture
def dispatcher(catalog, ledger, store):
    return make_dispatcher(catalog, ledger, store)


def make_session(
    phase: Phase = Phase.ORDERING,
    persona: str = "american_barista",
    history_window: int = 3,
) -> SessionContext:
    """Helper to create a SessionContext with test defaults."""
    return SessionContext(
        persona=persona,
        locale="en-US",
        currency="USD",
        history_window=history_window,
        phase=phase,
    )


def make_dispatcher(
    catalog=None,
    ledger=None,
    store=None,
    execute_threshold: float = 0.5,
    confirm_threshold: float = 0.8,
) -> CommandDispatcher:
    return CommandDispatcher(
        catalog if catalog is not None else InMemoryCatalog(),
        ledger if ledger is not None else InMemoryLedger(currency="USD"),
        store if store is not None else InMemoryStoreConfiguration(default_store_id=STORE_ID),
        store_id=STORE_ID,
        execute_threshold=execute_threshold,
        confirm_threshold=confirm_threshold,
        max_search_results=5,
    )


def make_invocation(
    name: str,
    confidence: float = 1.0,
    origin: InvocationOrigin = InvocationOrigin.NATIVE,
    call_id: Optional[str] = None,
    **arguments,
) -> ToolInvocation:
    """Helper to create a ToolInvocation as a backend would produce it."""
    return ToolInvocation(
        call_id=call_id or f"call_{next(_call_ids)}",
        name=name,
        raw_arguments=str(arguments),
        arguments=arguments,
        confidence=confidence,
        origin=origin,
    )


def make_orchestrator(
    replies: Iterable[ScriptedReply] = (),
    native_tools: bool = False,
    phase: Phase = Phase.GREETING,
    persona: str = "american_barista",
    store: Optional[InMemoryStoreConfiguration] = None,
    probe_before_turn: bool = False,
    backend: Optional[ScriptedBackend] = None,
) -> tuple[TurnOrchestrator, ScriptedBackend, InMemoryLedger]:
    """Wire a TurnOrchestrator over a scripted backend and in-memory collaborators.

    Retries use a zero backoff so failure paths run instantly.
    """
    backend = backend or ScriptedBackend(replies, native_tools=native_tools)
    ledger = InMemoryLedger(currency="USD")
    orchestrator = TurnOrchestrator(
        gateway=ModelGateway(backend, RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0)),
        dispatcher=make_dispatcher(InMemoryCatalog(), ledger, store),
        cache=PersonaTemplateCache(),
        session=make_session(phase=phase, persona=persona),
        probe_before_turn=probe_before_turn,
    )
    return orchestrator, backend, ledger
