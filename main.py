"""
Interactive POS assistant against the configured model provider.

Uses LLM_PROVIDER (openai or ollama) from the environment with the
in-memory catalog, ledger, and store. For an offline run without API
keys, use the scripted console demo instead.

Usage:
    Live model:   python main.py
    Console demo: python main.py console
"""

import asyncio
import logging
import sys

from pos_assistant.config import settings
from pos_assistant.conversation.dispatcher import CommandDispatcher
from pos_assistant.gateway.factory import create_gateway
from pos_assistant.orchestrator import TurnOrchestrator
from pos_assistant.prompts.persona_cache import PersonaTemplateCache
from pos_assistant.schemas.session_schema import SessionContext
from pos_assistant.tools.catalog import InMemoryCatalog
from pos_assistant.tools.ledger import InMemoryLedger
from pos_assistant.tools.store import InMemoryStoreConfiguration

logger = logging.getLogger(__name__)


def _build_orchestrator() -> TurnOrchestrator:
    cache = PersonaTemplateCache()
    cache.warm([settings.store.persona])
    dispatcher = CommandDispatcher(
        InMemoryCatalog(),
        InMemoryLedger(currency=settings.store.currency),
        InMemoryStoreConfiguration(default_store_id=settings.store.store_id),
    )
    return TurnOrchestrator(create_gateway(), dispatcher, cache, session=SessionContext())


async def _run_live_mode() -> None:
    """Chat with the configured provider until the order closes or the user quits."""
    orchestrator = _build_orchestrator()
    logger.info("Session %s started", orchestrator.session.session_id)
    print(orchestrator.opening())

    try:
        while True:
            try:
                utterance = input("> ").strip()
            except EOFError:
                break
            if utterance.lower() in ("quit", "exit", "q"):
                break
            if not utterance:
                continue
            result = await orchestrator.handle_turn(
                utterance, timeout=settings.model.request_timeout_sec * settings.model.max_attempts
            )
            print(result.acknowledgment_text)
            if result.fatal:
                break
    finally:
        await orchestrator.aclose()


def _run_console_mode() -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import main as demo_main

    sys.argv = [sys.argv[0]] + sys.argv[2:]
    demo_main()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode()
    else:
        asyncio.run(_run_live_mode())
