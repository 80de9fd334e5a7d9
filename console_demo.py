"""
Offline console demo: runs full ordering conversations without any API keys.

Drives the real TurnOrchestrator (prompt assembly, gateway, extractor,
dispatcher, state machine) with a scripted model backend and the
in-memory catalog, ledger, and store. No network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario kopitiam
    python console_demo.py --scenario native
"""

import argparse
import asyncio
import itertools
from dataclasses import dataclass, field

from pos_assistant.config import settings
from pos_assistant.conversation.dispatcher import CommandDispatcher
from pos_assistant.gateway.gateway import ModelGateway, RetryPolicy
from pos_assistant.gateway.scripted import ScriptedBackend, ScriptedReply
from pos_assistant.orchestrator import TurnOrchestrator
from pos_assistant.prompts.persona_cache import PersonaTemplateCache
from pos_assistant.schemas.session_schema import SessionContext
from pos_assistant.schemas.tool_schema import GenerationResult, InvocationOrigin, ToolInvocation
from pos_assistant.schemas.turn_schema import TurnResult
from pos_assistant.tools.catalog import InMemoryCatalog
from pos_assistant.tools.ledger import InMemoryLedger
from pos_assistant.tools.store import InMemoryStoreConfiguration

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


_call_ids = itertools.count(1)


def _native(name: str, **arguments) -> ToolInvocation:
    return ToolInvocation(
        call_id=f"call_demo_{next(_call_ids)}",
        name=name,
        raw_arguments=str(arguments),
        arguments=arguments,
        confidence=1.0,
        origin=InvocationOrigin.NATIVE,
    )


@dataclass
class Scenario:
    persona: str
    native_tools: bool
    turns: list[tuple[str, ScriptedReply]] = field(default_factory=list)


SCENARIOS: dict[str, Scenario] = {
    "barista": Scenario(
        persona="american_barista",
        native_tools=False,
        turns=[
            (
                "Hi, I'll have a large oat milk latte",
                'TOOL_CALL: add_item_to_transaction(item_description="Latte", '
                'preparation_notes="large, oat milk")\nOne large oat milk latte, coming up!',
            ),
            (
                "and a muffin please",
                'TOOL_CALL: add_item_to_transaction(item_description="Muffin")\nGot it, one muffin.',
            ),
            (
                "that's all, oh and a croissant",
                'TOOL_CALL: add_item_to_transaction(item_description="Croissant")\nSure, a croissant too.',
            ),
            (
                "ok that's it",
                "TOOL_CALL: load_payment_methods_context()\nHow would you like to pay?",
            ),
            (
                "card please",
                'TOOL_CALL: process_payment(payment_method="card")\nThanks so much, have a great day!',
            ),
        ],
    ),
    "kopitiam": Scenario(
        persona="singaporean_kopitiam_uncle",
        native_tools=False,
        turns=[
            (
                "Uncle, kopi peng siu dai, two",
                'TOOL_CALL: add_item_to_transaction(item_description="Kopi", quantity=2, '
                'preparation_notes="peng, siu dai")\nOk, two kopi peng siu dai.',
            ),
            (
                "kaya toast also",
                "add_item_to_transaction(item_description=Kaya Toast)\nOk kaya toast.",
            ),
            (
                "can already",
                "TOOL_CALL: load_payment_methods_context()\nHow you pay?",
            ),
            (
                "cash",
                'TOOL_CALL: process_payment(payment_method="cash")\nThank you ah!',
            ),
        ],
    ),
    "native": Scenario(
        persona="american_barista",
        native_tools=True,
        turns=[
            (
                "Two cappuccinos and a bagel",
                GenerationResult(text="Two cappuccinos and a bagel!", invocations=[
                    _native("add_item_to_transaction", item_description="Cappuccino", quantity=2),
                    _native("add_item_to_transaction", item_description="Bagel"),
                ]),
            ),
            (
                "actually make the cappuccinos just one",
                GenerationResult(text="Sure, just one.", invocations=[
                    _native("update_line_item_quantity", line_number=1, new_quantity=1),
                ]),
            ),
            (
                "I'd like a unicorn frappe",
                GenerationResult(text="", invocations=[
                    _native("add_item_to_transaction", item_description="Unicorn Frappe"),
                ]),
            ),
            (
                "nothing else",
                GenerationResult(text="", invocations=[_native("load_payment_methods_context")]),
            ),
            (
                "mobile wallet",
                GenerationResult(text="", invocations=[
                    _native("process_payment", payment_method="Mobile Wallet"),
                ]),
            ),
        ],
    ),
}


class ConsoleSession:
    """Plays a scripted scenario through the orchestrator in the terminal."""

    def __init__(self, scenario: Scenario) -> None:
        self.scenario = scenario
        self.backend = ScriptedBackend(
            [reply for _, reply in scenario.turns], native_tools=scenario.native_tools,
        )
        self.ledger = InMemoryLedger(currency=settings.store.currency)
        self.orchestrator = TurnOrchestrator(
            gateway=ModelGateway(self.backend, RetryPolicy(max_attempts=1)),
            dispatcher=CommandDispatcher(
                InMemoryCatalog(), self.ledger, InMemoryStoreConfiguration(
                    default_store_id=settings.store.store_id,
                ),
            ),
            cache=PersonaTemplateCache(),
            session=SessionContext(persona=scenario.persona),
        )

    def assistant_say(self, text: str) -> None:
        title = self.orchestrator.persona.staff_title
        print(f"{GREEN}{BOLD}[{title}]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def show_result(self, result: TurnResult) -> None:
        for outcome in result.dispatch_outcomes:
            colour = YELLOW if outcome.needs_confirmation else (GREEN if outcome.succeeded else RED)
            detail = outcome.error_kind.value if outcome.error_kind else outcome.message
            self.system_log(f"{colour}{outcome.operation}: {outcome.status.value}{RESET}{DIM} ({detail})")
        for diagnostic in result.diagnostics:
            self.system_log(f"{RED}malformed: {diagnostic.fragment}{RESET}")
        self.assistant_say(result.acknowledgment_text)
        cart = ", ".join(line.render() for line in self.orchestrator.session.cart) or "(empty)"
        self.system_log(f"Phase: {result.phase.value} | Cart: {cart}")

    async def run(self, name: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  POS ASSISTANT - Scenario: {name}{RESET}")
        print(f"{BOLD}  Store: {settings.store.store_name} | Persona: {self.scenario.persona}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

        self.assistant_say(self.orchestrator.opening())
        for utterance, _ in self.scenario.turns:
            print(f"\n{BLUE}[Customer] {RESET}{utterance}")
            result = await self.orchestrator.handle_turn(utterance)
            self.show_result(result)

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{name}' complete.{RESET}")
        print(f"{DIM}  Phase trace: {' -> '.join(self.orchestrator.machine.get_state_trace())}{RESET}")
        for receipt in self.ledger.receipts:
            print(f"{DIM}  Receipt {receipt.transaction_id}: {receipt.total} {receipt.currency} "
                  f"via {receipt.payment_method_id}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(SCENARIOS),
        default="barista",
        help="Scripted conversation to play",
    )
    args = parser.parse_args()

    session = ConsoleSession(SCENARIOS[args.scenario])
    asyncio.run(session.run(args.scenario))


if __name__ == "__main__":
    main()
