"""
Per-session turn worker.

One TurnOrchestrator owns one SessionContext and serializes its turns
with an asyncio.Lock. A turn runs:

    input guardrail -> prompt assembly -> model gateway (the only await)
    -> extraction (text-only backends) -> completion detection
    -> dispatch -> resume ordering -> acknowledgment

If the model call fails or times out, the turn ends with an apology and
the session is left exactly as it was.
"""

import asyncio
from collections import defaultdict
from decimal import Decimal
from typing import Optional

from pos_assistant.config import settings
from pos_assistant.conversation.completion import CompletionAnalysis, CompletionDetector
from pos_assistant.conversation.dispatcher import CommandDispatcher
from pos_assistant.conversation.extractor import ToolCallExtractor
from pos_assistant.conversation.guardrails import InputGuardrail, ResponseGuardrail
from pos_assistant.conversation.state_machine import ConversationStateMachine, TransitionTrigger
from pos_assistant.errors import ErrorKind, ProviderUnavailable
from pos_assistant.gateway.gateway import ModelGateway
from pos_assistant.logging_context import get_session_logger, set_session_id
from pos_assistant.prompts.persona_cache import PersonaTemplateCache
from pos_assistant.prompts.prompt_templates import (
    PromptAssembler,
    build_clarification_text,
    build_payment_prompt,
    join_options,
)
from pos_assistant.schemas.persona_schema import PersonaTemplate
from pos_assistant.schemas.session_schema import Phase, SessionContext, Speaker
from pos_assistant.schemas.tool_schema import MalformedToolCall, ToolSchema
from pos_assistant.schemas.turn_schema import DispatchOutcome, DispatchResult, TurnResult
from pos_assistant.tools import operations as ops
from pos_assistant.tools.operations import POS_TOOL_SCHEMAS
from pos_assistant.utils import contains_phrase, format_money, normalize_phrase

logger = get_session_logger(__name__)

_CLARIFY_KINDS = (ErrorKind.LOW_CONFIDENCE, ErrorKind.UNKNOWN_OPERATION, ErrorKind.MALFORMED_TOOL_CALL)


def _fill(template: str, **values: object) -> str:
    """str.format that leaves unknown placeholders empty instead of raising."""
    return template.format_map(defaultdict(str, values)).strip()


class TurnOrchestrator:
    """Runs customer turns for a single session, one at a time."""

    def __init__(
        self,
        gateway: ModelGateway,
        dispatcher: CommandDispatcher,
        cache: PersonaTemplateCache,
        session: Optional[SessionContext] = None,
        tools: Optional[list[ToolSchema]] = None,
        assembler: Optional[PromptAssembler] = None,
        probe_before_turn: bool = settings.model.probe_before_turn,
    ) -> None:
        self.session = session or SessionContext()
        self.machine = ConversationStateMachine(self.session)
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._persona: PersonaTemplate = cache.get(self.session.persona)
        self._tools = list(tools if tools is not None else POS_TOOL_SCHEMAS)
        self._assembler = assembler or PromptAssembler(cache, history_window=self.session.history_window)
        self._extractor = ToolCallExtractor(self._tools)
        self._detector = CompletionDetector()
        self._input_guard = InputGuardrail()
        self._response_guard = ResponseGuardrail(self._extractor)
        self._probe = probe_before_turn
        self._lock = asyncio.Lock()
        self._fatal_kind: Optional[ErrorKind] = None

    @property
    def persona(self) -> PersonaTemplate:
        return self._persona

    @property
    def is_fatal(self) -> bool:
        return self._fatal_kind is not None

    async def aclose(self) -> None:
        await self._gateway.aclose()

    def opening(self) -> str:
        """The persona's greeting, recorded as the first assistant turn."""
        text = self._persona.phrases.greeting
        self.session.record_turn(Speaker.ASSISTANT, text)
        return text

    async def handle_turn(self, utterance: str, timeout: Optional[float] = None) -> TurnResult:
        """Process one customer utterance. ``timeout`` bounds the model call."""
        async with self._lock:
            set_session_id(self.session.session_id)
            return await self._run_turn(utterance, timeout)

    async def _run_turn(self, utterance: str, timeout: Optional[float]) -> TurnResult:
        phrases = self._persona.phrases

        if self._fatal_kind is not None:
            return self._result(phrases.service_unavailable, error_kind=self._fatal_kind, fatal=True)

        check = self._input_guard.check(utterance)
        if not check.passed:
            logger.info("Input rejected: %s", check.message)
            return self._result(phrases.clarification, error_kind=ErrorKind.INVALID_INPUT)

        if self._probe and not await self._gateway.is_available():
            logger.warning("Model provider unavailable; refusing turn")
            return self._result(phrases.apology, error_kind=ErrorKind.PROVIDER_UNAVAILABLE)

        prompt = self._assembler.build(self.session.persona, self.session, utterance)
        try:
            generation = await asyncio.wait_for(
                self._gateway.generate_with_tools(prompt, self._tools), timeout
            )
        except ProviderUnavailable as e:
            logger.error("Turn failed, provider unavailable: %s", e)
            return self._result(phrases.apology, error_kind=ErrorKind.PROVIDER_UNAVAILABLE, fatal=True)
        except asyncio.TimeoutError:
            logger.warning("Model call exceeded the %.1fs turn timeout", timeout)
            return self._result(phrases.apology, error_kind=ErrorKind.PROVIDER_UNAVAILABLE)

        if self.session.phase == Phase.GREETING:
            self.machine.transition(TransitionTrigger.CUSTOMER_SPOKE)

        invocations = list(generation.invocations)
        diagnostics: list[MalformedToolCall] = list(generation.diagnostics)
        if not invocations and not self._gateway.supports_native_tools:
            extraction = self._extractor.extract(generation.text)
            invocations = extraction.invocations
            diagnostics.extend(extraction.diagnostics)

        analysis = self._detector.analyze(self._persona, utterance, invocations)
        entered_completion = self._enter_completion(analysis)

        dispatch = self._dispatcher.dispatch(
            invocations,
            self.session,
            self.machine,
            new_transaction_signalled=self._new_transaction_requested(utterance),
        )
        if not entered_completion:
            self._resume_ordering(analysis, dispatch, diagnostics)

        self.session.record_turn(Speaker.CUSTOMER, utterance)
        result = self._acknowledge(generation.text, dispatch, diagnostics, entered_completion)
        self.session.record_turn(Speaker.ASSISTANT, result.acknowledgment_text)
        return result

    # ------------------------------------------------------------------ #
    # Phase handling
    # ------------------------------------------------------------------ #

    def _enter_completion(self, analysis: CompletionAnalysis) -> bool:
        if self.session.phase == Phase.ORDERING and analysis.completed:
            self.machine.transition(TransitionTrigger.COMPLETION_SIGNALLED)
            logger.info("Customer finished ordering (%r)", analysis.signal.phrase if analysis.signal else "")
            return True
        return False

    def _resume_ordering(
        self,
        analysis: CompletionAnalysis,
        dispatch: DispatchResult,
        diagnostics: list[MalformedToolCall],
    ) -> None:
        """Back to ordering once a new item actually landed in the order.

        A continuation marker with no ordering invocation ("oh, and also...")
        resumes on its own, but only on an otherwise clean turn.
        """
        if self.session.phase != Phase.COMPLETION_PENDING or analysis.completed:
            return
        ordering = [
            o for o in dispatch.outcomes
            if ops.OPERATION_CATEGORIES.get(o.operation) == ops.OperationCategory.ORDERING
        ]
        if ordering:
            resume = any(o.succeeded for o in ordering)
        else:
            resume = analysis.new_item_mentioned and not dispatch.failures and not diagnostics
        if resume:
            self.machine.transition(TransitionTrigger.ORDERING_RESUMED)
            logger.info("Customer resumed ordering")

    def _new_transaction_requested(self, utterance: str) -> bool:
        text = normalize_phrase(utterance)
        return any(
            contains_phrase(text, normalize_phrase(p.text)) >= 0
            for p in self._persona.new_transaction_phrases
        )

    # ------------------------------------------------------------------ #
    # Acknowledgment
    # ------------------------------------------------------------------ #

    def _acknowledge(
        self,
        model_text: str,
        dispatch: DispatchResult,
        diagnostics: list[MalformedToolCall],
        entered_completion: bool,
    ) -> TurnResult:
        phrases = self._persona.phrases

        fatal = dispatch.fatal_outcome()
        if fatal is not None:
            self._fatal_kind = fatal.error_kind
            logger.error("Session-fatal dispatch outcome: %s", fatal.message)
            return self._result(
                phrases.service_unavailable, dispatch, diagnostics,
                error_kind=fatal.error_kind, fatal=True,
            )

        error_kind: Optional[ErrorKind] = None
        if dispatch.failures:
            error_kind = dispatch.failures[0].error_kind
        elif diagnostics:
            error_kind = ErrorKind.MALFORMED_TOOL_CALL

        prose = self._response_guard.usable_prose(model_text)
        if prose and error_kind is None and not dispatch.confirmations:
            return self._result(prose, dispatch, diagnostics)

        parts: list[str] = []
        payment_prompted = False
        confirmations = dispatch.confirmations
        if confirmations:
            summaries = [self._summarize(o) for o in confirmations]
            parts.append(f"{phrases.confirmation_prefix} {' '.join(s for s in summaries if s)}".strip())

        for outcome in dispatch.outcomes:
            if outcome.needs_confirmation:
                continue
            if outcome.succeeded:
                if outcome.operation == ops.LOAD_PAYMENT_METHODS:
                    parts.append(self._payment_prompt())
                    payment_prompted = True
                else:
                    summary = self._summarize(outcome)
                    if summary:
                        parts.append(summary)
            else:
                parts.append(self._clarify(outcome))

        if diagnostics and not dispatch.outcomes:
            parts.append(phrases.clarification)

        if entered_completion and not payment_prompted and self.session.phase != Phase.CLOSED:
            parts.append(self._payment_prompt())
        elif not parts:
            parts.append(prose or (
                phrases.anything_else if self.session.phase == Phase.ORDERING else phrases.clarification
            ))

        text = " ".join(p for p in parts if p)
        return self._result(text, dispatch, diagnostics, error_kind=error_kind)

    def _summarize(self, outcome: DispatchOutcome) -> str:
        phrases = self._persona.phrases
        data = outcome.data
        operation = outcome.operation
        if operation == ops.ADD_ITEM:
            return _fill(phrases.added, quantity=data.get("quantity", 1), item=data.get("item", ""))
        if operation == ops.VOID_LINE or (operation == ops.UPDATE_QUANTITY and data.get("quantity") == 0):
            return _fill(phrases.removed, item=data.get("item", ""))
        if operation == ops.UPDATE_QUANTITY:
            return _fill(phrases.updated, item=data.get("item", ""), quantity=data.get("quantity", ""))
        if operation in (ops.CALCULATE_TOTAL, ops.VERIFY_ORDER):
            return _fill(phrases.total, total=data.get("total", ""))
        if operation == ops.PROCESS_PAYMENT:
            return _fill(phrases.payment_done, amount=data.get("amount", ""), method=data.get("method", ""))
        if operation == ops.START_NEW_TRANSACTION:
            return phrases.new_transaction
        if operation in (ops.SEARCH_PRODUCTS, ops.GET_POPULAR_ITEMS):
            names = [r["name"] for r in data.get("results", [])]
            return _fill(phrases.alternatives, options=join_options(names[:3])) if names else ""
        if operation == ops.LOAD_PAYMENT_METHODS:
            return self._payment_prompt()
        if operation == ops.LOAD_MENU_CONTEXT:
            return ""
        return outcome.message

    def _clarify(self, outcome: DispatchOutcome) -> str:
        phrases = self._persona.phrases
        if outcome.error_kind in _CLARIFY_KINDS:
            return phrases.clarification
        if outcome.error_kind == ErrorKind.UNKNOWN_PRODUCT:
            requested = outcome.data.get("requested", {})
            item = (
                requested.get("item_description")
                or requested.get("search_term")
                or requested.get("product_identifier")
                or ""
            )
            return build_clarification_text(
                item, outcome.alternatives, phrases.unknown_product, phrases.alternatives
            )
        if outcome.alternatives:
            options = join_options(outcome.alternatives[:3])
            return f"{outcome.message} {_fill(phrases.alternatives, options=options)}"
        return outcome.message

    def _payment_prompt(self) -> str:
        total = self.session.running_total if self.session.running_total is not None else Decimal("0")
        rendered = format_money(total, self.session.currency)
        return build_payment_prompt(self._persona.payment_prompt(self.session.locale), rendered)

    def _result(
        self,
        text: str,
        dispatch: Optional[DispatchResult] = None,
        diagnostics: Optional[list[MalformedToolCall]] = None,
        error_kind: Optional[ErrorKind] = None,
        fatal: bool = False,
    ) -> TurnResult:
        return TurnResult(
            acknowledgment_text=text,
            phase=self.session.phase,
            dispatch_outcomes=list(dispatch.outcomes) if dispatch else [],
            error_kind=error_kind,
            fatal=fatal,
            diagnostics=list(diagnostics or []),
        )
