"""
Command validation and dispatch against the POS collaborators.

Every invocation from one turn goes through two passes:

1. Structural validation over the whole list: operation lookup, argument
   parsing, and confidence gating. Nothing executes in this pass.
2. Execution in invocation order: phase gating, catalog resolution, and
   ledger mutation. State machine hooks fire after each success, so a
   later invocation in the same turn sees the phase an earlier one set.

Failures become DispatchOutcome records tagged with an ErrorKind. Nothing
here raises to the caller, and nothing here is retried.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

from pos_assistant.config import settings
from pos_assistant.conversation.state_machine import ConversationStateMachine, TransitionTrigger
from pos_assistant.errors import ErrorKind, LedgerError
from pos_assistant.logging_context import get_session_logger
from pos_assistant.schemas.session_schema import CartLine, Phase, SessionContext
from pos_assistant.schemas.store_schema import PaymentMethodDescriptor, ProductInfo
from pos_assistant.schemas.tool_schema import ToolInvocation
from pos_assistant.schemas.turn_schema import DispatchOutcome, DispatchResult, OutcomeStatus
from pos_assistant.tools import operations as ops
from pos_assistant.tools.catalog import ProductCatalog
from pos_assistant.tools.ledger import TransactionLedger
from pos_assistant.tools.modifiers import ModifierSplit, contains_modifier, split_modifiers, strip_filler
from pos_assistant.tools.operations import OPERATION_CATEGORIES, OperationCategory
from pos_assistant.tools.store import StoreConfiguration
from pos_assistant.utils import format_money, normalize_phrase

logger = get_session_logger(__name__)

_NUMBER_WORDS = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10, "a": 1, "an": 1,
}


class _Rejection(Exception):
    """Internal signal: turn the current invocation into a rejected outcome."""

    def __init__(self, kind: ErrorKind, message: str, alternatives: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.alternatives = alternatives or []


@dataclass
class _Planned:
    invocation: ToolInvocation
    arguments: dict[str, Any]
    confirming: bool


@dataclass
class _TurnState:
    new_transaction_signalled: bool = False
    reset_done: bool = False
    outcomes: list[DispatchOutcome] = field(default_factory=list)


class CommandDispatcher:
    """Validates invocations and executes them against catalog, ledger, and store."""

    def __init__(
        self,
        catalog: ProductCatalog,
        ledger: TransactionLedger,
        store: StoreConfiguration,
        store_id: str = settings.store.store_id,
        execute_threshold: float = settings.dispatch.execute_threshold,
        confirm_threshold: float = settings.dispatch.confirm_threshold,
        max_search_results: int = settings.dispatch.max_search_results,
    ) -> None:
        if not 0.0 <= execute_threshold <= confirm_threshold <= 1.0:
            raise ValueError(
                f"Thresholds must satisfy 0 <= execute <= confirm <= 1, "
                f"got {execute_threshold} / {confirm_threshold}"
            )
        self._catalog = catalog
        self._ledger = ledger
        self._store = store
        self._store_id = store_id
        self.execute_threshold = execute_threshold
        self.confirm_threshold = confirm_threshold
        self._max_search_results = max_search_results

        self._validators: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
            ops.ADD_ITEM: self._validate_add_item,
            ops.VOID_LINE: self._validate_void_line,
            ops.UPDATE_QUANTITY: self._validate_update_quantity,
            ops.SEARCH_PRODUCTS: self._validate_search,
            ops.GET_PRODUCT_INFO: self._validate_product_info,
            ops.GET_POPULAR_ITEMS: self._validate_popular_items,
            ops.LOAD_MENU_CONTEXT: self._validate_menu_context,
            ops.CALCULATE_TOTAL: _no_arguments,
            ops.VERIFY_ORDER: _no_arguments,
            ops.LOAD_PAYMENT_METHODS: _no_arguments,
            ops.PROCESS_PAYMENT: self._validate_process_payment,
            ops.START_NEW_TRANSACTION: _no_arguments,
        }
        self._handlers: dict[
            str, Callable[[dict[str, Any], SessionContext, ConversationStateMachine, _TurnState], tuple[str, dict]]
        ] = {
            ops.ADD_ITEM: self._add_item,
            ops.VOID_LINE: self._void_line,
            ops.UPDATE_QUANTITY: self._update_quantity,
            ops.SEARCH_PRODUCTS: self._search_products,
            ops.GET_PRODUCT_INFO: self._get_product_info,
            ops.GET_POPULAR_ITEMS: self._get_popular_items,
            ops.LOAD_MENU_CONTEXT: self._load_menu_context,
            ops.CALCULATE_TOTAL: self._calculate_total,
            ops.VERIFY_ORDER: self._verify_order,
            ops.LOAD_PAYMENT_METHODS: self._load_payment_methods,
            ops.PROCESS_PAYMENT: self._process_payment,
            ops.START_NEW_TRANSACTION: self._start_new_transaction,
        }

    def dispatch(
        self,
        invocations: list[ToolInvocation],
        session: SessionContext,
        machine: Optional[ConversationStateMachine] = None,
        new_transaction_signalled: bool = False,
    ) -> DispatchResult:
        """Validate then execute ``invocations`` in order; never raises."""
        machine = machine or ConversationStateMachine(session)
        turn = _TurnState(new_transaction_signalled=new_transaction_signalled)

        planned: list[Optional[_Planned]] = []
        early: dict[int, DispatchOutcome] = {}
        for index, invocation in enumerate(invocations):
            plan_or_outcome = self._validate(invocation)
            if isinstance(plan_or_outcome, DispatchOutcome):
                early[index] = plan_or_outcome
                planned.append(None)
            else:
                planned.append(plan_or_outcome)

        for index, plan in enumerate(planned):
            if plan is None:
                turn.outcomes.append(early[index])
                continue
            turn.outcomes.append(self._execute(plan, session, machine, turn))

        result = DispatchResult(outcomes=turn.outcomes)
        logger.info(
            "Dispatched %d invocation(s): %s (phase=%s)",
            len(invocations), result.status.value, session.phase.value,
        )
        return result

    # ------------------------------------------------------------------ #
    # Pass 1: structural validation
    # ------------------------------------------------------------------ #

    def _validate(self, invocation: ToolInvocation) -> "_Planned | DispatchOutcome":
        validator = self._validators.get(invocation.name)
        if validator is None:
            logger.warning("Unknown operation requested: %s", invocation.name)
            return self._rejected(
                invocation, ErrorKind.UNKNOWN_OPERATION, f"Unknown operation '{invocation.name}'."
            )

        if invocation.confidence < self.execute_threshold:
            logger.info(
                "Not executing %s: confidence %.2f below %.2f",
                invocation.name, invocation.confidence, self.execute_threshold,
            )
            return self._rejected(
                invocation, ErrorKind.LOW_CONFIDENCE,
                f"Not sure what was meant by '{invocation.name}({invocation.raw_arguments})'.",
            )

        try:
            arguments = validator(dict(invocation.arguments))
        except _Rejection as r:
            return self._rejected(invocation, r.kind, r.message, r.alternatives)

        return _Planned(
            invocation=invocation,
            arguments=arguments,
            confirming=invocation.confidence < self.confirm_threshold,
        )

    def _validate_add_item(self, args: dict[str, Any]) -> dict[str, Any]:
        description = _str_arg(args, "item_description", required=True)
        return {
            "item_description": description,
            "quantity": _int_arg(args, "quantity", minimum=1, default=1),
            "preparation_notes": _str_arg(args, "preparation_notes"),
        }

    def _validate_void_line(self, args: dict[str, Any]) -> dict[str, Any]:
        line_number = _int_arg(args, "line_number", minimum=1, default=None)
        description = _str_arg(args, "item_description")
        if line_number is None and not description:
            raise _Rejection(ErrorKind.INVALID_ARGUMENTS, "Which item should be removed?")
        return {"line_number": line_number, "item_description": description}

    def _validate_update_quantity(self, args: dict[str, Any]) -> dict[str, Any]:
        return {
            "line_number": _int_arg(args, "line_number", minimum=1, required=True),
            "new_quantity": _int_arg(args, "new_quantity", minimum=0, required=True),
        }

    def _validate_search(self, args: dict[str, Any]) -> dict[str, Any]:
        term = _str_arg(args, "search_term", required=True)
        if contains_modifier(term) and self._exact_product(term) is None:
            base = split_modifiers(term).base_name
            if base and self._active_matches(base):
                raise _Rejection(
                    ErrorKind.INVALID_ARGUMENTS,
                    f"Search by base product name only (for example '{base}'), not '{term}'.",
                )
        max_results = _int_arg(args, "max_results", minimum=1, default=self._max_search_results)
        return {"search_term": term, "max_results": min(max_results, 20)}

    def _validate_product_info(self, args: dict[str, Any]) -> dict[str, Any]:
        return {"product_identifier": _str_arg(args, "product_identifier", required=True)}

    def _validate_popular_items(self, args: dict[str, Any]) -> dict[str, Any]:
        return {"count": min(_int_arg(args, "count", minimum=1, default=5), 20)}

    def _validate_menu_context(self, args: dict[str, Any]) -> dict[str, Any]:
        return {"include_categories": _bool_arg(args, "include_categories", default=True)}

    def _validate_process_payment(self, args: dict[str, Any]) -> dict[str, Any]:
        method = _str_arg(args, "payment_method", required=True)
        amount = args.get("amount")
        if amount in (None, ""):
            return {"payment_method": method, "amount": None}
        if isinstance(amount, bool):
            raise _Rejection(ErrorKind.INVALID_ARGUMENTS, "Payment amount must be a number.")
        try:
            value = Decimal(str(amount).strip().lstrip("$"))
        except InvalidOperation:
            raise _Rejection(ErrorKind.INVALID_ARGUMENTS, f"Payment amount {amount!r} is not a number.") from None
        if value < 0:
            raise _Rejection(ErrorKind.INVALID_ARGUMENTS, "Payment amount must not be negative.")
        return {"payment_method": method, "amount": value}

    # ------------------------------------------------------------------ #
    # Pass 2: execution
    # ------------------------------------------------------------------ #

    def _execute(
        self,
        plan: _Planned,
        session: SessionContext,
        machine: ConversationStateMachine,
        turn: _TurnState,
    ) -> DispatchOutcome:
        invocation = plan.invocation
        try:
            self._check_phase(invocation.name, session, machine, turn)
            message, data = self._handlers[invocation.name](plan.arguments, session, machine, turn)
        except _Rejection as r:
            logger.info("Rejected %s: %s (%s)", invocation.name, r.message, r.kind.value)
            return self._rejected(invocation, r.kind, r.message, r.alternatives)
        except LedgerError as e:
            logger.warning("Ledger rejected %s: %s", invocation.name, e)
            return self._rejected(invocation, ErrorKind.LEDGER_REJECTED, str(e))

        status = OutcomeStatus.CONFIRMING if plan.confirming else OutcomeStatus.EXECUTED
        logger.debug("%s %s: %s", invocation.name, status.value, message)
        return DispatchOutcome(
            call_id=invocation.call_id,
            operation=invocation.name,
            status=status,
            message=message,
            confidence=invocation.confidence,
            data=data,
        )

    def _check_phase(
        self,
        name: str,
        session: SessionContext,
        machine: ConversationStateMachine,
        turn: _TurnState,
    ) -> None:
        category = OPERATION_CATEGORIES[name]

        if not machine.category_allowed(category):
            if category == OperationCategory.ORDERING:
                if turn.new_transaction_signalled and not turn.reset_done:
                    self._reset(session, machine)
                    turn.reset_done = True
                    return
                raise _Rejection(
                    ErrorKind.INVALID_PHASE_TRANSITION,
                    f"Cannot change the order while {session.phase.value.replace('_', ' ')}.",
                )
            if session.phase == Phase.CLOSED:
                raise _Rejection(ErrorKind.INVALID_PHASE_TRANSITION, "This order is already paid.")
            raise _Rejection(
                ErrorKind.INVALID_PHASE_TRANSITION,
                f"{name} is not allowed while {session.phase.value.replace('_', ' ')}.",
            )

        if name == ops.PROCESS_PAYMENT:
            if not session.payment_methods_loaded:
                raise _Rejection(
                    ErrorKind.INVALID_PHASE_TRANSITION,
                    "Payment methods have not been loaded for this order yet.",
                )
            if session.phase != Phase.AWAITING_PAYMENT:
                raise _Rejection(
                    ErrorKind.INVALID_PHASE_TRANSITION,
                    f"Cannot take payment while {session.phase.value.replace('_', ' ')}.",
                )

    def _reset(self, session: SessionContext, machine: ConversationStateMachine) -> None:
        if session.last_receipt is None:
            # Unpaid lines still sit on the ledger; void them before starting over.
            for line in list(session.cart):
                try:
                    self._ledger.remove_line(line.line_id)
                except LedgerError as e:
                    logger.warning("Could not void %s during reset: %s", line.line_id, e)

        if machine.can_transition(TransitionTrigger.NEW_TRANSACTION):
            machine.transition(TransitionTrigger.NEW_TRANSACTION)
        else:
            session.clear_transaction()
            if machine.can_transition(TransitionTrigger.ORDERING_RESUMED):
                machine.transition(TransitionTrigger.ORDERING_RESUMED)
        logger.info("Session reset for a new transaction")

    # ------------------------------------------------------------------ #
    # Handlers: each returns (message, data) or raises _Rejection / LedgerError
    # ------------------------------------------------------------------ #

    def _add_item(self, args, session, machine, turn):
        product, notes, search_term = self._resolve_description(
            args["item_description"], args["preparation_notes"]
        )
        quantity = args["quantity"]

        line_id = self._ledger.add_line(product.sku, quantity, notes, product.base_price)
        session.append_line(CartLine(
            line_id=line_id,
            sku=product.sku,
            display_name=product.display_name,
            quantity=quantity,
            unit_price=product.base_price,
            preparation_notes=notes,
        ))
        self._refresh_totals(session)
        return (
            f"Added {quantity} x {product.display_name}",
            {
                "sku": product.sku,
                "item": product.display_name,
                "quantity": quantity,
                "notes": notes,
                "search_term": search_term,
                "line_number": len(session.cart),
                "total": _money(session),
            },
        )

    def _void_line(self, args, session, machine, turn):
        line = self._find_cart_line(session, args["line_number"], args["item_description"])
        self._ledger.remove_line(line.line_id)
        session.drop_line(line.line_id)
        self._refresh_totals(session)
        return (
            f"Removed {line.display_name}",
            {"sku": line.sku, "item": line.display_name, "total": _money(session)},
        )

    def _update_quantity(self, args, session, machine, turn):
        line = self._find_cart_line(session, args["line_number"], "")
        new_quantity = args["new_quantity"]
        if new_quantity == 0:
            self._ledger.remove_line(line.line_id)
            session.drop_line(line.line_id)
            self._refresh_totals(session)
            return (
                f"Removed {line.display_name}",
                {"sku": line.sku, "item": line.display_name, "quantity": 0, "total": _money(session)},
            )

        new_line_id = self._ledger.add_line(
            line.sku, new_quantity, line.preparation_notes, line.unit_price
        )
        try:
            self._ledger.remove_line(line.line_id)
        except LedgerError:
            self._ledger.remove_line(new_line_id)
            raise
        session.replace_line(line.line_id, line.with_quantity(new_quantity, new_line_id))
        self._refresh_totals(session)
        return (
            f"{line.display_name} quantity is now {new_quantity}",
            {"sku": line.sku, "item": line.display_name, "quantity": new_quantity, "total": _money(session)},
        )

    def _search_products(self, args, session, machine, turn):
        results = [p for p in self._catalog.search(args["search_term"], args["max_results"]) if p.active]
        if not results:
            raise _Rejection(
                ErrorKind.UNKNOWN_PRODUCT,
                f"Nothing on the menu matches '{args['search_term']}'.",
                self._suggest(args["search_term"]),
            )
        return f"Found {len(results)} product(s)", {"results": [_product_row(p) for p in results]}

    def _get_product_info(self, args, session, machine, turn):
        identifier = args["product_identifier"]
        product = self._exact_product(identifier)
        if product is None:
            results = self._catalog.search(identifier, 1)
            if not results:
                raise _Rejection(
                    ErrorKind.UNKNOWN_PRODUCT,
                    f"Nothing on the menu matches '{identifier}'.",
                    self._suggest(identifier),
                )
            product = results[0]
        price = format_money(product.base_price, session.currency)
        availability = "available" if product.active else "not available right now"
        return (
            f"{product.display_name} is {price} and {availability}.",
            {
                "sku": product.sku,
                "item": product.display_name,
                "price": price,
                "category": product.category or "",
                "available": product.active,
            },
        )

    def _get_popular_items(self, args, session, machine, turn):
        products = self._catalog.popular(args["count"])
        return f"Top {len(products)} popular item(s)", {"results": [_product_row(p) for p in products]}

    def _load_menu_context(self, args, session, machine, turn):
        products = [p for p in self._catalog.list_products() if p.active]
        if not products:
            logger.error("Catalog has no active products; cannot load the menu")
            raise _Rejection(ErrorKind.CONFIGURATION_MISSING, "The menu for this store is empty.")
        session.menu = tuple(products)
        data: dict[str, Any] = {"items": len(products)}
        if args["include_categories"]:
            data["categories"] = sorted({p.category or "other" for p in products})
        return f"Loaded {len(products)} menu item(s)", data

    def _calculate_total(self, args, session, machine, turn):
        self._refresh_totals(session)
        return f"Total is {_money(session)}", {"total": _money(session)}

    def _verify_order(self, args, session, machine, turn):
        self._refresh_totals(session)
        return (
            f"{session.item_count} item(s), total {_money(session)}",
            {"lines": [line.render() for line in session.cart], "total": _money(session)},
        )

    def _load_payment_methods(self, args, session, machine, turn):
        methods = [m for m in self._store.payment_methods(self._store_id) if m.enabled]
        if not methods:
            logger.error("Store %s has no enabled payment methods", self._store_id)
            raise _Rejection(
                ErrorKind.CONFIGURATION_MISSING,
                f"No payment methods are configured for store {self._store_id}.",
            )
        session.payment_methods = tuple(methods)
        if machine.can_transition(TransitionTrigger.PAYMENT_METHODS_LOADED):
            machine.transition(TransitionTrigger.PAYMENT_METHODS_LOADED)
        self._refresh_totals(session)
        names = [m.display_name for m in methods]
        return (
            f"Accepted payment methods: {', '.join(names)}",
            {"methods": names, "total": _money(session)},
        )

    def _process_payment(self, args, session, machine, turn):
        if not session.cart:
            raise _Rejection(ErrorKind.INVALID_ARGUMENTS, "There is nothing to pay for yet.")
        method = self._resolve_payment_method(session, args["payment_method"])
        total = self._ledger.totals().total
        amount = args["amount"] if args["amount"] is not None else total
        if amount < method.minimum_amount:
            raise _Rejection(
                ErrorKind.INVALID_ARGUMENTS,
                f"{method.display_name} needs a minimum of "
                f"{format_money(method.minimum_amount, session.currency)}.",
                [m.display_name for m in session.payment_methods or () if m.method_id != method.method_id],
            )

        receipt = self._ledger.finalize(method.method_id, amount)
        session.last_receipt = receipt
        session.running_total = receipt.total
        machine.transition(TransitionTrigger.PAYMENT_PROCESSED)
        return (
            f"Paid {format_money(receipt.amount_tendered, receipt.currency)} by {method.display_name}",
            {
                "method": method.display_name,
                "amount": format_money(receipt.amount_tendered, receipt.currency),
                "change": format_money(receipt.change_due, receipt.currency),
                "transaction_id": receipt.transaction_id,
            },
        )

    def _start_new_transaction(self, args, session, machine, turn):
        if not turn.reset_done:
            self._reset(session, machine)
            turn.reset_done = True
        return "Started a new transaction", {}

    # ------------------------------------------------------------------ #
    # Resolution helpers
    # ------------------------------------------------------------------ #

    def _resolve_description(self, description: str, extra_notes: str) -> tuple[ProductInfo, str, str]:
        """Product, preparation notes, and the name that was looked up.

        The whole description is tried as a product name first, so
        "Hot Chocolate" is not read as a hot "Chocolate".
        """
        product = self._exact_product(description)
        if product is not None:
            return product, extra_notes, product.display_name

        split = split_modifiers(description)
        base_name = split.base_name or description.strip()
        if split.base_name and split.modifiers:
            # "large hot chocolate": one modifier may belong to the name.
            candidates = self._active_matches(base_name)
            for modifier in split.modifiers:
                key = f"{modifier} {base_name}".casefold()
                named = next((p for p in candidates if p.display_name.casefold() == key), None)
                if named is not None:
                    rest = ModifierSplit(base_name, [m for m in split.modifiers if m != modifier])
                    return named, rest.notes(extra_notes), named.display_name
        return self._resolve_product(base_name), split.notes(extra_notes), base_name

    def _exact_product(self, description: str) -> Optional[ProductInfo]:
        """Active product whose name or SKU is the whole description, filler words aside."""
        terms: list[str] = []
        for candidate in (description.strip(), strip_filler(description)):
            if candidate and candidate.casefold() not in {t.casefold() for t in terms}:
                terms.append(candidate)
        keys = {t.casefold() for t in terms}
        for term in terms:
            for product in self._active_matches(term):
                if product.display_name.casefold() in keys or product.sku.casefold() in keys:
                    return product
        return None

    def _active_matches(self, term: str) -> list[ProductInfo]:
        return [p for p in self._catalog.search(term, self._max_search_results) if p.active]

    def _resolve_product(self, base_name: str) -> ProductInfo:
        active = self._active_matches(base_name)
        key = base_name.casefold()
        for product in active:
            if product.display_name.casefold() == key or product.sku.casefold() == key:
                return product
        if len(active) == 1:
            return active[0]

        alternatives = [p.display_name for p in active] if active else self._suggest(base_name)
        raise _Rejection(
            ErrorKind.UNKNOWN_PRODUCT,
            f"Could not find a single product for '{base_name}'.",
            alternatives,
        )

    def _suggest(self, term: str) -> list[str]:
        """Broader per-word search used to offer alternatives."""
        suggestions: list[str] = []
        for word in normalize_phrase(term).split():
            if len(word) < 3:
                continue
            for product in self._catalog.search(word, self._max_search_results):
                if product.active and product.display_name not in suggestions:
                    suggestions.append(product.display_name)
        return suggestions[:3]

    def _find_cart_line(self, session: SessionContext, line_number: Optional[int], description: str) -> CartLine:
        if line_number is not None:
            if line_number > len(session.cart):
                raise _Rejection(
                    ErrorKind.INVALID_ARGUMENTS,
                    f"There is no line {line_number}; the order has {len(session.cart)} line(s).",
                    [line.display_name for line in session.cart],
                )
            return session.cart[line_number - 1]

        whole = normalize_phrase(strip_filler(description))
        wanted = normalize_phrase(split_modifiers(description).base_name or description)
        for key in dict.fromkeys([whole, wanted]):
            for line in session.cart:
                if normalize_phrase(line.display_name) == key or line.sku.casefold() == key:
                    return line
        for line in session.cart:
            if wanted and wanted in normalize_phrase(line.display_name):
                return line
        raise _Rejection(
            ErrorKind.UNKNOWN_PRODUCT,
            f"'{description}' is not in the order.",
            [line.display_name for line in session.cart],
        )

    def _resolve_payment_method(self, session: SessionContext, requested: str) -> PaymentMethodDescriptor:
        wanted = normalize_phrase(requested)
        methods = session.payment_methods or ()
        for method in methods:
            if wanted in (normalize_phrase(method.method_id), normalize_phrase(method.display_name)):
                return method
        for method in methods:
            if normalize_phrase(method.type_tag) == wanted:
                return method
        raise _Rejection(
            ErrorKind.INVALID_ARGUMENTS,
            f"'{requested}' is not an accepted payment method.",
            [m.display_name for m in methods],
        )

    def _refresh_totals(self, session: SessionContext) -> None:
        session.running_total = self._ledger.totals().total

    @staticmethod
    def _rejected(
        invocation: ToolInvocation,
        kind: ErrorKind,
        message: str,
        alternatives: Optional[list[str]] = None,
    ) -> DispatchOutcome:
        return DispatchOutcome(
            call_id=invocation.call_id,
            operation=invocation.name,
            status=OutcomeStatus.REJECTED,
            message=message,
            error_kind=kind,
            confidence=invocation.confidence,
            alternatives=alternatives or [],
            data={"requested": dict(invocation.arguments)},
        )


# ---------------------------------------------------------------------- #
# Argument coercion
# ---------------------------------------------------------------------- #

def _no_arguments(args: dict[str, Any]) -> dict[str, Any]:
    return {}


def _str_arg(args: dict[str, Any], name: str, required: bool = False) -> str:
    value = args.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise _Rejection(ErrorKind.INVALID_ARGUMENTS, f"Missing required argument '{name}'.")
        return ""
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise _Rejection(ErrorKind.INVALID_ARGUMENTS, f"Argument '{name}' must be text.")
    return str(value).strip()


def _int_arg(
    args: dict[str, Any],
    name: str,
    minimum: int = 0,
    required: bool = False,
    default: Optional[int] = 0,
) -> Optional[int]:
    value = args.get(name)
    if value is None or value == "":
        if required:
            raise _Rejection(ErrorKind.INVALID_ARGUMENTS, f"Missing required argument '{name}'.")
        return default

    number: Optional[int] = None
    if isinstance(value, bool):
        number = None
    elif isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str):
        text = value.strip().lower()
        if text.lstrip("-").isdigit():
            number = int(text)
        else:
            number = _NUMBER_WORDS.get(text)

    if number is None:
        raise _Rejection(ErrorKind.INVALID_ARGUMENTS, f"Argument '{name}' must be a whole number, got {value!r}.")
    if number < minimum:
        raise _Rejection(ErrorKind.INVALID_ARGUMENTS, f"Argument '{name}' must be at least {minimum}, got {number}.")
    return number


def _bool_arg(args: dict[str, Any], name: str, default: bool) -> bool:
    value = args.get(name)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "yes", "1"):
        return True
    if text in ("false", "no", "0"):
        return False
    raise _Rejection(ErrorKind.INVALID_ARGUMENTS, f"Argument '{name}' must be true or false, got {value!r}.")


def _product_row(product: ProductInfo) -> dict[str, str]:
    return {"sku": product.sku, "name": product.display_name, "price": str(product.base_price)}


def _money(session: SessionContext) -> str:
    if session.running_total is None:
        return ""
    return format_money(session.running_total, session.currency)
