"""Tests for command validation, confidence gating, and execution."""

from decimal import Decimal

import pytest

from pos_assistant.conversation.state_machine import TransitionTrigger
from pos_assistant.errors import ErrorKind
from pos_assistant.schemas.session_schema import Phase
from pos_assistant.schemas.store_schema import PaymentMethodDescriptor, ProductInfo
from pos_assistant.schemas.turn_schema import DispatchStatus, OutcomeStatus
from pos_assistant.tools import operations as ops
from pos_assistant.tools.catalog import InMemoryCatalog
from pos_assistant.tools.ledger import InMemoryLedger
from pos_assistant.tools.store import InMemoryStoreConfiguration
from tests.conftest import STORE_ID, RecordingCatalog, make_dispatcher, make_invocation


def _add(item, confidence=1.0, **arguments):
    return make_invocation(ops.ADD_ITEM, confidence=confidence, item_description=item, **arguments)


def _ready_for_payment(dispatcher, session, machine, *items):
    """Add items, signal completion, and load payment methods."""
    if items:
        dispatcher.dispatch([_add(item) for item in items], session, machine)
    machine.transition(TransitionTrigger.COMPLETION_SIGNALLED)
    result = dispatcher.dispatch([make_invocation(ops.LOAD_PAYMENT_METHODS)], session, machine)
    assert session.phase == Phase.AWAITING_PAYMENT
    return result


class TestConfidenceGating:
    @pytest.mark.parametrize("confidence,status,lines", [
        (0.49, OutcomeStatus.REJECTED, 0),
        (0.5, OutcomeStatus.CONFIRMING, 1),
        (0.79, OutcomeStatus.CONFIRMING, 1),
        (0.8, OutcomeStatus.EXECUTED, 1),
        (1.0, OutcomeStatus.EXECUTED, 1),
    ])
    def test_threshold_boundaries(self, dispatcher, session, machine, ledger, confidence, status, lines):
        result = dispatcher.dispatch([_add("Latte", confidence=confidence)], session, machine)
        outcome = result.outcomes[0]
        assert outcome.status == status
        assert len(session.cart) == lines
        assert len(ledger.lines) == lines

    def test_low_confidence_error_kind(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch([_add("Latte", confidence=0.2)], session, machine).outcomes[0]
        assert outcome.error_kind == ErrorKind.LOW_CONFIDENCE
        assert outcome.data["requested"] == {"item_description": "Latte"}

    def test_gating_is_per_invocation(self, dispatcher, session, machine):
        result = dispatcher.dispatch(
            [_add("Latte", confidence=0.3), _add("Muffin", confidence=0.95)], session, machine
        )
        assert [o.status for o in result.outcomes] == [OutcomeStatus.REJECTED, OutcomeStatus.EXECUTED]
        assert result.status == DispatchStatus.PARTIAL
        assert [line.sku for line in session.cart] == ["MUFFIN"]

    def test_custom_thresholds(self, session, machine):
        strict = make_dispatcher(execute_threshold=0.95, confirm_threshold=0.99)
        outcome = strict.dispatch([_add("Latte", confidence=0.9)], session, machine).outcomes[0]
        assert outcome.error_kind == ErrorKind.LOW_CONFIDENCE

    @pytest.mark.parametrize("execute,confirm", [(0.9, 0.8), (-0.1, 0.5), (0.5, 1.5)])
    def test_invalid_thresholds_rejected(self, execute, confirm):
        with pytest.raises(ValueError, match="Thresholds"):
            make_dispatcher(execute_threshold=execute, confirm_threshold=confirm)


class TestStructuralValidation:
    def test_unknown_operation(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch(
            [make_invocation("refund_everything")], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.UNKNOWN_OPERATION

    def test_unknown_operation_checked_before_confidence(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch(
            [make_invocation("refund_everything", confidence=0.1)], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.UNKNOWN_OPERATION

    def test_bad_argument_does_not_block_others(self, dispatcher, session, machine):
        result = dispatcher.dispatch(
            [_add("Latte", quantity="lots"), _add("Muffin")], session, machine
        )
        assert result.outcomes[0].error_kind == ErrorKind.INVALID_ARGUMENTS
        assert result.outcomes[1].status == OutcomeStatus.EXECUTED
        assert [line.sku for line in session.cart] == ["MUFFIN"]

    def test_missing_required_argument(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch(
            [make_invocation(ops.UPDATE_QUANTITY, line_number=1)], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_ARGUMENTS
        assert "new_quantity" in outcome.message

    @pytest.mark.parametrize("raw,expected", [("two", 2), ("3", 3), (2.0, 2), ("an", 1)])
    def test_quantity_coercion(self, dispatcher, session, machine, raw, expected):
        dispatcher.dispatch([_add("Latte", quantity=raw)], session, machine)
        assert session.cart[0].quantity == expected

    def test_zero_quantity_rejected_for_add(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch([_add("Latte", quantity=0)], session, machine).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_ARGUMENTS

    def test_void_needs_a_target(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch([make_invocation(ops.VOID_LINE)], session, machine).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_ARGUMENTS

    def test_outcomes_keep_invocation_order(self, dispatcher, session, machine):
        invocations = [_add("Latte", call_id="a"), make_invocation("nope", call_id="b"), _add("Bagel", call_id="c")]
        result = dispatcher.dispatch(invocations, session, machine)
        assert [o.call_id for o in result.outcomes] == ["a", "b", "c"]

    def test_empty_dispatch(self, dispatcher, session, machine):
        assert dispatcher.dispatch([], session, machine).status == DispatchStatus.EMPTY


class TestAddItem:
    def test_modifiers_become_notes(self, dispatcher, catalog, session, machine):
        dispatcher.dispatch([_add("large oat milk latte")], session, machine)
        assert catalog.searches[-1] == "Latte"
        line = session.cart[0]
        assert line.sku == "LATTE"
        assert line.preparation_notes == "large, oat milk"

    def test_modifiers_merge_with_preparation_notes(self, dispatcher, session, machine):
        dispatcher.dispatch([_add("iced latte", preparation_notes="extra shot")], session, machine)
        assert session.cart[0].preparation_notes == "iced, extra shot"

    def test_exact_name_beats_partial_matches(self, dispatcher, session, machine):
        dispatcher.dispatch([_add("Croissant")], session, machine)
        assert session.cart[0].sku == "CROIS"

    def test_single_match_resolves(self, dispatcher, session, machine):
        dispatcher.dispatch([_add("flat")], session, machine)
        assert session.cart[0].sku == "FLATW"

    def test_inactive_product_not_added(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch([_add("Pumpkin Spice Latte")], session, machine).outcomes[0]
        assert outcome.error_kind == ErrorKind.UNKNOWN_PRODUCT
        assert session.cart == []

    def test_ambiguous_product_offers_alternatives(self, session, machine):
        catalog = InMemoryCatalog([
            ProductInfo(sku="BBM", display_name="Blueberry Muffin", base_price=Decimal("3.50")),
            ProductInfo(sku="CCM", display_name="Chocolate Muffin", base_price=Decimal("3.50")),
        ])
        ledger = InMemoryLedger()
        outcome = make_dispatcher(catalog, ledger).dispatch([_add("muffin")], session, machine).outcomes[0]
        assert outcome.error_kind == ErrorKind.UNKNOWN_PRODUCT
        assert outcome.alternatives == ["Blueberry Muffin", "Chocolate Muffin"]
        assert ledger.lines == []

    def test_unknown_product_suggests_by_word(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch([_add("caramel latte")], session, machine).outcomes[0]
        assert outcome.error_kind == ErrorKind.UNKNOWN_PRODUCT
        assert outcome.alternatives == ["Latte", "Chai Latte"]

    def test_outcome_data(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch([_add("Latte", quantity=2)], session, machine).outcomes[0]
        assert outcome.data["item"] == "Latte"
        assert outcome.data["quantity"] == 2
        assert outcome.data["line_number"] == 1
        assert outcome.data["total"] == "9.00 USD"

    def test_running_total_comes_from_ledger(self, dispatcher, session, machine, ledger):
        dispatcher.dispatch([_add("Latte"), _add("Muffin")], session, machine)
        assert session.running_total == ledger.totals().total == Decimal("7.75")

    def test_catalog_price_is_what_the_ledger_charges(self, session, machine):
        catalog = InMemoryCatalog([
            ProductInfo(sku="CORT", display_name="Cortado", base_price=Decimal("3.80")),
        ])
        ledger = InMemoryLedger()
        make_dispatcher(catalog, ledger).dispatch([_add("Cortado", quantity=2)], session, machine)
        assert ledger.lines[0].unit_price == Decimal("3.80")
        assert session.cart[0].unit_price == Decimal("3.80")
        assert session.running_total == ledger.totals().total == Decimal("7.60")


class TestNamesWithModifierWords:
    @pytest.fixture
    def drinks(self):
        return InMemoryCatalog([
            ProductInfo(sku="LCOF", display_name="Large Coffee", base_price=Decimal("3.00")),
            ProductInfo(sku="SCOF", display_name="Small Coffee", base_price=Decimal("2.25")),
            ProductInfo(sku="HCHOC", display_name="Hot Chocolate", base_price=Decimal("4.00")),
            ProductInfo(sku="CCROIS", display_name="Chocolate Croissant", base_price=Decimal("3.50")),
        ])

    @pytest.fixture
    def drinks_dispatcher(self, drinks, ledger):
        return make_dispatcher(drinks, ledger)

    @pytest.mark.parametrize("description,sku", [
        ("Large Coffee", "LCOF"),
        ("small coffee", "SCOF"),
        ("Hot Chocolate", "HCHOC"),
        ("a hot chocolate please", "HCHOC"),
    ])
    def test_full_name_wins_over_modifier_split(self, drinks_dispatcher, session, machine, description, sku):
        outcome = drinks_dispatcher.dispatch([_add(description)], session, machine).outcomes[0]
        assert outcome.status == OutcomeStatus.EXECUTED
        assert session.cart[0].sku == sku
        assert session.cart[0].preparation_notes == ""

    def test_extra_modifiers_around_a_named_product(self, drinks_dispatcher, session, machine):
        drinks_dispatcher.dispatch([_add("large hot chocolate", preparation_notes="no foam")], session, machine)
        line = session.cart[0]
        assert line.sku == "HCHOC"
        assert line.preparation_notes == "large, no foam"

    def test_preparation_notes_kept_on_exact_match(self, drinks_dispatcher, session, machine):
        drinks_dispatcher.dispatch([_add("Hot Chocolate", preparation_notes="oat milk")], session, machine)
        assert session.cart[0].preparation_notes == "oat milk"

    def test_plain_modifier_still_splits(self, drinks_dispatcher, session, machine):
        outcome = drinks_dispatcher.dispatch([_add("iced chocolate croissant")], session, machine).outcomes[0]
        assert outcome.status == OutcomeStatus.EXECUTED
        assert session.cart[0].sku == "CCROIS"
        assert session.cart[0].preparation_notes == "iced"

    def test_search_for_named_product_is_allowed(self, drinks_dispatcher, session, machine):
        outcome = drinks_dispatcher.dispatch(
            [make_invocation(ops.SEARCH_PRODUCTS, search_term="Hot Chocolate")], session, machine
        ).outcomes[0]
        assert outcome.status == OutcomeStatus.EXECUTED
        assert [r["name"] for r in outcome.data["results"]] == ["Hot Chocolate"]

    def test_search_with_modifier_on_named_product_rejected(self, drinks_dispatcher, session, machine):
        outcome = drinks_dispatcher.dispatch(
            [make_invocation(ops.SEARCH_PRODUCTS, search_term="iced chocolate croissant")], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_ARGUMENTS
        assert "Chocolate Croissant" in outcome.message

    def test_void_by_full_name(self, drinks_dispatcher, session, machine):
        drinks_dispatcher.dispatch([_add("Chocolate Croissant"), _add("Hot Chocolate")], session, machine)
        drinks_dispatcher.dispatch(
            [make_invocation(ops.VOID_LINE, item_description="hot chocolate")], session, machine
        )
        assert [line.sku for line in session.cart] == ["CCROIS"]

    def test_default_menu_carries_named_drinks(self, dispatcher, session, machine):
        dispatcher.dispatch([_add("Hot Chocolate"), _add("iced tea")], session, machine)
        assert [line.sku for line in session.cart] == ["HOTCHOC", "ICEDTEA"]


class TestLineChanges:
    def test_add_two_add_one_remove_first(self, dispatcher, session, machine, ledger):
        dispatcher.dispatch([_add("Latte", quantity=2), _add("Muffin")], session, machine)
        dispatcher.dispatch([make_invocation(ops.VOID_LINE, line_number=1)], session, machine)
        assert [(line.sku, line.quantity) for line in session.cart] == [("MUFFIN", 1)]
        assert [line.sku for line in ledger.lines] == ["MUFFIN"]
        assert session.running_total == Decimal("3.25")

    def test_void_by_description(self, dispatcher, session, machine):
        dispatcher.dispatch([_add("Latte"), _add("Bagel")], session, machine)
        outcome = dispatcher.dispatch(
            [make_invocation(ops.VOID_LINE, item_description="the large latte")], session, machine
        ).outcomes[0]
        assert outcome.status == OutcomeStatus.EXECUTED
        assert [line.sku for line in session.cart] == ["BAGEL"]

    def test_void_missing_item(self, dispatcher, session, machine):
        dispatcher.dispatch([_add("Latte")], session, machine)
        outcome = dispatcher.dispatch(
            [make_invocation(ops.VOID_LINE, item_description="mocha")], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.UNKNOWN_PRODUCT
        assert outcome.alternatives == ["Latte"]

    def test_void_line_out_of_range(self, dispatcher, session, machine):
        dispatcher.dispatch([_add("Latte")], session, machine)
        outcome = dispatcher.dispatch(
            [make_invocation(ops.VOID_LINE, line_number=4)], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_ARGUMENTS

    def test_update_quantity_replaces_line(self, dispatcher, session, machine, ledger):
        dispatcher.dispatch([_add("Latte", preparation_notes="oat milk")], session, machine)
        original = session.cart[0]
        dispatcher.dispatch(
            [make_invocation(ops.UPDATE_QUANTITY, line_number=1, new_quantity=3)], session, machine
        )
        line = session.cart[0]
        assert line.quantity == 3
        assert line.line_id != original.line_id
        assert line.preparation_notes == "oat milk"
        assert original.quantity == 1
        assert [(entry.line_id, entry.quantity) for entry in ledger.lines] == [(line.line_id, 3)]
        assert session.running_total == Decimal("13.50")

    def test_update_quantity_to_zero_removes(self, dispatcher, session, machine, ledger):
        dispatcher.dispatch([_add("Latte")], session, machine)
        outcome = dispatcher.dispatch(
            [make_invocation(ops.UPDATE_QUANTITY, line_number=1, new_quantity=0)], session, machine
        ).outcomes[0]
        assert outcome.data["quantity"] == 0
        assert session.cart == []
        assert ledger.lines == []


class TestQueries:
    def test_search_returns_active_products(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch(
            [make_invocation(ops.SEARCH_PRODUCTS, search_term="latte")], session, machine
        ).outcomes[0]
        assert [r["name"] for r in outcome.data["results"]] == ["Latte", "Chai Latte"]

    def test_compound_search_term_rejected(self, dispatcher, catalog, session, machine):
        outcome = dispatcher.dispatch(
            [make_invocation(ops.SEARCH_PRODUCTS, search_term="large latte")], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_ARGUMENTS
        assert "Latte" in outcome.message
        assert "results" not in outcome.data

    def test_search_without_results(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch(
            [make_invocation(ops.SEARCH_PRODUCTS, search_term="unicorn")], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.UNKNOWN_PRODUCT

    def test_total_and_verify(self, dispatcher, session, machine):
        dispatcher.dispatch([_add("Latte")], session, machine)
        result = dispatcher.dispatch(
            [make_invocation(ops.CALCULATE_TOTAL), make_invocation(ops.VERIFY_ORDER)], session, machine
        )
        assert result.outcomes[0].data["total"] == "4.50 USD"
        assert result.outcomes[1].data["lines"] == ["LATTE x1"]

    def test_catalog_lookups_are_query_operations(self):
        for name in (ops.GET_PRODUCT_INFO, ops.GET_POPULAR_ITEMS, ops.LOAD_MENU_CONTEXT):
            assert ops.OPERATION_CATEGORIES[name] == ops.OperationCategory.QUERY

    def test_product_info(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch(
            [make_invocation(ops.GET_PRODUCT_INFO, product_identifier="croissant")], session, machine
        ).outcomes[0]
        assert outcome.status == OutcomeStatus.EXECUTED
        assert outcome.data == {
            "sku": "CROIS", "item": "Croissant", "price": "3.00 USD", "category": "food", "available": True,
        }
        assert outcome.message == "Croissant is 3.00 USD and available."

    def test_product_info_by_sku_reports_inactive(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch(
            [make_invocation(ops.GET_PRODUCT_INFO, product_identifier="PSL")], session, machine
        ).outcomes[0]
        assert outcome.data["item"] == "Pumpkin Spice Latte"
        assert outcome.data["available"] is False
        assert session.cart == []

    def test_product_info_not_found(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch(
            [make_invocation(ops.GET_PRODUCT_INFO, product_identifier="unicorn")], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.UNKNOWN_PRODUCT

    def test_popular_items_in_rank_order(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch(
            [make_invocation(ops.GET_POPULAR_ITEMS, count=3)], session, machine
        ).outcomes[0]
        assert [r["name"] for r in outcome.data["results"]] == ["Latte", "Cappuccino", "Croissant"]

    def test_popular_items_count_is_capped(self, session, machine):
        products = [
            ProductInfo(sku=f"P{i:02d}", display_name=f"Product {i:02d}", base_price=Decimal("1.00"))
            for i in range(30)
        ]
        catalog = InMemoryCatalog(products, popular_skus=[])
        outcome = make_dispatcher(catalog).dispatch(
            [make_invocation(ops.GET_POPULAR_ITEMS, count=50)], session, machine
        ).outcomes[0]
        assert len(outcome.data["results"]) == 20

    def test_load_menu_context_fills_session_menu(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch([make_invocation(ops.LOAD_MENU_CONTEXT)], session, machine).outcomes[0]
        assert outcome.status == OutcomeStatus.EXECUTED
        assert "PSL" not in {p.sku for p in session.menu}
        assert outcome.data["items"] == len(session.menu)
        assert outcome.data["categories"] == ["coffee", "food", "other", "tea"]

    def test_load_menu_context_without_categories(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch(
            [make_invocation(ops.LOAD_MENU_CONTEXT, include_categories="false")], session, machine
        ).outcomes[0]
        assert "categories" not in outcome.data

    def test_load_menu_context_bad_flag(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch(
            [make_invocation(ops.LOAD_MENU_CONTEXT, include_categories="maybe")], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_ARGUMENTS
        assert session.menu is None

    def test_empty_menu_is_configuration_missing(self, session, machine):
        outcome = make_dispatcher(InMemoryCatalog([])).dispatch(
            [make_invocation(ops.LOAD_MENU_CONTEXT)], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.CONFIGURATION_MISSING

    def test_menu_survives_new_transaction(self, dispatcher, session, machine):
        dispatcher.dispatch([make_invocation(ops.LOAD_MENU_CONTEXT)], session, machine)
        dispatcher.dispatch([make_invocation(ops.START_NEW_TRANSACTION)], session, machine)
        assert session.menu


class TestPayment:
    def test_payment_before_methods_loaded(self, dispatcher, session, machine, ledger):
        dispatcher.dispatch([_add("Latte")], session, machine)
        outcome = dispatcher.dispatch(
            [make_invocation(ops.PROCESS_PAYMENT, payment_method="cash")], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_PHASE_TRANSITION
        assert session.phase == Phase.ORDERING
        assert ledger.receipts == []

    def test_load_while_ordering_keeps_phase(self, dispatcher, session, machine):
        outcome = dispatcher.dispatch([make_invocation(ops.LOAD_PAYMENT_METHODS)], session, machine).outcomes[0]
        assert outcome.status == OutcomeStatus.EXECUTED
        assert session.phase == Phase.ORDERING
        assert session.payment_methods_loaded

    def test_payment_while_ordering_with_methods_loaded(self, dispatcher, session, machine):
        dispatcher.dispatch([_add("Latte"), make_invocation(ops.LOAD_PAYMENT_METHODS)], session, machine)
        outcome = dispatcher.dispatch(
            [make_invocation(ops.PROCESS_PAYMENT, payment_method="cash")], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_PHASE_TRANSITION

    def test_load_lists_enabled_methods_only(self, dispatcher, session, machine):
        result = _ready_for_payment(dispatcher, session, machine, "Latte")
        assert result.outcomes[0].data["methods"] == ["Cash", "Card", "Mobile Wallet"]

    def test_load_and_pay_in_one_turn(self, dispatcher, session, machine, ledger):
        dispatcher.dispatch([_add("Latte")], session, machine)
        machine.transition(TransitionTrigger.COMPLETION_SIGNALLED)
        result = dispatcher.dispatch(
            [
                make_invocation(ops.LOAD_PAYMENT_METHODS),
                make_invocation(ops.PROCESS_PAYMENT, payment_method="card"),
            ],
            session, machine,
        )
        assert result.status == DispatchStatus.SUCCESS
        assert session.phase == Phase.CLOSED
        assert ledger.receipts[0].payment_method_id == "card"
        assert session.last_receipt.total == Decimal("4.50")
        assert result.outcomes[1].data["amount"] == "4.50 USD"

    @pytest.mark.parametrize("requested", ["Mobile Wallet", "mobile", "wallet"])
    def test_method_by_name_id_or_type(self, dispatcher, session, machine, ledger, requested):
        _ready_for_payment(dispatcher, session, machine, "Latte")
        dispatcher.dispatch(
            [make_invocation(ops.PROCESS_PAYMENT, payment_method=requested)], session, machine
        )
        assert ledger.receipts[0].payment_method_id == "mobile"

    def test_disabled_method_rejected(self, dispatcher, session, machine):
        _ready_for_payment(dispatcher, session, machine, "Latte")
        outcome = dispatcher.dispatch(
            [make_invocation(ops.PROCESS_PAYMENT, payment_method="cheque")], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_ARGUMENTS
        assert "Cash" in outcome.alternatives
        assert session.phase == Phase.AWAITING_PAYMENT

    def test_minimum_amount_enforced(self, session, machine):
        store = InMemoryStoreConfiguration({STORE_ID: [
            PaymentMethodDescriptor(
                method_id="card", display_name="Card", type_tag="card", minimum_amount=Decimal("10"),
            ),
            PaymentMethodDescriptor(method_id="cash", display_name="Cash", type_tag="cash"),
        ]})
        dispatcher = make_dispatcher(store=store)
        _ready_for_payment(dispatcher, session, machine, "Latte")
        outcome = dispatcher.dispatch(
            [make_invocation(ops.PROCESS_PAYMENT, payment_method="card")], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_ARGUMENTS
        assert "10.00 USD" in outcome.message
        assert outcome.alternatives == ["Cash"]

    def test_change_due(self, dispatcher, session, machine, ledger):
        _ready_for_payment(dispatcher, session, machine, "Latte")
        outcome = dispatcher.dispatch(
            [make_invocation(ops.PROCESS_PAYMENT, payment_method="cash", amount="10")], session, machine
        ).outcomes[0]
        assert outcome.data["change"] == "5.50 USD"

    def test_underpayment_rejected_by_ledger(self, dispatcher, session, machine, ledger):
        _ready_for_payment(dispatcher, session, machine, "Latte")
        outcome = dispatcher.dispatch(
            [make_invocation(ops.PROCESS_PAYMENT, payment_method="cash", amount=1)], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.LEDGER_REJECTED
        assert session.phase == Phase.AWAITING_PAYMENT
        assert len(ledger.lines) == 1

    def test_empty_cart_cannot_pay(self, dispatcher, session, machine):
        _ready_for_payment(dispatcher, session, machine)
        outcome = dispatcher.dispatch(
            [make_invocation(ops.PROCESS_PAYMENT, payment_method="cash")], session, machine
        ).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_ARGUMENTS

    def test_cannot_pay_twice(self, dispatcher, session, machine, ledger):
        _ready_for_payment(dispatcher, session, machine, "Latte")
        pay = make_invocation(ops.PROCESS_PAYMENT, payment_method="cash")
        dispatcher.dispatch([pay], session, machine)
        outcome = dispatcher.dispatch([pay], session, machine).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_PHASE_TRANSITION
        assert len(ledger.receipts) == 1


class TestConfigurationMissing:
    def test_no_methods_for_store(self, session, machine):
        dispatcher = make_dispatcher(store=InMemoryStoreConfiguration(methods_by_store={}))
        result = dispatcher.dispatch([make_invocation(ops.LOAD_PAYMENT_METHODS)], session, machine)
        assert result.outcomes[0].error_kind == ErrorKind.CONFIGURATION_MISSING
        assert result.fatal_outcome() == result.outcomes[0]
        assert not session.payment_methods_loaded

    def test_only_disabled_methods(self, session, machine):
        store = InMemoryStoreConfiguration({STORE_ID: [
            PaymentMethodDescriptor(method_id="cheque", display_name="Cheque", type_tag="cheque", enabled=False),
        ]})
        result = make_dispatcher(store=store).dispatch(
            [make_invocation(ops.LOAD_PAYMENT_METHODS)], session, machine
        )
        assert result.outcomes[0].error_kind == ErrorKind.CONFIGURATION_MISSING


class TestPhaseLocks:
    def test_ordering_locked_while_awaiting_payment(self, dispatcher, session, machine):
        _ready_for_payment(dispatcher, session, machine, "Latte")
        outcome = dispatcher.dispatch([_add("Muffin")], session, machine).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_PHASE_TRANSITION
        assert [line.sku for line in session.cart] == ["LATTE"]

    def test_new_transaction_signal_resets_before_ordering(self, dispatcher, session, machine, ledger):
        _ready_for_payment(dispatcher, session, machine, "Latte")
        result = dispatcher.dispatch([_add("Muffin")], session, machine, new_transaction_signalled=True)
        assert result.outcomes[0].status == OutcomeStatus.EXECUTED
        assert session.phase == Phase.ORDERING
        assert [line.sku for line in session.cart] == ["MUFFIN"]
        assert [line.sku for line in ledger.lines] == ["MUFFIN"]
        assert not session.payment_methods_loaded

    def test_start_new_transaction_after_payment(self, dispatcher, session, machine, ledger):
        _ready_for_payment(dispatcher, session, machine, "Latte")
        dispatcher.dispatch([make_invocation(ops.PROCESS_PAYMENT, payment_method="cash")], session, machine)
        result = dispatcher.dispatch(
            [make_invocation(ops.START_NEW_TRANSACTION), _add("Bagel")], session, machine
        )
        assert result.status == DispatchStatus.SUCCESS
        assert session.phase == Phase.ORDERING
        assert [line.sku for line in session.cart] == ["BAGEL"]
        assert session.last_receipt is None
        assert len(ledger.receipts) == 1

    def test_load_after_close_rejected(self, dispatcher, session, machine):
        _ready_for_payment(dispatcher, session, machine, "Latte")
        dispatcher.dispatch([make_invocation(ops.PROCESS_PAYMENT, payment_method="cash")], session, machine)
        outcome = dispatcher.dispatch([make_invocation(ops.LOAD_PAYMENT_METHODS)], session, machine).outcomes[0]
        assert outcome.error_kind == ErrorKind.INVALID_PHASE_TRANSITION

    def test_works_without_explicit_machine(self, dispatcher, session):
        result = dispatcher.dispatch([_add("Latte")], session)
        assert result.status == DispatchStatus.SUCCESS


class TestRecordingCatalog:
    def test_records_every_search(self):
        catalog = RecordingCatalog()
        catalog.search("latte")
        catalog.search("muffin", 1)
        assert catalog.searches == ["latte", "muffin"]
