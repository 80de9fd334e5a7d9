"""Tool definitions offered to the model and their operation categories."""

from enum import Enum

from pos_assistant.schemas.tool_schema import ToolSchema


class OperationCategory(str, Enum):
    ORDERING = "ordering"
    QUERY = "query"
    PAYMENT = "payment"
    SESSION = "session"


ADD_ITEM = "add_item_to_transaction"
VOID_LINE = "void_line_item"
UPDATE_QUANTITY = "update_line_item_quantity"
SEARCH_PRODUCTS = "search_products"
GET_PRODUCT_INFO = "get_product_info"
GET_POPULAR_ITEMS = "get_popular_items"
LOAD_MENU_CONTEXT = "load_menu_context"
CALCULATE_TOTAL = "calculate_transaction_total"
VERIFY_ORDER = "verify_order"
LOAD_PAYMENT_METHODS = "load_payment_methods_context"
PROCESS_PAYMENT = "process_payment"
START_NEW_TRANSACTION = "start_new_transaction"

OPERATION_CATEGORIES: dict[str, OperationCategory] = {
    ADD_ITEM: OperationCategory.ORDERING,
    VOID_LINE: OperationCategory.ORDERING,
    UPDATE_QUANTITY: OperationCategory.ORDERING,
    SEARCH_PRODUCTS: OperationCategory.QUERY,
    GET_PRODUCT_INFO: OperationCategory.QUERY,
    GET_POPULAR_ITEMS: OperationCategory.QUERY,
    LOAD_MENU_CONTEXT: OperationCategory.QUERY,
    CALCULATE_TOTAL: OperationCategory.QUERY,
    VERIFY_ORDER: OperationCategory.QUERY,
    LOAD_PAYMENT_METHODS: OperationCategory.PAYMENT,
    PROCESS_PAYMENT: OperationCategory.PAYMENT,
    START_NEW_TRANSACTION: OperationCategory.SESSION,
}

POS_TOOL_SCHEMAS: list[ToolSchema] = [
    ToolSchema(
        name=ADD_ITEM,
        description=(
            "Add an item to the customer's order. Pass the BASE product name only "
            "(for example 'Latte'). Sizes, milks, sweetness and other customizations "
            "go in preparation_notes, never in item_description."
        ),
        parameters_schema={
            "type": "object",
            "properties": {
                "item_description": {"type": "string", "description": "Base product name"},
                "quantity": {"type": "integer", "minimum": 1, "default": 1},
                "preparation_notes": {
                    "type": "string",
                    "description": "Customizations such as 'large, oat milk'",
                    "default": "",
                },
            },
            "required": ["item_description"],
        },
    ),
    ToolSchema(
        name=VOID_LINE,
        description=(
            "Remove an item from the order. Use line_number (1-based, in the order "
            "items were added) or item_description when the line number is unknown."
        ),
        parameters_schema={
            "type": "object",
            "properties": {
                "line_number": {"type": "integer", "minimum": 1},
                "item_description": {"type": "string"},
                "reason": {"type": "string", "default": "customer requested"},
            },
        },
    ),
    ToolSchema(
        name=UPDATE_QUANTITY,
        description="Change the quantity of an order line ('make that two').",
        parameters_schema={
            "type": "object",
            "properties": {
                "line_number": {"type": "integer", "minimum": 1},
                "new_quantity": {"type": "integer", "minimum": 0},
            },
            "required": ["line_number", "new_quantity"],
        },
    ),
    ToolSchema(
        name=SEARCH_PRODUCTS,
        description="Search the menu by base product name or category.",
        parameters_schema={
            "type": "object",
            "properties": {
                "search_term": {"type": "string"},
                "max_results": {"type": "integer", "minimum": 1, "maximum": 20, "default": 5},
            },
            "required": ["search_term"],
        },
    ),
    ToolSchema(
        name=GET_PRODUCT_INFO,
        description="Get the price, category and availability of one product.",
        parameters_schema={
            "type": "object",
            "properties": {
                "product_identifier": {"type": "string", "description": "Product SKU or name"},
            },
            "required": ["product_identifier"],
        },
    ),
    ToolSchema(
        name=GET_POPULAR_ITEMS,
        description="Get the most popular items, for suggestions when the customer is undecided.",
        parameters_schema={
            "type": "object",
            "properties": {
                "count": {"type": "integer", "minimum": 1, "maximum": 20, "default": 5},
            },
        },
    ),
    ToolSchema(
        name=LOAD_MENU_CONTEXT,
        description=(
            "Load the full menu with prices into your context so later turns can "
            "match customer requests to real products."
        ),
        parameters_schema={
            "type": "object",
            "properties": {
                "include_categories": {"type": "boolean", "default": True},
            },
        },
    ),
    ToolSchema(
        name=CALCULATE_TOTAL,
        description="Get the current order total from the register.",
        parameters_schema={"type": "object", "properties": {}},
    ),
    ToolSchema(
        name=VERIFY_ORDER,
        description="Summarize the current order so the customer can confirm it.",
        parameters_schema={"type": "object", "properties": {}},
    ),
    ToolSchema(
        name=LOAD_PAYMENT_METHODS,
        description=(
            "Load the payment methods this store accepts. Call this once the "
            "customer has finished ordering, before asking how they will pay."
        ),
        parameters_schema={"type": "object", "properties": {}},
    ),
    ToolSchema(
        name=PROCESS_PAYMENT,
        description="Take payment for the order with one of the loaded payment methods.",
        parameters_schema={
            "type": "object",
            "properties": {
                "payment_method": {"type": "string", "description": "Method id or name"},
                "amount": {"type": "number", "minimum": 0},
            },
            "required": ["payment_method"],
        },
    ),
    ToolSchema(
        name=START_NEW_TRANSACTION,
        description="Start a fresh order after the previous one was paid or abandoned.",
        parameters_schema={"type": "object", "properties": {}},
    ),
]
