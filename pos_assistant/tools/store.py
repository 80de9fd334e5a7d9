"""
Mock store configuration service.

In production, this would read the store's tender setup from the POS
back office. The assistant treats the descriptors as read-only.
"""

import logging
from decimal import Decimal
from typing import Optional, Protocol

from pos_assistant.schemas.store_schema import PaymentMethodDescriptor

logger = logging.getLogger(__name__)


class StoreConfiguration(Protocol):
    def payment_methods(self, store_id: str) -> list[PaymentMethodDescriptor]:
        ...


DEFAULT_PAYMENT_METHODS: list[PaymentMethodDescriptor] = [
    PaymentMethodDescriptor(method_id="cash", display_name="Cash", type_tag="cash"),
    PaymentMethodDescriptor(
        method_id="card", display_name="Card", type_tag="card", minimum_amount=Decimal("1.00"),
    ),
    PaymentMethodDescriptor(
        method_id="mobile", display_name="Mobile Wallet", type_tag="wallet",
    ),
    PaymentMethodDescriptor(
        method_id="cheque", display_name="Cheque", type_tag="cheque", enabled=False,
    ),
]


class InMemoryStoreConfiguration:
    """Payment methods keyed by store id. Unknown stores have none configured."""

    def __init__(
        self,
        methods_by_store: Optional[dict[str, list[PaymentMethodDescriptor]]] = None,
        default_store_id: str = "store-001",
    ) -> None:
        if methods_by_store is None:
            methods_by_store = {default_store_id: list(DEFAULT_PAYMENT_METHODS)}
        self._methods = methods_by_store

    def payment_methods(self, store_id: str) -> list[PaymentMethodDescriptor]:
        methods = list(self._methods.get(store_id, []))
        if not methods:
            logger.warning("No payment methods configured for store %s", store_id)
        return methods
