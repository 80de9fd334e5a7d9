"""Catalog, ledger, and store-configuration records exchanged with collaborators."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ProductInfo(BaseModel):
    """Catalog entry returned by a product search."""

    model_config = ConfigDict(frozen=True)

    sku: str
    display_name: str
    base_price: Decimal
    active: bool = True
    category: Optional[str] = None


class PaymentMethodDescriptor(BaseModel):
    """Payment method accepted by a store. Read-only to the assistant."""

    model_config = ConfigDict(frozen=True)

    method_id: str
    display_name: str
    type_tag: str
    minimum_amount: Decimal = Decimal("0")
    enabled: bool = True


class Totals(BaseModel):
    """Ledger-of-record totals for the open transaction."""

    model_config = ConfigDict(frozen=True)

    total: Decimal
    currency: str


class PaymentReceipt(BaseModel):
    """Result of finalizing a transaction."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    payment_method_id: str
    amount_tendered: Decimal
    total: Decimal
    change_due: Decimal
    currency: str
