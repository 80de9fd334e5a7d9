"""
Mock transaction ledger.

In production, this would be the POS kernel's transaction service: the
ledger of record for lines, totals, and tenders. The assistant never
computes currency totals itself; it always asks the ledger.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from pos_assistant.errors import LedgerError
from pos_assistant.schemas.store_schema import PaymentReceipt, Totals

logger = logging.getLogger(__name__)


class TransactionLedger(Protocol):
    """Ledger collaborator. Failures raise LedgerError.

    ``add_line`` is given the unit price the caller quoted from the catalog,
    as the POS kernel's add-line call is. Totals and change are always
    the ledger's own arithmetic.
    """

    def add_line(self, sku: str, quantity: int, notes: str, unit_price: Decimal) -> str:
        ...

    def remove_line(self, line_id: str) -> None:
        ...

    def totals(self) -> Totals:
        ...

    def finalize(self, payment_method_id: str, amount: Decimal) -> PaymentReceipt:
        ...


@dataclass(frozen=True)
class LedgerLine:
    line_id: str
    sku: str
    quantity: int
    notes: str
    unit_price: Decimal

    @property
    def extended_price(self) -> Decimal:
        return self.unit_price * self.quantity


class InMemoryLedger:
    """Single open transaction at a time; finalize closes it and opens the next."""

    def __init__(self, currency: str = "USD") -> None:
        self._currency = currency
        self._lines: dict[str, LedgerLine] = {}
        self._line_seq = 0
        self._transaction_id = self._new_transaction_id()
        self.receipts: list[PaymentReceipt] = []

    @staticmethod
    def _new_transaction_id() -> str:
        return f"TX-{uuid.uuid4().hex[:8].upper()}"

    @property
    def transaction_id(self) -> str:
        return self._transaction_id

    @property
    def lines(self) -> list[LedgerLine]:
        return list(self._lines.values())

    def add_line(self, sku: str, quantity: int, notes: str, unit_price: Decimal) -> str:
        if quantity < 1:
            raise LedgerError(f"Quantity must be at least 1, got {quantity}")
        if unit_price < 0:
            raise LedgerError(f"Unit price must not be negative, got {unit_price}")
        self._line_seq += 1
        line_id = f"L-{self._line_seq:04d}"
        self._lines[line_id] = LedgerLine(line_id, sku, quantity, notes, unit_price)
        logger.info("Ledger %s: added %s x%d as %s", self._transaction_id, sku, quantity, line_id)
        return line_id

    def remove_line(self, line_id: str) -> None:
        if line_id not in self._lines:
            raise LedgerError(f"No line {line_id} in transaction {self._transaction_id}")
        del self._lines[line_id]
        logger.info("Ledger %s: removed %s", self._transaction_id, line_id)

    def totals(self) -> Totals:
        total = sum((line.extended_price for line in self._lines.values()), Decimal("0"))
        return Totals(total=total, currency=self._currency)

    def finalize(self, payment_method_id: str, amount: Decimal) -> PaymentReceipt:
        if not self._lines:
            raise LedgerError("Cannot finalize an empty transaction")
        total = self.totals().total
        if amount < total:
            raise LedgerError(f"Amount tendered {amount} is less than the total {total}")

        receipt = PaymentReceipt(
            transaction_id=self._transaction_id,
            payment_method_id=payment_method_id,
            amount_tendered=amount,
            total=total,
            change_due=amount - total,
            currency=self._currency,
        )
        self.receipts.append(receipt)
        logger.info(
            "Ledger %s finalized: %s %s via %s",
            self._transaction_id, total, self._currency, payment_method_id,
        )
        self._lines.clear()
        self._transaction_id = self._new_transaction_id()
        return receipt
