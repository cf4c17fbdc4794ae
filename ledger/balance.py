"""
Balance arithmetic for bills and invoices.

  balance        = total_amount - paid_amount
  paid_amount    = sum of *completed* payments (the source of truth; the
                   paid_amount column on the document is a persisted copy)
  payable        = balance > 0 and the document is neither draft nor cancelled

Amounts that do not parse as finite numbers raise InvalidAmount.  Beyond that
nothing here validates upstream data: a negative balance (over-payment) is
returned as-is and flagged through BalanceSummary.is_overpaid.
"""
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable, NamedTuple

from models.document import Payment
from models.status import DocumentKind, InvoiceStatus

from .errors import InvalidAmount

_NOT_PAYABLE = {"draft", "cancelled"}
_OUTSTANDING = {"posted", "partially_paid"}

_PAYMENT_PREFIX = {
    DocumentKind.CUSTOMER_INVOICE: "PAY",
    DocumentKind.VENDOR_BILL:      "BPAY",
}


class BalanceSummary(NamedTuple):
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    is_payable: bool
    is_overpaid: bool


def to_decimal(amount) -> Decimal:
    """Coerce *amount* to a finite Decimal; anything else is an InvalidAmount."""
    if isinstance(amount, Decimal):
        value = amount
    else:
        try:
            value = Decimal(str(amount).strip())
        except InvalidOperation as exc:
            raise InvalidAmount(f"'{amount}' is not a valid amount") from exc
    if not value.is_finite():
        raise InvalidAmount(f"'{amount}' is not a valid amount")
    return value


def compute_balance(total_amount, paid_amount) -> Decimal:
    return to_decimal(total_amount) - to_decimal(paid_amount)


def _raw_status(status):
    return status.value if isinstance(status, Enum) else status


def is_payable(status, balance) -> bool:
    """True when a payment may be taken: money is owed and the document is live."""
    return to_decimal(balance) > 0 and _raw_status(status) not in _NOT_PAYABLE


def summarize_balance(total_amount, paid_amount, status) -> BalanceSummary:
    total = to_decimal(total_amount)
    paid = to_decimal(paid_amount)
    balance = total - paid
    return BalanceSummary(
        total_amount=total,
        paid_amount=paid,
        balance=balance,
        is_payable=is_payable(status, balance),
        is_overpaid=balance < 0,
    )


def paid_amount_from_payments(payments: Iterable[Payment]) -> Decimal:
    return sum((p.amount for p in payments if p.is_completed), Decimal("0"))


def compute_document_status(total_amount, paid_amount) -> InvoiceStatus:
    """
    Status implied by the amounts of a posted bill or invoice:
    paid when nothing is owed, partially_paid once anything was paid, else posted.
    """
    total = to_decimal(total_amount)
    paid = to_decimal(paid_amount)
    if total - paid <= 0:
        return InvoiceStatus.PAID
    if paid > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.POSTED


def generate_payment_number(kind: DocumentKind, sequence: int, on: date) -> str:
    """PAY-YYMM-NNNN for customer invoices, BPAY-YYMM-NNNN for vendor bills."""
    prefix = _PAYMENT_PREFIX[DocumentKind(kind)]
    return f"{prefix}-{on:%y%m}-{sequence:04d}"


class Outstanding(NamedTuple):
    count: int
    amount: Decimal


def outstanding_total(documents: Iterable) -> Outstanding:
    """
    Count and sum the amount still owed on live, posted bills or invoices.
    Drafts, cancelled, paid and archived documents are skipped.
    """
    owing = [
        doc for doc in documents
        if not doc.is_archived and _raw_status(doc.status) in _OUTSTANDING
    ]
    amount = sum(
        (to_decimal(doc.total_amount) - to_decimal(doc.paid_amount) for doc in owing),
        Decimal("0"),
    )
    return Outstanding(count=len(owing), amount=amount)
