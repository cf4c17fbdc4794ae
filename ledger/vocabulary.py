"""
Single source of display labels for statuses, payment modes and budget types.

Every list and detail view resolves its badge text and colour category here
instead of keeping its own lookup table.  Lookups are total: an unrecognised
value renders as itself with a neutral category.
"""
from enum import Enum
from typing import NamedTuple

from models.status import (
    BudgetStatus,
    BudgetType,
    DocumentFamily,
    InvoiceStatus,
    OrderStatus,
    PaymentMode,
    PaymentStatus,
    StatusCategory,
    parse_status,
    require_total,
    resolve_family,
)


class StatusLabel(NamedTuple):
    value: str
    label: str
    category: StatusCategory


_N, _P, _W, _X = (
    StatusCategory.NEUTRAL, StatusCategory.POSITIVE,
    StatusCategory.WARNING, StatusCategory.NEGATIVE,
)

_ORDER_LABELS = {
    OrderStatus.DRAFT:     ("Draft", _N),
    OrderStatus.CONFIRMED: ("Confirmed", _P),
    OrderStatus.CANCELLED: ("Cancelled", _X),
}

_INVOICE_LABELS = {
    InvoiceStatus.DRAFT:          ("Draft", _N),
    InvoiceStatus.POSTED:         ("Posted", _W),
    InvoiceStatus.PARTIALLY_PAID: ("Partially Paid", _W),
    InvoiceStatus.PAID:           ("Paid", _P),
    InvoiceStatus.CANCELLED:      ("Cancelled", _X),
}

_BUDGET_LABELS = {
    BudgetStatus.DRAFT:     ("Draft", _N),
    BudgetStatus.CONFIRMED: ("Confirmed", _P),
    BudgetStatus.REVISED:   ("Revised", _W),
    BudgetStatus.ARCHIVED:  ("Archived", _N),
}

_PAYMENT_LABELS = {
    PaymentStatus.PENDING:   ("Pending", _W),
    PaymentStatus.COMPLETED: ("Completed", _P),
    PaymentStatus.FAILED:    ("Failed", _X),
}

_PAYMENT_MODE_LABELS = {
    PaymentMode.CASH:          "Cash",
    PaymentMode.BANK_TRANSFER: "Bank Transfer",
    PaymentMode.CHEQUE:        "Cheque",
    PaymentMode.ONLINE:        "Online",
}

_BUDGET_TYPE_LABELS = {
    BudgetType.INCOME:  "Income",
    BudgetType.EXPENSE: "Expense",
}

_FAMILY_LABELS = {
    DocumentFamily.ORDER:   _ORDER_LABELS,
    DocumentFamily.INVOICE: _INVOICE_LABELS,
    DocumentFamily.BUDGET:  _BUDGET_LABELS,
    DocumentFamily.PAYMENT: _PAYMENT_LABELS,
}

require_total(_ORDER_LABELS, OrderStatus, "_ORDER_LABELS")
require_total(_INVOICE_LABELS, InvoiceStatus, "_INVOICE_LABELS")
require_total(_BUDGET_LABELS, BudgetStatus, "_BUDGET_LABELS")
require_total(_PAYMENT_LABELS, PaymentStatus, "_PAYMENT_LABELS")
require_total(_PAYMENT_MODE_LABELS, PaymentMode, "_PAYMENT_MODE_LABELS")
require_total(_BUDGET_TYPE_LABELS, BudgetType, "_BUDGET_TYPE_LABELS")
require_total(_FAMILY_LABELS, DocumentFamily, "_FAMILY_LABELS")


def _raw(value) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return "" if value is None else str(value)


def describe_status(family, value) -> StatusLabel:
    """
    Return the badge label and category for *value* within *family*.

    *family* may also be a DocumentKind or a kind string such as
    "customer_invoice".  A value that is not a member of the family's
    vocabulary (including one that only exists in another family) is shown
    verbatim as neutral.
    """
    family = resolve_family(family)
    if family is None:
        return StatusLabel(_raw(value), _raw(value), _N)

    member = parse_status(family, value)
    if member is None:
        return StatusLabel(_raw(value), _raw(value), _N)

    label, category = _FAMILY_LABELS[family][member]
    return StatusLabel(member.value, label, category)


def status_label(family, value) -> str:
    return describe_status(family, value).label


def payment_mode_label(mode) -> str:
    try:
        return _PAYMENT_MODE_LABELS[PaymentMode(_raw(mode))]
    except ValueError:
        return _raw(mode)


def budget_type_label(budget_type) -> str:
    try:
        return _BUDGET_TYPE_LABELS[BudgetType(_raw(budget_type))]
    except ValueError:
        return _raw(budget_type)
