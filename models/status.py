"""
Closed status vocabularies for every document family.

Each family gets its own str-valued Enum so values compare equal to the
plain strings stored in the backend ("draft", "posted", ...).  Tables keyed
by status are checked for completeness with ``require_total`` at import time,
so adding a member without handling it fails loudly instead of silently.
"""
from enum import Enum
from typing import Mapping, Type


class DocumentFamily(str, Enum):
    ORDER = "order"
    INVOICE = "invoice"
    BUDGET = "budget"
    PAYMENT = "payment"


class DocumentKind(str, Enum):
    PURCHASE_ORDER = "purchase_order"
    SALES_ORDER = "sales_order"
    VENDOR_BILL = "vendor_bill"
    CUSTOMER_INVOICE = "customer_invoice"
    BUDGET = "budget"

    @property
    def family(self) -> DocumentFamily:
        return _KIND_FAMILY[self]

    @property
    def has_paid_amount(self) -> bool:
        return self.family is DocumentFamily.INVOICE


_KIND_FAMILY = {
    DocumentKind.PURCHASE_ORDER:   DocumentFamily.ORDER,
    DocumentKind.SALES_ORDER:      DocumentFamily.ORDER,
    DocumentKind.VENDOR_BILL:      DocumentFamily.INVOICE,
    DocumentKind.CUSTOMER_INVOICE: DocumentFamily.INVOICE,
    DocumentKind.BUDGET:           DocumentFamily.BUDGET,
}


class OrderStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    POSTED = "posted"
    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class BudgetStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    REVISED = "revised"
    ARCHIVED = "archived"


class StatusCategory(str, Enum):
    NEUTRAL = "neutral"
    POSITIVE = "positive"
    WARNING = "warning"
    NEGATIVE = "negative"


class PaymentMode(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    ONLINE = "online"


class BudgetType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class Audience(str, Enum):
    INTERNAL = "internal"   # back-office list/detail views
    PORTAL = "portal"       # customer / vendor self-service portal


_FAMILY_STATUS: dict[DocumentFamily, Type[Enum]] = {
    DocumentFamily.ORDER:   OrderStatus,
    DocumentFamily.INVOICE: InvoiceStatus,
    DocumentFamily.BUDGET:  BudgetStatus,
    DocumentFamily.PAYMENT: PaymentStatus,
}


def status_enum_for(family: DocumentFamily) -> Type[Enum]:
    """Return the status Enum class used by *family*."""
    return _FAMILY_STATUS[DocumentFamily(family)]


def resolve_family(value) -> DocumentFamily | None:
    """Family for a family value, a DocumentKind or a kind string; None otherwise."""
    if isinstance(value, DocumentKind):
        return value.family
    try:
        return DocumentFamily(value)
    except ValueError:
        pass
    try:
        return DocumentKind(value).family
    except ValueError:
        return None


def parse_status(family: DocumentFamily, value) -> Enum | None:
    """
    Coerce *value* to the family's status member, or None when it is not a
    member of that family.  Never raises.
    """
    enum_cls = _FAMILY_STATUS.get(family)
    if enum_cls is None:
        return None
    if isinstance(value, enum_cls):
        return value
    raw = value.value if isinstance(value, Enum) else value
    try:
        return enum_cls(raw)
    except ValueError:
        return None


def require_total(table: Mapping, enum_cls: Type[Enum], name: str) -> None:
    """Raise RuntimeError unless *table* has an entry for every member of *enum_cls*."""
    missing = [m.value for m in enum_cls if m not in table]
    if missing:
        raise RuntimeError(f"{name} is missing entries for {enum_cls.__name__}: {missing}")


require_total(_KIND_FAMILY, DocumentKind, "_KIND_FAMILY")
require_total(_FAMILY_STATUS, DocumentFamily, "_FAMILY_STATUS")
