from datetime import date
from decimal import Decimal
from typing import Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from .status import (
    DocumentFamily,
    DocumentKind,
    InvoiceStatus,
    OrderStatus,
    PaymentMode,
    PaymentStatus,
    parse_status,
)


class DocumentLine(BaseModel):
    """A single product line on an order, bill or invoice."""
    model_config = ConfigDict(frozen=True)

    product_name: str
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = Decimal("0")
    subtotal: Decimal = Decimal("0")


class TransactionalDocument(BaseModel):
    """
    Immutable snapshot of an order, bill or invoice as fetched from the store.

    Purchase / sales orders carry no paid amount (always 0).  Vendor bills and
    customer invoices carry the paid amount persisted by the payment flow.
    The balance is derived on every access and never stored on the snapshot.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    kind: DocumentKind
    number: str
    status: Union[OrderStatus, InvoiceStatus]
    total_amount: Decimal
    paid_amount: Decimal = Decimal("0")
    party_name: Optional[str] = None        # vendor for purchases, customer for sales
    document_date: Optional[date] = None
    due_date: Optional[date] = None         # bills / invoices only
    notes: Optional[str] = None
    is_archived: bool = False
    lines: Tuple[DocumentLine, ...] = Field(default_factory=tuple)

    @model_validator(mode="before")
    @classmethod
    def _check_status_for_kind(cls, data):
        if not isinstance(data, dict):
            return data
        kind = DocumentKind(data.get("kind"))
        if kind.family not in (DocumentFamily.ORDER, DocumentFamily.INVOICE):
            raise ValueError(f"'{kind.value}' is not a transactional document kind")
        status = parse_status(kind.family, data.get("status"))
        if status is None:
            raise ValueError(
                f"'{data.get('status')}' is not a valid {kind.family.value} status"
            )
        paid = data.get("paid_amount")
        if not kind.has_paid_amount and paid not in (None, 0, Decimal("0"), "0"):
            raise ValueError(f"{kind.value} documents do not carry a paid amount")
        return {**data, "kind": kind, "status": status}

    @property
    def family(self) -> DocumentFamily:
        return self.kind.family

    @computed_field  # type: ignore[misc]
    @property
    def balance(self) -> Decimal:
        return self.total_amount - self.paid_amount


class Payment(BaseModel):
    """
    A payment recorded against exactly one bill or invoice.

    Payments are append-only: a failed payment stays on record, and a
    cancelled document keeps its payment history.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    number: str
    kind: DocumentKind                      # kind of the document being paid
    document_id: str
    status: PaymentStatus = PaymentStatus.PENDING
    amount: Decimal
    mode: PaymentMode
    payment_date: date
    reference: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status is PaymentStatus.COMPLETED
