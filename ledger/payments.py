"""
Payment recording for vendor bills and customer invoices.

Steps for every payment:
  1. Validate the request against the document's current state
  2. Build the payment record with status 'completed'
  3. Recalculate paid_amount from ALL completed payments, the new one included
     (never incrementally)
  4. Derive the new status from total and paid amount
  5. Store the payment together with paid_amount and status in one write
"""
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import NamedTuple, Optional

from models.actions import Action
from models.document import Payment, TransactionalDocument
from models.status import Audience, DocumentFamily, DocumentKind, InvoiceStatus, PaymentMode, PaymentStatus

from .balance import (
    BalanceSummary,
    compute_document_status,
    generate_payment_number,
    paid_amount_from_payments,
    summarize_balance,
    to_decimal,
)
from .errors import IllegalTransition, InvalidAmount
from .policy import DEFAULT_POLICY, TransitionPolicy
from .store import DocumentStore

logger = logging.getLogger(__name__)


class PaymentResult(NamedTuple):
    payment: Payment
    paid_amount: Decimal
    balance_due: Decimal
    status: InvoiceStatus
    document: TransactionalDocument


class PaymentService:

    def __init__(self, store: DocumentStore, policy: Optional[TransitionPolicy] = None) -> None:
        self.store = store
        self.policy = policy or DEFAULT_POLICY

    def document_balance(self, kind, document_id: str) -> BalanceSummary:
        """Balance of a bill or invoice, recomputed from its completed payments."""
        doc = self.store.fetch_document(DocumentKind(kind), document_id)
        payments = self.store.fetch_payments(doc.kind, doc.id) if doc.kind.has_paid_amount else []
        paid = paid_amount_from_payments(payments)
        return summarize_balance(doc.total_amount, paid, doc.status)

    def record_payment(
        self,
        kind,
        document_id: str,
        amount,
        mode=PaymentMode.BANK_TRANSFER,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
        on: Optional[date] = None,
        audience: Audience = Audience.INTERNAL,
    ) -> PaymentResult:
        kind = DocumentKind(kind)
        doc = self.store.fetch_document(kind, document_id)
        if doc.family is not DocumentFamily.INVOICE:
            raise IllegalTransition(doc.kind, doc.id, Action.PAY, doc.status)

        payments = self.store.fetch_payments(doc.kind, doc.id)
        if not self.policy.allows(
            doc.family, doc.status, doc.is_archived, Action.PAY,
            audience=audience,
            has_completed_payment=any(p.is_completed for p in payments),
        ):
            logger.warning(
                "Rejected payment on %s %s (status=%s, archived=%s)",
                doc.kind.value, doc.number, doc.status.value, doc.is_archived,
            )
            raise IllegalTransition(doc.kind, doc.id, Action.PAY, doc.status)

        amount = to_decimal(amount)
        balance = doc.total_amount - paid_amount_from_payments(payments)
        if amount <= 0:
            raise InvalidAmount("Payment amount must be greater than zero")
        if balance <= 0:
            raise InvalidAmount(f"{doc.number} is already fully paid")
        if amount > balance:
            raise InvalidAmount(f"Payment amount {amount} exceeds balance due {balance}")

        on = on or date.today()
        number = generate_payment_number(doc.kind, self.store.count_payments(doc.kind) + 1, on)
        payment = Payment(
            id=str(uuid.uuid4()),
            number=number,
            kind=doc.kind,
            document_id=doc.id,
            status=PaymentStatus.COMPLETED,
            amount=amount,
            mode=PaymentMode(mode),
            payment_date=on,
            reference=reference or None,
            notes=notes or None,
        )
        paid = paid_amount_from_payments([*payments, payment])
        status = compute_document_status(doc.total_amount, paid)
        self.store.record_payment(payment, paid, status)

        balance_due = doc.total_amount - paid
        logger.info(
            "Payment %s of %s recorded on %s %s: paid=%s balance=%s status=%s",
            number, amount, doc.kind.value, doc.number, paid, balance_due, status.value,
        )
        return PaymentResult(
            payment=payment,
            paid_amount=paid,
            balance_due=balance_due,
            status=status,
            document=doc.model_copy(update={"paid_amount": paid, "status": status}),
        )
