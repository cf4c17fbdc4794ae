"""
Integration tests for PaymentService over the SQLite store.
"""
import sqlite3
from datetime import date
from decimal import Decimal

import pytest

from conftest import make_document
from ledger.errors import IllegalTransition, InvalidAmount, PersistenceError
from ledger.payments import PaymentService
from ledger.transitions import TransitionService
from models.actions import Action
from models.status import Audience, DocumentKind, InvoiceStatus, PaymentMode, PaymentStatus


@pytest.fixture
def service(seeded_db):
    return PaymentService(seeded_db)


@pytest.mark.integration
class TestRecordPayment:

    def test_partial_payment(self, service, seeded_db):
        result = service.record_payment(
            "customer_invoice", "inv-posted", "250", mode="cash", on=date(2026, 2, 3),
        )
        assert result.payment.number == "PAY-2602-0002"
        assert result.payment.status is PaymentStatus.COMPLETED
        assert result.payment.mode is PaymentMode.CASH
        assert result.paid_amount == Decimal("250")
        assert result.balance_due == Decimal("750")
        assert result.status is InvoiceStatus.PARTIALLY_PAID
        assert result.document.balance == Decimal("750")

        stored = seeded_db.fetch_document("customer_invoice", "inv-posted")
        assert stored.paid_amount == Decimal("250")
        assert stored.status is InvoiceStatus.PARTIALLY_PAID

    def test_paying_the_balance_marks_paid(self, service, seeded_db):
        result = service.record_payment("customer_invoice", "inv-partial", Decimal("600"))
        assert result.paid_amount == Decimal("1000")
        assert result.balance_due == Decimal("0")
        assert result.status is InvoiceStatus.PAID
        assert len(seeded_db.fetch_payments("customer_invoice", "inv-partial")) == 2

    def test_paid_amount_is_recomputed_from_all_payments(self, service, seeded_db):
        service.record_payment("customer_invoice", "inv-posted", 100)
        service.record_payment("customer_invoice", "inv-posted", 200)
        result = service.record_payment("customer_invoice", "inv-posted", 300)
        assert result.paid_amount == Decimal("600")
        assert seeded_db.fetch_document("customer_invoice", "inv-posted").paid_amount == Decimal("600")

    def test_bill_payment_number(self, seeded_db, service):
        seeded_db.insert_document(make_document(
            id="bill-open", kind=DocumentKind.VENDOR_BILL, number="BILL-0002",
            total_amount=Decimal("800"),
        ))
        result = service.record_payment(
            "vendor_bill", "bill-open", 800, mode="cheque", on=date(2026, 3, 1),
        )
        assert result.payment.number == "BPAY-2603-0002"
        assert result.status is InvoiceStatus.PAID

    def test_fully_paid_document_is_rejected(self, seeded_db, service):
        # paid_amount on the row is stale; the completed cheque still covers the bill
        seeded_db.update_paid_amount("vendor_bill", "bill-paid", Decimal("0"), "posted")
        with pytest.raises(InvalidAmount, match="already fully paid"):
            service.record_payment("vendor_bill", "bill-paid", 10)

    def test_amount_must_be_positive(self, service):
        with pytest.raises(InvalidAmount, match="greater than zero"):
            service.record_payment("customer_invoice", "inv-posted", 0)
        with pytest.raises(InvalidAmount):
            service.record_payment("customer_invoice", "inv-posted", "-5")

    def test_amount_cannot_exceed_balance(self, service, seeded_db):
        with pytest.raises(InvalidAmount, match="exceeds balance due"):
            service.record_payment("customer_invoice", "inv-partial", 601)
        assert len(seeded_db.fetch_payments("customer_invoice", "inv-partial")) == 1

    def test_draft_invoice_cannot_be_paid(self, service):
        with pytest.raises(IllegalTransition):
            service.record_payment("customer_invoice", "inv-draft", 100)

    def test_paid_bill_cannot_be_paid(self, service):
        with pytest.raises(IllegalTransition):
            service.record_payment("vendor_bill", "bill-paid", 1)

    def test_archived_invoice_cannot_be_paid(self, service):
        with pytest.raises(IllegalTransition):
            service.record_payment("customer_invoice", "inv-archived", 1)

    def test_orders_cannot_be_paid(self, service):
        with pytest.raises(IllegalTransition):
            service.record_payment("sales_order", "so-confirmed", 1)

    def test_portal_payment(self, service):
        result = service.record_payment(
            "customer_invoice", "inv-posted", 1000, mode="online", audience=Audience.PORTAL,
        )
        assert result.status is InvoiceStatus.PAID

    def test_failed_status_update_leaves_no_payment(self, service, seeded_db, monkeypatch):
        audit = seeded_db._audit

        def reject_paid_amount(conn, kind, record_id, action, detail=None):
            if action == "paid_amount_updated":
                raise sqlite3.IntegrityError("paid_amount rejected")
            return audit(conn, kind, record_id, action, detail)

        monkeypatch.setattr(seeded_db, "_audit", reject_paid_amount)
        with pytest.raises(PersistenceError):
            service.record_payment("customer_invoice", "inv-posted", 100)

        assert seeded_db.fetch_payments("customer_invoice", "inv-posted") == []
        stored = seeded_db.fetch_document("customer_invoice", "inv-posted")
        assert stored.paid_amount == Decimal("0")
        assert stored.status is InvoiceStatus.POSTED
        assert service.document_balance("customer_invoice", "inv-posted").balance == Decimal("1000")

        _, actions = TransitionService(seeded_db).available_actions("customer_invoice", "inv-posted")
        [pay] = [a for a in actions if a.action is Action.PAY]
        assert "1000" in pay.confirmation_copy


@pytest.mark.integration
class TestDocumentBalance:

    def test_balance_from_payments(self, service):
        summary = service.document_balance("customer_invoice", "inv-partial")
        assert summary.paid_amount == Decimal("400")
        assert summary.balance == Decimal("600")
        assert summary.is_payable is True

    def test_draft_is_not_payable(self, service):
        summary = service.document_balance("customer_invoice", "inv-draft")
        assert summary.balance == Decimal("1000")
        assert summary.is_payable is False

    def test_order_balance_is_its_total(self, service):
        summary = service.document_balance("purchase_order", "po-draft")
        assert summary.balance == Decimal("2500")
        assert summary.paid_amount == Decimal("0")
