"""
Integration tests for the SQLite document store.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import make_budget, make_document, make_payment
from ledger.errors import NotFound, PersistenceError
from models.budget import BudgetRevision
from models.status import BudgetStatus, DocumentKind, InvoiceStatus, OrderStatus


@pytest.mark.integration
class TestDocuments:

    def test_insert_and_fetch_round_trip(self, seeded_db):
        doc = seeded_db.fetch_document(DocumentKind.PURCHASE_ORDER, "po-draft")
        assert doc.number == "PO-0001"
        assert doc.status is OrderStatus.DRAFT
        assert doc.total_amount == Decimal("2500")
        assert [line.product_name for line in doc.lines] == ["Teak plank", "Wood polish"]
        assert doc.lines[0].subtotal == Decimal("2000")

    def test_fetch_missing_raises_not_found(self, seeded_db):
        with pytest.raises(NotFound) as exc_info:
            seeded_db.fetch_document("customer_invoice", "does-not-exist")
        assert exc_info.value.kind == "customer_invoice"

    def test_same_id_different_kind_is_not_found(self, seeded_db):
        with pytest.raises(NotFound):
            seeded_db.fetch_document("vendor_bill", "inv-posted")

    def test_list_hides_archived_by_default(self, seeded_db):
        numbers = {d.number for d in seeded_db.list_documents("customer_invoice")}
        assert "INV-0004" not in numbers
        assert {"INV-0001", "INV-0002", "INV-0003"} <= numbers
        everything = seeded_db.list_documents("customer_invoice", include_archived=True)
        assert "INV-0004" in {d.number for d in everything}

    def test_list_filters_by_status(self, seeded_db):
        docs = seeded_db.list_documents("customer_invoice", status="posted")
        assert [d.id for d in docs] == ["inv-posted"]

    def test_apply_transition(self, seeded_db):
        seeded_db.apply_transition("purchase_order", "po-draft", OrderStatus.CONFIRMED)
        doc = seeded_db.fetch_document("purchase_order", "po-draft")
        assert doc.status is OrderStatus.CONFIRMED

    def test_backend_rejects_status_from_another_family(self, seeded_db):
        with pytest.raises(PersistenceError):
            seeded_db.apply_transition("purchase_order", "po-draft", "paid")
        assert seeded_db.fetch_document("purchase_order", "po-draft").status is OrderStatus.DRAFT

    def test_archived_documents_are_read_only(self, seeded_db):
        with pytest.raises(PersistenceError):
            seeded_db.apply_transition("customer_invoice", "inv-archived", "cancelled")

    def test_transition_on_missing_document(self, seeded_db):
        with pytest.raises(PersistenceError):
            seeded_db.apply_transition("sales_order", "nope", "cancelled")

    def test_duplicate_number_is_rejected(self, seeded_db):
        with pytest.raises(PersistenceError):
            seeded_db.insert_document(make_document(id="inv-dup", number="INV-0002"))


@pytest.mark.integration
class TestPayments:

    def test_fetch_payments(self, seeded_db):
        [payment] = seeded_db.fetch_payments("customer_invoice", "inv-partial")
        assert payment.amount == Decimal("400")
        assert payment.is_completed

    def test_count_payments_per_kind(self, seeded_db):
        assert seeded_db.count_payments("customer_invoice") == 1
        assert seeded_db.count_payments("vendor_bill") == 1

    def test_non_positive_amount_rejected_by_backend(self, seeded_db):
        with pytest.raises(PersistenceError):
            seeded_db.insert_payment(make_payment(
                id="pay-zero", number="PAY-2601-0099", document_id="inv-posted",
                amount=Decimal("0"),
            ))

    def test_update_paid_amount(self, seeded_db):
        seeded_db.update_paid_amount(
            "customer_invoice", "inv-partial", Decimal("1000"), InvoiceStatus.PAID
        )
        doc = seeded_db.fetch_document("customer_invoice", "inv-partial")
        assert doc.paid_amount == Decimal("1000")
        assert doc.status is InvoiceStatus.PAID
        assert doc.balance == Decimal("0")

    def test_record_payment_writes_payment_and_paid_amount(self, seeded_db):
        payment = make_payment(
            id="pay-rest", number="PAY-2601-0002", document_id="inv-partial",
            amount=Decimal("600"),
        )
        seeded_db.record_payment(payment, Decimal("1000"), InvoiceStatus.PAID)
        assert len(seeded_db.fetch_payments("customer_invoice", "inv-partial")) == 2
        doc = seeded_db.fetch_document("customer_invoice", "inv-partial")
        assert doc.paid_amount == Decimal("1000")
        assert doc.status is InvoiceStatus.PAID
        actions = [e["action"] for e in seeded_db.get_audit_log("customer_invoice", "inv-partial")]
        assert actions[-2:] == ["payment_recorded", "paid_amount_updated"]

    def test_record_payment_on_archived_document_is_rolled_back(self, seeded_db):
        payment = make_payment(
            id="pay-late", number="PAY-2601-0002", document_id="inv-archived",
            amount=Decimal("100"),
        )
        with pytest.raises(PersistenceError):
            seeded_db.record_payment(payment, Decimal("100"), InvoiceStatus.PARTIALLY_PAID)
        assert seeded_db.fetch_payments("customer_invoice", "inv-archived") == []


@pytest.mark.integration
class TestBudgets:

    def test_fetch_budget(self, seeded_db):
        budget = seeded_db.fetch_budget("bud-confirmed")
        assert budget.status is BudgetStatus.CONFIRMED
        assert budget.budgeted_amount == Decimal("500")

    def test_missing_budget(self, seeded_db):
        with pytest.raises(NotFound):
            seeded_db.fetch_budget("nope")

    def test_set_status_and_archive(self, seeded_db):
        seeded_db.set_budget_status("bud-confirmed", BudgetStatus.ARCHIVED, is_archived=True)
        budget = seeded_db.fetch_budget("bud-confirmed")
        assert budget.is_archived is True
        with pytest.raises(PersistenceError):
            seeded_db.set_budget_status("bud-confirmed", BudgetStatus.CONFIRMED)

    def test_set_budget_achieved(self, seeded_db):
        seeded_db.set_budget_achieved("bud-confirmed", Decimal("275.50"))
        budget = seeded_db.fetch_budget("bud-confirmed")
        assert budget.achieved_amount == Decimal("275.50")
        assert budget.remaining_balance == Decimal("224.50")

    def test_archived_budget_achieved_is_read_only(self, seeded_db):
        seeded_db.set_budget_status("bud-confirmed", BudgetStatus.ARCHIVED, is_archived=True)
        with pytest.raises(PersistenceError):
            seeded_db.set_budget_achieved("bud-confirmed", Decimal("300"))
        with pytest.raises(PersistenceError):
            seeded_db.set_budget_achieved("nope", Decimal("300"))

    def test_revision_is_atomic(self, seeded_db):
        child = make_budget(id="bud-child", status="draft", parent_budget_id="bud-draft")
        revision = BudgetRevision(
            id="rev-x", budget_id="bud-draft", revision_date=datetime.now(timezone.utc),
            previous_amount=Decimal("500"), new_amount=Decimal("600"),
        )
        # bud-draft is not confirmed, so nothing may be written
        with pytest.raises(PersistenceError):
            seeded_db.create_budget_revision("bud-draft", child, revision)
        with pytest.raises(NotFound):
            seeded_db.fetch_budget("bud-child")
        assert seeded_db.fetch_budget_revisions("bud-draft") == []
        assert seeded_db.fetch_budget("bud-draft").status is BudgetStatus.DRAFT


@pytest.mark.integration
class TestAuditLog:

    def test_writes_are_audited(self, seeded_db):
        seeded_db.apply_transition("sales_order", "so-confirmed", "cancelled")
        seeded_db.record_cancellation_request("sales_order", "so-confirmed", "duplicate")
        actions = [e["action"] for e in seeded_db.get_audit_log("sales_order", "so-confirmed")]
        assert actions == ["created", "status_changed", "cancel_requested"]

    def test_rejected_write_leaves_no_audit_entry(self, seeded_db):
        with pytest.raises(PersistenceError):
            seeded_db.apply_transition("purchase_order", "po-draft", "posted")
        actions = [e["action"] for e in seeded_db.get_audit_log("purchase_order", "po-draft")]
        assert actions == ["created"]

    def test_cancellation_requests_are_listed(self, seeded_db):
        seeded_db.record_cancellation_request("purchase_order", "po-draft", "wrong vendor")
        [request] = seeded_db.list_cancellation_requests("purchase_order", "po-draft")
        assert request["reason"] == "wrong vendor"
