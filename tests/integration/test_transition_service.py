"""
Integration tests for TransitionService over the SQLite store.
"""
from unittest.mock import patch

import pytest

from ledger.errors import IllegalTransition, NotFound, PersistenceError
from ledger.policy import TransitionPolicy
from ledger.transitions import TransitionService
from models.actions import Action
from models.status import Audience, InvoiceStatus, OrderStatus


@pytest.fixture
def service(seeded_db):
    return TransitionService(seeded_db)


@pytest.mark.integration
class TestApply:

    def test_confirm_draft_order(self, service, seeded_db):
        doc = service.apply("purchase_order", "po-draft", "confirm")
        assert doc.status is OrderStatus.CONFIRMED
        assert seeded_db.fetch_document("purchase_order", "po-draft").status is OrderStatus.CONFIRMED

    def test_confirm_draft_invoice_posts_it(self, service):
        doc = service.apply("customer_invoice", "inv-draft", Action.CONFIRM)
        assert doc.status is InvoiceStatus.POSTED

    def test_cancel_confirmed_order(self, service):
        doc = service.apply("sales_order", "so-confirmed", "cancel")
        assert doc.status is OrderStatus.CANCELLED

    def test_confirmed_order_cannot_be_confirmed_again(self, service, seeded_db):
        with pytest.raises(IllegalTransition) as exc_info:
            service.apply("sales_order", "so-confirmed", "confirm")
        assert exc_info.value.status == "confirmed"
        assert exc_info.value.action == "confirm"

    def test_draft_invoice_cannot_be_cancelled(self, service):
        with pytest.raises(IllegalTransition):
            service.apply("customer_invoice", "inv-draft", "cancel")

    def test_paid_bill_cannot_be_cancelled(self, service):
        with pytest.raises(IllegalTransition):
            service.apply("vendor_bill", "bill-paid", "cancel")

    def test_cancel_after_payment_when_allowed(self, seeded_db):
        service = TransitionService(seeded_db, TransitionPolicy(block_cancel_after_payment=False))
        doc = service.apply("customer_invoice", "inv-partial", "cancel")
        assert doc.status is InvoiceStatus.CANCELLED
        # payment history survives the cancellation
        assert len(seeded_db.fetch_payments("customer_invoice", "inv-partial")) == 1

    def test_archived_document_offers_nothing(self, service):
        with pytest.raises(IllegalTransition):
            service.apply("customer_invoice", "inv-archived", "cancel")

    def test_pay_goes_through_payment_service(self, service):
        with pytest.raises(IllegalTransition):
            service.apply("customer_invoice", "inv-posted", "pay")

    def test_save_writes_no_status(self, service, seeded_db):
        doc = service.apply("purchase_order", "po-draft", "save")
        assert doc.status is OrderStatus.DRAFT
        actions = [e["action"] for e in seeded_db.get_audit_log("purchase_order", "po-draft")]
        assert actions == ["created"]

    def test_missing_document(self, service):
        with pytest.raises(NotFound):
            service.apply("purchase_order", "nope", "confirm")

    def test_budget_kind_is_refused(self, service):
        with pytest.raises(ValueError):
            service.apply("budget", "bud-draft", "confirm")

    def test_failed_write_returns_no_new_snapshot(self, service, seeded_db):
        before = seeded_db.fetch_document("purchase_order", "po-draft")
        with patch.object(seeded_db, "apply_transition",
                          side_effect=PersistenceError("rejected")):
            with pytest.raises(PersistenceError):
                service.apply("purchase_order", "po-draft", "confirm")
        assert before.status is OrderStatus.DRAFT
        assert seeded_db.fetch_document("purchase_order", "po-draft").status is OrderStatus.DRAFT


@pytest.mark.integration
class TestCancellationRequest:

    def test_portal_request_on_confirmed_order(self, service, seeded_db):
        doc = service.request_cancellation("sales_order", "so-confirmed", "Ordered twice")
        assert doc.status is OrderStatus.CONFIRMED
        [request] = seeded_db.list_cancellation_requests("sales_order", "so-confirmed")
        assert request["reason"] == "Ordered twice"
        # status unchanged in the store as well
        assert seeded_db.fetch_document("sales_order", "so-confirmed").status is OrderStatus.CONFIRMED

    def test_request_on_invoice_is_refused(self, service):
        with pytest.raises(IllegalTransition):
            service.request_cancellation("customer_invoice", "inv-posted")

    def test_request_on_cancelled_order_is_refused(self, service):
        service.apply("sales_order", "so-confirmed", "cancel")
        with pytest.raises(IllegalTransition):
            service.request_cancellation("sales_order", "so-confirmed")


@pytest.mark.integration
class TestAvailableActions:

    def test_internal_actions_use_payment_history(self, service):
        doc, actions = service.available_actions("customer_invoice", "inv-partial")
        assert doc.number == "INV-0003"
        assert [a.action for a in actions] == [Action.PAY]

    def test_portal_actions(self, service):
        _, actions = service.available_actions("purchase_order", "po-draft", Audience.PORTAL)
        assert [a.action for a in actions] == [Action.CANCEL_REQUEST]
