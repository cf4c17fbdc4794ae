"""
Document store backed by the hosted Supabase (PostgREST) database.

Table and column names follow the ERP schema:

  purchase_orders / sales_orders          order_number, order_date
  vendor_bills / customer_invoices        bill_number | invoice_number,
                                          bill_date | invoice_date, due_date, paid_amount
  bill_payments / invoice_payments        payment_number, vendor_bill_id | customer_invoice_id
  budgets                                 state, type, parent_budget_id, is_archived
  budget_revisions, cancellation_requests

PostgREST offers no multi-statement transactions, so multi-row writes run as
sequential requests and undo their earlier steps when a later one fails:

  record_payment           insert payment, update document; the payment is
                           deleted again if the document update fails
  create_budget_revision   mark parent revised (guarded on state = confirmed),
                           insert child, insert history; the parent goes back
                           to confirmed if the child insert fails
"""
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import NamedTuple, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from models.budget import Budget, BudgetRevision
from models.document import DocumentLine, Payment, TransactionalDocument
from models.status import DocumentKind

from .errors import LedgerError, NotFound, PersistenceError, TransientError

logger = logging.getLogger(__name__)

_client: Optional[Client] = None


def get_supabase_client(url: Optional[str] = None, key: Optional[str] = None) -> Client:
    """Return a cached Supabase client.

    The client is initialised from *url* / *key* or the ``SUPABASE_URL`` and
    ``SUPABASE_KEY`` environment variables and cached for subsequent calls.
    Missing configuration raises TransientError so callers can report it the
    same way as an unreachable backend.
    """
    global _client
    if _client is not None:
        return _client

    url = url or os.getenv("SUPABASE_URL")
    key = key or os.getenv("SUPABASE_KEY")
    if not url or not key:
        raise TransientError("Supabase is not configured (SUPABASE_URL / SUPABASE_KEY)")
    _client = create_client(url, key)
    logger.info("Supabase client initialised for %s", url)
    return _client


class _Table(NamedTuple):
    name: str
    number_column: str
    date_column: str
    party_column: str
    lines_table: str
    payments_table: Optional[str]
    payment_fk: Optional[str]


_TABLES = {
    DocumentKind.PURCHASE_ORDER: _Table(
        "purchase_orders", "order_number", "order_date", "vendor_id",
        "purchase_order_lines", None, None,
    ),
    DocumentKind.SALES_ORDER: _Table(
        "sales_orders", "order_number", "order_date", "customer_id",
        "sales_order_lines", None, None,
    ),
    DocumentKind.VENDOR_BILL: _Table(
        "vendor_bills", "bill_number", "bill_date", "vendor_id",
        "vendor_bill_lines", "bill_payments", "vendor_bill_id",
    ),
    DocumentKind.CUSTOMER_INVOICE: _Table(
        "customer_invoices", "invoice_number", "invoice_date", "customer_id",
        "customer_invoice_lines", "invoice_payments", "customer_invoice_id",
    ),
}


def _value(v) -> str:
    return str(getattr(v, "value", v))


def _decimal(value) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def _date(value) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(str(value)[:10])


class SupabaseStore:
    """DocumentStore implementation over a supabase-py client."""

    def __init__(self, client: Client) -> None:
        self.client = client

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    def _read(self, query, what: str):
        try:
            return query.execute()
        except (APIError, httpx.HTTPError) as exc:
            logger.error("Supabase read failed (%s): %s", what, exc)
            raise TransientError(f"Could not load {what}: {exc}") from exc

    def _write(self, query, what: str):
        try:
            return query.execute()
        except APIError as exc:
            logger.error("Supabase rejected write (%s): %s", what, exc)
            raise PersistenceError(f"Could not {what}: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.error("Supabase unreachable during write (%s): %s", what, exc)
            raise TransientError(f"Could not {what}: {exc}") from exc

    @staticmethod
    def _table(kind) -> _Table:
        return _TABLES[DocumentKind(kind)]

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def _select_document(self, t: _Table, with_lines: bool) -> str:
        columns = "*, contact:contacts(name)"
        if with_lines:
            columns += (
                f", lines:{t.lines_table}(quantity, unit_price, subtotal, product:products(name))"
            )
        return columns

    def fetch_document(self, kind, document_id: str) -> TransactionalDocument:
        kind = DocumentKind(kind)
        t = self._table(kind)
        resp = self._read(
            self.client.table(t.name)
            .select(self._select_document(t, with_lines=True))
            .eq("id", document_id)
            .limit(1),
            f"{kind.value} {document_id}",
        )
        if not resp.data:
            raise NotFound(kind, document_id)
        return self._to_document(kind, resp.data[0])

    def list_documents(
        self,
        kind,
        status: Optional[str] = None,
        include_archived: bool = False,
    ) -> list[TransactionalDocument]:
        kind = DocumentKind(kind)
        t = self._table(kind)
        query = self.client.table(t.name).select(self._select_document(t, with_lines=False))
        if status:
            query = query.eq("status", _value(status))
        if not include_archived:
            query = query.eq("is_archived", False)
        query = query.order(t.date_column, desc=True)
        resp = self._read(query, f"{kind.value} list")
        return [self._to_document(kind, row) for row in resp.data or []]

    def apply_transition(self, kind, document_id: str, new_status) -> None:
        kind = DocumentKind(kind)
        t = self._table(kind)
        resp = self._write(
            self.client.table(t.name)
            .update({"status": _value(new_status)})
            .eq("id", document_id)
            .eq("is_archived", False),
            f"set {kind.value} {document_id} to {_value(new_status)}",
        )
        if not resp.data:
            raise PersistenceError(
                f"{kind.value} {document_id} was not updated (missing or archived)"
            )

    def update_paid_amount(self, kind, document_id: str, paid_amount: Decimal, status) -> None:
        kind = DocumentKind(kind)
        t = self._table(kind)
        resp = self._write(
            self.client.table(t.name)
            .update({"paid_amount": str(paid_amount), "status": _value(status)})
            .eq("id", document_id)
            .eq("is_archived", False),
            f"update paid amount on {kind.value} {document_id}",
        )
        if not resp.data:
            raise PersistenceError(
                f"{kind.value} {document_id} was not updated (missing or archived)"
            )

    def record_cancellation_request(self, kind, document_id: str, reason: Optional[str]) -> None:
        kind = DocumentKind(kind)
        self._write(
            self.client.table("cancellation_requests").insert({
                "document_kind": kind.value,
                "document_id": document_id,
                "reason": reason,
            }),
            f"request cancellation of {kind.value} {document_id}",
        )

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def fetch_payments(self, kind, document_id: str) -> list[Payment]:
        kind = DocumentKind(kind)
        t = self._table(kind)
        if t.payments_table is None:
            return []
        resp = self._read(
            self.client.table(t.payments_table)
            .select("*")
            .eq(t.payment_fk, document_id)
            .order("payment_date", desc=True),
            f"payments for {kind.value} {document_id}",
        )
        return [self._to_payment(kind, t, row) for row in resp.data or []]

    def count_payments(self, kind) -> int:
        kind = DocumentKind(kind)
        t = self._table(kind)
        resp = self._read(
            self.client.table(t.payments_table).select("id", count="exact"),
            f"{t.payments_table} count",
        )
        return int(resp.count or 0)

    def insert_payment(self, payment: Payment) -> Payment:
        t = self._table(payment.kind)
        self._write(
            self.client.table(t.payments_table).insert({
                "id": payment.id,
                "payment_number": payment.number,
                t.payment_fk: payment.document_id,
                "payment_date": payment.payment_date.isoformat(),
                "amount": str(payment.amount),
                "mode": payment.mode.value,
                "status": payment.status.value,
                "reference": payment.reference,
                "notes": payment.notes,
            }),
            f"record payment {payment.number}",
        )
        return payment

    def record_payment(self, payment: Payment, paid_amount: Decimal, status) -> Payment:
        self.insert_payment(payment)
        try:
            self.update_paid_amount(payment.kind, payment.document_id, paid_amount, status)
        except LedgerError:
            logger.warning("Rolling back payment %s: document update failed", payment.number)
            t = self._table(payment.kind)
            self._write(
                self.client.table(t.payments_table).delete().eq("id", payment.id),
                f"remove payment {payment.number}",
            )
            raise
        return payment

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def fetch_budget(self, budget_id: str) -> Budget:
        resp = self._read(
            self.client.table("budgets").select("*").eq("id", budget_id).limit(1),
            f"budget {budget_id}",
        )
        if not resp.data:
            raise NotFound("budget", budget_id)
        return self._to_budget(resp.data[0])

    def list_budget_children(self, budget_id: str) -> list[Budget]:
        resp = self._read(
            self.client.table("budgets")
            .select("*")
            .eq("parent_budget_id", budget_id)
            .order("created_at"),
            f"revisions of budget {budget_id}",
        )
        return [self._to_budget(row) for row in resp.data or []]

    def fetch_budget_revisions(self, budget_id: str) -> list[BudgetRevision]:
        resp = self._read(
            self.client.table("budget_revisions")
            .select("*")
            .eq("budget_id", budget_id)
            .order("revision_date"),
            f"revision history of budget {budget_id}",
        )
        return [
            BudgetRevision(
                id=row["id"],
                budget_id=row["budget_id"],
                revision_date=datetime.fromisoformat(row["revision_date"]),
                previous_amount=_decimal(row["previous_amount"]),
                new_amount=_decimal(row["new_amount"]),
                reason=row.get("reason"),
            )
            for row in resp.data or []
        ]

    def insert_budget(self, budget: Budget) -> Budget:
        self._write(
            self.client.table("budgets").insert(self._budget_row(budget)),
            f"create budget {budget.name}",
        )
        return budget

    def set_budget_status(self, budget_id: str, status, is_archived: bool = False) -> None:
        resp = self._write(
            self.client.table("budgets")
            .update({"state": _value(status), "is_archived": is_archived})
            .eq("id", budget_id)
            .eq("is_archived", False),
            f"set budget {budget_id} to {_value(status)}",
        )
        if not resp.data:
            raise PersistenceError(f"budget {budget_id} was not updated (missing or archived)")

    def set_budget_achieved(self, budget_id: str, achieved_amount: Decimal) -> None:
        resp = self._write(
            self.client.table("budgets")
            .update({"achieved_amount": str(achieved_amount)})
            .eq("id", budget_id)
            .eq("is_archived", False),
            f"recalculate budget {budget_id}",
        )
        if not resp.data:
            raise PersistenceError(f"budget {budget_id} was not updated (missing or archived)")

    def create_budget_revision(self, parent_id: str, child: Budget, revision: BudgetRevision) -> Budget:
        resp = self._write(
            self.client.table("budgets")
            .update({"state": "revised"})
            .eq("id", parent_id)
            .eq("state", "confirmed")
            .eq("is_archived", False),
            f"mark budget {parent_id} revised",
        )
        if not resp.data:
            raise PersistenceError(f"budget {parent_id} is not a live confirmed budget")
        try:
            self.insert_budget(child)
        except LedgerError:
            logger.warning("Child of budget %s not created; restoring confirmed state", parent_id)
            self._write(
                self.client.table("budgets")
                .update({"state": "confirmed"})
                .eq("id", parent_id)
                .eq("state", "revised"),
                f"restore budget {parent_id}",
            )
            raise
        self._write(
            self.client.table("budget_revisions").insert({
                "id": revision.id,
                "budget_id": revision.budget_id,
                "revision_date": revision.revision_date.astimezone(timezone.utc).isoformat(),
                "previous_amount": str(revision.previous_amount),
                "new_amount": str(revision.new_amount),
                "reason": revision.reason,
            }),
            f"record revision of budget {parent_id}",
        )
        return child

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def _to_document(self, kind: DocumentKind, row: dict) -> TransactionalDocument:
        t = self._table(kind)
        contact = row.get("contact") or {}
        lines = []
        for line in row.get("lines") or []:
            product = line.get("product") or {}
            lines.append(DocumentLine(
                product_name=product.get("name") or "",
                quantity=_decimal(line.get("quantity")),
                unit_price=_decimal(line.get("unit_price")),
                subtotal=_decimal(line.get("subtotal")),
            ))
        return TransactionalDocument(
            id=row["id"],
            kind=kind,
            number=row[t.number_column],
            status=row["status"],
            total_amount=_decimal(row.get("total_amount")),
            paid_amount=_decimal(row.get("paid_amount")) if kind.has_paid_amount else Decimal("0"),
            party_name=contact.get("name"),
            document_date=_date(row.get(t.date_column)),
            due_date=_date(row.get("due_date")),
            notes=row.get("notes"),
            is_archived=bool(row.get("is_archived")),
            lines=tuple(lines),
        )

    @staticmethod
    def _to_payment(kind: DocumentKind, t: _Table, row: dict) -> Payment:
        return Payment(
            id=row["id"],
            number=row["payment_number"],
            kind=kind,
            document_id=row[t.payment_fk],
            status=row.get("status") or "pending",
            amount=_decimal(row["amount"]),
            mode=row["mode"],
            payment_date=_date(row["payment_date"]),
            reference=row.get("reference"),
            notes=row.get("notes"),
        )

    @staticmethod
    def _to_budget(row: dict) -> Budget:
        return Budget(
            id=row["id"],
            name=row["name"],
            analytical_account_id=row["analytical_account_id"],
            budget_type=row["type"],
            start_date=_date(row["start_date"]),
            end_date=_date(row["end_date"]),
            status=row["state"],
            budgeted_amount=_decimal(row["budgeted_amount"]),
            achieved_amount=_decimal(row.get("achieved_amount")),
            is_archived=bool(row.get("is_archived")),
            parent_budget_id=row.get("parent_budget_id"),
        )

    @staticmethod
    def _budget_row(budget: Budget) -> dict:
        return {
            "id": budget.id,
            "name": budget.name,
            "analytical_account_id": budget.analytical_account_id,
            "type": budget.budget_type.value,
            "start_date": budget.start_date.isoformat(),
            "end_date": budget.end_date.isoformat(),
            "state": budget.status.value,
            "budgeted_amount": str(budget.budgeted_amount),
            "achieved_amount": str(budget.achieved_amount),
            "is_archived": budget.is_archived,
            "parent_budget_id": budget.parent_budget_id,
        }
