"""
SQLite implementation of the document store.

Used for local development, the CLI and the test-suite; production views talk
to the hosted backend through SupabaseStore with the same contract.

The schema mirrors the hosted tables closely enough that the same status
constraints apply: each kind only accepts its own family's statuses, payment
amounts must be positive, and budgets link to their parent revision.  Every
write appends to audit_log.

Amounts are stored as TEXT so Decimal values round-trip exactly.
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Optional

from models.budget import Budget, BudgetRevision
from models.document import DocumentLine, Payment, TransactionalDocument
from models.status import DocumentKind

from .errors import NotFound, PersistenceError, TransientError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    kind            TEXT NOT NULL,
    id              TEXT NOT NULL,
    number          TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'draft',
    total_amount    TEXT NOT NULL DEFAULT '0',
    paid_amount     TEXT NOT NULL DEFAULT '0',
    party_name      TEXT,
    document_date   TEXT,
    due_date        TEXT,
    notes           TEXT,
    is_archived     INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    PRIMARY KEY (kind, id),
    UNIQUE (kind, number),
    CHECK (
        (kind IN ('purchase_order', 'sales_order')
            AND status IN ('draft', 'confirmed', 'cancelled'))
        OR
        (kind IN ('vendor_bill', 'customer_invoice')
            AND status IN ('draft', 'posted', 'paid', 'partially_paid', 'cancelled'))
    )
);

CREATE TABLE IF NOT EXISTS document_lines (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    kind            TEXT NOT NULL,
    document_id     TEXT NOT NULL,
    product_name    TEXT NOT NULL,
    quantity        TEXT NOT NULL,
    unit_price      TEXT NOT NULL,
    subtotal        TEXT NOT NULL,
    FOREIGN KEY (kind, document_id) REFERENCES documents (kind, id)
);

CREATE TABLE IF NOT EXISTS payments (
    id              TEXT PRIMARY KEY,
    number          TEXT NOT NULL UNIQUE,
    kind            TEXT NOT NULL CHECK (kind IN ('vendor_bill', 'customer_invoice')),
    document_id     TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'completed', 'failed')),
    amount          TEXT NOT NULL CHECK (CAST(amount AS REAL) > 0),
    mode            TEXT NOT NULL,
    payment_date    TEXT NOT NULL,
    reference       TEXT,
    notes           TEXT,
    created_at      TEXT NOT NULL,
    FOREIGN KEY (kind, document_id) REFERENCES documents (kind, id)
);

CREATE TABLE IF NOT EXISTS budgets (
    id                      TEXT PRIMARY KEY,
    name                    TEXT NOT NULL,
    analytical_account_id   TEXT NOT NULL,
    budget_type             TEXT NOT NULL CHECK (budget_type IN ('income', 'expense')),
    start_date              TEXT NOT NULL,
    end_date                TEXT NOT NULL,
    status                  TEXT NOT NULL DEFAULT 'draft'
                            CHECK (status IN ('draft', 'confirmed', 'revised', 'archived')),
    budgeted_amount         TEXT NOT NULL CHECK (CAST(budgeted_amount AS REAL) >= 0),
    achieved_amount         TEXT NOT NULL DEFAULT '0',
    is_archived             INTEGER NOT NULL DEFAULT 0,
    parent_budget_id        TEXT REFERENCES budgets (id),
    created_at              TEXT NOT NULL,
    updated_at              TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS budget_revisions (
    id              TEXT PRIMARY KEY,
    budget_id       TEXT NOT NULL REFERENCES budgets (id),
    revision_date   TEXT NOT NULL,
    previous_amount TEXT NOT NULL,
    new_amount      TEXT NOT NULL,
    reason          TEXT
);

CREATE TABLE IF NOT EXISTS cancellation_requests (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    kind            TEXT NOT NULL,
    document_id     TEXT NOT NULL,
    reason          TEXT,
    requested_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS audit_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    record_kind TEXT    NOT NULL,
    record_id   TEXT    NOT NULL,
    timestamp   TEXT    NOT NULL,   -- ISO-8601 UTC
    action      TEXT    NOT NULL,   -- created | status_changed | payment_recorded |
                                    -- paid_amount_updated | revised | cancel_requested
    actor       TEXT    NOT NULL DEFAULT 'system',
    detail      TEXT                -- optional JSON blob with action-specific context
);

CREATE INDEX IF NOT EXISTS idx_documents_status   ON documents (kind, status);
CREATE INDEX IF NOT EXISTS idx_payments_document  ON payments (kind, document_id);
CREATE INDEX IF NOT EXISTS idx_budgets_parent     ON budgets (parent_budget_id);
CREATE INDEX IF NOT EXISTS idx_audit_record       ON audit_log (record_kind, record_id);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _value(v) -> str:
    return str(getattr(v, "value", v))


def _iso(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None


class Database:
    """Thin wrapper around an SQLite database file implementing DocumentStore."""

    def __init__(self, db_path: Path, actor: str = "system") -> None:
        self.db_path = db_path
        self.actor = actor
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def _read(self):
        try:
            with self._conn() as conn:
                yield conn
        except sqlite3.OperationalError as exc:
            logger.error("Database read failed: %s", exc)
            raise TransientError(f"Database unavailable: {exc}") from exc

    @contextmanager
    def _write(self, what: str):
        try:
            with self._conn() as conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("Database write rejected (%s): %s", what, exc)
            raise PersistenceError(f"Could not {what}: {exc}") from exc

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Database schema ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def _audit(self, conn, kind, record_id: str, action: str, detail: Optional[dict] = None) -> None:
        conn.execute(
            """INSERT INTO audit_log (record_kind, record_id, timestamp, action, actor, detail)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                _value(kind), record_id, _now(), action, self.actor,
                json.dumps(detail, default=str) if detail else None,
            ),
        )

    def get_audit_log(self, kind, record_id: str) -> list[dict]:
        """Return all audit entries for one record, oldest first."""
        with self._read() as conn:
            rows = conn.execute(
                """SELECT id, timestamp, action, actor, detail
                   FROM audit_log WHERE record_kind = ? AND record_id = ?
                   ORDER BY timestamp ASC, id ASC""",
                (_value(kind), record_id),
            ).fetchall()
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def insert_document(self, doc: TransactionalDocument) -> TransactionalDocument:
        """Create an order, bill or invoice together with its lines."""
        now = _now()
        with self._write(f"create {doc.kind.value} {doc.number}") as conn:
            conn.execute(
                """INSERT INTO documents (
                       kind, id, number, status, total_amount, paid_amount,
                       party_name, document_date, due_date, notes, is_archived,
                       created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    doc.kind.value, doc.id, doc.number, doc.status.value,
                    str(doc.total_amount), str(doc.paid_amount),
                    doc.party_name, _iso(doc.document_date), _iso(doc.due_date),
                    doc.notes, int(doc.is_archived), now, now,
                ),
            )
            conn.executemany(
                """INSERT INTO document_lines
                       (kind, document_id, product_name, quantity, unit_price, subtotal)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                [
                    (doc.kind.value, doc.id, line.product_name,
                     str(line.quantity), str(line.unit_price), str(line.subtotal))
                    for line in doc.lines
                ],
            )
            self._audit(conn, doc.kind, doc.id, "created", {"status": doc.status.value})
        logger.info("Created %s %s (%s)", doc.kind.value, doc.number, doc.status.value)
        return doc

    def fetch_document(self, kind, document_id: str) -> TransactionalDocument:
        kind = DocumentKind(kind)
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM documents WHERE kind=? AND id=?", (kind.value, document_id)
            ).fetchone()
            if row is None:
                raise NotFound(kind, document_id)
            lines = conn.execute(
                """SELECT product_name, quantity, unit_price, subtotal
                   FROM document_lines WHERE kind=? AND document_id=? ORDER BY id""",
                (kind.value, document_id),
            ).fetchall()
        return _row_to_document(row, lines)

    def list_documents(
        self,
        kind,
        status: Optional[str] = None,
        include_archived: bool = False,
    ) -> list[TransactionalDocument]:
        kind = DocumentKind(kind)
        clauses = ["kind = ?"]
        params: list = [kind.value]
        if status:
            clauses.append("status = ?")
            params.append(_value(status))
        if not include_archived:
            clauses.append("is_archived = 0")

        with self._read() as conn:
            rows = conn.execute(
                f"SELECT * FROM documents WHERE {' AND '.join(clauses)} "
                "ORDER BY document_date DESC, number DESC",
                params,
            ).fetchall()
        return [_row_to_document(r, ()) for r in rows]

    def apply_transition(self, kind, document_id: str, new_status) -> None:
        kind = DocumentKind(kind)
        new_status = _value(new_status)
        with self._write(f"set {kind.value} {document_id} to {new_status}") as conn:
            row = conn.execute(
                "SELECT status, is_archived FROM documents WHERE kind=? AND id=?",
                (kind.value, document_id),
            ).fetchone()
            if row is None:
                raise sqlite3.IntegrityError(f"no {kind.value} with id {document_id}")
            if row["is_archived"]:
                raise sqlite3.IntegrityError("archived documents are read-only")
            conn.execute(
                "UPDATE documents SET status=?, updated_at=? WHERE kind=? AND id=?",
                (new_status, _now(), kind.value, document_id),
            )
            self._audit(conn, kind, document_id, "status_changed",
                        {"from": row["status"], "to": new_status})

    def update_paid_amount(self, kind, document_id: str, paid_amount: Decimal, status) -> None:
        kind = DocumentKind(kind)
        with self._write(f"update paid amount on {kind.value} {document_id}") as conn:
            self._update_paid_amount(conn, kind, document_id, paid_amount, status)

    def _update_paid_amount(self, conn, kind: DocumentKind, document_id: str, paid_amount, status) -> None:
        cur = conn.execute(
            """UPDATE documents SET paid_amount=?, status=?, updated_at=?
               WHERE kind=? AND id=? AND is_archived=0""",
            (str(paid_amount), _value(status), _now(), kind.value, document_id),
        )
        if cur.rowcount == 0:
            raise sqlite3.IntegrityError(f"no live {kind.value} with id {document_id}")
        self._audit(conn, kind, document_id, "paid_amount_updated",
                    {"paid_amount": str(paid_amount), "status": _value(status)})

    def record_cancellation_request(self, kind, document_id: str, reason: Optional[str]) -> None:
        kind = DocumentKind(kind)
        with self._write(f"request cancellation of {kind.value} {document_id}") as conn:
            conn.execute(
                """INSERT INTO cancellation_requests (kind, document_id, reason, requested_at)
                   VALUES (?, ?, ?, ?)""",
                (kind.value, document_id, reason, _now()),
            )
            self._audit(conn, kind, document_id, "cancel_requested", {"reason": reason})

    def list_cancellation_requests(self, kind, document_id: str) -> list[dict]:
        with self._read() as conn:
            rows = conn.execute(
                """SELECT id, reason, requested_at FROM cancellation_requests
                   WHERE kind=? AND document_id=? ORDER BY id""",
                (_value(kind), document_id),
            ).fetchall()
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def fetch_payments(self, kind, document_id: str) -> list[Payment]:
        with self._read() as conn:
            rows = conn.execute(
                """SELECT * FROM payments WHERE kind=? AND document_id=?
                   ORDER BY payment_date DESC, number DESC""",
                (_value(kind), document_id),
            ).fetchall()
        return [_row_to_payment(r) for r in rows]

    def count_payments(self, kind) -> int:
        with self._read() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM payments WHERE kind=?", (_value(kind),)
            ).fetchone()
        return int(row["n"])

    def insert_payment(self, payment: Payment) -> Payment:
        with self._write(f"record payment {payment.number}") as conn:
            self._insert_payment(conn, payment)
        return payment

    def record_payment(self, payment: Payment, paid_amount: Decimal, status) -> Payment:
        """Insert the payment and update the document's paid amount in one transaction."""
        with self._write(f"record payment {payment.number}") as conn:
            self._insert_payment(conn, payment)
            self._update_paid_amount(conn, payment.kind, payment.document_id, paid_amount, status)
        return payment

    def _insert_payment(self, conn, payment: Payment) -> None:
        conn.execute(
            """INSERT INTO payments (
                   id, number, kind, document_id, status, amount, mode,
                   payment_date, reference, notes, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                payment.id, payment.number, payment.kind.value, payment.document_id,
                payment.status.value, str(payment.amount), payment.mode.value,
                payment.payment_date.isoformat(), payment.reference, payment.notes, _now(),
            ),
        )
        self._audit(conn, payment.kind, payment.document_id, "payment_recorded", {
            "payment": payment.number,
            "amount": str(payment.amount),
            "status": payment.status.value,
        })

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def insert_budget(self, budget: Budget) -> Budget:
        with self._write(f"create budget {budget.name}") as conn:
            self._insert_budget(conn, budget)
        logger.info("Created budget %s (%s)", budget.id, budget.name)
        return budget

    def _insert_budget(self, conn, budget: Budget) -> None:
        now = _now()
        conn.execute(
            """INSERT INTO budgets (
                   id, name, analytical_account_id, budget_type, start_date, end_date,
                   status, budgeted_amount, achieved_amount, is_archived,
                   parent_budget_id, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                budget.id, budget.name, budget.analytical_account_id,
                budget.budget_type.value, budget.start_date.isoformat(),
                budget.end_date.isoformat(), budget.status.value,
                str(budget.budgeted_amount), str(budget.achieved_amount),
                int(budget.is_archived), budget.parent_budget_id, now, now,
            ),
        )
        self._audit(conn, "budget", budget.id, "created", {
            "status": budget.status.value,
            "parent_budget_id": budget.parent_budget_id,
        })

    def fetch_budget(self, budget_id: str) -> Budget:
        with self._read() as conn:
            row = conn.execute("SELECT * FROM budgets WHERE id=?", (budget_id,)).fetchone()
        if row is None:
            raise NotFound("budget", budget_id)
        return _row_to_budget(row)

    def list_budget_children(self, budget_id: str) -> list[Budget]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM budgets WHERE parent_budget_id=? ORDER BY created_at",
                (budget_id,),
            ).fetchall()
        return [_row_to_budget(r) for r in rows]

    def fetch_budget_revisions(self, budget_id: str) -> list[BudgetRevision]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM budget_revisions WHERE budget_id=? ORDER BY revision_date",
                (budget_id,),
            ).fetchall()
        return [
            BudgetRevision(
                id=r["id"],
                budget_id=r["budget_id"],
                revision_date=datetime.fromisoformat(r["revision_date"]),
                previous_amount=Decimal(r["previous_amount"]),
                new_amount=Decimal(r["new_amount"]),
                reason=r["reason"],
            )
            for r in rows
        ]

    def set_budget_status(self, budget_id: str, status, is_archived: bool = False) -> None:
        status = _value(status)
        with self._write(f"set budget {budget_id} to {status}") as conn:
            row = conn.execute(
                "SELECT status, is_archived FROM budgets WHERE id=?", (budget_id,)
            ).fetchone()
            if row is None:
                raise sqlite3.IntegrityError(f"no budget with id {budget_id}")
            if row["is_archived"]:
                raise sqlite3.IntegrityError("archived budgets are read-only")
            conn.execute(
                "UPDATE budgets SET status=?, is_archived=?, updated_at=? WHERE id=?",
                (status, int(is_archived), _now(), budget_id),
            )
            self._audit(conn, "budget", budget_id, "status_changed",
                        {"from": row["status"], "to": status, "is_archived": is_archived})

    def set_budget_achieved(self, budget_id: str, achieved_amount: Decimal) -> None:
        with self._write(f"recalculate budget {budget_id}") as conn:
            row = conn.execute(
                "SELECT achieved_amount FROM budgets WHERE id=? AND is_archived=0", (budget_id,)
            ).fetchone()
            if row is None:
                raise sqlite3.IntegrityError(f"no live budget with id {budget_id}")
            conn.execute(
                "UPDATE budgets SET achieved_amount=?, updated_at=? WHERE id=?",
                (str(achieved_amount), _now(), budget_id),
            )
            self._audit(conn, "budget", budget_id, "achieved_updated",
                        {"from": row["achieved_amount"], "to": str(achieved_amount)})

    def create_budget_revision(self, parent_id: str, child: Budget, revision: BudgetRevision) -> Budget:
        """Mark the parent revised, insert the child and the history row in one transaction."""
        with self._write(f"revise budget {parent_id}") as conn:
            cur = conn.execute(
                """UPDATE budgets SET status='revised', updated_at=?
                   WHERE id=? AND status='confirmed' AND is_archived=0""",
                (_now(), parent_id),
            )
            if cur.rowcount == 0:
                raise sqlite3.IntegrityError(f"budget {parent_id} is not a live confirmed budget")
            self._insert_budget(conn, child)
            conn.execute(
                """INSERT INTO budget_revisions
                       (id, budget_id, revision_date, previous_amount, new_amount, reason)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    revision.id, revision.budget_id, revision.revision_date.isoformat(),
                    str(revision.previous_amount), str(revision.new_amount), revision.reason,
                ),
            )
            self._audit(conn, "budget", parent_id, "revised",
                        {"child_id": child.id, "new_amount": str(revision.new_amount)})
        return child


# ------------------------------------------------------------------
# Row conversion
# ------------------------------------------------------------------

def _date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _row_to_document(row, lines) -> TransactionalDocument:
    kind = DocumentKind(row["kind"])
    return TransactionalDocument(
        id=row["id"],
        kind=kind,
        number=row["number"],
        status=row["status"],
        total_amount=Decimal(row["total_amount"]),
        paid_amount=Decimal(row["paid_amount"]) if kind.has_paid_amount else Decimal("0"),
        party_name=row["party_name"],
        document_date=_date(row["document_date"]),
        due_date=_date(row["due_date"]),
        notes=row["notes"],
        is_archived=bool(row["is_archived"]),
        lines=tuple(
            DocumentLine(
                product_name=line["product_name"],
                quantity=Decimal(line["quantity"]),
                unit_price=Decimal(line["unit_price"]),
                subtotal=Decimal(line["subtotal"]),
            )
            for line in lines
        ),
    )


def _row_to_payment(row) -> Payment:
    return Payment(
        id=row["id"],
        number=row["number"],
        kind=row["kind"],
        document_id=row["document_id"],
        status=row["status"],
        amount=Decimal(row["amount"]),
        mode=row["mode"],
        payment_date=date.fromisoformat(row["payment_date"]),
        reference=row["reference"],
        notes=row["notes"],
    )


def _row_to_budget(row) -> Budget:
    return Budget(
        id=row["id"],
        name=row["name"],
        analytical_account_id=row["analytical_account_id"],
        budget_type=row["budget_type"],
        start_date=date.fromisoformat(row["start_date"]),
        end_date=date.fromisoformat(row["end_date"]),
        status=row["status"],
        budgeted_amount=Decimal(row["budgeted_amount"]),
        achieved_amount=Decimal(row["achieved_amount"]),
        is_archived=bool(row["is_archived"]),
        parent_budget_id=row["parent_budget_id"],
    )
