"""
Document Ledger Dashboard — FastAPI backend.

Serves the JSON API used by the list/detail views and the customer/vendor
portal, plus a server-rendered HTML detail page per record.

Which backend holds the records (local SQLite file or hosted Supabase) is
decided by LEDGER_BACKEND; see config.py.

Endpoints
---------
  GET  /api/health                                  → liveness probe
  GET  /api/documents/{kind}                        → list (supports ?status= and ?include_archived=)
  GET  /api/documents/{kind}/{id}                   → snapshot, balance, status label, actions (?audience=portal)
  POST /api/documents/{kind}/{id}/transitions       → apply confirm / cancel / save
  POST /api/documents/{kind}/{id}/payments          → record a payment against a bill or invoice
  POST /api/documents/{kind}/{id}/cancel-request    → portal cancellation request for an order
  GET  /api/documents/{kind}/{id}/pdf               → printable PDF
  GET  /api/budgets/{id}                            → budget, revision history, actions
  POST /api/budgets/{id}/confirm                    → draft → confirmed
  POST /api/budgets/{id}/archive                    → confirmed | revised → archived
  POST /api/budgets/{id}/revise                     → new draft revision of a confirmed budget
  POST /api/budgets/{id}/recalculate                → store a new achieved amount
  GET  /api/portal/summary                          → pending orders, unpaid bills and invoices
  GET  /documents/{kind}/{id}                       → HTML detail page
"""
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response

from config import Config, build_policy, build_store
from dashboard.models import (
    BudgetRecalculate,
    BudgetRevise,
    CancelRequest,
    PaymentCreate,
    TransitionRequest,
)
from dashboard.services.views import build_budget_view, build_document_view, render_document_html
from ledger.actions import get_available_actions
from ledger.budgets import BudgetService
from ledger.errors import (
    ExportError,
    IllegalTransition,
    InvalidAmount,
    LedgerError,
    NotFound,
    PersistenceError,
    TransientError,
)
from ledger.formatting import CurrencyFormatter
from ledger.payments import PaymentService
from ledger.pdf import generate_document_pdf
from ledger.portal import portal_summary
from ledger.transitions import TransitionService
from ledger.vocabulary import status_label
from models.status import Audience, DocumentKind

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config and store are lazy: opened on first request so startup doesn't fail
# if the backend is not reachable yet.  Tests override both dependencies.
# ---------------------------------------------------------------------------
_config: Optional[Config] = None
_store = None


def get_config() -> Config:
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_store(config: Config = Depends(get_config)):
    global _store
    if _store is None:
        _store = build_store(config)
    return _store


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="Document Ledger", docs_url=None, redoc_url=None)

_STATUS_CODES = {
    NotFound:          404,
    TransientError:    503,
    PersistenceError:  409,
    IllegalTransition: 409,
    InvalidAmount:     422,
    ExportError:       500,
}


@app.exception_handler(LedgerError)
def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = next(
        (code for cls, code in _STATUS_CODES.items() if isinstance(exc, cls)), 500
    )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def _document_kind(kind: DocumentKind) -> DocumentKind:
    if kind is DocumentKind.BUDGET:
        raise HTTPException(status_code=404, detail="Budgets are served under /api/budgets")
    return kind


def _document_view(store, config: Config, kind: DocumentKind, document_id: str, audience: Audience) -> dict:
    policy = build_policy(config)
    money = CurrencyFormatter.from_config(config)
    doc, actions = TransitionService(store, policy).available_actions(
        kind, document_id, audience, formatter=money,
    )
    summary = None
    payments = []
    if doc.kind.has_paid_amount:
        payments = store.fetch_payments(doc.kind, doc.id)
        summary = PaymentService(store, policy).document_balance(doc.kind, doc.id)
    return build_document_view(doc, actions, summary, payments, formatter=money)


def _budget_view(store, config: Config, budget_id: str) -> dict:
    service = BudgetService(store, build_policy(config))
    budget = store.fetch_budget(budget_id)
    actions = get_available_actions(budget, policy=service.policy)
    return build_budget_view(
        budget, actions, service.revisions(budget_id),
        formatter=CurrencyFormatter.from_config(config),
    )


# ── Routes ───────────────────────────────────────────────────────────────────

@app.get("/api/health")
def health(config: Config = Depends(get_config)):
    return {
        "status": "ok",
        "backend": config.backend,
        "db_path": str(config.db_path) if config.backend == "sqlite" else None,
        "block_cancel_after_payment": config.block_cancel_after_payment,
    }


@app.get("/api/documents/{kind}")
def list_documents(
    kind: DocumentKind,
    status: Optional[str] = Query(default=None),
    include_archived: bool = Query(default=False),
    store=Depends(get_store),
    config: Config = Depends(get_config),
):
    kind = _document_kind(kind)
    policy = build_policy(config)
    docs = store.list_documents(kind, status=status or None, include_archived=include_archived)
    return [
        {
            **doc.model_dump(mode="json", exclude={"lines"}),
            "status_label": status_label(doc.family, doc.status),
            "actions": [
                a.action.value for a in get_available_actions(doc, policy=policy)
            ],
        }
        for doc in docs
    ]


@app.get("/api/documents/{kind}/{document_id}")
def get_document(
    kind: DocumentKind,
    document_id: str,
    audience: Audience = Query(default=Audience.INTERNAL),
    store=Depends(get_store),
    config: Config = Depends(get_config),
):
    return _document_view(store, config, _document_kind(kind), document_id, audience)


@app.post("/api/documents/{kind}/{document_id}/transitions")
def apply_transition(
    kind: DocumentKind,
    document_id: str,
    body: TransitionRequest,
    store=Depends(get_store),
    config: Config = Depends(get_config),
):
    kind = _document_kind(kind)
    TransitionService(store, build_policy(config)).apply(kind, document_id, body.action)
    return _document_view(store, config, kind, document_id, Audience.INTERNAL)


@app.post("/api/documents/{kind}/{document_id}/payments", status_code=201)
def record_payment(
    kind: DocumentKind,
    document_id: str,
    body: PaymentCreate,
    audience: Audience = Query(default=Audience.INTERNAL),
    store=Depends(get_store),
    config: Config = Depends(get_config),
):
    kind = _document_kind(kind)
    result = PaymentService(store, build_policy(config)).record_payment(
        kind, document_id, body.amount,
        mode=body.mode, reference=body.reference, notes=body.notes, audience=audience,
    )
    return {
        "payment": result.payment.model_dump(mode="json"),
        "paid_amount": str(result.paid_amount),
        "balance_due": str(result.balance_due),
        "status": result.status.value,
        "document": _document_view(store, config, kind, document_id, audience),
    }


@app.post("/api/documents/{kind}/{document_id}/cancel-request", status_code=202)
def request_cancellation(
    kind: DocumentKind,
    document_id: str,
    body: CancelRequest,
    store=Depends(get_store),
    config: Config = Depends(get_config),
):
    kind = _document_kind(kind)
    doc = TransitionService(store, build_policy(config)).request_cancellation(
        kind, document_id, body.reason,
    )
    return {"status": "requested", "document_id": doc.id, "number": doc.number}


@app.get("/api/documents/{kind}/{document_id}/pdf")
def document_pdf(
    kind: DocumentKind,
    document_id: str,
    store=Depends(get_store),
    config: Config = Depends(get_config),
):
    kind = _document_kind(kind)
    doc = store.fetch_document(kind, document_id)
    payments = store.fetch_payments(doc.kind, doc.id) if doc.kind.has_paid_amount else []
    formatter = CurrencyFormatter(
        symbol=config.pdf_currency_prefix,
        decimals=config.currency_decimals,
        grouping=config.digit_grouping,
    )
    data = generate_document_pdf(doc, payments, formatter)
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{doc.number}.pdf"'},
    )


# ── Budgets ──────────────────────────────────────────────────────────────────

@app.get("/api/budgets/{budget_id}")
def get_budget(budget_id: str, store=Depends(get_store), config: Config = Depends(get_config)):
    return _budget_view(store, config, budget_id)


@app.post("/api/budgets/{budget_id}/confirm")
def confirm_budget(budget_id: str, store=Depends(get_store), config: Config = Depends(get_config)):
    BudgetService(store, build_policy(config)).confirm(budget_id)
    return _budget_view(store, config, budget_id)


@app.post("/api/budgets/{budget_id}/archive")
def archive_budget(budget_id: str, store=Depends(get_store), config: Config = Depends(get_config)):
    BudgetService(store, build_policy(config)).archive(budget_id)
    return _budget_view(store, config, budget_id)


@app.post("/api/budgets/{budget_id}/revise", status_code=201)
def revise_budget(
    budget_id: str,
    body: BudgetRevise,
    store=Depends(get_store),
    config: Config = Depends(get_config),
):
    parent, child = BudgetService(store, build_policy(config)).revise(
        budget_id, body.new_amount, body.reason,
    )
    return {
        "parent": _budget_view(store, config, parent.id),
        "revision": _budget_view(store, config, child.id),
    }


@app.post("/api/budgets/{budget_id}/recalculate")
def recalculate_budget(
    budget_id: str,
    body: BudgetRecalculate,
    store=Depends(get_store),
    config: Config = Depends(get_config),
):
    BudgetService(store, build_policy(config)).recalculate(budget_id, body.achieved_amount)
    return _budget_view(store, config, budget_id)


# ── Portal ───────────────────────────────────────────────────────────────────

@app.get("/api/portal/summary")
def get_portal_summary(store=Depends(get_store)):
    summary = portal_summary(store)
    return {
        "pending_sales_orders": summary.pending_sales_orders,
        "pending_purchase_orders": summary.pending_purchase_orders,
        "unpaid_invoices": summary.unpaid_invoices,
        "unpaid_invoice_amount": str(summary.unpaid_invoice_amount),
        "unpaid_bills": summary.unpaid_bills,
        "unpaid_bill_amount": str(summary.unpaid_bill_amount),
    }


# ── HTML detail page ─────────────────────────────────────────────────────────

@app.get("/documents/{kind}/{record_id}", response_class=HTMLResponse)
def document_page(
    kind: DocumentKind,
    record_id: str,
    audience: Audience = Query(default=Audience.INTERNAL),
    store=Depends(get_store),
    config: Config = Depends(get_config),
):
    if kind is DocumentKind.BUDGET:
        view = _budget_view(store, config, record_id)
    else:
        view = _document_view(store, config, kind, record_id, audience)
    return HTMLResponse(
        content=render_document_html(view),
        headers={"Cache-Control": "no-store"},
    )
