"""
View payloads and HTML rendering for document detail pages.

The JSON API and the HTML page share one payload so both always show the
same status label, balance and action bar.
"""
from typing import Iterable, Optional

from jinja2 import BaseLoader, Environment

from ledger.balance import BalanceSummary
from ledger.vocabulary import budget_type_label, describe_status, payment_mode_label
from models.budget import Budget
from models.document import Payment, TransactionalDocument

# Detail page template
DEFAULT_DOCUMENT_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>{{ title }} {{ number }}</title>
  <style>
    body { font-family: system-ui, sans-serif; margin: 2rem; color: #1f2937; }
    .badge { padding: 2px 10px; border-radius: 999px; font-size: 0.85rem; }
    .badge.neutral  { background: #e5e7eb; }
    .badge.positive { background: #d1fae5; color: #065f46; }
    .badge.warning  { background: #fef3c7; color: #92400e; }
    .badge.negative { background: #fee2e2; color: #991b1b; }
    .card { border: 1px solid #e5e7eb; border-radius: 8px; padding: 1rem; margin: 1rem 0; max-width: 28rem; }
    .card .row { display: flex; justify-content: space-between; padding: 2px 0; }
    .card .row.due { font-weight: 600; border-top: 1px solid #e5e7eb; margin-top: 4px; padding-top: 6px; }
    table { border-collapse: collapse; margin: 1rem 0; }
    th, td { border-bottom: 1px solid #e5e7eb; padding: 6px 12px; text-align: left; }
    td.num, th.num { text-align: right; }
    .actions button { margin-right: 0.5rem; }
    .readonly { color: #6b7280; font-style: italic; }
  </style>
</head>
<body>
  <h1>{{ title }} <small>{{ number }}</small></h1>
  <span class="badge {{ status.category }}">{{ status.label }}</span>
  {% if is_archived %}<span class="badge neutral">Archived</span>{% endif %}

  {% if party_name %}<p>{{ party_label }}: <strong>{{ party_name }}</strong></p>{% endif %}
  {% for label, value in facts %}
  <p>{{ label }}: {{ value }}</p>
  {% endfor %}

  {% if amounts %}
  <div class="card">
    {% for row in amounts %}
    <div class="row{% if row.emphasis %} due{% endif %}"><span>{{ row.label }}</span><span>{{ row.value }}</span></div>
    {% endfor %}
  </div>
  {% endif %}

  {% if lines %}
  <table>
    <thead><tr><th>Item</th><th class="num">Qty</th><th class="num">Unit Price</th><th class="num">Amount</th></tr></thead>
    <tbody>
    {% for line in lines %}
      <tr><td>{{ line.product_name }}</td><td class="num">{{ line.quantity }}</td>
          <td class="num">{{ line.unit_price }}</td><td class="num">{{ line.subtotal }}</td></tr>
    {% endfor %}
    </tbody>
  </table>
  {% endif %}

  {% if payments %}
  <h2>Payments</h2>
  <table>
    <thead><tr><th>Number</th><th>Date</th><th>Mode</th><th>Status</th><th class="num">Amount</th></tr></thead>
    <tbody>
    {% for p in payments %}
      <tr><td>{{ p.number }}</td><td>{{ p.payment_date }}</td><td>{{ p.mode }}</td>
          <td><span class="badge {{ p.status.category }}">{{ p.status.label }}</span></td>
          <td class="num">{{ p.amount }}</td></tr>
    {% endfor %}
    </tbody>
  </table>
  {% endif %}

  <div class="actions">
  {% for a in actions %}
    <button data-action="{{ a.action }}"
            {% if a.requires_confirmation %}data-confirm-title="{{ a.confirmation_title }}"
            data-confirm-copy="{{ a.confirmation_copy }}"{% endif %}>{{ a.label }}</button>
  {% else %}
    <p class="readonly">No actions available.</p>
  {% endfor %}
  </div>
</body>
</html>
"""

_TITLES = {
    "purchase_order":   "Purchase Order",
    "sales_order":      "Sales Order",
    "vendor_bill":      "Vendor Bill",
    "customer_invoice": "Customer Invoice",
    "budget":           "Budget",
}

_PARTY_LABELS = {
    "purchase_order":   "Vendor",
    "sales_order":      "Customer",
    "vendor_bill":      "Vendor",
    "customer_invoice": "Customer",
}


def _status(family, value) -> dict:
    label = describe_status(family, value)
    return {"value": label.value, "label": label.label, "category": label.category.value}


def build_document_view(
    doc: TransactionalDocument,
    actions: list,
    summary: Optional[BalanceSummary],
    payments: Iterable[Payment] = (),
    formatter=str,
) -> dict:
    """Flatten a document, its balance and its actions into a view payload."""
    amounts = [{"label": "Total", "value": formatter(doc.total_amount), "emphasis": False}]
    if summary is not None:
        amounts += [
            {"label": "Paid", "value": formatter(summary.paid_amount), "emphasis": False},
            {"label": "Balance Due", "value": formatter(summary.balance), "emphasis": True},
        ]

    facts = []
    if doc.document_date:
        facts.append(("Date", doc.document_date.isoformat()))
    if doc.due_date:
        facts.append(("Due Date", doc.due_date.isoformat()))

    return {
        "id": doc.id,
        "kind": doc.kind.value,
        "title": _TITLES[doc.kind.value],
        "number": doc.number,
        "status": _status(doc.family, doc.status),
        "is_archived": doc.is_archived,
        "party_label": _PARTY_LABELS[doc.kind.value],
        "party_name": doc.party_name,
        "facts": facts,
        "notes": doc.notes,
        "total_amount": str(doc.total_amount),
        "paid_amount": str(summary.paid_amount) if summary else None,
        "balance": str(summary.balance) if summary else None,
        "is_payable": summary.is_payable if summary else False,
        "amounts": amounts,
        "lines": [
            {
                "product_name": line.product_name,
                "quantity": str(line.quantity),
                "unit_price": formatter(line.unit_price),
                "subtotal": formatter(line.subtotal),
            }
            for line in doc.lines
        ],
        "payments": [
            {
                "number": p.number,
                "payment_date": p.payment_date.isoformat(),
                "mode": payment_mode_label(p.mode),
                "status": _status("payment", p.status),
                "amount": formatter(p.amount),
            }
            for p in payments
        ],
        "actions": [a.model_dump(mode="json") for a in actions],
    }


def build_budget_view(
    budget: Budget,
    actions: list,
    revisions: list = (),
    formatter=str,
) -> dict:
    return {
        "id": budget.id,
        "kind": "budget",
        "title": _TITLES["budget"],
        "number": budget.name,
        "status": _status(budget.family, budget.status),
        "is_archived": budget.is_archived,
        "party_label": "",
        "party_name": None,
        "facts": [
            ("Type", budget_type_label(budget.budget_type)),
            ("Period", f"{budget.start_date.isoformat()} to {budget.end_date.isoformat()}"),
        ] + ([("Revision of", budget.parent_budget_id)] if budget.parent_budget_id else []),
        "budgeted_amount": str(budget.budgeted_amount),
        "achieved_amount": str(budget.achieved_amount),
        "remaining_balance": str(budget.remaining_balance),
        "achievement_percentage": str(budget.achievement_percentage),
        "parent_budget_id": budget.parent_budget_id,
        "amounts": [
            {"label": "Budgeted", "value": formatter(budget.budgeted_amount), "emphasis": False},
            {"label": "Achieved", "value": formatter(budget.achieved_amount), "emphasis": False},
            {"label": "Remaining", "value": formatter(budget.remaining_balance), "emphasis": True},
        ],
        "revisions": [
            {
                "revision_date": r.revision_date.isoformat(),
                "previous_amount": str(r.previous_amount),
                "new_amount": str(r.new_amount),
                "reason": r.reason,
            }
            for r in revisions
        ],
        "lines": [],
        "payments": [],
        "actions": [a.model_dump(mode="json") for a in actions],
    }


def render_document_html(view: dict) -> str:
    """Render a view payload as an HTML detail page."""
    env = Environment(loader=BaseLoader(), autoescape=True)
    tmpl = env.from_string(DEFAULT_DOCUMENT_TEMPLATE)
    return tmpl.render(**view)
