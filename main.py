#!/usr/bin/env python3
"""
Document Ledger — CLI entry point.

Usage examples:
  python main.py show customer_invoice 7f3c…               # Status, balance and actions
  python main.py show sales_order 91ab… --portal           # What the portal user sees
  python main.py transition purchase_order 91ab… confirm   # draft → confirmed
  python main.py pay customer_invoice 7f3c… 2500 --mode cash
  python main.py transition budget 4d2e… confirm
  python main.py revise 4d2e… 75000 --reason "Q3 re-forecast"
  python main.py recalculate 4d2e… 41250
  python main.py summary                                   # Pending orders, unpaid totals
  python main.py export vendor_bill 55aa… -o bill.pdf
  python main.py audit customer_invoice 7f3c…
  python main.py serve --port 8080                         # Dashboard + JSON API
"""
import json
import logging
import sys
from contextlib import contextmanager
from pathlib import Path

import click

from config import Config, build_policy, build_store
from ledger.actions import get_available_actions
from ledger.budgets import BudgetService
from ledger.errors import LedgerError
from ledger.formatting import CurrencyFormatter
from ledger.payments import PaymentService
from ledger.portal import portal_summary
from ledger.transitions import TransitionService
from ledger.vocabulary import budget_type_label, status_label
from models.actions import Action
from models.status import Audience, DocumentKind, PaymentMode

logger = logging.getLogger(__name__)

KIND_CHOICES = [k.value for k in DocumentKind]
DOCUMENT_KIND_CHOICES = [k.value for k in DocumentKind if k is not DocumentKind.BUDGET]


def _setup_logging(verbose: bool, level_name: str = "INFO") -> None:
    level = logging.DEBUG if verbose else getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("fpdf").setLevel(logging.WARNING)
    logging.getLogger("fontTools").setLevel(logging.WARNING)


@contextmanager
def _reported():
    """Print ledger errors as a one-line message and exit 1."""
    try:
        yield
    except LedgerError as exc:
        click.echo(f"✗ {exc}", err=True)
        sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Document Ledger — statuses, balances and actions for ERP documents."""
    ctx.ensure_object(dict)
    config = Config()
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose, config.log_level)


def _context(ctx: click.Context):
    config: Config = ctx.obj["config"]
    return config, build_store(config), build_policy(config), CurrencyFormatter.from_config(config)


def _echo_actions(actions) -> None:
    if not actions:
        click.echo("  Actions:     (none)")
        return
    click.echo(f"  Actions:     {', '.join(a.label for a in actions)}")


# --------------------------------------------------------------------
# show command
# --------------------------------------------------------------------

@cli.command()
@click.argument("kind", type=click.Choice(KIND_CHOICES))
@click.argument("record_id")
@click.option("--portal", is_flag=True, help="Show the actions a portal user would get")
@click.option("--json", "as_json", is_flag=True, help="Print the snapshot as JSON")
@click.pass_context
def show(ctx: click.Context, kind: str, record_id: str, portal: bool, as_json: bool) -> None:
    """Show the status, amounts and available actions of a record."""
    with _reported():
        config, store, policy, money = _context(ctx)
        audience = Audience.PORTAL if portal else Audience.INTERNAL

        if kind == DocumentKind.BUDGET.value:
            budget = store.fetch_budget(record_id)
            actions = get_available_actions(budget, policy=policy, audience=audience)
            if as_json:
                click.echo(budget.model_dump_json(indent=2))
                return
            click.echo()
            click.echo(f"  Budget:      {budget.name}")
            click.echo(f"  Type:        {budget_type_label(budget.budget_type)}")
            click.echo(f"  Status:      {status_label(budget.family, budget.status)}"
                       + ("  [archived]" if budget.is_archived else ""))
            click.echo(f"  Period:      {budget.start_date} → {budget.end_date}")
            click.echo(f"  Budgeted:    {money(budget.budgeted_amount)}")
            click.echo(f"  Achieved:    {money(budget.achieved_amount)} "
                       f"({budget.achievement_percentage}%)")
            click.echo(f"  Remaining:   {money(budget.remaining_balance)}")
            if budget.parent_budget_id:
                click.echo(f"  Revision of: {budget.parent_budget_id}")
            _echo_actions(actions)
            click.echo()
            return

        service = TransitionService(store, policy)
        doc, actions = service.available_actions(kind, record_id, audience, formatter=money)
        if as_json:
            click.echo(doc.model_dump_json(indent=2))
            return
        click.echo()
        click.echo(f"  Document:    {doc.number}  ({doc.kind.value})")
        click.echo(f"  Party:       {doc.party_name or '(none)'}")
        click.echo(f"  Status:      {status_label(doc.family, doc.status)}"
                   + ("  [archived]" if doc.is_archived else ""))
        click.echo(f"  Total:       {money(doc.total_amount)}")
        if doc.kind.has_paid_amount:
            summary = PaymentService(store, policy).document_balance(doc.kind, doc.id)
            click.echo(f"  Paid:        {money(summary.paid_amount)}")
            click.echo(f"  Balance due: {money(summary.balance)}")
        _echo_actions(actions)
        click.echo()


# --------------------------------------------------------------------
# transition command
# --------------------------------------------------------------------

@cli.command()
@click.argument("kind", type=click.Choice(KIND_CHOICES))
@click.argument("record_id")
@click.argument("action", type=click.Choice([Action.CONFIRM.value, Action.CANCEL.value,
                                              Action.ARCHIVE.value, Action.SAVE.value]))
@click.pass_context
def transition(ctx: click.Context, kind: str, record_id: str, action: str) -> None:
    """Apply ACTION (confirm, cancel, archive, save) to a record."""
    with _reported():
        config, store, policy, money = _context(ctx)
        if kind == DocumentKind.BUDGET.value:
            service = BudgetService(store, policy)
            if action == Action.CONFIRM.value:
                budget = service.confirm(record_id)
            elif action == Action.ARCHIVE.value:
                budget = service.archive(record_id)
            else:
                click.echo(f"✗ Budgets do not support '{action}' from the CLI", err=True)
                sys.exit(1)
            click.echo(f"✓ Budget {budget.name} is now {status_label(budget.family, budget.status)}")
            return

        doc = TransitionService(store, policy).apply(kind, record_id, action)
        click.echo(f"✓ {doc.number} is now {status_label(doc.family, doc.status)}")


# --------------------------------------------------------------------
# pay command
# --------------------------------------------------------------------

@cli.command()
@click.argument("kind", type=click.Choice([DocumentKind.VENDOR_BILL.value,
                                           DocumentKind.CUSTOMER_INVOICE.value]))
@click.argument("record_id")
@click.argument("amount")
@click.option("--mode", type=click.Choice([m.value for m in PaymentMode]),
              default=PaymentMode.BANK_TRANSFER.value, show_default=True)
@click.option("--reference", default=None, help="Cheque number, UTR or gateway reference")
@click.option("--notes", default=None)
@click.pass_context
def pay(
    ctx: click.Context,
    kind: str,
    record_id: str,
    amount: str,
    mode: str,
    reference: str | None,
    notes: str | None,
) -> None:
    """Record a completed payment of AMOUNT against a bill or invoice."""
    with _reported():
        config, store, policy, money = _context(ctx)
        result = PaymentService(store, policy).record_payment(
            kind, record_id, amount, mode=mode, reference=reference, notes=notes,
        )
        click.echo(f"✓ Payment {result.payment.number} recorded")
        click.echo(f"  Paid:        {money(result.paid_amount)}")
        click.echo(f"  Balance due: {money(result.balance_due)}")
        click.echo(f"  Status:      {status_label(result.document.family, result.status)}")


# --------------------------------------------------------------------
# revise command
# --------------------------------------------------------------------

@cli.command()
@click.argument("budget_id")
@click.argument("amount")
@click.option("--reason", default=None, help="Why the budget is being revised")
@click.pass_context
def revise(ctx: click.Context, budget_id: str, amount: str, reason: str | None) -> None:
    """Revise a confirmed budget to AMOUNT, creating a new draft revision."""
    with _reported():
        config, store, policy, money = _context(ctx)
        parent, child = BudgetService(store, policy).revise(budget_id, amount, reason)
        click.echo(f"✓ Budget {parent.name} marked {status_label(parent.family, parent.status)}")
        click.echo(f"  New draft:   {child.id}  ({child.name})")
        click.echo(f"  Amount:      {money(parent.budgeted_amount)} → {money(child.budgeted_amount)}")


# --------------------------------------------------------------------
# recalculate command
# --------------------------------------------------------------------

@cli.command()
@click.argument("budget_id")
@click.argument("achieved")
@click.pass_context
def recalculate(ctx: click.Context, budget_id: str, achieved: str) -> None:
    """Set the achieved amount of a budget to ACHIEVED."""
    with _reported():
        config, store, policy, money = _context(ctx)
        budget = BudgetService(store, policy).recalculate(budget_id, achieved)
        click.echo(f"✓ Budget {budget.name} recalculated")
        click.echo(f"  Achieved:    {money(budget.achieved_amount)} "
                   f"({budget.achievement_percentage}%)")
        click.echo(f"  Remaining:   {money(budget.remaining_balance)}")


# --------------------------------------------------------------------
# summary command
# --------------------------------------------------------------------

@cli.command()
@click.pass_context
def summary(ctx: click.Context) -> None:
    """Show pending orders and unpaid bills and invoices."""
    with _reported():
        config, store, policy, money = _context(ctx)
        s = portal_summary(store)
        click.echo(f"  Pending sales orders:    {s.pending_sales_orders}")
        click.echo(f"  Pending purchase orders: {s.pending_purchase_orders}")
        click.echo(f"  Unpaid invoices:         {s.unpaid_invoices}  ({money(s.unpaid_invoice_amount)})")
        click.echo(f"  Unpaid bills:            {s.unpaid_bills}  ({money(s.unpaid_bill_amount)})")


# --------------------------------------------------------------------
# export command
# --------------------------------------------------------------------

@cli.command()
@click.argument("kind", type=click.Choice(DOCUMENT_KIND_CHOICES))
@click.argument("record_id")
@click.option("--output", "-o", default=None, type=click.Path(), help="PDF file to write")
@click.pass_context
def export(ctx: click.Context, kind: str, record_id: str, output: str | None) -> None:
    """Export a document as PDF."""
    from ledger.pdf import generate_document_pdf

    with _reported():
        config, store, policy, money = _context(ctx)
        doc = store.fetch_document(DocumentKind(kind), record_id)
        payments = store.fetch_payments(doc.kind, doc.id) if doc.kind.has_paid_amount else []
        formatter = CurrencyFormatter(
            symbol=config.pdf_currency_prefix,
            decimals=config.currency_decimals,
            grouping=config.digit_grouping,
        )
        data = generate_document_pdf(doc, payments, formatter)

        if output:
            out_path = Path(output)
        else:
            config.ensure_output_dir()
            out_path = config.export_dir / f"{doc.number}.pdf"
        out_path.write_bytes(data)
        click.echo(f"✓ Exported {doc.number} → {out_path}")


# --------------------------------------------------------------------
# audit command
# --------------------------------------------------------------------

@cli.command()
@click.argument("kind", type=click.Choice(KIND_CHOICES))
@click.argument("record_id")
@click.pass_context
def audit(ctx: click.Context, kind: str, record_id: str) -> None:
    """Print the audit trail of a record (sqlite backend only)."""
    with _reported():
        config, store, policy, money = _context(ctx)
        if not hasattr(store, "get_audit_log"):
            click.echo(f"✗ The {config.backend} backend keeps no local audit log", err=True)
            sys.exit(1)
        entries = store.get_audit_log(kind, record_id)
        if not entries:
            click.echo("  (no audit entries)")
            return
        for entry in entries:
            detail = json.loads(entry["detail"]) if entry["detail"] else {}
            extra = "  ".join(f"{k}={v}" for k, v in detail.items())
            click.echo(f"  {entry['timestamp']}  {entry['action']:<20} {entry['actor']:<8} {extra}")


# --------------------------------------------------------------------
# serve command
# --------------------------------------------------------------------

@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, type=int, show_default=True)
@click.option("--reload", is_flag=True, help="Auto-reload on code changes (development)")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the dashboard and JSON API."""
    import uvicorn

    click.echo(f"\n  Dashboard:  http://{host}:{port}/\n")
    uvicorn.run("dashboard.app:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    cli()
