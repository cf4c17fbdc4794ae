"""
Printable PDF for orders, bills and invoices.

Admin and portal users get the same document.  The built-in PDF fonts only
cover latin-1, so amounts are prefixed with a plain-text currency code
(PDF_CURRENCY_PREFIX) instead of the rupee sign.
"""
import logging
from datetime import date
from typing import Iterable, Optional

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from models.document import Payment, TransactionalDocument
from models.status import DocumentFamily, DocumentKind

from .balance import paid_amount_from_payments
from .errors import ExportError
from .formatting import CurrencyFormatter
from .vocabulary import payment_mode_label, status_label

logger = logging.getLogger(__name__)

COMPANY_NAME = "Shiv Furniture"
COMPANY_SUBTITLE = "Premium Quality Furniture"

_TITLES = {
    DocumentKind.CUSTOMER_INVOICE: "INVOICE",
    DocumentKind.VENDOR_BILL:      "BILL",
    DocumentKind.PURCHASE_ORDER:   "PURCHASE ORDER",
    DocumentKind.SALES_ORDER:      "SALES ORDER",
}

_PARTY_LABELS = {
    DocumentKind.CUSTOMER_INVOICE: "Bill To",
    DocumentKind.VENDOR_BILL:      "Vendor",
    DocumentKind.PURCHASE_ORDER:   "Vendor",
    DocumentKind.SALES_ORDER:      "Customer",
}

_NEXT_LINE = {"new_x": XPos.LMARGIN, "new_y": YPos.NEXT}


def _latin1(text) -> str:
    return str(text).encode("latin-1", "replace").decode("latin-1")


def _fmt_date(d: Optional[date]) -> str:
    return d.strftime("%d %b %Y") if d else "-"


def _quantity(q) -> str:
    return f"{q.normalize():f}" if q == q.to_integral_value() else str(q)


def _totals(doc: TransactionalDocument, payments: Optional[list[Payment]]) -> list:
    """Total, and for bills and invoices the paid and due amounts.

    Paid is summed from *payments* when they are given, so a stale
    paid_amount on the document never reaches the printout.
    """
    totals = [("Total", doc.total_amount)]
    if doc.family is DocumentFamily.INVOICE:
        paid = doc.paid_amount if payments is None else paid_amount_from_payments(payments)
        totals += [("Paid", paid), ("Balance Due", doc.total_amount - paid)]
    return totals


def generate_document_pdf(
    doc: TransactionalDocument,
    payments: Optional[Iterable[Payment]] = None,
    formatter: Optional[CurrencyFormatter] = None,
) -> bytes:
    """Render *doc* as PDF bytes.  Any failure raises ExportError."""
    money = formatter or CurrencyFormatter(symbol="INR ")
    title = _TITLES[doc.kind]
    if payments is not None:
        payments = list(payments)
    try:
        pdf = FPDF()
        pdf.set_title(f"{title} - {doc.number}")
        pdf.add_page()

        pdf.set_font("Helvetica", "B", 16)
        pdf.cell(120, 8, COMPANY_NAME)
        pdf.cell(0, 8, title, align="R", **_NEXT_LINE)
        pdf.set_font("Helvetica", size=10)
        pdf.cell(120, 6, COMPANY_SUBTITLE)
        pdf.cell(0, 6, _latin1(doc.number), align="R", **_NEXT_LINE)
        pdf.ln(6)

        pdf.set_font("Helvetica", "B", 10)
        pdf.cell(120, 6, _PARTY_LABELS[doc.kind])
        pdf.cell(0, 6, "Date", **_NEXT_LINE)
        pdf.set_font("Helvetica", size=10)
        pdf.cell(120, 6, _latin1(doc.party_name or "-"))
        pdf.cell(0, 6, _fmt_date(doc.document_date), **_NEXT_LINE)
        if doc.family is DocumentFamily.INVOICE:
            pdf.set_font("Helvetica", "B", 10)
            pdf.cell(120, 6, "")
            pdf.cell(0, 6, "Due Date", **_NEXT_LINE)
            pdf.set_font("Helvetica", size=10)
            pdf.cell(120, 6, "")
            pdf.cell(0, 6, _fmt_date(doc.due_date), **_NEXT_LINE)
        pdf.cell(0, 6, f"Status: {status_label(doc.family, doc.status)}", **_NEXT_LINE)
        pdf.ln(4)

        pdf.set_font("Helvetica", "B", 10)
        pdf.cell(95, 8, "Item", border=1)
        pdf.cell(25, 8, "Qty", border=1, align="R")
        pdf.cell(35, 8, "Unit Price", border=1, align="R")
        pdf.cell(35, 8, "Amount", border=1, align="R", **_NEXT_LINE)
        pdf.set_font("Helvetica", size=10)
        for line in doc.lines:
            pdf.cell(95, 8, _latin1(line.product_name), border=1)
            pdf.cell(25, 8, _quantity(line.quantity), border=1, align="R")
            pdf.cell(35, 8, money(line.unit_price), border=1, align="R")
            pdf.cell(35, 8, money(line.subtotal), border=1, align="R", **_NEXT_LINE)
        pdf.ln(4)

        for label, amount in _totals(doc, payments):
            pdf.set_font("Helvetica", "B" if label == "Balance Due" else "", 10)
            pdf.cell(155, 7, label, align="R")
            pdf.cell(35, 7, money(amount), align="R", **_NEXT_LINE)

        if payments:
            pdf.ln(4)
            pdf.set_font("Helvetica", "B", 10)
            pdf.cell(0, 7, "Payments", **_NEXT_LINE)
            pdf.set_font("Helvetica", size=9)
            for p in payments:
                pdf.cell(40, 6, _latin1(p.number))
                pdf.cell(30, 6, _fmt_date(p.payment_date))
                pdf.cell(40, 6, payment_mode_label(p.mode))
                pdf.cell(45, 6, status_label(DocumentFamily.PAYMENT, p.status))
                pdf.cell(35, 6, money(p.amount), align="R", **_NEXT_LINE)

        if doc.notes:
            pdf.ln(4)
            pdf.set_font("Helvetica", "B", 10)
            pdf.cell(0, 6, "Notes", **_NEXT_LINE)
            pdf.set_font("Helvetica", size=10)
            pdf.multi_cell(0, 5, _latin1(doc.notes), **_NEXT_LINE)

        pdf.ln(8)
        pdf.set_font("Helvetica", "I", 9)
        pdf.cell(0, 5, "Thank you for your business!", align="C", **_NEXT_LINE)
        pdf.cell(0, 5, f"Generated on {date.today():%d %b %Y}", align="C", **_NEXT_LINE)
        data = bytes(pdf.output())
    except Exception as exc:
        logger.error("PDF export failed for %s %s: %s", doc.kind.value, doc.number, exc)
        raise ExportError(f"Could not generate PDF for {doc.number}: {exc}") from exc

    logger.info("Exported %s %s (%d bytes)", doc.kind.value, doc.number, len(data))
    return data
