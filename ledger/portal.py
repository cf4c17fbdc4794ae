"""
Headline numbers for the customer/vendor portal dashboard.

Orders count as pending once confirmed.  Bills and invoices count as unpaid
while posted or partially paid, and their unpaid amount is the sum of
total - paid over those documents.  Archived records never count.
"""
import logging
from decimal import Decimal
from typing import NamedTuple

from models.status import DocumentKind, OrderStatus

from .balance import outstanding_total
from .store import DocumentStore

logger = logging.getLogger(__name__)


class PortalSummary(NamedTuple):
    pending_sales_orders: int
    pending_purchase_orders: int
    unpaid_invoices: int
    unpaid_invoice_amount: Decimal
    unpaid_bills: int
    unpaid_bill_amount: Decimal


def portal_summary(store: DocumentStore) -> PortalSummary:
    sales = store.list_documents(DocumentKind.SALES_ORDER, status=OrderStatus.CONFIRMED.value)
    purchases = store.list_documents(DocumentKind.PURCHASE_ORDER, status=OrderStatus.CONFIRMED.value)
    invoices = outstanding_total(store.list_documents(DocumentKind.CUSTOMER_INVOICE))
    bills = outstanding_total(store.list_documents(DocumentKind.VENDOR_BILL))

    summary = PortalSummary(
        pending_sales_orders=len(sales),
        pending_purchase_orders=len(purchases),
        unpaid_invoices=invoices.count,
        unpaid_invoice_amount=invoices.amount,
        unpaid_bills=bills.count,
        unpaid_bill_amount=bills.amount,
    )
    logger.debug("Portal summary: %s", summary)
    return summary
