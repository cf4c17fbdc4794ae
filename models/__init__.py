from .status import (
    DocumentFamily, DocumentKind, OrderStatus, InvoiceStatus, PaymentStatus,
    BudgetStatus, StatusCategory, PaymentMode, BudgetType, Audience,
)
from .document import TransactionalDocument, DocumentLine, Payment
from .budget import Budget, BudgetRevision
from .actions import Action, AvailableAction

__all__ = [
    "DocumentFamily", "DocumentKind", "OrderStatus", "InvoiceStatus", "PaymentStatus",
    "BudgetStatus", "StatusCategory", "PaymentMode", "BudgetType", "Audience",
    "TransactionalDocument", "DocumentLine", "Payment",
    "Budget", "BudgetRevision",
    "Action", "AvailableAction",
]
