from .errors import (
    LedgerError, NotFound, TransientError, PersistenceError, ExportError,
    IllegalTransition, InvalidAmount,
)
from .vocabulary import StatusLabel, describe_status, status_label, payment_mode_label, budget_type_label
from .balance import (
    BalanceSummary, compute_balance, is_payable, summarize_balance,
    paid_amount_from_payments, compute_document_status, generate_payment_number,
    Outstanding, outstanding_total,
)
from .policy import TransitionPolicy, DEFAULT_POLICY, legal_actions, target_status, requires_confirmation
from .actions import describe_action, get_available_actions
from .formatting import CurrencyFormatter, format_currency
from .store import DocumentStore
from .database import Database
from .transitions import TransitionService
from .payments import PaymentService, PaymentResult
from .budgets import BudgetService
from .portal import PortalSummary, portal_summary

__all__ = [
    "LedgerError", "NotFound", "TransientError", "PersistenceError", "ExportError",
    "IllegalTransition", "InvalidAmount",
    "StatusLabel", "describe_status", "status_label", "payment_mode_label", "budget_type_label",
    "BalanceSummary", "compute_balance", "is_payable", "summarize_balance",
    "paid_amount_from_payments", "compute_document_status", "generate_payment_number",
    "Outstanding", "outstanding_total",
    "TransitionPolicy", "DEFAULT_POLICY", "legal_actions", "target_status", "requires_confirmation",
    "describe_action", "get_available_actions",
    "CurrencyFormatter", "format_currency",
    "DocumentStore", "Database",
    "TransitionService", "PaymentService", "PaymentResult", "BudgetService",
    "PortalSummary", "portal_summary",
]
