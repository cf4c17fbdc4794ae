"""
Transition policy: which actions a document offers in its current state.

States and transitions per family
---------------------------------
  order    draft → confirmed → cancelled,  draft → cancelled
  invoice  draft → posted → partially_paid → paid,  posted → paid,
           posted | partially_paid → cancelled (see block_cancel_after_payment)
  budget   draft → confirmed → revised,  confirmed | revised → archived
  payment  no transitions (payments are append-only records)

Archived records offer nothing, whatever their status.  Unknown statuses
offer nothing either.  The policy is a pure function of its inputs: it never
raises and never touches the store.  Whether the backend accepts the write is
the store's business.
"""
from enum import Enum
from typing import Optional

from models.actions import Action
from models.status import (
    Audience,
    BudgetStatus,
    DocumentFamily,
    InvoiceStatus,
    OrderStatus,
    PaymentStatus,
    parse_status,
    require_total,
    resolve_family,
)

_NONE: frozenset = frozenset()

_INTERNAL = {
    DocumentFamily.ORDER: {
        OrderStatus.DRAFT:     frozenset({Action.SAVE, Action.CONFIRM, Action.CANCEL}),
        OrderStatus.CONFIRMED: frozenset({Action.CANCEL}),
        OrderStatus.CANCELLED: _NONE,
    },
    DocumentFamily.INVOICE: {
        InvoiceStatus.DRAFT:          frozenset({Action.SAVE, Action.CONFIRM}),
        InvoiceStatus.POSTED:         frozenset({Action.PAY, Action.CANCEL}),
        InvoiceStatus.PARTIALLY_PAID: frozenset({Action.PAY, Action.CANCEL}),
        InvoiceStatus.PAID:           _NONE,
        InvoiceStatus.CANCELLED:      _NONE,
    },
    DocumentFamily.BUDGET: {
        BudgetStatus.DRAFT:     frozenset({Action.SAVE, Action.CONFIRM}),
        BudgetStatus.CONFIRMED: frozenset({Action.REVISE, Action.ARCHIVE}),
        BudgetStatus.REVISED:   frozenset({Action.ARCHIVE}),
        BudgetStatus.ARCHIVED:  _NONE,
    },
    DocumentFamily.PAYMENT: {status: _NONE for status in PaymentStatus},
}

# Customers and vendors can only pay what they owe or ask for an order to be
# cancelled; everything else is back-office work.
_PORTAL = {
    DocumentFamily.ORDER: {
        OrderStatus.DRAFT:     frozenset({Action.CANCEL_REQUEST}),
        OrderStatus.CONFIRMED: frozenset({Action.CANCEL_REQUEST}),
        OrderStatus.CANCELLED: _NONE,
    },
    DocumentFamily.INVOICE: {
        InvoiceStatus.DRAFT:          _NONE,
        InvoiceStatus.POSTED:         frozenset({Action.PAY}),
        InvoiceStatus.PARTIALLY_PAID: frozenset({Action.PAY}),
        InvoiceStatus.PAID:           _NONE,
        InvoiceStatus.CANCELLED:      _NONE,
    },
    DocumentFamily.BUDGET: {status: _NONE for status in BudgetStatus},
    DocumentFamily.PAYMENT: {status: _NONE for status in PaymentStatus},
}

_TABLES = {
    Audience.INTERNAL: _INTERNAL,
    Audience.PORTAL:   _PORTAL,
}

_TARGETS = {
    (DocumentFamily.ORDER, Action.CONFIRM):   OrderStatus.CONFIRMED,
    (DocumentFamily.ORDER, Action.CANCEL):    OrderStatus.CANCELLED,
    (DocumentFamily.INVOICE, Action.CONFIRM): InvoiceStatus.POSTED,
    (DocumentFamily.INVOICE, Action.CANCEL):  InvoiceStatus.CANCELLED,
    (DocumentFamily.BUDGET, Action.CONFIRM):  BudgetStatus.CONFIRMED,
    (DocumentFamily.BUDGET, Action.REVISE):   BudgetStatus.REVISED,
    (DocumentFamily.BUDGET, Action.ARCHIVE):  BudgetStatus.ARCHIVED,
}

_REQUIRES_CONFIRMATION = {
    Action.SAVE:           False,
    Action.CONFIRM:        True,
    Action.REVISE:         True,
    Action.ARCHIVE:        True,
    Action.CANCEL:         False,
    Action.PAY:            False,
    Action.CANCEL_REQUEST: True,
}

# Statuses that can only be reached once a completed payment exists.
_PAID_STATUSES = {InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.PAID}

_CANCEL_ACTIONS = frozenset({Action.CANCEL, Action.CANCEL_REQUEST})

for _audience, _table in _TABLES.items():
    require_total(_table, DocumentFamily, f"{_audience.value} policy")
require_total(_INTERNAL[DocumentFamily.ORDER], OrderStatus, "order policy")
require_total(_INTERNAL[DocumentFamily.INVOICE], InvoiceStatus, "invoice policy")
require_total(_INTERNAL[DocumentFamily.BUDGET], BudgetStatus, "budget policy")
require_total(_PORTAL[DocumentFamily.ORDER], OrderStatus, "portal order policy")
require_total(_PORTAL[DocumentFamily.INVOICE], InvoiceStatus, "portal invoice policy")
require_total(_REQUIRES_CONFIRMATION, Action, "_REQUIRES_CONFIRMATION")


class TransitionPolicy:
    """
    Derives the legal next actions from (family, status, archived flag).

    block_cancel_after_payment:
        When True (default), a bill or invoice with a completed payment no
        longer offers cancel.  Whether the backend would accept the write is
        not decided here; this only controls whether the action is offered.
    """

    def __init__(self, block_cancel_after_payment: bool = True) -> None:
        self.block_cancel_after_payment = block_cancel_after_payment

    def legal_actions(
        self,
        family,
        status,
        is_archived: bool,
        *,
        audience: Audience = Audience.INTERNAL,
        has_completed_payment: Optional[bool] = None,
    ) -> frozenset:
        if is_archived:
            return _NONE

        fam = resolve_family(family)
        if fam is None:
            return _NONE
        member = parse_status(fam, status)
        if member is None:
            return _NONE

        try:
            table = _TABLES[Audience(audience)]
        except ValueError:
            return _NONE
        actions = table[fam][member]

        if self.block_cancel_after_payment and actions & _CANCEL_ACTIONS:
            paid = has_completed_payment
            if paid is None:
                paid = member in _PAID_STATUSES
            if paid:
                actions = actions - _CANCEL_ACTIONS

        return actions

    def allows(self, family, status, is_archived: bool, action, **kwargs) -> bool:
        try:
            action = Action(action)
        except ValueError:
            return False
        return action in self.legal_actions(family, status, is_archived, **kwargs)


def target_status(family, action) -> Optional[Enum]:
    """Status written when *action* succeeds, or None when it writes no status."""
    fam = resolve_family(family)
    try:
        action = Action(action)
    except ValueError:
        return None
    return _TARGETS.get((fam, action))


def requires_confirmation(action) -> bool:
    try:
        return _REQUIRES_CONFIRMATION[Action(action)]
    except ValueError:
        return True


DEFAULT_POLICY = TransitionPolicy()


def legal_actions(family, status, is_archived: bool, **kwargs) -> frozenset:
    """legal_actions() against the default policy (cancel blocked after payment)."""
    return DEFAULT_POLICY.legal_actions(family, status, is_archived, **kwargs)
