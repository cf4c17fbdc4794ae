"""
Action surface consumed by the views (action bars, confirmation dialogs).

The dialog copy below is shown to the end user before an irreversible
change, so the wording is part of the contract and is covered by tests.
"""
from typing import Iterable, Optional, Union

from models.actions import Action, AvailableAction
from models.budget import Budget
from models.document import Payment, TransactionalDocument
from models.status import Audience, DocumentFamily, require_total

from .balance import is_payable, paid_amount_from_payments
from .policy import DEFAULT_POLICY, TransitionPolicy, requires_confirmation, target_status
from .vocabulary import status_label

_LABELS = {
    Action.SAVE:           "Save",
    Action.CONFIRM:        "Confirm",
    Action.REVISE:         "Revise",
    Action.ARCHIVE:        "Archive",
    Action.CANCEL:         "Cancel",
    Action.PAY:            "Pay Now",
    Action.CANCEL_REQUEST: "Request Cancellation",
}

_TITLES = {
    Action.SAVE:           "Save changes?",
    Action.CONFIRM:        "Confirm this record?",
    Action.REVISE:         "Create a revision?",
    Action.ARCHIVE:        "Archive this record?",
    Action.CANCEL:         "Cancel this document?",
    Action.PAY:            "Record a payment?",
    Action.CANCEL_REQUEST: "Request cancellation?",
}

_COPY = {
    Action.SAVE: "Your changes will be saved. The record stays in draft and can still be edited.",
    Action.CONFIRM: "This will change the status to {target}. This action cannot be undone.",
    Action.REVISE: (
        "This will create a new revision of this record. "
        "The current version will be marked as revised."
    ),
    Action.ARCHIVE: "Archived records are read-only and cannot be edited or restored.",
    Action.CANCEL: (
        "This will change the status to Cancelled. "
        "Cancelled documents cannot be reopened."
    ),
    Action.PAY: "A payment of up to {balance} will be recorded against this document.",
    Action.CANCEL_REQUEST: (
        "Your cancellation request will be sent for review. "
        "The document stays unchanged until it is processed."
    ),
}

require_total(_LABELS, Action, "_LABELS")
require_total(_TITLES, Action, "_TITLES")
require_total(_COPY, Action, "_COPY")

Record = Union[TransactionalDocument, Budget]


def describe_action(family, action: Action, *, balance=None) -> AvailableAction:
    """Build the action-bar entry for *action* on a record of *family*."""
    action = Action(action)
    target = target_status(family, action)
    target_value = target.value if target is not None else None
    copy = _COPY[action].format(
        target=status_label(family, target_value) if target_value else "",
        balance=balance if balance is not None else "the balance due",
    )
    return AvailableAction(
        action=action,
        label=_LABELS[action],
        requires_confirmation=requires_confirmation(action),
        confirmation_title=_TITLES[action],
        confirmation_copy=copy,
        target_status=target_value,
    )


def get_available_actions(
    record: Record,
    *,
    policy: Optional[TransitionPolicy] = None,
    audience: Audience = Audience.INTERNAL,
    payments: Optional[Iterable[Payment]] = None,
    formatter=None,
) -> list[AvailableAction]:
    """
    Return the actions the view should render for *record*, in a stable order.

    pay is only listed when the policy offers it AND the balance is payable.
    When *payments* is given, the cancel-after-payment rule and the balance
    shown on pay both come from them rather than from the stored snapshot.
    """
    policy = policy or DEFAULT_POLICY
    has_completed = None
    balance = getattr(record, "balance", None)
    if payments is not None:
        payments = list(payments)
        has_completed = any(p.is_completed for p in payments)
        if record.family is DocumentFamily.INVOICE:
            balance = record.total_amount - paid_amount_from_payments(payments)

    legal = policy.legal_actions(
        record.family,
        record.status,
        record.is_archived,
        audience=audience,
        has_completed_payment=has_completed,
    )

    result = []
    for action in Action:
        if action not in legal:
            continue
        if action is Action.PAY:
            if record.family is not DocumentFamily.INVOICE or not is_payable(record.status, balance):
                continue
        shown_balance = formatter(balance) if (formatter and balance is not None) else balance
        result.append(describe_action(record.family, action, balance=shown_balance))
    return result
