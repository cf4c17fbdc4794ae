"""
Status transitions for orders, bills and invoices.

The service asks the policy whether an action is on offer, writes the target
status through the store, and only then hands back an updated snapshot.  A
rejected write leaves the caller holding the snapshot it already had.
Budgets have their own lifecycle in ledger.budgets; payments go through
ledger.payments.
"""
import logging
from typing import Optional

from models.actions import Action, AvailableAction
from models.document import TransactionalDocument
from models.status import Audience, DocumentFamily, DocumentKind

from .actions import get_available_actions
from .errors import IllegalTransition
from .policy import DEFAULT_POLICY, TransitionPolicy, target_status
from .store import DocumentStore

logger = logging.getLogger(__name__)

# Actions with their own entry point; apply() refuses them.
_DELEGATED = {Action.PAY, Action.CANCEL_REQUEST}


class TransitionService:

    def __init__(self, store: DocumentStore, policy: Optional[TransitionPolicy] = None) -> None:
        self.store = store
        self.policy = policy or DEFAULT_POLICY

    def _payment_flag(self, doc: TransactionalDocument) -> Optional[bool]:
        if doc.family is not DocumentFamily.INVOICE:
            return None
        payments = self.store.fetch_payments(doc.kind, doc.id)
        return any(p.is_completed for p in payments)

    def _fetch(self, kind, document_id: str) -> TransactionalDocument:
        kind = DocumentKind(kind)
        if kind.family not in (DocumentFamily.ORDER, DocumentFamily.INVOICE):
            raise ValueError(f"'{kind.value}' is not an order, bill or invoice")
        return self.store.fetch_document(kind, document_id)

    def apply(self, kind, document_id: str, action) -> TransactionalDocument:
        """
        Run *action* on the document and return the post-write snapshot.

        Raises IllegalTransition when the action is not offered in the current
        state; PersistenceError from the store propagates untouched.
        """
        doc = self._fetch(kind, document_id)
        action = Action(action)

        legal = self.policy.legal_actions(
            doc.family, doc.status, doc.is_archived,
            has_completed_payment=self._payment_flag(doc),
        )
        if action not in legal or action in _DELEGATED:
            logger.warning(
                "Rejected %s on %s %s (status=%s, archived=%s)",
                action.value, doc.kind.value, doc.number, doc.status.value, doc.is_archived,
            )
            raise IllegalTransition(doc.kind, doc.id, action, doc.status)

        target = target_status(doc.family, action)
        if target is None:
            logger.info("%s on %s %s writes no status", action.value, doc.kind.value, doc.number)
            return doc

        self.store.apply_transition(doc.kind, doc.id, target)
        logger.info(
            "%s %s: %s → %s", doc.kind.value, doc.number, doc.status.value, target.value
        )
        return doc.model_copy(update={"status": target})

    def request_cancellation(
        self, kind, document_id: str, reason: Optional[str] = None
    ) -> TransactionalDocument:
        """
        Record a portal user's request to cancel an order.  The document's
        status is not changed; back-office staff act on the request.
        """
        doc = self._fetch(kind, document_id)
        if not self.policy.allows(
            doc.family, doc.status, doc.is_archived, Action.CANCEL_REQUEST,
            audience=Audience.PORTAL,
            has_completed_payment=self._payment_flag(doc),
        ):
            logger.warning(
                "Rejected cancellation request on %s %s (status=%s)",
                doc.kind.value, doc.number, doc.status.value,
            )
            raise IllegalTransition(doc.kind, doc.id, Action.CANCEL_REQUEST, doc.status)

        self.store.record_cancellation_request(doc.kind, doc.id, reason)
        logger.info("Cancellation requested for %s %s", doc.kind.value, doc.number)
        return doc

    def available_actions(
        self,
        kind,
        document_id: str,
        audience: Audience = Audience.INTERNAL,
        formatter=None,
    ) -> tuple[TransactionalDocument, list[AvailableAction]]:
        doc = self._fetch(kind, document_id)
        payments = None
        if doc.family is DocumentFamily.INVOICE:
            payments = self.store.fetch_payments(doc.kind, doc.id)
        actions = get_available_actions(
            doc, policy=self.policy, audience=audience, payments=payments, formatter=formatter,
        )
        return doc, actions
