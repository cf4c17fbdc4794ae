"""
Contract between the services and whichever backend holds the records.

Reads raise NotFound / TransientError.  Writes raise PersistenceError when the
backend rejects them; a service never updates a snapshot it handed out until
the write has returned.
"""
from decimal import Decimal
from typing import Optional, Protocol

from models.budget import Budget, BudgetRevision
from models.document import Payment, TransactionalDocument
from models.status import DocumentKind


class DocumentStore(Protocol):

    # --- reads ---------------------------------------------------------

    def fetch_document(self, kind: DocumentKind, document_id: str) -> TransactionalDocument:
        ...

    def list_documents(
        self,
        kind: DocumentKind,
        status: Optional[str] = None,
        include_archived: bool = False,
    ) -> list[TransactionalDocument]:
        ...

    def fetch_payments(self, kind: DocumentKind, document_id: str) -> list[Payment]:
        ...

    def count_payments(self, kind: DocumentKind) -> int:
        ...

    def fetch_budget(self, budget_id: str) -> Budget:
        ...

    def fetch_budget_revisions(self, budget_id: str) -> list[BudgetRevision]:
        ...

    def list_budget_children(self, budget_id: str) -> list[Budget]:
        ...

    # --- writes --------------------------------------------------------

    def apply_transition(self, kind: DocumentKind, document_id: str, new_status: str) -> None:
        ...

    def insert_payment(self, payment: Payment) -> Payment:
        ...

    def update_paid_amount(
        self, kind: DocumentKind, document_id: str, paid_amount: Decimal, status: str
    ) -> None:
        ...

    def record_payment(self, payment: Payment, paid_amount: Decimal, status: str) -> Payment:
        """Insert *payment* and set the document's paid amount and status together.
        Either both are stored or neither is."""
        ...

    def insert_budget(self, budget: Budget) -> Budget:
        ...

    def set_budget_status(self, budget_id: str, status: str, is_archived: bool = False) -> None:
        ...

    def set_budget_achieved(self, budget_id: str, achieved_amount: Decimal) -> None:
        ...

    def create_budget_revision(
        self, parent_id: str, child: Budget, revision: BudgetRevision
    ) -> Budget:
        ...

    def record_cancellation_request(
        self, kind: DocumentKind, document_id: str, reason: Optional[str]
    ) -> None:
        ...
