"""
Budget lifecycle: confirm, revise, archive, and recalculation of the achieved amount.

A confirmed budget is never edited.  Revising it creates a new draft budget
that points back at it through parent_budget_id, marks the original revised
and appends a history row on the original.  Following parent links from any
budget therefore walks back through its earlier versions to the first one.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from models.actions import Action
from models.budget import Budget, BudgetRevision
from models.status import BudgetStatus, BudgetType, DocumentFamily

from .balance import to_decimal
from .errors import IllegalTransition, InvalidAmount, PersistenceError
from .policy import DEFAULT_POLICY, TransitionPolicy
from .store import DocumentStore

logger = logging.getLogger(__name__)


class BudgetService:

    def __init__(self, store: DocumentStore, policy: Optional[TransitionPolicy] = None) -> None:
        self.store = store
        self.policy = policy or DEFAULT_POLICY

    def _require(self, budget: Budget, action: Action) -> None:
        if not self.policy.allows(DocumentFamily.BUDGET, budget.status, budget.is_archived, action):
            logger.warning(
                "Rejected %s on budget %s (status=%s, archived=%s)",
                action.value, budget.id, budget.status.value, budget.is_archived,
            )
            raise IllegalTransition("budget", budget.id, action, budget.status)

    def create(
        self,
        name: str,
        analytical_account_id: str,
        budgeted_amount,
        start_date: date,
        end_date: date,
        budget_type=BudgetType.EXPENSE,
    ) -> Budget:
        amount = to_decimal(budgeted_amount)
        if amount < 0:
            raise InvalidAmount("Budgeted amount cannot be negative")
        if end_date < start_date:
            raise ValueError("Budget end date is before its start date")
        budget = Budget(
            id=str(uuid.uuid4()),
            name=name,
            analytical_account_id=analytical_account_id,
            budget_type=BudgetType(budget_type),
            start_date=start_date,
            end_date=end_date,
            budgeted_amount=amount,
        )
        return self.store.insert_budget(budget)

    def confirm(self, budget_id: str) -> Budget:
        budget = self.store.fetch_budget(budget_id)
        self._require(budget, Action.CONFIRM)
        self.store.set_budget_status(budget.id, BudgetStatus.CONFIRMED)
        logger.info("Budget %s confirmed", budget.id)
        return budget.model_copy(update={"status": BudgetStatus.CONFIRMED})

    def archive(self, budget_id: str) -> Budget:
        budget = self.store.fetch_budget(budget_id)
        self._require(budget, Action.ARCHIVE)
        self.store.set_budget_status(budget.id, BudgetStatus.ARCHIVED, is_archived=True)
        logger.info("Budget %s archived", budget.id)
        return budget.model_copy(update={"status": BudgetStatus.ARCHIVED, "is_archived": True})

    def revise(
        self,
        budget_id: str,
        new_amount,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[Budget, Budget]:
        """
        Revise a confirmed budget.  Returns (parent, child): the parent now
        revised, the child a new draft carrying *new_amount*.
        """
        parent = self.store.fetch_budget(budget_id)
        self._require(parent, Action.REVISE)

        amount = to_decimal(new_amount)
        if amount <= 0:
            raise InvalidAmount("Revised budget amount must be greater than zero")

        now = now or datetime.now(timezone.utc)
        child = Budget(
            id=str(uuid.uuid4()),
            name=f"{parent.name} Rev {now:%d-%m-%Y}",
            analytical_account_id=parent.analytical_account_id,
            budget_type=parent.budget_type,
            start_date=parent.start_date,
            end_date=parent.end_date,
            status=BudgetStatus.DRAFT,
            budgeted_amount=amount,
            achieved_amount=parent.achieved_amount,
            parent_budget_id=parent.id,
        )
        revision = BudgetRevision(
            id=str(uuid.uuid4()),
            budget_id=parent.id,
            revision_date=now,
            previous_amount=parent.budgeted_amount,
            new_amount=amount,
            reason=reason or None,
        )
        self.store.create_budget_revision(parent.id, child, revision)
        logger.info(
            "Budget %s revised %s → %s (new budget %s)",
            parent.id, parent.budgeted_amount, amount, child.id,
        )
        return parent.model_copy(update={"status": BudgetStatus.REVISED}), child

    def recalculate(self, budget_id: str, achieved_amount) -> Budget:
        """
        Store a new achieved amount.  Remaining balance and achievement
        percentage are derived from it, so nothing else is written.
        """
        budget = self.store.fetch_budget(budget_id)
        if budget.is_archived:
            logger.warning("Rejected recalculate on archived budget %s", budget.id)
            raise IllegalTransition("budget", budget.id, "recalculate", budget.status)
        amount = to_decimal(achieved_amount)
        if amount < 0:
            raise InvalidAmount("Achieved amount cannot be negative")
        self.store.set_budget_achieved(budget.id, amount)
        updated = budget.model_copy(update={"achieved_amount": amount})
        logger.info(
            "Budget %s achieved %s of %s (%s%%)",
            budget.id, amount, budget.budgeted_amount, updated.achievement_percentage,
        )
        return updated

    def revisions(self, budget_id: str) -> list[BudgetRevision]:
        return self.store.fetch_budget_revisions(budget_id)

    def children(self, budget_id: str) -> list[Budget]:
        return self.store.list_budget_children(budget_id)

    def lineage(self, budget_id: str) -> list[Budget]:
        """The budget and its earlier versions, oldest first."""
        chain: list[Budget] = []
        seen: set[str] = set()
        current: Optional[str] = budget_id
        while current is not None:
            if current in seen:
                raise PersistenceError(f"Budget lineage of {budget_id} loops at {current}")
            seen.add(current)
            budget = self.store.fetch_budget(current)
            chain.append(budget)
            current = budget.parent_budget_id
        chain.reverse()
        return chain
