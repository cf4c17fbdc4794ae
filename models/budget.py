from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field

from .status import BudgetStatus, BudgetType, DocumentFamily, DocumentKind


class Budget(BaseModel):
    """
    A budget allocation against an analytical account.

    Budgets are never edited after confirmation.  A revision creates a new
    draft child whose parent_budget_id points back at the record it replaces,
    so the lineage only ever links backward in creation order.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    analytical_account_id: str
    budget_type: BudgetType = BudgetType.EXPENSE
    start_date: date
    end_date: date
    status: BudgetStatus = BudgetStatus.DRAFT
    budgeted_amount: Decimal
    achieved_amount: Decimal = Decimal("0")
    is_archived: bool = False
    parent_budget_id: Optional[str] = None

    @property
    def kind(self) -> DocumentKind:
        return DocumentKind.BUDGET

    @property
    def family(self) -> DocumentFamily:
        return DocumentFamily.BUDGET

    @computed_field  # type: ignore[misc]
    @property
    def remaining_balance(self) -> Decimal:
        return self.budgeted_amount - self.achieved_amount

    @computed_field  # type: ignore[misc]
    @property
    def achievement_percentage(self) -> Decimal:
        if not self.budgeted_amount:
            return Decimal("0")
        return (self.achieved_amount / self.budgeted_amount * 100).quantize(Decimal("0.01"))


class BudgetRevision(BaseModel):
    """History entry written on the parent budget when it is revised."""
    model_config = ConfigDict(frozen=True)

    id: str
    budget_id: str                  # the budget that was revised (the parent)
    revision_date: datetime
    previous_amount: Decimal
    new_amount: Decimal
    reason: Optional[str] = None
