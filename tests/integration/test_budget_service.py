"""
Integration tests for BudgetService over the SQLite store.
"""
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from ledger.budgets import BudgetService
from ledger.errors import IllegalTransition, InvalidAmount, NotFound
from models.status import BudgetStatus, BudgetType


@pytest.fixture
def service(seeded_db):
    return BudgetService(seeded_db)


@pytest.mark.integration
class TestRevise:

    def test_revise_confirmed_budget(self, service, seeded_db):
        now = datetime(2026, 6, 15, 9, 30, tzinfo=timezone.utc)
        parent, child = service.revise("bud-confirmed", Decimal("750"), reason="Timber prices", now=now)

        assert parent.status is BudgetStatus.REVISED
        assert child.status is BudgetStatus.DRAFT
        assert child.parent_budget_id == "bud-confirmed"
        assert child.budgeted_amount == Decimal("750")
        assert child.achieved_amount == Decimal("125")
        assert child.name == "Workshop Materials FY26 Rev 15-06-2026"

        assert seeded_db.fetch_budget("bud-confirmed").status is BudgetStatus.REVISED
        assert seeded_db.fetch_budget(child.id).status is BudgetStatus.DRAFT

        [revision] = service.revisions("bud-confirmed")
        assert revision.previous_amount == Decimal("500")
        assert revision.new_amount == Decimal("750")
        assert revision.reason == "Timber prices"

    def test_lineage_walks_back_to_the_first_version(self, service):
        _, child = service.revise("bud-confirmed", 600)
        chain = service.lineage(child.id)
        assert [b.id for b in chain] == ["bud-confirmed", child.id]
        assert [b.id for b in service.children("bud-confirmed")] == [child.id]

    def test_revised_child_can_be_confirmed_and_revised_again(self, service):
        _, first = service.revise("bud-confirmed", 600)
        service.confirm(first.id)
        _, second = service.revise(first.id, 700)
        assert [b.id for b in service.lineage(second.id)] == ["bud-confirmed", first.id, second.id]

    def test_revised_budget_cannot_be_revised_again(self, service):
        service.revise("bud-confirmed", 600)
        with pytest.raises(IllegalTransition):
            service.revise("bud-confirmed", 700)

    def test_draft_budget_cannot_be_revised(self, service, seeded_db):
        with pytest.raises(IllegalTransition):
            service.revise("bud-draft", 700)
        assert service.children("bud-draft") == []

    def test_amount_must_be_positive(self, service, seeded_db):
        with pytest.raises(InvalidAmount):
            service.revise("bud-confirmed", 0)
        assert seeded_db.fetch_budget("bud-confirmed").status is BudgetStatus.CONFIRMED

    def test_missing_budget(self, service):
        with pytest.raises(NotFound):
            service.revise("nope", 100)


@pytest.mark.integration
class TestLifecycle:

    def test_confirm_draft(self, service, seeded_db):
        budget = service.confirm("bud-draft")
        assert budget.status is BudgetStatus.CONFIRMED
        assert seeded_db.fetch_budget("bud-draft").status is BudgetStatus.CONFIRMED

    def test_confirm_twice_is_refused(self, service):
        with pytest.raises(IllegalTransition):
            service.confirm("bud-confirmed")

    def test_archive_confirmed(self, service, seeded_db):
        budget = service.archive("bud-confirmed")
        assert budget.is_archived is True
        stored = seeded_db.fetch_budget("bud-confirmed")
        assert stored.status is BudgetStatus.ARCHIVED
        assert stored.is_archived is True

    def test_archived_budget_offers_nothing(self, service):
        service.archive("bud-confirmed")
        with pytest.raises(IllegalTransition):
            service.revise("bud-confirmed", 900)
        with pytest.raises(IllegalTransition):
            service.archive("bud-confirmed")

    def test_draft_cannot_be_archived(self, service):
        with pytest.raises(IllegalTransition):
            service.archive("bud-draft")

    def test_archive_revised_parent(self, service):
        service.revise("bud-confirmed", 650)
        assert service.archive("bud-confirmed").status is BudgetStatus.ARCHIVED


@pytest.mark.integration
class TestRecalculate:

    def test_recalculate_updates_derived_amounts(self, service, seeded_db):
        budget = service.recalculate("bud-confirmed", "400")
        assert budget.achieved_amount == Decimal("400")
        assert budget.remaining_balance == Decimal("100")
        assert budget.achievement_percentage == Decimal("80.00")

        stored = seeded_db.fetch_budget("bud-confirmed")
        assert stored.achieved_amount == Decimal("400")
        assert stored.status is BudgetStatus.CONFIRMED
        actions = [e["action"] for e in seeded_db.get_audit_log("budget", "bud-confirmed")]
        assert actions[-1] == "achieved_updated"

    def test_overachievement_is_kept(self, service):
        budget = service.recalculate("bud-confirmed", 650)
        assert budget.remaining_balance == Decimal("-150")
        assert budget.achievement_percentage == Decimal("130.00")

    def test_draft_and_revised_budgets_can_be_recalculated(self, service):
        assert service.recalculate("bud-draft", 0).achieved_amount == Decimal("0")
        service.revise("bud-confirmed", 900)
        assert service.recalculate("bud-confirmed", 300).remaining_balance == Decimal("200")

    def test_archived_budget_is_read_only(self, service, seeded_db):
        service.archive("bud-confirmed")
        with pytest.raises(IllegalTransition):
            service.recalculate("bud-confirmed", 300)
        assert seeded_db.fetch_budget("bud-confirmed").achieved_amount == Decimal("125")

    def test_negative_amount(self, service):
        with pytest.raises(InvalidAmount, match="cannot be negative"):
            service.recalculate("bud-confirmed", -1)

    def test_non_numeric_amount(self, service):
        with pytest.raises(InvalidAmount, match="not a valid amount"):
            service.recalculate("bud-confirmed", "lots")


@pytest.mark.integration
class TestCreate:

    def test_create_draft(self, service, seeded_db):
        budget = service.create(
            "Delivery Fleet", "acc-fleet", "12000",
            date(2026, 4, 1), date(2027, 3, 31), budget_type="income",
        )
        stored = seeded_db.fetch_budget(budget.id)
        assert stored.status is BudgetStatus.DRAFT
        assert stored.budget_type is BudgetType.INCOME
        assert stored.budgeted_amount == Decimal("12000")
        assert stored.parent_budget_id is None

    def test_negative_amount(self, service):
        with pytest.raises(InvalidAmount):
            service.create("X", "acc", -1, date(2026, 4, 1), date(2027, 3, 31))

    def test_end_before_start(self, service):
        with pytest.raises(ValueError):
            service.create("X", "acc", 10, date(2027, 4, 1), date(2026, 3, 31))
