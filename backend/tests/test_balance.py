from decimal import Decimal
from types import SimpleNamespace

from splitlog.utils.balance import compute_balances, suggest_settlements


def _alloc(participant_id, amount):
    return SimpleNamespace(participant_id=participant_id, amount=Decimal(amount))


def _expense(payers, splits, is_deleted=False):
    return SimpleNamespace(
        is_deleted=is_deleted,
        payers=[_alloc(p, a) for p, a in payers],
        splits=[_alloc(p, a) for p, a in splits],
    )


ROSTER = [SimpleNamespace(id=1), SimpleNamespace(id=2), SimpleNamespace(id=3)]


class TestComputeBalances:
    """Paid minus owed per participant, always summing to zero."""

    def test_shared_expense(self):
        balances = compute_balances([_expense([(1, "90")], [(1, "45"), (2, "45")])], ROSTER[:2])
        assert balances[1].balance == Decimal("45")
        assert balances[2].balance == Decimal("-45")

    def test_every_roster_member_listed(self):
        balances = compute_balances([], ROSTER)
        assert set(balances) == {1, 2, 3}
        assert all(b.balance == 0 for b in balances.values())

    def test_personal_expense_is_neutral(self):
        balances = compute_balances([_expense([(3, "20")], [(3, "20")])], ROSTER)
        assert balances[3].paid == Decimal("20")
        assert balances[3].balance == 0

    def test_deleted_expenses_ignored(self):
        balances = compute_balances([_expense([(1, "50")], [(2, "50")], is_deleted=True)], ROSTER)
        assert all(b.balance == 0 for b in balances.values())

    def test_off_roster_participant_still_counted(self):
        balances = compute_balances([_expense([(1, "30")], [(1, "10"), (2, "10"), (9, "10")])], ROSTER[:2])
        assert balances[9].balance == Decimal("-10")
        assert sum(b.balance for b in balances.values()) == 0

    def test_sum_is_zero_over_many_expenses(self):
        expenses = [
            _expense([(1, "100.00")], [(1, "33.34"), (2, "33.33"), (3, "33.33")]),
            _expense([(2, "40"), (3, "20")], [(1, "30"), (2, "30")]),
            _expense([(3, "15.50")], [(3, "15.50")]),
        ]
        balances = compute_balances(expenses, ROSTER)
        assert sum(b.balance for b in balances.values()) == 0


class TestSuggestSettlements:
    def test_settles_everyone(self):
        balances = compute_balances(
            [_expense([(1, "90")], [(1, "30"), (2, "30"), (3, "30")])],
            ROSTER,
        )
        settlements = suggest_settlements(balances)

        assert {(s.from_participant_id, s.to_participant_id, s.amount) for s in settlements} == {
            (2, 1, Decimal("30")),
            (3, 1, Decimal("30")),
        }

    def test_largest_debtor_pays_first(self):
        balances = compute_balances(
            [_expense([(1, "100")], [(2, "70"), (3, "30")])],
            ROSTER,
        )
        settlements = suggest_settlements(balances)
        assert settlements[0].from_participant_id == 2
        assert settlements[0].amount == Decimal("70")

    def test_nothing_to_settle(self):
        assert suggest_settlements(compute_balances([], ROSTER)) == []
