from decimal import Decimal

import pytest

from splitlog.models.models import Allocation
from splitlog.utils.allocations import (collapse, equal_split, matches_total,
                                        mirror, single_payer, to_cents)


class TestEqualSplit:
    """Even shares in cents, remainder to the first participants."""

    def test_divides_evenly(self):
        splits = equal_split(Decimal("90"), [1, 2])
        assert [(s.participant_id, s.amount) for s in splits] == [(1, Decimal("45.00")), (2, Decimal("45.00"))]

    def test_remainder_cents_go_first(self):
        splits = equal_split(Decimal("100.00"), [1, 2, 3])
        assert [s.amount for s in splits] == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
        assert matches_total(splits, Decimal("100.00"))

    def test_drops_zero_shares(self):
        splits = equal_split(Decimal("0.02"), [1, 2, 3])
        assert [s.participant_id for s in splits] == [1, 2]

    def test_empty_roster_rejected(self):
        with pytest.raises(ValueError):
            equal_split(Decimal("10"), [])


class TestAllocationHelpers:
    def test_collapse_merges_repeated_participants(self):
        merged = collapse(
            [
                Allocation(participant_id=2, amount=Decimal("10")),
                Allocation(participant_id=1, amount=Decimal("5")),
                Allocation(participant_id=2, amount=Decimal("2.50")),
            ]
        )
        assert [(a.participant_id, a.amount) for a in merged] == [(2, Decimal("12.50")), (1, Decimal("5.00"))]

    def test_single_payer_and_mirror(self):
        payers = single_payer(7, "12.345")
        assert payers[0].amount == Decimal("12.35")
        assert [(a.participant_id, a.amount) for a in mirror(payers)] == [(7, Decimal("12.35"))]

    def test_matches_total_is_cent_exact(self):
        allocations = [Allocation(participant_id=1, amount=Decimal("0.1")), Allocation(participant_id=2, amount=Decimal("0.2"))]
        assert matches_total(allocations, Decimal("0.30"))
        assert not matches_total(allocations, Decimal("0.31"))

    def test_to_cents_rounds_half_up(self):
        assert to_cents("2.005") == Decimal("2.01")
