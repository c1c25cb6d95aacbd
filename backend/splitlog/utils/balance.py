import heapq
from collections.abc import Iterable
from decimal import Decimal

from ..models.models import ParticipantBalance, Settlement

ZERO = Decimal("0.00")


def compute_balances(expenses: Iterable, roster: Iterable) -> dict[int, ParticipantBalance]:
    """Net paid/owed per participant over a ledger snapshot.

    `expenses` are objects exposing `is_deleted`, `payers` and `splits` (each
    allocation with `participant_id` and `amount`); `roster` items expose `id`.
    Every roster participant is present in the result, including those with no
    activity. Allocations for participants outside the roster still count so
    the balances keep summing to zero. Pure: no I/O, input order only affects
    the ordering of participants added on demand.
    """
    balances: dict[int, ParticipantBalance] = {p.id: ParticipantBalance() for p in roster}

    for expense in expenses:
        if expense.is_deleted:
            continue
        for payer in expense.payers:
            entry = balances.setdefault(payer.participant_id, ParticipantBalance())
            entry.paid += Decimal(payer.amount)
        for split in expense.splits:
            entry = balances.setdefault(split.participant_id, ParticipantBalance())
            entry.owed += Decimal(split.amount)

    return balances


def suggest_settlements(balances: dict[int, ParticipantBalance]) -> list[Settlement]:
    """Greedy settle-up: the largest debtor pays the largest creditor until all are even."""
    debtors: list[tuple[Decimal, int]] = []
    creditors: list[tuple[Decimal, int]] = []
    for participant_id, entry in balances.items():
        if entry.balance < ZERO:
            heapq.heappush(debtors, (entry.balance, participant_id))
        elif entry.balance > ZERO:
            heapq.heappush(creditors, (-entry.balance, participant_id))

    settlements = []
    while debtors and creditors:
        debt, debtor = heapq.heappop(debtors)
        credit, creditor = heapq.heappop(creditors)
        debt, credit = -debt, -credit

        amount = min(debt, credit)
        settlements.append(Settlement(from_participant_id=debtor, to_participant_id=creditor, amount=amount))

        if debt - amount > ZERO:
            heapq.heappush(debtors, (-(debt - amount), debtor))
        if credit - amount > ZERO:
            heapq.heappush(creditors, (-(credit - amount), creditor))

    return settlements
