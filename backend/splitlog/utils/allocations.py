from decimal import ROUND_HALF_UP, Decimal

from ..models.models import Allocation

CENT = Decimal("0.01")


def to_cents(amount) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def collapse(allocations: list[Allocation]) -> list[Allocation]:
    """Merge repeated participants, keeping first-seen order."""
    merged: dict[int, Decimal] = {}
    for a in allocations:
        merged[a.participant_id] = merged.get(a.participant_id, Decimal("0")) + to_cents(a.amount)
    return [Allocation(participant_id=pid, amount=amount) for pid, amount in merged.items()]


def total(allocations: list[Allocation]) -> Decimal:
    return sum((to_cents(a.amount) for a in allocations), Decimal("0.00"))


def matches_total(allocations: list[Allocation], amount) -> bool:
    return total(allocations) == to_cents(amount)


def single_payer(participant_id: int, amount) -> list[Allocation]:
    return [Allocation(participant_id=participant_id, amount=to_cents(amount))]


def equal_split(amount, participant_ids: list[int]) -> list[Allocation]:
    """Split `amount` evenly; leftover cents go to the first participants.

    Participants whose share rounds to zero are left out so every stored
    allocation stays positive.
    """
    if not participant_ids:
        raise ValueError("Cannot split across an empty roster")

    cents = int(to_cents(amount) * 100)
    share, remainder = divmod(cents, len(participant_ids))
    splits = []
    for i, pid in enumerate(participant_ids):
        part = share + (1 if i < remainder else 0)
        if part:
            splits.append(Allocation(participant_id=pid, amount=(Decimal(part) / 100).quantize(CENT)))
    return splits


def mirror(payers: list[Allocation]) -> list[Allocation]:
    # A personal expense: everyone owes exactly what they paid
    return [Allocation(participant_id=p.participant_id, amount=to_cents(p.amount)) for p in payers]
