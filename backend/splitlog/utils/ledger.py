import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..models.models import (Allocation, Expense, ExpensePayer, ExpenseSplit,
                             TripDay)
from .allocations import to_cents
from .date import dt_utc

log = logging.getLogger(__name__)

EXPENSE_META_FIELDS = ("description", "category_id", "dt", "is_shared", "day_id", "amount")


class LedgerError(ValueError):
    pass


def _check_amount(amount) -> Decimal:
    if amount is None or Decimal(amount) <= 0:
        raise LedgerError("Amount must be greater than zero")
    return to_cents(amount)


def _check_allocations(kind: str, allocations: list[Allocation]) -> None:
    if not allocations:
        raise LedgerError(f"At least one {kind} is required")
    for a in allocations:
        if Decimal(a.amount) <= 0:
            raise LedgerError(f"{kind.capitalize()} amounts must be greater than zero")


def _add_allocations(session: Session, expense_id: int, payers: list[Allocation], splits: list[Allocation]):
    for p in payers:
        session.add(ExpensePayer(expense_id=expense_id, participant_id=p.participant_id, amount=to_cents(p.amount)))
    for s in splits:
        session.add(ExpenseSplit(expense_id=expense_id, participant_id=s.participant_id, amount=to_cents(s.amount)))


def _next_order(session: Session, day_id: int) -> int:
    current = session.exec(select(func.max(Expense.order)).where(Expense.day_id == day_id)).one()
    return (current if current is not None else -1) + 1


def create_expense(
    session: Session,
    day: TripDay,
    amount,
    payers: list[Allocation],
    splits: list[Allocation],
    created_by: int | None = None,
    description: str | None = None,
    category_id: int | None = None,
    dt: datetime | None = None,
    is_shared: bool = True,
) -> Expense:
    """Insert an expense with its payer and split sets in one commit.

    Sums are not checked here; the caller validates them against `amount`.
    """
    amount = _check_amount(amount)
    _check_allocations("payer", payers)
    _check_allocations("split", splits)

    expense = Expense(
        trip_id=day.trip_id,
        day_id=day.id,
        amount=amount,
        description=description,
        category_id=category_id,
        dt=dt or dt_utc(),
        is_shared=is_shared,
        order=_next_order(session, day.id),
        created_by=created_by,
    )
    try:
        session.add(expense)
        session.flush()
        _add_allocations(session, expense.id, payers, splits)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise

    session.refresh(expense)
    return expense


def update_expense(
    session: Session,
    expense: Expense,
    meta: dict | None = None,
    payers: list[Allocation] | None = None,
    splits: list[Allocation] | None = None,
) -> Expense:
    """Apply metadata and replace allocation sets wholesale, atomically.

    A set that is passed replaces every stored row of that kind; a set left
    as None is kept untouched.
    """
    meta = meta or {}
    if "amount" in meta:
        meta["amount"] = _check_amount(meta["amount"])
    if payers is not None:
        _check_allocations("payer", payers)
    if splits is not None:
        _check_allocations("split", splits)

    try:
        if payers is not None:
            session.exec(delete(ExpensePayer).where(ExpensePayer.expense_id == expense.id))
        if splits is not None:
            session.exec(delete(ExpenseSplit).where(ExpenseSplit.expense_id == expense.id))
        _add_allocations(session, expense.id, payers or [], splits or [])

        moved = "day_id" in meta and meta["day_id"] != expense.day_id
        new_order = _next_order(session, meta["day_id"]) if moved else expense.order
        for key, value in meta.items():
            if key in EXPENSE_META_FIELDS:
                setattr(expense, key, value)
        expense.order = new_order
        expense.updated_at = dt_utc()
        session.add(expense)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise

    session.refresh(expense)
    return expense


def soft_delete_expense(session: Session, expense: Expense) -> Expense:
    expense.is_deleted = True
    expense.deleted_at = dt_utc()
    session.add(expense)
    session.commit()
    session.refresh(expense)
    return expense


def restore_expense(session: Session, expense: Expense) -> Expense:
    expense.is_deleted = False
    expense.deleted_at = None
    session.add(expense)
    session.commit()
    session.refresh(expense)
    return expense


def list_expenses(session: Session, trip_id: int, include_deleted: bool = False) -> list[Expense]:
    query = select(Expense).where(Expense.trip_id == trip_id)
    if not include_deleted:
        query = query.where(Expense.is_deleted.is_(False))
    return list(session.exec(query.order_by(Expense.dt.desc(), Expense.id.desc())).all())


def list_day_expenses(session: Session, day_id: int) -> list[Expense]:
    return list(
        session.exec(
            select(Expense)
            .where(Expense.day_id == day_id, Expense.is_deleted.is_(False))
            .order_by(Expense.order, Expense.id)
        ).all()
    )


def reorder_day_expenses(session: Session, day: TripDay, expense_ids: list[int]) -> list[Expense]:
    expenses = {e.id: e for e in list_day_expenses(session, day.id)}
    if set(expense_ids) != set(expenses) or len(expense_ids) != len(expenses):
        raise LedgerError("Order must list every expense of the day exactly once")

    for position, expense_id in enumerate(expense_ids):
        expenses[expense_id].order = position
        session.add(expenses[expense_id])
    session.commit()
    return list_day_expenses(session, day.id)


def purge_day_expenses(session: Session, day_ids: list[int]) -> int:
    """Hard-delete every expense (deleted or not) of the given days, allocations first.

    Flushes only; the surrounding cascade owns the commit.
    """
    if not day_ids:
        return 0
    expense_ids = session.exec(select(Expense.id).where(Expense.day_id.in_(day_ids))).all()
    if not expense_ids:
        return 0
    session.exec(delete(ExpensePayer).where(ExpensePayer.expense_id.in_(expense_ids)))
    session.exec(delete(ExpenseSplit).where(ExpenseSplit.expense_id.in_(expense_ids)))
    session.exec(delete(Expense).where(Expense.id.in_(expense_ids)))
    return len(expense_ids)
