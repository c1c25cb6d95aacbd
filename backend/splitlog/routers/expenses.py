from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import selectinload
from sqlmodel import select

from ..config import settings
from ..deps import SessionDep, get_current_user
from ..models.models import (Allocation, AllocationIn, Category, Expense,
                             ExpenseCreate, ExpenseOrderUpdate, ExpenseRead,
                             ExpenseUpdate, ParticipantBalanceRead, Trip,
                             TripBalanceRead, User)
from ..utils.allocations import (collapse, equal_split, matches_total, mirror,
                                 single_payer)
from ..utils.balance import compute_balances, suggest_settlements
from ..utils.ledger import (LedgerError, create_expense, list_expenses,
                            reorder_day_expenses, restore_expense,
                            soft_delete_expense, update_expense)
from ..utils.participants import (ensure_trip_participant, get_trip_roster,
                                  participant_from_user)
from .trips import _get_trip_day, _get_verified_trip, _get_writable_trip

router = APIRouter(prefix="/api/trips", tags=["expenses"])


def _get_trip_expense(session, trip_id: int, expense_id: int) -> Expense:
    expense = session.get(Expense, expense_id)
    if not expense or expense.trip_id != trip_id:
        raise HTTPException(status_code=404, detail="Not found")
    return expense


def _resolve_allocations(session, trip: Trip, inviter: User, allocations: list[AllocationIn]) -> list[Allocation]:
    resolved = []
    for a in allocations:
        if a.email:
            user, _ = ensure_trip_participant(session, trip, a.email, inviter)
            participant_id = user.id
        else:
            participant_id = a.participant_id
        resolved.append(Allocation(participant_id=participant_id, amount=a.amount))
    return collapse(resolved)


def _check_roster(roster_ids: set[int], allocations: list[Allocation]) -> None:
    if any(a.participant_id not in roster_ids for a in allocations):
        raise HTTPException(status_code=400, detail="Participant is not a trip member")


def _check_totals(amount, payers: list[Allocation], splits: list[Allocation]) -> None:
    if not matches_total(payers, amount):
        raise HTTPException(status_code=400, detail="Payer amounts must add up to the expense amount")
    if not matches_total(splits, amount):
        raise HTTPException(status_code=400, detail="Split amounts must add up to the expense amount")


def _check_input_totals(amount, payers: list[AllocationIn] | None, splits: list[AllocationIn] | None) -> None:
    # Runs before any email is resolved, so a bad request never creates a participant
    if payers and not matches_total(payers, amount):
        raise HTTPException(status_code=400, detail="Payer amounts must add up to the expense amount")
    if splits and not matches_total(splits, amount):
        raise HTTPException(status_code=400, detail="Split amounts must add up to the expense amount")


def _check_category(session, category_id: int | None) -> None:
    if category_id is not None and not session.get(Category, category_id):
        raise HTTPException(status_code=400, detail="Bad request, unknown Category")


@router.get("/{trip_id}/expenses", response_model=list[ExpenseRead])
def read_expenses(
    session: SessionDep,
    trip_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    include_deleted: bool = False,
) -> list[ExpenseRead]:
    _get_verified_trip(session, trip_id, current_user)
    return [ExpenseRead.serialize(e) for e in list_expenses(session, trip_id, include_deleted)]


@router.post("/{trip_id}/days/{day_id}/expenses", response_model=ExpenseRead)
def create_trip_expense(
    data: ExpenseCreate,
    trip_id: int,
    day_id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
) -> ExpenseRead:
    db_trip = _get_writable_trip(session, trip_id, current_user)
    db_day = _get_trip_day(session, trip_id, day_id)
    _check_category(session, data.category_id)
    _check_input_totals(data.amount, data.payers, data.splits if data.is_shared else None)

    payers = _resolve_allocations(session, db_trip, current_user, data.payers or [])
    splits = _resolve_allocations(session, db_trip, current_user, data.splits or [])
    roster = get_trip_roster(session, db_trip)

    if not payers:
        payers = single_payer(current_user.id, data.amount)
    if not data.is_shared:
        splits = mirror(payers)
    elif not splits:
        # Point-in-time capture: the roster as of now, stored and never recomputed
        splits = equal_split(data.amount, [p.id for p in roster])

    _check_roster({p.id for p in roster}, payers + splits)
    _check_totals(data.amount, payers, splits)

    try:
        expense = create_expense(
            session,
            db_day,
            data.amount,
            payers,
            splits,
            created_by=current_user.id,
            description=data.description,
            category_id=data.category_id,
            dt=data.dt,
            is_shared=data.is_shared,
        )
    except LedgerError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return ExpenseRead.serialize(expense)


@router.put("/{trip_id}/expenses/{expense_id}", response_model=ExpenseRead)
def update_trip_expense(
    data: ExpenseUpdate,
    trip_id: int,
    expense_id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
) -> ExpenseRead:
    db_trip = _get_writable_trip(session, trip_id, current_user)
    db_expense = _get_trip_expense(session, trip_id, expense_id)
    if db_expense.is_deleted:
        raise HTTPException(status_code=400, detail="Bad request")

    meta = data.model_dump(exclude_unset=True, exclude={"payers", "splits"})
    for key in ("amount", "dt", "day_id", "is_shared"):
        if key in meta and meta[key] is None:
            meta.pop(key)
    if "day_id" in meta:
        _get_trip_day(session, trip_id, meta["day_id"])
    if "category_id" in meta:
        _check_category(session, meta["category_id"])

    amount = meta.get("amount", db_expense.amount)
    is_shared = meta.get("is_shared", db_expense.is_shared)
    amount_changed = amount != db_expense.amount
    shape_changed = (
        amount_changed or data.payers is not None or data.splits is not None or is_shared != db_expense.is_shared
    )
    payers = splits = None
    if shape_changed:
        _check_input_totals(amount, data.payers, data.splits if is_shared else None)
        if data.payers is not None:
            payers = _resolve_allocations(session, db_trip, current_user, data.payers)
        elif amount_changed:
            if len(db_expense.payers) != 1:
                raise HTTPException(status_code=400, detail="Payers are required when changing a shared payment")
            payers = single_payer(db_expense.payers[0].participant_id, amount)
        else:
            payers = [Allocation(participant_id=p.participant_id, amount=p.amount) for p in db_expense.payers]

        if is_shared and data.splits is not None:
            splits = _resolve_allocations(session, db_trip, current_user, data.splits)
        roster = get_trip_roster(session, db_trip)

        if not is_shared:
            splits = mirror(payers)
        elif splits is None and (amount_changed or not db_expense.is_shared):
            # Re-split evenly over the people still sharing it, or the roster for a formerly personal expense
            roster_ids = [p.id for p in roster]
            previous = [s.participant_id for s in db_expense.splits if s.participant_id in roster_ids]
            splits = equal_split(amount, (previous if db_expense.is_shared else []) or roster_ids)
        elif splits is None:
            splits = [Allocation(participant_id=s.participant_id, amount=s.amount) for s in db_expense.splits]

        _check_roster({p.id for p in roster}, payers + splits)
        _check_totals(amount, payers, splits)

    try:
        expense = update_expense(session, db_expense, meta, payers, splits)
    except LedgerError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return ExpenseRead.serialize(expense)


@router.delete("/{trip_id}/expenses/{expense_id}")
def delete_trip_expense(
    trip_id: int,
    expense_id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
):
    _get_writable_trip(session, trip_id, current_user)
    db_expense = _get_trip_expense(session, trip_id, expense_id)
    soft_delete_expense(session, db_expense)
    return {}


@router.post("/{trip_id}/expenses/{expense_id}/restore", response_model=ExpenseRead)
def restore_trip_expense(
    trip_id: int,
    expense_id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
) -> ExpenseRead:
    _get_writable_trip(session, trip_id, current_user)
    db_expense = _get_trip_expense(session, trip_id, expense_id)
    if not db_expense.is_deleted:
        raise HTTPException(status_code=409, detail="Expense is not deleted")
    return ExpenseRead.serialize(restore_expense(session, db_expense))


@router.put("/{trip_id}/days/{day_id}/expenses/order", response_model=list[ExpenseRead])
def reorder_trip_expenses(
    data: ExpenseOrderUpdate,
    trip_id: int,
    day_id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
) -> list[ExpenseRead]:
    _get_writable_trip(session, trip_id, current_user)
    db_day = _get_trip_day(session, trip_id, day_id)
    try:
        expenses = reorder_day_expenses(session, db_day, data.expense_ids)
    except LedgerError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return [ExpenseRead.serialize(e) for e in expenses]


@router.get("/{trip_id}/balance", response_model=TripBalanceRead)
def get_trip_balance(
    session: SessionDep,
    trip_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
) -> TripBalanceRead:
    db_trip = _get_verified_trip(session, trip_id, current_user)
    roster = get_trip_roster(session, db_trip)

    expenses = session.exec(
        select(Expense)
        .options(selectinload(Expense.payers), selectinload(Expense.splits))
        .where(Expense.trip_id == trip_id, Expense.is_deleted.is_(False))
    ).all()

    balances = compute_balances(expenses, roster)
    participants = {p.id: p for p in roster}
    for participant_id in balances.keys() - participants.keys():
        participants[participant_id] = participant_from_user(session.get(User, participant_id))

    return TripBalanceRead(
        currency=db_trip.currency or settings.DEFAULT_CURRENCY,
        total=sum((e.amount for e in expenses), Decimal("0.00")),
        balances=[
            ParticipantBalanceRead(
                participant=participants[participant_id],
                paid=entry.paid,
                owed=entry.owed,
                balance=entry.balance,
            )
            for participant_id, entry in balances.items()
        ],
        settlements=suggest_settlements(balances),
    )
