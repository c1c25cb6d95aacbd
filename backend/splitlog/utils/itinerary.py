import logging
from collections.abc import Iterable
from datetime import date

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..models.models import (AffectedDay, ConflictReport, CreatedDay,
                             DayChecklistItem, DayNote, Expense, KeptDay,
                             ReconciliationResult, Trip, TripDay, TripInvite,
                             TripShare)
from .date import dt_utc, iter_dates, shift_days
from .ledger import purge_day_expenses
from .utils import format_content_types

log = logging.getLogger(__name__)

CONTENT_TYPES = ("notes", "checklists", "expenses", "itinerary details")


class ItineraryError(ValueError):
    pass


def _resolve_range(new_start: date, new_end: date | None) -> tuple[date, date]:
    new_end = new_end or new_start
    if new_end < new_start:
        raise ItineraryError("End date must not be before start date")
    return new_start, new_end


def plan_reconciliation(days: Iterable, new_start: date, new_end: date | None = None) -> ReconciliationResult:
    """Classify existing days against a new date range, without touching storage.

    `days` expose `id`, `dt` and `day_number`. A dated day inside the range is
    kept and renumbered; dateless days and days outside the range are deleted;
    uncovered dates are created. Numbering follows calendar order from 1.
    """
    new_start, new_end = _resolve_range(new_start, new_end)
    numbering = {d: n for n, d in enumerate(iter_dates(new_start, new_end), start=1)}

    plan = ReconciliationResult()
    covered: set[date] = set()
    for day in sorted(days, key=lambda d: (d.day_number, d.id)):
        if day.dt is None or day.dt not in numbering or day.dt in covered:
            plan.deleted.append(day.id)
            continue
        covered.add(day.dt)
        plan.kept.append(KeptDay(day_id=day.id, day_number=numbering[day.dt]))

    plan.kept.sort(key=lambda k: k.day_number)
    plan.created = [CreatedDay(dt=d, day_number=n) for d, n in numbering.items() if d not in covered]
    return plan


def _trip_days(session: Session, trip_id: int) -> list[TripDay]:
    return list(
        session.exec(select(TripDay).where(TripDay.trip_id == trip_id).order_by(TripDay.day_number, TripDay.id)).all()
    )


def delete_days_cascade(session: Session, day_ids: list[int]) -> None:
    """Remove days with notes and checklists first, then expenses, then the rows.

    Flushes only; the caller commits the whole operation once.
    """
    if not day_ids:
        return
    session.exec(delete(DayNote).where(DayNote.day_id.in_(day_ids)))
    session.exec(delete(DayChecklistItem).where(DayChecklistItem.day_id.in_(day_ids)))
    purged = purge_day_expenses(session, day_ids)
    session.exec(delete(TripDay).where(TripDay.id.in_(day_ids)))
    log.info("Deleted %d day(s) and %d expense(s)", len(day_ids), purged)


def _commit(session: Session) -> None:
    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise


def reconcile(session: Session, trip: Trip, new_start: date, new_end: date | None = None) -> ReconciliationResult:
    new_start, new_end = _resolve_range(new_start, new_end)
    days = _trip_days(session, trip.id)
    plan = plan_reconciliation(days, new_start, new_end)

    try:
        delete_days_cascade(session, plan.deleted)

        by_id = {day.id: day for day in days}
        for kept in plan.kept:
            day = by_id[kept.day_id]
            if day.day_number != kept.day_number:
                day.day_number = kept.day_number
                session.add(day)

        for created in plan.created:
            session.add(TripDay(trip_id=trip.id, dt=created.dt, day_number=created.day_number, title=""))

        trip.start_date = new_start
        trip.end_date = new_end
        trip.updated_at = dt_utc()
        session.add(trip)
    except SQLAlchemyError:
        session.rollback()
        raise
    _commit(session)

    log.info(
        "Trip %s reconciled to %s..%s: %d kept, %d deleted, %d created",
        trip.id,
        new_start,
        new_end,
        len(plan.kept),
        len(plan.deleted),
        len(plan.created),
    )
    return plan


def add_day(session: Session, trip: Trip) -> ReconciliationResult:
    """Append one day at the end of the itinerary."""
    if trip.start_date is None:
        # Undated trip: reconciliation would drop dateless days, so just append
        last = session.exec(select(func.max(TripDay.day_number)).where(TripDay.trip_id == trip.id)).one()
        day_number = (last or 0) + 1
        session.add(TripDay(trip_id=trip.id, day_number=day_number, title=""))
        _commit(session)
        return ReconciliationResult(created=[CreatedDay(dt=None, day_number=day_number)])

    old_end = trip.end_date or trip.start_date
    return reconcile(session, trip, trip.start_date, shift_days(old_end, 1))


def delete_itinerary_day(session: Session, trip: Trip, day: TripDay) -> None:
    """Remove one day and close the gap: later days move back one number and one date."""
    days = _trip_days(session, trip.id)
    if trip.start_date is not None and len(days) <= 1:
        raise ItineraryError("A dated trip must keep at least one day")

    try:
        delete_days_cascade(session, [day.id])
        for later in days:
            if later.id == day.id or later.day_number < day.day_number:
                continue
            later.day_number -= 1
            later.dt = shift_days(later.dt, -1)
            session.add(later)

        if trip.end_date is not None:
            trip.end_date = shift_days(trip.end_date, -1)
        trip.updated_at = dt_utc()
        session.add(trip)
    except SQLAlchemyError:
        session.rollback()
        raise
    _commit(session)


def delete_trip_cascade(session: Session, trip: Trip) -> None:
    day_ids = session.exec(select(TripDay.id).where(TripDay.trip_id == trip.id)).all()
    try:
        delete_days_cascade(session, list(day_ids))
        session.exec(delete(TripInvite).where(TripInvite.trip_id == trip.id))
        session.exec(delete(TripShare).where(TripShare.trip_id == trip.id))
        session.exec(delete(Trip).where(Trip.id == trip.id))
    except SQLAlchemyError:
        session.rollback()
        raise
    _commit(session)


def _count_by_day(session: Session, column, day_ids: list[int], *criteria) -> dict[int, int]:
    rows = session.exec(select(column, func.count()).where(column.in_(day_ids), *criteria).group_by(column)).all()
    return {day_id: count for day_id, count in rows}


def check_conflicts(session: Session, trip: Trip, new_start: date, new_end: date | None = None) -> ConflictReport:
    """Read-only preview of which days a range change would destroy with content on them."""
    days = _trip_days(session, trip.id)
    plan = plan_reconciliation(days, new_start, new_end)
    doomed = [day for day in days if day.id in set(plan.deleted)]
    day_ids = [day.id for day in doomed]

    notes = _count_by_day(session, DayNote.day_id, day_ids) if day_ids else {}
    checklists = _count_by_day(session, DayChecklistItem.day_id, day_ids) if day_ids else {}
    expenses = _count_by_day(session, Expense.day_id, day_ids, Expense.is_deleted.is_(False)) if day_ids else {}

    affected = []
    for day in doomed:
        entry = AffectedDay(
            day_id=day.id,
            dt=day.dt,
            day_number=day.day_number,
            has_notes=notes.get(day.id, 0) > 0,
            has_checklists=checklists.get(day.id, 0) > 0,
            has_expenses=expenses.get(day.id, 0) > 0,
            has_title=bool(day.title and day.title.strip()),
            has_location=bool(day.location and day.location.strip()),
        )
        if any([entry.has_notes, entry.has_checklists, entry.has_expenses, entry.has_title, entry.has_location]):
            affected.append(entry)

    present = {
        "notes": any(d.has_notes for d in affected),
        "checklists": any(d.has_checklists for d in affected),
        "expenses": any(d.has_expenses for d in affected),
        "itinerary details": any(d.has_title or d.has_location for d in affected),
    }
    content_types = [t for t in CONTENT_TYPES if present[t]]

    return ConflictReport(
        has_conflicts=bool(affected),
        affected_days=len(affected),
        affected_dates=affected,
        content_types=content_types,
        summary=format_content_types(content_types),
    )
