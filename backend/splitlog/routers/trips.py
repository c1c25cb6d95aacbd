from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import selectinload
from sqlmodel import select

from ..deps import SessionDep, get_current_user
from ..models.models import (ConflictReport, DayChecklistItem,
                             DayChecklistItemCreate, DayChecklistItemRead,
                             DayChecklistItemUpdate, DayNote, DayNoteBase,
                             DayNoteRead, Expense, InviteStatusEnum,
                             Participant, ReconciliationResult, Trip,
                             TripCreate, TripDatesUpdate, TripDay,
                             TripDayRead, TripDayUpdate, TripInvitationRead,
                             TripInvite, TripInviteCreate, TripNotesUpdate,
                             TripRead, TripReadBase, TripShare, TripShareURL,
                             TripUpdate, User)
from ..utils.date import dt_utc
from ..utils.itinerary import (ItineraryError, add_day, check_conflicts,
                               delete_itinerary_day, delete_trip_cascade,
                               reconcile)
from ..utils.participants import (ROSTER_STATUSES, ensure_trip_participant,
                                  get_trip_roster)
from ..utils.utils import generate_urlsafe

router = APIRouter(prefix="/api/trips", tags=["trips"])


def _trip_from_token_or_404(session, token: str) -> TripShare:
    share = session.exec(select(TripShare).where(TripShare.token == token)).first()
    if not share:
        raise HTTPException(status_code=404, detail="Not found")
    return share


def _visible_to(user: User):
    # Owner, or invitee whose invite is still pending or accepted
    return (Trip.user_id == user.id) | (
        (TripInvite.email == user.email) & (TripInvite.status.in_(ROSTER_STATUSES))
    )


def _get_verified_trip(session, trip_id: int, user: User) -> Trip:
    trip = session.exec(
        select(Trip).outerjoin(TripInvite).where(Trip.id == trip_id, _visible_to(user))
    ).first()
    if not trip:
        raise HTTPException(status_code=404, detail="Not found")
    return trip


def _get_owned_trip(session, trip_id: int, user: User) -> Trip:
    trip = _get_verified_trip(session, trip_id, user)
    if trip.user_id != user.id:
        raise HTTPException(status_code=403, detail="Only the trip creator can do this")
    return trip


def _get_writable_trip(session, trip_id: int, user: User, owner_only: bool = False) -> Trip:
    trip = _get_owned_trip(session, trip_id, user) if owner_only else _get_verified_trip(session, trip_id, user)
    if trip.archived:
        raise HTTPException(status_code=400, detail="Bad request")
    return trip


def _get_trip_day(session, trip_id: int, day_id: int) -> TripDay:
    db_day = session.get(TripDay, day_id)
    if not db_day or (db_day.trip_id != trip_id):
        raise HTTPException(status_code=400, detail="Bad request")
    return db_day


def _load_trip(session, trip_id: int) -> Trip:
    return session.exec(
        select(Trip)
        .options(
            selectinload(Trip.days).selectinload(TripDay.notes),
            selectinload(Trip.days).selectinload(TripDay.checklist_items),
            selectinload(Trip.days)
            .selectinload(TripDay.expenses)
            .options(selectinload(Expense.payers), selectinload(Expense.splits)),
            selectinload(Trip.invites),
            selectinload(Trip.shares),
        )
        .where(Trip.id == trip_id)
    ).one()


@router.get("", response_model=list[TripReadBase])
def read_trips(
    session: SessionDep, current_user: Annotated[User, Depends(get_current_user)]
) -> list[TripReadBase]:
    trips = session.exec(
        select(Trip)
        .outerjoin(TripInvite)
        .where(_visible_to(current_user))
        .order_by(Trip.start_date.desc().nulls_last(), Trip.id.desc())
        .distinct()
    )
    return [TripReadBase.serialize(trip) for trip in trips]


@router.get("/invitations", response_model=list[TripInvitationRead])
def read_pending_invitations(
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
) -> list[TripInvitationRead]:
    pending_invitations = session.exec(
        select(TripInvite, Trip)
        .join(Trip, Trip.id == TripInvite.trip_id)
        .where(
            TripInvite.email == current_user.email,
            TripInvite.status == InviteStatusEnum.PENDING,
        )
    ).all()

    invitations: list[TripInvitationRead] = []
    for invite, trip in pending_invitations:
        base = TripReadBase.serialize(trip)
        invitations.append(
            TripInvitationRead(**base.model_dump(), invite_id=invite.id, invited_at=invite.invited_at)
        )
    return invitations


@router.get("/shared/{token}", response_model=TripRead)
def read_shared_trip(
    session: SessionDep,
    token: str,
) -> TripRead:
    return TripRead.serialize(_load_trip(session, _trip_from_token_or_404(session, token).trip_id))


@router.get("/{trip_id}", response_model=TripRead)
def read_trip(
    session: SessionDep, trip_id: int, current_user: Annotated[User, Depends(get_current_user)]
) -> TripRead:
    _get_verified_trip(session, trip_id, current_user)
    return TripRead.serialize(_load_trip(session, trip_id))


@router.post("", response_model=TripReadBase)
def create_trip(
    trip: TripCreate, session: SessionDep, current_user: Annotated[User, Depends(get_current_user)]
) -> TripReadBase:
    if trip.end_date and not trip.start_date:
        raise HTTPException(status_code=400, detail="End date requires a start date")
    if trip.start_date and trip.end_date and trip.end_date < trip.start_date:
        raise HTTPException(status_code=400, detail="End date must not be before start date")

    new_trip = Trip(
        name=trip.name,
        description=trip.description,
        destination=trip.destination,
        currency=trip.currency,
        notes=trip.notes,
        user_id=current_user.id,
    )
    session.add(new_trip)
    session.flush()

    for email in trip.emails:
        ensure_trip_participant(session, new_trip, email, current_user)

    if trip.start_date:
        reconcile(session, new_trip, trip.start_date, trip.end_date)
    else:
        session.commit()

    session.refresh(new_trip)
    return TripReadBase.serialize(new_trip)


@router.put("/{trip_id}", response_model=TripRead)
def update_trip(
    session: SessionDep,
    trip_id: int,
    trip: TripUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
) -> TripRead:
    db_trip = _get_owned_trip(session, trip_id, current_user)

    if db_trip.archived and (trip.archived is not False):
        raise HTTPException(status_code=400, detail="Bad request")

    trip_data = trip.model_dump(exclude_unset=True)
    for key, value in trip_data.items():
        setattr(db_trip, key, value)
    db_trip.updated_at = dt_utc()

    session.add(db_trip)
    session.commit()
    return TripRead.serialize(_load_trip(session, trip_id))


@router.put("/{trip_id}/notes", response_model=TripReadBase)
def update_trip_notes(
    session: SessionDep,
    trip_id: int,
    data: TripNotesUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
) -> TripReadBase:
    db_trip = _get_writable_trip(session, trip_id, current_user)
    db_trip.notes = data.notes
    db_trip.updated_at = dt_utc()
    session.add(db_trip)
    session.commit()
    session.refresh(db_trip)
    return TripReadBase.serialize(db_trip)


@router.delete("/{trip_id}")
def delete_trip(
    session: SessionDep, trip_id: int, current_user: Annotated[User, Depends(get_current_user)]
):
    db_trip = _get_owned_trip(session, trip_id, current_user)

    if db_trip.archived:
        raise HTTPException(status_code=400, detail="Bad request")

    delete_trip_cascade(session, db_trip)
    return {}


@router.get("/{trip_id}/dates/conflicts", response_model=ConflictReport)
def read_date_conflicts(
    session: SessionDep,
    trip_id: int,
    start: date,
    current_user: Annotated[User, Depends(get_current_user)],
    end: date | None = None,
) -> ConflictReport:
    db_trip = _get_verified_trip(session, trip_id, current_user)
    try:
        return check_conflicts(session, db_trip, start, end)
    except ItineraryError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.put("/{trip_id}/dates", response_model=ReconciliationResult)
def update_trip_dates(
    session: SessionDep,
    trip_id: int,
    data: TripDatesUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
) -> ReconciliationResult:
    db_trip = _get_writable_trip(session, trip_id, current_user, owner_only=True)
    try:
        return reconcile(session, db_trip, data.start_date, data.end_date)
    except ItineraryError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/{trip_id}/days", response_model=ReconciliationResult)
def create_tripday(
    trip_id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
) -> ReconciliationResult:
    db_trip = _get_writable_trip(session, trip_id, current_user, owner_only=True)
    return add_day(session, db_trip)


@router.put("/{trip_id}/days/{day_id}", response_model=TripDayRead)
def update_tripday(
    td: TripDayUpdate,
    trip_id: int,
    day_id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
) -> TripDayRead:
    _get_writable_trip(session, trip_id, current_user)
    db_day = _get_trip_day(session, trip_id, day_id)

    td_data = td.model_dump(exclude_unset=True)
    if "title" in td_data and td_data["title"] is None:
        td_data["title"] = ""
    for key, value in td_data.items():
        setattr(db_day, key, value)

    session.add(db_day)
    session.commit()
    session.refresh(db_day)
    return TripDayRead.serialize(db_day)


@router.delete("/{trip_id}/days/{day_id}")
def delete_tripday(
    trip_id: int,
    day_id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
):
    db_trip = _get_writable_trip(session, trip_id, current_user, owner_only=True)
    db_day = _get_trip_day(session, trip_id, day_id)

    try:
        delete_itinerary_day(session, db_trip, db_day)
    except ItineraryError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {}


@router.post("/{trip_id}/days/{day_id}/notes", response_model=DayNoteRead)
def create_day_note(
    data: DayNoteBase,
    trip_id: int,
    day_id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
) -> DayNoteRead:
    _get_writable_trip(session, trip_id, current_user)
    _get_trip_day(session, trip_id, day_id)

    note = DayNote(content=data.content, day_id=day_id, created_by=current_user.id)
    session.add(note)
    session.commit()
    session.refresh(note)
    return DayNoteRead.serialize(note)


@router.put("/{trip_id}/days/{day_id}/notes/{note_id}", response_model=DayNoteRead)
def update_day_note(
    data: DayNoteBase,
    trip_id: int,
    day_id: int,
    note_id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
) -> DayNoteRead:
    _get_writable_trip(session, trip_id, current_user)
    _get_trip_day(session, trip_id, day_id)

    note = session.exec(select(DayNote).where(DayNote.id == note_id, DayNote.day_id == day_id)).one_or_none()
    if not note:
        raise HTTPException(status_code=404, detail="Not found")

    note.content = data.content
    session.add(note)
    session.commit()
    session.refresh(note)
    return DayNoteRead.serialize(note)


@router.delete("/{trip_id}/days/{day_id}/notes/{note_id}")
def delete_day_note(
    trip_id: int,
    day_id: int,
    note_id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
):
    _get_writable_trip(session, trip_id, current_user)
    _get_trip_day(session, trip_id, day_id)

    note = session.exec(select(DayNote).where(DayNote.id == note_id, DayNote.day_id == day_id)).one_or_none()
    if not note:
        raise HTTPException(status_code=404, detail="Not found")

    session.delete(note)
    session.commit()
    return {}


@router.post("/{trip_id}/days/{day_id}/checklist", response_model=DayChecklistItemRead)
def create_checklist_item(
    data: DayChecklistItemCreate,
    trip_id: int,
    day_id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
) -> DayChecklistItemRead:
    _get_writable_trip(session, trip_id, current_user)
    _get_trip_day(session, trip_id, day_id)

    item = DayChecklistItem(**data.model_dump(), day_id=day_id)
    session.add(item)
    session.commit()
    session.refresh(item)
    return DayChecklistItemRead.serialize(item)


@router.put("/{trip_id}/days/{day_id}/checklist/{id}", response_model=DayChecklistItemRead)
def update_checklist_item(
    item: DayChecklistItemUpdate,
    trip_id: int,
    day_id: int,
    id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
) -> DayChecklistItemRead:
    _get_writable_trip(session, trip_id, current_user)
    _get_trip_day(session, trip_id, day_id)

    db_item = session.exec(
        select(DayChecklistItem).where(DayChecklistItem.id == id, DayChecklistItem.day_id == day_id)
    ).one_or_none()
    if not db_item:
        raise HTTPException(status_code=404, detail="Not found")

    item_data = item.model_dump(exclude_unset=True)
    for key, value in item_data.items():
        setattr(db_item, key, value)

    session.add(db_item)
    session.commit()
    session.refresh(db_item)
    return DayChecklistItemRead.serialize(db_item)


@router.delete("/{trip_id}/days/{day_id}/checklist/{id}")
def delete_checklist_item(
    trip_id: int,
    day_id: int,
    id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
):
    _get_writable_trip(session, trip_id, current_user)
    _get_trip_day(session, trip_id, day_id)

    item = session.exec(
        select(DayChecklistItem).where(DayChecklistItem.id == id, DayChecklistItem.day_id == day_id)
    ).one_or_none()
    if not item:
        raise HTTPException(status_code=404, detail="Not found")

    session.delete(item)
    session.commit()
    return {}


@router.get("/{trip_id}/share", response_model=TripShareURL)
def get_shared_trip_url(
    session: SessionDep,
    trip_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
) -> TripShareURL:
    _get_verified_trip(session, trip_id, current_user)

    share = session.exec(select(TripShare).where(TripShare.trip_id == trip_id)).first()
    if not share:
        raise HTTPException(status_code=404, detail="Not found")

    return {"url": f"/s/t/{share.token}"}


@router.post("/{trip_id}/share", response_model=TripShareURL)
def create_shared_trip(
    session: SessionDep,
    trip_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
) -> TripShareURL:
    _get_owned_trip(session, trip_id, current_user)

    shared = session.exec(select(TripShare).where(TripShare.trip_id == trip_id)).first()
    if shared:
        raise HTTPException(status_code=409, detail="The resource already exists")

    token = generate_urlsafe()
    trip_share = TripShare(token=token, trip_id=trip_id)
    session.add(trip_share)
    session.commit()
    return {"url": f"/s/t/{token}"}


@router.delete("/{trip_id}/share")
def delete_shared_trip(
    session: SessionDep,
    trip_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
):
    _get_owned_trip(session, trip_id, current_user)

    db_share = session.exec(select(TripShare).where(TripShare.trip_id == trip_id)).first()
    if not db_share:
        raise HTTPException(status_code=404, detail="Not found")

    session.delete(db_share)
    session.commit()
    return {}


@router.get("/{trip_id}/members", response_model=list[Participant])
def read_trip_members(
    session: SessionDep, trip_id: int, current_user: Annotated[User, Depends(get_current_user)]
) -> list[Participant]:
    db_trip = _get_verified_trip(session, trip_id, current_user)
    return get_trip_roster(session, db_trip)


@router.post("/{trip_id}/members", response_model=Participant)
def invite_trip_member(
    session: SessionDep,
    trip_id: int,
    data: TripInviteCreate,
    current_user: Annotated[User, Depends(get_current_user)],
) -> Participant:
    db_trip = _get_writable_trip(session, trip_id, current_user)

    user, invite = ensure_trip_participant(session, db_trip, data.email, current_user, data.name, data.avatar)
    if not invite:
        raise HTTPException(status_code=409, detail="The resource already exists")

    session.commit()
    return next(p for p in get_trip_roster(session, db_trip) if p.id == user.id)


@router.delete("/{trip_id}/members/{invite_id}")
def delete_trip_member(
    session: SessionDep,
    trip_id: int,
    invite_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
):
    db_trip = _get_writable_trip(session, trip_id, current_user)

    invite = session.exec(
        select(TripInvite).where(TripInvite.id == invite_id, TripInvite.trip_id == trip_id)
    ).one_or_none()
    if not invite:
        raise HTTPException(status_code=404, detail="Not found")

    if current_user.id != db_trip.user_id and current_user.email != invite.email:
        raise HTTPException(status_code=403, detail="Forbidden")

    # Allocations stay on the ledger; the participant simply leaves the roster
    session.delete(invite)
    session.commit()
    return {}


def _own_invite(session, trip_id: int, user: User) -> TripInvite:
    invite = session.exec(
        select(TripInvite).where(TripInvite.trip_id == trip_id, TripInvite.email == user.email)
    ).one_or_none()
    if not invite:
        raise HTTPException(status_code=404, detail="Not found")
    if invite.status != InviteStatusEnum.PENDING:
        raise HTTPException(status_code=409, detail="Invitation already answered")
    return invite


@router.post("/{trip_id}/members/accept")
def accept_invite(
    session: SessionDep,
    trip_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
):
    invite = _own_invite(session, trip_id, current_user)
    invite.status = InviteStatusEnum.ACCEPTED
    session.add(invite)
    session.commit()
    return {}


@router.post("/{trip_id}/members/decline")
def decline_invite(
    session: SessionDep,
    trip_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
):
    invite = _own_invite(session, trip_id, current_user)
    invite.status = InviteStatusEnum.REJECTED
    session.add(invite)
    session.commit()
    return {}
