import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..config import settings
from ..models.models import (InviteStatusEnum, MemberParticipant, Participant,
                             ShadowParticipant, Trip, TripInvite, User,
                             mark_invitation_for_delivery)
from ..security import create_unsubscribe_token
from .mail import InvitationMail

log = logging.getLogger(__name__)

ROSTER_STATUSES = (InviteStatusEnum.PENDING, InviteStatusEnum.ACCEPTED)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _find_user(session: Session, email: str) -> User | None:
    return session.exec(select(User).where(User.email == email)).first()


def resolve_or_create_participant(
    session: Session, email: str, name: str | None = None, avatar: str | None = None
) -> User:
    """Map an email to a participant identity, creating a guest user when needed.

    An existing user keeps its own name and avatar; the hints only seed a new
    guest. The insert runs in a SAVEPOINT so a concurrent resolver that won the
    race on the unique email is picked up instead of failing the caller.
    """
    email = normalize_email(email)
    user = _find_user(session, email)
    if user:
        return user

    try:
        with session.begin_nested():
            user = User(email=email, name=name, avatar=avatar, is_guest=True)
            session.add(user)
    except IntegrityError:
        user = _find_user(session, email)
        if not user:
            raise
        return user

    session.refresh(user)
    log.info("Created guest participant %s", email)
    return user


def claim_account(session: Session, email: str, name: str | None = None) -> User:
    """Called once the auth collaborator vouched for `email`.

    A guest row becomes a member and its pending invites are accepted; an
    unknown email gets a fresh member row.
    """
    email = normalize_email(email)
    user = _find_user(session, email)
    if user and not user.is_guest:
        return user

    if not user:
        user = User(email=email, name=name, is_guest=False)
        log.info("Registered member %s", email)
    else:
        user.is_guest = False
        if name and not user.name:
            user.name = name
        log.info("Promoted guest %s to member", email)
    session.add(user)

    pending = session.exec(
        select(TripInvite).where(TripInvite.email == email, TripInvite.status == InviteStatusEnum.PENDING)
    ).all()
    for invite in pending:
        invite.status = InviteStatusEnum.ACCEPTED
        session.add(invite)

    session.commit()
    session.refresh(user)
    return user


def participant_from_user(user: User, invite: TripInvite | None = None, is_owner: bool = False) -> Participant:
    if not user.is_guest:
        return MemberParticipant(
            id=user.id, email=user.email, name=user.name, avatar=user.avatar, is_owner=is_owner
        )
    return ShadowParticipant(
        id=user.id,
        email=user.email,
        name=user.name,
        avatar=(invite.avatar if invite and invite.avatar else user.avatar),
        invite_id=invite.id if invite else None,
        invite_status=invite.status if invite else None,
    )


def get_trip_roster(session: Session, trip: Trip) -> list[Participant]:
    """Owner first, then every pending or accepted invitee in invite order."""
    owner = session.get(User, trip.user_id)
    roster = [participant_from_user(owner, is_owner=True)]
    seen = {owner.email}

    rows = session.exec(
        select(TripInvite, User)
        .join(User, User.email == TripInvite.email)
        .where(TripInvite.trip_id == trip.id, TripInvite.status.in_(ROSTER_STATUSES))
        .order_by(TripInvite.id)
    ).all()
    for invite, user in rows:
        if user.email in seen:
            continue
        seen.add(user.email)
        roster.append(participant_from_user(user, invite))
    return roster


def ensure_trip_participant(
    session: Session,
    trip: Trip,
    email: str,
    inviter: User,
    name: str | None = None,
    avatar: str | None = None,
) -> tuple[User, TripInvite | None]:
    """Resolve `email` and make sure it has a roster invite on `trip`.

    Returns the participant and the invite that was created, or None when the
    email already belonged to the trip. A fresh invite queues an invitation
    mail for delivery after commit.
    """
    user = resolve_or_create_participant(session, email, name, avatar)
    if user.id == trip.user_id:
        return user, None

    invite = session.exec(
        select(TripInvite).where(TripInvite.trip_id == trip.id, TripInvite.email == user.email)
    ).first()
    if invite:
        if invite.status == InviteStatusEnum.REJECTED:
            invite.status = InviteStatusEnum.PENDING
            session.add(invite)
            return user, invite
        return user, None

    invite = TripInvite(
        trip_id=trip.id,
        email=user.email,
        avatar=avatar,
        invited_by=inviter.id,
    )
    session.add(invite)
    session.flush()

    if not user.email_opt_out:
        mark_invitation_for_delivery(
            session,
            InvitationMail(
                email=user.email,
                trip_name=trip.name,
                inviter_name=inviter.name or inviter.email,
                join_link=f"{settings.APP_URL}/splitlog/{trip.id}",
                unsubscribe_link=f"{settings.APP_URL}/api/unsubscribe?token={create_unsubscribe_token(user.email)}",
            ),
        )
    return user, invite
