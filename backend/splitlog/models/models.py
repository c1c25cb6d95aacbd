from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Discriminator, StringConstraints, condecimal, model_validator
from sqlalchemy import Index, MetaData, UniqueConstraint, event
from sqlalchemy.orm import Session
from sqlmodel import Field, Relationship, SQLModel

from ..config import settings
from ..utils.mail import InvitationMail, send_trip_invitation

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

SQLModel.metadata = MetaData(naming_convention=convention)

EmailAddress = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True, to_lower=True, min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$"
    ),
]
Amount = condecimal(gt=0, max_digits=12, decimal_places=2)


@event.listens_for(Session, "after_commit")
def deliver_after_commit(session):
    if hasattr(session, "_invitations_to_send"):
        invitations = session._invitations_to_send
        delattr(session, "_invitations_to_send")
        for invitation in invitations:
            send_trip_invitation(invitation)


@event.listens_for(Session, "after_soft_rollback")
def discard_after_rollback(session, previous_transaction):
    if previous_transaction.nested:
        return
    if hasattr(session, "_invitations_to_send"):
        delattr(session, "_invitations_to_send")


def mark_invitation_for_delivery(session: Session, invitation: InvitationMail) -> None:
    if not hasattr(session, "_invitations_to_send"):
        session._invitations_to_send = []
    session._invitations_to_send.append(invitation)


class InviteStatusEnum(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ParticipantKind(str, Enum):
    MEMBER = "member"
    GUEST = "guest"


class TripShareURL(BaseModel):
    url: str


class UserBase(SQLModel):
    email: str = Field(index=True, unique=True)
    name: str | None = None
    avatar: str | None = None


class User(UserBase, table=True):
    id: int | None = Field(default=None, primary_key=True)
    is_guest: bool = False
    email_opt_out: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class UserUpdate(BaseModel):
    name: str | None = None
    avatar: str | None = None
    email_opt_out: bool | None = None


class UserRead(UserBase):
    id: int
    is_guest: bool
    email_opt_out: bool

    @classmethod
    def serialize(cls, obj: User) -> "UserRead":
        return cls(
            id=obj.id,
            email=obj.email,
            name=obj.name,
            avatar=obj.avatar,
            is_guest=obj.is_guest,
            email_opt_out=obj.email_opt_out,
        )


class ParticipantBase(BaseModel):
    id: int
    email: str
    name: str | None = None
    avatar: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.email.split("@")[0]


class MemberParticipant(ParticipantBase):
    kind: Literal[ParticipantKind.MEMBER] = ParticipantKind.MEMBER
    is_guest: Literal[False] = False
    is_owner: bool = False


class ShadowParticipant(ParticipantBase):
    kind: Literal[ParticipantKind.GUEST] = ParticipantKind.GUEST
    is_guest: Literal[True] = True
    invite_id: int | None = None
    invite_status: InviteStatusEnum | None = None


Participant = Annotated[MemberParticipant | ShadowParticipant, Discriminator("kind")]


class CategoryBase(SQLModel):
    name: str
    color: str | None = None
    icon: str | None = None


class Category(CategoryBase, table=True):
    id: int | None = Field(default=None, primary_key=True)
    is_default: bool = False
    user_id: int = Field(foreign_key="user.id", ondelete="CASCADE", index=True)


class CategoryCreate(CategoryBase): ...


class CategoryUpdate(CategoryBase):
    name: str | None = None


class CategoryRead(CategoryBase):
    id: int
    is_default: bool

    @classmethod
    def serialize(cls, obj: Category) -> "CategoryRead":
        return cls(
            id=obj.id,
            name=obj.name,
            color=obj.color if obj.color else "#000000",
            icon=obj.icon,
            is_default=obj.is_default,
        )


class TripBase(SQLModel):
    name: str
    description: str | None = None
    destination: str | None = None
    currency: str | None = settings.DEFAULT_CURRENCY
    notes: str | None = None


class Trip(TripBase, table=True):
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", ondelete="CASCADE", index=True)
    start_date: date | None = None
    end_date: date | None = None
    archived: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    owner: User | None = Relationship()
    days: list["TripDay"] = Relationship(
        back_populates="trip",
        sa_relationship_kwargs={"order_by": lambda: [TripDay.day_number, TripDay.id]},
    )
    invites: list["TripInvite"] = Relationship(
        back_populates="trip", sa_relationship_kwargs={"order_by": lambda: TripInvite.id}
    )
    shares: list["TripShare"] = Relationship(back_populates="trip")


class TripCreate(TripBase):
    start_date: date | None = None
    end_date: date | None = None
    emails: list[EmailAddress] = []


class TripUpdate(TripBase):
    name: str | None = None
    archived: bool | None = None


class TripNotesUpdate(BaseModel):
    notes: str | None = None


class TripDatesUpdate(BaseModel):
    start_date: date
    end_date: date | None = None


class TripReadBase(TripBase):
    id: int
    owner_id: int
    start_date: date | None
    end_date: date | None
    archived: bool
    days: int

    @classmethod
    def serialize(cls, obj: Trip) -> "TripReadBase":
        return cls(
            id=obj.id,
            owner_id=obj.user_id,
            name=obj.name,
            description=obj.description,
            destination=obj.destination,
            start_date=obj.start_date,
            end_date=obj.end_date,
            archived=obj.archived,
            days=len(obj.days),
            currency=obj.currency if obj.currency else settings.DEFAULT_CURRENCY,
        )


class TripRead(TripBase):
    id: int
    owner_id: int
    start_date: date | None
    end_date: date | None
    archived: bool
    shared: bool
    days: list["TripDayRead"]
    invites: list["TripInviteRead"]

    @classmethod
    def serialize(cls, obj: Trip) -> "TripRead":
        return cls(
            id=obj.id,
            owner_id=obj.user_id,
            name=obj.name,
            description=obj.description,
            destination=obj.destination,
            start_date=obj.start_date,
            end_date=obj.end_date,
            archived=obj.archived,
            shared=bool(obj.shares),
            days=[TripDayRead.serialize(day) for day in obj.days],
            invites=[TripInviteRead.serialize(i) for i in obj.invites],
            currency=obj.currency if obj.currency else settings.DEFAULT_CURRENCY,
            notes=obj.notes,
        )


class TripInvite(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    email: str
    status: InviteStatusEnum = Field(default=InviteStatusEnum.PENDING)
    avatar: str | None = None
    invited_by: int | None = Field(default=None, foreign_key="user.id", ondelete="SET NULL")
    invited_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    trip_id: int = Field(foreign_key="trip.id", ondelete="CASCADE", index=True)
    trip: Trip | None = Relationship(back_populates="invites")

    __table_args__ = (
        UniqueConstraint("trip_id", "email", name="uq_tripinvite_trip_email"),
        Index("idx_tripinvite_email_status", "email", "status"),
    )


class TripInviteCreate(BaseModel):
    email: EmailAddress
    name: str | None = None
    avatar: str | None = None


class TripInviteRead(BaseModel):
    id: int
    email: str
    status: InviteStatusEnum
    avatar: str | None = None
    invited_at: datetime | None = None

    @classmethod
    def serialize(cls, obj: TripInvite) -> "TripInviteRead":
        return cls(id=obj.id, email=obj.email, status=obj.status, avatar=obj.avatar, invited_at=obj.invited_at)


class TripInvitationRead(TripReadBase):
    invite_id: int
    invited_at: datetime


class TripShare(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    token: str = Field(index=True, unique=True)

    trip_id: int = Field(foreign_key="trip.id", ondelete="CASCADE")
    trip: Trip | None = Relationship(back_populates="shares")


class TripDayBase(SQLModel):
    title: str = ""
    location: str | None = None


class TripDay(TripDayBase, table=True):
    id: int | None = Field(default=None, primary_key=True)
    day_number: int
    dt: date | None = None

    trip_id: int = Field(foreign_key="trip.id", ondelete="CASCADE", index=True)
    trip: Trip | None = Relationship(back_populates="days")

    notes: list["DayNote"] = Relationship(
        back_populates="day", sa_relationship_kwargs={"order_by": lambda: DayNote.id}
    )
    checklist_items: list["DayChecklistItem"] = Relationship(
        back_populates="day", sa_relationship_kwargs={"order_by": lambda: DayChecklistItem.id}
    )
    expenses: list["Expense"] = Relationship(
        back_populates="day", sa_relationship_kwargs={"order_by": lambda: [Expense.order, Expense.id]}
    )

    __table_args__ = (Index("idx_tripday_trip_number", "trip_id", "day_number"),)


class TripDayUpdate(TripDayBase):
    title: str | None = None


class TripDayRead(TripDayBase):
    id: int
    day_number: int
    dt: date | None
    notes: list["DayNoteRead"]
    checklist: list["DayChecklistItemRead"]
    expenses: list["ExpenseRead"]

    @classmethod
    def serialize(cls, obj: TripDay) -> "TripDayRead":
        return cls(
            id=obj.id,
            day_number=obj.day_number,
            dt=obj.dt,
            title=obj.title,
            location=obj.location,
            notes=[DayNoteRead.serialize(n) for n in obj.notes],
            checklist=[DayChecklistItemRead.serialize(c) for c in obj.checklist_items],
            expenses=[ExpenseRead.serialize(e) for e in obj.expenses if not e.is_deleted],
        )


class DayNoteBase(SQLModel):
    content: str


class DayNote(DayNoteBase, table=True):
    id: int | None = Field(default=None, primary_key=True)
    created_by: int | None = Field(default=None, foreign_key="user.id", ondelete="SET NULL")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    day_id: int = Field(foreign_key="tripday.id", ondelete="CASCADE", index=True)
    day: TripDay | None = Relationship(back_populates="notes")


class DayNoteRead(DayNoteBase):
    id: int
    created_by: int | None
    created_at: datetime

    @classmethod
    def serialize(cls, obj: DayNote) -> "DayNoteRead":
        return cls(id=obj.id, content=obj.content, created_by=obj.created_by, created_at=obj.created_at)


class DayChecklistItemBase(SQLModel):
    text: str | None = None
    checked: bool | None = None


class DayChecklistItem(DayChecklistItemBase, table=True):
    id: int | None = Field(default=None, primary_key=True)

    day_id: int = Field(foreign_key="tripday.id", ondelete="CASCADE", index=True)
    day: TripDay | None = Relationship(back_populates="checklist_items")


class DayChecklistItemCreate(DayChecklistItemBase):
    text: str
    checked: bool = False


class DayChecklistItemUpdate(DayChecklistItemBase): ...


class DayChecklistItemRead(DayChecklistItemBase):
    id: int

    @classmethod
    def serialize(cls, obj: DayChecklistItem) -> "DayChecklistItemRead":
        return cls(id=obj.id, text=obj.text, checked=obj.checked)


class ExpenseBase(SQLModel):
    description: str | None = None
    category_id: int | None = Field(default=None, foreign_key="category.id", ondelete="SET NULL")


class Expense(ExpenseBase, table=True):
    id: int | None = Field(default=None, primary_key=True)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    dt: datetime = Field(default_factory=lambda: datetime.now(UTC))
    is_shared: bool = True
    order: int = 0
    is_deleted: bool = False
    deleted_at: datetime | None = None
    created_by: int | None = Field(default=None, foreign_key="user.id", ondelete="SET NULL")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    trip_id: int = Field(foreign_key="trip.id", ondelete="CASCADE", index=True)
    day_id: int = Field(foreign_key="tripday.id", ondelete="CASCADE", index=True)
    day: TripDay | None = Relationship(back_populates="expenses")

    payers: list["ExpensePayer"] = Relationship(
        back_populates="expense", sa_relationship_kwargs={"order_by": lambda: ExpensePayer.id}
    )
    splits: list["ExpenseSplit"] = Relationship(
        back_populates="expense", sa_relationship_kwargs={"order_by": lambda: ExpenseSplit.id}
    )

    __table_args__ = (Index("idx_expense_trip_deleted", "trip_id", "is_deleted"),)


class ExpensePayer(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    participant_id: int = Field(foreign_key="user.id", ondelete="CASCADE", index=True)

    expense_id: int = Field(foreign_key="expense.id", ondelete="CASCADE", index=True)
    expense: Expense | None = Relationship(back_populates="payers")


class ExpenseSplit(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    participant_id: int = Field(foreign_key="user.id", ondelete="CASCADE", index=True)

    expense_id: int = Field(foreign_key="expense.id", ondelete="CASCADE", index=True)
    expense: Expense | None = Relationship(back_populates="splits")


class AllocationIn(BaseModel):
    participant_id: int | None = None
    email: EmailAddress | None = None
    amount: Amount

    @model_validator(mode="after")
    def participant_or_email(self) -> "AllocationIn":
        if self.participant_id is None and self.email is None:
            raise ValueError("participant_id or email is required")
        return self


class Allocation(BaseModel):
    participant_id: int
    amount: Decimal


class ExpenseCreate(ExpenseBase):
    amount: Amount
    dt: datetime | None = None
    is_shared: bool = True
    payers: list[AllocationIn] | None = None
    splits: list[AllocationIn] | None = None


class ExpenseUpdate(ExpenseBase):
    amount: Amount | None = None
    dt: datetime | None = None
    day_id: int | None = None
    is_shared: bool | None = None
    payers: list[AllocationIn] | None = None
    splits: list[AllocationIn] | None = None


class ExpenseOrderUpdate(BaseModel):
    expense_ids: list[int]


class ExpenseRead(ExpenseBase):
    id: int
    trip_id: int
    day_id: int
    amount: Decimal
    dt: datetime
    is_shared: bool
    order: int
    is_deleted: bool
    deleted_at: datetime | None
    created_by: int | None
    payers: list[Allocation]
    splits: list[Allocation]

    @classmethod
    def serialize(cls, obj: Expense) -> "ExpenseRead":
        return cls(
            id=obj.id,
            trip_id=obj.trip_id,
            day_id=obj.day_id,
            amount=obj.amount,
            dt=obj.dt,
            description=obj.description,
            category_id=obj.category_id,
            is_shared=obj.is_shared,
            order=obj.order,
            is_deleted=obj.is_deleted,
            deleted_at=obj.deleted_at,
            created_by=obj.created_by,
            payers=[Allocation(participant_id=p.participant_id, amount=p.amount) for p in obj.payers],
            splits=[Allocation(participant_id=s.participant_id, amount=s.amount) for s in obj.splits],
        )


class ParticipantBalance(BaseModel):
    paid: Decimal = Decimal("0.00")
    owed: Decimal = Decimal("0.00")

    @property
    def balance(self) -> Decimal:
        return self.paid - self.owed


class ParticipantBalanceRead(BaseModel):
    participant: Participant
    paid: Decimal
    owed: Decimal
    balance: Decimal


class Settlement(BaseModel):
    from_participant_id: int
    to_participant_id: int
    amount: Decimal


class TripBalanceRead(BaseModel):
    currency: str
    total: Decimal
    balances: list[ParticipantBalanceRead]
    settlements: list[Settlement]


class KeptDay(BaseModel):
    day_id: int
    day_number: int


class CreatedDay(BaseModel):
    dt: date | None
    day_number: int


class ReconciliationResult(BaseModel):
    kept: list[KeptDay] = []
    deleted: list[int] = []
    created: list[CreatedDay] = []


class AffectedDay(BaseModel):
    day_id: int
    dt: date | None
    day_number: int
    has_notes: bool
    has_checklists: bool
    has_expenses: bool
    has_title: bool
    has_location: bool


class ConflictReport(BaseModel):
    has_conflicts: bool
    affected_days: int
    affected_dates: list[AffectedDay]
    content_types: list[str]
    summary: str
