from typing import Annotated

from fastapi import APIRouter, Depends
from sqlmodel import select

from ..deps import SessionDep, get_current_user
from ..models.models import User, UserRead, UserUpdate
from ..security import email_from_unsubscribe_token
from ..utils.participants import normalize_email

router = APIRouter(prefix="/api", tags=["users"])


@router.get("/users/me", response_model=UserRead)
def read_me(current_user: Annotated[User, Depends(get_current_user)]) -> UserRead:
    return UserRead.serialize(current_user)


@router.put("/users/me", response_model=UserRead)
def update_me(
    data: UserUpdate, session: SessionDep, current_user: Annotated[User, Depends(get_current_user)]
) -> UserRead:
    user_data = data.model_dump(exclude_unset=True)
    for key, value in user_data.items():
        if key == "email_opt_out" and value is None:
            continue
        setattr(current_user, key, value)

    session.add(current_user)
    session.commit()
    session.refresh(current_user)
    return UserRead.serialize(current_user)


@router.get("/unsubscribe")
def unsubscribe(token: str, session: SessionDep):
    email = normalize_email(email_from_unsubscribe_token(token))
    user = session.exec(select(User).where(User.email == email)).first()
    # Tokens are only mailed to existing participants; nothing to record otherwise
    if user and not user.email_opt_out:
        user.email_opt_out = True
        session.add(user)
        session.commit()
    return {"email": email, "unsubscribed": True}
