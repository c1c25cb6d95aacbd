from typing import Annotated

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session, select

from .db.core import get_session, init_user_data
from .models.models import Category, User
from .security import decode_token
from .utils.participants import claim_account, normalize_email

SessionDep = Annotated[Session, Depends(get_session)]
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    session: SessionDep,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> User:
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = decode_token(credentials.credentials)
    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid Token")

    user = session.exec(select(User).where(User.email == normalize_email(email))).first()
    if user and not user.is_guest:
        return user

    # First authenticated request for this email: register it, or promote its guest row
    user = claim_account(session, email, payload.get("name"))
    if not session.exec(select(Category.id).where(Category.user_id == user.id)).first():
        init_user_data(session, user.id)
    return user

