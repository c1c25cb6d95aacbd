from datetime import timedelta

import jwt
from fastapi import HTTPException

from .config import settings
from .utils.date import dt_utc, dt_utc_offset

UNSUBSCRIBE_PURPOSE = "unsubscribe"


def create_access_token(data: dict, expires_minutes: int | None = None) -> str:
    to_encode = data.copy()
    to_encode["exp"] = dt_utc_offset(expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid Token")


def create_unsubscribe_token(email: str) -> str:
    data = {
        "sub": email,
        "purpose": UNSUBSCRIBE_PURPOSE,
        "exp": dt_utc() + timedelta(days=settings.UNSUBSCRIBE_TOKEN_EXPIRE_DAYS),
    }
    return jwt.encode(data, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def email_from_unsubscribe_token(token: str) -> str:
    payload = decode_token(token)
    if payload.get("purpose") != UNSUBSCRIBE_PURPOSE or not payload.get("sub"):
        raise HTTPException(status_code=400, detail="Bad request")
    return payload["sub"]
