from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from .access import AccessScope, scope_for_user
from .auth import ACCESS_COOKIE_NAME, decode_token
from .db import get_db
from .models import User


def get_access_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip()

    return request.cookies.get(ACCESS_COOKIE_NAME)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(User.email == email.strip().lower()))


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    token = get_access_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing access token")

    subject = decode_token(token, expected_type="access")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")

    user = get_user_by_email(db, subject.email)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only an administrator can perform this action",
        )
    return user


def get_scope(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> AccessScope:
    return scope_for_user(db, user)
