from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..access import client_ids
from ..db import get_db
from ..deps import get_current_user, get_user_by_email, require_admin
from ..models import ROLES, User
from ..schemas import UserCreate, UserOut, UserUpdate, user_to_out
from ..security import hash_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/usuarios", tags=["usuarios"])


def _normalize_sellers(entries: list[str]) -> list[str]:
    return [entry.strip().lower() for entry in entries if entry and entry.strip()]


def _check_role(role: str) -> str:
    if role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role '{role}'; expected one of {', '.join(ROLES)}",
        )
    return role


def _get_or_404(db: Session, email: str) -> User:
    user = get_user_by_email(db, email)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("/perfil")
def profile(user: User = Depends(get_current_user)) -> dict[str, Any]:
    return {
        "mensaje": f"Bienvenido {user.name or user.email}",
        "rol": user.role,
        "vendedores_asociados": user.associated_sellers or [],
        "clientes_asociados": list(client_ids(user.associated_clients)),
    }


@router.get("/todos", response_model=list[UserOut])
def list_users(_: User = Depends(require_admin), db: Session = Depends(get_db)) -> list[UserOut]:
    users = db.scalars(select(User).order_by(User.email))
    return [user_to_out(user) for user in users]


@router.post("/crear", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> UserOut:
    email = payload.email.strip().lower()
    if not email or not payload.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email and password are required")
    if get_user_by_email(db, email) is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A user with that email already exists")

    user = User(
        email=email,
        name=payload.name.strip().upper(),
        password_hash=hash_password(payload.password),
        role=_check_role(payload.role),
        associated_sellers=_normalize_sellers(payload.associated_sellers),
        associated_clients=list(client_ids(payload.associated_clients)),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User %s created by %s with role %s", user.email, admin.email, user.role)
    return user_to_out(user)


@router.put("/actualizar/{correo}", response_model=UserOut)
def update_user(
    correo: str,
    payload: UserUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> UserOut:
    user = _get_or_404(db, correo)
    if payload.name is not None:
        user.name = payload.name.strip().upper()
    if payload.role is not None:
        user.role = _check_role(payload.role)
    if payload.password:
        user.password_hash = hash_password(payload.password)
    if payload.associated_sellers is not None:
        user.associated_sellers = _normalize_sellers(payload.associated_sellers)
    if payload.associated_clients is not None:
        user.associated_clients = list(client_ids(payload.associated_clients))
    db.commit()
    db.refresh(user)
    logger.info("User %s updated by %s", user.email, admin.email)
    return user_to_out(user)


@router.delete("/eliminar/{correo}")
def delete_user(
    correo: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict[str, str]:
    user = _get_or_404(db, correo)
    db.delete(user)
    db.commit()
    logger.info("User %s deleted by %s", correo.lower(), admin.email)
    return {"mensaje": "Usuario eliminado"}
