"""Role-based scoping of ledger queries.

A caller is reduced to one of three scopes and each scope maps to a single
SQL predicate, so the rules can be exercised without a request or a user row.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Union

from sqlalchemy import ColumnElement, false, func, or_, select
from sqlalchemy.orm import Session

from .models import ROLE_ADMIN, ROLE_CLIENT, ROLE_SELLER, CreditLimitRecord, LedgerRecord, User


@dataclass(frozen=True)
class AdminScope:
    pass


@dataclass(frozen=True)
class SellerScope:
    names: tuple[str, ...]


@dataclass(frozen=True)
class ClientScope:
    ids: tuple[str, ...]


AccessScope = Union[AdminScope, SellerScope, ClientScope]


def client_ids(entries: Iterable[Any] | None) -> tuple[str, ...]:
    """Associated clients may be stored as plain NITs or as ``{"nit": ...}``."""
    ids = []
    for entry in entries or []:
        value = entry.get("nit") if isinstance(entry, dict) else entry
        if value is None:
            continue
        text = str(value).strip()
        if text:
            ids.append(text)
    return tuple(ids)


def seller_names(db: Session, entries: Iterable[Any] | None) -> tuple[str, ...]:
    """Map associated seller entries to seller names.

    An entry may be a seller name or the e-mail of a seller user; e-mails are
    replaced by that user's name.
    """
    raw = [str(entry).strip() for entry in entries or [] if str(entry).strip()]
    emails = [entry.lower() for entry in raw if "@" in entry]
    by_email: dict[str, str] = {}
    if emails:
        rows = db.execute(
            select(User.email, User.name).where(User.role == ROLE_SELLER, User.email.in_(emails))
        )
        by_email = {email: name for email, name in rows if name}
    return tuple(by_email.get(entry.lower(), entry) for entry in raw)


def scope_for_user(db: Session, user: User) -> AccessScope:
    if user.role == ROLE_ADMIN:
        return AdminScope()
    if user.role == ROLE_SELLER:
        return SellerScope(seller_names(db, user.associated_sellers))
    if user.role == ROLE_CLIENT:
        return ClientScope(client_ids(user.associated_clients))
    # Unknown roles see nothing.
    return ClientScope(())


def seller_clause(names: Iterable[str]) -> ColumnElement[bool]:
    clauses = [LedgerRecord.seller_name.icontains(name, autoescape=True) for name in names if name]
    if not clauses:
        return false()
    return or_(*clauses)


def ledger_scope_clause(scope: AccessScope) -> ColumnElement[bool] | None:
    """Predicate restricting ``LedgerRecord`` rows to ``scope``; None means all rows."""
    if isinstance(scope, AdminScope):
        return None
    if isinstance(scope, SellerScope):
        return seller_clause(scope.names)
    if isinstance(scope, ClientScope):
        if not scope.ids:
            return false()
        return LedgerRecord.client_id.in_(scope.ids)
    raise TypeError(f"Unsupported scope: {scope!r}")


def credit_limit_scope_clause(scope: AccessScope) -> ColumnElement[bool] | None:
    if isinstance(scope, ClientScope):
        if not scope.ids:
            return false()
        key = func.lower(CreditLimitRecord.client_key)
        return or_(*[key.contains(nit.lower(), autoescape=True) for nit in scope.ids])
    return None


__all__ = [
    "AccessScope",
    "AdminScope",
    "ClientScope",
    "SellerScope",
    "client_ids",
    "credit_limit_scope_clause",
    "ledger_scope_clause",
    "scope_for_user",
    "seller_clause",
    "seller_names",
]
