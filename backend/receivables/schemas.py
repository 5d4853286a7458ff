from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, Field

from .access import client_ids
from .models import ROLE_SELLER, User


class UserOut(BaseModel):
    id: int
    email: str
    name: str | None = None
    role: str
    is_admin: bool = False
    associated_sellers: list[str] = []
    associated_clients: list[str] = []


class AuthResponse(BaseModel):
    authenticated: bool
    user: UserOut


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class UserCreate(BaseModel):
    email: str = Field(validation_alias=AliasChoices("email", "correo"))
    password: str
    name: str = Field(validation_alias=AliasChoices("name", "nombre"))
    role: str = Field(default=ROLE_SELLER, validation_alias=AliasChoices("role", "rol"))
    associated_sellers: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("associated_sellers", "vendedores_asociados"),
    )
    associated_clients: list[str | dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("associated_clients", "clientes_asociados"),
    )


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, validation_alias=AliasChoices("name", "nombre"))
    role: str | None = Field(default=None, validation_alias=AliasChoices("role", "rol"))
    password: str | None = None
    associated_sellers: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("associated_sellers", "vendedores_asociados"),
    )
    associated_clients: list[str | dict[str, Any]] | None = Field(
        default=None,
        validation_alias=AliasChoices("associated_clients", "clientes_asociados"),
    )


class ExportRequest(BaseModel):
    vendedoresSeleccionados: list[str] = []
    busqueda: str | None = None
    mostrarNotasCredito: bool = False
    columnaSeleccionada: str | None = None


class ConfirmationRequest(BaseModel):
    transaction_id: str | None = None
    payment_option: str | None = None
    payment_motive: str | None = None


class SignatureRequest(BaseModel):
    reference: str | None = None
    amountInCents: int | None = None
    currency: str | None = None
    redirectUrl: str | None = None


class SignatureResponse(BaseModel):
    signature: str
    publicKey: str


def user_to_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        is_admin=user.is_admin,
        associated_sellers=[str(entry) for entry in user.associated_sellers or []],
        associated_clients=list(client_ids(user.associated_clients)),
    )
