from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base

ROLE_ADMIN = "admin"
ROLE_SELLER = "vendedor"
ROLE_CLIENT = "cliente"
ROLES = (ROLE_ADMIN, ROLE_SELLER, ROLE_CLIENT)

CONFIRMED_VIA_WEBHOOK = "webhook"
CONFIRMED_VIA_REDIRECT = "redirect"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=ROLE_SELLER, nullable=False)
    # Seller names (or seller e-mails) a "vendedor" may see.
    associated_sellers: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    # Client tax ids a "cliente" may see.
    associated_clients: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class LedgerRecord(Base):
    """One row of the uploaded accounts-receivable knowledge base."""

    __tablename__ = "ledger_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    client_id: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    seller_name: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    zone_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cost_center: Mapped[str | None] = mapped_column(String(100), nullable=True)
    document_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    document_number: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    issue_date_raw: Mapped[str | None] = mapped_column(String(100), nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date_raw: Mapped[str | None] = mapped_column(String(100), nullable=True)
    days_overdue: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    debt_amount: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    paid_amount: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    balance: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    overdue_0_30: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    overdue_31_60: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    overdue_61_90: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    overdue_over_91: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    not_yet_due: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    credit_limit: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_search_key: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    client_search_prefix: Mapped[str | None] = mapped_column(String(9), nullable=True, index=True)
    extra: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)


class CreditLimitRecord(Base):
    """Row of the credit-limit ("cupo cartera") sheet, headers kept verbatim."""

    __tablename__ = "credit_limit_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    client_key: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)


class PaymentRecord(Base):
    __tablename__ = "payment_records"
    __table_args__ = (UniqueConstraint("transaction_id", name="uq_payment_records_transaction_id"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[str] = mapped_column(String(100), nullable=False)
    invoice_reference: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    client_tax_id: Mapped[str] = mapped_column(String(50), nullable=False)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    confirmed_via: Mapped[str] = mapped_column(String(10), nullable=False)  # webhook/redirect
    verified_against_ledger: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payment_option: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_motive: Mapped[str | None] = mapped_column(String(255), nullable=True)
    synced_external: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    raw_gateway_payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
