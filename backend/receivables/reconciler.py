"""Record approved gateway transactions as payments, exactly once.

Webhook deliveries and redirect confirmations both go through ``reconcile``.
Uniqueness of ``transaction_id`` is enforced by the database: the insert runs
inside a SAVEPOINT and a constraint violation means another delivery of the
same transaction won the race, which is reported as ``DUPLICATED``.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import EventValidationError
from .ledger import find_by_document_number
from .models import CONFIRMED_VIA_REDIRECT, CONFIRMED_VIA_WEBHOOK, LedgerRecord, PaymentRecord

logger = logging.getLogger(__name__)

APPROVED = "APPROVED"
# Stored as payment_option until a redirect confirmation supplies the real one.
WEBHOOK_PAYMENT_OPTION = "WEBHOOK"
UNAVAILABLE = "No disponible"
REFERENCE_SEPARATOR = "-"


class ReconcileStatus(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DUPLICATED = "DUPLICATED"
    NOT_APPROVED = "NOT_APPROVED"


@dataclass(frozen=True)
class ReconcileResult:
    status: ReconcileStatus
    record: PaymentRecord | None
    transaction_status: str


@dataclass(frozen=True)
class ClientIdentity:
    tax_id: str
    name: str


def primary_invoice_reference(reference: str) -> str:
    parts = reference.split(REFERENCE_SEPARATOR)
    return parts[1] if len(parts) > 1 else reference


def invoice_reference_candidates(reference: str) -> list[str]:
    """Document numbers to try for a gateway reference, most likely first.

    ``FAC-12345-1700000000`` -> ``["12345", "12345-1700000000"]``; the second
    candidate covers document numbers that contain the separator themselves.
    """
    candidates = [primary_invoice_reference(reference)]
    remainder = reference.split(REFERENCE_SEPARATOR, 1)[-1]
    if remainder not in candidates:
        candidates.append(remainder)
    return candidates


def resolve_identity(
    ledger_row: LedgerRecord | None, customer_data: Mapping[str, Any] | None
) -> tuple[ClientIdentity, bool]:
    """Merge ledger and gateway identities; the ledger wins when present."""
    customer_data = customer_data or {}
    gateway = ClientIdentity(
        tax_id=str(customer_data.get("legal_id") or UNAVAILABLE),
        name=str(customer_data.get("full_name") or UNAVAILABLE),
    )
    if ledger_row is None:
        return gateway, False
    return (
        ClientIdentity(
            tax_id=ledger_row.client_id or gateway.tax_id,
            name=ledger_row.client_name or gateway.name,
        ),
        True,
    )


def find_invoice(db: Session, reference: str) -> tuple[str, LedgerRecord | None]:
    for candidate in invoice_reference_candidates(reference):
        row = find_by_document_number(db, candidate)
        if row is not None:
            return candidate, row
    return primary_invoice_reference(reference), None


def find_payment(db: Session, transaction_id: str) -> PaymentRecord | None:
    return db.scalars(
        select(PaymentRecord).where(PaymentRecord.transaction_id == transaction_id)
    ).first()


def amount_from_cents(amount_in_cents: Any) -> float:
    try:
        return float(amount_in_cents) / 100
    except (TypeError, ValueError) as exc:
        raise EventValidationError(f"Invalid amount_in_cents: {amount_in_cents!r}") from exc


def parse_paid_at(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable transaction created_at: %r", value)
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def payments_paid_on(db: Session, day: date) -> list[PaymentRecord]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=1)
    return list(
        db.scalars(
            select(PaymentRecord)
            .where(PaymentRecord.paid_at >= start, PaymentRecord.paid_at < end)
            .order_by(PaymentRecord.paid_at)
        )
    )


def _require(transaction: Mapping[str, Any], fields: tuple[str, ...]) -> None:
    missing = [name for name in fields if transaction.get(name) in (None, "")]
    if missing:
        raise EventValidationError(f"Transaction is missing required fields: {', '.join(missing)}")


def _should_upgrade(existing: PaymentRecord, confirmed_via: str, payment_option: str | None) -> bool:
    return (
        existing.payment_option == WEBHOOK_PAYMENT_OPTION
        and confirmed_via == CONFIRMED_VIA_REDIRECT
        and bool(payment_option)
        and payment_option != WEBHOOK_PAYMENT_OPTION
    )


def reconcile(
    db: Session,
    transaction: Mapping[str, Any],
    confirmed_via: str,
    payment_option: str | None = None,
    payment_motive: str | None = None,
) -> ReconcileResult:
    if confirmed_via not in (CONFIRMED_VIA_WEBHOOK, CONFIRMED_VIA_REDIRECT):
        raise ValueError(f"Unknown confirmation source: {confirmed_via!r}")
    _require(transaction, ("id", "status"))

    transaction_id = str(transaction["id"])
    status = str(transaction["status"])

    existing = find_payment(db, transaction_id)
    if existing is not None:
        if _should_upgrade(existing, confirmed_via, payment_option):
            existing.payment_option = payment_option
            existing.payment_motive = payment_motive
            db.commit()
            logger.info("Payment %s upgraded with option %s", transaction_id, payment_option)
            return ReconcileResult(ReconcileStatus.UPDATED, existing, status)
        logger.info("Transaction %s already recorded", transaction_id)
        return ReconcileResult(ReconcileStatus.DUPLICATED, existing, status)

    if status != APPROVED:
        logger.info("Transaction %s not recorded, status %s", transaction_id, status)
        return ReconcileResult(ReconcileStatus.NOT_APPROVED, None, status)

    _require(transaction, ("reference", "amount_in_cents"))
    invoice_reference, ledger_row = find_invoice(db, str(transaction["reference"]))
    identity, verified = resolve_identity(ledger_row, transaction.get("customer_data"))
    if not verified:
        logger.warning(
            "Invoice %s not found in ledger; using gateway identity for %s",
            invoice_reference,
            transaction_id,
        )

    if confirmed_via == CONFIRMED_VIA_WEBHOOK and not payment_option:
        payment_option = WEBHOOK_PAYMENT_OPTION

    record = PaymentRecord(
        transaction_id=transaction_id,
        invoice_reference=invoice_reference,
        amount=amount_from_cents(transaction["amount_in_cents"]),
        client_tax_id=identity.tax_id,
        client_name=identity.name,
        paid_at=parse_paid_at(transaction.get("created_at")),
        confirmed_via=confirmed_via,
        verified_against_ledger=verified,
        payment_option=payment_option,
        payment_motive=payment_motive,
        raw_gateway_payload=dict(transaction),
    )
    try:
        with db.begin_nested():
            db.add(record)
    except IntegrityError:
        winner = find_payment(db, transaction_id)
        db.commit()
        logger.info("Transaction %s recorded concurrently; reporting duplicate", transaction_id)
        return ReconcileResult(ReconcileStatus.DUPLICATED, winner, status)

    db.commit()
    logger.info(
        "Recorded payment %s for invoice %s (%s, verified=%s)",
        transaction_id,
        invoice_reference,
        confirmed_via,
        verified,
    )
    return ReconcileResult(ReconcileStatus.CREATED, record, status)


__all__ = [
    "APPROVED",
    "ClientIdentity",
    "ReconcileResult",
    "ReconcileStatus",
    "WEBHOOK_PAYMENT_OPTION",
    "find_payment",
    "invoice_reference_candidates",
    "payments_paid_on",
    "primary_invoice_reference",
    "reconcile",
    "resolve_identity",
]
