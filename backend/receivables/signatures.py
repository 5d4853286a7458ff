"""Payment-gateway signatures.

Two unrelated formats, both SHA-256 hex digests over a plain concatenation:

- checkout integrity signature handed to the payment widget:
  ``reference + amount_in_cents + currency [+ redirect_url] + integrity_secret``
- webhook event checksum:
  ``transaction.id + transaction.status + transaction.amount_in_cents
  + timestamp + event_secret``
"""
from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Mapping
from typing import Any

from .errors import ConfigurationError, EventValidationError, SignatureMismatch

logger = logging.getLogger(__name__)


def _sha256_hex(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _require_secret(secret: str | None, name: str) -> str:
    if not secret:
        raise ConfigurationError(f"{name} is not configured")
    return secret


def checkout_signature(
    reference: str,
    amount_in_cents: int | str,
    currency: str,
    integrity_secret: str | None,
    redirect_url: str | None = None,
) -> str:
    secret = _require_secret(integrity_secret, "GATEWAY_INTEGRITY_SECRET")
    payload = f"{reference}{amount_in_cents}{currency}{redirect_url or ''}{secret}"
    return _sha256_hex(payload)


def event_checksum(
    transaction_id: str,
    status: str,
    amount_in_cents: int | str,
    timestamp: int | str,
    event_secret: str | None,
) -> str:
    secret = _require_secret(event_secret, "GATEWAY_EVENT_SECRET")
    return _sha256_hex(f"{transaction_id}{status}{amount_in_cents}{timestamp}{secret}")


def event_transaction(event: Mapping[str, Any]) -> dict[str, Any]:
    """Return the transaction carried by a webhook event.

    Current envelopes nest it under ``data.transaction``; older ones put the
    transaction straight in ``data``.
    """
    data = event.get("data")
    if not isinstance(data, Mapping):
        raise EventValidationError("Event is missing the 'data' field")
    transaction = data.get("transaction", data)
    if not isinstance(transaction, Mapping):
        raise EventValidationError("Event 'data.transaction' is not an object")
    return dict(transaction)


def verify_event(event: Mapping[str, Any], event_secret: str | None) -> dict[str, Any]:
    """Check the event checksum and return its transaction.

    Raises ``SignatureMismatch`` when the checksum does not match and
    ``EventValidationError`` when the fields needed to compute it are absent.
    """
    secret = _require_secret(event_secret, "GATEWAY_EVENT_SECRET")
    transaction = event_transaction(event)

    signature = event.get("signature")
    received = signature.get("checksum") if isinstance(signature, Mapping) else None
    timestamp = event.get("timestamp")
    missing = [
        name
        for name, value in (
            ("signature.checksum", received),
            ("timestamp", timestamp),
            ("transaction.id", transaction.get("id")),
            ("transaction.status", transaction.get("status")),
            ("transaction.amount_in_cents", transaction.get("amount_in_cents")),
        )
        if value in (None, "")
    ]
    if missing:
        raise EventValidationError(f"Event is missing required fields: {', '.join(missing)}")

    expected = event_checksum(
        transaction["id"],
        transaction["status"],
        transaction["amount_in_cents"],
        timestamp,
        secret,
    )
    if not hmac.compare_digest(expected.encode("utf-8"), str(received).lower().encode("utf-8")):
        logger.warning("Rejected event for transaction %s: checksum mismatch", transaction["id"])
        raise SignatureMismatch("Event checksum does not match")
    return transaction


__all__ = [
    "checkout_signature",
    "event_checksum",
    "event_transaction",
    "verify_event",
]
