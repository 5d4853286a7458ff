"""Domain exceptions raised by the ingestion and payment services.

Routers translate these into HTTP responses; the services themselves never
import FastAPI.
"""
from __future__ import annotations


class ReceivablesError(Exception):
    """Base class for errors raised by the receivables services."""


class UploadValidationError(ReceivablesError):
    """The uploaded spreadsheet cannot be ingested (empty, wrong extension)."""


class EventValidationError(ReceivablesError):
    """A webhook event or confirmation request is missing required fields."""


class ConfigurationError(ReceivablesError):
    """A secret or key required for the operation is not configured."""


class SignatureMismatch(ReceivablesError):
    """The event checksum does not match the one we computed."""


class GatewayError(ReceivablesError):
    """The payment gateway rejected or failed a transaction lookup."""

    def __init__(self, message: str, status_code: int | None = None, details: object = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details
