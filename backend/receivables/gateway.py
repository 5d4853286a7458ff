from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import requests

from .config import settings
from .errors import ConfigurationError, GatewayError

logger = logging.getLogger(__name__)


class GatewayClient:
    """Read-only client for the payment gateway's transactions API."""

    def __init__(
        self,
        api_url: str | None = None,
        private_key: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.api_url = (api_url or settings.gateway_api_url).rstrip("/")
        self.private_key = private_key if private_key is not None else settings.gateway_private_key
        self.timeout = timeout or settings.gateway_timeout_seconds
        self.session = session or requests.Session()

    def get_transaction(self, transaction_id: str) -> dict[str, Any]:
        if not self.private_key:
            raise ConfigurationError("GATEWAY_PRIVATE_KEY is not configured")

        url = f"{self.api_url}/transactions/{quote(str(transaction_id), safe='')}"
        try:
            response = self.session.get(
                url,
                headers={"Authorization": f"Bearer {self.private_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Gateway lookup for %s failed: %s", transaction_id, exc)
            raise GatewayError("Could not reach the payment gateway") from exc

        if not response.ok:
            try:
                details: Any = response.json()
            except ValueError:
                details = response.text
            logger.warning("Gateway returned %s for transaction %s", response.status_code, transaction_id)
            raise GatewayError(
                "Error verifying the transaction with the gateway",
                status_code=response.status_code,
                details=details,
            )

        payload = response.json()
        transaction = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(transaction, dict):
            raise GatewayError("Gateway response has no transaction data", status_code=502, details=payload)
        return transaction


def get_gateway_client() -> GatewayClient:
    return GatewayClient()
