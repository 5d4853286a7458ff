#!/usr/bin/env python
"""
Send a signed transaction.updated event to a running webhook endpoint.

Usage:
  python tools/send_test_event.py --secret test_events_xxx --reference FAC-12345-1700000000
  python tools/send_test_event.py --secret test_events_xxx --status DECLINED --dry-run
  python tools/send_test_event.py --url https://portal.example.com/pagos/wompi-webhook --secret ...
"""
from __future__ import annotations

import argparse
import json
import sys
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import requests

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from receivables.signatures import event_checksum  # noqa: E402

DEFAULT_URL = "http://localhost:8000/pagos/wompi-webhook"


def build_event(
    transaction_id: str,
    reference: str,
    amount_in_cents: int,
    event_secret: str,
    status: str = "APPROVED",
    legal_id: str = "12345678",
    full_name: str = "CLIENTE DE PRUEBA",
    timestamp: int | None = None,
    created_at: str | None = None,
) -> dict[str, Any]:
    """Build a transaction.updated event signed the way the gateway signs it."""
    timestamp = timestamp if timestamp is not None else int(time.time())
    transaction = {
        "id": transaction_id,
        "status": status,
        "reference": reference,
        "amount_in_cents": amount_in_cents,
        "customer_data": {"legal_id": legal_id, "full_name": full_name},
        "created_at": created_at or datetime.now(timezone.utc).isoformat(),
    }
    return {
        "event": "transaction.updated",
        "type": "transaction.updated",
        "data": {"transaction": transaction},
        "sent_at": datetime.now(timezone.utc).isoformat(),
        "timestamp": timestamp,
        "signature": {
            "properties": ["transaction.id", "transaction.status", "transaction.amount_in_cents"],
            "checksum": event_checksum(transaction_id, status, amount_in_cents, timestamp, event_secret),
        },
    }


def send_event(url: str, event: dict[str, Any], timeout: float = 15) -> requests.Response:
    return requests.post(url, json=event, timeout=timeout)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a signed test event to the payment webhook")
    parser.add_argument("--url", default=DEFAULT_URL, help="Webhook URL")
    parser.add_argument("--secret", required=True, help="Gateway events secret")
    parser.add_argument("--transaction-id", default=None, help="Transaction id (random when omitted)")
    parser.add_argument("--reference", default=None, help="Payment reference, e.g. FAC-12345-1700000000")
    parser.add_argument("--amount-in-cents", type=int, default=10000)
    parser.add_argument("--status", default="APPROVED")
    parser.add_argument("--legal-id", default="12345678")
    parser.add_argument("--full-name", default="CLIENTE DE PRUEBA")
    parser.add_argument("--dry-run", action="store_true", help="Print the event without sending it")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    transaction_id = args.transaction_id or f"test-{uuid.uuid4().hex[:12]}"
    reference = args.reference or f"FAC-TEST-{int(time.time())}"
    event = build_event(
        transaction_id,
        reference,
        args.amount_in_cents,
        args.secret,
        status=args.status,
        legal_id=args.legal_id,
        full_name=args.full_name,
    )

    if args.dry_run:
        print(json.dumps(event, indent=2, ensure_ascii=False))
        return 0

    print(f"Sending {transaction_id} ({args.status}) to {args.url}")
    try:
        response = send_event(args.url, event)
    except requests.RequestException as exc:
        print(f"Request failed: {exc}", file=sys.stderr)
        return 1

    print(f"Status: {response.status_code}")
    print(response.text)
    return 0 if response.ok else 1


if __name__ == "__main__":
    sys.exit(main())
