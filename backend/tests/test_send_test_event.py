import json

from receivables.signatures import verify_event
from tools.send_test_event import build_event, main


def test_build_event_is_verifiable() -> None:
    event = build_event("tx-1", "FAC-1001-1", 5000, "secret", timestamp=1700000000)

    assert event["type"] == "transaction.updated"
    assert event["timestamp"] == 1700000000
    transaction = verify_event(event, "secret")
    assert transaction["id"] == "tx-1"
    assert transaction["reference"] == "FAC-1001-1"


def test_dry_run_prints_event(capsys) -> None:
    exit_code = main(["--secret", "secret", "--transaction-id", "tx-2", "--status", "DECLINED", "--dry-run"])

    assert exit_code == 0
    event = json.loads(capsys.readouterr().out)
    assert event["data"]["transaction"]["id"] == "tx-2"
    assert event["data"]["transaction"]["status"] == "DECLINED"
    assert verify_event(event, "secret")["status"] == "DECLINED"
