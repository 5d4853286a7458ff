from datetime import date

import pytest
from sqlalchemy import func, select

from receivables import reconciler
from receivables.db import SessionLocal
from receivables.errors import EventValidationError
from receivables.models import LedgerRecord, PaymentRecord
from receivables.reconciler import (
    ReconcileStatus,
    invoice_reference_candidates,
    payments_paid_on,
    primary_invoice_reference,
    reconcile,
    resolve_identity,
)


def _transaction(**overrides) -> dict:
    transaction = {
        "id": "12345-1700000000-00001",
        "status": "APPROVED",
        "reference": "FAC-12345-1700000000",
        "amount_in_cents": 15000000,
        "customer_data": {"legal_id": "111222333", "full_name": "Pagador Pasarela"},
        "created_at": "2024-05-01T15:30:00.000Z",
    }
    transaction.update(overrides)
    return transaction


def _payment_count(db) -> int:
    return db.scalar(select(func.count()).select_from(PaymentRecord))


def test_reference_derivation() -> None:
    assert primary_invoice_reference("FAC-12345-1700000000") == "12345"
    assert primary_invoice_reference("12345") == "12345"
    assert invoice_reference_candidates("PAY-INV-42") == ["INV", "INV-42"]
    assert invoice_reference_candidates("FAC-12345") == ["12345"]


def test_resolve_identity_prefers_ledger() -> None:
    row = LedgerRecord(client_id="900123456", client_name="ACME SAS")
    identity, verified = resolve_identity(row, {"legal_id": "1", "full_name": "Someone"})
    assert verified is True
    assert (identity.tax_id, identity.name) == ("900123456", "ACME SAS")

    identity, verified = resolve_identity(LedgerRecord(client_id="900123456"), {"full_name": "Someone"})
    assert identity.name == "Someone"

    identity, verified = resolve_identity(None, None)
    assert verified is False
    assert (identity.tax_id, identity.name) == ("No disponible", "No disponible")


def test_reconcile_twice_stores_one_record(db) -> None:
    first = reconcile(db, _transaction(), confirmed_via="webhook")
    second = reconcile(db, _transaction(), confirmed_via="webhook")

    assert first.status is ReconcileStatus.CREATED
    assert second.status is ReconcileStatus.DUPLICATED
    assert second.record.id == first.record.id
    assert _payment_count(db) == 1


def test_unmatched_invoice_uses_gateway_identity(db) -> None:
    result = reconcile(db, _transaction(), confirmed_via="webhook")
    record = result.record

    assert record.invoice_reference == "12345"
    assert record.amount == 150000.0
    assert record.client_tax_id == "111222333"
    assert record.client_name == "Pagador Pasarela"
    assert record.verified_against_ledger is False
    assert record.payment_option == "WEBHOOK"
    assert record.confirmed_via == "webhook"
    assert record.raw_gateway_payload["reference"] == "FAC-12345-1700000000"
    assert (record.paid_at.year, record.paid_at.month, record.paid_at.day, record.paid_at.hour) == (
        2024,
        5,
        1,
        15,
    )


def test_ledger_match_overrides_gateway_identity(db, seed_ledger, ledger_row) -> None:
    seed_ledger([ledger_row("900123456", "INV-42", "CARLOS PEREZ", name="CLIENTE LEDGER")])

    result = reconcile(db, _transaction(reference="PAY-INV-42"), confirmed_via="redirect")

    assert result.status is ReconcileStatus.CREATED
    assert result.record.verified_against_ledger is True
    assert result.record.invoice_reference == "INV-42"
    assert result.record.client_tax_id == "900123456"
    assert result.record.client_name == "CLIENTE LEDGER"


def test_non_approved_transaction_is_not_stored(db) -> None:
    result = reconcile(db, _transaction(status="DECLINED"), confirmed_via="webhook")

    assert result.status is ReconcileStatus.NOT_APPROVED
    assert result.record is None
    assert result.transaction_status == "DECLINED"
    assert _payment_count(db) == 0


def test_redirect_upgrades_webhook_placeholder(db) -> None:
    reconcile(db, _transaction(), confirmed_via="webhook")

    upgraded = reconcile(
        db, _transaction(), confirmed_via="redirect", payment_option="PSE", payment_motive="Abono"
    )
    assert upgraded.status is ReconcileStatus.UPDATED
    assert upgraded.record.payment_option == "PSE"
    assert upgraded.record.payment_motive == "Abono"
    assert upgraded.record.confirmed_via == "webhook"

    again = reconcile(db, _transaction(), confirmed_via="redirect", payment_option="TARJETA")
    assert again.status is ReconcileStatus.DUPLICATED
    assert again.record.payment_option == "PSE"
    assert _payment_count(db) == 1


def test_webhook_after_redirect_is_duplicate(db) -> None:
    reconcile(db, _transaction(), confirmed_via="redirect", payment_option="PSE")
    result = reconcile(db, _transaction(), confirmed_via="webhook")

    assert result.status is ReconcileStatus.DUPLICATED
    assert result.record.payment_option == "PSE"


def test_concurrent_insert_is_reported_as_duplicate(db, monkeypatch) -> None:
    winner = reconcile(db, _transaction(), confirmed_via="webhook").record
    real_find = reconciler.find_payment
    calls = []

    def stale_find(session, transaction_id):
        # The first lookup misses, as if the other delivery had not committed yet.
        calls.append(transaction_id)
        return None if len(calls) == 1 else real_find(session, transaction_id)

    monkeypatch.setattr(reconciler, "find_payment", stale_find)
    result = reconcile(db, _transaction(), confirmed_via="redirect")

    assert result.status is ReconcileStatus.DUPLICATED
    assert result.record.id == winner.id
    assert _payment_count(db) == 1


def test_commit_from_another_session_is_reported_as_duplicate(monkeypatch) -> None:
    real_find = reconciler.find_payment
    winner_ids = []

    with SessionLocal() as mine:

        def find_after_other_worker_commits(session, transaction_id):
            if session is mine and not winner_ids:
                # The other delivery commits between this lookup and the insert.
                with SessionLocal() as other:
                    winner_ids.append(reconcile(other, _transaction(), confirmed_via="webhook").record.id)
                return None
            return real_find(session, transaction_id)

        monkeypatch.setattr(reconciler, "find_payment", find_after_other_worker_commits)
        result = reconcile(mine, _transaction(), confirmed_via="redirect")

        assert result.status is ReconcileStatus.DUPLICATED
        assert result.record.id == winner_ids[0]
        assert result.record.confirmed_via == "webhook"
        assert _payment_count(mine) == 1


@pytest.mark.parametrize(
    "transaction",
    [
        {"status": "APPROVED"},
        {"id": "tx-1"},
        {"id": "tx-1", "status": "APPROVED", "amount_in_cents": 100},
        {"id": "tx-1", "status": "APPROVED", "reference": "FAC-1"},
    ],
)
def test_missing_fields_are_rejected(db, transaction) -> None:
    with pytest.raises(EventValidationError):
        reconcile(db, transaction, confirmed_via="webhook")


def test_unknown_confirmation_source(db) -> None:
    with pytest.raises(ValueError):
        reconcile(db, _transaction(), confirmed_via="email")


def test_payments_paid_on_uses_utc_day(db) -> None:
    reconcile(db, _transaction(id="a", created_at="2024-05-01T23:59:00Z"), confirmed_via="webhook")
    reconcile(db, _transaction(id="b", created_at="2024-05-01T20:00:00-05:00"), confirmed_via="webhook")
    reconcile(db, _transaction(id="c", created_at="2024-05-01T00:00:00Z"), confirmed_via="webhook")

    assert [p.transaction_id for p in payments_paid_on(db, date(2024, 5, 1))] == ["c", "a"]
    assert [p.transaction_id for p in payments_paid_on(db, date(2024, 5, 2))] == ["b"]
