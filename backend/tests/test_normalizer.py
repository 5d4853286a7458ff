from datetime import date, datetime
from decimal import Decimal

import pytest

from receivables.normalizer import (
    canonical_field,
    clean_number,
    client_search_keys,
    coerce_date,
    date_to_excel_serial,
    excel_serial_to_date,
    fold_header,
    normalize_row,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1.234,56", 1234.56),
        ("1,234", 1234.0),
        ("1,5", 1.5),
        ("1,234,567", 1234567.0),
        ("$ 2.500.000", 2500000.0),
        ("12.50", 12.5),
        ("-1.234,5", -1234.5),
        ("3 (nota)", 3.0),
        (42, 42.0),
        (Decimal("3.5"), 3.5),
    ],
)
def test_clean_number_locale_forms(raw, expected) -> None:
    assert clean_number(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", [None, "", "abc", "-", float("nan"), float("inf")])
def test_clean_number_defaults_to_zero(raw) -> None:
    assert clean_number(raw) == 0.0


def test_header_folding_ignores_accents_case_and_separators() -> None:
    assert fold_header("Dirección Cliente") == fold_header("Direccion_Cliente")
    assert canonical_field("  SALDO ") == "balance"
    assert canonical_field("Nombre Vendedor") == "seller_name"
    assert canonical_field("Observaciones") is None


def test_serial_dates_decode_to_calendar_day() -> None:
    assert excel_serial_to_date(45000) == date(2023, 3, 15)
    assert excel_serial_to_date(45000.75) == date(2023, 3, 15)
    assert excel_serial_to_date("45000") == date(2023, 3, 15)


def test_serial_dates_outside_plausible_range_are_rejected() -> None:
    assert excel_serial_to_date(24999) is None
    assert excel_serial_to_date(75001) is None
    assert excel_serial_to_date(25000) is not None
    assert excel_serial_to_date(75000) is not None


def test_serial_dates_reencode_to_same_serial() -> None:
    for serial in range(25000, 75001, 997):
        assert date_to_excel_serial(excel_serial_to_date(serial)) == serial


@pytest.mark.parametrize(
    "raw, expected",
    [
        (datetime(2024, 1, 15, 13, 45), date(2024, 1, 15)),
        (date(2024, 1, 15), date(2024, 1, 15)),
        ("15/01/2024", date(2024, 1, 15)),
        ("5-3-24", date(2024, 3, 5)),
        ("1/1/85", date(1985, 1, 1)),
        (45000, date(2023, 3, 15)),
    ],
)
def test_coerce_date_accepted_forms(raw, expected) -> None:
    assert coerce_date(raw) == expected


@pytest.mark.parametrize("raw", ["31/02/2024", "pendiente", 12, "2024/01/15"])
def test_coerce_date_leaves_unrecognized_values(raw) -> None:
    assert coerce_date(raw) == raw


def test_client_search_keys() -> None:
    assert client_search_keys("900123456") == ("900123456", "900123456")
    assert client_search_keys("123456789012") == ("123456789012", "123456789")
    assert client_search_keys("900.123.456-7") == ("9001234567", "900123456")
    assert client_search_keys(None) == ("", "")


def test_normalize_row() -> None:
    record = normalize_row(
        {
            "Cliente": 900123456.0,
            "Nombre Cliente": "  ACME SAS ",
            "Documento": 1001.0,
            "F_Expedic": "15/01/2024",
            "F_Vencim": "sin fecha",
            "Saldo": "1.234,56",
            "Observacion": "llamar",
            None: "stray",
        }
    )

    assert record["client_id"] == "900123456"
    assert record["client_name"] == "ACME SAS"
    assert record["document_number"] == "1001"
    assert record["issue_date"] == date(2024, 1, 15)
    assert record["due_date"] == "sin fecha"
    assert record["balance"] == pytest.approx(1234.56)
    assert record["client_search_key"] == "900123456"
    assert record["client_search_prefix"] == "900123456"
    assert record["extra"] == {"Observacion": "llamar"}


def test_normalize_row_without_client_has_no_search_keys() -> None:
    record = normalize_row({"Documento": "A-1", "Nota": ""})
    assert "client_search_key" not in record
    assert record["note"] is None
