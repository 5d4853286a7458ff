"""Spreadsheet row normalization for the receivables ledger.

Turns one raw row (header -> cell value) of the uploaded accounts-receivable
sheet into the canonical field mapping stored in ``LedgerRecord``:

- headers are folded (accents, case, spaces and underscores removed) and
  matched against the known column labels; unknown headers end up in
  ``extra`` untouched;
- numeric columns go through ``clean_number``. A value carrying both
  separators is read the Spanish way (``1.234,56``); a lone separator
  followed by one or two digits is a decimal point, otherwise it groups
  thousands;
- the issue and due date columns accept native dates, spreadsheet serials and
  ``dd/mm/yyyy`` strings. A value that cannot be decoded is returned as-is so
  nothing uploaded is lost;
- the client id yields ``client_search_key`` (digits only) and
  ``client_search_prefix`` (first nine digits) for NIT lookups.

Everything here is a pure function of its input.
"""
from __future__ import annotations

import math
import numbers
import re
import unicodedata
from collections.abc import Mapping
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

# (label as exported, LedgerRecord attribute)
LEDGER_COLUMNS: tuple[tuple[str, str], ...] = (
    ("Cliente", "client_id"),
    ("Nombre_Cliente", "client_name"),
    ("Direccion_Cliente", "client_address"),
    ("Centro_Costos", "cost_center"),
    ("Nombre_Zona", "zone_name"),
    ("Nombre_Ciudad", "city_name"),
    ("Nombre_Vendedor", "seller_name"),
    ("T_Dcto", "document_type"),
    ("Documento", "document_number"),
    ("F_Expedic", "issue_date"),
    ("F_Vencim", "due_date"),
    ("DiasVc", "days_overdue"),
    ("Deuda", "debt_amount"),
    ("Pagado", "paid_amount"),
    ("Venc_91", "overdue_over_91"),
    ("Venc_61_90", "overdue_61_90"),
    ("Venc_31_60", "overdue_31_60"),
    ("Venc_0_30", "overdue_0_30"),
    ("Por_Venc", "not_yet_due"),
    ("Saldo", "balance"),
    ("CUPO_CREDITO", "credit_limit"),
    ("Nota", "note"),
)

DATE_FIELDS = frozenset({"issue_date", "due_date"})
NUMERIC_FIELDS = frozenset(
    {
        "days_overdue",
        "debt_amount",
        "paid_amount",
        "balance",
        "not_yet_due",
        "overdue_0_30",
        "overdue_31_60",
        "overdue_61_90",
        "overdue_over_91",
        "credit_limit",
    }
)
FIELD_LABELS: dict[str, str] = {field: label for label, field in LEDGER_COLUMNS}

SEARCH_PREFIX_LENGTH = 9

# Spreadsheet serial of 1970-01-01 (1900 date system).
_SERIAL_UNIX_EPOCH = 25569
_SERIAL_MIN = 25000
_SERIAL_MAX = 75000
_UNIX_EPOCH = datetime(1970, 1, 1)

_HEADER_SEPARATORS = re.compile(r"[\s_]+")
_NUMBER_NOISE = re.compile(r"[^0-9.,-]")
_LEADING_NUMBER = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)")
_SERIAL_STRING = re.compile(r"^\d+(?:\.\d+)?$")
_DMY_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4}|\d{2})$")
_NON_DIGITS = re.compile(r"\D")


def fold_header(header: Any) -> str:
    text = unicodedata.normalize("NFD", str(header))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return _HEADER_SEPARATORS.sub("", text.lower().strip())


HEADER_ALIASES: dict[str, str] = {fold_header(label): field for label, field in LEDGER_COLUMNS}


def canonical_field(header: Any) -> str | None:
    """Return the ``LedgerRecord`` attribute for a raw header, if known."""
    if header is None:
        return None
    return HEADER_ALIASES.get(fold_header(header))


def clean_number(value: Any) -> float:
    """Parse a locale-formatted amount; anything unparseable becomes 0."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, (numbers.Real, Decimal)) and not isinstance(value, bool):
        number = float(value)
        if math.isnan(number) or math.isinf(number):
            return 0.0
        return number

    text = _NUMBER_NOISE.sub("", str(value).strip())

    if "." in text and "," in text:
        # 1.234,56
        text = text.replace(".", "").replace(",", ".", 1)
    elif "," in text:
        parts = text.split(",")
        if len(parts) == 2 and len(parts[1]) <= 2:
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "." in text:
        parts = text.split(".")
        if len(parts) > 2 or len(parts[1]) > 2:
            text = text.replace(".", "")

    match = _LEADING_NUMBER.match(text.replace(",", ""))
    if not match:
        return 0.0
    return float(match.group())


def excel_serial_to_date(value: Any) -> date | None:
    """Decode a spreadsheet serial day number, or None when implausible."""
    if isinstance(value, bool):
        return None
    try:
        serial = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(serial) or serial < _SERIAL_MIN or serial > _SERIAL_MAX:
        return None
    millis = round((serial - _SERIAL_UNIX_EPOCH) * 86400 * 1000)
    return (_UNIX_EPOCH + timedelta(milliseconds=millis)).date()


def date_to_excel_serial(value: date) -> int:
    return (value - _UNIX_EPOCH.date()).days + _SERIAL_UNIX_EPOCH


def _parse_day_month_year(text: str) -> date | None:
    match = _DMY_DATE.match(text)
    if not match:
        return None
    day, month, year = (int(part) for part in match.groups())
    if len(match.group(3)) == 2:
        year += 2000 if year < 70 else 1900
    try:
        return date(year, month, day)
    except ValueError:
        return None


def coerce_date(value: Any) -> Any:
    """Return a ``date`` for recognizable inputs, otherwise ``value`` itself."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return excel_serial_to_date(value) or value
    if isinstance(value, str):
        if _SERIAL_STRING.match(value):
            return excel_serial_to_date(value) or value
        return _parse_day_month_year(value) or value
    return value


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        # Numeric cells such as NITs or document numbers come back as floats.
        value = int(value)
    text = str(value).strip()
    return text or None


def client_search_keys(client_id: Any) -> tuple[str, str]:
    digits = _NON_DIGITS.sub("", str(client_id or ""))
    return digits, digits[:SEARCH_PREFIX_LENGTH]


def normalize_row(raw: Mapping[Any, Any]) -> dict[str, Any]:
    record: dict[str, Any] = {}
    extra: dict[str, Any] = {}

    for raw_key, value in raw.items():
        if raw_key is None:
            continue
        if isinstance(value, str):
            value = value.strip()

        field = canonical_field(raw_key)
        if field is None:
            extra[str(raw_key)] = value
        elif field in DATE_FIELDS:
            record[field] = coerce_date(value)
        elif field in NUMERIC_FIELDS:
            record[field] = clean_number(value)
        else:
            record[field] = _clean_text(value)

    if "client_id" in record:
        record["client_search_key"], record["client_search_prefix"] = client_search_keys(
            record["client_id"]
        )

    record["extra"] = extra
    return record


__all__ = [
    "DATE_FIELDS",
    "FIELD_LABELS",
    "LEDGER_COLUMNS",
    "NUMERIC_FIELDS",
    "canonical_field",
    "clean_number",
    "client_search_keys",
    "coerce_date",
    "date_to_excel_serial",
    "excel_serial_to_date",
    "fold_header",
    "normalize_row",
]
