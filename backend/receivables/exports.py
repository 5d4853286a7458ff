from __future__ import annotations

import io
import json
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from openpyxl import Workbook

from .ledger import record_to_row
from .models import LedgerRecord, PaymentRecord

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_DATE_FORMAT = "%d-%m-%Y"
LEDGER_SHEET_TITLE = "Base_Conocimiento"
PAYMENTS_SHEET_TITLE = "Pagos"

# Text starting with one of these is evaluated by spreadsheet applications.
FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def _text(value: str) -> str:
    if value.startswith(FORMULA_PREFIXES):
        return "'" + value
    return value


def _cell(value: Any) -> Any:
    if isinstance(value, str):
        return _text(value)
    if isinstance(value, (dict, list)):
        return _text(json.dumps(value, ensure_ascii=False))
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def workbook_bytes(rows: list[dict[str, Any]], sheet_title: str) -> bytes:
    """Write dict rows to a single-sheet workbook, headers in first-seen order."""
    headers: list[str] = []
    for row in rows:
        for key in row:
            if key not in headers:
                headers.append(key)

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title
    sheet.append(headers)
    for row in rows:
        sheet.append([_cell(row.get(header)) for header in headers])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def ledger_workbook(records: Iterable[LedgerRecord]) -> bytes:
    rows = [record_to_row(record, date_format=EXPORT_DATE_FORMAT) for record in records]
    return workbook_bytes(rows, LEDGER_SHEET_TITLE)


def _format_paid_at(value: datetime | None) -> str:
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%d/%m/%Y %H:%M:%S")


def payment_report_rows(payments: Iterable[PaymentRecord]) -> list[dict[str, Any]]:
    return [
        {
            "ID Transacción": payment.transaction_id,
            "Referencia Factura": payment.invoice_reference,
            "Monto": payment.amount,
            "NIT Cliente": payment.client_tax_id,
            "Nombre Cliente": payment.client_name,
            "Fecha Pago": _format_paid_at(payment.paid_at),
            "Verificado": "SI" if payment.verified_against_ledger else "NO",
            "Confirmado Por": payment.confirmed_via,
        }
        for payment in payments
    ]


def payments_workbook(payments: Iterable[PaymentRecord]) -> bytes:
    return workbook_bytes(payment_report_rows(payments), PAYMENTS_SHEET_TITLE)
