"""Spreadsheet uploads: decode the file, normalize rows, reload the ledger."""
from __future__ import annotations

import csv
import io
import itertools
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import xlrd
from openpyxl import load_workbook
from sqlalchemy.orm import Session

from . import ledger
from .errors import UploadValidationError
from .normalizer import normalize_row

logger = logging.getLogger(__name__)

WORKBOOK_EXTENSIONS = frozenset({".xlsx", ".xlsm"})
LEGACY_WORKBOOK_EXTENSIONS = frozenset({".xls"})
CSV_EXTENSIONS = frozenset({".csv"})
SUPPORTED_EXTENSIONS = WORKBOOK_EXTENSIONS | LEGACY_WORKBOOK_EXTENSIONS | CSV_EXTENSIONS

# The credit-limit export carries a four-row preamble above its header.
CREDIT_LIMIT_HEADER_ROW = 5


def _decode_text(content: bytes) -> str:
    for encoding in ("utf-8-sig", "latin-1"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise UploadValidationError("Could not decode the uploaded file")


def _is_blank(values: Iterable[Any]) -> bool:
    return all(value is None or (isinstance(value, str) and not value.strip()) for value in values)


def _rows_from_table(table: Iterator[tuple[Any, ...]], header_row: int) -> Iterator[dict[Any, Any]]:
    for _ in range(header_row - 1):
        if next(table, None) is None:
            return
    header = next(table, None)
    if header is None:
        return
    headers = [str(h).strip() if h not in (None, "") else None for h in header]
    for values in table:
        if _is_blank(values):
            continue
        yield dict(zip(headers, values))


def _iter_csv(content: bytes, header_row: int) -> Iterator[dict[Any, Any]]:
    text = _decode_text(content)
    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=",;\t")
    except csv.Error:
        dialect = csv.excel
    reader = csv.reader(io.StringIO(text), dialect)
    yield from _rows_from_table((tuple(row) for row in reader), header_row)


def _iter_workbook(content: bytes, header_row: int, all_sheets: bool) -> Iterator[dict[Any, Any]]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as exc:  # openpyxl raises a variety of zip/xml errors
        raise UploadValidationError(f"Could not read the workbook: {exc}") from exc
    try:
        sheets = workbook.worksheets if all_sheets else workbook.worksheets[:1]
        for sheet in sheets:
            yield from _rows_from_table(sheet.iter_rows(values_only=True), header_row)
    finally:
        workbook.close()


def _iter_legacy_workbook(content: bytes, header_row: int, all_sheets: bool) -> Iterator[dict[Any, Any]]:
    # BIFF (.xls) exports from older ERP versions.
    try:
        book = xlrd.open_workbook(file_contents=content)
    except Exception as exc:  # xlrd raises XLRDError and assorted struct/compdoc errors
        raise UploadValidationError(f"Could not read the workbook: {exc}") from exc
    try:
        sheets = book.sheets() if all_sheets else book.sheets()[:1]
        for sheet in sheets:
            table = (tuple(sheet.row_values(index)) for index in range(sheet.nrows))
            yield from _rows_from_table(table, header_row)
    finally:
        book.release_resources()


def iter_sheet_rows(
    filename: str | None,
    content: bytes,
    *,
    header_row: int = 1,
    all_sheets: bool = False,
) -> Iterator[dict[Any, Any]]:
    """Yield raw rows (header -> value) of an uploaded spreadsheet."""
    extension = Path(filename or "").suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise UploadValidationError(
            f"Unsupported file extension '{extension or filename}'; expected one of "
            + ", ".join(sorted(SUPPORTED_EXTENSIONS))
        )
    if not content:
        raise UploadValidationError("The uploaded file is empty")
    if extension in CSV_EXTENSIONS:
        return _iter_csv(content, header_row)
    if extension in LEGACY_WORKBOOK_EXTENSIONS:
        return _iter_legacy_workbook(content, header_row, all_sheets)
    return _iter_workbook(content, header_row, all_sheets)


def _require_rows(rows: Iterator[dict[str, Any]], message: str) -> Iterator[dict[str, Any]]:
    # Validate before the store deletes anything.
    first = next(rows, None)
    if first is None:
        raise UploadValidationError(message)
    return itertools.chain([first], rows)


def accepted_ledger_rows(raw_rows: Iterable[dict[Any, Any]]) -> Iterator[dict[str, Any]]:
    """Normalized rows carrying both a client and a document number."""
    skipped = 0
    for raw in raw_rows:
        record = normalize_row(raw)
        if record.get("client_id") and record.get("document_number"):
            yield record
        else:
            skipped += 1
    if skipped:
        logger.info("Skipped %s rows without Cliente/Documento", skipped)


def ingest_ledger(db: Session, filename: str | None, content: bytes, batch_size: int = 1000) -> int:
    raw_rows = iter_sheet_rows(filename, content, all_sheets=True)
    records = _require_rows(
        accepted_ledger_rows(raw_rows),
        "The sheet has no rows with both Cliente and Documento",
    )
    total = ledger.replace_all(db, records, batch_size=batch_size)
    logger.info("Ingested %s ledger rows from %s", total, filename)
    return total


def ingest_credit_limits(db: Session, filename: str | None, content: bytes, batch_size: int = 1000) -> int:
    raw_rows = iter_sheet_rows(filename, content, header_row=CREDIT_LIMIT_HEADER_ROW)
    rows = _require_rows(raw_rows, "The credit limit sheet has no data rows")
    total = ledger.replace_credit_limits(db, rows, batch_size=batch_size)
    logger.info("Ingested %s credit limit rows from %s", total, filename)
    return total


__all__ = [
    "CREDIT_LIMIT_HEADER_ROW",
    "SUPPORTED_EXTENSIONS",
    "accepted_ledger_rows",
    "ingest_credit_limits",
    "ingest_ledger",
    "iter_sheet_rows",
]
