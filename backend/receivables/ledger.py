"""Ledger store: the uploaded receivables knowledge base and credit limits.

Both datasets are replaced wholesale on upload: everything is deleted, then
the new rows are inserted in batches, committing after each batch. Readers
running during a reload can observe a partially loaded ledger; the next
successful upload replaces it completely.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import Select, delete, func, insert, select
from sqlalchemy.orm import Session

from .access import (
    AccessScope,
    ClientScope,
    SellerScope,
    credit_limit_scope_clause,
    ledger_scope_clause,
    seller_clause,
)
from .normalizer import DATE_FIELDS, LEDGER_COLUMNS, NUMERIC_FIELDS, fold_header
from .models import CreditLimitRecord, LedgerRecord

logger = logging.getLogger(__name__)

CREDIT_LIMIT_CLIENT_HEADER = "mtclienteproveedor"
CREDIT_LIMIT_QUERY_LIMIT = 1000
MAX_PAGE_SIZE = 100

_TEXT_FIELDS = tuple(
    field_name for _, field_name in LEDGER_COLUMNS if field_name not in DATE_FIELDS | NUMERIC_FIELDS
)


def json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


def ledger_values(record: Mapping[str, Any]) -> dict[str, Any]:
    """Column values for one normalized row.

    Undecodable dates are kept as text in the ``*_raw`` columns.
    """
    values: dict[str, Any] = {name: record.get(name) for name in _TEXT_FIELDS}
    for name in NUMERIC_FIELDS:
        values[name] = record.get(name, 0)
    for name in DATE_FIELDS:
        raw = record.get(name)
        if isinstance(raw, date):
            values[name], values[f"{name}_raw"] = raw, None
        else:
            values[name] = None
            values[f"{name}_raw"] = None if raw in (None, "") else str(json_safe(raw))
    values["client_search_key"] = record.get("client_search_key")
    values["client_search_prefix"] = record.get("client_search_prefix")
    values["extra"] = {str(key): json_safe(value) for key, value in (record.get("extra") or {}).items()}
    return values


def _insert_batches(db: Session, model: type, rows: Iterable[dict[str, Any]], batch_size: int) -> int:
    total = 0
    batch: list[dict[str, Any]] = []
    for row in rows:
        batch.append(row)
        if len(batch) >= batch_size:
            db.execute(insert(model), batch)
            db.commit()
            total += len(batch)
            batch = []
    if batch:
        db.execute(insert(model), batch)
        db.commit()
        total += len(batch)
    return total


def replace_all(db: Session, records: Iterable[Mapping[str, Any]], batch_size: int = 1000) -> int:
    db.execute(delete(LedgerRecord))
    db.commit()
    total = _insert_batches(db, LedgerRecord, (ledger_values(r) for r in records), batch_size)
    logger.info("Ledger reloaded with %s records", total)
    return total


def find_by_document_number(db: Session, document_number: str) -> LedgerRecord | None:
    return db.scalars(
        select(LedgerRecord).where(LedgerRecord.document_number == document_number).limit(1)
    ).first()


def scoped_select(scope: AccessScope) -> Select[tuple[LedgerRecord]]:
    stmt = select(LedgerRecord)
    clause = ledger_scope_clause(scope)
    if clause is not None:
        stmt = stmt.where(clause)
    return stmt


def query_by_scope(db: Session, scope: AccessScope) -> list[LedgerRecord]:
    return list(db.scalars(scoped_select(scope).order_by(LedgerRecord.id)))


def _format_date(value: date | None, raw: str | None, date_format: str | None) -> Any:
    if value is None:
        return raw
    if date_format:
        return value.strftime(date_format)
    return value.isoformat()


def record_to_row(record: LedgerRecord, date_format: str | None = None) -> dict[str, Any]:
    """Render a record with the spreadsheet's column labels."""
    row: dict[str, Any] = {}
    for label, name in LEDGER_COLUMNS:
        if name in DATE_FIELDS:
            row[label] = _format_date(getattr(record, name), getattr(record, f"{name}_raw"), date_format)
        else:
            row[label] = getattr(record, name)
    row["Cliente_Busqueda"] = record.client_search_key
    row["Cliente_Core"] = record.client_search_prefix
    for key, value in (record.extra or {}).items():
        row.setdefault(key, value)
    return row


def unique_clients(records: Iterable[LedgerRecord]) -> list[dict[str, str]]:
    clients: dict[str, dict[str, str]] = {}
    for record in records:
        nit = (record.client_id or "").strip()
        if not nit or nit in clients:
            continue
        nombre = record.client_name or (record.extra or {}).get("Nombre") or nit
        clients[nit] = {"nit": nit, "nombre": nombre}
    return list(clients.values())


@dataclass
class ClientPage:
    clients: list[dict[str, str]]
    total: int
    page: int
    limit: int

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 1


def paginate_clients(db: Session, scope: AccessScope, page: int = 1, limit: int = 50) -> ClientPage:
    page = max(1, page)
    limit = min(MAX_PAGE_SIZE, max(1, limit))

    clause = ledger_scope_clause(scope)
    grouped = (
        select(LedgerRecord.client_id, func.max(LedgerRecord.client_name).label("client_name"))
        .where(LedgerRecord.client_id.is_not(None))
        .group_by(LedgerRecord.client_id)
    )
    if clause is not None:
        grouped = grouped.where(clause)

    total = db.scalar(select(func.count()).select_from(grouped.subquery())) or 0
    rows = db.execute(grouped.order_by(LedgerRecord.client_id).offset((page - 1) * limit).limit(limit))
    clients = [{"nit": nit, "nombre": name or nit} for nit, name in rows]
    return ClientPage(clients=clients, total=total, page=page, limit=limit)


@dataclass
class ExportFilters:
    selected_sellers: list[str] = field(default_factory=list)
    search: str | None = None
    credit_notes_only: bool = False
    nonzero_column: str | None = None


def numeric_field_for(column: str) -> str | None:
    """Accept either the spreadsheet label or the attribute name of a numeric column."""
    if column in NUMERIC_FIELDS:
        return column
    for label, name in LEDGER_COLUMNS:
        if name in NUMERIC_FIELDS and fold_header(label) == fold_header(column):
            return name
    return None


def export_select(scope: AccessScope, filters: ExportFilters) -> Select[tuple[LedgerRecord]]:
    if isinstance(scope, SellerScope):
        authorized = scope.names
        wanted = {name.lower() for name in filters.selected_sellers}
        valid = [name for name in authorized if name.lower() in wanted]
        stmt = select(LedgerRecord).where(seller_clause(valid or authorized))
    elif isinstance(scope, ClientScope):
        stmt = scoped_select(scope)
    elif filters.selected_sellers:
        stmt = select(LedgerRecord).where(seller_clause(filters.selected_sellers))
    else:
        stmt = select(LedgerRecord)

    if filters.search:
        stmt = stmt.where(LedgerRecord.client_id.icontains(filters.search, autoescape=True))
    if filters.credit_notes_only:
        stmt = stmt.where(func.upper(LedgerRecord.document_type) == "NC")
    if filters.nonzero_column:
        name = numeric_field_for(filters.nonzero_column)
        if name is None:
            raise ValueError(f"Unknown numeric column: {filters.nonzero_column}")
        stmt = stmt.where(getattr(LedgerRecord, name) != 0)
    return stmt.order_by(LedgerRecord.id)


def export_records(db: Session, scope: AccessScope, filters: ExportFilters) -> list[LedgerRecord]:
    return list(db.scalars(export_select(scope, filters)))


def _credit_limit_values(row: Mapping[Any, Any]) -> dict[str, Any]:
    data = {str(key): json_safe(value) for key, value in row.items() if key is not None}
    client_key = next(
        (value for key, value in data.items() if fold_header(key) == CREDIT_LIMIT_CLIENT_HEADER),
        None,
    )
    return {
        "client_key": None if client_key in (None, "") else str(client_key).strip(),
        "data": data,
    }


def replace_credit_limits(db: Session, rows: Iterable[Mapping[Any, Any]], batch_size: int = 1000) -> int:
    db.execute(delete(CreditLimitRecord))
    db.commit()
    total = _insert_batches(db, CreditLimitRecord, (_credit_limit_values(r) for r in rows), batch_size)
    logger.info("Credit limits reloaded with %s records", total)
    return total


def query_credit_limits(db: Session, scope: AccessScope) -> list[dict[str, Any]]:
    stmt = select(CreditLimitRecord.data)
    clause = credit_limit_scope_clause(scope)
    if clause is not None:
        stmt = stmt.where(clause)
    return list(db.scalars(stmt.order_by(CreditLimitRecord.id).limit(CREDIT_LIMIT_QUERY_LIMIT)))


__all__ = [
    "ClientPage",
    "ExportFilters",
    "export_records",
    "find_by_document_number",
    "ledger_values",
    "paginate_clients",
    "query_by_scope",
    "query_credit_limits",
    "record_to_row",
    "replace_all",
    "replace_credit_limits",
    "unique_clients",
]
