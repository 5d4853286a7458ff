from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from ..access import AccessScope, ClientScope
from ..config import settings
from ..db import get_db
from ..deps import get_scope, require_admin
from ..exports import XLSX_MEDIA_TYPE, ledger_workbook
from ..ingestion import ingest_credit_limits, ingest_ledger
from ..ledger import (
    ExportFilters,
    export_records,
    paginate_clients,
    query_by_scope,
    query_credit_limits,
    record_to_row,
    unique_clients,
)
from ..models import User
from ..schemas import ExportRequest

router = APIRouter(prefix="/excel", tags=["excel"])

EXPORT_FILENAME = "cartera_filtrada.xlsx"


@router.post("/subir")
def upload_ledger(
    archivo: UploadFile = File(...),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    total = ingest_ledger(db, archivo.filename, archivo.file.read(), batch_size=settings.upload_batch_size)
    return {"mensaje": "Procesado", "total_registros": total}


@router.post("/subir_cupo_cartera")
def upload_credit_limits(
    archivo: UploadFile = File(...),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    total = ingest_credit_limits(
        db, archivo.filename, archivo.file.read(), batch_size=settings.upload_batch_size
    )
    return {"mensaje": "Cupos actualizados", "total_registros": total}


@router.get("/ver_dashboard")
def view_dashboard(scope: AccessScope = Depends(get_scope), db: Session = Depends(get_db)) -> dict[str, Any]:
    rows = [record_to_row(record) for record in query_by_scope(db, scope)]
    return {"total": len(rows), "datos": rows}


@router.get("/clientes_unicos")
def list_unique_clients(
    scope: AccessScope = Depends(get_scope), db: Session = Depends(get_db)
) -> dict[str, Any]:
    clients = unique_clients(query_by_scope(db, scope))
    return {"total": len(clients), "clientes": clients}


@router.get("/clientes_paginados")
def list_clients_paginated(
    page: int = Query(1),
    limit: int = Query(50),
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    result = paginate_clients(db, scope, page=page, limit=limit)
    return {
        "clientes": result.clients,
        "total": result.total,
        "currentPage": result.page,
        "hasNextPage": result.has_next,
        "hasPrevPage": result.has_prev,
    }


@router.post("/descargar_filtrado")
def download_filtered(
    payload: ExportRequest,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> Response:
    if isinstance(scope, ClientScope) and not scope.ids:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No clients are associated with this user")

    filters = ExportFilters(
        selected_sellers=payload.vendedoresSeleccionados,
        search=(payload.busqueda or "").strip() or None,
        credit_notes_only=payload.mostrarNotasCredito,
        nonzero_column=payload.columnaSeleccionada or None,
    )
    try:
        records = export_records(db, scope, filters)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if not records:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No rows match the selected filters")

    return Response(
        content=ledger_workbook(records),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
    )


@router.get("/ver_cupo_cartera")
def view_credit_limits(
    scope: AccessScope = Depends(get_scope), db: Session = Depends(get_db)
) -> dict[str, Any]:
    rows = query_credit_limits(db, scope)
    return {"total": len(rows), "datos": rows}
