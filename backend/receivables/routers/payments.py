from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..deps import require_admin
from ..errors import ConfigurationError
from ..exports import XLSX_MEDIA_TYPE, payments_workbook
from ..gateway import GatewayClient, get_gateway_client
from ..models import CONFIRMED_VIA_REDIRECT, CONFIRMED_VIA_WEBHOOK, PaymentRecord, User
from ..reconciler import ReconcileStatus, find_payment, payments_paid_on, reconcile
from ..schemas import ConfirmationRequest, SignatureRequest, SignatureResponse
from ..signatures import checkout_signature, verify_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pagos", tags=["pagos"])

TRANSACTION_UPDATED = "transaction.updated"


def payment_summary(record: PaymentRecord) -> dict[str, Any]:
    return {
        "referencia": record.invoice_reference,
        "monto": record.amount,
        "cliente": record.client_name,
    }


def payment_detail(record: PaymentRecord) -> dict[str, Any]:
    return jsonable_encoder(
        {
            "transaccion_id": record.transaction_id,
            "referencia_factura": record.invoice_reference,
            "monto": record.amount,
            "nit_cliente": record.client_tax_id,
            "nombre_cliente": record.client_name,
            "fecha_pago": record.paid_at,
            "confirmado_por": record.confirmed_via,
            "datos_verificados_bd": record.verified_against_ledger,
            "opcion_pago": record.payment_option,
            "motivo_pago": record.payment_motive,
        }
    )


@router.post("/confirmacion")
def confirm_payment(
    payload: ConfirmationRequest,
    db: Session = Depends(get_db),
    gateway: GatewayClient = Depends(get_gateway_client),
) -> JSONResponse:
    if not payload.transaction_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing transaction_id")

    transaction = gateway.get_transaction(payload.transaction_id)
    result = reconcile(
        db,
        transaction,
        confirmed_via=CONFIRMED_VIA_REDIRECT,
        payment_option=payload.payment_option,
        payment_motive=payload.payment_motive,
    )

    if result.status is ReconcileStatus.NOT_APPROVED:
        return JSONResponse(
            {
                "mensaje": f"El pago no fue aprobado. Estado: {result.transaction_status}",
                "status": result.transaction_status,
            }
        )
    if result.status is ReconcileStatus.DUPLICATED:
        return JSONResponse(
            {
                "mensaje": "Este pago ya fue procesado anteriormente.",
                "status": "DUPLICADO",
                "pago": payment_detail(result.record),
            }
        )
    if result.status is ReconcileStatus.UPDATED:
        return JSONResponse(
            {
                "mensaje": "Pago actualizado con la opción de pago.",
                "status": "ACTUALIZADO",
                "pago": payment_summary(result.record),
            }
        )
    return JSONResponse(
        {
            "mensaje": "Pago aprobado y registrado exitosamente.",
            "status": "APROBADO",
            "pago": payment_summary(result.record),
        },
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/wompi-webhook")
def gateway_webhook(event: dict[str, Any] = Body(...), db: Session = Depends(get_db)) -> dict[str, Any]:
    if event.get("type") != TRANSACTION_UPDATED:
        logger.info("Ignoring gateway event of type %r", event.get("type"))
        return {"message": "Evento no procesado"}

    transaction = verify_event(event, settings.gateway_event_secret)
    try:
        result = reconcile(db, transaction, confirmed_via=CONFIRMED_VIA_WEBHOOK)
    except SQLAlchemyError as exc:
        logger.exception("Storing webhook transaction %s failed", transaction.get("id"))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not store the transaction",
        ) from exc

    if result.status is ReconcileStatus.NOT_APPROVED:
        return {"message": "Transacción no aprobada", "status": result.transaction_status}
    if result.status is ReconcileStatus.DUPLICATED:
        return {"message": "Transacción ya procesada", "pago": payment_detail(result.record)}
    return {"message": "Webhook procesado exitosamente", "pago": payment_detail(result.record)}


@router.get("/estado/{transaction_id}")
def payment_status(transaction_id: str, db: Session = Depends(get_db)) -> JSONResponse:
    record = find_payment(db, transaction_id)
    if record is None:
        return JSONResponse(
            {"status": "PENDIENTE", "mensaje": "Pago no encontrado o aún no procesado."},
            status_code=status.HTTP_404_NOT_FOUND,
        )
    return JSONResponse(
        jsonable_encoder(
            {
                "status": "APROBADO",
                "pago": {
                    **payment_summary(record),
                    "fecha": record.paid_at,
                    "webhook_procesado": record.confirmed_via == CONFIRMED_VIA_WEBHOOK,
                },
            }
        )
    )


@router.get("/reporte-excel")
def payments_report(
    fecha: str | None = Query(None),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Response:
    if not fecha:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The fecha parameter is required")
    try:
        day = date.fromisoformat(fecha)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="fecha must use the YYYY-MM-DD format"
        ) from exc

    payments = payments_paid_on(db, day)
    if not payments:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No payments on {day.isoformat()}")

    return Response(
        content=payments_workbook(payments),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename=reporte_pagos_{day.isoformat()}.xlsx"},
    )


@router.get("/wompi/config")
def gateway_config() -> dict[str, str]:
    if not settings.gateway_public_key:
        raise ConfigurationError("GATEWAY_PUBLIC_KEY is not configured")
    return {"publicKey": settings.gateway_public_key}


@router.post("/wompi/signature", response_model=SignatureResponse)
def gateway_signature(payload: SignatureRequest) -> SignatureResponse:
    if not payload.reference or payload.amountInCents is None or not payload.currency:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="reference, amountInCents and currency are required",
        )
    if payload.amountInCents <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="amountInCents must be positive")
    signature = checkout_signature(
        payload.reference,
        payload.amountInCents,
        payload.currency,
        settings.gateway_integrity_secret,
        redirect_url=payload.redirectUrl,
    )
    return SignatureResponse(signature=signature, publicKey=settings.gateway_public_key)
