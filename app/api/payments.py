"""Ödeme durumu uçları: tekli/toplu güncelleme, fatura bekleyenler listesi, sağlayıcı ile doğrulama."""
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from app.api.deps import get_order_store, get_payment_gateway, get_payment_handler, require_admin
from app.core.config import settings
from app.core.rate_limit import limiter
from app.schemas import (
    BatchUpdateRequest,
    BatchUpdateResult,
    PaymentStatusResult,
    PaymentStatusUpdateRequest,
    PaymentVerification,
    PendingInvoices,
    VerifyPaymentRequest,
)
from app.services.errors import GatewayError
from app.services.gateway import PaymentGateway
from app.services.invoice_job import MAX_PENDING_INVOICE_LIMIT, pending_invoice_orders
from app.services.order_store import OrderStore
from app.services.payment_status import PaymentStatusHandler

log = logging.getLogger("servenow.payments")

router = APIRouter(prefix="/api", tags=["payments"])

RATE_LIMIT_STR = f"{settings.rate_limit_per_minute}/minute"


@router.post(
    "/update-payment-status",
    response_model=PaymentStatusResult,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    dependencies=[Depends(require_admin)],
)
def update_payment_status(
    body: PaymentStatusUpdateRequest,
    handler: PaymentStatusHandler = Depends(get_payment_handler),
):
    return handler.update_payment_status(
        body.order_id,
        body.payment_status,
        generate_invoice=body.generate_invoice,
        webhook_source=body.webhook_source,
        force=body.force,
        allow_any_transition=body.allow_any_transition,
    )


@router.put(
    "/update-payment-status",
    response_model=BatchUpdateResult,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    dependencies=[Depends(require_admin)],
)
def batch_update_payment_status(
    body: BatchUpdateRequest,
    handler: PaymentStatusHandler = Depends(get_payment_handler),
):
    return handler.batch_update_payment_status(body.updates, generate_invoices=body.generate_invoices)


@router.get("/update-payment-status", response_model=PendingInvoices, dependencies=[Depends(require_admin)])
def list_orders_needing_invoices(
    limit: int = Query(MAX_PENDING_INVOICE_LIMIT, description="En fazla 50"),
    store: OrderStore = Depends(get_order_store),
):
    orders = pending_invoice_orders(store, limit)
    return PendingInvoices(count=len(orders), orders=orders)


@router.post(
    "/verify-payment",
    response_model=PaymentVerification,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
@limiter.limit(RATE_LIMIT_STR)
def verify_payment(
    request: Request,
    body: VerifyPaymentRequest,
    handler: PaymentStatusHandler = Depends(get_payment_handler),
    gateway: PaymentGateway | None = Depends(get_payment_gateway),
):
    try:
        return handler.verify_payment(body.order_id, gateway)
    except GatewayError as e:
        # Durum tahmin edilmez: sağlayıcı hatası + siparişin son bilinen durumu
        order = handler.store.get(body.order_id)
        content = {
            "success": False,
            "error": e.error,
            "orderId": body.order_id,
            "paymentStatus": order.payment_status if order else None,
        }
        if settings.expose_error_details and e.details:
            content["details"] = e.details
        log.warning("Payment verification failed: order_id=%s status=%s", body.order_id, e.status_code)
        return JSONResponse(status_code=e.status_code, content=content)
