"""Fatura uçları: yönetici ile doğrudan üretim, müşteri için önbellekli indirme."""
import base64

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from app.api.deps import get_invoice_renderer, get_order_store, require_admin
from app.core.config import settings
from app.core.rate_limit import limiter
from app.schemas import CustomerInvoiceRequest, GenerateInvoiceRequest
from app.services.errors import OrderNotFound, ValidationError
from app.services.invoice_delivery import get_customer_invoice
from app.services.invoice_renderer import InvoiceRenderer
from app.services.invoicing import issue_invoice
from app.services.order_store import OrderStore

router = APIRouter(prefix="/api", tags=["invoices"])

PREVIEW_LENGTH = 100
RATE_LIMIT_STR = f"{settings.rate_limit_per_minute}/minute"


@router.post("/auto-generate-invoice", dependencies=[Depends(require_admin)])
def auto_generate_invoice(
    body: GenerateInvoiceRequest,
    store: OrderStore = Depends(get_order_store),
    renderer: InvoiceRenderer = Depends(get_invoice_renderer),
):
    order = store.get(body.order_id)
    if order is None:
        raise OrderNotFound(body.order_id)
    if order.payment_status != "completed":
        raise ValidationError("Payment not completed yet")
    outcome = issue_invoice(store, renderer, order, force=body.force)
    content = {
        "success": True,
        "message": "Invoice generated successfully" if outcome.generated else "Invoice already exists",
        "orderId": order.id,
        "invoiceGenerated": outcome.generated,
        "invoiceAlreadyExists": outcome.already_exists,
    }
    if outcome.generated:
        content["invoiceSize"] = outcome.size
        content["renderer"] = outcome.renderer
    return content


@router.post("/store-invoice")
@limiter.limit(RATE_LIMIT_STR)
def store_invoice(
    request: Request,
    body: CustomerInvoiceRequest,
    store: OrderStore = Depends(get_order_store),
    renderer: InvoiceRenderer = Depends(get_invoice_renderer),
):
    delivered = get_customer_invoice(store, renderer, body.order_id, body.customer_phone)
    b64 = base64.b64encode(delivered.content).decode("ascii")
    return {
        "success": True,
        "message": "Invoice stored successfully",
        "orderId": body.order_id,
        "invoiceNumber": delivered.invoice_number,
        "invoiceId": delivered.invoice_id,
        "source": delivered.source,
        "mediaType": delivered.media_type,
        "invoiceSize": len(delivered.content),
        "invoicePreview": b64[:PREVIEW_LENGTH] + "..." if len(b64) > PREVIEW_LENGTH else b64,
    }


@router.get("/store-invoice")
@limiter.limit(RATE_LIMIT_STR)
def download_invoice(
    request: Request,
    order_id: str = Query(..., alias="orderId", min_length=1),
    customer_phone: str = Query(..., alias="customerPhone", min_length=1),
    store: OrderStore = Depends(get_order_store),
    renderer: InvoiceRenderer = Depends(get_invoice_renderer),
):
    delivered = get_customer_invoice(store, renderer, order_id, customer_phone)
    return Response(
        content=delivered.content,
        media_type=delivered.media_type,
        headers={"Content-Disposition": f'attachment; filename="{delivered.filename}"'},
    )
