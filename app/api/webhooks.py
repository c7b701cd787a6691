"""Ödeme sağlayıcısı webhook'u; imza ham gövde üzerinden doğrulanır."""
from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_payment_handler
from app.core.config import settings
from app.core.rate_limit import limiter
from app.services.payment_status import PaymentStatusHandler
from app.services.webhook import handle_webhook

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

WEBHOOK_RATE_LIMIT = f"{settings.webhook_rate_limit_per_minute}/minute"


@router.post("/cashfree")
@limiter.limit(WEBHOOK_RATE_LIMIT)
async def cashfree_webhook(
    request: Request,
    handler: PaymentStatusHandler = Depends(get_payment_handler),
):
    raw_body = await request.body()
    ack = await run_in_threadpool(handle_webhook, handler, raw_body, request.headers.get("x-webhook-signature"))
    content = {"success": True, "message": ack.message}
    if ack.order_id:
        content["orderId"] = ack.order_id
        content["paymentStatus"] = ack.payment_status
        content["invoiceGenerated"] = ack.invoice_generated
    return content
