"""Cashfree webhook → iç ödeme durumu. Sağlayıcı iç sipariş id'sini bilmez; payment_gateway_order_id ile eşlenir."""
import json
import logging
from typing import NamedTuple

from app.core.config import settings
from app.core.security import verify_signature
from app.services.errors import InvalidTransitionError, OrderNotFound, PipelineError, ValidationError
from app.services.payment_status import PaymentStatusHandler

log = logging.getLogger("servenow.webhook")

# webhook type -> (payment_status, order status)
WEBHOOK_STATUS_MAP: dict[str, tuple[str, str]] = {
    # Ödeme alındı; sipariş restoranın onayını bekler (confirmed değil)
    "PAYMENT_SUCCESS_WEBHOOK": ("completed", "pending"),
    "PAYMENT_FAILED_WEBHOOK": ("failed", "cancelled"),
}


class UnauthorizedWebhook(PipelineError):
    status_code = 401
    message = "Invalid webhook signature"


class WebhookNotConfigured(PipelineError):
    status_code = 503
    message = "Webhook secret is not configured"


class WebhookAck(NamedTuple):
    message: str
    order_id: str | None = None
    payment_status: str | None = None
    invoice_generated: bool = False


def check_signature(raw_body: bytes, signature: str | None) -> None:
    """
    İmza politikası WEBHOOK_SIGNATURE_REQUIRED ile açıkça belirlenir:
    zorunluysa imzasız istek 400; imza geldiyse ve secret tanımlıysa her zaman doğrulanır.
    """
    secret = settings.webhook_secret
    if not signature:
        if settings.webhook_signature_required:
            raise ValidationError("No signature provided")
        log.warning("Webhook accepted without signature (signature not required)")
        return
    if not secret:
        if settings.webhook_signature_required:
            raise WebhookNotConfigured()
        log.warning("Webhook signature present but no secret configured; skipping verification")
        return
    if not verify_signature(raw_body, signature, secret):
        raise UnauthorizedWebhook()


def parse_payload(raw_body: bytes) -> dict:
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ValidationError("Invalid JSON payload") from e
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _gateway_order_id(payload: dict) -> str | None:
    data = payload.get("data")
    order = data.get("order") if isinstance(data, dict) else None
    value = order.get("order_id") if isinstance(order, dict) else None
    return str(value).strip() if value not in (None, "") else None


def handle_webhook(handler: PaymentStatusHandler, raw_body: bytes, signature: str | None) -> WebhookAck:
    check_signature(raw_body, signature)
    payload = parse_payload(raw_body)
    webhook_type = str(payload.get("type") or "")
    log.info("[WEBHOOK] type=%s", webhook_type or "-")

    mapped = WEBHOOK_STATUS_MAP.get(webhook_type)
    if mapped is None:
        # Sağlayıcı sonsuza kadar tekrar denemesin: kabul et, yan etki yok
        log.info("Unhandled webhook type acknowledged: %s", webhook_type or "-")
        return WebhookAck(message="Webhook received")

    gateway_order_id = _gateway_order_id(payload)
    if not gateway_order_id:
        raise ValidationError("No order ID provided")
    order = handler.store.get_by_gateway_order_id(gateway_order_id)
    if order is None:
        log.info("Order not found for Cashfree order ID: %s", gateway_order_id)
        raise OrderNotFound(gateway_order_id, by_gateway_id=True)

    payment_status, order_status = mapped
    try:
        result = handler.update_payment_status(
            order.id,
            payment_status,
            webhook_source=f"cashfree:{webhook_type}",
            order_status=order_status,
        )
    except InvalidTransitionError as e:
        log.warning("Webhook transition ignored: order_id=%s %s", order.id, e)
        return WebhookAck(message="Transition ignored", order_id=order.id, payment_status=e.old_status)

    message = "Payment confirmed" if payment_status == "completed" else "Payment failure recorded"
    return WebhookAck(
        message=message,
        order_id=order.id,
        payment_status=payment_status,
        invoice_generated=result.invoice_generated,
    )
