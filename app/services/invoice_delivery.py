"""Müşteri fatura indirme: sahiplik kontrolü, önbellek, gerekirse anında üretim."""
import logging
from datetime import datetime
from typing import NamedTuple

from app.core.config import settings
from app.models import utcnow
from app.services.errors import NotFoundError, OrderDataInvalidError, ValidationError
from app.services.invoice_renderer import PDF_MEDIA_TYPE, InvoiceRenderer, decode_invoice
from app.services.order_store import OrderStore
from app.services.order_validator import order_problems

log = logging.getLogger("servenow.invoice")


class DeliveredInvoice(NamedTuple):
    content: bytes
    media_type: str
    invoice_number: str
    source: str  # cache | order | generated
    invoice_id: int | None = None

    @property
    def filename(self) -> str:
        ext = "pdf" if self.media_type == PDF_MEDIA_TYPE else "html"
        return f"invoice-{self.invoice_number}.{ext}"


def _normalize_phone(phone: str | None) -> str:
    return "".join(ch for ch in (phone or "") if ch.isdigit())[-10:]


def get_customer_invoice(
    store: OrderStore,
    renderer: InvoiceRenderer,
    order_id: str,
    customer_phone: str,
    *,
    now: datetime | None = None,
) -> DeliveredInvoice:
    order = store.get(order_id)
    phone_key = _normalize_phone(customer_phone)
    if order is None or not phone_key or _normalize_phone(order.customer_phone) != phone_key:
        # Telefon uyuşmazlığı ile bilinmeyen sipariş ayırt edilmez
        raise NotFoundError("Order not found or phone number mismatch")

    cached = store.get_cached_invoice(order.id, phone_key)
    # Zorla yeniden üretilen fatura önbellekteki eski kopyanın yerine geçer
    if cached is not None and order.invoice_generated_at and cached.generated_at < order.invoice_generated_at:
        log.info("Cached invoice is stale, refreshing: order_id=%s", order.id)
        cached = None
    if cached is not None:
        content, media_type = decode_invoice(cached.invoice_base64)
        return DeliveredInvoice(content, media_type, cached.invoice_number, "cache", cached.id)

    if order.has_invoice:
        content, media_type = decode_invoice(order.invoice_base64)
        row = store.cache_invoice(order, phone_key, order.invoice_base64, media_type)
        return DeliveredInvoice(content, media_type, order.invoice_number, "order", row.id)

    if order.payment_status != "completed":
        raise ValidationError("Payment not completed yet")
    problems = order_problems(order)
    if problems:
        raise OrderDataInvalidError(order.id, problems)

    now = now or utcnow()
    rendered = renderer.render(order, page_format=settings.invoice_page_format, now=now)
    invoice_b64 = rendered.to_base64()
    row = store.cache_invoice(order, phone_key, invoice_b64, rendered.media_type, generated_at=now)
    # Sipariş satırına da yaz; başka bir istek önce yazdıysa dokunma
    store.save_invoice(order.id, invoice_b64, now=now, only_if_missing=True)
    log.info("On-demand invoice generated: order_id=%s renderer=%s size=%s", order.id, rendered.renderer, rendered.size)
    return DeliveredInvoice(rendered.content, rendered.media_type, order.invoice_number, "generated", row.id)
