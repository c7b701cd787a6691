"""Tek sipariş için fatura adımı: var mı → doğrula → render → koşullu kaydet."""
import logging
from datetime import datetime
from typing import NamedTuple

from app.core.config import settings
from app.models import Order, utcnow
from app.services.errors import OrderDataInvalidError
from app.services.invoice_renderer import InvoiceRenderer
from app.services.order_store import OrderStore
from app.services.order_validator import order_problems

log = logging.getLogger("servenow.invoice")


class InvoiceOutcome(NamedTuple):
    generated: bool
    already_exists: bool
    size: int = 0
    renderer: str | None = None
    media_type: str | None = None


def issue_invoice(
    store: OrderStore,
    renderer: InvoiceRenderer,
    order: Order,
    *,
    force: bool = False,
    now: datetime | None = None,
) -> InvoiceOutcome:
    """
    Ödemesi tamamlanmış sipariş için faturayı üretip siparişe yazar.
    OrderDataInvalidError, RenderError, StoreError yukarı fırlatılır; karar çağırana aittir.
    """
    if order.has_invoice and not force:
        return InvoiceOutcome(generated=False, already_exists=True)
    problems = order_problems(order)
    if problems:
        raise OrderDataInvalidError(order.id, problems)
    now = now or utcnow()
    rendered = renderer.render(order, page_format=settings.invoice_page_format, now=now)
    saved = store.save_invoice(order.id, rendered.to_base64(), now=now, only_if_missing=not force)
    if not saved:
        # Eşzamanlı başka bir istek faturayı önce yazdı
        log.info("Invoice already written by a concurrent request: order_id=%s", order.id)
        return InvoiceOutcome(generated=False, already_exists=True)
    log.info(
        "Invoice saved: order_id=%s renderer=%s size=%s",
        order.id,
        rendered.renderer,
        rendered.size,
    )
    return InvoiceOutcome(
        generated=True,
        already_exists=False,
        size=rendered.size,
        renderer=rendered.renderer,
        media_type=rendered.media_type,
    )
