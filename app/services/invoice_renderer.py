"""
Fatura çıktısı: Order → Jinja2 şablonu → WeasyPrint PDF; PDF motoru yoksa/hata verirse
aynı veriden bağımsız (self-contained) HTML belge üretilir.
"""
import base64
import logging
from datetime import datetime
from pathlib import Path
from typing import NamedTuple, Protocol

from jinja2 import Environment, FileSystemLoader

from app.core.config import settings
from app.models import Order, utcnow
from app.services.errors import RenderError
from app.services.order_validator import line_items

log = logging.getLogger("servenow.invoice")

_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
_ENV = Environment(loader=FileSystemLoader(str(_TEMPLATES_DIR)), autoescape=True)

PDF_MEDIA_TYPE = "application/pdf"
HTML_MEDIA_TYPE = "text/html; charset=utf-8"
PAGE_FORMATS = ("A4", "Letter")

_STATUS_CLASSES = {
    "completed": "status-completed",
    "served": "status-completed",
    "pending": "status-pending",
    "failed": "status-failed",
    "cancelled": "status-failed",
    "refunded": "status-failed",
    "in_progress": "status-in-progress",
}


class RenderedInvoice(NamedTuple):
    content: bytes
    media_type: str
    renderer: str

    @property
    def size(self) -> int:
        return len(self.content)

    def to_base64(self) -> str:
        return base64.b64encode(self.content).decode("ascii")

    def preview(self, length: int = 100) -> str:
        """Yanıtlarda tam içerik dönülmez; yalnızca kısaltılmış base64 önizleme."""
        b64 = self.to_base64()
        return b64[:length] + "..." if len(b64) > length else b64


class InvoiceRenderer(Protocol):
    name: str

    def render(self, order: Order, *, page_format: str = "A4", now: datetime | None = None) -> RenderedInvoice: ...


def _money(amount: float) -> str:
    return f"{amount:.2f}"


def _quantity(q: float) -> str:
    return str(int(q)) if float(q).is_integer() else f"{q:g}"


def _label(status: str | None) -> str:
    s = (status or "").replace("_", " ").strip()
    return s[:1].upper() + s[1:] if s else "-"


def build_invoice_context(order: Order, now: datetime | None = None) -> dict:
    """Şablon için bağlam: restoran başlığı, müşteri, kalemler, GST dökümü."""
    now = now or utcnow()
    total = float(order.total_amount or 0)
    rate = float(settings.invoice_gst_rate or 0)
    subtotal = round(total / (1 + rate / 100), 2)
    half_tax = round(subtotal * rate / 200, 2)
    restaurant = order.restaurant
    created = order.created_at or now
    return {
        "invoice_number": order.invoice_number,
        "restaurant": {
            "name": (restaurant.name if restaurant else None) or "Unknown Restaurant",
            "address": (restaurant.address if restaurant else None) or "Address not available",
            "phone": (restaurant.phone_number if restaurant else None) or "Phone not available",
            "gst_number": (restaurant.gst_number if restaurant else None) or "GST not available",
        },
        "order_date": created.strftime("%d %B %Y, %I:%M %p"),
        "table_number": order.table_number or "N/A",
        "delivery_address": order.delivery_address,
        "customer_name": order.customer_name or "Customer",
        "customer_phone": order.customer_phone or "-",
        "order_status": _label(order.status),
        "payment_status": _label(order.payment_status),
        "order_status_class": _STATUS_CLASSES.get((order.status or "").lower(), "status-pending"),
        "payment_status_class": _STATUS_CLASSES.get((order.payment_status or "").lower(), "status-pending"),
        "items": [
            {
                "name": item.name or "Unknown Item",
                "quantity": _quantity(item.quantity),
                "unit_price": _money(item.unit_price),
                "total": _money(item.total),
            }
            for item in line_items(order)
        ],
        "currency": settings.invoice_currency_label,
        "half_rate": f"{rate / 2:g}",
        "subtotal": _money(subtotal),
        "cgst": _money(half_tax),
        "sgst": _money(half_tax),
        "total": _money(total),
        "brand_name": settings.invoice_brand_name,
        "generated_at": now.strftime("%d %B %Y, %I:%M %p UTC"),
    }


def render_invoice_html(
    order: Order,
    *,
    now: datetime | None = None,
    for_print: bool = False,
    page_format: str = "A4",
) -> str:
    context = build_invoice_context(order, now=now)
    template = _ENV.get_template("invoice.html")
    return template.render(
        **context,
        for_print=for_print,
        standalone=not for_print,
        page_format=page_format if page_format in PAGE_FORMATS else "A4",
    )


class PdfRenderer:
    """WeasyPrint ile PDF (lazy import: sistem kütüphaneleri sunucu başlarken gerekmez)."""

    name = "pdf"

    def render(self, order: Order, *, page_format: str = "A4", now: datetime | None = None) -> RenderedInvoice:
        html_str = render_invoice_html(order, now=now, for_print=True, page_format=page_format)
        try:
            from weasyprint import HTML

            pdf_bytes = HTML(string=html_str, base_url=str(_TEMPLATES_DIR)).write_pdf()
        except Exception as e:
            raise RenderError("PDF rendering failed", details=str(e)[:500]) from e
        if not pdf_bytes:
            raise RenderError("PDF rendering failed", details="renderer returned no content")
        return RenderedInvoice(pdf_bytes, PDF_MEDIA_TYPE, self.name)


class HtmlFallbackRenderer:
    """PDF motoru kullanılamadığında indirilebilir, UTF-8 HTML fatura."""

    name = "html"

    def render(self, order: Order, *, page_format: str = "A4", now: datetime | None = None) -> RenderedInvoice:
        try:
            html_str = render_invoice_html(order, now=now, page_format=page_format)
        except Exception as e:
            raise RenderError("HTML invoice rendering failed", details=str(e)[:500]) from e
        return RenderedInvoice(html_str.encode("utf-8"), HTML_MEDIA_TYPE, self.name)


class FallbackInvoiceRenderer:
    """Önce birincil (PDF); RenderError olursa yedek (HTML). İkisi de düşerse RenderError."""

    def __init__(self, primary: InvoiceRenderer | None, fallback: InvoiceRenderer):
        self.primary = primary
        self.fallback = fallback

    @property
    def name(self) -> str:
        return self.primary.name if self.primary else self.fallback.name

    def render(self, order: Order, *, page_format: str = "A4", now: datetime | None = None) -> RenderedInvoice:
        if self.primary is not None:
            try:
                return self.primary.render(order, page_format=page_format, now=now)
            except RenderError as e:
                log.warning(
                    "Primary invoice renderer failed, using fallback: order_id=%s renderer=%s error=%s",
                    order.id,
                    self.primary.name,
                    e.details or e,
                )
        try:
            return self.fallback.render(order, page_format=page_format, now=now)
        except RenderError as e:
            raise RenderError("Both PDF and fallback invoice generation failed", details=e.details) from e


def default_renderer() -> FallbackInvoiceRenderer:
    primary = PdfRenderer() if settings.invoice_pdf_enabled else None
    return FallbackInvoiceRenderer(primary, HtmlFallbackRenderer())


def render_invoice(
    order: Order,
    *,
    page_format: str = "A4",
    return_base64: bool = False,
    renderer: InvoiceRenderer | None = None,
) -> bytes | str:
    """PDF (veya yedek HTML) bytes; return_base64 ile base64 metin."""
    rendered = (renderer or default_renderer()).render(order, page_format=page_format)
    return rendered.to_base64() if return_base64 else rendered.content


def sniff_media_type(content: bytes) -> str:
    return PDF_MEDIA_TYPE if content[:5] == b"%PDF-" else HTML_MEDIA_TYPE


def decode_invoice(invoice_b64: str) -> tuple[bytes, str]:
    """Saklanan base64 faturayı bytes + içerik tipine çevirir."""
    try:
        content = base64.b64decode(invoice_b64, validate=True)
    except (ValueError, TypeError) as e:
        raise RenderError("Stored invoice is corrupt", details=str(e)) from e
    return content, sniff_media_type(content)
