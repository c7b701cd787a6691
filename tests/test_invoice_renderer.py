"""Fatura render: HTML yedek şablon, UTF-8 bütünlüğü, PDF → HTML geri düşme politikası."""
import base64
from datetime import datetime

import pytest

from app.models import Order, Restaurant
from app.services.errors import RenderError
from app.services.invoice_renderer import (
    HTML_MEDIA_TYPE,
    PDF_MEDIA_TYPE,
    FallbackInvoiceRenderer,
    HtmlFallbackRenderer,
    build_invoice_context,
    decode_invoice,
    render_invoice,
    render_invoice_html,
)

from conftest import FAKE_PDF, FailingRenderer, StaticRenderer

NOW = datetime(2025, 3, 1, 12, 30)


def _order(**overrides) -> Order:
    data = {
        "id": "0f8e4c1a-7b2d-4e55-9a1c-1234abcd5678",
        "unique_order_id": "SN0042",
        "customer_name": "प्रिया शर्मा",
        "customer_phone": "9876543210",
        "table_number": "4",
        "items": [
            {"dish_name": "பொங்கல்", "quantity": 2, "price": 80},
            {"name": "Mango Lassi 🥭", "qty": 1, "unit_price": 60},
        ],
        "total_amount": 220.0,
        "status": "pending",
        "payment_status": "completed",
        "created_at": datetime(2025, 3, 1, 12, 0),
    }
    data.update(overrides)
    order = Order(**data)
    order.restaurant = Restaurant(id="r-1", name="Saravana ₹ Bhavan", address="Chennai", gst_number="33ABCDE1234F1Z5")
    return order


def test_context_gst_breakdown():
    ctx = build_invoice_context(_order(total_amount=210.0), now=NOW)
    # %5: 210 / 1.05 = 200, CGST = SGST = 5
    assert ctx["subtotal"] == "200.00"
    assert ctx["cgst"] == "5.00"
    assert ctx["sgst"] == "5.00"
    assert ctx["total"] == "210.00"
    assert ctx["half_rate"] == "2.5"


def test_context_invoice_number_falls_back_to_id_suffix():
    ctx = build_invoice_context(_order(unique_order_id=None), now=NOW)
    assert ctx["invoice_number"] == "abcd5678"


def test_context_defaults_for_missing_restaurant():
    order = _order()
    order.restaurant = None
    ctx = build_invoice_context(order, now=NOW)
    assert ctx["restaurant"]["name"] == "Unknown Restaurant"
    assert ctx["restaurant"]["gst_number"] == "GST not available"


def test_html_contains_order_data():
    html = render_invoice_html(_order(), now=NOW)
    assert '<meta charset="UTF-8">' in html
    assert "Saravana ₹ Bhavan" in html
    assert "SN0042" in html
    assert "Mango Lassi 🥭" in html
    assert "Noto Sans" in html


def test_delivery_address_replaces_table():
    html = render_invoice_html(_order(delivery_address="221B Residency Road"), now=NOW)
    assert "221B Residency Road" in html


def test_html_escapes_user_input():
    html = render_invoice_html(_order(customer_name="<script>alert(1)</script>"), now=NOW)
    assert "<script>alert(1)</script>" not in html
    assert "&lt;script&gt;" in html


def test_print_html_sets_page_size():
    html = render_invoice_html(_order(), now=NOW, for_print=True, page_format="Letter")
    assert "size: Letter" in html
    html = render_invoice_html(_order(), now=NOW, for_print=True, page_format="Tabloid")
    assert "size: A4" in html


def test_utf8_survives_base64_round_trip():
    rendered = HtmlFallbackRenderer().render(_order(), now=NOW)
    assert rendered.media_type == HTML_MEDIA_TYPE
    content, media_type = decode_invoice(rendered.to_base64())
    assert media_type == HTML_MEDIA_TYPE
    text = content.decode("utf-8")
    assert "प्रिया शर्मा" in text
    assert "பொங்கல்" in text
    assert "₹" in text


def test_render_invoice_base64_option():
    b64 = render_invoice(_order(), return_base64=True, renderer=StaticRenderer())
    assert base64.b64decode(b64) == FAKE_PDF
    assert render_invoice(_order(), renderer=StaticRenderer()) == FAKE_PDF


def test_fallback_used_when_primary_fails():
    renderer = FallbackInvoiceRenderer(FailingRenderer(), HtmlFallbackRenderer())
    rendered = renderer.render(_order(), now=NOW)
    assert rendered.renderer == "html"
    assert rendered.media_type == HTML_MEDIA_TYPE


def test_primary_used_when_it_works():
    renderer = FallbackInvoiceRenderer(StaticRenderer(), HtmlFallbackRenderer())
    rendered = renderer.render(_order(), now=NOW)
    assert rendered.renderer == "fake"
    assert rendered.media_type == PDF_MEDIA_TYPE


def test_both_renderers_fail():
    renderer = FallbackInvoiceRenderer(FailingRenderer(), FailingRenderer())
    with pytest.raises(RenderError) as exc:
        renderer.render(_order(), now=NOW)
    assert str(exc.value) == "Both PDF and fallback invoice generation failed"


def test_disabled_primary_goes_straight_to_fallback():
    renderer = FallbackInvoiceRenderer(None, HtmlFallbackRenderer())
    assert renderer.name == "html"
    assert renderer.render(_order(), now=NOW).renderer == "html"


def test_preview_is_truncated():
    rendered = HtmlFallbackRenderer().render(_order(), now=NOW)
    preview = rendered.preview(100)
    assert len(preview) == 103
    assert preview.endswith("...")


def test_decode_sniffs_pdf_and_rejects_garbage():
    content, media_type = decode_invoice(base64.b64encode(FAKE_PDF).decode())
    assert content == FAKE_PDF
    assert media_type == PDF_MEDIA_TYPE
    with pytest.raises(RenderError):
        decode_invoice("not base64 at all!")
