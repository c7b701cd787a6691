"""Fatura HTTP uçları: yönetici üretimi, müşteri indirmesi ve önbellek, toplu iş tetikleyicisi."""
import base64

from fastapi.testclient import TestClient
from sqlmodel import select

from app.models import Invoice

from conftest import FAKE_PDF


def test_auto_generate_invoice(client: TestClient, make_order, reload, admin_headers, renderer):
    order = make_order(payment_status="completed")
    r = client.post("/api/auto-generate-invoice", json={"orderId": order.id}, headers=admin_headers)
    assert r.status_code == 200
    j = r.json()
    assert j["invoiceGenerated"] is True
    assert j["invoiceSize"] == len(FAKE_PDF)
    assert reload(order.id).invoice_generated is True

    r = client.post("/api/auto-generate-invoice", json={"orderId": order.id}, headers=admin_headers)
    assert r.json()["invoiceAlreadyExists"] is True
    assert renderer.calls == 1

    r = client.post("/api/auto-generate-invoice", json={"orderId": order.id, "force": True}, headers=admin_headers)
    assert r.json()["invoiceGenerated"] is True
    assert renderer.calls == 2


def test_auto_generate_requires_completed_payment(client: TestClient, make_order, admin_headers):
    order = make_order()
    r = client.post("/api/auto-generate-invoice", json={"orderId": order.id}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Payment not completed yet"


def test_auto_generate_invalid_order_is_422(client: TestClient, make_order, admin_headers):
    order = make_order(payment_status="completed", items=[])
    r = client.post("/api/auto-generate-invoice", json={"orderId": order.id}, headers=admin_headers)
    assert r.status_code == 422
    j = r.json()
    assert j["error"] == "Invalid order data"
    assert "order has no line items" in j["details"]


def test_auto_generate_unknown_order(client: TestClient, admin_headers):
    r = client.post("/api/auto-generate-invoice", json={"orderId": "nope"}, headers=admin_headers)
    assert r.status_code == 404


def test_download_requires_matching_phone(client: TestClient, make_order):
    order = make_order(payment_status="completed")
    r = client.get("/api/store-invoice", params={"orderId": order.id, "customerPhone": "1112223333"})
    assert r.status_code == 404
    r = client.get("/api/store-invoice", params={"orderId": "nope", "customerPhone": "9876543210"})
    assert r.status_code == 404


def test_download_generates_then_caches(client: TestClient, make_order, reload, db, renderer):
    order = make_order(payment_status="completed")
    params = {"orderId": order.id, "customerPhone": "9876543210"}
    r = client.get("/api/store-invoice", params=params)
    assert r.status_code == 200
    assert r.content == FAKE_PDF
    assert r.headers["content-type"] == "application/pdf"
    assert r.headers["content-disposition"] == f'attachment; filename="invoice-{order.unique_order_id}.pdf"'
    assert reload(order.id).invoice_generated is True

    r = client.get("/api/store-invoice", params=params)
    assert r.status_code == 200
    assert r.content == FAKE_PDF
    assert renderer.calls == 1
    assert len(db.exec(select(Invoice).where(Invoice.order_id == order.id)).all()) == 1


def test_download_serves_existing_order_invoice(client: TestClient, make_order, renderer):
    html = "<html><body>₹ धन्यवाद</body></html>".encode("utf-8")
    order = make_order(
        payment_status="completed",
        invoice_generated=True,
        invoice_base64=base64.b64encode(html).decode(),
    )
    r = client.get("/api/store-invoice", params={"orderId": order.id, "customerPhone": "+91 98765 43210"})
    assert r.status_code == 200
    assert r.content == html
    assert r.headers["content-type"].startswith("text/html")
    assert r.headers["content-disposition"].endswith('.html"')
    assert renderer.calls == 0


def test_download_requires_completed_payment(client: TestClient, make_order):
    order = make_order()
    r = client.get("/api/store-invoice", params={"orderId": order.id, "customerPhone": "9876543210"})
    assert r.status_code == 400


def test_store_invoice_returns_size_and_preview(client: TestClient, make_order):
    order = make_order(payment_status="completed")
    r = client.post("/api/store-invoice", json={"orderId": order.id, "customerPhone": "9876543210"})
    assert r.status_code == 200
    j = r.json()
    assert j["success"] is True
    assert j["invoiceSize"] == len(FAKE_PDF)
    assert j["invoicePreview"] == base64.b64encode(FAKE_PDF).decode()
    assert j["source"] == "generated"
    assert j["invoiceNumber"] == order.unique_order_id


def test_store_invoice_validation(client: TestClient):
    r = client.post("/api/store-invoice", json={"orderId": "x"})
    assert r.status_code == 400
    assert r.json()["error"] == "Missing required field: customerPhone"


def test_job_endpoints(client: TestClient, make_order, reload, admin_headers):
    order = make_order(payment_status="completed")
    r = client.get("/api/jobs/generate-invoices", headers=admin_headers)
    assert r.status_code == 200
    j = r.json()
    assert j["status"]["isRunning"] is False
    assert j["count"] == 1

    r = client.post(
        "/api/jobs/generate-invoices",
        json={"batchSize": 5, "maxRetries": 1, "delayBetweenBatches": 0},
        headers=admin_headers,
    )
    assert r.status_code == 200
    j = r.json()
    assert j["success"] is True
    assert j["totalProcessed"] == 1
    assert j["totalSuccessful"] == 1
    assert reload(order.id).invoice_generated is True

    r = client.get("/api/jobs/generate-invoices", headers=admin_headers)
    assert r.json()["count"] == 0
    assert r.json()["status"]["lastRun"] is not None


def test_job_request_limits(client: TestClient, admin_headers):
    r = client.post("/api/jobs/generate-invoices", json={"batchSize": 500}, headers=admin_headers)
    assert r.status_code == 400
    r = client.post("/api/jobs/generate-invoices", json={"batchSize": 5})
    assert r.status_code == 403


def test_download_after_forced_rerender_serves_new_invoice(client: TestClient, make_order, admin_headers, renderer):
    order = make_order(payment_status="completed")
    params = {"orderId": order.id, "customerPhone": "9876543210"}
    assert client.get("/api/store-invoice", params=params).content == FAKE_PDF

    renderer.content = b"%PDF-1.4 corrected invoice"
    r = client.post("/api/auto-generate-invoice", json={"orderId": order.id, "force": True}, headers=admin_headers)
    assert r.json()["invoiceGenerated"] is True

    r = client.get("/api/store-invoice", params=params)
    assert r.status_code == 200
    assert r.content == b"%PDF-1.4 corrected invoice"

    # Yenilenen kopya artık önbellekten gelir
    r = client.post("/api/store-invoice", json=params)
    assert r.json()["source"] == "cache"
    assert renderer.calls == 2


def test_cache_is_keyed_by_normalized_phone(client: TestClient, make_order, db, renderer):
    order = make_order(payment_status="completed")
    r = client.post("/api/store-invoice", json={"orderId": order.id, "customerPhone": "+91 98765 43210"})
    assert r.json()["source"] == "generated"
    r = client.post("/api/store-invoice", json={"orderId": order.id, "customerPhone": "9876543210"})
    assert r.json()["source"] == "cache"

    rows = db.exec(select(Invoice).where(Invoice.order_id == order.id)).all()
    assert [row.customer_phone for row in rows] == ["9876543210"]
    assert renderer.calls == 1
