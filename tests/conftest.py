"""Pytest fixtures: test client, test DB (in-memory SQLite), sipariş fabrikası, sahte renderer'lar."""
import os

import pytest
from fastapi.testclient import TestClient

# Test ortamında in-memory SQLite (app import edilmeden önce set edilmeli)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ADMIN_SECRET", "test-admin-secret")
os.environ.setdefault("WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("WEBHOOK_SIGNATURE_REQUIRED", "false")
# WeasyPrint sistem kütüphaneleri testte gerekmesin
os.environ.setdefault("INVOICE_PDF_ENABLED", "false")
os.environ.setdefault("CASHFREE_CLIENT_ID", "")
os.environ.setdefault("CASHFREE_CLIENT_SECRET", "")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")
os.environ.setdefault("WEBHOOK_RATE_LIMIT_PER_MINUTE", "1000")

from sqlmodel import Session, SQLModel

from app.api.deps import get_invoice_renderer
from app.core.database import engine, init_db
from app.main import app
from app.models import Order, Restaurant
from app.services.errors import RenderError
from app.services.invoice_renderer import PDF_MEDIA_TYPE, RenderedInvoice

ADMIN_SECRET = os.environ["ADMIN_SECRET"]
FAKE_PDF = b"%PDF-1.4 fake invoice"


class StaticRenderer:
    """Her çağrıda sabit içerik döner; çağrı sayısını tutar."""

    name = "fake"

    def __init__(self, content: bytes = FAKE_PDF, media_type: str = PDF_MEDIA_TYPE):
        self.content = content
        self.media_type = media_type
        self.calls = 0

    def render(self, order, *, page_format="A4", now=None):
        self.calls += 1
        return RenderedInvoice(self.content, self.media_type, self.name)


class FailingRenderer:
    name = "broken"

    def __init__(self, fail_times: int | None = None, then: bytes = FAKE_PDF):
        self.fail_times = fail_times  # None: hep hata
        self.then = then
        self.calls = 0

    def render(self, order, *, page_format="A4", now=None):
        self.calls += 1
        if self.fail_times is None or self.calls <= self.fail_times:
            raise RenderError("Invoice rendering failed", details="engine crashed")
        return RenderedInvoice(self.then, PDF_MEDIA_TYPE, self.name)


@pytest.fixture(autouse=True)
def _fresh_tables():
    """Her test boş tablolarla başlar (aynı in-memory bağlantı)."""
    init_db()
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


@pytest.fixture
def renderer():
    return StaticRenderer()


@pytest.fixture(scope="function")
def client(renderer):
    """TestClient; lifespan ile tablolar hazır olur, renderer sahte olanla değiştirilir."""
    app.dependency_overrides[get_invoice_renderer] = lambda: renderer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Secret": ADMIN_SECRET}


@pytest.fixture
def make_restaurant(db):
    def _make(**overrides) -> Restaurant:
        data = {
            "name": "Spice Garden",
            "address": "12 MG Road, Bengaluru",
            "phone_number": "+91 80 1234 5678",
            "gst_number": "29ABCDE1234F1Z5",
        }
        data.update(overrides)
        restaurant = Restaurant(**data)
        db.add(restaurant)
        db.commit()
        db.refresh(restaurant)
        return restaurant

    return _make


@pytest.fixture
def make_order(db, make_restaurant):
    counter = {"n": 0}

    def _make(restaurant: Restaurant | None = None, **overrides) -> Order:
        counter["n"] += 1
        if restaurant is None and "restaurant_id" not in overrides:
            restaurant = make_restaurant()
        data = {
            "unique_order_id": f"SN{counter['n']:04d}",
            "restaurant_id": restaurant.id if restaurant else None,
            "customer_name": "Asha Rao",
            "customer_phone": "9876543210",
            "table_number": "7",
            "items": [
                {"dish_name": "Masala Dosa", "quantity": 2, "price": 120},
                {"name": "Filter Coffee", "qty": 1, "unit_price": 60},
            ],
            "total_amount": 300.0,
            "payment_status": "pending",
        }
        data.update(overrides)
        order = Order(**data)
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make


@pytest.fixture
def reload(db):
    """API çağrısından sonra siparişi veritabanından taze okur."""

    def _reload(order_id: str) -> Order | None:
        db.expire_all()
        return db.get(Order, order_id)

    return _reload
