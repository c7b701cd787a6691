from fastapi import Depends, Header, HTTPException, Request, status
from sqlmodel import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.security import constant_time_equals
from app.services.gateway import PaymentGateway, get_gateway
from app.services.invoice_job import InvoiceBackgroundJob
from app.services.invoice_renderer import InvoiceRenderer, default_renderer
from app.services.order_store import OrderStore
from app.services.payment_status import PaymentStatusHandler


def get_invoice_renderer() -> InvoiceRenderer:
    """Testlerde dependency_overrides ile sahte renderer verilir."""
    return default_renderer()


def get_payment_gateway() -> PaymentGateway | None:
    return get_gateway()


def get_order_store(db: Session = Depends(get_db)) -> OrderStore:
    return OrderStore(db)


def get_payment_handler(
    store: OrderStore = Depends(get_order_store),
    renderer: InvoiceRenderer = Depends(get_invoice_renderer),
) -> PaymentStatusHandler:
    return PaymentStatusHandler(store, renderer)


def get_invoice_job(request: Request) -> InvoiceBackgroundJob:
    job = getattr(request.app.state, "invoice_job", None)
    if job is None:
        raise HTTPException(status_code=503, detail="Invoice job is not available")
    return job


def require_admin(
    x_admin_secret: str | None = Header(None, alias="X-Admin-Secret"),
) -> None:
    """Yönetim uçları: X-Admin-Secret header, constant-time karşılaştırma."""
    expected = settings.admin_secret
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin access is not configured (ADMIN_SECRET missing)",
        )
    if not constant_time_equals(x_admin_secret, expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
