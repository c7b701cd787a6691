from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PaymentStatus = Literal["pending", "completed", "failed", "cancelled", "refunded"]


class CamelModel(BaseModel):
    """JSON'da camelCase (orderId), Python'da snake_case (order_id)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaymentStatusUpdateRequest(CamelModel):
    order_id: str = Field(min_length=1)
    payment_status: PaymentStatus
    webhook_source: str | None = None
    generate_invoice: bool = True
    force: bool = False
    allow_any_transition: bool = False


class BatchUpdateItem(CamelModel):
    order_id: str = Field(min_length=1)
    new_status: str = Field(min_length=1)
    webhook_source: str | None = None


class BatchUpdateRequest(CamelModel):
    updates: list[BatchUpdateItem] = Field(min_length=1)
    generate_invoices: bool = True


class VerifyPaymentRequest(CamelModel):
    order_id: str = Field(min_length=1)


class PaymentStatusResult(CamelModel):
    """Tek sipariş güncelleme sonucu; toplu işlemde başarısız öğe için success=False + error."""

    success: bool = True
    message: str | None = None
    order_id: str
    old_status: str | None = None
    new_status: str | None = None
    payment_updated: bool = False
    invoice_generated: bool = False
    invoice_already_exists: bool = False
    invoice_size: int | None = None
    invoice_renderer: str | None = None
    invoice_error: str | None = None
    error: str | None = None


class BatchUpdateResult(CamelModel):
    success: bool = True
    total_processed: int
    results: list[PaymentStatusResult]


class PaymentVerification(CamelModel):
    success: bool = True
    order_id: str
    payment_status: str
    order_status: str | None = None
    gateway_status: str | None = None
    message: str | None = None
    invoice_generated: bool = False


class PendingInvoiceOrder(CamelModel):
    """Listeleme satırı: alan adları tablo sütunlarıyla aynı (snake_case) döner."""

    model_config = ConfigDict(alias_generator=None)

    id: str
    unique_order_id: str | None = None
    customer_name: str | None = None
    total_amount: float
    payment_status: str
    created_at: datetime
    invoice_generated: bool | None = None
    restaurant_name: str | None = None
