from datetime import datetime

from pydantic import Field

from .payment import CamelModel, PendingInvoiceOrder


class GenerateInvoiceRequest(CamelModel):
    order_id: str = Field(min_length=1)
    force: bool = False


class CustomerInvoiceRequest(CamelModel):
    order_id: str = Field(min_length=1)
    customer_phone: str = Field(min_length=1)


class InvoiceJobRequest(CamelModel):
    batch_size: int = Field(default=10, ge=1, le=50)
    max_retries: int = Field(default=3, ge=1, le=10)
    delay_between_batches: int = Field(default=1000, ge=0, le=60_000)  # ms


class InvoiceJobItem(CamelModel):
    order_id: str
    success: bool
    attempts: int = 1
    invoice_size: int | None = None
    error: str | None = None


class InvoiceJobResult(CamelModel):
    success: bool = True
    message: str
    total_processed: int = 0
    total_successful: int = 0
    total_failed: int = 0
    results: list[InvoiceJobItem] = []
    start_time: datetime | None = None
    end_time: datetime | None = None
    error: str | None = None


class InvoiceJobStatus(CamelModel):
    is_running: bool
    last_run: datetime | None = None


class PendingInvoices(CamelModel):
    success: bool = True
    count: int
    orders: list[PendingInvoiceOrder]
