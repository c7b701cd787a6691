from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from ._time import utcnow


class PaymentStatusLog(SQLModel, table=True):
    """Ödeme durumu denetim kaydı (yalnızca ekleme)."""

    __tablename__ = "payment_status_logs"
    id: int | None = Field(default=None, primary_key=True)
    order_id: str = Field(index=True)
    new_status: str
    source: str = "manual"  # webhook adı, "manual" veya iş adı
    result: dict | None = Field(default=None, sa_column=Column(JSON))
    logged_at: datetime = Field(default_factory=utcnow)


class InvoiceGenerationFailure(SQLModel, table=True):
    """Toplu iş deneme hakkını bitirdiğinde manuel inceleme için kayıt."""

    __tablename__ = "invoice_generation_failures"
    id: int | None = Field(default=None, primary_key=True)
    order_id: str = Field(index=True)
    error_message: str | None = None
    retry_count: int = 0
    failed_at: datetime = Field(default_factory=utcnow)
