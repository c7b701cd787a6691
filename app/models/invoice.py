from datetime import datetime

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel

from ._time import utcnow


class Invoice(SQLModel, table=True):
    """Müşteri indirmesi için önbellek: aynı sipariş + telefon tekrar render edilmez."""

    __tablename__ = "invoices"
    id: int | None = Field(default=None, primary_key=True)
    order_id: str = Field(index=True)
    customer_phone: str = Field(index=True)
    invoice_base64: str = Field(sa_column=Column(Text, nullable=False))
    media_type: str = "application/pdf"
    invoice_number: str
    restaurant_id: str | None = None
    generated_at: datetime = Field(default_factory=utcnow)
