import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column, Text
from sqlmodel import Field, Relationship, SQLModel

from ._time import utcnow
from .restaurant import Restaurant

PAYMENT_STATUSES = ("pending", "completed", "failed", "cancelled", "refunded")


class Order(SQLModel, table=True):
    """Sipariş: ödeme durumu ve fatura alanları bu satırda tutulur."""

    __tablename__ = "orders"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    unique_order_id: str | None = Field(default=None, unique=True, index=True)  # Müşteriye gösterilen kısa kod
    restaurant_id: str | None = Field(default=None, foreign_key="restaurants.id", index=True)
    customer_name: str | None = None
    customer_phone: str | None = Field(default=None, index=True)
    table_number: str | None = None
    delivery_address: str | None = None
    # [{"name" | "dish_name", "quantity" | "qty", "price" | "unit_price", "total" | "total_price"}]
    items: list[dict] = Field(default_factory=list, sa_column=Column(JSON))
    total_amount: float = 0
    status: str = "pending"  # Sipariş akışı: pending | confirmed | cancelled | served ...
    payment_status: str = Field(default="pending", index=True)  # pending | completed | failed | cancelled | refunded
    payment_gateway_order_id: str | None = Field(default=None, index=True)  # Cashfree order_id
    invoice_generated: bool | None = Field(default=None, index=True)
    invoice_base64: str | None = Field(default=None, sa_column=Column(Text))
    invoice_generated_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime | None = None

    restaurant: Optional[Restaurant] = Relationship()

    @property
    def has_invoice(self) -> bool:
        return bool(self.invoice_generated and self.invoice_base64)

    @property
    def invoice_number(self) -> str:
        return self.unique_order_id or self.id[-8:]
