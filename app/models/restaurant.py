import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from ._time import utcnow


class Restaurant(SQLModel, table=True):
    """Fatura başlığı için salt okunur restoran bilgisi."""

    __tablename__ = "restaurants"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str
    address: str | None = None
    phone_number: str | None = None
    email: str | None = None
    gst_number: str | None = None  # GSTIN (vergi no)
    created_at: datetime = Field(default_factory=utcnow)
