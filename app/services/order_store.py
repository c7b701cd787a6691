"""Sipariş tablosu erişimi. Tüm sorgular burada; SQLAlchemy hataları StoreError'a çevrilir."""
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, col, select

from app.models import Invoice, InvoiceGenerationFailure, Order, PaymentStatusLog, utcnow
from app.services.errors import StoreError


def _needs_invoice():
    return or_(col(Order.invoice_generated).is_(None), col(Order.invoice_generated).is_(False))


class OrderStore:
    def __init__(self, db: Session):
        self.db = db

    def _fail(self, action: str, e: Exception) -> StoreError:
        self.db.rollback()
        return StoreError(f"Failed to {action}", details=str(e)[:500])

    def get(self, order_id: str) -> Order | None:
        try:
            return self.db.get(Order, order_id)
        except SQLAlchemyError as e:
            raise self._fail("load order", e) from e

    def get_by_gateway_order_id(self, gateway_order_id: str) -> Order | None:
        try:
            stmt = select(Order).where(Order.payment_gateway_order_id == gateway_order_id)
            return self.db.exec(stmt).first()
        except SQLAlchemyError as e:
            raise self._fail("load order", e) from e

    def update_payment_status(
        self,
        order: Order,
        payment_status: str,
        *,
        order_status: str | None = None,
        now: datetime | None = None,
    ) -> Order:
        order.payment_status = payment_status
        if order_status:
            order.status = order_status
        order.updated_at = now or utcnow()
        try:
            self.db.add(order)
            self.db.commit()
            self.db.refresh(order)
        except SQLAlchemyError as e:
            raise self._fail("update payment status", e) from e
        return order

    def save_invoice(
        self,
        order_id: str,
        invoice_b64: str,
        *,
        now: datetime | None = None,
        only_if_missing: bool = True,
    ) -> bool:
        """
        Faturayı tek UPDATE ile yazar. only_if_missing=True iken yalnızca henüz faturası olmayan
        ve ödemesi tamamlanmış satır güncellenir; 0 satır etkilenirse False döner (başka yazan kazandı).
        """
        now = now or utcnow()
        stmt = (
            update(Order)
            .where(col(Order.id) == order_id, col(Order.payment_status) == "completed")
            .values(
                invoice_base64=invoice_b64,
                invoice_generated=True,
                invoice_generated_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if only_if_missing:
            stmt = stmt.where(_needs_invoice())
        try:
            updated = self.db.exec(stmt).rowcount or 0
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("save invoice", e) from e
        # ORM kimlik haritasındaki kopya eski kalmasın
        cached = self.db.get(Order, order_id)
        if cached is not None:
            self.db.refresh(cached)
        return updated > 0

    def list_needing_invoices(self, limit: int, exclude_ids: Iterable[str] = ()) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.payment_status == "completed", _needs_invoice())
            .options(selectinload(Order.restaurant))
            .order_by(col(Order.created_at).desc())
            .limit(limit)
        )
        exclude = list(exclude_ids)
        if exclude:
            stmt = stmt.where(col(Order.id).not_in(exclude))
        try:
            return list(self.db.exec(stmt).all())
        except SQLAlchemyError as e:
            raise self._fail("list orders needing invoices", e) from e

    def append_status_log(self, order_id: str, new_status: str, source: str, result: dict | None) -> None:
        try:
            self.db.add(PaymentStatusLog(order_id=order_id, new_status=new_status, source=source, result=result))
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("write payment status log", e) from e

    def record_invoice_failure(self, order_id: str, error_message: str, retry_count: int) -> None:
        try:
            self.db.add(
                InvoiceGenerationFailure(
                    order_id=order_id,
                    error_message=error_message[:2000],
                    retry_count=retry_count,
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("record invoice failure", e) from e

    def get_cached_invoice(self, order_id: str, customer_phone: str) -> Invoice | None:
        stmt = (
            select(Invoice)
            .where(Invoice.order_id == order_id, Invoice.customer_phone == customer_phone)
            .order_by(col(Invoice.id).desc())
        )
        try:
            return self.db.exec(stmt).first()
        except SQLAlchemyError as e:
            raise self._fail("load invoice", e) from e

    def cache_invoice(
        self,
        order: Order,
        customer_phone: str,
        invoice_b64: str,
        media_type: str,
        *,
        generated_at: datetime | None = None,
    ) -> Invoice:
        """customer_phone normalize edilmiş anahtar olarak gelir (son 10 hane)."""
        row = Invoice(
            order_id=order.id,
            customer_phone=customer_phone,
            invoice_base64=invoice_b64,
            media_type=media_type,
            invoice_number=order.invoice_number,
            restaurant_id=order.restaurant_id,
            generated_at=generated_at or utcnow(),
        )
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as e:
            raise self._fail("store invoice", e) from e
        return row
