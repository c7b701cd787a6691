"""
Ödeme durumu güncelleme ve tamamlanan ödemede otomatik fatura.
Ödeme gerçeği ile fatura gerçeği ayrıdır: render hatası ödeme güncellemesini geri almaz.
"""
import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from app.models import PAYMENT_STATUSES, utcnow
from app.schemas import BatchUpdateItem, BatchUpdateResult, PaymentStatusResult, PaymentVerification
from app.services.errors import (
    InvalidTransitionError,
    OrderDataInvalidError,
    OrderNotFound,
    PipelineError,
    RenderError,
    StoreError,
    ValidationError,
)
from app.services.gateway import GATEWAY_STATUS_MAP, PaymentGateway
from app.services.invoice_renderer import InvoiceRenderer
from app.services.invoicing import issue_invoice
from app.services.order_store import OrderStore

log = logging.getLogger("servenow.payments")

# Aynı duruma tekrar geçiş her zaman serbest (idempotent)
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"completed", "failed", "cancelled"}),
    "completed": frozenset({"pending", "cancelled", "refunded"}),
    "failed": frozenset(),
    "cancelled": frozenset(),
    "refunded": frozenset(),
}


def can_transition(old_status: str | None, new_status: str) -> bool:
    old_status = old_status or "pending"
    if old_status == new_status:
        return True
    return new_status in ALLOWED_TRANSITIONS.get(old_status, frozenset())


class PaymentStatusHandler:
    def __init__(
        self,
        store: OrderStore,
        renderer: InvoiceRenderer,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.renderer = renderer
        self.clock = clock

    def update_payment_status(
        self,
        order_id: str,
        new_status: str,
        *,
        generate_invoice: bool = True,
        webhook_source: str | None = None,
        force: bool = False,
        allow_any_transition: bool = False,
        order_status: str | None = None,
    ) -> PaymentStatusResult:
        """
        force yalnızca mevcut faturayı yeniden üretir; geçiş kurallarını aşmak için
        ayrıca allow_any_transition gerekir.
        """
        if new_status not in PAYMENT_STATUSES:
            raise ValidationError(
                f"Invalid payment status. Must be one of: {', '.join(PAYMENT_STATUSES)}",
            )
        order = self.store.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        old_status = order.payment_status
        if not allow_any_transition and not can_transition(old_status, new_status):
            raise InvalidTransitionError(old_status, new_status)

        now = self.clock()
        order = self.store.update_payment_status(order, new_status, order_status=order_status, now=now)
        log.info(
            "Payment status updated: order_id=%s %s -> %s source=%s",
            order_id,
            old_status,
            new_status,
            webhook_source or "manual",
        )
        result = PaymentStatusResult(
            message="Payment status updated successfully",
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            payment_updated=True,
        )

        if new_status == "completed" and generate_invoice:
            try:
                outcome = issue_invoice(self.store, self.renderer, order, force=force, now=now)
            except OrderDataInvalidError as e:
                log.warning("Invoice skipped, invalid order data: order_id=%s problems=%s", order_id, e.details)
                result.invoice_error = f"{e.error}: {e.details}"
            except (RenderError, StoreError) as e:
                log.error("Invoice generation failed: order_id=%s error=%s details=%s", order_id, e, e.details)
                result.invoice_error = e.error
            else:
                result.invoice_generated = outcome.generated
                result.invoice_already_exists = outcome.already_exists
                if outcome.generated:
                    result.invoice_size = outcome.size
                    result.invoice_renderer = outcome.renderer

        self._log_status_update(order_id, new_status, webhook_source, result)
        return result

    def _log_status_update(
        self,
        order_id: str,
        new_status: str,
        source: str | None,
        result: PaymentStatusResult,
    ) -> None:
        """Denetim kaydı best-effort: hata çağırana asla yansımaz."""
        try:
            self.store.append_status_log(
                order_id,
                new_status,
                source or "manual",
                result.model_dump(mode="json", by_alias=True, exclude_none=True),
            )
        except Exception as e:
            log.warning("Payment status log write failed: order_id=%s error=%s", order_id, e)

    def batch_update_payment_status(
        self,
        updates: Iterable[BatchUpdateItem],
        *,
        generate_invoices: bool = True,
    ) -> BatchUpdateResult:
        updates = list(updates)
        results: list[PaymentStatusResult] = []
        for item in updates:
            try:
                results.append(
                    self.update_payment_status(
                        item.order_id,
                        item.new_status,
                        generate_invoice=generate_invoices,
                        webhook_source=item.webhook_source,
                    )
                )
            except PipelineError as e:
                results.append(PaymentStatusResult(success=False, order_id=item.order_id, error=e.error))
            except Exception as e:
                log.exception("Batch payment status update failed: order_id=%s", item.order_id)
                results.append(PaymentStatusResult(success=False, order_id=item.order_id, error=str(e) or "Unknown error"))
        return BatchUpdateResult(total_processed=len(updates), results=results)

    def verify_payment(self, order_id: str, gateway: PaymentGateway | None) -> PaymentVerification:
        """
        İstemci yoklaması: siparişin durumunu ödeme sağlayıcısındaki durumla eşitler.
        GatewayError yukarı fırlatılır; API son bilinen durumu onunla birlikte döner.
        """
        order = self.store.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order.payment_status in ("completed", "failed"):
            return PaymentVerification(order_id=order_id, payment_status=order.payment_status, order_status=order.status)
        if not order.payment_gateway_order_id:
            return PaymentVerification(
                order_id=order_id,
                payment_status=order.payment_status,
                order_status=order.status,
                message="No payment gateway order ID found",
            )
        if gateway is None:
            return PaymentVerification(
                order_id=order_id,
                payment_status=order.payment_status,
                order_status=order.status,
                message="Cannot verify payment - no credentials configured",
            )

        data = gateway.fetch_order(order.payment_gateway_order_id)
        gateway_status = str(data.get("order_status") or "").upper()
        mapped = GATEWAY_STATUS_MAP.get(gateway_status)
        if mapped is None:
            return PaymentVerification(
                order_id=order_id,
                payment_status=order.payment_status,
                order_status=order.status,
                gateway_status=gateway_status or None,
                message="Unrecognized gateway status",
            )
        new_payment_status, new_order_status = mapped
        if new_payment_status == order.payment_status and new_order_status in (None, order.status):
            return PaymentVerification(
                order_id=order_id,
                payment_status=order.payment_status,
                order_status=order.status,
                gateway_status=gateway_status,
            )
        result = self.update_payment_status(
            order_id,
            new_payment_status,
            webhook_source="gateway_poll",
            order_status=new_order_status,
        )
        return PaymentVerification(
            order_id=order_id,
            payment_status=new_payment_status,
            order_status=new_order_status or order.status,
            gateway_status=gateway_status,
            invoice_generated=result.invoice_generated,
        )
