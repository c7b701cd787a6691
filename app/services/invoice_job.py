"""
Toplu fatura işi: ödemesi tamamlanmış ama faturası olmayan siparişleri parça parça işler.
Cron/zamanlayıcı dışarıda; iş HTTP ile veya scripts/run_invoice_job.py ile tetiklenir.
"""
import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime

from sqlmodel import Session

from app.core.config import settings
from app.models import utcnow
from app.schemas import InvoiceJobItem, InvoiceJobResult, InvoiceJobStatus, PendingInvoiceOrder
from app.services.errors import OrderDataInvalidError, PipelineError
from app.services.invoice_renderer import InvoiceRenderer
from app.services.invoicing import issue_invoice
from app.services.order_store import OrderStore

log = logging.getLogger("servenow.invoice_job")

# Render motorunu korumak için istek ne olursa olsun üst sınır
MAX_PENDING_INVOICE_LIMIT = 50


def pending_invoice_orders(store: OrderStore, limit: int | None = MAX_PENDING_INVOICE_LIMIT) -> list[PendingInvoiceOrder]:
    """Faturası eksik tamamlanmış siparişler, en yenisi önce; limit 1..50 aralığına çekilir."""
    limit = max(1, min(int(limit or MAX_PENDING_INVOICE_LIMIT), MAX_PENDING_INVOICE_LIMIT))
    return [
        PendingInvoiceOrder(
            id=o.id,
            unique_order_id=o.unique_order_id,
            customer_name=o.customer_name,
            total_amount=o.total_amount,
            payment_status=o.payment_status,
            created_at=o.created_at,
            invoice_generated=o.invoice_generated,
            restaurant_name=o.restaurant.name if o.restaurant else None,
        )
        for o in store.list_needing_invoices(limit)
    ]


class InvoiceBackgroundJob:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        renderer: InvoiceRenderer,
        *,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
        retry_delay_ms: int | None = None,
    ):
        self.session_factory = session_factory
        self.renderer = renderer
        self.clock = clock
        self.sleep = sleep
        self.retry_delay_ms = settings.invoice_job_retry_delay_ms if retry_delay_ms is None else retry_delay_ms
        self._lock = threading.Lock()
        self.last_run: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def get_status(self) -> InvoiceJobStatus:
        return InvoiceJobStatus(is_running=self.is_running, last_run=self.last_run)

    def get_orders_needing_invoices(self, limit: int = MAX_PENDING_INVOICE_LIMIT) -> list[PendingInvoiceOrder]:
        with self.session_factory() as db:
            return pending_invoice_orders(OrderStore(db), limit)

    def run(
        self,
        batch_size: int = 10,
        max_retries: int = 3,
        delay_between_batches: int = 1000,
    ) -> InvoiceJobResult:
        if not self._lock.acquire(blocking=False):
            log.info("Invoice background job is already running")
            return InvoiceJobResult(success=False, message="Job already running")
        batch_size = max(1, min(batch_size, MAX_PENDING_INVOICE_LIMIT))
        max_retries = max(1, max_retries)
        start = self.clock()
        self.last_run = start
        results: list[InvoiceJobItem] = []
        try:
            log.info("Starting invoice background job: batch_size=%s max_retries=%s", batch_size, max_retries)
            attempted: set[str] = set()
            with self.session_factory() as db:
                store = OrderStore(db)
                while True:
                    orders = store.list_needing_invoices(batch_size, exclude_ids=attempted)
                    if not orders:
                        break
                    log.info("Processing batch of %s orders", len(orders))
                    for order in orders:
                        attempted.add(order.id)
                        results.append(self._process_order(store, order, max_retries))
                    if len(orders) < batch_size:
                        break
                    # Render motorunu boğmamak için parçalar arası bekleme
                    self.sleep(delay_between_batches / 1000)
        except PipelineError as e:
            log.error("Invoice background job failed: %s details=%s", e, e.details)
            return self._result(results, start, success=False, message="Invoice background job failed", error=e.error)
        finally:
            self._lock.release()
        result = self._result(results, start, success=True, message="Invoice background job completed")
        log.info(
            "Invoice background job completed: processed=%s successful=%s failed=%s",
            result.total_processed,
            result.total_successful,
            result.total_failed,
        )
        return result

    def _process_order(self, store: OrderStore, order, max_retries: int) -> InvoiceJobItem:
        order_id = order.id
        attempt = 0
        while True:
            attempt += 1
            try:
                outcome = issue_invoice(store, self.renderer, order, now=self.clock())
                return InvoiceJobItem(order_id=order_id, success=True, attempts=attempt, invoice_size=outcome.size)
            except OrderDataInvalidError as e:
                # Veri düzeltilmeden tekrar denemenin anlamı yok
                error = f"{e.error}: {e.details}"
                log.warning("Invoice skipped, invalid order data: order_id=%s problems=%s", order_id, e.details)
                break
            except PipelineError as e:
                error = e.error if not e.details else f"{e.error}: {e.details}"
                log.error("Error generating invoice for order %s (attempt %s): %s", order_id, attempt, error)
                if attempt >= max_retries:
                    break
                self.sleep(self.retry_delay_ms * attempt / 1000)
        self._record_failure(store, order_id, error, attempt)
        return InvoiceJobItem(order_id=order_id, success=False, attempts=attempt, error=error)

    def _record_failure(self, store: OrderStore, order_id: str, error: str, attempts: int) -> None:
        try:
            store.record_invoice_failure(order_id, error, attempts)
        except Exception as e:
            log.warning("Failed to log invoice generation failure: order_id=%s error=%s", order_id, e)

    def _result(
        self,
        results: list[InvoiceJobItem],
        start: datetime,
        *,
        success: bool,
        message: str,
        error: str | None = None,
    ) -> InvoiceJobResult:
        successful = sum(1 for r in results if r.success)
        return InvoiceJobResult(
            success=success,
            message=message,
            total_processed=len(results),
            total_successful=successful,
            total_failed=len(results) - successful,
            results=results,
            start_time=start,
            end_time=self.clock(),
            error=error,
        )
