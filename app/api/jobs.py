"""Toplu fatura işi: HTTP tetikleyici ve durum. Zamanlama dışarıda (cron → POST)."""
from fastapi import APIRouter, Body, Depends, Query

from app.api.deps import get_invoice_job, require_admin
from app.schemas import InvoiceJobRequest, InvoiceJobResult
from app.services.invoice_job import MAX_PENDING_INVOICE_LIMIT, InvoiceBackgroundJob

router = APIRouter(prefix="/api/jobs", tags=["jobs"], dependencies=[Depends(require_admin)])


@router.post(
    "/generate-invoices",
    response_model=InvoiceJobResult,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
def run_invoice_job(
    body: InvoiceJobRequest | None = Body(None),
    job: InvoiceBackgroundJob = Depends(get_invoice_job),
):
    body = body or InvoiceJobRequest()
    return job.run(
        batch_size=body.batch_size,
        max_retries=body.max_retries,
        delay_between_batches=body.delay_between_batches,
    )


@router.get("/generate-invoices")
def invoice_job_status(
    limit: int = Query(MAX_PENDING_INVOICE_LIMIT),
    job: InvoiceBackgroundJob = Depends(get_invoice_job),
):
    orders = job.get_orders_needing_invoices(limit)
    return {
        "success": True,
        "status": job.get_status().model_dump(mode="json", by_alias=True),
        "count": len(orders),
        "orders": [o.model_dump(mode="json") for o in orders],
    }
