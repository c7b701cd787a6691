import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Uvicorn nereden çalışırsa çalışsın .env proje kökünden yüklensin
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlmodel import Session

from app.api.invoices import router as invoices_router
from app.api.jobs import router as jobs_router
from app.api.payments import router as payments_router
from app.api.webhooks import router as webhooks_router
from app.core.config import is_gateway_configured, settings
from app.core.database import check_db, engine, init_db, new_session
from app.core.rate_limit import limiter
from app.logging import setup_logging
from app.models import PAYMENT_STATUSES, ErrorLog
from app.services.errors import PipelineError
from app.services.invoice_job import InvoiceBackgroundJob
from app.services.invoice_renderer import default_renderer

setup_logging(level=logging.INFO)
log = logging.getLogger("servenow")


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.invoice_job = InvoiceBackgroundJob(new_session, default_renderer())
    log.info(
        "Startup: environment=%s pdf_enabled=%s gateway_configured=%s",
        settings.environment,
        settings.invoice_pdf_enabled,
        "yes" if is_gateway_configured() else "no",
    )
    yield


app = FastAPI(
    title="ServeNowPay API",
    description="Restoran siparişleri için ödeme durumu ve otomatik fatura hattı",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    details: str | None = None,
) -> JSONResponse:
    body = {"success": False, "error": error}
    if details and settings.expose_error_details:
        body["details"] = details
    rid = getattr(request.state, "request_id", None)
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(PipelineError)
def pipeline_exception_handler(request: Request, exc: PipelineError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("Pipeline error: path=%s error=%s details=%s", request.url.path, exc, exc.details)
    else:
        log.info("Request rejected: path=%s status=%s error=%s", request.url.path, exc.status_code, exc)
    return _error_response(request, exc.status_code, exc.error, exc.details)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("Rate limit exceeded: path=%s", request.url.path)
    return _error_response(request, 429, "Too many requests", str(exc.detail))


def _validation_error_message(exc: RequestValidationError) -> str:
    errs = exc.errors()
    if not errs:
        return "Invalid request"
    first = errs[0]
    loc = [str(p) for p in (first.get("loc") or []) if p != "body"]
    field = loc[-1] if loc else None
    if field == "paymentStatus" and first.get("type") != "missing":
        return f"Invalid payment status. Must be one of: {', '.join(PAYMENT_STATUSES)}"
    if first.get("type") == "missing":
        if not loc:
            return "Request body is required"
        return f"Missing required field: {'.'.join(loc)}"
    if field == "updates":
        return "updates must be a non-empty list"
    msg = first.get("msg") or "Invalid value"
    return f"{'.'.join(loc)}: {msg}" if loc else msg


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.info(
        "Request validation error (400): path=%s method=%s detail=%s",
        request.url.path,
        request.method,
        errs,
    )
    details = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc') or [])}: {e.get('msg')}" for e in errs
    )
    return _error_response(request, 400, _validation_error_message(exc), details)


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc)
    try:
        with Session(engine) as db:
            db.add(ErrorLog(
                request_id=getattr(request.state, "request_id", None),
                endpoint=request.url.path,
                method=request.method,
                error_message=str(exc)[:2000],
                stack_trace=traceback.format_exc()[:10000],
            ))
            db.commit()
    except Exception as e:
        log.warning("ErrorLog write failed: %s", e)
    return _error_response(request, 500, "Internal server error", str(exc))


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request.state.request_id
    log.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        latency_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(payments_router)
app.include_router(webhooks_router)
app.include_router(invoices_router)
app.include_router(jobs_router)


@app.get("/health")
def health():
    return {
        "status": "ok",
        "database": "ok" if check_db() else "error",
        "gateway_configured": is_gateway_configured(),
        "pdf_enabled": settings.invoice_pdf_enabled,
    }
