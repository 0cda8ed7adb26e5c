"""
Customer webhook server — FastAPI backend.

Receives the shop platform's customer webhooks and hands them to
CustomerEventProcessor.  Route paths are the ones the shop's webhook
subscriptions already point at.

Endpoints
---------
  GET  /                          → plain-text liveness message
  POST /webhook                   → customer create/update payload: address change detection
  POST /webhook/new-customer      → registration notice to the operator
  POST /delete-account            → deletion confirmation to the customer
  GET  /api/health                → liveness probe with store / mailer details
  GET  /api/customers/{id}        → stored baseline for one customer
  GET  /api/events                → recent event log (supports ?customer_id= and ?limit=)

Error mapping
-------------
  MissingRequiredField  422
  DispatchFailure       502  (state was still updated; see processor docstring)
  StoreFailure          503
"""
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from config import Config
from models.customer import Customer
from notifier.errors import DispatchFailure, MissingRequiredField, StoreFailure
from notifier.processor import CustomerEventProcessor

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Processor (built lazily on first request)
# ---------------------------------------------------------------------------
_processor: Optional[CustomerEventProcessor] = None


def get_processor() -> CustomerEventProcessor:
    global _processor
    if _processor is None:
        _processor = CustomerEventProcessor(Config())
    return _processor


def set_processor(processor: Optional[CustomerEventProcessor]) -> None:
    """Install a pre-built processor (CLI serve), or None to rebuild lazily."""
    global _processor
    _processor = processor


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="Customer Address Notifier", docs_url=None, redoc_url=None)


@app.exception_handler(MissingRequiredField)
def _missing_field(request: Request, exc: MissingRequiredField):
    return JSONResponse(status_code=422, content={"ok": False, "error": str(exc), "field": exc.field})


@app.exception_handler(DispatchFailure)
def _dispatch_failed(request: Request, exc: DispatchFailure):
    content = {"ok": False, "error": str(exc)}
    if exc.result is not None:
        content["result"] = exc.result.model_dump()
    return JSONResponse(status_code=502, content=content)


@app.exception_handler(StoreFailure)
def _store_failed(request: Request, exc: StoreFailure):
    return JSONResponse(status_code=503, content={"ok": False, "error": str(exc)})


def _response(result) -> dict:
    return {"ok": True, "message": result.summary, "result": result.model_dump()}


# ── Routes ───────────────────────────────────────────────────────────────────

@app.get("/", response_class=PlainTextResponse)
def index():
    return "Webhook server is running"


@app.get("/api/health")
def health(processor: CustomerEventProcessor = Depends(get_processor)):
    config = processor.config
    return {
        "status":  "ok",
        "store":   processor.store.name,
        "mailer":  processor.mailer.name,
        "db_path": str(config.db_path) if processor.store.name == "sqlite" else None,
        "locale":  processor.formatter.locale,
        "timezone": config.timezone,
    }


@app.post("/webhook")
def addresses_synced(
    customer: Customer,
    processor: CustomerEventProcessor = Depends(get_processor),
):
    return _response(processor.handle_addresses_synced(customer))


@app.post("/webhook/new-customer")
def customer_created(
    customer: Customer,
    processor: CustomerEventProcessor = Depends(get_processor),
):
    return _response(processor.handle_customer_created(customer))


@app.post("/delete-account")
def account_deleted(
    customer: Customer,
    processor: CustomerEventProcessor = Depends(get_processor),
):
    return _response(processor.handle_account_deleted(customer))


@app.get("/api/customers/{customer_id}")
def get_customer(
    customer_id: str,
    processor: CustomerEventProcessor = Depends(get_processor),
):
    record = processor.store.get(customer_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Customer not found: {customer_id}")
    return record.model_dump()


@app.get("/api/events")
def list_events(
    customer_id: Optional[str] = Query(default=None),
    limit: int = Query(default=200, ge=1, le=2000),
    processor: CustomerEventProcessor = Depends(get_processor),
):
    return processor.store.recent_events(limit=limit, customer_id=customer_id or None)
