"""
Purchasing API — FastAPI backend.

Thin HTTP surface over PurchaseOrderService.  Every response uses the same
envelope:  {"success": bool, "data": ..., "message": ...}

Endpoints
---------
  GET  /api/health                           → liveness probe
  GET  /api/purchases/orders                 → list (?supplier_id= &status= &date_from=
                                               &date_to= &search= &page= &limit=)
  GET  /api/purchases/orders/{id}            → one order with items
  POST /api/purchases/orders                 → create draft order (201)
  PUT  /api/purchases/orders/{id}            → edit header fields
  PUT  /api/purchases/orders/{id}/approve    → draft → confirmed
  PUT  /api/purchases/orders/{id}/cancel     → draft/confirmed → cancelled
  PUT  /api/purchases/items/{id}             → edit quantity / unit cost (draft only)
  PUT  /api/purchases/items/{id}/receive     → record a receipt
  GET  /api/purchases/dashboard              → counts, spend, top suppliers

Error mapping
-------------
  ValidationError, malformed body  → 400
  NotFoundError, unknown route     → 404
  StoreError, anything unexpected  → 500 (generic message, traceback logged)
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Config
from purchasing.datastore import SQLiteDataStore
from purchasing.errors import NotFoundError, StoreError, ValidationError
from purchasing.service import PurchaseOrderService

from .models import ApproveRequest, CreateOrderRequest, Envelope, ReceiveRequest

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Service (lazy: the database is opened on first request)
# ---------------------------------------------------------------------------
_service: Optional[PurchaseOrderService] = None


def get_service() -> PurchaseOrderService:
    global _service
    if _service is None:
        config = Config()
        config.ensure_output_dir()
        _service = PurchaseOrderService(SQLiteDataStore(config.db_path), config)
    return _service


def _respond(data: Any = None, status_code: int = 200, message: Optional[str] = None) -> JSONResponse:
    body = Envelope(
        success=200 <= status_code < 300,
        data=jsonable_encoder(data),
        message=message,
    )
    return JSONResponse(content=body.model_dump(), status_code=status_code)


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="Purchasing API", redoc_url=None)
router = APIRouter(prefix="/api/purchases")


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _respond(status_code=400, message=str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    return _respond(status_code=400, message=f"{where}: {first.get('msg', 'invalid request')}")


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _respond(status_code=404, message=str(exc))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _respond(status_code=exc.status_code, message=str(exc.detail))


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.exception("Store failure on %s %s", request.method, request.url.path, exc_info=exc)
    return _respond(status_code=500, message="Internal server error")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _respond(status_code=500, message="Internal server error")


# ── Routes ───────────────────────────────────────────────────────────────────

@app.get("/api/health")
def health(service: PurchaseOrderService = Depends(get_service)):
    db_path = service.config.db_path
    return _respond({
        "status":    "ok",
        "db_path":   str(db_path),
        "db_exists": db_path.exists(),
    })


@router.get("/orders")
def list_orders(
    supplier_id: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    date_from: Optional[str] = Query(default=None),
    date_to: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    service: PurchaseOrderService = Depends(get_service),
):
    return _respond(service.list_orders(
        supplier_id=supplier_id or None,
        status=status or None,
        date_from=date_from or None,
        date_to=date_to or None,
        search=search or None,
        page=page,
        limit=limit,
    ))


@router.get("/orders/{order_id}")
def get_order(order_id: str, service: PurchaseOrderService = Depends(get_service)):
    return _respond(service.get_order(order_id))


@router.post("/orders")
def create_order(body: CreateOrderRequest, service: PurchaseOrderService = Depends(get_service)):
    order = service.create_order(body.header(), body.items)
    return _respond(order, status_code=201, message="Purchase order created")


@router.put("/orders/{order_id}")
def update_order(
    order_id: str,
    patch: dict[str, Any] = Body(...),
    service: PurchaseOrderService = Depends(get_service),
):
    return _respond(service.update_order(order_id, patch), message="Purchase order updated")


@router.put("/orders/{order_id}/approve")
def approve_order(
    order_id: str,
    body: ApproveRequest,
    service: PurchaseOrderService = Depends(get_service),
):
    order = service.approve_order(order_id, body.approved_by_user_id)
    return _respond(order, message="Purchase order approved")


@router.put("/orders/{order_id}/cancel")
def cancel_order(order_id: str, service: PurchaseOrderService = Depends(get_service)):
    return _respond(service.cancel_order(order_id), message="Purchase order cancelled")


@router.put("/items/{item_id}")
def update_item(
    item_id: str,
    patch: dict[str, Any] = Body(...),
    service: PurchaseOrderService = Depends(get_service),
):
    return _respond(service.update_item(item_id, patch), message="Purchase order item updated")


@router.put("/items/{item_id}/receive")
def receive_item(
    item_id: str,
    body: ReceiveRequest,
    service: PurchaseOrderService = Depends(get_service),
):
    item = service.receive_item(item_id, body.quantity_received, body.received_date)
    return _respond(item, message="Items received")


@router.get("/dashboard")
def dashboard(service: PurchaseOrderService = Depends(get_service)):
    return _respond(service.get_dashboard())


app.include_router(router)
