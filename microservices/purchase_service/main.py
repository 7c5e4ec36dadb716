"""
Purchase Microservice

Responsibilities:
- Purchase settlement (reserve stock, record order) under concurrent buyers
- Idempotent retries keyed by the client's idempotency key
- Compensation and reconciliation flagging when settlement cannot complete
- Live stock and settled-order lookups for operators
"""

from fastapi import FastAPI, HTTPException, Depends, Header, Query, Path, Body, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError
import uvicorn
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from core.config_manager import ConfigManager
from core.logger import setup_service_logger
from core.nats_client import get_event_bus
from core.postgres_client import close_postgres_clients, get_postgres_client

from .factory import create_purchase_coordinator
from .models import (
    Order,
    ProductKey,
    PurchaseBody,
    PurchaseOutcome,
    PurchaseRequest,
    ReconciliationListResponse,
    ReconciliationRecord,
    ResolveReconciliationRequest,
    StockResponse,
)
from .protocols import ReconciliationNotFoundError, ReconciliationUnavailableError, TransientFailureError
from .purchase_service import PurchaseCoordinator
from .routes_registry import SERVICE_METADATA, get_route_summary

# Initialize configuration
config_manager = ConfigManager("purchase_service")
config = config_manager.get_service_config()

# Setup loggers (use actual service name)
logger = setup_service_logger("purchase_service")

PURCHASE_PATH = "/api/v1/purchase"

# Outcome -> HTTP status
OUTCOME_STATUS_CODES = {
    PurchaseOutcome.SUCCESS: status.HTTP_201_CREATED,
    PurchaseOutcome.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    PurchaseOutcome.BUYER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    PurchaseOutcome.PRODUCT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    PurchaseOutcome.INSUFFICIENT_STOCK: status.HTTP_409_CONFLICT,
    PurchaseOutcome.TRANSIENT_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    PurchaseOutcome.COMPENSATION_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for_outcome(outcome: PurchaseOutcome) -> int:
    """HTTP status code for a settlement outcome"""
    return OUTCOME_STATUS_CODES.get(outcome, status.HTTP_500_INTERNAL_SERVER_ERROR)


def invalid_request_response(message: str, detail=None) -> JSONResponse:
    content = {
        "success": False,
        "outcome": PurchaseOutcome.INVALID_REQUEST.value,
        "message": message,
        "error_code": "INVALID_REQUEST",
    }
    if detail is not None:
        content["detail"] = detail
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


class PurchaseMicroservice:
    """Purchase microservice core class"""

    def __init__(self):
        self.coordinator: Optional[PurchaseCoordinator] = None
        self.event_bus = None
        self.account_client = None
        self.db = None

    async def initialize(self, event_bus=None):
        """Initialize the microservice"""
        from .clients import AccountClient

        self.event_bus = event_bus
        self.db = get_postgres_client("purchase_service", config_manager.get_infra_config())
        self.account_client = AccountClient(
            base_url=config.account_service_url,
            timeout=config.account_service_timeout,
        )
        self.coordinator = create_purchase_coordinator(
            config=config_manager,
            event_bus=event_bus,
            account_client=self.account_client,
            db=self.db,
        )
        logger.info("Purchase microservice initialized successfully")

    async def shutdown(self):
        """Shutdown the microservice"""
        if self.coordinator:
            await self.coordinator.drain()
        if self.account_client:
            await self.account_client.close()
        if self.event_bus:
            await self.event_bus.close()
            logger.info("Event bus closed")
        await close_postgres_clients()
        logger.info("Purchase microservice shutdown completed")


# Global microservice instance
purchase_microservice = PurchaseMicroservice()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    event_bus = None
    if config_manager.get_infra_config().nats_enabled:
        try:
            event_bus = await get_event_bus("purchase_service", config_manager)
            logger.info("Event bus initialized successfully")
        except Exception as e:
            logger.warning(f"Failed to initialize event bus: {e}. Continuing without event publishing.")
            event_bus = None

    await purchase_microservice.initialize(event_bus=event_bus)

    yield

    await purchase_microservice.shutdown()


# Create FastAPI application
app = FastAPI(
    title="Purchase Service",
    description="Purchase settlement microservice: atomic stock reservation and idempotent order recording",
    version="1.0.0",
    lifespan=lifespan
)

# CORS handled by Gateway


# Dependency injection
def get_purchase_coordinator() -> PurchaseCoordinator:
    """Get purchase coordinator instance"""
    if not purchase_microservice.coordinator:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Purchase service not initialized"
        )
    return purchase_microservice.coordinator


# Health check endpoints
@app.get("/health")
async def health_check():
    """Service health check"""
    return {
        "status": "healthy",
        "service": config.service_name,
        "port": config.service_port,
        "version": "1.0.0",
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get(f"{PURCHASE_PATH}/health")
async def detailed_health_check():
    """Detailed health check with store and event bus connectivity"""
    database = {"healthy": False, "error": "not initialized"}
    if purchase_microservice.db is not None:
        database = await purchase_microservice.db.health_check()

    event_bus = purchase_microservice.event_bus
    return {
        "status": "healthy" if database.get("healthy") else "degraded",
        "service": config.service_name,
        "port": config.service_port,
        "version": "1.0.0",
        "dependencies": {
            "database": database,
            "event_bus": {"connected": bool(event_bus and event_bus.is_connected)},
        },
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get(f"{PURCHASE_PATH}/info")
async def service_info():
    """Service metadata and route summary"""
    return {**SERVICE_METADATA, "routes": get_route_summary()}


# Settlement endpoints

@app.post(PURCHASE_PATH)
async def settle_purchase(
    body: PurchaseBody,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    coordinator: PurchaseCoordinator = Depends(get_purchase_coordinator)
):
    """Settle a purchase; the status code follows the settlement outcome"""
    if body.idempotency_key and idempotency_key and body.idempotency_key != idempotency_key:
        return invalid_request_response("Idempotency-Key header and body idempotency_key differ")

    key = body.idempotency_key or idempotency_key
    if not key:
        return invalid_request_response("idempotency_key is required (body field or Idempotency-Key header)")

    try:
        request = PurchaseRequest(
            buyer_id=body.buyer_id,
            product_name=body.product_name,
            company_name=body.company_name,
            quantity=body.quantity,
            idempotency_key=key,
        )
    except ValidationError as e:
        return invalid_request_response("Invalid purchase request", jsonable_encoder(e.errors(include_url=False)))

    result = await coordinator.settle_purchase(request)
    return JSONResponse(
        status_code=status_for_outcome(result.outcome),
        content=result.model_dump(mode="json"),
    )


@app.get(f"{PURCHASE_PATH}/orders/{{idempotency_key}}", response_model=Order)
async def get_order(
    idempotency_key: str = Path(..., description="Idempotency key of the purchase"),
    coordinator: PurchaseCoordinator = Depends(get_purchase_coordinator)
):
    """Get settled order by idempotency key"""
    order = await coordinator.get_order(idempotency_key)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


@app.get(f"{PURCHASE_PATH}/stock/{{company_name}}/{{product_name}}", response_model=StockResponse)
async def get_stock(
    company_name: str = Path(..., description="Company owning the product"),
    product_name: str = Path(..., description="Product name"),
    coordinator: PurchaseCoordinator = Depends(get_purchase_coordinator)
):
    """Live stock for a product"""
    quantity = await coordinator.get_stock(ProductKey(company_name=company_name, product_name=product_name))
    if quantity is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return StockResponse(company_name=company_name, product_name=product_name, quantity=quantity)


# Reconciliation endpoints

@app.get(f"{PURCHASE_PATH}/reconciliations", response_model=ReconciliationListResponse)
async def list_reconciliations(
    limit: int = Query(100, ge=1, le=1000),
    coordinator: PurchaseCoordinator = Depends(get_purchase_coordinator)
):
    """List open reconciliation records"""
    records = await coordinator.list_reconciliations(limit=limit)
    return ReconciliationListResponse(records=records, count=len(records))


@app.post(f"{PURCHASE_PATH}/reconciliations/{{reconciliation_id}}/resolve", response_model=ReconciliationRecord)
async def resolve_reconciliation(
    reconciliation_id: str = Path(..., description="Reconciliation record ID"),
    request: Optional[ResolveReconciliationRequest] = Body(None),
    coordinator: PurchaseCoordinator = Depends(get_purchase_coordinator)
):
    """Mark a reconciliation record resolved"""
    note = request.note if request else None
    record = await coordinator.resolve_reconciliation(reconciliation_id, note)
    logger.info(f"Reconciliation {reconciliation_id} resolved by operator")
    return record


# Error handlers
@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    if request.url.path == PURCHASE_PATH and request.method == "POST":
        return invalid_request_response("Invalid purchase request", jsonable_encoder(exc.errors()))
    return await request_validation_exception_handler(request, exc)


@app.exception_handler(ReconciliationNotFoundError)
async def not_found_error_handler(request: Request, exc: ReconciliationNotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)}
    )


@app.exception_handler(ReconciliationUnavailableError)
async def reconciliation_unavailable_handler(request: Request, exc: ReconciliationUnavailableError):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)}
    )


@app.exception_handler(TransientFailureError)
async def transient_error_handler(request: Request, exc: TransientFailureError):
    logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)}
    )


if __name__ == "__main__":
    # Print configuration summary for debugging
    config_manager.print_config_summary()

    uvicorn.run(
        "microservices.purchase_service.main:app",
        host=config.service_host,
        port=config.service_port,
        reload=config.debug,
        log_level=config.log_level.lower()
    )
