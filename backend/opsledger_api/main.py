from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from opsledger.exceptions import (
    AlreadyClockedIn,
    EntryNotReviewable,
    InvalidStatusTransition,
    MissingTransitionNote,
    NotClockedIn,
    OpsLedgerError,
    PayPeriodLocked,
    PurchaseOrderNotFound,
    ReceiptRequired,
    TimeclockEntryNotFound,
)
from opsledger_api.api.routes import health
from opsledger_api.core.config import settings
from opsledger_api.core.logging import configure_logging, get_logger
from opsledger_api.core.monitoring import configure_error_monitoring
from opsledger_api.core.observability import configure_observability
from opsledger_api.domains.budget_items.router import router as budget_items_router
from opsledger_api.domains.purchase_orders.router import router as purchase_orders_router
from opsledger_api.domains.timeclock.router import router as timeclock_router

configure_logging(settings.log_level)
configure_observability()
configure_error_monitoring()
logger = get_logger(__name__)

ERROR_STATUS = {
    PurchaseOrderNotFound: 404,
    TimeclockEntryNotFound: 404,
    InvalidStatusTransition: 400,
    MissingTransitionNote: 400,
    ReceiptRequired: 400,
    EntryNotReviewable: 400,
    NotClockedIn: 409,
    AlreadyClockedIn: 409,
    PayPeriodLocked: 409,
}

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin) for origin in settings.cors_origins] or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(budget_items_router)
app.include_router(purchase_orders_router)
app.include_router(timeclock_router)


@app.exception_handler(OpsLedgerError)
async def handle_domain_error(request: Request, exc: OpsLedgerError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), 400)
    logger.info("request_rejected", path=request.url.path, code=exc.code, status_code=status_code)
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": exc.code})


@app.on_event("startup")
def startup_event() -> None:
    logger.info("startup_complete", env=settings.env)


@app.get("/")
def root() -> dict[str, str]:
    return {"message": "Operations Ledger API running", "environment": settings.env}
