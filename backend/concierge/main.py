"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from concierge.config import settings
from concierge.database import Base, engine
from concierge.errors import ConciergeError

# Import routers
from concierge.routers import admin, enquiries, payments, quotes, supplier

# Import all models so Base.metadata knows about them
from concierge.models.supplier import Supplier, SupplierImage              # noqa: F401
from concierge.models.enquiry import Customer, Enquiry, SupplierInvite     # noqa: F401
from concierge.models.quote import Quote, QuoteItem, QuotePublicLink, QuoteEvent  # noqa: F401
from concierge.models.credit import CreditTransaction                      # noqa: F401
from concierge.models.event_ledger import EventLedgerEntry                 # noqa: F401
from concierge.models.notification import SupplierNotification             # noqa: F401
from concierge.models.message import MessageThread, Message                # noqa: F401
from concierge.models.payment import Payment, CreditBundleOrder            # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Event Supplier Concierge",
    description="Enquiry matching, quotes and supplier credits for an event-supplier marketplace",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConciergeError)
def handle_concierge_error(request: Request, exc: ConciergeError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.details or exc.error)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
def handle_request_validation(request: Request, exc: RequestValidationError):
    errors = [
        f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"ok": False, "error": "Bad request", "code": "bad_request", "details": "; ".join(errors)},
    )


# Register routers
app.include_router(enquiries.router, prefix="/api/enquiries", tags=["Enquiries"])
app.include_router(quotes.router, prefix="/api/quotes", tags=["Quotes"])
app.include_router(supplier.router, prefix="/api/supplier", tags=["Supplier"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(payments.router, prefix="/api/payments", tags=["Payments"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"ok": True, "status": "ok"}
