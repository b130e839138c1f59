import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_google,  # noqa: F401
    models_invoice,  # noqa: F401
)
from .config import ALLOWED_ORIGINS
from .database import Base, SessionLocal, engine
from .domain.bookings.router import router as bookings_router
from .domain.customers.router import router as customers_router
from .domain.invoices.router import router as invoices_router
from .domain.vehicles.router import router as vehicles_router
from .routes.auth import ensure_default_admin
from .routes.auth import router as auth_router
from .routes.calendar import router as calendar_router
from .routes.dashboard import router as dashboard_router
from .routes.google import router as google_router
from .routes.n8n_calls import router as n8n_calls_router
from .routes.reports import router as reports_router
from .routes.support_tickets import emergency_router
from .routes.support_tickets import router as support_tickets_router
from .routes.webhooks import n8n_router
from .routes.webhooks import router as webhooks_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info("Database tables created successfully")

    db = SessionLocal()
    try:
        ensure_default_admin(db)
    finally:
        db.close()

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="CarFlow API", version="1.0.0", lifespan=lifespan)


def _format_location(loc) -> str:
    # Drop the "body"/"query" prefix FastAPI adds
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "request"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Validation failures are client errors: 400 with a readable summary"""
    errors = [
        {"field": _format_location(e.get("loc", ())), "message": e.get("msg", "Invalid value")}
        for e in exc.errors()
    ]
    detail = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
    logger.warning(f"Validation error for {request.url.path}: {detail}")
    return JSONResponse(status_code=400, content={"detail": detail, "errors": errors})


@app.exception_handler(IntegrityError)
async def integrity_exception_handler(request: Request, exc: IntegrityError):
    logger.warning(f"⚠️ Integrity error for {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(status_code=409, content={"detail": "Record conflicts with existing data"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"❌ {request.method} {request.url.path} - Error: {str(exc)}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# CORS Configuration
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
api = APIRouter(prefix="/api")
api.include_router(auth_router)
api.include_router(vehicles_router)
api.include_router(customers_router)
api.include_router(bookings_router)
api.include_router(invoices_router)
api.include_router(support_tickets_router)
api.include_router(emergency_router)
api.include_router(n8n_calls_router)
api.include_router(webhooks_router)
api.include_router(n8n_router)
api.include_router(google_router)
api.include_router(calendar_router)
api.include_router(reports_router)
api.include_router(dashboard_router)
app.include_router(api)


@app.get("/")
def root():
    return {"message": "CarFlow API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
