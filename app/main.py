from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging

# Import database components
from app.database.database import sync_engine, Base

# Import middleware and error handling
from app.common.middleware import TenantMiddleware, SecurityHeadersMiddleware
from app.common.exceptions import BillingError, billing_error_handler

# Import routers
from app.modules.auth.router import auth_router
from app.modules.customers.router import router as customers_router, portal_router as profile_router
from app.modules.items.router import (
    router as items_router,
    requests_router as item_requests_router,
    portal_router as portal_item_requests_router
)
from app.modules.sales.router import quotes_router, sales_orders_router, portal_router as portal_sales_router
from app.modules.invoices.router import router as invoices_router, portal_router as portal_invoices_router
from app.modules.payments.router import router as payments_router, portal_router as portal_payments_router
from app.modules.dashboard.router import router as dashboard_router

# Import models for table creation
import app.modules.auth.models
import app.modules.customers.models
import app.modules.items.models
import app.modules.sales.models
import app.modules.invoices.models
import app.modules.payments.models
import app.common.sequences

from app.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Billing Portal API",
    description="Multi-tenant billing portal: invoices, payment verification, quotes and sales orders",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(TenantMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL] if settings.ENVIRONMENT == "production" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Domain errors -> {"detail", "code"}
app.add_exception_handler(BillingError, billing_error_handler)

# Include routers
app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(customers_router)
app.include_router(profile_router)
app.include_router(items_router)
app.include_router(item_requests_router)
app.include_router(portal_item_requests_router)
app.include_router(quotes_router)
app.include_router(sales_orders_router)
app.include_router(portal_sales_router)
app.include_router(invoices_router)
app.include_router(portal_invoices_router)
app.include_router(payments_router)
app.include_router(portal_payments_router)
app.include_router(dashboard_router)

# Create database tables (only for development/test - use migrations in production)
if settings.ENVIRONMENT in ("development", "test"):
    Base.metadata.create_all(bind=sync_engine)


@app.get("/")
async def read_root():
    return {
        "message": "Billing Portal API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("Billing Portal API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    logger.info(f"Notifications enabled: {settings.NOTIFICATIONS_ENABLED}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Billing Portal API shutting down...")
