import logging
import uuid
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from marketplace.core.config import settings
from marketplace.core.database import init_db
from marketplace.core.logging_config import request_id_var, setup_logging
from marketplace.api.endpoints import (
    admin,
    auth,
    favorites,
    health,
    notifications,
    promotions,
    properties,
    services,
    settings as settings_endpoints,
    subscriptions,
    support,
    two_factor,
    vendor_registration,
    verification,
)

setup_logging(log_level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting up {settings.PROJECT_NAME}...")
    init_db()
    logger.info("Database models registered")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.PROJECT_NAME}...")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Real-estate marketplace API: listings, vendors, subscriptions, support and campaigns",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "Retry-After", "X-2FA-Required"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag every log line of a request with its X-Request-ID (generated when absent)."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["X-Request-ID"] = request_id
    return response


# Include routers
for module in (
    auth,
    verification,
    two_factor,
    settings_endpoints,
    properties,
    favorites,
    subscriptions,
    services,
    promotions,
    support,
    notifications,
    vendor_registration,
    admin,
):
    app.include_router(module.router, prefix=settings.API_V1_STR)

app.include_router(health.router)


@app.get("/")
async def root():
    """Root endpoint - API health check"""
    return {
        "message": settings.PROJECT_NAME,
        "version": "1.0.0",
        "status": "healthy"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,  # Enable auto-reload during development
        log_level="info"
    )
