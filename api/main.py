"""
FastAPI application initialization
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from api.routes import health, modules, catalog, installations, render
from core.config import settings
from core.exceptions import ModuleServiceError
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware, module_service_error_handler
from publishing.scheduler import SyncScheduler

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Module Publishing API",
    description="Publishes studio modules to the marketplace and renders installed modules in sandboxes",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Host pages on tenant domains call the site-facing routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-API-Latency-ms"],
)
app.add_middleware(RequestContextMiddleware)
app.add_exception_handler(ModuleServiceError, module_service_error_handler)

# Catalog reconciliation
scheduler = SyncScheduler()


# Include routers
app.include_router(health.router)
app.include_router(modules.router)
app.include_router(catalog.router)
app.include_router(installations.router)
app.include_router(render.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Module Publishing API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if settings.SYNC_SCHEDULER_ENABLED:
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Module Publishing API")
    scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Module Publishing API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "catalog": "/catalog",
            "installations": "/sites/{site_id}/installations",
            "render": "/sites/{site_id}/modules",
            "publishing": "/modules/{source_id}/deploy"
        }
    }
