"""GrantCue alerts - FastAPI Application."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from grantcue.api.routes import alerts, cron, integrations, notifications, webhooks
from grantcue.config import settings
from grantcue.db.database import get_engine, init_db
from grantcue.errors import ConfigurationError

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the shared outbound HTTP client."""
    await init_db()
    app.state.http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    yield
    await app.state.http_client.aclose()
    await get_engine().dispose()


app = FastAPI(
    lifespan=lifespan,
    title=settings.app_name,
    description="Grant alert matching and notification dispatch",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error("Server configuration error: %s", exc)
    return JSONResponse(status_code=500, content={"error": "Server configuration error"})


# Include routers
app.include_router(cron.router, prefix=settings.api_prefix, tags=["Cron"])
app.include_router(alerts.router, prefix=f"{settings.api_prefix}/alerts", tags=["Alerts"])
app.include_router(webhooks.router, prefix=f"{settings.api_prefix}/webhooks", tags=["Webhooks"])
app.include_router(integrations.router, prefix=f"{settings.api_prefix}/integrations", tags=["Integrations"])
app.include_router(notifications.router, prefix=f"{settings.api_prefix}/notifications", tags=["Notifications"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
