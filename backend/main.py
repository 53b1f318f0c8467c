"""Auction Usage Gate - Main FastAPI Application."""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.middleware.rate_limit import limiter
from api.routes import api_router
from core.plans import UnknownTierError
from infrastructure.config import get_settings
from infrastructure.database import close_db, init_db
from infrastructure.logging_config import setup_logging

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # JSON in production, human-readable in development
    setup_logging(
        json_output=not settings.debug and settings.is_production,
        level="DEBUG" if settings.debug else "INFO",
    )

    # Startup
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    logger.info("Environment: %s", settings.environment)
    logger.info(
        "Usage windows: timezone=%s monthly_reset_day=%s",
        settings.usage_reset_timezone,
        settings.monthly_reset_day,
    )

    settings.validate_production_secrets()

    if settings.is_development:
        logger.info("Development mode - initializing database...")
        await init_db()

    logger.info("Application started successfully!")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await close_db()
    logger.info("Application stopped.")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Subscription tier capabilities and usage quota enforcement",
    version=settings.app_version,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Rate limiting: per-endpoint @limiter.limit decorators override the
# default limit applied by SlowAPIMiddleware
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(UnknownTierError)
async def unknown_tier_handler(request: Request, exc: UnknownTierError):
    account_id = getattr(request.state, "account_id", None)
    logger.error(
        "Account %s carries unconfigured tier %r",
        account_id,
        exc.tier,
        extra={"account_id": account_id, "tier": str(exc.tier)},
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Invalid subscription tier configuration"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    # Exception text is truncated in production so connection strings never reach the logs
    if settings.environment == "production":
        logger.error("Unhandled exception: %s: %s", type(exc).__name__, str(exc)[:200])
    else:
        logger.error("Unhandled exception: %s", str(exc), exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Response-Time"] = f"{duration_ms:.1f}ms"

    # Health checks are polled constantly
    path = request.url.path
    if not path.startswith("/api/v1/health"):
        logger.info(
            "%s %s %s %.1fms",
            request.method,
            path,
            response.status_code,
            round(duration_ms, 1),
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 1),
                "account_id": getattr(request.state, "account_id", None),
            },
        )
    return response


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    incoming = request.headers.get("X-Request-ID")
    # Only a valid UUID is accepted from the caller
    if incoming:
        try:
            uuid.UUID(incoming)
            request_id = incoming
        except ValueError:
            request_id = str(uuid.uuid4())
    else:
        request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if settings.environment == "production":
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
)

# Include API routes
app.include_router(api_router, prefix="/api/v1")


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs" if settings.is_development else "disabled",
        "health": "/api/v1/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        workers=settings.workers if not settings.is_development else 1,
    )
