"""Command Center feeds API - FastAPI application."""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from commandcenter.api.proxy import router as proxy_router
from commandcenter.api.v1.router import router as api_v1_router
from commandcenter.config import get_settings
from commandcenter.core.logging import configure_logging, get_logger
from commandcenter.core.registry import close_registry

settings = get_settings()
logger = get_logger(__name__)

# Rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    configure_logging()
    logger.info("startup", environment=settings.environment.value)
    yield
    await close_registry()
    logger.info("shutdown")


app = FastAPI(
    title=settings.app_name,
    description="Cached, rate-limited market and geopolitical data feeds",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,  # Disable docs in production
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS - strict in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
    max_age=600,  # Cache preflight for 10 minutes
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)

    if settings.is_production:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log requests in development."""
    response = await call_next(request)
    if settings.is_development:
        logger.debug("request", method=request.method, path=request.url.path, status=response.status_code)
    return response


# Versioned routes first so /api/v1/* never reaches the proxy
app.include_router(api_v1_router, prefix=settings.api_v1_prefix)
app.include_router(proxy_router)


@app.get("/")
async def root():
    """Root endpoint - service info."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "healthy",
        "environment": settings.environment.value,
    }


@app.get("/health")
async def health():
    """Detailed health check for monitoring."""
    return {
        "status": "healthy",
        "service": "commandcenter-feeds",
        "version": "0.1.0",
    }
