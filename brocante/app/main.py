import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from brocante.app.api import public, reservations, admin
from brocante.app.api.deps import get_session, require_admin_token
from brocante.app.core.exceptions import ServiceError
from brocante.app.core.limiter import limiter
from brocante.app.core.logging import setup_logging, get_logger
from brocante.app.core.metrics import PrometheusMiddleware, get_metrics_response
from brocante.app.core.settings import get_settings

VERSION = "1.0.0"

# Load and validate settings
try:
    settings = get_settings()
except ValueError as e:
    print(f"Configuration error: {e}", file=sys.stderr)
    sys.exit(1)

# Use JSON format in production
setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=settings.is_production
)

logger = get_logger(__name__)

logger.info(
    "Application configuration loaded",
    environment=settings.ENVIRONMENT,
    db_host=settings.DB_HOST,
    sweep_enabled=settings.SWEEP_ENABLED,
    sweep_interval_seconds=settings.SWEEP_INTERVAL_SECONDS,
    hold_hours=settings.RESERVATION_HOLD_HOURS,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    - Startup: start the reservation expiry sweeper
    - Shutdown: stop it and dispose the connection pool
    """
    from brocante.app.core.database import async_session, engine
    from brocante.app.services.sweeper import ReservationSweeper

    logger.info("Application starting up", version=VERSION)
    sweeper = ReservationSweeper(
        async_session,
        interval_seconds=settings.SWEEP_INTERVAL_SECONDS,
        hold_hours=settings.RESERVATION_HOLD_HOURS,
        release_on_cancel=settings.RELEASE_ON_CANCEL,
    )
    app.state.sweeper = sweeper
    if settings.SWEEP_ENABLED:
        sweeper.start()
    yield
    await sweeper.stop()
    logger.info("Application shutting down")
    await engine.dispose()


app = FastAPI(title="Brocante Backend", version=VERSION, lifespan=lifespan)

# Use shared limiter (routers use the same instance for @limiter.limit)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Service errors that a router did not translate itself."""
    if exc.status_code >= 500:
        logger.error("Service error", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


ALLOWED_ORIGINS = settings.allowed_origins_list
if not ALLOWED_ORIGINS:
    if settings.is_production:
        logger.error("ALLOWED_ORIGINS must be set in production environment")
        raise ValueError("ALLOWED_ORIGINS environment variable is required in production")
    # Development fallback
    ALLOWED_ORIGINS = ["*"]
    logger.warning("CORS: Allowing all origins (development mode). Set ALLOWED_ORIGINS in production!")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Metrics middleware AFTER CORS (runs earlier on the response path)
app.add_middleware(PrometheusMiddleware)

app.include_router(public.router, prefix="/api", tags=["public"])
app.include_router(reservations.router, prefix="/api/reservations", tags=["reservations"])
app.include_router(
    admin.router,
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_token)],
)


@app.get("/")
async def root():
    return {"status": "ok"}


@app.get("/health")
async def health_check(session: AsyncSession = Depends(get_session)):
    """
    Health check endpoint for monitoring and orchestration.
    Checks database connectivity.
    """
    health_status = {
        "status": "healthy",
        "version": VERSION,
        "checks": {
            "database": "ok",
        }
    }

    try:
        await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = "error"

    return health_status


@app.get("/metrics")
async def metrics_endpoint(openmetrics: bool = False):
    """
    Prometheus metrics endpoint.

    Args:
        openmetrics: If True, return OpenMetrics format
    """
    return get_metrics_response(openmetrics=openmetrics)
