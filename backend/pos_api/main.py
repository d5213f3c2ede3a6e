"""
REST API main application.
Entry point for the FastAPI REST server of the bar POS.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from pos_shared.config.settings import settings
from pos_shared.config.logging import setup_logging, rest_api_logger as logger
from pos_shared.infrastructure.db import engine, SessionLocal
from pos_shared.infrastructure.events import (
    close_redis_pool,
    get_event_circuit_breaker,
    get_redis_pool,
)
from pos_shared.security.rate_limit import limiter, rate_limit_exceeded_handler
from pos_api.models import Base
from pos_api.seed import seed
from pos_api.routers.auth import router as auth_router
from pos_api.routers.orders import router as orders_router
from pos_api.routers.tables import router as tables_router
from pos_api.routers.catalog import router as catalog_router
from pos_api.routers.inventory import router as inventory_router
from pos_api.routers.cash import router as cash_router
from pos_api.routers.billing import router as billing_router
from pos_api.routers.admin import router as admin_router
from pos_api.routers.settings import router as settings_router
from pos_api.routers.broadcasting import router as broadcasting_router
from pos_api.routers.suppliers import router as suppliers_router
from pos_api.routers.reports import router as reports_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    setup_logging()

    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )
        logger.warning("Running with insecure defaults (acceptable for development only)")

    logger.info("Starting REST API", port=settings.rest_api_port, env=settings.environment)

    if settings.database_bootstrap:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified")
        with SessionLocal() as db:
            seed(db)

    yield

    logger.info("Shutting down REST API")
    await close_redis_pool()
    logger.info("Redis connection pool closed")


app = FastAPI(
    title="Bar POS REST API",
    description="Orders, tables, stock and cash for a nightclub bar",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Error envelope
# =============================================================================


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err["loc"][1:]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"success": False, "message": "Datos inválidos", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Internal details stay in the log
    logger.error(
        "Unhandled error",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Error interno del servidor"},
    )


# =============================================================================
# Health Check
# =============================================================================


@app.get("/api/health")
def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "rest-api",
        "environment": settings.environment,
    }


@app.get("/api/health/detailed")
async def detailed_health_check():
    """
    Detailed health check that verifies connectivity to the database and Redis.
    Answers 503 when either is down.
    """
    checks = {
        "service": "rest-api",
        "environment": settings.environment,
        "dependencies": {},
    }
    all_healthy = True

    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        checks["dependencies"]["database"] = {"status": "healthy"}
    except Exception as e:
        checks["dependencies"]["database"] = {"status": "unhealthy", "error": str(e)}
        all_healthy = False

    try:
        redis = await get_redis_pool()
        await redis.ping()
        checks["dependencies"]["redis"] = {"status": "healthy"}
    except Exception as e:
        checks["dependencies"]["redis"] = {"status": "unhealthy", "error": str(e)}
        all_healthy = False

    checks["event_circuit_breaker"] = get_event_circuit_breaker().get_stats()
    checks["status"] = "healthy" if all_healthy else "degraded"

    if not all_healthy:
        return JSONResponse(content=checks, status_code=503)
    return checks


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(auth_router)
app.include_router(orders_router)
app.include_router(tables_router)
app.include_router(catalog_router)
app.include_router(inventory_router)
app.include_router(cash_router)
app.include_router(billing_router)
app.include_router(admin_router)
app.include_router(settings_router)
app.include_router(broadcasting_router)
app.include_router(suppliers_router)
app.include_router(reports_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pos_api.main:app",
        host="0.0.0.0",
        port=settings.rest_api_port,
        reload=settings.debug,
    )
