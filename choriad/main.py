"""
FastAPI application main module.
Wires the webhook and payment verification routers with request tracing, error handling and health checks.
"""
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text
from sqlalchemy.orm import Session
import time
import uuid
import os
from contextlib import asynccontextmanager
from choriad import config
from choriad.api.deps import get_db
from choriad.api.v1 import api_router
from choriad.utils import setup_logging, get_logger
from choriad.utils.circuit_breaker import GLOBAL_CIRCUIT_BREAKER
from choriad.utils.time import isoformat_z
from choriad.database import engine
from choriad.database import Base
import choriad.models.db  # noqa: F401  registers every table on Base.metadata

# Setup logging before creating the app
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_file=os.getenv("LOG_FILE", "logs/choriad.log"),
    enable_console=True
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("Application startup initiated")
    try:
        logger.info("Creating database tables")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")

        if not config.FLUTTERWAVE_SECRET_HASH:
            if config.ALLOW_UNSIGNED_WEBHOOKS:
                logger.warning("ALLOW_UNSIGNED_WEBHOOKS is enabled: webhook deliveries are not authenticated")
            else:
                logger.warning("FLUTTERWAVE_SECRET_HASH is not set: every webhook delivery will be rejected")
        if not config.FLUTTERWAVE_SECRET_KEY:
            logger.warning("FLUTTERWAVE_SECRET_KEY is not set: transactions cannot be verified")
        if not config.NOTIFICATION_SETTINGS.get("ops_user_id"):
            logger.warning("OPS_NOTIFICATION_USER_ID is not set: failed transfers will notify the booking's client")

        logger.info("Application startup completed successfully")
        yield
    except Exception as e:  # pragma: no cover
        logger.error("Application startup failed", error=str(e), exc_info=True)
        raise
    finally:
        logger.info("Application shutdown completed")


app = FastAPI(
    title="Choriad Payments",
    description="""
    Flutterwave webhook reconciliation and escrow state machine for the Choriad marketplace.

    ## Endpoints
    * **Webhook** - `POST /api/v1/flutterwave/webhook`, authenticated by the `verif-hash` header
    * **Redirect verification** - `POST /api/v1/payments/verify` after hosted checkout
    * **Health** - `/health` and `/health/detailed`
    """,
    version=config.SERVICE_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/api/v1/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.middleware("http")
async def add_request_context_and_logging(request: Request, call_next):
    """
    Add request ID, timing, and request/response logging.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    request.state.start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        user_agent=request.headers.get("User-Agent"),
        remote_addr=request.client.host if request.client else "unknown",
        request_id=request_id
    )

    response = await call_next(request)

    process_time = time.time() - request.state.start_time
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))
    response.headers["X-Content-Type-Options"] = "nosniff"

    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time_ms=round(process_time * 1000, 2),
        request_id=request_id
    )

    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.warning(
        "Request validation failed",
        errors=exc.errors(),
        request_id=request_id,
        url=str(request.url),
        method=request.method
    )

    return JSONResponse(
        status_code=422,
        content={
            "ok": False,
            "message": "Request validation failed",
            "details": jsonable_errors(exc),
        }
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=request_id,
        url=str(request.url),
        method=request.method
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "message": exc.detail}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions. Details stay in the log, never in the response."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        request_id=request_id,
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={"ok": False, "message": "internal"}
    )


@app.get("/health", tags=["health"], summary="Basic health check")
async def health_check():
    """Basic health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": config.SERVICE_NAME,
        "version": config.SERVICE_VERSION,
        "timestamp": isoformat_z(),
    }


@app.get("/health/detailed", tags=["health"], summary="Detailed health check")
def detailed_health_check(db: Session = Depends(get_db)):
    """Detailed health check with database and provider circuit status."""
    health_status = {
        "status": "healthy",
        "service": config.SERVICE_NAME,
        "version": config.SERVICE_VERSION,
        "timestamp": isoformat_z(),
        "checks": {}
    }

    try:
        db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "healthy"
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        health_status["checks"]["database"] = f"unhealthy: {str(e)}"
        health_status["status"] = "degraded"

    health_status["checks"]["circuit_breaker"] = GLOBAL_CIRCUIT_BREAKER.snapshot()
    return health_status


@app.get("/", tags=["root"])
async def root():
    """API root endpoint with basic information."""
    return {
        "message": "Choriad Payments API",
        "version": config.SERVICE_VERSION,
        "documentation": "/docs",
        "health_check": "/health",
        "api_base": "/api/v1"
    }


app.include_router(api_router, prefix="/api/v1")

if __name__ == "__main__":
    import uvicorn

    logger.info("Starting development server")

    uvicorn.run(
        "choriad.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        reload_dirs=["choriad"],
        log_level="info",
        access_log=True
    )
