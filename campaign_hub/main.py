from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import structlog
import time
import uvicorn

from campaign_hub.core.config import get_settings
from campaign_hub.core.circuit_breaker import db_circuit_breaker
from campaign_hub.core.errors import CampaignHubError, InternalError
from campaign_hub.database.database import engine, init_db, close_db
from campaign_hub.api.campaign import router as campaigns_router
from campaign_hub.middleware.tracing import init_tracing
from campaign_hub.middleware.metrics import MetricsMiddleware, metrics_endpoint
from campaign_hub.middleware.logging import logging_middleware

settings = get_settings()

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Setup structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

HTTP_ERROR_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHENTICATED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Campaign management API for fundraising and blood-donation campaigns",
    version="1.0.0",
    debug=settings.debug
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize tracing (must be done before startup events)
init_tracing(app)

# Add metrics middleware
app.add_middleware(MetricsMiddleware)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Logging middleware with trace correlation"""
    return await logging_middleware(request, call_next)


def error_response(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    body = {"code": code, "message": message}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body})


@app.exception_handler(CampaignHubError)
async def campaign_hub_error_handler(request: Request, exc: CampaignHubError):
    """Domain errors carry their own status and code"""
    if exc.status_code >= 500:
        logger.error("Request failed", code=exc.code, error=exc.message, method=request.method, url=str(request.url))
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and query parameters are 400, not FastAPI's 422"""
    return error_response(
        400,
        "VALIDATION_ERROR",
        "Request validation failed",
        details=jsonable_encoder(exc.errors()),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = HTTP_ERROR_CODES.get(exc.status_code, "INTERNAL_ERROR" if exc.status_code >= 500 else "HTTP_ERROR")
    return error_response(exc.status_code, code, str(exc.detail))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler; internals never reach the client"""
    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        method=request.method,
        url=str(request.url)
    )
    return JSONResponse(status_code=500, content=InternalError("Internal server error").to_dict())


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup"""
    logger.info("Starting Campaign Hub", service_name=settings.service_name)

    try:
        init_db()
        logger.info("Application startup completed successfully")
    except Exception as e:
        logger.error("Failed to initialize application", error=str(e))
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown"""
    logger.info("Shutting down Campaign Hub")

    try:
        close_db()
        logger.info("Application shutdown completed successfully")
    except Exception as e:
        logger.error("Error during application shutdown", error=str(e))


# Health check endpoints
@app.get("/health")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "timestamp": time.time()
    }


@app.get("/metrics")
async def metrics(request: Request):
    """Prometheus metrics endpoint"""
    return await metrics_endpoint(request)


@app.get("/health/ready")
async def readiness_check():
    """Readiness check with database and circuit breaker status"""
    health_status = {
        "status": "ready",
        "service": settings.service_name,
        "timestamp": time.time(),
        "database": "disconnected",
        "circuit_breaker": db_circuit_breaker.get_state()
    }

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as db_e:
        logger.warning("Database health check failed", error=str(db_e))
        health_status["database"] = "error"

    if health_status["database"] != "connected":
        health_status["status"] = "not ready"
        return JSONResponse(status_code=503, content=health_status)

    return health_status


# Include routers
app.include_router(campaigns_router)


if __name__ == "__main__":
    uvicorn.run(
        "campaign_hub.main:app",
        host="0.0.0.0",
        port=8002,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug"
    )
