"""
app/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Registers exception handlers and API routes
- Request id and caller context on every log line
- No business logic should be written here
- Manages application lifecycle (startup/shutdown)
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import time
import uuid

from app.core.config import settings, validate_settings
from app.core.errors import add_exception_handlers
from app.core.logging import LogContext, setup_logging, get_logger
from app.db.mongo import connect_to_mongo, close_mongo_connection, check_database_health, describe_deployment
from app.db.indexes import create_indexes
from app.api import admin, applications, contacts, referral, security, users

# Initialize logging first
setup_logging()
logger = get_logger(__name__)

APP_VERSION = "1.0.0"
SLOW_REQUEST_SECONDS = 5.0
REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("🚀 Starting Platewise API...")

    try:
        logger.info("Validating configuration...")
        validate_settings()
        logger.info("✅ Configuration validated")

        logger.info("Connecting to MongoDB...")
        await connect_to_mongo()
        logger.info("✅ MongoDB connected")

        logger.info("Creating database indexes...")
        await create_indexes()
        logger.info("✅ Database indexes created")

        is_healthy = await check_database_health()
        if not is_healthy:
            logger.warning("⚠️ Database health check failed during startup")
        else:
            logger.info("✅ Database health check passed")

        logger.info("🎉 Platewise API started successfully!")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Debug Mode: {settings.DEBUG}")

    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    yield  # Application runs here

    logger.info("🛑 Shutting down Platewise API...")

    try:
        await close_mongo_connection()
        logger.info("✅ MongoDB connection closed")
        logger.info("👋 Platewise API shut down successfully")

    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)


app = FastAPI(
    title="Platewise API",
    description="Accounts, sessions, referrals and intake for the Platewise food-ordering platform",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,  # Disable docs in production
    redoc_url="/redoc" if settings.is_development else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """
    Tags every log line of the request with its request id and caller, and
    reports the processing time.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    context = {"request_id": request_id}
    caller = request.headers.get("x-user-id")
    if caller:
        context["user_id"] = caller

    with LogContext(**context):
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time

        if process_time > SLOW_REQUEST_SECONDS:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path}",
                extra={"process_time": process_time, "status_code": response.status_code}
            )

    response.headers[REQUEST_ID_HEADER] = request_id
    response.headers["X-Process-Time"] = f"{process_time:.4f}"
    return response


add_exception_handlers(app)

app.include_router(security.router, prefix=settings.API_PREFIX, tags=["Security"])
app.include_router(referral.router, prefix=settings.API_PREFIX, tags=["Referrals"])
app.include_router(users.router, prefix=settings.API_PREFIX, tags=["Users"])
app.include_router(contacts.router, prefix=settings.API_PREFIX, tags=["Contacts"])
app.include_router(applications.applications_router, prefix=settings.API_PREFIX, tags=["Applications"])
app.include_router(applications.interns_router, prefix=settings.API_PREFIX, tags=["Interns"])
app.include_router(admin.router, prefix=settings.API_PREFIX, tags=["Admin"])


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - basic info."""
    return {
        "name": "Platewise API",
        "version": APP_VERSION,
        "status": "running",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Checks database connectivity and reports overall status.
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.ENVIRONMENT,
        "version": APP_VERSION,
        "checks": {}
    }

    try:
        db_healthy = await check_database_health()
        health_status["checks"]["database"] = "healthy" if db_healthy else "unhealthy"

        if db_healthy:
            deployment = await describe_deployment()
            health_status["checks"]["transactions"] = (
                "supported" if deployment["transactions_supported"] else "unavailable"
            )
        else:
            health_status["status"] = "degraded"
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "unhealthy"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


# Readiness probe (for Kubernetes/orchestration)
@app.get("/ready", tags=["Health"])
async def readiness_check():
    try:
        db_healthy = await check_database_health()
        if db_healthy:
            return {"status": "ready"}
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": "database_unavailable"}
        )
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": str(e)}
        )


# Liveness probe (for Kubernetes/orchestration)
@app.get("/live", tags=["Health"])
async def liveness_check():
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
