"""Main FastAPI application."""
from fastapi import FastAPI, HTTPException, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy import text

from rollcall.api.v1.router import api_router
from rollcall.api.deps import get_db
from rollcall.core.config import settings
from rollcall.core.exceptions import CheckinError
from rollcall.core.rate_limit import limiter
from rollcall.core.logging_config import setup_logging, get_logger
from rollcall.middleware import LoggingMiddleware
from rollcall.schemas import ErrorDetail, ErrorResponse

# Initialize structured logging
setup_logging(level=settings.LOG_LEVEL)
logger = get_logger(__name__)

if settings.ENVIRONMENT == "production":
    settings.validate_production_config()

logger.info(
    "application_starting",
    app_title=settings.APP_TITLE,
    app_version=settings.APP_VERSION,
    environment=settings.ENVIRONMENT,
)

app = FastAPI(
    title=settings.APP_TITLE,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION
)

# Add rate limiter to app state
app.state.limiter = limiter

# Add rate limit exceeded exception handler
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(CheckinError)
async def checkin_error_handler(request: Request, exc: CheckinError):
    """Render check-in errors as the standard error body."""
    body = ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message))
    return JSONResponse(status_code=exc.http_status, content=body.model_dump())


# Add logging middleware (must be added before other middleware for proper request tracking)
app.add_middleware(LoggingMiddleware)

# Add API versioning middleware
@app.middleware("http")
async def add_api_version_header(request: Request, call_next):
    """Add X-API-Version header to all responses for version tracking."""
    response = await call_next(request)
    response.headers["X-API-Version"] = settings.APP_VERSION
    return response

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,  # Configured via environment
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

# Include API router
app.include_router(api_router)


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
        - status: "healthy" or "unhealthy"
        - database: Database connection status
        - environment: Current environment setting

    Returns 503 if database is unreachable.
    """
    health_status = {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "database": {"status": "connected"},
    }

    try:
        # Test database connection with a simple query
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        health_status["status"] = "unhealthy"
        health_status["database"]["status"] = f"error: {str(e)}"
        logger.error("health_check_failed", error=str(e))
        raise HTTPException(status_code=503, detail=health_status)

    return health_status
