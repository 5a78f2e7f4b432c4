"""
GarmentFlow - Main FastAPI Application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, timezone

from app.api.v1 import router as api_v1_router
from app.core.config import settings
from app.exceptions import GarmentFlowException
from app.logging_config import setup_logging, get_logger

# Setup structured logging
setup_logging()
logger = get_logger(__name__)


# ===================
# Security Headers Middleware
# ===================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


def init_database():
    """Create missing tables in development; other environments use Alembic."""
    from app.db.session import engine
    from app.db.base import Base
    import app.models  # noqa: F401

    logger.info("Checking database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(
        "Starting GarmentFlow API",
        extra={
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "debug": settings.DEBUG,
        }
    )
    if settings.is_development:
        init_database()
    yield
    logger.info("Shutting down GarmentFlow API")


# Create FastAPI app
app = FastAPI(
    title="GarmentFlow API",
    description="Work order generation and raw-material allocation for garment production",
    version=settings.VERSION,
    lifespan=lifespan,
)

# Security headers middleware (outermost)
app.add_middleware(SecurityHeadersMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With", "X-Actor"],
)


# ===================
# Exception Handlers
# ===================

def _error_response(status_code: int, body: dict) -> JSONResponse:
    """Stamp the shared error envelope and render it."""
    body.setdefault("details", {})
    body["timestamp"] = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(GarmentFlowException)
async def garmentflow_exception_handler(request: Request, exc: GarmentFlowException):
    logger.warning(
        f"{exc.error_code} on {request.url.path}: {exc.message}",
        extra={"error_code": exc.error_code, "details": exc.details, "path": request.url.path}
    )
    return _error_response(exc.status_code, exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning("Validation error on %s", request.url.path, extra={"errors": errors})
    return _error_response(422, {
        "error": "VALIDATION_ERROR",
        "message": "Request validation failed",
        "details": {"errors": errors},
    })


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.url.path}: {exc}", exc_info=True)
    return _error_response(500, {"error": "DATABASE_ERROR", "message": "A database error occurred. Please try again."})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error on {request.url.path}: {exc}", exc_info=True)
    return _error_response(500, {
        "error": "INTERNAL_ERROR",
        "message": "An unexpected error occurred. Please try again later.",
    })


# Include API routes
app.include_router(api_v1_router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    return {"message": "GarmentFlow API", "version": settings.VERSION, "status": "online"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8001, reload=True)
