"""
FastAPI application entry point.
Main application setup and configuration.
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError as PydanticValidationError
import logging

from marketplace.config import settings
from marketplace.database import (
    AsyncSessionLocal,
    test_database_connection,
    create_tables,
    close_db_connection
)
from marketplace.routers import (
    auth_router,
    users_router,
    verifications_router,
    properties_router,
    purchases_router,
    portfolio_router,
    storage_router
)
from marketplace.services.auto_approval import AutoApprovalScheduler
from marketplace.services.error_handler import ErrorHandlerService
from marketplace.middleware.validation import ValidationMiddleware, RequestValidationMiddleware
from marketplace.utils.exceptions import APIException

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Creates tables for local deployments and owns the auto-approval timers.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    db_connected = await test_database_connection()
    if not db_connected:
        logger.error("Failed to connect to database on startup")
    elif settings.is_development or settings.is_testing or settings.is_sqlite:
        await create_tables()

    app.state.auto_approval = AutoApprovalScheduler(
        AsyncSessionLocal,
        delay_seconds=settings.kyc_auto_approve_delay_seconds,
        enabled=settings.kyc_auto_approve
    )
    if settings.kyc_auto_approve:
        logger.info(
            f"Simulated KYC review enabled: pending requests approve after "
            f"{settings.kyc_auto_approve_delay_seconds}s"
        )

    yield

    logger.info("Shutting down application")
    await app.state.auto_approval.shutdown()
    await close_db_connection()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Backend for a tokenized real-estate marketplace.

    ## Workflows

    * **Identity verification**: individuals and businesses submit KYC/KYB data; admins approve,
      reject or request revisions. A simulated review auto-approves pending requests after a delay.
    * **Property listings**: verified owners submit listings; admins approve, reject and issue tokens.
    * **Token purchases**: buyers buy fractions of tokenized listings from a fixed supply.
    * **Dashboards**: holdings, ROI and earnings are derived from the purchase ledger on every read.

    ## Authentication

    Sign up or log in through `/api/v1/auth`, then send the access token as `Bearer <token>`.
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Authentication", "description": "Sign-up, login and token management"},
        {"name": "Users", "description": "Dashboard mode and role management"},
        {"name": "Verification", "description": "Identity verification requests and admin review"},
        {"name": "Properties", "description": "Listing lifecycle, token issuance and the marketplace"},
        {"name": "Purchases", "description": "Token purchases"},
        {"name": "Portfolio", "description": "Holdings, earnings and platform overview"},
        {"name": "Storage", "description": "Document and image uploads"},
        {"name": "Health", "description": "System health endpoints"}
    ],
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Processing-Time"],
)

app.add_middleware(RequestValidationMiddleware, max_page_size=settings.max_page_size)

# Added last so it runs first and the request id exists for every error response
app.add_middleware(
    ValidationMiddleware,
    max_request_size=settings.max_file_size + 1024 * 1024,
    enable_request_logging=settings.debug,
    enable_rate_limiting=settings.is_production
)

app.include_router(auth_router, prefix=settings.api_v1_prefix)
app.include_router(users_router, prefix=settings.api_v1_prefix)
app.include_router(verifications_router, prefix=settings.api_v1_prefix)
app.include_router(properties_router, prefix=settings.api_v1_prefix)
app.include_router(purchases_router, prefix=settings.api_v1_prefix)
app.include_router(portfolio_router, prefix=settings.api_v1_prefix)
app.include_router(storage_router, prefix=settings.api_v1_prefix)


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    """Handle custom API exceptions with structured error responses."""
    return ErrorHandlerService.handle_api_exception(exc, request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI request validation errors with detailed field information."""
    return ErrorHandlerService.handle_validation_error(exc.errors(), request)


@app.exception_handler(PydanticValidationError)
async def pydantic_validation_exception_handler(request: Request, exc: PydanticValidationError):
    """Handle Pydantic validation errors raised while building responses or models."""
    return ErrorHandlerService.handle_validation_error(exc.errors(), request)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle database errors with appropriate error responses."""
    return ErrorHandlerService.handle_database_error(exc, request)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle routing errors (404, 405) with structured error responses."""
    return ErrorHandlerService.handle_http_exception(exc, request)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions with secure error responses."""
    return ErrorHandlerService.handle_unexpected_error(exc, request)


@app.get("/", tags=["Health"])
async def root():
    """Basic API information."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.environment,
        "status": "healthy",
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json"
        },
        "api_prefix": settings.api_v1_prefix
    }


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint with database connectivity test.
    Used by container health checks and load balancers.
    """
    db_healthy = await test_database_connection()
    if not db_healthy:
        raise HTTPException(status_code=503, detail="Database connection failed")

    scheduler = getattr(request.app.state, "auto_approval", None)
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected",
        "kyc_auto_approve": settings.kyc_auto_approve,
        "pending_auto_approvals": scheduler.pending_count if scheduler is not None else 0
    }


@app.get("/health/db", tags=["Health"])
async def database_health_check():
    """Dedicated database health check endpoint."""
    db_healthy = await test_database_connection()
    if not db_healthy:
        raise HTTPException(status_code=503, detail="Database connection failed")

    return {
        "status": "healthy",
        "database": "connected",
        "database_url": settings.database_url.split("@")[1] if "@" in settings.database_url else "hidden"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "marketplace.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
