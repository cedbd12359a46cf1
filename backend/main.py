"""
Main module for the FastAPI application.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.__version__ import __version__
from app.api.v1.approvals import router as approvals_router
from app.api.v1.billing import router as billing_router
from app.api.v1.calendar import router as calendar_router
from app.api.v1.clients import router as clients_router
from app.api.v1.credits import router as credits_router
from app.api.v1.cron import router as cron_router
from app.api.v1.late import router as late_router
from app.api.v1.portal import router as portal_router
from app.api.v1.posts import router as posts_router
from app.api.v1.projects import router as projects_router
from app.api.v1.subscription import router as subscription_router
from app.api.v1.uploads import router as uploads_router
from app.core.config import settings
from app.core.errors import AppError, RequestTimeout, error_response
from app.core.rate_limit import rate_limit_middleware
from app.core.version import get_version_info

# Setup logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

STATEMENT_TIMEOUT_SQLSTATE = "57014"


# Lifespan event handler
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan event handler - runs on startup and shutdown.
    """
    logger.info(f"ContentDesk API {__version__} starting ({settings.ENVIRONMENT})")

    integrations = {
        "Supabase auth": settings.SUPABASE_JWT_SECRET,
        "Late": settings.LATE_API_KEY,
        "Stripe": settings.STRIPE_SECRET_KEY,
        "Stripe webhooks": settings.STRIPE_WEBHOOK_SECRET,
        "Blob storage": settings.BLOB_READ_WRITE_TOKEN,
        "Cron secret": settings.CRON_SECRET,
    }
    for name, value in integrations.items():
        if value:
            logger.info(f"{name}: configured")
        else:
            logger.warning(f"{name}: not configured")

    yield

    # Shutdown
    logger.info("ContentDesk API shutting down")


app = FastAPI(
    title="ContentDesk API",
    description="API for social content calendars, client approvals and publishing",
    version=__version__,
    lifespan=lifespan,
)

app.middleware("http")(rate_limit_middleware)

# Configure CORS
if settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# --- Error handlers ---

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.details})")
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": message,
            "errorKind": "validation_error",
            "details": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors],
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail), "errorKind": "http_error"},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(DBAPIError)
async def database_error_handler(request: Request, exc: DBAPIError):
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate == STATEMENT_TIMEOUT_SQLSTATE:
        logger.warning(f"{request.method} {request.url.path} hit the statement timeout")
        return error_response(RequestTimeout(extra={"suggestion": "Try reducing the page size"}))

    logger.error(f"{request.method} {request.url.path} database error: {exc}")
    return error_response(AppError("Database error", details=str(exc.orig) if settings.is_development else None))


# Include routers
app.include_router(clients_router, prefix="/api")
app.include_router(projects_router, prefix="/api")
app.include_router(calendar_router, prefix="/api")
app.include_router(posts_router, prefix="/api")
app.include_router(approvals_router, prefix="/api")
app.include_router(portal_router, prefix="/api")
app.include_router(late_router, prefix="/api")
app.include_router(uploads_router, prefix="/api")
app.include_router(billing_router, prefix="/api")
app.include_router(subscription_router, prefix="/api")
app.include_router(credits_router, prefix="/api")
app.include_router(cron_router, prefix="/api")


@app.get("/")
async def root():
    """
    Root endpoint for health checks.
    """
    return {"message": "ContentDesk API is running"}


@app.get("/health")
async def health():
    """
    Health check endpoint.
    """
    return {"status": "ok"}


@app.get("/version", tags=["health"])
async def get_version():
    """
    Get API version and feature flags.
    """
    return get_version_info()


if __name__ == "__main__":
    """
    Run the application directly.
    """
    import uvicorn

    port = int(os.getenv("PORT", settings.API_PORT))

    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=port,
        reload=settings.DEBUG,
    )
