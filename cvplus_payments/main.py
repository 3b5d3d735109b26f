"""
FastAPI application entry point for the CVPlus payments service.

Callable handlers live under /api/functions/{name}; the Stripe webhook
under /webhooks/stripe.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cvplus_payments import __version__
from cvplus_payments.api.routes import features, health, payments, scheduling, webhooks_stripe
from cvplus_payments.config.feature_catalog import get_feature_catalog
from cvplus_payments.config.settings import get_settings
from cvplus_payments.errors import FunctionError, InvalidArgumentError

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting CVPlus payments API")

    # Malformed URLs are fatal here, never per call
    settings = get_settings()
    catalog = get_feature_catalog()

    validation = catalog.validate_pricing_config("PREMIUM", settings.env)
    if not validation.is_valid:
        logger.error("Pricing configuration invalid", extra={"errors": validation.errors})
    for warning in validation.warnings:
        logger.warning("Pricing configuration warning", extra={"warning": warning})

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        logger.error("DATABASE_URL is not set. Handlers that touch storage will return 503.")
    else:
        masked = database_url.split("@")[-1] if "@" in database_url else "(local)"
        logger.info("DATABASE_URL configured", extra={"host_db": masked})

    logger.info("Payments API ready", extra={
        "env": settings.env,
        "frontend_url": settings.frontend_url,
        "features": len(catalog.feature_ids),
    })

    yield

    logger.info("Shutting down CVPlus payments API")


app = FastAPI(
    title="CVPlus Payments API",
    description="Premium feature gating, lifetime purchases and scheduling",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(health.router)
app.include_router(features.router)
app.include_router(payments.router)
app.include_router(scheduling.router)

# Uses Stripe signature verification, not JWT
app.include_router(webhooks_stripe.router)


@app.exception_handler(FunctionError)
async def function_error_handler(request: Request, exc: FunctionError):
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(part) for part in error["loc"] if part != "body") for error in exc.errors()]
    error = InvalidArgumentError("Invalid request", details={"fields": fields})
    return JSONResponse(status_code=error.http_status, content=error.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions with proper logging."""
    logger.error(
        "Unhandled exception",
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path,
        },
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": {"status": "internal", "message": "Internal server error"}},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
