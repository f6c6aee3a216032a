"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gateway.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from gateway.api.routes import keys, metrics, resources, webhooks
from gateway.core.config import get_settings
from gateway.core.structured_logging import log_json

logger = logging.getLogger(__name__)
settings = get_settings()
docs_enabled = settings.api_docs_enabled
if docs_enabled is None:
    docs_enabled = not settings.is_production

app = FastAPI(
    title="BuildDesk API Gateway",
    description="Tenant-scoped API keys, record access and signed webhooks",
    version="1.0.0",
    docs_url="/docs" if docs_enabled else None,
    redoc_url="/redoc" if docs_enabled else None,
    openapi_url="/openapi.json" if docs_enabled else None,
)

# Middleware is applied in reverse order: request logging is outermost
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as ``{"error": <message>}``."""
    content = {"error": exc.detail if isinstance(exc.detail, str) else "Request failed"}
    details = getattr(exc, "details", None)
    if details is None and not isinstance(exc.detail, str):
        details = exc.detail
    if details is not None:
        content["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    log_json(
        logger,
        logging.INFO,
        "request_validation_failed",
        method=request.method,
        path=request.url.path,
        errors=len(exc.errors()),
    )
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request body",
            "details": jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log_json(
        logger,
        logging.ERROR,
        "unhandled_error",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        exception=exc.__class__.__name__,
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


app.include_router(keys.router, tags=["api-keys"])
app.include_router(resources.router, tags=["resources"])
app.include_router(webhooks.router, tags=["webhooks"])
app.include_router(metrics.router, tags=["metrics"])
