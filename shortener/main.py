"""FastAPI application entry point for the URL shortener service.

This module configures and initializes the FastAPI application with middleware,
lifecycle management, error handlers and route registration.

Application Lifecycle Diagram
===========================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ init_db()   │
    │ seed counter│
    │ services    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ drain clicks│
    │ close_redis()│
    │ close_db()  │
    └─────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn shortener.main:app --host 0.0.0.0 --port 5080

**Step 2 — Make API calls**::
    curl -X POST http://localhost:5080/api/create/longurl \
         -H "Content-Type: application/json" \
         -d '{"longUrl": "https://example.com/a/b/c"}'

    curl -i http://localhost:5080/q0V

Key Behaviours
===============
- Database tables and the sequence counter row are created on startup. A
  startup failure propagates out of the lifespan and uvicorn exits.
- Domain errors are rendered as ``{"success": false, "error": ...}`` with the
  status the error carries; backend details only reach the logs.
- Any other unhandled exception becomes a generic 500.
"""

__all__ = ["app"]

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from shortener.allocator import SequenceAllocator
from shortener.config import get_settings
from shortener.database import async_session, close_db, init_db
from shortener.dependencies import _service_manager
from shortener.exceptions import ShortenerError, StorageConflictError, StorageUnavailableError
from shortener.redis import close_redis
from shortener.routes import router
from shortener.schemas import ErrorResponse

settings = get_settings()
logger = logging.getLogger("urlshortener")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await _service_manager.initialize()
    await init_db()
    async with async_session() as session:
        await SequenceAllocator(session).ensure_initialized()
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started, short URLs under {settings.short_url_prefix}")
    yield
    # Shutdown
    await _service_manager.cleanup()
    await close_redis()
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Short-code allocation and redirect service",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(ShortenerError)
async def shortener_error_handler(request: Request, exc: ShortenerError) -> JSONResponse:
    if isinstance(exc, StorageConflictError):
        # Already logged at CRITICAL by the service; keep the request line.
        logger.error(f"{request.method} {request.url.path} failed with storage conflict: {exc}")
    elif isinstance(exc, StorageUnavailableError):
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=exc.public_message).to_content())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} invalid request body: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error="Long URL is required and must be a string").to_content(),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="Something went wrong!").to_content(),
    )


Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
    excluded_handlers=["/metrics"],
).instrument(app).expose(app, include_in_schema=False)

app.include_router(router)
