"""FastAPI route definitions for the URL shortener REST API.

Short codes and API routes share one path namespace, so registration order
matters: every ``/api/...`` route, including the ``/api/*`` not-found
catch-all, is declared before the ``/{short_code}`` redirect catch-all.

API Endpoint Overview
=====================
::
    GET  /api/health
        └─ HealthResponse (200)

    POST /api/create/longurl
        ├─ ShortenRequest (request body)
        └─ ShortenResponse (201 created / 200 existing) or 400/500/503

    GET  /api/info/:short_code
        └─ InfoResponse (200) or 400/404

    ANY  /api/*
        └─ ErrorResponse (404) with availableEndpoints

    GET  /:short_code
        └─ 301 Redirect or 400/404

    ANY  /* (other methods)
        └─ ErrorResponse (404) "Page not found"

Key Behaviours
===============
- Service errors are rendered by the exception handlers in ``main.py``;
  routes only deal with the success path.
- Redirects are permanent (301); the click is counted in the background.
"""

import datetime

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import text

from shortener.database import storage_guard
from shortener.dependencies import (
    RequestContext,
    get_request_context,
    get_resolution_service,
    get_shortening_service,
)
from shortener.enums import HealthStatus
from shortener.exceptions import ShortCodeNotFoundError, StorageUnavailableError
from shortener.resolution_service import URLResolutionService
from shortener.schemas import ErrorResponse, HealthResponse, InfoResponse, ShortenRequest, ShortenResponse, URLInfo
from shortener.url_service import URLShorteningService

__all__ = ["API_ENDPOINTS", "router"]

router = APIRouter()

API_ENDPOINTS = [
    "POST /api/create/longurl",
    "GET /api/info/{shortCode}",
    "GET /api/health",
]

RESERVED_PATHS = frozenset({"", "favicon.ico"})


@router.get("/api/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    try:
        async with storage_guard(ctx.database, "health check"):
            await ctx.database.execute(text("SELECT 1"))
    except StorageUnavailableError:
        db_status = HealthStatus.UNHEALTHY

    cache_status = HealthStatus.HEALTHY
    if ctx.cache is not None:
        cache_status = HealthStatus.from_bool(await ctx.cache.ping())

    overall = HealthStatus.from_bool(
        db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
    )
    if overall is not HealthStatus.HEALTHY:
        ctx.logger.warning(f"Health check degraded: database={db_status}, cache={cache_status}")

    return HealthResponse(
        success=True,
        message="URL Shortener API is running",
        timestamp=datetime.datetime.now(datetime.timezone.utc),
        version=ctx.settings.APP_VERSION,
        status=overall,
        database=db_status,
        cache=cache_status,
    )


@router.post(
    "/api/create/longurl",
    response_model=ShortenResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["urls"],
)
async def create_short_url(
    payload: ShortenRequest,
    response: Response,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_shortening_service),
) -> ShortenResponse:
    ctx.logger.info(
        f"URL shortening requested: {payload.long_url}",
        extra={"operation": "shorten", "target_url": payload.long_url},
    )
    result = await service.shorten(payload.long_url)

    if result.created:
        message = "Short URL created successfully"
    else:
        response.status_code = status.HTTP_200_OK
        message = "URL already exists"

    ctx.logger.info(
        f"{message}: {result.short_code}",
        extra={"operation": "shorten", "short_code": result.short_code, "duration_ms": ctx.get_duration()},
    )
    return ShortenResponse(
        short_code=result.short_code,
        short_url=result.short_url,
        original_url=result.original_url,
        message=message,
    )


@router.get("/api/info/{short_code:path}", response_model=InfoResponse, tags=["urls"])
async def get_url_info(
    short_code: str,
    service: URLResolutionService = Depends(get_resolution_service),
) -> InfoResponse:
    url = await service.get_info(short_code)
    return InfoResponse(data=URLInfo.model_validate(url))


@router.api_route(
    "/api/{rest:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def unknown_api_route(request: Request) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=ErrorResponse(
            error=f"API endpoint {request.url.path} not found",
            available_endpoints=API_ENDPOINTS,
        ).to_content(),
    )


@router.get("/{short_code:path}", tags=["redirect"])
async def redirect_to_url(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: URLResolutionService = Depends(get_resolution_service),
) -> Response:
    if short_code in RESERVED_PATHS or short_code.startswith("api/"):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=ErrorResponse(error="Page not found").to_content(),
        )

    try:
        original_url = await service.resolve(short_code)
    except ShortCodeNotFoundError as exc:
        ctx.logger.warning(
            f"Redirect failed - short code not found: {short_code}",
            extra={"operation": "redirect", "short_code": short_code, "error": "not_found"},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.public_message, short_code=short_code).to_content(),
        )

    ctx.logger.info(
        f"Redirecting {short_code} to {original_url}",
        extra={"operation": "redirect", "short_code": short_code, "duration_ms": ctx.get_duration()},
    )
    return RedirectResponse(url=original_url, status_code=status.HTTP_301_MOVED_PERMANENTLY)


@router.api_route(
    "/{rest:path}",
    methods=["POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def unknown_page(rest: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=ErrorResponse(error="Page not found").to_content(),
    )
