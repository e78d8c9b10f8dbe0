"""Pydantic schemas for request/response validation in the URL shortener.

The public API speaks camelCase JSON (``longUrl``, ``shortCode`` ...), while
the Python side stays snake_case; every schema derives from ``CamelModel``
which maps between the two with an alias generator.

Schema Hierarchy
=================
::
    ShortenRequest (Input)
    └─ longUrl: str

    ShortenResponse (Output, 201 created / 200 existing)
    ├─ success: bool
    ├─ shortCode: str
    ├─ shortUrl: str
    ├─ originalUrl: str
    └─ message: str

    InfoResponse (Output)
    ├─ success: bool
    └─ data: URLInfo
         ├─ originalUrl, shortCode
         ├─ clicks: int
         └─ createdAt: datetime

    ErrorResponse (Output, every 4xx/5xx)
    ├─ success: false
    ├─ error: str
    ├─ shortCode: str (redirect 404 only)
    └─ availableEndpoints: list[str] (unknown /api route only)

    HealthResponse (Output)

Key Behaviours
===============
- Responses are serialized by alias, so clients only ever see camelCase.
- ``longUrl`` must be a JSON string; anything else is a 400 before the
  service is called. URL semantics are checked in the service layer.
- Optional error fields are dropped when unset.
"""

import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shortener.enums import HealthStatus

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "InfoResponse",
    "ShortenRequest",
    "ShortenResponse",
    "URLInfo",
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ShortenRequest(CamelModel):
    long_url: str = Field(..., description="The original URL to shorten, e.g. 'https://example.com/a/b/c'")


class ShortenResponse(CamelModel):
    success: bool = True
    short_code: str
    short_url: str
    original_url: str
    message: str


class URLInfo(CamelModel):
    original_url: str
    short_code: str
    clicks: int
    created_at: datetime.datetime


class InfoResponse(CamelModel):
    success: bool = True
    data: URLInfo


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    short_code: str | None = None
    available_endpoints: list[str] | None = None

    def to_content(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class HealthResponse(CamelModel):
    success: bool
    message: str
    timestamp: datetime.datetime
    version: str
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus
