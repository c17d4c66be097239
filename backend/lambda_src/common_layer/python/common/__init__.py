"""Shared utilities for Lambda functions."""

from .http import (
    HttpRequestParser,
    HttpResponse,
    RequestError,
    cors_preflight_response,
    error_response,
    json_response,
)
from .settings import StudioSettings
from .time_utils import utc_now_iso
from .videos_repository import RepositoryError, VideosRepository

__all__ = [
    "HttpRequestParser",
    "HttpResponse",
    "RepositoryError",
    "RequestError",
    "StudioSettings",
    "VideosRepository",
    "cors_preflight_response",
    "error_response",
    "json_response",
    "utc_now_iso",
]
