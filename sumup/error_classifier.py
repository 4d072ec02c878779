"""
Error Classifier

Maps raw failures from extraction, analysis, the summarization backend, the
quota tracker and draft storage into the closed AppError taxonomy. The
mapping is total: anything not recognized becomes UnknownError carrying the
original message.
"""

import asyncio
import errno
import ssl
from datetime import datetime, timedelta, timezone

import requests

from sumup.errors import (
    ApiKeyError,
    AppError,
    BackendHTTPError,
    ExtractionFailedError,
    InvalidApiKeyError,
    InvalidInputError,
    MissingApiKeyError,
    ModelLoadingError,
    NetworkError,
    OCRFailedError,
    PipelineError,
    RateLimitError,
    ServerError,
    StorageFullError,
    UnknownError,
)
from sumup.logging_config import debug_log

# Backend 429s are short-lived; the daily quota has its own reset time
BACKEND_RATE_LIMIT_BACKOFF = timedelta(seconds=60)

_STORAGE_FULL_ERRNOS = {errno.ENOSPC, getattr(errno, 'EDQUOT', errno.ENOSPC)}


def classify_http_status(status_code: int, body: str = "", now: datetime | None = None) -> AppError:
    """
    Map a backend HTTP status code to an AppError.

    Args:
        status_code: HTTP status returned by the backend.
        body: Response body, used to spot "model is loading" responses.
        now: Current time (UTC) for the RateLimitError reset estimate.
    """
    detail = f"HTTP {status_code}"
    if status_code in (400, 413, 422):
        return InvalidInputError(detail)
    if status_code == 401:
        return InvalidApiKeyError(detail)
    if status_code == 403:
        return ApiKeyError(detail)
    if status_code == 429:
        now = now or datetime.now(timezone.utc)
        return RateLimitError(reset_time=now + BACKEND_RATE_LIMIT_BACKOFF, detail=detail)
    if status_code == 503 or "loading" in body.lower():
        return ModelLoadingError(detail)
    return ServerError(detail)


def classify_error(exc: BaseException) -> AppError:
    """
    Classify any exception into exactly one AppError variant.

    Args:
        exc: The raised exception.

    Returns:
        The matching AppError; UnknownError(original message) only when no
        other variant applies.
    """
    result = _classify(exc)
    debug_log(f"[CLASSIFIER] {type(exc).__name__}: {exc} -> {result.kind.value}")
    return result


def _classify(exc: BaseException) -> AppError:
    if isinstance(exc, PipelineError):
        return exc.error

    if isinstance(exc, BackendHTTPError):
        return classify_http_status(exc.status_code, exc.body)

    if isinstance(exc, MissingApiKeyError):
        return ApiKeyError(str(exc))

    if isinstance(exc, ExtractionFailedError):
        return OCRFailedError(str(exc)) if exc.ocr else InvalidInputError(str(exc))

    # Network failures: requests, asyncio and builtin timeouts, TLS
    if isinstance(exc, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return NetworkError(str(exc))
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError, ssl.SSLError)):
        return NetworkError(str(exc) or type(exc).__name__)
    if isinstance(exc, requests.exceptions.HTTPError) and exc.response is not None:
        return classify_http_status(exc.response.status_code, exc.response.text)

    # Storage
    if isinstance(exc, OSError) and exc.errno in _STORAGE_FULL_ERRNOS:
        return StorageFullError(str(exc))

    # Input
    if isinstance(exc, (ValueError, UnicodeError)):
        return InvalidInputError(str(exc))

    return UnknownError(str(exc) or type(exc).__name__)
