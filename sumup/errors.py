"""
Application Error Taxonomy

Closed set of failure variants surfaced by the engine. Each variant is an
immutable value tagged with an ErrorKind; ``AppError`` is the union of all
variants, so callers can ``match`` on it exhaustively:

    match err:
        case RateLimitError(reset_time=reset):
            show_banner(reset)
        case NetworkError() | ServerError() | ModelLoadingError():
            offer_retry()
        case _:
            show(user_message(err))

Variants are values, not exceptions. ``PipelineError`` is the one exception
type that carries an AppError across a ``raise``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from sumup.summarization.result_types import SummaryResult


class ErrorKind(Enum):
    """Tag for each AppError variant."""
    NETWORK = "network"
    SERVER = "server"
    RATE_LIMIT = "rate_limit"
    TEXT_TOO_SHORT = "text_too_short"
    INVALID_INPUT = "invalid_input"
    OCR_FAILED = "ocr_failed"
    STORAGE_FULL = "storage_full"
    MODEL_LOADING = "model_loading"
    API_KEY = "api_key"
    INVALID_API_KEY = "invalid_api_key"
    UNKNOWN = "unknown"


# Kinds the orchestrator retries on its own
TRANSIENT_KINDS = frozenset({ErrorKind.NETWORK, ErrorKind.SERVER, ErrorKind.MODEL_LOADING})


@dataclass(frozen=True)
class NetworkError:
    detail: str = ""
    kind = ErrorKind.NETWORK
    message = "No internet connection"


@dataclass(frozen=True)
class ServerError:
    detail: str = ""
    kind = ErrorKind.SERVER
    message = "Server error occurred"


@dataclass(frozen=True)
class RateLimitError:
    reset_time: datetime
    detail: str = ""
    kind = ErrorKind.RATE_LIMIT
    message = "Daily limit reached"


@dataclass(frozen=True)
class TextTooShortError:
    detail: str = ""
    kind = ErrorKind.TEXT_TOO_SHORT
    message = "Text too short for summary"


@dataclass(frozen=True)
class InvalidInputError:
    detail: str = ""
    kind = ErrorKind.INVALID_INPUT
    message = "Invalid text format"


@dataclass(frozen=True)
class OCRFailedError:
    detail: str = ""
    kind = ErrorKind.OCR_FAILED
    message = "Couldn't read text from image"


@dataclass(frozen=True)
class StorageFullError:
    detail: str = ""
    kind = ErrorKind.STORAGE_FULL
    message = "Storage limit reached"


@dataclass(frozen=True)
class ModelLoadingError:
    detail: str = ""
    kind = ErrorKind.MODEL_LOADING
    message = "AI model loading"


@dataclass(frozen=True)
class ApiKeyError:
    detail: str = ""
    kind = ErrorKind.API_KEY
    message = "API key required"


@dataclass(frozen=True)
class InvalidApiKeyError:
    detail: str = ""
    kind = ErrorKind.INVALID_API_KEY
    message = "Invalid API key"


@dataclass(frozen=True)
class UnknownError:
    original_message: str

    kind = ErrorKind.UNKNOWN

    @property
    def message(self) -> str:
        return self.original_message

    @property
    def detail(self) -> str:
        return self.original_message


AppError = Union[
    NetworkError,
    ServerError,
    RateLimitError,
    TextTooShortError,
    InvalidInputError,
    OCRFailedError,
    StorageFullError,
    ModelLoadingError,
    ApiKeyError,
    InvalidApiKeyError,
    UnknownError,
]


def is_transient(err: AppError) -> bool:
    """True for failures the orchestrator may retry (network, server, model loading)."""
    return err.kind in TRANSIENT_KINDS


def user_message(err: AppError, partial: bool = False) -> str:
    """
    Build an actionable, user-facing message for an AppError.

    Args:
        err: The error to describe.
        partial: True when a partial summary accompanies the error.

    Returns:
        Text suitable for an error dialog or snackbar.
    """
    match err:
        case RateLimitError(reset_time=reset):
            text = f"{err.message}. Requests reset at {reset.strftime('%Y-%m-%d %H:%M UTC')}."
        case NetworkError():
            text = f"{err.message}. Check your connection and try again."
        case ServerError() | ModelLoadingError():
            text = f"{err.message}. Please try again in a few moments."
        case TextTooShortError():
            text = f"{err.message}. Please enter at least a few sentences."
        case InvalidInputError() | OCRFailedError():
            text = f"{err.message}." + (f" ({err.detail})" if err.detail else "")
        case StorageFullError():
            text = f"{err.message}. Free some space on the device."
        case ApiKeyError():
            text = f"{err.message}. Add an API key in settings."
        case InvalidApiKeyError():
            text = f"{err.message}. Check the API key in settings."
        case UnknownError(original_message=original):
            text = f"Unexpected error: {original}"
        case _:
            raise TypeError(f"Unhandled AppError variant: {err!r}")

    if partial:
        text += " A partial summary is available."
    return text


class PipelineError(Exception):
    """
    Raised by public coroutines when a run ends in an AppError.

    Attributes:
        error: The classified AppError.
        partial_result: Partial SummaryResult, when some work completed.
    """

    def __init__(self, error: AppError, partial_result: SummaryResult | None = None):
        super().__init__(f"{error.kind.value}: {error.detail or error.message}")
        self.error = error
        self.partial_result = partial_result


# =============================================================================
# Collaborator exceptions (raised by adapters, mapped by error_classifier)
# =============================================================================

class BackendHTTPError(Exception):
    """Summarization backend answered with a non-200 status."""

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"Backend returned status {status_code}: {body[:200]}")
        self.status_code = status_code
        self.body = body


class MissingApiKeyError(Exception):
    """Backend requires an API key and none is configured."""


class ExtractionFailedError(Exception):
    """Text extraction failed; ``ocr`` marks failures on the OCR path."""

    def __init__(self, message: str, ocr: bool = False):
        super().__init__(message)
        self.ocr = ocr
