"""Failure taxonomy for calls to the Gemini image service.

Raw SDK exceptions are turned into a :class:`ServiceCallError` carrying a
:class:`ServiceErrorKind`, so the retry loop and the user-facing classifier
match on the kind instead of searching serialized error text.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Optional

from google.genai import errors as genai_errors

from .schemas import ModelTier

logger = logging.getLogger(__name__)


ZERO_QUOTA_MARKERS = ("limit: 0", "limit:0")
RATE_LIMIT_STATUSES = {"RESOURCE_EXHAUSTED"}
OVERLOAD_STATUSES = {"UNAVAILABLE"}
CREDENTIAL_MARKERS = ("API key not valid", "API_KEY_INVALID", "API key expired")

ZERO_QUOTA_MESSAGE = (
    "Access Restricted: Your Google Cloud project has a quota of 0 for this model. "
    "Ensure the 'Generative Language API' is enabled in your Google Cloud Console, "
    "or try a different region (US is recommended)."
)
PRO_BILLING_MESSAGE = (
    "Permission Denied: The 'Pro' model requires a Google Cloud project with billing enabled. "
    "Please switch back to 'Standard' for free generation."
)
MODEL_NOT_FOUND_MESSAGE = "Model not available. The {tier} model is not accessible with your current API key."
FREE_TIER_LIMIT_MESSAGE = (
    "Free Tier Limit Reached: You are generating images too fast or have hit the daily limit. "
    "Please wait 1-2 minutes and try again."
)
GENERIC_FAILURE_MESSAGE = "Failed to generate advertisement."
NO_IMAGE_MESSAGE = "No image was generated. The model might have returned only text."


class ServiceErrorKind(str, Enum):
    ZERO_QUOTA = "zero_quota"
    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    INVALID_CREDENTIAL = "invalid_credential"
    LIMIT_EXCEEDED = "limit_exceeded"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in (ServiceErrorKind.RATE_LIMITED, ServiceErrorKind.OVERLOADED)


class ServiceCallError(Exception):
    """A failed call to the image service, tagged with what went wrong."""

    def __init__(
        self,
        kind: ServiceErrorKind,
        message: str,
        status_code: Optional[int] = None,
        status: Optional[str] = None,
        rate_limit_marker: bool = False,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.status = status
        # The error text mentions a quota or limit, whatever its status code.
        self.rate_limit_marker = rate_limit_marker

    def __repr__(self) -> str:
        return (
            f"ServiceCallError(kind={self.kind.value!r}, status_code={self.status_code!r}, "
            f"status={self.status!r}, message={self.message!r})"
        )

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ServiceCallError":
        if isinstance(exc, ServiceCallError):
            return exc
        if isinstance(exc, genai_errors.APIError):
            status_code = exc.code
            status = exc.status
            message = exc.message or str(exc)
            text = _error_text(message, getattr(exc, "details", None))
        else:
            status_code = getattr(exc, "status_code", None) or getattr(exc, "code", None)
            if not isinstance(status_code, int):
                status_code = None
            status = None
            message = str(exc)
            text = message
        kind = classify_service_error(status_code, status, text)
        return cls(
            kind,
            message,
            status_code=status_code,
            status=status,
            rate_limit_marker=has_rate_limit_marker(text),
        )


class ZeroQuotaError(Exception):
    """The account's quota for the model is provisioned at zero; retrying cannot help."""

    def __init__(self, message: str = "QUOTA_ZERO") -> None:
        super().__init__(message)


class NoImageGeneratedError(RuntimeError):
    def __init__(self, message: str = NO_IMAGE_MESSAGE) -> None:
        super().__init__(message)


class AdvertisementGenerationError(Exception):
    """Terminal failure of a generation request, carrying the user-facing message."""

    def __init__(self, message: str, kind: ServiceErrorKind = ServiceErrorKind.UNKNOWN) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind


def _error_text(message: str, details: Any) -> str:
    if details is None:
        return message
    try:
        serialized = json.dumps(details, default=str)
    except (TypeError, ValueError):
        serialized = str(details)
    return f"{message} {serialized}"


def has_rate_limit_marker(text: str) -> bool:
    return "quota" in text or "limit" in text


def classify_service_error(status_code: Optional[int], status: Optional[str], text: str) -> ServiceErrorKind:
    """Map the structured fields of a failed call onto a :class:`ServiceErrorKind`.

    Zero quota is checked before anything else: its payload also reads as a
    429/RESOURCE_EXHAUSTED with a "limit" in it, and must never be retried.
    """
    status = (status or "").upper()

    if any(marker in text for marker in ZERO_QUOTA_MARKERS):
        return ServiceErrorKind.ZERO_QUOTA
    if status_code == 403 or status == "PERMISSION_DENIED":
        return ServiceErrorKind.PERMISSION_DENIED
    if status_code == 404 or status == "NOT_FOUND":
        return ServiceErrorKind.NOT_FOUND
    if status_code == 429 or status in RATE_LIMIT_STATUSES or "quota" in text:
        return ServiceErrorKind.RATE_LIMITED
    if status_code == 503 or status in OVERLOAD_STATUSES:
        return ServiceErrorKind.OVERLOADED
    if status_code == 401 or status == "UNAUTHENTICATED" or any(marker in text for marker in CREDENTIAL_MARKERS):
        return ServiceErrorKind.INVALID_CREDENTIAL
    if "limit" in text:
        return ServiceErrorKind.LIMIT_EXCEEDED
    return ServiceErrorKind.UNKNOWN


def failure_kind(error: BaseException) -> ServiceErrorKind:
    if isinstance(error, ZeroQuotaError):
        return ServiceErrorKind.ZERO_QUOTA
    if isinstance(error, NoImageGeneratedError):
        return ServiceErrorKind.UNKNOWN
    return ServiceCallError.from_exception(error).kind


def _mentions_rate_limit(error: BaseException) -> bool:
    if isinstance(error, (ZeroQuotaError, NoImageGeneratedError)):
        return False
    return ServiceCallError.from_exception(error).rate_limit_marker


def describe_failure(error: BaseException, tier: ModelTier) -> str:
    """Relabel a terminal failure as the single message shown to the user."""
    kind = failure_kind(error)

    if kind is ServiceErrorKind.ZERO_QUOTA:
        return ZERO_QUOTA_MESSAGE
    if kind is ServiceErrorKind.PERMISSION_DENIED and tier is ModelTier.PRO:
        return PRO_BILLING_MESSAGE
    if kind is ServiceErrorKind.NOT_FOUND:
        return MODEL_NOT_FOUND_MESSAGE.format(tier=tier.label)
    if kind in (ServiceErrorKind.RATE_LIMITED, ServiceErrorKind.LIMIT_EXCEEDED):
        return FREE_TIER_LIMIT_MESSAGE
    if kind is ServiceErrorKind.PERMISSION_DENIED and _mentions_rate_limit(error):
        return FREE_TIER_LIMIT_MESSAGE

    message = getattr(error, "message", None) or str(error)
    return message or GENERIC_FAILURE_MESSAGE
