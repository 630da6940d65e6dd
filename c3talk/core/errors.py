"""
Application errors

Exception hierarchy shared by the credit ledger, the provider clients and the
translation service, plus the error classifier used by retry and fallback.
"""

from enum import Enum
from typing import Any, Optional


class AppError(Exception):
    """Base application error"""

    code = "APP_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}


class AuthenticationError(AppError):
    code = "AUTHENTICATION_REQUIRED"

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class InsufficientCreditsError(AppError):
    code = "INSUFFICIENT_CREDITS"

    def __init__(self, required: float, balance: Optional[float] = None):
        super().__init__(
            "Insufficient credits. Please purchase a plan.",
            details={"required": required, "balance": balance},
        )
        self.required = required
        self.balance = balance


class ConfigurationError(AppError):
    code = "CONFIGURATION_ERROR"


class ProviderError(AppError):
    """Raised when an LLM provider request fails"""

    code = "PROVIDER_ERROR"
    failure_kind = "unknown"

    def __init__(
        self,
        message: str,
        *,
        provider: str = "unknown",
        status_code: Optional[int] = None,
        provider_code: Optional[str] = None,
        failure_kind: Optional[str] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.provider_code = provider_code
        if failure_kind:
            self.failure_kind = failure_kind


class MissingCredentialError(ProviderError):
    code = "MISSING_CREDENTIAL"
    failure_kind = "missing_credential"


class RateLimitedError(ProviderError):
    code = "RATE_LIMITED"
    failure_kind = "rate_limited"


class ProviderOverloadedError(ProviderError):
    code = "PROVIDER_OVERLOADED"
    failure_kind = "overloaded"


class ProviderBillingError(ProviderError):
    code = "PROVIDER_BILLING"
    failure_kind = "billing"


class ResponseFormatError(AppError):
    """Raised when a provider response cannot be normalized"""

    code = "MALFORMED_RESPONSE"


class NoStructuredPayloadError(ResponseFormatError):
    def __init__(self, message: str = "No structured JSON found in provider response"):
        super().__init__(message)


class ResponseParseError(ResponseFormatError):
    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message, details={"raw_text": raw_text[:500]})
        self.raw_text = raw_text


class ResponseValidationError(ResponseFormatError):
    pass


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    MISSING_CREDENTIAL = "missing_credential"
    BILLING = "billing"
    CLIENT_ERROR = "client_error"
    EMPTY = "empty"
    UNKNOWN = "unknown"


_BILLING_MARKERS = ('code":402', "requires at least $0.50", "balance", "payment required")
_OVERLOAD_MARKERS = ("overloaded", "unavailable", "busy", "try again later")
_TIMEOUT_MARKERS = ("timeout", "timed out")


def error_status(exc: Any) -> Optional[int]:
    """Best-effort HTTP status lookup across SDK and transport exceptions"""
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def classify_error(exc: Optional[BaseException]) -> ErrorKind:
    """
    Map an exception onto an ErrorKind.

    Typed provider errors win; otherwise the HTTP status is used, then message
    patterns. An error with neither status nor message is EMPTY.
    """
    if exc is None:
        return ErrorKind.EMPTY

    if isinstance(exc, MissingCredentialError):
        return ErrorKind.MISSING_CREDENTIAL
    if isinstance(exc, ProviderBillingError):
        return ErrorKind.BILLING
    if isinstance(exc, RateLimitedError):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, ProviderOverloadedError):
        return ErrorKind.OVERLOADED

    status = error_status(exc)
    message = str(exc or "").strip().lower()

    if "api key is missing" in message:
        return ErrorKind.MISSING_CREDENTIAL
    if status == 402 or any(marker in message for marker in _BILLING_MARKERS):
        return ErrorKind.BILLING
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if status == 503 or any(marker in message for marker in _OVERLOAD_MARKERS):
        return ErrorKind.OVERLOADED
    if status is not None and status >= 500 and status != 504:
        return ErrorKind.SERVER_ERROR
    if status in (408, 504) or any(marker in message for marker in _TIMEOUT_MARKERS):
        return ErrorKind.TIMEOUT
    if status is None and ("rate limit" in message or "quota" in message):
        return ErrorKind.RATE_LIMITED
    if status is not None and 400 <= status < 500:
        return ErrorKind.CLIENT_ERROR
    if status is None and not message:
        return ErrorKind.EMPTY
    return ErrorKind.UNKNOWN


def is_retryable(kind: ErrorKind) -> bool:
    """Transient failures worth retrying against the same provider"""
    return kind in (ErrorKind.OVERLOADED, ErrorKind.SERVER_ERROR)


def is_fallback_eligible(kind: ErrorKind, *, include_rate_limit: bool = True) -> bool:
    """Anything but a definite client-side rejection switches providers"""
    if kind == ErrorKind.RATE_LIMITED:
        return include_rate_limit
    return kind != ErrorKind.CLIENT_ERROR


def is_billing_error(exc: Optional[BaseException]) -> bool:
    return classify_error(exc) == ErrorKind.BILLING
