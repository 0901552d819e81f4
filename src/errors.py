"""Error taxonomy shared by the API, the services and the coordinator.

  ConfigurationError   → missing credentials/settings, raised at construction
  CheckingServiceError → non-success answer from the checking service or proxy
  ProviderError        → non-success answer from an LLM provider
  CheckTimeoutError    → client-side poll wall-clock exceeded

Every ApiError carries the machine-readable code and HTTP status used when
the app renders it as {"error": {"message": ..., "code": ...}}.
"""

from typing import Any, Optional


class ApiError(Exception):
    """Base class for errors that surface to API callers."""

    code = "UNKNOWN_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Any = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        body = {"message": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        if self.retry_after is not None:
            body["retryAfter"] = self.retry_after
        return body


class ConfigurationError(ApiError):
    """A required setting or credential is absent or invalid."""

    code = "CONFIGURATION_ERROR"
    status_code = 503


class CheckingServiceError(ApiError):
    """The checking service (or the proxy in front of it) rejected a call."""

    code = "CHECKING_SERVICE_ERROR"
    status_code = 502


class ProviderError(ApiError):
    """An LLM provider answered with a non-success status."""

    code = "LLM_PROVIDER_ERROR"
    status_code = 502


class CheckTimeoutError(ApiError):
    """Polling exceeded the configured wall-clock limit."""

    code = "CHECK_TIMEOUT"
    status_code = 504
