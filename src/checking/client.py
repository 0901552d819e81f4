"""Checking-service REST client.

The checking service analyses documents asynchronously:

  POST /api/v1/checking/checks        → 202 + check id
  GET  /api/v1/checking/checks/{id}   → 202 + progress while running,
                                        200 + result when done
  GET  /api/v1/checking/capabilities  → guidance profiles, languages, formats

Every call carries the service's three client headers (auth token, client
signature, locale). Non-success answers are translated into
CheckingServiceError by `raise_for_api_error`, with the service's error
`type` mapped to a stable code and HTTP status for our own callers.
"""

from typing import Any, Optional

import httpx

from src.config import Settings
from src.errors import CheckingServiceError, ConfigurationError
from src.schemas.api import CheckSubmit
from src.schemas.results import CheckResult
from src.utils.content import infer_content_format
from src.utils.logging import log, get_logger

MODULE = "checking"
logger = get_logger()

DEFAULT_RETRY_AFTER = 5
REPORT_TYPES = ["scorecard", "extractedText"]


def _error_body(response: httpx.Response) -> Optional[dict]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def raise_for_api_error(response: httpx.Response) -> None:
    """Raise CheckingServiceError for a non-success checking-service answer.

    Known error types:
      auth                       → 401 AUTH_FAILED
      clientSignatureRejected    → 403 INVALID_SIGNATURE
      guidanceProfileDoesntExist → 400 INVALID_PROFILE
      queueLimitExceeded         → 429 RATE_LIMITED (+ retry_after)
      contentTooLarge            → 413 CONTENT_TOO_LARGE
      customFieldsIncorrect      → 400 INVALID_CUSTOM_FIELDS (+ details)
    Any other JSON error keeps the upstream status; a non-JSON body is a
    SERVER_ERROR.
    """
    if response.is_success:
        return

    body = _error_body(response)
    if body is None:
        raise CheckingServiceError(
            "Server error. Please try again later.",
            code="SERVER_ERROR",
            status_code=response.status_code,
        )

    error = body.get("error") if isinstance(body.get("error"), dict) else {}
    error_type = error.get("type")

    if error_type == "auth":
        raise CheckingServiceError(
            "Authentication failed. Please sign in again.",
            code="AUTH_FAILED", status_code=401,
        )
    if error_type == "clientSignatureRejected":
        raise CheckingServiceError(
            "Invalid API signature. Please check configuration.",
            code="INVALID_SIGNATURE", status_code=403,
        )
    if error_type == "guidanceProfileDoesntExist":
        raise CheckingServiceError(
            "Selected style guide not available.",
            code="INVALID_PROFILE", status_code=400,
        )
    if error_type == "queueLimitExceeded":
        raw_retry = response.headers.get("Retry-After")
        try:
            retry_after = int(raw_retry) if raw_retry else 60
        except ValueError:
            retry_after = 60
        raise CheckingServiceError(
            f"Server busy. Please try again in {retry_after} seconds.",
            code="RATE_LIMITED", status_code=429, retry_after=retry_after,
        )
    if error_type == "contentTooLarge":
        raise CheckingServiceError(
            "The document is too large. Please try with a smaller document.",
            code="CONTENT_TOO_LARGE", status_code=413,
        )
    if error_type == "customFieldsIncorrect":
        raise CheckingServiceError(
            "Custom field values are incorrect.",
            code="INVALID_CUSTOM_FIELDS", status_code=400,
            details=error.get("validationDetails"),
        )

    raise CheckingServiceError(
        error.get("detail") or "An error occurred",
        code=error_type or "UNKNOWN_ERROR",
        status_code=response.status_code,
    )


def transform_check_result(api_result: dict[str, Any], raw_response: Any = None) -> CheckResult:
    """Checking-service result payload → CheckResult."""
    quality = api_result.get("quality") or {}
    return CheckResult.model_validate({
        "id": api_result.get("id", ""),
        "score": quality.get("score") or 0,
        "status": quality.get("status") or "unknown",
        "goals": api_result.get("goals") or quality.get("scoresByGoal") or [],
        "issues": api_result.get("issues") or [],
        "metrics": quality.get("metrics") or [],
        "counts": api_result.get("counts") or {},
        "debug": {"response": raw_response},
    })


class CheckingServiceClient:
    """Thin async client for the checking service's REST API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient, timeout: float = 30):
        if not settings.acrolinx_base_url:
            raise ConfigurationError("ACROLINX_BASE_URL is not configured")
        if not settings.acrolinx_api_token:
            raise ConfigurationError("ACROLINX_API_TOKEN is not configured")
        self.base_url = settings.acrolinx_base_url.rstrip("/")
        self.api_token = settings.acrolinx_api_token
        self.client_signature = settings.acrolinx_client_signature
        self.client_version = settings.acrolinx_client_version
        self._http = http_client
        self._timeout = timeout

    @property
    def headers(self) -> dict[str, str]:
        return {
            "X-Acrolinx-Auth": self.api_token,
            "X-Acrolinx-Client": f"{self.client_signature}; {self.client_version}",
            "X-Acrolinx-Client-Locale": "en",
        }

    def verify_token(self, token: Optional[str]) -> bool:
        """Accept the configured API token or a JWT-shaped token."""
        if not token:
            return False
        return token == self.api_token or len(token.split(".")) == 3

    async def get_capabilities(self) -> dict[str, Any]:
        resp = await self._http.get(
            f"{self.base_url}/api/v1/checking/capabilities",
            headers=self.headers,
            timeout=self._timeout,
        )
        if not resp.is_success:
            log.error(logger, MODULE, "capabilities_failed", "Failed to fetch capabilities",
                      status=resp.status_code)
        raise_for_api_error(resp)
        return resp.json()

    def build_check_request(self, request: CheckSubmit) -> dict[str, Any]:
        reference, content_format = infer_content_format(
            request.file_name, request.content, request.content_type
        )
        return {
            "content": request.content,
            "contentEncoding": "base64" if request.content_type == "file" else "none",
            "document": {"reference": reference},
            "guidanceProfileId": request.profile_id,
            "languageId": request.language_id,
            "reportTypes": REPORT_TYPES,
            "contentFormat": content_format,
            "checkType": "interactive",
        }

    async def submit_check(self, request: CheckSubmit) -> dict[str, Any]:
        """Submit a document.

        Returns {checkId, status: "processing", links, debug: {request}} for
        the usual 202, or the service's body unchanged for an immediate
        result.
        """
        check_request = self.build_check_request(request)

        log.info(logger, MODULE, "submit_start", "Submitting check",
                 profile_id=request.profile_id, content_format=check_request["contentFormat"],
                 content_encoding=check_request["contentEncoding"])

        resp = await self._http.post(
            f"{self.base_url}/api/v1/checking/checks",
            json=check_request,
            headers={**self.headers, "Content-Type": "application/json"},
            timeout=self._timeout,
        )

        if resp.status_code == 202:
            body = resp.json()
            check_id = (body.get("data") or {}).get("id")
            log.info(logger, MODULE, "submit_done", "Check accepted", check_id=check_id)
            return {
                "checkId": check_id,
                "status": "processing",
                "links": body.get("links"),
                "debug": {"request": check_request},
            }

        if not resp.is_success:
            log.error(logger, MODULE, "submit_failed", "Check submission rejected",
                      status=resp.status_code)
        raise_for_api_error(resp)
        return resp.json()

    async def poll_check(self, check_id: str) -> dict[str, Any]:
        """Current state of a check.

        Returns {status: "processing", progress, message, retryAfter} or
        {status: "completed", data: CheckResult}.
        """
        resp = await self._http.get(
            f"{self.base_url}/api/v1/checking/checks/{check_id}",
            headers=self.headers,
            timeout=self._timeout,
        )

        if resp.status_code == 202:
            progress = (resp.json() or {}).get("progress") or {}
            log.debug(logger, MODULE, "poll_processing", "Check still processing",
                      check_id=check_id, percent=progress.get("percent"))
            return {
                "status": "processing",
                "progress": progress.get("percent") or 0,
                "message": progress.get("message"),
                "retryAfter": progress.get("retryAfter") or DEFAULT_RETRY_AFTER,
            }

        if resp.status_code == 200:
            body = resp.json()
            result = transform_check_result(body.get("data") or body, body)
            log.info(logger, MODULE, "poll_done", "Check completed",
                     check_id=check_id, score=result.score, issues=len(result.issues))
            return {"status": "completed", "data": result}

        log.error(logger, MODULE, "poll_failed", "Check poll rejected",
                  check_id=check_id, status=resp.status_code)
        raise_for_api_error(resp)
        raise CheckingServiceError(
            f"Unexpected status {resp.status_code} while polling",
            status_code=502,
        )
