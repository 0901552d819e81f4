"""Check lifecycle coordinator.

Drives one user-initiated check against the proxy's HTTP API:

  idle → submitting → processing → completed | failed   (checking service)
  idle → submitting → completed | failed                (LLM, synchronous)

`completed` and `failed` stay put until `reset()` or the next submission.

Polling runs as a single owned asyncio task: each new submission,
`cancel_check()` and `reset()` cancel it and start a new generation. A
submission whose generation is stale after any await returns without
starting a poll or touching the state, so there is never more than one poll
in flight even when submissions overlap. The delay between polls is the
server's `retryAfter` hint (seconds), falling back to the configured poll
interval. The timeout is wall-clock from poll start, measured with an
injectable monotonic clock.

Cancellation is local only: the checking service is never told to abort,
so a cancelled check may still finish server-side with nobody watching.

History writes go through an optional HistoryStore and are best-effort:
a failing store is logged and never affects the check itself.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Literal, Optional

import httpx
from pydantic import BaseModel

from src.config import Settings
from src.db.history import HistoryStore
from src.errors import ApiError, CheckingServiceError, CheckTimeoutError
from src.schemas.api import CheckConfig, CheckSubmit
from src.schemas.history import CheckRecordPatch
from src.schemas.results import CheckResult
from src.utils.logging import log, get_logger

MODULE = "coordinator"
logger = get_logger()

CheckStatus = Literal["idle", "submitting", "processing", "completed", "failed"]


class CheckState(BaseModel):
    status: CheckStatus = "idle"
    progress: int = 0
    current_check_id: Optional[str] = None
    result: Optional[CheckResult] = None
    error: Optional[str] = None
    debug_data: Optional[dict[str, Any]] = None


def _error_from_response(resp: httpx.Response, default: str) -> CheckingServiceError:
    """Build a CheckingServiceError from the proxy's {"error": {...}} body."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return CheckingServiceError(
            error.get("message") or default,
            code=error.get("code") or CheckingServiceError.code,
            status_code=resp.status_code,
            details=error.get("details"),
            retry_after=error.get("retryAfter"),
        )
    return CheckingServiceError(default, status_code=resp.status_code)


class CheckCoordinator:
    """State machine for a single check, as seen by a client of the API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token: str,
        history: Optional[HistoryStore] = None,
        settings: Optional[Settings] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        settings = settings or Settings()
        self._http = http_client
        self._token = token
        self.history = history
        self.check_timeout = settings.check_timeout
        self.poll_interval = settings.poll_interval
        self._clock = clock
        self._sleep = sleep

        self.state = CheckState()
        self.capabilities: Optional[dict[str, Any]] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._generation = 0

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def status(self) -> CheckStatus:
        return self.state.status

    @property
    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    @property
    def poll_task(self) -> Optional[asyncio.Task]:
        return self._poll_task

    def _update(self, **changes) -> None:
        self.state = self.state.model_copy(update=changes)

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)

    # -------------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------------

    async def load_capabilities(self) -> dict[str, Any]:
        """Fetch guidance profiles and languages from the proxy."""
        resp = await self._http.get("/api/checking/capabilities", headers=self.auth_headers)
        if not resp.is_success:
            log.error(logger, MODULE, "capabilities_failed", "Failed to load capabilities",
                      status=resp.status_code)
            raise _error_from_response(resp, "Failed to load capabilities")
        body = resp.json()
        self.capabilities = body.get("data", body) if isinstance(body, dict) else body
        return self.capabilities

    def profile_name(self, profile_id: str) -> str:
        profiles = (self.capabilities or {}).get("guidanceProfiles") or []
        for profile in profiles:
            if profile.get("id") == profile_id:
                return profile.get("displayName") or "Unknown"
        return "Unknown"

    # -------------------------------------------------------------------------
    # History (best-effort)
    # -------------------------------------------------------------------------

    async def _save_history(self, patch: CheckRecordPatch) -> bool:
        if self.history is None:
            return False
        try:
            if not self.history.initialized:
                await self.history.initialize()
            await self.history.save_check_record(patch)
            return True
        except Exception as e:
            log.warning(logger, MODULE, "history_failed", "Failed to save check history",
                        record_id=patch.id, status=patch.status,
                        error=str(e), error_type=type(e).__name__)
            return False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _cancel_poll(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is not None and not task.done():
            task.cancel()
            log.debug(logger, MODULE, "poll_cancelled", "Cancelled in-flight poll")

    def _supersede(self) -> int:
        """Start a new generation; work tagged with an older one is dropped."""
        self._cancel_poll()
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def submit_check(
        self,
        content: str,
        config: CheckConfig,
        model: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> None:
        """Submit a check and, for the checking service, start polling.

        Returns once the LLM result is in, or once polling has started;
        `wait()` awaits the poll chain. A submission overtaken by a newer
        one (or by `reset()`) returns without touching the state.

        Raises:
            ApiError: the submission failed (state is `failed`)
        """
        generation = self._supersede()
        self._update(status="submitting", error=None, progress=0, result=None)

        started = self._clock()
        record_id = str(uuid.uuid4())
        saved = await self._save_history(CheckRecordPatch(
            id=record_id,
            timestamp=datetime.now(timezone.utc),
            content=content,
            content_type=config.content_type,
            file_name=config.file_name,
            profile_id=config.profile_id,
            profile_name=self.profile_name(config.profile_id),
            language=config.language_id,
            status="pending",
        ))
        if not saved:
            record_id = None
        if not self._is_current(generation):
            log.info(logger, MODULE, "submit_skipped", "Submission superseded before sending",
                     record_id=record_id)
            return

        log.info(logger, MODULE, "submit_start", "Submitting check",
                 provider=provider or "acrolinx", profile_id=config.profile_id,
                 content_type=config.content_type, record_id=record_id)

        try:
            request = CheckSubmit(
                content=content,
                content_type=config.content_type,
                profile_id=config.profile_id,
                language_id=config.language_id,
                file_name=config.file_name,
                model=model,
                provider=provider,
            )
            resp = await self._http.post(
                "/api/checking/submit",
                json=request.model_dump(by_alias=True, exclude_none=True),
                headers=self.auth_headers,
            )
            if not self._is_current(generation):
                log.info(logger, MODULE, "submit_skipped", "Submission superseded, answer dropped",
                         record_id=record_id, status=resp.status_code)
                return
            if not resp.is_success:
                raise _error_from_response(resp, "Check submission failed")

            body = resp.json()
            data = body.get("data") or {}

            if data.get("status") == "completed" and data.get("result"):
                result = CheckResult.model_validate(data["result"])
                self._update(status="completed", result=result, progress=100,
                             current_check_id=result.id, debug_data=body.get("debug"))
                log.info(logger, MODULE, "submit_done", "Check completed synchronously",
                         check_id=result.id, score=result.score, issues=len(result.issues))
                if record_id:
                    await self._save_history(CheckRecordPatch(
                        id=record_id,
                        status="completed",
                        check_id=result.id,
                        score=result.score,
                        issues=[i.model_dump(by_alias=True, exclude_none=True) for i in result.issues],
                        duration=self._elapsed_ms(started),
                    ))
                return

            check_id = body.get("checkId") or data.get("id")
            if not check_id:
                raise CheckingServiceError("No check ID received from server")

            request_debug = (body.get("debug") or {}).get("request") or {
                "content": content[:1000] + "...",
                "guidanceProfileId": config.profile_id,
                "languageId": config.language_id,
            }
            self._update(status="processing", current_check_id=check_id,
                         debug_data={"request": request_debug})
            log.info(logger, MODULE, "submit_done", "Check accepted, polling",
                     check_id=check_id)

            self._cancel_poll()
            self._poll_task = asyncio.create_task(
                self._poll_for_results(check_id, record_id, started, generation)
            )

        except Exception as e:
            message = e.message if isinstance(e, ApiError) else (str(e) or "Check failed")
            if self._is_current(generation):
                self._update(status="failed", error=message)
            log.error(logger, MODULE, "submit_failed", "Check submission failed",
                      error=message, error_type=type(e).__name__)
            if record_id:
                await self._save_history(CheckRecordPatch(
                    id=record_id, status="failed", duration=self._elapsed_ms(started),
                ))
            raise

    async def _poll_for_results(
        self, check_id: str, record_id: Optional[str], started: float, generation: int
    ) -> None:
        poll_started = self._clock()

        while True:
            try:
                resp = await self._http.get(f"/api/checking/poll/{check_id}", headers=self.auth_headers)
                if not self._is_current(generation):
                    return
                if not resp.is_success:
                    raise _error_from_response(resp, "Failed to poll check status")
                body = resp.json()
                status = body.get("status")

                if status == "processing":
                    self._update(progress=body.get("progress") or self.state.progress)
                    if self._clock() - poll_started > self.check_timeout:
                        raise CheckTimeoutError("Check timed out")
                    delay = body.get("retryAfter") or self.poll_interval
                    log.debug(logger, MODULE, "poll_wait", "Check still processing",
                              check_id=check_id, progress=self.state.progress, delay=delay)
                    await self._sleep(delay)
                    if not self._is_current(generation):
                        return
                    continue

                if status == "completed":
                    await self._complete(check_id, body.get("data") or {}, record_id, started, generation)
                    return

                if status == "failed":
                    error = body.get("error") or {}
                    raise CheckingServiceError(
                        error.get("message") or "Check failed",
                        code=error.get("code") or CheckingServiceError.code,
                    )

                raise CheckingServiceError(f"Unexpected poll status: {status}")

            except Exception as e:
                message = e.message if isinstance(e, ApiError) else (str(e) or "Polling failed")
                log.error(logger, MODULE, "poll_failed", "Polling failed",
                          check_id=check_id, error=message, error_type=type(e).__name__)
                if not self._is_current(generation):
                    return
                self._update(status="failed", error=message)
                if record_id:
                    await self._save_history(CheckRecordPatch(
                        id=record_id, status="failed", check_id=check_id,
                        duration=self._elapsed_ms(started),
                    ))
                return

    async def _complete(
        self,
        check_id: str,
        data: dict[str, Any],
        record_id: Optional[str],
        started: float,
        generation: int,
    ) -> None:
        result = CheckResult.model_validate(data)
        if not self._is_current(generation):
            return
        response_debug = (result.debug or {}).get("response")
        request_debug = (self.state.debug_data or {}).get("request")
        result = result.model_copy(update={"debug": {"request": request_debug, "response": response_debug}})

        self._update(status="completed", progress=100, result=result)
        log.info(logger, MODULE, "check_done", "Check completed",
                 check_id=check_id, score=result.score, issues=len(result.issues))

        if record_id:
            await self._save_history(CheckRecordPatch(
                id=record_id,
                status="completed",
                score=result.score,
                check_id=check_id,
                duration=self._elapsed_ms(started),
                issues=[i.model_dump(by_alias=True, exclude_none=True) for i in result.issues],
                goals=[g.model_dump(by_alias=True) for g in result.goals],
                metrics=[m.model_dump(by_alias=True) for m in result.metrics or []],
            ))

    async def wait(self) -> None:
        """Wait for the current poll chain to finish (no-op when idle)."""
        task = self._poll_task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def reset(self) -> None:
        """Back to idle. Stops local polling; the server-side check is untouched."""
        self._supersede()
        self.state = CheckState()

    def cancel_check(self) -> None:
        """Abandon a check that is still processing. Local only."""
        if self.state.current_check_id and self.state.status == "processing":
            log.info(logger, MODULE, "check_cancelled", "Check cancelled locally",
                     check_id=self.state.current_check_id)
            self.reset()
