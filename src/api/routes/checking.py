"""Check submission, polling and LLM endpoints.

One submit endpoint serves both engines:
  provider "llm" → synchronous LLM text check, answered as completed
  anything else  → forwarded to the checking service, answered with a
                   check id to poll

All routes here require a bearer token.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request

from src.api.deps import (
    get_app_settings,
    get_checking_client,
    get_grammar_check_service,
    get_text_check_service,
    require_bearer,
)
from src.config import Settings
from src.errors import ApiError
from src.llm.grammar_check import GrammarCheckService
from src.schemas.api import CheckSubmit, GrammarCheckRequest, ProviderInfo
from src.utils.content import DEFAULT_REFERENCE, content_size, extract_text, file_extension
from src.utils.logging import log, get_logger

MODULE = "checking_api"
logger = get_logger()

LLM_CHECK_PREFIX = "llm-check-"

router = APIRouter(dependencies=[Depends(require_bearer)])


def validate_upload(body: CheckSubmit, settings: Settings) -> None:
    """Reject oversized content and unsupported file formats."""
    size = content_size(body.content, body.content_type)
    if size > settings.max_file_size:
        log.warning(logger, MODULE, "upload_rejected", "Content too large",
                    size=size, max_size=settings.max_file_size)
        raise ApiError(
            f"Content is {size} bytes; the limit is {settings.max_file_size} bytes",
            code="CONTENT_TOO_LARGE",
            status_code=413,
        )

    extension = file_extension(body.file_name)
    if extension and extension not in settings.supported_formats:
        log.warning(logger, MODULE, "upload_rejected", "Unsupported file format",
                    extension=extension)
        raise ApiError(
            f"Unsupported file format: .{extension}",
            code="UNSUPPORTED_FORMAT",
            status_code=400,
            details={"supportedFormats": settings.supported_formats},
        )


async def run_llm_check(request: Request, body: CheckSubmit, settings: Settings) -> dict[str, Any]:
    """LLM path of submit: check synchronously and answer as completed."""
    text_check = get_text_check_service(request)

    try:
        text = extract_text(body.content, body.content_type, body.file_name)
    except ValueError as e:
        raise ApiError(str(e), code="INVALID_CONTENT", status_code=400) from e

    model = body.model or settings.default_model()
    log.info(logger, MODULE, "llm_check_start", "Running LLM check",
             model=model, provider=settings.llm_provider, content_length=len(text))

    outcome = await text_check.check_text(text, model)

    debug: dict[str, Any] = {
        "model": model,
        "provider": settings.llm_provider,
        "contentLength": len(text),
    }
    if outcome.request_metadata is not None:
        debug.update(
            request=outcome.request_metadata.request,
            response=outcome.request_metadata.response,
            duration=outcome.request_metadata.duration,
        )

    return {
        "status": "completed",
        "data": {
            "status": "completed",
            "result": outcome.result.model_dump(by_alias=True, mode="json", exclude_none=True),
            "checkType": "llm",
            "languageId": body.language_id,
            "profileId": body.profile_id,
            "fileName": body.file_name or DEFAULT_REFERENCE,
        },
        "debug": debug,
    }


@router.get("/checking/capabilities")
async def capabilities(request: Request):
    return await get_checking_client(request).get_capabilities()


@router.post("/checking/submit")
async def submit_check(
    body: CheckSubmit,
    request: Request,
    settings: Settings = Depends(get_app_settings),
):
    """Submit content to the LLM engine or the checking service."""
    validate_upload(body, settings)
    if body.provider == "llm":
        return await run_llm_check(request, body, settings)
    return await get_checking_client(request).submit_check(body)


@router.get("/checking/poll/{check_id}")
async def poll_check(check_id: str, request: Request):
    """Status of a checking-service check."""
    if check_id.startswith(LLM_CHECK_PREFIX):
        # LLM checks complete on submit; a poll means the client lost track
        log.warning(logger, MODULE, "llm_poll", "Unexpected poll for an LLM check",
                    check_id=check_id)
        return {
            "status": "failed",
            "error": {
                "message": "LLM checks should not require polling",
                "code": "LLM_POLL_ERROR",
            },
        }

    answer = await get_checking_client(request).poll_check(check_id)
    if answer["status"] == "completed":
        answer["data"] = answer["data"].model_dump(by_alias=True, mode="json", exclude_none=True)
    return answer


@router.post("/grammar-check")
async def grammar_check(
    body: GrammarCheckRequest,
    service: GrammarCheckService = Depends(get_grammar_check_service),
):
    """Chunked grammar check over arbitrarily long text."""
    result = await service.check(body)
    return result.model_dump(by_alias=True, mode="json")


@router.get("/llm/provider")
async def llm_provider(settings: Settings = Depends(get_app_settings)):
    info = ProviderInfo(provider=settings.llm_provider, default_model=settings.default_model())
    return info.model_dump(by_alias=True)


@router.post("/auth/verify")
async def verify_token(
    request: Request,
    token: str = Depends(require_bearer),
    custom_token: Optional[str] = Body(None, alias="customToken", embed=True),
):
    """Confirm that a token is accepted by this deployment."""
    if get_checking_client(request).verify_token(custom_token or token):
        return {"data": {"user": {"id": "api-user", "username": "API User"}}}
    raise ApiError("Invalid token", code="INVALID_TOKEN", status_code=401)
