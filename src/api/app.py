"""FastAPI application for prose-check.

Logging: Uses structured JSON logging for Grafana Loki.
Set LOG_FORMAT=pretty for development-friendly output.
"""

from contextlib import asynccontextmanager
from typing import Optional

# Configure structured logging BEFORE importing anything else
from src.utils.logging import configure_logging, get_logger, log  # noqa: E402

configure_logging()

MODULE = "api"
logger = get_logger()

import httpx  # noqa: E402
from fastapi import FastAPI, Request  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402

from src.api.routes.checking import router as checking_router  # noqa: E402
from src.api.routes.health import router as health_router  # noqa: E402
from src.api.routes.history import router as history_router  # noqa: E402
from src.checking.client import CheckingServiceClient  # noqa: E402
from src.config import Settings, get_settings  # noqa: E402
from src.db.history import HistoryStore  # noqa: E402
from src.errors import ApiError, ConfigurationError  # noqa: E402
from src.llm.client import create_chat_service  # noqa: E402
from src.llm.grammar_check import GrammarCheckService  # noqa: E402
from src.llm.text_check import LLMTextCheckService  # noqa: E402

UPSTREAM_TIMEOUT = 120


async def build_services(app: FastAPI, settings: Settings) -> None:
    """Construct the app-scoped services on app.state.

    A service with missing configuration is left as None and reported;
    only the routes that need it fail.
    """
    app.state.settings = settings
    app.state.http = httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT)

    try:
        app.state.checking_client = CheckingServiceClient(settings, app.state.http)
        log.info(logger, MODULE, "checking_ready", "Checking service configured",
                 base_url=settings.acrolinx_base_url)
    except ConfigurationError as e:
        app.state.checking_client = None
        log.warning(logger, MODULE, "checking_unconfigured", "Checking service disabled",
                    error=str(e))

    try:
        chat_service = create_chat_service(settings, app.state.http)
    except ConfigurationError as e:
        chat_service = None
        log.warning(logger, MODULE, "llm_unconfigured", "LLM provider disabled",
                    error=str(e), provider=settings.llm_provider)
    app.state.chat_service = chat_service
    app.state.text_check = (
        LLMTextCheckService(chat_service, settings.default_model()) if chat_service else None
    )
    app.state.grammar_check = (
        GrammarCheckService(chat_service, settings.default_model()) if chat_service else None
    )

    app.state.history = HistoryStore(settings.history_database_url, settings.history_limit)
    try:
        await app.state.history.initialize()
    except Exception as e:
        log.error(logger, MODULE, "history_failed", "History store unavailable",
                  error=str(e), error_type=type(e).__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown."""
    settings = app.state.settings if getattr(app.state, "settings", None) else get_settings()
    await build_services(app, settings)
    log.info(logger, MODULE, "startup", "Application started",
             llm_provider=settings.llm_provider, default_model=settings.default_model())

    yield

    # Cleanup
    await app.state.history.close()
    await app.state.http.aclose()
    log.info(logger, MODULE, "shutdown", "Application shutdown complete")


async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error(logger, MODULE, "request_failed", exc.message,
                  code=exc.code, status=exc.status_code, path=request.url.path)
    headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after is not None else None
    return JSONResponse({"error": exc.to_dict()}, status_code=exc.status_code, headers=headers)


async def handle_transport_error(request: Request, exc: httpx.HTTPError) -> JSONResponse:
    log.error(logger, MODULE, "upstream_failed", "Upstream service unreachable",
              error=str(exc), error_type=type(exc).__name__, path=request.url.path)
    error = ApiError("Upstream service unreachable", code="UPSTREAM_UNAVAILABLE", status_code=502)
    return JSONResponse({"error": error.to_dict()}, status_code=error.status_code)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    app = FastAPI(
        title="prose-check",
        description="Document quality checking proxy",
        version="0.1.0",
        lifespan=lifespan,
    )
    if settings is not None:
        app.state.settings = settings

    app.add_exception_handler(ApiError, handle_api_error)
    app.add_exception_handler(httpx.HTTPError, handle_transport_error)

    app.include_router(health_router)
    app.include_router(checking_router, prefix="/api", tags=["checking"])
    app.include_router(history_router, prefix="/api/history", tags=["history"])
    return app


app = create_app()
