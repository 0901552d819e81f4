"""Request dependencies: bearer auth and access to app-scoped services.

Services are built once in the app lifespan and hung off `app.state`. A
service whose configuration is missing is stored as None, and the routes
that need it answer 503 CONFIGURATION_ERROR instead of the app refusing to
start.
"""

from typing import Optional

from fastapi import Header, Request

from src.checking.client import CheckingServiceClient
from src.config import Settings
from src.db.history import HistoryStore
from src.errors import ApiError, ConfigurationError
from src.llm.grammar_check import GrammarCheckService
from src.llm.text_check import LLMTextCheckService


async def require_bearer(authorization: Optional[str] = Header(None)) -> str:
    """Return the bearer token, or fail with 401 NO_TOKEN."""
    if not authorization or not authorization.startswith("Bearer "):
        raise ApiError("No authentication token provided", code="NO_TOKEN", status_code=401)
    return authorization[len("Bearer "):]


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_checking_client(request: Request) -> CheckingServiceClient:
    client = getattr(request.app.state, "checking_client", None)
    if client is None:
        raise ConfigurationError("Checking service is not configured")
    return client


def get_text_check_service(request: Request) -> LLMTextCheckService:
    service = getattr(request.app.state, "text_check", None)
    if service is None:
        raise ConfigurationError("LLM provider is not configured")
    return service


def get_grammar_check_service(request: Request) -> GrammarCheckService:
    service = getattr(request.app.state, "grammar_check", None)
    if service is None:
        raise ConfigurationError("LLM provider is not configured")
    return service


def get_history_store(request: Request) -> HistoryStore:
    store = getattr(request.app.state, "history", None)
    if store is None or not store.initialized:
        raise ConfigurationError("History store is not available")
    return store
