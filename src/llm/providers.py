"""LLM provider adapters.

Each provider owns credential acquisition and translation between the
normalized chat-completion contract (src/schemas/chat.py) and its native
wire format:

  SAPAICoreProvider → SAP AI Core deployments, OAuth2 client credentials,
                      token cached until 5 minutes before expiry
  OpenAIProvider    → any OpenAI-compatible endpoint (OpenAI, OpenRouter)
                      with a static API key

`create_provider()` picks exactly one from configuration at startup and
fails fast when its credentials are missing. The HTTP call itself lives in
ChatCompletionService (src/llm/client.py).
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import httpx

from src.config import Settings
from src.errors import ConfigurationError, ProviderError
from src.schemas.chat import ChatCompletionRequest, ChatCompletionResponse
from src.utils.logging import log, get_logger
from src.utils.service_key import parse_service_key

MODULE = "llm.providers"
logger = get_logger()

AI_CORE_API_VERSION = "2024-12-01-preview"

# Tokens are treated as expired this many seconds before the reported expiry
TOKEN_EXPIRY_MARGIN = 300

SAP_PROVIDER_NAMES = ("sap-ai-core", "sap")
OPENAI_PROVIDER_NAMES = ("openai", "openrouter")


class LLMProvider(ABC):
    """Capability set every provider variant implements."""

    name: str = "provider"

    @abstractmethod
    async def get_access_token(self) -> str:
        ...

    @abstractmethod
    def get_chat_completion_url(self, model: str) -> str:
        ...

    @abstractmethod
    def transform_request(self, request: ChatCompletionRequest) -> dict[str, Any]:
        ...

    def transform_response(self, data: dict[str, Any]) -> ChatCompletionResponse:
        # Both current backends already answer in the OpenAI shape
        return ChatCompletionResponse.model_validate(data)

    @abstractmethod
    def get_headers(self, access_token: str) -> dict[str, str]:
        ...


class SAPAICoreProvider(LLMProvider):
    """SAP AI Core inference deployments behind an OAuth2 token endpoint."""

    name = "sap-ai-core"

    def __init__(
        self,
        service_key: Optional[str],
        http_client: httpx.AsyncClient,
        resource_group: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ):
        if not service_key:
            raise ConfigurationError("SAP AI Core service key not configured")
        self.service_key = parse_service_key(service_key)
        self.resource_group = resource_group or "default"
        self._http = http_client
        self._clock = clock
        self._cached_token: Optional[str] = None
        self._token_expires_at: float = 0.0
        self._token_lock = asyncio.Lock()

    def _token_valid(self) -> bool:
        return self._cached_token is not None and self._token_expires_at > self._clock()

    async def get_access_token(self) -> str:
        if self._token_valid():
            return self._cached_token

        async with self._token_lock:
            # Another caller may have refreshed while we waited
            if self._token_valid():
                return self._cached_token

            token_url = f"{self.service_key['url'].rstrip('/')}/oauth/token"
            log.debug(logger, MODULE, "token_start", "Requesting SAP AI Core access token",
                      token_url=token_url)

            resp = await self._http.post(
                token_url,
                data={"grant_type": "client_credentials"},
                auth=httpx.BasicAuth(self.service_key["clientid"], self.service_key["clientsecret"]),
                headers={"Accept": "application/json"},
            )
            if not resp.is_success:
                log.error(logger, MODULE, "token_failed", "SAP AI Core token request failed",
                          status=resp.status_code)
                raise ProviderError(
                    f"Failed to get SAP AI Core access token: {resp.text}",
                    code="PROVIDER_AUTH_FAILED",
                    status_code=502,
                )

            data = resp.json()
            if not data.get("access_token"):
                log.error(logger, MODULE, "token_failed", "SAP AI Core token response has no access_token",
                          status=resp.status_code)
                raise ProviderError(
                    "SAP AI Core token response did not include an access token",
                    code="PROVIDER_AUTH_FAILED",
                    status_code=502,
                )
            expires_in = float(data.get("expires_in", 0))
            self._cached_token = data["access_token"]
            self._token_expires_at = self._clock() + expires_in - TOKEN_EXPIRY_MARGIN

            log.info(logger, MODULE, "token_done", "SAP AI Core access token refreshed",
                     expires_in=expires_in)
            return self._cached_token

    def get_chat_completion_url(self, model: str) -> str:
        api_url = self.service_key["serviceurls"]["AI_API_URL"].rstrip("/")
        return (
            f"{api_url}/v2/inference/deployments/{model}/chat/completions"
            f"?api-version={AI_CORE_API_VERSION}"
        )

    def transform_request(self, request: ChatCompletionRequest) -> dict[str, Any]:
        # The deployment id is in the URL; AI Core rejects a model field
        return {
            "messages": [m.model_dump() for m in request.messages],
            "max_tokens": request.max_tokens if request.max_tokens is not None else 8092,
            "temperature": request.temperature if request.temperature is not None else 0.7,
            "top_p": request.top_p if request.top_p is not None else 1,
            "n": request.n if request.n is not None else 1,
            "stream": bool(request.stream),
        }

    def get_headers(self, access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "AI-Resource-Group": self.resource_group,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }


class OpenAIProvider(LLMProvider):
    """OpenAI-compatible endpoint authenticated with a static API key."""

    name = "openai"

    def __init__(self, api_key: Optional[str], base_url: str = "https://openrouter.ai/api"):
        if not api_key:
            raise ConfigurationError("OpenAI API key not configured")
        self.api_key = api_key
        self.base_url = (base_url or "https://openrouter.ai/api").rstrip("/")

    async def get_access_token(self) -> str:
        return self.api_key

    def get_chat_completion_url(self, model: str) -> str:
        return f"{self.base_url}/v1/chat/completions"

    def transform_request(self, request: ChatCompletionRequest) -> dict[str, Any]:
        return request.model_dump(exclude_none=True)

    def get_headers(self, access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }


def create_provider(settings: Settings, http_client: httpx.AsyncClient) -> LLMProvider:
    """Instantiate the configured HTTP provider.

    Raises:
        ConfigurationError: unknown provider name or missing credentials
    """
    provider = (settings.llm_provider or "sap-ai-core").lower()

    if provider in SAP_PROVIDER_NAMES:
        instance = SAPAICoreProvider(
            settings.aicore_service_key,
            http_client,
            resource_group=settings.aicore_resource_group,
        )
    elif provider in OPENAI_PROVIDER_NAMES:
        instance = OpenAIProvider(settings.openai_api_key, settings.openai_base_url)
        instance.name = provider
    else:
        raise ConfigurationError(f"Unknown LLM provider: {settings.llm_provider}")

    log.info(logger, MODULE, "provider_ready", "LLM provider configured",
             provider=instance.name)
    return instance
