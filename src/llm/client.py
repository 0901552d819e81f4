"""Chat-completion services.

One chat service is built at startup (`create_chat_service`) and shared by
the text-check and grammar-check services:

  ChatCompletionService → raw HTTP through an LLMProvider (SAP AI Core,
                          OpenAI, OpenRouter)
  LangChainChatService  → a local llama.cpp server through LangChain's
                          ChatOpenAI (OpenAI-compatible /v1 API)

Both return the normalized ChatCompletionResponse. Neither retries: a
failed call raises ProviderError and the caller decides what to do.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from src.config import Settings
from src.errors import ProviderError
from src.llm.providers import LLMProvider, create_provider
from src.schemas.chat import (
    ChatChoice,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatCompletionWithMetadata,
    ChatMessage,
    ChatUsage,
)
from src.utils.logging import log, get_logger

MODULE = "llm"
logger = get_logger()

LOCAL_PROVIDER_NAMES = ("local", "langchain")


class ChatService(ABC):
    """Common surface of the chat services."""

    name: str = "chat"

    @abstractmethod
    async def chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        ...

    async def chat_completion_with_metadata(
        self, request: ChatCompletionRequest
    ) -> ChatCompletionWithMetadata:
        _t0 = time.monotonic()
        response = await self.chat_completion(request)
        duration = int((time.monotonic() - _t0) * 1000)
        return ChatCompletionWithMetadata(request=request, response=response, duration=duration)


def parse_provider_error(status_code: int, body: str) -> str:
    """Human message for a failed provider call.

    Prefers {"error": {"message", "details"}} (or {"error": "..."}) and falls
    back to the raw status and body.
    """
    message = "Chat completion request failed"
    details = ""
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return f"HTTP {status_code}: {body}"

    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        message = error.get("message") or message
        details = error.get("details") or ""
    elif isinstance(error, str) and error:
        message = error

    if details and not isinstance(details, str):
        details = json.dumps(details)
    return f"{message}: {details}" if details else message


class ChatCompletionService(ChatService):
    """Calls a provider's chat-completion endpoint over HTTP."""

    def __init__(self, provider: LLMProvider, http_client: httpx.AsyncClient, timeout: float = 120):
        self.provider = provider
        self.name = provider.name
        self._http = http_client
        self._timeout = timeout

    async def chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        access_token = await self.provider.get_access_token()
        url = self.provider.get_chat_completion_url(request.model)
        payload = self.provider.transform_request(request)
        headers = self.provider.get_headers(access_token)

        log.debug(logger, MODULE, "completion_start", "Calling chat completion",
                  provider=self.name, url=url, model=request.model,
                  messages=len(request.messages))

        resp = await self._http.post(url, json=payload, headers=headers, timeout=self._timeout)

        if not resp.is_success:
            message = parse_provider_error(resp.status_code, resp.text)
            log.error(logger, MODULE, "completion_failed", "Chat completion error",
                      error=message, provider=self.name, status=resp.status_code)
            raise ProviderError(message)

        response = self.provider.transform_response(resp.json())
        log.debug(logger, MODULE, "completion_done", "Chat completion received",
                  provider=self.name, model=response.model,
                  total_tokens=response.usage.total_tokens)
        return response


def get_local_llm(
    settings: Settings,
    model: Optional[str] = None,
    temperature: float = 0.1,
    max_tokens: int = 8192,
) -> ChatOpenAI:
    """Get a LangChain client for the local llama.cpp server.

    Thinking mode is switched off: the analysis prompts want fast,
    structured JSON, not a chain-of-thought monologue.
    """
    client = ChatOpenAI(
        base_url=f"{settings.llama_url.rstrip('/')}/v1",
        api_key="not-needed",
        model=model or settings.llama_model,
        temperature=temperature,
        max_tokens=max_tokens,
        extra_body={"chat_template_kwargs": {"enable_thinking": False}},
    )
    log.debug(logger, MODULE, "llm_init", "Local LLM client created",
              base_url=settings.llama_url, model=model or settings.llama_model,
              temperature=temperature)
    return client


_MESSAGE_TYPES = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


class LangChainChatService(ChatService):
    """Chat completions through LangChain against a local OpenAI-compatible server."""

    name = "local"

    def __init__(self, settings: Settings):
        self.settings = settings

    def _to_messages(self, request: ChatCompletionRequest) -> list[BaseMessage]:
        return [_MESSAGE_TYPES[m.role](content=m.content) for m in request.messages]

    async def chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        llm = get_local_llm(
            self.settings,
            model=request.model,
            temperature=request.temperature if request.temperature is not None else 0.1,
            max_tokens=request.max_tokens or 8192,
        )
        try:
            message = await llm.ainvoke(self._to_messages(request))
        except Exception as e:
            log.error(logger, MODULE, "completion_failed", "Local LLM call failed",
                      error=str(e), error_type=type(e).__name__, model=request.model)
            raise ProviderError(f"Local LLM call failed: {e}") from e

        content = message.content if isinstance(message.content, str) else str(message.content)
        usage = getattr(message, "usage_metadata", None) or {}
        finish_reason = (getattr(message, "response_metadata", None) or {}).get("finish_reason", "stop")

        return ChatCompletionResponse(
            id=f"chatcmpl-{int(time.time() * 1000)}",
            created=int(time.time()),
            model=request.model,
            choices=[ChatChoice(
                index=0,
                message=ChatMessage(role="assistant", content=content.strip()),
                finish_reason=finish_reason,
            )],
            usage=ChatUsage(
                prompt_tokens=usage.get("input_tokens", 0),
                completion_tokens=usage.get("output_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            ),
        )


def create_chat_service(settings: Settings, http_client: httpx.AsyncClient) -> ChatService:
    """Build the chat service for the configured provider.

    Raises:
        ConfigurationError: unknown provider or missing credentials
    """
    if (settings.llm_provider or "").lower() in LOCAL_PROVIDER_NAMES:
        log.info(logger, MODULE, "provider_ready", "Local LLM provider configured",
                 provider="local", base_url=settings.llama_url)
        return LangChainChatService(settings)
    return ChatCompletionService(create_provider(settings, http_client), http_client)
