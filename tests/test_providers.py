"""Tests for LLM provider adapters and the chat-completion service."""

import json

import httpx
import pytest

from src.config import Settings
from src.errors import ConfigurationError, ProviderError
from src.llm.client import (
    ChatCompletionService,
    ChatService,
    LangChainChatService,
    create_chat_service,
    parse_provider_error,
)
from src.llm.providers import OpenAIProvider, SAPAICoreProvider, create_provider
from src.schemas.chat import ChatCompletionRequest, ChatMessage
from src.utils.service_key import parse_service_key

SERVICE_KEY = {
    "url": "https://auth.example.com",
    "clientid": "client-id",
    "clientsecret": "s3cret",
    "serviceurls": {"AI_API_URL": "https://api.ai.example.com"},
}


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _request(**overrides) -> ChatCompletionRequest:
    return ChatCompletionRequest(
        model="gpt-4",
        messages=[ChatMessage(role="user", content="Hi")],
        **overrides,
    )


def _completion(content: str = "Hello!") -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5},
    }


# =============================================================================
# Service key
# =============================================================================

def test_service_key_parses_plain_json():
    assert parse_service_key(json.dumps(SERVICE_KEY))["clientid"] == "client-id"


def test_service_key_repairs_shell_escaped_dollar():
    raw = json.dumps({**SERVICE_KEY, "clientsecret": "ab$cd"}).replace("$", "\\$")
    assert parse_service_key(raw)["clientsecret"] == "ab$cd"


def test_service_key_missing_fields():
    with pytest.raises(ConfigurationError):
        parse_service_key(json.dumps({"url": "https://auth.example.com"}))


def test_service_key_not_json():
    with pytest.raises(ConfigurationError):
        parse_service_key("not a key")


# =============================================================================
# SAP AI Core
# =============================================================================

@pytest.mark.asyncio
async def test_sap_token_is_cached_until_five_minutes_before_expiry():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"access_token": f"tok-{len(calls)}", "expires_in": 3600})

    clock = FakeClock()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        provider = SAPAICoreProvider(json.dumps(SERVICE_KEY), http, clock=clock)

        assert await provider.get_access_token() == "tok-1"
        assert await provider.get_access_token() == "tok-1"
        assert len(calls) == 1

        clock.now += 3600 - 300 - 1
        assert await provider.get_access_token() == "tok-1"

        clock.now += 2
        assert await provider.get_access_token() == "tok-2"
        assert len(calls) == 2

    token_request = calls[0]
    assert str(token_request.url) == "https://auth.example.com/oauth/token"
    assert token_request.headers["Authorization"].startswith("Basic ")
    assert b"grant_type=client_credentials" in token_request.content


@pytest.mark.asyncio
async def test_sap_token_failure_raises_provider_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(401, text="invalid_client"))
    async with httpx.AsyncClient(transport=transport) as http:
        provider = SAPAICoreProvider(json.dumps(SERVICE_KEY), http)
        with pytest.raises(ProviderError) as excinfo:
            await provider.get_access_token()
    assert excinfo.value.code == "PROVIDER_AUTH_FAILED"


@pytest.mark.asyncio
async def test_sap_token_response_without_access_token():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"expires_in": 3600}))
    async with httpx.AsyncClient(transport=transport) as http:
        provider = SAPAICoreProvider(json.dumps(SERVICE_KEY), http)
        with pytest.raises(ProviderError) as excinfo:
            await provider.get_access_token()
    assert excinfo.value.code == "PROVIDER_AUTH_FAILED"
    assert excinfo.value.status_code == 502


def test_sap_url_headers_and_request_shape():
    provider = SAPAICoreProvider(json.dumps(SERVICE_KEY), httpx.AsyncClient(), resource_group="team-a")

    assert provider.get_chat_completion_url("d123") == (
        "https://api.ai.example.com/v2/inference/deployments/d123/chat/completions"
        "?api-version=2024-12-01-preview"
    )
    assert provider.get_headers("tok")["AI-Resource-Group"] == "team-a"
    assert provider.get_headers("tok")["Authorization"] == "Bearer tok"

    payload = provider.transform_request(_request())
    assert "model" not in payload
    assert payload["max_tokens"] == 8092
    assert payload["temperature"] == 0.7
    assert payload["top_p"] == 1
    assert payload["n"] == 1
    assert payload["stream"] is False


def test_sap_keeps_explicit_zero_temperature():
    provider = SAPAICoreProvider(json.dumps(SERVICE_KEY), httpx.AsyncClient())
    assert provider.transform_request(_request(temperature=0))["temperature"] == 0


def test_sap_requires_service_key():
    with pytest.raises(ConfigurationError):
        SAPAICoreProvider(None, httpx.AsyncClient())


# =============================================================================
# OpenAI-compatible
# =============================================================================

@pytest.mark.asyncio
async def test_openai_provider_uses_static_key():
    provider = OpenAIProvider("sk-test", "https://openrouter.ai/api/")
    assert await provider.get_access_token() == "sk-test"
    assert provider.get_chat_completion_url("openai/gpt-4o-mini") == "https://openrouter.ai/api/v1/chat/completions"

    payload = provider.transform_request(_request(temperature=0))
    assert payload["model"] == "gpt-4"
    assert payload["temperature"] == 0
    assert "top_p" not in payload


def test_openai_provider_requires_key():
    with pytest.raises(ConfigurationError):
        OpenAIProvider(None)


# =============================================================================
# Factories
# =============================================================================

def test_create_provider_defaults_to_sap():
    provider = create_provider(Settings(aicore_service_key=json.dumps(SERVICE_KEY)), httpx.AsyncClient())
    assert isinstance(provider, SAPAICoreProvider)


def test_create_provider_openrouter_alias():
    provider = create_provider(Settings(llm_provider="openrouter", openai_api_key="sk"), httpx.AsyncClient())
    assert isinstance(provider, OpenAIProvider)
    assert provider.name == "openrouter"


def test_create_provider_fails_fast():
    with pytest.raises(ConfigurationError):
        create_provider(Settings(llm_provider="sap-ai-core"), httpx.AsyncClient())
    with pytest.raises(ConfigurationError):
        create_provider(Settings(llm_provider="mystery", openai_api_key="sk"), httpx.AsyncClient())


def test_create_chat_service_local():
    service = create_chat_service(Settings(llm_provider="local"), httpx.AsyncClient())
    assert isinstance(service, LangChainChatService)


def test_default_model_per_provider():
    assert Settings(llm_provider="openrouter").default_model() == "openai/gpt-4o-mini"
    assert Settings(llm_provider="openai").default_model() == "gpt-4o-mini"
    assert Settings(llm_provider="sap-ai-core").default_model() == "gpt-4"
    assert Settings(llm_provider="local", llama_model="qwen").default_model() == "qwen"
    assert Settings(llm_provider="openai", llm_model="gpt-4.1").default_model() == "gpt-4.1"


# =============================================================================
# Chat completion service
# =============================================================================

@pytest.mark.asyncio
async def test_chat_completion_success_with_metadata():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_completion("Hello!"))

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        service = ChatCompletionService(OpenAIProvider("sk-test"), http)
        result = await service.chat_completion_with_metadata(_request())

    assert result.response.content == "Hello!"
    assert result.response.usage.total_tokens == 5
    assert result.duration >= 0
    assert seen[0].headers["Authorization"] == "Bearer sk-test"
    assert json.loads(seen[0].content)["messages"][0]["content"] == "Hi"


@pytest.mark.asyncio
async def test_chat_completion_structured_error():
    body = {"error": {"message": "Bad request", "details": "model not deployed"}}
    transport = httpx.MockTransport(lambda request: httpx.Response(400, json=body))
    async with httpx.AsyncClient(transport=transport) as http:
        service = ChatCompletionService(OpenAIProvider("sk-test"), http)
        with pytest.raises(ProviderError) as excinfo:
            await service.chat_completion(_request())
    assert excinfo.value.message == "Bad request: model not deployed"


@pytest.mark.asyncio
async def test_chat_completion_unstructured_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="upstream down"))
    async with httpx.AsyncClient(transport=transport) as http:
        service = ChatCompletionService(OpenAIProvider("sk-test"), http)
        with pytest.raises(ProviderError) as excinfo:
            await service.chat_completion(_request())
    assert excinfo.value.message == "HTTP 503: upstream down"


def test_parse_provider_error_string_error():
    assert parse_provider_error(401, json.dumps({"error": "Invalid API key"})) == "Invalid API key"


def test_chat_service_is_abstract():
    with pytest.raises(TypeError):
        ChatService()
