"""LLM checking engine.

  from src.llm import create_chat_service, LLMTextCheckService

  chat = create_chat_service(settings, http_client)
  outcome = await LLMTextCheckService(chat, settings.default_model()).check_text(text)
  outcome.result  # CheckResult, same shape as the checking service's

Architecture:
  providers.py     → provider variants (SAP AI Core, OpenAI-compatible) + factory
  client.py        → chat services: HTTP via a provider, or LangChain for local
  parser.py        → JSON extraction from raw LLM output
  text_check.py    → one-shot document check → CheckResult (never raises)
  grammar_check.py → chunked grammar check → GrammarCheckResponse

Failure policy:
  1. CONFIG: missing credentials fail at startup (ConfigurationError)
  2. TRANSPORT: provider non-2xx raises ProviderError, never retried here
  3. PARSE: unusable answers degrade to a fallback result, not an error
"""

# Providers
from src.llm.providers import (
    LLMProvider,
    SAPAICoreProvider,
    OpenAIProvider,
    create_provider,
)

# Chat services
from src.llm.client import (
    ChatService,
    ChatCompletionService,
    LangChainChatService,
    create_chat_service,
)

# Parsing utilities
from src.llm.parser import (
    extract_json_object,
    JSONExtractionError,
)

# Checks
from src.llm.text_check import LLMTextCheckService, TextCheckOutcome, TEXT_CHECK_GOALS
from src.llm.grammar_check import GrammarCheckService

__all__ = [
    # Providers
    "LLMProvider",
    "SAPAICoreProvider",
    "OpenAIProvider",
    "create_provider",
    # Chat services
    "ChatService",
    "ChatCompletionService",
    "LangChainChatService",
    "create_chat_service",
    # Parser
    "extract_json_object",
    "JSONExtractionError",
    # Checks
    "LLMTextCheckService",
    "TextCheckOutcome",
    "TEXT_CHECK_GOALS",
    "GrammarCheckService",
]
