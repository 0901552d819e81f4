"""Pydantic schemas for structured data validation.

This package contains:
- results.py: Check results, issues and chunks in the checking service's shape
- chat.py: The normalized chat-completion contract every provider speaks
- llm_outputs.py: Schemas for validating LLM outputs
- api.py: Request/response schemas for the REST API
- history.py: Persisted check records and statistics

All LLM outputs are validated against Pydantic models BEFORE being used
by the rest of the system, so malformed answers are caught in one place.
"""

from src.schemas.results import (
    CamelModel,
    TextChunk,
    GoalResult,
    Metric,
    CheckCounts,
    IssueHashes,
    IssueMatch,
    PositionalInformation,
    AcrolinxIssue,
    CheckResult,
    ErrorContext,
    GrammarError,
    GrammarCheckResponse,
)

from src.schemas.chat import (
    ChatMessage,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatCompletionWithMetadata,
    RequestMetadata,
)

from src.schemas.llm_outputs import (
    LLMIssue,
    LLMCounts,
    LLMCheckResponse,
    LLMGrammarError,
    LLMGrammarResponse,
)

from src.schemas.api import (
    CheckConfig,
    CheckSubmit,
    GrammarCheckRequest,
    ProviderInfo,
)

from src.schemas.history import (
    CheckRecord,
    CheckRecordPatch,
    HistoryStatistics,
    ProfileCount,
    CheckHistoryPage,
)

__all__ = [
    # Results
    "CamelModel",
    "TextChunk",
    "GoalResult",
    "Metric",
    "CheckCounts",
    "IssueHashes",
    "IssueMatch",
    "PositionalInformation",
    "AcrolinxIssue",
    "CheckResult",
    "ErrorContext",
    "GrammarError",
    "GrammarCheckResponse",
    # Chat
    "ChatMessage",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatCompletionWithMetadata",
    "RequestMetadata",
    # LLM outputs
    "LLMIssue",
    "LLMCounts",
    "LLMCheckResponse",
    "LLMGrammarError",
    "LLMGrammarResponse",
    # API
    "CheckConfig",
    "CheckSubmit",
    "GrammarCheckRequest",
    "ProviderInfo",
    # History
    "CheckRecord",
    "CheckRecordPatch",
    "HistoryStatistics",
    "ProfileCount",
    "CheckHistoryPage",
]
