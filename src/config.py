"""Runtime configuration.

Everything is read from environment variables once at startup
(`get_settings()`); tests build `Settings(...)` directly.

Checking service (Acrolinx-style REST API):
  ACROLINX_BASE_URL, ACROLINX_API_TOKEN,
  ACROLINX_CLIENT_SIGNATURE, ACROLINX_CLIENT_VERSION

LLM providers (LLM_PROVIDER picks exactly one):
  sap-ai-core | sap      → AICORE_SERVICE_KEY (JSON), AICORE_RESOURCE_GROUP
  openai | openrouter    → OPENAI_API_KEY, OPENAI_BASE_URL
  local | langchain      → LLAMA_URL, LLAMA_MODEL (llama.cpp, OpenAI-compatible)
  LLM_MODEL overrides the per-provider default model.

Checks and history:
  MAX_FILE_SIZE (bytes), SUPPORTED_FORMATS (comma separated),
  CHECK_TIMEOUT / POLL_INTERVAL (seconds), HISTORY_LIMIT,
  HISTORY_DATABASE_URL (SQLAlchemy async URL)
"""

import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_SUPPORTED_FORMATS = ["txt", "md", "html", "xml", "json", "docx", "pdf"]

# Cost-effective defaults for text checking, per provider
DEFAULT_MODELS = {
    "openrouter": "openai/gpt-4o-mini",
    "openai": "gpt-4o-mini",
    "sap-ai-core": "gpt-4",
    "sap": "gpt-4",
}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


class Settings(BaseModel):
    """Recognised configuration options."""

    max_file_size: int = 10 * 1024 * 1024
    supported_formats: list[str] = Field(default_factory=lambda: list(DEFAULT_SUPPORTED_FORMATS))
    check_timeout: float = 300.0
    poll_interval: float = 2.0
    history_limit: int = 1000

    llm_provider: str = "sap-ai-core"
    llm_model: Optional[str] = None
    aicore_service_key: Optional[str] = None
    aicore_resource_group: str = "default"
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://openrouter.ai/api"
    llama_url: str = "http://localhost:3101"
    llama_model: str = "Qwen3.5-35B-A3B"

    acrolinx_base_url: Optional[str] = None
    acrolinx_api_token: Optional[str] = None
    acrolinx_client_signature: str = "SW50ZWdyYXRpb25EZXZlbG9wbWVudERlbW9Pbmx5"
    acrolinx_client_version: str = "1.0.0"

    history_database_url: str = "sqlite+aiosqlite:///./prose_check.db"

    @classmethod
    def from_env(cls) -> "Settings":
        formats = os.getenv("SUPPORTED_FORMATS")
        return cls(
            max_file_size=_env_int("MAX_FILE_SIZE", 10 * 1024 * 1024),
            supported_formats=(
                [f.strip().lower().lstrip(".") for f in formats.split(",") if f.strip()]
                if formats else list(DEFAULT_SUPPORTED_FORMATS)
            ),
            check_timeout=_env_float("CHECK_TIMEOUT", 300.0),
            poll_interval=_env_float("POLL_INTERVAL", 2.0),
            history_limit=_env_int("HISTORY_LIMIT", 1000),
            llm_provider=os.getenv("LLM_PROVIDER") or "sap-ai-core",
            llm_model=os.getenv("LLM_MODEL") or None,
            aicore_service_key=os.getenv("AICORE_SERVICE_KEY") or None,
            aicore_resource_group=os.getenv("AICORE_RESOURCE_GROUP") or "default",
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_base_url=os.getenv("OPENAI_BASE_URL") or "https://openrouter.ai/api",
            llama_url=os.getenv("LLAMA_URL", "http://localhost:3101"),
            llama_model=os.getenv("LLAMA_MODEL", "Qwen3.5-35B-A3B"),
            acrolinx_base_url=os.getenv("ACROLINX_BASE_URL") or None,
            acrolinx_api_token=os.getenv("ACROLINX_API_TOKEN") or None,
            acrolinx_client_signature=os.getenv(
                "ACROLINX_CLIENT_SIGNATURE", "SW50ZWdyYXRpb25EZXZlbG9wbWVudERlbW9Pbmx5"
            ),
            acrolinx_client_version=os.getenv("ACROLINX_CLIENT_VERSION", "1.0.0"),
            history_database_url=os.getenv(
                "HISTORY_DATABASE_URL", "sqlite+aiosqlite:///./prose_check.db"
            ),
        )

    def default_model(self) -> str:
        """Model used when a request does not name one."""
        if self.llm_model:
            return self.llm_model
        provider = self.llm_provider.lower()
        if provider in ("local", "langchain"):
            return self.llama_model
        return DEFAULT_MODELS.get(provider, "gpt-4o-mini")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
