"""Pydantic schemas for API requests/responses."""

from typing import Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from src.schemas.results import CamelModel


class CheckConfig(CamelModel):
    """Target of a check, chosen by the user before submitting."""
    content_type: Literal["file", "text"] = "text"
    profile_id: str = Field(..., description="Guidance profile on the checking service")
    language_id: str = "en"
    file_name: Optional[str] = Field(None, description="Original file name; drives the content format")


class CheckSubmit(CheckConfig):
    """Request body for submitting a check. Immutable once submitted."""
    model_config = ConfigDict(frozen=True)

    content: str = Field(..., description="Plain text, or base64 when content_type is 'file'")
    model: Optional[str] = Field(None, description="LLM model id (LLM path only)")
    provider: Optional[Literal["acrolinx", "llm"]] = Field(
        None, description="'llm' runs the LLM engine; anything else the checking service"
    )

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Content must not be empty")
        return v


class GrammarCheckRequest(CamelModel):
    """Request body for the chunked grammar check."""
    text: str
    model: Optional[str] = None
    format: Literal["plain", "markdown", "html"] = "plain"
    language: Optional[str] = None

    @field_validator("text")
    @classmethod
    def text_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Text must not be empty")
        return v


class ProviderInfo(CamelModel):
    provider: str
    default_model: str
