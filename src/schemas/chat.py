"""Normalized chat-completion contract.

Every provider variant must accept a `ChatCompletionRequest` and produce a
`ChatCompletionResponse` in the OpenAI wire shape, whatever its native
format is. Field names follow the OpenAI API (snake_case on the wire).
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatCompletionRequest(BaseModel):
    model: str
    messages: list[ChatMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stream: Optional[bool] = None
    stop: Optional[Union[str, list[str]]] = None
    n: Optional[int] = None


class ChatChoice(BaseModel):
    index: int = 0
    message: ChatMessage
    finish_reason: Optional[str] = None


class ChatUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionResponse(BaseModel):
    id: str = ""
    object: str = "chat.completion"
    created: int = 0
    model: str = ""
    choices: list[ChatChoice] = Field(default_factory=list)
    usage: ChatUsage = Field(default_factory=ChatUsage)

    @property
    def content(self) -> str:
        """Text of the first choice, or "" when the model returned none."""
        if not self.choices:
            return ""
        return self.choices[0].message.content or ""


class ChatCompletionWithMetadata(BaseModel):
    request: ChatCompletionRequest
    response: ChatCompletionResponse
    duration: int = Field(..., description="Round-trip time in milliseconds")


class RequestMetadata(BaseModel):
    """Debug data attached to an LLM-backed check result."""
    request: Any
    response: Any
    model: str
    duration: int
