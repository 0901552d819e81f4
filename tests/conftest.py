"""Shared test fixtures."""

import json

import pytest

from src.llm.client import ChatService
from src.schemas.chat import ChatChoice, ChatCompletionResponse, ChatMessage


class StubChatService(ChatService):
    """Chat service answering from a script instead of a provider.

    Each answer is a string (returned as the assistant message), a dict
    (returned as JSON), an exception (raised) or a callable taking the
    request and returning one of those. The last answer repeats.
    """

    name = "stub"

    def __init__(self, *answers):
        self.answers = list(answers)
        self.requests = []

    async def chat_completion(self, request):
        self.requests.append(request)
        index = min(len(self.requests), len(self.answers)) - 1
        answer = self.answers[index]
        if callable(answer) and not isinstance(answer, type):
            answer = answer(request)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, dict):
            answer = json.dumps(answer)
        return ChatCompletionResponse(
            id="chatcmpl-test",
            model=request.model,
            choices=[ChatChoice(message=ChatMessage(role="assistant", content=answer))],
        )


@pytest.fixture
def stub_chat():
    return StubChatService


@pytest.fixture
def teh_cat_answer():
    return {
        "issues": [{
            "goal": "SPELLING_GRAMMAR",
            "description": "Spelling error",
            "suggestions": ["The"],
            "severity": "error",
            "originalText": "Teh",
            "startOffset": 0,
            "endOffset": 3,
        }],
        "overallScore": 78,
        "goalScores": {"SPELLING_GRAMMAR": 60},
        "counts": {"sentences": 1, "words": 3, "issues": 1},
    }


@pytest.fixture
def history_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'history.db'}"
