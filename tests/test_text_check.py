"""Tests for the LLM text-check translator."""

import pytest

from src.errors import ProviderError
from src.llm.text_check import (
    TEXT_CHECK_GOALS,
    LLMTextCheckService,
    goal_key,
    locate_span,
    string_hash,
)
from src.schemas.llm_outputs import LLMCheckResponse


@pytest.mark.asyncio
async def test_spelling_issue_end_to_end(stub_chat, teh_cat_answer):
    chat = stub_chat(teh_cat_answer)
    outcome = await LLMTextCheckService(chat, "gpt-4").check_text("Teh cat sat.")
    result = outcome.result

    assert result.score == 78
    assert result.status == "completed"
    assert result.id.startswith("llm-check-")
    assert len(result.issues) == 1

    issue = result.issues[0]
    assert issue.issue_type == "error"
    assert issue.display_surface == "Teh"
    assert issue.goal_id == "spelling-grammar"
    assert issue.scoring == "high"
    match = issue.positional_information.matches[0]
    assert (match.original_begin, match.original_end) == (0, 3)
    assert issue.positional_information.hashes.environment == string_hash("Teh cat sat.")

    goals = {g.id: g.issues for g in result.goals}
    assert goals["spelling-grammar"] == 1
    assert sum(goals.values()) == 1
    assert [(m.id, m.score) for m in result.metrics] == [("spelling-grammar", 60)]
    assert result.counts.words == 3
    assert result.counts.issues == 1
    assert result.counts.scored_issues == 1

    assert outcome.request_metadata is not None
    assert outcome.request_metadata.model == "gpt-4"


@pytest.mark.asyncio
async def test_request_is_deterministic_two_message_chat(stub_chat, teh_cat_answer):
    chat = stub_chat(teh_cat_answer)
    await LLMTextCheckService(chat, "default-model").check_text("Teh cat sat.")

    request = chat.requests[0]
    assert request.model == "default-model"
    assert request.temperature == 0
    assert request.max_tokens == 8092
    assert [m.role for m in request.messages] == ["system", "user"]
    assert request.messages[1].content.endswith("\n\nTeh cat sat.")
    assert "SPELLING-GRAMMAR" in request.messages[0].content


@pytest.mark.asyncio
async def test_custom_system_prompt(stub_chat, teh_cat_answer):
    chat = stub_chat(teh_cat_answer)
    await LLMTextCheckService(chat, "m").check_text("Teh cat sat.", custom_system_prompt="Be brief.")
    assert chat.requests[0].messages[0].content == "Be brief."


@pytest.mark.asyncio
async def test_fallback_when_answer_has_no_json(stub_chat):
    chat = stub_chat("Sorry, I cannot help with that.")
    outcome = await LLMTextCheckService(chat, "m").check_text("Hello world. How are you?")
    result = outcome.result

    assert result.score == 85
    assert result.issues == []
    assert result.counts.words == 5
    assert result.counts.sentences == 2
    assert result.counts.scored_issues == 0
    assert len(result.goals) == len(TEXT_CHECK_GOALS)
    assert all(g.issues == 0 for g in result.goals)
    assert all(m.score == 85 for m in result.metrics)
    assert outcome.request_metadata is None


@pytest.mark.asyncio
async def test_fallback_when_provider_fails(stub_chat):
    chat = stub_chat(ProviderError("HTTP 500: boom"))
    outcome = await LLMTextCheckService(chat, "m").check_text("One. Two! Three?")
    assert outcome.result.score == 85
    assert outcome.result.counts.sentences == 3


@pytest.mark.asyncio
async def test_fallback_when_payload_is_invalid(stub_chat):
    chat = stub_chat({"issues": [], "summary": "no score given"})
    outcome = await LLMTextCheckService(chat, "m").check_text("Fine text.")
    assert outcome.result.score == 85


@pytest.mark.asyncio
async def test_unknown_goal_defaults_to_clarity_and_info_is_suggestion(stub_chat):
    chat = stub_chat({
        "issues": [{"goal": "TONE", "description": "Too formal", "severity": "info", "originalText": "Dear"}],
        "overallScore": 90,
    })
    outcome = await LLMTextCheckService(chat, "m").check_text("Dear team, hello.")
    issue = outcome.result.issues[0]

    assert issue.goal_id == "clarity"
    assert issue.issue_type == "suggestion"
    assert outcome.result.counts.scored_issues == 0
    # No counts reported: computed locally
    assert outcome.result.counts.words == 3


@pytest.mark.asyncio
async def test_misreported_offsets_are_relocated(stub_chat):
    chat = stub_chat({
        "issues": [{"goal": "CLARITY", "description": "Vague", "severity": "warning",
                    "originalText": "stuff", "startOffset": 0, "endOffset": 99}],
        "overallScore": 70,
    })
    outcome = await LLMTextCheckService(chat, "m").check_text("We did stuff.")
    match = outcome.result.issues[0].positional_information.matches[0]
    assert (match.original_begin, match.original_end) == (7, 12)


def test_guidance_html_is_escaped(stub_chat):
    service = LLMTextCheckService(stub_chat(), "m")
    result = service.to_check_result(LLMCheckResponse.model_validate({
        "issues": [{"goal": "CLARITY", "description": "Avoid <b>bold</b>", "suggestions": ["Use & not and"]}],
        "overallScore": 80,
    }), "text")
    issue = result.issues[0]
    assert issue.display_name_html == "Avoid &lt;b&gt;bold&lt;/b&gt;"
    assert "<li>Use &amp; not and</li>" in issue.guidance_html


def test_goal_key_normalization():
    assert goal_key("SPELLING_GRAMMAR") == "SPELLING-GRAMMAR"
    assert goal_key("spelling-grammar") == "SPELLING-GRAMMAR"
    assert goal_key("Inclusive Language") == "INCLUSIVE-LANGUAGE"
    assert goal_key("nonsense") is None
    assert goal_key(None) is None


def test_string_hash():
    assert string_hash("") == "0"
    assert string_hash("a") == "61"
    assert string_hash("ab") == "c21"
    assert string_hash("same") == string_hash("same")
    assert int(string_hash("x" * 1000), 16) <= 2 ** 31


def test_locate_span_clamps_into_content():
    assert locate_span("abc", "", -5, 99) == (0, 3)
    assert locate_span("abc", "", 2, 1) == (2, 2)
    assert locate_span("abc", "zzz", 1, 2) == (1, 2)
