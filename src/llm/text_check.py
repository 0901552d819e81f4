"""LLM text-check translator.

Runs one chat completion over a whole document and reshapes the model's
JSON answer into the checking service's CheckResult, so both engines feed
the same UI and history code.

Pipeline:
  1. Build the two-message request (fixed system prompt + document),
     temperature 0 for repeatable analysis
  2. Extract the first JSON object from the answer (src/llm/parser.py)
  3. Validate it with LLMCheckResponse
  4. Normalize: goal lookup, severities, offsets, hashes, counts

Anything that goes wrong (provider error, no JSON, invalid payload) ends in
the fallback result: score 85, no issues, locally computed counts.
`check_text` never raises.
"""

import html
import re
import time
from typing import Optional

from pydantic import BaseModel

from src.llm.client import ChatService
from src.llm.parser import JSONExtractionError, extract_json_object
from src.prompts.text_check import TEXT_CHECK_USER, build_text_check_system
from src.schemas.chat import ChatCompletionRequest, ChatMessage, RequestMetadata
from src.schemas.llm_outputs import LLMCheckResponse, LLMIssue
from src.schemas.results import (
    AcrolinxIssue,
    CheckCounts,
    CheckResult,
    GoalResult,
    IssueHashes,
    IssueMatch,
    Metric,
    PositionalInformation,
)
from src.utils.logging import log, get_logger

MODULE = "text_check"
logger = get_logger()

# Prompt-side id → goal definition. Order is the order goals are reported in.
TEXT_CHECK_GOALS: dict[str, GoalResult] = {
    "CLARITY": GoalResult(id="clarity", display_name="Clarity", color="#1E88E5", scoring="high"),
    "CONSISTENCY": GoalResult(id="consistency", display_name="Consistency", color="#43A047", scoring="medium"),
    "INCLUSIVE-LANGUAGE": GoalResult(
        id="inclusive-language", display_name="Inclusive Language", color="#E53935", scoring="high"
    ),
    "SCANNABILITY": GoalResult(id="scannability", display_name="Scannability", color="#FB8C00", scoring="medium"),
    "SPELLING-GRAMMAR": GoalResult(
        id="spelling-grammar", display_name="Spelling and Grammar", color="#8E24AA", scoring="high"
    ),
    "TERMINOLOGY": GoalResult(id="terminology", display_name="Terminology", color="#00ACC1", scoring="medium"),
}
DEFAULT_GOAL = "CLARITY"

FALLBACK_SCORE = 85
TEXT_CHECK_TEMPERATURE = 0
TEXT_CHECK_MAX_TOKENS = 8092


class TextCheckOutcome(BaseModel):
    result: CheckResult
    request_metadata: Optional[RequestMetadata] = None


# =============================================================================
# HELPERS
# =============================================================================

def goal_key(goal: Optional[str]) -> Optional[str]:
    """Prompt-side key for a reported goal id, or None if unrecognized.

    "SPELLING_GRAMMAR", "spelling-grammar" and " Spelling-Grammar " all
    resolve to "SPELLING-GRAMMAR".
    """
    if not goal:
        return None
    key = str(goal).strip().upper().replace("_", "-").replace(" ", "-")
    return key if key in TEXT_CHECK_GOALS else None


def resolve_goal(goal: Optional[str]) -> GoalResult:
    return TEXT_CHECK_GOALS[goal_key(goal) or DEFAULT_GOAL]


def string_hash(text: str) -> str:
    """Non-cryptographic 32-bit string hash, as lower-case hex.

    Classic `h = h * 31 + c` over UTF-16 code units with 32-bit signed
    wrap-around, then the absolute value. Stable across processes, so it
    can re-identify an issue between runs.
    """
    h = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        code_unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + code_unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return format(abs(h), "x")


def map_severity(severity: str) -> str:
    if severity in ("error", "warning"):
        return severity
    return "suggestion"


def guidance_html(issue: LLMIssue) -> str:
    parts = [f'<div class="issue-guidance"><p>{html.escape(issue.description)}</p>']
    if issue.suggestions:
        items = "".join(f"<li>{html.escape(s)}</li>" for s in issue.suggestions)
        parts.append(f"<p><strong>Suggestions:</strong></p><ul>{items}</ul>")
    parts.append("</div>")
    return "".join(parts)


def locate_span(content: str, original_text: str, start: int, end: int) -> tuple[int, int]:
    """Clamp a reported span into the content, relocating it by text if needed.

    Models are unreliable at counting characters. When the reported span
    does not cover `original_text`, the text is searched for (from the
    reported start, then from the beginning) and the span moved onto it.
    """
    n = len(content)
    start = min(max(start, 0), n)
    end = min(max(end, start), n)

    if original_text and content[start:end] != original_text:
        idx = content.find(original_text, start)
        if idx == -1:
            idx = content.find(original_text)
        if idx != -1:
            start, end = idx, idx + len(original_text)

    return start, end


def count_words(content: str) -> int:
    return len(re.split(r"\s+", content))


def count_sentences(content: str) -> int:
    return len([s for s in re.split(r"[.!?]+", content) if s.strip()])


def _check_id() -> str:
    return f"llm-check-{int(time.time() * 1000)}"


# =============================================================================
# SERVICE
# =============================================================================

class LLMTextCheckService:
    """Quality checks through an LLM, reported in the checking service's shape."""

    def __init__(self, chat_service: ChatService, default_model: str):
        self.chat_service = chat_service
        self.default_model = default_model
        self.system_prompt = build_text_check_system(list(TEXT_CHECK_GOALS))

    def build_request(
        self, content: str, model: str, custom_system_prompt: Optional[str] = None
    ) -> ChatCompletionRequest:
        return ChatCompletionRequest(
            model=model,
            messages=[
                ChatMessage(role="system", content=custom_system_prompt or self.system_prompt),
                ChatMessage(role="user", content=TEXT_CHECK_USER.format(content=content)),
            ],
            temperature=TEXT_CHECK_TEMPERATURE,
            max_tokens=TEXT_CHECK_MAX_TOKENS,
        )

    async def check_text(
        self,
        content: str,
        model: Optional[str] = None,
        custom_system_prompt: Optional[str] = None,
    ) -> TextCheckOutcome:
        model = model or self.default_model
        request = self.build_request(content, model, custom_system_prompt)

        log.info(logger, MODULE, "check_start", "Sending text check to LLM",
                 model=model, provider=self.chat_service.name, content_length=len(content))

        try:
            metadata = await self.chat_service.chat_completion_with_metadata(request)
            answer = metadata.response.content
            data = extract_json_object(answer)
            parsed = LLMCheckResponse.model_validate(data)
            result = self.to_check_result(parsed, content)
        except JSONExtractionError as e:
            log.warning(logger, MODULE, "check_fallback", "No JSON in LLM answer, using fallback",
                        error=str(e), model=model, raw_length=len(e.raw_output))
            return TextCheckOutcome(result=self.fallback_result(content))
        except Exception as e:
            log.warning(logger, MODULE, "check_fallback", "Text check failed, using fallback",
                        error=str(e), error_type=type(e).__name__, model=model)
            return TextCheckOutcome(result=self.fallback_result(content))

        log.info(logger, MODULE, "check_done", "Text check complete",
                 model=model, score=result.score, issues=len(result.issues),
                 duration_ms=metadata.duration)

        return TextCheckOutcome(
            result=result,
            request_metadata=RequestMetadata(
                request=metadata.request.model_dump(exclude_none=True),
                response=metadata.response.model_dump(),
                model=model,
                duration=metadata.duration,
            ),
        )

    def to_check_result(self, response: LLMCheckResponse, content: str) -> CheckResult:
        """Reshape a validated LLM answer into a CheckResult."""
        environment = string_hash(content)
        issues = []
        per_goal: dict[str, int] = {key: 0 for key in TEXT_CHECK_GOALS}

        for index, issue in enumerate(response.issues):
            key = goal_key(issue.goal) or DEFAULT_GOAL
            goal = TEXT_CHECK_GOALS[key]
            per_goal[key] += 1
            begin, end = locate_span(content, issue.original_text, issue.start_offset, issue.end_offset)
            surface = issue.original_text or content[begin:end]

            issues.append(AcrolinxIssue(
                goal_id=goal.id,
                target_guideline_id=f"{goal.id}-{index}",
                guideline_id=f"{goal.id}-guideline",
                internal_name=f"{goal.id}_issue_{index}",
                display_name_html=html.escape(issue.description),
                guidance_html=guidance_html(issue),
                display_surface=surface,
                issue_type=map_severity(issue.severity),
                scoring=goal.scoring,
                positional_information=PositionalInformation(
                    hashes=IssueHashes(
                        issue=string_hash(f"{issue.goal}-{issue.description}"),
                        environment=environment,
                        index=str(index),
                    ),
                    matches=[IssueMatch(
                        extracted_part=surface,
                        extracted_begin=begin,
                        extracted_end=end,
                        original_part=surface,
                        original_begin=begin,
                        original_end=end,
                    )],
                ),
            ))

        goals = [
            goal.model_copy(update={"issues": per_goal[key]})
            for key, goal in TEXT_CHECK_GOALS.items()
        ]

        metrics = []
        for reported_id, score in response.goal_scores.items():
            key = goal_key(reported_id)
            metrics.append(Metric(id=TEXT_CHECK_GOALS[key].id if key else reported_id, score=score))

        reported = response.counts
        counts = CheckCounts(
            sentences=reported.sentences if reported else count_sentences(content),
            words=reported.words if reported else count_words(content),
            issues=len(response.issues),
            scored_issues=sum(1 for i in response.issues if i.severity in ("error", "warning")),
        )

        return CheckResult(
            id=_check_id(),
            score=response.overall_score,
            status="completed",
            goals=goals,
            issues=issues,
            metrics=metrics,
            counts=counts,
        )

    def fallback_result(self, content: str) -> CheckResult:
        """Structurally valid result used whenever the LLM answer is unusable."""
        return CheckResult(
            id=_check_id(),
            score=FALLBACK_SCORE,
            status="completed",
            goals=[goal.model_copy(update={"issues": 0}) for goal in TEXT_CHECK_GOALS.values()],
            issues=[],
            metrics=[Metric(id=goal.id, score=FALLBACK_SCORE) for goal in TEXT_CHECK_GOALS.values()],
            counts=CheckCounts(
                sentences=count_sentences(content),
                words=count_words(content),
                issues=0,
                scored_issues=0,
            ),
        )
