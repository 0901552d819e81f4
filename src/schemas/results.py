"""Check results in the checking service's wire shape.

Both engines produce a `CheckResult`: the checking service after polling
converges, the LLM path synchronously via the text-check translator. Field
names are camelCase on the wire so results round-trip unchanged between the
checking service, the proxy API and the coordinator.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase in JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TextChunk(CamelModel):
    """A bounded slice of a larger document.

    Offsets are into the original text; `end_offset - start_offset` never
    exceeds the chunker's maximum.
    """
    id: str
    text: str
    start_offset: int
    end_offset: int
    overlap_with_previous: int = 0


class GoalResult(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    display_name: str = ""
    color: str = ""
    scoring: str = ""
    issues: int = 0


class Metric(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    score: float = 0


class CheckCounts(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    sentences: int = 0
    words: int = 0
    issues: int = 0
    scored_issues: int = 0


class IssueHashes(CamelModel):
    issue: str
    environment: str
    index: str


class IssueMatch(CamelModel):
    extracted_part: str = ""
    extracted_begin: int = 0
    extracted_end: int = 0
    original_part: str = ""
    original_begin: int = 0
    original_end: int = 0


class PositionalInformation(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    hashes: Optional[IssueHashes] = None
    matches: list[IssueMatch] = Field(default_factory=list)


class AcrolinxIssue(CamelModel):
    """A flagged span, with character offsets into the original content."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    goal_id: str = ""
    target_guideline_id: str = ""
    guideline_id: str = ""
    internal_name: str = ""
    display_name_html: str = ""
    guidance_html: str = ""
    display_surface: str = ""
    issue_type: str = ""
    scoring: str = ""
    positional_information: Optional[PositionalInformation] = None


class CheckResult(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    score: int = 0
    status: str = "completed"
    goals: list[GoalResult] = Field(default_factory=list)
    issues: list[AcrolinxIssue] = Field(default_factory=list)
    metrics: Optional[list[Metric]] = None
    counts: Optional[CheckCounts] = None
    debug: Optional[dict[str, Any]] = None

    @field_validator("score", mode="before")
    @classmethod
    def round_score(cls, v):
        if v is None:
            return 0
        return int(round(float(v)))


# =============================================================================
# CHUNKED GRAMMAR CHECK
# =============================================================================

class ErrorContext(CamelModel):
    before: str = ""
    error: str = ""
    after: str = ""


class GrammarError(CamelModel):
    id: str
    type: Literal["grammar", "spelling", "punctuation", "style"]
    severity: Literal["error", "warning", "suggestion"]
    offset: int
    length: int
    message: str = ""
    suggestions: list[str] = Field(default_factory=list)
    context: ErrorContext = Field(default_factory=ErrorContext)


class GrammarCheckResponse(CamelModel):
    id: str
    errors: list[GrammarError] = Field(default_factory=list)
    processed_chunks: int = 0
    total_chunks: int = 0
