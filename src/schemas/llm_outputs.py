"""Pydantic schemas for LLM outputs.

These schemas define the structure expected back from each analysis prompt.
Every LLM answer is validated against them before it reaches the
normalization code, so a malformed answer fails here, once, and the caller
can fall back cleanly.

Models are lenient on details (missing suggestions, string numbers, odd
severity spellings) and strict on what the result cannot be built without
(`overallScore`).
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


Severity = Literal["error", "warning", "info"]


class _LLMModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# =============================================================================
# TEXT CHECK OUTPUT
# =============================================================================

class LLMIssue(_LLMModel):
    """A single issue as reported by the model."""
    goal: str = Field(
        default="CLARITY",
        description="Goal id, e.g. CLARITY or SPELLING-GRAMMAR",
    )
    description: str = Field(default="", description="What is wrong")
    suggestions: list[str] = Field(default_factory=list)
    severity: Severity = "info"
    original_text: str = Field(default="", description="The problematic text")
    start_offset: int = 0
    end_offset: int = 0

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, v):
        """Map common severity variations onto error/warning/info."""
        if isinstance(v, str):
            v = v.lower().strip()
            variations = {
                "critical": "error",
                "high": "error",
                "major": "error",
                "medium": "warning",
                "moderate": "warning",
                "minor": "info",
                "low": "info",
                "suggestion": "info",
            }
            v = variations.get(v, v)
            return v if v in ("error", "warning", "info") else "info"
        return "info"

    @field_validator("suggestions", mode="before")
    @classmethod
    def coerce_suggestions(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(s) for s in v]

    @field_validator("start_offset", "end_offset", mode="before")
    @classmethod
    def coerce_offset(cls, v):
        if v is None:
            return 0
        try:
            return int(v)
        except (TypeError, ValueError):
            return 0


class LLMCounts(_LLMModel):
    sentences: int = 0
    words: int = 0
    issues: int = 0


class LLMCheckResponse(_LLMModel):
    """Full text-check answer.

    `overall_score` is required: without it there is no result to report.
    """
    issues: list[LLMIssue] = Field(default_factory=list)
    overall_score: float = Field(..., description="0-100")
    goal_scores: dict[str, float] = Field(default_factory=dict)
    counts: Optional[LLMCounts] = None

    @field_validator("overall_score")
    @classmethod
    def clamp_score(cls, v: float) -> float:
        return max(0.0, min(100.0, v))

    @field_validator("issues", mode="before")
    @classmethod
    def drop_non_objects(cls, v):
        """Models occasionally emit bare strings in the issue list."""
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict)]


# =============================================================================
# GRAMMAR CHECK OUTPUT (per chunk)
# =============================================================================

class LLMGrammarError(BaseModel):
    """One error from the chunked grammar prompt."""
    text: str = ""
    type: Literal["grammar", "spelling", "punctuation", "style"] = "grammar"
    severity: Literal["error", "warning", "suggestion"] = "error"
    message: str = ""
    suggestions: list[str] = Field(default_factory=list)
    position: Optional[int] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        v = str(v or "grammar").lower().strip()
        return v if v in ("grammar", "spelling", "punctuation", "style") else "grammar"

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, v):
        v = str(v or "error").lower().strip()
        if v == "info":
            return "suggestion"
        return v if v in ("error", "warning", "suggestion") else "error"


class LLMGrammarResponse(BaseModel):
    errors: list[LLMGrammarError] = Field(default_factory=list)
