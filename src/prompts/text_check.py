"""Prompts for the LLM checking engine.

Two prompt families live here:

### Text check (one call per document)
The model reviews the whole document against six quality goals and answers
with ONE JSON object: a list of issues (goal, description, suggestions,
severity, the offending text and its character span), a score per goal, an
overall score and rough counts. The translator in src/llm/text_check.py
turns that object into the checking service's result shape, so the UI
cannot tell the two engines apart.

Goal ids are upper-case with hyphens in the prompt (SPELLING-GRAMMAR); the
translator normalizes case and `_`/`-` before looking them up, because
models drift between the two spellings.

### Grammar check (one call per chunk)
Long documents are split by TextChunker and each chunk is checked on its
own. The model returns {"errors": [...]} with a chunk-relative `position`;
src/llm/grammar_check.py shifts those back to whole-document offsets.
"""


# =============================================================================
# TEXT CHECK
# =============================================================================

TEXT_CHECK_SYSTEM = """You are an advanced text quality analyzer that checks content for clarity, consistency, inclusive language, scannability, spelling/grammar, and terminology issues.

You must analyze the text and return a JSON response with the following structure:
{{
  "issues": [
    {{
      "goal": "<goal-id>",
      "description": "<clear description of the issue>",
      "suggestions": ["<suggestion 1>", "<suggestion 2>"],
      "severity": "<error|warning|info>",
      "originalText": "<the problematic text, copied exactly>",
      "startOffset": <character index where originalText starts>,
      "endOffset": <character index where originalText ends>
    }}
  ],
  "overallScore": <0-100>,
  "goalScores": {{
    {goal_score_lines}
  }},
  "counts": {{
    "sentences": <number>,
    "words": <number>,
    "issues": <number>
  }}
}}

"goal" must be one of: {goal_ids}

Check for the following:

**Clarity Issues:**
- Ambiguous pronouns and unclear antecedents
- Complex sentences that could be simplified
- Jargon without explanation
- Passive voice when active would be clearer
- Vague language

**Consistency Issues:**
- Inconsistent terminology or spelling variants
- Inconsistent formatting (bullet points, capitalization)
- Inconsistent tone or style

**Inclusive Language Issues:**
- Gendered language when neutral alternatives exist
- Culturally insensitive, ableist or age-biased terms
- Exclusionary language

**Scannability Issues:**
- Long paragraphs that should be broken up
- Missing headings or subheadings
- Lists written as dense prose
- Missing white space

**Spelling and Grammar Issues:**
- Spelling errors
- Grammar mistakes and subject-verb disagreement
- Punctuation errors
- Incorrect word usage

**Terminology Issues:**
- Technical terms not defined
- Inconsistent or incorrect technical terminology
- Domain-specific term misuse

Important:
- Be thorough but reasonable, don't nitpick minor stylistic choices
- Provide helpful, actionable suggestions
- Use "error" for serious issues, "warning" for moderate issues, "info" for suggestions
- Calculate realistic scores (perfect text = 100, typical good text = 80-90, problematic text = below 70)
- Character offsets are 0-based indexes into the text exactly as given
- Return ONLY the JSON object, no other text"""


TEXT_CHECK_USER = """Please analyze the following text and provide a detailed quality check report:

{content}"""


def build_text_check_system(goal_ids: list[str]) -> str:
    """Fill the goal list into the text-check system prompt.

    Args:
        goal_ids: prompt-side goal ids, e.g. ["CLARITY", "SPELLING-GRAMMAR"]
    """
    return TEXT_CHECK_SYSTEM.format(
        goal_ids=", ".join(goal_ids),
        goal_score_lines=",\n    ".join(f'"{g}": <0-100>' for g in goal_ids),
    )


# =============================================================================
# CHUNKED GRAMMAR CHECK
# =============================================================================

GRAMMAR_CHECK_SYSTEM = "You are a professional grammar checker. Always respond with valid JSON only."

GRAMMAR_CHECK_USER = """You are a professional grammar checker. Analyze the following text and identify any grammar, spelling, punctuation, or style issues.

For each issue found, provide a JSON response with this exact structure:
{{
  "errors": [
    {{
      "text": "the exact problematic text",
      "type": "grammar|spelling|punctuation|style",
      "severity": "error|warning|suggestion",
      "message": "explanation of the issue",
      "suggestions": ["suggestion 1", "suggestion 2"],
      "position": <character position in the text>
    }}
  ]
}}

IMPORTANT:
- The "position" field must be the exact character index where the error starts in the text below
- Only return the JSON object, no other text
- If no errors are found, return {{"errors": []}}
{format_note}
Text to analyze:
{text}"""

FORMAT_NOTES = {
    "plain": "",
    "markdown": "- The text is Markdown: ignore markup syntax, check the prose\n",
    "html": "- The text is HTML: ignore tags and attributes, check the visible prose\n",
}
