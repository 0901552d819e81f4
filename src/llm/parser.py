"""JSON extraction from LLM responses.

Models wrap their JSON in markdown code fences, <think> blocks, or polite
preamble and sign-off text. Every analysis prompt here asks for a single JSON
object, so this module finds the first top-level object in the raw output
and parses it.
"""

import json
import re
from typing import Any, Optional

from src.utils.logging import log, get_logger

MODULE = "llm.parser"
logger = get_logger()


class JSONExtractionError(Exception):
    """Raised when no JSON object can be extracted from LLM output."""

    def __init__(self, message: str, raw_output: str):
        super().__init__(message)
        self.raw_output = raw_output


def strip_think_tags(raw: str) -> tuple[str, Optional[str]]:
    """Strip a <think>...</think> block from reasoning model output.

    Returns:
        (content_after_think, thinking) or (raw, None) when there is no block
    """
    think_match = re.search(r"<think>(.*?)</think>", raw, re.DOTALL)
    if think_match:
        thinking = think_match.group(1)
        after = raw[think_match.end():].strip()
        return after, thinking
    return raw, None


def extract_json_object(raw: str) -> dict[str, Any]:
    """Extract the first top-level JSON object from LLM output.

    Handles:
    - Raw JSON: {"key": "value"}
    - Markdown blocks: ```json\\n{"key": "value"}\\n```
    - <think> tags: <think>...</think>{"key": "value"}
    - Preamble text: "Here is the analysis:\\n{"key": "value"}"
    - Trailing text: {"key": "value"}\\nLet me know if you need anything else.

    Raises:
        JSONExtractionError: If no JSON object can be extracted
    """
    original_raw = raw
    raw, thinking = strip_think_tags(raw.strip())
    if thinking:
        log.debug(logger, MODULE, "stripped_think", "Stripped <think> tags from response")
    if not raw and thinking:
        # Everything was inside the think block
        raw = original_raw

    # Try 1: Direct parse (ideal case)
    try:
        parsed = json.loads(raw)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    # Try 2: Markdown code block
    code_block = re.search(r"```(?:json)?\s*\n?(.*?)\n?```", raw, re.DOTALL | re.IGNORECASE)
    if code_block:
        try:
            parsed = json.loads(code_block.group(1).strip())
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    # Try 3: Balanced object starting at each '{' in turn
    start = raw.find("{")
    while start != -1:
        candidate = _extract_balanced(raw[start:])
        if candidate:
            try:
                return json.loads(candidate)
            except json.JSONDecodeError:
                pass
        start = raw.find("{", start + 1)

    # Try 4: First '{' to last '}' (greedy), for objects with unbalanced prose inside strings
    first, last = raw.find("{"), raw.rfind("}")
    if first != -1 and last > first:
        try:
            parsed = json.loads(raw[first:last + 1])
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    raise JSONExtractionError(
        f"Could not extract a JSON object from LLM output ({len(raw)} chars)",
        raw_output=original_raw,
    )


def _extract_balanced(text: str) -> Optional[str]:
    """Return the balanced {...} expression at the start of text, or None."""
    if not text or text[0] != "{":
        return None

    depth = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[:i + 1]

    return None

