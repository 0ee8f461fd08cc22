"""
Tolerant JSON extraction from free-form model output.

Models wrap JSON in prose, markdown fences or <think> blocks. These helpers
find the first complete top-level object by scanning for balanced braces,
skipping braces that appear inside string literals.
"""

from __future__ import annotations

import json
import re
from typing import Any


FENCE_RE = re.compile(r"```[a-zA-Z0-9_-]*[ \t]*\n?")


class JSONExtractionError(ValueError):
    """No parseable JSON object could be found in the text."""

    pass


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences (```json ... ```) and surrounding whitespace."""
    return FENCE_RE.sub("", text).strip()


def strip_thinking(text: str) -> str:
    """Drop a leading <think>...</think> block emitted by reasoning models."""
    if "</think>" in text:
        return text.split("</think>")[-1].strip()
    return text


def find_json_object(text: str, start: int = 0) -> str:
    """
    Return the first balanced top-level ``{...}`` substring of text at or
    after ``start``.

    Raises:
        JSONExtractionError: If no opening brace exists or it is never closed
    """
    start = text.find("{", start)
    if start == -1:
        raise JSONExtractionError("No JSON object found in response")

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    raise JSONExtractionError("Unbalanced JSON object in response")


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Parse the first JSON object embedded in model output.

    Brace groups that are not valid JSON (``{step}`` in prose, say) are
    skipped and scanning resumes at the next opening brace.

    Raises:
        JSONExtractionError: If no candidate parses as a JSON object
    """
    cleaned = strip_code_fences(strip_thinking(text.strip()))
    if "{" not in cleaned:
        raise JSONExtractionError("No JSON object found in response")

    first_error: JSONExtractionError | None = None
    position = cleaned.find("{")
    while position != -1:
        try:
            data = json.loads(find_json_object(cleaned, position))
        except json.JSONDecodeError as e:
            first_error = first_error or JSONExtractionError(f"Invalid JSON in response: {e}")
        except JSONExtractionError as e:
            first_error = first_error or e
        else:
            if isinstance(data, dict):
                return data
        position = cleaned.find("{", position + 1)

    raise first_error or JSONExtractionError("Top-level JSON value is not an object")
