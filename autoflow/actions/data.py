"""Data actions: extract, summarize, validate and transform."""

from __future__ import annotations

import json
import re
from typing import Any

from .base import Action, ActionFailure


EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_RE = re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b")
URL_RE = re.compile(r"https?://[^\s]+")
SENTENCE_RE = re.compile(r"[.!?]+")

TECH_KEYWORDS = ("api", "database", "server", "client", "framework", "library", "code")


def _sentences(text: str) -> list[str]:
    return [s.strip() for s in SENTENCE_RE.split(text) if s.strip()]


class ExtractData(Action):
    name = "extract_data"
    description = "Pull information from sources"

    async def run(self, params: dict[str, Any], context) -> tuple[Any, dict[str, Any]]:
        kind = params.get("extraction_type", "key_points")
        source = context.user_input or ""

        if kind == "key_points":
            sentences = _sentences(source)
            data: dict[str, Any] = {
                "key_points": [
                    {"id": i, "content": s} for i, s in enumerate(sentences[:5], 1)
                ],
                "total_points_found": len(sentences),
            }
        elif kind == "technical_details":
            lowered = source.lower()
            data = {"technical_elements": [kw for kw in TECH_KEYWORDS if kw in lowered]}
        elif kind == "contact_info":
            data = {
                "emails": EMAIL_RE.findall(source),
                "phones": PHONE_RE.findall(source),
                "urls": URL_RE.findall(source),
            }
        else:
            words = source.split()
            data = {
                "raw_content": source,
                "content_length": len(source),
                "word_count": len(words),
                "extracted_elements": words[:10],
            }

        return data, {"extraction_method": kind, "source_length": len(source)}


class SummarizeContent(Action):
    name = "summarize_content"
    description = "Create summaries and key points"

    async def run(self, params: dict[str, Any], context) -> tuple[Any, dict[str, Any]]:
        style = params.get("summary_type", "brief")
        max_points = params.get("max_points", 3)
        sentences = _sentences(context.user_input or "")

        data = {
            "summary_type": style,
            "summary": ". ".join(sentences[:1]) if sentences else "",
            "key_points": sentences[:max_points],
            "original_sentences": len(sentences),
        }
        return data, {"summary_type": style}


class ValidateData(Action):
    name = "validate_data"
    description = "Check data quality and accuracy"

    async def run(self, params: dict[str, Any], context) -> tuple[Any, dict[str, Any]]:
        kind = params.get("validation_type", "basic")
        target = context.previous_data or {}

        issues: list[str] = []
        if kind == "completeness":
            required = params.get("required_fields") or ["content"]
            if not isinstance(target, dict):
                raise ActionFailure("completeness validation needs an object from the previous step")
            issues = [f"missing field: {name}" for name in required if not target.get(name)]

        data = {
            "validation_type": kind,
            "validation_passed": not issues,
            "issues_found": issues,
            "checked_fields": sorted(target) if isinstance(target, dict) else [],
        }
        if params.get("strict") and issues:
            raise ActionFailure(f"Validation failed: {', '.join(issues)}", data=data)
        return data, {"validation_method": kind}


class TransformData(Action):
    name = "transform_data"
    description = "Convert data between formats"

    async def run(self, params: dict[str, Any], context) -> tuple[Any, dict[str, Any]]:
        target_format = params.get("target_format", "json")
        source = context.previous_data

        if target_format == "json":
            converted: Any = json.dumps(source, indent=2, default=str)
        elif target_format == "text":
            if isinstance(source, dict):
                converted = "\n".join(f"{k}: {v}" for k, v in source.items())
            else:
                converted = str(source)
        elif target_format == "list":
            if isinstance(source, dict):
                converted = [{"key": k, "value": v} for k, v in source.items()]
            elif isinstance(source, list):
                converted = list(source)
            else:
                converted = [source]
        else:
            raise ActionFailure(f"Unsupported target format: {target_format}")

        data = {
            "transform_type": params.get("transform_type", "format_conversion"),
            "format": target_format,
            "formatted_data": converted,
        }
        return data, {"target_format": target_format}
