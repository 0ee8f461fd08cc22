"""Input analysis: the usual first step of every plan."""

from __future__ import annotations

from typing import Any

from .base import Action

# (keywords, element, requirement key, requirement value)
_SIGNALS = (
    (("social media", "post"), "social_content", "platform", "social"),
    (("email", "message"), "communication", "format", "email"),
    (("document", "report"), "document_processing", "format", "document"),
    (("code", "programming"), "code_analysis", "technical", True),
    (("resume", "cv"), "professional_document", "format", "resume"),
)


class AnalyzeInput(Action):
    name = "analyze_input"
    description = "Analyze and understand user input"

    async def run(self, params: dict[str, Any], context) -> tuple[Any, dict[str, Any]]:
        text = context.user_input or ""
        lowered = text.lower()

        key_elements: list[str] = []
        requirements: dict[str, Any] = {}
        for keywords, element, key, value in _SIGNALS:
            if any(kw in lowered for kw in keywords):
                key_elements.append(element)
                requirements[key] = value

        analysis = {
            "input_type": params.get("input_type", "text"),
            "content_length": len(text),
            "word_count": len(text.split()),
            "complexity": params.get("analysis_depth", "basic"),
            "focus_area": params.get("focus", "general"),
            "category": context.category,
            "key_elements": key_elements,
            "requirements": requirements,
        }
        return analysis, {"processed_at": context.timestamp}
