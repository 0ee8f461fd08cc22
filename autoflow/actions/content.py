"""Content actions: generate, format and deliver results."""

from __future__ import annotations

from typing import Any

from .base import Action, ActionFailure


_TEMPLATES: dict[str, str] = {
    "response": "Here is a response to your request: {request}",
    "detailed_response": "Detailed response.\n\nRequest: {request}\n\nKey points follow below.",
    "social_posts": "Automation tip: {request} #automation #ai",
    "email": "Hello,\n\nThank you for your message regarding: {request}\n\nBest regards,\n[Your Name]",
    "code_feedback": "Code review summary for: {request}\n- Structure\n- Naming\n- Error handling",
    "document": "# Document\n\n{request}",
    "calendar": "Content calendar for: {request}",
}

_DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class GenerateContent(Action):
    name = "generate_content"
    description = "Create text, posts, documents, code"

    async def run(self, params: dict[str, Any], context) -> tuple[Any, dict[str, Any]]:
        content_type = params.get("content_type", "response")
        count = params.get("count", 1)
        if not isinstance(count, int) or count < 1:
            raise ActionFailure(f"count must be a positive integer, got {count!r}")

        template = _TEMPLATES.get(content_type, _TEMPLATES["response"])
        request = (context.user_input or "").strip()

        if content_type == "calendar":
            content: Any = [
                {"day": day, "entry": f"{template.format(request=request)} ({day})"}
                for day in _DAYS
            ]
        elif count > 1:
            content = [f"{template.format(request=request)} [{i}]" for i in range(1, count + 1)]
        else:
            content = template.format(request=request)

        if params.get("include_hashtags") and isinstance(content, str) and "#" not in content:
            content += " #automation"

        data = {
            "content_type": content_type,
            "content": content,
            "tone": params.get("tone", "neutral"),
            "length": params.get("length", "medium"),
            "platform": params.get("platform", "general"),
        }
        return data, {"generated_at": context.timestamp, "template": content_type}


class FormatOutput(Action):
    name = "format_output"
    description = "Structure and format results"

    async def run(self, params: dict[str, Any], context) -> tuple[Any, dict[str, Any]]:
        fmt = params.get("format", "structured")
        sections = params.get("sections") or []
        previous = context.previous_data or {}
        content = previous.get("content", previous) if isinstance(previous, dict) else previous

        if fmt == "structured":
            formatted: dict[str, Any] = {
                "title": f"{context.category} output",
                "content": content,
                "timestamp": context.timestamp,
            }
            if params.get("include_metadata"):
                formatted["metadata"] = {"steps_so_far": len(context.previous_results)}
        elif fmt == "email_template":
            formatted = {
                "subject": previous.get("subject", "Professional Communication") if isinstance(previous, dict) else "Professional Communication",
                "body": content,
                "signature": "\n\nBest regards,\n[Your Name]" if params.get("professional", True) else "",
            }
        elif fmt == "report":
            formatted = {
                "executive_summary": "Summary of findings and recommendations",
                "main_content": content,
                "sections": sections or ["overview", "analysis", "recommendations"],
            }
        else:
            formatted = {
                "formatted_content": content,
                "format_applied": fmt,
            }

        if sections:
            formatted["sections_included"] = list(sections)

        return formatted, {"formatted_at": context.timestamp, "format_type": fmt}


class SendOutput(Action):
    name = "send_output"
    description = "Deliver final results to user"

    async def run(self, params: dict[str, Any], context) -> tuple[Any, dict[str, Any]]:
        method = params.get("delivery_method", "direct")
        history = context.previous_results

        package = {
            "status": "completed",
            "delivery_method": method,
            "timestamp": context.timestamp,
            "result": {
                "content": context.previous_data,
                "format": params.get("format", "standard"),
            },
            "workflow_summary": {
                "total_steps": len(history),
                "successful_steps": sum(1 for r in history if r.success),
                "total_time_ms": sum(r.duration_ms for r in history),
                "workflow_type": context.category,
            },
        }

        if params.get("include_tips"):
            package["result"]["tips"] = [
                "Save this content for future reference",
                "Review and edit before final use",
            ]

        return package, {
            "delivered_at": context.timestamp,
            "delivery_method": method,
            "final_step": context.is_last_step,
        }
