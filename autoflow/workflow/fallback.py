"""
Deterministic fallback plans.

Used when the reasoning backend is temporarily unavailable. The request is
matched against an ordered rule table by keyword; the first matching rule
builds an integration plan with fields pulled out of the request text,
falling back to a generic three-step plan when nothing matches.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

from autoflow.actions import DEFAULT_REGISTRY

from .plan import Plan, validate_plan


APP_NAME = "Autoflow"

DEFAULT_RECIPIENT = "recipient@example.com"
DEFAULT_SUBJECT = f"Automated Message from {APP_NAME}"
DEFAULT_BODY = f"This is an automated message sent by {APP_NAME}."
DEFAULT_SENDER = "noreply@autoflow.local"
DEFAULT_POST = f"Hello from {APP_NAME}! Automated post via AI integration."
DEFAULT_HASHTAGS = ["#Autoflow", "#automation", "#ai"]

EMAIL_TO_RE = re.compile(r"(?:to |send (?:to )?)([\w.-]+@[\w.-]+)", re.IGNORECASE)
SUBJECT_RE = re.compile(r"subject[\"\s]*[\"']([^\"']+)[\"']", re.IGNORECASE)
BODY_RE = re.compile(r"(?:message|body)[\"\s]*[\"']([^\"']+)[\"']", re.IGNORECASE)
POST_RE = re.compile(r"(?:post|saying)[\"\s:]*[\"']([^\"']+)[\"']", re.IGNORECASE)
FILENAME_RE = re.compile(r"(?:file|upload)[\"\s]*[\"']([^\"']+)[\"']", re.IGNORECASE)
BUCKET_RE = re.compile(r"bucket[\"\s]*[\"']([^\"']+)[\"']", re.IGNORECASE)
TABLE_RE = re.compile(r"table[\"\s]*[\"']([^\"']+)[\"']", re.IGNORECASE)


def _search(pattern: re.Pattern, text: str) -> str | None:
    match = pattern.search(text)
    return match.group(1).strip() if match else None


# -----------------------------------------------------------------------------
# Field extraction
# -----------------------------------------------------------------------------


def extract_email_fields(request: str) -> dict[str, Any]:
    recipient = _search(EMAIL_TO_RE, request)
    return {
        "to": recipient.rstrip(".") if recipient else DEFAULT_RECIPIENT,
        "subject": _search(SUBJECT_RE, request) or DEFAULT_SUBJECT,
        "body": _search(BODY_RE, request) or DEFAULT_BODY,
        "from": DEFAULT_SENDER,
    }


def extract_social_fields(request: str) -> dict[str, Any]:
    return {
        "content": _search(POST_RE, request) or DEFAULT_POST,
        "hashtags": list(DEFAULT_HASHTAGS),
    }


def social_platform(request: str) -> str:
    lowered = request.lower()
    if "facebook" in lowered and "twitter" not in lowered:
        return "facebook"
    return "twitter"


def extract_storage_fields(request: str) -> dict[str, Any]:
    return {
        "filename": _search(FILENAME_RE, request) or "document.txt",
        "bucket": _search(BUCKET_RE, request) or "default-bucket",
        "folder": "uploads",
    }


def extract_database_fields(request: str) -> dict[str, Any]:
    return {
        "table": _search(TABLE_RE, request) or "data",
        "data": {"key": "automated_entry", "value": request},
    }


# -----------------------------------------------------------------------------
# Plan builders
# -----------------------------------------------------------------------------


def _integration_plan(
    *,
    input_type: str,
    service_type: str,
    provider: str,
    credential_type: str,
    action_type: str,
    action_data: dict[str, Any],
    noun: str,
    estimated_time: int,
    complexity: str,
) -> dict:
    return {
        "workflow": [
            {
                "step": 1,
                "action": "analyze_input",
                "params": {"input_type": input_type, "analysis_depth": "detailed"},
                "description": f"Analyze the {noun} request and extract details",
            },
            {
                "step": 2,
                "action": "collect_credentials",
                "params": {
                    "service_type": service_type,
                    "provider": provider,
                    "credential_type": credential_type,
                },
                "description": f"Collect {provider} credentials",
            },
            {
                "step": 3,
                "action": "execute_action",
                "params": {
                    "action_type": action_type,
                    "service_provider": provider,
                    "action_data": action_data,
                },
                "description": f"Execute the {noun} action via {provider}",
            },
            {
                "step": 4,
                "action": "send_output",
                "params": {"delivery_method": "direct", "format": "confirmation"},
                "description": f"Confirm the {noun} result",
            },
        ],
        "estimated_time": estimated_time,
        "complexity": complexity,
    }


def email_plan(request: str) -> dict:
    return _integration_plan(
        input_type="email_request",
        service_type="email",
        provider="gmail",
        credential_type="oauth",
        action_type="send_email",
        action_data=extract_email_fields(request),
        noun="email",
        estimated_time=45,
        complexity="medium",
    )


def social_plan(request: str) -> dict:
    return _integration_plan(
        input_type="social_request",
        service_type="social",
        provider=social_platform(request),
        credential_type="oauth",
        action_type="post_social",
        action_data=extract_social_fields(request),
        noun="social media post",
        estimated_time=30,
        complexity="medium",
    )


def storage_plan(request: str) -> dict:
    return _integration_plan(
        input_type="storage_request",
        service_type="storage",
        provider="aws_s3",
        credential_type="access_key",
        action_type="upload_file",
        action_data=extract_storage_fields(request),
        noun="file upload",
        estimated_time=25,
        complexity="low",
    )


def database_plan(request: str) -> dict:
    return _integration_plan(
        input_type="database_request",
        service_type="database",
        provider="mysql",
        credential_type="connection",
        action_type="store_data",
        action_data=extract_database_fields(request),
        noun="data storage",
        estimated_time=35,
        complexity="medium",
    )


def default_plan(request: str) -> dict:
    return {
        "workflow": [
            {
                "step": 1,
                "action": "analyze_input",
                "params": {"input_type": "text", "analysis_depth": "basic"},
                "description": "Analyze the user request",
            },
            {
                "step": 2,
                "action": "generate_content",
                "params": {"content_type": "response", "tone": "helpful"},
                "description": "Generate a response to the request",
            },
            {
                "step": 3,
                "action": "send_output",
                "params": {"delivery_method": "direct"},
                "description": "Deliver the response",
            },
        ],
        "estimated_time": 15,
        "complexity": "low",
    }


# -----------------------------------------------------------------------------
# Rule table
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class FallbackRule:
    category: str
    keywords: tuple[str, ...]
    build: Callable[[str], dict]

    def matches(self, lowered: str) -> bool:
        return any(k in lowered for k in self.keywords)


# Evaluated in order; the first match wins.
FALLBACK_RULES: tuple[FallbackRule, ...] = (
    FallbackRule("email", ("email", "send", "mail"), email_plan),
    FallbackRule("social", ("social", "post", "twitter", "facebook"), social_plan),
    FallbackRule("storage", ("upload", "file", "storage", "s3"), storage_plan),
    FallbackRule("database", ("database", "store", "mysql", "data"), database_plan),
)


def select_fallback_rule(request: str) -> FallbackRule | None:
    lowered = request.lower()
    for rule in FALLBACK_RULES:
        if rule.matches(lowered):
            return rule
    return None


def build_fallback_plan(request: str) -> Plan:
    """
    Build a plan for the request without calling the reasoning backend.

    The result depends only on the request text.
    """
    rule = select_fallback_rule(request)
    payload = rule.build(request) if rule else default_plan(request)
    return validate_plan(payload, DEFAULT_REGISTRY.names, source="fallback")
