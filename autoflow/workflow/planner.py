"""
Workflow planner - turns a natural language request into a validated plan.

The planner asks the reasoning backend for a plan in wire form, checks it
against the action vocabulary and caches it by fingerprint. When the
backend is only temporarily unavailable it falls back to a keyword-driven
plan built locally; every other backend failure is reported to the caller.
"""

from __future__ import annotations

from typing import Any

import structlog

from autoflow.actions import DEFAULT_REGISTRY, ActionRegistry
from autoflow.runtime import DEFAULT_CACHE_TTL, MAX_REQUEST_LENGTH

from .cache import PlanCache, fingerprint
from .errors import GenerationError, ValidationError
from .extract import JSONExtractionError, extract_json_object
from .fallback import build_fallback_plan
from .llm import LLMError, ReasoningBackend
from .plan import Plan, PlanValidationError, validate_plan

logger = structlog.get_logger()


# Fixed preamble; the action list is filled in from the registry
PLANNER_PROMPT_HEADER = """You are a workflow planner for Autoflow, a system that turns requests into executable workflows that perform real actions.

When users ask to send emails, post to social media, store data or upload files, create workflows that perform these actions through service integrations.

INSTRUCTIONS:
1. Convert the user's intent into an executable workflow
2. For service integrations, use the collect_credentials -> execute_action pattern
3. Return ONLY valid JSON, no explanations or markdown
4. Each step must have: step number, action, params and description
5. Maximum 7 steps per workflow
6. Only use the actions listed below

AVAILABLE ACTIONS:
"""

PLANNER_PROMPT_BODY = """
INTEGRATION WORKFLOW PATTERNS:

EMAIL: analyze_input -> collect_credentials (email) -> execute_action (send_email) -> send_output
SOCIAL MEDIA: analyze_input -> collect_credentials (social) -> execute_action (post_social) -> send_output
FILE STORAGE: analyze_input -> collect_credentials (storage) -> execute_action (upload_file) -> send_output

PARAMETERS FOR INTEGRATION ACTIONS:

collect_credentials:
- service_type: "email" | "social" | "storage" | "database" | "sms"
- provider: "gmail" | "smtp" | "sendgrid" | "twitter" | "facebook" | "linkedin" | "aws_s3" | "google_drive" | "mysql" | "postgresql" | "mongodb" | "twilio"
- credential_type: "oauth" | "api_key" | "smtp" | "basic" | "access_key" | "connection"

execute_action:
- action_type: "send_email" | "post_social" | "upload_file" | "store_data" | "send_sms" | "make_api_call"
- service_provider: specific provider name
- action_data: {to, subject, body} for email | {content, hashtags} for social | {filename, bucket, folder} for storage | {table, data} for database

manage_integrations:
- action: "create" | "test" | "list" | "delete" | "update"
- service_type, provider, integration_name

OUTPUT FORMAT (JSON ONLY):
{
  "workflow": [
    {
      "step": 1,
      "action": "analyze_input",
      "params": {"input_type": "text", "analysis_depth": "basic"},
      "description": "Analyze the user's request"
    }
  ],
  "estimated_time": 15,
  "complexity": "medium"
}

USER REQUEST: """


def build_prompt(request: str, registry: ActionRegistry = DEFAULT_REGISTRY) -> str:
    actions = "\n".join(f"- {a['name']}: {a['description']}" for a in registry.describe())
    return PLANNER_PROMPT_HEADER + actions + "\n" + PLANNER_PROMPT_BODY + request


def validate_request(request: Any) -> str:
    """
    Check a request before anything else touches it.

    Raises:
        ValidationError: If the request is not a non-blank string of at most
            MAX_REQUEST_LENGTH characters
    """
    if not isinstance(request, str) or not request.strip():
        raise ValidationError("Request is required and must be a non-empty string")
    if len(request) > MAX_REQUEST_LENGTH:
        raise ValidationError(f"Request is too long. Maximum {MAX_REQUEST_LENGTH} characters allowed.")
    return request


def parse_plan(content: str, registry: ActionRegistry = DEFAULT_REGISTRY) -> Plan:
    """
    Parse raw backend output into a validated plan.

    Raises:
        GenerationError: kind "parse" if no valid plan can be read from content
    """
    try:
        data = extract_json_object(content)
        return validate_plan(data, registry.names)
    except (JSONExtractionError, PlanValidationError) as e:
        logger.warning("plan_parse_failed", error=str(e), content=content[:200])
        raise GenerationError("Failed to parse workflow response. Please try again.", kind="parse") from e


class PlanGenerator:
    """
    Generates plans for requests.

    Args:
        backend: Reasoning backend with an async ``complete`` method
        cache: Optional plan cache; None disables caching entirely
        registry: Action vocabulary plans are validated against
        model: Model identifier (defaults to the backend's)
    """

    def __init__(
        self,
        backend: ReasoningBackend,
        *,
        cache: PlanCache | None = None,
        registry: ActionRegistry = DEFAULT_REGISTRY,
        model: str | None = None,
    ):
        self.backend = backend
        self.cache = cache
        self.registry = registry
        self.model = model or getattr(backend, "model", None)

    async def generate(self, request: str, options: dict[str, Any] | None = None) -> Plan:
        """
        Generate a plan for a request.

        Options:
            use_cache: Read and write the plan cache (default True)
            cache_ttl: Lifetime of a newly cached plan in seconds (default 86400)

        Raises:
            ValidationError: Blank or oversized request
            GenerationError: Backend or parse failure that cannot be recovered
        """
        validate_request(request)
        options = dict(options or {})

        use_cache = self.cache is not None and options.get("use_cache", True)
        key = fingerprint(request, self.model, options)

        if use_cache:
            cached = await self.cache.get(key, self.registry.names)
            if cached is not None:
                logger.info("plan_cache_hit", key=key[:12], steps=len(cached))
                return cached

        logger.debug("plan_generate", model=self.model, request_length=len(request))
        try:
            response = await self.backend.complete(build_prompt(request, self.registry), model=self.model)
        except LLMError as e:
            return self._recover(request, e)

        plan = parse_plan(response.content, self.registry)
        logger.info("plan_generated", steps=len(plan), complexity=plan.complexity)

        if use_cache:
            await self.cache.set(key, plan, ttl=options.get("cache_ttl", DEFAULT_CACHE_TTL))
        return plan

    def _recover(self, request: str, error: LLMError) -> Plan:
        if error.kind == "unavailable":
            logger.warning("backend_unavailable_using_fallback", error=str(error))
            return build_fallback_plan(request)
        if error.kind == "auth":
            raise GenerationError("Invalid or missing API key", kind="auth") from error
        if error.kind == "quota":
            raise GenerationError("API quota exceeded", kind="quota") from error
        raise GenerationError(f"Workflow generation failed: {error}", kind="other") from error

    def status(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "provider": getattr(self.backend, "provider", type(self.backend).__name__),
            "cache_enabled": self.cache is not None,
            "actions": len(self.registry),
        }
