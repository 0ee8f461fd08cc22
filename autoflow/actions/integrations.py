"""
Integration actions.

These describe and simulate calls to third-party services. Nothing here
delivers anything: each handler returns the record a real integration
would produce, so plans can be executed and replayed end to end.
"""

from __future__ import annotations

from typing import Any

from .base import Action, ActionFailure


# -----------------------------------------------------------------------------
# Credentials
# -----------------------------------------------------------------------------

# (service_type, provider) -> fields the user must supply
CREDENTIAL_FIELDS: dict[tuple[str, str], list[str]] = {
    ("email", "gmail"): ["client_id", "client_secret", "redirect_uri"],
    ("email", "smtp"): ["smtp_host", "smtp_port", "username", "password"],
    ("email", "sendgrid"): ["api_key", "from_email"],
    ("social", "twitter"): ["api_key", "api_secret", "access_token", "access_token_secret"],
    ("social", "facebook"): ["app_id", "app_secret", "page_access_token"],
    ("social", "linkedin"): ["client_id", "client_secret", "access_token"],
    ("storage", "aws_s3"): ["access_key_id", "secret_access_key", "region"],
    ("storage", "google_drive"): ["client_id", "client_secret"],
    ("database", "mysql"): ["host", "port", "database", "username", "password"],
    ("database", "postgresql"): ["host", "port", "database", "username", "password"],
    ("database", "mongodb"): ["connection_string"],
    ("sms", "twilio"): ["account_sid", "auth_token", "from_number"],
}

INTEGRATION_ACTIONS = frozenset(
    {"execute_action", "collect_credentials", "manage_integrations", "setup_integration"}
)


class CollectCredentials(Action):
    name = "collect_credentials"
    description = "Collect and manage credentials for service integrations"

    async def run(self, params: dict[str, Any], context) -> tuple[Any, dict[str, Any]]:
        service_type = params.get("service_type", "email")
        provider = params.get("provider", "gmail")
        credential_type = params.get("credential_type", "oauth")

        fields = CREDENTIAL_FIELDS.get((service_type, provider), ["api_key"])
        data = {
            "service_type": service_type,
            "provider": provider,
            "credential_type": credential_type,
            "config": {
                "fields": [{"name": f, "required": True} for f in fields],
                "auth_flow": credential_type,
            },
            "status": "pending_user_input",
            "next_steps": [
                f"Provide {provider} credentials",
                "Test the connection",
            ],
        }
        return data, {"requires_user_input": True}


# -----------------------------------------------------------------------------
# Execute
# -----------------------------------------------------------------------------

SUPPORTED_PROVIDERS: dict[str, frozenset[str]] = {
    "send_email": frozenset({"gmail", "smtp", "sendgrid"}),
    "post_social": frozenset({"twitter", "facebook", "linkedin"}),
    "store_data": frozenset({"mysql", "postgresql", "mongodb", "redis"}),
    "upload_file": frozenset({"aws_s3", "google_drive"}),
    "send_sms": frozenset({"twilio"}),
}


def _simulate(action_type: str, provider: str, data: dict[str, Any], ref: str) -> dict[str, Any]:
    if action_type == "send_email":
        return {
            "status": "sent",
            "message_id": f"{provider}_{ref}",
            "to": data.get("to"),
            "subject": data.get("subject"),
        }
    if action_type == "post_social":
        return {
            "status": "posted",
            "post_id": f"{provider}_{ref}",
            "content": data.get("content"),
            "hashtags": data.get("hashtags", []),
        }
    if action_type == "store_data":
        return {
            "status": "stored",
            "table": data.get("table") or data.get("collection"),
            "rows_affected": 1,
        }
    if action_type == "upload_file":
        key = "/".join(p for p in (data.get("folder"), data.get("filename")) if p)
        return {
            "status": "uploaded",
            "bucket": data.get("bucket"),
            "key": key,
        }
    if action_type == "send_sms":
        return {"status": "sent", "message_id": f"sms_{ref}", "to": data.get("to")}
    if action_type == "make_api_call":
        return {
            "status": "completed",
            "method": data.get("method", "GET"),
            "endpoint": data.get("endpoint"),
            "response_status": 200,
        }
    return {"status": "completed", "data": data}


class ExecuteAction(Action):
    name = "execute_action"
    description = "Execute real actions on integrated services"

    async def run(self, params: dict[str, Any], context) -> tuple[Any, dict[str, Any]]:
        action_type = params.get("action_type", "send_email")
        provider = params.get("service_provider", "gmail")
        action_data = params.get("action_data") or {}
        if not isinstance(action_data, dict):
            raise ActionFailure("action_data must be an object")

        supported = SUPPORTED_PROVIDERS.get(action_type)
        if supported is not None and provider not in supported:
            raise ActionFailure(
                f"Unsupported provider for {action_type}: {provider}",
                data={"action_type": action_type, "service_provider": provider, "status": "failed"},
            )

        ref = f"{context.execution_id}_{context.step_number}"
        data = {
            "action_type": action_type,
            "service_provider": provider,
            "status": "completed",
            "action_data": action_data,
            "result": _simulate(action_type, provider, action_data, ref),
            "executed_at": context.timestamp,
        }
        return data, {"action_type": action_type, "service_provider": provider}


# -----------------------------------------------------------------------------
# Manage / setup
# -----------------------------------------------------------------------------


class ManageIntegrations(Action):
    name = "manage_integrations"
    description = "Create, configure, and manage service integrations"

    OPERATIONS = ("create", "test", "list", "delete", "update")

    async def run(self, params: dict[str, Any], context) -> tuple[Any, dict[str, Any]]:
        operation = params.get("action", "list")
        if operation not in self.OPERATIONS:
            raise ActionFailure(f"Unknown integration operation: {operation}")

        service_type = params.get("service_type", "email")
        provider = params.get("provider", "gmail")
        name = params.get("integration_name") or f"{provider} {service_type} integration"

        data: dict[str, Any] = {"operation": operation, "service_type": service_type, "provider": provider}
        if operation == "list":
            data["integrations"] = [
                {"service_type": s, "provider": p} for (s, p) in sorted(CREDENTIAL_FIELDS)
            ]
        else:
            data["integration"] = {
                "integration_id": f"int_{provider}_{context.execution_id}",
                "name": name,
                "status": "active" if operation in ("create", "update", "test") else "deleted",
            }
        return data, {"operation": operation}


class SetupIntegration(Action):
    name = "setup_integration"
    description = "Setup and configure third-party service integrations"

    async def run(self, params: dict[str, Any], context) -> tuple[Any, dict[str, Any]]:
        integration_type = params.get("integration_type", "email")
        provider = params.get("provider", "gmail")

        service_type = "social" if integration_type == "social_media" else integration_type
        fields = CREDENTIAL_FIELDS.get((service_type, provider), ["api_key"])
        data = {
            "integration_type": integration_type,
            "provider": provider,
            "setup_steps": [
                f"Create {provider} credentials",
                f"Fill in: {', '.join(fields)}",
                "Run manage_integrations with action=test",
            ],
            "required_fields": fields,
        }
        return data, {"integration_type": integration_type}
