"""
Autoflow actions module.

These are the capability handlers a plan step can name. Each handler
receives the step's params and a read-only context snapshot and returns
an ActionResult; business failures come back as success=False rather
than as exceptions.

Actions are organized into categories:
- Analysis: analyze_input
- Content: generate_content, format_output, send_output
- Data: extract_data, summarize_content, validate_data, transform_data
- Integrations: collect_credentials, execute_action, manage_integrations, setup_integration
"""

from .base import Action, ActionFailure, ActionResult
from .integrations import INTEGRATION_ACTIONS
from .registry import DEFAULT_REGISTRY, ActionRegistry, validate_action

__all__ = [
    # Contract
    "Action",
    "ActionFailure",
    "ActionResult",
    # Registry
    "ActionRegistry",
    "DEFAULT_REGISTRY",
    "INTEGRATION_ACTIONS",
    "validate_action",
]
