"""
Autoflow Workflow Engine.

Turns a natural language request into a validated plan and runs it step by
step against the action registry. This is what `autoflow run "..."` does.

Architecture:
    Request → [Planner] → Plan → [Executor] → ExecutionResult
                 ↑                    ↑
       (LLM, cache, fallback)   (action handlers)

Usage:
    from autoflow.storage import SQLiteStore
    from autoflow.workflow import PlanGenerator, WorkflowExecutor, get_llm_client, run_task

    store = SQLiteStore("data/autoflow.db")
    result = await run_task(
        "Send an email to a@example.com with subject 'Hi'",
        generator=PlanGenerator(get_llm_client(config)),
        executor=WorkflowExecutor(store),
    )
    print(result.status)
"""

from .cache import PlanCache, fingerprint, normalize_request
from .context import ExecutionContext, StepContext, detect_category
from .errors import (
    GenerationError,
    PersistenceWarning,
    StepExecutionError,
    StepTimeoutError,
    StructuralError,
    ValidationError,
    WorkflowError,
)
from .executor import ExecutionResult, StepResult, WorkflowExecutor, run_task
from .fallback import build_fallback_plan
from .llm import LLMError, get_llm_client
from .plan import Plan, PlanStep, PlanValidationError, validate_plan
from .planner import PlanGenerator

__all__ = [
    # Planning
    "Plan",
    "PlanStep",
    "PlanGenerator",
    "PlanValidationError",
    "validate_plan",
    "build_fallback_plan",
    # Cache
    "PlanCache",
    "fingerprint",
    "normalize_request",
    # Execution
    "WorkflowExecutor",
    "ExecutionResult",
    "StepResult",
    "ExecutionContext",
    "StepContext",
    "detect_category",
    "run_task",
    # Backends
    "LLMError",
    "get_llm_client",
    # Errors
    "WorkflowError",
    "ValidationError",
    "GenerationError",
    "StructuralError",
    "StepExecutionError",
    "StepTimeoutError",
    "PersistenceWarning",
]
