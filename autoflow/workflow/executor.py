"""
Workflow executor - runs plans step by step against the action registry.

Each step is dispatched to its handler with a read-only snapshot of the run
so far and raced against the step timeout. The first failing step aborts
the run: later handlers never start, and the execution record is closed
as failed.
"""

from __future__ import annotations

import asyncio
import json
import time
import warnings
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog

from autoflow.actions import DEFAULT_REGISTRY, INTEGRATION_ACTIONS, ActionRegistry, ActionResult
from autoflow.runtime import DEFAULT_STEP_TIMEOUT
from autoflow.storage import NotFoundError, StorageError

from .context import ExecutionContext, build_step_context, detect_category
from .errors import PersistenceWarning, StepExecutionError, StepTimeoutError, StructuralError
from .plan import MAX_STEPS, Plan, PlanStep

if TYPE_CHECKING:
    from .planner import PlanGenerator

logger = structlog.get_logger()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _jsonable(value: Any) -> Any:
    if isinstance(value, (dict, list, str, int, float, bool, type(None))):
        return value
    return str(value)


@dataclass
class StepResult:
    """Result of executing a single step."""

    step_number: int
    action: str
    success: bool
    data: Any = None
    error: str | None = None
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    duration_ms: int = 0
    completed_at: str = ""
    retry_count: int = 0
    integration: dict[str, Any] | None = None

    def to_dict(self) -> dict:
        return {
            "step_number": self.step_number,
            "action": self.action,
            "success": self.success,
            "data": _jsonable(self.data),
            "error": self.error,
            "description": self.description,
            "metadata": self.metadata,
            "duration_ms": self.duration_ms,
            "completed_at": self.completed_at,
            "retry_count": self.retry_count,
            "integration": self.integration,
        }


@dataclass
class ExecutionResult:
    """Result of running a complete plan."""

    execution_id: str
    status: str  # "completed", "failed"
    plan: Plan
    step_results: list[StepResult]
    output: Any = None
    error: str | None = None
    started_at: str = ""
    completed_at: str = ""
    duration_ms: int = 0
    category: str = "general"

    @property
    def success(self) -> bool:
        return self.status == "completed"

    def to_dict(self) -> dict:
        return {
            "execution_id": self.execution_id,
            "status": self.status,
            "success": self.success,
            "plan": self.plan.to_dict(),
            "workflow_id": self.plan.id,
            "step_results": [r.to_dict() for r in self.step_results],
            "output": _jsonable(self.output),
            "error": self.error,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "duration_ms": self.duration_ms,
            "category": self.category,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)


def integration_info(action: str, result_data: Any, success: bool) -> dict[str, Any] | None:
    """Provider summary for integration actions; None for everything else."""
    if action not in INTEGRATION_ACTIONS:
        return None
    data = result_data if isinstance(result_data, dict) else {}
    return {
        "action_type": action,
        "provider": data.get("service_provider") or data.get("provider") or "unknown",
        "integration_id": data.get("integration_id"),
        "status": data.get("status") or ("success" if success else "failed"),
    }


def coerce_outcome(outcome: Any) -> ActionResult:
    """
    Accept a handler outcome as an ActionResult or its dict form.

    A dict is read as ``{success, data, error, metadata}``; a missing
    ``success`` counts as success.

    Raises:
        TypeError: If the outcome has neither shape
    """
    if isinstance(outcome, ActionResult):
        return outcome
    if isinstance(outcome, dict):
        metadata = outcome.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise TypeError("Handler metadata must be an object")
        return ActionResult(
            success=outcome.get("success", True),
            data=outcome.get("data"),
            error=outcome.get("error"),
            metadata=metadata,
        )
    raise TypeError(f"Handler returned {type(outcome).__name__}, expected ActionResult")


def resolve_refs(params: dict[str, Any], shared: Any) -> dict[str, Any]:
    """Replace ``"$step_<n>"`` string values with that step's output."""
    resolved = {}
    for key, value in params.items():
        if isinstance(value, str) and value.startswith("$") and value[1:] in shared:
            resolved[key] = shared[value[1:]]
        else:
            resolved[key] = value
    return resolved


def validate_structure(plan: Plan | dict, registry: ActionRegistry = DEFAULT_REGISTRY) -> Plan:
    """
    Check that a plan can be executed and return it as a Plan.

    Accepts a Plan or its wire dict of at most MAX_STEPS steps.

    Raises:
        StructuralError: On the first malformed step
    """
    if isinstance(plan, Plan):
        entries = [s.to_dict() for s in plan.steps]
    elif isinstance(plan, dict):
        entries = plan.get("workflow")
        if not isinstance(entries, list):
            raise StructuralError("Invalid workflow: must contain workflow array")
    else:
        raise StructuralError("Invalid workflow: must be an object")

    if not entries:
        raise StructuralError("Invalid workflow: workflow cannot be empty")
    if len(entries) > MAX_STEPS:
        raise StructuralError(f"Invalid workflow: cannot have more than {MAX_STEPS} steps")

    for index, entry in enumerate(entries, 1):
        if not isinstance(entry, dict):
            raise StructuralError(f"Invalid step {index}: must be an object")
        number = entry.get("step")
        if not isinstance(number, int) or isinstance(number, bool) or number < 1 or not entry.get("action"):
            raise StructuralError(f"Invalid step {index}: missing step number or action")
        if not registry.validate_action(entry["action"]):
            raise StructuralError(f'Invalid step {index}: unknown action "{entry["action"]}"')
        if not isinstance(entry.get("params"), dict):
            raise StructuralError(f"Invalid step {index}: params must be an object")

    if isinstance(plan, Plan):
        return plan
    return Plan.from_dict(plan, source=plan.get("source", "llm"))


class WorkflowExecutor:
    """
    Runs plans and records each run in the store.

    Args:
        store: Execution store (see autoflow.storage.SQLiteStore)
        registry: Handlers steps are dispatched to
        step_timeout: Seconds each handler may take
    """

    def __init__(
        self,
        store,
        *,
        registry: ActionRegistry = DEFAULT_REGISTRY,
        step_timeout: float = DEFAULT_STEP_TIMEOUT,
    ):
        if step_timeout <= 0:
            raise ValueError(f"step_timeout must be positive, got {step_timeout}")
        self.store = store
        self.registry = registry
        self.step_timeout = step_timeout

    def validate_structure(self, plan: Plan | dict) -> Plan:
        return validate_structure(plan, self.registry)

    async def execute_workflow(
        self,
        plan: Plan | dict,
        user_input: str,
        options: dict[str, Any] | None = None,
    ) -> ExecutionResult:
        """
        Execute every step of a plan in order.

        Returns:
            ExecutionResult with status "completed"

        Raises:
            StructuralError: Malformed plan; nothing was persisted or run
            StepExecutionError: A step failed; ``error.execution`` holds the
                failed ExecutionResult
        """
        plan = self.validate_structure(plan)
        options = dict(options or {})

        record = await self.store.create_execution(
            {
                "workflow_id": plan.id,
                "status": "running",
                "input": {"prompt": user_input, "options": options},
                "steps": [s.to_dict() for s in plan.steps],
                "execution_time": 0,
            }
        )
        run = ExecutionContext.create(record.id, user_input, options)
        log = logger.bind(execution_id=record.id)
        log.info("execution_started", steps=len(plan), category=run.category)

        started_at = _now()
        start_time = time.monotonic()
        results: list[StepResult] = []

        for index, step in enumerate(plan.steps):
            result, failure = await self._execute_step(step, index, run, tuple(results), len(plan))
            results.append(result)

            if failure is not None:
                execution = ExecutionResult(
                    execution_id=record.id,
                    status="failed",
                    plan=plan,
                    step_results=results,
                    error=str(failure),
                    started_at=started_at,
                    completed_at=_now(),
                    duration_ms=int((time.monotonic() - start_time) * 1000),
                    category=run.category,
                )
                failure.execution = execution
                log.warning("execution_failed", step=step.step, action=step.action, error=failure.message)
                await self._finalize(execution)
                raise failure

        execution = ExecutionResult(
            execution_id=record.id,
            status="completed",
            plan=plan,
            step_results=results,
            output=results[-1].data,
            started_at=started_at,
            completed_at=_now(),
            duration_ms=int((time.monotonic() - start_time) * 1000),
            category=run.category,
        )
        log.info("execution_completed", steps=len(results), duration_ms=execution.duration_ms)
        await self._finalize(execution)
        return execution

    async def _execute_step(
        self,
        step: PlanStep,
        index: int,
        run: ExecutionContext,
        previous: tuple[StepResult, ...],
        total: int,
    ) -> tuple[StepResult, StepExecutionError | None]:
        """Execute a single step. Returns its result and, if it failed, the error to raise."""
        action = self.registry[step.action]
        context = build_step_context(
            run,
            step_number=step.step,
            step_index=index,
            total_steps=total,
            previous_results=previous,
        )
        params = resolve_refs(step.params, context.shared)
        start_time = time.monotonic()

        failure: StepExecutionError | None = None
        data: Any = None
        metadata: dict[str, Any] = {}
        try:
            outcome = coerce_outcome(
                await asyncio.wait_for(action.execute(params, context), timeout=self.step_timeout)
            )
        except asyncio.TimeoutError:
            failure = StepTimeoutError(
                f"Step timed out after {self.step_timeout:g}s",
                step_index=index,
                step_number=step.step,
                action=step.action,
            )
        except Exception as e:
            failure = StepExecutionError(
                str(e) or type(e).__name__,
                step_index=index,
                step_number=step.step,
                action=step.action,
            )
        else:
            data, metadata = outcome.data, outcome.metadata or {}
            if outcome.success is False:
                failure = StepExecutionError(
                    outcome.error or "Step reported failure",
                    step_index=index,
                    step_number=step.step,
                    action=step.action,
                )

        duration_ms = int((time.monotonic() - start_time) * 1000)
        success = failure is None
        result = StepResult(
            step_number=step.step,
            action=step.action,
            success=success,
            data=data,
            error=None if success else failure.message,
            description=step.description,
            metadata=metadata,
            duration_ms=duration_ms,
            completed_at=_now(),
            integration=integration_info(step.action, data, success),
        )
        logger.debug(
            "step_finished",
            execution_id=run.execution_id,
            step=step.step,
            action=step.action,
            success=success,
            duration_ms=duration_ms,
        )
        return result, failure

    async def _finalize(self, execution: ExecutionResult) -> None:
        """
        Close the execution record. Failures here never change the outcome.

        If the result bundle cannot be stored, the terminal status is still
        written on its own so the record does not stay running.
        """
        fields = {"status": execution.status, "execution_time": execution.duration_ms}
        try:
            updated = await self.store.update_execution(
                execution.execution_id,
                {**fields, "output": execution.to_dict()},
            )
        except Exception as e:
            self._persistence_warning(execution.execution_id, str(e) or type(e).__name__)
            try:
                await self.store.update_execution(execution.execution_id, fields)
            except Exception as retry_error:
                logger.warning(
                    "execution_status_update_failed",
                    execution_id=execution.execution_id,
                    error=str(retry_error),
                )
            return
        if updated is None:
            self._persistence_warning(execution.execution_id, "execution record not found")

    def _persistence_warning(self, execution_id: str, reason: str) -> None:
        message = f"Could not record final status for execution {execution_id}: {reason}"
        logger.warning("execution_update_failed", execution_id=execution_id, error=reason)
        warnings.warn(message, PersistenceWarning, stacklevel=3)

    async def get_execution_status(self, execution_id: str) -> dict[str, Any]:
        """
        Read back a recorded execution.

        Raises:
            NotFoundError: If no execution has this id
        """
        record = await self.store.get_execution(execution_id)
        if record is None:
            raise NotFoundError(f"Execution not found: {execution_id}")
        return {
            "id": record.id,
            "workflow_id": record.workflow_id,
            "status": record.status,
            "created_at": record.created_at,
            "updated_at": record.updated_at,
            "execution_time": record.execution_time,
            "output": record.output,
        }

    async def get_execution_history(self, limit: int = 10) -> list[dict[str, Any]]:
        """Most recent executions first."""
        records = await self.store.get_all_executions(limit=limit)
        history = []
        for record in records:
            prompt = (record.input or {}).get("prompt", "")
            history.append(
                {
                    "id": record.id,
                    "status": record.status,
                    "created_at": record.created_at,
                    "execution_time": record.execution_time,
                    "category": detect_category(prompt),
                    "prompt": prompt,
                }
            )
        return history


async def run_task(
    request: str,
    *,
    generator: PlanGenerator,
    executor: WorkflowExecutor,
    options: dict[str, Any] | None = None,
) -> ExecutionResult:
    """
    Plan and execute a natural language request.

    This is the main entry point for running a request end to end. The
    generated plan is persisted and the execution record points at it.

    Raises:
        ValidationError, GenerationError: From plan generation
        StepExecutionError: From execution
    """
    plan = await generator.generate(request, options)

    try:
        workflow = await executor.store.create_workflow(
            {"request": request, "plan": plan.to_dict(), "source": plan.source}
        )
    except StorageError as e:
        logger.warning("workflow_persist_failed", error=str(e))
        warnings.warn(f"Could not persist plan: {e}", PersistenceWarning, stacklevel=2)
    else:
        plan = plan.with_id(workflow.id)

    return await executor.execute_workflow(plan, request, options)
