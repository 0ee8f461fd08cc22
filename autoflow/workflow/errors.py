"""Workflow error taxonomy."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .executor import ExecutionResult


class WorkflowError(Exception):
    """Base exception for plan generation and execution."""

    pass


class ValidationError(WorkflowError):
    """The request itself is unusable (missing, blank or too long)."""

    pass


class GenerationError(WorkflowError):
    """
    The reasoning backend could not produce a plan.

    ``kind`` is one of "auth", "quota", "parse" or "other".
    """

    def __init__(self, message: str, *, kind: str = "other"):
        super().__init__(message)
        self.kind = kind


class StructuralError(WorkflowError):
    """A plan handed to the executor is malformed."""

    pass


class StepExecutionError(WorkflowError):
    """
    A step failed and the run was aborted.

    Carries the zero-based ``step_index``, the plan's ``step_number``, the
    ``action`` name and, once the executor has closed the run, the failed
    ``execution`` with every StepResult recorded up to and including this one.
    """

    def __init__(
        self,
        message: str,
        *,
        step_index: int,
        step_number: int,
        action: str,
        execution: ExecutionResult | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.step_index = step_index
        self.step_number = step_number
        self.action = action
        self.execution = execution

    def __str__(self) -> str:
        return f"Workflow failed at step {self.step_number} ({self.action}): {self.message}"


class StepTimeoutError(StepExecutionError):
    """A step handler did not settle within the step timeout."""

    pass


class PersistenceWarning(UserWarning):
    """A store write failed; the execution outcome stands regardless."""

    pass
