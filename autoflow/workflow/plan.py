"""
Plan data model and schema validation.

A plan is the ordered list of steps produced for one request. The wire
form, shared by the reasoning backend, the cache and the store, is:

    {
      "workflow": [
        {"step": 1, "action": "analyze_input", "params": {...}, "description": "..."}
      ],
      "estimated_time": 15,
      "complexity": "medium"
    }
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, replace
from typing import Any, Iterable


MAX_STEPS = 10
COMPLEXITY_LEVELS = ("low", "medium", "high")

_LOW_MARKERS = ("low", "simple", "easy")
_HIGH_MARKERS = ("high", "complex", "difficult")


class PlanValidationError(ValueError):
    """A plan payload does not satisfy the wire schema."""

    pass


@dataclass(frozen=True)
class PlanStep:
    """A single step in a plan."""

    step: int
    action: str
    params: dict[str, Any]
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "action": self.action,
            "params": copy.deepcopy(self.params),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlanStep":
        return cls(
            step=data["step"],
            action=data["action"],
            params=copy.deepcopy(data.get("params", {})),
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class Plan:
    """A complete, validated plan."""

    steps: tuple[PlanStep, ...]
    estimated_time: float | None = None
    complexity: str = "medium"
    source: str = "llm"  # "llm", "cache", "fallback"
    id: str | None = None

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def actions(self) -> list[str]:
        return [s.action for s in self.steps]

    def with_source(self, source: str) -> "Plan":
        return replace(self, source=source)

    def with_id(self, plan_id: str) -> "Plan":
        return replace(self, id=plan_id)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "workflow": [s.to_dict() for s in self.steps],
            "complexity": self.complexity,
        }
        if self.estimated_time is not None:
            data["estimated_time"] = self.estimated_time
        return data

    @classmethod
    def from_dict(cls, data: dict, *, source: str = "llm", plan_id: str | None = None) -> "Plan":
        """Build a plan from wire form without validating it."""
        return cls(
            steps=tuple(PlanStep.from_dict(s) for s in data.get("workflow", [])),
            estimated_time=data.get("estimated_time"),
            complexity=data.get("complexity", "medium"),
            source=source,
            id=plan_id or data.get("id"),
        )


def normalize_complexity(value: Any) -> str:
    """Map free-text complexity onto low / medium / high."""
    if not value or not isinstance(value, str):
        return "medium"
    lowered = value.lower()
    if any(m in lowered for m in _LOW_MARKERS):
        return "low"
    if any(m in lowered for m in _HIGH_MARKERS):
        return "high"
    return "medium"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _step_number(value: Any) -> int | None:
    if not _is_number(value):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    return value if value > 0 else None


def validate_plan(
    data: Any,
    vocabulary: Iterable[str],
    *,
    max_steps: int = MAX_STEPS,
    source: str = "llm",
) -> Plan:
    """
    Validate a wire-form payload and return the canonical Plan.

    Args:
        data: Parsed JSON payload
        vocabulary: Allowed action names
        max_steps: Upper bound on the number of steps
        source: Recorded on the returned plan

    Returns:
        Plan with complexity normalized

    Raises:
        PlanValidationError: On the first violation found
    """
    allowed = frozenset(vocabulary)

    if not isinstance(data, dict):
        raise PlanValidationError("Workflow must be an object")

    entries = data.get("workflow")
    if not isinstance(entries, list):
        raise PlanValidationError('Workflow must contain a "workflow" array')
    if not entries:
        raise PlanValidationError("Workflow cannot be empty")
    if len(entries) > max_steps:
        raise PlanValidationError(f"Workflow cannot have more than {max_steps} steps")

    steps: list[PlanStep] = []
    previous = 0
    for index, entry in enumerate(entries, 1):
        if not isinstance(entry, dict):
            raise PlanValidationError(f"Step {index}: must be an object")

        number = _step_number(entry.get("step"))
        if number is None:
            raise PlanValidationError(f"Step {index}: Missing or invalid step number")
        if number <= previous:
            raise PlanValidationError(f"Step {index}: step numbers must be strictly increasing")
        previous = number

        action = entry.get("action")
        if not isinstance(action, str) or action not in allowed:
            raise PlanValidationError(f'Step {index}: Invalid action "{action}"')

        params = entry.get("params")
        if not isinstance(params, dict):
            raise PlanValidationError(f"Step {index}: Missing or invalid params")

        description = entry.get("description")
        if not isinstance(description, str) or not description.strip():
            raise PlanValidationError(f"Step {index}: Missing or invalid description")

        steps.append(
            PlanStep(step=number, action=action, params=copy.deepcopy(params), description=description)
        )

    estimated_time = data.get("estimated_time")
    if estimated_time is not None and (not _is_number(estimated_time) or estimated_time <= 0):
        raise PlanValidationError("Estimated time must be a positive number")

    return Plan(
        steps=tuple(steps),
        estimated_time=estimated_time,
        complexity=normalize_complexity(data.get("complexity")),
        source=source,
    )
