"""
Execution context threaded through a run.

ExecutionContext is fixed for the whole run. Each step gets its own
StepContext snapshot built from it and the results so far; handlers read
earlier outputs from the snapshot and cannot change what later steps see.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from .executor import StepResult


DEFAULT_USER_ID = "demo_user"

# (category, keywords); first match wins
CATEGORY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("social_media", ("social", "post")),
    ("email", ("email", "message")),
    ("document", ("document", "report")),
    ("code", ("code", "review")),
    ("resume", ("resume", "cv")),
    ("planning", ("calendar", "schedule")),
)


def detect_category(text: str) -> str:
    """Coarse request category, used for reporting only."""
    lowered = (text or "").lower()
    for category, keywords in CATEGORY_RULES:
        if any(k in lowered for k in keywords):
            return category
    return "general"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ExecutionContext:
    """Run-level context shared by every step."""

    execution_id: str
    user_input: str
    category: str
    user_id: str = DEFAULT_USER_ID
    session_id: str = ""
    options: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, execution_id: str, user_input: str, options: dict[str, Any] | None = None) -> "ExecutionContext":
        options = dict(options or {})
        return cls(
            execution_id=execution_id,
            user_input=user_input,
            category=detect_category(user_input),
            user_id=options.get("user_id") or DEFAULT_USER_ID,
            session_id=options.get("session_id") or f"session_{uuid.uuid4().hex[:12]}",
            options=MappingProxyType(options),
        )


@dataclass(frozen=True)
class StepContext:
    """What one handler call may see."""

    execution_id: str
    user_input: str
    category: str
    user_id: str
    session_id: str
    request_id: str
    timestamp: str
    step_number: int
    step_index: int
    total_steps: int
    previous_results: tuple[StepResult, ...] = ()
    shared: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def previous_data(self) -> Any:
        """Output of the step immediately before this one."""
        if not self.previous_results:
            return None
        return self.previous_results[-1].data

    @property
    def is_last_step(self) -> bool:
        return self.step_index == self.total_steps - 1

    def to_dict(self) -> dict:
        return {
            "execution_id": self.execution_id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "request_id": self.request_id,
            "timestamp": self.timestamp,
            "category": self.category,
            "step": self.step_number,
            "total_steps": self.total_steps,
            "previous_results": len(self.previous_results),
        }


def build_step_context(
    run: ExecutionContext,
    *,
    step_number: int,
    step_index: int,
    total_steps: int,
    previous_results: tuple[StepResult, ...],
) -> StepContext:
    shared = {f"step_{r.step_number}": r.data for r in previous_results}
    return StepContext(
        execution_id=run.execution_id,
        user_input=run.user_input,
        category=run.category,
        user_id=run.user_id,
        session_id=run.session_id,
        request_id=f"req_{uuid.uuid4().hex[:12]}",
        timestamp=_now(),
        step_number=step_number,
        step_index=step_index,
        total_steps=total_steps,
        previous_results=previous_results,
        shared=MappingProxyType(shared),
    )
