"""Base types shared by every action handler."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from autoflow.workflow.context import StepContext


@dataclass
class ActionResult:
    """Outcome of one handler call."""

    success: bool
    data: Any = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "metadata": self.metadata,
        }


class ActionFailure(Exception):
    """
    Business failure inside a handler.

    Raised from Action.run and turned into ActionResult(success=False) by
    Action.execute. Any other exception escapes execute unchanged.
    """

    def __init__(self, message: str, data: Any = None):
        super().__init__(message)
        self.data = data


class Action:
    """
    A named capability the executor can dispatch a plan step to.

    Subclasses set ``name`` and ``description`` and implement ``run``, which
    returns the result payload and optional metadata.
    """

    name: str = ""
    description: str = ""

    async def run(self, params: dict[str, Any], context: StepContext) -> tuple[Any, dict[str, Any]]:
        raise NotImplementedError

    async def execute(self, params: dict[str, Any], context: StepContext) -> ActionResult:
        try:
            data, metadata = await self.run(params, context)
        except ActionFailure as e:
            return ActionResult(success=False, data=e.data, error=str(e))
        return ActionResult(success=True, data=data, metadata=metadata)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"
