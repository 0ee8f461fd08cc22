"""
The action registry.

A registry is built once from a fixed set of handlers and never changes
afterwards. The plan validator and the executor both consult it, so the
set of names it holds is the whole action vocabulary.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator

from .analyze import AnalyzeInput
from .base import Action
from .content import FormatOutput, GenerateContent, SendOutput
from .data import ExtractData, SummarizeContent, TransformData, ValidateData
from .integrations import CollectCredentials, ExecuteAction, ManageIntegrations, SetupIntegration


class ActionRegistry:
    """Closed, read-only mapping of action name -> handler."""

    __slots__ = ("_actions", "_names")

    def __init__(self, actions: Iterable[Action]):
        table: dict[str, Action] = {}
        for action in actions:
            if not action.name:
                raise ValueError(f"Action {action!r} has no name")
            if action.name in table:
                raise ValueError(f"Duplicate action name: {action.name}")
            table[action.name] = action
        self._actions = MappingProxyType(table)
        self._names = frozenset(table)

    @property
    def names(self) -> frozenset[str]:
        return self._names

    def validate_action(self, name: object) -> bool:
        """Membership test over the vocabulary."""
        return isinstance(name, str) and name in self._names

    def get(self, name: str) -> Action | None:
        return self._actions.get(name)

    def __getitem__(self, name: str) -> Action:
        return self._actions[name]

    def __contains__(self, name: object) -> bool:
        return self.validate_action(name)

    def __iter__(self) -> Iterator[str]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def describe(self) -> list[dict[str, str]]:
        return [{"name": a.name, "description": a.description} for a in self._actions.values()]


DEFAULT_REGISTRY = ActionRegistry(
    [
        AnalyzeInput(),
        GenerateContent(),
        FormatOutput(),
        SendOutput(),
        ExtractData(),
        SummarizeContent(),
        ValidateData(),
        TransformData(),
        SetupIntegration(),
        ExecuteAction(),
        CollectCredentials(),
        ManageIntegrations(),
    ]
)


def validate_action(name: object) -> bool:
    """Check a name against the default registry."""
    return DEFAULT_REGISTRY.validate_action(name)
