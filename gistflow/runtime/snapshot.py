# gistflow/runtime/snapshot.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple, Union

from gistflow.core.events import Event
from gistflow.core.states import StateKind, StateNode

StateValue = Union[str, Dict[str, Any]]


@dataclass(frozen=True)
class Snapshot:
    """
    Published state of an interpreter after an event was fully processed.

    ``configuration`` holds the ids of every active state, ``leaves`` only the
    active atomic ones. ``value`` is the nested form, e.g.
    ``{"auth": "unauthorized", "document": "idle"}``.
    """

    configuration: FrozenSet[str]
    leaves: Tuple[str, ...]
    value: StateValue
    context: Any
    event: Optional[Event] = None
    changed: bool = False

    @classmethod
    def capture(
        cls,
        root: StateNode,
        configuration: Iterable[StateNode],
        context: Any,
        event: Optional[Event] = None,
        changed: bool = False,
    ) -> "Snapshot":
        active = set(configuration)
        ids = frozenset(s.id for s in active if s is not root)
        leaves = tuple(s.id for s in sorted(active, key=lambda s: s.order) if s.is_atomic)
        return cls(
            configuration=ids,
            leaves=leaves,
            value=_state_value(root, active),
            context=context,
            event=event,
            changed=changed,
        )

    def matches(self, state_id: str) -> bool:
        """True if the state with the given dotted id is active, e.g. ``auth.authorized.gist.idle``."""
        return state_id in self.configuration

    def active_leaves(self, region: str) -> Tuple[str, ...]:
        """Active atomic states at or below ``region``."""
        prefix = region + "."
        return tuple(leaf for leaf in self.leaves if leaf == region or leaf.startswith(prefix))


def _state_value(node: StateNode, active: set) -> StateValue:
    if node.kind is StateKind.ATOMIC:
        return {}
    if node.kind is StateKind.PARALLEL:
        return {key: _state_value(child, active) for key, child in node.children.items() if child in active}
    for key, child in node.children.items():
        if child in active:
            return key if child.is_atomic else {key: _state_value(child, active)}
    return {}
