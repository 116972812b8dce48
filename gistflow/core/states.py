# gistflow/core/states.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from gistflow.core.actions import Action
    from gistflow.core.transitions import InvokeSource, Transition


class StateKind(Enum):
    """Kind of a state node."""

    ATOMIC = "atomic"
    COMPOUND = "compound"
    PARALLEL = "parallel"


@dataclass(eq=False)
class InvokeSpec:
    """An effect to run while the owning state is active."""

    id: str
    src_name: str
    src: "InvokeSource"


@dataclass(eq=False)
class DelaySpec:
    """A delayed transition list, fired ``delay`` time units after the state is entered."""

    delay: float
    event_name: str
    transitions: List["Transition"] = field(default_factory=list)


@dataclass(eq=False)
class StateNode:
    """
    A node in the static machine definition. Nodes are built once by
    MachineDefinition and never mutated afterwards.

    States compare by identity, so two nodes with the same key in different
    regions are distinct.
    """

    key: str
    kind: StateKind
    parent: Optional["StateNode"] = None
    children: Dict[str, "StateNode"] = field(default_factory=dict)
    initial_key: Optional[str] = None
    on: Dict[str, List["Transition"]] = field(default_factory=dict)
    always: List["Transition"] = field(default_factory=list)
    after: List[DelaySpec] = field(default_factory=list)
    invoke: Optional[InvokeSpec] = None
    entry: List["Action"] = field(default_factory=list)
    exit: List["Action"] = field(default_factory=list)
    order: int = 0

    def __hash__(self) -> int:
        return id(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StateNode):
            return NotImplemented
        return self is other

    def __repr__(self) -> str:
        return f"StateNode({self.id!r}, {self.kind.value})"

    @property
    def path(self) -> Tuple[str, ...]:
        """Keys from the first region down to this node. The root has an empty path."""
        keys = []
        node: Optional[StateNode] = self
        while node is not None and node.parent is not None:
            keys.append(node.key)
            node = node.parent
        return tuple(reversed(keys))

    @property
    def id(self) -> str:
        """Dotted path id, e.g. ``auth.authorized.gist``. The root uses its own key."""
        return ".".join(self.path) if self.parent is not None else self.key

    @property
    def is_atomic(self) -> bool:
        return self.kind is StateKind.ATOMIC

    @property
    def initial(self) -> Optional["StateNode"]:
        """Initial child of a compound state."""
        if self.initial_key is None:
            return None
        return self.children.get(self.initial_key)

    def transitions_for(self, event_name: str) -> List["Transition"]:
        """Candidates declared on this node for the event, in declaration order."""
        return self.on.get(event_name, [])

    def proper_ancestors(self, upto: Optional["StateNode"] = None) -> List["StateNode"]:
        """
        Ancestors from the parent upwards, stopping before ``upto`` (exclusive).

        :param upto: Ancestor at which to stop, or None to go to the root.
        """
        ancestors = []
        node = self.parent
        while node is not None and node is not upto:
            ancestors.append(node)
            node = node.parent
        return ancestors

    def is_descendant_of(self, other: "StateNode") -> bool:
        """True if ``other`` is a proper ancestor of this node."""
        node = self.parent
        while node is not None:
            if node is other:
                return True
            node = node.parent
        return False

    def descendants(self) -> List["StateNode"]:
        """All descendants in document order."""
        result = []
        for child in self.children.values():
            result.append(child)
            result.extend(child.descendants())
        return result
