# gistflow/core/transitions.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional, Tuple

from gistflow.core.errors import TransitionError
from gistflow.core.events import Event

if TYPE_CHECKING:
    from gistflow.core.actions import Action
    from gistflow.core.states import StateNode

Guard = Callable[[Any, Event], bool]
InvokeSource = Callable[[Any, Event, Any], Awaitable[Any]]


class Transition:
    """
    One candidate of an ordered transition list. Candidates for the same
    event are tried in declaration order and the first enabled one wins.

    A candidate with no target is a targetless transition: its actions run
    but the configuration does not change.
    """

    def __init__(
        self,
        source: "StateNode",
        event: Optional[str],
        target_specs: Tuple[str, ...] = (),
        guard_name: Optional[str] = None,
        guard: Optional[Guard] = None,
        actions: Optional[List["Action"]] = None,
    ) -> None:
        """
        :param source: The state declaring this candidate.
        :param event: Event name, or None for an eventless candidate.
        :param target_specs: Raw target references as written in the config.
        :param guard_name: Name of the guard in the machine's guard table.
        :param guard: Resolved guard callable.
        :param actions: Resolved actions, run in order when taken.
        """
        self._source = source
        self._event = event
        self._target_specs = tuple(target_specs)
        self._guard_name = guard_name
        self._guard = guard
        self._actions = actions if actions else []
        self._targets: List["StateNode"] = []

    @property
    def source(self) -> "StateNode":
        """The state that declares this transition."""
        return self._source

    @property
    def event(self) -> Optional[str]:
        """The event name, None for eventless transitions."""
        return self._event

    @property
    def target_specs(self) -> Tuple[str, ...]:
        return self._target_specs

    @property
    def targets(self) -> List["StateNode"]:
        """Resolved target states, empty for targetless transitions."""
        return self._targets

    @property
    def guard_name(self) -> Optional[str]:
        return self._guard_name

    @property
    def actions(self) -> List["Action"]:
        """The actions to execute when this transition occurs."""
        return self._actions

    @property
    def is_targetless(self) -> bool:
        return not self._target_specs

    @property
    def is_internal(self) -> bool:
        """
        Internal transitions target descendants of their source with ``.child``
        syntax; the source itself is not exited.
        """
        return bool(self._target_specs) and all(spec.startswith(".") for spec in self._target_specs)

    def resolve(self, targets: List["StateNode"]) -> None:
        """Bind resolved targets. Called once by MachineDefinition."""
        self._targets = list(targets)

    def evaluate_guard(self, context: Any, event: Event) -> bool:
        """
        Evaluate the attached guard to determine if the transition can occur.

        :param context: The current context.
        :param event: The triggering event.
        :return: True if there is no guard or the guard passes.
        :raises TransitionError: If the guard raises.
        """
        return _GuardEvaluator().evaluate(self, context, event)

    def __repr__(self) -> str:
        targets = ",".join(self._target_specs) or "-"
        return f"Transition({self._source.id!r} --{self._event or 'always'}--> {targets})"


class _GuardEvaluator:
    """
    Internal helper to evaluate a transition's guard against context and event.
    """

    def evaluate(self, transition: Transition, context: Any, event: Event) -> bool:
        if transition._guard is None:
            return True
        try:
            return bool(transition._guard(context, event))
        except Exception as e:
            raise TransitionError(f"Guard '{transition.guard_name}' failed on {transition!r}: {e}") from e


def select_first(candidates: List[Transition], context: Any, event: Event) -> Optional[Transition]:
    """
    Return the first enabled candidate of an ordered list, or None.

    :param candidates: Candidates in declaration order.
    :param context: The current context.
    :param event: The triggering event.
    """
    for candidate in candidates:
        if candidate.evaluate_guard(context, event):
            return candidate
    return None
