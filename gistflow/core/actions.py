# gistflow/core/actions.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from gistflow.core.errors import TransitionError, ValidationError
from gistflow.core.events import Event

logger = logging.getLogger(__name__)


class ActionKind(Enum):
    """How the interpreter runs an action."""

    ASSIGN = "assign"
    RAISE = "raise"
    EFFECT = "effect"


@dataclass(frozen=True)
class Action:
    """
    A named unit of work run during a transition.

    - ``ASSIGN``: ``fn(context, event) -> context`` returns the new context.
    - ``RAISE``: ``fn(context, event) -> Event`` produces an internal event.
    - ``EFFECT``: ``fn(context, event, services) -> None`` performs a side effect.
    """

    kind: ActionKind
    fn: Callable[..., Any]
    name: str = ""


def assign(fn: Callable[[Any, Event], Any]) -> Action:
    """Wrap a context-updating function."""
    return Action(ActionKind.ASSIGN, fn)


def raise_event(fn: Callable[[Any, Event], Event]) -> Action:
    """Wrap a function producing an event for the machine's own internal queue."""
    return Action(ActionKind.RAISE, fn)


def effect(fn: Callable[[Any, Event, Any], None]) -> Action:
    """Wrap a fire-and-forget side effect that receives the injected services."""
    return Action(ActionKind.EFFECT, fn)


class ActionTable(Mapping[str, Action]):
    """
    Machine-wide table of named actions referenced by ``actions``, ``entry``
    and ``exit`` keys in the machine config.
    """

    def __init__(self, actions: Optional[Mapping[str, Action]] = None) -> None:
        self._actions: Dict[str, Action] = {}
        for name, action in (actions or {}).items():
            self.add(name, action)

    def add(self, name: str, action: Action) -> None:
        """
        Register an action under a name.

        :raises ValidationError: If the name is taken or the value is not an Action.
        """
        if not isinstance(action, Action):
            raise ValidationError(f"Action '{name}' must be built with assign(), raise_event() or effect()")
        if name in self._actions:
            raise ValidationError(f"Action '{name}' is already registered")
        self._actions[name] = Action(action.kind, action.fn, name)

    def __getitem__(self, name: str) -> Action:
        return self._actions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)


class _ActionExecutor:
    """
    Internal helper to execute a list of actions in declaration order,
    threading the context through assign actions.
    """

    def __init__(self, services: Any, raise_fn: Callable[[Event], None]) -> None:
        """
        :param services: Object handed to effect actions.
        :param raise_fn: Callback receiving events produced by raise actions.
        """
        self._services = services
        self._raise = raise_fn

    def execute(self, actions: List[Action], context: Any, event: Event) -> Any:
        """
        Run the given actions and return the resulting context. A failing
        effect is logged and the remaining actions still run.

        :param actions: Actions in declaration order.
        :param context: Context before the first action.
        :param event: The triggering event.
        :raises TransitionError: If an assign or raise action fails.
        """
        for action in actions:
            if action.kind is ActionKind.EFFECT:
                try:
                    action.fn(context, event, self._services)
                except Exception:
                    logger.exception("Effect '%s' failed on %r", action.name, event)
                continue
            try:
                if action.kind is ActionKind.ASSIGN:
                    updated = action.fn(context, event)
                    if updated is None:
                        raise TypeError("assign action returned None instead of a context")
                    context = updated
                else:
                    raised = action.fn(context, event)
                    if raised is not None:
                        self._raise(raised)
            except Exception as e:
                raise TransitionError(f"Action '{action.name}' failed: {e}") from e
        return context
