# gistflow/core/events.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Any, Dict, Optional

INIT_EVENT = "gistflow.init"


class Event:
    """
    Represents a signal or trigger within the state machine. Events cause the
    machine to evaluate transitions and possibly change states.
    """

    def __init__(self, name: str, data: Optional[Dict[str, Any]] = None, origin: Any = None) -> None:
        """
        Create an event identified by a name, with an optional payload.

        :param name: A string identifying this event.
        :param data: Payload carried by the event (code, document, error, ...).
        :param origin: The invocation or timer handle that produced this event, if any.
        """
        self._name = name
        self._data: Dict[str, Any] = dict(data or {})
        self._origin = origin

    @property
    def name(self) -> str:
        """The name of the event."""
        return self._name

    @property
    def data(self) -> Dict[str, Any]:
        """Payload dictionary of the event."""
        return self._data

    @property
    def origin(self) -> Any:
        """Handle of the invocation or timer that produced the event, or None for external events."""
        return self._origin

    def get(self, key: str, default: Any = None) -> Any:
        """Shortcut for ``event.data.get(key, default)``."""
        return self._data.get(key, default)

    def __repr__(self) -> str:
        return f"Event({self._name!r}, {self._data!r})"


class TimeoutEvent(Event):
    """
    A special event that fires after a delay elapses in the state that scheduled it.
    Used for ``after`` transitions such as the self-clearing "saved" indicator.
    """

    def __init__(self, name: str, delay: float, origin: Any = None) -> None:
        """
        Initialize a timeout event with the delay that produced it.

        :param name: Event name.
        :param delay: Delay in machine time units.
        :param origin: The timer handle that fired.
        """
        super().__init__(name, origin=origin)
        self._delay = delay

    @property
    def delay(self) -> float:
        """The delay, in machine time units, after which this event was fired."""
        return self._delay


def done_invoke_name(invoke_id: str) -> str:
    return f"done.invoke.{invoke_id}"


def error_invoke_name(invoke_id: str) -> str:
    return f"error.platform.{invoke_id}"


def after_event_name(delay: float, state_id: str) -> str:
    return f"after.{delay:g}.{state_id}"
