# gistflow/runtime/timers.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from gistflow.core.events import Event, TimeoutEvent
from gistflow.core.states import StateNode

logger = logging.getLogger(__name__)


class Timer:
    """
    Represents a scheduled delayed transition. Owned by the state that
    scheduled it and cancelled when that state is exited.
    """

    def __init__(self, owner: StateNode, delay: float, event_name: str) -> None:
        """
        :param owner: State that scheduled the timer.
        :param delay: Delay in machine time units.
        :param event_name: Name of the TimeoutEvent to fire.
        """
        self._owner = owner
        self._delay = delay
        self._event_name = event_name
        self._handle: Optional[asyncio.TimerHandle] = None
        self._cancelled = False
        self._fired = False

    @property
    def owner(self) -> StateNode:
        return self._owner

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def event_name(self) -> str:
        return self._event_name

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()

    def __repr__(self) -> str:
        return f"Timer({self._event_name!r})"


class TimerScheduler:
    """
    Schedules TimeoutEvents for ``after`` transitions on the event loop.
    Each timer fires at most once and never after its owner was exited.
    """

    def __init__(
        self,
        dispatch: Callable[[Event], None],
        loop: asyncio.AbstractEventLoop,
        time_unit: float = 0.001,
    ) -> None:
        """
        :param dispatch: Callback that enqueues the fired event on the interpreter.
        :param loop: Event loop used for scheduling.
        :param time_unit: Seconds per machine time unit.
        """
        self._dispatch = dispatch
        self._loop = loop
        self._time_unit = time_unit
        self._owned: Dict[StateNode, List[Timer]] = {}

    def schedule(self, owner: StateNode, delay: float, event_name: str) -> Timer:
        """
        Start a timer owned by ``owner``.

        :param owner: The state being entered.
        :param delay: Delay in machine time units.
        :param event_name: Name of the event to fire when it expires.
        """
        seconds = delay * self._time_unit
        timer = Timer(owner, delay, event_name)
        timer._handle = self._loop.call_later(seconds, self._fire, timer)
        self._owned.setdefault(owner, []).append(timer)
        logger.debug("Scheduled %r in %.3fs for '%s'", timer, seconds, owner.id)
        return timer

    def _fire(self, timer: Timer) -> None:
        if not self.is_live(timer) or timer.fired:
            return
        timer._fired = True
        self._dispatch(TimeoutEvent(timer.event_name, timer.delay, origin=timer))

    def is_live(self, timer: Timer) -> bool:
        """True while the timer was not cancelled and its owner is still active."""
        return not timer.cancelled and timer in self._owned.get(timer.owner, ())

    def cancel_owned(self, owner: StateNode) -> None:
        """Cancel every timer owned by an exited state."""
        for timer in self._owned.pop(owner, []):
            timer.cancel()
            logger.debug("Cancelled %r", timer)

    def cancel_all(self) -> None:
        for owner in list(self._owned):
            self.cancel_owned(owner)

    @property
    def pending(self) -> List[Timer]:
        """Timers that have neither fired nor been cancelled."""
        return [t for timers in self._owned.values() for t in timers if not t.fired and not t.cancelled]
