# gistflow/runtime/interpreter.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
The interpreter runs a MachineDefinition. It is the single serialization
point of the system: every event, whether sent by a caller, produced by a
finished invocation, fired by a timer or raised by an action, is applied one
at a time in the order it was queued.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from typing import Any, Callable, Deque, FrozenSet, Iterable, List, Optional, Set, Union

from gistflow.core.actions import Action, _ActionExecutor
from gistflow.core.definition import MachineDefinition
from gistflow.core.errors import GistFlowError, GuardCycleError, TransitionError
from gistflow.core.events import INIT_EVENT, Event
from gistflow.core.states import StateNode
from gistflow.core.status import MachineStatus
from gistflow.core.transitions import Transition
from gistflow.runtime.event_queue import EventQueue
from gistflow.runtime.invoker import InvocationHandle, Invoker
from gistflow.runtime.snapshot import Snapshot
from gistflow.runtime.timers import Timer, TimerScheduler

logger = logging.getLogger(__name__)

STOP_EVENT = "gistflow.stop"

Observer = Callable[[Snapshot], None]


class Interpreter:
    """
    Executes a machine definition against a context and a set of injected
    services.

    Events are processed strictly in submission order and never while
    another event is mid-processing. The interpreter itself never blocks:
    suspension only happens inside invoked operations and timers, whose
    outcomes come back as ordinary queued events.
    """

    def __init__(
        self,
        definition: MachineDefinition,
        context: Any,
        services: Any = None,
        *,
        time_unit: float = 0.001,
        max_microsteps: int = 100,
    ) -> None:
        """
        :param definition: The machine to run.
        :param context: Initial context; replaced (never mutated) by assign actions.
        :param services: Collaborators handed to effect actions and invocation sources.
        :param time_unit: Seconds per delay unit used in ``after`` declarations.
        :param max_microsteps: Bound on chained eventless/raised transitions per event.
        """
        self._definition = definition
        self._initial_context = context
        self._context = context
        self._services = services
        self._time_unit = time_unit
        self._max_microsteps = max_microsteps

        self._queue = EventQueue()
        self._internal: Deque[Event] = deque()
        self._configuration: Set[StateNode] = set()
        self._observers: List[Observer] = []
        self._executor = _ActionExecutor(services, self._internal.append)
        self._status = MachineStatus.NOT_STARTED
        self._processing = False

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_thread: Optional[int] = None
        self._invoker: Optional[Invoker] = None
        self._timers: Optional[TimerScheduler] = None
        self._snapshot = Snapshot.capture(definition.root, (), context)

    @property
    def definition(self) -> MachineDefinition:
        return self._definition

    @property
    def status(self) -> MachineStatus:
        return self._status

    @property
    def context(self) -> Any:
        return self._context

    @property
    def configuration(self) -> FrozenSet[StateNode]:
        return frozenset(self._configuration)

    @property
    def snapshot(self) -> Snapshot:
        """The last published snapshot."""
        return self._snapshot

    def get_snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def live_invocations(self) -> List[InvocationHandle]:
        return self._invoker.live_handles if self._invoker else []

    @property
    def pending_timers(self) -> List[Timer]:
        return self._timers.pending if self._timers else []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> Snapshot:
        """
        Enter the initial configuration and settle eventless transitions.
        Must be called from inside a running event loop; invocations and
        timers run on that loop.
        """
        if self._status is MachineStatus.RUNNING:
            return self._snapshot

        self._loop = asyncio.get_running_loop()
        self._loop_thread = threading.get_ident()
        self._invoker = Invoker(self._send_from_loop, self._loop)
        self._timers = TimerScheduler(self._send_from_loop, self._loop, self._time_unit)
        self._context = self._initial_context
        self._configuration.clear()
        self._status = MachineStatus.RUNNING
        logger.info("Starting machine '%s'", self._definition.root.key)

        init = Event(INIT_EVENT)
        errors: List[TransitionError] = []
        self._processing = True
        try:
            self._enter_states(self._definition.initial_entry_set(), init, errors)
            if errors:
                raise errors[0]
            self._settle(init)
        finally:
            self._publish(init, changed=True)
            self._processing = False
        self._process_queue()
        return self._snapshot

    def stop(self) -> None:
        """
        Cancel every invocation and timer, exit all active states deepest
        first and stop accepting events.
        """
        if self._status is not MachineStatus.RUNNING:
            return

        self._status = MachineStatus.STOPPING
        self._timers.cancel_all()
        self._invoker.cancel_all()
        stop = Event(STOP_EVENT)
        errors: List[TransitionError] = []
        for state in sorted(self._configuration, key=lambda s: s.order, reverse=True):
            self._run_actions(state.exit, stop, errors)
            self._configuration.discard(state)
        self._queue.clear()
        self._internal.clear()
        self._status = MachineStatus.STOPPED
        logger.info("Stopped machine '%s'", self._definition.root.key)
        self._publish(stop, changed=True)
        if errors:
            raise errors[0]

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def send(self, event: Union[Event, str], **data: Any) -> None:
        """
        Queue an event. Fire-and-forget: processing happens immediately when
        called on the loop thread outside of processing, otherwise as soon as
        the current event is done. Safe to call from other threads.

        :param event: An Event, or an event name combined with payload keywords.
        """
        if isinstance(event, str):
            event = Event(event, data)
        elif data:
            raise TypeError("Payload keywords can only be combined with an event name")

        if self._status is not MachineStatus.RUNNING:
            logger.warning("Machine '%s' is not running; dropping %r", self._definition.root.key, event)
            return

        self._queue.enqueue(event)
        if threading.get_ident() == self._loop_thread:
            self._process_queue()
        else:
            self._loop.call_soon_threadsafe(self._drain_from_loop)

    def _send_from_loop(self, event: Event) -> None:
        # Invocation and timer callbacks have no caller to report to.
        try:
            self.send(event)
        except GistFlowError:
            logger.exception("Processing %r failed", event)

    def _drain_from_loop(self) -> None:
        try:
            self._process_queue()
        except GistFlowError:
            logger.exception("Processing events queued from another thread failed")

    def _process_queue(self) -> None:
        if self._processing:
            return
        self._processing = True
        try:
            while self._status is MachineStatus.RUNNING:
                event = self._queue.dequeue()
                if event is None:
                    break
                self._macrostep(event)
        finally:
            self._processing = False

    def _macrostep(self, event: Event) -> None:
        if not self._is_current(event):
            logger.debug("Discarding stale %r", event)
            return

        context_before = self._context
        configuration_before = frozenset(self._configuration)

        try:
            transitions = self._definition.select_transitions(self._configuration, self._context, event)
            if transitions:
                self._microstep(transitions, event)
            else:
                logger.debug("No transition enabled for %r", event)
            self._settle(event)
        finally:
            changed = self._context is not context_before or self._configuration != configuration_before
            self._publish(event, changed)

    def _is_current(self, event: Event) -> bool:
        origin = event.origin
        if isinstance(origin, InvocationHandle):
            return self._invoker.is_live(origin)
        if isinstance(origin, Timer):
            return self._timers.is_live(origin)
        return True

    def _settle(self, event: Event) -> None:
        """
        Take eventless transitions until none is enabled, then process events
        raised by actions, repeating until both are exhausted.
        """
        steps = 0
        while True:
            transitions = self._definition.select_transitions(
                self._configuration, self._context, event, eventless=True
            )
            if not transitions:
                if not self._internal:
                    return
                event = self._internal.popleft()
                transitions = self._definition.select_transitions(self._configuration, self._context, event)
                if not transitions:
                    logger.debug("No transition enabled for raised %r", event)
                    continue

            steps += 1
            if steps > self._max_microsteps:
                raise GuardCycleError(
                    f"More than {self._max_microsteps} chained transitions while processing {event!r}; "
                    f"active states: {sorted(s.id for s in self._configuration)}"
                )
            self._microstep(transitions, event)

    def _microstep(self, transitions: List[Transition], event: Event) -> None:
        """
        Exit, act and enter. A failing action does not stop the step: the
        configuration is always completed and the first failure is raised
        afterwards.
        """
        errors: List[TransitionError] = []
        for state in self._definition.compute_exit_set(transitions, self._configuration):
            self._timers.cancel_owned(state)
            self._invoker.cancel_owned(state)
            self._run_actions(state.exit, event, errors)
            self._configuration.discard(state)
            logger.debug("Exited '%s'", state.id)

        for transition in transitions:
            logger.debug("Taking %r on '%s'", transition, event.name)
            self._run_actions(transition.actions, event, errors)

        self._enter_states(self._definition.compute_entry_set(transitions), event, errors)
        if errors:
            raise errors[0]

    def _run_actions(self, actions: List[Action], event: Event, errors: List[TransitionError]) -> None:
        try:
            self._context = self._executor.execute(actions, self._context, event)
        except TransitionError as e:
            errors.append(e)

    def _enter_states(self, states: Iterable[StateNode], event: Event, errors: List[TransitionError]) -> None:
        for state in states:
            if state in self._configuration:
                continue
            self._configuration.add(state)
            logger.debug("Entered '%s'", state.id)
            self._run_actions(state.entry, event, errors)
            for delayed in state.after:
                self._timers.schedule(state, delayed.delay, delayed.event_name)
            if state.invoke is not None:
                self._invoker.start(state, state.invoke, self._context, event, self._services)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register an observer called with every published snapshot.

        :return: A function removing the observer.
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _publish(self, event: Event, changed: bool) -> None:
        self._snapshot = Snapshot.capture(
            self._definition.root, self._configuration, self._context, event=event, changed=changed
        )
        for observer in list(self._observers):
            try:
                observer(self._snapshot)
            except Exception:
                logger.exception("Observer %r failed on %r", observer, event)

    async def wait_for(self, predicate: Callable[[Snapshot], bool], timeout: Optional[float] = None) -> Snapshot:
        """
        Wait until a published snapshot satisfies ``predicate``.

        :param predicate: Condition over a snapshot; checked against the current one first.
        :param timeout: Seconds to wait, None to wait forever.
        :raises asyncio.TimeoutError: If the condition is not met in time.
        """
        if predicate(self._snapshot):
            return self._snapshot

        future = asyncio.get_running_loop().create_future()

        def observer(snapshot: Snapshot) -> None:
            if not future.done() and predicate(snapshot):
                future.set_result(snapshot)

        unsubscribe = self.subscribe(observer)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            unsubscribe()
