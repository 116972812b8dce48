# gistflow/runtime/invoker.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable, Dict, List, Optional

from gistflow.core.events import Event, done_invoke_name, error_invoke_name
from gistflow.core.states import InvokeSpec, StateNode

logger = logging.getLogger(__name__)


class InvocationHandle:
    """
    Live reference to an effect started on entry to a state. Owned by that
    state instance; dead as soon as the state is exited.
    """

    def __init__(self, invoke_id: str, owner: StateNode) -> None:
        self._id = invoke_id
        self._owner = owner
        self._task: Optional[asyncio.Future] = None
        self._cancelled = False
        self._settled = False

    @property
    def id(self) -> str:
        return self._id

    @property
    def owner(self) -> StateNode:
        return self._owner

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def settled(self) -> bool:
        """True once the operation finished and its completion event was produced."""
        return self._settled

    def cancel(self) -> None:
        """Mark the handle dead and cancel the running task, if any."""
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def __repr__(self) -> str:
        return f"InvocationHandle({self._id!r}, owner={self._owner.id!r})"


class Invoker:
    """
    Starts at most one asynchronous operation per active state and turns its
    outcome into ``done.invoke.<id>`` / ``error.platform.<id>`` events.

    Results of operations whose owner has been exited are discarded here,
    and the interpreter checks the event's origin again before using it.
    """

    def __init__(self, dispatch: Callable[[Event], None], loop: asyncio.AbstractEventLoop) -> None:
        """
        :param dispatch: Callback that enqueues completion events on the interpreter.
        :param loop: Event loop the operations run on.
        """
        self._dispatch = dispatch
        self._loop = loop
        self._handles: Dict[StateNode, InvocationHandle] = {}

    def start(self, owner: StateNode, spec: InvokeSpec, context: Any, event: Event, services: Any) -> InvocationHandle:
        """
        Start the operation declared by ``spec`` for ``owner``.

        :param owner: The state being entered.
        :param spec: The owner's invoke declaration.
        :param context: Context at entry time.
        :param event: Event that caused the entry.
        :param services: Injected collaborators handed to the source.
        """
        previous = self._handles.pop(owner, None)
        if previous is not None:
            logger.warning("State '%s' re-entered with a live invocation; cancelling %r", owner.id, previous)
            previous.cancel()

        handle = InvocationHandle(spec.id, owner)
        self._handles[owner] = handle
        try:
            awaitable = spec.src(context, event, services)
            handle._task = asyncio.ensure_future(awaitable, loop=self._loop)
        except Exception as exc:
            # Failed before producing an awaitable; report it like any other failure.
            failed = self._loop.create_future()
            failed.set_exception(exc)
            handle._task = failed
        handle._task.add_done_callback(functools.partial(self._on_settled, handle))
        logger.debug("Started invocation %r (%s)", handle, spec.src_name)
        return handle

    def _on_settled(self, handle: InvocationHandle, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if not self.is_live(handle):
            logger.debug("Discarding result of stale invocation %r", handle)
            return
        handle._settled = True
        if error is None:
            completion = Event(done_invoke_name(handle.id), {"result": task.result()}, origin=handle)
        else:
            logger.debug("Invocation %r failed: %s", handle, error)
            completion = Event(error_invoke_name(handle.id), {"error": error}, origin=handle)
        self._dispatch(completion)

    def is_live(self, handle: InvocationHandle) -> bool:
        """True while the handle's owner is active and the handle was not cancelled."""
        return not handle.cancelled and self._handles.get(handle.owner) is handle

    def cancel_owned(self, owner: StateNode) -> None:
        """Cancel the invocation owned by an exited state, if any."""
        handle = self._handles.pop(owner, None)
        if handle is not None:
            handle.cancel()
            logger.debug("Cancelled invocation %r", handle)

    def cancel_all(self) -> None:
        for owner in list(self._handles):
            self.cancel_owned(owner)

    @property
    def live_handles(self) -> List[InvocationHandle]:
        return [h for h in self._handles.values() if not h.cancelled]
