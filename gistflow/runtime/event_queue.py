# gistflow/runtime/event_queue.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Optional

from gistflow.core.events import Event


class _EventQueueLock:
    """
    Internal context manager ensuring thread-safe access to the event queue.
    """

    def __init__(self, lock: threading.Lock) -> None:
        self._lock = lock

    def __enter__(self) -> None:
        self._lock.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._lock.release()


class EventQueue:
    """
    FIFO queue feeding the interpreter. Producers may live on any thread;
    there is exactly one consumer, so events come out in submission order.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._queue: Deque[Event] = deque()

    def enqueue(self, event: Event) -> None:
        """
        Add an event to the back of the queue.

        :param event: The event to enqueue.
        """
        with _EventQueueLock(self._lock):
            self._queue.append(event)

    def dequeue(self) -> Optional[Event]:
        """
        Remove and return the next event, or None if the queue is empty.
        """
        with _EventQueueLock(self._lock):
            if self._queue:
                return self._queue.popleft()
            return None

    def clear(self) -> None:
        """
        Remove all events from the queue.
        """
        with _EventQueueLock(self._lock):
            self._queue.clear()

    def __len__(self) -> int:
        with _EventQueueLock(self._lock):
            return len(self._queue)
