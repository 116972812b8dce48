# gistflow/runtime/__init__.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from gistflow.runtime.event_queue import EventQueue
from gistflow.runtime.interpreter import Interpreter
from gistflow.runtime.invoker import InvocationHandle, Invoker
from gistflow.runtime.snapshot import Snapshot
from gistflow.runtime.timers import Timer, TimerScheduler

__all__ = [
    "EventQueue",
    "InvocationHandle",
    "Interpreter",
    "Invoker",
    "Snapshot",
    "Timer",
    "TimerScheduler",
]
