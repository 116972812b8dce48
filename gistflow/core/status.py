# gistflow/core/status.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from enum import Enum, auto


class MachineStatus(Enum):
    """Defines the possible states of an interpreter.

    Used to track interpreter lifecycle and reject events outside of it.
    """

    NOT_STARTED = auto()  # Interpreter built but not started
    RUNNING = auto()  # Interpreter accepting and processing events
    STOPPING = auto()  # Interpreter exiting its configuration
    STOPPED = auto()  # Interpreter fully stopped
