# gistflow/core/__init__.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from gistflow.core.actions import Action, ActionKind, ActionTable, assign, effect, raise_event
from gistflow.core.definition import MachineDefinition
from gistflow.core.errors import (
    GistFlowError,
    GuardCycleError,
    StateNotFoundError,
    TransitionError,
    ValidationError,
)
from gistflow.core.events import Event, TimeoutEvent
from gistflow.core.guards import GuardTable
from gistflow.core.states import StateKind, StateNode
from gistflow.core.status import MachineStatus
from gistflow.core.transitions import Transition

__all__ = [
    "Action",
    "ActionKind",
    "ActionTable",
    "Event",
    "GistFlowError",
    "GuardCycleError",
    "GuardTable",
    "MachineDefinition",
    "MachineStatus",
    "StateKind",
    "StateNode",
    "StateNotFoundError",
    "TimeoutEvent",
    "Transition",
    "TransitionError",
    "ValidationError",
    "assign",
    "effect",
    "raise_event",
]
