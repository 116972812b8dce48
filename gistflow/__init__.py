# gistflow/__init__.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""gistflow: hierarchical parallel state machine driving a credential-gated gist workflow

This package provides a small statechart runtime and the application machine
built on top of it.

Responsibilities:
    - Machine definition: state tree, targets, guards, actions, invocations
    - Execution: one serialized event queue, eventless transitions, timers
    - The gist workflow: authorization, deferred saves, document loading

Interactions:
    - Client code sends events and observes snapshots through the Interpreter
    - Invoked operations reach GitHub through injected services
    - Out-of-band authorization codes arrive through the ExternalActorBridge

Cross-cutting Concerns:
    Concurrency:
        - Events are processed one at a time on the owning event loop
        - Sends from other threads are marshalled onto that loop

    Error Handling:
        - Workflow failures are routed to states, never raised to callers
        - Programming errors raise GistFlowError subclasses

    Logging:
        - Standard logging, one logger per module under ``gistflow``
"""

__version__ = "0.1.0"
