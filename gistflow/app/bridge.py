# gistflow/app/bridge.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Entry points for events that originate outside the machine: the
authorization code delivered by the OAuth redirect and save requests coming
from the editor. The bridge only translates; it holds no business logic.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from gistflow.app.machine import CODE, SAVE
from gistflow.core.status import MachineStatus
from gistflow.runtime.interpreter import Interpreter

logger = logging.getLogger(__name__)

CodeListener = Callable[[str], Optional[bool]]


class AuthCodeMailbox:
    """
    Single-slot mailbox for authorization codes.

    A code sent before anyone listens is kept and replayed to the next
    listener. A listener refuses a code by returning False; the code then
    stays in the slot. The last delivered code is remembered so a repeated
    redirect does not deliver it twice. Safe to use from any thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listener: Optional[CodeListener] = None
        self._pending: Optional[str] = None
        self._last_delivered: Optional[str] = None

    def send(self, code: str) -> None:
        """
        Post a code. Delivered immediately when a listener is attached,
        buffered otherwise (replacing any undelivered code).
        """
        if not code:
            raise ValueError("Authorization code must not be empty")
        with self._lock:
            if code == self._last_delivered:
                logger.debug("Ignoring already delivered authorization code")
                return
            listener = self._listener
            if listener is None:
                self._pending = code
                return
            self._last_delivered = code
        self._offer(listener, code)

    def listen(self, listener: CodeListener) -> None:
        """Attach the listener, replaying a buffered code if there is one."""
        with self._lock:
            self._listener = listener
            code, self._pending = self._pending, None
            if code is not None:
                self._last_delivered = code
        if code is not None:
            self._offer(listener, code)

    def unlisten(self) -> None:
        with self._lock:
            self._listener = None

    def _offer(self, listener: CodeListener, code: str) -> None:
        if listener(code) is not False:
            return
        with self._lock:
            if self._last_delivered == code:
                self._last_delivered = None
            if self._pending is None:
                self._pending = code

    @property
    def pending_code(self) -> Optional[str]:
        return self._pending


class ExternalActorBridge:
    """Forwards external inputs to an interpreter as machine events."""

    def __init__(self, mailbox: Optional[AuthCodeMailbox] = None) -> None:
        self._mailbox = mailbox or AuthCodeMailbox()
        self._interpreter: Optional[Interpreter] = None

    @property
    def mailbox(self) -> AuthCodeMailbox:
        return self._mailbox

    @property
    def attached(self) -> bool:
        return self._interpreter is not None

    def attach(self, interpreter: Interpreter) -> None:
        """
        Route mailbox codes to ``interpreter`` as ``CODE`` events.

        :param interpreter: A started interpreter running the app machine.
        :raises RuntimeError: If the interpreter is not running.
        """
        if interpreter.status is not MachineStatus.RUNNING:
            raise RuntimeError("Bridge can only attach to a running interpreter")
        self._interpreter = interpreter
        self._mailbox.listen(self._deliver_code)

    def detach(self) -> None:
        self._mailbox.unlisten()
        self._interpreter = None

    def authorization_callback(self, code: str) -> None:
        """Out-of-band delivery of the code returned by the authorization page."""
        self._mailbox.send(code)

    def request_save(self, content: str) -> None:
        """
        Ask the machine to save ``content``.

        :raises RuntimeError: If no interpreter is attached.
        """
        if self._interpreter is None:
            raise RuntimeError("Bridge is not attached to an interpreter")
        self._interpreter.send(SAVE, code=content)

    def _deliver_code(self, code: str) -> bool:
        interpreter = self._interpreter
        if interpreter is None or interpreter.status is not MachineStatus.RUNNING:
            logger.warning("Authorization code arrived with no running interpreter; keeping it")
            return False
        logger.debug("Delivering authorization code to the machine")
        interpreter.send(CODE, code=code)
        return True
