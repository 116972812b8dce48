# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import asyncio
from dataclasses import replace
from typing import Any, List
from unittest.mock import AsyncMock, MagicMock

import pytest

from gistflow.app.machine import create_app_interpreter
from gistflow.app.notifications import LoggingNotificationSink
from gistflow.app.services import AppServices, QueryString
from gistflow.config import Settings
from gistflow.core.status import MachineStatus


class Gate:
    """
    Blocks an invoked operation until released, so tests decide when (and
    in which order) in-flight effects settle.
    """

    def __init__(self, result: Any = None) -> None:
        self.entered = asyncio.Event()
        self._release = asyncio.Event()
        self._result = result
        self._error = None
        self.calls: List[tuple] = []

    def __call__(self, *args, **kwargs):
        return self.run(*args, **kwargs)

    async def run(self, *args, **kwargs):
        self.calls.append(args)
        self.entered.set()
        await self._release.wait()
        if self._error is not None:
            raise self._error
        return self._result

    def release(self, result: Any = None) -> None:
        if result is not None:
            self._result = result
        self._release.set()

    def fail(self, error: Exception) -> None:
        self._error = error
        self._release.set()


async def _settle(rounds: int = 5) -> None:
    """Let completed invocations report back to the interpreter."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def gate():
    """The Gate class, for blocking invoked operations."""
    return Gate


@pytest.fixture
def settle():
    """Coroutine function yielding to the loop a few times."""
    return _settle


@pytest.fixture
def settings():
    """Settings with a short time unit: saved indicators clear after 10ms."""
    return Settings(time_unit_seconds=0.0001, saved_indicator_delay=100)


@pytest.fixture
def identity():
    provider = MagicMock()
    provider.exchange_code = AsyncMock(return_value="token-123")
    provider.get_user = AsyncMock(return_value={"login": "octocat"})
    return provider


@pytest.fixture
def documents():
    store = MagicMock()
    store.fetch_document = AsyncMock(return_value="const remote = Machine({});")
    store.save_document = AsyncMock(return_value="g1")
    return store


@pytest.fixture
def sink():
    return LoggingNotificationSink()


@pytest.fixture
def prompter():
    return MagicMock()


@pytest.fixture
def query_updater():
    return QueryString()


@pytest.fixture
def services(identity, documents, sink, prompter, query_updater):
    return AppServices(
        identity=identity,
        documents=documents,
        notifications=sink,
        prompter=prompter,
        query=query_updater,
    )


@pytest.fixture
async def make_app(services, settings):
    """Factory starting app interpreters; every interpreter is stopped on teardown."""
    created = []

    def _factory(query: str = "", **overrides):
        app_settings = replace(settings, **overrides) if overrides else settings
        interpreter = create_app_interpreter(services, query, settings=app_settings)
        created.append(interpreter)
        interpreter.start()
        return interpreter

    yield _factory
    for interpreter in created:
        interpreter.stop()


@pytest.fixture
def invariant_violations():
    """
    Returns a function attaching a configuration checker to an interpreter;
    the returned list collects every violation seen after a processed event.
    """

    def _attach(interpreter) -> List[str]:
        violations: List[str] = []

        def check(snapshot):
            if interpreter.status is not MachineStatus.RUNNING:
                return
            violations.extend(interpreter.definition.check_configuration(interpreter.configuration))
            if len(snapshot.active_leaves("document")) != 1:
                violations.append(f"document leaves: {snapshot.active_leaves('document')}")

        interpreter.subscribe(check)
        return violations

    return _attach
