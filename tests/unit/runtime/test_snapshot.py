# tests/unit/runtime/test_snapshot.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import pytest

from gistflow.core.definition import MachineDefinition
from gistflow.runtime.snapshot import Snapshot


@pytest.fixture
def definition():
    return MachineDefinition(
        {
            "id": "app",
            "type": "parallel",
            "states": {
                "auth": {
                    "initial": "authorized",
                    "states": {
                        "authorized": {
                            "type": "parallel",
                            "states": {
                                "user": {},
                                "gist": {"initial": "idle", "states": {"idle": {"states": {"default": {}}}}},
                            },
                        },
                        "unauthorized": {},
                    },
                },
                "document": {"initial": "idle", "states": {"idle": {}, "loaded": {}}},
            },
        }
    )


def test_capture_nested_value(definition):
    snapshot = Snapshot.capture(definition.root, definition.initial_entry_set(), {"token": "t"})

    assert snapshot.value == {
        "auth": {"authorized": {"user": {}, "gist": {"idle": "default"}}},
        "document": "idle",
    }
    assert snapshot.leaves == ("auth.authorized.user", "auth.authorized.gist.idle.default", "document.idle")
    assert snapshot.context == {"token": "t"}


def test_matches_and_active_leaves(definition):
    snapshot = Snapshot.capture(definition.root, definition.initial_entry_set(), None)

    assert snapshot.matches("auth.authorized.gist.idle")
    assert not snapshot.matches("auth.unauthorized")
    assert not snapshot.matches("app")
    assert snapshot.active_leaves("document") == ("document.idle",)
    assert snapshot.active_leaves("auth.authorized.gist") == ("auth.authorized.gist.idle.default",)


def test_snapshot_is_immutable(definition):
    snapshot = Snapshot.capture(definition.root, (), None)
    with pytest.raises(AttributeError):
        snapshot.changed = True
    assert snapshot.configuration == frozenset()
