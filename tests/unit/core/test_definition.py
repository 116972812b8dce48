# tests/unit/core/test_definition.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import pytest

from gistflow.core.actions import assign
from gistflow.core.definition import MachineDefinition
from gistflow.core.errors import StateNotFoundError, ValidationError
from gistflow.core.events import Event
from gistflow.core.states import StateKind


def nested_config():
    return {
        "id": "m",
        "type": "parallel",
        "states": {
            "a": {
                "initial": "a1",
                "states": {
                    "a1": {"on": {"GO": "a2", "X": "#b.b2"}},
                    "a2": {
                        "initial": "x",
                        "on": {"RESET": ".x"},
                        "states": {"x": {"on": {"NEXT": "y"}}, "y": {}},
                    },
                },
            },
            "b": {
                "initial": "b1",
                "states": {
                    "b1": {"on": {"GO": "b2", "X": "b2", "JUMP": "#a.a2.y"}},
                    "b2": {},
                },
            },
        },
    }


@pytest.fixture
def definition():
    return MachineDefinition(nested_config())


def ids(states):
    return [s.id for s in states]


def transition(definition, state_id, event_name, index=0):
    return definition.state(state_id).transitions_for(event_name)[index]


def test_builds_tree_with_dotted_ids(definition):
    y = definition.state("a.a2.y")
    assert y.id == "a.a2.y"
    assert y.kind is StateKind.ATOMIC
    assert y.parent is definition.state("a.a2")
    assert definition.root.kind is StateKind.PARALLEL
    assert definition.state("m") is definition.root
    assert ids(definition.states)[:3] == ["m", "a", "a.a1"]


def test_unknown_state_raises(definition):
    with pytest.raises(StateNotFoundError):
        definition.state("a.nope")


def test_compound_without_initial_uses_first_child():
    definition = MachineDefinition({"id": "m", "states": {"one": {}, "two": {}}})
    assert definition.root.initial.key == "one"


def test_initial_entry_set_enters_every_region(definition):
    assert ids(definition.initial_entry_set()) == ["m", "a", "a.a1", "b", "b.b1"]
    assert definition.check_configuration(definition.initial_entry_set()) == []


def test_target_resolution(definition):
    assert ids(transition(definition, "a.a1", "GO").targets) == ["a.a2"]
    assert ids(transition(definition, "a.a2", "RESET").targets) == ["a.a2.x"]
    assert ids(transition(definition, "b.b1", "JUMP").targets) == ["a.a2.y"]
    assert transition(definition, "a.a2", "RESET").is_internal
    assert not transition(definition, "a.a1", "GO").is_internal


def test_validation_collects_every_problem():
    config = {
        "id": "m",
        "initial": "missing",
        "states": {
            "one": {"on": {"GO": {"target": "nowhere", "guard": "unknown_guard", "actions": ["unknown_action"]}}},
            "two": {"invoke": {"src": "unknown_source"}},
        },
    }
    with pytest.raises(ValidationError) as exc_info:
        MachineDefinition(config)

    message = str(exc_info.value)
    assert "invalid initial state 'missing'" in message
    assert "unresolvable target 'nowhere'" in message
    assert "unknown guard 'unknown_guard'" in message
    assert "unknown action 'unknown_action'" in message
    assert "unknown source 'unknown_source'" in message


def test_empty_event_name_is_rejected():
    with pytest.raises(ValidationError, match="always"):
        MachineDefinition({"id": "m", "states": {"one": {"on": {"": "one"}}}})


def test_negative_delay_is_rejected():
    with pytest.raises(ValidationError, match="negative delay"):
        MachineDefinition({"id": "m", "states": {"one": {"after": {-5: "one"}}}})


def test_after_registers_named_timeout_transition():
    definition = MachineDefinition({"id": "m", "states": {"one": {"after": {1000: "two"}}, "two": {}}})
    one = definition.state("one")
    assert one.after[0].event_name == "after.1000.one"
    assert ids(one.transitions_for("after.1000.one")[0].targets) == ["two"]


def test_invoke_registers_completion_transitions():
    async def load(ctx, event, services):
        return 1

    definition = MachineDefinition(
        {
            "id": "m",
            "states": {
                "loading": {"invoke": {"id": "load", "src": "load", "on_done": "done", "on_error": "failed"}},
                "done": {},
                "failed": {},
            },
        },
        services={"load": load},
    )
    loading = definition.state("loading")
    assert loading.invoke.src is load
    assert ids(loading.transitions_for("done.invoke.load")[0].targets) == ["done"]
    assert ids(loading.transitions_for("error.platform.load")[0].targets) == ["failed"]


def test_transition_domain_is_least_common_compound_ancestor(definition):
    assert definition.transition_domain(transition(definition, "a.a1", "GO")).id == "a"
    assert definition.transition_domain(transition(definition, "a.a2", "RESET")).id == "a.a2"
    # Only the root contains both regions.
    assert definition.transition_domain(transition(definition, "b.b1", "JUMP")) is definition.root


def test_targetless_transition_has_no_domain_and_exits_nothing():
    config = {"id": "m", "initial": "idle", "states": {"idle": {"on": {"PING": {"actions": ["noop"]}}}}}
    definition = MachineDefinition(config, actions={"noop": assign(lambda ctx, e: ctx)})
    ping = transition(definition, "idle", "PING")

    assert ping.is_targetless
    assert definition.transition_domain(ping) is None
    assert definition.compute_exit_set([ping], [definition.root, definition.state("idle")]) == []


def test_exit_set_is_deepest_first(definition):
    configuration = definition.initial_entry_set()
    exit_set = definition.compute_exit_set([transition(definition, "b.b1", "JUMP")], configuration)
    assert ids(exit_set) == ["b.b1", "b", "a.a1", "a"]


def test_entry_set_reenters_sibling_regions_of_parallel_domain(definition):
    entry_set = definition.compute_entry_set([transition(definition, "b.b1", "JUMP")])
    assert ids(entry_set) == ["a", "a.a2", "a.a2.y", "b", "b.b1"]


def test_select_transitions_one_per_region(definition):
    configuration = definition.initial_entry_set()
    selected = definition.select_transitions(configuration, None, Event("GO"))
    assert [t.source.id for t in selected] == ["a.a1", "b.b1"]


def test_conflicting_transition_loses_to_document_order(definition):
    configuration = definition.initial_entry_set()
    selected = definition.select_transitions(configuration, None, Event("X"))
    assert [t.source.id for t in selected] == ["a.a1"]


def test_events_bubble_to_ancestors(definition):
    configuration = set(definition.initial_entry_set())
    configuration -= {definition.state("a.a1")}
    configuration |= {definition.state("a.a2"), definition.state("a.a2.y")}
    selected = definition.select_transitions(configuration, None, Event("RESET"))
    assert [t.source.id for t in selected] == ["a.a2"]


def test_guarded_candidates_first_match_wins():
    definition = MachineDefinition(
        {
            "id": "m",
            "states": {
                "start": {
                    "always": [
                        {"target": "big", "guard": "is_big"},
                        {"target": "small", "actions": ["mark"]},
                    ]
                },
                "big": {},
                "small": {},
            },
        },
        guards={"is_big": lambda ctx, e: ctx > 10},
        actions={"mark": assign(lambda ctx, e: ctx + 1)},
    )
    configuration = definition.initial_entry_set()
    assert ids(definition.select_transitions(configuration, 20, Event("any"), eventless=True)[0].targets) == ["big"]
    assert ids(definition.select_transitions(configuration, 1, Event("any"), eventless=True)[0].targets) == ["small"]


def test_check_configuration_reports_broken_regions(definition):
    configuration = set(definition.initial_entry_set()) - {definition.state("b.b1")}
    assert definition.check_configuration(configuration) == ["'b' has 0 active children"]

    configuration = set(definition.initial_entry_set()) | {definition.state("a.a2.x")}
    problems = definition.check_configuration(configuration)
    assert "'a.a2.x' is active but its parent is not" in problems
    assert len(problems) == 1
