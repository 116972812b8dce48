# gistflow/core/definition.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Static machine definition: builds the StateNode tree from a nested config
dict, resolves transition targets and answers the structural questions the
interpreter asks while taking transitions (transition domain, exit set,
entry set, conflicts).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from gistflow.core.actions import Action, ActionTable
from gistflow.core.errors import StateNotFoundError, ValidationError
from gistflow.core.events import Event, after_event_name, done_invoke_name, error_invoke_name
from gistflow.core.guards import GuardTable
from gistflow.core.states import DelaySpec, InvokeSpec, StateKind, StateNode
from gistflow.core.transitions import Guard, InvokeSource, Transition, select_first

logger = logging.getLogger(__name__)

_STATE_KEYS = {"id", "type", "initial", "states", "on", "always", "after", "invoke", "entry", "exit"}
_CANDIDATE_KEYS = {"target", "guard", "actions"}
_INVOKE_KEYS = {"src", "id", "on_done", "on_error"}

TransitionConfig = Union[None, str, Mapping[str, Any], List[Union[str, Mapping[str, Any]]]]


class MachineDefinition:
    """
    Immutable tree of StateNodes built from a declarative config.

    Guards, actions and invocation sources are referenced by name and looked
    up in machine-wide tables, which keeps the structure itself plain data.
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        guards: Optional[Mapping[str, Guard]] = None,
        actions: Optional[Mapping[str, Action]] = None,
        services: Optional[Mapping[str, InvokeSource]] = None,
    ) -> None:
        """
        :param config: Nested state config (``type``, ``initial``, ``states``, ``on``,
            ``always``, ``after``, ``invoke``, ``entry``, ``exit``).
        :param guards: Guard table, name -> ``(context, event) -> bool``.
        :param actions: Action table, name -> Action.
        :param services: Invocation sources, name -> ``async (context, event, services)``.
        :raises ValidationError: Listing every structural problem found.
        """
        self._guards = guards if isinstance(guards, GuardTable) else GuardTable(guards)
        self._actions = actions if isinstance(actions, ActionTable) else ActionTable(actions)
        self._services: Dict[str, InvokeSource] = dict(services or {})
        self._errors: List[str] = []
        self._by_id: Dict[str, StateNode] = {}
        self._transitions: List[Transition] = []
        self._invoke_ids: Set[str] = set()
        self._next_order = 0

        self.root = self._build_node(config.get("id", "machine"), config, parent=None)
        for transition in self._transitions:
            self._resolve_targets(transition)

        if self._errors:
            raise ValidationError("\n".join(self._errors))
        logger.debug("Built machine '%s' with %d states", self.root.key, len(self._by_id))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _build_node(self, key: str, config: Mapping[str, Any], parent: Optional[StateNode]) -> StateNode:
        unknown = set(config) - _STATE_KEYS
        if unknown:
            self._errors.append(f"State '{key}' has unknown keys: {', '.join(sorted(unknown))}")

        kind = self._kind_of(key, config)
        node = StateNode(key=key, kind=kind, parent=parent, order=self._next_order)
        self._next_order += 1
        self._by_id[node.id] = node

        for child_key, child_config in (config.get("states") or {}).items():
            if not child_key or "." in child_key or child_key.startswith("#"):
                self._errors.append(f"Invalid state key '{child_key}' under '{node.id}'")
                continue
            node.children[child_key] = self._build_node(child_key, child_config or {}, node)

        if kind is StateKind.COMPOUND:
            initial = config.get("initial")
            if initial is None:
                # Same fallback as an unset initial state in a composite: first child.
                initial = next(iter(node.children), None)
            if initial not in node.children:
                self._errors.append(f"Compound state '{node.id}' has invalid initial state '{initial}'")
            node.initial_key = initial

        node.entry = self._resolve_actions(node, config.get("entry"))
        node.exit = self._resolve_actions(node, config.get("exit"))

        for event_name, transition_config in (config.get("on") or {}).items():
            if not event_name:
                self._errors.append(f"State '{node.id}' uses an empty event name; declare it under 'always'")
                continue
            node.on[event_name] = self._parse_candidates(node, event_name, transition_config)

        node.always = self._parse_candidates(node, None, config.get("always"))

        for delay, transition_config in (config.get("after") or {}).items():
            self._add_delay(node, delay, transition_config)

        if config.get("invoke") is not None:
            self._add_invoke(node, config["invoke"])

        return node

    def _kind_of(self, key: str, config: Mapping[str, Any]) -> StateKind:
        declared = config.get("type")
        if declared is None:
            return StateKind.COMPOUND if config.get("states") else StateKind.ATOMIC
        try:
            kind = StateKind(declared)
        except ValueError:
            self._errors.append(f"State '{key}' has unknown type '{declared}'")
            return StateKind.ATOMIC
        if kind is not StateKind.ATOMIC and not config.get("states"):
            self._errors.append(f"State '{key}' of type '{declared}' has no child states")
        return kind

    def _add_delay(self, node: StateNode, delay: Any, transition_config: TransitionConfig) -> None:
        try:
            delay_value = float(delay)
        except (TypeError, ValueError):
            self._errors.append(f"State '{node.id}' has a non-numeric delay '{delay}'")
            return
        if delay_value < 0:
            self._errors.append(f"State '{node.id}' has a negative delay '{delay}'")
            return
        event_name = after_event_name(delay_value, node.id)
        candidates = self._parse_candidates(node, event_name, transition_config)
        node.after.append(DelaySpec(delay=delay_value, event_name=event_name, transitions=candidates))
        node.on[event_name] = candidates

    def _add_invoke(self, node: StateNode, config: Mapping[str, Any]) -> None:
        unknown = set(config) - _INVOKE_KEYS
        if unknown:
            self._errors.append(f"Invoke on '{node.id}' has unknown keys: {', '.join(sorted(unknown))}")
        src_name = config.get("src")
        src = self._services.get(src_name)
        if src is None:
            self._errors.append(f"Invoke on '{node.id}' references unknown source '{src_name}'")
        invoke_id = config.get("id") or f"{node.id}:invocation"
        if invoke_id in self._invoke_ids:
            self._errors.append(f"Duplicate invocation id '{invoke_id}'")
        self._invoke_ids.add(invoke_id)
        node.invoke = InvokeSpec(id=invoke_id, src_name=src_name, src=src)
        if config.get("on_done") is not None:
            name = done_invoke_name(invoke_id)
            node.on[name] = self._parse_candidates(node, name, config["on_done"])
        if config.get("on_error") is not None:
            name = error_invoke_name(invoke_id)
            node.on[name] = self._parse_candidates(node, name, config["on_error"])

    def _parse_candidates(
        self, node: StateNode, event_name: Optional[str], config: TransitionConfig
    ) -> List[Transition]:
        if config is None:
            return []
        items = config if isinstance(config, list) else [config]
        candidates = []
        for item in items:
            if isinstance(item, str):
                item = {"target": item}
            unknown = set(item) - _CANDIDATE_KEYS
            if unknown:
                self._errors.append(
                    f"Transition on '{node.id}' for '{event_name or 'always'}' has unknown keys: "
                    f"{', '.join(sorted(unknown))}"
                )
            target = item.get("target")
            if target is None:
                target_specs: Tuple[str, ...] = ()
            elif isinstance(target, str):
                target_specs = (target,)
            else:
                target_specs = tuple(target)

            guard_name = item.get("guard")
            guard = None
            if guard_name is not None:
                guard = self._guards.get(guard_name)
                if guard is None:
                    self._errors.append(f"State '{node.id}' references unknown guard '{guard_name}'")

            transition = Transition(
                source=node,
                event=event_name,
                target_specs=target_specs,
                guard_name=guard_name,
                guard=guard,
                actions=self._resolve_actions(node, item.get("actions")),
            )
            self._transitions.append(transition)
            candidates.append(transition)
        return candidates

    def _resolve_actions(self, node: StateNode, names: Union[None, str, List[str]]) -> List[Action]:
        if names is None:
            return []
        if isinstance(names, str):
            names = [names]
        resolved = []
        for name in names:
            action = self._actions.get(name)
            if action is None:
                self._errors.append(f"State '{node.id}' references unknown action '{name}'")
                continue
            resolved.append(action)
        return resolved

    def _resolve_targets(self, transition: Transition) -> None:
        targets = []
        for spec in transition.target_specs:
            target = self._lookup_target(transition.source, spec)
            if target is None:
                self._errors.append(f"Transition {transition!r} has unresolvable target '{spec}'")
                continue
            targets.append(target)
        transition.resolve(targets)

    def _lookup_target(self, source: StateNode, spec: str) -> Optional[StateNode]:
        if spec.startswith("#"):
            key = spec[1:]
            return self.root if key == self.root.key else self._by_id.get(key)
        if spec.startswith("."):
            base: Optional[StateNode] = source
            keys = spec[1:].split(".")
        else:
            base = source.parent
            keys = spec.split(".")
        for key in keys:
            if base is None:
                return None
            base = base.children.get(key)
        return base

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def state(self, state_id: str) -> StateNode:
        """
        Return the node with the given dotted id.

        :raises StateNotFoundError: If no such state exists.
        """
        if state_id == self.root.key:
            return self.root
        try:
            return self._by_id[state_id]
        except KeyError:
            raise StateNotFoundError(f"No state with id '{state_id}'") from None

    @property
    def states(self) -> List[StateNode]:
        """All nodes in document order, root first."""
        return [self.root] + self.root.descendants()

    @property
    def guards(self) -> GuardTable:
        return self._guards

    @property
    def actions(self) -> ActionTable:
        return self._actions

    # ------------------------------------------------------------------
    # Transition resolution
    # ------------------------------------------------------------------

    def select_transitions(
        self, configuration: Iterable[StateNode], context: Any, event: Optional[Event], eventless: bool = False
    ) -> List[Transition]:
        """
        Pick at most one transition per active atomic state.

        Each atomic state (in document order) looks at its own candidates
        first and then bubbles up through its ancestors; the first enabled
        candidate wins. Conflicting picks across regions are then removed.

        :param configuration: Active states.
        :param context: Current context handed to guards.
        :param event: The event being processed (also handed to eventless guards).
        :param eventless: Select from ``always`` lists instead of ``on[event.name]``.
        """
        configuration = set(configuration)
        atomics = sorted((s for s in configuration if s.is_atomic), key=lambda s: s.order)
        enabled: List[Transition] = []
        for state in atomics:
            for node in [state] + state.proper_ancestors():
                candidates = node.always if eventless else node.transitions_for(event.name)
                chosen = select_first(candidates, context, event)
                if chosen is not None:
                    if chosen not in enabled:
                        enabled.append(chosen)
                    break
        return self.remove_conflicts(enabled, configuration)

    def remove_conflicts(self, transitions: List[Transition], configuration: Set[StateNode]) -> List[Transition]:
        """
        Drop transitions whose exit sets overlap an earlier pick. A transition
        declared deeper than the one it conflicts with replaces it.
        """
        filtered: List[Transition] = []
        for t1 in transitions:
            exit1 = set(self.compute_exit_set([t1], configuration))
            preempted = False
            replaced = []
            for t2 in filtered:
                if exit1 & set(self.compute_exit_set([t2], configuration)):
                    if t1.source.is_descendant_of(t2.source):
                        replaced.append(t2)
                    else:
                        preempted = True
                        break
            if not preempted:
                for t2 in replaced:
                    filtered.remove(t2)
                filtered.append(t1)
        return filtered

    def transition_domain(self, transition: Transition) -> Optional[StateNode]:
        """
        The state whose active descendants are exited and re-entered by the
        transition. None for targetless transitions.
        """
        if transition.is_targetless:
            return None
        source = transition.source
        if (
            transition.is_internal
            and source.kind is StateKind.COMPOUND
            and all(t.is_descendant_of(source) for t in transition.targets)
        ):
            return source
        return self.find_lcca([source] + transition.targets)

    def find_lcca(self, states: List[StateNode]) -> StateNode:
        """Least common compound ancestor; the root counts as compound."""
        head, tail = states[0], states[1:]
        for ancestor in head.proper_ancestors():
            if ancestor.kind is StateKind.COMPOUND or ancestor.parent is None:
                if all(s.is_descendant_of(ancestor) for s in tail):
                    return ancestor
        return self.root

    def compute_exit_set(self, transitions: List[Transition], configuration: Iterable[StateNode]) -> List[StateNode]:
        """Active states left by the transitions, deepest (last in document order) first."""
        configuration = list(configuration)
        to_exit: Set[StateNode] = set()
        for transition in transitions:
            domain = self.transition_domain(transition)
            if domain is None:
                continue
            to_exit.update(s for s in configuration if s.is_descendant_of(domain))
        return sorted(to_exit, key=lambda s: s.order, reverse=True)

    def compute_entry_set(self, transitions: List[Transition]) -> List[StateNode]:
        """States entered by the transitions, shallowest (first in document order) first."""
        to_enter: Set[StateNode] = set()
        for transition in transitions:
            for target in transition.targets:
                self._add_descendants(target, to_enter)
            domain = self.transition_domain(transition)
            for target in transition.targets:
                self._add_ancestors(target, domain, to_enter)
            # A parallel root as domain has every region exited, so all must come back.
            if domain is not None and domain.kind is StateKind.PARALLEL:
                for child in domain.children.values():
                    if not _covers(child, to_enter):
                        self._add_descendants(child, to_enter)
        return sorted(to_enter, key=lambda s: s.order)

    def initial_entry_set(self) -> List[StateNode]:
        """States entered when the machine starts, root included."""
        to_enter: Set[StateNode] = set()
        self._add_descendants(self.root, to_enter)
        return sorted(to_enter, key=lambda s: s.order)

    def _add_descendants(self, state: StateNode, to_enter: Set[StateNode]) -> None:
        to_enter.add(state)
        if state.kind is StateKind.COMPOUND:
            self._add_descendants(state.initial, to_enter)
        elif state.kind is StateKind.PARALLEL:
            for child in state.children.values():
                if not _covers(child, to_enter):
                    self._add_descendants(child, to_enter)

    def _add_ancestors(self, state: StateNode, upto: Optional[StateNode], to_enter: Set[StateNode]) -> None:
        for ancestor in state.proper_ancestors(upto):
            to_enter.add(ancestor)
            if ancestor.kind is StateKind.PARALLEL:
                for child in ancestor.children.values():
                    if not _covers(child, to_enter):
                        self._add_descendants(child, to_enter)

    def check_configuration(self, configuration: Iterable[StateNode]) -> List[str]:
        """
        Report violations of the configuration invariants: every active
        compound state has exactly one active child, every active parallel
        state has all children active, and every active state's parent is active.
        """
        configuration = set(configuration)
        problems = []
        for state in sorted(configuration, key=lambda s: s.order):
            if state.parent is not None and state.parent not in configuration:
                problems.append(f"'{state.id}' is active but its parent is not")
            active_children = [c for c in state.children.values() if c in configuration]
            if state.kind is StateKind.COMPOUND and len(active_children) != 1:
                problems.append(f"'{state.id}' has {len(active_children)} active children")
            if state.kind is StateKind.PARALLEL and len(active_children) != len(state.children):
                problems.append(f"'{state.id}' has inactive regions")
        return problems


def _covers(child: StateNode, to_enter: Set[StateNode]) -> bool:
    return any(s is child or s.is_descendant_of(child) for s in to_enter)
