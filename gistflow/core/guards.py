# gistflow/core/guards.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Callable, Dict, Iterator, Mapping, Optional

from gistflow.core.errors import ValidationError
from gistflow.core.transitions import Guard


class GuardTable(Mapping[str, Guard]):
    """
    Machine-wide table of named guards. A guard is a pure predicate
    ``(context, event) -> bool``; it must not perform side effects.
    """

    def __init__(self, guards: Optional[Mapping[str, Guard]] = None) -> None:
        self._guards: Dict[str, Guard] = {}
        for name, fn in (guards or {}).items():
            self.add(name, fn)

    def add(self, name: str, fn: Guard) -> None:
        """
        Register a guard under a name.

        :param name: Name referenced by ``guard`` keys in the machine config.
        :param fn: Predicate over (context, event).
        :raises ValidationError: If the name is taken or fn is not callable.
        """
        if not callable(fn):
            raise ValidationError(f"Guard '{name}' must be callable")
        if name in self._guards:
            raise ValidationError(f"Guard '{name}' is already registered")
        self._guards[name] = fn

    def register(self, name: str) -> Callable[[Guard], Guard]:
        """Decorator form of :meth:`add`."""

        def decorator(fn: Guard) -> Guard:
            self.add(name, fn)
            return fn

        return decorator

    def __getitem__(self, name: str) -> Guard:
        return self._guards[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._guards)

    def __len__(self) -> int:
        return len(self._guards)
