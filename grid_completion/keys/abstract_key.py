"""keys/abstract_key.py - Canonical identity of one point in the key space."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator

_NO_SOURCE = object()


@dataclass(frozen=True)
class KeyComponent:
    """One attribute's contribution to an ``AbstractKey``."""

    name: str
    canonical: str
    value: Any


class AbstractKey:
    """Immutable, ordered (name, canonical, value) triples in declaration order.

    Two keys are equal when their canonical strings are equal position by
    position. Raw values and the backing source element take no part in
    equality, so distinct values that canonicalize identically share a key
    position.

    Attribute values are read by name::

        key["product"]          # raw value
        key.get("zone", None)   # with default
    """

    __slots__ = ("_components", "_canonical", "_hash", "_source")

    def __init__(self, components: tuple[KeyComponent, ...], source: Any = _NO_SOURCE) -> None:
        self._components = tuple(components)
        self._canonical = tuple(c.canonical for c in self._components)
        self._hash = hash(self._canonical)
        self._source = source

    # ---------------------------------------------------------------- #
    #  Identity                                                        #
    # ---------------------------------------------------------------- #

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, AbstractKey):
            return NotImplemented
        return self._canonical == other._canonical

    def __hash__(self) -> int:
        return self._hash

    @property
    def canonical(self) -> tuple[str, ...]:
        return self._canonical

    @property
    def is_generated(self) -> bool:
        """True when no existing element backs this key."""
        return self._source is _NO_SOURCE

    @property
    def source(self) -> Any:
        """The existing element this key was projected from, or None."""
        return None if self.is_generated else self._source

    # ---------------------------------------------------------------- #
    #  Access                                                          #
    # ---------------------------------------------------------------- #

    @property
    def components(self) -> tuple[KeyComponent, ...]:
        return self._components

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self._components)

    def __getitem__(self, name: str) -> Any:
        for component in self._components:
            if component.name == name:
                return component.value
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        return any(c.name == name for c in self._components)

    def get(self, name: str, default: Any = None) -> Any:
        try:
            return self[name]
        except KeyError:
            return default

    def properties(self) -> dict[str, Any]:
        """Fresh ``{name: raw value}`` dict; mutating it does not touch the key."""
        return {c.name: c.value for c in self._components}

    def __iter__(self) -> Iterator[KeyComponent]:
        return iter(self._components)

    def __len__(self) -> int:
        return len(self._components)

    def __repr__(self) -> str:
        body = ", ".join(f"{c.name}={c.canonical}" for c in self._components)
        return f"AbstractKey({body})"
