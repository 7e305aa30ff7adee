"""search/product.py - Sequence primitives consumed by the key space and projector."""

from __future__ import annotations

from itertools import product, zip_longest
from typing import Any, Collection, Hashable, Iterable, Iterator


class _Absent:
    """Marker for a position that one side of ``zip_padded`` does not have."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


class CartesianProduct:
    """Restartable, lazy cartesian product over finite sequences.

    Tuples come out in odometer order: the right-most sequence cycles fastest.
    Every call to ``iter()`` starts over from the first tuple.
    """

    def __init__(self, *sequences: Iterable[Any]) -> None:
        self._sequences = tuple(tuple(seq) for seq in sequences)

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        return product(*self._sequences)

    def __len__(self) -> int:
        n = 1
        for seq in self._sequences:
            n *= len(seq)
        return n

    @property
    def sizes(self) -> tuple[int, ...]:
        return tuple(len(seq) for seq in self._sequences)


def zip_padded(
    left: Iterable[Any],
    right: Iterable[Any],
    fill: Any = ABSENT,
) -> list[tuple[Any, Any]]:
    """Pair *left* and *right* index by index, padding the shorter side with *fill*."""
    return list(zip_longest(left, right, fillvalue=fill))


def subtract(minuend: Iterable[Hashable], subtrahend: Collection[Hashable]) -> set[Hashable]:
    """Return the elements of *minuend* that are not in *subtrahend*."""
    removed = subtrahend if isinstance(subtrahend, (set, frozenset)) else set(subtrahend)
    return {item for item in minuend if item not in removed}
