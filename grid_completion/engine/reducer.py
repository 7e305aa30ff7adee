"""engine/reducer.py - Chained grouping/merge of generated elements."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import reduce
from typing import Any, Callable, Hashable, Iterable, Iterator

import numpy as np

from ..errors import ConfigurationError, ConsistencyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reducer:
    """A (grouping key, merge function) pair.

    ``merge`` must be associative and commutative over the elements of one
    group: buckets are folded in no particular order.
    """

    grouping_key: Callable[[Any], Hashable]
    merge: Callable[[Any, Any], Any]

    def __post_init__(self) -> None:
        if self.grouping_key is None or self.merge is None:
            raise ConfigurationError(
                "A reducer needs both a grouping key and a merge function "
                f"(grouping_key={self.grouping_key!r}, merge={self.merge!r})"
            )
        if not callable(self.grouping_key) or not callable(self.merge):
            raise ConfigurationError("Reducer grouping key and merge function must be callable")

    def partition(self, elements: Iterable[Any]) -> dict[Hashable, list[Any]]:
        buckets: dict[Hashable, list[Any]] = {}
        for element in elements:
            buckets.setdefault(self.grouping_key(element), []).append(element)
        return buckets

    def fold(self, buckets: dict[Hashable, list[Any]]) -> set[Any]:
        return {reduce(self.merge, bucket) for bucket in buckets.values()}

    def apply(self, elements: Iterable[Any]) -> set[Any]:
        return self.fold(self.partition(elements))


class ReducerChain:
    """Ordered reducers; the output of step *i* feeds step *i + 1*.

    An empty chain is the identity.
    """

    def __init__(self, reducers: Iterable[Reducer] = ()) -> None:
        self._reducers = tuple(reducers)
        for reducer in self._reducers:
            if not isinstance(reducer, Reducer):
                raise ConfigurationError(
                    f"Expected a Reducer, got {type(reducer).__name__}"
                )

    def __len__(self) -> int:
        return len(self._reducers)

    def __iter__(self) -> Iterator[Reducer]:
        return iter(self._reducers)

    def apply(self, elements: Iterable[Any], order_trials: int = 0, seed: int = 42) -> set[Any]:
        """Run every reducer in order.

        With *order_trials* > 0 each step is re-folded on that many seeded
        random permutations of its buckets; a different outcome means the
        merge function depends on order and raises ``ConsistencyError``.
        """
        rng = np.random.default_rng(seed) if order_trials > 0 else None
        working = set(elements)
        for index, reducer in enumerate(self._reducers):
            buckets = reducer.partition(working)
            merged = reducer.fold(buckets)
            if rng is not None:
                self._check_order_independence(index, reducer, buckets, merged, order_trials, rng)
            logger.debug(
                "Reducer %d: %d elements -> %d groups", index, len(working), len(merged),
            )
            working = merged
        return working

    @staticmethod
    def _check_order_independence(
        index: int,
        reducer: Reducer,
        buckets: dict[Hashable, list[Any]],
        expected: set[Any],
        trials: int,
        rng: np.random.Generator,
    ) -> None:
        for _ in range(trials):
            shuffled = {
                key: [bucket[i] for i in rng.permutation(len(bucket))]
                for key, bucket in buckets.items()
            }
            if reducer.fold(shuffled) != expected:
                raise ConsistencyError(
                    f"Reducer {index} is not order independent: folding its buckets "
                    f"in a different order changed the merged result. Merge functions "
                    f"must be associative and commutative."
                )
