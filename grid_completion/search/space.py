"""search/space.py - Key-space enumeration."""

from __future__ import annotations

import logging
from typing import Any, Iterator

import numpy as np

from ..errors import ConfigurationError
from ..keys.abstract_key import AbstractKey
from ..keys.attribute import KeyAttributeSet
from .product import CartesianProduct

logger = logging.getLogger(__name__)


def key_space_cardinality(sizes: list[int]) -> int:
    """Product of the domain sizes, without overflowing fixed-width integers."""
    if not sizes:
        return 0
    return int(np.prod(np.array(sizes, dtype=object)))


class KeySpace:
    """Every combination of attribute values, in odometer order.

    Parameters
    ----------
    attributes:
        Registered key attributes.  The right-most attribute's domain cycles
        fastest during enumeration.
    max_size:
        Upper bound on the number of combinations (None = unbounded).
    """

    def __init__(self, attributes: KeyAttributeSet, max_size: int | None = None) -> None:
        if len(attributes) == 0:
            raise ConfigurationError("At least one key attribute must be registered")
        self._attributes = attributes
        self._product = CartesianProduct(*attributes.value_ranges())
        self.cardinality = key_space_cardinality(list(self._product.sizes))
        if max_size is not None and self.cardinality > max_size:
            raise ConfigurationError(
                f"Key space of {self.cardinality} combinations exceeds the limit of "
                f"{max_size} (domain sizes {dict(zip(attributes.names(), self._product.sizes))})"
            )

    def __len__(self) -> int:
        return self.cardinality

    def tuples(self) -> Iterator[tuple[Any, ...]]:
        """Raw value tuples; each call restarts from the first combination."""
        return iter(self._product)

    def __iter__(self) -> Iterator[AbstractKey]:
        for combo in self._product:
            yield self._attributes.key_from_values(combo)

    def goal(self) -> tuple[AbstractKey, ...]:
        """Materialize the distinct keys, in odometer order.

        May be shorter than ``len(self)`` when a string mapper sends distinct
        values to the same canonical string; the first value wins.
        """
        goal = tuple(dict.fromkeys(self))
        if len(goal) < self.cardinality:
            logger.info(
                "Key space collapsed from %d to %d keys by canonical string mapping",
                self.cardinality, len(goal),
            )
        logger.info(
            "Key space: %d keys  attributes=%s  sizes=%s",
            len(goal), self._attributes.names(), list(self._product.sizes),
        )
        return goal
