"""
engine/generator.py - The completion engine.

Design notes
------------
* **Completion** - ``Missing = goal - Covered``.  The goal is the key space
  of all attribute combinations; Covered is the union of what the existing
  elements project to.  Every missing key is handed to the element factory.
* **Merging** - with ``MergeType.MERGED`` the generated set runs through the
  reducer chain, coarsening step by step (e.g. first across zones, then
  across products).
* **Immutability** - the generator deep-copies the existing elements it is
  given and never mutates its own state, so ``generate_missing_elements`` can
  be called any number of times and returns a fresh set each time.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Iterable, Union

from ..config import GeneratorConfig
from ..errors import ConfigurationError, ConsistencyError
from ..keys.abstract_key import AbstractKey
from ..search.product import subtract
from .projector import ElementProjector
from .reducer import ReducerChain

logger = logging.getLogger(__name__)


class MergeType(Enum):
    MERGED = auto()
    NOT_MERGED = auto()


@dataclass(frozen=True)
class KeyFactory:
    """Build one element from one missing key."""

    fn: Callable[[AbstractKey], Any]

    def create(self, missing: frozenset[AbstractKey], key: AbstractKey) -> Any:
        return self.fn(key)


@dataclass(frozen=True)
class SiblingAwareFactory:
    """Build one element from one missing key, seeing every other missing key too."""

    fn: Callable[[frozenset[AbstractKey], AbstractKey], Any]

    def create(self, missing: frozenset[AbstractKey], key: AbstractKey) -> Any:
        return self.fn(missing, key)


ElementFactory = Union[KeyFactory, SiblingAwareFactory]


class ElementGenerator:
    """Fills the gaps of a key space with generated elements.

    Usually obtained from ``ElementGeneratorBuilder.build()``.

    Parameters
    ----------
    existing_elements:
        Elements already present.  Required; may be empty.  They are
        deep-copied on construction, so each must support ``copy.deepcopy``
        (elements holding locks or open files do not).
    goal:
        Every key that should be covered, in enumeration order.
    factory:
        ``KeyFactory`` or ``SiblingAwareFactory``.
    projector:
        Maps existing elements onto the keys they cover.
    reducers:
        Applied in order when merging.
    config:
        Optional runtime checks and limits.
    """

    def __init__(
        self,
        existing_elements: Iterable[Any],
        goal: Iterable[AbstractKey],
        factory: ElementFactory,
        projector: ElementProjector,
        reducers: ReducerChain | None = None,
        config: GeneratorConfig | None = None,
    ) -> None:
        if existing_elements is None:
            raise ConfigurationError("Existing elements are required (pass an empty collection for none)")
        if goal is None:
            raise ConfigurationError("A goal key space is required")
        if not isinstance(factory, (KeyFactory, SiblingAwareFactory)):
            raise ConfigurationError("An element factory is required")
        if not isinstance(projector, ElementProjector):
            raise ConfigurationError("An element projector is required")

        try:
            self._existing: tuple[Any, ...] = tuple(copy.deepcopy(list(existing_elements)))
        except TypeError as exc:
            raise ConfigurationError(f"Existing elements must support copy.deepcopy: {exc}") from exc
        self._goal_order: tuple[AbstractKey, ...] = tuple(dict.fromkeys(goal))
        self._goal: frozenset[AbstractKey] = frozenset(self._goal_order)
        self._factory = factory
        self._projector = projector
        self._reducers = reducers if reducers is not None else ReducerChain()
        self._config = config if config is not None else GeneratorConfig()

    # ---------------------------------------------------------------- #
    #  Read-only views                                                 #
    # ---------------------------------------------------------------- #

    @property
    def goal(self) -> frozenset[AbstractKey]:
        return self._goal

    @property
    def existing_elements(self) -> tuple[Any, ...]:
        return self._existing

    @property
    def factory(self) -> ElementFactory:
        return self._factory

    @property
    def reducers(self) -> ReducerChain:
        return self._reducers

    @property
    def config(self) -> GeneratorConfig:
        return self._config

    def project(self, element: Any) -> list[AbstractKey]:
        """Keys covered by *element* under the configured projector."""
        return self._projector.project(element)

    def covered_keys(self) -> frozenset[AbstractKey]:
        return self._projector.covered(self._existing)

    def missing_keys(self) -> frozenset[AbstractKey]:
        return frozenset(subtract(self._goal, self.covered_keys()))

    # ---------------------------------------------------------------- #
    #  Generation                                                      #
    # ---------------------------------------------------------------- #

    def generate_missing_elements(self, merge: MergeType = MergeType.NOT_MERGED) -> set[Any]:
        """Create one element per missing key, optionally merged by the reducer chain.

        Raises ``DataError`` or ``ConsistencyError`` before any element is
        returned when the existing elements are unusable.
        """
        missing = self.missing_keys()
        generated: set[Any] = set()
        for key in self._goal_order:
            if key not in missing:
                continue
            element = self._factory.create(missing, key)
            if self._config.verify_round_trip:
                self._check_round_trip(key, element)
            generated.add(element)

        logger.info(
            "Generated %d elements for %d missing of %d keys  (existing=%d)",
            len(generated), len(missing), len(self._goal), len(self._existing),
        )

        if merge is MergeType.MERGED and len(self._reducers) > 0:
            trials = self._config.merge_order_trials if self._config.verify_merge_order else 0
            merged = self._reducers.apply(generated, order_trials=trials, seed=self._config.seed)
            logger.info(
                "Merged %d generated elements into %d  (reducers=%d)",
                len(generated), len(merged), len(self._reducers),
            )
            return merged
        return generated

    def _check_round_trip(self, key: AbstractKey, element: Any) -> None:
        if key not in self._projector.project(element):
            raise ConsistencyError(
                f"Element {element!r} generated for {key!r} does not project back onto it; "
                f"the factory and the key attribute extractors disagree."
            )
