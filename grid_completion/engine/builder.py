"""engine/builder.py - One-shot configuration of an ``ElementGenerator``."""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import Any, Callable, Hashable, Iterable

from ..config import GeneratorConfig
from ..errors import ConfigurationError
from ..keys.abstract_key import AbstractKey
from ..keys.attribute import KeyAttribute, KeyAttributeSet
from ..search.space import KeySpace
from .generator import ElementFactory, ElementGenerator, KeyFactory, SiblingAwareFactory
from .projector import ElementProjector, PluralProjector, Projector, SingleProjector, default_projector
from .reducer import Reducer, ReducerChain

logger = logging.getLogger(__name__)


class BuilderState(Enum):
    UNCONFIGURED = auto()
    CONFIGURING = auto()
    BUILT = auto()


class ElementGeneratorBuilder:
    """Collects attributes, elements, factory and reducers, then builds once.

    Options may be given in any order.  After ``build()`` the builder is
    spent: further mutation or a second ``build()`` raises
    ``ConfigurationError``.

    Example
    -------
    ::

        generator = (
            ElementGeneratorBuilder()
            .with_existing_elements(rates)
            .with_single_value_property("chargeCode", codes, lambda r: r.charge_code)
            .with_collection_property("product", Product, lambda r: r.products)
            .with_element_factory(lambda k: Rate(k["chargeCode"], {k["product"]}))
            .with_reducer(lambda r: r.charge_code, merge_products)
            .build()
        )
        generator.generate_missing_elements(MergeType.MERGED)
    """

    def __init__(self) -> None:
        self._state = BuilderState.UNCONFIGURED
        self._attributes = KeyAttributeSet()
        self._existing: Iterable[Any] | None = None
        self._factory: ElementFactory | None = None
        self._reducers: list[Reducer] = []
        self._projector: Projector | None = None
        self._config = GeneratorConfig()

    @property
    def state(self) -> BuilderState:
        return self._state

    def _configuring(self) -> None:
        if self._state is BuilderState.BUILT:
            raise ConfigurationError("Builder has already built a generator and cannot be changed")
        self._state = BuilderState.CONFIGURING

    # ---------------------------------------------------------------- #
    #  Options                                                         #
    # ---------------------------------------------------------------- #

    def with_existing_elements(self, elements: Iterable[Any]) -> ElementGeneratorBuilder:
        self._configuring()
        if elements is None:
            raise ConfigurationError("Existing elements must not be None (pass an empty collection for none)")
        self._existing = list(elements)
        return self

    def with_single_value_property(
        self,
        name: str,
        domain: Iterable[Any],
        extractor: Callable[[Any], Any],
        to_string: Callable[[Any], str] = str,
    ) -> ElementGeneratorBuilder:
        self._configuring()
        self._attributes.register(KeyAttribute(name, domain, extractor, False, to_string))
        return self

    def with_collection_property(
        self,
        name: str,
        domain: Iterable[Any],
        extractor: Callable[[Any], Iterable[Any]],
        to_string: Callable[[Any], str] = str,
    ) -> ElementGeneratorBuilder:
        self._configuring()
        self._attributes.register(KeyAttribute(name, domain, extractor, True, to_string))
        return self

    def with_element_factory(self, fn: Callable[[AbstractKey], Any]) -> ElementGeneratorBuilder:
        self._configuring()
        self._factory = KeyFactory(self._require_callable(fn, "element factory"))
        return self

    def with_sibling_aware_factory(
        self, fn: Callable[[frozenset[AbstractKey], AbstractKey], Any]
    ) -> ElementGeneratorBuilder:
        self._configuring()
        self._factory = SiblingAwareFactory(self._require_callable(fn, "element factory"))
        return self

    def with_reducer(
        self,
        grouping_key: Callable[[Any], Hashable],
        merge: Callable[[Any, Any], Any],
    ) -> ElementGeneratorBuilder:
        self._configuring()
        self._reducers.append(Reducer(grouping_key, merge))
        return self

    def with_reducers(self, *reducers: Reducer) -> ElementGeneratorBuilder:
        self._configuring()
        for reducer in reducers:
            if not isinstance(reducer, Reducer):
                raise ConfigurationError(f"Expected a Reducer, got {type(reducer).__name__}")
        self._reducers.extend(reducers)
        return self

    def with_overridden_projector(self, override: Projector) -> ElementGeneratorBuilder:
        """Replace the default projector; see ``projector_override``."""
        self._configuring()
        if not isinstance(override, (SingleProjector, PluralProjector)):
            raise ConfigurationError(
                "Projector override must be built with projector_override(single=...) "
                "or projector_override(plural=...)"
            )
        self._projector = override
        return self

    def with_config(self, config: GeneratorConfig) -> ElementGeneratorBuilder:
        self._configuring()
        self._config = config
        return self

    @staticmethod
    def _require_callable(fn: Any, what: str) -> Any:
        if fn is None or not callable(fn):
            raise ConfigurationError(f"The {what} must be callable, got {fn!r}")
        return fn

    # ---------------------------------------------------------------- #
    #  Build                                                           #
    # ---------------------------------------------------------------- #

    def build(self) -> ElementGenerator:
        if self._state is BuilderState.BUILT:
            raise ConfigurationError("Builder has already built a generator")
        if self._existing is None:
            raise ConfigurationError("Existing elements are required (use with_existing_elements)")
        if self._factory is None:
            raise ConfigurationError("An element factory is required (use with_element_factory)")

        attributes = self._attributes.copy()
        key_space = KeySpace(attributes, max_size=self._config.max_key_space_size)
        projector = self._projector if self._projector is not None else default_projector(attributes)

        generator = ElementGenerator(
            existing_elements=self._existing,
            goal=key_space.goal(),
            factory=self._factory,
            projector=ElementProjector(attributes, projector),
            reducers=ReducerChain(self._reducers),
            config=self._config,
        )
        self._state = BuilderState.BUILT
        logger.debug(
            "Built generator  attributes=%s  projector=%s  reducers=%d",
            attributes.names(), type(projector).__name__, len(self._reducers),
        )
        return generator
