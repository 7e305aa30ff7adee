"""
engine/projector.py - Map existing elements onto the abstract keys they cover.

A projector is one of two variants, chosen when the generator is configured:

* ``SingleProjector``: one element covers exactly one key.
* ``PluralProjector``: one element may cover several keys.  The default
  plural projector expands every collection-valued attribute, so a rate valid
  for products {PX, TX} in zone A covers (PX, A) and (TX, A).

Override projectors may return ``AbstractKey`` objects or plain
``{attribute name: value}`` mappings; mappings are canonicalized through the
registered key attributes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Union

from ..errors import ConfigurationError, ConsistencyError, DataError
from ..keys.abstract_key import AbstractKey
from ..keys.attribute import KeyAttributeSet
from ..search.product import CartesianProduct

logger = logging.getLogger(__name__)

KeyLike = Union[AbstractKey, Mapping[str, Any]]


@dataclass(frozen=True)
class SingleProjector:
    fn: Callable[[Any], KeyLike]


@dataclass(frozen=True)
class PluralProjector:
    fn: Callable[[Any], Iterable[KeyLike]]


Projector = Union[SingleProjector, PluralProjector]


def projector_override(
    single: Callable[[Any], KeyLike] | None = None,
    plural: Callable[[Any], Iterable[KeyLike]] | None = None,
) -> Projector:
    """Wrap exactly one of *single* / *plural* into a projector variant."""
    if (single is None) == (plural is None):
        raise ConfigurationError(
            "Either a single or a plural projector must be passed in, not both and not neither."
        )
    if single is not None:
        return SingleProjector(single)
    return PluralProjector(plural)


# ------------------------------------------------------------------ #
#  Default strategies                                                 #
# ------------------------------------------------------------------ #

def _project_single(attributes: KeyAttributeSet, element: Any) -> AbstractKey:
    values = [attribute.extract(element) for attribute in attributes]
    return attributes.key_from_values(values, source=element)


def _project_plural(attributes: KeyAttributeSet, element: Any) -> list[AbstractKey]:
    extracted = [attribute.extract(element) for attribute in attributes]
    positions = [i for i, attribute in enumerate(attributes) if attribute.is_collection]

    keys: list[AbstractKey] = []
    for combo in CartesianProduct(*(extracted[i] for i in positions)):
        values = list(extracted)
        for i, value in zip(positions, combo):
            values[i] = value
        keys.append(attributes.key_from_values(values, source=element))
    return keys


def default_projector(attributes: KeyAttributeSet) -> Projector:
    """Plural projector when any attribute is collection-valued, single otherwise."""
    if attributes.has_collection():
        return PluralProjector(partial(_project_plural, attributes))
    return SingleProjector(partial(_project_single, attributes))


# ------------------------------------------------------------------ #
#  Projection                                                         #
# ------------------------------------------------------------------ #

class ElementProjector:
    """Apply a projector variant and collect the covered key set."""

    def __init__(self, attributes: KeyAttributeSet, projector: Projector) -> None:
        if not isinstance(projector, (SingleProjector, PluralProjector)):
            raise ConfigurationError(
                f"Projector must be a SingleProjector or PluralProjector, got {type(projector).__name__}"
            )
        self._attributes = attributes
        self._projector = projector

    @property
    def is_plural(self) -> bool:
        return isinstance(self._projector, PluralProjector)

    def project(self, element: Any) -> list[AbstractKey]:
        """Keys covered by *element*, without repeats, in projection order."""
        if isinstance(self._projector, SingleProjector):
            raw = [self._projector.fn(element)]
        else:
            result = self._projector.fn(element)
            if result is None:
                raise DataError(f"Projector returned None for {element!r}", element=element)
            raw = list(result)

        keys: list[AbstractKey] = []
        seen: set[AbstractKey] = set()
        for item in raw:
            key = self._to_key(item, element)
            if key not in seen:
                seen.add(key)
                keys.append(key)
        return keys

    def _to_key(self, item: Any, element: Any) -> AbstractKey:
        if isinstance(item, AbstractKey):
            expected = tuple(self._attributes.names())
            if item.names != expected:
                raise DataError(
                    f"Projector returned a key over {item.names!r} for {element!r}, "
                    f"expected attributes {expected!r}",
                    element=element,
                )
            # rebuilt so the registered canonical mappers apply
            return self._attributes.key_from_values(
                [component.value for component in item.components], source=element,
            )
        if isinstance(item, Mapping):
            return self._attributes.key_from_mapping(item, source=element)
        raise DataError(
            f"Projector returned {type(item).__name__} for {element!r}, "
            f"expected an AbstractKey or a mapping",
            element=element,
        )

    def covered(self, elements: Iterable[Any]) -> frozenset[AbstractKey]:
        """Union of all projections.

        Raises ``ConsistencyError`` listing every key that more than one
        element covers.
        """
        contributors: dict[AbstractKey, list[Any]] = {}
        n_elements = 0
        for element in elements:
            n_elements += 1
            for key in self.project(element):
                contributors.setdefault(key, []).append(element)

        conflicts = {key: found for key, found in contributors.items() if len(found) > 1}
        if conflicts:
            details = "; ".join(
                f"{key!r} covered by {found!r}" for key, found in conflicts.items()
            )
            raise ConsistencyError(
                f"{len(conflicts)} key(s) covered by more than one existing element: {details}",
                conflicts=conflicts,
            )

        logger.debug("Projected %d existing elements onto %d keys", n_elements, len(contributors))
        return frozenset(contributors)
