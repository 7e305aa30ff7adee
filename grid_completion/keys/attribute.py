"""keys/attribute.py - Key attribute metadata and the per-generator registry."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Sequence

from ..errors import ConfigurationError, DataError
from ..search.product import ABSENT, zip_padded
from .abstract_key import AbstractKey, KeyComponent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyAttribute:
    """One dimension of the key space.

    Parameters
    ----------
    name:
        Unique, non-blank attribute name.
    domain:
        Every legal value of the attribute, in enumeration order.
    extractor:
        Reads the attribute from a concrete element.  Returns one value, or an
        iterable of values when *is_collection* is set.
    is_collection:
        Whether one element may cover several values of this attribute.
    to_canonical:
        Maps a raw value to the string that identifies its key position.
    """

    name: str
    domain: tuple[Any, ...]
    extractor: Callable[[Any], Any]
    is_collection: bool = False
    to_canonical: Callable[[Any], str] = str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigurationError("Key attribute name must be a non-blank string")
        if self.domain is None:
            raise ConfigurationError(f"Key attribute '{self.name}' has no domain")
        domain = tuple(self.domain)
        if not domain:
            raise ConfigurationError(f"Key attribute '{self.name}' has an empty domain")
        if any(v is None for v in domain):
            raise ConfigurationError(f"Key attribute '{self.name}' has None in its domain")
        if not callable(self.extractor):
            raise ConfigurationError(f"Key attribute '{self.name}' needs a callable extractor")
        object.__setattr__(self, "domain", domain)
        if self.to_canonical is None:
            object.__setattr__(self, "to_canonical", str)
        elif not callable(self.to_canonical):
            raise ConfigurationError(f"Key attribute '{self.name}' needs a callable string mapper")

    def canonical(self, value: Any) -> str:
        text = self.to_canonical(value)
        if not isinstance(text, str):
            raise ConfigurationError(
                f"String mapper of key attribute '{self.name}' returned "
                f"{type(text).__name__} for {value!r}, expected str"
            )
        return text

    def component(self, value: Any) -> KeyComponent:
        return KeyComponent(self.name, self.canonical(value), value)

    def extract(self, element: Any) -> Any:
        """Read this attribute from *element*.

        Collection attributes come back as a tuple.  ``None``, an empty
        collection, or a collection holding ``None`` raise ``DataError``.
        """
        value = self.extractor(element)
        if not self.is_collection:
            if value is None:
                raise self._data_error(element, "returned None")
            return value

        if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            raise self._data_error(element, f"returned {type(value).__name__}, expected a collection")
        values = tuple(value)
        if not values:
            raise self._data_error(element, "returned an empty collection")
        if any(v is None for v in values):
            raise self._data_error(element, "returned a collection containing None")
        return values

    def _data_error(self, element: Any, problem: str) -> DataError:
        return DataError(
            f"Error while extracting key attribute '{self.name}' from {element!r}: "
            f"extractor {problem}. Key attributes must never be None, empty, "
            f"or contain None.",
            element=element,
            attribute=self.name,
        )


class KeyAttributeSet:
    """Ordered registry of the key attributes of one generator."""

    def __init__(self, attributes: Iterable[KeyAttribute] = ()) -> None:
        self._attributes: list[KeyAttribute] = []
        for attribute in attributes:
            self.register(attribute)

    def register(self, attribute: KeyAttribute) -> None:
        if any(a.name == attribute.name for a in self._attributes):
            raise ConfigurationError(f"Key attribute '{attribute.name}' already defined")
        self._attributes.append(attribute)
        logger.debug(
            "Registered key attribute %r  values=%d  collection=%s",
            attribute.name, len(attribute.domain), attribute.is_collection,
        )

    def copy(self) -> KeyAttributeSet:
        return KeyAttributeSet(self._attributes)

    # ---------------------------------------------------------------- #
    #  Introspection                                                   #
    # ---------------------------------------------------------------- #

    def __iter__(self) -> Iterator[KeyAttribute]:
        return iter(self._attributes)

    def __len__(self) -> int:
        return len(self._attributes)

    def __getitem__(self, name: str) -> KeyAttribute:
        for attribute in self._attributes:
            if attribute.name == name:
                return attribute
        raise KeyError(name)

    def names(self) -> list[str]:
        return [a.name for a in self._attributes]

    def value_ranges(self) -> list[tuple[Any, ...]]:
        return [a.domain for a in self._attributes]

    def to_string_mappers(self) -> dict[str, Callable[[Any], str]]:
        return {a.name: a.to_canonical for a in self._attributes}

    def has_collection(self) -> bool:
        return any(a.is_collection for a in self._attributes)

    # ---------------------------------------------------------------- #
    #  Key construction                                                #
    # ---------------------------------------------------------------- #

    def key_from_values(self, values: Sequence[Any], source: Any = None) -> AbstractKey:
        """Build a key from one value per attribute, in declaration order."""
        components = []
        for attribute, value in zip_padded(self._attributes, values):
            if attribute is ABSENT or value is ABSENT:
                raise DataError(
                    f"Expected {len(self._attributes)} key values, got {len(values)}: {values!r}",
                    element=source,
                )
            components.append(attribute.component(value))
        return self._key(components, source)

    def key_from_mapping(self, mapping: Mapping[str, Any], source: Any = None) -> AbstractKey:
        """Build a key from a ``{name: value}`` mapping such as an override projector returns."""
        expected = set(self.names())
        given = set(mapping)
        if given != expected:
            missing = sorted(expected - given)
            unknown = sorted(given - expected)
            raise DataError(
                f"Key mapping for {source!r} does not match the key attributes "
                f"(missing={missing}, unknown={unknown})",
                element=source,
            )
        components = []
        for attribute in self._attributes:
            value = mapping[attribute.name]
            if value is None:
                raise DataError(
                    f"Key mapping for {source!r} holds None for key attribute '{attribute.name}'",
                    element=source,
                    attribute=attribute.name,
                )
            components.append(attribute.component(value))
        return self._key(components, source)

    @staticmethod
    def _key(components: list[KeyComponent], source: Any) -> AbstractKey:
        if source is None:
            return AbstractKey(tuple(components))
        return AbstractKey(tuple(components), source=source)
