"""
matrix.py - JSON-described coverage matrices.

A matrix file declares the key attributes and the rows that already exist::

    {
      "attributes": [
        {"name": "chargeCode", "domain": ["5500", "5510"]},
        {"name": "product", "domain": ["PX", "TX", "XX"], "collection": true}
      ],
      "existing": [
        {"chargeCode": "5500", "product": ["PX", "TX"]},
        {"chargeCode": "5510", "product": ["PX"]}
      ]
    }

Rows are immutable ``Row`` objects so the engine can collect them into sets.
JSON lists become frozensets.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Sequence

from .config import CliConfig, GeneratorConfig
from .engine.builder import ElementGeneratorBuilder
from .engine.generator import ElementGenerator, MergeType
from .engine.reducer import Reducer
from .errors import ConfigurationError
from .keys.abstract_key import AbstractKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatrixAttribute:
    name: str
    domain: tuple[Any, ...]
    collection: bool = False


@dataclass(frozen=True)
class Row:
    """A hashable ``{attribute: value}`` record; multi-valued cells are frozensets."""

    cells: tuple[tuple[str, Any], ...]

    @classmethod
    def from_mapping(cls, mapping: dict[str, Any]) -> Row:
        return cls(tuple((name, _freeze(value)) for name, value in mapping.items()))

    def get(self, name: str, default: Any = None) -> Any:
        for cell_name, value in self.cells:
            if cell_name == name:
                return value
        return default

    def __getitem__(self, name: str) -> Any:
        value = self.get(name, _MISSING)
        if value is _MISSING:
            raise KeyError(name)
        return value

    def as_dict(self) -> dict[str, Any]:
        """JSON-ready dict; frozensets become sorted lists."""
        return {
            name: sorted(value, key=str) if isinstance(value, frozenset) else value
            for name, value in self.cells
        }


@dataclass(frozen=True)
class Matrix:
    attributes: tuple[MatrixAttribute, ...]
    existing: tuple[Row, ...]

    @property
    def names(self) -> list[str]:
        return [a.name for a in self.attributes]


_MISSING = object()


def _freeze(value: Any) -> Any:
    if isinstance(value, list):
        return frozenset(value)
    if isinstance(value, dict):
        raise ConfigurationError(f"Nested objects are not supported as cell values: {value!r}")
    return value


# ------------------------------------------------------------------ #
#  Loading                                                            #
# ------------------------------------------------------------------ #

def parse_matrix(data: dict[str, Any]) -> Matrix:
    """Validate the decoded JSON document and turn it into a ``Matrix``."""
    if not isinstance(data, dict):
        raise ConfigurationError("Matrix document must be a JSON object")
    raw_attributes = data.get("attributes")
    if not isinstance(raw_attributes, list) or not raw_attributes:
        raise ConfigurationError("Matrix document needs a non-empty 'attributes' list")

    attributes = []
    for raw in raw_attributes:
        if not isinstance(raw, dict) or "name" not in raw:
            raise ConfigurationError(f"Attribute entry needs a 'name': {raw!r}")
        domain = raw.get("domain")
        if not isinstance(domain, list):
            raise ConfigurationError(f"Attribute '{raw['name']}' needs a 'domain' list")
        attributes.append(
            MatrixAttribute(raw["name"], tuple(domain), bool(raw.get("collection", False)))
        )

    raw_existing = data.get("existing", [])
    if not isinstance(raw_existing, list):
        raise ConfigurationError("'existing' must be a list of row objects")
    existing = []
    for raw in raw_existing:
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Existing row must be an object: {raw!r}")
        existing.append(Row.from_mapping(raw))

    return Matrix(tuple(attributes), tuple(existing))


def load_matrix(path: str | Path) -> Matrix:
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except OSError as exc:
        raise ConfigurationError(f"Cannot read matrix file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Matrix file {path} is not valid JSON: {exc}") from exc
    matrix = parse_matrix(data)
    logger.info(
        "Matrix loaded <- %s  (attributes=%s, existing rows=%d)",
        path, matrix.names, len(matrix.existing),
    )
    return matrix


# ------------------------------------------------------------------ #
#  Engine wiring                                                      #
# ------------------------------------------------------------------ #

def _as_set(value: Any) -> frozenset:
    return value if isinstance(value, frozenset) else frozenset([value])


def merge_rows_by(names: Sequence[str], attribute_order: Sequence[str]) -> Reducer:
    """Reducer grouping rows on *names* and unioning every other cell."""
    unknown = [n for n in names if n not in attribute_order]
    if unknown:
        raise ConfigurationError(f"Cannot merge by unknown attribute(s) {unknown}")
    group = tuple(names)

    def grouping_key(row: Row) -> tuple:
        return tuple(row[n] for n in group)

    def merge(a: Row, b: Row) -> Row:
        cells = []
        for name in attribute_order:
            left, right = a[name], b[name]
            if name in group or left == right:
                cells.append((name, left))
            else:
                cells.append((name, _as_set(left) | _as_set(right)))
        return Row(tuple(cells))

    return Reducer(grouping_key, merge)


def build_generator(
    matrix: Matrix,
    merge_by: Iterable[Sequence[str]] = (),
    config: GeneratorConfig | None = None,
) -> ElementGenerator:
    names = matrix.names
    collection_names = {a.name for a in matrix.attributes if a.collection}

    def factory(key: AbstractKey) -> Row:
        return Row(tuple(
            (name, frozenset([key[name]]) if name in collection_names else key[name])
            for name in names
        ))

    builder = ElementGeneratorBuilder().with_existing_elements(matrix.existing)
    for attribute in matrix.attributes:
        extractor = _cell_extractor(attribute.name)
        if attribute.collection:
            builder.with_collection_property(attribute.name, attribute.domain, extractor)
        else:
            builder.with_single_value_property(attribute.name, attribute.domain, extractor)
    builder.with_element_factory(factory)
    builder.with_reducers(*(merge_rows_by(group, names) for group in merge_by))
    if config is not None:
        builder.with_config(config)
    return builder.build()


def _cell_extractor(name: str):
    def extract(row: Row) -> Any:
        return row.get(name)
    return extract


def sort_rows(rows: Iterable[Row], names: Sequence[str]) -> list[dict[str, Any]]:
    """Deterministic JSON-ready ordering of generated rows."""
    dicts = [row.as_dict() for row in rows]
    return sorted(dicts, key=lambda d: [str(d.get(n)) for n in names])


def complete_matrix(cfg: CliConfig) -> list[dict[str, Any]]:
    """Load the matrix, generate its missing rows, and return them sorted."""
    matrix = load_matrix(cfg.matrix_path)
    generator = build_generator(matrix, cfg.merge_by, cfg.generator)
    merge = MergeType.MERGED if cfg.merge_by else MergeType.NOT_MERGED
    rows = generator.generate_missing_elements(merge)
    return sort_rows(rows, matrix.names)
