"""Tests for projecting existing elements onto abstract keys."""

import pytest

from grid_completion.engine.projector import (
    ElementProjector,
    PluralProjector,
    SingleProjector,
    default_projector,
    projector_override,
)
from grid_completion.errors import ConfigurationError, ConsistencyError, DataError
from grid_completion.keys.abstract_key import AbstractKey, KeyComponent
from grid_completion.keys.attribute import KeyAttribute, KeyAttributeSet

from rate_model import ChargeCode, Product, Zone, rate


def _rate_attrs(with_zones: bool = True) -> KeyAttributeSet:
    attrs = KeyAttributeSet([
        KeyAttribute(
            "chargeCode",
            [ChargeCode("5500"), ChargeCode("5510")],
            lambda r: r.charge_code,
            to_canonical=lambda c: c.code,
        ),
        KeyAttribute("product", list(Product), lambda r: r.products, is_collection=True),
    ])
    if with_zones:
        attrs.register(KeyAttribute("zone", list(Zone), lambda r: r.zones, is_collection=True))
    return attrs


def _canon(keys):
    return {k.canonical for k in keys}


def test_default_projector_is_single_without_collections():
    attrs = KeyAttributeSet([KeyAttribute("x", [1, 2], lambda e: e)])
    assert isinstance(default_projector(attrs), SingleProjector)
    assert isinstance(default_projector(_rate_attrs()), PluralProjector)


def test_single_projection():
    attrs = KeyAttributeSet([
        KeyAttribute("code", ["5500"], lambda e: e[0]),
        KeyAttribute("zone", ["A", "B"], lambda e: e[1]),
    ])
    projector = ElementProjector(attrs, default_projector(attrs))
    keys = projector.project(("5500", "B"))
    assert _canon(keys) == {("5500", "B")}
    assert keys[0].source == ("5500", "B")
    assert not projector.is_plural


def test_collection_attributes_expand_to_sub_product():
    attrs = _rate_attrs()
    projector = ElementProjector(attrs, default_projector(attrs))
    keys = projector.project(rate("5500", [Product.PX, Product.TX], [Zone.A]))
    assert _canon(keys) == {
        ("5500", "Product.PX", "Zone.A"),
        ("5500", "Product.TX", "Zone.A"),
    }
    assert all(not k.is_generated for k in keys)
    assert projector.is_plural


def test_covered_is_union_of_projections():
    attrs = _rate_attrs(with_zones=False)
    projector = ElementProjector(attrs, default_projector(attrs))
    covered = projector.covered([
        rate("5500", [Product.PX, Product.TX]),
        rate("5510", [Product.PX]),
    ])
    assert _canon(covered) == {
        ("5500", "Product.PX"),
        ("5500", "Product.TX"),
        ("5510", "Product.PX"),
    }


def test_overlapping_elements_raise_consistency_error():
    attrs = _rate_attrs(with_zones=False)
    projector = ElementProjector(attrs, default_projector(attrs))
    first = rate("5500", [Product.PX, Product.TX])
    second = rate("5500", [Product.PX])
    with pytest.raises(ConsistencyError) as excinfo:
        projector.covered([first, second])

    conflicts = excinfo.value.conflicts
    assert [k.canonical for k in conflicts] == [("5500", "Product.PX")]
    assert list(conflicts.values())[0] == [first, second]
    assert "5500" in str(excinfo.value)


def test_repeated_value_inside_one_element_is_not_a_conflict():
    attrs = _rate_attrs(with_zones=False)
    projector = ElementProjector(attrs, default_projector(attrs))
    element = rate("5500", [Product.PX])
    object.__setattr__(element, "products", (Product.PX, Product.PX))
    assert len(projector.covered([element])) == 1


def test_empty_collection_raises_data_error():
    attrs = _rate_attrs(with_zones=False)
    projector = ElementProjector(attrs, default_projector(attrs))
    bad = rate("5510")
    with pytest.raises(DataError) as excinfo:
        projector.covered([rate("5500", [Product.PX]), bad])
    assert excinfo.value.element == bad
    assert excinfo.value.attribute == "product"


def test_override_may_return_mappings():
    attrs = _rate_attrs(with_zones=False)

    def all_products_when_empty(r):
        products = r.products or set(Product)
        return [{"chargeCode": r.charge_code, "product": p} for p in products]

    projector = ElementProjector(attrs, projector_override(plural=all_products_when_empty))
    assert len(projector.project(rate("5510"))) == 3


def test_single_override_with_default_zone():
    attrs = KeyAttributeSet([
        KeyAttribute("code", ["5500"], lambda e: e[0]),
        KeyAttribute("zone", ["A", "B"], lambda e: e[1]),
    ])
    override = projector_override(single=lambda e: {"code": e[0], "zone": e[1] or "A"})
    projector = ElementProjector(attrs, override)
    assert _canon(projector.project(("5500", None))) == {("5500", "A")}


@pytest.mark.parametrize("result", [None, [42]])
def test_override_returning_garbage_is_data_error(result):
    attrs = _rate_attrs(with_zones=False)
    projector = ElementProjector(attrs, projector_override(plural=lambda r: result))
    with pytest.raises(DataError):
        projector.project(rate("5500", [Product.PX]))


def test_projector_override_needs_exactly_one_form():
    with pytest.raises(ConfigurationError):
        projector_override()
    with pytest.raises(ConfigurationError):
        projector_override(single=lambda e: e, plural=lambda e: [e])


def test_projector_must_be_a_variant():
    with pytest.raises(ConfigurationError):
        ElementProjector(_rate_attrs(), lambda e: e)


def _code_zone_attrs() -> KeyAttributeSet:
    return KeyAttributeSet([
        KeyAttribute("code", ["5500"], lambda e: e[0]),
        KeyAttribute("zone", ["A", "B"], lambda e: e[1]),
    ])


@pytest.mark.parametrize(
    "components",
    [
        (KeyComponent("code", "5500", "5500"),),
        (KeyComponent("zone", "A", "A"), KeyComponent("code", "5500", "5500")),
        (KeyComponent("code", "5500", "5500"), KeyComponent("area", "A", "A")),
    ],
)
def test_override_key_with_wrong_attributes_is_data_error(components):
    override = projector_override(single=lambda e: AbstractKey(components))
    projector = ElementProjector(_code_zone_attrs(), override)
    element = ("5500", "A")
    with pytest.raises(DataError) as excinfo:
        projector.project(element)
    assert excinfo.value.element == element


def test_override_key_is_recanonicalized():
    attrs = KeyAttributeSet([
        KeyAttribute("chargeCode", [ChargeCode("5500")], lambda r: r.charge_code, to_canonical=lambda c: c.code),
    ])
    stale = AbstractKey((KeyComponent("chargeCode", "not-a-code", ChargeCode("5500")),))
    projector = ElementProjector(attrs, projector_override(single=lambda r: stale))
    (key,) = projector.project(rate("5500"))
    assert key.canonical == ("5500",)
    assert key == attrs.key_from_values([ChargeCode("5500")])
    assert key.source == rate("5500")
