"""
Unit Tests for the Variant Resolver

1. Product variant resolution (id, attribute set, SKU fallback)
2. Raw item pins (by id, by combination, unresolved)
3. Available stock with aggregate fallback
"""
import pytest
from decimal import Decimal

from app.exceptions import NotFoundError
from app.services.variant_resolver import (
    ByAttributes,
    ById,
    VariantSelector,
    available_stock,
    describe_pin,
    pin_from_line,
    resolve_product_variant,
    resolve_raw_item_variant,
)
from tests.factories import create_test_product, create_test_raw_item


@pytest.fixture
def shirt(db):
    product, variant = create_test_product(
        db,
        attributes=[{"name": "Size", "value": "M"}, {"name": "Color", "value": "Blue"}],
        extra_variants=[[{"name": "Size", "value": "L"}, {"name": "Color", "value": "Blue"}]],
    )
    return product


class TestResolveProductVariant:

    @pytest.mark.unit
    def test_resolves_by_id(self, shirt):
        target = shirt.variants[1]
        selector = VariantSelector.build(variant_id=target.id)

        assert resolve_product_variant(shirt, selector) is target

    @pytest.mark.unit
    def test_resolves_by_attributes_in_any_order(self, shirt):
        selector = VariantSelector.build(
            attributes=[{"name": "Color", "value": "Blue"}, {"name": "Size", "value": "L"}]
        )

        assert resolve_product_variant(shirt, selector) is shirt.variants[1]

    @pytest.mark.unit
    def test_attribute_subset_does_not_match(self, shirt):
        selector = VariantSelector.build(attributes=[{"name": "Size", "value": "L"}])

        with pytest.raises(NotFoundError):
            resolve_product_variant(shirt, selector)

    @pytest.mark.unit
    def test_falls_back_to_sku(self, shirt):
        target = shirt.variants[0]
        selector = VariantSelector.build(variant_id=target.sku)

        assert resolve_product_variant(shirt, selector) is target

    @pytest.mark.unit
    def test_unknown_id_with_matching_attributes_uses_attributes(self, shirt):
        selector = VariantSelector.build(
            variant_id=99999,
            attributes=[{"name": "Size", "value": "M"}, {"name": "Color", "value": "Blue"}],
        )

        assert resolve_product_variant(shirt, selector) is shirt.variants[0]

    @pytest.mark.unit
    def test_no_match_raises_not_found(self, shirt):
        selector = VariantSelector.build(variant_id="does-not-exist")

        with pytest.raises(NotFoundError) as exc_info:
            resolve_product_variant(shirt, selector)
        assert exc_info.value.details["product_id"] == shirt.id


class TestRawItemPins:

    @pytest.mark.unit
    def test_id_wins_over_combination(self):
        assert pin_from_line(5, ["Blue"]) == ById(5)
        assert pin_from_line(None, ["Blue", "150cm"]) == ByAttributes(("Blue", "150cm"))
        assert pin_from_line(None, None) is None
        assert pin_from_line(None, []) is None

    @pytest.mark.unit
    def test_describe_pin(self):
        assert describe_pin(ByAttributes(("Blue", "150cm"))) == "Blue • 150cm"
        assert describe_pin(ById(7)) == "Variant ID: 7"
        assert describe_pin(None) is None

    @pytest.mark.unit
    def test_combination_match_is_positional_and_exact_length(self, db):
        fabric = create_test_raw_item(
            db,
            quantity="30",
            variants=[(["Blue", "150cm"], "10"), (["Blue"], "20")],
        )

        assert resolve_raw_item_variant(fabric, ByAttributes(("Blue", "150cm"))) is fabric.variants[0]
        assert resolve_raw_item_variant(fabric, ByAttributes(("Blue",))) is fabric.variants[1]
        assert resolve_raw_item_variant(fabric, ByAttributes(("150cm", "Blue"))) is None

    @pytest.mark.unit
    def test_available_stock_uses_variant_when_resolved(self, db):
        fabric = create_test_raw_item(db, quantity="30", variants=[(["Red"], "4")])

        stock, variant = available_stock(fabric, ById(fabric.variants[0].id))

        assert stock == Decimal("4")
        assert variant is fabric.variants[0]

    @pytest.mark.unit
    def test_unresolved_pin_falls_back_to_aggregate(self, db):
        fabric = create_test_raw_item(db, quantity="30", variants=[(["Red"], "4")])

        stock, variant = available_stock(fabric, ByAttributes(("Green",)))

        assert stock == Decimal("30")
        assert variant is None
