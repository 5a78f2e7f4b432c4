"""
Unit Tests for the Capacity Calculator

Tests:
1. Per-material maximum and overall maximum producible
2. Boundary cases (exact stock, zero stock, zero requirement)
3. Variant-pinned stock and the aggregate fallback
4. Read-only: no stock or work order mutation
"""
import pytest
from decimal import Decimal

from app.services.capacity_service import calculate_capacity, max_units_for
from tests.factories import create_test_product, create_test_raw_item, create_test_work_order


class TestMaxUnits:

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "stock, per_unit, expected",
        [
            ("6", "2", 3),
            ("7", "2", 3),
            ("10", "2", 5),
            ("0", "2", 0),
            ("-1", "2", 0),
            ("1.9999", "2", 0),
            ("5", "0", None),
        ],
    )
    def test_floor_of_stock_over_per_unit(self, stock, per_unit, expected):
        assert max_units_for(Decimal(stock), Decimal(per_unit)) == expected


class TestCalculateCapacity:

    @pytest.mark.unit
    def test_partial_capacity(self, db):
        """10 units of X needed for 5 pieces, 6 in stock -> 3 producible"""
        material_x = create_test_raw_item(db, name="Material X", quantity="6")
        product, variant = create_test_product(db, materials=[(material_x, "2")])
        work_order = create_test_work_order(db, product, variant, quantity=5)

        result = calculate_capacity(db, work_order)

        assert result.max_producible == 3
        assert result.can_produce_full is False
        line = result.materials[0]
        assert line.quantity_required == Decimal("10")
        assert line.required_per_unit == Decimal("2")
        assert line.available_stock == Decimal("6")
        assert line.max_units == 3
        assert line.status == "partial"
        assert [m.raw_item_id for m in result.limiting_materials] == [material_x.id]

    @pytest.mark.unit
    def test_exact_stock_is_sufficient(self, db):
        material_x = create_test_raw_item(db, quantity="10")
        product, variant = create_test_product(db, materials=[(material_x, "2")])
        work_order = create_test_work_order(db, product, variant, quantity=5)

        result = calculate_capacity(db, work_order)

        assert result.max_producible == 5
        assert result.can_produce_full is True
        assert result.materials[0].status == "sufficient"

    @pytest.mark.unit
    def test_surplus_is_capped_at_order_quantity(self, db):
        material_x = create_test_raw_item(db, quantity="1000")
        product, variant = create_test_product(db, materials=[(material_x, "2")])
        work_order = create_test_work_order(db, product, variant, quantity=5)

        assert calculate_capacity(db, work_order).max_producible == 5

    @pytest.mark.unit
    def test_out_of_stock_material_blocks_everything(self, db):
        plenty = create_test_raw_item(db, quantity="500")
        none_left = create_test_raw_item(db, quantity="0")
        product, variant = create_test_product(db, materials=[(plenty, "1"), (none_left, "0.5")])
        work_order = create_test_work_order(db, product, variant, quantity=4)

        result = calculate_capacity(db, work_order)

        assert result.max_producible == 0
        assert result.materials[0].status == "sufficient"
        assert result.materials[1].status == "insufficient"
        assert result.materials[1].max_units == 0

    @pytest.mark.unit
    def test_minimum_over_materials(self, db):
        fabric = create_test_raw_item(db, quantity="9")      # 4 units
        thread = create_test_raw_item(db, quantity="700")    # 7 units
        product, variant = create_test_product(db, materials=[(fabric, "2"), (thread, "100")])
        work_order = create_test_work_order(db, product, variant, quantity=10)

        result = calculate_capacity(db, work_order)

        assert result.max_producible == 4
        assert [m.max_units for m in result.materials] == [4, 7]

    @pytest.mark.unit
    def test_zero_requirement_does_not_constrain(self, db):
        fabric = create_test_raw_item(db, quantity="20")
        label = create_test_raw_item(db, quantity="0")
        product, variant = create_test_product(db, materials=[(fabric, "2"), (label, "0")])
        work_order = create_test_work_order(db, product, variant, quantity=5)

        result = calculate_capacity(db, work_order)

        assert result.max_producible == 5
        assert result.materials[1].max_units is None
        assert result.materials[1].status == "sufficient"

    @pytest.mark.unit
    def test_work_order_without_materials(self, db):
        product, variant = create_test_product(db, materials=[])
        work_order = create_test_work_order(db, product, variant, quantity=7)

        result = calculate_capacity(db, work_order)

        assert result.max_producible == 7
        assert result.materials == []

    @pytest.mark.unit
    def test_pinned_variant_stock_is_used(self, db):
        denim = create_test_raw_item(
            db, quantity="100", variants=[(["Indigo"], "3"), (["Black"], "97")]
        )
        product, variant = create_test_product(db, materials=[(denim, "1", "0", ["Indigo"])])
        work_order = create_test_work_order(db, product, variant, quantity=5)

        result = calculate_capacity(db, work_order)

        line = result.materials[0]
        assert result.max_producible == 3
        assert line.variant_resolved is True
        assert line.raw_item_variant_id == denim.variants[0].id
        assert line.variant_label == "Indigo"

    @pytest.mark.unit
    def test_unresolved_pin_uses_aggregate_stock(self, db):
        denim = create_test_raw_item(db, quantity="100", variants=[(["Indigo"], "3")])
        product, variant = create_test_product(db, materials=[(denim, "1", "0", ["Olive"])])
        work_order = create_test_work_order(db, product, variant, quantity=5)

        result = calculate_capacity(db, work_order)

        assert result.max_producible == 5
        assert result.materials[0].variant_resolved is False
        assert result.materials[0].available_stock == Decimal("100")

    @pytest.mark.unit
    def test_is_read_only_and_repeatable(self, db):
        material_x = create_test_raw_item(db, quantity="6")
        product, variant = create_test_product(db, materials=[(material_x, "2")])
        work_order = create_test_work_order(db, product, variant, quantity=5)

        first = calculate_capacity(db, work_order)
        second = calculate_capacity(db, work_order)
        db.refresh(material_x)
        db.refresh(work_order)

        assert first.max_producible == second.max_producible == 3
        assert material_x.quantity == Decimal("6")
        assert work_order.quantity == 5
        assert work_order.materials[0].quantity_allocated == Decimal("0")
        assert work_order.status == "pending"


class TestSharedStock:
    """Several BOM lines drawing on the same raw item"""

    @pytest.mark.unit
    def test_lines_on_one_raw_item_are_summed(self, db):
        fabric = create_test_raw_item(db, quantity="10")
        product, variant = create_test_product(db, materials=[(fabric, "1"), (fabric, "1")])
        work_order = create_test_work_order(db, product, variant, quantity=8)

        result = calculate_capacity(db, work_order)

        assert result.max_producible == 5
        assert [m.max_units for m in result.materials] == [5, 5]
        assert [m.status for m in result.materials] == ["partial", "partial"]

    @pytest.mark.unit
    def test_lines_pinned_to_one_variant_share_it(self, db):
        denim = create_test_raw_item(db, quantity="100", variants=[(["Indigo"], "6"), (["Black"], "94")])
        product, variant = create_test_product(
            db, materials=[(denim, "1", "0", ["Indigo"]), (denim, "1", "0", ["Indigo"])],
        )
        work_order = create_test_work_order(db, product, variant, quantity=5)

        assert calculate_capacity(db, work_order).max_producible == 3

    @pytest.mark.unit
    def test_pinned_and_unpinned_lines_share_the_aggregate(self, db):
        denim = create_test_raw_item(db, quantity="10", variants=[(["Indigo"], "10")])
        product, variant = create_test_product(
            db, materials=[(denim, "1", "0", ["Indigo"]), (denim, "1")],
        )
        work_order = create_test_work_order(db, product, variant, quantity=8)

        result = calculate_capacity(db, work_order)

        assert result.max_producible == 5
        assert result.materials[0].variant_resolved is True
