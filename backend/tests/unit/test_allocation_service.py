"""
Unit Tests for the Allocation & Split Engine

Tests:
1. Partial allocation with and without split
2. Conservation of quantities across a split
3. Rescaling always from the creation baseline
4. Reservation per line (variant-aware)
5. Rejections: bad quantity, over capacity, wrong state
"""
import pytest
from decimal import Decimal

from app.exceptions import CapacityError, InvalidStateError, ValidationError
from app.models import RawItem, StockTransaction, WorkOrder
from app.services.allocation_service import SPLIT_REASON, allocate, reserve_materials
from app.services.work_order_lifecycle import list_split_children
from tests.factories import create_test_product, create_test_raw_item, create_test_work_order, set_stock


@pytest.fixture
def scenario(db):
    """5 pieces at 2 units of Material X each, 6 units in stock"""
    material_x = create_test_raw_item(db, name="Material X", quantity="6")
    product, variant = create_test_product(
        db,
        materials=[(material_x, "2", "3.00")],
        operations=[("stitching", "lockstitch", 300)],
    )
    work_order = create_test_work_order(db, product, variant, quantity=5)
    return work_order, material_x


class TestAllocateWithSplit:

    @pytest.mark.unit
    def test_split_remaining_creates_child(self, db, scenario):
        work_order, material_x = scenario

        result = allocate(db, work_order, 3, split_remaining=True, actor="planner")
        db.commit()

        parent, child = result.work_order, result.new_work_order
        assert parent.quantity == 3
        assert parent.original_quantity == 5
        assert parent.status == "partial_allocation"
        assert parent.materials[0].quantity_required == Decimal("6")
        assert parent.materials[0].quantity_allocated == Decimal("6")
        assert parent.materials[0].allocation_status == "fully_allocated"
        assert parent.estimated_cost == Decimal("18.00")

        assert child is not None
        assert child.quantity == child.original_quantity == 2
        assert child.status == "pending"
        assert child.is_split_order is True
        assert child.parent_work_order_id == parent.id
        assert child.split_reason == SPLIT_REASON
        assert child.created_by == "planner"
        assert child.materials[0].quantity_required == Decimal("4")
        assert child.materials[0].quantity_allocated == Decimal("0")
        assert child.materials[0].allocation_status == "not_allocated"
        assert [op.operation_type for op in child.operations] == ["stitching"]
        assert child.operations[0].machine_id is None

    @pytest.mark.unit
    def test_split_conserves_quantities(self, db, scenario):
        work_order, material_x = scenario

        result = allocate(db, work_order, 3, split_remaining=True)

        assert result.work_order.quantity + result.new_work_order.quantity == 5
        assert (
            result.work_order.materials[0].quantity_required
            + result.new_work_order.materials[0].quantity_required
        ) == Decimal("10")

    @pytest.mark.unit
    def test_children_are_found_by_back_reference(self, db, scenario):
        work_order, material_x = scenario
        result = allocate(db, work_order, 3, split_remaining=True)
        db.commit()

        children = list_split_children(db, result.work_order)

        assert [c.id for c in children] == [result.new_work_order.id]

    @pytest.mark.unit
    def test_allocation_does_not_touch_stock(self, db, scenario):
        work_order, material_x = scenario

        allocate(db, work_order, 3, split_remaining=True)
        db.commit()
        db.refresh(material_x)

        assert material_x.quantity == Decimal("6")
        assert db.query(StockTransaction).count() == 0


class TestAllocateWithoutSplit:

    @pytest.mark.unit
    def test_remainder_is_dropped(self, db, scenario):
        work_order, material_x = scenario

        result = allocate(db, work_order, 3, split_remaining=False)
        db.commit()

        assert result.new_work_order is None
        assert result.work_order.quantity == 3
        assert result.work_order.status == "partial_allocation"
        assert db.query(WorkOrder).count() == 1

    @pytest.mark.unit
    def test_full_quantity_is_planned(self, db):
        material_x = create_test_raw_item(db, quantity="100")
        product, variant = create_test_product(db, materials=[(material_x, "2")])
        work_order = create_test_work_order(db, product, variant, quantity=5)

        result = allocate(db, work_order, 5, split_remaining=True)

        assert result.new_work_order is None
        assert result.work_order.status == "planned"
        assert result.work_order.materials[0].quantity_allocated == Decimal("10")


class TestRescaling:

    @pytest.mark.unit
    def test_repeated_allocation_uses_creation_baseline(self, db):
        """1/3 unit per piece must not drift over successive rescales."""
        trim = create_test_raw_item(db, quantity="1000")
        product, variant = create_test_product(db, materials=[(trim, "0.3333")])
        work_order = create_test_work_order(db, product, variant, quantity=9)
        baseline = work_order.materials[0].original_quantity_required

        for quantity in (7, 5, 8, 3, 9):
            allocate(db, work_order, min(quantity, work_order.quantity))

        # quantity can only shrink: 7, 5, 5, 3, 3
        assert work_order.quantity == 3
        assert work_order.materials[0].original_quantity_required == baseline
        assert work_order.materials[0].quantity_required == Decimal("0.9999")

    @pytest.mark.unit
    def test_reallocation_rereserves_against_current_stock(self, db, scenario):
        work_order, material_x = scenario
        allocate(db, work_order, 3)
        db.commit()

        set_stock(db, material_x, "4")

        result = allocate(db, work_order, 2)

        assert result.work_order.materials[0].quantity_required == Decimal("4")
        assert result.work_order.materials[0].quantity_allocated == Decimal("4")
        assert result.work_order.status == "partial_allocation"


class TestReservation:

    @pytest.mark.unit
    def test_pinned_line_reserves_from_variant(self, db):
        denim = create_test_raw_item(db, quantity="50", variants=[(["Indigo"], "20"), (["Black"], "30")])
        product, variant = create_test_product(db, materials=[(denim, "2", "0", ["Indigo"])])
        work_order = create_test_work_order(db, product, variant, quantity=10)

        result = allocate(db, work_order, 10)

        line = result.work_order.materials[0]
        assert line.quantity_allocated == Decimal("20")
        assert line.allocation_status == "fully_allocated"

    @pytest.mark.unit
    def test_zero_requirement_line_is_fully_allocated(self, db):
        fabric = create_test_raw_item(db, quantity="20")
        label = create_test_raw_item(db, quantity="0")
        product, variant = create_test_product(db, materials=[(fabric, "2"), (label, "0")])
        work_order = create_test_work_order(db, product, variant, quantity=5)

        result = allocate(db, work_order, 5)

        assert result.work_order.materials[1].quantity_allocated == Decimal("0")
        assert result.work_order.materials[1].allocation_status == "fully_allocated"

    @pytest.mark.unit
    def test_lines_on_one_raw_item_reserve_in_turn(self, db):
        fabric = create_test_raw_item(db, quantity="10")
        product, variant = create_test_product(db, materials=[(fabric, "1"), (fabric, "1")])
        work_order = create_test_work_order(db, product, variant, quantity=8)

        reserve_materials(db, work_order)

        body, collar = work_order.materials
        assert body.quantity_allocated == Decimal("8")
        assert body.allocation_status == "fully_allocated"
        assert collar.quantity_allocated == Decimal("2")
        assert collar.allocation_status == "partially_allocated"

    @pytest.mark.unit
    def test_shared_raw_item_is_allocated_only_up_to_combined_capacity(self, db):
        fabric = create_test_raw_item(db, quantity="10")
        product, variant = create_test_product(db, materials=[(fabric, "1"), (fabric, "1")])
        work_order = create_test_work_order(db, product, variant, quantity=8)

        with pytest.raises(CapacityError) as exc_info:
            allocate(db, work_order, 8)
        assert exc_info.value.details["max_producible"] == 5

        allocate(db, work_order, 5)
        db.commit()

        assert [m.quantity_allocated for m in work_order.materials] == [Decimal("5"), Decimal("5")]
        assert all(m.allocation_status == "fully_allocated" for m in work_order.materials)


class TestAllocationErrors:

    @pytest.mark.unit
    @pytest.mark.parametrize("quantity", [0, -1, 6])
    def test_quantity_out_of_range(self, db, scenario, quantity):
        work_order, material_x = scenario

        with pytest.raises(ValidationError):
            allocate(db, work_order, quantity)

        assert work_order.quantity == 5

    @pytest.mark.unit
    def test_over_capacity_is_rejected_without_changes(self, db, scenario):
        work_order, material_x = scenario

        with pytest.raises(CapacityError) as exc_info:
            allocate(db, work_order, 4, split_remaining=True)

        details = exc_info.value.details
        assert details["requested"] == 4
        assert details["max_producible"] == 3
        assert details["shortfall"] == 1
        assert details["blocking_materials"][0]["raw_item_id"] == material_x.id
        db.rollback()
        assert db.query(WorkOrder).count() == 1
        assert db.query(WorkOrder).first().quantity == 5

    @pytest.mark.unit
    def test_out_of_stock_blocks_any_allocation(self, db):
        material_x = create_test_raw_item(db, quantity="0")
        product, variant = create_test_product(db, materials=[(material_x, "2")])
        work_order = create_test_work_order(db, product, variant, quantity=5)

        with pytest.raises(CapacityError) as exc_info:
            allocate(db, work_order, 1)
        assert exc_info.value.details["max_producible"] == 0

    @pytest.mark.unit
    @pytest.mark.parametrize("status", ["scheduled", "in_progress", "completed", "cancelled"])
    def test_only_planning_states(self, db, scenario, status):
        work_order, material_x = scenario
        work_order.status = status
        db.commit()

        with pytest.raises(InvalidStateError):
            allocate(db, work_order, 1)

        assert db.query(RawItem).first().quantity == Decimal("6")
