"""
Unit Tests for the Work Order lifecycle

Start/complete production, cancellation with stock return, lookups.
"""
import pytest
from decimal import Decimal

from app.exceptions import IncompletePlanningError, InvalidStateError, NotFoundError
from app.models import Machine, StockTransaction
from app.services.allocation_service import allocate
from app.services.stock_ledger import complete_planning
from app.services.work_order_lifecycle import (
    cancel_work_order,
    complete_production,
    get_work_order,
    list_work_orders,
    start_production,
)
from tests.factories import (
    assign_all_operations,
    create_test_product,
    create_test_raw_item,
    create_test_work_order,
)


@pytest.fixture
def fabric(db):
    return create_test_raw_item(db, quantity="20")


@pytest.fixture
def scheduled_order(db, fabric):
    product, variant = create_test_product(
        db, materials=[(fabric, "2")], operations=[("stitching", "lockstitch", 600)],
    )
    work_order = create_test_work_order(db, product, variant, quantity=5)
    allocate(db, work_order, 5)
    db.commit()
    assign_all_operations(db, work_order)
    complete_planning(db, work_order, actor="planner")
    db.refresh(work_order)
    return work_order


class TestProduction:

    @pytest.mark.unit
    def test_start_and_complete(self, db, scheduled_order):
        start_production(db, scheduled_order, actor="floor")
        db.commit()

        assert scheduled_order.status == "in_progress"
        assert scheduled_order.actual_start is not None

        complete_production(db, scheduled_order, actor="floor")
        db.commit()

        assert scheduled_order.status == "completed"
        assert scheduled_order.actual_end is not None
        assert all(op.status == "completed" for op in scheduled_order.operations)

    @pytest.mark.unit
    def test_cannot_start_on_a_machine_taken_out_of_service(self, db, scheduled_order):
        machine = db.get(Machine, scheduled_order.operations[0].machine_id)
        machine.status = "maintenance"
        db.commit()

        with pytest.raises(IncompletePlanningError) as exc_info:
            start_production(db, scheduled_order)

        assert exc_info.value.details["unassigned_operations"][0]["reason"] == "assigned machine is not operational"

    @pytest.mark.unit
    def test_cannot_start_before_planning_completes(self, db, fabric):
        product, variant = create_test_product(db, materials=[(fabric, "2")])
        work_order = create_test_work_order(db, product, variant, quantity=5)

        with pytest.raises(InvalidStateError):
            start_production(db, work_order)

    @pytest.mark.unit
    def test_cannot_complete_before_start(self, db, scheduled_order):
        with pytest.raises(InvalidStateError):
            complete_production(db, scheduled_order)


class TestCancellation:

    @pytest.mark.unit
    def test_cancel_scheduled_order_returns_stock(self, db, fabric, scheduled_order):
        db.refresh(fabric)
        assert fabric.quantity == Decimal("10")

        result = cancel_work_order(db, scheduled_order, actor="planner", reason="Customer withdrew")
        db.commit()

        db.refresh(fabric)
        assert fabric.quantity == Decimal("20")
        assert [line.transaction_type for line in result.returned_lines] == ["RETURN"]
        work_order = result.work_order
        assert work_order.status == "cancelled"
        assert work_order.cancelled_by == "planner"
        assert work_order.cancellation_reason == "Customer withdrew"
        assert work_order.cancelled_at is not None
        types = [t.transaction_type for t in db.query(StockTransaction).order_by(StockTransaction.id)]
        assert types == ["CONSUME", "RETURN"]

    @pytest.mark.unit
    def test_cancel_planned_order_drops_reservations(self, db, fabric):
        product, variant = create_test_product(db, materials=[(fabric, "2")])
        work_order = create_test_work_order(db, product, variant, quantity=5)
        allocate(db, work_order, 5)
        db.commit()

        result = cancel_work_order(db, work_order)
        db.commit()

        assert result.returned_lines == []
        assert work_order.materials[0].quantity_allocated == Decimal("0")
        assert work_order.materials[0].allocation_status == "not_allocated"
        assert db.query(StockTransaction).count() == 0

    @pytest.mark.unit
    def test_in_progress_order_cannot_be_cancelled(self, db, scheduled_order):
        start_production(db, scheduled_order)
        db.commit()

        with pytest.raises(InvalidStateError):
            cancel_work_order(db, scheduled_order)

    @pytest.mark.unit
    def test_cancelled_order_cannot_be_cancelled_again(self, db, fabric):
        product, variant = create_test_product(db, materials=[(fabric, "2")])
        work_order = create_test_work_order(db, product, variant, quantity=5)
        cancel_work_order(db, work_order)
        db.commit()

        with pytest.raises(InvalidStateError):
            cancel_work_order(db, work_order)


class TestLookups:

    @pytest.mark.unit
    def test_get_missing_work_order(self, db):
        with pytest.raises(NotFoundError):
            get_work_order(db, 31337)

    @pytest.mark.unit
    def test_list_filters(self, db, fabric):
        product, variant = create_test_product(db, materials=[(fabric, "2")])
        first = create_test_work_order(db, product, variant, quantity=5, quotation_reference="QT-A")
        create_test_work_order(db, product, variant, quantity=5, quotation_reference="QT-B")
        allocate(db, first, 5)
        db.commit()

        items, total = list_work_orders(db, status="planned")
        assert total == 1
        assert items[0].id == first.id

        items, total = list_work_orders(db, quotation_reference="QT-B")
        assert total == 1
        assert items[0].quotation_reference == "QT-B"

        items, total = list_work_orders(db, limit=1)
        assert total == 2
        assert len(items) == 1
