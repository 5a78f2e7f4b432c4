"""
Unit Tests for Operations Planning

Tests machine assignment, planned time capping and the planning view.
"""
import pytest

from app.exceptions import DuplicateError, InvalidStateError, NotFoundError, ValidationError
from app.services.operation_planning import (
    OperationAssignment,
    create_machine,
    get_planning_view,
    list_machines,
    max_allowed_seconds,
    plan_operations,
)
from tests.factories import (
    create_test_machine,
    create_test_product,
    create_test_raw_item,
    create_test_work_order,
)


@pytest.fixture
def work_order(db):
    fabric = create_test_raw_item(db, quantity="6")
    product, variant = create_test_product(
        db,
        materials=[(fabric, "2")],
        operations=[("cutting", "cutting_table", 700), ("stitching", "lockstitch", 1400)],
    )
    return create_test_work_order(db, product, variant, quantity=5)


class TestMaxAllowedSeconds:

    @pytest.mark.unit
    @pytest.mark.parametrize("estimated, expected", [(700, 1000), (1400, 2000), (100, 143), (0, 0), (None, 0)])
    def test_estimate_over_efficiency_factor(self, estimated, expected):
        assert max_allowed_seconds(estimated) == expected


class TestPlanOperations:

    @pytest.mark.unit
    def test_assigns_machines(self, db, work_order):
        table = create_test_machine(db, machine_type="cutting_table")
        juki = create_test_machine(db, machine_type="lockstitch")
        helper = create_test_machine(db, machine_type="lockstitch")
        cutting, stitching = work_order.operations

        plan_operations(db, work_order, [
            OperationAssignment(cutting.id, machine_id=table.id, planned_seconds=800),
            OperationAssignment(stitching.id, machine_id=juki.id,
                                additional_machine_ids=[helper.id, juki.id, helper.id]),
        ])
        db.commit()

        assert cutting.machine_id == table.id
        assert cutting.planned_seconds == 800
        assert cutting.status == "scheduled"
        assert stitching.machine_id == juki.id
        assert stitching.additional_machine_ids == [helper.id]
        assert stitching.planned_seconds == 1400
        assert work_order.total_planned_seconds == 2200
        assert work_order.unassigned_operations == []

    @pytest.mark.unit
    def test_planned_time_is_clamped_to_cap(self, db, work_order):
        cutting = work_order.operations[0]

        plan_operations(db, work_order, [OperationAssignment(cutting.id, planned_seconds=5000)])

        assert cutting.planned_seconds == 1000

    @pytest.mark.unit
    def test_total_is_redistributed_proportionally(self, db, work_order):
        cutting, stitching = work_order.operations

        plan_operations(db, work_order, [], total_planned_seconds=2520)

        assert cutting.planned_seconds == 840
        assert stitching.planned_seconds == 1680
        assert work_order.total_planned_seconds == 2520

    @pytest.mark.unit
    def test_total_is_capped(self, db, work_order):
        plan_operations(db, work_order, [], total_planned_seconds=99999)

        assert work_order.total_planned_seconds == 3000

    @pytest.mark.unit
    def test_wrong_machine_type_is_rejected(self, db, work_order):
        overlock = create_test_machine(db, machine_type="overlock")
        stitching = work_order.operations[1]

        with pytest.raises(ValidationError):
            plan_operations(db, work_order, [OperationAssignment(stitching.id, machine_id=overlock.id)])

    @pytest.mark.unit
    def test_machine_in_maintenance_is_rejected(self, db, work_order):
        juki = create_test_machine(db, machine_type="lockstitch", status="maintenance")
        stitching = work_order.operations[1]

        with pytest.raises(ValidationError):
            plan_operations(db, work_order, [OperationAssignment(stitching.id, machine_id=juki.id)])

    @pytest.mark.unit
    def test_unknown_operation_or_machine(self, db, work_order):
        with pytest.raises(NotFoundError):
            plan_operations(db, work_order, [OperationAssignment(987654)])
        with pytest.raises(NotFoundError):
            plan_operations(db, work_order, [OperationAssignment(work_order.operations[0].id, machine_id=987654)])

    @pytest.mark.unit
    def test_only_planning_states(self, db, work_order):
        work_order.status = "scheduled"
        db.commit()

        with pytest.raises(InvalidStateError):
            plan_operations(db, work_order, [])


class TestMachines:

    @pytest.mark.unit
    def test_create_and_filter(self, db):
        create_machine(db, name="Juki DDL-8700", serial_number="JK-1", machine_type="lockstitch")
        create_machine(db, name="Brother 3034D", serial_number="BR-1", machine_type="overlock")
        create_machine(db, name="Juki Old", serial_number="JK-0", machine_type="lockstitch", status="offline")
        db.commit()

        assert [m.serial_number for m in list_machines(db, machine_type="lockstitch")] == ["JK-1", "JK-0"]
        assert [m.serial_number for m in list_machines(db, status="offline")] == ["JK-0"]

    @pytest.mark.unit
    def test_duplicate_serial(self, db):
        create_machine(db, name="Juki", serial_number="JK-1", machine_type="lockstitch")

        with pytest.raises(DuplicateError):
            create_machine(db, name="Another", serial_number="JK-1", machine_type="lockstitch")


class TestPlanningView:

    @pytest.mark.unit
    def test_lists_operational_machines_per_operation(self, db, work_order):
        table = create_test_machine(db, machine_type="cutting_table")
        create_test_machine(db, machine_type="cutting_table", status="offline")
        juki = create_test_machine(db, machine_type="lockstitch")

        view = get_planning_view(db, work_order)

        assert view.capacity.max_producible == 3
        assert [m.id for m in view.operations[0].available_machines] == [table.id]
        assert [m.id for m in view.operations[1].available_machines] == [juki.id]
        assert view.operations[1].max_allowed_seconds == 2000
