"""
Operations planning - machine assignment and planned time per operation.

Planned time is capped at ceil(estimated / OPERATION_EFFICIENCY_FACTOR):
at the default factor of 0.7 an operation may be planned at most ~43%
longer than its estimate. Requests above the cap are clamped, not rejected.
"""
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.status_config import PLANNING_STATUSES, MachineStatus, OperationStatus
from app.exceptions import DuplicateError, InvalidStateError, NotFoundError, ValidationError
from app.logging_config import get_logger
from app.models import Machine, WorkOrder, WorkOrderOperation
from app.services.capacity_service import CapacityResult, calculate_capacity
from app.services.work_order_factory import refresh_totals

logger = get_logger(__name__)


@dataclass
class OperationAssignment:
    operation_id: int
    machine_id: Optional[int] = None
    additional_machine_ids: Optional[List[int]] = None
    planned_seconds: Optional[int] = None
    notes: Optional[str] = None


@dataclass
class OperationPlanningView:
    operation: WorkOrderOperation
    max_allowed_seconds: int
    available_machines: List[Machine] = field(default_factory=list)


@dataclass
class PlanningView:
    """Everything an operator needs to plan a work order"""
    work_order: WorkOrder
    capacity: CapacityResult
    operations: List[OperationPlanningView]


def max_allowed_seconds(estimated_seconds: Optional[int]) -> int:
    if not estimated_seconds:
        return 0
    return math.ceil(Decimal(estimated_seconds) / Decimal(str(settings.OPERATION_EFFICIENCY_FACTOR)))


def list_machines(db: Session, machine_type: Optional[str] = None, status: Optional[str] = None) -> List[Machine]:
    query = db.query(Machine)
    if machine_type:
        query = query.filter(Machine.machine_type == machine_type)
    if status:
        query = query.filter(Machine.status == status)
    return query.order_by(Machine.name).all()


def create_machine(
    db: Session,
    *,
    name: str,
    serial_number: str,
    machine_type: str,
    status: str = MachineStatus.OPERATIONAL.value,
    notes: Optional[str] = None,
) -> Machine:
    if db.query(Machine.id).filter(Machine.serial_number == serial_number).first():
        raise DuplicateError("Machine", field="serial_number", value=serial_number)

    machine = Machine(
        name=name,
        serial_number=serial_number,
        machine_type=machine_type,
        status=status,
        notes=notes,
    )
    db.add(machine)
    db.flush()
    logger.info("Machine registered", extra={"serial_number": serial_number, "machine_type": machine_type})
    return machine


def _assignable_machine(db: Session, machine_id: int, operation: WorkOrderOperation) -> Machine:
    machine = db.get(Machine, machine_id)
    if machine is None:
        raise NotFoundError("Machine", machine_id)
    if machine.machine_type != operation.machine_type:
        raise ValidationError(
            f"Machine '{machine.name}' is a {machine.machine_type}, "
            f"operation '{operation.operation_type}' needs a {operation.machine_type}",
            field="machine_id",
            value=machine_id,
        )
    if not machine.is_operational:
        raise ValidationError(
            f"Machine '{machine.name}' is {machine.status} and cannot be assigned",
            field="machine_id",
            value=machine_id,
        )
    return machine


def plan_operations(
    db: Session,
    work_order: WorkOrder,
    assignments: List[OperationAssignment],
    total_planned_seconds: Optional[int] = None,
    planning_notes: Optional[str] = None,
) -> WorkOrder:
    """
    Assign machines and planned time to a work order's operations.

    Raises:
        InvalidStateError: if the work order is past planning
        NotFoundError: unknown operation or machine
        ValidationError: machine of the wrong type or not operational
    """
    if work_order.status not in PLANNING_STATUSES:
        raise InvalidStateError(
            f"Cannot plan operations for work order in '{work_order.status}' status",
            current_state=work_order.status,
            allowed_states=sorted(s.value for s in PLANNING_STATUSES),
        )

    operations: Dict[int, WorkOrderOperation] = {op.id: op for op in work_order.operations}

    for assignment in assignments:
        operation = operations.get(assignment.operation_id)
        if operation is None:
            raise NotFoundError(
                "WorkOrderOperation",
                assignment.operation_id,
                details={"work_order_id": work_order.id},
            )

        if assignment.machine_id is not None:
            operation.machine_id = _assignable_machine(db, assignment.machine_id, operation).id

        if assignment.additional_machine_ids is not None:
            extra = []
            for machine_id in assignment.additional_machine_ids:
                if machine_id == operation.machine_id or machine_id in extra:
                    continue
                extra.append(_assignable_machine(db, machine_id, operation).id)
            operation.additional_machine_ids = extra

        if assignment.planned_seconds and operation.estimated_seconds > 0:
            operation.planned_seconds = min(
                assignment.planned_seconds,
                max_allowed_seconds(operation.estimated_seconds),
            )
        elif operation.planned_seconds is None:
            operation.planned_seconds = operation.estimated_seconds

        if assignment.notes:
            operation.notes = assignment.notes

        operation.status = OperationStatus.SCHEDULED.value

    if total_planned_seconds:
        total_estimated = sum(op.estimated_seconds or 0 for op in work_order.operations)
        if total_estimated > 0:
            actual = min(total_planned_seconds, max_allowed_seconds(total_estimated))
            for op in work_order.operations:
                if op.estimated_seconds > 0:
                    op.planned_seconds = math.ceil(Decimal(op.estimated_seconds * actual) / total_estimated)

    if planning_notes:
        work_order.planning_notes = planning_notes

    refresh_totals(work_order)
    db.flush()

    logger.info(
        "Operations planned",
        extra={
            "work_order_number": work_order.work_order_number,
            "operations": len(assignments),
            "total_planned_seconds": work_order.total_planned_seconds,
        },
    )
    return work_order


def get_planning_view(db: Session, work_order: WorkOrder) -> PlanningView:
    """Capacity detail plus, per operation, the machines it can be assigned to."""
    capacity = calculate_capacity(db, work_order)

    machines_by_type: Dict[str, List[Machine]] = {}
    views = []
    for op in work_order.operations:
        if op.machine_type not in machines_by_type:
            machines_by_type[op.machine_type] = list_machines(
                db, machine_type=op.machine_type, status=MachineStatus.OPERATIONAL.value
            )
        views.append(
            OperationPlanningView(
                operation=op,
                max_allowed_seconds=max_allowed_seconds(op.estimated_seconds),
                available_machines=machines_by_type[op.machine_type],
            )
        )

    return PlanningView(work_order=work_order, capacity=capacity, operations=views)
