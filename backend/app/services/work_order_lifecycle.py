"""
Work Order lifecycle - lookups, production start/finish, cancellation.

Planning transitions live with the engines that cause them
(allocation_service, stock_ledger); this module owns the rest.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.status_config import (
    AllocationStatus,
    OperationStatus,
    WorkOrderStatus,
    validate_work_order_transition,
)
from app.exceptions import IncompletePlanningError, NotFoundError
from app.logging_config import get_logger
from app.models import Machine, WorkOrder
from app.services.quantities import round_quantity
from app.services.stock_ledger import LedgerLine, return_issued_stock

logger = get_logger(__name__)


@dataclass
class CancellationResult:
    work_order: WorkOrder
    returned_lines: List[LedgerLine] = field(default_factory=list)


def get_work_order(db: Session, work_order_id: int) -> WorkOrder:
    work_order = db.query(WorkOrder).filter(WorkOrder.id == work_order_id).first()
    if not work_order:
        raise NotFoundError("WorkOrder", work_order_id)
    return work_order


def list_work_orders(
    db: Session,
    *,
    status: Optional[str] = None,
    quotation_reference: Optional[str] = None,
    parent_work_order_id: Optional[int] = None,
    offset: int = 0,
    limit: int = 50,
) -> Tuple[List[WorkOrder], int]:
    query = db.query(WorkOrder)
    if status:
        query = query.filter(WorkOrder.status == status)
    if quotation_reference:
        query = query.filter(WorkOrder.quotation_reference == quotation_reference)
    if parent_work_order_id is not None:
        query = query.filter(WorkOrder.parent_work_order_id == parent_work_order_id)

    total = query.count()
    items = query.order_by(WorkOrder.created_at.desc(), WorkOrder.id.desc()).offset(offset).limit(limit).all()
    return items, total


def list_split_children(db: Session, work_order: WorkOrder) -> List[WorkOrder]:
    """Work orders split off `work_order`, oldest first."""
    return (
        db.query(WorkOrder)
        .filter(WorkOrder.parent_work_order_id == work_order.id)
        .order_by(WorkOrder.id)
        .all()
    )


def start_production(db: Session, work_order: WorkOrder, actor: str = "system") -> WorkOrder:
    """
    scheduled -> in_progress.

    Materials and machine assignments are checked again here: every line
    must be issued and every operation must have an operational machine.
    """
    validate_work_order_transition(work_order.status, WorkOrderStatus.IN_PROGRESS.value)

    not_issued = [
        {"material_id": m.id, "name": m.raw_item_name, "allocation_status": m.allocation_status}
        for m in work_order.materials
        if m.allocation_status != AllocationStatus.ISSUED.value
    ]
    unassigned = []
    for op in work_order.operations:
        if op.machine_id is None:
            unassigned.append({"operation_id": op.id, "operation_type": op.operation_type,
                               "reason": "no machine assigned"})
            continue
        machine = db.get(Machine, op.machine_id)
        if machine is None or not machine.is_operational:
            unassigned.append({"operation_id": op.id, "operation_type": op.operation_type,
                               "reason": "assigned machine is not operational"})

    if not_issued or unassigned:
        raise IncompletePlanningError(
            "Work order cannot start production. Check raw material issue and machine assignments.",
            unallocated_materials=not_issued,
            unassigned_operations=unassigned,
        )

    work_order.status = WorkOrderStatus.IN_PROGRESS.value
    work_order.actual_start = datetime.utcnow()
    for op in work_order.operations:
        op.status = OperationStatus.PENDING.value
    db.flush()

    logger.info(
        "Production started",
        extra={"work_order_number": work_order.work_order_number, "actor": actor},
    )
    return work_order


def complete_production(db: Session, work_order: WorkOrder, actor: str = "system") -> WorkOrder:
    """in_progress -> completed"""
    validate_work_order_transition(work_order.status, WorkOrderStatus.COMPLETED.value)

    work_order.status = WorkOrderStatus.COMPLETED.value
    work_order.actual_end = datetime.utcnow()
    for op in work_order.operations:
        op.status = OperationStatus.COMPLETED.value
    db.flush()

    logger.info(
        "Production completed",
        extra={"work_order_number": work_order.work_order_number, "actor": actor},
    )
    return work_order


def cancel_work_order(
    db: Session,
    work_order: WorkOrder,
    actor: str = "system",
    reason: Optional[str] = None,
) -> CancellationResult:
    """
    Cancel a work order that has not started production.

    Issued lines get a compensating RETURN ledger entry (committed per line);
    reservations on other lines are simply dropped.
    """
    validate_work_order_transition(work_order.status, WorkOrderStatus.CANCELLED.value)

    returned = return_issued_stock(db, work_order, actor=actor, reason=reason or "Work order cancelled")

    for m in work_order.materials:
        if m.allocation_status != AllocationStatus.ISSUED.value:
            m.quantity_allocated = round_quantity(0)
            m.allocation_status = AllocationStatus.NOT_ALLOCATED.value

    work_order.status = WorkOrderStatus.CANCELLED.value
    work_order.cancelled_by = actor
    work_order.cancelled_at = datetime.utcnow()
    work_order.cancellation_reason = reason
    db.flush()

    logger.info(
        "Work order cancelled",
        extra={
            "work_order_number": work_order.work_order_number,
            "returned_lines": len(returned),
            "actor": actor,
        },
    )
    return CancellationResult(work_order=work_order, returned_lines=returned)
