"""
Work Orders API Endpoints

Capacity, allocation/split, operations planning and the lifecycle actions
(complete planning, start, complete, cancel) for garment work orders.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.v1.deps import get_current_actor, get_pagination_params
from app.schemas.common import ListResponse, PaginationMeta, PaginationParams
from app.schemas.work_order import (
    AllocationRequest,
    AllocationResponse,
    CancelWorkOrderRequest,
    CancelWorkOrderResponse,
    CapacityResponse,
    CompletePlanningRequest,
    CompletePlanningResponse,
    PlanningViewResponse,
    PlanOperationsRequest,
    WorkOrderResponse,
)
from app.core.status_config import WorkOrderStatus, get_allowed_work_order_transitions
from app.services import allocation_service, operation_planning, stock_ledger
from app.services.capacity_service import calculate_capacity
from app.services.work_order_lifecycle import (
    cancel_work_order,
    complete_production,
    get_work_order,
    list_split_children,
    list_work_orders,
    start_production,
)
from app.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/", response_model=ListResponse[WorkOrderResponse])
def list_work_orders_endpoint(
    status: Optional[WorkOrderStatus] = Query(None, description="Filter by status"),
    quotation_reference: Optional[str] = Query(None),
    parent_work_order_id: Optional[int] = Query(None, description="Only split children of this order"),
    pagination: PaginationParams = Depends(get_pagination_params),
    db: Session = Depends(get_db),
):
    """List work orders, newest first."""
    items, total = list_work_orders(
        db,
        status=status.value if status else None,
        quotation_reference=quotation_reference,
        parent_work_order_id=parent_work_order_id,
        offset=pagination.offset,
        limit=pagination.limit,
    )
    return ListResponse[WorkOrderResponse](
        items=[WorkOrderResponse.model_validate(wo) for wo in items],
        pagination=PaginationMeta(
            total=total,
            offset=pagination.offset,
            limit=pagination.limit,
            returned=len(items),
        ),
    )


@router.get("/status-transitions")
def get_status_transitions(
    current_status: Optional[str] = Query(None, description="Get transitions for a specific status"),
) -> Dict[str, Any]:
    """
    Get valid status transitions for work orders.

    If current_status is provided, returns only transitions for that status.
    """
    all_statuses = [s.value for s in WorkOrderStatus]

    if current_status:
        if current_status not in all_statuses:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid status '{current_status}'. Must be one of: {', '.join(all_statuses)}"
            )
        allowed = get_allowed_work_order_transitions(current_status)
        return {
            "current_status": current_status,
            "allowed_transitions": allowed,
            "is_terminal": len(allowed) == 0,
        }

    transitions = {}
    for status in WorkOrderStatus:
        allowed = get_allowed_work_order_transitions(status.value)
        transitions[status.value] = {
            "allowed_transitions": allowed,
            "is_terminal": len(allowed) == 0,
        }

    return {
        "statuses": all_statuses,
        "transitions": transitions,
        "terminal_statuses": [s for s in all_statuses if not get_allowed_work_order_transitions(s)],
    }


@router.get("/{work_order_id}", response_model=WorkOrderResponse)
def get_work_order_endpoint(work_order_id: int, db: Session = Depends(get_db)):
    return get_work_order(db, work_order_id)


@router.get("/{work_order_id}/children", response_model=list[WorkOrderResponse])
def get_split_children(work_order_id: int, db: Session = Depends(get_db)):
    """Work orders split off this one (queried by back-reference)."""
    work_order = get_work_order(db, work_order_id)
    return list_split_children(db, work_order)


@router.get("/{work_order_id}/capacity", response_model=CapacityResponse)
def get_capacity(work_order_id: int, db: Session = Depends(get_db)):
    """Maximum producible quantity from current stock, per material. Read-only."""
    work_order = get_work_order(db, work_order_id)
    return CapacityResponse.model_validate(calculate_capacity(db, work_order))


@router.get("/{work_order_id}/planning", response_model=PlanningViewResponse)
def get_planning(work_order_id: int, db: Session = Depends(get_db)):
    work_order = get_work_order(db, work_order_id)
    return PlanningViewResponse.model_validate(operation_planning.get_planning_view(db, work_order))


@router.post("/{work_order_id}/allocate", response_model=AllocationResponse)
def allocate_work_order(
    work_order_id: int,
    request: AllocationRequest,
    db: Session = Depends(get_db),
    actor: str = Depends(get_current_actor),
):
    """
    Allocate raw materials for `quantity` units, optionally splitting the
    remainder into a new work order.
    """
    work_order = get_work_order(db, work_order_id)
    result = allocation_service.allocate(
        db,
        work_order,
        request.quantity,
        request.split_remaining,
        planning_notes=request.planning_notes,
        actor=actor,
    )
    db.commit()
    db.refresh(result.work_order)
    if result.new_work_order is not None:
        db.refresh(result.new_work_order)
    return AllocationResponse.model_validate(result)


@router.put("/{work_order_id}/operations", response_model=WorkOrderResponse)
def plan_work_order_operations(
    work_order_id: int,
    request: PlanOperationsRequest,
    db: Session = Depends(get_db),
):
    """Assign machines and planned time to operations."""
    work_order = get_work_order(db, work_order_id)
    assignments = [
        operation_planning.OperationAssignment(**a.model_dump())
        for a in request.operations
    ]
    operation_planning.plan_operations(
        db,
        work_order,
        assignments,
        total_planned_seconds=request.total_planned_seconds,
        planning_notes=request.planning_notes,
    )
    db.commit()
    db.refresh(work_order)
    return work_order


@router.post("/{work_order_id}/complete-planning", response_model=CompletePlanningResponse)
def complete_work_order_planning(
    work_order_id: int,
    request: Optional[CompletePlanningRequest] = None,
    db: Session = Depends(get_db),
    actor: str = Depends(get_current_actor),
):
    """
    Issue allocated stock (one ledger entry per line) and schedule the order.

    Safe to retry after a CONCURRENCY_ERROR or PERSISTENCE_ERROR: lines
    already issued are skipped.
    """
    work_order = get_work_order(db, work_order_id)
    result = stock_ledger.complete_planning(
        db,
        work_order,
        actor=actor,
        planning_notes=request.planning_notes if request else None,
    )
    return CompletePlanningResponse.model_validate(result)


@router.post("/{work_order_id}/start", response_model=WorkOrderResponse)
def start_work_order(
    work_order_id: int,
    db: Session = Depends(get_db),
    actor: str = Depends(get_current_actor),
):
    work_order = get_work_order(db, work_order_id)
    start_production(db, work_order, actor=actor)
    db.commit()
    db.refresh(work_order)
    return work_order


@router.post("/{work_order_id}/complete", response_model=WorkOrderResponse)
def complete_work_order(
    work_order_id: int,
    db: Session = Depends(get_db),
    actor: str = Depends(get_current_actor),
):
    work_order = get_work_order(db, work_order_id)
    complete_production(db, work_order, actor=actor)
    db.commit()
    db.refresh(work_order)
    return work_order


@router.post("/{work_order_id}/cancel", response_model=CancelWorkOrderResponse)
def cancel_work_order_endpoint(
    work_order_id: int,
    request: Optional[CancelWorkOrderRequest] = None,
    db: Session = Depends(get_db),
    actor: str = Depends(get_current_actor),
):
    """Cancel before production starts; issued stock is returned to the ledger."""
    work_order = get_work_order(db, work_order_id)
    result = cancel_work_order(db, work_order, actor=actor, reason=request.reason if request else None)
    db.commit()
    db.refresh(result.work_order)
    return CancelWorkOrderResponse.model_validate(result)
