"""
Allocation & Split Engine

Applies an operator's "produce N of this work order now" decision:
- rescales the order to N, always from its creation baseline
- optionally splits the remainder into a child work order
- reserves (does not deduct) stock per raw-material line

Stock is only moved later by the stock ledger when planning completes.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.core.status_config import (
    PLANNING_STATUSES,
    AllocationStatus,
    WorkOrderStatus,
    validate_work_order_transition,
)
from app.exceptions import CapacityError, InvalidStateError, ValidationError
from app.logging_config import get_logger
from app.models import RawItem, WorkOrder
from app.services.capacity_service import CapacityResult, calculate_capacity
from app.services.quantities import ZERO, line_cost, round_quantity, to_decimal
from app.services.variant_resolver import available_stock, pin_of
from app.services.work_order_factory import (
    copy_operations,
    generate_work_order_number,
    refresh_totals,
    scaled_material,
)

logger = get_logger(__name__)

SPLIT_REASON = "Split due to raw material allocation"


@dataclass
class AllocationResult:
    """Result of an allocation decision"""
    work_order: WorkOrder
    new_work_order: Optional[WorkOrder]
    capacity: CapacityResult


def rescale_materials(work_order: WorkOrder, quantity: int) -> None:
    """
    Set every line's quantity_required for `quantity` finished units.

    Computed from original_quantity_required / original_quantity, never from
    the current (possibly already rescaled) value.
    """
    for material in work_order.materials:
        if work_order.original_quantity:
            per_unit = to_decimal(material.original_quantity_required) / Decimal(work_order.original_quantity)
            material.quantity_required = round_quantity(per_unit * quantity)
        else:
            material.quantity_required = round_quantity(0)
        material.total_cost = line_cost(material.unit_cost, material.quantity_required)


def reserve_materials(db: Session, work_order: WorkOrder) -> None:
    """
    quantity_allocated = min(required, stock still unreserved) per line.

    Lines are reserved in order against running balances: every line draws
    on its raw item's aggregate quantity, and a line whose pin resolves also
    draws on that variant's quantity.
    """
    aggregate_left: Dict[int, Decimal] = {}
    variant_left: Dict[int, Decimal] = {}
    for material in work_order.materials:
        raw_item = db.query(RawItem).filter(RawItem.id == material.raw_item_id).first()
        required = to_decimal(material.quantity_required)
        if raw_item is None:
            allocated = ZERO
        else:
            stock, variant = available_stock(raw_item, pin_of(material))
            aggregate_left.setdefault(raw_item.id, to_decimal(raw_item.quantity))
            allocated = min(required, aggregate_left[raw_item.id])
            if variant is not None:
                variant_left.setdefault(variant.id, stock)
                allocated = min(allocated, variant_left[variant.id])
            allocated = max(allocated, ZERO)
            aggregate_left[raw_item.id] -= allocated
            if variant is not None:
                variant_left[variant.id] -= allocated

        material.quantity_allocated = round_quantity(allocated)

        if allocated >= required:
            material.allocation_status = AllocationStatus.FULLY_ALLOCATED.value
        elif allocated > 0:
            material.allocation_status = AllocationStatus.PARTIALLY_ALLOCATED.value
        else:
            material.allocation_status = AllocationStatus.NOT_ALLOCATED.value


def create_split_order(db: Session, parent: WorkOrder, quantity: int, created_by: Optional[str] = None) -> WorkOrder:
    """Create a pending child work order for `quantity` units of the parent's variant."""
    child = WorkOrder(
        work_order_number=generate_work_order_number(db),
        quotation_reference=parent.quotation_reference,
        customer_name=parent.customer_name,
        priority=parent.priority,
        product_id=parent.product_id,
        product_name=parent.product_name,
        product_reference=parent.product_reference,
        product_variant_id=parent.product_variant_id,
        variant_sku=parent.variant_sku,
        variant_attributes=list(parent.variant_attributes or []),
        quantity=quantity,
        original_quantity=quantity,
        status=WorkOrderStatus.PENDING.value,
        is_split_order=True,
        parent_work_order_id=parent.id,
        split_reason=SPLIT_REASON,
        special_instructions=parent.special_instructions,
        created_by=created_by,
    )
    child.operations = copy_operations(parent)
    child.materials = [
        scaled_material(
            raw_item_id=m.raw_item_id,
            raw_item_name=m.raw_item_name,
            raw_item_sku=m.raw_item_sku,
            unit=m.unit,
            quantity_per_unit=m.quantity_per_unit,
            unit_cost=m.unit_cost,
            quantity=quantity,
            raw_item_variant_id=m.raw_item_variant_id,
            raw_item_variant_combination=m.raw_item_variant_combination,
        )
        for m in parent.materials
    ]
    refresh_totals(child)

    db.add(child)
    db.flush()
    return child


def allocate(
    db: Session,
    work_order: WorkOrder,
    approved_quantity: int,
    split_remaining: bool = False,
    *,
    planning_notes: Optional[str] = None,
    actor: Optional[str] = None,
) -> AllocationResult:
    """
    Allocate `approved_quantity` units of a work order.

    Raises:
        InvalidStateError: if the order is past planning or has issued lines
        ValidationError: if approved_quantity is not in 1..quantity
        CapacityError: if current stock cannot support approved_quantity
    """
    if work_order.status not in PLANNING_STATUSES:
        raise InvalidStateError(
            f"Cannot allocate materials for work order in '{work_order.status}' status",
            current_state=work_order.status,
            allowed_states=sorted(s.value for s in PLANNING_STATUSES),
        )

    issued = [m.id for m in work_order.materials if m.allocation_status == AllocationStatus.ISSUED.value]
    if issued:
        raise InvalidStateError(
            f"Work order {work_order.work_order_number} already has raw material issued from stock. "
            "Retry planning completion or cancel the work order instead of re-allocating.",
            current_state=work_order.status,
            details={"issued_material_ids": issued},
        )

    if approved_quantity is None or approved_quantity <= 0 or approved_quantity > work_order.quantity:
        raise ValidationError(
            f"Allocation quantity must be between 1 and {work_order.quantity}",
            field="quantity",
            value=approved_quantity,
            details={"max_quantity": work_order.quantity},
        )

    capacity = calculate_capacity(db, work_order)
    if approved_quantity > capacity.max_producible:
        raise CapacityError(
            requested=approved_quantity,
            max_producible=capacity.max_producible,
            blocking_materials=[m.as_blocking() for m in capacity.limiting_materials],
        )

    remaining = work_order.quantity - approved_quantity

    new_work_order = None
    if split_remaining and remaining > 0:
        new_work_order = create_split_order(db, work_order, remaining, created_by=actor)

    work_order.quantity = approved_quantity
    rescale_materials(work_order, approved_quantity)
    reserve_materials(db, work_order)
    refresh_totals(work_order)

    if approved_quantity < work_order.original_quantity:
        new_status = WorkOrderStatus.PARTIAL_ALLOCATION.value
    else:
        new_status = WorkOrderStatus.PLANNED.value
    validate_work_order_transition(work_order.status, new_status)
    work_order.status = new_status

    if planning_notes:
        work_order.planning_notes = planning_notes

    db.flush()

    logger.info(
        "Work order allocated",
        extra={
            "work_order_number": work_order.work_order_number,
            "approved_quantity": approved_quantity,
            "max_producible": capacity.max_producible,
            "split_work_order_number": new_work_order.work_order_number if new_work_order else None,
            "status": new_status,
        },
    )

    return AllocationResult(work_order=work_order, new_work_order=new_work_order, capacity=capacity)
