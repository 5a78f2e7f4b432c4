"""
Work Order Factory

Turns an approved quotation into work orders:
1. Resolve each line's product variant
2. Merge lines that resolve to the same (product, variant)
3. Create one Work Order per pair, copying operations and scaling the
   variant's BOM by the requested quantity

Lines whose product or variant cannot be resolved are skipped and reported.
The caller owns the transaction (this module only adds and flushes).
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.status_config import AllocationStatus, OperationStatus, WorkOrderStatus
from app.exceptions import DuplicateError, NotFoundError
from app.logging_config import get_logger
from app.models import (
    Product,
    ProductVariant,
    WorkOrder,
    WorkOrderMaterial,
    WorkOrderOperation,
)
from app.services.quantities import line_cost, round_quantity, sum_costs, to_decimal
from app.services.variant_resolver import VariantSelector, resolve_product_variant

logger = get_logger(__name__)


@dataclass
class QuotationLine:
    """One approved line item of a quotation"""
    product_id: int
    quantity: int
    variant_id: Optional[Any] = None
    attributes: Optional[List[Dict[str, Any]]] = None
    special_instructions: Optional[str] = None


@dataclass
class ApprovedQuotation:
    reference: str
    lines: List[QuotationLine]
    customer_name: Optional[str] = None
    priority: str = "medium"


@dataclass
class SkippedLine:
    """A quotation line that produced no work order, and why"""
    line_index: int
    product_id: int
    variant_id: Optional[str]
    reason: str


@dataclass
class BuildResult:
    """Result of building work orders for one quotation"""
    work_orders: List[WorkOrder] = field(default_factory=list)
    skipped: List[SkippedLine] = field(default_factory=list)


def generate_work_order_number(db: Session) -> str:
    """Generate next work order number in format WO-YYYY-NNNN"""
    prefix = settings.WORK_ORDER_NUMBER_PREFIX
    year = datetime.utcnow().year
    last_wo = (
        db.query(WorkOrder)
        .filter(WorkOrder.work_order_number.like(f"{prefix}-{year}-%"))
        .order_by(desc(func.length(WorkOrder.work_order_number)), desc(WorkOrder.work_order_number))
        .first()
    )

    if last_wo:
        last_num = int(last_wo.work_order_number.split("-")[-1])
        next_num = last_num + 1
    else:
        next_num = 1

    return f"{prefix}-{year}-{next_num:04d}"


def operations_from_product(product: Product) -> List[WorkOrderOperation]:
    """Copy the product's routing; runtime fields start unassigned/pending."""
    return [
        WorkOrderOperation(
            sequence=op.sequence,
            operation_type=op.operation_type,
            machine_type=op.machine_type,
            estimated_seconds=op.estimated_seconds or 0,
            status=OperationStatus.PENDING.value,
            additional_machine_ids=[],
        )
        for op in product.operations
    ]


def copy_operations(work_order: WorkOrder) -> List[WorkOrderOperation]:
    """Copy a work order's operations with machine assignments and timing reset."""
    return [
        WorkOrderOperation(
            sequence=op.sequence,
            operation_type=op.operation_type,
            machine_type=op.machine_type,
            estimated_seconds=op.estimated_seconds or 0,
            status=OperationStatus.PENDING.value,
            additional_machine_ids=[],
        )
        for op in work_order.operations
    ]


def scaled_material(
    *,
    raw_item_id: int,
    raw_item_name: str,
    raw_item_sku: str,
    unit: str,
    quantity_per_unit,
    unit_cost,
    quantity: int,
    raw_item_variant_id: Optional[int] = None,
    raw_item_variant_combination: Optional[List[Any]] = None,
) -> WorkOrderMaterial:
    """Build a not-yet-allocated material line scaled to `quantity` finished units."""
    per_unit = round_quantity(quantity_per_unit)
    required = round_quantity(per_unit * quantity)
    return WorkOrderMaterial(
        raw_item_id=raw_item_id,
        raw_item_name=raw_item_name,
        raw_item_sku=raw_item_sku,
        unit=unit,
        quantity_per_unit=per_unit,
        original_quantity_required=required,
        quantity_required=required,
        quantity_allocated=round_quantity(0),
        quantity_issued=round_quantity(0),
        unit_cost=to_decimal(unit_cost),
        total_cost=line_cost(unit_cost, required),
        allocation_status=AllocationStatus.NOT_ALLOCATED.value,
        raw_item_variant_id=raw_item_variant_id,
        raw_item_variant_combination=list(raw_item_variant_combination) if raw_item_variant_combination else None,
    )


def materials_from_variant(variant: ProductVariant, quantity: int) -> List[WorkOrderMaterial]:
    lines = []
    for bom_line in variant.materials:
        raw_item = bom_line.raw_item
        lines.append(
            scaled_material(
                raw_item_id=bom_line.raw_item_id,
                raw_item_name=raw_item.name if raw_item else "",
                raw_item_sku=raw_item.sku if raw_item else "",
                unit=bom_line.unit or (raw_item.unit if raw_item else "m"),
                quantity_per_unit=bom_line.quantity,
                unit_cost=bom_line.unit_cost,
                quantity=quantity,
                raw_item_variant_id=bom_line.raw_item_variant_id,
                raw_item_variant_combination=bom_line.raw_item_variant_combination,
            )
        )
    return lines


def refresh_totals(work_order: WorkOrder) -> None:
    """Recompute estimated cost and timeline totals from the lines."""
    work_order.estimated_cost = sum_costs(m.total_cost for m in work_order.materials)
    work_order.total_estimated_seconds = sum(op.estimated_seconds or 0 for op in work_order.operations)
    work_order.total_planned_seconds = sum(op.planned_seconds or 0 for op in work_order.operations)


def create_work_order(
    db: Session,
    *,
    product: Product,
    variant: ProductVariant,
    quantity: int,
    quotation_reference: str,
    customer_name: Optional[str] = None,
    priority: str = "medium",
    special_instructions: Optional[str] = None,
    created_by: Optional[str] = None,
) -> WorkOrder:
    """Create and flush one pending Work Order for `quantity` units of `variant`."""
    work_order = WorkOrder(
        work_order_number=generate_work_order_number(db),
        quotation_reference=quotation_reference,
        customer_name=customer_name,
        priority=priority,
        product_id=product.id,
        product_name=product.name,
        product_reference=product.reference,
        product_variant_id=variant.id,
        variant_sku=variant.sku,
        variant_attributes=list(variant.attributes or []),
        quantity=quantity,
        original_quantity=quantity,
        status=WorkOrderStatus.PENDING.value,
        is_split_order=False,
        special_instructions=special_instructions,
        created_by=created_by,
    )
    work_order.operations = operations_from_product(product)
    work_order.materials = materials_from_variant(variant, quantity)
    refresh_totals(work_order)

    db.add(work_order)
    db.flush()

    logger.info(
        "Work order created",
        extra={
            "work_order_number": work_order.work_order_number,
            "quotation_reference": quotation_reference,
            "variant_sku": variant.sku,
            "quantity": quantity,
            "material_lines": len(work_order.materials),
        },
    )
    return work_order


def build_work_orders(
    db: Session,
    quotation: ApprovedQuotation,
    created_by: Optional[str] = None,
) -> BuildResult:
    """
    Build work orders for an approved quotation.

    Args:
        db: Database session
        quotation: The approved quotation and its line items
        created_by: Acting user

    Returns:
        BuildResult with created work orders and skipped lines

    Raises:
        DuplicateError: if work orders already exist for this quotation
    """
    existing = (
        db.query(WorkOrder.id)
        .filter(WorkOrder.quotation_reference == quotation.reference)
        .first()
    )
    if existing:
        raise DuplicateError("WorkOrder", field="quotation_reference", value=quotation.reference)

    result = BuildResult()

    # (product_id, variant_id) -> [product, variant, quantity, instructions]
    groups: Dict[Tuple[int, int], list] = {}

    for index, line in enumerate(quotation.lines):
        selector = VariantSelector.build(line.variant_id, line.attributes)

        if line.quantity is None or line.quantity <= 0:
            result.skipped.append(SkippedLine(index, line.product_id, selector.variant_id,
                                              "Quantity must be greater than 0"))
            continue

        product = db.query(Product).filter(Product.id == line.product_id).first()
        if not product:
            result.skipped.append(SkippedLine(index, line.product_id, selector.variant_id,
                                              f"Product {line.product_id} not found"))
            continue

        try:
            variant = resolve_product_variant(product, selector)
        except NotFoundError as e:
            result.skipped.append(SkippedLine(index, line.product_id, selector.variant_id, e.message))
            continue

        key = (product.id, variant.id)
        if key not in groups:
            groups[key] = [product, variant, 0, []]
        groups[key][2] += line.quantity
        if line.special_instructions:
            groups[key][3].append(line.special_instructions)

    for product, variant, quantity, instructions in groups.values():
        result.work_orders.append(
            create_work_order(
                db,
                product=product,
                variant=variant,
                quantity=quantity,
                quotation_reference=quotation.reference,
                customer_name=quotation.customer_name,
                priority=quotation.priority,
                special_instructions="\n".join(instructions) or None,
                created_by=created_by,
            )
        )

    if result.skipped:
        logger.warning(
            "Quotation lines skipped",
            extra={
                "quotation_reference": quotation.reference,
                "skipped": [s.line_index for s in result.skipped],
            },
        )

    return result
