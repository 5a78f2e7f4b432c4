"""
Stock Ledger Writer

The only code that moves raw item stock. Every movement:
- locks the raw item row (SELECT ... FOR UPDATE, version-checked on UPDATE)
- moves the pinned variant's quantity and the aggregate quantity together
- appends a StockTransaction with before/after quantities
- commits on its own, one raw-material line at a time

Lines already issued are skipped, so completing planning again after a
partial failure never deducts the same line twice.
"""
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.status_config import (
    AllocationStatus,
    RawItemStockStatus,
    StockTransactionType,
    WorkOrderStatus,
    validate_work_order_transition,
)
from app.exceptions import (
    ConcurrencyError,
    IncompletePlanningError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from app.logging_config import get_logger
from app.models import RawItem, RawItemVariant, StockTransaction, WorkOrder, WorkOrderMaterial
from app.services.quantities import ZERO, round_quantity, to_decimal
from app.services.variant_resolver import (
    ById,
    describe_pin,
    match_raw_item_variant,
    pin_from_line,
    pin_of,
)

logger = get_logger(__name__)


@dataclass
class LedgerLine:
    """One stock movement written by this module"""
    material_id: Optional[int]
    raw_item_id: int
    sku: str
    transaction_id: int
    transaction_type: str
    quantity: Decimal
    previous_quantity: Decimal
    new_quantity: Decimal
    raw_item_variant_id: Optional[int] = None
    previous_variant_quantity: Optional[Decimal] = None
    new_variant_quantity: Optional[Decimal] = None

    def as_dict(self) -> Dict[str, Any]:
        return {k: (str(v) if isinstance(v, Decimal) else v) for k, v in asdict(self).items()}


@dataclass
class PlanningResult:
    """Result of completing planning for a work order"""
    work_order: WorkOrder
    transactions: List[StockTransaction]
    issued_lines: List[LedgerLine]
    already_issued: List[int]


# =============================================================================
# Locking / status helpers
# =============================================================================

def lock_raw_item(db: Session, raw_item_id: int) -> Tuple[RawItem, List[RawItemVariant]]:
    """
    Re-read a raw item and its variants for update.

    populate_existing discards anything cached in the session so the stock
    seen here is the committed stock.
    """
    raw_item = (
        db.query(RawItem)
        .filter(RawItem.id == raw_item_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if raw_item is None:
        raise NotFoundError("RawItem", raw_item_id)
    variants = (
        db.query(RawItemVariant)
        .filter(RawItemVariant.raw_item_id == raw_item_id)
        .order_by(RawItemVariant.id)
        .with_for_update()
        .populate_existing()
        .all()
    )
    return raw_item, variants


def stock_status(quantity, min_stock) -> str:
    quantity = to_decimal(quantity)
    if quantity <= 0:
        return RawItemStockStatus.OUT_OF_STOCK.value
    if quantity <= to_decimal(min_stock):
        return RawItemStockStatus.LOW_STOCK.value
    return RawItemStockStatus.IN_STOCK.value


def _write_with_retry(db: Session, write: Callable[[], LedgerLine], *, raw_item_id: int,
                      issued: List[LedgerLine]) -> LedgerLine:
    """
    Run one ledger write in its own transaction.

    A lost version check is retried STOCK_WRITE_RETRIES times with a fresh
    read; after that it surfaces as ConcurrencyError. Store failures surface
    as PersistenceError. Both carry the lines already written by this call.
    """
    attempt = 0
    while True:
        try:
            line = write()
            db.commit()
            return line
        except StaleDataError:
            db.rollback()
            if attempt < settings.STOCK_WRITE_RETRIES:
                attempt += 1
                logger.warning(
                    "Stock write lost a race, retrying with fresh stock",
                    extra={"raw_item_id": raw_item_id, "attempt": attempt},
                )
                continue
            raise ConcurrencyError(
                raw_item_id=raw_item_id,
                issued_lines=[line.as_dict() for line in issued],
            )
        except ConcurrencyError as e:
            db.rollback()
            e.details["issued_lines"] = [line.as_dict() for line in issued]
            raise
        except NotFoundError:
            db.rollback()
            raise
        except (OperationalError, DBAPIError) as e:
            db.rollback()
            logger.error(
                "Stock write failed",
                extra={"raw_item_id": raw_item_id, "error": str(e)},
            )
            raise PersistenceError(
                issued_lines=[line.as_dict() for line in issued],
                details={"raw_item_id": raw_item_id},
            ) from e


# =============================================================================
# Planning completion (issue)
# =============================================================================

def check_planning_complete(work_order: WorkOrder) -> None:
    """
    Raises:
        IncompletePlanningError: if any line is not allocated or any
            operation has no primary machine
    """
    unallocated = [
        {
            "material_id": m.id,
            "raw_item_id": m.raw_item_id,
            "name": m.raw_item_name,
            "quantity_required": str(m.quantity_required),
        }
        for m in work_order.materials
        if m.allocation_status == AllocationStatus.NOT_ALLOCATED.value
    ]
    unassigned = [
        {
            "operation_id": op.id,
            "sequence": op.sequence,
            "operation_type": op.operation_type,
            "machine_type": op.machine_type,
        }
        for op in work_order.operations
        if op.machine_id is None
    ]
    if unallocated or unassigned:
        parts = []
        if unallocated:
            parts.append(f"{len(unallocated)} raw material(s) not allocated")
        if unassigned:
            parts.append(f"{len(unassigned)} operation(s) without a machine")
        raise IncompletePlanningError(
            "Cannot complete planning: " + "; ".join(parts),
            unallocated_materials=unallocated,
            unassigned_operations=unassigned,
        )


def _issue_line(db: Session, work_order: WorkOrder, material_id: int, actor: str) -> LedgerLine:
    material = db.get(WorkOrderMaterial, material_id)
    quantity = to_decimal(material.quantity_allocated)

    raw_item, variants = lock_raw_item(db, material.raw_item_id)
    pin = pin_of(material)
    variant = match_raw_item_variant(variants, pin)

    previous = to_decimal(raw_item.quantity)
    # a pinned line also leaves the aggregate, so both must cover it
    available = min(to_decimal(variant.quantity), previous) if variant is not None else previous
    if available < quantity:
        if any(m.allocation_status == AllocationStatus.ISSUED.value for m in work_order.materials):
            next_step = "Receive stock and retry planning completion, or cancel the work order."
        else:
            next_step = "Re-allocate the work order against current stock and retry."
        raise ConcurrencyError(
            f"Only {available} {material.unit} of {raw_item.name} left, "
            f"{quantity} allocated. Stock changed since allocation. {next_step}",
            raw_item_id=raw_item.id,
            details={"available": str(available), "allocated": str(quantity)},
        )

    new = round_quantity(max(previous - quantity, ZERO))
    raw_item.quantity = new
    raw_item.status = stock_status(new, raw_item.min_stock)

    variant_prev = variant_new = None
    if variant is not None:
        variant_prev = to_decimal(variant.quantity)
        variant_new = round_quantity(max(variant_prev - quantity, ZERO))
        variant.quantity = variant_new
        transaction_type = StockTransactionType.VARIANT_REDUCE.value
        variant_info = describe_pin(pin)
    else:
        transaction_type = StockTransactionType.CONSUME.value
        variant_info = "Variant not found, used total stock" if pin is not None else None

    notes = (
        f"Work Order: {work_order.work_order_number}, Product: {work_order.product_name}, "
        f"Quantity: {work_order.quantity} units"
    )
    if variant_info:
        notes += f", {variant_info}"

    transaction = StockTransaction(
        raw_item_id=raw_item.id,
        raw_item_variant_id=variant.id if variant is not None else None,
        transaction_type=transaction_type,
        quantity=quantity,
        previous_quantity=previous,
        new_quantity=new,
        previous_variant_quantity=variant_prev,
        new_variant_quantity=variant_new,
        work_order_id=work_order.id,
        work_order_material_id=material.id,
        reason=f"Issued for Work Order: {work_order.work_order_number}",
        notes=notes,
        performed_by=actor,
    )
    db.add(transaction)

    material.quantity_issued = quantity
    material.allocation_status = AllocationStatus.ISSUED.value
    material.issued_at = datetime.utcnow()

    db.flush()

    return LedgerLine(
        material_id=material.id,
        raw_item_id=raw_item.id,
        sku=raw_item.sku,
        transaction_id=transaction.id,
        transaction_type=transaction_type,
        quantity=quantity,
        previous_quantity=previous,
        new_quantity=new,
        raw_item_variant_id=variant.id if variant is not None else None,
        previous_variant_quantity=variant_prev,
        new_variant_quantity=variant_new,
    )


def complete_planning(
    db: Session,
    work_order: WorkOrder,
    actor: str = "system",
    planning_notes: Optional[str] = None,
) -> PlanningResult:
    """
    Issue every allocated line from stock and move the order to scheduled.

    Commits once per raw-material line and once for the final status change.

    Raises:
        InvalidStateError: if the order is not planned / partial_allocation
        IncompletePlanningError: if a line is unallocated or an operation unassigned
        ConcurrencyError: if live stock no longer covers a line
        PersistenceError: if the store rejected a write
    """
    validate_work_order_transition(work_order.status, WorkOrderStatus.SCHEDULED.value)
    check_planning_complete(work_order)

    work_order_id = work_order.id
    pending = []
    already_issued = []
    for m in work_order.materials:
        if m.allocation_status == AllocationStatus.ISSUED.value:
            already_issued.append(m.id)
        else:
            pending.append((m.id, m.raw_item_id, to_decimal(m.quantity_allocated)))

    issued: List[LedgerLine] = []
    for material_id, raw_item_id, quantity in pending:
        if quantity <= 0:
            material = db.get(WorkOrderMaterial, material_id)
            material.quantity_issued = round_quantity(0)
            material.allocation_status = AllocationStatus.ISSUED.value
            material.issued_at = datetime.utcnow()
            continue

        try:
            line = _write_with_retry(
                db,
                lambda: _issue_line(db, db.get(WorkOrder, work_order_id), material_id, actor),
                raw_item_id=raw_item_id,
                issued=issued,
            )
        except (ConcurrencyError, PersistenceError):
            logger.error(
                "Planning completion stopped part way",
                extra={
                    "work_order_id": work_order_id,
                    "failed_material_id": material_id,
                    "issued_material_ids": [i.material_id for i in issued],
                },
            )
            raise

        issued.append(line)
        logger.info(
            "Raw material issued",
            extra={
                "work_order_id": work_order_id,
                "raw_item_sku": line.sku,
                "quantity": str(line.quantity),
                "transaction_type": line.transaction_type,
                "previous_quantity": str(line.previous_quantity),
                "new_quantity": str(line.new_quantity),
            },
        )

    work_order = db.get(WorkOrder, work_order_id)
    work_order.status = WorkOrderStatus.SCHEDULED.value
    work_order.planned_by = actor
    work_order.planned_at = datetime.utcnow()
    if planning_notes:
        work_order.planning_notes = planning_notes
    db.commit()
    db.refresh(work_order)

    transactions = []
    if issued:
        transactions = (
            db.query(StockTransaction)
            .filter(StockTransaction.id.in_([line.transaction_id for line in issued]))
            .order_by(StockTransaction.id)
            .all()
        )

    logger.info(
        "Planning completed",
        extra={
            "work_order_number": work_order.work_order_number,
            "issued_lines": len(issued),
            "already_issued": len(already_issued),
        },
    )
    return PlanningResult(
        work_order=work_order,
        transactions=transactions,
        issued_lines=issued,
        already_issued=already_issued,
    )


# =============================================================================
# Compensation (return to stock)
# =============================================================================

def _return_line(db: Session, work_order: WorkOrder, material_id: int, actor: str, reason: str) -> LedgerLine:
    material = db.get(WorkOrderMaterial, material_id)
    quantity = to_decimal(material.quantity_issued)

    raw_item, variants = lock_raw_item(db, material.raw_item_id)
    pin = pin_of(material)
    variant = match_raw_item_variant(variants, pin)

    previous = to_decimal(raw_item.quantity)
    new = round_quantity(previous + quantity)
    raw_item.quantity = new
    raw_item.status = stock_status(new, raw_item.min_stock)

    variant_prev = variant_new = None
    if variant is not None:
        variant_prev = to_decimal(variant.quantity)
        variant_new = round_quantity(variant_prev + quantity)
        variant.quantity = variant_new
        transaction_type = StockTransactionType.VARIANT_RETURN.value
    else:
        transaction_type = StockTransactionType.RETURN.value

    transaction = StockTransaction(
        raw_item_id=raw_item.id,
        raw_item_variant_id=variant.id if variant is not None else None,
        transaction_type=transaction_type,
        quantity=quantity,
        previous_quantity=previous,
        new_quantity=new,
        previous_variant_quantity=variant_prev,
        new_variant_quantity=variant_new,
        work_order_id=work_order.id,
        work_order_material_id=material.id,
        reason=f"Returned from cancelled Work Order: {work_order.work_order_number}",
        notes=reason,
        performed_by=actor,
    )
    db.add(transaction)

    material.quantity_issued = round_quantity(0)
    material.quantity_allocated = round_quantity(0)
    material.allocation_status = AllocationStatus.NOT_ALLOCATED.value
    material.issued_at = None

    db.flush()

    return LedgerLine(
        material_id=material.id,
        raw_item_id=raw_item.id,
        sku=raw_item.sku,
        transaction_id=transaction.id,
        transaction_type=transaction_type,
        quantity=quantity,
        previous_quantity=previous,
        new_quantity=new,
        raw_item_variant_id=variant.id if variant is not None else None,
        previous_variant_quantity=variant_prev,
        new_variant_quantity=variant_new,
    )


def return_issued_stock(db: Session, work_order: WorkOrder, actor: str = "system",
                        reason: str = "") -> List[LedgerLine]:
    """Write a compensating RETURN entry for every issued line of a work order."""
    work_order_id = work_order.id
    targets = [
        (m.id, m.raw_item_id)
        for m in work_order.materials
        if m.allocation_status == AllocationStatus.ISSUED.value and to_decimal(m.quantity_issued) > 0
    ]

    returned: List[LedgerLine] = []
    for material_id, raw_item_id in targets:
        line = _write_with_retry(
            db,
            lambda: _return_line(db, db.get(WorkOrder, work_order_id), material_id, actor, reason),
            raw_item_id=raw_item_id,
            issued=returned,
        )
        returned.append(line)
        logger.info(
            "Raw material returned to stock",
            extra={
                "work_order_id": work_order_id,
                "raw_item_sku": line.sku,
                "quantity": str(line.quantity),
                "transaction_type": line.transaction_type,
            },
        )
    return returned


# =============================================================================
# Goods receipt and queries
# =============================================================================

def add_stock(
    db: Session,
    raw_item_id: int,
    quantity,
    *,
    raw_item_variant_id: Optional[int] = None,
    combination: Optional[List[Any]] = None,
    reason: str = "Stock received",
    notes: Optional[str] = None,
    actor: str = "system",
) -> LedgerLine:
    """
    Receive stock into a raw item (and one of its variants, if given).

    Raises:
        ValidationError: if quantity is not positive
        NotFoundError: if the raw item or the requested variant does not exist
    """
    quantity = round_quantity(quantity)
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than 0", field="quantity", value=quantity)

    pin = pin_from_line(raw_item_variant_id, combination)

    def write() -> LedgerLine:
        raw_item, variants = lock_raw_item(db, raw_item_id)
        variant = match_raw_item_variant(variants, pin)
        if pin is not None and variant is None:
            raise NotFoundError(
                "RawItemVariant",
                pin.variant_id if isinstance(pin, ById) else None,
                message=f"Variant {describe_pin(pin)} not found on raw item {raw_item.sku}",
            )

        previous = to_decimal(raw_item.quantity)
        new = round_quantity(previous + quantity)
        raw_item.quantity = new
        raw_item.status = stock_status(new, raw_item.min_stock)

        variant_prev = variant_new = None
        transaction_type = StockTransactionType.ADD.value
        if variant is not None:
            variant_prev = to_decimal(variant.quantity)
            variant_new = round_quantity(variant_prev + quantity)
            variant.quantity = variant_new
            transaction_type = StockTransactionType.VARIANT_ADD.value

        transaction = StockTransaction(
            raw_item_id=raw_item.id,
            raw_item_variant_id=variant.id if variant is not None else None,
            transaction_type=transaction_type,
            quantity=quantity,
            previous_quantity=previous,
            new_quantity=new,
            previous_variant_quantity=variant_prev,
            new_variant_quantity=variant_new,
            reason=reason,
            notes=notes,
            performed_by=actor,
        )
        db.add(transaction)
        db.flush()
        return LedgerLine(
            material_id=None,
            raw_item_id=raw_item.id,
            sku=raw_item.sku,
            transaction_id=transaction.id,
            transaction_type=transaction_type,
            quantity=quantity,
            previous_quantity=previous,
            new_quantity=new,
            raw_item_variant_id=variant.id if variant is not None else None,
            previous_variant_quantity=variant_prev,
            new_variant_quantity=variant_new,
        )

    line = _write_with_retry(db, write, raw_item_id=raw_item_id, issued=[])

    logger.info(
        "Stock added",
        extra={"raw_item_sku": line.sku, "quantity": str(quantity), "transaction_type": line.transaction_type},
    )
    return line


def list_transactions(
    db: Session,
    raw_item_id: int,
    transaction_type: Optional[str] = None,
    offset: int = 0,
    limit: int = 50,
) -> Tuple[List[StockTransaction], int]:
    """Ledger entries of a raw item, newest first, with the total count."""
    if not db.query(RawItem.id).filter(RawItem.id == raw_item_id).first():
        raise NotFoundError("RawItem", raw_item_id)

    query = db.query(StockTransaction).filter(StockTransaction.raw_item_id == raw_item_id)
    if transaction_type:
        query = query.filter(StockTransaction.transaction_type == transaction_type)

    total = query.count()
    items = (
        query.order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return items, total
