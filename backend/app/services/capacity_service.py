"""
Capacity Calculator

Computes how many finished units of a work order current raw-material
stock can support, material by material. Read-only: never mutates stock
or the work order.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.status_config import MaterialCapacityStatus
from app.models import RawItem, RawItemVariant, WorkOrder, WorkOrderMaterial
from app.services.quantities import ZERO, to_decimal
from app.services.variant_resolver import RawMaterialPin, available_stock, describe_pin, pin_of


@dataclass
class MaterialCapacity:
    """Capacity verdict for one raw-material line"""
    material_id: int
    raw_item_id: int
    name: str
    sku: str
    unit: str
    quantity_required: Decimal
    required_per_unit: Decimal
    available_stock: Decimal
    # None when the material does not limit production
    max_units: Optional[int]
    status: str
    raw_item_variant_id: Optional[int] = None
    variant_resolved: bool = False
    variant_label: Optional[str] = None

    def as_blocking(self) -> Dict:
        return {
            "raw_item_id": self.raw_item_id,
            "name": self.name,
            "sku": self.sku,
            "available_stock": str(self.available_stock),
            "required_per_unit": str(self.required_per_unit),
            "max_units": self.max_units,
        }


@dataclass
class CapacityResult:
    work_order_id: int
    quantity: int
    max_producible: int
    materials: List[MaterialCapacity] = field(default_factory=list)

    @property
    def can_produce_full(self) -> bool:
        return self.max_producible >= self.quantity

    @property
    def limiting_materials(self) -> List[MaterialCapacity]:
        return [m for m in self.materials if m.status != MaterialCapacityStatus.SUFFICIENT.value]


def required_per_unit(material: WorkOrderMaterial, quantity: int) -> Decimal:
    """Material needed per finished unit; 0 when the order quantity is 0."""
    if not quantity:
        return ZERO
    return to_decimal(material.quantity_required) / Decimal(quantity)


def max_units_for(stock: Decimal, per_unit: Decimal) -> Optional[int]:
    """floor(stock / per_unit), or None (unconstrained) when per_unit is 0."""
    if per_unit <= 0:
        return None
    if stock <= 0:
        return 0
    return int((stock / per_unit).to_integral_value(rounding=ROUND_FLOOR))


def material_status(max_units: Optional[int], quantity: int) -> str:
    if max_units is None or max_units >= quantity:
        return MaterialCapacityStatus.SUFFICIENT.value
    if max_units > 0:
        return MaterialCapacityStatus.PARTIAL.value
    return MaterialCapacityStatus.INSUFFICIENT.value


@dataclass
class _LineDemand:
    material: WorkOrderMaterial
    raw_item: Optional[RawItem]
    pin: RawMaterialPin
    stock: Decimal
    variant: Optional[RawItemVariant]
    per_unit: Decimal


def _line_demands(work_order: WorkOrder, raw_items: Dict[int, RawItem], quantity: int) -> List[_LineDemand]:
    lines = []
    for m in work_order.materials:
        raw_item = raw_items.get(m.raw_item_id)
        pin = pin_of(m)
        if raw_item is not None:
            stock, variant = available_stock(raw_item, pin)
        else:
            stock, variant = ZERO, None
        lines.append(_LineDemand(m, raw_item, pin, stock, variant, required_per_unit(m, quantity)))
    return lines


def material_capacity(line: _LineDemand, max_units: Optional[int], quantity: int) -> MaterialCapacity:
    material, variant = line.material, line.variant
    return MaterialCapacity(
        material_id=material.id,
        raw_item_id=material.raw_item_id,
        name=material.raw_item_name,
        sku=material.raw_item_sku,
        unit=material.unit,
        quantity_required=to_decimal(material.quantity_required),
        required_per_unit=line.per_unit,
        available_stock=line.stock,
        max_units=max_units,
        status=material_status(max_units, quantity),
        raw_item_variant_id=variant.id if variant is not None else None,
        variant_resolved=variant is not None,
        variant_label=describe_pin(line.pin),
    )


def calculate_capacity(db: Session, work_order: WorkOrder) -> CapacityResult:
    """
    Maximum quantity of `work_order` producible from current stock.

    Lines drawing on the same raw item are summed before dividing: every line
    consumes the aggregate quantity, and lines pinned to the same resolved
    variant also share that variant's quantity. The overall figure is the
    minimum over all limiting materials, capped at the work order quantity,
    and 0 if any required material is out of stock.
    """
    quantity = work_order.quantity or 0
    raw_item_ids = {m.raw_item_id for m in work_order.materials}
    raw_items = {}
    if raw_item_ids:
        raw_items = {
            item.id: item
            for item in db.query(RawItem).filter(RawItem.id.in_(raw_item_ids)).all()
        }

    lines = _line_demands(work_order, raw_items, quantity)
    aggregate_demand: Dict[int, Decimal] = defaultdict(Decimal)
    variant_demand: Dict[int, Decimal] = defaultdict(Decimal)
    for line in lines:
        aggregate_demand[line.material.raw_item_id] += line.per_unit
        if line.variant is not None:
            variant_demand[line.variant.id] += line.per_unit

    materials = []
    for line in lines:
        max_units = None
        if line.per_unit > 0:
            aggregate = to_decimal(line.raw_item.quantity) if line.raw_item is not None else ZERO
            max_units = max_units_for(aggregate, aggregate_demand[line.material.raw_item_id])
            if line.variant is not None:
                max_units = min(max_units, max_units_for(line.stock, variant_demand[line.variant.id]))
        materials.append(material_capacity(line, max_units, quantity))

    max_producible = quantity
    for m in materials:
        if m.max_units is not None:
            max_producible = min(max_producible, m.max_units)

    return CapacityResult(
        work_order_id=work_order.id,
        quantity=quantity,
        max_producible=max(max_producible, 0),
        materials=materials,
    )
