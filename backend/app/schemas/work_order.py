"""
Work Order Pydantic Schemas

Request/response models for the work order engine: quotation approval,
capacity, allocation, operations planning and the lifecycle actions.
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from decimal import Decimal
from enum import Enum

from app.schemas.inventory import StockMovementResponse, StockTransactionResponse
from app.schemas.machine import MachineResponse


class WorkOrderPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# ============================================================================
# Quotation approval
# ============================================================================

class VariantAttribute(BaseModel):
    name: str
    value: str


class QuotationLineRequest(BaseModel):
    """One approved quotation line"""
    product_id: int
    variant_id: Optional[Union[int, str]] = Field(
        None, description="Variant id, or SKU when no id matches"
    )
    attributes: Optional[List[VariantAttribute]] = None
    quantity: int = Field(..., ge=1)
    special_instructions: Optional[str] = None


class ApprovedQuotationRequest(BaseModel):
    quotation_reference: str = Field(..., min_length=1, max_length=100)
    customer_name: Optional[str] = Field(None, max_length=255)
    priority: WorkOrderPriority = WorkOrderPriority.MEDIUM
    lines: List[QuotationLineRequest] = Field(..., min_length=1)


class SkippedLineResponse(BaseModel):
    line_index: int
    product_id: int
    variant_id: Optional[str] = None
    reason: str

    class Config:
        from_attributes = True


# ============================================================================
# Work order
# ============================================================================

class WorkOrderOperationResponse(BaseModel):
    id: int
    sequence: int
    operation_type: str
    machine_type: str
    status: str
    estimated_seconds: int
    planned_seconds: Optional[int] = None
    machine_id: Optional[int] = None
    additional_machine_ids: List[int] = []
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class WorkOrderMaterialResponse(BaseModel):
    id: int
    raw_item_id: int
    raw_item_name: str
    raw_item_sku: str
    unit: str
    quantity_per_unit: Decimal
    original_quantity_required: Decimal
    quantity_required: Decimal
    quantity_allocated: Decimal
    quantity_issued: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    allocation_status: str
    raw_item_variant_id: Optional[int] = None
    raw_item_variant_combination: Optional[List[Any]] = None
    issued_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WorkOrderResponse(BaseModel):
    """Full work order with operations and raw-material lines"""
    id: int
    work_order_number: str
    quotation_reference: str
    customer_name: Optional[str] = None
    priority: str
    product_id: int
    product_name: str
    product_reference: str
    product_variant_id: int
    variant_sku: str
    variant_attributes: List[Dict[str, Any]] = []
    quantity: int
    original_quantity: int
    status: str
    is_split_order: bool
    parent_work_order_id: Optional[int] = None
    split_reason: Optional[str] = None
    estimated_cost: Decimal
    total_estimated_seconds: int
    total_planned_seconds: int
    special_instructions: Optional[str] = None
    planning_notes: Optional[str] = None
    planned_by: Optional[str] = None
    planned_at: Optional[datetime] = None
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    operations: List[WorkOrderOperationResponse] = []
    materials: List[WorkOrderMaterialResponse] = []

    class Config:
        from_attributes = True


class BuildWorkOrdersResponse(BaseModel):
    work_orders: List[WorkOrderResponse]
    skipped: List[SkippedLineResponse] = []

    class Config:
        from_attributes = True


# ============================================================================
# Capacity / allocation
# ============================================================================

class MaterialCapacityResponse(BaseModel):
    material_id: int
    raw_item_id: int
    name: str
    sku: str
    unit: str
    quantity_required: Decimal
    required_per_unit: Decimal
    available_stock: Decimal
    max_units: Optional[int] = Field(None, description="None when the material does not limit production")
    status: str
    raw_item_variant_id: Optional[int] = None
    variant_resolved: bool = False
    variant_label: Optional[str] = None

    class Config:
        from_attributes = True


class CapacityResponse(BaseModel):
    work_order_id: int
    quantity: int
    max_producible: int
    can_produce_full: bool
    materials: List[MaterialCapacityResponse]

    class Config:
        from_attributes = True


class AllocationRequest(BaseModel):
    quantity: int = Field(..., description="Units to produce now (1..current quantity)")
    split_remaining: bool = False
    planning_notes: Optional[str] = None


class AllocationResponse(BaseModel):
    work_order: WorkOrderResponse
    new_work_order: Optional[WorkOrderResponse] = None
    capacity: CapacityResponse

    class Config:
        from_attributes = True


# ============================================================================
# Operations planning
# ============================================================================

class OperationAssignmentRequest(BaseModel):
    operation_id: int
    machine_id: Optional[int] = None
    additional_machine_ids: Optional[List[int]] = None
    planned_seconds: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class PlanOperationsRequest(BaseModel):
    operations: List[OperationAssignmentRequest]
    total_planned_seconds: Optional[int] = Field(None, ge=0)
    planning_notes: Optional[str] = None


class OperationPlanningResponse(BaseModel):
    operation: WorkOrderOperationResponse
    max_allowed_seconds: int
    available_machines: List[MachineResponse] = []

    class Config:
        from_attributes = True


class PlanningViewResponse(BaseModel):
    work_order: WorkOrderResponse
    capacity: CapacityResponse
    operations: List[OperationPlanningResponse]

    class Config:
        from_attributes = True


# ============================================================================
# Lifecycle actions
# ============================================================================

class CompletePlanningRequest(BaseModel):
    planning_notes: Optional[str] = None


class CompletePlanningResponse(BaseModel):
    work_order: WorkOrderResponse
    transactions: List[StockTransactionResponse]
    already_issued: List[int] = []

    class Config:
        from_attributes = True


class CancelWorkOrderRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class CancelWorkOrderResponse(BaseModel):
    work_order: WorkOrderResponse
    returned_lines: List[StockMovementResponse] = []

    class Config:
        from_attributes = True
