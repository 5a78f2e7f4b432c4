"""
Raw Item / Stock Ledger Pydantic Schemas
"""
from pydantic import BaseModel, Field
from typing import Any, List, Optional
from datetime import datetime
from decimal import Decimal


class RawItemVariantResponse(BaseModel):
    id: int
    combination: List[Any] = []
    quantity: Decimal

    class Config:
        from_attributes = True


class RawItemResponse(BaseModel):
    """Raw item with current stock"""
    id: int
    name: str
    sku: str
    unit: str
    quantity: Decimal
    min_stock: Decimal
    status: str
    version_id: int
    variants: List[RawItemVariantResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StockTransactionResponse(BaseModel):
    """One ledger entry"""
    id: int
    raw_item_id: int
    raw_item_variant_id: Optional[int] = None
    transaction_type: str
    quantity: Decimal
    previous_quantity: Decimal
    new_quantity: Decimal
    previous_variant_quantity: Optional[Decimal] = None
    new_variant_quantity: Optional[Decimal] = None
    work_order_id: Optional[int] = None
    work_order_material_id: Optional[int] = None
    reason: str
    notes: Optional[str] = None
    performed_by: str
    created_at: datetime

    class Config:
        from_attributes = True


class StockMovementResponse(BaseModel):
    """Summary of a stock movement written in this request"""
    material_id: Optional[int] = None
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

    class Config:
        from_attributes = True


class AddStockRequest(BaseModel):
    """Goods receipt into a raw item (optionally one of its variants)"""
    quantity: Decimal = Field(..., gt=0)
    raw_item_variant_id: Optional[int] = None
    combination: Optional[List[str]] = None
    reason: str = Field("Stock received", max_length=500)
    notes: Optional[str] = None
