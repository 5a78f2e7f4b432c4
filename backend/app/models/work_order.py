"""
Work Order model

A work order is one (product, variant) pair of an approved quotation.
Operations and raw-material lines are snapshotted from the catalog when
the order is created, so later catalog edits do not change it.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Text, Boolean, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class WorkOrder(Base):
    """
    Work Order - the schedulable unit of garment production.

    Lifecycle: pending → (partial_allocation | planned) → scheduled
               → in_progress → completed
    cancelled is reachable from every state before in_progress.
    """
    __tablename__ = "work_orders"

    id = Column(Integer, primary_key=True, index=True)
    work_order_number = Column(String(50), unique=True, nullable=False, index=True)

    # Source quotation
    quotation_reference = Column(String(100), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    priority = Column(String(20), default='medium', nullable=False)  # low, medium, high, urgent

    # Product snapshot
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)
    product_reference = Column(String(100), nullable=False)
    product_variant_id = Column(Integer, ForeignKey('product_variants.id'), nullable=False)
    variant_sku = Column(String(100), nullable=False)
    variant_attributes = Column(JSON, nullable=False, default=list)

    # Quantities: quantity moves with allocation, original_quantity never does
    quantity = Column(Integer, nullable=False)
    original_quantity = Column(Integer, nullable=False)

    status = Column(String(50), default='pending', nullable=False, index=True)

    # Split lineage (child -> parent only)
    is_split_order = Column(Boolean, default=False, nullable=False)
    parent_work_order_id = Column(Integer, ForeignKey('work_orders.id'), nullable=True, index=True)
    split_reason = Column(String(255), nullable=True)

    # Costs / timeline
    estimated_cost = Column(Numeric(18, 2), default=0, nullable=False)
    total_estimated_seconds = Column(Integer, default=0, nullable=False)
    total_planned_seconds = Column(Integer, default=0, nullable=False)

    special_instructions = Column(Text, nullable=True)
    planning_notes = Column(Text, nullable=True)

    # Planning / execution stamps
    planned_by = Column(String(100), nullable=True)
    planned_at = Column(DateTime, nullable=True)
    actual_start = Column(DateTime, nullable=True)
    actual_end = Column(DateTime, nullable=True)
    cancelled_by = Column(String(100), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    # Metadata
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    operations = relationship("WorkOrderOperation", back_populates="work_order",
                              cascade="all, delete-orphan", order_by="WorkOrderOperation.sequence")
    materials = relationship("WorkOrderMaterial", back_populates="work_order",
                             cascade="all, delete-orphan", order_by="WorkOrderMaterial.id")
    parent_work_order = relationship("WorkOrder", remote_side=[id], foreign_keys=[parent_work_order_id])

    def __repr__(self):
        return f"<WorkOrder {self.work_order_number}: {self.quantity} x {self.variant_sku} ({self.status})>"

    @property
    def is_fully_issued(self):
        """True if every raw-material line has been issued from stock"""
        return all(m.allocation_status == 'issued' for m in self.materials)

    @property
    def unassigned_operations(self):
        return [op for op in self.operations if op.machine_id is None]


class WorkOrderOperation(Base):
    """
    A production step of a work order, copied from the product.

    machine_id is the primary machine; additional_machine_ids hold helpers.
    """
    __tablename__ = "work_order_operations"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    operation_type = Column(String(100), nullable=False)
    machine_type = Column(String(100), nullable=False)

    # Status: pending, scheduled, in_progress, completed
    status = Column(String(50), default='pending', nullable=False)

    estimated_seconds = Column(Integer, default=0, nullable=False)
    planned_seconds = Column(Integer, nullable=True)

    machine_id = Column(Integer, ForeignKey('machines.id'), nullable=True)
    additional_machine_ids = Column(JSON, nullable=False, default=list)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    work_order = relationship("WorkOrder", back_populates="operations")
    machine = relationship("Machine", foreign_keys=[machine_id])

    def __repr__(self):
        return f"<WorkOrderOperation {self.sequence}: {self.operation_type} ({self.status})>"


class WorkOrderMaterial(Base):
    """
    One BOM raw-material line scaled to the work order quantity.

    quantity_per_unit and original_quantity_required are snapshots taken at
    creation; quantity_required is always recomputed from them.
    """
    __tablename__ = "work_order_materials"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    raw_item_id = Column(Integer, ForeignKey('raw_items.id'), nullable=False, index=True)

    # Raw item snapshot
    raw_item_name = Column(String(255), nullable=False)
    raw_item_sku = Column(String(100), nullable=False)
    unit = Column(String(20), default='m', nullable=False)

    quantity_per_unit = Column(Numeric(18, 4), nullable=False)
    original_quantity_required = Column(Numeric(18, 4), nullable=False)
    quantity_required = Column(Numeric(18, 4), nullable=False)
    quantity_allocated = Column(Numeric(18, 4), default=0, nullable=False)
    quantity_issued = Column(Numeric(18, 4), default=0, nullable=False)

    unit_cost = Column(Numeric(18, 4), default=0, nullable=False)
    total_cost = Column(Numeric(18, 2), default=0, nullable=False)

    # not_allocated, partially_allocated, fully_allocated, issued
    allocation_status = Column(String(30), default='not_allocated', nullable=False)

    # Optional raw item variant pin
    raw_item_variant_id = Column(Integer, ForeignKey('raw_item_variants.id'), nullable=True)
    raw_item_variant_combination = Column(JSON, nullable=True)

    issued_at = Column(DateTime, nullable=True)

    # Relationships
    work_order = relationship("WorkOrder", back_populates="materials")
    raw_item = relationship("RawItem")

    def __repr__(self):
        return f"<WorkOrderMaterial {self.raw_item_sku}: {self.quantity_allocated}/{self.quantity_required} ({self.allocation_status})>"
