"""
Raw item inventory models

RawItem.quantity is the aggregate stock; RawItemVariant.quantity is the
stock of one attribute combination. Both are moved together by the stock
ledger, and every movement appends a StockTransaction.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class RawItem(Base):
    """Raw material (fabric, thread, buttons...)"""
    __tablename__ = "raw_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), unique=True, nullable=False, index=True)
    unit = Column(String(20), default='m', nullable=False)

    quantity = Column(Numeric(18, 4), default=0, nullable=False)
    min_stock = Column(Numeric(18, 4), default=0, nullable=False)
    # in_stock, low_stock, out_of_stock
    status = Column(String(20), default='out_of_stock', nullable=False)

    # Optimistic lock: every UPDATE checks and bumps this
    version_id = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    variants = relationship("RawItemVariant", back_populates="raw_item",
                            cascade="all, delete-orphan", order_by="RawItemVariant.id")
    transactions = relationship("StockTransaction", back_populates="raw_item",
                                cascade="all, delete-orphan", order_by="StockTransaction.id")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self):
        return f"<RawItem {self.sku}: {self.quantity}>"


class RawItemVariant(Base):
    """Stock of one attribute combination of a raw item, e.g. ["Blue", "150cm"]"""
    __tablename__ = "raw_item_variants"

    id = Column(Integer, primary_key=True, index=True)
    raw_item_id = Column(Integer, ForeignKey('raw_items.id', ondelete='CASCADE'), nullable=False, index=True)
    combination = Column(JSON, nullable=False, default=list)
    quantity = Column(Numeric(18, 4), default=0, nullable=False)

    raw_item = relationship("RawItem", back_populates="variants")

    def __repr__(self):
        return f"<RawItemVariant {self.combination}: {self.quantity}>"


class StockTransaction(Base):
    """Append-only ledger entry for a raw item stock movement"""
    __tablename__ = "stock_transactions"

    id = Column(Integer, primary_key=True, index=True)
    raw_item_id = Column(Integer, ForeignKey('raw_items.id', ondelete='CASCADE'), nullable=False, index=True)
    raw_item_variant_id = Column(Integer, ForeignKey('raw_item_variants.id'), nullable=True)

    # ADD, VARIANT_ADD, CONSUME, VARIANT_REDUCE, RETURN, VARIANT_RETURN
    transaction_type = Column(String(30), nullable=False, index=True)
    quantity = Column(Numeric(18, 4), nullable=False)

    previous_quantity = Column(Numeric(18, 4), nullable=False)
    new_quantity = Column(Numeric(18, 4), nullable=False)
    previous_variant_quantity = Column(Numeric(18, 4), nullable=True)
    new_variant_quantity = Column(Numeric(18, 4), nullable=True)

    # Work order that caused the movement, if any
    work_order_id = Column(Integer, ForeignKey('work_orders.id'), nullable=True, index=True)
    work_order_material_id = Column(Integer, ForeignKey('work_order_materials.id'), nullable=True)

    reason = Column(String(500), nullable=False)
    notes = Column(Text, nullable=True)
    performed_by = Column(String(100), nullable=False, default='system')
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    raw_item = relationship("RawItem", back_populates="transactions")

    def __repr__(self):
        return f"<StockTransaction {self.transaction_type}: {self.quantity} ({self.previous_quantity} -> {self.new_quantity})>"
