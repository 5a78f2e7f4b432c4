"""
Catalog models - garments, their variants and bills of materials

The catalog is read-only from the point of view of the work order engine:
work orders snapshot what they need at creation time.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class Product(Base):
    """
    A finished garment (e.g. "Classic Oxford Shirt").

    Operations are shared by all variants; raw-material lines are per variant
    since fabric colour and trims differ between variants.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    reference = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    variants = relationship("ProductVariant", back_populates="product",
                            cascade="all, delete-orphan", order_by="ProductVariant.id")
    operations = relationship("ProductOperation", back_populates="product",
                              cascade="all, delete-orphan", order_by="ProductOperation.sequence")

    def __repr__(self):
        return f"<Product {self.reference}: {self.name}>"


class ProductVariant(Base):
    """One sellable variant of a product (size/colour combination)."""
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True)
    sku = Column(String(100), unique=True, nullable=False, index=True)

    # [{"name": "Size", "value": "M"}, {"name": "Color", "value": "Blue"}]
    attributes = Column(JSON, nullable=False, default=list)

    stock_quantity = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    product = relationship("Product", back_populates="variants")
    materials = relationship("ProductVariantMaterial", back_populates="variant",
                             cascade="all, delete-orphan", order_by="ProductVariantMaterial.id")

    def __repr__(self):
        return f"<ProductVariant {self.sku}>"


class ProductVariantMaterial(Base):
    """
    BOM raw-material line: how much of a raw item one finished unit consumes.

    A line may pin a specific raw-item variant, either by id or by its
    attribute combination (e.g. ["Blue", "150cm"]).
    """
    __tablename__ = "product_variant_materials"

    id = Column(Integer, primary_key=True, index=True)
    variant_id = Column(Integer, ForeignKey('product_variants.id', ondelete='CASCADE'), nullable=False, index=True)
    raw_item_id = Column(Integer, ForeignKey('raw_items.id'), nullable=False, index=True)

    quantity = Column(Numeric(18, 4), nullable=False)  # per finished unit
    unit = Column(String(20), default='m', nullable=False)
    unit_cost = Column(Numeric(18, 4), default=0, nullable=False)

    # Optional variant pin
    raw_item_variant_id = Column(Integer, ForeignKey('raw_item_variants.id'), nullable=True)
    raw_item_variant_combination = Column(JSON, nullable=True)

    # Relationships
    variant = relationship("ProductVariant", back_populates="materials")
    raw_item = relationship("RawItem")

    def __repr__(self):
        return f"<ProductVariantMaterial raw_item={self.raw_item_id} qty={self.quantity}>"


class ProductOperation(Base):
    """A production step of the product's routing (cutting, stitching, ...)."""
    __tablename__ = "product_operations"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True)
    sequence = Column(Integer, default=1, nullable=False)

    operation_type = Column(String(100), nullable=False)  # cutting, stitching, finishing
    machine_type = Column(String(100), nullable=False)  # cutting_table, lockstitch, overlock
    estimated_seconds = Column(Integer, default=0, nullable=False)  # per work order

    product = relationship("Product", back_populates="operations")

    def __repr__(self):
        return f"<ProductOperation {self.sequence}: {self.operation_type}>"
