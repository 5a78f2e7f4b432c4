"""Database models"""
from app.models.product import Product, ProductVariant, ProductVariantMaterial, ProductOperation
from app.models.inventory import RawItem, RawItemVariant, StockTransaction
from app.models.machine import Machine
from app.models.work_order import WorkOrder, WorkOrderOperation, WorkOrderMaterial

__all__ = [
    # Catalog
    "Product",
    "ProductVariant",
    "ProductVariantMaterial",
    "ProductOperation",
    # Inventory
    "RawItem",
    "RawItemVariant",
    "StockTransaction",
    # Production
    "Machine",
    "WorkOrder",
    "WorkOrderOperation",
    "WorkOrderMaterial",
]
