"""
API v1 Router - GarmentFlow
"""
from fastapi import APIRouter
from app.api.v1.endpoints import (
    quotations,
    work_orders,
    inventory,
    machines,
)
from app.schemas.common import ErrorResponse

router = APIRouter(
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    }
)

# Quotation approval -> work orders
router.include_router(
    quotations.router,
    prefix="/quotations",
    tags=["quotations"]
)

# Work Orders
router.include_router(
    work_orders.router,
    prefix="/work-orders",
    tags=["work-orders"]
)

# Raw item stock and ledger
router.include_router(
    inventory.router,
    prefix="/raw-items",
    tags=["inventory"]
)

# Machines
router.include_router(
    machines.router,
    prefix="/machines",
    tags=["machines"]
)
