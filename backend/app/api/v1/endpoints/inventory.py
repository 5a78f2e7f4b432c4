"""
Raw Item inventory endpoints - stock, goods receipt and the stock ledger.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.v1.deps import get_current_actor, get_pagination_params
from app.core.status_config import StockTransactionType
from app.exceptions import NotFoundError
from app.models import RawItem
from app.schemas.common import ListResponse, PaginationMeta, PaginationParams
from app.schemas.inventory import (
    AddStockRequest,
    RawItemResponse,
    StockMovementResponse,
    StockTransactionResponse,
)
from app.services import stock_ledger

router = APIRouter()


@router.get("/{raw_item_id}", response_model=RawItemResponse)
def get_raw_item(raw_item_id: int, db: Session = Depends(get_db)):
    raw_item = db.query(RawItem).filter(RawItem.id == raw_item_id).first()
    if not raw_item:
        raise NotFoundError("RawItem", raw_item_id)
    return raw_item


@router.get("/{raw_item_id}/transactions", response_model=ListResponse[StockTransactionResponse])
def list_raw_item_transactions(
    raw_item_id: int,
    transaction_type: Optional[StockTransactionType] = Query(None),
    pagination: PaginationParams = Depends(get_pagination_params),
    db: Session = Depends(get_db),
):
    """Stock ledger of a raw item, newest first."""
    items, total = stock_ledger.list_transactions(
        db,
        raw_item_id,
        transaction_type=transaction_type.value if transaction_type else None,
        offset=pagination.offset,
        limit=pagination.limit,
    )
    return ListResponse[StockTransactionResponse](
        items=[StockTransactionResponse.model_validate(t) for t in items],
        pagination=PaginationMeta(
            total=total,
            offset=pagination.offset,
            limit=pagination.limit,
            returned=len(items),
        ),
    )


@router.post("/{raw_item_id}/add-stock", response_model=StockMovementResponse, status_code=201)
def add_raw_item_stock(
    raw_item_id: int,
    request: AddStockRequest,
    db: Session = Depends(get_db),
    actor: str = Depends(get_current_actor),
):
    """Receive stock (ADD, or VARIANT_ADD when a variant is given)."""
    line = stock_ledger.add_stock(
        db,
        raw_item_id,
        request.quantity,
        raw_item_variant_id=request.raw_item_variant_id,
        combination=request.combination,
        reason=request.reason,
        notes=request.notes,
        actor=actor,
    )
    return StockMovementResponse.model_validate(line)
