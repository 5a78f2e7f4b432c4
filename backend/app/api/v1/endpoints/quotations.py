"""
Quotation approval endpoint - entry point of the work order engine.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.v1.deps import get_current_actor
from app.schemas.work_order import ApprovedQuotationRequest, BuildWorkOrdersResponse
from app.services.work_order_factory import ApprovedQuotation, QuotationLine, build_work_orders

router = APIRouter()


@router.post("/approved", response_model=BuildWorkOrdersResponse, status_code=201)
def quotation_approved(
    request: ApprovedQuotationRequest,
    db: Session = Depends(get_db),
    actor: str = Depends(get_current_actor),
):
    """
    Create one work order per (product, variant) of an approved quotation.

    Lines whose product or variant cannot be resolved are returned in
    `skipped` instead of failing the whole quotation.
    """
    quotation = ApprovedQuotation(
        reference=request.quotation_reference,
        customer_name=request.customer_name,
        priority=request.priority.value,
        lines=[
            QuotationLine(
                product_id=line.product_id,
                quantity=line.quantity,
                variant_id=line.variant_id,
                attributes=[a.model_dump() for a in line.attributes] if line.attributes else None,
                special_instructions=line.special_instructions,
            )
            for line in request.lines
        ],
    )
    result = build_work_orders(db, quotation, created_by=actor)
    db.commit()
    for work_order in result.work_orders:
        db.refresh(work_order)
    return BuildWorkOrdersResponse.model_validate(result)
