from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps.request_identity import get_owner_identity
from app.db.session import get_db
from app.schemas.goods import (
    AllocationBatchCreate,
    AllocationBatchResponse,
    AllocationCandidateRow,
    AppliedAllocationView,
    PledgeCreate,
    PledgeCreated,
    PledgeRow,
    SkippedAllocationView,
)
from app.schemas.request_identity import RequestIdentity
from app.services.allocation_service import apply_allocations, list_allocation_candidates
from app.services.shipment_goods_service import (
    ShipmentGoodsFailure,
    list_pledges,
    register_pledge,
    remove_pledge,
)

router = APIRouter()


@router.get("/{shipment_id}/goods", response_model=list[PledgeRow])
def list_shipment_goods(
    shipment_id: int,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    return list_pledges(db, shipment_id=shipment_id, owner_user_id=identity.user_id)


@router.post(
    "/{shipment_id}/goods",
    response_model=PledgeCreated,
    status_code=status.HTTP_201_CREATED,
)
def register_shipment_good(
    shipment_id: int,
    payload: PledgeCreate,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    try:
        pledge_id = register_pledge(
            db,
            shipment_id=shipment_id,
            owner_user_id=identity.user_id,
            good_id=payload.good_id,
            quantity=payload.quantity,
            customer_party_id=payload.customer_party_id,
            applies_to_all_customers=payload.applies_to_all_customers,
            created_by_user_id=identity.user_id,
        )
        db.commit()
    except ShipmentGoodsFailure as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc
    except SQLAlchemyError:
        db.rollback()
        raise
    return PledgeCreated(pledge_id=pledge_id)


@router.delete("/{shipment_id}/goods/{pledge_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_shipment_good(
    shipment_id: int,
    pledge_id: int,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    try:
        removed = remove_pledge(
            db, pledge_id=pledge_id, owner_user_id=identity.user_id, shipment_id=shipment_id
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    if not removed:
        raise HTTPException(status_code=404, detail="Shipment good not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{shipment_id}/allocation-candidates",
    response_model=list[AllocationCandidateRow],
)
def list_shipment_allocation_candidates(
    shipment_id: int,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    return list_allocation_candidates(
        db, shipment_id=shipment_id, owner_user_id=identity.user_id
    )


@router.post(
    "/{shipment_id}/steps/{step_id}/allocations",
    response_model=AllocationBatchResponse,
)
def apply_step_allocations(
    shipment_id: int,
    step_id: int,
    payload: AllocationBatchCreate,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    try:
        result = apply_allocations(
            db,
            shipment_id=shipment_id,
            step_id=step_id,
            owner_user_id=identity.user_id,
            requests=payload.allocations,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return AllocationBatchResponse(
        shipment_id=result.shipment_id,
        step_id=result.step_id,
        applied=[
            AppliedAllocationView(
                allocation_id=row.allocation_id,
                pledge_id=row.pledge_id,
                taken_quantity=row.taken_quantity,
                inventory_quantity=row.inventory_quantity,
            )
            for row in result.applied
        ],
        skipped=[
            SkippedAllocationView(pledge_id=row.pledge_id, reason=row.reason.value)
            for row in result.skipped
        ],
    )
