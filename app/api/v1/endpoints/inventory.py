from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps.request_identity import get_owner_identity
from app.db.session import get_db
from app.schemas.inventory import (
    BalanceAuditRequest,
    BalanceAuditResponse,
    BalanceDriftRow,
    CustomerGoodsSummaryRow,
    CustomerInventoryTransactionRow,
    InventoryBalanceRow,
    InventoryTransactionRow,
)
from app.schemas.request_identity import RequestIdentity
from app.services.inventory_ledger_service import list_balances, recompute_balances
from app.services.inventory_summary_service import (
    list_customer_goods_summary,
    list_customer_inventory_transactions,
    list_inventory_transactions,
    list_shipment_customer_inventory_transactions,
)

router = APIRouter()


@router.get("/balances", response_model=list[InventoryBalanceRow])
def get_inventory_balances(
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    return list_balances(db, identity.user_id)


@router.get("/transactions", response_model=list[InventoryTransactionRow])
def get_inventory_transactions(
    shipment_id: int | None = Query(default=None, ge=1),
    limit: int | None = Query(default=None),
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    return list_inventory_transactions(
        db,
        owner_user_id=identity.user_id,
        shipment_id=shipment_id,
        limit=limit,
    )


@router.get(
    "/customers/{customer_party_id}/summary",
    response_model=list[CustomerGoodsSummaryRow],
)
def get_customer_goods_summary(
    customer_party_id: int,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    return list_customer_goods_summary(
        db,
        owner_user_id=identity.user_id,
        customer_party_id=customer_party_id,
        can_access_all_shipments=identity.can_access_all_shipments,
        viewer_user_id=identity.user_id,
    )


@router.get(
    "/customers/{customer_party_id}/transactions",
    response_model=list[CustomerInventoryTransactionRow],
)
def get_customer_inventory_transactions(
    customer_party_id: int,
    limit: int | None = Query(default=None),
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    return list_customer_inventory_transactions(
        db,
        owner_user_id=identity.user_id,
        customer_party_id=customer_party_id,
        can_access_all_shipments=identity.can_access_all_shipments,
        limit=limit,
        viewer_user_id=identity.user_id,
    )


@router.get(
    "/shipments/{shipment_id}/customer-transactions",
    response_model=list[CustomerInventoryTransactionRow],
)
def get_shipment_customer_inventory_transactions(
    shipment_id: int,
    limit: int | None = Query(default=None),
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    return list_shipment_customer_inventory_transactions(
        db,
        owner_user_id=identity.user_id,
        shipment_id=shipment_id,
        can_access_all_shipments=identity.can_access_all_shipments,
        limit=limit,
        viewer_user_id=identity.user_id,
    )


@router.post("/balances/audit", response_model=BalanceAuditResponse)
def audit_inventory_balances(
    payload: BalanceAuditRequest,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    if not identity.can_access_all_shipments:
        raise HTTPException(status_code=403, detail="Full shipment access is required.")
    try:
        drift = recompute_balances(
            db,
            owner_user_id=identity.user_id,
            good_id=payload.good_id,
            apply=payload.apply,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return BalanceAuditResponse(
        checked_owner_user_id=identity.user_id,
        repaired=bool(payload.apply and drift),
        drift=[
            BalanceDriftRow(
                owner_user_id=row.owner_user_id,
                good_id=row.good_id,
                recorded_quantity=row.recorded_quantity,
                ledger_quantity=row.ledger_quantity,
            )
            for row in drift
        ],
    )
