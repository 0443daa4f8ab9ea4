from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from app.crud.goods import get_good_for_owner
from app.db.session import atomic
from app.models.goods import Good, ShipmentGood, ShipmentGoodsAllocation
from app.models.inventory import InventoryDirection
from app.models.party import Party
from app.models.shipment import Shipment
from app.schemas.goods import AllocationCandidateRow, PledgeRow
from app.services.inventory_ledger_service import record_transaction

logger = logging.getLogger(__name__)

GOODS_RECEIVED_NOTE = "Shipment goods received"


@dataclass
class ShipmentGoodsFailure(Exception):
    code: str
    message: str
    status_code: int = 400

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


def _allocation_totals_subquery():
    return (
        select(
            ShipmentGoodsAllocation.shipment_good_id.label("shipment_good_id"),
            func.coalesce(func.sum(ShipmentGoodsAllocation.taken_quantity), 0).label("taken_total"),
            func.max(ShipmentGoodsAllocation.created_at).label("allocated_at"),
        )
        .group_by(ShipmentGoodsAllocation.shipment_good_id)
        .subquery()
    )


def _is_whole_non_negative(value) -> bool:
    if isinstance(value, bool):
        return False
    try:
        return int(value) == value and value >= 0
    except (TypeError, ValueError):
        return False


def taken_total_for_pledge(db: Session, shipment_good_id: int) -> int:
    stmt = select(func.coalesce(func.sum(ShipmentGoodsAllocation.taken_quantity), 0)).where(
        ShipmentGoodsAllocation.shipment_good_id == shipment_good_id
    )
    return int(db.execute(stmt).scalar_one())


def _pledge_rows_stmt(owner_user_id: int):
    totals = _allocation_totals_subquery()
    return (
        select(
            ShipmentGood,
            Good.name.label("good_name"),
            Good.origin.label("good_origin"),
            Good.unit_type.label("unit_type"),
            Party.name.label("customer_name"),
            Shipment.shipment_code.label("shipment_code"),
            func.coalesce(totals.c.taken_total, 0).label("taken_total"),
            totals.c.allocated_at.label("allocated_at"),
        )
        .join(Good, Good.id == ShipmentGood.good_id)
        .join(Shipment, Shipment.id == ShipmentGood.shipment_id)
        .outerjoin(Party, Party.id == ShipmentGood.customer_party_id)
        .outerjoin(totals, totals.c.shipment_good_id == ShipmentGood.id)
        .where(ShipmentGood.owner_user_id == owner_user_id)
    )


def _to_pledge_fields(row) -> dict:
    pledge: ShipmentGood = row.ShipmentGood
    taken_total = int(row.taken_total or 0)
    return {
        "id": pledge.id,
        "shipment_id": pledge.shipment_id,
        "good_id": pledge.good_id,
        "owner_user_id": pledge.owner_user_id,
        "customer_party_id": pledge.customer_party_id,
        "applies_to_all_customers": bool(pledge.applies_to_all_customers),
        "quantity": int(pledge.quantity),
        "created_at": pledge.created_at,
        "created_by_user_id": pledge.created_by_user_id,
        "updated_at": pledge.updated_at,
        "good_name": row.good_name or "",
        "good_origin": row.good_origin or "",
        "unit_type": row.unit_type or "",
        "customer_name": row.customer_name if pledge.customer_party_id else None,
        "allocated_quantity": taken_total,
        "inventory_quantity": max(0, int(pledge.quantity) - taken_total),
        "allocated_at": row.allocated_at,
    }


def register_pledge(
    db: Session,
    *,
    shipment_id: int,
    owner_user_id: int,
    good_id: int,
    quantity: int,
    customer_party_id: int | None = None,
    applies_to_all_customers: bool = False,
    created_by_user_id: int | None = None,
) -> int:
    """
    Pledge `quantity` of a good to a shipment and receive it into inventory.

    The pledge row, its IN ledger entry and the balance increment are one
    unit: either all land or none do. A zero-quantity pledge writes no ledger
    entry.
    """
    if not _is_whole_non_negative(quantity):
        raise ShipmentGoodsFailure(
            code="INVALID_QUANTITY",
            message="quantity must be a non-negative whole number.",
        )
    quantity = int(quantity)

    with atomic(db):
        if get_good_for_owner(db, owner_user_id, good_id) is None:
            raise ShipmentGoodsFailure(
                code="GOOD_NOT_FOUND",
                message=f"Good {good_id} was not found.",
                status_code=404,
            )
        shipment = db.get(Shipment, shipment_id)
        if shipment is None or shipment.owner_user_id != owner_user_id:
            raise ShipmentGoodsFailure(
                code="SHIPMENT_NOT_FOUND",
                message=f"Shipment {shipment_id} was not found.",
                status_code=404,
            )
        if customer_party_id is not None and db.get(Party, customer_party_id) is None:
            raise ShipmentGoodsFailure(
                code="CUSTOMER_NOT_FOUND",
                message=f"Customer party {customer_party_id} was not found.",
                status_code=404,
            )

        pledge = ShipmentGood(
            shipment_id=shipment_id,
            good_id=good_id,
            owner_user_id=owner_user_id,
            customer_party_id=customer_party_id,
            applies_to_all_customers=bool(applies_to_all_customers),
            quantity=quantity,
            created_by_user_id=created_by_user_id,
        )
        db.add(pledge)
        db.flush()
        pledge_id = pledge.id

        if quantity > 0:
            record_transaction(
                db,
                owner_user_id=owner_user_id,
                good_id=good_id,
                direction=InventoryDirection.IN,
                quantity=quantity,
                shipment_id=shipment_id,
                shipment_good_id=pledge_id,
                note=GOODS_RECEIVED_NOTE,
            )

    logger.info(
        "shipment_good_registered id=%s shipment=%s good=%s qty=%s customer=%s all_customers=%s",
        pledge_id,
        shipment_id,
        good_id,
        quantity,
        customer_party_id,
        bool(applies_to_all_customers),
    )
    return pledge_id


def remove_pledge(
    db: Session, *, pledge_id: int, owner_user_id: int, shipment_id: int | None = None
) -> bool:
    """
    Hard-delete a pledge owned by `owner_user_id`.

    Ledger entries and allocations recorded against it stay as they are, so the
    received quantity remains in the balance. Returns False when there was
    nothing to delete.
    """
    with atomic(db):
        stmt = (
            delete(ShipmentGood)
            .where(ShipmentGood.id == pledge_id)
            .where(ShipmentGood.owner_user_id == owner_user_id)
        )
        if shipment_id is not None:
            stmt = stmt.where(ShipmentGood.shipment_id == shipment_id)
        result = db.execute(stmt.execution_options(synchronize_session="evaluate"))
    removed = bool(result.rowcount)
    if removed:
        logger.info("shipment_good_removed id=%s owner=%s", pledge_id, owner_user_id)
    return removed


def list_pledges(db: Session, *, shipment_id: int, owner_user_id: int) -> list[PledgeRow]:
    stmt = (
        _pledge_rows_stmt(owner_user_id)
        .where(ShipmentGood.shipment_id == shipment_id)
        .order_by(ShipmentGood.created_at.asc(), ShipmentGood.id.asc())
    )
    return [PledgeRow(**_to_pledge_fields(row)) for row in db.execute(stmt).all()]


def list_candidate_rows(
    db: Session,
    *,
    shipment_id: int,
    owner_user_id: int,
    pledge_ids: list[int],
) -> list[AllocationCandidateRow]:
    if not pledge_ids:
        return []
    stmt = _pledge_rows_stmt(owner_user_id).where(ShipmentGood.id.in_(pledge_ids))
    rows = [
        AllocationCandidateRow(
            **_to_pledge_fields(row),
            shipment_code=row.shipment_code or "",
            is_connected=row.ShipmentGood.shipment_id != shipment_id,
        )
        for row in db.execute(stmt).all()
    ]
    rows.sort(key=lambda r: (r.is_connected, r.created_at, r.id))
    return rows
