"""
Read-only inventory views for reporting screens.

Nothing here writes. Every view is owner-scoped and takes an explicit
`can_access_all_shipments` flag; restricted viewers only see shipments they
hold a shipment_access grant for. Empty results are returned as empty lists.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.goods import Good, ShipmentGood, ShipmentGoodsAllocation
from app.models.inventory import InventoryTransaction
from app.models.party import Party
from app.models.shipment import Shipment, ShipmentAccess, ShipmentCustomer
from app.schemas.inventory import (
    CustomerGoodsSummaryRow,
    CustomerInventoryTransactionRow,
    InventoryTransactionRow,
    ShipmentRef,
)


def _effective_limit(limit: int | None) -> int:
    default_limit = max(1, int(settings.INVENTORY_TX_DEFAULT_LIMIT))
    if limit is None or int(limit) <= 0:
        return default_limit
    return min(int(limit), max(default_limit, int(settings.INVENTORY_TX_MAX_LIMIT)))


def _shipments_for_customer(customer_party_id: int):
    return select(ShipmentCustomer.shipment_id).where(
        ShipmentCustomer.customer_party_id == customer_party_id
    )


def _visible_shipments(viewer_user_id: int):
    return select(ShipmentAccess.shipment_id).where(ShipmentAccess.user_id == viewer_user_id)


def _transaction_columns():
    return (
        InventoryTransaction,
        Shipment.shipment_code.label("shipment_code"),
        Good.name.label("good_name"),
        Good.origin.label("good_origin"),
        Good.unit_type.label("unit_type"),
    )


def _transaction_fields(row) -> dict:
    tx: InventoryTransaction = row.InventoryTransaction
    return {
        "id": tx.id,
        "owner_user_id": tx.owner_user_id,
        "good_id": tx.good_id,
        "shipment_id": tx.shipment_id,
        "shipment_good_id": tx.shipment_good_id,
        "step_id": tx.step_id,
        "direction": tx.direction,
        "quantity": int(tx.quantity),
        "created_at": tx.created_at,
        "note": tx.note,
        "shipment_code": row.shipment_code,
        "good_name": row.good_name or "",
        "good_origin": row.good_origin or "",
        "unit_type": row.unit_type or "",
    }


def list_inventory_transactions(
    db: Session,
    *,
    owner_user_id: int,
    shipment_id: int | None = None,
    limit: int | None = None,
) -> list[InventoryTransactionRow]:
    """Ledger rows for an owner, optionally one shipment, newest first."""
    stmt = (
        select(*_transaction_columns())
        .join(Good, Good.id == InventoryTransaction.good_id)
        .outerjoin(Shipment, Shipment.id == InventoryTransaction.shipment_id)
        .where(InventoryTransaction.owner_user_id == owner_user_id)
    )
    if shipment_id is not None:
        stmt = stmt.where(InventoryTransaction.shipment_id == shipment_id)
    stmt = stmt.order_by(
        InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc()
    ).limit(_effective_limit(limit))
    return [InventoryTransactionRow(**_transaction_fields(row)) for row in db.execute(stmt).all()]


def _customer_transactions_stmt(owner_user_id: int):
    return (
        select(
            *_transaction_columns(),
            ShipmentGood.customer_party_id.label("customer_party_id"),
            Party.name.label("customer_name"),
        )
        .join(Good, Good.id == InventoryTransaction.good_id)
        .join(ShipmentGood, ShipmentGood.id == InventoryTransaction.shipment_good_id)
        .outerjoin(Shipment, Shipment.id == InventoryTransaction.shipment_id)
        .outerjoin(Party, Party.id == ShipmentGood.customer_party_id)
        .where(InventoryTransaction.owner_user_id == owner_user_id)
        .where(InventoryTransaction.shipment_id.is_not(None))
    )


def _customer_transaction_rows(db: Session, stmt, limit: int | None):
    stmt = stmt.order_by(
        InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc()
    ).limit(_effective_limit(limit))
    return [
        CustomerInventoryTransactionRow(
            **_transaction_fields(row),
            customer_party_id=row.customer_party_id,
            customer_name=row.customer_name,
        )
        for row in db.execute(stmt).all()
    ]


def list_customer_inventory_transactions(
    db: Session,
    *,
    owner_user_id: int,
    customer_party_id: int,
    can_access_all_shipments: bool,
    limit: int | None = None,
    viewer_user_id: int | None = None,
) -> list[CustomerInventoryTransactionRow]:
    """
    Ledger rows on shipments serving the customer whose pledge targets that
    customer specifically. Rows of deleted pledges drop out of this view.
    """
    stmt = (
        _customer_transactions_stmt(owner_user_id)
        .where(InventoryTransaction.shipment_id.in_(_shipments_for_customer(customer_party_id)))
        .where(ShipmentGood.customer_party_id == customer_party_id)
    )
    if not can_access_all_shipments:
        viewer = owner_user_id if viewer_user_id is None else viewer_user_id
        stmt = stmt.where(InventoryTransaction.shipment_id.in_(_visible_shipments(viewer)))
    return _customer_transaction_rows(db, stmt, limit)


def list_shipment_customer_inventory_transactions(
    db: Session,
    *,
    owner_user_id: int,
    shipment_id: int,
    can_access_all_shipments: bool,
    limit: int | None = None,
    viewer_user_id: int | None = None,
) -> list[CustomerInventoryTransactionRow]:
    """Ledger rows of one shipment whose pledge targets one of its customers."""
    shipment_customers = select(ShipmentCustomer.customer_party_id).where(
        ShipmentCustomer.shipment_id == shipment_id
    )
    stmt = (
        _customer_transactions_stmt(owner_user_id)
        .where(InventoryTransaction.shipment_id == shipment_id)
        .where(ShipmentGood.customer_party_id.is_not(None))
        .where(ShipmentGood.customer_party_id.in_(shipment_customers))
    )
    if not can_access_all_shipments:
        viewer = owner_user_id if viewer_user_id is None else viewer_user_id
        stmt = stmt.where(InventoryTransaction.shipment_id.in_(_visible_shipments(viewer)))
    return _customer_transaction_rows(db, stmt, limit)


def list_customer_goods_summary(
    db: Session,
    *,
    owner_user_id: int,
    customer_party_id: int,
    can_access_all_shipments: bool,
    viewer_user_id: int | None = None,
) -> list[CustomerGoodsSummaryRow]:
    """
    Pledged and remaining quantity per good across the customer's shipments.

    Counts pledges aimed at this customer or at all customers. Remaining is the
    sum of each pledge's own floored remainder, so an over-consumed pledge can
    never cancel out another pledge's stock.
    """
    taken = (
        select(
            ShipmentGoodsAllocation.shipment_good_id.label("shipment_good_id"),
            func.sum(ShipmentGoodsAllocation.taken_quantity).label("taken_total"),
        )
        .group_by(ShipmentGoodsAllocation.shipment_good_id)
        .subquery()
    )
    stmt = (
        select(
            ShipmentGood.id,
            ShipmentGood.good_id,
            ShipmentGood.shipment_id,
            ShipmentGood.quantity,
            func.coalesce(taken.c.taken_total, 0).label("taken_total"),
            Shipment.shipment_code,
        )
        .join(Shipment, Shipment.id == ShipmentGood.shipment_id)
        .outerjoin(taken, taken.c.shipment_good_id == ShipmentGood.id)
        .where(ShipmentGood.owner_user_id == owner_user_id)
        .where(ShipmentGood.shipment_id.in_(_shipments_for_customer(customer_party_id)))
        .where(
            (ShipmentGood.applies_to_all_customers.is_(True))
            | (ShipmentGood.customer_party_id == customer_party_id)
        )
        .order_by(ShipmentGood.shipment_id.asc(), ShipmentGood.id.asc())
    )
    if not can_access_all_shipments:
        viewer = owner_user_id if viewer_user_id is None else viewer_user_id
        stmt = stmt.where(ShipmentGood.shipment_id.in_(_visible_shipments(viewer)))

    summary: dict[int, dict] = {}
    for row in db.execute(stmt).all():
        entry = summary.setdefault(
            row.good_id, {"total": 0, "remaining": 0, "shipments": {}}
        )
        quantity = int(row.quantity)
        entry["total"] += quantity
        entry["remaining"] += max(0, quantity - int(row.taken_total or 0))
        entry["shipments"].setdefault(row.shipment_id, row.shipment_code)

    if not summary:
        return []

    goods = {
        good.id: good
        for good in db.execute(select(Good).where(Good.id.in_(list(summary)))).scalars().all()
    }

    rows: list[CustomerGoodsSummaryRow] = []
    for good_id, entry in summary.items():
        good = goods.get(good_id)
        rows.append(
            CustomerGoodsSummaryRow(
                good_id=good_id,
                good_name=good.name if good else "",
                good_origin=good.origin if good else "",
                unit_type=good.unit_type if good else "",
                total_quantity=entry["total"],
                remaining_quantity=entry["remaining"],
                shipment_count=len(entry["shipments"]),
                shipment_refs=[
                    ShipmentRef(shipment_id=sid, shipment_code=code or "")
                    for sid, code in entry["shipments"].items()
                ],
            )
        )
    rows.sort(key=lambda r: (r.good_name, r.good_origin))
    return rows
