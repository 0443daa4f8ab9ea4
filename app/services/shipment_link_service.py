from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.models.goods import ShipmentGood
from app.models.shipment import ShipmentCustomer, ShipmentLink


def connected_shipment_ids(db: Session, shipment_id: int, owner_user_id: int) -> set[int]:
    """Shipments linked to `shipment_id` in either direction, for this owner."""
    stmt = (
        select(ShipmentLink.shipment_id, ShipmentLink.connected_shipment_id)
        .where(ShipmentLink.owner_user_id == owner_user_id)
        .where(
            or_(
                ShipmentLink.shipment_id == shipment_id,
                ShipmentLink.connected_shipment_id == shipment_id,
            )
        )
    )
    connected: set[int] = set()
    for left, right in db.execute(stmt).all():
        connected.add(right if left == shipment_id else left)
    connected.discard(shipment_id)
    return connected


def shipment_customer_ids(db: Session, shipment_id: int) -> set[int]:
    stmt = select(ShipmentCustomer.customer_party_id).where(
        ShipmentCustomer.shipment_id == shipment_id
    )
    return set(db.execute(stmt).scalars().all())


def is_pledge_reachable(
    pledge: ShipmentGood,
    *,
    shipment_id: int,
    connected_ids: set[int],
    customer_ids: set[int],
) -> bool:
    """
    A pledge is usable from `shipment_id` when it sits on that shipment, or on
    a linked shipment and its customer scope overlaps the requesting
    shipment's customers.
    """
    if pledge.shipment_id == shipment_id:
        return True
    if pledge.shipment_id not in connected_ids:
        return False
    if pledge.applies_to_all_customers:
        return True
    return pledge.customer_party_id is not None and pledge.customer_party_id in customer_ids


def eligible_pledges(db: Session, shipment_id: int, owner_user_id: int) -> list[ShipmentGood]:
    """
    Pledges an allocation from `shipment_id` may draw on.
    Link graph and customer set are re-read on every call.
    """
    connected = connected_shipment_ids(db, shipment_id, owner_user_id)
    customers = shipment_customer_ids(db, shipment_id)

    stmt = (
        select(ShipmentGood)
        .where(ShipmentGood.owner_user_id == owner_user_id)
        .where(ShipmentGood.shipment_id.in_(connected | {shipment_id}))
        .order_by(ShipmentGood.created_at.asc(), ShipmentGood.id.asc())
    )
    return [
        pledge
        for pledge in db.execute(stmt).scalars().all()
        if is_pledge_reachable(
            pledge,
            shipment_id=shipment_id,
            connected_ids=connected,
            customer_ids=customers,
        )
    ]
