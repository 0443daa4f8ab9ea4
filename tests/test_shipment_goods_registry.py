from __future__ import annotations

import pytest
from pydantic import ValidationError
from sqlalchemy import select

from app.crud.goods import ensure_good
from app.models.goods import ShipmentGood
from app.models.inventory import InventoryTransaction
from app.models.party import Party
from app.models.shipment import Shipment, ShipmentCustomer
from app.schemas.goods import PledgeCreate
from app.services.inventory_ledger_service import get_balance
from app.services.shipment_goods_service import (
    GOODS_RECEIVED_NOTE,
    ShipmentGoodsFailure,
    list_pledges,
    register_pledge,
    remove_pledge,
)


def _seed_party(db, name: str) -> int:
    party = Party(name=name)
    db.add(party)
    db.flush()
    return party.id


def _seed_shipment(db, shipment_id: int, *, owner_user_id: int = 1, customers=()) -> int:
    shipment = Shipment(id=shipment_id, owner_user_id=owner_user_id, shipment_code=f"SHP-{shipment_id}")
    shipment.customers = [ShipmentCustomer(customer_party_id=c) for c in customers]
    db.add(shipment)
    db.flush()
    return shipment.id


def _transactions_for(db, pledge_id: int) -> list[InventoryTransaction]:
    stmt = (
        select(InventoryTransaction)
        .where(InventoryTransaction.shipment_good_id == pledge_id)
        .order_by(InventoryTransaction.id.asc())
    )
    return list(db.execute(stmt).scalars().all())


def test_register_pledge_receives_full_quantity_into_inventory(db_session):
    _seed_shipment(db_session, 100)
    good_id = ensure_good(
        db_session, owner_user_id=1, name="Steel Pipes", origin="China", unit_type="PCS"
    )

    pledge_id = register_pledge(
        db_session,
        shipment_id=100,
        owner_user_id=1,
        good_id=good_id,
        quantity=50,
        applies_to_all_customers=True,
    )
    db_session.commit()

    assert get_balance(db_session, 1, good_id) == 50
    txs = _transactions_for(db_session, pledge_id)
    assert len(txs) == 1
    assert txs[0].direction == "IN"
    assert txs[0].quantity == 50
    assert txs[0].shipment_id == 100
    assert txs[0].note == GOODS_RECEIVED_NOTE


def test_register_zero_quantity_pledge_writes_no_ledger_entry(db_session):
    _seed_shipment(db_session, 100)
    good_id = ensure_good(
        db_session, owner_user_id=1, name="Steel Pipes", origin="China", unit_type="PCS"
    )

    pledge_id = register_pledge(
        db_session, shipment_id=100, owner_user_id=1, good_id=good_id, quantity=0
    )

    assert db_session.get(ShipmentGood, pledge_id) is not None
    assert _transactions_for(db_session, pledge_id) == []
    assert get_balance(db_session, 1, good_id) == 0


@pytest.mark.parametrize("quantity", [-1, 2.5, "ten"])
def test_register_pledge_rejects_invalid_quantity(db_session, quantity):
    _seed_shipment(db_session, 100)
    good_id = ensure_good(
        db_session, owner_user_id=1, name="Steel Pipes", origin="China", unit_type="PCS"
    )

    with pytest.raises(ShipmentGoodsFailure) as exc_info:
        register_pledge(
            db_session, shipment_id=100, owner_user_id=1, good_id=good_id, quantity=quantity
        )
    assert exc_info.value.code == "INVALID_QUANTITY"
    assert exc_info.value.status_code == 400


def test_register_pledge_rejects_good_of_another_owner(db_session):
    _seed_shipment(db_session, 100)
    foreign_good = ensure_good(
        db_session, owner_user_id=2, name="Steel Pipes", origin="China", unit_type="PCS"
    )

    with pytest.raises(ShipmentGoodsFailure) as exc_info:
        register_pledge(
            db_session, shipment_id=100, owner_user_id=1, good_id=foreign_good, quantity=5
        )
    assert exc_info.value.code == "GOOD_NOT_FOUND"
    assert exc_info.value.status_code == 404
    assert db_session.execute(select(ShipmentGood)).first() is None


def test_register_pledge_rejects_unknown_shipment(db_session):
    good_id = ensure_good(
        db_session, owner_user_id=1, name="Steel Pipes", origin="China", unit_type="PCS"
    )

    with pytest.raises(ShipmentGoodsFailure) as exc_info:
        register_pledge(
            db_session, shipment_id=404, owner_user_id=1, good_id=good_id, quantity=5
        )
    assert exc_info.value.code == "SHIPMENT_NOT_FOUND"
    assert get_balance(db_session, 1, good_id) == 0


def test_remove_pledge_keeps_ledger_history(db_session):
    _seed_shipment(db_session, 100)
    good_id = ensure_good(
        db_session, owner_user_id=1, name="Steel Pipes", origin="China", unit_type="PCS"
    )
    pledge_id = register_pledge(
        db_session,
        shipment_id=100,
        owner_user_id=1,
        good_id=good_id,
        quantity=50,
        applies_to_all_customers=True,
    )
    db_session.commit()

    assert remove_pledge(db_session, pledge_id=pledge_id, owner_user_id=1) is True
    db_session.commit()

    assert list_pledges(db_session, shipment_id=100, owner_user_id=1) == []
    txs = _transactions_for(db_session, pledge_id)
    assert [(t.direction, t.quantity) for t in txs] == [("IN", 50)]
    assert get_balance(db_session, 1, good_id) == 50


def test_remove_pledge_is_noop_for_other_owner_or_missing_id(db_session):
    _seed_shipment(db_session, 100)
    good_id = ensure_good(
        db_session, owner_user_id=1, name="Steel Pipes", origin="China", unit_type="PCS"
    )
    pledge_id = register_pledge(
        db_session, shipment_id=100, owner_user_id=1, good_id=good_id, quantity=5
    )

    assert remove_pledge(db_session, pledge_id=pledge_id, owner_user_id=2) is False
    assert remove_pledge(db_session, pledge_id=9999, owner_user_id=1) is False
    assert len(list_pledges(db_session, shipment_id=100, owner_user_id=1)) == 1


def test_list_pledges_shows_display_fields_in_creation_order(db_session):
    acme = _seed_party(db_session, "Acme Imports")
    _seed_shipment(db_session, 100, customers=[acme])
    pipes = ensure_good(
        db_session, owner_user_id=1, name="Steel Pipes", origin="China", unit_type="PCS"
    )
    rice = ensure_good(
        db_session, owner_user_id=1, name="Rice", origin="Vietnam", unit_type="BAG"
    )
    first = register_pledge(
        db_session,
        shipment_id=100,
        owner_user_id=1,
        good_id=pipes,
        quantity=10,
        customer_party_id=acme,
    )
    second = register_pledge(
        db_session,
        shipment_id=100,
        owner_user_id=1,
        good_id=rice,
        quantity=4,
        applies_to_all_customers=True,
    )

    rows = list_pledges(db_session, shipment_id=100, owner_user_id=1)

    assert [r.id for r in rows] == [first, second]
    assert rows[0].good_name == "Steel Pipes"
    assert rows[0].unit_type == "PCS"
    assert rows[0].customer_name == "Acme Imports"
    assert rows[0].allocated_quantity == 0
    assert rows[0].inventory_quantity == 10
    assert rows[0].allocated_at is None
    assert rows[1].customer_name is None
    assert rows[1].applies_to_all_customers is True
    assert list_pledges(db_session, shipment_id=100, owner_user_id=2) == []


def test_pledge_ids_are_not_reused_after_delete(db_session):
    _seed_shipment(db_session, 100)
    good_id = ensure_good(
        db_session, owner_user_id=1, name="Steel Pipes", origin="China", unit_type="PCS"
    )
    first = register_pledge(
        db_session, shipment_id=100, owner_user_id=1, good_id=good_id, quantity=5
    )
    remove_pledge(db_session, pledge_id=first, owner_user_id=1)

    second = register_pledge(
        db_session, shipment_id=100, owner_user_id=1, good_id=good_id, quantity=5
    )

    assert second > first


def test_remove_pledge_scoped_to_shipment(db_session):
    _seed_shipment(db_session, 100)
    _seed_shipment(db_session, 200)
    good_id = ensure_good(
        db_session, owner_user_id=1, name="Steel Pipes", origin="China", unit_type="PCS"
    )
    pledge_id = register_pledge(
        db_session, shipment_id=100, owner_user_id=1, good_id=good_id, quantity=5
    )

    assert remove_pledge(db_session, pledge_id=pledge_id, owner_user_id=1, shipment_id=200) is False
    assert remove_pledge(db_session, pledge_id=pledge_id, owner_user_id=1, shipment_id=100) is True


def test_register_pledge_rejects_unknown_customer_party(db_session):
    _seed_shipment(db_session, 100)
    good_id = ensure_good(
        db_session, owner_user_id=1, name="Steel Pipes", origin="China", unit_type="PCS"
    )

    with pytest.raises(ShipmentGoodsFailure) as exc_info:
        register_pledge(
            db_session,
            shipment_id=100,
            owner_user_id=1,
            good_id=good_id,
            quantity=5,
            customer_party_id=999,
        )
    assert exc_info.value.code == "CUSTOMER_NOT_FOUND"
    assert exc_info.value.status_code == 404
    assert db_session.execute(select(ShipmentGood)).first() is None
    assert get_balance(db_session, 1, good_id) == 0


def test_pledge_payload_accepts_one_customer_scope_at_most():
    assert PledgeCreate(good_id=1, quantity=5).customer_party_id is None
    assert PledgeCreate(good_id=1, quantity=5, customer_party_id=3).customer_party_id == 3
    assert PledgeCreate(good_id=1, quantity=5, applies_to_all_customers=True).applies_to_all_customers

    with pytest.raises(ValidationError):
        PledgeCreate(good_id=1, quantity=5, customer_party_id=3, applies_to_all_customers=True)
