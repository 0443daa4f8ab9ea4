from __future__ import annotations

import pytest

from app.core.config import settings
from app.crud.goods import ensure_good
from app.models.party import Party
from app.models.shipment import Shipment, ShipmentAccess, ShipmentCustomer
from app.services.allocation_service import apply_allocations
from app.services.inventory_ledger_service import record_transaction
from app.services.inventory_summary_service import (
    list_customer_goods_summary,
    list_customer_inventory_transactions,
    list_inventory_transactions,
    list_shipment_customer_inventory_transactions,
)
from app.services.shipment_goods_service import register_pledge


def _seed_party(db, name: str) -> int:
    party = Party(name=name)
    db.add(party)
    db.flush()
    return party.id


def _seed_shipment(db, shipment_id: int, *, customers=(), viewers=()) -> int:
    shipment = Shipment(id=shipment_id, owner_user_id=1, shipment_code=f"SHP-{shipment_id}")
    shipment.customers = [ShipmentCustomer(customer_party_id=c) for c in customers]
    db.add(shipment)
    for user_id in viewers:
        db.add(ShipmentAccess(shipment_id=shipment_id, user_id=user_id))
    db.flush()
    return shipment.id


@pytest.fixture
def two_customer_ledger(db_session):
    """
    Shipment 100 serves Acme; shipment 200 serves Acme and Globex.
    Viewer 7 may only see shipment 100.
    """
    acme = _seed_party(db_session, "Acme Imports")
    globex = _seed_party(db_session, "Globex")
    _seed_shipment(db_session, 100, customers=[acme], viewers=[7])
    _seed_shipment(db_session, 200, customers=[acme, globex])
    pipes = ensure_good(db_session, owner_user_id=1, name="Steel Pipes", origin="China", unit_type="PCS")
    rice = ensure_good(db_session, owner_user_id=1, name="Rice", origin="Vietnam", unit_type="BAG")

    def _pledge(shipment_id, good_id, quantity, **scope):
        return register_pledge(
            db_session,
            shipment_id=shipment_id,
            owner_user_id=1,
            good_id=good_id,
            quantity=quantity,
            **scope,
        )

    pledges = {
        "acme_pipes_100": _pledge(100, pipes, 10, customer_party_id=acme),
        "all_pipes_200": _pledge(200, pipes, 6, applies_to_all_customers=True),
        "globex_rice_200": _pledge(200, rice, 4, customer_party_id=globex),
    }
    apply_allocations(
        db_session,
        shipment_id=100,
        step_id=10,
        owner_user_id=1,
        requests=[{"pledge_id": pledges["acme_pipes_100"], "requested_quantity": 4}],
    )
    db_session.commit()
    return {"acme": acme, "globex": globex, "pipes": pipes, "rice": rice, **pledges}


def test_inventory_transactions_are_newest_first_and_filterable(db_session, two_customer_ledger):
    rows = list_inventory_transactions(db_session, owner_user_id=1)

    assert [r.id for r in rows] == sorted((r.id for r in rows), reverse=True)
    assert rows[0].direction == "OUT"
    assert rows[0].shipment_code == "SHP-100"
    assert rows[0].good_name == "Steel Pipes"

    only_200 = list_inventory_transactions(db_session, owner_user_id=1, shipment_id=200)
    assert {r.shipment_id for r in only_200} == {200}
    assert len(only_200) == 2
    assert list_inventory_transactions(db_session, owner_user_id=2) == []


def test_inventory_transaction_limit_falls_back_and_caps(db_session, monkeypatch):
    good_id = ensure_good(db_session, owner_user_id=1, name="Rice", origin="Vietnam", unit_type="BAG")
    for _ in range(6):
        record_transaction(db_session, owner_user_id=1, good_id=good_id, direction="IN", quantity=1)
    monkeypatch.setattr(settings, "INVENTORY_TX_DEFAULT_LIMIT", 4)
    monkeypatch.setattr(settings, "INVENTORY_TX_MAX_LIMIT", 5)

    assert len(list_inventory_transactions(db_session, owner_user_id=1, limit=2)) == 2
    assert len(list_inventory_transactions(db_session, owner_user_id=1)) == 4
    assert len(list_inventory_transactions(db_session, owner_user_id=1, limit=0)) == 4
    assert len(list_inventory_transactions(db_session, owner_user_id=1, limit=-3)) == 4
    assert len(list_inventory_transactions(db_session, owner_user_id=1, limit=50)) == 5


def test_customer_goods_summary_counts_targeted_and_shared_pledges(db_session, two_customer_ledger):
    data = two_customer_ledger

    rows = list_customer_goods_summary(
        db_session, owner_user_id=1, customer_party_id=data["acme"], can_access_all_shipments=True
    )

    assert len(rows) == 1
    pipes = rows[0]
    assert pipes.good_id == data["pipes"]
    assert pipes.total_quantity == 16
    assert pipes.remaining_quantity == 12
    assert pipes.shipment_count == 2
    assert [(ref.shipment_id, ref.shipment_code) for ref in pipes.shipment_refs] == [
        (100, "SHP-100"),
        (200, "SHP-200"),
    ]


def test_customer_goods_summary_respects_shipment_access(db_session, two_customer_ledger):
    data = two_customer_ledger

    restricted = list_customer_goods_summary(
        db_session,
        owner_user_id=1,
        customer_party_id=data["acme"],
        can_access_all_shipments=False,
        viewer_user_id=7,
    )
    assert [(r.total_quantity, r.shipment_count) for r in restricted] == [(10, 1)]

    # without an explicit viewer the owner's own grants apply, and it has none
    assert (
        list_customer_goods_summary(
            db_session,
            owner_user_id=1,
            customer_party_id=data["acme"],
            can_access_all_shipments=False,
        )
        == []
    )


def test_customer_transactions_only_include_pledges_targeting_that_customer(
    db_session, two_customer_ledger
):
    data = two_customer_ledger

    acme_rows = list_customer_inventory_transactions(
        db_session, owner_user_id=1, customer_party_id=data["acme"], can_access_all_shipments=True
    )
    globex_rows = list_customer_inventory_transactions(
        db_session, owner_user_id=1, customer_party_id=data["globex"], can_access_all_shipments=True
    )

    assert {r.shipment_good_id for r in acme_rows} == {data["acme_pipes_100"]}
    assert [(r.direction, r.quantity) for r in acme_rows] == [("OUT", 4), ("IN", 10)]
    assert {r.customer_name for r in acme_rows} == {"Acme Imports"}
    assert [(r.shipment_good_id, r.customer_party_id) for r in globex_rows] == [
        (data["globex_rice_200"], data["globex"])
    ]
    assert (
        list_customer_inventory_transactions(
            db_session,
            owner_user_id=1,
            customer_party_id=data["globex"],
            can_access_all_shipments=False,
            viewer_user_id=7,
        )
        == []
    )


def test_shipment_customer_transactions_skip_shared_pledges(db_session, two_customer_ledger):
    data = two_customer_ledger

    rows = list_shipment_customer_inventory_transactions(
        db_session, owner_user_id=1, shipment_id=200, can_access_all_shipments=True
    )

    assert [r.shipment_good_id for r in rows] == [data["globex_rice_200"]]
    assert rows[0].customer_name == "Globex"
    assert (
        list_shipment_customer_inventory_transactions(
            db_session, owner_user_id=1, shipment_id=999, can_access_all_shipments=True
        )
        == []
    )
