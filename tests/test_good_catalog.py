from __future__ import annotations

from sqlalchemy import func, select

from app.crud.goods import ensure_good, get_good_by_key, get_good_for_owner, list_goods_for_owner
from app.models.goods import Good


def test_ensure_good_returns_same_id_for_same_natural_key(db_session):
    first = ensure_good(
        db_session, owner_user_id=1, name="Steel Pipes", origin="China", unit_type="PCS"
    )
    second = ensure_good(
        db_session, owner_user_id=1, name="  Steel Pipes ", origin="China  ", unit_type="KG"
    )
    db_session.commit()

    assert first == second
    count = db_session.execute(select(func.count(Good.id))).scalar_one()
    assert count == 1
    # unit of an existing good is not overwritten
    assert db_session.get(Good, first).unit_type == "PCS"


def test_ensure_good_is_scoped_per_owner_and_origin(db_session):
    owner_one = ensure_good(
        db_session, owner_user_id=1, name="Steel Pipes", origin="China", unit_type="PCS"
    )
    owner_two = ensure_good(
        db_session, owner_user_id=2, name="Steel Pipes", origin="China", unit_type="PCS"
    )
    other_origin = ensure_good(
        db_session, owner_user_id=1, name="Steel Pipes", origin="India", unit_type="PCS"
    )

    assert len({owner_one, owner_two, other_origin}) == 3


def test_ensure_good_recovers_when_insert_loses_race(db_session, monkeypatch):
    winner = Good(owner_user_id=1, name="Copper Wire", origin="Chile", unit_type="KG")
    db_session.add(winner)
    db_session.flush()
    winner_id = winner.id

    # The pre-insert lookup misses once, as if a concurrent writer had not committed yet.
    calls = {"n": 0}

    def _stale_lookup(db, owner_user_id, name, origin):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return get_good_by_key(db, owner_user_id, name, origin)

    monkeypatch.setattr("app.crud.goods.get_good_by_key", _stale_lookup)

    good_id = ensure_good(
        db_session, owner_user_id=1, name="Copper Wire", origin="Chile", unit_type="KG"
    )

    assert good_id == winner_id
    assert calls["n"] == 2
    count = db_session.execute(select(func.count(Good.id))).scalar_one()
    assert count == 1


def test_get_good_for_owner_hides_other_owners_goods(db_session):
    good_id = ensure_good(
        db_session, owner_user_id=1, name="Rice", origin="Vietnam", unit_type="BAG"
    )

    assert get_good_for_owner(db_session, 1, good_id) is not None
    assert get_good_for_owner(db_session, 2, good_id) is None
    assert get_good_for_owner(db_session, 1, 9999) is None


def test_list_goods_for_owner_orders_by_name_then_origin(db_session):
    ensure_good(db_session, owner_user_id=1, name="Rice", origin="Vietnam", unit_type="BAG")
    ensure_good(db_session, owner_user_id=1, name="Rice", origin="India", unit_type="BAG")
    ensure_good(db_session, owner_user_id=1, name="Cotton", origin="Egypt", unit_type="BALE")
    ensure_good(db_session, owner_user_id=2, name="Apples", origin="Chile", unit_type="BOX")

    rows = list_goods_for_owner(db_session, 1)

    assert [(g.name, g.origin) for g in rows] == [
        ("Cotton", "Egypt"),
        ("Rice", "India"),
        ("Rice", "Vietnam"),
    ]
