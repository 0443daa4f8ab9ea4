from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import case, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.flow_logging import flow_info
from app.models.goods import Good
from app.models.inventory import InventoryBalance, InventoryDirection, InventoryTransaction
from app.schemas.inventory import InventoryBalanceRow

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class BalanceDrift:
    owner_user_id: int
    good_id: int
    recorded_quantity: int
    ledger_quantity: int

    @property
    def delta(self) -> int:
        return self.ledger_quantity - self.recorded_quantity


def _normalized_direction(direction: InventoryDirection | str) -> InventoryDirection:
    try:
        return InventoryDirection(str(getattr(direction, "value", direction)).strip().upper())
    except ValueError:
        raise ValueError("direction must be IN or OUT.") from None


def _apply_balance_delta(db: Session, owner_user_id: int, good_id: int, delta: int) -> None:
    """
    Add `delta` to the (owner, good) balance as one SQL statement.

    PostgreSQL and SQLite use INSERT .. ON CONFLICT DO UPDATE. Other dialects
    try an UPDATE first and fall back to an INSERT in a savepoint, retrying
    the UPDATE if a concurrent writer inserted the row in between.
    """
    dialect = db.get_bind().dialect.name
    insert_fn = _UPSERT_DIALECTS.get(dialect)
    if insert_fn is not None:
        stmt = insert_fn(InventoryBalance).values(
            owner_user_id=owner_user_id,
            good_id=good_id,
            quantity=delta,
            updated_at=func.now(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[InventoryBalance.owner_user_id, InventoryBalance.good_id],
            set_={
                "quantity": InventoryBalance.quantity + stmt.excluded.quantity,
                "updated_at": func.now(),
            },
        )
        db.execute(stmt)
        return

    increment = (
        update(InventoryBalance)
        .where(InventoryBalance.owner_user_id == owner_user_id)
        .where(InventoryBalance.good_id == good_id)
        .values(quantity=InventoryBalance.quantity + delta, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if db.execute(increment).rowcount:
        return
    try:
        with db.begin_nested():
            db.add(InventoryBalance(owner_user_id=owner_user_id, good_id=good_id, quantity=delta))
            db.flush()
    except IntegrityError:
        db.execute(increment)


def record_transaction(
    db: Session,
    *,
    owner_user_id: int,
    good_id: int,
    direction: InventoryDirection | str,
    quantity: int,
    shipment_id: int | None = None,
    shipment_good_id: int | None = None,
    step_id: int | None = None,
    note: str | None = None,
) -> InventoryTransaction:
    """
    Append one ledger row and fold it into the running balance.

    Both writes join the caller's transaction; nothing is committed here.
    """
    direction = _normalized_direction(direction)
    quantity = int(quantity)
    if quantity < 0:
        raise ValueError("quantity must be >= 0.")

    tx = InventoryTransaction(
        owner_user_id=owner_user_id,
        good_id=good_id,
        direction=direction.value,
        quantity=quantity,
        shipment_id=shipment_id,
        shipment_good_id=shipment_good_id,
        step_id=step_id,
        note=note,
    )
    db.add(tx)
    db.flush()

    delta = quantity if direction is InventoryDirection.IN else -quantity
    _apply_balance_delta(db, owner_user_id, good_id, delta)
    flow_info(
        logger,
        "inventory_tx_recorded id=%s owner=%s good=%s direction=%s qty=%s pledge=%s step=%s",
        tx.id,
        owner_user_id,
        good_id,
        direction.value,
        quantity,
        shipment_good_id,
        step_id,
        category="ledger",
    )
    return tx


def has_incoming_for_pledge(db: Session, shipment_good_id: int) -> bool:
    stmt = (
        select(InventoryTransaction.id)
        .where(InventoryTransaction.shipment_good_id == shipment_good_id)
        .where(InventoryTransaction.direction == InventoryDirection.IN.value)
        .limit(1)
    )
    return db.execute(stmt).first() is not None


def get_balance(db: Session, owner_user_id: int, good_id: int) -> int:
    # Column select so ORM identity-map copies never mask a SQL increment.
    stmt = select(InventoryBalance.quantity).where(
        InventoryBalance.owner_user_id == owner_user_id,
        InventoryBalance.good_id == good_id,
    )
    value = db.execute(stmt).scalar_one_or_none()
    return int(value or 0)


def list_balances(db: Session, owner_user_id: int) -> list[InventoryBalanceRow]:
    stmt = (
        select(
            InventoryBalance.owner_user_id,
            InventoryBalance.good_id,
            InventoryBalance.quantity,
            InventoryBalance.updated_at,
            Good.name,
            Good.origin,
            Good.unit_type,
        )
        .join(Good, Good.id == InventoryBalance.good_id)
        .where(InventoryBalance.owner_user_id == owner_user_id)
        .order_by(Good.name.asc(), Good.origin.asc())
    )
    return [
        InventoryBalanceRow(
            owner_user_id=row.owner_user_id,
            good_id=row.good_id,
            quantity=int(row.quantity),
            updated_at=row.updated_at,
            good_name=row.name,
            good_origin=row.origin,
            unit_type=row.unit_type,
        )
        for row in db.execute(stmt).all()
    ]


def _ledger_totals(
    db: Session, owner_user_id: int | None, good_id: int | None
) -> dict[tuple[int, int], int]:
    signed = case(
        (InventoryTransaction.direction == InventoryDirection.OUT.value, -InventoryTransaction.quantity),
        else_=InventoryTransaction.quantity,
    )
    stmt = select(
        InventoryTransaction.owner_user_id,
        InventoryTransaction.good_id,
        func.coalesce(func.sum(signed), 0),
    ).group_by(InventoryTransaction.owner_user_id, InventoryTransaction.good_id)
    if owner_user_id is not None:
        stmt = stmt.where(InventoryTransaction.owner_user_id == owner_user_id)
    if good_id is not None:
        stmt = stmt.where(InventoryTransaction.good_id == good_id)
    return {(row[0], row[1]): int(row[2]) for row in db.execute(stmt).all()}


def _recorded_balances(
    db: Session, owner_user_id: int | None, good_id: int | None
) -> dict[tuple[int, int], int]:
    stmt = select(
        InventoryBalance.owner_user_id,
        InventoryBalance.good_id,
        InventoryBalance.quantity,
    )
    if owner_user_id is not None:
        stmt = stmt.where(InventoryBalance.owner_user_id == owner_user_id)
    if good_id is not None:
        stmt = stmt.where(InventoryBalance.good_id == good_id)
    return {(row[0], row[1]): int(row[2]) for row in db.execute(stmt).all()}


def recompute_balances(
    db: Session,
    *,
    owner_user_id: int | None = None,
    good_id: int | None = None,
    apply: bool = False,
) -> list[BalanceDrift]:
    """
    Audit balances against a full fold of the ledger.

    Returns every (owner, good) whose stored balance differs from
    sum(IN) - sum(OUT); a missing balance row counts as 0. With apply=True the
    stored value is overwritten with the ledger total. Not used on the write
    path. The caller owns the commit.
    """
    ledger = _ledger_totals(db, owner_user_id, good_id)
    recorded = _recorded_balances(db, owner_user_id, good_id)

    drift: list[BalanceDrift] = []
    for key in sorted(set(ledger) | set(recorded)):
        expected = ledger.get(key, 0)
        actual = recorded.get(key, 0)
        if expected != actual:
            drift.append(
                BalanceDrift(
                    owner_user_id=key[0],
                    good_id=key[1],
                    recorded_quantity=actual,
                    ledger_quantity=expected,
                )
            )

    if drift:
        logger.warning(
            "inventory_balance_drift count=%s owner=%s good=%s apply=%s",
            len(drift),
            owner_user_id,
            good_id,
            apply,
        )
    if apply:
        for row in drift:
            # Correction is the difference, applied the same way as any ledger fold.
            _apply_balance_delta(db, row.owner_user_id, row.good_id, row.delta)
    return drift
