"""
Applies goods allocations when a workflow step completes.

The workflow engine hands over the narrow (pledge_id, requested_quantity)
pairs it extracted from the step form. Each call is one atomic batch:
requests are handled in order, expected "nothing to do" cases are skipped
silently, and only storage failures abort (and roll back) the whole batch.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.flow_logging import flow_info
from app.db.session import atomic
from app.models.goods import ShipmentGood, ShipmentGoodsAllocation
from app.models.inventory import InventoryDirection
from app.schemas.goods import AllocationCandidateRow, AllocationRequest
from app.services.inventory_ledger_service import has_incoming_for_pledge, record_transaction
from app.services.shipment_goods_service import (
    GOODS_RECEIVED_NOTE,
    list_candidate_rows,
    taken_total_for_pledge,
)
from app.services.shipment_link_service import (
    connected_shipment_ids,
    eligible_pledges,
    is_pledge_reachable,
    shipment_customer_ids,
)

logger = logging.getLogger(__name__)

GOODS_ALLOCATED_NOTE = "Shipment goods allocated"


class AllocationSkipReason(str, enum.Enum):
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    OWNER_MISMATCH = "owner_mismatch"
    UNREACHABLE = "unreachable"
    EXHAUSTED = "exhausted"


@dataclass
class AppliedAllocation:
    allocation_id: int
    pledge_id: int
    taken_quantity: int
    inventory_quantity: int


@dataclass
class SkippedAllocation:
    pledge_id: int
    reason: AllocationSkipReason


@dataclass
class AllocationBatchResult:
    shipment_id: int
    step_id: int
    applied: list[AppliedAllocation] = field(default_factory=list)
    skipped: list[SkippedAllocation] = field(default_factory=list)


def _requested_units(value) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, math.floor(number))


def _allocation_exists(db: Session, pledge_id: int, step_id: int) -> bool:
    stmt = (
        select(ShipmentGoodsAllocation.id)
        .where(ShipmentGoodsAllocation.shipment_good_id == pledge_id)
        .where(ShipmentGoodsAllocation.step_id == step_id)
        .limit(1)
    )
    return db.execute(stmt).first() is not None


def _load_pledge(db: Session, pledge_id: int) -> ShipmentGood | None:
    stmt = select(ShipmentGood).where(ShipmentGood.id == pledge_id)
    if settings.ALLOCATION_ROW_LOCKS:
        # Serializes read-available / insert-allocation per pledge across writers.
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalars().first()


def _insert_allocation(
    db: Session,
    *,
    pledge_id: int,
    step_id: int,
    taken: int,
    remaining: int,
    created_by_user_id: int,
) -> ShipmentGoodsAllocation | None:
    """Insert behind the (pledge, step) unique constraint; None if another writer won."""
    allocation = ShipmentGoodsAllocation(
        shipment_good_id=pledge_id,
        step_id=step_id,
        taken_quantity=taken,
        inventory_quantity=remaining,
        created_by_user_id=created_by_user_id,
    )
    try:
        with db.begin_nested():
            db.add(allocation)
            db.flush()
    except IntegrityError:
        return None
    return allocation


def _apply_one(
    db: Session,
    request: AllocationRequest,
    *,
    shipment_id: int,
    step_id: int,
    owner_user_id: int,
    connected_ids: set[int],
    customer_ids: set[int],
    result: AllocationBatchResult,
) -> None:
    pledge_id = int(request.pledge_id)

    def skip(reason: AllocationSkipReason) -> None:
        result.skipped.append(SkippedAllocation(pledge_id=pledge_id, reason=reason))
        flow_info(
            logger,
            "allocation_skipped shipment=%s step=%s pledge=%s reason=%s",
            shipment_id,
            step_id,
            pledge_id,
            reason.value,
            category="allocation",
        )

    if _allocation_exists(db, pledge_id, step_id):
        skip(AllocationSkipReason.DUPLICATE)
        return

    pledge = _load_pledge(db, pledge_id)
    if pledge is None:
        skip(AllocationSkipReason.NOT_FOUND)
        return
    if pledge.owner_user_id != owner_user_id:
        skip(AllocationSkipReason.OWNER_MISMATCH)
        return
    if not is_pledge_reachable(
        pledge,
        shipment_id=shipment_id,
        connected_ids=connected_ids,
        customer_ids=customer_ids,
    ):
        skip(AllocationSkipReason.UNREACHABLE)
        return

    available = max(0, int(pledge.quantity) - taken_total_for_pledge(db, pledge.id))
    if available <= 0:
        skip(AllocationSkipReason.EXHAUSTED)
        return

    taken = min(_requested_units(request.requested_quantity), available)
    remaining = available - taken

    allocation = _insert_allocation(
        db,
        pledge_id=pledge.id,
        step_id=step_id,
        taken=taken,
        remaining=remaining,
        created_by_user_id=owner_user_id,
    )
    if allocation is None:
        skip(AllocationSkipReason.DUPLICATE)
        return

    # Pledges normally receive their IN entry at registration; older rows may not have one.
    if int(pledge.quantity) > 0 and not has_incoming_for_pledge(db, pledge.id):
        record_transaction(
            db,
            owner_user_id=owner_user_id,
            good_id=pledge.good_id,
            direction=InventoryDirection.IN,
            quantity=int(pledge.quantity),
            shipment_id=pledge.shipment_id,
            shipment_good_id=pledge.id,
            step_id=step_id,
            note=GOODS_RECEIVED_NOTE,
        )

    if taken > 0:
        record_transaction(
            db,
            owner_user_id=owner_user_id,
            good_id=pledge.good_id,
            direction=InventoryDirection.OUT,
            quantity=taken,
            shipment_id=pledge.shipment_id,
            shipment_good_id=pledge.id,
            step_id=step_id,
            note=GOODS_ALLOCATED_NOTE,
        )

    result.applied.append(
        AppliedAllocation(
            allocation_id=allocation.id,
            pledge_id=pledge.id,
            taken_quantity=taken,
            inventory_quantity=remaining,
        )
    )
    flow_info(
        logger,
        "allocation_applied shipment=%s step=%s pledge=%s pledge_shipment=%s taken=%s remaining=%s",
        shipment_id,
        step_id,
        pledge.id,
        pledge.shipment_id,
        taken,
        remaining,
        category="allocation",
    )


def apply_allocations(
    db: Session,
    *,
    shipment_id: int,
    step_id: int,
    owner_user_id: int,
    requests: Iterable[AllocationRequest],
) -> AllocationBatchResult:
    """
    Consume pledged goods for one completed workflow step.

    Re-running the same (shipment, step, requests) is a no-op: every request
    is skipped as a duplicate. A successful return does not mean anything was
    applied; inspect `applied` / `skipped` when that matters.
    """
    requests = [
        r if isinstance(r, AllocationRequest) else AllocationRequest.model_validate(r)
        for r in requests
    ]
    result = AllocationBatchResult(shipment_id=shipment_id, step_id=step_id)
    if not requests:
        return result

    try:
        with atomic(db):
            connected = connected_shipment_ids(db, shipment_id, owner_user_id)
            customers = shipment_customer_ids(db, shipment_id)
            for request in requests:
                _apply_one(
                    db,
                    request,
                    shipment_id=shipment_id,
                    step_id=step_id,
                    owner_user_id=owner_user_id,
                    connected_ids=connected,
                    customer_ids=customers,
                    result=result,
                )
    except SQLAlchemyError as exc:
        logger.warning(
            "allocation_batch_failed shipment=%s step=%s owner=%s requests=%s error=%s",
            shipment_id,
            step_id,
            owner_user_id,
            len(requests),
            exc,
        )
        raise

    logger.info(
        "allocation_batch_done shipment=%s step=%s owner=%s applied=%s skipped=%s",
        shipment_id,
        step_id,
        owner_user_id,
        len(result.applied),
        len(result.skipped),
    )
    return result


def list_allocation_candidates(
    db: Session, *, shipment_id: int, owner_user_id: int
) -> list[AllocationCandidateRow]:
    """Pledges a step editor on `shipment_id` may allocate from, own shipment first."""
    pledge_ids = [pledge.id for pledge in eligible_pledges(db, shipment_id, owner_user_id)]
    return list_candidate_rows(
        db,
        shipment_id=shipment_id,
        owner_user_id=owner_user_id,
        pledge_ids=pledge_ids,
    )
