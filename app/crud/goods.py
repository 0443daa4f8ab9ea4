from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.goods import Good

logger = logging.getLogger(__name__)


def _natural_key(name: str, origin: str) -> tuple[str, str]:
    return (name or "").strip(), (origin or "").strip()


def get_good_by_key(db: Session, owner_user_id: int, name: str, origin: str) -> Good | None:
    name, origin = _natural_key(name, origin)
    stmt = select(Good).where(
        Good.owner_user_id == owner_user_id,
        Good.name == name,
        Good.origin == origin,
    )
    return db.execute(stmt).scalars().first()


def ensure_good(
    db: Session,
    *,
    owner_user_id: int,
    name: str,
    origin: str,
    unit_type: str,
) -> int:
    """
    Get-or-create a catalog good by (owner, name, origin) and return its id.

    The insert runs in a SAVEPOINT. If a concurrent writer created the same key
    first, the unique constraint fires, the savepoint is rolled back and the
    winner's row is re-read, so every caller gets the same id. unit_type of an
    existing good is left as it was. The caller owns the commit.
    """
    name, origin = _natural_key(name, origin)
    existing = get_good_by_key(db, owner_user_id, name, origin)
    if existing is not None:
        return existing.id

    good = Good(
        owner_user_id=owner_user_id,
        name=name,
        origin=origin,
        unit_type=(unit_type or "").strip(),
    )
    try:
        with db.begin_nested():
            db.add(good)
            db.flush()
    except IntegrityError:
        logger.info(
            "ensure_good_lost_race owner=%s name=%s origin=%s", owner_user_id, name, origin
        )
        existing = get_good_by_key(db, owner_user_id, name, origin)
        if existing is None:
            raise
        return existing.id
    return good.id


def get_good_for_owner(db: Session, owner_user_id: int, good_id: int) -> Good | None:
    good = db.get(Good, good_id)
    if good is None or good.owner_user_id != owner_user_id:
        return None
    return good


def list_goods_for_owner(db: Session, owner_user_id: int) -> list[Good]:
    stmt = (
        select(Good)
        .where(Good.owner_user_id == owner_user_id)
        .order_by(Good.name.asc(), Good.origin.asc())
    )
    return list(db.execute(stmt).scalars().all())
