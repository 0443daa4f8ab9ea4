from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps.request_identity import get_owner_identity
from app.crud.goods import ensure_good, get_good_for_owner, list_goods_for_owner
from app.db.session import get_db
from app.schemas.goods import GoodCreate, GoodRead
from app.schemas.request_identity import RequestIdentity

router = APIRouter()


@router.get("", response_model=list[GoodRead])
def list_goods(
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    return list_goods_for_owner(db, identity.user_id)


@router.post("", response_model=GoodRead, status_code=status.HTTP_201_CREATED)
def ensure_good_api(
    payload: GoodCreate,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    try:
        good_id = ensure_good(
            db,
            owner_user_id=identity.user_id,
            name=payload.name,
            origin=payload.origin,
            unit_type=payload.unit_type,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return get_good_for_owner(db, identity.user_id, good_id)


@router.get("/{good_id}", response_model=GoodRead)
def get_good(
    good_id: int,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_owner_identity),
):
    good = get_good_for_owner(db, identity.user_id, good_id)
    if good is None:
        raise HTTPException(status_code=404, detail="Good not found")
    return good
