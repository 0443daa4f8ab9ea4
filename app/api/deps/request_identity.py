from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from app.core.config import settings
from app.schemas.request_identity import RequestIdentity

logger = logging.getLogger(__name__)


def _full_access_roles() -> set[str]:
    return {
        token.strip().upper()
        for token in (settings.FULL_ACCESS_ROLES or "").split(",")
        if token.strip()
    }


def _parse_user_id(raw: str | None) -> int | None:
    text = (raw or "").strip()
    if not text:
        return None
    try:
        value = int(text)
    except ValueError:
        raise HTTPException(status_code=400, detail="X-User-Id must be an integer.") from None
    return value if value > 0 else None


def _parse_roles(raw: str | None) -> list[str]:
    return [token.strip().upper() for token in (raw or "").split(",") if token.strip()]


def _identity_from_legacy_header(request: Request) -> RequestIdentity:
    user_id = _parse_user_id(request.headers.get("X-User-Id"))
    email = (request.headers.get("X-User-Email") or "").strip().lower() or None
    role_names = _parse_roles(request.headers.get("X-User-Roles"))
    return RequestIdentity(
        user_id=user_id,
        email=email,
        auth_source="legacy_header",
        role_names=role_names,
        can_access_all_shipments=bool(_full_access_roles() & set(role_names)),
    )


def get_request_identity(request: Request) -> RequestIdentity:
    identity = _identity_from_legacy_header(request)
    logger.debug(
        "request_identity source=%s user_id=%s roles=%s",
        identity.auth_source,
        identity.user_id,
        identity.role_names,
    )
    return identity


def get_owner_identity(request: Request) -> RequestIdentity:
    """Identity with a resolved owner user id; every ledger call is owner-scoped."""
    identity = get_request_identity(request)
    if identity.user_id is None:
        raise HTTPException(status_code=401, detail="Authenticated user id is required.")
    return identity
