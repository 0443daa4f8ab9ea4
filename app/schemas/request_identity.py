from __future__ import annotations

from pydantic import BaseModel, Field


class RequestIdentity(BaseModel):
    """
    Caller as resolved from request headers. `can_access_all_shipments` is
    derived from role_names against FULL_ACCESS_ROLES.
    """
    user_id: int | None = None
    email: str | None = None
    auth_source: str = "anonymous"
    role_names: list[str] = Field(default_factory=list)
    can_access_all_shipments: bool = False
