from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from .base import BaseSchema


def _strip_required(value: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValueError("must not be blank")
    return text


class GoodCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    origin: str = Field(min_length=1, max_length=120)
    unit_type: str = Field(min_length=1, max_length=40)

    @field_validator("name", "origin", "unit_type")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _strip_required(v)


class GoodRead(BaseSchema):
    id: int
    owner_user_id: int
    name: str
    origin: str
    unit_type: str
    created_at: datetime
    updated_at: datetime


class PledgeCreate(BaseModel):
    """
    Registers goods against a shipment. Target one customer party, set
    applies_to_all_customers, or leave both unset for a pledge only its own
    shipment can draw on. Setting both is rejected.
    """
    good_id: int = Field(ge=1)
    quantity: int = Field(ge=0)
    customer_party_id: int | None = Field(default=None, ge=1)
    applies_to_all_customers: bool = False

    @model_validator(mode="after")
    def single_customer_scope(self) -> "PledgeCreate":
        if self.applies_to_all_customers and self.customer_party_id is not None:
            raise ValueError(
                "customer_party_id and applies_to_all_customers are mutually exclusive"
            )
        return self


class PledgeCreated(BaseModel):
    pledge_id: int


class PledgeRow(BaseModel):
    id: int
    shipment_id: int
    good_id: int
    owner_user_id: int
    customer_party_id: int | None = None
    applies_to_all_customers: bool
    quantity: int
    created_at: datetime
    created_by_user_id: int | None = None
    updated_at: datetime
    good_name: str
    good_origin: str
    unit_type: str
    customer_name: str | None = None
    allocated_quantity: int = 0
    inventory_quantity: int = 0
    allocated_at: datetime | None = None


class AllocationCandidateRow(PledgeRow):
    shipment_code: str = ""
    is_connected: bool = False


class AllocationRequest(BaseModel):
    """One {pledge, quantity} pair extracted from a completed step form."""
    pledge_id: int
    requested_quantity: float = 0

    @field_validator("requested_quantity", mode="before")
    @classmethod
    def blank_as_zero(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return 0
        return v


class AllocationBatchCreate(BaseModel):
    allocations: list[AllocationRequest] = Field(default_factory=list)


class AppliedAllocationView(BaseModel):
    allocation_id: int
    pledge_id: int
    taken_quantity: int
    inventory_quantity: int


class SkippedAllocationView(BaseModel):
    pledge_id: int
    reason: str


class AllocationBatchResponse(BaseModel):
    shipment_id: int
    step_id: int
    applied: list[AppliedAllocationView]
    skipped: list[SkippedAllocationView]
