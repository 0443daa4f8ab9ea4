from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class InventoryBalanceRow(BaseModel):
    owner_user_id: int
    good_id: int
    quantity: int
    updated_at: datetime
    good_name: str
    good_origin: str
    unit_type: str


class InventoryTransactionRow(BaseModel):
    id: int
    owner_user_id: int
    good_id: int
    shipment_id: int | None = None
    shipment_good_id: int | None = None
    step_id: int | None = None
    direction: str
    quantity: int
    created_at: datetime
    note: str | None = None
    shipment_code: str | None = None
    good_name: str
    good_origin: str
    unit_type: str


class CustomerInventoryTransactionRow(InventoryTransactionRow):
    customer_party_id: int | None = None
    customer_name: str | None = None


class ShipmentRef(BaseModel):
    shipment_id: int
    shipment_code: str


class CustomerGoodsSummaryRow(BaseModel):
    good_id: int
    good_name: str
    good_origin: str
    unit_type: str
    total_quantity: int
    remaining_quantity: int
    shipment_count: int
    shipment_refs: list[ShipmentRef] = Field(default_factory=list)


class BalanceDriftRow(BaseModel):
    owner_user_id: int
    good_id: int
    recorded_quantity: int
    ledger_quantity: int

    @property
    def delta(self) -> int:
        return self.ledger_quantity - self.recorded_quantity


class BalanceAuditRequest(BaseModel):
    good_id: int | None = Field(default=None, ge=1)
    apply: bool = False


class BalanceAuditResponse(BaseModel):
    checked_owner_user_id: int
    repaired: bool
    drift: list[BalanceDriftRow]
