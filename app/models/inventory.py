import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.mixins import CreatedAtMixin


class InventoryDirection(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"


class InventoryTransaction(CreatedAtMixin, Base):
    """
    Append-only ledger of inventory movements per (owner, good).

    shipment_id / shipment_good_id / step_id are provenance tags, not cascaded
    foreign keys: history must survive pledge deletion untouched.
    """
    __tablename__ = "inventory_transactions"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_transactions_quantity_non_negative"),
        CheckConstraint("direction IN ('IN', 'OUT')", name="ck_inventory_transactions_direction"),
        Index("ix_inventory_transactions_owner_good", "owner_user_id", "good_id"),
        Index("ix_inventory_transactions_pledge_direction", "shipment_good_id", "direction"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    good_id: Mapped[int] = mapped_column(
        ForeignKey("goods.id", ondelete="RESTRICT"), nullable=False
    )
    direction: Mapped[str] = mapped_column(String(3), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    shipment_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    shipment_good_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    step_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def signed_quantity(self) -> int:
        if self.direction == InventoryDirection.OUT.value:
            return -int(self.quantity)
        return int(self.quantity)

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction(id={self.id}, good={self.good_id}, "
            f"{self.direction} {self.quantity})>"
        )


class InventoryBalance(Base):
    """
    Running balance per (owner, good), kept equal to sum(IN) - sum(OUT).
    Only ever changed by a SQL increment in the same unit of work as the
    ledger row that caused it.
    """
    __tablename__ = "inventory_balances"

    owner_user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    good_id: Mapped[int] = mapped_column(
        ForeignKey("goods.id", ondelete="RESTRICT"), primary_key=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
