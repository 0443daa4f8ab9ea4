from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import CreatedAtMixin, CreatedByMixin, TimestampMixin

if TYPE_CHECKING:
    from app.models.party import Party
    from app.models.shipment import Shipment


class Good(TimestampMixin, Base):
    """
    Catalog entry, deduplicated per owner by (name, origin).
    Rows are immutable apart from timestamps and are never deleted.
    """
    __tablename__ = "goods"

    __table_args__ = (
        UniqueConstraint("owner_user_id", "name", "origin", name="uq_goods_owner_name_origin"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    origin: Mapped[str] = mapped_column(String(120), nullable=False)
    unit_type: Mapped[str] = mapped_column(String(40), nullable=False)

    def __repr__(self) -> str:
        return f"<Good(id={self.id}, name={self.name!r}, origin={self.origin!r})>"


class ShipmentGood(TimestampMixin, CreatedByMixin, Base):
    """
    A pledge: the shipment contributes `quantity` of a good, either to one
    customer party or to every customer of the shipment.

    `quantity` is never decremented; consumption lives in
    ShipmentGoodsAllocation. Ids are not reused after deletion so a new pledge
    can never pick up a deleted pledge's allocation history.
    """
    __tablename__ = "shipment_goods"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_shipment_goods_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    shipment_id: Mapped[int] = mapped_column(
        ForeignKey("shipments.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    good_id: Mapped[int] = mapped_column(
        ForeignKey("goods.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    owner_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    customer_party_id: Mapped[int | None] = mapped_column(
        ForeignKey("parties.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    applies_to_all_customers: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    good: Mapped["Good"] = relationship("Good")
    shipment: Mapped["Shipment"] = relationship("Shipment")
    customer: Mapped["Party"] = relationship("Party")

    def __repr__(self) -> str:
        return (
            f"<ShipmentGood(id={self.id}, shipment={self.shipment_id}, "
            f"good={self.good_id}, qty={self.quantity})>"
        )


class ShipmentGoodsAllocation(CreatedAtMixin, CreatedByMixin, Base):
    """
    How much of one pledge a workflow step consumed.

    (shipment_good_id, step_id) is unique: a step can consume a pledge once.
    Rows are insert-only. shipment_good_id is kept as plain provenance so that
    deleting a pledge leaves its allocation history intact.
    """
    __tablename__ = "shipment_goods_allocations"

    __table_args__ = (
        UniqueConstraint("shipment_good_id", "step_id", name="uq_shipment_goods_allocation_step"),
        CheckConstraint("taken_quantity >= 0", name="ck_allocation_taken_non_negative"),
        CheckConstraint("inventory_quantity >= 0", name="ck_allocation_remaining_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    shipment_good_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    step_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    taken_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Pledge availability left after this allocation was applied.
    inventory_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ShipmentGoodsAllocation(pledge={self.shipment_good_id}, "
            f"step={self.step_id}, taken={self.taken_quantity})>"
        )
