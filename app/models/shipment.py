from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import CreatedAtMixin, CreatedByMixin, TimestampMixin

if TYPE_CHECKING:
    from app.models.party import Party


class Shipment(TimestampMixin, Base):
    """
    Shipment header as seen by the goods ledger.
    Owned and maintained by the shipment workflow; the ledger only reads it.
    """
    __tablename__ = "shipments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    shipment_code: Mapped[str] = mapped_column(String(40), unique=True, index=True)

    customers: Mapped[list["ShipmentCustomer"]] = relationship(
        "ShipmentCustomer",
        back_populates="shipment",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Shipment(id={self.id}, code={self.shipment_code!r})>"


class ShipmentCustomer(Base):
    """Customer parties a shipment serves."""
    __tablename__ = "shipment_customers"

    shipment_id: Mapped[int] = mapped_column(
        ForeignKey("shipments.id", ondelete="CASCADE"), primary_key=True
    )
    customer_party_id: Mapped[int] = mapped_column(
        ForeignKey("parties.id", ondelete="RESTRICT"), primary_key=True, index=True
    )

    shipment: Mapped["Shipment"] = relationship("Shipment", back_populates="customers")
    customer: Mapped["Party"] = relationship("Party")


class ShipmentLink(CreatedAtMixin, CreatedByMixin, Base):
    """
    Undirected edge between two shipments of the same owner.
    Only one row exists per pair regardless of direction; readers must check
    both columns.
    """
    __tablename__ = "shipment_links"

    __table_args__ = (
        UniqueConstraint("shipment_id", "connected_shipment_id", name="uq_shipment_link_pair"),
        CheckConstraint("shipment_id <> connected_shipment_id", name="ck_shipment_link_not_self"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    shipment_id: Mapped[int] = mapped_column(
        ForeignKey("shipments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    connected_shipment_id: Mapped[int] = mapped_column(
        ForeignKey("shipments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    shipment_label: Mapped[str | None] = mapped_column(String(120), nullable=True)
    connected_label: Mapped[str | None] = mapped_column(String(120), nullable=True)


class ShipmentAccess(Base):
    """Explicit per-user visibility grant for restricted (non full-access) users."""
    __tablename__ = "shipment_access"

    shipment_id: Mapped[int] = mapped_column(
        ForeignKey("shipments.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
