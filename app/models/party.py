from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.mixins import TimestampMixin


class Party(TimestampMixin, Base):
    """
    Read-only projection of the party directory.
    The ledger only needs a display name for customer parties.
    """
    __tablename__ = "parties"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    party_type: Mapped[str] = mapped_column(String(30), nullable=False, default="CUSTOMER")

    def __repr__(self) -> str:
        return f"<Party(id={self.id}, name={self.name!r})>"
