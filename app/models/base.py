# Import the declarative base
from app.db.base import Base

# Import all models for Alembic/SQLAlchemy discovery
# Note: These imports are required so that they register themselves on Base.metadata

# --- 1. Directory projections (maintained by the shipment/party subsystems) ---
from app.models.party import Party
from app.models.shipment import (
    Shipment,
    ShipmentAccess,
    ShipmentCustomer,
    ShipmentLink,
)

# --- 2. Goods catalog & pledges ---
from app.models.goods import Good, ShipmentGood, ShipmentGoodsAllocation

# --- 3. Ledger ---
from app.models.inventory import InventoryBalance, InventoryTransaction

# This allows Alembic's env.py to simply do: "from app.models.base import Base"
# and have access to the metadata for all tables.
