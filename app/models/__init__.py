from .party import Party  # noqa: F401
from .shipment import Shipment, ShipmentAccess, ShipmentCustomer, ShipmentLink  # noqa: F401
from .goods import Good, ShipmentGood, ShipmentGoodsAllocation  # noqa: F401
from .inventory import InventoryBalance, InventoryDirection, InventoryTransaction  # noqa: F401
