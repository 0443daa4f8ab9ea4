from fastapi import APIRouter
from app.api.v1.endpoints import goods, inventory, shipment_goods

api_router = APIRouter()

# Domain routers
api_router.include_router(goods.router, prefix="/goods", tags=["Goods"])
api_router.include_router(shipment_goods.router, prefix="/shipments", tags=["Shipment Goods"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["Inventory"])
