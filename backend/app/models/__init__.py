from app.models.purchase_order import (
    ProcessingStatus,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
    SyncStatus,
)
from app.models.stock import (
    CentralKitchenFinishedProduct,
    CentralKitchenRawMaterial,
    KuwaitCityRawMaterial,
    Mall360RawMaterial,
    StockReceipt,
    TaibaKitchenRawMaterial,
    VibeComplexRawMaterial,
)
from app.models.sync_log import SyncLog

__all__ = [
    "ProcessingStatus",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "PurchaseOrderStatus",
    "SyncStatus",
    "CentralKitchenFinishedProduct",
    "CentralKitchenRawMaterial",
    "KuwaitCityRawMaterial",
    "Mall360RawMaterial",
    "StockReceipt",
    "TaibaKitchenRawMaterial",
    "VibeComplexRawMaterial",
    "SyncLog",
]
