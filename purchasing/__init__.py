from .errors import PurchasingError, ValidationError, NotFoundError, StoreError
from .datastore import DataStore, SQLiteDataStore
from .ledger import InventoryLedger
from .tracker import PurchaseOrderItemTracker
from .reconciler import PurchaseOrderStatusReconciler
from .service import PurchaseOrderService

__all__ = [
    "PurchasingError", "ValidationError", "NotFoundError", "StoreError",
    "DataStore", "SQLiteDataStore",
    "InventoryLedger", "PurchaseOrderItemTracker", "PurchaseOrderStatusReconciler",
    "PurchaseOrderService",
]
