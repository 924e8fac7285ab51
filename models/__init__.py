from .purchase_order import PurchaseOrder, PurchaseOrderItem, OrderStatus
from .inventory import Product, InventoryMovement, MovementType
from .commands import (
    LineItemInput, OrderHeaderInput, CreateOrderCommand, ApproveOrderCommand,
    ReceiveItemCommand, OrderUpdateCommand, ItemUpdateCommand,
)
from .result import ReceiptProgress, SupplierSpend, PurchasesDashboard

__all__ = [
    "PurchaseOrder", "PurchaseOrderItem", "OrderStatus",
    "Product", "InventoryMovement", "MovementType",
    "LineItemInput", "OrderHeaderInput", "CreateOrderCommand", "ApproveOrderCommand",
    "ReceiveItemCommand", "OrderUpdateCommand", "ItemUpdateCommand",
    "ReceiptProgress", "SupplierSpend", "PurchasesDashboard",
]
