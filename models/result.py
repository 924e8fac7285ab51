from pydantic import BaseModel, Field
from typing import List


class ReceiptProgress(BaseModel):
    """Outcome of adding an incoming quantity to one line item."""
    new_total: int
    is_fully_received: bool


class SupplierSpend(BaseModel):
    supplier_id: str
    order_count: int
    total_value: float


class PurchasesDashboard(BaseModel):
    """Aggregate figures for the purchasing overview."""
    total_orders: int = 0
    pending_orders: int = 0                 # orders still in draft
    total_value: float = 0.0
    top_suppliers: List[SupplierSpend] = Field(default_factory=list)
    timestamp: str
