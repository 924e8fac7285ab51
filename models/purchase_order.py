from pydantic import BaseModel, Field
from typing import Optional, List, Literal


OrderStatus = Literal["draft", "confirmed", "received", "cancelled"]

STATUS_DRAFT     = "draft"
STATUS_CONFIRMED = "confirmed"
STATUS_RECEIVED  = "received"
STATUS_CANCELLED = "cancelled"
TERMINAL_STATUSES = {STATUS_RECEIVED, STATUS_CANCELLED}


class PurchaseOrderItem(BaseModel):
    """A single line item on a Purchase Order."""
    id: str
    purchase_order_id: str
    product_id: str
    quantity_ordered: int
    quantity_received: int = 0
    unit_cost: float
    line_total: float                       # quantity_ordered * unit_cost
    received_date: Optional[str] = None     # YYYY-MM-DD of the latest receipt
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_fully_received(self) -> bool:
        return self.quantity_received >= self.quantity_ordered

    @property
    def quantity_outstanding(self) -> int:
        return max(self.quantity_ordered - self.quantity_received, 0)


class PurchaseOrder(BaseModel):
    """
    A Purchase Order header with its line items attached.
    subtotal / tax_amount / total_amount are always derived from the items.
    """
    id: str
    po_number: Optional[str] = None
    supplier_id: Optional[str] = None
    status: OrderStatus = STATUS_DRAFT
    order_date: Optional[str] = None              # YYYY-MM-DD
    expected_delivery_date: Optional[str] = None  # YYYY-MM-DD
    actual_delivery_date: Optional[str] = None    # set when every item is received
    subtotal: float = 0.0
    tax_amount: float = 0.0
    total_amount: float = 0.0
    notes: Optional[str] = None
    created_by_user_id: Optional[str] = None
    approved_by_user_id: Optional[str] = None     # null until approved
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    items: List[PurchaseOrderItem] = Field(default_factory=list)
