from pydantic import BaseModel
from typing import Optional, Literal


MovementType = Literal["in", "out"]


class Product(BaseModel):
    """Stock-holding product.  Only the inventory ledger changes stock_quantity."""
    id: str
    sku: Optional[str] = None
    name: Optional[str] = None
    stock_quantity: int = 0


class InventoryMovement(BaseModel):
    """One immutable row of the stock movement ledger."""
    id: str
    product_id: str
    movement_type: MovementType
    quantity: int
    reference_type: Optional[str] = None    # e.g. "purchase_order"
    reference_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: str
