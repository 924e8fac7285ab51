"""
Validated command objects for the purchasing operations.

Raw payloads (HTTP bodies, CLI JSON files) are parsed into these models before
they reach PurchaseOrderService, so the service only ever sees typed values.
"""
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class LineItemInput(BaseModel):
    """One requested line on a new Purchase Order."""
    product_id: str = Field(min_length=1)
    quantity_ordered: int = Field(gt=0)
    unit_cost: float = Field(ge=0)


class OrderHeaderInput(BaseModel):
    """
    Header fields a clerk may supply.  Totals, status and approver are
    derived by the service, so any such keys in the payload are dropped.
    """
    model_config = ConfigDict(extra="ignore")

    po_number: Optional[str] = None
    supplier_id: str = Field(min_length=1)
    order_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None
    created_by_user_id: Optional[str] = None


class CreateOrderCommand(BaseModel):
    header: OrderHeaderInput
    items: List[LineItemInput] = Field(min_length=1)


class ApproveOrderCommand(BaseModel):
    order_id: str = Field(min_length=1)
    approved_by_user_id: str = Field(min_length=1)


class ReceiveItemCommand(BaseModel):
    item_id: str = Field(min_length=1)
    quantity_received: int = Field(gt=0)
    received_date: Optional[date] = None


class OrderUpdateCommand(BaseModel):
    """Editable header fields.  Anything else is rejected."""
    model_config = ConfigDict(extra="forbid")

    supplier_id: Optional[str] = Field(default=None, min_length=1)
    order_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None


class ItemUpdateCommand(BaseModel):
    """Editable line fields (draft orders only)."""
    model_config = ConfigDict(extra="forbid")

    quantity_ordered: Optional[int] = Field(default=None, gt=0)
    unit_cost: Optional[float] = Field(default=None, ge=0)
