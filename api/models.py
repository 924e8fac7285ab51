"""
Pydantic models for purchasing API requests.

Bodies are only shaped here; field rules (positive quantities, non-negative
costs, editable fields) are enforced by the service's command models.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional


class CreateOrderRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    items: list[dict[str, Any]] = Field(default_factory=list)

    def header(self) -> dict:
        return self.model_dump(exclude={"items"})


class ApproveRequest(BaseModel):
    approved_by_user_id: str


class ReceiveRequest(BaseModel):
    quantity_received: int
    received_date: Optional[str] = None   # YYYY-MM-DD, defaults to today


class Envelope(BaseModel):
    success: bool
    data: Any = None
    message: Optional[str] = None
