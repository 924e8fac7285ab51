"""
Per-line receipt tracking for Purchase Orders.
"""
import logging
from datetime import date
from typing import Optional

from models.purchase_order import PurchaseOrderItem
from models.result import ReceiptProgress

from .datastore import DataStore, utcnow_iso

logger = logging.getLogger(__name__)


class PurchaseOrderItemTracker:
    """Computes and persists the cumulative received quantity of a line item."""

    def __init__(self, store: DataStore) -> None:
        self.store = store

    @staticmethod
    def record_receipt(item: PurchaseOrderItem, incoming_qty: int) -> ReceiptProgress:
        """
        Add *incoming_qty* to what has already been received.

        The total is not clamped to quantity_ordered: an over-shipment is
        recorded as-is and still counts as fully received.
        """
        new_total = item.quantity_received + incoming_qty
        progress = ReceiptProgress(
            new_total=new_total,
            is_fully_received=new_total >= item.quantity_ordered,
        )
        if new_total > item.quantity_ordered:
            logger.warning(
                "Over-receipt on item %s: received %d of %d ordered",
                item.id, new_total, item.quantity_ordered,
            )
        return progress

    def persist(
        self,
        item: PurchaseOrderItem,
        progress: ReceiptProgress,
        received_date: Optional[date] = None,
    ) -> PurchaseOrderItem:
        received_on = (received_date or date.today()).isoformat()
        row = self.store.update("purchase_order_items", item.id, {
            "quantity_received": progress.new_total,
            "received_date":     received_on,
            "updated_at":        utcnow_iso(),
        })
        logger.debug("Item %s received total now %d", item.id, progress.new_total)
        return PurchaseOrderItem.model_validate(row)
