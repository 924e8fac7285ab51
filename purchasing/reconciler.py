"""
Derives a Purchase Order's status from the receipt state of its items.
"""
import logging
from datetime import date

from models.purchase_order import STATUS_CANCELLED, STATUS_RECEIVED

from .datastore import DataStore, utcnow_iso

logger = logging.getLogger(__name__)


class PurchaseOrderStatusReconciler:
    """
    Marks an order 'received' once every line item is fully received.

    check_order() is idempotent: the status and actual_delivery_date are only
    written on the transition, so later receipts on a received order leave
    both untouched.  Cancelled orders are never reconciled.
    """

    def __init__(self, store: DataStore) -> None:
        self.store = store

    def check_order(self, order_id: str) -> bool:
        """Return True if every item of the order is fully received."""
        order = self.store.find_one("purchase_orders", order_id)
        if order["status"] == STATUS_CANCELLED:
            logger.debug("Order %s is cancelled, skipping reconciliation", order_id)
            return False

        items = self.store.find("purchase_order_items", {"purchase_order_id": order_id})
        if not items:
            logger.debug("Order %s has no items, nothing to reconcile", order_id)
            return False

        all_received = all(
            (item.get("quantity_received") or 0) >= item["quantity_ordered"]
            for item in items
        )
        if all_received and order["status"] != STATUS_RECEIVED:
            self.store.update("purchase_orders", order_id, {
                "status":               STATUS_RECEIVED,
                "actual_delivery_date": date.today().isoformat(),
                "updated_at":           utcnow_iso(),
            })
            logger.info("Order %s fully received (%d items)", order_id, len(items))
        return all_received
