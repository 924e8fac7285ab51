"""
Inventory ledger: the single point of mutation for product stock levels.

Every stock change is paired with an InventoryMovement row so the ledger can
always explain the current stock_quantity.

Update modes
------------
  atomic              Stock is changed with a single increment statement and
                      the movement append shares the same transaction.
                      Concurrent receipts never lose updates.
  read_modify_write   Reads stock_quantity, computes the new value and writes
                      it back in separate calls.  Two concurrent receipts on
                      the same product can overwrite each other (lost update).
                      Kept for parity with stores that lack an atomic add.
"""
import logging
from typing import Optional

from models.inventory import InventoryMovement, Product

from .datastore import DataStore, utcnow_iso
from .errors import ValidationError

logger = logging.getLogger(__name__)

MODE_ATOMIC = "atomic"
MODE_READ_MODIFY_WRITE = "read_modify_write"
STOCK_UPDATE_MODES = {MODE_ATOMIC, MODE_READ_MODIFY_WRITE}

DIRECTIONS = {"in", "out"}


class InventoryLedger:
    """
    Applies stock deltas and appends the matching movement record.

    Usage:
        ledger = InventoryLedger(store)
        new_stock = ledger.apply_delta(product_id, 5, "in", reference_id=order_id)
    """

    def __init__(
        self,
        store: DataStore,
        mode: str = MODE_ATOMIC,
        reference_type: str = "purchase_order",
    ) -> None:
        if mode not in STOCK_UPDATE_MODES:
            raise ValueError(f"Invalid stock update mode {mode!r}. Must be one of {STOCK_UPDATE_MODES}")
        self.store = store
        self.mode = mode
        self.reference_type = reference_type

    def apply_delta(
        self,
        product_id: str,
        quantity: int,
        direction: str,
        reference_id: Optional[str] = None,
    ) -> int:
        """
        Move *quantity* units of a product in or out of stock.

        Returns the product's new stock_quantity.  Negative stock is allowed.
        Raises NotFoundError if the product does not exist.
        """
        if direction not in DIRECTIONS:
            raise ValidationError(f"Invalid movement direction {direction!r}. Must be 'in' or 'out'")
        if quantity <= 0:
            raise ValidationError(f"Movement quantity must be positive, got {quantity}")

        signed = quantity if direction == "in" else -quantity

        if self.mode == MODE_ATOMIC:
            with self.store.transaction():
                product = self.store.increment("products", product_id, "stock_quantity", signed)
                self._append_movement(product_id, quantity, direction, reference_id)
        else:
            current = self.store.find_one("products", product_id)
            new_quantity = (current.get("stock_quantity") or 0) + signed
            product = self.store.update("products", product_id, {
                "stock_quantity": new_quantity,
                "updated_at":     utcnow_iso(),
            })
            self._append_movement(product_id, quantity, direction, reference_id)

        new_stock = product["stock_quantity"]
        logger.info(
            "Stock %s: product=%s qty=%d → %d", direction, product_id, quantity, new_stock,
        )
        if new_stock < 0:
            logger.warning("Product %s stock is negative (%d)", product_id, new_stock)
        return new_stock

    def stock_level(self, product_id: str) -> Product:
        return Product.model_validate(self.store.find_one("products", product_id))

    def movements(self, product_id: str) -> list[InventoryMovement]:
        """Return the movement history for one product, oldest first."""
        rows = self.store.find(
            "inventory_movements", {"product_id": product_id}, order_by="created_at",
        )
        return [InventoryMovement.model_validate(r) for r in rows]

    def _append_movement(
        self,
        product_id: str,
        quantity: int,
        direction: str,
        reference_id: Optional[str],
    ) -> dict:
        return self.store.insert("inventory_movements", {
            "product_id":     product_id,
            "movement_type":  direction,
            "quantity":       quantity,
            "reference_type": self.reference_type,
            "reference_id":   reference_id,
            "notes":          f"Stock {direction} from {self.reference_type.replace('_', ' ')}",
            "created_at":     utcnow_iso(),
        })
