"""
Purchase Order lifecycle orchestration.

State machine (PurchaseOrder.status)
------------------------------------
  draft      → confirmed   approve_order()   (manual, authorised role)
  confirmed  → received    receive_item()    (automatic, once every line item
                                              has quantity_received >= ordered)
  draft / confirmed → cancelled  cancel_order()

  received and cancelled are terminal.  Receiving against a cancelled order
  is rejected.

Receiving flow
--------------
  receive_item(item_id, qty, date)
    1. load item and parent order
    2. tracker adds qty to quantity_received and persists the item
    3. ledger moves qty units of the product into stock (+ movement row)
    4. if the item is now fully received, the reconciler re-checks the order

  With Config.transactional_receiving the three writes share one store
  transaction, so a failure at any step leaves item, stock and order as they
  were.
"""
import logging
import math
import uuid
from contextlib import nullcontext
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

import pydantic

from config import Config
from models.commands import (
    ApproveOrderCommand,
    CreateOrderCommand,
    ItemUpdateCommand,
    OrderUpdateCommand,
    ReceiveItemCommand,
)
from models.purchase_order import (
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    STATUS_DRAFT,
    STATUS_RECEIVED,
    TERMINAL_STATUSES,
    PurchaseOrder,
    PurchaseOrderItem,
)
from models.result import PurchasesDashboard, SupplierSpend

from .datastore import DataStore, utcnow_iso
from .errors import NotFoundError, ValidationError
from .ledger import InventoryLedger
from .reconciler import PurchaseOrderStatusReconciler
from .tracker import PurchaseOrderItemTracker

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")

ORDERS = "purchase_orders"
ITEMS  = "purchase_order_items"
SUPPLIERS = "suppliers"


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _line_amount(quantity: int, unit_cost: float) -> Decimal:
    return Decimal(quantity) * Decimal(str(unit_cost))


def compute_totals(lines: list[tuple[int, float]], tax_rate: float) -> dict[str, float]:
    """
    Return subtotal / tax_amount / total_amount for (quantity, unit_cost) pairs.

    Line amounts and the subtotal are exact Decimal sums of quantity × cost.
    Only the tax is rounded half-up to cents, so 10 × 5.00 at 12% gives
    50.00 / 6.00 / 56.00 and 3 × 0.333 keeps a subtotal of 0.999.
    """
    subtotal = sum((_line_amount(qty, cost) for qty, cost in lines), Decimal("0"))
    tax = _money(subtotal * Decimal(str(tax_rate)))
    return {
        "subtotal":     float(subtotal),
        "tax_amount":   float(tax),
        "total_amount": float(subtotal + tax),
    }


def line_total(quantity: int, unit_cost: float) -> float:
    return float(_line_amount(quantity, unit_cost))


def _parse(model: type[pydantic.BaseModel], data: dict) -> Any:
    """Validate a raw payload into a command, raising ValidationError on failure."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ())) or model.__name__
        raise ValidationError(f"{where}: {first['msg']}") from exc


def _generate_po_number(order_date: date) -> str:
    return f"PO-{order_date:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


class PurchaseOrderService:
    """
    Entry point for every purchase-order operation.

    Usage:
        service = PurchaseOrderService(SQLiteDataStore(config.db_path), config)
        order = service.create_order({"supplier_id": "SUP-1"}, [
            {"product_id": "P-1", "quantity_ordered": 10, "unit_cost": 5.00},
        ])
        service.approve_order(order.id, "manager-1")
        service.receive_item(order.items[0].id, 10)
    """

    def __init__(self, store: DataStore, config: Optional[Config] = None) -> None:
        self.store = store
        self.config = config or Config()
        self.tracker = PurchaseOrderItemTracker(store)
        self.ledger = InventoryLedger(store, mode=self.config.stock_update_mode)
        self.reconciler = PurchaseOrderStatusReconciler(store)

    # ------------------------------------------------------------------
    # Core lifecycle
    # ------------------------------------------------------------------

    def create_order(self, header: dict, items: list[dict]) -> PurchaseOrder:
        """
        Create a draft order and its line items.

        Totals are computed from the items; any totals in *header* are ignored.
        Raises ValidationError for an empty item list, a non-positive quantity,
        a negative unit cost or an unknown supplier.
        """
        cmd: CreateOrderCommand = _parse(CreateOrderCommand, {"header": header, "items": items})
        h = cmd.header
        order_date = h.order_date or date.today()
        totals = compute_totals(
            [(i.quantity_ordered, i.unit_cost) for i in cmd.items], self.config.tax_rate,
        )
        now = utcnow_iso()

        with self.store.transaction():
            self._require_supplier(h.supplier_id)
            order = self.store.insert(ORDERS, {
                "po_number":              h.po_number or _generate_po_number(order_date),
                "supplier_id":            h.supplier_id,
                "status":                 STATUS_DRAFT,
                "order_date":             order_date.isoformat(),
                "expected_delivery_date": h.expected_delivery_date.isoformat() if h.expected_delivery_date else None,
                "notes":                  h.notes,
                "created_by_user_id":     h.created_by_user_id,
                **totals,
                "created_at":             now,
                "updated_at":             now,
            })
            rows = [
                self.store.insert(ITEMS, {
                    "purchase_order_id": order["id"],
                    "product_id":        item.product_id,
                    "quantity_ordered":  item.quantity_ordered,
                    "quantity_received": 0,
                    "unit_cost":         item.unit_cost,
                    "line_total":        line_total(item.quantity_ordered, item.unit_cost),
                    "created_at":        now,
                    "updated_at":        now,
                })
                for item in cmd.items
            ]

        logger.info(
            "Created order %s (%s) with %d items, total=%.2f",
            order["id"], order["po_number"], len(rows), order["total_amount"],
        )
        return PurchaseOrder.model_validate({**order, "items": rows})

    def approve_order(self, order_id: str, approver_id: str) -> PurchaseOrder:
        """
        Confirm an order and record who approved it.

        Re-approving rewrites the same fields.  Cancelled orders cannot be
        approved.
        """
        cmd: ApproveOrderCommand = _parse(
            ApproveOrderCommand, {"order_id": order_id, "approved_by_user_id": approver_id},
        )
        current = self.store.find_one(ORDERS, cmd.order_id)
        if current["status"] == STATUS_CANCELLED:
            raise ValidationError(f"Order {cmd.order_id} is cancelled and cannot be approved")

        self.store.update(ORDERS, cmd.order_id, {
            "status":              STATUS_CONFIRMED,
            "approved_by_user_id": cmd.approved_by_user_id,
            "updated_at":          utcnow_iso(),
        })
        logger.info("Order %s approved by %s", cmd.order_id, cmd.approved_by_user_id)
        return self.get_order(cmd.order_id)

    def receive_item(
        self,
        item_id: str,
        quantity_received: int,
        received_date: Optional[date | str] = None,
    ) -> PurchaseOrderItem:
        """
        Record that *quantity_received* units of a line item have arrived.

        Raises ValidationError if the quantity is not positive or the order is
        cancelled, NotFoundError if the item, order or product is missing.
        """
        cmd: ReceiveItemCommand = _parse(ReceiveItemCommand, {
            "item_id":           item_id,
            "quantity_received": quantity_received,
            "received_date":     received_date,
        })

        boundary = self.store.transaction() if self.config.transactional_receiving else nullcontext()
        with boundary:
            item = PurchaseOrderItem.model_validate(self.store.find_one(ITEMS, cmd.item_id))
            order = self.store.find_one(ORDERS, item.purchase_order_id)
            if order["status"] == STATUS_CANCELLED:
                raise ValidationError(
                    f"Order {order['id']} is cancelled; item {item.id} cannot be received"
                )

            progress = self.tracker.record_receipt(item, cmd.quantity_received)
            updated = self.tracker.persist(item, progress, cmd.received_date)

            self.ledger.apply_delta(
                item.product_id, cmd.quantity_received, "in", reference_id=order["id"],
            )

            if progress.is_fully_received:
                self.reconciler.check_order(order["id"])

        logger.info(
            "Received %d on item %s (order %s): %d/%d%s",
            cmd.quantity_received, item.id, order["id"],
            progress.new_total, item.quantity_ordered,
            " — fully received" if progress.is_fully_received else "",
        )
        return updated

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> PurchaseOrder:
        """Return one order with its items.  Raises NotFoundError."""
        order = self.store.find_one(ORDERS, order_id)
        items = self.store.find(ITEMS, {"purchase_order_id": order_id}, order_by="created_at")
        return PurchaseOrder.model_validate({**order, "items": items})

    def get_item(self, item_id: str) -> PurchaseOrderItem:
        return PurchaseOrderItem.model_validate(self.store.find_one(ITEMS, item_id))

    def list_orders(
        self,
        supplier_id: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> dict:
        """
        Return one page of orders (newest order_date first) plus pagination info.

        Args:
            supplier_id: Exact supplier match.
            status:      Exact status match.
            date_from:   Inclusive lower bound on order_date (YYYY-MM-DD).
            date_to:     Inclusive upper bound on order_date (YYYY-MM-DD).
            search:      Case-insensitive substring match on po_number.
            page:        1-based page number.
            limit:       Page size, capped at Config.max_page_size.
        """
        page = max(page, 1)
        limit = min(max(limit or self.config.default_page_size, 1), self.config.max_page_size)

        filters: dict = {}
        if supplier_id:
            filters["supplier_id"] = supplier_id
        if status:
            filters["status"] = status
        if date_from:
            filters["order_date__gte"] = date_from
        if date_to:
            filters["order_date__lte"] = date_to
        if search:
            filters["po_number__ilike"] = search

        total = self.store.count(ORDERS, filters)
        rows = self.store.find(
            ORDERS, filters,
            order_by="order_date", descending=True,
            limit=limit, offset=(page - 1) * limit,
        )
        orders = [
            PurchaseOrder.model_validate({
                **row,
                "items": self.store.find(ITEMS, {"purchase_order_id": row["id"]}, order_by="created_at"),
            })
            for row in rows
        ]
        return {
            "orders": orders,
            "pagination": {
                "page":  page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if total else 0,
            },
        }

    def get_dashboard(self, top_n: int = 5) -> PurchasesDashboard:
        """Aggregate order counts and spend, with the top suppliers by value."""
        orders = self.store.find(ORDERS)

        spend: dict[str, dict] = {}
        for o in orders:
            if not o.get("supplier_id"):
                continue
            s = spend.setdefault(o["supplier_id"], {"order_count": 0, "total_value": Decimal("0")})
            s["order_count"] += 1
            s["total_value"] += Decimal(str(o.get("total_amount") or 0))

        top = sorted(spend.items(), key=lambda kv: kv[1]["total_value"], reverse=True)[:top_n]
        total_value = sum((Decimal(str(o.get("total_amount") or 0)) for o in orders), Decimal("0"))

        return PurchasesDashboard(
            total_orders=len(orders),
            pending_orders=sum(1 for o in orders if o["status"] == STATUS_DRAFT),
            total_value=float(_money(total_value)),
            top_suppliers=[
                SupplierSpend(
                    supplier_id=sid,
                    order_count=s["order_count"],
                    total_value=float(_money(s["total_value"])),
                )
                for sid, s in top
            ],
            timestamp=utcnow_iso(),
        )

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def update_order(self, order_id: str, patch: dict) -> PurchaseOrder:
        """
        Edit header fields (supplier, dates, notes).

        Totals, status and approver are never editable here; passing them
        raises ValidationError.
        """
        cmd: OrderUpdateCommand = _parse(OrderUpdateCommand, patch)
        changes = {
            k: (v.isoformat() if isinstance(v, date) else v)
            for k, v in cmd.model_dump(exclude_unset=True).items()
        }
        current = self.store.find_one(ORDERS, order_id)
        if current["status"] in TERMINAL_STATUSES and "supplier_id" in changes:
            raise ValidationError(f"Cannot change supplier of a {current['status']} order")
        if changes.get("supplier_id"):
            self._require_supplier(changes["supplier_id"])

        if changes:
            self.store.update(ORDERS, order_id, {**changes, "updated_at": utcnow_iso()})
            logger.info("Order %s updated: %s", order_id, ", ".join(changes))
        return self.get_order(order_id)

    def update_item(self, item_id: str, patch: dict) -> PurchaseOrderItem:
        """
        Change quantity_ordered and/or unit_cost of a line on a draft order.
        Lines that already have receipts recorded against them are locked.

        line_total and the order totals are recomputed in the same transaction.
        """
        cmd: ItemUpdateCommand = _parse(ItemUpdateCommand, patch)
        changes = cmd.model_dump(exclude_unset=True, exclude_none=True)

        with self.store.transaction():
            item = PurchaseOrderItem.model_validate(self.store.find_one(ITEMS, item_id))
            if not changes:
                return item
            order = self.store.find_one(ORDERS, item.purchase_order_id)
            if order["status"] != STATUS_DRAFT:
                raise ValidationError(
                    f"Items can only be changed while the order is draft (order is {order['status']})"
                )
            if item.quantity_received > 0:
                raise ValidationError(
                    f"Item {item.id} already has {item.quantity_received} received and cannot be changed"
                )

            qty = changes.get("quantity_ordered", item.quantity_ordered)
            cost = changes.get("unit_cost", item.unit_cost)
            now = utcnow_iso()
            row = self.store.update(ITEMS, item_id, {
                **changes,
                "line_total": line_total(qty, cost),
                "updated_at": now,
            })
            self._recalculate_totals(order["id"], now)

        logger.info("Item %s updated: %s", item_id, changes)
        return PurchaseOrderItem.model_validate(row)

    def cancel_order(self, order_id: str) -> PurchaseOrder:
        """
        Cancel a draft or confirmed order.  Cancelling twice is a no-op;
        a received order cannot be cancelled.
        """
        current = self.store.find_one(ORDERS, order_id)
        status = current["status"]
        if status == STATUS_RECEIVED:
            raise ValidationError(f"Order {order_id} is already received and cannot be cancelled")
        if status != STATUS_CANCELLED:
            self.store.update(ORDERS, order_id, {
                "status":     STATUS_CANCELLED,
                "updated_at": utcnow_iso(),
            })
            logger.info("Order %s cancelled (was %s)", order_id, status)
        return self.get_order(order_id)

    def check_order(self, order_id: str) -> bool:
        """Re-run status reconciliation for one order."""
        return self.reconciler.check_order(order_id)

    def _require_supplier(self, supplier_id: str) -> None:
        try:
            self.store.find_one(SUPPLIERS, supplier_id)
        except NotFoundError:
            raise ValidationError(f"supplier_id: unknown supplier {supplier_id!r}") from None

    def _recalculate_totals(self, order_id: str, now: str) -> dict:
        items = self.store.find(ITEMS, {"purchase_order_id": order_id})
        totals = compute_totals(
            [(i["quantity_ordered"], i["unit_cost"]) for i in items], self.config.tax_rate,
        )
        return self.store.update(ORDERS, order_id, {**totals, "updated_at": now})
