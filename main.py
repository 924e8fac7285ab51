#!/usr/bin/env python3
"""
Purchasing service — CLI entry point.

Usage examples:
  python main.py init-db                            # Create the database schema
  python main.py create-order order.json            # Create a draft PO from a JSON file
  python main.py approve <order_id> --approver u-17 # draft → confirmed
  python main.py receive <item_id> 6                # Record a receipt of 6 units
  python main.py receive <item_id> 4 --date 2024-03-02
  python main.py cancel <order_id>
  python main.py show <order_id>
  python main.py list --status confirmed
  python main.py dashboard
  python main.py backup backups/
  python main.py serve --port 8000                  # Run the REST API

order.json:
  {"supplier_id": "SUP-001", "expected_delivery_date": "2024-03-01",
   "items": [{"product_id": "P-1", "quantity_ordered": 10, "unit_cost": 5.00}]}
"""
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import click

from config import Config
from models.purchase_order import PurchaseOrder
from purchasing.datastore import SQLiteDataStore
from purchasing.errors import PurchasingError
from purchasing.service import PurchaseOrderService


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _service(ctx: click.Context) -> PurchaseOrderService:
    config: Config = ctx.obj["config"]
    config.ensure_output_dir()
    return PurchaseOrderService(SQLiteDataStore(config.db_path), config)


def _fail(exc: Exception) -> None:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


def _echo_order(order: PurchaseOrder) -> None:
    click.echo()
    click.echo(f"  Order:       {order.po_number}  ({order.id})")
    click.echo(f"  Supplier:    {order.supplier_id or '(none)'}")
    click.echo(f"  Status:      {order.status}")
    click.echo(f"  Ordered:     {order.order_date or '(unknown)'}")
    if order.expected_delivery_date:
        click.echo(f"  Expected:    {order.expected_delivery_date}")
    if order.actual_delivery_date:
        click.echo(f"  Delivered:   {order.actual_delivery_date}")
    if order.approved_by_user_id:
        click.echo(f"  Approved by: {order.approved_by_user_id}")
    click.echo()
    click.echo(f"  {'Item':<34} {'Product':<14} {'Recv/Ord':>10} {'Unit':>10} {'Line':>12}")
    for item in order.items:
        tick = "✓" if item.is_fully_received else " "
        click.echo(
            f"  {item.id:<34} {item.product_id:<14} "
            f"{item.quantity_received:>4}/{item.quantity_ordered:<5}{tick}"
            f"{item.unit_cost:>10.2f} {item.line_total:>12.2f}"
        )
    click.echo()
    click.echo(f"  Subtotal:    {order.subtotal:>12.2f}")
    click.echo(f"  Tax:         {order.tax_amount:>12.2f}")
    click.echo(f"  Total:       {order.total_amount:>12.2f}")
    click.echo()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--db", default=None, type=click.Path(), help="Path to the SQLite database")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, db: str | None) -> None:
    """Purchasing service — create, approve and receive purchase orders."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    config = Config()
    if db:
        config.db_path = Path(db)
    ctx.obj["config"] = config
    _setup_logging(verbose)


# --------------------------------------------------------------------
# init-db command
# --------------------------------------------------------------------

@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the database file and schema if missing."""
    service = _service(ctx)
    click.echo(f"Database ready: {service.config.db_path}")


# --------------------------------------------------------------------
# order lifecycle commands
# --------------------------------------------------------------------

@cli.command("create-order")
@click.argument("order_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def create_order(ctx: click.Context, order_file: str) -> None:
    """Create a draft purchase order from ORDER_FILE (JSON header + items)."""
    try:
        with open(order_file, encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        _fail(e)
        return

    items = payload.pop("items", [])
    try:
        order = _service(ctx).create_order(payload, items)
    except PurchasingError as e:
        _fail(e)
        return
    click.echo(f"✓ Created {order.po_number}")
    _echo_order(order)


@cli.command()
@click.argument("order_id")
@click.option("--approver", "-a", required=True, help="User id of the approver")
@click.pass_context
def approve(ctx: click.Context, order_id: str, approver: str) -> None:
    """Approve ORDER_ID (draft → confirmed)."""
    try:
        order = _service(ctx).approve_order(order_id, approver)
    except PurchasingError as e:
        _fail(e)
        return
    click.echo(f"✓ {order.po_number} confirmed by {approver}")


@cli.command()
@click.argument("item_id")
@click.argument("quantity", type=int)
@click.option("--date", "received_date", default=None, help="Receipt date YYYY-MM-DD (default: today)")
@click.pass_context
def receive(ctx: click.Context, item_id: str, quantity: int, received_date: str | None) -> None:
    """Record QUANTITY units received against line ITEM_ID."""
    service = _service(ctx)
    try:
        item = service.receive_item(item_id, quantity, received_date)
        order = service.get_order(item.purchase_order_id)
    except PurchasingError as e:
        _fail(e)
        return

    state = "fully received" if item.is_fully_received else f"{item.quantity_outstanding} outstanding"
    click.echo(f"✓ Item {item.id}: {item.quantity_received}/{item.quantity_ordered} ({state})")
    click.echo(f"  Order {order.po_number} is now {order.status}")


@cli.command()
@click.argument("order_id")
@click.pass_context
def cancel(ctx: click.Context, order_id: str) -> None:
    """Cancel ORDER_ID (draft or confirmed only)."""
    try:
        order = _service(ctx).cancel_order(order_id)
    except PurchasingError as e:
        _fail(e)
        return
    click.echo(f"✓ {order.po_number} cancelled")


# --------------------------------------------------------------------
# read commands
# --------------------------------------------------------------------

@cli.command()
@click.argument("order_id")
@click.option("--json", "as_json", is_flag=True, help="Print the order as JSON")
@click.pass_context
def show(ctx: click.Context, order_id: str, as_json: bool) -> None:
    """Show ORDER_ID with its line items."""
    try:
        order = _service(ctx).get_order(order_id)
    except PurchasingError as e:
        _fail(e)
        return
    if as_json:
        click.echo(order.model_dump_json(indent=2))
    else:
        _echo_order(order)


@cli.command("list")
@click.option("--status", default=None, help="Filter by status")
@click.option("--supplier", default=None, help="Filter by supplier id")
@click.option("--search", default=None, help="Substring of the PO number")
@click.option("--page", default=1, type=int)
@click.option("--limit", default=None, type=int)
@click.pass_context
def list_orders(
    ctx: click.Context,
    status: str | None,
    supplier: str | None,
    search: str | None,
    page: int,
    limit: int | None,
) -> None:
    """List purchase orders, newest first."""
    result = _service(ctx).list_orders(
        supplier_id=supplier, status=status, search=search, page=page, limit=limit,
    )
    orders = result["orders"]
    if not orders:
        click.echo("No purchase orders found.")
        return
    for o in orders:
        click.echo(
            f"  {o.po_number:<22} {o.status:<10} {o.order_date or '':<11} "
            f"{o.supplier_id or '':<14} {o.total_amount:>12.2f}"
        )
    p = result["pagination"]
    click.echo(f"\n  Page {p['page']} of {p['pages']}  ({p['total']} orders)")


@cli.command()
@click.pass_context
def dashboard(ctx: click.Context) -> None:
    """Show order counts, total spend and top suppliers."""
    d = _service(ctx).get_dashboard()
    click.echo("\n=== Purchasing Dashboard ===\n")
    click.echo(f"  Total orders:    {d.total_orders}")
    click.echo(f"  Pending (draft): {d.pending_orders}")
    click.echo(f"  Total value:     {d.total_value:.2f}")
    if d.top_suppliers:
        click.echo("\n  Top suppliers:")
        for s in d.top_suppliers:
            click.echo(f"    {s.supplier_id:<20} {s.order_count:>4} orders  {s.total_value:>12.2f}")
    click.echo()


# --------------------------------------------------------------------
# backup command
# --------------------------------------------------------------------

@cli.command()
@click.argument("destination", type=click.Path(), default="backups")
@click.pass_context
def backup(ctx: click.Context, destination: str) -> None:
    """
    Write a consistent, timestamped copy of the database to DESTINATION.
    """
    import sqlite3

    config: Config = ctx.obj["config"]
    if not config.db_path.exists():
        click.echo(f"Error: database not found at {config.db_path}", err=True)
        sys.exit(1)

    dest_dir = Path(destination)
    dest_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_path = dest_dir / f"purchasing_backup_{timestamp}.db"

    click.echo(f"Creating backup: {backup_path}")
    try:
        src_conn = sqlite3.connect(config.db_path)
        dst_conn = sqlite3.connect(backup_path)
        with dst_conn:
            src_conn.backup(dst_conn)
        src_conn.close()
        dst_conn.close()
    except sqlite3.Error as e:
        click.echo(f"\n✗ Backup failed: {e}", err=True)
        if backup_path.exists():
            backup_path.unlink()
        sys.exit(1)

    click.echo(f"\n✓ Backup successful: {backup_path.name}")


# --------------------------------------------------------------------
# serve command
# --------------------------------------------------------------------

@cli.command()
@click.option("--host", default=None, help="Bind address (default: API_HOST or 127.0.0.1)")
@click.option("--port", default=None, type=int, help="Port (default: API_PORT or 8000)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Run the purchasing REST API."""
    import os

    import uvicorn

    config: Config = ctx.obj["config"]
    # The API builds its own Config; pass the chosen database through the env
    os.environ["DB_PATH"] = str(config.db_path)
    uvicorn.run(
        "api.app:app",
        host=host or config.api_host,
        port=port or config.api_port,
        reload=reload,
    )


if __name__ == "__main__":
    cli()
