"""
Tests for the click command-line interface.
"""
import json

import pytest
from click.testing import CliRunner

from main import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.mark.api
class TestCli:
    """End-to-end tests for main.py commands against a temp database."""

    def test_create_approve_receive(self, runner, test_config, temp_dir, service, supplier, product):
        db = str(test_config.db_path)
        order_file = temp_dir / "order.json"
        order_file.write_text(json.dumps({
            "supplier_id": supplier["id"],
            "po_number": "PO-CLI-001",
            "items": [{"product_id": product["id"], "quantity_ordered": 10, "unit_cost": 5.00}],
        }))

        result = runner.invoke(cli, ["--db", db, "create-order", str(order_file)])
        assert result.exit_code == 0, result.output
        assert "PO-CLI-001" in result.output
        assert "56.00" in result.output

        order = service.list_orders(search="PO-CLI-001")["orders"][0]
        result = runner.invoke(cli, ["--db", db, "approve", order.id, "--approver", "manager-1"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["--db", db, "receive", order.items[0].id, "10"])
        assert result.exit_code == 0, result.output
        assert "fully received" in result.output
        assert "received" in result.output

        result = runner.invoke(cli, ["--db", db, "show", order.id, "--json"])
        assert result.exit_code == 0, result.output
        assert '"status": "received"' in result.output
        assert service.get_order(order.id).status == "received"

    def test_errors_exit_non_zero(self, runner, test_config):
        result = runner.invoke(cli, ["--db", str(test_config.db_path), "approve", "missing", "-a", "u"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_list_empty(self, runner, test_config):
        result = runner.invoke(cli, ["--db", str(test_config.db_path), "list"])

        assert result.exit_code == 0
        assert "No purchase orders found." in result.output

    def test_backup_writes_copy(self, runner, test_config, temp_dir):
        db = str(test_config.db_path)
        assert runner.invoke(cli, ["--db", db, "init-db"]).exit_code == 0

        result = runner.invoke(cli, ["--db", db, "backup", str(temp_dir / "backups")])

        assert result.exit_code == 0, result.output
        copies = list((temp_dir / "backups").glob("purchasing_backup_*.db"))
        assert len(copies) == 1
        assert copies[0].stat().st_size > 0
