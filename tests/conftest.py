"""
Pytest configuration and shared fixtures for the purchasing test suite.
"""
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Run tests from the project root
PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="purchasing_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a test configuration with an isolated database and no settings file."""
    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))
    for var in ("DB_PATH", "TAX_RATE", "STOCK_UPDATE_MODE", "TRANSACTIONAL_RECEIVING"):
        monkeypatch.delenv(var, raising=False)

    from config import Config

    config = Config()
    config.db_path = temp_dir / "output" / "purchasing.db"
    config.ensure_output_dir()
    return config


@pytest.fixture
def test_store(test_config) -> "SQLiteDataStore":
    """Provide a fresh SQLite-backed data store."""
    from purchasing.datastore import SQLiteDataStore
    return SQLiteDataStore(test_config.db_path)


@pytest.fixture
def service(test_store, test_config) -> "PurchaseOrderService":
    """Provide a PurchaseOrderService over the test store."""
    from purchasing.service import PurchaseOrderService
    return PurchaseOrderService(test_store, test_config)


@pytest.fixture
def supplier(test_store) -> dict:
    """Insert a sample supplier."""
    return test_store.insert("suppliers", {
        "id": "SUP-001",
        "name": "Agrivet Supplies Inc",
        "contact_person": "Maria Santos",
        "email": "orders@agrivet.example",
    })


@pytest.fixture
def product(test_store) -> dict:
    """Insert a sample product with no stock."""
    return test_store.insert("products", {
        "id": "PRD-001",
        "sku": "FEED-25KG",
        "name": "Layer Feed 25kg",
        "stock_quantity": 0,
    })


@pytest.fixture
def second_product(test_store) -> dict:
    """Insert a second sample product with some stock."""
    return test_store.insert("products", {
        "id": "PRD-002",
        "sku": "VAX-ND-100",
        "name": "Newcastle Vaccine 100 doses",
        "stock_quantity": 3,
    })


@pytest.fixture
def draft_order(service, supplier, product) -> "PurchaseOrder":
    """A draft order with one line: 10 × 5.00."""
    return service.create_order(
        {"supplier_id": supplier["id"], "po_number": "PO-TEST-001"},
        [{"product_id": product["id"], "quantity_ordered": 10, "unit_cost": 5.00}],
    )


@pytest.fixture
def confirmed_order(service, draft_order) -> "PurchaseOrder":
    """The draft order after approval."""
    return service.approve_order(draft_order.id, "manager-1")


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")
