"""
Unit tests for order total arithmetic and command validation.
"""
import pytest

from models.commands import CreateOrderCommand
from purchasing.errors import ValidationError
from purchasing.service import _parse, compute_totals, line_total


@pytest.mark.unit
class TestComputeTotals:
    """Tests for compute_totals."""

    def test_single_line(self):
        """Test 10 × 5.00 at 12% tax."""
        totals = compute_totals([(10, 5.00)], 0.12)

        assert totals == {"subtotal": 50.00, "tax_amount": 6.00, "total_amount": 56.00}

    def test_multiple_lines(self):
        """Test subtotal is the sum of line totals."""
        totals = compute_totals([(3, 19.99), (2, 0.50), (1, 100)], 0.12)

        assert totals["subtotal"] == 160.97
        assert totals["tax_amount"] == 19.32   # 19.3164 rounded half-up
        assert totals["total_amount"] == 180.29

    def test_tax_rounds_half_up(self):
        """Test a half-cent tax rounds up rather than to even."""
        totals = compute_totals([(3, 0.625)], 0.12)

        assert totals["subtotal"] == 1.875
        assert totals["tax_amount"] == 0.23     # 0.225 exactly
        assert totals["total_amount"] == 2.105

    def test_sub_cent_costs_keep_exact_subtotal(self):
        """Test only the tax is rounded; the subtotal is the exact sum of lines."""
        totals = compute_totals([(3, 0.333)], 0.12)

        assert totals["subtotal"] == 0.999
        assert totals["tax_amount"] == 0.12
        assert totals["total_amount"] == 1.119

    def test_subtotal_equals_sum_of_line_totals(self):
        """Test sub-cent lines are not rounded individually before summing."""
        lines = [(1, 0.005), (1, 0.005)]
        totals = compute_totals(lines, 0.12)

        assert [line_total(q, c) for q, c in lines] == [0.005, 0.005]
        assert totals["subtotal"] == 0.01
        assert totals["tax_amount"] == 0.0

    def test_zero_cost_lines(self):
        """Test free items produce zero totals."""
        totals = compute_totals([(5, 0)], 0.12)

        assert totals == {"subtotal": 0.0, "tax_amount": 0.0, "total_amount": 0.0}

    def test_custom_tax_rate(self):
        """Test a configured tax rate is applied."""
        totals = compute_totals([(4, 25.00)], 0.10)

        assert totals["tax_amount"] == 10.00
        assert totals["total_amount"] == 110.00

    def test_line_total_avoids_float_drift(self):
        """Test quantity × cost is computed in Decimal, not binary float."""
        assert line_total(3, 0.1) == 0.30
        assert line_total(7, 19.99) == 139.93


@pytest.mark.unit
class TestCreateOrderCommand:
    """Tests for boundary validation of create-order payloads."""

    def test_valid_payload(self):
        """Test a well-formed payload parses into typed values."""
        cmd = _parse(CreateOrderCommand, {
            "header": {"supplier_id": "SUP-001", "order_date": "2024-03-01"},
            "items": [{"product_id": "P-1", "quantity_ordered": "10", "unit_cost": 5}],
        })

        assert cmd.header.order_date.isoformat() == "2024-03-01"
        assert cmd.items[0].quantity_ordered == 10
        assert cmd.items[0].unit_cost == 5.0

    def test_derived_header_fields_are_dropped(self):
        """Test client-supplied totals and status never reach the command."""
        cmd = _parse(CreateOrderCommand, {
            "header": {"supplier_id": "SUP-001", "subtotal": 1, "status": "received"},
            "items": [{"product_id": "P-1", "quantity_ordered": 1, "unit_cost": 1}],
        })

        assert not hasattr(cmd.header, "subtotal")
        assert not hasattr(cmd.header, "status")

    def test_empty_items_rejected(self):
        """Test an order needs at least one line."""
        with pytest.raises(ValidationError, match="items"):
            _parse(CreateOrderCommand, {"header": {"supplier_id": "SUP-001"}, "items": []})

    @pytest.mark.parametrize("line, field", [
        ({"product_id": "P-1", "quantity_ordered": 0, "unit_cost": 1}, "quantity_ordered"),
        ({"product_id": "P-1", "quantity_ordered": -2, "unit_cost": 1}, "quantity_ordered"),
        ({"product_id": "P-1", "quantity_ordered": 1.5, "unit_cost": 1}, "quantity_ordered"),
        ({"product_id": "P-1", "quantity_ordered": 1, "unit_cost": -0.01}, "unit_cost"),
        ({"product_id": "", "quantity_ordered": 1, "unit_cost": 1}, "product_id"),
    ])
    def test_invalid_lines_rejected(self, line, field):
        """Test each invalid line field is reported by name."""
        with pytest.raises(ValidationError, match=field):
            _parse(CreateOrderCommand, {"header": {"supplier_id": "SUP-001"}, "items": [line]})

    def test_missing_supplier_rejected(self):
        """Test the header must name a supplier."""
        with pytest.raises(ValidationError, match="supplier_id"):
            _parse(CreateOrderCommand, {
                "header": {},
                "items": [{"product_id": "P-1", "quantity_ordered": 1, "unit_cost": 1}],
            })
