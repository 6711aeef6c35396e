"""
Stock delta tests.

Verifies:
- Adjustments floor at zero instead of going negative
- Every adjustment appends a StockMovement
- Multi-variant products require an explicit variant
- Stock report status buckets
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice.extensions import db
from backoffice.models import StockMovement, Variant
from backoffice.validation import MAX_QUANTITY
from backoffice.services.inventory_service import (
    apply_stock_adjustment,
    clamp_quantity,
    get_stock_report,
    stock_status,
)


@pytest.mark.parametrize("current,delta,expected", [
    (5, -8, 0),
    (5, -5, 0),
    (5, 3, 8),
    (0, -1, 0),
    (0, 0, 0),
])
def test_clamp_quantity(current, delta, expected):
    assert clamp_quantity(current, delta) == expected


class TestApplyStockAdjustment:

    def test_over_deduction_floors_at_zero(self, product):
        variant = product.variants[0]
        apply_stock_adjustment(product.id, None, -5, "Setup")

        result = apply_stock_adjustment(product.id, None, -8, "Damaged")

        assert result.success
        assert result.previous_quantity == 5
        assert result.new_quantity == 0
        db.session.refresh(variant)
        assert variant.quantity == 0

        movement = db.session.get(StockMovement, result.movement_id)
        assert movement.requested_delta == -8
        assert movement.applied_delta == -5
        assert movement.quantity_after == 0
        assert movement.reason == "Damaged"

    def test_restock_defaults_reason(self, product):
        result = apply_stock_adjustment(product.id, None, 4)

        assert result.success
        assert result.new_quantity == 14
        movement = db.session.get(StockMovement, result.movement_id)
        assert movement.reason == "Manual restock"

    def test_multi_variant_requires_variant_id(self, gloves):
        result = apply_stock_adjustment(gloves.id, None, 1)

        assert not result.success
        assert "variant_id is required" in result.errors[0]

    def test_variant_of_other_product_not_found(self, product, gloves):
        result = apply_stock_adjustment(product.id, gloves.variants[0].id, 1)

        assert not result.success
        assert result.errors == ["Variant not found for this product"]

    def test_unknown_product(self):
        result = apply_stock_adjustment(999999, None, 1)
        assert result.to_dict() == {"success": False, "errors": ["Product not found"]}

    @pytest.mark.parametrize("delta", [1.5, "3", True, None])
    def test_non_integer_delta_rejected(self, product, delta):
        result = apply_stock_adjustment(product.id, None, delta)
        assert not result.success
        assert db.session.query(StockMovement).count() == 0

    @pytest.mark.parametrize("delta", [10**20, -(10**20), MAX_QUANTITY + 1])
    def test_oversized_delta_rejected(self, product, delta):
        result = apply_stock_adjustment(product.id, None, delta)

        assert result.to_dict() == {"success": False, "errors": ["quantity delta cannot exceed 1,000,000"]}
        assert db.session.query(StockMovement).count() == 0

    def test_stock_above_ceiling_rejected(self, product):
        result = apply_stock_adjustment(product.id, None, MAX_QUANTITY)

        assert result.errors == ["stock cannot exceed 1,000,000"]
        db.session.rollback()
        assert db.session.get(Variant, product.variants[0].id).quantity == 10

    def test_store_failure_is_an_error_result(self, product, monkeypatch):
        variant_id = product.variants[0].id

        def failing_commit(session):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(Session, "commit", failing_commit)
        result = apply_stock_adjustment(product.id, None, 3, "Delivery")
        monkeypatch.undo()

        assert result.success is False
        assert result.errors == ["Failed to save stock adjustment: SQLAlchemyError"]
        assert db.session.get(Variant, variant_id).quantity == 10
        assert db.session.query(StockMovement).count() == 0


class TestStockReport:

    def test_status_buckets(self):
        assert stock_status(0, 5) == "out_of_stock"
        assert stock_status(5, 5) == "low_stock"
        assert stock_status(6, 5) == "in_stock"

    def test_report_summary_and_filter(self, product, gloves):
        report = get_stock_report(brand="harican")
        summary = report["summary"]

        assert summary["total_variants"] == 3
        assert summary["total_units"] == 18
        assert summary["in_stock_count"] == 1
        assert summary["low_stock_count"] == 2
        # 10 * 10.00 + 8 * 9.00
        assert summary["stock_value_cents"] == 10 * 1000 + 8 * 900
        # (15 - 10) * 10 + (12.50 - 9) * 5 + (15 - 9) * 3
        assert summary["potential_profit_cents"]["wholesale"] == 5000 + 1750 + 1800

        low = get_stock_report(brand="harican", stock_filter="low_stock")
        assert {row["sku"] for row in low["items"]} == {"HR-GLV-01-10", "HR-GLV-01-12"}

    def test_unknown_filter_rejected(self):
        with pytest.raises(ValueError):
            get_stock_report(stock_filter="plenty")


class TestStockRoutes:

    def test_adjust_endpoint_clamps(self, client, staff_headers, product):
        resp = client.post(
            "/api/stock/adjust",
            json={"product_id": product.id, "delta": -25, "reason": "Stocktake"},
            headers=staff_headers,
        )

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["success"] is True
        assert data["new_quantity"] == 0

    def test_adjust_endpoint_requires_variant_for_multi_variant(self, client, staff_headers, gloves):
        resp = client.post(
            "/api/stock/adjust",
            json={"product_id": gloves.id, "delta": 2},
            headers=staff_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["success"] is False

    def test_adjust_unknown_product_is_404(self, client, staff_headers):
        resp = client.post("/api/stock/adjust", json={"product_id": 424242, "delta": 1}, headers=staff_headers)
        assert resp.status_code == 404

    def test_adjust_rejects_float_delta(self, client, staff_headers, product):
        resp = client.post(
            "/api/stock/adjust",
            json={"product_id": product.id, "delta": 1.5},
            headers=staff_headers,
        )
        assert resp.status_code == 400

    def test_adjust_rejects_oversized_delta(self, client, staff_headers, product):
        resp = client.post(
            "/api/stock/adjust",
            json={"product_id": product.id, "delta": 10**20},
            headers=staff_headers,
        )

        assert resp.status_code == 400
        assert resp.get_json()["success"] is False
        assert db.session.get(Variant, product.variants[0].id).quantity == 10

    def test_movements_listed_newest_first(self, client, staff_headers, product):
        apply_stock_adjustment(product.id, None, 2, "First")
        apply_stock_adjustment(product.id, None, -1, "Second")

        resp = client.get(f"/api/stock/movements?product_id={product.id}", headers=staff_headers)

        assert resp.status_code == 200
        reasons = [m["reason"] for m in resp.get_json()["items"]]
        assert reasons[:2] == ["Second", "First"]

    def test_report_requires_auth(self, client):
        assert client.get("/api/stock").status_code == 401
