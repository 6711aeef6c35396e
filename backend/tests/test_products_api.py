"""
Product catalog API tests.

Verifies:
- Create with default or explicit variants
- Article uniqueness per brand
- Payload allowlist
- Variant quantity only changes through stock adjustments
"""

import pytest

from backoffice.extensions import db
from backoffice.models import Product, Variant


class TestCreateProduct:

    def test_create_gets_default_variant(self, client, staff_headers):
        resp = client.post(
            "/api/products",
            json={"brand": "harican", "article": "HR-WRP-01", "title": "Hand Wraps",
                  "category": "gloves", "retail_cents": 800, "quantity": 12},
            headers=staff_headers,
        )

        assert resp.status_code == 201
        data = resp.get_json()
        assert data["category"] == "Boxing Gloves"
        assert len(data["variants"]) == 1
        assert data["variants"][0]["sku"] == "HR-WRP-01"
        assert data["variants"][0]["quantity"] == 12
        assert data["total_quantity"] == 12

    @pytest.mark.parametrize("extra", [
        {"quantity": 10**20},
        {"variants": [{"sku": "HR-WRP-02-S", "quantity": 10**20}]},
    ])
    def test_oversized_opening_stock_rejected(self, client, staff_headers, extra):
        resp = client.post(
            "/api/products",
            json={"brand": "harican", "article": "HR-WRP-02", "title": "Hand Wraps", **extra},
            headers=staff_headers,
        )

        assert resp.status_code == 400
        assert "cannot exceed 1,000,000" in resp.get_json()["error"]
        assert db.session.query(Product).count() == 0

    def test_create_with_variants(self, client, staff_headers):
        resp = client.post(
            "/api/products",
            json={
                "brand": "byko", "article": "BY-SHT-01", "title": "Training Shirt",
                "retail_cents": 1800,
                "variants": [
                    {"sku": "BY-SHT-01-S", "attributes": {"Size": "S"}, "quantity": 2},
                    {"sku": "BY-SHT-01-M", "attributes": {"Size": "M"}, "quantity": 4, "retail_cents": 1900},
                ],
            },
            headers=staff_headers,
        )

        assert resp.status_code == 201
        data = resp.get_json()
        assert [v["sku"] for v in data["variants"]] == ["BY-SHT-01-S", "BY-SHT-01-M"]
        assert data["total_quantity"] == 6
        assert data["category"] == "Other"

    def test_duplicate_article_in_brand_conflicts(self, client, staff_headers, product):
        resp = client.post(
            "/api/products",
            json={"brand": "harican", "article": "HR-BAG-01", "title": "Another Bag"},
            headers=staff_headers,
        )
        assert resp.status_code == 409

    def test_same_article_in_other_brand_is_fine(self, client, staff_headers, product):
        resp = client.post(
            "/api/products",
            json={"brand": "greenhil", "article": "HR-BAG-01", "title": "Bag"},
            headers=staff_headers,
        )
        assert resp.status_code == 201

    def test_missing_title(self, client, staff_headers):
        resp = client.post("/api/products", json={"brand": "harican", "article": "X-1"}, headers=staff_headers)
        assert resp.status_code == 400
        assert "Missing required fields" in resp.get_json()["error"]

    def test_unknown_field_rejected(self, client, staff_headers):
        resp = client.post(
            "/api/products",
            json={"brand": "harican", "article": "X-1", "title": "X", "colour": "red"},
            headers=staff_headers,
        )
        assert resp.status_code == 400

    def test_negative_price_rejected(self, client, staff_headers):
        resp = client.post(
            "/api/products",
            json={"brand": "harican", "article": "X-1", "title": "X", "retail_cents": -1},
            headers=staff_headers,
        )
        assert resp.status_code == 400
        assert db.session.query(Product).count() == 0

    def test_unknown_brand_rejected(self, client, staff_headers):
        resp = client.post(
            "/api/products",
            json={"brand": "acme", "article": "X-1", "title": "X"},
            headers=staff_headers,
        )
        assert resp.status_code == 400


class TestListProducts:

    def test_filters(self, client, staff_headers, product, gloves, greenhil_product):
        resp = client.get("/api/products?brand=harican", headers=staff_headers)
        assert resp.get_json()["count"] == 2

        resp = client.get("/api/products?category=Boxing%20Gloves", headers=staff_headers)
        assert [p["article"] for p in resp.get_json()["items"]] == ["HR-GLV-01"]

        resp = client.get("/api/products?search=glv-01-12", headers=staff_headers)
        assert [p["article"] for p in resp.get_json()["items"]] == ["HR-GLV-01"]

    def test_pagination(self, client, staff_headers, product, gloves, greenhil_product):
        resp = client.get("/api/products?page=2&per_page=2", headers=staff_headers)

        data = resp.get_json()
        assert data["count"] == 1
        assert data["pagination"]["total"] == 3
        assert data["pagination"]["has_prev"] is True
        assert data["pagination"]["has_next"] is False

    def test_archived_hidden_by_default(self, client, staff_headers, product):
        client.put(f"/api/products/{product.id}", json={"archived": True}, headers=staff_headers)

        assert client.get("/api/products", headers=staff_headers).get_json()["count"] == 0
        assert client.get("/api/products?include_archived=true", headers=staff_headers).get_json()["count"] == 1


class TestUpdateProduct:

    def test_update_normalizes_category(self, client, staff_headers, product):
        resp = client.put(f"/api/products/{product.id}", json={"category": "training gear"}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.get_json()["category"] == "Training Equipment"

    def test_rename_to_taken_article_conflicts(self, client, staff_headers, product, gloves):
        resp = client.put(f"/api/products/{gloves.id}", json={"article": "HR-BAG-01"}, headers=staff_headers)
        assert resp.status_code == 409

    def test_missing_product(self, client, staff_headers):
        assert client.put("/api/products/999999", json={"title": "X"}, headers=staff_headers).status_code == 404

    def test_delete_product_removes_variants(self, client, staff_headers, gloves):
        resp = client.delete(f"/api/products/{gloves.id}", headers=staff_headers)

        assert resp.status_code == 200
        assert db.session.query(Variant).count() == 0


class TestVariants:

    def test_add_variant(self, client, staff_headers, product):
        resp = client.post(
            f"/api/products/{product.id}/variants",
            json={"sku": "HR-BAG-01-XL", "attributes": {"Size": "XL"}, "club_cents": 1800},
            headers=staff_headers,
        )

        assert resp.status_code == 201
        assert resp.get_json()["position"] == 1
        assert resp.get_json()["quantity"] == 0

    def test_quantity_cannot_be_set_directly(self, client, staff_headers, product):
        variant_id = product.variants[0].id
        resp = client.put(
            f"/api/products/{product.id}/variants/{variant_id}",
            json={"quantity": 99},
            headers=staff_headers,
        )
        assert resp.status_code == 400
        assert db.session.get(Variant, variant_id).quantity == 10

    def test_clear_price_override(self, client, staff_headers, gloves):
        ten_oz = next(v for v in gloves.variants if v.sku == "HR-GLV-01-10")

        resp = client.put(
            f"/api/products/{gloves.id}/variants/{ten_oz.id}",
            json={"wholesale_cents": None},
            headers=staff_headers,
        )

        assert resp.status_code == 200
        resp = client.get(f"/api/products/{gloves.id}/price?tier=wholesale&variant_id={ten_oz.id}",
                          headers=staff_headers)
        assert resp.get_json()["price_cents"] == 1500

    def test_last_variant_cannot_be_deleted(self, client, staff_headers, product):
        variant_id = product.variants[0].id
        resp = client.delete(f"/api/products/{product.id}/variants/{variant_id}", headers=staff_headers)
        assert resp.status_code == 409

    def test_delete_one_of_two_variants(self, client, staff_headers, gloves):
        variant_id = gloves.variants[1].id
        resp = client.delete(f"/api/products/{gloves.id}/variants/{variant_id}", headers=staff_headers)
        assert resp.status_code == 200
        assert len(client.get(f"/api/products/{gloves.id}", headers=staff_headers).get_json()["variants"]) == 1


def test_price_list_pdf(client, staff_headers, product, gloves):
    resp = client.get("/api/products/price-list.pdf?tier=wholesale&brand=harican", headers=staff_headers)

    assert resp.status_code == 200
    assert resp.mimetype == "application/pdf"
    assert resp.data.startswith(b"%PDF")


def test_price_list_requires_known_tier(client, staff_headers):
    resp = client.get("/api/products/price-list.pdf?tier=vip", headers=staff_headers)
    assert resp.status_code == 400
