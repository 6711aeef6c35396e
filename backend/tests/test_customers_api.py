"""
Customer API tests.
"""

from backoffice.extensions import db
from backoffice.models import Invoice


class TestCustomers:

    def test_create_defaults_to_retail(self, client, staff_headers):
        resp = client.post("/api/customers", json={"name": "Walk-in Will"}, headers=staff_headers)

        assert resp.status_code == 201
        data = resp.get_json()
        assert data["tier"] == "retail"
        assert data["total_orders"] == 0
        assert data["total_spent_cents"] == 0

    def test_tier_is_normalized(self, client, staff_headers):
        resp = client.post("/api/customers", json={"name": "Club C", "tier": " Club "}, headers=staff_headers)
        assert resp.get_json()["tier"] == "club"

    def test_invalid_tier(self, client, staff_headers):
        resp = client.post("/api/customers", json={"name": "V", "tier": "vip"}, headers=staff_headers)
        assert resp.status_code == 400

    def test_invalid_email(self, client, staff_headers):
        resp = client.post("/api/customers", json={"name": "V", "email": "not-an-email"}, headers=staff_headers)
        assert resp.status_code == 400

    def test_duplicate_email(self, client, staff_headers, customer):
        resp = client.post("/api/customers", json={"name": "Rita Two", "email": "RITA@example.com"},
                           headers=staff_headers)
        assert resp.status_code == 409

    def test_list_filters(self, client, staff_headers, customer, wholesale_customer):
        resp = client.get("/api/customers?tier=wholesale", headers=staff_headers)
        assert [c["name"] for c in resp.get_json()["items"]] == ["Wholesale Gym Ltd"]

        resp = client.get("/api/customers?search=gym", headers=staff_headers)
        assert resp.get_json()["count"] == 1

        assert client.get("/api/customers?tier=vip", headers=staff_headers).status_code == 400

    def test_update_tier(self, client, staff_headers, customer):
        resp = client.put(f"/api/customers/{customer.id}", json={"tier": "club"}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.get_json()["tier"] == "club"

    def test_missing_customer(self, client, staff_headers):
        assert client.get("/api/customers/999999", headers=staff_headers).status_code == 404
        assert client.delete("/api/customers/999999", headers=staff_headers).status_code == 404


class TestCustomerInvoices:

    def _issue(self, client, headers, customer, product, quantity=1):
        resp = client.post(
            "/api/invoices",
            json={"brand": "harican", "customer_id": customer.id, "status": "pending",
                  "items": [{"product_id": product.id, "quantity": quantity}]},
            headers=headers,
        )
        return resp.get_json()

    def test_detail_lists_invoices(self, client, staff_headers, customer, product):
        inv = self._issue(client, staff_headers, customer, product)

        data = client.get(f"/api/customers/{customer.id}", headers=staff_headers).get_json()

        assert [i["invoice_number"] for i in data["invoices"]] == [inv["invoice_number"]]
        assert data["total_orders"] == 1
        assert data["total_spent_cents"] == 0

    def test_drafts_do_not_count(self, client, staff_headers, customer, product):
        client.post(
            "/api/invoices",
            json={"brand": "harican", "customer_id": customer.id,
                  "items": [{"product_id": product.id, "quantity": 1}]},
            headers=staff_headers,
        )

        data = client.get(f"/api/customers/{customer.id}", headers=staff_headers).get_json()
        assert data["total_orders"] == 0

    def test_delete_keeps_invoice_name(self, client, staff_headers, customer, product):
        inv = self._issue(client, staff_headers, customer, product)

        resp = client.delete(f"/api/customers/{customer.id}", headers=staff_headers)

        assert resp.status_code == 200
        db.session.expire_all()
        kept = db.session.get(Invoice, inv["id"])
        assert kept.customer_id is None
        assert kept.customer_name == "Retail Rita"
