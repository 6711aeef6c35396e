"""
Backup and safe restore tests.

Restore upserts on natural keys and never deletes, so restoring a backup
over the same data only updates rows.
"""

import copy

import pytest

from backoffice.extensions import db
from backoffice.models import Customer, Invoice, Product, Variant
from backoffice.services import backup_service, invoice_service
from backoffice.services.backup_service import BackupError

KEEP_TABLES = {"users", "session_tokens"}


@pytest.fixture
def issued_invoice(customer, gloves):
    ten_oz = next(v for v in gloves.variants if v.sku == "HR-GLV-01-10")
    return invoice_service.create_invoice({
        "brand": "harican",
        "customer_id": customer.id,
        "items": [{"product_id": gloves.id, "variant_id": ten_oz.id, "quantity": 2}],
        "status": "pending",
    })


def _wipe_business_data():
    for table in reversed(db.metadata.sorted_tables):
        if table.name not in KEEP_TABLES:
            db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()


class TestBackup:

    def test_backup_document(self, client, admin_headers, issued_invoice):
        resp = client.post("/api/admin/backup", headers=admin_headers)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True
        data = body["data"]
        assert data["version"] == "1.0"
        assert data["timestamp"].endswith("Z")
        assert data["metadata"]["total_customers"] == 1
        assert data["metadata"]["total_products"] == 1
        assert data["metadata"]["total_invoices"] == 1
        assert len(data["products"][0]["variants"]) == 2
        assert data["invoices"][0]["lines"][0]["unit_price_cents"] == 3000

    def test_requires_admin(self, client, staff_headers):
        assert client.post("/api/admin/backup", headers=staff_headers).status_code == 403


class TestRestore:

    def test_restore_over_same_data_only_updates(self, client, admin_headers, issued_invoice):
        data = client.post("/api/admin/backup", headers=admin_headers).get_json()["data"]

        resp = client.post("/api/admin/restore", json={"backup_data": data, "confirm_restore": True},
                           headers=admin_headers)

        assert resp.status_code == 200
        summary = resp.get_json()["summary"]
        assert summary["customers"] == {"processed": 1, "added": 0, "updated": 1}
        assert summary["products"] == {"processed": 1, "added": 0, "updated": 1}
        assert summary["invoices"] == {"processed": 1, "added": 0, "updated": 1}
        assert db.session.query(Invoice).count() == 1

    def test_restore_into_empty_database_relinks(self, client, admin_headers, issued_invoice):
        data = client.post("/api/admin/backup", headers=admin_headers).get_json()["data"]
        _wipe_business_data()

        summary = backup_service.restore_backup(data)

        assert summary["invoices"]["added"] == 1
        inv = db.session.query(Invoice).one()
        customer = db.session.query(Customer).one()
        variant = db.session.query(Variant).filter_by(sku="HR-GLV-01-10").one()
        assert inv.invoice_number == "WIN-INV-321"
        assert inv.customer_id == customer.id
        assert inv.lines[0].variant_id == variant.id
        assert inv.status == "pending"
        assert variant.quantity == 3

    def test_numbering_continues_after_restore(self, client, admin_headers, issued_invoice):
        data = client.post("/api/admin/backup", headers=admin_headers).get_json()["data"]
        _wipe_business_data()
        backup_service.restore_backup(data)

        resp = client.get("/api/invoices/next-number", headers=admin_headers)
        assert resp.get_json()["invoice_number"] == "WIN-INV-322"

    def test_restore_moves_live_counter_past_restored_numbers(self, client, admin_headers, issued_invoice, customer, product):
        data = client.post("/api/admin/backup", headers=admin_headers).get_json()["data"]
        restored = copy.deepcopy(data["invoices"][0])
        restored["invoice_number"] = "WIN-INV-322"
        data["invoices"].append(restored)

        summary = backup_service.restore_backup(data)

        assert summary["invoices"] == {"processed": 2, "added": 1, "updated": 1}
        resp = client.get("/api/invoices/next-number", headers=admin_headers)
        assert resp.get_json()["invoice_number"] == "WIN-INV-323"

        resp = client.post(
            "/api/invoices",
            json={"brand": "harican", "customer_id": customer.id,
                  "items": [{"product_id": product.id, "quantity": 1}]},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["invoice_number"] == "WIN-INV-323"

    def test_restore_never_moves_counter_backwards(self, client, admin_headers, issued_invoice, customer, product):
        data = client.post("/api/admin/backup", headers=admin_headers).get_json()["data"]
        invoice_service.create_invoice({
            "brand": "harican",
            "customer_id": customer.id,
            "items": [{"product_id": product.id, "quantity": 1}],
        })

        backup_service.restore_backup(data)

        resp = client.get("/api/invoices/next-number", headers=admin_headers)
        assert resp.get_json()["invoice_number"] == "WIN-INV-323"

    def test_requires_confirmation(self, client, admin_headers, issued_invoice):
        data = client.post("/api/admin/backup", headers=admin_headers).get_json()["data"]
        resp = client.post("/api/admin/restore", json={"backup_data": data}, headers=admin_headers)
        assert resp.status_code == 400

    def test_invalid_document(self, client, admin_headers):
        resp = client.post(
            "/api/admin/restore",
            json={"backup_data": {"version": "9.9", "customers": {}}, "confirm_restore": True},
            headers=admin_headers,
        )

        assert resp.status_code == 400
        details = resp.get_json()["details"]
        assert "Missing timestamp" in details
        assert "Unsupported backup version: 9.9" in details
        assert "Invalid customers data" in details

    def test_unknown_brand_rolls_back(self, product):
        doc = {
            "version": "1.0",
            "timestamp": "2026-01-01T00:00:00Z",
            "customers": [{"name": "Restored Customer"}],
            "products": [{"brand": "acme", "article": "A-1", "title": "Nope"}],
            "invoices": [],
        }

        with pytest.raises(BackupError):
            backup_service.restore_backup(doc)

        assert db.session.query(Customer).count() == 0
        assert db.session.query(Product).count() == 1
