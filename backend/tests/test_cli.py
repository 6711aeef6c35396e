"""
Flask CLI command tests.
"""

import json

import pytest

from backoffice.extensions import db
from backoffice.models import Category, Invoice, User
from backoffice.services import invoice_service
from backoffice.services.categories_service import PREDEFINED_CATEGORIES


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestSystemCommands:

    def test_init_seeds_categories_once(self, runner):
        result = runner.invoke(args=["system", "init"])

        assert result.exit_code == 0
        assert f"PASS Created {len(PREDEFINED_CATEGORIES)} categories" in result.output
        assert "WARN No approved admin yet" in result.output
        first = db.session.query(Category).order_by(Category.sort_order).first()
        assert first.name == "Boxing Gloves"

        again = runner.invoke(args=["system", "init"])
        assert "PASS Categories already present" in again.output
        assert db.session.query(Category).count() == len(PREDEFINED_CATEGORIES)

    def test_cleanup_sessions(self, runner):
        result = runner.invoke(args=["system", "cleanup-sessions"])
        assert result.exit_code == 0
        assert "PASS Deleted 0 stale session(s)" in result.output


class TestUserCommands:

    def test_create_admin(self, runner):
        result = runner.invoke(args=[
            "users", "create-admin", "--email", "Boss@Example.com", "--password", "Password123", "--name", "Boss",
        ])

        assert result.exit_code == 0
        user = db.session.query(User).filter_by(email="boss@example.com").one()
        assert user.role == "admin"
        assert user.status == "approved"

    def test_create_admin_duplicate(self, runner, admin_user):
        result = runner.invoke(args=[
            "users", "create-admin", "--email", "admin@example.com", "--password", "Password123",
        ])
        assert result.exit_code != 0
        assert "already exists" in result.output

    def test_create_admin_weak_password(self, runner):
        result = runner.invoke(args=["users", "create-admin", "--email", "a@example.com", "--password", "weak"])
        assert result.exit_code != 0

    def test_list_by_status(self, runner, new_user, staff_user):
        new_user("waiting@example.com", status="pending")

        result = runner.invoke(args=["users", "list", "--status", "pending"])

        assert "waiting@example.com" in result.output
        assert "staff@example.com" not in result.output


def test_mark_overdue(runner, customer, product):
    invoice_service.create_invoice({
        "brand": "harican",
        "customer_id": customer.id,
        "items": [{"product_id": product.id, "quantity": 1}],
        "issue_date": "2020-01-01",
        "due_date": "2020-01-31",
        "status": "pending",
    })

    result = runner.invoke(args=["invoices", "mark-overdue"])

    assert "PASS Marked 1 invoice(s) overdue" in result.output
    db.session.expire_all()
    assert db.session.query(Invoice).one().status == "overdue"


class TestBackupCommands:

    def test_export_then_restore(self, runner, tmp_path, customer, product):
        target = tmp_path / "backup.json"

        result = runner.invoke(args=["backup", "export", "--output", str(target)])

        assert result.exit_code == 0
        assert "1 customers, 1 products, 0 invoices" in result.output
        data = json.loads(target.read_text(encoding="utf-8"))
        assert data["version"] == "1.0"

        result = runner.invoke(args=["backup", "restore", str(target), "--yes"])
        assert result.exit_code == 0
        assert "PASS customers: 1 processed, 0 added, 1 updated" in result.output

    def test_restore_rejects_invalid_file(self, runner, tmp_path):
        target = tmp_path / "bad.json"
        target.write_text(json.dumps({"version": "1.0"}), encoding="utf-8")

        result = runner.invoke(args=["backup", "restore", str(target), "--yes"])

        assert result.exit_code != 0
        assert "FAIL Missing timestamp" in result.output
