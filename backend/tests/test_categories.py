"""
Category tests: name normalization, CRUD and bulk reorder.
"""

import pytest

from backoffice.extensions import db
from backoffice.models import Category
from backoffice.services.categories_service import normalize_category


@pytest.mark.parametrize("raw,expected", [
    ("gloves", "Boxing Gloves"),
    ("Boxing Glove", "Boxing Gloves"),
    ("training gear", "Training Equipment"),
    ("home & garden", "Home & Garden"),
    ("kitchen tools", "Kitchen Tools"),
    ("", "Other"),
    ("   ", "Other"),
    (None, "Other"),
])
def test_normalize_category(raw, expected):
    assert normalize_category(raw) == expected


def _add(name, sort_order):
    c = Category(name=name, sort_order=sort_order)
    db.session.add(c)
    db.session.commit()
    return c


class TestCategoryRoutes:

    def test_create_normalizes_and_appends(self, client, staff_headers):
        _add("Apparel", 4)

        resp = client.post("/api/categories", json={"name": "mma", "color": "#FF0000"}, headers=staff_headers)

        assert resp.status_code == 201
        data = resp.get_json()
        assert data["name"] == "MMA Gear"
        assert data["sort_order"] == 5

    def test_duplicate_name_is_case_insensitive(self, client, staff_headers):
        _add("Boxing Gloves", 0)
        resp = client.post("/api/categories", json={"name": "BOXING GLOVES"}, headers=staff_headers)
        assert resp.status_code == 409

    def test_bad_color(self, client, staff_headers):
        resp = client.post("/api/categories", json={"name": "Apparel", "color": "red"}, headers=staff_headers)
        assert resp.status_code == 400

    def test_list_in_display_order(self, client, staff_headers):
        _add("Zeta", 0)
        _add("Alpha", 1)
        _add("Beta", 1)

        resp = client.get("/api/categories", headers=staff_headers)

        assert [c["name"] for c in resp.get_json()["items"]] == ["Zeta", "Alpha", "Beta"]

    def test_rename_conflict(self, client, staff_headers):
        _add("Apparel", 0)
        other = _add("Clothing", 1)
        resp = client.put(f"/api/categories/{other.id}", json={"name": "apparel"}, headers=staff_headers)
        assert resp.status_code == 409

    def test_delete(self, client, staff_headers):
        c = _add("Apparel", 0)
        assert client.delete(f"/api/categories/{c.id}", headers=staff_headers).status_code == 200
        assert client.delete(f"/api/categories/{c.id}", headers=staff_headers).status_code == 404


class TestReorder:

    def test_reorder(self, client, staff_headers):
        a = _add("Apparel", 0)
        b = _add("Clothing", 1)

        resp = client.post(
            "/api/categories/reorder",
            json={"categories": [{"id": a.id, "sort_order": 1}, {"id": b.id, "sort_order": 0}]},
            headers=staff_headers,
        )

        assert resp.get_json() == {"success": True, "updated": 2}
        names = [c["name"] for c in client.get("/api/categories", headers=staff_headers).get_json()["items"]]
        assert names == ["Clothing", "Apparel"]

    def test_unknown_id_changes_nothing(self, client, staff_headers):
        a = _add("Apparel", 0)

        resp = client.post(
            "/api/categories/reorder",
            json={"categories": [{"id": a.id, "sort_order": 7}, {"id": 987654, "sort_order": 0}]},
            headers=staff_headers,
        )

        assert resp.status_code == 400
        db.session.expire_all()
        assert db.session.get(Category, a.id).sort_order == 0

    @pytest.mark.parametrize("body", [{}, {"categories": []}, {"categories": [{"id": "1", "sort_order": 0}]}])
    def test_malformed_body(self, client, staff_headers, body):
        resp = client.post("/api/categories/reorder", json=body, headers=staff_headers)
        assert resp.status_code == 400
