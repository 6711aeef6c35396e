"""
Invoice and price list PDF rendering tests.
"""

from backoffice.services import invoice_service, pdf_service


def _invoice(customer, product, **extra):
    payload = {
        "brand": "harican",
        "customer_id": customer.id,
        "items": [
            {"product_id": product.id, "quantity": 2},
            {"description": "Carriage <express> & handling", "unit_price_cents": 595, "quantity": 1},
        ],
        "tax_rate": "20",
        "discount_percent": "5",
    }
    payload.update(extra)
    return invoice_service.create_invoice(payload)


class TestInvoicePdf:

    def test_render(self, customer, product):
        inv = _invoice(customer, product, notes="Thanks <b>Rita</b>\nSee you soon", po_number="PO-9")

        pdf = pdf_service.render_invoice_pdf(inv)

        assert pdf.startswith(b"%PDF")
        assert len(pdf) > 1000

    def test_route_downloads_attachment(self, client, staff_headers, wholesale_customer, product):
        inv = _invoice(wholesale_customer, product, status="pending")
        inv_id, number = inv.id, inv.invoice_number

        resp = client.get(f"/api/invoices/{inv_id}/pdf", headers=staff_headers)

        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert f"{number}.pdf" in resp.headers["Content-Disposition"]
        assert resp.data.startswith(b"%PDF")

    def test_missing_invoice(self, client, staff_headers):
        assert client.get("/api/invoices/999999/pdf", headers=staff_headers).status_code == 404


class TestPriceListPdf:

    def test_render_each_tier(self, product, gloves, greenhil_product):
        for tier in ("retail", "wholesale", "club"):
            assert pdf_service.render_price_list_pdf(tier).startswith(b"%PDF")

    def test_empty_catalog(self):
        assert pdf_service.render_price_list_pdf("retail", brand="byko").startswith(b"%PDF")
