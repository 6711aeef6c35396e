# Overview: PDF rendering for invoices and tier price lists.

"""
PDF documents built with reportlab platypus (A4).

Both renderers return the PDF as bytes; routes stream them with send_file.
Amounts are formatted with the configured CURRENCY_SYMBOL.
"""
from __future__ import annotations

import io
from xml.sax.saxutils import escape

from flask import current_app
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..extensions import db
from ..models import BRAND_DISPLAY_NAMES, CustomerTier, DiscountType, Invoice, Product
from ..time_utils import today
from .pricing_service import resolve_price
from .totals_service import format_money, format_rate

HEADER_BG = colors.HexColor("#1F2937")
GRID = colors.HexColor("#D1D5DB")


def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle("Small", parent=styles["Normal"], fontSize=8, leading=10))
    styles.add(ParagraphStyle("Right", parent=styles["Normal"], alignment=2))
    return styles


def _money(cents: int) -> str:
    return format_money(cents, current_app.config.get("CURRENCY_SYMBOL", "£"))


def _company_block(styles) -> list:
    cfg = current_app.config
    parts = [Paragraph(f"<b>{escape(cfg.get('COMPANY_NAME', ''))}</b>", styles["Title"])]
    for key in ("COMPANY_ADDRESS", "COMPANY_EMAIL"):
        if cfg.get(key):
            parts.append(Paragraph(escape(cfg[key]), styles["Small"]))
    return parts


def _table_style(header_rows: int = 1) -> TableStyle:
    return TableStyle([
        ("BACKGROUND", (0, 0), (-1, header_rows - 1), HEADER_BG),
        ("TEXTCOLOR", (0, 0), (-1, header_rows - 1), colors.white),
        ("FONTNAME", (0, 0), (-1, header_rows - 1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -1), 0.25, GRID),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ROWBACKGROUNDS", (0, header_rows), (-1, -1), [colors.white, colors.HexColor("#F9FAFB")]),
    ])


def render_invoice_pdf(inv: Invoice) -> bytes:
    styles = _styles()
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4,
        leftMargin=18 * mm, rightMargin=18 * mm, topMargin=15 * mm, bottomMargin=15 * mm,
        title=f"Invoice {inv.invoice_number}",
    )

    story = _company_block(styles)
    story.append(Spacer(1, 6 * mm))

    meta = [
        ["Invoice", inv.invoice_number],
        ["Brand", BRAND_DISPLAY_NAMES.get(inv.brand, inv.brand)],
        ["Issue date", inv.issue_date.strftime("%d/%m/%Y")],
        ["Due date", inv.due_date.strftime("%d/%m/%Y")],
        ["Status", inv.status.capitalize()],
    ]
    if inv.po_number:
        meta.append(["PO number", inv.po_number])

    bill_to = [Paragraph("<b>Bill to</b>", styles["Normal"]), Paragraph(escape(inv.customer_name or "-"), styles["Normal"])]
    customer = inv.customer
    if customer is not None:
        for value in (customer.company, customer.address, customer.email, customer.phone):
            if value:
                bill_to.append(Paragraph(escape(str(value)).replace("\n", "<br/>"), styles["Small"]))

    meta_table = Table(meta, colWidths=[28 * mm, 50 * mm])
    meta_table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
    ]))
    story.append(Table([[bill_to, meta_table]], colWidths=[94 * mm, 80 * mm], style=[("VALIGN", (0, 0), (-1, -1), "TOP")]))
    story.append(Spacer(1, 8 * mm))

    rows = [["SKU", "Description", "Qty", "Unit price", "Total"]]
    for line in inv.lines:
        rows.append([
            line.sku or "",
            Paragraph(escape(line.description), styles["Small"]),
            str(line.quantity),
            _money(line.unit_price_cents),
            _money(line.line_total_cents),
        ])
    items = Table(rows, colWidths=[28 * mm, 78 * mm, 14 * mm, 27 * mm, 27 * mm], repeatRows=1)
    style = _table_style()
    style.add("ALIGN", (2, 0), (-1, -1), "RIGHT")
    items.setStyle(style)
    story.append(items)
    story.append(Spacer(1, 6 * mm))

    totals = [["Subtotal", _money(inv.subtotal_cents)]]
    if inv.discount_cents:
        label = "Discount"
        if inv.discount_type == DiscountType.PERCENTAGE.value:
            label = f"Discount ({format_rate(inv.discount_value)})"
        totals.append([label, f"-{_money(inv.discount_cents)}"])
    if inv.tax_rate_bps:
        totals.append([f"Tax ({format_rate(inv.tax_rate_bps)})", _money(inv.tax_cents)])
    totals.append(["Total", _money(inv.total_cents)])
    if inv.paid_cents:
        totals.append(["Paid", _money(inv.paid_cents)])
        totals.append(["Balance due", _money(inv.balance_due_cents)])

    totals_table = Table(totals, colWidths=[40 * mm, 30 * mm], hAlign="RIGHT")
    totals_table.setStyle(TableStyle([
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("LINEABOVE", (0, -1), (-1, -1), 0.5, colors.black),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
    ]))
    story.append(totals_table)

    if inv.notes:
        story.append(Spacer(1, 8 * mm))
        story.append(Paragraph("<b>Notes</b>", styles["Normal"]))
        story.append(Paragraph(escape(inv.notes).replace("\n", "<br/>"), styles["Small"]))

    doc.build(story)
    return buf.getvalue()


def render_price_list_pdf(tier, brand: str | None = None, category: str | None = None) -> bytes:
    """
    Price list for one tier. Wholesale and club lists add an RRP column
    (the retail price) so resellers can see the margin.
    """
    tier = CustomerTier.parse(tier)
    styles = _styles()

    query = db.session.query(Product).filter(Product.archived.is_(False))
    if brand:
        query = query.filter(Product.brand == brand)
    if category:
        query = query.filter(Product.category == category)
    products = query.order_by(Product.category.asc(), Product.article.asc()).all()

    show_rrp = tier is not CustomerTier.RETAIL
    header = ["Article", "Title", "Category", f"{tier.value.capitalize()} price"]
    if show_rrp:
        header.append("RRP")

    rows = [header]
    for p in products:
        row = [p.article, Paragraph(escape(p.title), styles["Small"]), p.category, _money(resolve_price(tier, p))]
        if show_rrp:
            row.append(_money(resolve_price(CustomerTier.RETAIL, p)))
        rows.append(row)

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4,
        leftMargin=15 * mm, rightMargin=15 * mm, topMargin=15 * mm, bottomMargin=15 * mm,
        title="Price list",
    )
    story = _company_block(styles)
    subtitle = f"{tier.value.capitalize()} price list"
    if brand:
        subtitle += f" - {BRAND_DISPLAY_NAMES.get(brand, brand)}"
    if category:
        subtitle += f" - {category}"
    story.append(Paragraph(escape(subtitle), styles["Heading2"]))
    story.append(Paragraph(f"Generated {today().strftime('%d/%m/%Y')}", styles["Small"]))
    story.append(Spacer(1, 5 * mm))

    if len(rows) == 1:
        story.append(Paragraph("No products match this selection.", styles["Normal"]))
    else:
        widths = [28 * mm, 72 * mm, 40 * mm, 22 * mm] if not show_rrp else [26 * mm, 62 * mm, 36 * mm, 28 * mm, 24 * mm]
        table = Table(rows, colWidths=widths, repeatRows=1)
        style = _table_style()
        style.add("ALIGN", (3, 0), (-1, -1), "RIGHT")
        table.setStyle(style)
        story.append(table)

    doc.build(story)
    return buf.getvalue()
