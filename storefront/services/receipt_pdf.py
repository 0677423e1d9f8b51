from __future__ import annotations

from io import BytesIO
from typing import Any, Dict, List

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from storefront.services.pricing import line_total
from storefront.utils.formatters import money, status_label


def generate_receipt_pdf(order: Dict[str, Any], items: List[Dict[str, Any]]) -> bytes:
    """Receipt rendered in memory; nothing is written to disk."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    w, h = A4

    y = h - 50
    c.setFont("Helvetica-Bold", 14)
    c.drawString(40, y, f"ORDER #{order['id']}")
    y -= 20

    c.setFont("Helvetica", 11)
    for line in (
        f"Customer: {order.get('customer_name', '')}",
        f"Email: {order.get('customer_email', '')}  Phone: {order.get('customer_phone', '')}",
        f"Ship to: {order.get('address', '')}, {order.get('city', '')} {order.get('zip_code', '')}",
        f"Date: {order.get('created_at') or '-'}",
        f"Status: {status_label(order.get('status', ''))}  Payment: cash on delivery",
    ):
        c.drawString(40, y, line[:90])
        y -= 16
    y -= 8

    # header
    c.setFont("Helvetica-Bold", 10)
    c.drawString(40, y, "Item")
    c.drawString(310, y, "Qty")
    c.drawString(360, y, "Price")
    c.drawString(440, y, "Total")
    y -= 10
    c.line(40, y, 550, y)
    y -= 16

    c.setFont("Helvetica", 10)
    for it in items:
        item_name = str(it.get("product_id", ""))
        if it.get("size"):
            item_name += f" / {it['size']}"
        c.drawString(40, y, item_name[:45])
        c.drawRightString(340, y, str(int(it.get("quantity", 0))))
        c.drawRightString(420, y, f"{float(it.get('price', 0)):.2f}")
        c.drawRightString(550, y, f"{line_total(it.get('price', 0), it.get('quantity', 0)):.2f}")
        y -= 14
        if y < 80:
            c.showPage()
            y = h - 50
            c.setFont("Helvetica", 10)

    y -= 10
    c.line(40, y, 550, y)
    y -= 18
    c.setFont("Helvetica-Bold", 12)
    c.drawRightString(550, y, f"TOTAL: {money(order.get('total_amount', 0))}")

    c.save()
    return buf.getvalue()
