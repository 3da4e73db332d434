# goldledger/exports.py
import io
import logging
import re
from datetime import timezone
from decimal import Decimal

import pandas as pd
import pdfkit
from flask import render_template
from openpyxl.utils import get_column_letter

from goldledger.exceptions import ExportError
from goldledger.ledger import (
    MONTHS, CurrentSale, base_price, display_breakdown, display_price,
    receipt_reference, to_local,
)

log = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"
SHEET_NAME = "Sales Report"

SHEET_COLUMNS = [
    ("Date", 12),
    ("Customer Name", 20),
    ("Phone", 12),
    ("Item Name", 15),
    ("Description/HUID", 15),
    ("Base Price (₹)", 12),
    ("GST (₹)", 10),
    ("Discount (₹)", 10),
    ("Final Price (₹)", 12),
    ("Notes", 30),
]

CSV_HEADERS = [
    "Date", "Customer Name", "Phone", "Item Name", "HUID",
    "Base Price", "GST Amount", "Discount", "Final Price", "Notes",
]

PDF_OPTIONS = {
    'page-size': 'A4',
    'margin-top': '0.5in',
    'margin-right': '0.5in',
    'margin-bottom': '0.5in',
    'margin-left': '0.5in',
    'encoding': "UTF-8",
    'no-outline': None,
}


def _plain(amount: Decimal):
    # spreadsheets and CSV should see 103000, not 103000.00
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def report_values(sale, tz=None):
    """One report line, in CSV_HEADERS order. Legacy GST/discount are N/A."""
    if isinstance(sale, CurrentSale):
        gst = _plain(sale.gst_amount)
        discount = _plain(sale.discount_amount)
    else:
        gst = discount = NOT_AVAILABLE

    return [
        to_local(sale.timestamp, tz).strftime("%d/%m/%Y"),
        sale.customer_name,
        sale.customer_phone,
        sale.item_name,
        sale.huid,
        _plain(base_price(sale)),
        gst,
        discount,
        _plain(display_price(sale)),
        sale.notes,
    ]


def report_filename(year, month, extension):
    return f"GoldLedger_Report_{MONTHS[month - 1]}_{year}.{extension}"


def sales_to_xlsx(sales, tz=None) -> bytes:
    rows = [report_values(s, tz) for s in sales]
    df = pd.DataFrame(rows, columns=[name for name, _ in SHEET_COLUMNS], dtype=object)

    output = io.BytesIO()
    try:
        with pd.ExcelWriter(output, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name=SHEET_NAME)
            sheet = writer.sheets[SHEET_NAME]
            for idx, (_, width) in enumerate(SHEET_COLUMNS, start=1):
                sheet.column_dimensions[get_column_letter(idx)].width = width
    except (ValueError, OSError) as e:
        log.exception("Excel export failed")
        raise ExportError(f"Excel Export Failed: {e}") from e

    output.seek(0)
    return output.getvalue()


def sales_to_csv(sales, tz=None) -> bytes:
    rows = [report_values(s, tz) for s in sales]
    df = pd.DataFrame(rows, columns=CSV_HEADERS, dtype=object)

    output = io.StringIO()
    df.to_csv(output, index=False, lineterminator="\n")
    # BOM so Excel opens the file as UTF-8
    return ("\ufeff" + output.getvalue()).encode("utf-8")


def _tsv_cell(value):
    return re.sub(r"[\t\r\n]+", " ", "" if value is None else str(value))


def sales_to_tsv(sales, tz=None) -> str:
    """Tab separated text for pasting into a spreadsheet."""
    lines = ["\t".join(CSV_HEADERS)]
    for sale in sales:
        lines.append("\t".join(_tsv_cell(v) for v in report_values(sale, tz)))
    return "\n".join(lines)


# -----------------------
# Invoice PDF
# -----------------------
def invoice_filename(sale):
    name = re.sub(r"\s+", "_", sale.customer_name)
    millis = int(sale.timestamp.replace(tzinfo=timezone.utc).timestamp() * 1000)
    return f"Invoice_{name}_{millis}.pdf"


def invoice_lines(sale):
    """Rows of the invoice price table: (details, amount)."""
    if isinstance(sale, CurrentSale):
        gst = f"+ {sale.gst_amount:.2f}"
        discount = f"- {sale.discount_amount:.2f}"
    else:
        gst = discount = NOT_AVAILABLE

    breakdown = display_breakdown(sale)
    return [
        ("Base Price", breakdown.base_price),
        ("GST Amount", gst),
        ("Discount", discount),
    ]


def render_invoice_html(sale, shop_name):
    return render_template(
        "sales/invoice.html",
        sale=sale,
        shop_name=shop_name,
        reference=receipt_reference(sale),
        lines=invoice_lines(sale),
        final_price=display_price(sale),
    )


def sale_to_pdf(sale, shop_name, wkhtmltopdf_path="") -> bytes:
    html = render_invoice_html(sale, shop_name)
    try:
        configuration = pdfkit.configuration(wkhtmltopdf=wkhtmltopdf_path) if wkhtmltopdf_path else None
        return pdfkit.from_string(html, False, options=PDF_OPTIONS, configuration=configuration)
    except OSError as e:
        log.exception("Invoice PDF for sale %s failed", sale.id)
        raise ExportError(f"Invoice generation failed: {e}") from e
