import csv
import io
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from fpdf import FPDF

from bookkeeping.services.periods import DateRange, fiscal_year_start, parse_local_date
from bookkeeping.services.reports import Transaction, parse_amount

EXPORT_HEADERS = ["Date", "Category", "Subcategory", "Sender", "Receiver", "Amount", "Remarks"]
EXPORT_FIELDS = ["date", "category", "subcategory", "sender", "receiver", "amount", "remarks"]


def group_indian(digits: str) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency(value: Any, symbol: str = "₹") -> str:
    amount = parse_amount(value) or Decimal("0")
    amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    whole, fraction = f"{abs(amount):.2f}".split(".")
    return f"{sign}{symbol}{group_indian(whole)}.{fraction}"


def format_short_date(value: str) -> str:
    parsed = parse_local_date(value)
    if parsed is None:
        return value or ""
    return f"{parsed.day} {parsed.strftime('%b')} {parsed.year}"


def period_label(mode: str, reference_date: date, date_range: DateRange | None = None) -> str:
    if mode == "custom":
        date_range = date_range or DateRange()
        return f"{format_short_date(date_range.from_date)} to {format_short_date(date_range.to_date)}"
    if mode == "allTime":
        return "All time"
    if mode == "thisMonth":
        return reference_date.strftime("%B %Y")
    if mode == "thisQuarter":
        quarter = (reference_date.month - 1) // 3
        first = date(reference_date.year, quarter * 3 + 1, 1).strftime("%b")
        last = date(reference_date.year, quarter * 3 + 3, 1).strftime("%b")
        return f"Q{quarter + 1} {reference_date.year} ({first} – {last})"
    if mode == "thisFiscalYear":
        start_year = fiscal_year_start(reference_date).year
        return f"FY {start_year}-{start_year + 1}"
    return mode


def export_filename(mode: str, date_range: DateRange, today: date, extension: str) -> str:
    if mode == "custom":
        range_part = f"{date_range.from_date}_to_{date_range.to_date}"
    else:
        range_part = mode
    return f"madrasah_accounts_{range_part}_{today.isoformat()}.{extension}"


def export_cell(tx: Transaction, name: str) -> str:
    value = tx.get(name)
    return "" if value is None else str(value)


def transactions_to_csv(rows: list[Transaction]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for tx in rows:
        writer.writerow([export_cell(tx, name) for name in EXPORT_FIELDS])
    return output.getvalue()


def safe_pdf_text(value: Any) -> str:
    text = str(value or "").replace("\n", " ").replace("\r", " ")
    try:
        text.encode("latin-1")
        return text
    except UnicodeEncodeError:
        return text.encode("latin-1", "replace").decode("latin-1")


def transactions_to_pdf(rows: list[Transaction], title: str, totals: dict[str, Decimal]) -> bytes:
    pdf = FPDF(orientation="L", unit="mm", format="A4")
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()
    pdf.set_font("Helvetica", "B", 14)
    pdf.cell(0, 8, "Accounts Statement", ln=True)
    pdf.set_font("Helvetica", size=10)
    summary = (
        f"Period: {title} | Income: {format_currency(totals['income'], 'Rs. ')}"
        f" | Expenses: {format_currency(totals['expenses'], 'Rs. ')}"
        f" | Balance: {format_currency(totals['balance'], 'Rs. ')}"
    )
    pdf.multi_cell(0, 6, safe_pdf_text(summary))
    pdf.ln(2)

    widths = [26, 24, 38, 42, 42, 30, 75]
    pdf.set_font("Helvetica", "B", 9)
    for width, label in zip(widths, EXPORT_HEADERS):
        pdf.cell(width, 7, label, border=1)
    pdf.ln()

    pdf.set_font("Helvetica", size=9)
    for tx in rows:
        for width, name in zip(widths, EXPORT_FIELDS):
            if name == "amount":
                cell = format_currency(tx.get("amount"), "")
            else:
                cell = safe_pdf_text(export_cell(tx, name))
            if len(cell) > 40:
                cell = cell[:37] + "..."
            pdf.cell(width, 6, cell, border=1)
        pdf.ln()

    return bytes(pdf.output())
