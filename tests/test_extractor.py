import io
from datetime import date, timedelta

import openpyxl
import pytest

from invoice_intake.extractor import (
    PDF_FIELDS_MISSING,
    SPREADSHEET_COLUMNS_UNMAPPED,
    ExtractionError,
    PdfExtractor,
    SampleExtractor,
    SpreadsheetExtractor,
)
from invoice_intake.schemas import InvoiceType

PDF_TEXT = """ACME Invoice
Invoice No: INV-2024-0042
Supplier: Tech Solutions Inc.
Invoice Date: 2024-01-15
Due Date: 2024-02-14
Invoice Type: service
Description Qty Unit Price Total
Web Development 3 95.00 285.00
Server Hosting 1 120.00 120.00
Subtotal 405.00
VAT 20% 81.00
Total 486.00 EUR
Notes: Thank you for your business
"""


def _workbook_bytes(rows):
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


SHEET_ROWS = [
    ["Invoice Number", "INV-2024-007"],
    ["Supplier", "Office Supplies Ltd."],
    ["Invoice Date", "2024-03-01"],
    ["Invoice Type", "purchase"],
    ["Tax Rate", 20],
    ["Description", "Quantity", "Unit Price", "Total"],
    ["Paper", 10, 4.5, 45],
    ["Pens", 3, 2, 6],
    ["Subtotal", None, None, 51],
]


class TestPdfExtractor:
    def test_parse_text(self):
        data = PdfExtractor().parse_text(PDF_TEXT)
        assert data.invoice_number == "INV-2024-0042"
        assert data.supplier_name == "Tech Solutions Inc."
        assert data.invoice_date == "2024-01-15"
        assert data.due_date == "2024-02-14"
        assert data.invoice_type is InvoiceType.SERVICE
        assert [item.description for item in data.items] == ["Web Development", "Server Hosting"]
        assert data.tax_rate == 20
        assert data.currency == "EUR"
        assert data.notes == "Thank you for your business"
        assert data.total_amount == pytest.approx(486.0, abs=1e-6)

    def test_due_date_defaults_to_thirty_days(self):
        text = PDF_TEXT.replace("Due Date: 2024-02-14\n", "")
        assert PdfExtractor().parse_text(text).due_date == "2024-02-14"

    def test_missing_fields_fail(self):
        text = PDF_TEXT.replace("Supplier: Tech Solutions Inc.\n", "")
        with pytest.raises(ExtractionError, match=PDF_FIELDS_MISSING):
            PdfExtractor().parse_text(text)

    def test_no_line_items_fail(self):
        text = "Invoice No: 1\nSupplier: X\nInvoice Date: 2024-01-01\n"
        with pytest.raises(ExtractionError, match=PDF_FIELDS_MISSING):
            PdfExtractor().parse_text(text)

    def test_extract_reads_pdf_text(self, monkeypatch):
        extractor = PdfExtractor()
        monkeypatch.setattr(extractor, "_read_pdf_bytes", lambda content: PDF_TEXT)
        assert extractor.extract(b"%PDF", "a.pdf").invoice_number == "INV-2024-0042"


class TestSpreadsheetExtractor:
    def test_xlsx_workbook(self):
        data = SpreadsheetExtractor().extract(_workbook_bytes(SHEET_ROWS), "invoice.xlsx")
        assert data.invoice_number == "INV-2024-007"
        assert data.supplier_name == "Office Supplies Ltd."
        assert data.invoice_type is InvoiceType.PURCHASE
        assert [(i.description, i.quantity, i.unit_price) for i in data.items] == [("Paper", 10, 4.5), ("Pens", 3, 2)]
        assert data.subtotal == pytest.approx(51.0, abs=1e-6)
        assert data.tax_amount == pytest.approx(10.2, abs=1e-6)
        assert data.due_date == "2024-03-31"

    def test_numeric_invoice_number_cell(self):
        rows = [["Invoice Number", 1001.0]] + SHEET_ROWS[1:]
        data = SpreadsheetExtractor().extract(_workbook_bytes(rows), "numbered.xlsx")
        assert data.invoice_number == "1001"

    def test_unmapped_columns(self):
        rows = [["Invoice Number", "X"], ["Thing", "Count", "Cost"], ["Paper", 1, 2]]
        with pytest.raises(ExtractionError, match=SPREADSHEET_COLUMNS_UNMAPPED):
            SpreadsheetExtractor().extract(_workbook_bytes(rows), "bad.xlsx")

    def test_not_a_workbook(self):
        with pytest.raises(ExtractionError, match="not an Excel workbook"):
            SpreadsheetExtractor().extract(b"plain text", "fake.xls")

    def test_parse_rows_with_legacy_style_values(self):
        rows = [
            ["Invoice No", 1001.0, "", ""],
            ["Vendor", "Global Logistics Co.", "", ""],
            ["Date", date(2024, 5, 2), "", ""],
            ["Item", "Qty", "Price", ""],
            ["Freight", 2.0, 150.0, ""],
            ["", "", "", ""],
            ["Notes", "Paid by transfer", "", ""],
        ]
        data = SpreadsheetExtractor().parse_rows(rows)
        assert data.invoice_number == "1001"
        assert data.invoice_date == "2024-05-02"
        assert data.notes == "Paid by transfer"
        assert data.tax_rate == 0
        assert data.total_amount == pytest.approx(300.0, abs=1e-6)


class TestSampleExtractor:
    def test_deterministic_for_same_input(self):
        extractor = SampleExtractor(reference_date=date(2024, 6, 1))
        assert extractor.extract(b"abc", "a.pdf") == extractor.extract(b"abc", "a.pdf")

    def test_generated_invoice_is_consistent(self):
        data = SampleExtractor(reference_date=date(2024, 6, 1)).extract(b"abc", "a.pdf")
        assert 1 <= len(data.items) <= 5
        assert 5 <= data.tax_rate <= 15
        assert data.notes == "Generated from file: a.pdf"
        assert date.fromisoformat(data.due_date) - date.fromisoformat(data.invoice_date) == timedelta(days=30)
        for item in data.items:
            assert item.total == pytest.approx(item.quantity * item.unit_price, abs=1e-6)
        assert data.total_amount == pytest.approx(data.subtotal * (1 + data.tax_rate / 100), abs=1e-6)

    def test_failure_rate_one_always_fails(self):
        extractor = SampleExtractor(failure_rate=1.0, failure_message="nope")
        with pytest.raises(ExtractionError, match="nope"):
            extractor.extract(b"abc", "a.pdf")

    def test_invalid_failure_rate(self):
        with pytest.raises(ValueError):
            SampleExtractor(failure_rate=2)
