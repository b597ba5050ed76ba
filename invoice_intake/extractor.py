"""Extraction strategies turning file bytes into structured invoice data."""
from __future__ import annotations

import hashlib
import io
import random
import re
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Protocol

import openpyxl
import pdfplumber
import xlrd

from .schemas import InvoiceData, InvoiceItem, InvoiceType
from .utils import parse_date, to_number

PDF_FIELDS_MISSING = "Could not extract required fields from the PDF"
SPREADSHEET_COLUMNS_UNMAPPED = "Could not map columns in the spreadsheet to expected fields"
DEFAULT_PAYMENT_DAYS = 30

INVOICE_NO_PATTERNS = [
    r"Invoice\s*(?:No\.?|Number|#)\s*[:\-]?\s*([A-Za-z0-9\-_/]+)",
    r"Facture\s*(?:N[°o]\.?)\s*[:\-]?\s*([A-Za-z0-9\-_/]+)",
]
SUPPLIER_PATTERNS = [
    r"(?:Supplier|Seller|Vendor|From)\s*[:\-]\s*(.+)",
    r"Fournisseur\s*[:\-]\s*(.+)",
]
SUPPLIER_ADDRESS_PATTERNS = [
    r"(?:Supplier\s+)?Address\s*[:\-]\s*(.+)",
]
DATE_VALUE = r"([0-9]{4}[./-][0-9]{1,2}[./-][0-9]{1,2}|[0-9]{1,2}[./-][0-9]{1,2}[./-][0-9]{2,4})"
INVOICE_DATE_PATTERNS = [
    r"Invoice\s*Date\s*[:\-]?\s*" + DATE_VALUE,
    r"(?<!Due )Date\s*[:\-]?\s*" + DATE_VALUE,
]
DUE_DATE_PATTERNS = [
    r"Due\s*Date\s*[:\-]?\s*" + DATE_VALUE,
    r"Payment\s*Due\s*[:\-]?\s*" + DATE_VALUE,
]
INVOICE_TYPE_PATTERN = r"Invoice\s*Type\s*[:\-]?\s*(sales|purchase|service|other)"
TAX_RATE_PATTERN = r"(?:VAT|TVA|GST|MwSt\.?|Tax)\s*(?:Rate)?\s*[:\-]?\s*\(?\s*(\d+(?:[.,]\d+)?)\s*%"
LINE_ITEM_PATTERN = r"(.+?)\s+(\d+[\d.,]*)\s+(\d+[\d.,]*)\s+(\d+[\d.,]*)$"
CURRENCY_SYMBOLS = {"€": "EUR", "$": "USD", "₹": "INR", "£": "GBP"}
LINE_ITEM_STOPWORDS = ("subtotal", "sub total", "total", "tax", "vat", "balance", "amount due")

HEADER_SYNONYMS = {
    "description": {"description", "item", "items", "designation", "product", "service", "article"},
    "quantity": {"quantity", "qty", "qte", "quantité", "units"},
    "unit_price": {"unit price", "unit_price", "unitprice", "price", "rate", "prix unitaire", "unit cost"},
}
FIELD_LABELS = {
    "invoice_number": {"invoice number", "invoice no", "invoice no.", "invoice #", "invoice", "number"},
    "supplier_name": {"supplier", "supplier name", "vendor", "seller", "from"},
    "supplier_address": {"supplier address", "address"},
    "invoice_date": {"invoice date", "date", "issue date"},
    "due_date": {"due date", "payment due"},
    "invoice_type": {"invoice type", "type"},
    "tax_rate": {"tax rate", "vat", "vat rate", "tax", "tax %", "vat %"},
    "currency": {"currency"},
    "notes": {"notes", "note", "comments"},
}


class ExtractionError(Exception):
    """A strategy could not turn the file into invoice data."""


class UnsupportedFileType(ExtractionError):
    def __init__(self, content_type: str) -> None:
        super().__init__(f"Unsupported file type: {content_type}")
        self.content_type = content_type


class Extractor(Protocol):
    def extract(self, content: bytes, file_name: str = "") -> InvoiceData:
        ...


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        # spreadsheet readers hand back numeric ids as floats
        value = int(value)
    text = str(value).strip()
    return text or None


def _coerce_invoice_type(value: Any) -> InvoiceType:
    try:
        return InvoiceType(str(value).strip().lower())
    except ValueError:
        return InvoiceType.OTHER


class _FieldExtractor:
    """Shared assembly of loosely matched fields into a validated InvoiceData."""

    failure_message = "Could not extract required fields"
    required = ("invoice_number", "supplier_name", "invoice_date")

    def _build_invoice(self, fields: Dict[str, Any], items: List[InvoiceItem]) -> InvoiceData:
        if not items or any(not _text(fields.get(name)) for name in self.required):
            raise ExtractionError(self.failure_message)

        invoice_date = parse_date(fields["invoice_date"])
        if invoice_date is None:
            raise ExtractionError(self.failure_message)
        due_date = parse_date(fields.get("due_date")) or invoice_date + timedelta(days=DEFAULT_PAYMENT_DAYS)
        tax_rate = to_number(fields.get("tax_rate"))

        return InvoiceData(
            invoice_number=_text(fields["invoice_number"]),
            supplier_name=str(fields["supplier_name"]).strip(),
            supplier_address=_text(fields.get("supplier_address")),
            invoice_date=invoice_date.isoformat(),
            due_date=due_date.isoformat(),
            invoice_type=_coerce_invoice_type(fields.get("invoice_type", "other")),
            items=items,
            tax_rate=tax_rate if tax_rate is not None and tax_rate >= 0 else 0.0,
            currency=_text(fields.get("currency")),
            notes=_text(fields.get("notes")),
        )


class PdfExtractor(_FieldExtractor):
    """Extract invoice fields from text PDFs using lightweight heuristics."""

    failure_message = PDF_FIELDS_MISSING

    def __init__(self, currency_fallback: Optional[str] = None) -> None:
        self.currency_fallback = currency_fallback

    def extract(self, content: bytes, file_name: str = "") -> InvoiceData:
        return self.parse_text(self._read_pdf_bytes(content))

    def parse_text(self, text: str) -> InvoiceData:
        normalized = text.replace("\r", "")
        fields: Dict[str, Any] = {
            "invoice_number": self._first_match(INVOICE_NO_PATTERNS, normalized),
            "supplier_name": self._first_match(SUPPLIER_PATTERNS, normalized),
            "supplier_address": self._first_match(SUPPLIER_ADDRESS_PATTERNS, normalized),
            "invoice_date": self._first_match(INVOICE_DATE_PATTERNS, normalized),
            "due_date": self._first_match(DUE_DATE_PATTERNS, normalized),
            "invoice_type": self._first_match([INVOICE_TYPE_PATTERN], normalized) or "other",
            "tax_rate": self._first_match([TAX_RATE_PATTERN], normalized),
            "currency": self._detect_currency(normalized),
            "notes": self._first_match([r"Notes?\s*[:\-]\s*(.+)"], normalized),
        }
        return self._build_invoice(fields, self._extract_line_items(normalized))

    # Internals
    def _read_pdf_bytes(self, content: bytes) -> str:
        pages_text: list[str] = []
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            for page in pdf.pages:
                pages_text.append(page.extract_text() or "")
        return "\n".join(pages_text)

    def _first_match(self, patterns: List[str], text: str, group: int = 1) -> Optional[str]:
        for pat in patterns:
            m = re.search(pat, text, flags=re.IGNORECASE)
            if m and m.group(group):
                return m.group(group).strip()
        return None

    def _detect_currency(self, text: str) -> Optional[str]:
        for symbol, code in CURRENCY_SYMBOLS.items():
            if symbol in text:
                return code
        code_match = re.search(r"\b(EUR|USD|GBP|INR|MAD)\b", text)
        if code_match:
            return code_match.group(1)
        return self.currency_fallback

    def _extract_line_items(self, text: str) -> List[InvoiceItem]:
        items: List[InvoiceItem] = []
        for raw_line in text.splitlines():
            line = raw_line.strip()
            m = re.match(LINE_ITEM_PATTERN, line)
            if not m:
                continue
            description = m.group(1).strip()
            if description.lower().startswith(LINE_ITEM_STOPWORDS):
                continue
            quantity = to_number(m.group(2))
            unit_price = to_number(m.group(3))
            if quantity is None or unit_price is None:
                continue
            items.append(InvoiceItem(description=description, quantity=quantity, unit_price=unit_price))
        return items


class SpreadsheetExtractor(_FieldExtractor):
    """Extract invoice fields from the first worksheet of an Excel workbook.

    Key/value cells above the item table give the header fields; the item
    table starts at the first row whose cells name a description, a quantity,
    and a unit price column.
    """

    failure_message = SPREADSHEET_COLUMNS_UNMAPPED

    def extract(self, content: bytes, file_name: str = "") -> InvoiceData:
        return self.parse_rows(self._read_rows(content))

    def parse_rows(self, rows: List[List[Any]]) -> InvoiceData:
        header_index, columns = self._find_header(rows)
        if header_index is None:
            raise ExtractionError(SPREADSHEET_COLUMNS_UNMAPPED)

        fields = self._collect_fields(rows[:header_index])
        items: List[InvoiceItem] = []
        for row in rows[header_index + 1:]:
            description = self._cell(row, columns["description"])
            quantity = to_number(self._cell(row, columns["quantity"]))
            unit_price = to_number(self._cell(row, columns["unit_price"]))
            if not description or quantity is None or unit_price is None:
                continue
            if quantity < 0 or unit_price < 0:
                raise ExtractionError(f"Negative quantity or price in row for {description!r}")
            items.append(InvoiceItem(description=str(description).strip(), quantity=quantity, unit_price=unit_price))

        # rows below the table may still carry tax rate or notes
        for name, value in self._collect_fields(rows[header_index + 1:]).items():
            fields.setdefault(name, value)
        return self._build_invoice(fields, items)

    # Internals
    def _read_rows(self, content: bytes) -> List[List[Any]]:
        if content[:2] == b"PK":
            workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
            try:
                sheet = workbook.worksheets[0]
                return [list(row) for row in sheet.iter_rows(values_only=True)]
            finally:
                workbook.close()
        if content[:4] == b"\xd0\xcf\x11\xe0":
            book = xlrd.open_workbook(file_contents=content)
            sheet = book.sheet_by_index(0)
            rows: List[List[Any]] = []
            for index in range(sheet.nrows):
                row: List[Any] = []
                for cell in sheet.row(index):
                    if cell.ctype == xlrd.XL_CELL_DATE:
                        row.append(xlrd.xldate.xldate_as_datetime(cell.value, book.datemode))
                    else:
                        row.append(cell.value)
                rows.append(row)
            return rows
        raise ExtractionError("Could not read the spreadsheet: not an Excel workbook")

    @staticmethod
    def _label(value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip().rstrip(":").strip().lower()

    @staticmethod
    def _cell(row: List[Any], index: int) -> Any:
        if index < len(row) and row[index] not in (None, ""):
            return row[index]
        return None

    def _find_header(self, rows: List[List[Any]]) -> tuple[Optional[int], Dict[str, int]]:
        for index, row in enumerate(rows):
            columns: Dict[str, int] = {}
            for position, value in enumerate(row):
                label = self._label(value)
                for name, synonyms in HEADER_SYNONYMS.items():
                    if label in synonyms and name not in columns:
                        columns[name] = position
            if len(columns) == len(HEADER_SYNONYMS):
                return index, columns
        return None, {}

    def _collect_fields(self, rows: List[List[Any]]) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for row in rows:
            for position, value in enumerate(row[:-1]):
                label = self._label(value)
                if not label:
                    continue
                for name, labels in FIELD_LABELS.items():
                    if label in labels and name not in fields:
                        cell = self._cell(row, position + 1)
                        if cell is not None:
                            fields[name] = cell.strip() if isinstance(cell, str) else cell
        return fields


class SampleExtractor:
    """Deterministic stand-in for a real parser.

    The generated invoice depends only on the file name, the bytes, and the
    reference date, so repeated runs over the same files agree.
    """

    SUPPLIERS = [
        "Tech Solutions Inc.",
        "Office Supplies Ltd.",
        "Global Logistics Co.",
        "Creative Design Agency",
        "Premium Software Services",
    ]
    CATALOGUE = [
        ("Web Development", 95.0),
        ("Graphic Design", 85.0),
        ("Server Hosting", 120.0),
        ("Technical Support", 75.0),
        ("Software License", 299.0),
        ("Marketing Services", 150.0),
        ("Office Supplies", 45.0),
        ("IT Consulting", 125.0),
    ]

    def __init__(
        self,
        failure_rate: float = 0.0,
        failure_message: str = "Could not extract required fields",
        reference_date: Optional[date] = None,
    ) -> None:
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be between 0 and 1")
        self.failure_rate = failure_rate
        self.failure_message = failure_message
        self.reference_date = reference_date

    def _rng(self, content: bytes, file_name: str) -> random.Random:
        digest = hashlib.sha256(file_name.encode("utf-8") + b"\0" + content).hexdigest()
        return random.Random(int(digest[:16], 16))

    def extract(self, content: bytes, file_name: str = "") -> InvoiceData:
        rng = self._rng(content, file_name)
        if rng.random() < self.failure_rate:
            raise ExtractionError(self.failure_message)

        today = self.reference_date or date.today()
        invoice_date = today - timedelta(days=rng.randrange(30))
        items = []
        for _ in range(rng.randint(1, 5)):
            description, price = rng.choice(self.CATALOGUE)
            items.append(InvoiceItem(description=description, quantity=rng.randint(1, 5), unit_price=price))

        return InvoiceData(
            invoice_number=f"INV-{rng.randint(10000, 99999)}",
            supplier_name=rng.choice(self.SUPPLIERS),
            invoice_date=invoice_date.isoformat(),
            due_date=(invoice_date + timedelta(days=DEFAULT_PAYMENT_DAYS)).isoformat(),
            invoice_type=rng.choice(list(InvoiceType)),
            items=items,
            tax_rate=float(rng.randint(5, 15)),
            notes=f"Generated from file: {file_name}",
        )
