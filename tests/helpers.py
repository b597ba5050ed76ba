import threading
import time

from invoice_intake.config import PDF
from invoice_intake.extractor import ExtractionError
from invoice_intake.schemas import InvoiceData, InvoiceItem, UploadCandidate


def make_invoice(file_name: str = "invoice.pdf") -> InvoiceData:
    return InvoiceData(
        invoice_number=f"INV-{file_name}",
        supplier_name="Tech Solutions Inc.",
        invoice_date="2024-01-15",
        due_date="2024-02-14",
        invoice_type="service",
        items=[
            InvoiceItem(description="Web Development", quantity=3, unit_price=95),
            InvoiceItem(description="Server Hosting", quantity=1, unit_price=120),
        ],
        tax_rate=10,
        notes=f"Generated from file: {file_name}",
    )


class StubExtractor:
    """Extractor double recording calls; optional per-file delay and failure."""

    def __init__(
        self, fail=(), delays=None, message="Could not extract required fields from the PDF", error=ExtractionError
    ):
        self.fail = set(fail)
        self.delays = delays or {}
        self.message = message
        self.error = error
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def extract(self, content, file_name=""):
        with self._lock:
            self.calls.append(file_name)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(self.delays.get(file_name, 0.01))
            if file_name in self.fail:
                raise self.error(self.message)
            return make_invoice(file_name)
        finally:
            with self._lock:
                self.in_flight -= 1


def candidate(name: str, content_type: str = PDF, content: bytes = b"%PDF-1.4 stub") -> UploadCandidate:
    return UploadCandidate(name=name, content_type=content_type, content=content)
