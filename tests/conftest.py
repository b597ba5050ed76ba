import pytest

from invoice_intake.config import LEGACY_EXCEL, MODERN_EXCEL

from helpers import candidate


@pytest.fixture
def pdf_candidates():
    return [candidate(f"invoice-{i}.pdf") for i in range(5)]


@pytest.fixture
def mixed_candidates():
    return [
        candidate("a.pdf"),
        candidate("b.xlsx", MODERN_EXCEL, b"PK\x03\x04"),
        candidate("c.xls", LEGACY_EXCEL, b"\xd0\xcf\x11\xe0"),
        candidate("d.txt", "text/plain", b"hello"),
    ]
