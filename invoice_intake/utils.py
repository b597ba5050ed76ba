"""Utility functions shared across the invoice intake pipeline."""
from __future__ import annotations

from datetime import date, datetime
from typing import Iterator, List, Optional, Sequence, TypeVar

from dateutil import parser

T = TypeVar("T")


def parse_date(value: object) -> Optional[date]:
    """Parse a date-like value into a date object; returns None on failure."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parser.parse(str(value), dayfirst=False, yearfirst=True).date()
    except (ValueError, TypeError, OverflowError):
        try:
            return parser.parse(str(value), dayfirst=True, yearfirst=True).date()
        except (ValueError, TypeError, OverflowError):
            return None


def to_number(value: object) -> Optional[float]:
    """Convert a cell or a matched text fragment to float.

    Handles both ``1.234,56`` and ``1,234.56`` styles: when both separators
    appear the rightmost one is the decimal separator.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = str(value).strip().replace(" ", "")
    for symbol in ("€", "$", "£", "₹", "%"):
        cleaned = cleaned.replace(symbol, "")
    if not cleaned:
        return None
    if "," in cleaned and "." in cleaned:
        if cleaned.rindex(",") > cleaned.rindex("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        if len(cleaned.split(",")[-1]) <= 2:
            cleaned = cleaned.replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    try:
        return float(cleaned)
    except ValueError:
        return None


def approx_equal(a: Optional[float], b: Optional[float], tolerance: float = 1e-6) -> bool:
    if a is None or b is None:
        return False
    return abs(a - b) <= tolerance


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of ``size`` items; the last one may be shorter."""
    if size < 1:
        raise ValueError("size must be >= 1")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def content_type_label(content_type: str) -> str:
    if content_type == "application/pdf":
        return "PDF"
    if "spreadsheet" in content_type or "excel" in content_type:
        return "Excel"
    return content_type


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{value:.2f}".rstrip("0").rstrip(".") + f" {units[index]}"
