"""Summaries and error logs built from processed outcomes."""
from __future__ import annotations

from typing import Iterable, List

from .schemas import BatchSummary, InvoiceData, ProcessedInvoice


def summarize(results: Iterable[ProcessedInvoice]) -> BatchSummary:
    results = list(results)
    successful = [r for r in results if r.success]
    return BatchSummary(
        total_files=len(results),
        successful=len(successful),
        failed=len(results) - len(successful),
        grand_total=sum(r.data.total_amount for r in successful if r.data is not None),
    )


def error_log(results: Iterable[ProcessedInvoice]) -> str:
    """Plain-text log with one ``File:``/``Error:`` block per failed file."""
    return "".join(
        f"File: {r.file_name}\nError: {r.error_message}\n\n" for r in results if not r.success
    )


def savable(results: Iterable[ProcessedInvoice]) -> List[InvoiceData]:
    return [r.data for r in results if r.success and r.data is not None]
