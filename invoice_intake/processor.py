"""Per-file processing: pick an extraction strategy and capture its outcome."""
from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Dict, Optional

from .config import LEGACY_EXCEL, MODERN_EXCEL, PDF, IntakeSettings
from .extractor import (
    PDF_FIELDS_MISSING,
    SPREADSHEET_COLUMNS_UNMAPPED,
    ExtractionError,
    Extractor,
    PdfExtractor,
    SampleExtractor,
    SpreadsheetExtractor,
    UnsupportedFileType,
)
from .schemas import ProcessedInvoice, UploadCandidate

logger = logging.getLogger(__name__)


class SingleFileProcessor:
    """Turn one candidate into a ProcessedInvoice. Never raises for a bad file."""

    def __init__(
        self,
        pdf: Optional[Extractor] = None,
        spreadsheet: Optional[Extractor] = None,
        timeout: Optional[float] = None,
    ) -> None:
        spreadsheet = spreadsheet or SpreadsheetExtractor()
        self.strategies: Dict[str, Extractor] = {
            PDF: pdf or PdfExtractor(),
            LEGACY_EXCEL: spreadsheet,
            MODERN_EXCEL: spreadsheet,
        }
        self.timeout = timeout

    @classmethod
    def sample(
        cls,
        failure_rate: float = 0.0,
        reference_date: Optional[date] = None,
        timeout: Optional[float] = None,
    ) -> "SingleFileProcessor":
        """Processor backed by the deterministic generator instead of real parsers."""
        return cls(
            pdf=SampleExtractor(failure_rate, PDF_FIELDS_MISSING, reference_date),
            spreadsheet=SampleExtractor(failure_rate, SPREADSHEET_COLUMNS_UNMAPPED, reference_date),
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, settings: IntakeSettings) -> "SingleFileProcessor":
        if settings.extraction_mode == "sample":
            return cls.sample(timeout=settings.file_timeout)
        return cls(timeout=settings.file_timeout)

    def strategy_for(self, content_type: str) -> Extractor:
        try:
            return self.strategies[content_type]
        except KeyError:
            raise UnsupportedFileType(content_type) from None

    async def _extract(self, candidate: UploadCandidate):
        strategy = self.strategy_for(candidate.content_type)
        call = asyncio.to_thread(strategy.extract, candidate.content, candidate.name)
        if self.timeout is None:
            return await call
        # wait_for abandons the worker thread; a hung parser keeps running past its group
        try:
            return await asyncio.wait_for(call, self.timeout)
        except asyncio.TimeoutError as exc:
            raise ExtractionError(f"Extraction timed out after {self.timeout:g}s") from exc

    async def process(self, candidate: UploadCandidate) -> ProcessedInvoice:
        try:
            data = await self._extract(candidate)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
        else:
            logger.debug("Extracted %s from %s", data.invoice_number, candidate.name)
            return ProcessedInvoice.succeeded(candidate, data)

        logger.warning("Error processing %s: %s", candidate.name, message)
        return ProcessedInvoice.failed(candidate, message)
