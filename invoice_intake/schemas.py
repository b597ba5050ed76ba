"""Data models shared by the validator, processor, scheduler, CLI, and API."""
from __future__ import annotations

import mimetypes
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from .utils import parse_date

mimetypes.add_type("application/vnd.ms-excel", ".xls")
mimetypes.add_type("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", ".xlsx")


class UploadCandidate(BaseModel):
    """A file submitted for extraction. Read-only once built."""

    model_config = ConfigDict(frozen=True)

    name: str
    content_type: str
    content: bytes = Field(default=b"", repr=False)
    size: int = Field(default=0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _default_size(cls, values: Any) -> Any:
        if isinstance(values, dict) and values.get("size") is None:
            values = dict(values)
            values["size"] = len(values.get("content") or b"")
        return values

    @classmethod
    def from_path(cls, path: str | Path) -> "UploadCandidate":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        content = path.read_bytes()
        return cls(
            name=path.name,
            content_type=content_type or "application/octet-stream",
            content=content,
            size=len(content),
        )


class InvoiceType(str, Enum):
    SALES = "sales"
    PURCHASE = "purchase"
    SERVICE = "service"
    OTHER = "other"


class InvoiceItem(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    description: str
    quantity: float = Field(ge=0)
    unit_price: float = Field(ge=0)

    @computed_field
    @property
    def total(self) -> float:
        return self.quantity * self.unit_price


class InvoiceData(BaseModel):
    """Structured invoice fields. Money totals are always derived from the items and tax rate."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    invoice_number: str
    supplier_name: str
    supplier_address: Optional[str] = None
    invoice_date: str
    due_date: str
    invoice_type: InvoiceType = InvoiceType.OTHER
    items: Tuple[InvoiceItem, ...] = Field(default_factory=tuple)
    tax_rate: float = Field(default=0.0, ge=0)
    currency: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("invoice_date", "due_date")
    @classmethod
    def _iso_date(cls, value: str) -> str:
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError(f"unparseable date: {value!r}")
        return parsed.isoformat()

    @computed_field
    @property
    def subtotal(self) -> float:
        return sum(item.total for item in self.items)

    @computed_field
    @property
    def tax_amount(self) -> float:
        return self.subtotal * self.tax_rate / 100

    @computed_field
    @property
    def total_amount(self) -> float:
        return self.subtotal + self.tax_amount


class ProcessedInvoice(BaseModel):
    """Outcome of one candidate: either ``data`` or ``error_message``, never both."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    file_type: str
    success: bool
    data: Optional[InvoiceData] = None
    error_message: Optional[str] = None
    candidate: Optional[UploadCandidate] = Field(default=None, exclude=True, repr=False)

    @model_validator(mode="after")
    def _one_outcome(self) -> "ProcessedInvoice":
        if self.success and (self.data is None or self.error_message is not None):
            raise ValueError("a successful outcome carries data and no error_message")
        if not self.success and (self.data is not None or self.error_message is None):
            raise ValueError("a failed outcome carries an error_message and no data")
        return self

    @classmethod
    def succeeded(cls, candidate: UploadCandidate, data: InvoiceData) -> "ProcessedInvoice":
        return cls(
            file_name=candidate.name,
            file_type=candidate.content_type,
            success=True,
            data=data,
            candidate=candidate,
        )

    @classmethod
    def failed(cls, candidate: UploadCandidate, message: str) -> "ProcessedInvoice":
        return cls(
            file_name=candidate.name,
            file_type=candidate.content_type,
            success=False,
            error_message=message,
            candidate=candidate,
        )

    def with_data(self, data: InvoiceData) -> "ProcessedInvoice":
        """Return an edited copy; the original outcome is left untouched."""
        return ProcessedInvoice(
            file_name=self.file_name,
            file_type=self.file_type,
            success=True,
            data=data,
            candidate=self.candidate,
        )


class RejectionReason(str, Enum):
    UNSUPPORTED_TYPE = "unsupported_type"
    TOO_LARGE = "too_large"


class FileRejection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    file_name: str
    file_type: str
    size: int
    reason: RejectionReason
    message: str


class ScreeningResult(BaseModel):
    accepted: List[UploadCandidate] = Field(default_factory=list)
    rejected: List[FileRejection] = Field(default_factory=list)


class BatchSummary(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total_files: int
    successful: int
    failed: int
    grand_total: float = 0.0


class BatchResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: List[ProcessedInvoice]
    rejections: List[FileRejection] = Field(default_factory=list)
    summary: BatchSummary
