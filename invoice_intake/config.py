"""Runtime settings for the invoice intake pipeline."""
from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PDF = "application/pdf"
LEGACY_EXCEL = "application/vnd.ms-excel"
MODERN_EXCEL = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SPREADSHEET_TYPES = frozenset({LEGACY_EXCEL, MODERN_EXCEL})
ACCEPTED_CONTENT_TYPES = (PDF, LEGACY_EXCEL, MODERN_EXCEL)

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB
BATCH_SIZE = 3
PACING_DELAY = 0.05


class IntakeSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="INVOICE_INTAKE_", env_file=".env", extra="ignore")

    max_file_size: int = Field(default=MAX_FILE_SIZE, gt=0)
    accepted_content_types: List[str] = Field(default_factory=lambda: list(ACCEPTED_CONTENT_TYPES))
    batch_size: int = Field(default=BATCH_SIZE, ge=1)
    pacing_delay: float = Field(default=PACING_DELAY, ge=0)
    file_timeout: Optional[float] = Field(default=None, gt=0)
    extraction_mode: Literal["parse", "sample"] = "parse"
    log_level: str = "INFO"


@lru_cache
def get_settings() -> IntakeSettings:
    return IntakeSettings()
