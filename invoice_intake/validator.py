"""Pre-intake screening of candidates by content type and size."""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from .config import ACCEPTED_CONTENT_TYPES, MAX_FILE_SIZE
from .schemas import FileRejection, RejectionReason, ScreeningResult, UploadCandidate
from .utils import format_bytes

logger = logging.getLogger(__name__)


class FileValidator:
    def __init__(self, accepted_types: Iterable[str] = ACCEPTED_CONTENT_TYPES, max_size: int = MAX_FILE_SIZE) -> None:
        self.accepted_types = set(accepted_types)
        self.max_size = max_size

    def check(self, candidate: UploadCandidate) -> Optional[FileRejection]:
        """Return the rejection for ``candidate`` or None when it may enter the pipeline."""
        if candidate.content_type not in self.accepted_types:
            return FileRejection(
                file_name=candidate.name,
                file_type=candidate.content_type,
                size=candidate.size,
                reason=RejectionReason.UNSUPPORTED_TYPE,
                message=f"File type {candidate.content_type or '<unknown>'} is not accepted",
            )
        if candidate.size > self.max_size:
            return FileRejection(
                file_name=candidate.name,
                file_type=candidate.content_type,
                size=candidate.size,
                reason=RejectionReason.TOO_LARGE,
                message=f"File is {format_bytes(candidate.size)}, larger than {format_bytes(self.max_size)}",
            )
        return None

    def screen(self, candidates: Iterable[UploadCandidate]) -> ScreeningResult:
        result = ScreeningResult()
        for candidate in candidates:
            rejection = self.check(candidate)
            if rejection is None:
                result.accepted.append(candidate)
            else:
                logger.info("Rejected %s: %s", candidate.name, rejection.message)
                result.rejected.append(rejection)
        return result
