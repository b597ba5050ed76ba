"""FastAPI application exposing the bulk intake pipeline."""
from __future__ import annotations

from typing import List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from .config import IntakeSettings, get_settings
from .report import error_log, summarize
from .scheduler import BatchScheduler
from .schemas import BatchResponse, UploadCandidate
from .validator import FileValidator

app = FastAPI(title="Invoice Intake Service", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _read_candidates(files: Optional[List[UploadFile]]) -> List[UploadCandidate]:
    if not files:
        raise HTTPException(status_code=400, detail="No files to process")
    candidates: List[UploadCandidate] = []
    for f in files:
        content = await f.read()
        candidates.append(
            UploadCandidate(
                name=f.filename or "<unnamed>",
                content_type=f.content_type or "application/octet-stream",
                content=content,
                size=len(content),
            )
        )
    return candidates


async def _run(files: Optional[List[UploadFile]], settings: IntakeSettings) -> BatchResponse:
    candidates = await _read_candidates(files)
    screening = FileValidator(settings.accepted_content_types, settings.max_file_size).screen(candidates)
    # no UI thread to keep responsive here
    scheduler = BatchScheduler.from_settings(settings)
    scheduler.pacing_delay = 0
    results = await scheduler.run(screening.accepted)
    return BatchResponse(results=results, rejections=screening.rejected, summary=summarize(results))


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/process", response_model=BatchResponse)
async def process_files(
    files: Optional[List[UploadFile]] = File(None),
    settings: IntakeSettings = Depends(get_settings),
):
    return await _run(files, settings)


@app.post("/error-log", response_class=PlainTextResponse)
async def process_error_log(
    files: Optional[List[UploadFile]] = File(None),
    settings: IntakeSettings = Depends(get_settings),
):
    response = await _run(files, settings)
    return PlainTextResponse(error_log(response.results))
