"""Command-line entrypoints for screening and bulk processing of invoice files."""
from __future__ import annotations

import logging
import signal
from pathlib import Path
from typing import List, Optional

import typer
from rich import print
from rich.progress import Progress

from .config import get_settings
from .processor import SingleFileProcessor
from .report import error_log, summarize
from .scheduler import BatchScheduler, CancellationToken, OperationCancelled
from .schemas import BatchResponse, FileRejection, UploadCandidate
from .utils import content_type_label, format_bytes
from .validator import FileValidator

app = typer.Typer(add_completion=False, help="Invoice intake CLI")

EXIT_CANCELLED = 130


def _collect_paths(paths: List[Path]) -> List[Path]:
    files: List[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(sorted(p for p in path.iterdir() if p.is_file()))
        else:
            files.append(path)
    return files


def _load_candidates(paths: List[Path]) -> List[UploadCandidate]:
    return [UploadCandidate.from_path(p) for p in _collect_paths(paths)]


def _validator() -> FileValidator:
    settings = get_settings()
    return FileValidator(settings.accepted_content_types, settings.max_file_size)


def _print_rejections(rejections: List[FileRejection]) -> None:
    for rejection in rejections:
        print(f"[red]Rejected[/red] {rejection.file_name}: {rejection.message}")


def _print_summary(response: BatchResponse) -> None:
    summary = response.summary
    print(f"[bold]Total:[/bold] {summary.total_files}")
    print(f"[green]Successful:[/green] {summary.successful}  [red]Failed:[/red] {summary.failed}")
    if response.rejections:
        print(f"[yellow]Rejected before processing:[/yellow] {len(response.rejections)}")
    for result in response.results:
        if result.success and result.data is not None:
            print(f"- {result.file_name}: {result.data.invoice_number} {result.data.total_amount:.2f}")
        else:
            print(f"- {result.file_name}: [red]{result.error_message}[/red]")


@app.command()
def check(paths: List[Path] = typer.Argument(..., exists=True, help="Files or folders to screen")) -> None:
    """Screen files by type and size without processing them."""
    screening = _validator().screen(_load_candidates(paths))
    for candidate in screening.accepted:
        print(f"[green]OK[/green] {candidate.name} ({content_type_label(candidate.content_type)}, {format_bytes(candidate.size)})")
    _print_rejections(screening.rejected)
    if screening.rejected:
        raise typer.Exit(code=1)


@app.command()
def process(
    paths: List[Path] = typer.Argument(..., exists=True, help="Invoice files or folders of invoice files"),
    output: Optional[Path] = typer.Option(None, help="Path to write results JSON"),
    errors_log: Optional[Path] = typer.Option(None, "--errors-log", help="Path to write the plain-text error log"),
    batch_size: Optional[int] = typer.Option(None, min=1, help="Files processed concurrently per group"),
    sample: bool = typer.Option(False, "--sample", help="Generate deterministic sample data instead of parsing"),
    log_level: Optional[str] = typer.Option(None, help="Logging level, e.g. DEBUG"),
) -> None:
    """Screen, extract, and summarize a set of invoice files."""
    settings = get_settings()
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(asctime)s | %(name)-28s | %(levelname)-7s | %(message)s",
    )

    screening = _validator().screen(_load_candidates(paths))
    _print_rejections(screening.rejected)
    if not screening.accepted:
        print("[red]No files to process[/red]")
        raise typer.Exit(code=1)

    if sample:
        processor = SingleFileProcessor.sample(timeout=settings.file_timeout)
    else:
        processor = SingleFileProcessor.from_settings(settings)
    scheduler = BatchScheduler(
        processor=processor,
        batch_size=batch_size or settings.batch_size,
        pacing_delay=settings.pacing_delay,
    )

    token = CancellationToken()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: token.cancel())
    try:
        with Progress() as progress:
            task = progress.add_task("Processing files...", total=100)
            results = scheduler.run_sync(
                screening.accepted,
                on_progress=lambda percent: progress.update(task, completed=percent),
                cancel=token,
            )
    except OperationCancelled:
        print("[yellow]Processing cancelled[/yellow]")
        raise typer.Exit(code=EXIT_CANCELLED)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    response = BatchResponse(results=results, rejections=screening.rejected, summary=summarize(results))
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(response.model_dump_json(indent=2), encoding="utf-8")
        print(f"Results written to {output}")
    if errors_log and response.summary.failed:
        errors_log.parent.mkdir(parents=True, exist_ok=True)
        errors_log.write_text(error_log(results), encoding="utf-8")
        print(f"Error log written to {errors_log}")

    _print_summary(response)
    if response.summary.failed or response.rejections:
        raise typer.Exit(code=1)


def main():
    app()


if __name__ == "__main__":
    main()
