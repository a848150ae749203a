"""Collection job: roster + CIK map → batch extraction → MongoDB upsert.

Designed to be called as a FastAPI background task or from the CLI.

Process:
  1. Check the companyfacts bulk directory is in place
  2. Load the ticker → CIK map (SEC) and the active US stock roster (MongoDB)
  3. Run the batch pipeline over the roster
  4. Upsert every extracted statement

Job status moves processing → completed | failed and is recorded in the
``jobs`` collection with the current phase and parse progress.  Any error
before or after the per-company work fails the whole job.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from functools import partial

from pydantic import BaseModel

from edgar_statements import db
from edgar_statements.config import Settings, get_config
from edgar_statements.extraction import extract_statements
from edgar_statements.loader import FileDocumentLoader
from edgar_statements.models import Company, FinancialStatement
from edgar_statements.pipeline import DocumentLoader, run_batch
from edgar_statements.sec_client import get_sec_client

log = logging.getLogger(__name__)

PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"


class JobResult(BaseModel):
    success: int = 0    # statements written
    failed: int = 0     # companies whose document could not be processed
    matched: int = 0    # companies with a processed document


def new_job_id() -> str:
    return str(uuid.uuid4())


def run_collection_job(
    job_id: str,
    *,
    settings: Settings | None = None,
    get_roster: Callable[[], list[Company]] | None = None,
    get_ticker_map: Callable[[], dict[str, int]] | None = None,
    document_loader: DocumentLoader | None = None,
    write_statements: Callable[[Sequence[FinancialStatement]], int] | None = None,
    report: Callable[..., None] = db.set_job,
) -> JobResult:
    """Run one full collection and record its status under *job_id*.

    Collaborators default to the production ones (MongoDB roster and
    writer, SEC ticker map, bulk-directory loader) and can be swapped out.

    Raises:
        Whatever stopped the job before or after the batch (missing bulk
        directory, ticker map, roster or write failure).  Per-company
        problems never raise; they end up in ``JobResult.failed``.
    """
    settings = settings or get_config()
    if get_roster is None:
        get_roster = db.get_active_us_stocks
    if get_ticker_map is None:
        get_ticker_map = get_sec_client().fetch_ticker_map
    if write_statements is None:
        write_statements = partial(db.upsert_statements, chunk_size=settings.write_chunk_size)

    report(job_id, PROCESSING, phase="loading metadata")
    try:
        if document_loader is None:
            file_loader = FileDocumentLoader(settings.data_dir)
            file_loader.check()
            document_loader = file_loader

        ticker_map = get_ticker_map()
        roster = get_roster()
        if not roster:
            log.warning("No active US stocks in DB")
            result = JobResult()
            report(job_id, COMPLETED, phase="done", result=result.model_dump())
            return result

        def on_progress(parsed: int, total: int) -> None:
            report(job_id, PROCESSING, phase="parsing", parsed=parsed, total=total)

        batch = run_batch(
            roster,
            ticker_map,
            document_loader,
            concurrency=settings.concurrency,
            progress_interval=settings.progress_interval,
            progress_callback=on_progress,
            extractor=partial(extract_statements, recent_years=settings.recent_years),
        )

        report(job_id, PROCESSING, phase="writing to DB")
        saved = write_statements(batch.statements)
    except Exception as exc:
        log.error("Job %s failed: %s", job_id, exc)
        report(job_id, FAILED, phase="failed", error=str(exc))
        raise

    result = JobResult(success=saved, failed=batch.failed_count, matched=batch.matched_count)
    log.info(
        "Job %s done: %d saved from %d stocks, %d failed",
        job_id, saved, batch.matched_count, batch.failed_count,
    )
    report(job_id, COMPLETED, phase="done", result=result.model_dump())
    return result
