"""Concurrent batch pipeline: companyfacts documents → financial statements.

Fans the company roster out over a fixed-size thread pool.  Each worker
resolves the company's CIK, loads its document and runs the extraction
engine; results are folded into one shared collector under a lock.

Per-company outcomes:
  - symbol not in the CIK map  → skipped, counted nowhere
  - loader returns None        → skipped, counted nowhere (no document)
  - loader/extractor raises    → failed_count += 1, logged, batch continues
  - statements extracted       → appended, matched_count += 1

Each company is attempted exactly once; there is no retry and no
mid-run cancellation.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from edgar_statements.extraction import extract_statements
from edgar_statements.models import BatchResult, Company, FinancialStatement

log = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 50
DEFAULT_PROGRESS_INTERVAL = 500

# cik -> raw document, or None when the company has no document
DocumentLoader = Callable[[int], Any]
Extractor = Callable[[int, Any], list[FinancialStatement]]
ProgressCallback = Callable[[int, int], None]


def build_id_lookup(mapping: Mapping[str, int]) -> dict[str, int]:
    """Normalize a ticker → CIK map for case-insensitive lookup."""
    return {
        str(symbol).strip().upper(): cik
        for symbol, cik in mapping.items()
        if symbol and cik is not None
    }


# ═══════════════════════════════════════════════════════════════════════════
#  Shared result collector
# ═══════════════════════════════════════════════════════════════════════════

class _BatchCollector:
    """Thread-safe accumulator for counts, statements and progress.

    Workers only take the state lock to record a finished company; loading,
    extraction and progress callbacks all run outside it.  Callbacks are
    serialized by a second lock and never report a smaller count than one
    already reported.
    """

    def __init__(
        self,
        total: int,
        progress_interval: int,
        progress_callback: ProgressCallback | None,
    ):
        self.total = total
        self._interval = progress_interval
        self._callback = progress_callback
        self._lock = threading.Lock()
        self._notify_lock = threading.Lock()
        self._statements: list[FinancialStatement] = []
        self._matched = 0
        self._failed = 0
        self._completed = 0
        self._last_reported = 0

    def record_skip(self) -> None:
        with self._lock:
            due = self._complete()
        self._notify(due)

    def record_failure(self) -> None:
        with self._lock:
            self._failed += 1
            due = self._complete()
        self._notify(due)

    def record_success(self, statements: list[FinancialStatement]) -> None:
        with self._lock:
            self._statements.extend(statements)
            self._matched += 1
            due = self._complete()
        self._notify(due)

    def _complete(self) -> int | None:
        """Count one finished company; returns the count if progress is due."""
        self._completed += 1
        done = self._completed
        if done % self._interval == 0 and done < self.total:
            log.info("Parsed %d/%d, %d stmts", done, self.total, len(self._statements))
            return done
        return None

    def _notify(self, done: int | None) -> None:
        if done is None or self._callback is None:
            return
        with self._notify_lock:
            if done < self._last_reported:
                return
            self._last_reported = done
            try:
                self._callback(done, self.total)
            except Exception as exc:
                log.warning("Progress callback failed at %d/%d: %s", done, self.total, exc)

    def finish(self) -> BatchResult:
        """Freeze the collected state; call once every worker has returned."""
        self._notify(self.total)
        with self._lock:
            log.info(
                "Done: %d matched, %d failed, %d stmts",
                self._matched, self._failed, len(self._statements),
            )
            return BatchResult(
                statements=list(self._statements),
                matched_count=self._matched,
                failed_count=self._failed,
            )


# ═══════════════════════════════════════════════════════════════════════════
#  Per-company work
# ═══════════════════════════════════════════════════════════════════════════

def _process_company(
    company: Company,
    id_lookup: Mapping[str, int],
    document_loader: DocumentLoader,
    extractor: Extractor,
    collector: _BatchCollector,
) -> None:
    cik = id_lookup.get(company.symbol.strip().upper())
    if cik is None:
        collector.record_skip()
        return

    try:
        document = document_loader(cik)
        if document is None:
            collector.record_skip()
            return
        statements = extractor(company.company_id, document)
    except Exception as exc:
        log.warning("Skip %s (%d): %s", company.symbol, company.company_id, exc)
        collector.record_failure()
        return

    collector.record_success(statements)


# ═══════════════════════════════════════════════════════════════════════════
#  Batch entry point
# ═══════════════════════════════════════════════════════════════════════════

def run_batch(
    companies: Iterable[Company],
    id_lookup: Mapping[str, int],
    document_loader: DocumentLoader,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
    progress_callback: ProgressCallback | None = None,
    extractor: Extractor = extract_statements,
) -> BatchResult:
    """Extract statements for every company in the roster.

    Args:
        companies: Roster of (company_id, symbol) entries.
        id_lookup: Ticker → CIK map; matched case-insensitively.
        document_loader: ``loader(cik)`` returning the raw document, or None
            when the company has no document.
        concurrency: Worker pool size (maximum companies in flight).
        progress_interval: Report progress every N completed companies.
        progress_callback: ``callback(completed, total)``; the last call
            always reports ``(total, total)``.
        extractor: ``extractor(company_id, document)``; defaults to
            extract_statements.

    Only per-company problems are absorbed; invalid arguments raise.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")
    if progress_interval < 1:
        raise ValueError(f"progress_interval must be >= 1, got {progress_interval}")

    roster = list(companies)
    lookup = build_id_lookup(id_lookup)
    collector = _BatchCollector(len(roster), progress_interval, progress_callback)
    log.info("Extracting statements for %d companies (%d workers)", len(roster), concurrency)

    with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="extract") as executor:
        futures = [
            executor.submit(
                _process_company, company, lookup, document_loader, extractor, collector,
            )
            for company in roster
        ]
        for future in as_completed(futures):
            # Per-company errors are handled inside _process_company
            future.result()

    return collector.finish()
