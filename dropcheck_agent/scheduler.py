from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Sequence

from .archive import SnapshotSource
from .classifier import ClassifierPolicy, StatusCallback, classify_domain
from .models import BatchResult, BatchSummary, DomainStatus, EvidenceItem, LogEntry, LogType
from .stop_words import StopWordSet

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_LIMIT = 10
DEFAULT_MAX_CONCURRENT = 3

LogCallback = Callable[[LogEntry], None]

_LOG_LEVELS = {"info": logging.INFO, "success": logging.INFO, "error": logging.ERROR}


class BatchLog:
    """Append-only, emission-ordered log shared by all workers of a batch."""

    def __init__(self, on_log: LogCallback | None = None):
        self._entries: list[LogEntry] = []
        self._lock = threading.Lock()
        self._on_log = on_log

    def add(self, message: str, type: LogType = "info") -> LogEntry:
        # Append and forward under one lock so callers see the same order as entries.
        with self._lock:
            entry = LogEntry(type=type, message=message)
            self._entries.append(entry)
            logger.log(_LOG_LEVELS[type], "[%s] %s", type.upper(), message)
            if self._on_log is not None:
                try:
                    self._on_log(entry)
                except Exception:
                    # A broken log observer must not take the batch down with it.
                    logger.exception("Log callback failed for entry %r", message)
        return entry

    @property
    def entries(self) -> list[LogEntry]:
        with self._lock:
            return list(self._entries)


def _describe(status: DomainStatus) -> str:
    if status.status == "NO_SNAPSHOTS":
        return f"{status.domain}: no archived snapshots"
    terms = ", ".join(f"{e.term}={e.count}" for e in status.evidence[:5])
    line = f"{status.domain}: {status.status} (score {status.total_score} across {status.snapshot_count} snapshot(s))"
    return f"{line}; matched {terms}" if terms else line


def _failed_status(domain: str, message: str) -> DomainStatus:
    return DomainStatus(
        domain=domain,
        status="UNAVAILABLE",
        error=message,
        evidence=[EvidenceItem(term=f"internal error: {message}", count=1)],
    )


def _validate(domains: Sequence[str], snapshot_limit: int, max_concurrent: int) -> None:
    if not domains:
        raise ValueError("domains array is required")
    for d in domains:
        if not isinstance(d, str) or not d.strip():
            raise ValueError("domains must be non-empty strings")
    if snapshot_limit < 1:
        raise ValueError("snapshot limit must be at least 1")
    if max_concurrent < 1:
        raise ValueError("max concurrent must be at least 1")


def run_batch(
    domains: Sequence[str],
    stop_words: StopWordSet,
    source: SnapshotSource,
    snapshot_limit: int = DEFAULT_SNAPSHOT_LIMIT,
    max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    on_log: LogCallback | None = None,
    on_status: StatusCallback | None = None,
    policy: ClassifierPolicy | None = None,
    deadline_s: float | None = None,
    log: BatchLog | None = None,
) -> BatchResult:
    """Classify every domain with at most ``max_concurrent`` running at once.

    Results come back in input order. Per-domain failures become UNAVAILABLE
    statuses; only invalid input raises. When ``deadline_s`` elapses, domains
    still queued or running are reported UNAVAILABLE and the batch returns.
    """
    _validate(domains, snapshot_limit, max_concurrent)
    if deadline_s is not None and deadline_s <= 0:
        raise ValueError("deadline must be positive")

    log = log or BatchLog(on_log)
    domains = list(domains)
    closed = threading.Event()
    # Guards the closed check together with the observer call.
    status_lock = threading.Lock()

    # Terminal statuses already delivered, by input position.
    reported: dict[int, DomainStatus] = {}

    def forward(index: int, status: DomainStatus) -> None:
        # Workers abandoned at the deadline must not report after the batch returned.
        with status_lock:
            if closed.is_set():
                return
            if status.is_terminal:
                reported[index] = status.model_copy(deep=True)
            if on_status is None:
                return
            try:
                on_status(status)
            except Exception:
                logger.exception("Status callback failed for %s", status.domain)

    log.add(f"Starting spam analysis for {len(domains)} domain(s)")
    log.add(f"Using {len(stop_words)} stop words")
    log.add(f"Max snapshots per domain: {snapshot_limit}")

    def note(message: str, type: LogType = "info") -> None:
        with status_lock:
            if not closed.is_set():
                log.add(message, type)

    def work(index: int, domain: str) -> DomainStatus:
        try:
            status = classify_domain(
                domain, stop_words, snapshot_limit, source, lambda s: forward(index, s), policy
            )
        except Exception as e:
            logger.exception("Unexpected failure while classifying %s", domain)
            status = _failed_status(domain, str(e) or type(e).__name__)
            note(f"{domain}: analysis failed: {status.error}", "error")
            forward(index, status.model_copy(deep=True))
            return status

        if status.status == "UNAVAILABLE":
            note(f"{domain}: unavailable ({status.error})", "error")
        else:
            note(_describe(status))
        return status

    results: list[DomainStatus | None] = [None] * len(domains)
    pool = ThreadPoolExecutor(max_workers=max_concurrent, thread_name_prefix="dropcheck")
    timed_out = False
    try:
        futures: dict[Future[DomainStatus], int] = {
            pool.submit(work, i, domain): i for i, domain in enumerate(domains)
        }
        pending = set(futures)
        deadline = None if deadline_s is None else time.monotonic() + deadline_s
        while pending:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                timed_out = True
                break
            done, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
            for fut in done:
                results[futures[fut]] = fut.result()
    finally:
        if timed_out:
            with status_lock:
                closed.set()
        pool.shutdown(wait=not timed_out, cancel_futures=timed_out)

    if timed_out:
        for i, domain in enumerate(domains):
            if results[i] is not None:
                continue
            if i in reported:
                # Finished just as the deadline hit; keep what observers already saw.
                results[i] = reported[i]
                continue
            expired = DomainStatus(domain=domain, status="UNAVAILABLE", error="batch deadline exceeded")
            results[i] = expired
            log.add(f"{domain}: unavailable (batch deadline exceeded)", "error")
            if on_status is not None:
                try:
                    on_status(expired.model_copy(deep=True))
                except Exception:
                    logger.exception("Status callback failed for %s", domain)

    final: list[DomainStatus] = [r for r in results if r is not None]
    summary = BatchSummary.from_results(final)
    log.add(
        f"Analysis complete: {summary.clean} clean, {summary.suspicious} suspicious, "
        f"{summary.spam} spam, {summary.unavailable} unavailable, "
        f"{summary.no_snapshots} without snapshots",
        "success",
    )
    return BatchResult(results=final, summary=summary)
