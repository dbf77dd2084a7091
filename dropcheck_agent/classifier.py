from __future__ import annotations

import logging
from collections import Counter
from typing import Callable, Iterable

from pydantic import BaseModel, Field

from .analyzer import analyze_snapshot
from .archive import SnapshotFetchError, SnapshotSource
from .models import DomainStatus, DomainVerdict, EvidenceItem, SnapshotSignal, utc_now
from .stop_words import StopWordSet

logger = logging.getLogger(__name__)

# Total matches across a domain's snapshots at which it is SPAM rather than SUSPICIOUS.
SUSPICIOUS_THRESHOLD = 3

StatusCallback = Callable[[DomainStatus], None]


class ClassifierPolicy(BaseModel):
    suspicious_threshold: int = Field(SUSPICIOUS_THRESHOLD, ge=1)


def verdict_for(total_score: int, policy: ClassifierPolicy | None = None) -> DomainVerdict:
    threshold = (policy or ClassifierPolicy()).suspicious_threshold
    if total_score <= 0:
        return "CLEAN"
    if total_score < threshold:
        return "SUSPICIOUS"
    return "SPAM"


def aggregate_evidence(signals: Iterable[SnapshotSignal]) -> list[EvidenceItem]:
    totals: Counter[str] = Counter()
    for signal in signals:
        totals.update(signal.term_counts)
    ordered = sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    return [EvidenceItem(term=term, count=count) for term, count in ordered if count > 0]


def _emit(status: DomainStatus, on_status: StatusCallback | None) -> None:
    status.last_updated = utc_now()
    if on_status is not None:
        on_status(status.model_copy(deep=True))


def classify_domain(
    domain: str,
    stop_words: StopWordSet,
    snapshot_limit: int,
    source: SnapshotSource,
    on_status: StatusCallback | None = None,
    policy: ClassifierPolicy | None = None,
) -> DomainStatus:
    """Fetch a domain's snapshots, score each one, and reduce them to a verdict.

    Fetch failures end as UNAVAILABLE; they are never raised. Anything else
    that goes wrong propagates to the caller.
    """
    if snapshot_limit < 1:
        raise ValueError("snapshot_limit must be at least 1.")

    status = DomainStatus(domain=domain)
    _emit(status, on_status)

    try:
        snapshots = source.fetch_snapshots(domain, snapshot_limit)
    except SnapshotFetchError as e:
        logger.info("Snapshot fetch failed for %s: %s", domain, e)
        status.status = "UNAVAILABLE"
        status.snapshot_count = 0
        status.evidence = []
        status.error = str(e) or type(e).__name__
        _emit(status, on_status)
        return status

    snapshots = list(snapshots)[:snapshot_limit]
    if not snapshots:
        status.status = "NO_SNAPSHOTS"
        _emit(status, on_status)
        return status

    signals = [analyze_snapshot(s, stop_words) for s in snapshots]
    status.snapshot_count = len(snapshots)
    status.total_score = sum(s.score for s in signals)
    status.evidence = aggregate_evidence(signals)
    status.status = verdict_for(status.total_score, policy)
    _emit(status, on_status)
    return status
