from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

DomainVerdict = Literal["CLEAN", "SUSPICIOUS", "SPAM", "UNAVAILABLE", "NO_SNAPSHOTS"]
# PENDING marks a domain that entered processing but has no verdict yet.
DomainState = Literal["PENDING", "CLEAN", "SUSPICIOUS", "SPAM", "UNAVAILABLE", "NO_SNAPSHOTS"]
LogType = Literal["info", "success", "error"]

TERMINAL_STATUSES: tuple[str, ...] = ("CLEAN", "SUSPICIOUS", "SPAM", "UNAVAILABLE", "NO_SNAPSHOTS")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SnapshotRecord:
    domain: str
    captured_at: datetime
    text_content: str
    archive_url: str | None = None


@dataclass(frozen=True)
class SnapshotSignal:
    matched_terms: tuple[str, ...] = ()
    score: int = 0
    term_counts: dict[str, int] = field(default_factory=dict)


class EvidenceItem(BaseModel):
    term: str
    count: int = Field(..., ge=1)


class DomainStatus(BaseModel):
    domain: str
    status: DomainState = "PENDING"
    snapshot_count: int = Field(0, ge=0)
    total_score: int = Field(0, ge=0)
    evidence: list[EvidenceItem] = Field(default_factory=list)
    error: str | None = None
    last_updated: datetime = Field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class LogEntry(BaseModel):
    timestamp: datetime = Field(default_factory=utc_now)
    type: LogType = "info"
    message: str


class BatchSummary(BaseModel):
    total: int = 0
    clean: int = 0
    suspicious: int = 0
    spam: int = 0
    unavailable: int = 0
    no_snapshots: int = 0

    @classmethod
    def from_results(cls, results: list[DomainStatus]) -> "BatchSummary":
        counts = {s.lower(): 0 for s in TERMINAL_STATUSES}
        for r in results:
            key = r.status.lower()
            if key not in counts:
                raise ValueError(f"Domain {r.domain} has non-terminal status {r.status}.")
            counts[key] += 1
        return cls(total=len(results), **counts)


class BatchResult(BaseModel):
    results: list[DomainStatus]
    summary: BatchSummary


class AnalyzeSpamRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Emptiness is checked by the endpoint so it can answer 400 with logs.
    domains: list[str] = Field(default_factory=list)
    # Either a delimited string or a list; normalized by stop_words.resolve_stop_words.
    stop_words: str | list[str] | None = Field(None, alias="stopWords")
    max_snapshots: int | None = Field(None, ge=1, le=100, alias="maxSnapshots")
    max_concurrent: int | None = Field(None, ge=1, le=10, alias="maxConcurrent")
    run_id: str | None = Field(None, min_length=1, max_length=128, alias="runId")


class AnalyzeSpamResponse(BaseModel):
    success: bool = True
    run_id: str
    results: list[DomainStatus]
    summary: BatchSummary
    logs: list[LogEntry]


class RunStatusResponse(BaseModel):
    run_id: str
    finished: bool
    statuses: dict[str, DomainStatus]
