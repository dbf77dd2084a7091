from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime

from .models import DomainStatus, utc_now


class RunInProgressError(Exception):
    """A run with this id is still being processed."""


@dataclass
class RunState:
    run_id: str
    statuses: dict[str, DomainStatus] = field(default_factory=dict)
    finished: bool = False
    created_at: datetime = field(default_factory=utc_now)


class RunStore:
    """Live per-run status maps, written only through each run's recorder.

    Recorders and ``finish`` hold the ``RunState`` they were created for, so a
    later run reusing the id never receives another run's writes.
    """

    def __init__(self, max_runs: int = 32):
        if max_runs < 1:
            raise ValueError("max_runs must be at least 1.")
        self.max_runs = max_runs
        self._runs: OrderedDict[str, RunState] = OrderedDict()
        self._lock = threading.Lock()

    def start(self, run_id: str) -> RunState:
        with self._lock:
            existing = self._runs.get(run_id)
            if existing is not None and not existing.finished:
                raise RunInProgressError(f"Run {run_id} is still in progress.")
            self._runs.pop(run_id, None)
            run = RunState(run_id=run_id)
            self._runs[run_id] = run
            while len(self._runs) > self.max_runs:
                self._runs.popitem(last=False)
            return run

    def recorder(self, run: RunState):
        def record(status: DomainStatus) -> None:
            with self._lock:
                run.statuses[status.domain] = status

        return record

    def finish(self, run: RunState) -> None:
        with self._lock:
            run.finished = True

    def snapshot(self, run_id: str) -> RunState:
        with self._lock:
            run = self._runs.get(run_id)
            if run is None:
                raise KeyError(f"Unknown run: {run_id}")
            return RunState(
                run_id=run.run_id,
                statuses=dict(run.statuses),
                finished=run.finished,
                created_at=run.created_at,
            )
