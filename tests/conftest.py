import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from dropcheck_agent.models import SnapshotRecord


class FakeSource:
    """In-memory snapshot source that also records peak concurrency."""

    def __init__(self, pages: dict[str, object], delay_s: float = 0.0) -> None:
        self.pages = pages
        self.delay_s = delay_s
        self.calls: list[tuple[str, int]] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def fetch_snapshots(self, domain: str, limit: int) -> list[SnapshotRecord]:
        with self._lock:
            self.calls.append((domain, limit))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay_s:
                time.sleep(self.delay_s)
            page = self.pages.get(domain, [])
            if isinstance(page, BaseException):
                raise page
            base = datetime(2020, 1, 1, tzinfo=timezone.utc)
            return [
                SnapshotRecord(domain=domain, captured_at=base - timedelta(days=30 * i), text_content=text)
                for i, text in enumerate(page[:limit])
            ]
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def fake_source_cls():
    return FakeSource
