"""Wayback Machine snapshot source.

Lists a domain's archived HTML captures through the CDX API and downloads the
raw capture bodies (the ``id_`` flavor, without the archive toolbar).
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Protocol
from urllib.parse import urlparse

import httpx

from .analyzer import html_to_text
from .config import AgentSettings
from .models import SnapshotRecord

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z\d+.-]*://")
_CDX_FIELDS = "timestamp,original,statuscode,mimetype"


class SnapshotFetchError(Exception):
    """A domain's snapshots could not be retrieved."""


class ArchiveUnreachableError(SnapshotFetchError):
    pass


class ArchiveNotFoundError(SnapshotFetchError):
    pass


class SnapshotSource(Protocol):
    def fetch_snapshots(self, domain: str, limit: int) -> list[SnapshotRecord]: ...


def normalize_domain(raw: str) -> str:
    value = (raw or "").strip()
    if not value:
        raise ValueError("Please provide a domain.")
    if not _SCHEME_RE.match(value):
        value = "http://" + value
    host = urlparse(value).hostname or ""
    host = host.strip(".").lower()
    if not host:
        raise ValueError(f"Invalid domain: {raw!r}")
    return host


def _parse_timestamp(ts: str) -> datetime:
    # CDX timestamps are 14 digits but may be truncated for old captures.
    padded = (ts + "00000101000000"[len(ts):]) if len(ts) < 14 else ts[:14]
    return datetime.strptime(padded, "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)


class WaybackClient:
    def __init__(self, settings: AgentSettings | None = None, transport: httpx.BaseTransport | None = None):
        self.settings = settings or AgentSettings()
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.settings.wayback_base_url,
            timeout=self.settings.timeout_ms / 1000,
            follow_redirects=True,
            headers={"user-agent": self.settings.user_agent},
            transport=self._transport,
        )

    def list_captures(self, client: httpx.Client, domain: str, limit: int) -> list[tuple[str, str]]:
        """Return ``(timestamp, original_url)`` pairs, most recent first."""
        params = [
            ("url", domain),
            ("output", "json"),
            ("fl", _CDX_FIELDS),
            ("filter", "statuscode:200"),
            ("filter", "mimetype:text/html"),
            ("collapse", "digest"),
            ("limit", str(-limit)),
        ]
        try:
            res = client.get("/cdx/search/cdx", params=params)
        except httpx.HTTPError as e:
            raise ArchiveUnreachableError(f"Archive request failed: {e}") from e

        if res.status_code == 429 or res.status_code >= 500:
            raise ArchiveUnreachableError(f"Archive responded with HTTP {res.status_code}.")
        if res.status_code >= 400:
            raise ArchiveNotFoundError(f"Archive has no record (HTTP {res.status_code}).")

        body = res.text.strip()
        if not body:
            return []
        try:
            rows = res.json()
        except ValueError as e:
            raise ArchiveUnreachableError("Archive returned a malformed capture index.") from e

        if not isinstance(rows, list) or len(rows) < 2:
            return []

        header = rows[0]
        try:
            ts_idx = header.index("timestamp")
            url_idx = header.index("original")
        except (AttributeError, ValueError) as e:
            raise ArchiveUnreachableError("Archive returned an unexpected capture index.") from e

        captures: list[tuple[str, str]] = []
        for row in rows[1:]:
            if not isinstance(row, list) or len(row) <= max(ts_idx, url_idx):
                continue
            ts, original = str(row[ts_idx]), str(row[url_idx])
            if ts.isdigit() and original:
                captures.append((ts, original))

        captures.sort(key=lambda c: c[0], reverse=True)
        return captures[:limit]

    def fetch_capture_text(self, client: httpx.Client, timestamp: str, original: str) -> tuple[str, str]:
        archive_url = f"/web/{timestamp}id_/{original}"
        res = client.get(archive_url)
        res.raise_for_status()
        max_bytes = self.settings.max_text_kb * 1024
        raw = res.content[:max_bytes].decode(res.encoding or "utf-8", errors="replace")
        return str(res.url), html_to_text(raw, max_chars=max_bytes)

    def fetch_snapshots(self, domain: str, limit: int) -> list[SnapshotRecord]:
        if limit < 1:
            raise ValueError("limit must be at least 1.")
        host = normalize_domain(domain)

        with self._client() as client:
            captures = self.list_captures(client, host, limit)
            if not captures:
                return []

            records: list[SnapshotRecord] = []
            failures: list[str] = []
            for ts, original in captures:
                try:
                    url, text = self.fetch_capture_text(client, ts, original)
                except httpx.HTTPError as e:
                    logger.warning("Skipping capture %s of %s: %s", ts, host, e)
                    failures.append(str(e))
                    continue
                records.append(
                    SnapshotRecord(
                        domain=domain,
                        captured_at=_parse_timestamp(ts),
                        text_content=text,
                        archive_url=url,
                    )
                )

        if not records:
            raise ArchiveUnreachableError(
                f"{len(captures)} capture(s) listed but none could be downloaded: {failures[-1]}"
            )
        return records
