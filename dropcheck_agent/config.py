"""Runtime settings for the drop-domain checker, read from the environment."""
from __future__ import annotations

import os

from pydantic import BaseModel, Field


def _env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


class AgentSettings(BaseModel):
    wayback_base_url: str = Field("https://web.archive.org", min_length=1)
    timeout_ms: int = Field(20000, ge=1000, le=120000)
    max_text_kb: int = Field(256, ge=1, le=4096)
    user_agent: str = Field(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 DropCheckAgent/1.0"
    )

    max_snapshots: int = Field(10, ge=1, le=100)
    max_concurrent: int = Field(3, ge=1, le=10)
    suspicious_threshold: int = Field(3, ge=1)
    # None means batches run until every domain finishes.
    batch_deadline_s: float | None = Field(None, gt=0)

    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = Field("INFO")

    @classmethod
    def from_env(cls) -> "AgentSettings":
        values: dict[str, object] = {}
        mapping = {
            "wayback_base_url": "DROPCHECK_WAYBACK_BASE_URL",
            "timeout_ms": "DROPCHECK_TIMEOUT_MS",
            "max_text_kb": "DROPCHECK_MAX_TEXT_KB",
            "user_agent": "DROPCHECK_USER_AGENT",
            "max_snapshots": "DROPCHECK_MAX_SNAPSHOTS",
            "max_concurrent": "DROPCHECK_MAX_CONCURRENT",
            "suspicious_threshold": "DROPCHECK_SUSPICIOUS_THRESHOLD",
            "batch_deadline_s": "DROPCHECK_BATCH_DEADLINE_S",
            "log_level": "DROPCHECK_LOG_LEVEL",
        }
        for field_name, env_name in mapping.items():
            raw = _env(env_name)
            if raw is not None:
                values[field_name] = raw

        origins = _env("DROPCHECK_CORS_ORIGINS")
        if origins:
            values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

        # pydantic coerces the numeric strings and rejects bad values at startup.
        return cls.model_validate(values)

    def for_deadline(self, deadline_s: float | None) -> "AgentSettings":
        """Copy with the HTTP timeout no longer than the batch deadline.

        Workers abandoned at the deadline keep running until their current
        request returns, and the process cannot exit before they do.
        """
        if deadline_s is None:
            return self
        capped = max(1000, min(self.timeout_ms, int(deadline_s * 1000)))
        return self.model_copy(update={"timeout_ms": capped})
