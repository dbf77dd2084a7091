from __future__ import annotations

import logging
import uuid
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .archive import SnapshotSource, WaybackClient
from .classifier import ClassifierPolicy
from .config import AgentSettings
from .models import AnalyzeSpamRequest, AnalyzeSpamResponse, LogEntry, RunStatusResponse
from .runs import RunInProgressError, RunStore
from .scheduler import BatchLog, run_batch
from .stop_words import resolve_stop_words


# Load environment variables from the repo root .env for local dev.
_HERE = Path(__file__).resolve()
load_dotenv(_HERE.parents[1] / ".env", override=False)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_settings() -> AgentSettings:
    return AgentSettings.from_env()


def get_snapshot_source() -> SnapshotSource:
    settings = get_settings()
    return WaybackClient(settings.for_deadline(settings.batch_deadline_s))


_settings = get_settings()
logging.basicConfig(level=_settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(title="DropCheck Wayback Spam Agent", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Live statuses per run, replacing a process-wide status map.
run_store = RunStore()


def _error_body(error: str, logs: list[LogEntry], **extra) -> dict:
    return {"error": error, **extra, "logs": [e.model_dump(mode="json") for e in logs]}


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.post("/wayback/analyze-spam", response_model=AnalyzeSpamResponse)
def analyze_spam_endpoint(
    req: AnalyzeSpamRequest,
    settings: AgentSettings = Depends(get_settings),
    source: SnapshotSource = Depends(get_snapshot_source),
):
    log = BatchLog()

    if not req.domains or any(not d.strip() for d in req.domains):
        return JSONResponse(
            status_code=400,
            content=_error_body("domains array is required", [LogEntry(type="error", message="domains array is required")]),
        )

    try:
        stop_words = resolve_stop_words(req.stop_words)
    except TypeError as e:
        return JSONResponse(status_code=400, content=_error_body(str(e), [LogEntry(type="error", message=str(e))]))

    run_id = req.run_id or uuid.uuid4().hex
    try:
        run = run_store.start(run_id)
    except RunInProgressError as e:
        return JSONResponse(status_code=409, content=_error_body(str(e), [LogEntry(type="error", message=str(e))]))

    try:
        result = run_batch(
            req.domains,
            stop_words,
            source,
            snapshot_limit=req.max_snapshots or settings.max_snapshots,
            max_concurrent=req.max_concurrent or settings.max_concurrent,
            on_status=run_store.recorder(run),
            policy=ClassifierPolicy(suspicious_threshold=settings.suspicious_threshold),
            deadline_s=settings.batch_deadline_s,
            log=log,
        )
    except ValueError as e:
        log.add(str(e), "error")
        return JSONResponse(status_code=400, content=_error_body(str(e), log.entries))
    except Exception as e:
        logger.exception("Spam analysis error")
        log.add(f"Fatal error: {e}", "error")
        return JSONResponse(
            status_code=500,
            content=_error_body("Spam analysis failed", log.entries, message=str(e)),
        )
    finally:
        run_store.finish(run)

    return AnalyzeSpamResponse(
        run_id=run_id,
        results=result.results,
        summary=result.summary,
        logs=log.entries,
    )


@app.get("/wayback/runs/{run_id}", response_model=RunStatusResponse)
def run_status_endpoint(run_id: str):
    try:
        state = run_store.snapshot(run_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))
    return RunStatusResponse(run_id=run_id, finished=state.finished, statuses=state.statuses)
