"""Command-line runner: classify a list of drop domains against the Wayback Machine."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from .archive import SnapshotSource, WaybackClient
from .classifier import ClassifierPolicy
from .config import AgentSettings
from .models import BatchResult, LogEntry
from .scheduler import run_batch
from .stop_words import resolve_stop_words

logger = logging.getLogger(__name__)


def _read_domains(args: argparse.Namespace) -> list[str]:
    domains = list(args.domains)
    if args.file:
        for line in Path(args.file).read_text(encoding="utf-8").splitlines():
            line = line.split("#", 1)[0].strip()
            if line:
                domains.append(line)
    return domains


def build_parser(settings: AgentSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dropcheck",
        description="Classify drop domains by scanning their archived snapshots for spam terms.",
    )
    parser.add_argument("domains", nargs="*", help="domains to check")
    parser.add_argument("-f", "--file", help="file with one domain per line ('#' starts a comment)")
    parser.add_argument("--stop-words", help="extra stop words, separated by commas or semicolons")
    parser.add_argument(
        "--no-default-stop-words",
        action="store_true",
        help="use only the stop words given with --stop-words",
    )
    parser.add_argument("--max-snapshots", type=int, default=settings.max_snapshots)
    parser.add_argument("--max-concurrent", type=int, default=settings.max_concurrent)
    parser.add_argument("--threshold", type=int, default=settings.suspicious_threshold,
                        help="total matches at which a domain counts as spam")
    parser.add_argument("--deadline", type=float, default=settings.batch_deadline_s,
                        help="seconds before unfinished domains are reported unavailable; "
                             "archive requests time out no later than this, and the process "
                             "exits once in-flight requests return")
    parser.add_argument("--json", action="store_true", help="print the full result as JSON")
    return parser


def _print_table(result: BatchResult) -> None:
    width = max([len(r.domain) for r in result.results] + [6])
    print(f"{'DOMAIN'.ljust(width)}  {'STATUS':<12}  {'SNAPS':>5}  {'SCORE':>5}  EVIDENCE")
    for r in result.results:
        evidence = ", ".join(f"{e.term}={e.count}" for e in r.evidence[:4])
        if r.error and not evidence:
            evidence = r.error
        print(f"{r.domain.ljust(width)}  {r.status:<12}  {r.snapshot_count:>5}  {r.total_score:>5}  {evidence}")
    s = result.summary
    print(
        f"\n{s.total} domain(s): {s.clean} clean, {s.suspicious} suspicious, {s.spam} spam, "
        f"{s.unavailable} unavailable, {s.no_snapshots} without snapshots"
    )


def _stream_log(entry: LogEntry) -> None:
    print(f"[{entry.timestamp:%H:%M:%S}] {entry.type.upper():<7} {entry.message}", file=sys.stderr, flush=True)


def main(argv: list[str] | None = None, source: SnapshotSource | None = None) -> int:
    load_dotenv(override=False)
    try:
        settings = AgentSettings.from_env()
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    # Batch lines are already streamed to stderr; keep the mirror quiet.
    logging.getLogger("dropcheck_agent.scheduler").setLevel(logging.WARNING)

    args = build_parser(settings).parse_args(argv)

    try:
        domains = _read_domains(args)
        stop_words = resolve_stop_words(args.stop_words, include_defaults=not args.no_default_stop_words)
        policy = ClassifierPolicy(suspicious_threshold=args.threshold)
    except (OSError, ValidationError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    if not len(stop_words):
        print("error: no stop words to scan for", file=sys.stderr)
        return 2

    try:
        result = run_batch(
            domains,
            stop_words,
            source or WaybackClient(settings.for_deadline(args.deadline)),
            snapshot_limit=args.max_snapshots,
            max_concurrent=args.max_concurrent,
            on_log=_stream_log,
            policy=policy,
            deadline_s=args.deadline,
        )
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except Exception:
        logger.exception("Spam analysis failed")
        return 1

    if args.json:
        print(json.dumps(result.model_dump(mode="json"), indent=2))
    else:
        _print_table(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
