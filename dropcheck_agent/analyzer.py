from __future__ import annotations

import html as html_lib
import re
from collections import Counter

from .models import SnapshotRecord, SnapshotSignal
from .stop_words import StopWordSet

# Runs of letters/digits in any script; underscores count as separators.
_TOKEN_RE = re.compile(r"[^\W_]+", re.UNICODE)

_SCRIPT_RE = re.compile(r"<script\b[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style\b[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_NOSCRIPT_RE = re.compile(r"<noscript\b[^>]*>.*?</noscript>", re.IGNORECASE | re.DOTALL)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s{2,}")

# Wayback injects its own toolbar into non-raw captures.
_WAYBACK_TOOLBAR_RE = re.compile(
    r"<!-- BEGIN WAYBACK TOOLBAR INSERT -->.*?<!-- END WAYBACK TOOLBAR INSERT -->",
    re.IGNORECASE | re.DOTALL,
)


def html_to_text(html: str, max_chars: int | None = None) -> str:
    """Reduce an archived HTML page to its visible text.

    This is a best-effort regex sanitizer, not a DOM parser. Markup the archive
    returns that is not HTML passes through with tags stripped.
    """
    if not html:
        return ""

    cleaned = _WAYBACK_TOOLBAR_RE.sub(" ", html)
    cleaned = _SCRIPT_RE.sub(" ", cleaned)
    cleaned = _STYLE_RE.sub(" ", cleaned)
    cleaned = _NOSCRIPT_RE.sub(" ", cleaned)
    cleaned = _COMMENT_RE.sub(" ", cleaned)
    cleaned = _TAG_RE.sub(" ", cleaned)
    cleaned = html_lib.unescape(cleaned)
    cleaned = _WS_RE.sub(" ", cleaned).strip()

    if max_chars is not None:
        cleaned = cleaned[:max_chars]
    return cleaned


def tokenize(text: str) -> list[str]:
    if not text:
        return []
    return _TOKEN_RE.findall(text.lower())


def _count_phrase(tokens: list[str], phrase: tuple[str, ...]) -> int:
    n = len(phrase)
    first = phrase[0]
    count = 0
    for i in range(len(tokens) - n + 1):
        if tokens[i] == first and tuple(tokens[i:i + n]) == phrase:
            count += 1
    return count


def analyze_snapshot(snapshot: SnapshotRecord, stop_words: StopWordSet) -> SnapshotSignal:
    """Score one snapshot's text against the stop words.

    The score is the raw number of matched occurrences, not normalized by
    document length, so a short page with a few hits is not diluted.
    """
    text = snapshot.text_content
    if not isinstance(text, str) or not text or not len(stop_words):
        return SnapshotSignal()

    tokens = tokenize(text)
    if not tokens:
        return SnapshotSignal()

    token_counts = Counter(tokens)
    counts: dict[str, int] = {}
    for term in stop_words:
        parts = tuple(tokenize(term))
        if not parts:
            continue
        if len(parts) == 1:
            found = token_counts.get(parts[0], 0)
        else:
            found = _count_phrase(tokens, parts)
        if found:
            counts[term] = found

    if not counts:
        return SnapshotSignal()

    # Descending frequency; ties keep stop-word order (dicts preserve insertion).
    ordered = sorted(counts, key=lambda t: -counts[t])
    return SnapshotSignal(
        matched_terms=tuple(ordered),
        score=sum(counts.values()),
        term_counts={t: counts[t] for t in ordered},
    )
