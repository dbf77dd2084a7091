from __future__ import annotations

import logging
import re
from typing import Iterable, Iterator

logger = logging.getLogger(__name__)

# Common content on hijacked or repurposed drop domains.
DEFAULT_STOP_WORDS: tuple[str, ...] = (
    "casino",
    "poker",
    "slots",
    "betting",
    "gambling",
    "roulette",
    "jackpot",
    "viagra",
    "cialis",
    "levitra",
    "pharmacy",
    "pills",
    "porn",
    "xxx",
    "escort",
    "dating",
    "payday",
    "loans",
    "replica",
    "counterfeit",
    "bitcoin doubler",
    "crypto giveaway",
    "forex signals",
    "weight loss",
    "buy followers",
)

_SPLIT_RE = re.compile(r"[,;\n\r]+")
_WS_RE = re.compile(r"\s+")
# Text is tokenized on letters and digits, so a term must start and end on one
# to match the way it was written ("e-mail" is fine, "c++" is not).
_MATCHABLE_RE = re.compile(r"[^\W_](?:.*[^\W_])?", re.DOTALL)


def normalize_term(term: str) -> str:
    return _WS_RE.sub(" ", term.strip().lower())


class StopWordSet:
    """Immutable, ordered set of normalized stop words.

    Order is first-seen order and is what the analyzer uses to break ties.
    Entries may be phrases; they are matched as consecutive tokens.
    """

    __slots__ = ("_terms", "_lookup")

    def __init__(self, terms: Iterable[str] = ()) -> None:
        ordered: dict[str, None] = {}
        for raw in terms:
            if not isinstance(raw, str):
                raise TypeError(f"Stop words must be strings, got {type(raw).__name__}.")
            term = normalize_term(raw)
            if not term:
                continue
            if not _MATCHABLE_RE.fullmatch(term):
                logger.warning("Ignoring stop word %r: it cannot match tokenized text as written.", raw)
                continue
            ordered.setdefault(term, None)
        self._terms: tuple[str, ...] = tuple(ordered)
        self._lookup = frozenset(self._terms)

    @property
    def terms(self) -> tuple[str, ...]:
        return self._terms

    def position(self, term: str) -> int:
        return self._terms.index(term)

    def __contains__(self, term: object) -> bool:
        return term in self._lookup

    def __iter__(self) -> Iterator[str]:
        return iter(self._terms)

    def __len__(self) -> int:
        return len(self._terms)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StopWordSet):
            return NotImplemented
        return self._terms == other._terms

    def __hash__(self) -> int:
        return hash(self._terms)

    def __repr__(self) -> str:
        return f"StopWordSet({list(self._terms)!r})"


def parse_stop_words(raw: str) -> list[str]:
    if not raw:
        return []
    return [t for t in (normalize_term(p) for p in _SPLIT_RE.split(raw)) if t]


def combine_stop_words(extra: Iterable[str] | None = None, include_defaults: bool = True) -> StopWordSet:
    terms: list[str] = list(DEFAULT_STOP_WORDS) if include_defaults else []
    if extra:
        terms.extend(extra)
    return StopWordSet(terms)


def resolve_stop_words(value: str | list[str] | None, include_defaults: bool = True) -> StopWordSet:
    if value is None:
        return combine_stop_words(include_defaults=include_defaults)
    if isinstance(value, str):
        return combine_stop_words(parse_stop_words(value), include_defaults=include_defaults)
    if isinstance(value, (list, tuple)):
        return combine_stop_words(value, include_defaults=include_defaults)
    raise TypeError("stop words must be a delimited string or a list of strings.")
