import pytest

from dropcheck_agent.stop_words import (
    DEFAULT_STOP_WORDS,
    StopWordSet,
    combine_stop_words,
    parse_stop_words,
    resolve_stop_words,
)


def test_stop_word_set_normalizes_and_dedupes() -> None:
    words = StopWordSet(["  Casino ", "casino", "", "Online   Pharmacy", "   "])

    assert words.terms == ("casino", "online pharmacy")
    assert len(words) == 2
    assert "casino" in words
    assert "Casino" not in words


def test_stop_word_set_rejects_non_strings() -> None:
    with pytest.raises(TypeError):
        StopWordSet(["casino", 42])


def test_parse_stop_words_splits_on_delimiters() -> None:
    assert parse_stop_words("casino, Viagra;poker\n\nslots ,") == ["casino", "viagra", "poker", "slots"]
    assert parse_stop_words("") == []


def test_combine_keeps_defaults_first() -> None:
    words = combine_stop_words(["zzz-custom", "casino"])

    assert words.terms[: len(DEFAULT_STOP_WORDS)] == DEFAULT_STOP_WORDS
    assert words.terms[-1] == "zzz-custom"
    assert len(words) == len(DEFAULT_STOP_WORDS) + 1


def test_resolve_accepts_string_list_or_none() -> None:
    assert resolve_stop_words(None) == combine_stop_words()
    assert resolve_stop_words("foo,bar", include_defaults=False).terms == ("foo", "bar")
    assert resolve_stop_words(["Foo", "foo"], include_defaults=False).terms == ("foo",)

    with pytest.raises(TypeError):
        resolve_stop_words(12)  # type: ignore[arg-type]


def test_terms_that_tokenization_would_truncate_are_dropped(caplog) -> None:
    with caplog.at_level("WARNING", logger="dropcheck_agent.stop_words"):
        words = StopWordSet(["c++", "++", "e-mail", "casino!", "viagra"])

    assert words.terms == ("e-mail", "viagra")
    assert "c++" in caplog.text
