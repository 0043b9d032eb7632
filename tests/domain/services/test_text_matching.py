"""Tests for text normalization and excerpt location."""

from evidence_verifier.domain.services.text_matching import (
    content_words,
    jaccard,
    length_ratio,
    locate_excerpt,
    normalize_text,
    split_sentences,
)


def test_normalize_text():
    assert normalize_text("  The “Rate”   rose.  ") == 'the "rate" rose'


def test_content_words_drop_stop_words_and_short_words():
    assert content_words("The rate of unemployment rose to 4.1% in June") == {"rate", "unemployment", "rose", "june"}


def test_jaccard_and_length_ratio():
    assert jaccard({"a", "b"}, {"b", "c"}) == 1 / 3
    assert jaccard(set(), {"a"}) == 0.0
    assert length_ratio("abcd", "ab") == 0.5
    assert length_ratio("", "") == 0.0


def test_split_sentences_keeps_decimals_together():
    text = "Inflation was 3.4% in May. Wages rose 4.1% over the year."
    assert split_sentences(text) == [
        (0, "Inflation was 3.4% in May."),
        (27, "Wages rose 4.1% over the year."),
    ]


def test_locate_excerpt_exact():
    text = "Intro line.\nThe unemployment rate rose to 4.1% in June."
    location = locate_excerpt(text, "rose to 4.1%")
    assert location.match_type == "exact"
    assert location.line == 2
    assert text[location.start:location.end] == "rose to 4.1%"


def test_locate_excerpt_folds_whitespace_case_and_quotes():
    text = "He said the plan was “fully funded”\n and   on schedule."
    location = locate_excerpt(text, 'the plan was "Fully funded" and on schedule')
    assert location is not None
    assert location.match_type == "normalized"
    assert text[location.start:location.end] == "the plan was “fully funded”\n and   on schedule"


def test_locate_excerpt_missing():
    assert locate_excerpt("The rate rose to 4.1%.", "The rate fell") is None
    assert locate_excerpt("The rate rose to 4.1%.", "   ") is None
