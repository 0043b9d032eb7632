"""Tests for numeric extraction."""

import pytest

from evidence_verifier.domain.models.claim import NumberKind
from evidence_verifier.domain.services.numeric_extraction import (
    comparable_value,
    extract_numbers,
    is_significant,
    relatively_close,
    units_compatible,
)


def _single(text):
    numbers = extract_numbers(text)
    assert len(numbers) == 1, numbers
    return numbers[0]


@pytest.mark.parametrize("text,value,unit,kind", [
    ("Turnout reached 62% this year", 62.0, "%", NumberKind.PERCENTAGE),
    ("Turnout reached 62 percent", 62.0, "%", NumberKind.PERCENTAGE),
    ("a gap of 3.5 percentage points", 3.5, "pp", NumberKind.PERCENTAGE_POINTS),
    ("revenue of $2.5 billion", 2.5e9, "USD", NumberKind.CURRENCY),
    ("a fine of 1,200 euros", 1200.0, "EUR", NumberKind.CURRENCY),
    ("3 in 10 adults", 0.3, "ratio", NumberKind.RATIO),
    ("ranked 3rd of 50 states", 3.0, "rank", NumberKind.RANK),
    ("sales doubled", 2.0, "x", NumberKind.MULTIPLE),
    ("a 3-fold rise", 3.0, "x", NumberKind.MULTIPLE),
    ("about 1,500 employees", 1500.0, "employees", NumberKind.COUNT),
    ("roughly 4.2 million", 4.2e6, None, NumberKind.SCALED),
])
def test_categories(text, value, unit, kind):
    number = _single(text)
    assert number.value == pytest.approx(value)
    assert number.unit == unit
    assert number.kind is kind


def test_change_wins_over_percentage_and_carries_direction():
    number = _single("Exports fell by 12% last quarter")
    assert number.kind is NumberKind.CHANGE
    assert number.value == -12.0
    assert number.direction == -1
    assert comparable_value(number) == 12.0


def test_year_denominator_is_not_a_ratio():
    assert not [n for n in extract_numbers("5 in 2023") if n.kind is NumberKind.RATIO]


def test_numbers_are_ordered_by_position_with_context():
    numbers = extract_numbers("Wages reached 4.1% while 1,500 workers were hired")
    assert [n.raw for n in numbers] == ["4.1%", "1,500 workers"]
    assert "Wages reached" in numbers[0].context


def test_units_compatible_and_relatively_close():
    assert units_compatible("%", "%")
    assert units_compatible(None, "USD")
    assert not units_compatible("%", "pp")
    assert relatively_close(100.0, 100.5, 0.01)
    assert not relatively_close(100.0, 110.0, 0.01)
    assert relatively_close(0.0, 0.0, 0.01)


def test_is_significant():
    assert is_significant(_single("a share of 12%"))
    assert not is_significant(_single("a fee of $20"))
    assert is_significant(_single("a fee of $2,000"))
    assert not is_significant(_single("about 40 workers"))
    assert is_significant(_single("about 400 workers"))
    assert not is_significant(_single("ranked 3rd"))
