"""Extraction of quantitative expressions from prose.

Recognized categories are percentages and percentage points, currency
amounts, ratios, rankings, directional changes, multiples, counts paired
with a unit noun, and bare scaled numbers ("3.2 million"). Overlapping
matches are resolved by category priority, so "increased by 12%" yields a
single change rather than a change plus a percentage.
"""

import re
from typing import Callable, List, Optional, Pattern, Tuple

from ..models.claim import NumberKind, NumericValue

_NUM = r"\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?"

SCALE_MULTIPLIERS = {
    "thousand": 1e3, "k": 1e3,
    "million": 1e6, "mn": 1e6, "m": 1e6,
    "billion": 1e9, "bn": 1e9, "b": 1e9,
    "trillion": 1e12, "tn": 1e12, "t": 1e12,
}

CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP", "¥": "JPY"}
CURRENCY_WORDS = {
    "dollars": "USD", "usd": "USD",
    "euros": "EUR", "eur": "EUR",
    "pounds": "GBP", "gbp": "GBP",
}

MULTIPLE_WORDS = {
    "doubled": 2.0,
    "tripled": 3.0,
    "trebled": 3.0,
    "quadrupled": 4.0,
    "quintupled": 5.0,
    "halved": 0.5,
}

DECREASE_VERBS = frozenset({"decreased", "fell", "dropped", "declined", "plunged", "shrank", "slipped", "lost"})

COUNT_NOUNS = (
    "people", "persons", "employees", "workers", "users", "customers", "cases",
    "incidents", "deaths", "agents", "patients", "students", "companies",
    "households", "jobs", "residents", "children", "adults", "members",
    "visitors", "respondents", "participants", "businesses", "homes", "vehicles",
)

CONTEXT_WINDOW = 60

_SCALE = r"thousand|million|billion|trillion|bn|mn|tn|[kmbt]"

_CHANGE = re.compile(
    r"\b(?P<verb>increased|decreased|grew|fell|dropped|rose|declined|climbed|jumped|surged"
    r"|plunged|shrank|slipped|gained|lost)(?:\s+by)?\s+(?P<num>" + _NUM + r")\s*"
    r"(?P<unit>%|percent\b|per\s+cent\b|percentage[\s-]points?\b)",
    re.IGNORECASE,
)
_CURRENCY_SYMBOL = re.compile(
    r"(?P<sym>[$€£¥])\s?(?P<num>" + _NUM + r")(?:\s*(?P<scale>" + _SCALE + r")\b)?",
    re.IGNORECASE,
)
_CURRENCY_WORD = re.compile(
    r"\b(?P<num>" + _NUM + r")(?:\s*(?P<scale>thousand|million|billion|trillion)\b)?\s*"
    r"(?P<word>dollars|euros|pounds|usd|eur|gbp)\b",
    re.IGNORECASE,
)
_RATIO = re.compile(
    r"\b(?P<num>" + _NUM + r")\s+(?:out\s+of|of|in)\s+(?:every\s+)?(?!(?:19|20)\d{2}\b)(?P<den>" + _NUM + r")\b",
    re.IGNORECASE,
)
_RANK = re.compile(
    r"(?:\branked?\s+(?:no\.\s*|number\s+|#\s*)?|(?<![\w#])#\s?)(?P<num>\d+)(?:st|nd|rd|th)?\b"
    r"(?:\s+(?:out\s+of|of)\s+(?P<den>" + _NUM + r"))?",
    re.IGNORECASE,
)
_PERCENTAGE_POINTS = re.compile(
    r"\b(?P<num>" + _NUM + r")\s*(?:percentage[\s-]points?|pp|ppts?)\b",
    re.IGNORECASE,
)
_PERCENTAGE = re.compile(
    r"\b(?P<num>" + _NUM + r")\s*(?:%|percent\b|per\s+cent\b)",
    re.IGNORECASE,
)
_MULTIPLE_WORD = re.compile(r"\b(?P<word>" + "|".join(MULTIPLE_WORDS) + r")\b", re.IGNORECASE)
_MULTIPLE_FACTOR = re.compile(r"\b(?P<num>" + _NUM + r")(?:-fold|x)\b", re.IGNORECASE)
_COUNT = re.compile(
    r"\b(?P<num>" + _NUM + r")(?:\s+(?P<scale>thousand|million|billion|trillion))?\s+"
    r"(?P<noun>" + "|".join(COUNT_NOUNS) + r")\b",
    re.IGNORECASE,
)
_SCALED = re.compile(
    r"\b(?P<num>" + _NUM + r")\s+(?P<scale>thousand|million|billion|trillion)\b",
    re.IGNORECASE,
)


def parse_number(raw: str) -> float:
    return float(raw.replace(",", ""))


def _scaled(match: "re.Match[str]") -> float:
    value = parse_number(match.group("num"))
    scale = match.groupdict().get("scale")
    if scale:
        value *= SCALE_MULTIPLIERS[scale.lower()]
    return value


def _change(match):
    verb = match.group("verb").lower()
    direction = -1 if verb in DECREASE_VERBS else 1
    unit = "pp" if match.group("unit").lower().startswith("percentage") else "%"
    return direction * parse_number(match.group("num")), unit, direction


def _currency_symbol(match):
    return _scaled(match), CURRENCY_SYMBOLS[match.group("sym")], None


def _currency_word(match):
    return _scaled(match), CURRENCY_WORDS[match.group("word").lower()], None


def _ratio(match):
    denominator = parse_number(match.group("den"))
    if denominator == 0:
        return None
    return parse_number(match.group("num")) / denominator, "ratio", None


def _rank(match):
    return float(match.group("num")), "rank", None


def _percentage_points(match):
    return parse_number(match.group("num")), "pp", None


def _percentage(match):
    return parse_number(match.group("num")), "%", None


def _multiple_word(match):
    return MULTIPLE_WORDS[match.group("word").lower()], "x", None


def _multiple_factor(match):
    return parse_number(match.group("num")), "x", None


def _count(match):
    return _scaled(match), match.group("noun").lower(), None


def _bare_scaled(match):
    return _scaled(match), None, None


# Priority order: earlier entries win overlapping spans.
_EXTRACTORS: List[Tuple[NumberKind, Pattern[str], Callable]] = [
    (NumberKind.CHANGE, _CHANGE, _change),
    (NumberKind.CURRENCY, _CURRENCY_SYMBOL, _currency_symbol),
    (NumberKind.CURRENCY, _CURRENCY_WORD, _currency_word),
    (NumberKind.RATIO, _RATIO, _ratio),
    (NumberKind.RANK, _RANK, _rank),
    (NumberKind.PERCENTAGE_POINTS, _PERCENTAGE_POINTS, _percentage_points),
    (NumberKind.PERCENTAGE, _PERCENTAGE, _percentage),
    (NumberKind.MULTIPLE, _MULTIPLE_WORD, _multiple_word),
    (NumberKind.MULTIPLE, _MULTIPLE_FACTOR, _multiple_factor),
    (NumberKind.COUNT, _COUNT, _count),
    (NumberKind.SCALED, _SCALED, _bare_scaled),
]


def extract_numbers(text: str) -> List[NumericValue]:
    """Extract quantitative expressions from text, ordered by position.

    Args:
        text: Text to scan

    Returns:
        Numbers with normalized values and units
    """
    taken: List[Tuple[int, int]] = []
    found: List[NumericValue] = []
    for kind, pattern, convert in _EXTRACTORS:
        for match in pattern.finditer(text):
            start, end = match.span()
            if any(start < taken_end and taken_start < end for taken_start, taken_end in taken):
                continue
            converted = convert(match)
            if converted is None:
                continue
            value, unit, direction = converted
            taken.append((start, end))
            found.append(NumericValue(
                value=value,
                unit=unit,
                kind=kind,
                raw=match.group(0),
                context=text[max(0, start - CONTEXT_WINDOW):end + CONTEXT_WINDOW].strip(),
                position=start,
                direction=direction,
            ))
    return sorted(found, key=lambda number: number.position)


def comparable_value(number: NumericValue) -> float:
    """Value used for comparisons; changes compare by magnitude."""
    if number.kind is NumberKind.CHANGE:
        return abs(number.value)
    return number.value


def units_compatible(a: Optional[str], b: Optional[str]) -> bool:
    """Same unit, or at least one side unit-less."""
    return a is None or b is None or a == b


def relatively_close(a: float, b: float, tolerance: float) -> bool:
    """Relative difference against the larger magnitude is within tolerance."""
    largest = max(abs(a), abs(b))
    if largest == 0:
        return True
    return abs(a - b) / largest <= tolerance


def is_significant(number: NumericValue) -> bool:
    """Whether an uncited number is worth flagging for a missing citation."""
    if number.kind in (
        NumberKind.PERCENTAGE,
        NumberKind.PERCENTAGE_POINTS,
        NumberKind.CHANGE,
        NumberKind.RATIO,
        NumberKind.MULTIPLE,
        NumberKind.SCALED,
    ):
        return True
    if number.kind is NumberKind.CURRENCY:
        return number.value >= 1000
    if number.kind is NumberKind.COUNT:
        return number.value >= 100
    return False
