"""Numeric fact extraction for grounding verification.

Only numbers are treated as checkable claims: prices, phone numbers, dates,
percentages and plain counts. Every match contributes both its raw text and
a normalized form so a claim written "12,5" can meet a source written
"12.5".

The pattern classes overlap on purpose. "+46 8 123 45 67" yields the whole
phone number and each of its digit groups; all of them are kept.
"""

from __future__ import annotations

import re
from typing import Iterator, List, Set, Tuple

from .types import NumericFact
from .utils import normalize_number


# Order matters only for which textual variants show up first.
NUMERIC_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("phone", re.compile(r"\+\d+\s+\d+\s+\d+\s+\d+\s+\d+")),
    ("date", re.compile(r"\d{4}-\d{2}-\d{2}")),
    ("decimal", re.compile(r"\d+[.,]\d+%?")),
    ("percent", re.compile(r"\d+%")),
    ("integer", re.compile(r"\d+")),
]


def iter_numeric_facts(text: str) -> Iterator[NumericFact]:
    """Yield every numeric match in *text*, pattern class by pattern class.

    Args:
        text: Arbitrary input text (None is treated as empty)

    Yields:
        NumericFact for each match, including overlapping ones
    """
    if not text:
        return
    for kind, pattern in NUMERIC_PATTERNS:
        for m in pattern.finditer(text):
            raw = m.group(0)
            yield NumericFact(raw=raw, normalized=normalize_number(raw), kind=kind)


def extract_facts(text: str) -> Set[str]:
    """Extract the set of raw and normalized numeric facts from text.

    Never raises; text without numbers gives an empty set.

    Examples:
        >>> sorted(extract_facts("Rabatt 12,5%"))
        ['12', '12,5%', '12.5%', '5', '5%']
    """
    facts: Set[str] = set()
    for fact in iter_numeric_facts(text):
        facts.add(fact.normalized)
        facts.add(fact.raw)
    return facts
