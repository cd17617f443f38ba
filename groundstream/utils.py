"""Utility functions for the groundstream library."""

from __future__ import annotations

import re
from typing import Optional


_WS_RE = re.compile(r"\s+")
_NON_NUMERIC_RE = re.compile(r"[^\d.]")
_LEADING_NUMBER_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim.

    Args:
        text: Text to collapse

    Returns:
        Collapsed text
    """
    return _WS_RE.sub(" ", text or "").strip()


def normalize_number(value: str) -> str:
    """Unify the decimal separator and collapse whitespace in a numeric token.

    >>> normalize_number("12,5")
    '12.5'
    >>> normalize_number("+46  8 123")
    '+46 8 123'
    """
    return _WS_RE.sub(" ", value.replace(",", ".")).strip()


def parse_decimal(value: str) -> Optional[float]:
    """Leniently read a decimal number out of a numeric token.

    Everything except digits and "." is dropped, then the longest leading
    number is parsed. Returns None when nothing numeric remains.

    >>> parse_decimal("75%")
    75.0
    >>> parse_decimal("+46 8 123 45 67")
    4681234567.0
    >>> parse_decimal("2024-01-15")
    20240115.0
    """
    stripped = _NON_NUMERIC_RE.sub("", value or "")
    m = _LEADING_NUMBER_RE.match(stripped)
    if not m:
        return None
    return float(m.group(0))
