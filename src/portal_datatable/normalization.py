"""Canonical text form used by search and text filters.

Spanish content is matched without regard to accents, case or punctuation, so
"estratificacion" finds "Estratificación Socioeconómica" and "alic" finds
"Alícia". Every function here is pure and total over any input value.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any

_COMBINING_MARKS_RE = re.compile(r"[\u0300-\u036f\u1ab0-\u1aff\u1dc0-\u1dff\u20d0-\u20ff\ufe20-\ufe2f]+")
_SEPARATORS_RE = re.compile(r"[\W_]+")

FUZZY_TOLERANCE = 0.2


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def strip_accents(value: Any) -> str:
    """Lower-case and drop diacritics, keeping punctuation and spacing."""
    text = _as_text(value)
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.casefold())
    return _COMBINING_MARKS_RE.sub("", decomposed)


def normalize(value: Any) -> str:
    """Return the canonical form of ``value``.

    >>> normalize("  Certificación   de Residencia! ")
    'certificacion de residencia'
    """
    stripped = strip_accents(value)
    if not stripped:
        return ""
    return _SEPARATORS_RE.sub(" ", stripped).strip()


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def _fuzzy_contains(query: str, haystack: str) -> bool:
    max_distance = int(len(query) * FUZZY_TOLERANCE)
    query_tokens = query.split(" ")
    tokens = haystack.split(" ")
    width = len(query_tokens)
    if width > len(tokens):
        return levenshtein(query, haystack) <= max_distance
    for start in range(len(tokens) - width + 1):
        window = " ".join(tokens[start : start + width])
        if levenshtein(query, window) <= max_distance:
            return True
    return False


def match(query: Any, haystack: Any, *, whole_word: bool = False, fuzzy: bool = False) -> bool:
    """Check whether ``query`` occurs in ``haystack`` once both are canonical.

    An empty query matches everything. ``whole_word`` restricts matches to
    token boundaries; ``fuzzy`` additionally accepts small typos (up to 20% of
    the query length) against any run of tokens of the same size.
    """
    needle = normalize(query)
    if not needle:
        return True
    target = normalize(haystack)
    if not target:
        return False
    if whole_word:
        found = f" {needle} " in f" {target} "
    else:
        found = needle in target
    if found or not fuzzy:
        return found
    return _fuzzy_contains(needle, target)
